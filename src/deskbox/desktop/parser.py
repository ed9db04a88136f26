"""Parse textual output of X11 utilities into typed values."""

from __future__ import annotations

import re

from pydantic import ValidationError

from deskbox.shared.exceptions import ParseError
from deskbox.shared.models import CursorPosition, ScreenSize

# xdotool getmouselocation → "x:120 y:340 screen:0 window:123"
_CURSOR_PATTERN = re.compile(r"x:(\d+)\s+y:(\d+)")

# first WIDTHxHEIGHT token in xrandr output
_RESOLUTION_PATTERN = re.compile(r"(\d+x\d+)")


def parse_cursor_position(output: str) -> CursorPosition:
    """Extract the pointer position from ``xdotool getmouselocation`` output.

    Raises:
        ParseError: If no ``x:<int> y:<int>`` pair is present.
    """
    match = _CURSOR_PATTERN.search(output)
    if not match:
        raise ParseError(f"failed to parse cursor position from output: {output}")
    return CursorPosition(x=int(match.group(1)), y=int(match.group(2)))


def parse_screen_size(output: str) -> ScreenSize:
    """Extract the display resolution from ``xrandr`` output.

    Raises:
        ParseError: If no resolution token is present or it is not a valid size.
    """
    match = _RESOLUTION_PATTERN.search(output)
    if not match:
        raise ParseError(f"failed to parse screen size from output: {output}")

    token = match.group(1)
    width, _, height = token.partition("x")
    try:
        return ScreenSize(width=int(width), height=int(height))
    except (ValueError, ValidationError) as exc:
        raise ParseError(f"invalid screen size format: {token}") from exc


def parse_window_ids(output: str) -> list[str]:
    """Split ``xdotool search`` output into window ids, dropping blank lines."""
    return [line.strip() for line in output.splitlines() if line.strip()]
