"""Tests for xdotool / xrandr output parsing."""

from __future__ import annotations

import pytest

from deskbox.desktop.parser import parse_cursor_position, parse_screen_size, parse_window_ids
from deskbox.shared.exceptions import ParseError
from deskbox.shared.models import CursorPosition, ScreenSize

_XRANDR_OUTPUT = """\
Screen 0: minimum 1 x 1, current 1920 x 1080, maximum 32767 x 32767
screen cursor-none connected primary 1920x1080+0+0 0mm x 0mm
   1920x1080     60.00*
"""


class TestParseCursorPosition:
    def test_xdotool_output(self) -> None:
        assert parse_cursor_position("x:120 y:340 screen:0 window:12582919") == CursorPosition(x=120, y=340)

    def test_surrounding_text(self) -> None:
        assert parse_cursor_position("noise x:0   y:7 trailing\n") == CursorPosition(x=0, y=7)

    def test_missing_pattern_includes_raw_output(self) -> None:
        with pytest.raises(ParseError, match="Can't open display"):
            parse_cursor_position("Error: Can't open display: :0")


class TestParseScreenSize:
    def test_xrandr_output(self) -> None:
        assert parse_screen_size(_XRANDR_OUTPUT) == ScreenSize(width=1920, height=1080)

    def test_bare_resolution(self) -> None:
        assert parse_screen_size("1024x768") == ScreenSize(width=1024, height=768)

    def test_missing_pattern(self) -> None:
        with pytest.raises(ParseError, match="failed to parse screen size"):
            parse_screen_size("xrandr: command not found")

    def test_malformed_dimensions(self) -> None:
        with pytest.raises(ParseError, match="invalid screen size format: 0x0"):
            parse_screen_size("mode 0x0")


class TestParseWindowIds:
    def test_drops_blank_lines(self) -> None:
        assert parse_window_ids("123\n\n456\n") == ["123", "456"]

    def test_empty_output(self) -> None:
        assert parse_window_ids("") == []
