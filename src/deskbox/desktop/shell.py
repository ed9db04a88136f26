"""Shell command helpers shared by the desktop and stream controllers."""

from __future__ import annotations

import secrets
import shlex
import string

_ALPHABET = string.ascii_letters + string.digits


def generate_random_string(length: int = 16) -> str:
    """Return ``length`` random alphanumeric characters from a CSPRNG."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def quote_string(s: str) -> str:
    """Quote ``s`` for a POSIX shell.

    ``''`` for the empty string, unchanged when only ``[\\w@%+=:,./-]`` is
    present, otherwise single-quoted with embedded quotes written ``'"'"'``.
    """
    return shlex.quote(s)


def break_into_chunks(text: str, size: int) -> list[str]:
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [text[i : i + size] for i in range(0, len(text), size)]
