"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class Provider(str, Enum):
    """Supported sandbox providers."""

    E2B = "e2b"
    DAYTONA = "daytona"
    DOCKER = "docker"


@unique
class MouseButton(str, Enum):
    """Named mouse buttons accepted by press/release."""

    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


@unique
class ScrollDirection(str, Enum):
    """Mouse wheel directions."""

    UP = "up"
    DOWN = "down"


@unique
class ResizeMode(str, Enum):
    """noVNC client resize behaviour."""

    OFF = "off"
    SCALE = "scale"
    REMOTE = "remote"


@unique
class FileFormat(str, Enum):
    """Return format for sandbox file reads."""

    TEXT = "text"
    BYTES = "bytes"
