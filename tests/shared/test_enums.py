"""Tests for shared enum definitions."""

from __future__ import annotations

import pytest

from deskbox.shared.enums import FileFormat, MouseButton, Provider, ResizeMode, ScrollDirection


class TestProvider:
    def test_all_providers_present(self) -> None:
        assert {p.value for p in Provider} == {"e2b", "daytona", "docker"}


class TestMouseButton:
    def test_string_value(self) -> None:
        assert MouseButton.LEFT == "left"
        assert MouseButton("middle") is MouseButton.MIDDLE


class TestScrollDirection:
    def test_only_up_and_down(self) -> None:
        assert {d.value for d in ScrollDirection} == {"up", "down"}

    def test_rejects_sideways(self) -> None:
        with pytest.raises(ValueError):
            ScrollDirection("left")


class TestResizeMode:
    def test_all_modes_present(self) -> None:
        assert {m.value for m in ResizeMode} == {"off", "scale", "remote"}


class TestFileFormat:
    def test_string_value(self) -> None:
        assert FileFormat.BYTES == "bytes"
        assert FileFormat("text") is FileFormat.TEXT
