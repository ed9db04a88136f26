"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from deskbox.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DESKBOX_PROVIDER", raising=False)
        monkeypatch.delenv("DESKBOX_RESOLUTION_WIDTH", raising=False)
        monkeypatch.delenv("DESKBOX_RESOLUTION_HEIGHT", raising=False)

        settings = get_settings()

        assert settings.provider == "e2b"
        assert settings.resolution == (1024, 768)
        assert settings.vnc_port == 5900
        assert settings.novnc_port == 6080
        assert settings.startup_timeout_seconds == 10
        assert settings.poll_interval_seconds == 0.5

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DESKBOX_PROVIDER", "docker")
        monkeypatch.setenv("DESKBOX_RESOLUTION_WIDTH", "1920")
        monkeypatch.setenv("DESKBOX_RESOLUTION_HEIGHT", "1080")

        settings = Settings()

        assert settings.provider == "docker"
        assert settings.resolution == (1920, 1080)

    def test_docker_exposed_ports_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DESKBOX_DOCKER_EXPOSED_PORTS", "[6080, 6081, 5900]")
        assert Settings().docker_exposed_ports == (6080, 6081, 5900)

    def test_frozen(self) -> None:
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.dpi = 120  # type: ignore[misc]
