"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide configuration loaded from environment variables."""

    model_config = {"env_prefix": "DESKBOX_", "frozen": True}

    # Provisioning
    provider: str = "e2b"
    template: str = "deskbox-desktop"
    sandbox_timeout_seconds: int = 300

    # Display
    display: str = ":0"
    resolution_width: int = 1024
    resolution_height: int = 768
    dpi: int = 96

    # Polling used for Xvfb and noVNC readiness
    startup_timeout_seconds: float = 10
    poll_interval_seconds: float = 0.5

    # Foreground commands; background launches are never bounded
    command_timeout_seconds: float = 60

    # Stream
    vnc_port: int = 5900
    novnc_port: int = 6080
    novnc_dir: str = "/opt/noVNC"

    # E2B
    e2b_api_key: str = ""

    # Daytona
    daytona_api_key: str = ""
    daytona_api_url: str = "https://app.daytona.io/api"
    daytona_target: str = "us"

    # Docker (local development provider)
    docker_host: str = "127.0.0.1"
    docker_network: str | None = None
    # Container ports published to the host; stream ports must be listed here
    docker_exposed_ports: tuple[int, ...] = (6080, 5900)

    @property
    def resolution(self) -> tuple[int, int]:
        return (self.resolution_width, self.resolution_height)


def get_settings() -> Settings:
    """Factory; allows overriding in tests."""
    return Settings()
