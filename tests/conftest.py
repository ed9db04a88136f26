"""Shared pytest fixtures for the deskbox test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from deskbox.config import Settings
from deskbox.desktop.controller import Desktop
from deskbox.desktop.session import DesktopSession
from deskbox.sandbox.results import BackgroundProcess, CommandResult


@pytest.fixture()
def settings() -> Settings:
    """Return a Settings instance with fast polling and fake credentials."""
    return Settings(
        provider="e2b",
        e2b_api_key="e2b-test-key",
        daytona_api_key="daytona-test-key",
        startup_timeout_seconds=0.5,
        poll_interval_seconds=0.01,
    )


@pytest.fixture()
def mock_sandbox() -> AsyncMock:
    """Mock SandboxBackend whose commands all succeed with empty output."""
    mock = AsyncMock()
    mock.id = MagicMock(return_value="sbx-123")
    mock.run_command.return_value = CommandResult(exit_code=0, output="")
    mock.run_background.return_value = BackgroundProcess(pid=4242)
    mock.get_preview_url.return_value = "https://6080-sbx-123.e2b.app"
    mock.read_file.return_value = b""
    return mock


@pytest.fixture()
def desktop(mock_sandbox: AsyncMock, settings: Settings) -> Desktop:
    return Desktop(
        mock_sandbox,
        DesktopSession(sandbox_id="sbx-123", provider="e2b", display=":0"),
        settings=settings,
    )
