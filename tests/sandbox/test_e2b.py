"""Tests for the E2B sandbox backend."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from e2b import AsyncSandbox, SandboxException

from deskbox.sandbox.e2b import E2BProvider, E2BSandbox
from deskbox.sandbox.results import BackgroundProcess, CommandResult
from deskbox.shared.enums import FileFormat
from deskbox.shared.exceptions import CommandError, ProviderError, SandboxError, TemplateBuildError
from deskbox.shared.models import TemplateResources


class FakeCommandExit(Exception):
    def __init__(self, exit_code: int, stdout: str, stderr: str) -> None:
        super().__init__(f"exit {exit_code}")
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


def _make_sdk_sandbox() -> MagicMock:
    sdk = MagicMock()
    sdk.sandbox_id = "e2b-abc"
    sdk.commands.run = AsyncMock(return_value=SimpleNamespace(exit_code=0, stdout="out\n", stderr=""))
    sdk.files = AsyncMock()
    sdk.pty = AsyncMock()
    sdk.pause = AsyncMock()
    sdk.kill = AsyncMock()
    sdk.get_host = MagicMock(return_value="6080-e2b-abc.e2b.app")
    return sdk


@pytest.fixture()
def sdk() -> MagicMock:
    return _make_sdk_sandbox()


@pytest.fixture()
def sandbox(sdk: MagicMock) -> E2BSandbox:
    return E2BSandbox(sdk, api_key="key")


class TestRunCommand:
    async def test_success(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        result = await sandbox.run_command("echo out", cwd="/home/user", envs={"A": "1"}, timeout=5)

        assert result == CommandResult(exit_code=0, output="out\n")
        sdk.commands.run.assert_awaited_once_with("echo out", cwd="/home/user", envs={"A": "1"}, timeout=5)

    async def test_non_zero_exit_is_a_result(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        sdk.commands.run.side_effect = FakeCommandExit(1, "", "no such file\n")

        with patch("deskbox.sandbox.e2b.CommandExitException", FakeCommandExit):
            result = await sandbox.run_command("cat /missing")

        assert result == CommandResult(exit_code=1, output="no such file\n")
        assert not result.ok

    async def test_transport_failure(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        sdk.commands.run.side_effect = SandboxException("sandbox not found")

        with pytest.raises(CommandError, match="sandbox not found"):
            await sandbox.run_command("true")

    async def test_background(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        sdk.commands.run.return_value = SimpleNamespace(pid=17)

        process = await sandbox.run_background("startxfce4")

        assert process == BackgroundProcess(pid=17)
        assert sdk.commands.run.await_args.kwargs["background"] is True
        assert sdk.commands.run.await_args.kwargs["timeout"] == 0


class TestFiles:
    async def test_read_bytes(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        sdk.files.read.return_value = bytearray(b"\x89PNG")

        data = await sandbox.read_file("/tmp/s.png", format=FileFormat.BYTES)

        assert data == b"\x89PNG" and isinstance(data, bytes)
        sdk.files.read.assert_awaited_once_with("/tmp/s.png", format="bytes")

    async def test_list(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        sdk.files.list.return_value = [
            SimpleNamespace(name="a.txt", path="/tmp/a.txt", type=SimpleNamespace(value="file"), size=3),
            SimpleNamespace(name="d", path="/tmp/d", type=SimpleNamespace(value="dir"), size=0),
        ]

        entries = await sandbox.list_files("/tmp")

        assert [(e.name, e.is_dir) for e in entries] == [("a.txt", False), ("d", True)]

    async def test_move_delete_mkdir(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        await sandbox.move_file("/a", "/b")
        await sandbox.delete_file("/b")
        await sandbox.create_directory("/c")

        sdk.files.rename.assert_awaited_once_with("/a", "/b")
        sdk.files.remove.assert_awaited_once_with("/b")
        sdk.files.make_dir.assert_awaited_once_with("/c")

    async def test_errors_are_translated(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        sdk.files.remove.side_effect = SandboxException("gone")

        with pytest.raises(SandboxError, match="delete_file"):
            await sandbox.delete_file("/x")


class TestLifecycle:
    async def test_preview_url(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        assert await sandbox.get_preview_url(6080) == "https://6080-e2b-abc.e2b.app"
        sdk.get_host.assert_called_once_with(6080)

    async def test_suspend_resume_destroy(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        resumed = _make_sdk_sandbox()
        # patch.object refuses attributes the SDK class does not define.
        with patch.object(AsyncSandbox, "connect", AsyncMock(return_value=resumed)) as connect:
            await sandbox.suspend()
            await sandbox.resume()
            await sandbox.destroy()

        sdk.pause.assert_awaited_once()
        connect.assert_awaited_once_with("e2b-abc", api_key="key")
        resumed.kill.assert_awaited_once()
        sdk.kill.assert_not_awaited()

    async def test_terminal(self, sandbox: E2BSandbox, sdk: MagicMock) -> None:
        sdk.pty.create.return_value = SimpleNamespace(pid=9)
        received: list[str] = []

        terminal = await sandbox.create_terminal(received.append)
        on_data = sdk.pty.create.await_args.kwargs["on_data"]
        on_data(b"$ ")
        await terminal.send_input("ls\n")
        await terminal.kill()

        assert received == ["$ "]
        sdk.pty.send_stdin.assert_awaited_once_with(9, b"ls\n")
        sdk.pty.kill.assert_awaited_once_with(9)


class TestProvider:
    async def test_create(self, sdk: MagicMock) -> None:
        with patch("deskbox.sandbox.e2b.AsyncSandbox") as sandbox_cls:
            sandbox_cls.create = AsyncMock(return_value=sdk)
            provider = E2BProvider(api_key="key", timeout=120)

            sandbox = await provider.create(template="deskbox-desktop", envs={"DISPLAY": ":0"})

        assert sandbox.id() == "e2b-abc"
        sandbox_cls.create.assert_awaited_once_with(
            template="deskbox-desktop", envs={"DISPLAY": ":0"}, timeout=120, api_key="key"
        )

    async def test_create_without_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("E2B_API_KEY", raising=False)

        with pytest.raises(ProviderError, match="API key"):
            await E2BProvider().create(template="t", envs={})

    async def test_create_failure(self) -> None:
        with patch("deskbox.sandbox.e2b.AsyncSandbox") as sandbox_cls:
            sandbox_cls.create = AsyncMock(side_effect=SandboxException("quota exceeded"))

            with pytest.raises(ProviderError, match="quota exceeded"):
                await E2BProvider(api_key="key").create(template="t", envs={})

    async def test_build_template(self, tmp_path) -> None:
        with patch("deskbox.sandbox.e2b.AsyncTemplate") as template_cls:
            template_cls.build = AsyncMock()
            await E2BProvider(api_key="key").build_template(
                str(tmp_path), "desk", TemplateResources(cpu_count=8, memory_mb=8192)
            )

        template_cls.assert_called_once_with(file_context_path=str(tmp_path))
        template_cls.return_value.from_dockerfile.assert_called_once_with(str(tmp_path / "Dockerfile"))
        template_cls.build.assert_awaited_once_with(
            template_cls.return_value.from_dockerfile.return_value,
            alias="desk",
            api_key="key",
            cpu_count=8,
            memory_mb=8192,
        )

    async def test_build_template_failure(self, tmp_path) -> None:
        with patch("deskbox.sandbox.e2b.AsyncTemplate") as template_cls:
            template_cls.build = AsyncMock(side_effect=RuntimeError("step 3 failed"))

            with pytest.raises(TemplateBuildError, match="step 3 failed"):
                await E2BProvider(api_key="key").build_template(str(tmp_path), "desk")
