"""E2B cloud sandbox backend."""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from e2b import AsyncSandbox, AsyncTemplate, CommandExitException, PtySize, SandboxException

from deskbox.sandbox.results import BackgroundProcess, CommandResult, FileEntry
from deskbox.shared.enums import FileFormat, Provider
from deskbox.shared.exceptions import CommandError, ProviderError, SandboxError, TemplateBuildError
from deskbox.shared.models import TemplateResources

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

_DEFAULT_PTY_SIZE = PtySize(rows=24, cols=80)


def _translate_errors(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Re-raise E2B SDK exceptions as SandboxError."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except SandboxException as exc:
            raise SandboxError(f"e2b {func.__name__} failed: {exc}") from exc

    return wrapper


class E2BTerminal:
    """PTY session opened through ``sandbox.pty``."""

    def __init__(self, sandbox: AsyncSandbox, pid: int) -> None:
        self._sandbox = sandbox
        self.pid = pid

    @_translate_errors
    async def send_input(self, data: str) -> None:
        await self._sandbox.pty.send_stdin(self.pid, data.encode())

    @_translate_errors
    async def resize(self, cols: int, rows: int) -> None:
        await self._sandbox.pty.resize(self.pid, PtySize(rows=rows, cols=cols))

    @_translate_errors
    async def kill(self) -> None:
        await self._sandbox.pty.kill(self.pid)


class E2BSandbox:
    """SandboxBackend implementation over ``e2b.AsyncSandbox``."""

    def __init__(self, sandbox: AsyncSandbox, *, api_key: str = "") -> None:
        self._sandbox = sandbox
        self._api_key = api_key

    def id(self) -> str:
        return self._sandbox.sandbox_id

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = 60.0,
    ) -> CommandResult:
        try:
            result = await self._sandbox.commands.run(
                command,
                cwd=cwd,
                envs=dict(envs) if envs else None,
                timeout=timeout or 0,
            )
        except CommandExitException as exc:
            # The SDK raises on non-zero exit; the exit code belongs in the result.
            return CommandResult(exit_code=exc.exit_code, output=exc.stdout + exc.stderr)
        except SandboxException as exc:
            raise CommandError(f"command failed to run: {command!r}: {exc}") from exc
        return CommandResult(exit_code=result.exit_code, output=result.stdout + result.stderr)

    async def run_background(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> BackgroundProcess:
        try:
            handle = await self._sandbox.commands.run(
                command,
                background=True,
                cwd=cwd,
                envs=dict(envs) if envs else None,
                timeout=timeout or 0,
            )
        except SandboxException as exc:
            raise CommandError(f"background command failed to start: {command!r}: {exc}") from exc
        return BackgroundProcess(pid=handle.pid)

    @_translate_errors
    async def read_file(self, path: str, *, format: FileFormat | str = FileFormat.TEXT) -> str | bytes:
        fmt = FileFormat(format)
        content = await self._sandbox.files.read(path, format=fmt.value)
        if isinstance(content, bytearray):
            return bytes(content)
        return content

    @_translate_errors
    async def write_file(self, path: str, content: str | bytes) -> None:
        await self._sandbox.files.write(path, content)

    @_translate_errors
    async def list_files(self, path: str) -> list[FileEntry]:
        entries = await self._sandbox.files.list(path)
        return [
            FileEntry(
                name=entry.name,
                path=entry.path,
                is_dir=getattr(entry.type, "value", entry.type) == "dir",
                size=getattr(entry, "size", None),
            )
            for entry in entries
        ]

    @_translate_errors
    async def move_file(self, path: str, new_path: str) -> None:
        await self._sandbox.files.rename(path, new_path)

    @_translate_errors
    async def delete_file(self, path: str) -> None:
        await self._sandbox.files.remove(path)

    @_translate_errors
    async def create_directory(self, path: str) -> None:
        await self._sandbox.files.make_dir(path)

    async def get_preview_url(self, port: int) -> str:
        return f"https://{self._sandbox.get_host(port)}"

    @_translate_errors
    async def create_terminal(self, on_output: Callable[[str], None]) -> E2BTerminal:
        handle = await self._sandbox.pty.create(
            size=_DEFAULT_PTY_SIZE,
            on_data=lambda data: on_output(data.decode(errors="replace")),
            timeout=0,
        )
        return E2BTerminal(self._sandbox, handle.pid)

    @_translate_errors
    async def suspend(self) -> None:
        await self._sandbox.pause()
        logger.info("paused e2b sandbox %s", self.id())

    @_translate_errors
    async def resume(self) -> None:
        # Connecting to a paused sandbox resumes it.
        self._sandbox = await AsyncSandbox.connect(self.id(), api_key=self._api_key or None)
        logger.info("resumed e2b sandbox %s", self.id())

    @_translate_errors
    async def destroy(self) -> None:
        await self._sandbox.kill()
        logger.info("killed e2b sandbox %s", self.id())


class E2BProvider:
    """Provision E2B sandboxes and build E2B templates."""

    name = Provider.E2B.value

    def __init__(self, *, api_key: str = "", timeout: int = 300) -> None:
        self._api_key = api_key
        self._timeout = timeout

    def _api_key_or_env(self) -> str:
        api_key = self._api_key or os.getenv("E2B_API_KEY", "")
        if not api_key:
            raise ProviderError("E2B API key is required (DESKBOX_E2B_API_KEY or E2B_API_KEY)")
        return api_key

    async def create(
        self,
        *,
        template: str,
        envs: Mapping[str, str],
        resources: TemplateResources | None = None,
    ) -> E2BSandbox:
        # E2B sizes sandboxes at template build time; runtime resources are ignored.
        api_key = self._api_key_or_env()
        try:
            sandbox = await AsyncSandbox.create(
                template=template,
                envs=dict(envs),
                timeout=self._timeout,
                api_key=api_key,
            )
        except SandboxException as exc:
            raise ProviderError(f"failed to create e2b sandbox from {template}: {exc}") from exc
        logger.info("created e2b sandbox %s from template %s", sandbox.sandbox_id, template)
        return E2BSandbox(sandbox, api_key=api_key)

    async def build_template(
        self,
        directory: str,
        name: str,
        resources: TemplateResources | None = None,
    ) -> None:
        api_key = self._api_key_or_env()
        options: dict[str, Any] = {}
        if resources is not None:
            if resources.cpu_count is not None:
                options["cpu_count"] = resources.cpu_count
            if resources.memory_mb is not None:
                options["memory_mb"] = resources.memory_mb

        template = AsyncTemplate(file_context_path=directory).from_dockerfile(os.path.join(directory, "Dockerfile"))
        try:
            await AsyncTemplate.build(template, alias=name, api_key=api_key, **options)
        except Exception as exc:
            raise TemplateBuildError(f"e2b template build failed for {name}: {exc}") from exc
        logger.info("built e2b template %s from %s", name, directory)
