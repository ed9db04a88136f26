"""Daytona cloud sandbox backend."""

from __future__ import annotations

import logging
import os
import posixpath
import shlex
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from daytona import (
    AsyncDaytona,
    CreateSandboxFromSnapshotParams,
    CreateSnapshotParams,
    DaytonaConfig,
    DaytonaError,
    Image,
    Resources,
)

from deskbox.sandbox.nohup import detach, parse_pid
from deskbox.sandbox.results import BackgroundProcess, CommandResult, FileEntry
from deskbox.shared.enums import FileFormat, Provider
from deskbox.shared.exceptions import CommandError, ProviderError, SandboxError, TemplateBuildError
from deskbox.shared.models import TemplateResources

logger = logging.getLogger(__name__)


class DaytonaTerminal:
    """PTY session opened through ``sandbox.process.create_pty_session``."""

    def __init__(self, handle: Any) -> None:
        self._handle = handle

    async def send_input(self, data: str) -> None:
        try:
            await self._handle.send_input(data)
        except DaytonaError as exc:
            raise SandboxError(f"daytona pty input failed: {exc}") from exc

    async def resize(self, cols: int, rows: int) -> None:
        from daytona import PtySize

        try:
            await self._handle.resize(PtySize(cols=cols, rows=rows))
        except DaytonaError as exc:
            raise SandboxError(f"daytona pty resize failed: {exc}") from exc

    async def kill(self) -> None:
        try:
            await self._handle.kill()
        except DaytonaError as exc:
            raise SandboxError(f"daytona pty kill failed: {exc}") from exc


class DaytonaSandbox:
    """SandboxBackend implementation over a Daytona ``AsyncSandbox``."""

    def __init__(self, sandbox: Any, client: AsyncDaytona) -> None:
        self._sandbox = sandbox
        self._client = client

    def id(self) -> str:
        return self._sandbox.id

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = 60.0,
    ) -> CommandResult:
        try:
            response = await self._sandbox.process.exec(
                f"/bin/sh -c {shlex.quote(command)}",
                cwd=cwd,
                env=dict(envs) if envs else None,
                timeout=int(timeout) if timeout else None,
            )
        except DaytonaError as exc:
            raise CommandError(f"command failed to run: {command!r}: {exc}") from exc
        return CommandResult(exit_code=response.exit_code, output=response.result or "")

    async def run_background(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> BackgroundProcess:
        try:
            response = await self._sandbox.process.exec(
                f"/bin/sh -c {shlex.quote(detach(command, timeout))}",
                cwd=cwd,
                env=dict(envs) if envs else None,
            )
        except DaytonaError as exc:
            raise CommandError(f"background command failed to start: {command!r}: {exc}") from exc
        return BackgroundProcess(pid=parse_pid(response.result or "", command))

    async def read_file(self, path: str, *, format: FileFormat | str = FileFormat.TEXT) -> str | bytes:
        fmt = FileFormat(format)
        try:
            content = await self._sandbox.fs.download_file(path)
        except DaytonaError as exc:
            raise SandboxError(f"daytona read failed for {path}: {exc}") from exc
        if fmt is FileFormat.BYTES:
            return content if isinstance(content, bytes) else str(content).encode()
        return content.decode() if isinstance(content, bytes) else str(content)

    async def write_file(self, path: str, content: str | bytes) -> None:
        data = content.encode() if isinstance(content, str) else content
        try:
            await self._sandbox.fs.upload_file(data, path)
        except DaytonaError as exc:
            raise SandboxError(f"daytona write failed for {path}: {exc}") from exc

    async def list_files(self, path: str) -> list[FileEntry]:
        try:
            infos = await self._sandbox.fs.list_files(path)
        except DaytonaError as exc:
            raise SandboxError(f"daytona list failed for {path}: {exc}") from exc
        return [
            FileEntry(
                name=info.name,
                path=posixpath.join(path, info.name),
                is_dir=bool(info.is_dir),
                size=info.size,
            )
            for info in infos
        ]

    async def move_file(self, path: str, new_path: str) -> None:
        try:
            await self._sandbox.fs.move_files(path, new_path)
        except DaytonaError as exc:
            raise SandboxError(f"daytona move failed for {path}: {exc}") from exc

    async def delete_file(self, path: str) -> None:
        try:
            await self._sandbox.fs.delete_file(path)
        except DaytonaError as exc:
            raise SandboxError(f"daytona delete failed for {path}: {exc}") from exc

    async def create_directory(self, path: str) -> None:
        try:
            await self._sandbox.fs.create_folder(path, "755")
        except DaytonaError as exc:
            raise SandboxError(f"daytona mkdir failed for {path}: {exc}") from exc

    async def get_preview_url(self, port: int) -> str:
        try:
            preview = await self._sandbox.get_preview_link(port)
        except DaytonaError as exc:
            raise SandboxError(f"daytona preview link failed for port {port}: {exc}") from exc
        return preview.url

    async def create_terminal(self, on_output: Callable[[str], None]) -> DaytonaTerminal:
        from daytona import PtySize

        try:
            handle = await self._sandbox.process.create_pty_session(
                id=f"deskbox-{uuid.uuid4().hex[:8]}",
                on_data=lambda data: on_output(data.decode(errors="replace")),
                pty_size=PtySize(cols=80, rows=24),
            )
        except DaytonaError as exc:
            raise SandboxError(f"daytona pty creation failed: {exc}") from exc
        return DaytonaTerminal(handle)

    async def suspend(self) -> None:
        try:
            await self._sandbox.stop()
        except DaytonaError as exc:
            raise SandboxError(f"daytona stop failed: {exc}") from exc
        logger.info("stopped daytona sandbox %s", self.id())

    async def resume(self) -> None:
        try:
            await self._sandbox.start()
        except DaytonaError as exc:
            raise SandboxError(f"daytona start failed: {exc}") from exc
        logger.info("started daytona sandbox %s", self.id())

    async def destroy(self) -> None:
        try:
            await self._client.delete(self._sandbox)
        except DaytonaError as exc:
            raise SandboxError(f"daytona delete failed: {exc}") from exc
        finally:
            await self._client.close()
        logger.info("deleted daytona sandbox %s", self.id())


class DaytonaProvider:
    """Provision Daytona sandboxes and build Daytona snapshots."""

    name = Provider.DAYTONA.value

    def __init__(
        self,
        *,
        api_key: str = "",
        api_url: str = "https://app.daytona.io/api",
        target: str = "us",
        auto_stop_interval: int = 15,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._target = target
        self._auto_stop_interval = auto_stop_interval

    def _client(self) -> AsyncDaytona:
        api_key = self._api_key or os.getenv("DAYTONA_API_KEY", "")
        if not api_key:
            raise ProviderError("Daytona API key is required (DESKBOX_DAYTONA_API_KEY or DAYTONA_API_KEY)")
        return AsyncDaytona(DaytonaConfig(api_key=api_key, api_url=self._api_url, target=self._target))

    async def create(
        self,
        *,
        template: str,
        envs: Mapping[str, str],
        resources: TemplateResources | None = None,
    ) -> DaytonaSandbox:
        # Snapshots carry their own sizing; ``resources`` only applies to builds.
        client = self._client()
        params = CreateSandboxFromSnapshotParams(
            snapshot=template,
            env_vars=dict(envs),
            auto_stop_interval=self._auto_stop_interval,
        )
        try:
            sandbox = await client.create(params, timeout=60)
        except DaytonaError as exc:
            await client.close()
            raise ProviderError(f"failed to create daytona sandbox from {template}: {exc}") from exc
        logger.info("created daytona sandbox %s from snapshot %s", sandbox.id, template)
        return DaytonaSandbox(sandbox, client)

    async def build_template(
        self,
        directory: str,
        name: str,
        resources: TemplateResources | None = None,
    ) -> None:
        client = self._client()
        sizing: dict[str, int] = {}
        if resources is not None:
            if resources.cpu_count is not None:
                sizing["cpu"] = resources.cpu_count
            if resources.memory_mb is not None:
                sizing["memory"] = max(1, resources.memory_mb // 1024)
            if resources.disk_gb is not None:
                sizing["disk"] = resources.disk_gb

        params = CreateSnapshotParams(
            name=name,
            image=Image.from_dockerfile(os.path.join(directory, "Dockerfile")),
            resources=Resources(**sizing) if sizing else None,
        )
        try:
            await client.snapshot.create(params, on_logs=lambda line: logger.info("daytona build: %s", line))
        except DaytonaError as exc:
            raise TemplateBuildError(f"daytona snapshot build failed for {name}: {exc}") from exc
        finally:
            await client.close()
        logger.info("built daytona snapshot %s from %s", name, directory)
