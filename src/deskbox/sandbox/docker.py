"""Local Docker sandbox backend using the Docker SDK."""

from __future__ import annotations

import asyncio
import io
import logging
import posixpath
import shlex
import socket
import tarfile
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from functools import partial
from typing import Any, TypeVar, cast

from docker.errors import APIError, BuildError, DockerException, NotFound

import docker
from deskbox.sandbox.nohup import detach, parse_pid
from deskbox.sandbox.results import BackgroundProcess, CommandResult, FileEntry
from deskbox.shared.enums import FileFormat, Provider
from deskbox.shared.exceptions import CommandError, ProviderError, SandboxError, TemplateBuildError
from deskbox.shared.models import TemplateResources

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Ports published on every container so preview URLs can be resolved later
_DEFAULT_EXPOSED_PORTS = (6080, 5900)


async def _in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


class DockerTerminal:
    """Interactive ``/bin/bash`` exec attached over a raw socket.

    Output is read by a thread in the default executor until the socket is
    closed. Call :meth:`kill` when done; ``DockerSandbox.destroy`` kills any
    terminal still open.
    """

    def __init__(self, api: Any, exec_id: str, sock: Any, on_output: Callable[[str], None]) -> None:
        self._api = api
        self._exec_id = exec_id
        self._sock = getattr(sock, "_sock", sock)
        self._on_output = on_output
        self._reader = asyncio.get_running_loop().run_in_executor(None, self._pump)

    def _pump(self) -> None:
        while True:
            try:
                data = self._sock.recv(4096)
            except OSError:
                return
            if not data:
                return
            self._on_output(data.decode(errors="replace"))

    async def send_input(self, data: str) -> None:
        try:
            await _in_executor(self._sock.sendall, data.encode())
        except OSError as exc:
            raise SandboxError(f"docker terminal write failed: {exc}") from exc

    async def resize(self, cols: int, rows: int) -> None:
        try:
            await _in_executor(self._api.exec_resize, self._exec_id, height=rows, width=cols)
        except APIError as exc:
            raise SandboxError(f"docker terminal resize failed: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._reader.done()

    async def kill(self) -> None:
        # unblocks the reader thread waiting in recv
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
        await self._reader


class DockerSandbox:
    """SandboxBackend implementation over a local container."""

    def __init__(self, container: Any, client: Any, *, host: str = "127.0.0.1") -> None:
        self._container = container
        self._client = client
        self._host = host
        self._terminals: list[DockerTerminal] = []

    def id(self) -> str:
        return self._container.id

    async def _exec(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
    ) -> CommandResult:
        try:
            result = await _in_executor(
                self._container.exec_run,
                ["/bin/sh", "-c", command],
                workdir=cwd,
                environment=dict(envs) if envs else None,
            )
        except APIError as exc:
            raise CommandError(f"command failed to run: {command!r}: {exc}") from exc
        output = result.output.decode(errors="replace") if result.output else ""
        return CommandResult(exit_code=result.exit_code or 0, output=output)

    async def _checked(self, command: str) -> CommandResult:
        result = await self._exec(command)
        if not result.ok:
            raise SandboxError(f"{command!r} exited with {result.exit_code}: {result.output.strip()}")
        return result

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = 60.0,
    ) -> CommandResult:
        if timeout:
            command = f"timeout {int(timeout)} /bin/sh -c {shlex.quote(command)}"
        return await self._exec(command, cwd=cwd, envs=envs)

    async def run_background(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> BackgroundProcess:
        result = await self._exec(detach(command, timeout), cwd=cwd, envs=envs)
        return BackgroundProcess(pid=parse_pid(result.output, command))

    async def read_file(self, path: str, *, format: FileFormat | str = FileFormat.TEXT) -> str | bytes:
        fmt = FileFormat(format)
        try:
            stream, _ = await _in_executor(self._container.get_archive, path)
            archive = await _in_executor(b"".join, stream)
        except NotFound as exc:
            raise SandboxError(f"file not found in container: {path}") from exc
        except APIError as exc:
            raise SandboxError(f"docker read failed for {path}: {exc}") from exc

        with tarfile.open(fileobj=io.BytesIO(archive)) as tar:
            member = tar.next()
            extracted = tar.extractfile(member) if member is not None else None
            if extracted is None:
                raise SandboxError(f"not a regular file: {path}")
            data = extracted.read()
        return data if fmt is FileFormat.BYTES else data.decode()

    async def write_file(self, path: str, content: str | bytes) -> None:
        data = content.encode() if isinstance(content, str) else content
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            info = tarfile.TarInfo(name=posixpath.basename(path))
            info.size = len(data)
            info.mtime = int(time.time())
            tar.addfile(info, io.BytesIO(data))

        directory = posixpath.dirname(path) or "/"
        await self._checked(f"mkdir -p {shlex.quote(directory)}")
        try:
            await _in_executor(self._container.put_archive, directory, buf.getvalue())
        except APIError as exc:
            raise SandboxError(f"docker write failed for {path}: {exc}") from exc

    async def list_files(self, path: str) -> list[FileEntry]:
        result = await self._checked(
            f"find {shlex.quote(path)} -mindepth 1 -maxdepth 1 -printf '%y\\t%s\\t%f\\n'"
        )
        entries = []
        for line in result.output.splitlines():
            kind, size, name = line.split("\t", 2)
            entries.append(
                FileEntry(name=name, path=posixpath.join(path, name), is_dir=kind == "d", size=int(size))
            )
        return entries

    async def move_file(self, path: str, new_path: str) -> None:
        await self._checked(f"mv {shlex.quote(path)} {shlex.quote(new_path)}")

    async def delete_file(self, path: str) -> None:
        await self._checked(f"rm -rf {shlex.quote(path)}")

    async def create_directory(self, path: str) -> None:
        await self._checked(f"mkdir -p {shlex.quote(path)}")

    async def get_preview_url(self, port: int) -> str:
        await _in_executor(self._container.reload)
        host_port = _extract_host_port(self._container, port)
        if host_port is None:
            raise SandboxError(
                f"port {port} is not published on container {self.id()[:12]}; "
                f"add it to DESKBOX_DOCKER_EXPOSED_PORTS before creating the sandbox"
            )
        return f"http://{self._host}:{host_port}"

    async def create_terminal(self, on_output: Callable[[str], None]) -> DockerTerminal:
        api = self._client.api
        try:
            exec_id = (await _in_executor(api.exec_create, self.id(), ["/bin/bash"], stdin=True, tty=True))["Id"]
            sock = await _in_executor(api.exec_start, exec_id, socket=True, tty=True)
        except APIError as exc:
            raise SandboxError(f"docker terminal creation failed: {exc}") from exc
        terminal = DockerTerminal(api, exec_id, sock, on_output)
        self._terminals.append(terminal)
        return terminal

    async def suspend(self) -> None:
        try:
            await _in_executor(self._container.pause)
        except APIError as exc:
            raise SandboxError(f"failed to pause container {self.id()[:12]}: {exc}") from exc
        logger.info("paused container %s", self.id()[:12])

    async def resume(self) -> None:
        try:
            await _in_executor(self._container.unpause)
        except APIError as exc:
            raise SandboxError(f"failed to unpause container {self.id()[:12]}: {exc}") from exc
        logger.info("unpaused container %s", self.id()[:12])

    async def destroy(self) -> None:
        for terminal in self._terminals:
            if not terminal.closed:
                await terminal.kill()
        self._terminals.clear()

        try:
            await _in_executor(self._container.remove, force=True)
            logger.info("destroyed container %s", self.id()[:12])
        except NotFound:
            logger.warning("container %s already removed", self.id()[:12])
        except APIError as exc:
            raise SandboxError(f"failed to destroy container {self.id()[:12]}: {exc}") from exc


class DockerProvider:
    """Run desktop templates as local containers.

    Templates are image tags; ``build_template`` builds them with ``docker build``.
    """

    name = Provider.DOCKER.value

    def __init__(
        self,
        *,
        host: str = "127.0.0.1",
        network: str | None = None,
        exposed_ports: Sequence[int] = _DEFAULT_EXPOSED_PORTS,
    ) -> None:
        self._host = host
        self._network = network
        self._exposed_ports = tuple(exposed_ports)
        self._docker: Any | None = None

    def _client(self) -> Any:
        if self._docker is None:
            try:
                self._docker = cast(Any, docker).from_env()
            except DockerException as exc:
                raise ProviderError(f"docker daemon unavailable: {exc}") from exc
        return self._docker

    async def create(
        self,
        *,
        template: str,
        envs: Mapping[str, str],
        resources: TemplateResources | None = None,
    ) -> DockerSandbox:
        name = f"deskbox-{uuid.uuid4().hex[:8]}"
        kwargs: dict[str, Any] = {
            "name": name,
            "command": "sleep infinity",
            "detach": True,
            "environment": dict(envs),
            # Let Docker assign random host ports
            "ports": {f"{port}/tcp": None for port in self._exposed_ports},
            "labels": {"deskbox.sandbox": name},
        }
        if self._network:
            kwargs["network"] = self._network
        if resources is not None:
            if resources.cpu_count is not None:
                kwargs["nano_cpus"] = resources.cpu_count * 1_000_000_000
            if resources.memory_mb is not None:
                kwargs["mem_limit"] = f"{resources.memory_mb}m"

        client = self._client()
        try:
            container = await _in_executor(client.containers.run, template, **kwargs)
        except APIError as exc:
            raise ProviderError(f"failed to create container {name} from {template}: {exc}") from exc
        logger.info("created container %s (%s) from %s", name, container.id[:12], template)
        return DockerSandbox(container, client, host=self._host)

    async def build_template(
        self,
        directory: str,
        name: str,
        resources: TemplateResources | None = None,
    ) -> None:
        client = self._client()
        try:
            _, logs = await _in_executor(client.images.build, path=directory, tag=name, rm=True)
        except (BuildError, APIError) as exc:
            raise TemplateBuildError(f"docker build failed for {name}: {exc}") from exc
        for chunk in logs:
            line = chunk.get("stream", "").strip()
            if line:
                logger.debug("docker build: %s", line)
        logger.info("built image %s from %s", name, directory)


def _extract_host_port(container: Any, port: int) -> int | None:
    """Resolve the host port Docker mapped to ``port``/tcp."""
    bindings = container.attrs.get("NetworkSettings", {}).get("Ports", {}).get(f"{port}/tcp") or []
    for binding in bindings:
        host_port = binding.get("HostPort")
        if host_port:
            return int(host_port)
    return None
