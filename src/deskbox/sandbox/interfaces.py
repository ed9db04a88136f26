"""Protocol interfaces for sandbox providers and backends."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Protocol, runtime_checkable

from deskbox.sandbox.results import BackgroundProcess, CommandResult, FileEntry
from deskbox.shared.enums import FileFormat
from deskbox.shared.models import TemplateResources


@runtime_checkable
class Terminal(Protocol):
    """Interactive pseudo-terminal attached to a sandbox."""

    async def send_input(self, data: str) -> None: ...

    async def resize(self, cols: int, rows: int) -> None: ...

    async def kill(self) -> None: ...


@runtime_checkable
class SandboxBackend(Protocol):
    """One provisioned remote sandbox."""

    def id(self) -> str:
        """Return the provider-assigned sandbox identifier."""
        ...

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = 60.0,
    ) -> CommandResult:
        """Run a shell command and wait for it to finish.

        A non-zero exit code is reported in the result, not raised.

        Raises:
            CommandError: If the command could not be dispatched.
        """
        ...

    async def run_background(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> BackgroundProcess:
        """Start a shell command without waiting for it.

        Args:
            timeout: Seconds before the provider kills the process; ``None``
                keeps it alive for the life of the sandbox.

        Raises:
            CommandError: If the command could not be started.
        """
        ...

    async def read_file(self, path: str, *, format: FileFormat | str = FileFormat.TEXT) -> str | bytes: ...

    async def write_file(self, path: str, content: str | bytes) -> None: ...

    async def list_files(self, path: str) -> list[FileEntry]: ...

    async def move_file(self, path: str, new_path: str) -> None: ...

    async def delete_file(self, path: str) -> None: ...

    async def create_directory(self, path: str) -> None: ...

    async def get_preview_url(self, port: int) -> str:
        """Return an externally reachable URL (with scheme) for ``port``."""
        ...

    async def create_terminal(self, on_output: Callable[[str], None]) -> Terminal: ...

    async def suspend(self) -> None: ...

    async def resume(self) -> None: ...

    async def destroy(self) -> None: ...


@runtime_checkable
class SandboxProvider(Protocol):
    """Factory for one provider's sandboxes and templates."""

    name: str

    async def create(
        self,
        *,
        template: str,
        envs: Mapping[str, str],
        resources: TemplateResources | None = None,
    ) -> SandboxBackend:
        """Provision a new sandbox from ``template``.

        Raises:
            ProviderError: If the provider rejects the request.
        """
        ...

    async def build_template(
        self,
        directory: str,
        name: str,
        resources: TemplateResources | None = None,
    ) -> None:
        """Build a template from a directory containing a ``Dockerfile``.

        Raises:
            TemplateBuildError: If the build fails.
        """
        ...
