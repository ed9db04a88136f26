"""Result records returned by sandbox backends."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a foreground command that ran to completion."""

    exit_code: int
    output: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class BackgroundProcess:
    """Handle for a command left running in the sandbox."""

    pid: int


@dataclass(frozen=True, slots=True)
class FileEntry:
    """One entry of a sandbox directory listing."""

    name: str
    path: str
    is_dir: bool = False
    size: int | None = None
