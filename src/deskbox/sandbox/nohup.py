"""Detached command helpers for providers without native background exec."""

from __future__ import annotations

import re
import shlex

from deskbox.shared.exceptions import CommandError

_PID_PATTERN = re.compile(r"(\d+)\s*$")


def detach(command: str, timeout: float | None = None) -> str:
    """Wrap ``command`` so it keeps running after the shell returns and prints its pid."""
    script = f"/bin/sh -c {shlex.quote(command)}"
    if timeout:
        script = f"timeout {int(timeout)} {script}"
    return f"nohup {script} > /dev/null 2>&1 & echo $!"


def parse_pid(output: str, command: str) -> int:
    """Extract the pid echoed by a :func:`detach` wrapper."""
    match = _PID_PATTERN.search(output)
    if not match:
        raise CommandError(f"background command did not report a pid: {command!r}: {output!r}")
    return int(match.group(1))
