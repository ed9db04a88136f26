"""Runtime record for one provisioned desktop sandbox."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class DesktopSession:
    """Display and process bookkeeping for a desktop sandbox.

    ``xfce_pid`` is the last desktop-session pid started by the controller and
    is overwritten on restart.
    """

    sandbox_id: str
    provider: str
    display: str = ":0"
    xfce_pid: int | None = None
