"""Hierarchical exception types for deskbox."""

from __future__ import annotations


class DeskboxError(Exception):
    """Base exception for all deskbox errors."""


class UsageError(DeskboxError):
    """Operation invoked before its prerequisite state was reached."""


# ── Sandbox ─────────────────────────────────────────────────────


class SandboxError(DeskboxError):
    """Provider sandbox operation failed."""


class ProviderError(SandboxError):
    """Unknown provider, missing credentials or provisioning refused."""


class CommandError(SandboxError):
    """A command could not be dispatched to the sandbox."""


class TemplateBuildError(SandboxError):
    """Template image or snapshot build failed."""


# ── Desktop ─────────────────────────────────────────────────────


class ProvisioningError(DeskboxError):
    """Desktop environment did not come up."""


class DisplayStartError(ProvisioningError):
    """Xvfb did not report ready within the startup window."""


class DesktopSessionError(ProvisioningError):
    """xfce4 session could not be started."""


class ParseError(DeskboxError):
    """Expected pattern missing from command output."""


# ── Stream ──────────────────────────────────────────────────────


class StreamError(DeskboxError):
    """VNC stream lifecycle error."""


class StreamAlreadyRunningError(StreamError):
    """A VNC server is already running in the sandbox."""


class StreamNotStartedError(StreamError, UsageError):
    """No stream has been started yet."""


class AuthKeyUnavailableError(StreamError, UsageError):
    """Stream was not started with authentication."""


class VncServerStartError(StreamError):
    """x11vnc exited with an error."""


class ProxyStartError(StreamError):
    """noVNC proxy did not start listening."""
