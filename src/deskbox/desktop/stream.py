"""VNC stream controller: x11vnc plus a noVNC web proxy inside the sandbox."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from deskbox.desktop.shell import generate_random_string
from deskbox.shared.enums import ResizeMode
from deskbox.shared.exceptions import (
    AuthKeyUnavailableError,
    ProxyStartError,
    StreamAlreadyRunningError,
    StreamNotStartedError,
    VncServerStartError,
)

if TYPE_CHECKING:
    from deskbox.desktop.controller import Desktop

logger = logging.getLogger(__name__)

_VIEWER_PATH = "vnc.html"
_PASSWORD_FILE = "~/.vnc/passwd"


class VncStream:
    """Browser-viewable VNC stream of a desktop's display.

    At most one stream runs per sandbox. Whether one is running is decided by
    the sandbox process table, so servers started outside this controller
    also block :meth:`start`.
    """

    def __init__(self, desktop: Desktop) -> None:
        self._desktop = desktop
        self.vnc_port = desktop.settings.vnc_port
        self.port = desktop.settings.novnc_port
        self.require_auth = False
        self._password: str | None = None
        self._url: httpx.URL | None = None
        self._novnc_pid: int | None = None

    @property
    def novnc_pid(self) -> int | None:
        return self._novnc_pid

    async def start(
        self,
        *,
        vnc_port: int | None = None,
        port: int | None = None,
        require_auth: bool = False,
        window_id: str | None = None,
    ) -> None:
        """Start x11vnc and the noVNC proxy, then wait for the proxy port.

        Args:
            vnc_port: x11vnc RFB port (default 5900).
            port: noVNC listen port (default 6080).
            require_auth: Protect the stream with a generated password.
            window_id: Restrict capture to one X window.

        Raises:
            StreamAlreadyRunningError: If x11vnc is already running.
            VncServerStartError: If x11vnc exits with an error.
            ProxyStartError: If the proxy port is not listening in time.
        """
        if await self.is_running():
            raise StreamAlreadyRunningError("stream is already running")

        self.vnc_port = vnc_port or self.vnc_port
        self.port = port or self.port
        self.require_auth = require_auth
        self._password = generate_random_string() if require_auth else None
        preview_url = await self._desktop.get_preview_url(self.port)
        self._url = httpx.URL(f"{preview_url.rstrip('/')}/{_VIEWER_PATH}")

        vnc = await self._desktop.run_command(await self._vnc_command(window_id))
        if vnc.exit_code != 0:
            raise VncServerStartError(f"x11vnc exited with {vnc.exit_code}: {vnc.output.strip()}")

        process = await self._desktop.run_background(self._novnc_command())
        self._novnc_pid = process.pid
        if not await self._wait_for_port(self.port):
            raise ProxyStartError(f"could not start noVNC proxy on port {self.port}")
        logger.info(
            "stream started in %s (vnc=%d, novnc=%d, auth=%s)",
            self._desktop.id(),
            self.vnc_port,
            self.port,
            require_auth,
        )

    async def stop(self) -> None:
        """Kill x11vnc and the recorded noVNC proxy; no-op when neither runs."""
        if await self.is_running():
            await self._desktop.run_command("pkill x11vnc")
            logger.info("stopped x11vnc in %s", self._desktop.id())

        if self._novnc_pid:
            await self._desktop.run_command(f"kill {self._novnc_pid}")
            logger.info("stopped noVNC proxy (pid=%d) in %s", self._novnc_pid, self._desktop.id())
            self._novnc_pid = None

    def get_url(
        self,
        *,
        auto_connect: bool = True,
        view_only: bool = False,
        resize: ResizeMode | str = ResizeMode.SCALE,
        auth_key: str | None = None,
    ) -> str:
        """Return the noVNC viewer URL with client options as query parameters.

        Args:
            auto_connect: Connect as soon as the page opens.
            view_only: Disable mouse and keyboard input from the viewer.
            resize: ``off``, ``scale`` or ``remote``.
            auth_key: Password to embed; independent of :meth:`get_auth_key`.

        Raises:
            StreamNotStartedError: If no stream was ever started.
            ValueError: If ``resize`` is not a known mode.
        """
        if self._url is None:
            raise StreamNotStartedError("server is not running")

        params: dict[str, str] = {}
        if auto_connect:
            params["autoconnect"] = "true"
        if view_only:
            params["view_only"] = "true"
        if resize:
            params["resize"] = ResizeMode(resize).value
        if auth_key:
            params["password"] = auth_key
        return str(self._url.copy_merge_params(params))

    def get_auth_key(self) -> str:
        """Raises AuthKeyUnavailableError unless started with ``require_auth``."""
        if not self._password:
            raise AuthKeyUnavailableError("unable to retrieve stream auth key, check if require_auth is enabled")
        return self._password

    async def is_running(self) -> bool:
        """Check the process table for x11vnc; check failures count as not running."""
        try:
            result = await self._desktop.run_command("pgrep -x x11vnc")
        except Exception as exc:
            logger.debug("x11vnc check failed in %s: %s", self._desktop.id(), exc)
            return False
        return result.exit_code == 0

    async def _vnc_command(self, window_id: str | None) -> str:
        pwd_flag = "-nopw"
        if self.require_auth:
            await self._desktop.run_command("mkdir -p ~/.vnc")
            await self._desktop.run_command(f"x11vnc -storepasswd {self._password} {_PASSWORD_FILE}")
            pwd_flag = "-usepw"

        command = (
            f"x11vnc -bg -display {self._desktop.display} -forever -wait 50 -shared "
            f"-rfbport {self.vnc_port} {pwd_flag} 2>/tmp/x11vnc_stderr.log"
        )
        if window_id:
            command = f"{command} -id {window_id}"
        return command

    def _novnc_command(self) -> str:
        novnc_dir = self._desktop.settings.novnc_dir
        return (
            f"cd {novnc_dir}/utils && ./novnc_proxy --vnc localhost:{self.vnc_port} "
            f"--listen {self.port} --web {novnc_dir} > /tmp/novnc.log 2>&1"
        )

    async def _wait_for_port(self, port: int) -> bool:
        return await self._desktop.wait_and_verify(
            f'netstat -tuln | grep ":{port} "',
            lambda result: result.output.strip() != "",
        )
