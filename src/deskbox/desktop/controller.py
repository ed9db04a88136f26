"""Desktop sandbox controller: Xvfb/xfce4 bootstrapping and xdotool input."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from types import TracebackType

from deskbox.config import Settings, get_settings
from deskbox.desktop.keys import SCROLL_BUTTONS, map_key, map_mouse_button
from deskbox.desktop.parser import parse_cursor_position, parse_screen_size, parse_window_ids
from deskbox.desktop.session import DesktopSession
from deskbox.desktop.shell import break_into_chunks, generate_random_string, quote_string
from deskbox.desktop.stream import VncStream
from deskbox.sandbox.factory import create_sandbox
from deskbox.sandbox.interfaces import SandboxBackend, Terminal
from deskbox.sandbox.results import BackgroundProcess, CommandResult, FileEntry
from deskbox.shared.enums import FileFormat, MouseButton, ScrollDirection
from deskbox.shared.exceptions import CommandError, DesktopSessionError, DisplayStartError, SandboxError
from deskbox.shared.models import CursorPosition, ScreenSize, TemplateResources

logger = logging.getLogger(__name__)

_DEFUNCT_XFCE_MARKER = "[xfce4-session] <defunct>"


def _button_code(button: MouseButton | str) -> int:
    return map_mouse_button(button.value if isinstance(button, MouseButton) else button)


class Desktop:
    """Remote virtual desktop running inside a provider sandbox.

    Obtain instances with :meth:`create`; the constructor only wires an already
    provisioned sandbox. Calls against one instance are expected to be awaited
    one at a time.
    """

    def __init__(
        self,
        sandbox: SandboxBackend,
        session: DesktopSession,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._sandbox = sandbox
        self.session = session
        self.settings = settings or get_settings()
        self.stream = VncStream(self)

    @property
    def display(self) -> str:
        return self.session.display

    @classmethod
    async def create(
        cls,
        provider: str | None = None,
        *,
        resolution: tuple[int, int] | None = None,
        dpi: int | None = None,
        display: str | None = None,
        envs: Mapping[str, str] | None = None,
        template: str | None = None,
        resources: TemplateResources | None = None,
        settings: Settings | None = None,
    ) -> Desktop:
        """Provision a sandbox and boot Xvfb plus an xfce4 session in it.

        Args:
            provider: Provider name (``e2b``, ``daytona``, ``docker``).
            resolution: Screen size as ``(width, height)``.
            dpi: Display DPI.
            display: X display identifier, exported as ``DISPLAY``.
            envs: Extra environment variables for the sandbox.
            template: Template (image or snapshot) to provision from.
            resources: Provider resource sizing.

        Returns:
            Ready desktop controller.

        Raises:
            ProviderError: If the sandbox cannot be provisioned.
            DisplayStartError: If Xvfb does not become ready in time. The
                sandbox is left running; callers must destroy it.
        """
        settings = settings or get_settings()
        provider = provider or settings.provider
        display = display or settings.display

        sandbox = await create_sandbox(
            provider,
            template=template or settings.template,
            envs={**(envs or {}), "DISPLAY": display},
            resources=resources,
            settings=settings,
        )
        desktop = cls(
            sandbox,
            DesktopSession(sandbox_id=sandbox.id(), provider=provider, display=display),
            settings=settings,
        )
        await desktop._start(resolution or settings.resolution, dpi or settings.dpi)
        return desktop

    async def __aenter__(self) -> Desktop:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.destroy()

    async def _start(self, resolution: tuple[int, int], dpi: int) -> None:
        width, height = resolution
        await self.run_background(
            f"Xvfb {self.display} -ac -screen 0 {width}x{height}x24 "
            f"-retro -dpi {dpi} -nolisten tcp -nolisten unix",
        )
        started = await self.wait_and_verify(
            f"xdpyinfo -display {self.display}",
            lambda result: result.exit_code == 0,
        )
        if not started:
            raise DisplayStartError(f"could not start Xvfb on display {self.display}")
        logger.info("Xvfb ready on %s (%dx%d, %d dpi) in %s", self.display, width, height, dpi, self.id())

        await self.start_desktop_session()

    async def start_desktop_session(self) -> None:
        """Start xfce4 unless the tracked session process is still alive."""
        pid = self.session.xfce_pid
        if pid is not None:
            result = await self.run_command(f"ps aux | grep {pid} | grep -v grep | head -n 1")
            if _DEFUNCT_XFCE_MARKER not in result.output.strip():
                return
            logger.info("xfce4 session %d is defunct in %s, restarting", pid, self.id())

        try:
            process = await self.run_background("startxfce4")
        except CommandError as exc:
            raise DesktopSessionError(f"could not start xfce4 in {self.id()}: {exc}") from exc
        self.session.xfce_pid = process.pid
        logger.info("started xfce4 session (pid=%d) in %s", process.pid, self.id())

    # ── command execution ───────────────────────────────────────

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run ``command`` in the foreground and return its exit code and output."""
        logger.debug("run in %s: %s", self.id(), command)
        return await self._sandbox.run_command(
            command,
            cwd=cwd,
            envs=envs,
            timeout=timeout if timeout is not None else self.settings.command_timeout_seconds,
        )

    async def run_background(
        self,
        command: str,
        *,
        cwd: str | None = None,
        envs: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> BackgroundProcess:
        """Start ``command`` in the background; ``timeout=None`` never kills it."""
        logger.debug("start in %s: %s", self.id(), command)
        return await self._sandbox.run_background(command, cwd=cwd, envs=envs, timeout=timeout)

    async def wait_and_verify(
        self,
        command: str,
        on_result: Callable[[CommandResult], bool],
        timeout: float | None = None,
        interval: float | None = None,
    ) -> bool:
        """Re-run ``command`` until ``on_result`` accepts its result.

        Args:
            command: Command to poll.
            on_result: Predicate over the command result.
            timeout: Seconds to keep polling (default from settings, 10).
            interval: Seconds between attempts (default from settings, 0.5).

        Returns:
            True if the predicate was satisfied before the timeout.
        """
        timeout = self.settings.startup_timeout_seconds if timeout is None else timeout
        interval = self.settings.poll_interval_seconds if interval is None else interval
        elapsed = 0.0

        while elapsed < timeout:
            if on_result(await self.run_command(command)):
                return True
            await asyncio.sleep(interval)
            elapsed += interval

        logger.warning("%r not satisfied after %.1fs in %s", command, timeout, self.id())
        return False

    # ── screen ──────────────────────────────────────────────────

    async def screenshot(self) -> bytes:
        """Capture the display (pointer included) as PNG bytes."""
        path = f"/tmp/screenshot-{generate_random_string()}.png"
        await self.run_command(f"scrot --pointer {path}")
        try:
            image = await self.read_file(path, format=FileFormat.BYTES)
            return image if isinstance(image, bytes) else image.encode()
        finally:
            try:
                await self.delete_file(path)
            except SandboxError as exc:
                logger.warning("failed to remove screenshot %s: %s", path, exc)

    async def get_cursor_position(self) -> CursorPosition:
        """Raises ParseError if xdotool output has no position."""
        result = await self.run_command("xdotool getmouselocation")
        return parse_cursor_position(result.output)

    async def get_screen_size(self) -> ScreenSize:
        """Raises ParseError if xrandr output has no resolution."""
        result = await self.run_command("xrandr")
        return parse_screen_size(result.output)

    # ── mouse ───────────────────────────────────────────────────

    async def move_mouse(self, x: int, y: int) -> None:
        await self.run_command(f"xdotool mousemove --sync {x} {y}")

    async def _move_if_given(self, x: int | None, y: int | None) -> None:
        if x is not None and y is not None:
            await self.move_mouse(x, y)

    async def left_click(self, x: int | None = None, y: int | None = None) -> None:
        await self._move_if_given(x, y)
        await self.run_command("xdotool click 1")

    async def double_click(self, x: int | None = None, y: int | None = None) -> None:
        await self._move_if_given(x, y)
        await self.run_command("xdotool click --repeat 2 1")

    async def right_click(self, x: int | None = None, y: int | None = None) -> None:
        await self._move_if_given(x, y)
        await self.run_command("xdotool click 3")

    async def middle_click(self, x: int | None = None, y: int | None = None) -> None:
        await self._move_if_given(x, y)
        await self.run_command("xdotool click 2")

    async def scroll(self, direction: ScrollDirection | str = ScrollDirection.DOWN, amount: int = 1) -> None:
        button = SCROLL_BUTTONS[ScrollDirection(direction).value]
        await self.run_command(f"xdotool click --repeat {amount} {button}")

    async def mouse_press(self, button: MouseButton | str = MouseButton.LEFT) -> None:
        await self.run_command(f"xdotool mousedown {_button_code(button)}")

    async def mouse_release(self, button: MouseButton | str = MouseButton.LEFT) -> None:
        await self.run_command(f"xdotool mouseup {_button_code(button)}")

    async def drag(self, start: tuple[int, int], end: tuple[int, int]) -> None:
        """Press the left button at ``start`` and release it at ``end``."""
        await self.move_mouse(*start)
        await self.mouse_press()
        await self.move_mouse(*end)
        await self.mouse_release()

    # ── keyboard ────────────────────────────────────────────────

    async def write(self, text: str, *, chunk_size: int = 25, delay_in_ms: int = 75) -> None:
        """Type ``text`` at the cursor in chunks to keep the X input queue small."""
        for chunk in break_into_chunks(text, chunk_size):
            await self.run_command(f"xdotool type --delay {delay_in_ms} -- {quote_string(chunk)}")

    async def press(self, key: str | Sequence[str]) -> None:
        """Press one key (``"enter"``) or a chord (``["ctrl", "c"]``)."""
        if isinstance(key, str):
            keysym = map_key(key)
        else:
            keysym = "+".join(map_key(k) for k in key)
        await self.run_command(f"xdotool key {keysym}")

    # ── windows and applications ────────────────────────────────

    async def get_current_window_id(self) -> str:
        result = await self.run_command("xdotool getwindowfocus")
        return result.output.strip()

    async def get_application_windows(self, application: str) -> list[str]:
        """Return ids of visible windows whose class matches ``application``."""
        result = await self.run_command(f"xdotool search --onlyvisible --class {quote_string(application)}")
        return parse_window_ids(result.output)

    async def get_window_title(self, window_id: str) -> str:
        result = await self.run_command(f"xdotool getwindowname {window_id}")
        return result.output.strip()

    async def launch(self, application: str, uri: str | None = None) -> None:
        """Launch a .desktop application, optionally opening ``uri`` in it."""
        command = f"gtk-launch {application}"
        if uri:
            command = f"{command} {quote_string(uri)}"
        await self.run_background(command)

    async def open(self, file_or_url: str) -> None:
        """Open a file or URL with the default handler."""
        await self.run_background(f"xdg-open {quote_string(file_or_url)}")

    async def wait(self, ms: int) -> None:
        """Sleep inside the sandbox for ``ms`` milliseconds."""
        await self.run_command(f"sleep {ms / 1000}")

    # ── delegated sandbox operations ────────────────────────────

    def id(self) -> str:
        return self._sandbox.id()

    async def suspend(self) -> None:
        await self._sandbox.suspend()

    async def resume(self) -> None:
        await self._sandbox.resume()

    async def destroy(self) -> None:
        await self._sandbox.destroy()
        logger.info("destroyed %s sandbox %s", self.session.provider, self.session.sandbox_id)

    async def read_file(self, path: str, *, format: FileFormat | str = FileFormat.TEXT) -> str | bytes:
        return await self._sandbox.read_file(path, format=format)

    async def write_file(self, path: str, content: str | bytes) -> None:
        await self._sandbox.write_file(path, content)

    async def list_files(self, path: str) -> list[FileEntry]:
        return await self._sandbox.list_files(path)

    async def move_file(self, path: str, new_path: str) -> None:
        await self._sandbox.move_file(path, new_path)

    async def delete_file(self, path: str) -> None:
        await self._sandbox.delete_file(path)

    async def create_directory(self, path: str) -> None:
        await self._sandbox.create_directory(path)

    async def get_preview_url(self, port: int) -> str:
        return await self._sandbox.get_preview_url(port)

    async def create_terminal(self, on_output: Callable[[str], None]) -> Terminal:
        return await self._sandbox.create_terminal(on_output)
