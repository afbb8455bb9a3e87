"""
Tmux window management service.

Every session window lives inside one managed tmux session whose name comes
from configuration. Windows are addressed by name (``project:feature``).

libtmux shells out to ``tmux`` synchronously, so each public coroutine runs
its libtmux work in a worker thread.
"""

import asyncio
from pathlib import Path

import libtmux

from ..core.models import WindowInfo
from ..utils.logging import TmuxError
from .logging_utils import (
    log_session_created,
    log_window_list,
    log_window_operation,
    tmux_logger,
)


class TmuxWindowService:
    """Window-level access to the managed tmux session."""

    def __init__(self, session_name: str, server: libtmux.Server | None = None):
        """Initialize tmux service.

        Args:
            session_name: Name of the managed tmux session
            server: libtmux server, defaults to the user's default socket
        """
        self.session_name = session_name
        self._server = server or libtmux.Server()

    async def session_exists(self) -> bool:
        """Check if the managed tmux session exists."""
        return await asyncio.to_thread(self._session_exists)

    async def ensure_session(self) -> None:
        """Create the managed tmux session if it is missing.

        Raises:
            TmuxError: If the session cannot be created
        """
        await asyncio.to_thread(self._ensure_session)

    async def list_windows(self) -> list[WindowInfo]:
        """List windows of the managed session with their pane paths.

        Returns an empty list when the session does not exist.

        Raises:
            TmuxError: If tmux cannot be queried
        """
        return await asyncio.to_thread(self._list_windows)

    async def window_exists(self, window_name: str) -> bool:
        """Check if a window with this exact name exists."""
        windows = await self.list_windows()
        return any(window.name == window_name for window in windows)

    async def create_window(
        self, window_name: str, directory: Path, command: str | None = None
    ) -> WindowInfo:
        """Create a window in the managed session.

        Args:
            window_name: Name of the new window
            directory: Start directory of the window
            command: Optional command typed into the window after creation

        Raises:
            TmuxError: If the window already exists or cannot be created
        """
        return await asyncio.to_thread(self._create_window, window_name, directory, command)

    async def kill_window(self, window_name: str) -> bool:
        """Kill a window by name.

        Returns:
            True if a window was killed, False if it did not exist
        """
        return await asyncio.to_thread(self._kill_window, window_name)

    async def send_keys(self, window_name: str, command: str) -> None:
        """Type a command into the window and press Enter."""
        await asyncio.to_thread(self._send_keys, window_name, command)

    async def capture_output(self, window_name: str, lines: int | None = None) -> str:
        """Capture the visible pane contents, optionally with scrollback."""
        return await asyncio.to_thread(self._capture_output, window_name, lines)

    # Blocking libtmux calls, run in worker threads

    def _session_exists(self) -> bool:
        try:
            return self._server.has_session(self.session_name)
        except Exception as e:
            tmux_logger.debug(
                "Could not query tmux session", session_name=self.session_name, error=str(e)
            )
            return False

    def _ensure_session(self) -> None:
        if self._session_exists():
            return

        try:
            self._server.new_session(session_name=self.session_name, detach=True)
        except Exception as e:
            raise TmuxError(
                f"Failed to create tmux session '{self.session_name}': {e}",
                context={"session_name": self.session_name},
            ) from e

        log_session_created(self.session_name)

    def _list_windows(self) -> list[WindowInfo]:
        session = self._get_session()
        if session is None:
            return []

        try:
            windows = [
                WindowInfo(name=window.window_name, pane_path=self._pane_path(window))
                for window in session.windows
            ]
        except Exception as e:
            raise TmuxError(
                f"Failed to list tmux windows: {e}",
                context={"session_name": self.session_name},
            ) from e

        log_window_list(self.session_name, [w.name for w in windows])
        return windows

    def _create_window(
        self, window_name: str, directory: Path, command: str | None
    ) -> WindowInfo:
        self._ensure_session()

        if any(window.name == window_name for window in self._list_windows()):
            raise TmuxError(
                f"Window {window_name} already exists",
                context={"window_name": window_name},
            )

        try:
            session = self._require_session()
            window = session.new_window(
                window_name=window_name,
                start_directory=str(directory),
                attach=False,
            )
            if command:
                pane = self._first_pane(window)
                if pane is not None:
                    pane.send_keys(command, enter=True)
        except TmuxError:
            raise
        except Exception as e:
            log_window_operation("create", window_name, "error", {"error": str(e)})
            raise TmuxError(
                f"Failed to create window {window_name}: {e}",
                context={"window_name": window_name},
            ) from e

        log_window_operation("create", window_name, "success")
        return WindowInfo(name=window_name, pane_path=str(directory))

    def _kill_window(self, window_name: str) -> bool:
        window = self._find_window(window_name)
        if window is None:
            tmux_logger.debug("Window not found, nothing to kill", window_name=window_name)
            return False

        try:
            window.kill()
        except Exception as e:
            log_window_operation("kill", window_name, "error", {"error": str(e)})
            raise TmuxError(
                f"Failed to kill window {window_name}: {e}",
                context={"window_name": window_name},
            ) from e

        log_window_operation("kill", window_name, "success")
        return True

    def _send_keys(self, window_name: str, command: str) -> None:
        pane = self._require_pane(window_name)
        try:
            pane.send_keys(command, enter=True)
        except Exception as e:
            raise TmuxError(
                f"Failed to send command to window {window_name}: {e}",
                context={"window_name": window_name},
            ) from e

        log_window_operation("send-keys", window_name, "success")

    def _capture_output(self, window_name: str, lines: int | None) -> str:
        pane = self._require_pane(window_name)
        try:
            if lines:
                captured = pane.capture_pane(start=-lines)
            else:
                captured = pane.capture_pane()
        except Exception as e:
            raise TmuxError(
                f"Failed to capture output of window {window_name}: {e}",
                context={"window_name": window_name},
            ) from e

        if isinstance(captured, str):
            return captured
        return "\n".join(captured)

    def _get_session(self) -> libtmux.Session | None:
        try:
            matches = self._server.sessions.filter(session_name=self.session_name)
        except Exception as e:
            raise TmuxError(
                f"Failed to query tmux server: {e}",
                context={"session_name": self.session_name},
            ) from e
        return matches[0] if matches else None

    def _require_session(self) -> libtmux.Session:
        session = self._get_session()
        if session is None:
            raise TmuxError(
                f"Tmux session {self.session_name} does not exist",
                context={"session_name": self.session_name},
            )
        return session

    def _find_window(self, window_name: str) -> libtmux.Window | None:
        session = self._get_session()
        if session is None:
            return None
        for window in session.windows:
            if window.window_name == window_name:
                return window
        return None

    def _require_pane(self, window_name: str) -> libtmux.Pane:
        window = self._find_window(window_name)
        pane = self._first_pane(window) if window is not None else None
        if pane is None:
            raise TmuxError(
                f"Window {window_name} not found",
                context={"window_name": window_name},
            )
        return pane

    @staticmethod
    def _first_pane(window: libtmux.Window) -> libtmux.Pane | None:
        panes = window.panes
        return panes[0] if panes else None

    def _pane_path(self, window: libtmux.Window) -> str | None:
        pane = self._first_pane(window)
        return pane.pane_current_path if pane is not None else None
