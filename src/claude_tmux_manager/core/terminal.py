"""
Opening a terminal attached to a session's tmux window.

Terminal launching differs on every platform and often fails for reasons
outside our control, so a failed launch is returned as a TerminalFallback
carrying the exact command the user can run by hand.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

from ..utils.logging import LogContext, get_logger
from ..utils.process import (
    CommandExecutor,
    CommandResult,
    command_available,
    detach_posix,
    quote_posix,
    quote_windows,
)
from .enums import HostPlatform
from .models import Session

logger = get_logger(__name__, LogContext.TERMINAL)


@dataclass(frozen=True)
class TerminalOpened:
    """A terminal was launched and attached to the window."""

    window_name: str


@dataclass(frozen=True)
class TerminalFallback:
    """Automatic launch failed; the user has to attach manually."""

    error: str
    message: str
    session_name: str
    window_name: str
    instructions: list[str] = field(default_factory=list)
    debug: CommandResult | None = None


TerminalOpenOutcome = TerminalOpened | TerminalFallback


@dataclass(frozen=True)
class LaunchCandidate:
    """One way of opening a terminal, tried in order."""

    label: str
    executable: str
    command: str


class TerminalStrategy(ABC):
    """Builds platform specific launch commands for a tmux command."""

    platform: HostPlatform
    command_separator = "\\;"

    def quote(self, value: str) -> str:
        return quote_posix(value)

    def build_tmux_command(self, session_name: str, window_name: str) -> str:
        """Attach to the managed session, then select the window."""
        target = f"{session_name}:{window_name}"
        return (
            f"tmux attach-session -t {self.quote(session_name)} "
            f"{self.command_separator} select-window -t {self.quote(target)}"
        )

    @abstractmethod
    def candidates(self, tmux_command: str) -> list[LaunchCandidate]:
        """Ordered launch candidates for this platform."""

    def build_launch_command(self, tmux_command: str) -> str:
        """Single shell command equivalent to trying every candidate in order."""
        return " || ".join(c.command for c in self.candidates(tmux_command))


class MacOSTerminalStrategy(TerminalStrategy):
    platform = HostPlatform.MACOS

    def candidates(self, tmux_command: str) -> list[LaunchCandidate]:
        escaped = tmux_command.replace("\\", "\\\\").replace('"', '\\"')
        script = f'tell application "Terminal" to do script "{escaped}"'
        return [
            LaunchCandidate(
                label="Terminal.app",
                executable="osascript",
                command=f"osascript -e {quote_posix(script)}",
            )
        ]


class LinuxTerminalStrategy(TerminalStrategy):
    """X11/Wayland emulators, each started detached from the launcher."""

    platform = HostPlatform.LINUX

    # (label, executable, argument prefix before the shell invocation)
    emulators = [
        ("gnome-terminal", "gnome-terminal", "gnome-terminal --"),
        ("xterm", "xterm", "xterm -e"),
        ("konsole", "konsole", "konsole -e"),
        ("alacritty", "alacritty", "alacritty -e"),
        ("kitty", "kitty", "kitty"),
    ]

    def candidates(self, tmux_command: str) -> list[LaunchCandidate]:
        shell_command = f"bash -c {quote_posix(tmux_command)}"
        return [
            LaunchCandidate(
                label=label,
                executable=executable,
                command=detach_posix(f"{prefix} {shell_command}"),
            )
            for label, executable, prefix in self.emulators
        ]


class WindowsTerminalStrategy(TerminalStrategy):
    platform = HostPlatform.WINDOWS
    command_separator = ";"

    def quote(self, value: str) -> str:
        return quote_windows(value)

    def candidates(self, tmux_command: str) -> list[LaunchCandidate]:
        return [
            LaunchCandidate(
                label="cmd",
                executable="cmd",
                command=f'start "" cmd /k {tmux_command}',
            )
        ]


class GenericTerminalStrategy(TerminalStrategy):
    platform = HostPlatform.OTHER

    def candidates(self, tmux_command: str) -> list[LaunchCandidate]:
        shell_command = f"sh -c {quote_posix(tmux_command)}"
        return [
            LaunchCandidate(
                label="x-terminal-emulator",
                executable="x-terminal-emulator",
                command=detach_posix(f"x-terminal-emulator -e {shell_command}"),
            ),
            LaunchCandidate(
                label="xterm",
                executable="xterm",
                command=detach_posix(f"xterm -e {shell_command}"),
            ),
        ]


STRATEGIES: dict[HostPlatform, type[TerminalStrategy]] = {
    HostPlatform.MACOS: MacOSTerminalStrategy,
    HostPlatform.LINUX: LinuxTerminalStrategy,
    HostPlatform.WINDOWS: WindowsTerminalStrategy,
    HostPlatform.OTHER: GenericTerminalStrategy,
}


def strategy_for(platform: HostPlatform) -> TerminalStrategy:
    return STRATEGIES[platform]()


def manual_instructions(tmux_command: str) -> list[str]:
    return [
        "1. Open your terminal application",
        f"2. Run: {tmux_command}",
        "3. This will attach to the tmux session and select your window",
    ]


class TerminalLauncher:
    """Opens a terminal attached to a session's tmux window."""

    def __init__(
        self,
        executor: CommandExecutor,
        session_name: str,
        platform: HostPlatform | None = None,
        timeout: float = 10.0,
        is_available: Callable[[str], bool] = command_available,
    ):
        """Initialize the launcher.

        Args:
            executor: Executor used for launch commands
            session_name: Name of the managed tmux session
            platform: Host platform, detected when omitted
            timeout: Seconds allowed for each launch attempt
            is_available: Checks whether a candidate's executable is installed
        """
        self.executor = executor
        self.session_name = session_name
        self.platform = platform or HostPlatform.detect()
        self.strategy = strategy_for(self.platform)
        self.timeout = timeout
        self.is_available = is_available

    def tmux_command_for(self, session: Session) -> str:
        return self.strategy.build_tmux_command(self.session_name, session.window_name)

    async def open_terminal(self, session: Session) -> TerminalOpenOutcome:
        """Open a terminal for the session. Never raises."""
        window_name = session.window_name
        tmux_command = self.tmux_command_for(session)
        last_result: CommandResult | None = None
        log = logger.bind(window_name=window_name, platform=self.platform.value)

        log.info("Opening terminal")

        for candidate in self.strategy.candidates(tmux_command):
            if not self.is_available(candidate.executable):
                log.info(
                    "Terminal application not installed, skipping",
                    candidate=candidate.label,
                    executable=candidate.executable,
                )
                continue

            try:
                result = await self.executor.execute(
                    candidate.command, timeout=self.timeout, suppress_errors=True
                )
            except Exception as e:
                log.warning(
                    "Failed to execute terminal command",
                    candidate=candidate.label,
                    error=str(e),
                )
                return self._fallback(
                    "Could not automatically open terminal", window_name, tmux_command
                )

            if result.succeeded:
                log.info("Opened terminal", candidate=candidate.label)
                return TerminalOpened(window_name=window_name)

            log.warning(
                "Terminal application is installed but failed to launch",
                candidate=candidate.label,
                exit_code=result.exit_code,
                timed_out=result.timed_out,
                stderr=result.stderr.strip(),
            )
            last_result = result

        if last_result is None:
            log.warning("No supported terminal application found")
            return self._fallback(
                "No supported terminal application found", window_name, tmux_command
            )

        return self._fallback(
            "Failed to open terminal automatically",
            window_name,
            tmux_command,
            debug=last_result,
        )

    def _fallback(
        self,
        error: str,
        window_name: str,
        tmux_command: str,
        debug: CommandResult | None = None,
    ) -> TerminalFallback:
        return TerminalFallback(
            error=error,
            message=f"Manually run: {tmux_command}",
            session_name=self.session_name,
            window_name=window_name,
            instructions=manual_instructions(tmux_command),
            debug=debug,
        )
