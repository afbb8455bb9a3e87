"""Bounded external command execution and shell quoting helpers."""

import asyncio
import os
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path

import psutil

from .logging import LogContext, get_logger

logger = get_logger(__name__, LogContext.PROCESS)

# Sentinel exit codes; real processes report 0-255 together with timed_out=False
TIMEOUT_EXIT_CODE = -1
SPAWN_FAILURE_EXIT_CODE = -2

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single command execution."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class CommandExecutionError(Exception):
    """Raised when a command could not be spawned at all."""

    def __init__(self, message: str, command: str | None = None):
        """Initialize CommandExecutionError.

        Args:
            message: Error message
            command: The command that failed to spawn
        """
        super().__init__(message)
        self.command = command


class CommandExecutor:
    """Runs shell commands with a wall-clock bound.

    Each call spawns exactly one process (in its own process group on POSIX).
    There are no retries; a failed or timed out command is reported once.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        self.default_timeout = default_timeout

    async def execute(
        self,
        command: str,
        *,
        timeout: float | None = None,
        suppress_errors: bool = False,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Execute a command through the host shell.

        Args:
            command: Shell command line; dynamic segments must already be quoted
            timeout: Seconds before the process tree is killed
            suppress_errors: Convert spawn failures into a CommandResult
            cwd: Working directory for the command
            env: Extra environment variables merged over the current ones

        Returns:
            CommandResult with captured output

        Raises:
            CommandExecutionError: If the process cannot be spawned and
                suppress_errors is False
        """
        timeout = self.default_timeout if timeout is None else timeout

        process_env = None
        if env:
            process_env = os.environ.copy()
            process_env.update(env)

        logger.debug(
            "Executing command",
            command=command,
            cwd=str(cwd) if cwd else None,
            timeout=timeout,
        )

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=str(cwd) if cwd else None,
                env=process_env,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            logger.warning("Failed to spawn command", command=command, error=str(e))
            if not suppress_errors:
                raise CommandExecutionError(
                    f"Failed to spawn command: {e}", command=command
                ) from e
            return CommandResult(
                exit_code=SPAWN_FAILURE_EXIT_CODE, stdout="", stderr=str(e)
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Command timed out, killing process tree",
                command=command,
                timeout=timeout,
                pid=process.pid,
            )
            await self._kill_process_tree(process)
            return CommandResult(
                exit_code=TIMEOUT_EXIT_CODE,
                stdout="",
                stderr=f"Command timed out after {timeout}s: {command}",
                timed_out=True,
            )

        result = CommandResult(
            exit_code=process.returncode if process.returncode is not None else 0,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        logger.debug(
            "Command finished", command=command, exit_code=result.exit_code
        )
        return result

    async def _kill_process_tree(self, process: asyncio.subprocess.Process) -> None:
        """Kill a process and every descendant, then reap it."""
        try:
            parent = psutil.Process(process.pid)
            children = parent.children(recursive=True)
        except psutil.NoSuchProcess:
            children = []

        for child in children:
            try:
                child.kill()
            except psutil.NoSuchProcess:
                continue

        try:
            process.kill()
        except ProcessLookupError:
            pass

        await process.wait()
        psutil.wait_procs(children, timeout=1.0)


def command_available(name: str) -> bool:
    """Check whether an executable can be found on PATH."""
    return shutil.which(name) is not None


def quote_posix(value: str) -> str:
    """Quote a value for POSIX shells."""
    return shlex.quote(value)


def quote_windows(value: str) -> str:
    """Quote a value for a cmd.exe command line.

    Inside double quotes cmd treats ``& | < > ^ ;`` literally; embedded
    double quotes are doubled. cmd still expands ``%VAR%`` inside quotes, so
    every ``%`` is emitted outside the quotes as ``^%``, which breaks the
    variable name before expansion and is reduced to ``%`` afterwards.
    """
    escaped = value.replace('"', '""').replace("%", '"^%"')
    return f'"{escaped}"'


def detach_posix(command: str) -> str:
    """Start ``command`` in the background with its stdio detached.

    The wrapper exits 0 once the program is started, so a GUI program that
    stays in the foreground is neither waited on nor killed on timeout.
    """
    return f"(nohup {command} </dev/null >/dev/null 2>&1 &)"
