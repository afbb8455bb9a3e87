"""Git status probing for session worktrees."""

from pathlib import Path

from ..utils.logging import LogContext, TmuxManagerError, get_logger
from ..utils.process import CommandExecutor, CommandResult, quote_posix
from .models import GitStatus

logger = get_logger(__name__, LogContext.GIT)


class GitStatusError(TmuxManagerError):
    """Base exception for git status probing."""

    pass


class GitUnavailableError(GitStatusError):
    """The path is not a usable git worktree."""

    pass


class GitCommandFailedError(GitStatusError):
    """A git invocation inside a valid worktree failed."""

    def __init__(self, command: str, result: CommandResult, worktree_path: str):
        message = (
            f"git command failed with exit code {result.exit_code}: {command}"
            if not result.timed_out
            else f"git command timed out: {command}"
        )
        super().__init__(
            message,
            context={
                "command": command,
                "exit_code": result.exit_code,
                "stderr": result.stderr.strip(),
                "worktree_path": worktree_path,
            },
        )
        self.command = command
        self.result = result


def parse_porcelain_status(output: str) -> tuple[int, int, int]:
    """Count staged, unstaged and untracked entries of ``git status --porcelain=v1 -z``.

    Renamed and copied entries carry their origin path as an extra NUL
    separated field; it is consumed here so it is never counted on its own.
    """
    staged = unstaged = untracked = 0

    fields = output.split("\0")
    index = 0
    while index < len(fields):
        entry = fields[index]
        index += 1
        if len(entry) < 3:
            continue

        index_status, worktree_status = entry[0], entry[1]

        if index_status in ("R", "C") or worktree_status in ("R", "C"):
            # origin path of the rename/copy
            index += 1

        if index_status == "?" and worktree_status == "?":
            untracked += 1
            continue
        if index_status == "!" and worktree_status == "!":
            continue

        if index_status != " ":
            staged += 1
        if worktree_status != " ":
            unstaged += 1

    return staged, unstaged, untracked


def parse_ahead_behind(output: str) -> tuple[int, int]:
    """Parse ``git rev-list --left-right --count upstream...HEAD`` into (ahead, behind)."""
    parts = output.split()
    if len(parts) != 2:
        return 0, 0
    try:
        behind, ahead = int(parts[0]), int(parts[1])
    except ValueError:
        return 0, 0
    return ahead, behind


class GitStatusProbe:
    """Computes GitStatus snapshots by running git in a worktree.

    The probe holds no cache; freshness is the caller's concern.
    """

    def __init__(self, executor: CommandExecutor, timeout: float = 10.0):
        self.executor = executor
        self.timeout = timeout

    async def probe(self, worktree_path: str | Path) -> GitStatus:
        """Compute the git status of a worktree.

        Args:
            worktree_path: Path to the worktree

        Returns:
            GitStatus snapshot

        Raises:
            GitUnavailableError: If the path is not a git worktree
            GitCommandFailedError: If a git command fails inside the worktree
        """
        path = Path(worktree_path)
        if not path.is_dir():
            raise GitUnavailableError(
                f"Worktree path does not exist: {path}",
                context={"worktree_path": str(path)},
            )

        check = await self.executor.execute(
            "git rev-parse --is-inside-work-tree",
            timeout=self.timeout,
            suppress_errors=True,
            cwd=path,
        )
        if check.timed_out:
            raise GitCommandFailedError(
                "git rev-parse --is-inside-work-tree", check, str(path)
            )
        if check.exit_code != 0 or check.stdout.strip() != "true":
            raise GitUnavailableError(
                f"Not a git worktree: {path}",
                context={"worktree_path": str(path), "stderr": check.stderr.strip()},
            )

        branch = (await self._git(path, "git rev-parse --abbrev-ref HEAD")).strip()
        ahead, behind = await self._ahead_behind(path)
        status_output = await self._git(path, "git status --porcelain=v1 -z")
        staged, unstaged, untracked = parse_porcelain_status(status_output)

        status = GitStatus(
            branch=branch,
            ahead=ahead,
            behind=behind,
            staged=staged,
            unstaged=unstaged,
            untracked=untracked,
        )
        logger.debug("Probed git status", worktree_path=str(path), status=str(status))
        return status

    async def _ahead_behind(self, path: Path) -> tuple[int, int]:
        upstream_result = await self.executor.execute(
            "git rev-parse --abbrev-ref --symbolic-full-name @{upstream}",
            timeout=self.timeout,
            suppress_errors=True,
            cwd=path,
        )
        if upstream_result.exit_code != 0 or not upstream_result.stdout.strip():
            # no upstream configured
            return 0, 0

        upstream = upstream_result.stdout.strip()
        output = await self._git(
            path, f"git rev-list --left-right --count {quote_posix(upstream + '...HEAD')}"
        )
        return parse_ahead_behind(output)

    async def _git(self, path: Path, command: str) -> str:
        result = await self.executor.execute(
            command, timeout=self.timeout, suppress_errors=True, cwd=path
        )
        if not result.succeeded:
            raise GitCommandFailedError(command, result, str(path))
        return result.stdout
