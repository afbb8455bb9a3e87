"""
Pytest configuration and shared fixtures for claude-tmux-manager tests.
"""

import subprocess
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from claude_tmux_manager.config.loader import ManagerConfig
from claude_tmux_manager.core.models import GitStatus, Session, WindowInfo
from claude_tmux_manager.core.registry import SessionRegistry
from claude_tmux_manager.core.session_manager import SessionManager
from claude_tmux_manager.utils.logging import TmuxError, WorktreeError
from claude_tmux_manager.utils.process import CommandResult


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTmux:
    """In-memory stand-in for TmuxWindowService."""

    def __init__(self, session_name: str = "claude-tmux-manager"):
        self.session_name = session_name
        self.windows: dict[str, WindowInfo] = {}
        self.sent: list[tuple[str, str]] = []
        self.output = "$ echo hello\nhello"
        self.fail_list = False
        self.fail_create = False
        self.fail_kill = False

    def add_window(self, name: str, pane_path: str | Path | None = None) -> None:
        self.windows[name] = WindowInfo(
            name=name, pane_path=str(pane_path) if pane_path else None
        )

    async def session_exists(self) -> bool:
        return True

    async def ensure_session(self) -> None:
        return None

    async def list_windows(self) -> list[WindowInfo]:
        if self.fail_list:
            raise TmuxError("no server running")
        return list(self.windows.values())

    async def window_exists(self, window_name: str) -> bool:
        return any(w.name == window_name for w in await self.list_windows())

    async def create_window(self, window_name, directory, command=None) -> WindowInfo:
        if self.fail_create:
            raise TmuxError(f"Failed to create window {window_name}")
        self.add_window(window_name, directory)
        return self.windows[window_name]

    async def kill_window(self, window_name: str) -> bool:
        if self.fail_kill:
            raise TmuxError(f"Failed to kill window {window_name}")
        return self.windows.pop(window_name, None) is not None

    async def send_keys(self, window_name: str, command: str) -> None:
        if window_name not in self.windows:
            raise TmuxError(f"Window {window_name} not found")
        self.sent.append((window_name, command))

    async def capture_output(self, window_name: str, lines: int | None = None) -> str:
        if window_name not in self.windows:
            raise TmuxError(f"Window {window_name} not found")
        return self.output


class FakeProbe:
    """GitStatusProbe stand-in returning a fixed status or raising."""

    def __init__(self, status: GitStatus | None = None):
        self.status = status or GitStatus(branch="feature/login")
        self.error: Exception | None = None
        self.calls: list[Path] = []

    async def probe(self, worktree_path) -> GitStatus:
        self.calls.append(Path(worktree_path))
        if self.error is not None:
            raise self.error
        return self.status


class FakeWorktrees:
    """GitWorktreeManager stand-in that records calls."""

    def __init__(self, worktree_dir: str = ".worktrees", branch_prefix: str = "feature/"):
        self.worktree_dir = worktree_dir
        self.branch_prefix = branch_prefix
        self.created: list[tuple[Path, str]] = []
        self.removed: list[tuple[Path, str]] = []
        self.stashed: list[Path] = []
        self.fail_remove = False

    def get_project_name(self, project_path) -> str:
        return Path(project_path).name

    def branch_for(self, feature_name: str) -> str:
        return f"{self.branch_prefix}{feature_name}"

    def create_worktree(self, project_path, feature_name: str) -> Path:
        path = Path(project_path) / self.worktree_dir / feature_name
        self.created.append((Path(project_path), feature_name))
        return path

    def stash_changes(self, worktree_path) -> bool:
        self.stashed.append(Path(worktree_path))
        return False

    def remove_worktree(self, project_path, feature_name: str) -> bool:
        if self.fail_remove:
            raise WorktreeError("git worktree remove failed")
        self.removed.append((Path(project_path), feature_name))
        return True


class FakeExecutor:
    """CommandExecutor stand-in that replays queued results."""

    def __init__(self, results: list[CommandResult | Exception] | None = None):
        self.results = list(results or [])
        self.commands: list[str] = []
        self.calls: list[dict] = []

    async def execute(self, command, *, timeout=None, suppress_errors=False, cwd=None, env=None):
        self.commands.append(command)
        self.calls.append(
            {"command": command, "timeout": timeout, "suppress_errors": suppress_errors}
        )
        outcome = self.results.pop(0) if self.results else CommandResult(exit_code=0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def config() -> ManagerConfig:
    return ManagerConfig(git_status_freshness_seconds=10.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_tmux() -> FakeTmux:
    return FakeTmux()


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def fake_worktrees() -> FakeWorktrees:
    return FakeWorktrees()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def git_executor() -> FakeExecutor:
    """Executor behind the manager's health checks and pull request lookups."""
    return FakeExecutor()


@pytest.fixture
def manager(
    config, registry, fake_probe, fake_tmux, fake_worktrees, git_executor, clock
) -> SessionManager:
    return SessionManager(
        config,
        registry=registry,
        probe=fake_probe,
        tmux=fake_tmux,
        worktrees=fake_worktrees,
        executor=git_executor,
        clock=clock,
    )


@pytest.fixture
def make_session(tmp_path):
    """Factory for Session records rooted in the test's tmp_path."""

    def _make(project: str = "demo", feature: str = "login", **overrides) -> Session:
        project_path = tmp_path / project
        values = {
            "project_name": project,
            "feature_name": feature,
            "project_path": project_path,
            "worktree_path": project_path / ".worktrees" / feature,
            "branch": f"feature/{feature}",
        }
        values.update(overrides)
        return Session(**values)

    return _make


def run_git(cwd: Path, *args: str) -> str:
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout


@pytest.fixture
def git_repo(tmp_path) -> Path:
    """A repository with one commit on ``main``."""
    from git import Repo

    repo_path = tmp_path / "demo"
    repo = Repo.init(repo_path, initial_branch="main")
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")
    (repo_path / "README.md").write_text("# demo\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    return repo_path


@pytest.fixture
def fake_executor() -> FakeExecutor:
    """Executor replaying ``fake_executor.results`` in order; exit 0 once exhausted."""
    return FakeExecutor()


@pytest.fixture
def git():
    """Run a git command in a directory and return its stdout."""
    return run_git
