"""
Session orchestration.

SessionManager is the entry point for everything that acts on a
``(project, feature)`` identity. It keeps the registry in step with tmux and
git: window activity is re-checked on every read, git status only once it is
older than the configured freshness window.

Existence is the gate: operations on an identity resolve it through the
registry first and report unknown identities as None or
SessionNotFoundError, never as a failure of tmux or git.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from ..config.loader import ManagerConfig
from ..tmux.service import TmuxWindowService
from ..utils.logging import (
    LogContext,
    SessionError,
    SessionExistsError,
    SessionNotFoundError,
    SessionValidationError,
    TmuxError,
    WorktreeError,
    get_logger,
    log_performance,
)
from ..utils.process import CommandExecutor
from .git_operations import GitWorktreeManager
from .git_status import GitStatusError, GitStatusProbe
from .enums import SearchSort, SessionStatus
from .models import (
    MAX_SEARCH_TEXT_LENGTH,
    GitStatus,
    SearchResult,
    Session,
    SessionHealthCheck,
    SessionStatusReport,
    WindowInfo,
    determine_status,
    make_window_name,
    match_score,
    parse_window_name,
    validate_feature_name,
)
from .pull_requests import PullRequestLookup, PullRequestLookupResult
from .registry import SessionRegistry

logger = get_logger(__name__, LogContext.SESSION)


class SessionManager:
    """Facade over the registry, git status probing and tmux windows."""

    def __init__(
        self,
        config: ManagerConfig,
        registry: SessionRegistry | None = None,
        probe: GitStatusProbe | None = None,
        tmux: TmuxWindowService | None = None,
        worktrees: GitWorktreeManager | None = None,
        executor: CommandExecutor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the session manager.

        Args:
            config: Manager configuration
            registry: Session store, a fresh one when omitted
            probe: Git status probe
            tmux: Window service for the managed tmux session
            worktrees: Worktree provisioning
            executor: Runs git and gh for health checks and pull request lookups
            clock: Monotonic clock used for git status freshness
        """
        self.config = config
        self.registry = registry if registry is not None else SessionRegistry()
        self.executor = (
            executor
            if executor is not None
            else CommandExecutor(default_timeout=config.git_command_timeout)
        )
        self.probe = (
            probe
            if probe is not None
            else GitStatusProbe(self.executor, timeout=config.git_command_timeout)
        )
        self.tmux = (
            tmux if tmux is not None else TmuxWindowService(config.tmux_session_name)
        )
        self.worktrees = (
            worktrees
            if worktrees is not None
            else GitWorktreeManager(config.worktree_dir, config.branch_prefix)
        )
        self.pull_requests = PullRequestLookup(
            self.executor, timeout=config.git_command_timeout
        )
        self.clock = clock

    # Reads

    async def get_session(self, project_name: str, feature_name: str) -> Session | None:
        """Resolve a session with refreshed activity and git status.

        Returns None when the identity is not registered.
        """
        session = self.registry.get(project_name, feature_name)
        if session is None:
            logger.debug(
                "Session not found",
                project_name=project_name,
                feature_name=feature_name,
            )
            return None
        return await self._refresh(session)

    async def session_exists(self, project_name: str, feature_name: str) -> bool:
        return self.registry.contains(project_name, feature_name)

    async def list_sessions(
        self, project_name: str | None = None, refresh: bool = False
    ) -> list[Session]:
        """List registered sessions, sorted by identity.

        Args:
            project_name: Only list sessions of this project
            refresh: Refresh activity and git status of every listed session
        """
        sessions = self.registry.list(project_name)
        if not refresh:
            return sessions

        refreshed = await asyncio.gather(*(self._refresh(s) for s in sessions))
        return [session for session in refreshed if session is not None]

    async def refresh_git_status(
        self, project_name: str, feature_name: str, force: bool = False
    ) -> Session:
        """Re-probe git status if stale, or unconditionally with ``force``.

        Raises:
            SessionNotFoundError: If the identity is not registered
        """
        session = self._require(project_name, feature_name)
        if not force and not self._is_stale(session):
            return session

        probed = await self._probe(session.worktree_path)
        if probed is None:
            return session

        status, probed_at = probed
        updated = await self.registry.update(
            project_name,
            feature_name,
            lambda current: replace(
                current, git_stats=status, git_stats_updated_at=probed_at
            ),
        )
        if updated is None:
            raise SessionNotFoundError(
                f"Session {session.window_name} was removed during refresh",
                context={"project_name": project_name, "feature_name": feature_name},
            )
        return updated

    # Lifecycle

    @log_performance(LogContext.SESSION)
    async def create_session(self, project_path: str | Path, feature_name: str) -> Session:
        """Create a worktree, its branch and a tmux window for a feature.

        Raises:
            SessionValidationError: If the project or feature name is invalid
            SessionExistsError: If the session or its window already exists
            WorktreeError: If the worktree cannot be created
            TmuxError: If the window cannot be created
        """
        validate_feature_name(feature_name)
        project_path = Path(project_path).expanduser().resolve()
        project_name = self.worktrees.get_project_name(project_path)
        window_name = make_window_name(project_name, feature_name)
        identity = {"project_name": project_name, "feature_name": feature_name}

        if self.registry.contains(project_name, feature_name):
            raise SessionExistsError(
                f"Session {window_name} already exists", context=identity
            )

        await self.tmux.ensure_session()
        if await self.tmux.window_exists(window_name):
            raise SessionExistsError(
                f"Tmux window {window_name} already exists", context=identity
            )

        logger.info("Creating session", **identity)
        worktree_path = await asyncio.to_thread(
            self.worktrees.create_worktree, project_path, feature_name
        )

        try:
            await self.tmux.create_window(
                window_name, worktree_path, self.config.window_startup_command
            )
        except TmuxError as e:
            logger.error("Window creation failed, removing worktree", exception=e, **identity)
            await self._rollback_worktree(project_path, feature_name)
            raise

        git_stats: GitStatus | None = None
        git_stats_updated_at: float | None = None
        probed = await self._probe(worktree_path)
        if probed is not None:
            git_stats, git_stats_updated_at = probed

        session = Session(
            project_name=project_name,
            feature_name=feature_name,
            project_path=project_path,
            worktree_path=worktree_path,
            branch=self.worktrees.branch_for(feature_name),
            is_active=True,
            git_stats=git_stats,
            git_stats_updated_at=git_stats_updated_at,
        )
        await self.registry.upsert(session)
        logger.info("Session created", worktree_path=str(worktree_path), **identity)
        return session

    @log_performance(LogContext.SESSION)
    async def delete_session(self, project_name: str, feature_name: str) -> bool:
        """Stash work, remove the worktree and branch, then kill the window.

        Returns:
            False if the identity is not registered

        Raises:
            SessionError: If teardown only partly succeeded; the record is kept
        """
        session = self.registry.get(project_name, feature_name)
        if session is None:
            logger.debug(
                "Session not found, nothing to delete",
                project_name=project_name,
                feature_name=feature_name,
            )
            return False

        identity = {"project_name": project_name, "feature_name": feature_name}
        logger.info("Deleting session", **identity)
        errors: list[str] = []

        try:
            await asyncio.to_thread(self.worktrees.stash_changes, session.worktree_path)
            await asyncio.to_thread(
                self.worktrees.remove_worktree, session.project_path, feature_name
            )
        except WorktreeError as e:
            logger.error("Failed to clean up git resources", exception=e, **identity)
            errors.append(e.message)

        window_gone = False
        try:
            await self.tmux.kill_window(session.window_name)
            window_gone = True
        except TmuxError as e:
            logger.error("Failed to kill tmux window", exception=e, **identity)
            errors.append(e.message)

        if errors:
            if window_gone:
                await self.registry.update(
                    project_name,
                    feature_name,
                    lambda current: replace(current, is_active=False),
                )
            raise SessionError(
                f"Failed to delete session {session.window_name}: " + "; ".join(errors),
                context={**identity, "errors": errors},
            )

        await self.registry.remove(project_name, feature_name)
        logger.info("Session deleted", **identity)
        return True

    async def sync_with_tmux(self) -> list[Session]:
        """Reconcile the registry with the windows of the managed tmux session.

        Windows named ``project:feature`` whose pane sits in
        ``<project>/<worktree_dir>/<feature>`` are registered as active;
        registered sessions without a window are marked inactive.

        Raises:
            TmuxError: If tmux cannot be queried
        """
        windows = await self.tmux.list_windows()
        window_names = {window.name for window in windows}

        for window in windows:
            discovered = self._session_from_window(window)
            if discovered is None:
                continue
            updated = await self.registry.update(
                discovered.project_name,
                discovered.feature_name,
                lambda current: replace(current, is_active=True),
            )
            if updated is None:
                await self.registry.upsert(discovered)
                logger.info(
                    "Discovered session from tmux",
                    project_name=discovered.project_name,
                    feature_name=discovered.feature_name,
                )

        for session in self.registry.list():
            if session.window_name not in window_names and session.is_active:
                await self.registry.update(
                    session.project_name,
                    session.feature_name,
                    lambda current: replace(current, is_active=False),
                )

        sessions = self.registry.list()
        logger.debug("Synced sessions with tmux", session_count=len(sessions))
        return sessions

    # Window interaction

    async def list_windows(self) -> list[WindowInfo]:
        """Windows of the managed tmux session, managed or not."""
        return await self.tmux.list_windows()

    async def send_command(self, project_name: str, feature_name: str, command: str) -> None:
        """Type a command into the session's window.

        Raises:
            SessionNotFoundError: If the identity is not registered
            SessionValidationError: If the command is empty
        """
        session = self._require(project_name, feature_name)
        if not command or not command.strip():
            raise SessionValidationError("Command must not be empty")
        await self.tmux.send_keys(session.window_name, command)

    async def get_session_output(
        self, project_name: str, feature_name: str, lines: int | None = None
    ) -> str:
        """Capture the pane contents of the session's window.

        Raises:
            SessionNotFoundError: If the identity is not registered
        """
        session = self._require(project_name, feature_name)
        return await self.tmux.capture_output(session.window_name, lines)

    # Search and status

    async def search_sessions(
        self,
        text: str | None = None,
        sort_by: SearchSort = SearchSort.SCORE,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Rank registered sessions against a case-insensitive search term.

        Project name matches weigh most, then feature name, branch and paths.
        Sessions that match nothing are left out; without a term every
        session matches.

        Raises:
            SessionValidationError: If the term is too long
        """
        if text is not None and len(text) > MAX_SEARCH_TEXT_LENGTH:
            raise SessionValidationError(
                f"Search text must be at most {MAX_SEARCH_TEXT_LENGTH} characters",
                context={"length": len(text)},
            )
        text = text.strip() if text else None

        results = []
        for session in self.registry.list():
            score = match_score(session, text)
            if score > 0:
                results.append(SearchResult(session=session, match_score=score))
        if sort_by is SearchSort.NAME:
            results.sort(key=lambda result: result.session.key)
        else:
            results.sort(key=lambda result: (-result.match_score, result.session.key))

        logger.debug("Searched sessions", text=text, result_count=len(results))
        return results[:limit] if limit is not None else results

    async def check_health(self, session: Session) -> SessionHealthCheck:
        """Check the window, the paths and the git state behind a session."""
        issues: list[str] = []

        try:
            window_exists = await self.tmux.window_exists(session.window_name)
        except TmuxError as e:
            window_exists = False
            issues.append(f"Could not query tmux: {e.message}")
        else:
            if not window_exists:
                issues.append("Tmux window does not exist")

        path_accessible = session.project_path.is_dir() and session.worktree_path.is_dir()
        if not path_accessible:
            issues.append("Project or worktree path is not accessible")

        git_worktree_valid = path_accessible and await self._git_check(
            session.worktree_path, "git rev-parse --git-dir"
        )
        if not git_worktree_valid:
            issues.append("Git worktree is invalid or corrupted")

        branch_valid = git_worktree_valid and await self._git_check(
            session.worktree_path, "git rev-parse --verify HEAD"
        )
        if not branch_valid:
            issues.append("Branch is invalid or has no commits")

        health = SessionHealthCheck(
            tmux_window_exists=window_exists,
            path_accessible=path_accessible,
            git_worktree_valid=git_worktree_valid,
            branch_valid=branch_valid,
            issues=tuple(issues),
        )
        if not health.is_healthy:
            logger.warning(
                "Session is unhealthy",
                project_name=session.project_name,
                feature_name=session.feature_name,
                issues=list(health.issues),
            )
        return health

    async def get_session_status(
        self, project_name: str, feature_name: str
    ) -> SessionStatusReport:
        """Refresh a session, check its health and classify it.

        Unknown identities get a NOT_FOUND report rather than an error.
        """
        session = await self.get_session(project_name, feature_name)
        if session is None:
            return SessionStatusReport(status=SessionStatus.NOT_FOUND)

        health = await self.check_health(session)
        return SessionStatusReport(
            status=determine_status(session, health),
            session=session,
            health_check=health,
        )

    async def find_pull_request(
        self, project_name: str, feature_name: str
    ) -> PullRequestLookupResult:
        """Look up the pull request opened from the session's branch.

        Raises:
            SessionNotFoundError: If the identity is not registered
        """
        session = self._require(project_name, feature_name)
        return await self.pull_requests.find(session)

    # Internals

    def _require(self, project_name: str, feature_name: str) -> Session:
        session = self.registry.get(project_name, feature_name)
        if session is None:
            raise SessionNotFoundError(
                f"Session {make_window_name(project_name, feature_name)} not found",
                context={"project_name": project_name, "feature_name": feature_name},
            )
        return session

    def _is_stale(self, session: Session) -> bool:
        if session.git_stats_updated_at is None:
            return True
        age = self.clock() - session.git_stats_updated_at
        return age >= self.config.git_status_freshness_seconds

    async def _refresh(self, session: Session) -> Session | None:
        is_active = await self._window_active(session)
        probed = await self._probe(session.worktree_path) if self._is_stale(session) else None

        def mutate(current: Session) -> Session:
            changes: dict = {}
            if is_active is not None:
                changes["is_active"] = is_active
            if probed is not None:
                changes["git_stats"], changes["git_stats_updated_at"] = probed
            return replace(current, **changes)

        return await self.registry.update(session.project_name, session.feature_name, mutate)

    async def _window_active(self, session: Session) -> bool | None:
        try:
            return await self.tmux.window_exists(session.window_name)
        except TmuxError as e:
            logger.warning(
                "Could not check tmux window, keeping previous state",
                window_name=session.window_name,
                error=e.message,
            )
            return None

    async def _probe(self, worktree_path: Path) -> tuple[GitStatus, float] | None:
        try:
            status = await self.probe.probe(worktree_path)
        except GitStatusError as e:
            logger.warning(
                "Git status probe failed, keeping previous status",
                worktree_path=str(worktree_path),
                error=e.message,
            )
            return None
        return status, self.clock()

    async def _git_check(self, worktree_path: Path, command: str) -> bool:
        result = await self.executor.execute(
            command,
            timeout=self.config.git_command_timeout,
            suppress_errors=True,
            cwd=worktree_path,
        )
        return result.succeeded

    async def _rollback_worktree(self, project_path: Path, feature_name: str) -> None:
        try:
            await asyncio.to_thread(
                self.worktrees.remove_worktree, project_path, feature_name
            )
        except WorktreeError as e:
            logger.error(
                "Failed to roll back worktree",
                exception=e,
                project_path=str(project_path),
                feature_name=feature_name,
            )

    def _session_from_window(self, window: WindowInfo) -> Session | None:
        identity = parse_window_name(window.name)
        if identity is None or not window.pane_path:
            return None

        project_name, feature_name = identity
        pane_path = Path(window.pane_path)
        suffix = Path(self.config.worktree_dir, feature_name).parts
        if len(pane_path.parts) <= len(suffix) or pane_path.parts[-len(suffix):] != suffix:
            logger.debug(
                "Window is not inside a feature worktree, skipping",
                window_name=window.name,
                pane_path=window.pane_path,
            )
            return None

        project_path = Path(*pane_path.parts[: -len(suffix)])
        try:
            return Session(
                project_name=project_name,
                feature_name=feature_name,
                project_path=project_path,
                worktree_path=pane_path,
                branch=self.worktrees.branch_for(feature_name),
                is_active=True,
            )
        except SessionValidationError as e:
            logger.debug(
                "Skipping window with unusable paths",
                window_name=window.name,
                error=e.message,
            )
            return None
