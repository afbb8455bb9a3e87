"""Session, git status and tmux window records."""

import re
from dataclasses import dataclass
from pathlib import Path

from ..utils.logging import SessionValidationError
from .enums import SessionStatus

WINDOW_NAME_SEPARATOR = ":"
MAX_NAME_LENGTH = 100

PROJECT_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*[a-zA-Z0-9]$|^[a-zA-Z0-9]$")
FEATURE_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$")


@dataclass(frozen=True)
class GitStatus:
    """Snapshot of a worktree's git state."""

    branch: str
    ahead: int = 0
    behind: int = 0
    staged: int = 0
    unstaged: int = 0
    untracked: int = 0

    def __post_init__(self) -> None:
        for field_name in ("ahead", "behind", "staged", "unstaged", "untracked"):
            if getattr(self, field_name) < 0:
                raise ValueError(f"{field_name} must be non-negative")

    @property
    def has_uncommitted_changes(self) -> bool:
        return self.staged + self.unstaged + self.untracked > 0


@dataclass(frozen=True)
class WindowInfo:
    """A window inside the managed tmux session."""

    name: str
    pane_path: str | None = None


@dataclass(frozen=True)
class Session:
    """A development session: one git worktree plus one tmux window.

    Records are immutable; updates go through ``dataclasses.replace`` and are
    written back to the registry as a whole.
    """

    project_name: str
    feature_name: str
    project_path: Path
    worktree_path: Path
    branch: str
    is_active: bool = False
    git_stats: GitStatus | None = None
    git_stats_updated_at: float | None = None

    def __post_init__(self) -> None:
        project_path = Path(self.project_path)
        worktree_path = Path(self.worktree_path)
        if not project_path.is_absolute() or not worktree_path.is_absolute():
            raise SessionValidationError(
                "Session paths must be absolute",
                context={
                    "project_path": str(project_path),
                    "worktree_path": str(worktree_path),
                },
            )
        if worktree_path == project_path or not worktree_path.is_relative_to(
            project_path
        ):
            raise SessionValidationError(
                f"Worktree {worktree_path} is not inside project {project_path}",
                context={
                    "project_path": str(project_path),
                    "worktree_path": str(worktree_path),
                },
            )
        object.__setattr__(self, "project_path", project_path)
        object.__setattr__(self, "worktree_path", worktree_path)

    @property
    def key(self) -> tuple[str, str]:
        return (self.project_name, self.feature_name)

    @property
    def window_name(self) -> str:
        return make_window_name(self.project_name, self.feature_name)


def make_window_name(project_name: str, feature_name: str) -> str:
    """Build the tmux window name for a session identity."""
    return f"{project_name}{WINDOW_NAME_SEPARATOR}{feature_name}"


def parse_window_name(window_name: str) -> tuple[str, str] | None:
    """Split ``project:feature`` on the first separator.

    Returns None when the name does not follow the session naming scheme.
    """
    if WINDOW_NAME_SEPARATOR not in window_name:
        return None
    project_name, feature_name = window_name.split(WINDOW_NAME_SEPARATOR, 1)
    project_name = project_name.strip()
    feature_name = feature_name.strip()
    if not is_valid_project_name(project_name) or not is_valid_feature_name(
        feature_name
    ):
        return None
    return project_name, feature_name


def is_valid_project_name(project_name: str) -> bool:
    return (
        0 < len(project_name) <= MAX_NAME_LENGTH
        and PROJECT_NAME_PATTERN.match(project_name) is not None
    )


def is_valid_feature_name(feature_name: str) -> bool:
    return (
        0 < len(feature_name) <= MAX_NAME_LENGTH
        and FEATURE_NAME_PATTERN.match(feature_name) is not None
    )


def validate_feature_name(feature_name: str) -> None:
    """Raise SessionValidationError unless the feature name is lowercase kebab-case."""
    if not feature_name:
        raise SessionValidationError("Feature name must be a non-empty string")
    if len(feature_name) > MAX_NAME_LENGTH:
        raise SessionValidationError(
            f"Feature name must be {MAX_NAME_LENGTH} characters or less",
            context={"feature_name": feature_name},
        )
    if not is_valid_feature_name(feature_name):
        raise SessionValidationError(
            "Feature name must be lowercase, start and end with alphanumeric, "
            "and contain only alphanumeric and hyphens",
            context={"feature_name": feature_name},
        )


def validate_project_name(project_name: str) -> None:
    """Raise SessionValidationError for unusable project names."""
    if not is_valid_project_name(project_name):
        raise SessionValidationError(
            f"Invalid project name: {project_name!r}",
            context={"project_name": project_name},
        )


def derive_worktree_path(
    project_path: Path, feature_name: str, worktree_dir: str = ".worktrees"
) -> Path:
    """Deterministic worktree location for a feature of a project."""
    return Path(project_path) / worktree_dir / feature_name


@dataclass(frozen=True)
class SessionHealthCheck:
    """Result of checking that a session's window, paths and git state are usable."""

    tmux_window_exists: bool
    path_accessible: bool
    git_worktree_valid: bool
    branch_valid: bool
    issues: tuple[str, ...] = ()

    @property
    def is_healthy(self) -> bool:
        return not self.issues and all(
            (
                self.tmux_window_exists,
                self.path_accessible,
                self.git_worktree_valid,
                self.branch_valid,
            )
        )

    @property
    def health_score(self) -> int:
        """0 to 100, a quarter for every passing check."""
        passed = (
            self.tmux_window_exists,
            self.path_accessible,
            self.git_worktree_valid,
            self.branch_valid,
        )
        return 25 * sum(passed)


@dataclass(frozen=True)
class SessionStatusReport:
    status: SessionStatus
    session: Session | None = None
    health_check: SessionHealthCheck | None = None

    @property
    def exists(self) -> bool:
        return self.session is not None

    @property
    def is_healthy(self) -> bool:
        return self.health_check is not None and self.health_check.is_healthy


@dataclass(frozen=True)
class SearchResult:
    session: Session
    match_score: int


# Weights of a search term found in each session attribute
SEARCH_WEIGHTS = (
    ("project_name", 50),
    ("feature_name", 40),
    ("branch", 20),
)
SEARCH_PATH_WEIGHT = 10
MAX_SEARCH_TEXT_LENGTH = 500


def match_score(session: Session, text: str | None) -> int:
    """Relevance of a session for a case-insensitive search term.

    Without a term every session matches with score 100.
    """
    if not text:
        return 100

    term = text.lower()
    score = sum(
        weight
        for attribute, weight in SEARCH_WEIGHTS
        if term in getattr(session, attribute).lower()
    )
    if term in str(session.project_path).lower() or term in str(
        session.worktree_path
    ).lower():
        score += SEARCH_PATH_WEIGHT
    return score


def determine_status(
    session: Session, health_check: SessionHealthCheck | None = None
) -> SessionStatus:
    """Classify a session.

    Unhealthy sessions win over everything; then commits ahead with a clean
    tree mean ready for a pull request; uncommitted changes mean active.
    Without a health check, a session without a window counts as idle.
    """
    if health_check is not None and not health_check.is_healthy:
        return SessionStatus.UNHEALTHY
    if health_check is None and not session.is_active:
        return SessionStatus.IDLE

    stats = session.git_stats
    if stats is None:
        return SessionStatus.IDLE
    if stats.ahead > 0 and not stats.has_uncommitted_changes:
        return SessionStatus.READY_FOR_PR
    if stats.has_uncommitted_changes:
        return SessionStatus.ACTIVE
    return SessionStatus.IDLE
