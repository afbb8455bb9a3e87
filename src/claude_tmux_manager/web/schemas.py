"""Pydantic schemas for API request/response validation.

JSON bodies use camelCase keys; Python code uses the snake_case field names.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.models import (
    GitStatus,
    SearchResult,
    Session,
    SessionHealthCheck,
    SessionStatusReport,
    WindowInfo,
)
from ..core.pull_requests import PullRequestFound, PullRequestLookupResult
from ..core.terminal import TerminalFallback
from ..utils.process import CommandResult


class CamelModel(BaseModel):
    """Base schema serializing with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class APIResponse(CamelModel):
    """Generic success/failure response."""

    success: bool
    message: str


class GitStatusResponse(CamelModel):
    branch: str
    ahead: int
    behind: int
    staged: int
    unstaged: int
    untracked: int
    has_uncommitted_changes: bool

    @classmethod
    def from_status(cls, status: GitStatus) -> "GitStatusResponse":
        return cls(
            branch=status.branch,
            ahead=status.ahead,
            behind=status.behind,
            staged=status.staged,
            unstaged=status.unstaged,
            untracked=status.untracked,
            has_uncommitted_changes=status.has_uncommitted_changes,
        )


class SessionResponse(CamelModel):
    """Schema for session responses."""

    project_name: str
    feature_name: str
    window_name: str
    project_path: str
    worktree_path: str
    branch: str
    is_active: bool
    git_stats: GitStatusResponse | None = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            project_name=session.project_name,
            feature_name=session.feature_name,
            window_name=session.window_name,
            project_path=str(session.project_path),
            worktree_path=str(session.worktree_path),
            branch=session.branch,
            is_active=session.is_active,
            git_stats=(
                GitStatusResponse.from_status(session.git_stats)
                if session.git_stats is not None
                else None
            ),
        )


class SessionListResponse(CamelModel):
    sessions: list[SessionResponse]
    total: int


class SessionCreate(CamelModel):
    """Schema for creating sessions."""

    project_path: str = Field(..., min_length=1)
    feature_name: str = Field(..., min_length=1)


class SessionCreateResponse(APIResponse):
    session: SessionResponse


class SessionOutputResponse(CamelModel):
    output: str


class SearchResultResponse(SessionResponse):
    match_score: int

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultResponse":
        return cls(
            **SessionResponse.from_session(result.session).model_dump(),
            match_score=result.match_score,
        )


class Pagination(CamelModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class SearchAggregations(CamelModel):
    total_matches: int
    average_match_score: float
    project_breakdown: dict[str, int]
    status_breakdown: dict[str, int]


class SessionSearchResponse(CamelModel):
    """Paginated search results with counts over all matches."""

    results: list[SearchResultResponse]
    pagination: Pagination
    aggregations: SearchAggregations


class HealthCheckResponse(CamelModel):
    tmux_window_exists: bool
    path_accessible: bool
    git_worktree_valid: bool
    branch_valid: bool
    is_healthy: bool
    health_score: int
    issues: list[str]

    @classmethod
    def from_check(cls, check: SessionHealthCheck) -> "HealthCheckResponse":
        return cls(
            tmux_window_exists=check.tmux_window_exists,
            path_accessible=check.path_accessible,
            git_worktree_valid=check.git_worktree_valid,
            branch_valid=check.branch_valid,
            is_healthy=check.is_healthy,
            health_score=check.health_score,
            issues=list(check.issues),
        )


class SessionStatusResponse(CamelModel):
    status: str
    session: SessionResponse
    health_check: HealthCheckResponse

    @classmethod
    def from_report(cls, report: SessionStatusReport) -> "SessionStatusResponse":
        return cls(
            status=report.status.value,
            session=SessionResponse.from_session(report.session),
            health_check=HealthCheckResponse.from_check(report.health_check),
        )


class PullRequestInfo(CamelModel):
    number: int
    url: str
    title: str
    state: str


class PullRequestResponse(CamelModel):
    """Pull request of a session branch.

    Without a pull request, ``createUrl`` opens a new one; ``searchUrl`` with
    ``fallback`` set means the GitHub CLI was unavailable.
    """

    found: bool
    pr: PullRequestInfo | None = None
    branch_name: str | None = None
    create_url: str | None = None
    fallback: bool | None = None
    search_url: str | None = None

    @classmethod
    def from_lookup(cls, lookup: PullRequestLookupResult) -> "PullRequestResponse":
        if isinstance(lookup, PullRequestFound):
            return cls(
                found=True,
                pr=PullRequestInfo(
                    number=lookup.number,
                    url=lookup.url,
                    title=lookup.title,
                    state=lookup.state,
                ),
            )
        return cls(
            found=False,
            branch_name=lookup.branch_name,
            create_url=lookup.create_url,
            fallback=True if lookup.fallback else None,
            search_url=lookup.search_url,
        )


class WindowResponse(CamelModel):
    name: str
    pane_path: str | None = None

    @classmethod
    def from_window(cls, window: WindowInfo) -> "WindowResponse":
        return cls(name=window.name, pane_path=window.pane_path)


class WindowListResponse(CamelModel):
    windows: list[WindowResponse]


class CommandRequest(CamelModel):
    """Command typed into a session window."""

    command: str


class TerminalOpenedResponse(CamelModel):
    success: bool = True
    message: str
    window_name: str


class FallbackDetails(CamelModel):
    message: str
    session_name: str
    window_name: str
    instructions: list[str]


class CommandResultDebug(CamelModel):
    exit_code: int
    stderr: str
    stdout: str

    @classmethod
    def from_result(cls, result: CommandResult) -> "CommandResultDebug":
        return cls(exit_code=result.exit_code, stderr=result.stderr, stdout=result.stdout)


class TerminalFallbackResponse(CamelModel):
    """Body of a 202 response: automatic launch failed, attach manually."""

    success: bool = False
    error: str
    fallback: FallbackDetails
    debug: CommandResultDebug | None = None

    @classmethod
    def from_outcome(cls, outcome: TerminalFallback) -> "TerminalFallbackResponse":
        return cls(
            error=outcome.error,
            fallback=FallbackDetails(
                message=outcome.message,
                session_name=outcome.session_name,
                window_name=outcome.window_name,
                instructions=list(outcome.instructions),
            ),
            debug=(
                CommandResultDebug.from_result(outcome.debug)
                if outcome.debug is not None
                else None
            ),
        )


class HealthResponse(BaseModel):
    status: str
