"""
Session management API endpoints.

Sessions are addressed by ``/{project}/{feature}``; unknown identities are
reported as 404 before anything touches git or tmux.
"""

from collections import Counter

from fastapi import APIRouter, Depends, Query, status

from ...core.enums import SearchSort
from ...core.models import determine_status
from ...core.session_manager import SessionManager
from ..dependencies import get_session_manager
from ..exceptions import SessionNotFoundAPIError
from ..logging_utils import api_logger, track_api_performance
from ..schemas import (
    APIResponse,
    Pagination,
    SearchAggregations,
    SearchResultResponse,
    SessionCreate,
    SessionCreateResponse,
    SessionListResponse,
    SessionOutputResponse,
    SessionResponse,
    SessionSearchResponse,
    SessionStatusResponse,
)

router = APIRouter()


@router.get("", response_model=SessionListResponse)
@track_api_performance()
async def list_sessions(
    project: str | None = Query(None),
    is_active: bool | None = Query(None, alias="isActive"),
    has_uncommitted_changes: bool | None = Query(None, alias="hasUncommittedChanges"),
    refresh: bool = Query(False),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionListResponse:
    """
    List sessions with optional filtering.

    - **project**: Only sessions of this project
    - **isActive**: Filter by tmux window presence
    - **hasUncommittedChanges**: Filter by git state; sessions without a
      status snapshot count as clean
    - **refresh**: Refresh activity and git status before listing
    """
    sessions = await manager.list_sessions(project, refresh=refresh)

    if is_active is not None:
        sessions = [s for s in sessions if s.is_active == is_active]
    if has_uncommitted_changes is not None:
        sessions = [
            s
            for s in sessions
            if (s.git_stats is not None and s.git_stats.has_uncommitted_changes)
            == has_uncommitted_changes
        ]

    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in sessions],
        total=len(sessions),
    )


@router.post(
    "", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED
)
@track_api_performance()
async def create_session(
    session_data: SessionCreate,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionCreateResponse:
    """
    Create a session: worktree, feature branch and tmux window.

    - **projectPath**: Path to the git repository
    - **featureName**: Lowercase kebab-case feature name
    """
    session = await manager.create_session(
        session_data.project_path, session_data.feature_name
    )
    return SessionCreateResponse(
        success=True,
        message=f"Session {session.window_name} created",
        session=SessionResponse.from_session(session),
    )


@router.post("/sync", response_model=SessionListResponse)
@track_api_performance()
async def sync_sessions(
    manager: SessionManager = Depends(get_session_manager),
) -> SessionListResponse:
    """Discover sessions from tmux windows and update activity."""
    sessions = await manager.sync_with_tmux()
    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in sessions],
        total=len(sessions),
    )


@router.get("/search", response_model=SessionSearchResponse)
@track_api_performance()
async def search_sessions(
    q: str | None = Query(None),
    sort_by: SearchSort = Query(SearchSort.SCORE, alias="sortBy"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionSearchResponse:
    """
    Search sessions by project, feature, branch and path.

    - **q**: Case-insensitive search term; no term returns no results
    - **sortBy**: `score` (best match first) or `name`
    - **limit** / **offset**: Page through the results
    """
    matches = await manager.search_sessions(q, sort_by) if q and q.strip() else []
    page = matches[offset : offset + limit]

    total = len(matches)
    average = round(sum(m.match_score for m in matches) / total, 2) if total else 0.0
    return SessionSearchResponse(
        results=[SearchResultResponse.from_result(m) for m in page],
        pagination=Pagination(
            limit=limit, offset=offset, total=total, has_more=offset + limit < total
        ),
        aggregations=SearchAggregations(
            total_matches=total,
            average_match_score=average,
            project_breakdown=dict(Counter(m.session.project_name for m in matches)),
            status_breakdown=dict(
                Counter(determine_status(m.session).value for m in matches)
            ),
        ),
    )


@router.get("/{project}/{feature}", response_model=SessionResponse)
@track_api_performance()
async def get_session(
    project: str,
    feature: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    """Get a session with refreshed activity and git status."""
    session = await manager.get_session(project, feature)
    if session is None:
        raise SessionNotFoundAPIError(project, feature)
    return SessionResponse.from_session(session)


@router.delete("/{project}/{feature}", response_model=APIResponse)
@track_api_performance()
async def delete_session(
    project: str,
    feature: str,
    manager: SessionManager = Depends(get_session_manager),
) -> APIResponse:
    """Delete a session, stashing uncommitted work first."""
    if not await manager.delete_session(project, feature):
        raise SessionNotFoundAPIError(project, feature)

    api_logger.info("Session deleted via API", project=project, feature=feature)
    return APIResponse(success=True, message=f"Session {project}:{feature} deleted")


@router.get("/{project}/{feature}/output", response_model=SessionOutputResponse)
@track_api_performance()
async def get_session_output(
    project: str,
    feature: str,
    lines: int | None = Query(None, ge=1, le=10000),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionOutputResponse:
    """
    Capture the session window's pane contents.

    - **lines**: Include this many lines of scrollback
    """
    output = await manager.get_session_output(project, feature, lines)
    return SessionOutputResponse(output=output)


@router.get("/{project}/{feature}/status", response_model=SessionStatusResponse)
@track_api_performance()
async def get_session_status(
    project: str,
    feature: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionStatusResponse:
    """Classify a session and report the health of its window, paths and git state."""
    report = await manager.get_session_status(project, feature)
    if not report.exists:
        raise SessionNotFoundAPIError(project, feature)
    return SessionStatusResponse.from_report(report)
