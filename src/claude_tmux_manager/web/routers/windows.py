"""
Window API endpoints: listing, sending commands and opening terminals.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ...core.session_manager import SessionManager
from ...core.terminal import TerminalLauncher, TerminalOpened
from ..dependencies import get_session_manager, get_terminal_launcher
from ..exceptions import (
    SessionNotFoundAPIError,
    TerminalOperationError,
    TmuxManagerAPIException,
)
from ..logging_utils import api_logger, track_api_performance
from ..schemas import (
    APIResponse,
    CommandRequest,
    PullRequestResponse,
    TerminalFallbackResponse,
    TerminalOpenedResponse,
    WindowListResponse,
    WindowResponse,
)

router = APIRouter()


@router.get("", response_model=WindowListResponse)
@track_api_performance()
async def list_windows(
    manager: SessionManager = Depends(get_session_manager),
) -> WindowListResponse:
    """List windows of the managed tmux session."""
    windows = await manager.list_windows()
    return WindowListResponse(windows=[WindowResponse.from_window(w) for w in windows])


@router.post("/{project}/{feature}/command", response_model=APIResponse)
@track_api_performance()
async def send_command(
    project: str,
    feature: str,
    command_request: CommandRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> APIResponse:
    """
    Type a command into the session window and press Enter.

    - **command**: Non-empty command line
    """
    await manager.send_command(project, feature, command_request.command)
    return APIResponse(success=True, message=f"Command sent to {project}:{feature}")


@router.post(
    "/{project}/{feature}/terminal",
    response_model=TerminalOpenedResponse,
    responses={
        status.HTTP_202_ACCEPTED: {"model": TerminalFallbackResponse},
        status.HTTP_404_NOT_FOUND: {"description": "Session not found"},
    },
)
@track_api_performance()
async def open_terminal(
    project: str,
    feature: str,
    manager: SessionManager = Depends(get_session_manager),
    launcher: TerminalLauncher = Depends(get_terminal_launcher),
) -> TerminalOpenedResponse | JSONResponse:
    """
    Open a terminal attached to the session's tmux window.

    Returns 200 when a terminal was launched, or 202 with manual attach
    instructions when automatic launching failed.
    """
    try:
        session = await manager.get_session(project, feature)
        if session is None:
            raise SessionNotFoundAPIError(project, feature)
        outcome = await launcher.open_terminal(session)
    except TmuxManagerAPIException:
        raise
    except Exception as e:
        api_logger.error(
            "Failed to open terminal", exception=e, project=project, feature=feature
        )
        raise TerminalOperationError(str(e)) from e

    if isinstance(outcome, TerminalOpened):
        return TerminalOpenedResponse(
            message=f"Terminal opened for {outcome.window_name}",
            window_name=outcome.window_name,
        )

    body = TerminalFallbackResponse.from_outcome(outcome)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.get(
    "/{project}/{feature}/pr",
    response_model=PullRequestResponse,
    response_model_exclude_none=True,
)
@track_api_performance()
async def get_pull_request(
    project: str,
    feature: str,
    manager: SessionManager = Depends(get_session_manager),
) -> PullRequestResponse:
    """
    Find the pull request opened from the session's branch.

    Without one, returns a link to create it; when the GitHub CLI is
    unavailable, `fallback` is set and `searchUrl` links to a search instead.
    """
    lookup = await manager.find_pull_request(project, feature)
    return PullRequestResponse.from_lookup(lookup)
