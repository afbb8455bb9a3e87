"""FastAPI web application for claude-tmux-manager."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.loader import ManagerConfig, load_config
from ..core.session_manager import SessionManager
from ..core.terminal import TerminalLauncher
from ..utils.logging import TmuxError, TmuxManagerError
from ..utils.process import CommandExecutor
from .exceptions import TmuxManagerAPIException, to_api_exception
from .logging_utils import api_logger
from .middleware import LoggingMiddleware, RequestIDMiddleware
from .routers import sessions_router, windows_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build missing components and discover existing sessions."""
    api_logger.info("Starting claude-tmux-manager API server")

    if getattr(app.state, "config", None) is None:
        app.state.config = load_config()
    config: ManagerConfig = app.state.config

    if getattr(app.state, "session_manager", None) is None:
        app.state.session_manager = SessionManager(config)
    if getattr(app.state, "terminal_launcher", None) is None:
        app.state.terminal_launcher = TerminalLauncher(
            CommandExecutor(default_timeout=config.terminal_launch_timeout),
            config.tmux_session_name,
            timeout=config.terminal_launch_timeout,
        )

    try:
        sessions = await app.state.session_manager.sync_with_tmux()
        api_logger.info("Discovered sessions from tmux", session_count=len(sessions))
    except TmuxError as e:
        api_logger.warning("Could not sync sessions with tmux", error=e.message)

    yield

    api_logger.info("claude-tmux-manager API server shutdown complete")


def create_app(
    config: ManagerConfig | None = None,
    session_manager: SessionManager | None = None,
    terminal_launcher: TerminalLauncher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Components passed in are used as-is; the rest are built at startup.
    """
    app = FastAPI(
        title="claude-tmux-manager API",
        description="Manage feature sessions backed by git worktrees and tmux windows",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.session_manager = session_manager
    app.state.terminal_launcher = terminal_launcher

    # Starlette runs the last added middleware first
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(TmuxManagerAPIException)
    async def api_exception_handler(
        request: Request, exc: TmuxManagerAPIException
    ) -> JSONResponse:
        """Handle custom API exceptions."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(TmuxManagerError)
    async def domain_exception_handler(
        request: Request, exc: TmuxManagerError
    ) -> JSONResponse:
        """Map domain errors raised by the session manager."""
        api_exc = to_api_exception(exc)
        api_logger.warning(
            "Request failed",
            path=str(request.url.path),
            error_type=type(exc).__name__,
            error=exc.message,
            status_code=api_exc.status_code,
        )
        return JSONResponse(status_code=api_exc.status_code, content=api_exc.to_content())

    app.include_router(sessions_router, prefix="/api/sessions", tags=["sessions"])
    app.include_router(windows_router, prefix="/api/windows", tags=["windows"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Create the application instance
app = create_app()
