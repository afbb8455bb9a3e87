"""
FastAPI dependencies.

Components are built once per application and kept on ``app.state``;
tests inject their own through ``create_app``.
"""

from typing import cast

from fastapi import Request, status

from ..config.loader import ManagerConfig
from ..core.session_manager import SessionManager
from ..core.terminal import TerminalLauncher
from .exceptions import TmuxManagerAPIException
from .logging_utils import api_logger


def _from_state(request: Request, name: str) -> object:
    component = getattr(request.app.state, name, None)
    if component is None:
        api_logger.error("Component not found in application state", component=name)
        raise TmuxManagerAPIException(
            "Internal server error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"{name} not available",
        )
    return component


async def get_config(request: Request) -> ManagerConfig:
    return cast(ManagerConfig, _from_state(request, "config"))


async def get_session_manager(request: Request) -> SessionManager:
    return cast(SessionManager, _from_state(request, "session_manager"))


async def get_terminal_launcher(request: Request) -> TerminalLauncher:
    return cast(TerminalLauncher, _from_state(request, "terminal_launcher"))
