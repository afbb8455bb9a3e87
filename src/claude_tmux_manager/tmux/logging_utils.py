"""Logging utilities for tmux operations."""

from typing import Any

from ..utils.logging import LogContext, get_logger

tmux_logger = get_logger("claude_tmux_manager.tmux", LogContext.TMUX)


def log_window_operation(
    operation: str, window_name: str, status: str, context: dict[str, Any] | None = None
) -> None:
    """Log a window operation outcome."""
    message = f"Window {operation} {status} - {window_name}"
    if context:
        message += f" - {context}"

    if status == "error":
        tmux_logger.error(message, operation=operation, window_name=window_name)
    else:
        tmux_logger.info(message, operation=operation, window_name=window_name)


def log_session_created(session_name: str) -> None:
    """Log creation of the managed tmux session."""
    tmux_logger.info(f"Tmux session created - {session_name}", session_name=session_name)


def log_window_list(session_name: str, windows: list[str]) -> None:
    """Log window listing."""
    tmux_logger.debug(
        f"Windows listed - {session_name} count: {len(windows)}",
        session_name=session_name,
        window_count=len(windows),
    )
