"""CLI utilities for output formatting and common functionality."""

import json
import sys
from collections.abc import Callable
from functools import wraps
from typing import Any

import click

from ..config.loader import ManagerConfig, load_config
from ..core.models import Session
from ..core.session_manager import SessionManager
from ..utils.logging import ConfigurationError, TmuxManagerError, setup_logging


class CliError(Exception):
    """Exception for CLI errors."""

    def __init__(self, message: str, exit_code: int = 1):
        """Initialize CLI error.

        Args:
            message: Error message
            exit_code: Exit code for the CLI
        """
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


def error_handler(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report CLI and domain errors on stderr and exit non-zero."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (CliError, TmuxManagerError) as e:
            exit_code = e.exit_code if isinstance(e, CliError) else 1
            click.secho(f"Error: {e.message}", fg="red", err=True)
            sys.exit(exit_code)

    return wrapper


def success_message(message: str) -> None:
    """Display a success message."""
    click.echo(click.style(f"✓ {message}", fg="green"))


def output_json(data: dict[str, Any]) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def output_table(headers: list[str], rows: list[list[str]]) -> None:
    """Print rows as a left-aligned table sized to the widest cell."""
    if not rows:
        click.echo("No data to display")
        return

    widths = [
        max(len(str(cell)) for cell in column)
        for column in zip(headers, *rows, strict=False)
    ]
    lines = [
        " | ".join(str(cell).ljust(width) for cell, width in zip(row, widths, strict=False))
        for row in [headers, *rows]
    ]
    click.echo(lines[0])
    click.echo("-" * len(lines[0]))
    click.echo("\n".join(lines[1:]))


def wants_json(ctx: click.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json"))


def get_config(ctx: click.Context) -> ManagerConfig:
    """Load configuration once per invocation and set up logging."""
    ctx.ensure_object(dict)
    if ctx.obj.get("loaded_config") is None:
        try:
            config = load_config(ctx.obj.get("config"), ctx.obj.get("cli_overrides"))
        except ConfigurationError as e:
            raise CliError(e.message) from e
        setup_logging(
            ctx.obj.get("log_level") or "WARNING",
            log_file=None,
            enable_structured=config.structured_logging,
        )
        ctx.obj["loaded_config"] = config
    return ctx.obj["loaded_config"]


def get_session_manager(ctx: click.Context) -> SessionManager:
    """Session manager for this invocation; tests may preset ``ctx.obj``."""
    ctx.ensure_object(dict)
    if ctx.obj.get("session_manager") is None:
        ctx.obj["session_manager"] = SessionManager(get_config(ctx))
    return ctx.obj["session_manager"]


def session_to_dict(session: Session) -> dict[str, Any]:
    from ..web.schemas import SessionResponse

    return SessionResponse.from_session(session).model_dump(mode="json", by_alias=True)


def format_git_stats(session: Session) -> str:
    stats = session.git_stats
    if stats is None:
        return "unknown"
    if not stats.has_uncommitted_changes:
        summary = "clean"
    else:
        summary = f"{stats.staged} staged, {stats.unstaged} unstaged, {stats.untracked} untracked"
    if stats.ahead or stats.behind:
        summary += f" (ahead {stats.ahead}, behind {stats.behind})"
    return summary
