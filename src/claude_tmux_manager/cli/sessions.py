"""Session management commands.

Sessions live in memory, so every command first discovers the existing
ones from the managed tmux session.
"""

import asyncio

import click

from ..core.enums import SearchSort
from ..utils.logging import LogContext, get_logger
from .utils import (
    CliError,
    error_handler,
    format_git_stats,
    get_session_manager,
    output_json,
    output_table,
    session_to_dict,
    success_message,
    wants_json,
)

logger = get_logger(__name__, LogContext.CLI)


@click.group()
def sessions() -> None:
    """Manage feature sessions."""
    pass


@sessions.command("list")
@click.option("--project", "-p", help="Only list sessions of this project")
@click.pass_context
@error_handler
def list_sessions(ctx: click.Context, project: str | None) -> None:
    """List sessions discovered from tmux."""
    manager = get_session_manager(ctx)

    async def _list():
        await manager.sync_with_tmux()
        return await manager.list_sessions(project, refresh=True)

    found = asyncio.run(_list())

    if wants_json(ctx):
        output_json({"sessions": [session_to_dict(s) for s in found], "total": len(found)})
        return

    output_table(
        ["Window", "Branch", "Active", "Git"],
        [
            [s.window_name, s.branch, "yes" if s.is_active else "no", format_git_stats(s)]
            for s in found
        ],
    )


@sessions.command()
@click.argument("project")
@click.argument("feature")
@click.pass_context
@error_handler
def show(ctx: click.Context, project: str, feature: str) -> None:
    """Show one session with fresh git status."""
    manager = get_session_manager(ctx)

    async def _show():
        await manager.sync_with_tmux()
        return await manager.get_session(project, feature)

    session = asyncio.run(_show())
    if session is None:
        raise CliError(f"Session {project}:{feature} not found")

    if wants_json(ctx):
        output_json(session_to_dict(session))
        return

    click.echo(f"Session: {session.window_name}")
    click.echo(f"  Project path: {session.project_path}")
    click.echo(f"  Worktree: {session.worktree_path}")
    click.echo(f"  Branch: {session.branch}")
    click.echo(f"  Active: {'yes' if session.is_active else 'no'}")
    click.echo(f"  Git: {format_git_stats(session)}")


@sessions.command()
@click.argument(
    "project_path", type=click.Path(exists=True, file_okay=False, resolve_path=True)
)
@click.argument("feature")
@click.pass_context
@error_handler
def create(ctx: click.Context, project_path: str, feature: str) -> None:
    """Create a worktree, branch and tmux window for FEATURE."""
    manager = get_session_manager(ctx)

    async def _create():
        await manager.sync_with_tmux()
        return await manager.create_session(project_path, feature)

    session = asyncio.run(_create())
    logger.info("Session created from CLI", window_name=session.window_name)

    if wants_json(ctx):
        output_json({"success": True, "session": session_to_dict(session)})
    else:
        success_message(f"Created session {session.window_name} at {session.worktree_path}")


@sessions.command()
@click.argument("project")
@click.argument("feature")
@click.pass_context
@error_handler
def delete(ctx: click.Context, project: str, feature: str) -> None:
    """Delete a session; uncommitted work is stashed first."""
    manager = get_session_manager(ctx)

    async def _delete():
        await manager.sync_with_tmux()
        return await manager.delete_session(project, feature)

    if not asyncio.run(_delete()):
        raise CliError(f"Session {project}:{feature} not found")

    if wants_json(ctx):
        output_json({"success": True, "message": f"Session {project}:{feature} deleted"})
    else:
        success_message(f"Deleted session {project}:{feature}")


@sessions.command()
@click.argument("text", required=False)
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice([s.value for s in SearchSort]),
    default=SearchSort.SCORE.value,
    show_default=True,
    help="Order results by match score or by name",
)
@click.option("--limit", "-n", type=click.IntRange(min=1), default=50, show_default=True)
@click.pass_context
@error_handler
def search(ctx: click.Context, text: str | None, sort_by: str, limit: int) -> None:
    """Search sessions by project, feature, branch or path."""
    manager = get_session_manager(ctx)

    async def _search():
        await manager.sync_with_tmux()
        return await manager.search_sessions(text, SearchSort(sort_by), limit)

    results = asyncio.run(_search())

    if wants_json(ctx):
        output_json(
            {
                "results": [
                    {**session_to_dict(r.session), "matchScore": r.match_score}
                    for r in results
                ],
                "total": len(results),
            }
        )
        return

    output_table(
        ["Window", "Branch", "Score"],
        [[r.session.window_name, r.session.branch, str(r.match_score)] for r in results],
    )


@sessions.command()
@click.argument("project")
@click.argument("feature")
@click.pass_context
@error_handler
def status(ctx: click.Context, project: str, feature: str) -> None:
    """Check a session's health and classify it."""
    manager = get_session_manager(ctx)

    async def _status():
        await manager.sync_with_tmux()
        return await manager.get_session_status(project, feature)

    report = asyncio.run(_status())
    if not report.exists:
        raise CliError(f"Session {project}:{feature} not found")

    health = report.health_check
    if wants_json(ctx):
        output_json(
            {
                "status": report.status.value,
                "session": session_to_dict(report.session),
                "healthCheck": {
                    "isHealthy": health.is_healthy,
                    "healthScore": health.health_score,
                    "issues": list(health.issues),
                },
            }
        )
        return

    click.echo(f"Session: {report.session.window_name}")
    click.echo(f"  Status: {report.status.value}")
    click.echo(f"  Health: {health.health_score}/100")
    for issue in health.issues:
        click.echo(click.style(f"  ! {issue}", fg="yellow"))
