"""Terminal commands."""

import asyncio

import click

from ..core.terminal import TerminalLauncher, TerminalOpened
from ..utils.process import CommandExecutor
from .utils import (
    CliError,
    error_handler,
    get_config,
    get_session_manager,
    output_json,
    success_message,
    wants_json,
)


@click.group()
def terminal() -> None:
    """Open terminals attached to session windows."""
    pass


@terminal.command("open")
@click.argument("project")
@click.argument("feature")
@click.pass_context
@error_handler
def open_terminal(ctx: click.Context, project: str, feature: str) -> None:
    """Open a terminal attached to the window of PROJECT:FEATURE."""
    manager = get_session_manager(ctx)
    launcher = ctx.obj.get("terminal_launcher")
    if launcher is None:
        config = get_config(ctx)
        launcher = TerminalLauncher(
            CommandExecutor(default_timeout=config.terminal_launch_timeout),
            config.tmux_session_name,
            timeout=config.terminal_launch_timeout,
        )

    async def _open():
        await manager.sync_with_tmux()
        session = await manager.get_session(project, feature)
        if session is None:
            return None
        return await launcher.open_terminal(session)

    outcome = asyncio.run(_open())
    if outcome is None:
        raise CliError(f"Session {project}:{feature} not found")

    if isinstance(outcome, TerminalOpened):
        if wants_json(ctx):
            output_json({"success": True, "windowName": outcome.window_name})
        else:
            success_message(f"Terminal opened for {outcome.window_name}")
        return

    if wants_json(ctx):
        from ..web.schemas import TerminalFallbackResponse

        body = TerminalFallbackResponse.from_outcome(outcome)
        output_json(body.model_dump(mode="json", by_alias=True, exclude_none=True))
    else:
        click.echo(click.style(outcome.error, fg="yellow"), err=True)
        for line in outcome.instructions:
            click.echo(line)
    ctx.exit(2)
