"""Main CLI entry point for claude-tmux-manager."""

import click

from .. import __version__
from .sessions import sessions
from .terminal import terminal
from .web import web


@click.group()
@click.version_option(version=__version__, prog_name="claude-tmux-manager")
@click.option("--config", "-c", help="Configuration file path")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option("--log-level", help="Log level for CLI diagnostics (default: WARNING)")
@click.option("--session-name", help="Override tmux_session_name setting")
@click.option("--worktree-dir", help="Override worktree_dir setting")
@click.pass_context
def main(
    ctx: click.Context,
    config: str | None,
    json: bool,
    log_level: str | None,
    session_name: str | None,
    worktree_dir: str | None,
) -> None:
    """Manage parallel feature sessions, each a git worktree plus a tmux window.

    Use command groups to organize functionality:
    - sessions: Create, list, show and delete sessions
    - terminal: Open a terminal attached to a session window
    - web: Run the HTTP interface
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["json"] = json
    ctx.obj["log_level"] = log_level
    ctx.obj["cli_overrides"] = {
        k: v
        for k, v in {
            "tmux_session_name": session_name,
            "worktree_dir": worktree_dir,
        }.items()
        if v is not None
    }


main.add_command(sessions)
main.add_command(terminal)
main.add_command(web)


if __name__ == "__main__":
    main()
