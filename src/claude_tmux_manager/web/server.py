"""
Web server startup for claude-tmux-manager.
"""

import uvicorn

from ..config.loader import ManagerConfig, load_config
from ..utils.logging import LogContext, get_logger

logger = get_logger(__name__, LogContext.WEB)


def run_server(
    config: ManagerConfig | None = None,
    host: str | None = None,
    port: int | None = None,
    reload: bool = False,
) -> None:
    """
    Run the FastAPI server.

    Args:
        config: Manager configuration, loaded from the standard locations when omitted
        host: Host to bind to (overrides config)
        port: Port to bind to (overrides config)
        reload: Enable auto-reload
    """
    config = config or load_config()
    host = host or config.web_host
    port = port or config.web_port

    logger.info("Starting claude-tmux-manager web server", host=host, port=port, reload=reload)

    if reload:
        # Reload needs an import string; the app then loads its own config
        uvicorn.run(
            "claude_tmux_manager.web.app:app",
            host=host,
            port=port,
            reload=True,
            log_level=config.log_level.lower(),
        )
        return

    from .app import create_app

    uvicorn.run(
        create_app(config=config),
        host=host,
        port=port,
        log_level=config.log_level.lower(),
        access_log=False,
    )


def main() -> None:
    """Main entry point for web server script."""
    run_server()


if __name__ == "__main__":
    main()
