"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..utils.logging import ConfigurationError

ENV_PREFIX = "CLAUDE_TMUX_MANAGER_"


class ManagerConfig(BaseModel):
    """Configuration model for claude-tmux-manager."""

    # tmux
    tmux_session_name: str = Field(
        default="claude-tmux-manager",
        min_length=1,
        description="Name of the tmux session holding all feature windows",
    )
    window_startup_command: str | None = Field(
        default=None, description="Command typed into every newly created window"
    )

    # Git worktrees
    worktree_dir: str = Field(
        default=".worktrees", description="Directory inside each project for worktrees"
    )
    branch_prefix: str = Field(
        default="feature/", description="Prefix of feature branches"
    )

    # Freshness and timeouts (seconds)
    git_status_freshness_seconds: float = Field(
        default=10.0, ge=0, description="Maximum age of cached git status"
    )
    git_command_timeout: float = Field(
        default=10.0, gt=0, description="Timeout for each git command"
    )
    terminal_launch_timeout: float = Field(
        default=10.0, gt=0, description="Timeout for each terminal launch attempt"
    )

    # Web interface
    web_host: str = Field(default="127.0.0.1", description="Web interface host")
    web_port: int = Field(default=3000, description="Web interface port")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(default=None, description="Log file path")
    structured_logging: bool = Field(
        default=False, description="Emit JSON log lines"
    )


def find_config_file(custom_path: str | None = None) -> Path | None:
    """Find configuration file in standard locations."""
    if custom_path:
        path = Path(custom_path).expanduser()
        if path.exists():
            return path
        raise ConfigurationError(f"Config file not found: {custom_path}")

    search_paths = [
        Path.cwd() / "claude-tmux-manager.yaml",
        Path.cwd() / "claude-tmux-manager.yml",
        Path.home() / ".config" / "claude-tmux-manager" / "config.yaml",
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def load_env_vars() -> dict[str, Any]:
    """Load configuration from ``CLAUDE_TMUX_MANAGER_*`` environment variables.

    Values are passed through as strings; pydantic coerces them.
    """
    config: dict[str, Any] = {}
    for field_name in ManagerConfig.model_fields:
        env_var = f"{ENV_PREFIX}{field_name.upper()}"
        if env_var in os.environ:
            config[field_name] = os.environ[env_var]
    return config


def load_config(
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> ManagerConfig:
    """Load configuration from file and environment variables.

    Precedence order (highest to lowest):
    1. CLI flag overrides
    2. Environment variables
    3. Configuration file
    4. Default values
    """
    config_data: dict[str, Any] = {}

    config_file = find_config_file(config_path)
    if config_file:
        config_data.update(load_config_file(config_file))

    config_data.update(load_env_vars())

    if cli_overrides:
        config_data.update({k: v for k, v in cli_overrides.items() if v is not None})

    try:
        return ManagerConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
