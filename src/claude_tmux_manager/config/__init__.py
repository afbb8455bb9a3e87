"""Configuration management for claude-tmux-manager."""

from .loader import ManagerConfig, find_config_file, load_config

__all__ = ["ManagerConfig", "find_config_file", "load_config"]
