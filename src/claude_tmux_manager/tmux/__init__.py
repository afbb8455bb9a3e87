"""
Tmux window management for claude-tmux-manager.

This package provides:
- Creation of the managed tmux session
- Window listing with pane paths for session discovery
- Window creation, teardown, key sending and output capture
"""

from .service import TmuxWindowService

__all__ = ["TmuxWindowService"]
