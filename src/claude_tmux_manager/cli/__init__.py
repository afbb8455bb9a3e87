"""Command line interface for claude-tmux-manager."""
