"""HTTP interface for claude-tmux-manager."""
