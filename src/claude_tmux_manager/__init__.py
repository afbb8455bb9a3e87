"""claude-tmux-manager: manage concurrent feature sessions in git worktrees and tmux windows."""

__version__ = "0.1.0"

from .core.session_manager import SessionManager
from .core.models import Session

__all__ = ["SessionManager", "Session", "__version__"]
