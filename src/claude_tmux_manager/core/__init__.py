"""Core session orchestration functionality."""

from .enums import SearchSort, SessionStatus
from .models import GitStatus, SearchResult, Session, SessionHealthCheck, WindowInfo
from .pull_requests import PullRequestFound, PullRequestLookup, PullRequestMissing
from .registry import SessionRegistry
from .session_manager import SessionManager
from .terminal import TerminalFallback, TerminalLauncher, TerminalOpened

__all__ = [
    "GitStatus",
    "PullRequestFound",
    "PullRequestLookup",
    "PullRequestMissing",
    "SearchResult",
    "SearchSort",
    "Session",
    "SessionHealthCheck",
    "SessionManager",
    "SessionRegistry",
    "SessionStatus",
    "TerminalFallback",
    "TerminalLauncher",
    "TerminalOpened",
    "WindowInfo",
]
