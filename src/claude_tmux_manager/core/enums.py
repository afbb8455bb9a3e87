"""Shared enums for claude-tmux-manager."""

import sys
from enum import Enum


class HostPlatform(Enum):
    """Host operating system families with distinct terminal launchers."""

    MACOS = "macos"
    LINUX = "linux"
    WINDOWS = "windows"
    OTHER = "other"

    @classmethod
    def detect(cls, platform: str | None = None) -> "HostPlatform":
        """Map a ``sys.platform`` string to a HostPlatform."""
        platform = platform or sys.platform
        if platform == "darwin":
            return cls.MACOS
        if platform.startswith("linux"):
            return cls.LINUX
        if platform in ("win32", "cygwin"):
            return cls.WINDOWS
        return cls.OTHER


class SessionStatus(Enum):
    """Coarse state of a session, derived from its health and git status."""

    ACTIVE = "active"
    IDLE = "idle"
    READY_FOR_PR = "ready-for-pr"
    UNHEALTHY = "unhealthy"
    NOT_FOUND = "not-found"


class SearchSort(Enum):
    """Orderings for session search results."""

    SCORE = "score"
    NAME = "name"
