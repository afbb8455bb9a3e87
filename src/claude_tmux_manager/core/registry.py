"""In-memory session registry keyed by (project, feature)."""

import asyncio
from collections.abc import Callable

from ..utils.logging import LogContext, get_logger
from .models import Session

logger = get_logger(__name__, LogContext.SESSION)

SessionKey = tuple[str, str]


class SessionRegistry:
    """Authoritative store of session records.

    Reads are lock-free snapshots. Mutations on the same key are serialized
    through a per-key asyncio.Lock; mutations on different keys never wait on
    each other. Records are replaced whole, never field by field.
    """

    def __init__(self) -> None:
        self._sessions: dict[SessionKey, Session] = {}
        self._locks: dict[SessionKey, asyncio.Lock] = {}

    def _lock_for(self, key: SessionKey) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def get(self, project_name: str, feature_name: str) -> Session | None:
        return self._sessions.get((project_name, feature_name))

    def contains(self, project_name: str, feature_name: str) -> bool:
        return (project_name, feature_name) in self._sessions

    def list(self, project_name: str | None = None) -> list[Session]:
        """Snapshot of registered sessions, optionally for one project."""
        sessions = [
            session
            for key, session in sorted(self._sessions.items())
            if project_name is None or key[0] == project_name
        ]
        return sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def upsert(self, session: Session) -> Session:
        """Insert or replace the record for the session's identity."""
        async with self._lock_for(session.key):
            created = session.key not in self._sessions
            self._sessions[session.key] = session

        logger.debug(
            "Session registered" if created else "Session replaced",
            project_name=session.project_name,
            feature_name=session.feature_name,
        )
        return session

    async def update(
        self,
        project_name: str,
        feature_name: str,
        mutate: Callable[[Session], Session],
    ) -> Session | None:
        """Apply ``mutate`` to the current record under the key's lock.

        Returns the stored record, or None if the identity is not registered.
        """
        key = (project_name, feature_name)
        if key not in self._sessions:
            return None
        async with self._lock_for(key):
            current = self._sessions.get(key)
            if current is None:
                return None
            updated = mutate(current)
            if updated.key != key:
                raise ValueError(
                    f"Update changed session identity from {key} to {updated.key}"
                )
            self._sessions[key] = updated
            return updated

    async def remove(self, project_name: str, feature_name: str) -> bool:
        """Drop a record. Returns False if nothing was registered."""
        key = (project_name, feature_name)
        if key not in self._sessions:
            return False
        lock = self._lock_for(key)
        async with lock:
            removed = self._sessions.pop(key, None) is not None

        if removed:
            # Critical sections never await, so nothing is queued on an unheld lock
            if not lock.locked():
                self._locks.pop(key, None)
            logger.debug(
                "Session removed", project_name=project_name, feature_name=feature_name
            )
        return removed
