"""
Session repository for managing conversation state.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from decision_memo.core.logging import get_logger
from decision_memo.domain.session import Session
from decision_memo.repositories.base import SessionMutator, SessionStore

logger = get_logger(__name__)


class InMemorySessionRepository(SessionStore):
    """
    In-process session store.

    Mutations to one channel are serialized with a per-channel lock; channels
    never contend with each other. Callers only ever see copies, so a session
    can change only through ``update``. State does not survive a restart and
    sessions never expire on their own.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _lock(self, channel_id: str) -> AsyncIterator[None]:
        """
        Hold the channel lock.

        A lock only lives while someone holds or waits for it, so the lock
        map stays as small as the set of channels being worked on.
        """
        lock = self._locks.setdefault(channel_id, asyncio.Lock())
        self._lock_users[channel_id] = self._lock_users.get(channel_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[channel_id] -= 1
            if self._lock_users[channel_id] == 0:
                del self._lock_users[channel_id]
                del self._locks[channel_id]

    async def create(self, channel_id: str, initial: Session) -> Session:
        """Store a new session, replacing any existing one for the channel."""
        async with self._lock(channel_id):
            replaced = self._sessions.get(channel_id)
            if replaced is not None:
                logger.info(
                    "Replacing existing session",
                    channel_id=channel_id,
                    replaced_session_id=replaced.id,
                    replaced_stage=replaced.stage.value,
                )
            stored = initial.model_copy(deep=True)
            stored.channel_id = channel_id
            self._sessions[channel_id] = stored
            logger.debug("Session created", channel_id=channel_id, session_id=stored.id)
            return stored.model_copy(deep=True)

    async def get(self, channel_id: str) -> Optional[Session]:
        """Get a snapshot of the channel's session."""
        session = self._sessions.get(channel_id)
        return session.model_copy(deep=True) if session else None

    async def update(
        self,
        channel_id: str,
        mutator: SessionMutator,
        expected_id: Optional[str] = None,
    ) -> Optional[Session]:
        """Apply a mutation atomically. Returns None if there is no matching session."""
        async with self._lock(channel_id):
            current = self._sessions.get(channel_id)
            if current is None:
                return None
            if expected_id is not None and current.id != expected_id:
                return None

            working = current.model_copy(deep=True)
            mutator(working)
            working.touch()
            self._sessions[channel_id] = working
            return working.model_copy(deep=True)

    async def delete(self, channel_id: str, expected_id: Optional[str] = None) -> bool:
        """Delete the channel's session, optionally only if it is still ``expected_id``."""
        async with self._lock(channel_id):
            current = self._sessions.get(channel_id)
            if current is None:
                return False
            if expected_id is not None and current.id != expected_id:
                logger.debug(
                    "Session replaced, skipping delete",
                    channel_id=channel_id,
                    expected_id=expected_id,
                    current_id=current.id,
                )
                return False

            del self._sessions[channel_id]
            logger.debug("Session deleted", channel_id=channel_id, session_id=current.id)
            return True

    async def exists(self, channel_id: str) -> bool:
        """Check if the channel has a session."""
        return channel_id in self._sessions

    async def count(self) -> int:
        """Number of live sessions."""
        return len(self._sessions)
