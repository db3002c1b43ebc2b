"""
Base session store interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from decision_memo.domain.session import Session

SessionMutator = Callable[[Session], None]


class SessionStore(ABC):
    """
    Abstract base class for session stores, keyed by DM channel ID.
    """

    @abstractmethod
    async def create(self, channel_id: str, initial: Session) -> Session:
        """Store a new session, replacing any existing one for the channel."""
        ...

    @abstractmethod
    async def get(self, channel_id: str) -> Optional[Session]:
        """Get a snapshot of the channel's session."""
        ...

    @abstractmethod
    async def update(
        self,
        channel_id: str,
        mutator: SessionMutator,
        expected_id: Optional[str] = None,
    ) -> Optional[Session]:
        """
        Apply a mutation atomically.

        Returns None if there is no session, or if it is no longer
        ``expected_id``. Exceptions raised by the mutator propagate and leave
        the stored session untouched.
        """
        ...

    @abstractmethod
    async def delete(self, channel_id: str, expected_id: Optional[str] = None) -> bool:
        """Delete the channel's session, optionally only if it is still ``expected_id``."""
        ...

    @abstractmethod
    async def exists(self, channel_id: str) -> bool:
        """Check if the channel has a session."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of live sessions."""
        ...
