"""
Repository implementations for session and cache state.
"""

from decision_memo.repositories.base import SessionStore
from decision_memo.repositories.cache_repo import InMemoryCacheRepository
from decision_memo.repositories.session_repo import InMemorySessionRepository

__all__ = [
    "SessionStore",
    "InMemorySessionRepository",
    "InMemoryCacheRepository",
]
