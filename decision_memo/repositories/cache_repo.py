"""
Cache repository for short-lived markers such as delivered event IDs.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from decision_memo.core.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCacheRepository:
    """
    In-memory TTL cache.
    """

    def __init__(self, default_ttl_seconds: int = 600) -> None:
        """
        Initialize the cache.

        Args:
            default_ttl_seconds: Default TTL for cache entries
        """
        self._cache: dict[str, dict[str, Any]] = {}
        self.default_ttl = default_ttl_seconds

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from cache."""
        if key not in self._cache:
            return None

        entry = self._cache[key]
        if entry["expires_at"] < _utcnow():
            del self._cache[key]
            return None

        return entry["value"]

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None
    ) -> None:
        """Set a value in cache."""
        ttl = ttl_seconds or self.default_ttl
        self._cache[key] = {
            "value": value,
            "expires_at": _utcnow() + timedelta(seconds=ttl),
        }

    async def add(self, key: str, value: Any = True, ttl_seconds: Optional[int] = None) -> bool:
        """
        Set a value only if the key is absent.

        Keys are usually never read again once added, so every call also
        sweeps expired entries.

        Returns:
            True if the key was added, False if it was already present
        """
        await self.clear_expired()
        if key in self._cache:
            return False
        await self.set(key, value, ttl_seconds)
        return True

    async def clear_expired(self) -> int:
        """Clear expired cache entries."""
        now = _utcnow()
        expired_keys = [
            key for key, entry in self._cache.items()
            if entry["expires_at"] < now
        ]

        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug("Cleared expired cache entries", count=len(expired_keys))

        return len(expired_keys)
