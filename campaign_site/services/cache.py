"""Simple in-process cache with per-entry expiry."""

import time
from typing import Any, Optional

# TTLs in seconds
SIGNATURE_COUNT_TTL = 10
RECENT_SIGNERS_TTL = 10
BREVO_SYNC_INTERVAL = 5 * 60
SYNC_LOCK_TTL = 60


class TTLCache:
    """Dict-backed cache; expired entries are dropped when read."""

    def __init__(self, clock=time.monotonic):
        """
        Initialize the cache.

        Args:
            clock: Callable returning the current time in seconds
        """
        self._clock = clock
        self._store: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() > expires_at:
            del self._store[key]
            return None

        return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._store[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()
