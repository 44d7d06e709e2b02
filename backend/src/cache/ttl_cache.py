"""
In-process TTL cache with an injectable clock.

Replaces ad-hoc module-level dicts of (value, timestamp) pairs. Entries
expire ttl_seconds after they were stored; an expired entry is recomputed
on the next get_or_compute. The clock is injectable so tests can advance
time deterministically instead of sleeping.

Compute errors are not cached: the exception propagates and the next call
tries again.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

# Default TTL (seconds) when the caller does not pass one
DEFAULT_TTL = 300


@dataclass
class _Entry:
    value: Any
    expires_at: float


class TTLCache:
    """Thread-safe key/value cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[Hashable, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None on miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: Hashable, value: Any, ttl_seconds: float = DEFAULT_TTL) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    def get_or_compute(
        self,
        key: Hashable,
        ttl_seconds: float,
        compute: Callable[[], Any],
    ) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.

        None results are not cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = compute()
        if value is not None:
            self.set(key, value, ttl_seconds)
        else:
            logger.debug("Cache compute returned None; not caching", extra={"cache_key": str(key)})
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for entry in self._entries.values() if now < entry.expires_at)
