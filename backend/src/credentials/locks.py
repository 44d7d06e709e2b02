"""
Per-(user, provider) refresh serialization.

Two requests that find the same expired token would otherwise both call
the provider. When the provider rotates refresh tokens on every use, the
losing writer can persist a refresh token that is already invalid. The
lifecycle manager therefore runs refresh-then-write under one of these
locks and re-reads the credential once the lock is held.

Backends:
- InProcessRefreshLock: asyncio.Lock per key; enough for a single worker
- RedisRefreshLock: redis.asyncio lock with a lease, for multi-worker
  deployments
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple
from urllib.parse import urlsplit

from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError

from src.credentials.errors import RefreshFailedError
from src.credentials.types import Provider

logger = logging.getLogger(__name__)

REDIS_LOCK_PREFIX = "oauth:refresh"


def refresh_lock_key(user_id: str, provider: Provider) -> str:
    return f"{REDIS_LOCK_PREFIX}:{provider.value}:{user_id}"


class RefreshLockProvider(ABC):
    """Hands out a mutual-exclusion scope per (user, provider)."""

    @abstractmethod
    def acquire(self, user_id: str, provider: Provider):
        """Async context manager held for the refresh-then-write sequence."""


class InProcessRefreshLock(RefreshLockProvider):
    """
    Single-flight refresh within one process.

    A key's lock is dropped once its last holder or waiter leaves.
    """

    def __init__(self):
        self._locks: Dict[Tuple[str, Provider], asyncio.Lock] = {}
        self._users: Dict[Tuple[str, Provider], int] = {}

    @asynccontextmanager
    async def acquire(self, user_id: str, provider: Provider) -> AsyncIterator[None]:
        key = (user_id, provider)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @property
    def active_keys(self) -> int:
        return len(self._locks)


class RedisRefreshLock(RefreshLockProvider):
    """
    Cross-process refresh lock stored in Redis.

    The lease (timeout) bounds how long a crashed holder can block others;
    blocking_timeout bounds how long a caller waits. Failing to obtain the
    lock is reported as a refresh failure so the caller never hangs.
    """

    def __init__(
        self,
        redis_client: Redis,
        timeout: float = 30.0,
        blocking_timeout: float = 10.0,
    ):
        self._redis = redis_client
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def acquire(self, user_id: str, provider: Provider) -> AsyncIterator[None]:
        name = refresh_lock_key(user_id, provider)
        lock = self._redis.lock(
            name,
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )

        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error(
                "Refresh lock unavailable",
                extra={
                    "user_id": user_id,
                    "provider": provider.value,
                    "error_type": type(e).__name__,
                }
            )
            raise RefreshFailedError(provider.value, "refresh lock unavailable") from e

        if not acquired:
            logger.warning(
                "Timed out waiting for refresh lock",
                extra={"user_id": user_id, "provider": provider.value},
            )
            raise RefreshFailedError(provider.value, "timed out waiting for refresh lock")

        try:
            yield
        finally:
            try:
                await lock.release()
            except (LockError, RedisError):
                # Lease expired while refreshing; the key is already gone
                logger.warning(
                    "Refresh lock released after lease expiry",
                    extra={"user_id": user_id, "provider": provider.value},
                    exc_info=True,
                )


def build_refresh_lock(backend: str, redis_url: str, timeout: float) -> RefreshLockProvider:
    """Create the lock provider named by REFRESH_LOCK_BACKEND."""
    if backend == "redis":
        client = Redis.from_url(redis_url, decode_responses=False)
        logger.info(
            "Using Redis refresh locks",
            extra={"redis_host": urlsplit(redis_url).hostname},
        )
        return RedisRefreshLock(client, timeout=timeout)
    return InProcessRefreshLock()
