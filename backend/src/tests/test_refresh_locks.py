"""
Tests for per-(user, provider) refresh locks.

The Redis lock is exercised against a mocked redis.asyncio client.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import LockError, RedisError

from src.credentials.errors import RefreshFailedError
from src.credentials.locks import (
    InProcessRefreshLock,
    RedisRefreshLock,
    build_refresh_lock,
    refresh_lock_key,
)
from src.credentials.types import Provider


def mock_redis(acquired=True, acquire_error=None, release_error=None):
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired, side_effect=acquire_error)
    lock.release = AsyncMock(side_effect=release_error)
    client = MagicMock()
    client.lock.return_value = lock
    return client, lock


# ============================================================================
# TEST SUITE: IN-PROCESS LOCK
# ============================================================================

class TestInProcessRefreshLock:

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = InProcessRefreshLock()
        events = []

        async def worker(name):
            async with locks.acquire("user-1", Provider.HUBSPOT):
                events.append(f"{name}:start")
                await asyncio.sleep(0.01)
                events.append(f"{name}:end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = InProcessRefreshLock()

        async with locks.acquire("user-1", Provider.GOOGLE):
            async def other():
                async with locks.acquire("user-1", Provider.HUBSPOT):
                    return "acquired"

            assert await asyncio.wait_for(other(), timeout=1) == "acquired"

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = InProcessRefreshLock()

        with pytest.raises(RuntimeError):
            async with locks.acquire("user-1", Provider.GOOGLE):
                raise RuntimeError("refresh blew up")

        async def reacquire():
            async with locks.acquire("user-1", Provider.GOOGLE):
                return True

        assert await asyncio.wait_for(reacquire(), timeout=1) is True

    @pytest.mark.asyncio
    async def test_released_locks_are_dropped(self):
        locks = InProcessRefreshLock()

        async def worker(user_id):
            async with locks.acquire(user_id, Provider.GOOGLE):
                await asyncio.sleep(0.01)

        await asyncio.gather(*[worker(f"user-{i}") for i in range(20)], worker("user-0"))

        assert locks.active_keys == 0

    @pytest.mark.asyncio
    async def test_lock_kept_while_a_waiter_remains(self):
        locks = InProcessRefreshLock()
        release = asyncio.Event()

        async def holder():
            async with locks.acquire("user-1", Provider.GOOGLE):
                await release.wait()

        async def waiter():
            async with locks.acquire("user-1", Provider.GOOGLE):
                return "acquired"

        holding = asyncio.ensure_future(holder())
        waiting = asyncio.ensure_future(waiter())
        await asyncio.sleep(0.01)

        assert locks.active_keys == 1
        release.set()
        assert await asyncio.wait_for(waiting, timeout=1) == "acquired"
        await holding
        assert locks.active_keys == 0


# ============================================================================
# TEST SUITE: REDIS LOCK
# ============================================================================

class TestRedisRefreshLock:

    def test_lock_key_format(self):
        assert refresh_lock_key("user-1", Provider.GOOGLE) == "oauth:refresh:google:user-1"

    @pytest.mark.asyncio
    async def test_acquires_and_releases_named_lock(self):
        client, lock = mock_redis()
        locks = RedisRefreshLock(client, timeout=30.0, blocking_timeout=5.0)

        async with locks.acquire("user-1", Provider.HUBSPOT):
            lock.release.assert_not_awaited()

        client.lock.assert_called_once_with(
            "oauth:refresh:hubspot:user-1",
            timeout=30.0,
            blocking_timeout=5.0,
        )
        lock.acquire.assert_awaited_once()
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_waiting_raises_refresh_failed(self):
        client, lock = mock_redis(acquired=False)
        locks = RedisRefreshLock(client)

        with pytest.raises(RefreshFailedError) as exc_info:
            async with locks.acquire("user-1", Provider.GOOGLE):
                pytest.fail("body must not run without the lock")

        assert "timed out" in exc_info.value.detail
        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_unavailable_raises_refresh_failed(self):
        client, _ = mock_redis(acquire_error=RedisError("connection refused"))
        locks = RedisRefreshLock(client)

        with pytest.raises(RefreshFailedError) as exc_info:
            async with locks.acquire("user-1", Provider.GOOGLE):
                pass

        assert exc_info.value.detail == "refresh lock unavailable"

    @pytest.mark.asyncio
    async def test_release_after_lease_expiry_is_not_raised(self):
        client, lock = mock_redis(release_error=LockError("lock not owned"))
        locks = RedisRefreshLock(client)

        async with locks.acquire("user-1", Provider.GOOGLE):
            pass

        lock.release.assert_awaited_once()


# ============================================================================
# TEST SUITE: FACTORY
# ============================================================================

class TestBuildRefreshLock:

    def test_memory_backend(self):
        assert isinstance(
            build_refresh_lock("memory", "redis://localhost:6379/0", 30),
            InProcessRefreshLock,
        )

    def test_redis_backend(self):
        with patch("src.credentials.locks.Redis") as redis_cls:
            lock = build_refresh_lock("redis", "redis://cache:6379/1", 15)

        redis_cls.from_url.assert_called_once_with("redis://cache:6379/1", decode_responses=False)
        assert isinstance(lock, RedisRefreshLock)

    def test_redis_password_not_logged(self, caplog):
        with patch("src.credentials.locks.Redis"), caplog.at_level(logging.INFO):
            build_refresh_lock("redis", "redis://:s3cret-pass@cache:6379/1", 15)

        assert caplog.records
        for record in caplog.records:
            assert "s3cret-pass" not in str(record.__dict__)
        assert caplog.records[-1].redis_host == "cache"
