"""
Tests for the per-session reconciliation claim and its fail-open behaviour.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockNotOwnedError

from getaways.services import claim_service
from getaways.services.claim_service import CLAIM_PREFIX, session_claim


class StubLock:
    def __init__(self, acquired=True, acquire_error=None, release_error=None):
        self.acquired = acquired
        self.acquire_error = acquire_error
        self.release_error = release_error
        self.released = False

    async def acquire(self):
        if self.acquire_error:
            raise self.acquire_error
        return self.acquired

    async def release(self):
        if self.release_error:
            raise self.release_error
        self.released = True


class StubRedis:
    def __init__(self, lock: StubLock):
        self._lock = lock
        self.lock_calls = []

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.lock_calls.append({"name": name, "timeout": timeout, "blocking_timeout": blocking_timeout})
        return self._lock


def use_redis(monkeypatch, client):
    async def fake_get_redis():
        return client

    monkeypatch.setattr(claim_service, "get_redis", fake_get_redis)


@pytest.mark.asyncio
async def test_claim_without_redis_runs_unclaimed(monkeypatch):
    use_redis(monkeypatch, None)
    async with session_claim("cs_1") as claimed:
        assert claimed is False


@pytest.mark.asyncio
async def test_claim_acquired_and_released(monkeypatch):
    lock = StubLock()
    redis = StubRedis(lock)
    use_redis(monkeypatch, redis)

    async with session_claim("cs_2") as claimed:
        assert claimed is True
        assert lock.released is False

    assert lock.released is True
    assert redis.lock_calls[0]["name"] == f"{CLAIM_PREFIX}cs_2"
    assert redis.lock_calls[0]["timeout"] == 30.0
    assert redis.lock_calls[0]["blocking_timeout"] == 10.0


@pytest.mark.asyncio
async def test_claim_released_when_body_raises(monkeypatch):
    lock = StubLock()
    use_redis(monkeypatch, StubRedis(lock))

    with pytest.raises(RuntimeError):
        async with session_claim("cs_3"):
            raise RuntimeError("boom")

    assert lock.released is True


@pytest.mark.asyncio
async def test_claim_wait_exceeded_fails_open(monkeypatch):
    lock = StubLock(acquired=False)
    use_redis(monkeypatch, StubRedis(lock))

    async with session_claim("cs_4") as claimed:
        assert claimed is False
    assert lock.released is False


@pytest.mark.asyncio
async def test_redis_error_fails_open(monkeypatch):
    lock = StubLock(acquire_error=RedisConnectionError("connection refused"))
    use_redis(monkeypatch, StubRedis(lock))

    async with session_claim("cs_5") as claimed:
        assert claimed is False


@pytest.mark.asyncio
async def test_expired_lock_release_is_tolerated(monkeypatch):
    lock = StubLock(release_error=LockNotOwnedError("lock expired"))
    use_redis(monkeypatch, StubRedis(lock))

    async with session_claim("cs_6") as claimed:
        assert claimed is True
