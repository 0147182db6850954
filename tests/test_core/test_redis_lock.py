# tests/test_core/test_redis_lock.py

import pytest

from dramahub.core.redis_client import RedisClient

pytestmark = pytest.mark.anyio


# ─────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────

class KVOnly:
    """Just enough of redis.asyncio.Redis for the SET NX spin-lock path."""

    def __init__(self):
        self.kv = {}

    async def set(self, name, value, ex=None, nx=False):
        if nx and name in self.kv:
            return None
        self.kv[name] = value
        return True

    async def get(self, name):
        return self.kv.get(name)

    async def delete(self, name):
        return 1 if self.kv.pop(name, None) is not None else 0


class NativeLock:
    def __init__(self, acquired):
        self.acquired = acquired
        self.released = False

    async def acquire(self, blocking=True, blocking_timeout=None):
        return self.acquired

    async def release(self):
        self.released = True


class WithNativeLock:
    def __init__(self, acquired=True):
        self.lock_obj = NativeLock(acquired)
        self.lock_args = None

    def lock(self, name, **kwargs):
        self.lock_args = (name, kwargs)
        return self.lock_obj


def _wrapper(client) -> RedisClient:
    wrapper = RedisClient("redis://unused")
    wrapper._client = client
    return wrapper


# ─────────────────────────────────────────────────────────────
# Tests
# ─────────────────────────────────────────────────────────────

async def test_lock_requires_connection():
    with pytest.raises(RuntimeError):
        async with RedisClient("redis://unused").lock("x"):
            pass


async def test_spin_lock_holds_key_and_releases():
    kv = KVOnly()
    wrapper = _wrapper(kv)

    async with wrapper.lock("drama:refresh:1", timeout=30, blocking_timeout=1):
        assert "drama:refresh:1" in kv.kv

    assert kv.kv == {}


async def test_spin_lock_times_out_when_held():
    kv = KVOnly()
    kv.kv["drama:refresh:1"] = "someone-else"
    wrapper = _wrapper(kv)

    with pytest.raises(TimeoutError):
        async with wrapper.lock("drama:refresh:1", timeout=30, blocking_timeout=0.05, sleep=0.01):
            pass
    assert kv.kv["drama:refresh:1"] == "someone-else"


async def test_native_lock_is_released():
    client = WithNativeLock(acquired=True)

    async with _wrapper(client).lock("n", timeout=60, blocking_timeout=15):
        pass

    assert client.lock_args[0] == "n"
    assert client.lock_args[1]["timeout"] == 60
    assert client.lock_obj.released is True


async def test_native_lock_not_acquired_raises_timeout():
    client = WithNativeLock(acquired=False)

    with pytest.raises(TimeoutError):
        async with _wrapper(client).lock("n", blocking_timeout=0):
            pass
    assert client.lock_obj.released is False
