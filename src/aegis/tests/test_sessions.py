# src/aegis/tests/test_sessions.py
from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from aegis import sessions
from aegis.core.config import Settings
from aegis.sessions import MemorySession, RedisSession, build_session_store

pytestmark = pytest.mark.anyio


async def test_memory_session_roundtrip():
    store = MemorySession(ttl=60)
    sid = await store.create({"user_id": "abc"})
    assert len(sid) >= 32
    assert await store.get(sid) == {"user_id": "abc"}

    await store.delete(sid)
    assert await store.get(sid) is None


async def test_memory_session_expires(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(sessions, "time", SimpleNamespace(monotonic=lambda: clock[0]))

    store = MemorySession(ttl=10)
    sid = await store.create({"user_id": "abc"})
    clock[0] += 5
    await store.touch(sid)
    clock[0] += 9
    assert await store.get(sid) == {"user_id": "abc"}

    clock[0] += 11
    assert await store.get(sid) is None
    assert len(store) == 0


async def test_abandoned_memory_sessions_are_swept_on_write(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(sessions, "time", SimpleNamespace(monotonic=lambda: clock[0]))

    store = MemorySession(ttl=10)
    for _ in range(5):
        await store.create({"user_id": "gone"})
    assert len(store) == 5

    clock[0] += 11
    fresh = await store.create({"user_id": "abc"})
    assert len(store) == 1
    assert await store.get(fresh) == {"user_id": "abc"}


async def test_session_ids_are_unique():
    store = MemorySession(ttl=60)
    sids = {await store.create({}) for _ in range(50)}
    assert len(sids) == 50


class _FakeRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex

    async def expire(self, key, ttl):
        self.ttls[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)

    async def aclose(self):
        pass


async def test_redis_session_stores_json_under_prefix():
    fake = _FakeRedis()
    store = RedisSession("redis://unused", "aegis:sess:", 3600, client=fake)

    sid = await store.create({"user_id": "u-1"})
    key = f"aegis:sess:{sid}"
    assert json.loads(fake.data[key]) == {"user_id": "u-1"}
    assert fake.ttls[key] == 3600
    assert await store.get(sid) == {"user_id": "u-1"}

    fake.data[key] = "{not json"
    assert await store.get(sid) is None
    assert key not in fake.data


def test_build_session_store_backends():
    assert isinstance(build_session_store(Settings(_env_file=None, SESSION_BACKEND="memory")), MemorySession)
    with pytest.raises(RuntimeError):
        build_session_store(Settings(_env_file=None, SESSION_BACKEND="memcached"))
