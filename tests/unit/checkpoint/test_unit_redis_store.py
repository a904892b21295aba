# tests/unit/checkpoint/test_unit_redis_store.py — v1
"""Tests for checkpoint/redis_store.py: mocked Redis client."""

from __future__ import annotations

import fnmatch
from unittest.mock import MagicMock

import pytest
import redis

from intentphrase.checkpoint.redis_store import RedisCheckpointStore
from intentphrase.core.errors import ConcurrentRunConflict, PersistenceError
from intentphrase.core.models import GeneratedPhrase


class _FakeRedis:
    """In-memory subset of the redis-py client used by the store."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.lists: dict[str, list[str]] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.values:
            return None
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def expire(self, key, ttl):
        if key not in self.values:
            return False
        self.ttls[key] = ttl
        return True

    def delete(self, key):
        self.values.pop(key, None)
        self.lists.pop(key, None)

    def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def rpush(self, key, *items):
        self.lists.setdefault(key, []).extend(items)

    def lrange(self, key, start, end):
        return list(self.lists.get(key, []))

    def scan_iter(self, match):
        return [k for k in self.lists if fnmatch.fnmatch(k, match)]

    def pipeline(self):
        return _FakePipeline(self)

    def close(self):
        pass


class _FakePipeline:
    def __init__(self, client):
        self._client = client
        self._ops = []

    def __getattr__(self, name):
        def _queue(*args, **kwargs):
            self._ops.append((name, args, kwargs))
        return _queue

    def execute(self):
        for name, args, kwargs in self._ops:
            getattr(self._client, name)(*args, **kwargs)


def _store(client) -> RedisCheckpointStore:
    store = RedisCheckpointStore.__new__(RedisCheckpointStore)
    store._client = client
    store._redis_error = redis.RedisError
    return store


@pytest.fixture
def fake():
    return _FakeRedis()


@pytest.fixture
def store(fake):
    return _store(fake)


class TestRedisCheckpointStore:
    @pytest.mark.asyncio
    async def test_put_and_get(self, store, fake):
        await store.put("kw_1", "search_patterns", "completed",
                        scope_kind="keyword", domain_id="dom_1", result={"p": [1]})
        row = await store.get("kw_1", "search_patterns")
        assert row is not None
        assert row.result == {"p": [1]}
        assert row.progress == 100
        assert "intentphrase:phase:kw_1:search_patterns" in fake.values

    @pytest.mark.asyncio
    async def test_list_for_domain(self, store):
        await store.put("dom_1", "semantic_analysis", "completed",
                        scope_kind="domain", domain_id="dom_1")
        await store.put("kw_1", "search_patterns", "running",
                        scope_kind="keyword", domain_id="dom_1")
        rows = await store.list_for_domain("dom_1")
        assert {r.phase for r in rows} == {"semantic_analysis", "search_patterns"}

    @pytest.mark.asyncio
    async def test_lease_conflict(self, store, fake):
        await store.acquire_lease("dom_1", "run_a", 900)
        assert fake.ttls["intentphrase:lease:dom_1"] == 900
        with pytest.raises(ConcurrentRunConflict):
            await store.acquire_lease("dom_1", "run_b", 900)
        await store.acquire_lease("dom_1", "run_a", 900)

    @pytest.mark.asyncio
    async def test_lease_renew_and_release(self, store):
        await store.acquire_lease("dom_1", "run_a", 900)
        assert await store.renew_lease("dom_1", "run_a", 900) is True
        assert await store.renew_lease("dom_1", "run_b", 900) is False
        await store.release_lease("dom_1", "run_b")
        with pytest.raises(ConcurrentRunConflict):
            await store.acquire_lease("dom_1", "run_b", 900)
        await store.release_lease("dom_1", "run_a")
        await store.acquire_lease("dom_1", "run_b", 900)

    @pytest.mark.asyncio
    async def test_replace_phrases(self, store):
        def _p(text):
            return GeneratedPhrase(keyword_id="kw_1", domain_id="dom_1", text=text)

        await store.replace_phrases("kw_1", [_p("a"), _p("b")])
        await store.replace_phrases("kw_1", [_p("c")])
        assert [p.text for p in await store.list_phrases(keyword_id="kw_1")] == ["c"]
        assert [p.text for p in await store.list_phrases(domain_id="dom_1")] == ["c"]
        assert [p.text for p in await store.list_phrases()] == ["c"]

    @pytest.mark.asyncio
    async def test_redis_error_is_persistence_error(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        store = _store(client)
        with pytest.raises(PersistenceError):
            await store.get("dom_1", "semantic_analysis")
