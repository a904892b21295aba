# tests/unit/checkpoint/test_unit_sqlite_store.py — v1
"""Tests for checkpoint/sqlite_store.py: full functional tests (stdlib sqlite3)."""

from __future__ import annotations

import sqlite3

import pytest

from intentphrase.checkpoint.sqlite_store import SqliteCheckpointStore
from intentphrase.core.errors import ConcurrentRunConflict, PersistenceError
from intentphrase.core.models import GeneratedPhrase


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def store(tmp_path, clock):
    return SqliteCheckpointStore(db_path=tmp_path / "sub" / "checkpoints.db", clock=clock)


def _phrase(keyword_id: str, text: str, domain_id: str = "dom_1") -> GeneratedPhrase:
    return GeneratedPhrase(keyword_id=keyword_id, domain_id=domain_id, text=text)


class TestPhaseRows:
    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("dom_1", "semantic_analysis") is None

    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        await store.put(
            "dom_1", "semantic_analysis", "completed",
            scope_kind="domain", domain_id="dom_1",
            result={"themes": ["a"]}, degraded=True, cost_units=0.02,
        )
        row = await store.get("dom_1", "semantic_analysis")
        assert row is not None
        assert row.status == "completed"
        assert row.progress == 100
        assert row.result == {"themes": ["a"]}
        assert row.degraded is True
        assert row.cost_units == pytest.approx(0.02)
        assert row.ended_at is not None

    @pytest.mark.asyncio
    async def test_single_row_per_scope_phase(self, store):
        for status in ("running", "failed", "running", "completed"):
            await store.put(
                "kw_1", "search_patterns", status,
                scope_kind="keyword", domain_id="dom_1",
            )
        rows = await store.list_for_domain("dom_1")
        assert len(rows) == 1
        assert rows[0].status == "completed"

    @pytest.mark.asyncio
    async def test_running_progress_monotonic(self, store):
        await store.put("dom_1", "community_mining", "running",
                        scope_kind="domain", domain_id="dom_1", progress=40)
        row = await store.put("dom_1", "community_mining", "running",
                              scope_kind="domain", domain_id="dom_1", progress=10)
        assert row.progress == 40

    @pytest.mark.asyncio
    async def test_rerun_after_failure_clears_error(self, store):
        await store.put("dom_1", "competitor_research", "failed",
                        scope_kind="domain", domain_id="dom_1", error="boom")
        row = await store.put("dom_1", "competitor_research", "running",
                              scope_kind="domain", domain_id="dom_1")
        assert row.error is None
        assert row.ended_at is None

    @pytest.mark.asyncio
    async def test_list_for_domain_includes_keyword_rows(self, store):
        await store.put("dom_1", "semantic_analysis", "completed",
                        scope_kind="domain", domain_id="dom_1")
        await store.put("kw_1", "search_patterns", "completed",
                        scope_kind="keyword", domain_id="dom_1")
        await store.put("kw_9", "search_patterns", "completed",
                        scope_kind="keyword", domain_id="dom_2")
        rows = await store.list_for_domain("dom_1")
        assert {(r.scope_id, r.phase) for r in rows} == {
            ("dom_1", "semantic_analysis"), ("kw_1", "search_patterns"),
        }

    @pytest.mark.asyncio
    async def test_unserializable_result_is_persistence_error(self, store):
        with pytest.raises(PersistenceError):
            await store.put("dom_1", "semantic_analysis", "completed",
                            scope_kind="domain", domain_id="dom_1", result={"x": object()})

    @pytest.mark.asyncio
    async def test_sqlite_error_wrapped(self, store):
        store._conn.close()
        with pytest.raises(PersistenceError):
            await store.get("dom_1", "semantic_analysis")

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        path = tmp_path / "cp.db"
        first = SqliteCheckpointStore(path)
        await first.put("dom_1", "semantic_analysis", "completed",
                        scope_kind="domain", domain_id="dom_1", result={"a": 1})
        await first.close()
        second = SqliteCheckpointStore(path)
        row = await second.get("dom_1", "semantic_analysis")
        assert row is not None and row.result == {"a": 1}
        await second.close()


class TestLease:
    @pytest.mark.asyncio
    async def test_conflict(self, store):
        await store.acquire_lease("dom_1", "run_a", 60)
        with pytest.raises(ConcurrentRunConflict) as exc_info:
            await store.acquire_lease("dom_1", "run_b", 60)
        assert exc_info.value.holder == "run_a"
        assert exc_info.value.kind == "concurrent_run"

    @pytest.mark.asyncio
    async def test_same_owner_reacquires(self, store):
        await store.acquire_lease("dom_1", "run_a", 60)
        await store.acquire_lease("dom_1", "run_a", 60)

    @pytest.mark.asyncio
    async def test_expired_lease_taken_over(self, store, clock):
        await store.acquire_lease("dom_1", "run_a", 60)
        clock.now += 61
        await store.acquire_lease("dom_1", "run_b", 60)
        assert await store.renew_lease("dom_1", "run_a", 60) is False
        assert await store.renew_lease("dom_1", "run_b", 60) is True

    @pytest.mark.asyncio
    async def test_renew_extends(self, store, clock):
        await store.acquire_lease("dom_1", "run_a", 60)
        clock.now += 50
        assert await store.renew_lease("dom_1", "run_a", 60) is True
        clock.now += 50
        with pytest.raises(ConcurrentRunConflict):
            await store.acquire_lease("dom_1", "run_b", 60)

    @pytest.mark.asyncio
    async def test_release(self, store):
        await store.acquire_lease("dom_1", "run_a", 60)
        await store.release_lease("dom_1", "run_b")
        with pytest.raises(ConcurrentRunConflict):
            await store.acquire_lease("dom_1", "run_b", 60)
        await store.release_lease("dom_1", "run_a")
        await store.acquire_lease("dom_1", "run_b", 60)

    @pytest.mark.asyncio
    async def test_leases_are_per_domain(self, store):
        await store.acquire_lease("dom_1", "run_a", 60)
        await store.acquire_lease("dom_2", "run_b", 60)


class TestPhrases:
    @pytest.mark.asyncio
    async def test_replace_semantics(self, store):
        await store.replace_phrases("kw_1", [_phrase("kw_1", "a"), _phrase("kw_1", "b")])
        await store.replace_phrases("kw_1", [_phrase("kw_1", "c")])
        phrases = await store.list_phrases(keyword_id="kw_1")
        assert [p.text for p in phrases] == ["c"]

    @pytest.mark.asyncio
    async def test_filters(self, store):
        await store.replace_phrases("kw_1", [_phrase("kw_1", "a")])
        await store.replace_phrases("kw_2", [_phrase("kw_2", "b")])
        await store.replace_phrases("kw_3", [_phrase("kw_3", "c", domain_id="dom_2")])
        assert {p.text for p in await store.list_phrases(domain_id="dom_1")} == {"a", "b"}
        assert [p.text for p in await store.list_phrases(domain_id="dom_1", keyword_id="kw_2")] == ["b"]
        assert len(await store.list_phrases()) == 3

    @pytest.mark.asyncio
    async def test_replace_with_empty_clears(self, store):
        await store.replace_phrases("kw_1", [_phrase("kw_1", "a")])
        await store.replace_phrases("kw_1", [])
        assert await store.list_phrases(keyword_id="kw_1") == []


class TestOpen:
    def test_memory_store(self):
        store = SqliteCheckpointStore(":memory:")
        assert isinstance(store._conn, sqlite3.Connection)

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises((PersistenceError, OSError)):
            SqliteCheckpointStore(blocker / "cp.db")
