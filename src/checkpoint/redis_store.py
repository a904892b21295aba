# src/checkpoint/redis_store.py — v1
"""Redis-based checkpoint store (CHECKPOINT_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable when several worker processes share one checkpoint namespace; the
run lease is a ``SET NX EX`` key so it expires on its own.
"""

from __future__ import annotations

import logging
from typing import Any

from intentphrase.checkpoint.base_checkpoint_store import (
    BaseCheckpointStore,
    merge_execution,
)
from intentphrase.core.errors import ConcurrentRunConflict, PersistenceError
from intentphrase.core.models import (
    GeneratedPhrase,
    PhaseExecution,
    PhaseStatus,
    ScopeKind,
)

logger = logging.getLogger(__name__)

_KEY_PREFIX = "intentphrase:"


def _phase_key(scope_id: str, phase: str) -> str:
    return f"{_KEY_PREFIX}phase:{scope_id}:{phase}"


def _domain_index_key(domain_id: str) -> str:
    return f"{_KEY_PREFIX}domain:{domain_id}:phases"


def _lease_key(domain_id: str) -> str:
    return f"{_KEY_PREFIX}lease:{domain_id}"


def _phrases_key(keyword_id: str) -> str:
    return f"{_KEY_PREFIX}phrases:{keyword_id}"


def _domain_keywords_key(domain_id: str) -> str:
    return f"{_KEY_PREFIX}domain:{domain_id}:phrase_keywords"


class RedisCheckpointStore(BaseCheckpointStore):
    """Redis-backed checkpoint store."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._redis_error: type[Exception] = redis.RedisError

    async def get(self, scope_id: str, phase: str) -> PhaseExecution | None:
        try:
            data = self._client.get(_phase_key(scope_id, phase))
        except self._redis_error as e:
            raise PersistenceError(f"Checkpoint read failed for {scope_id}/{phase}: {e}") from e
        if data is None:
            return None
        return PhaseExecution.model_validate_json(data)

    async def put(
        self,
        scope_id: str,
        phase: str,
        status: PhaseStatus,
        *,
        scope_kind: ScopeKind,
        domain_id: str,
        progress: int = 0,
        result: Any = None,
        error: str | None = None,
        degraded: bool = False,
        cost_units: float = 0.0,
    ) -> PhaseExecution:
        existing = await self.get(scope_id, phase)
        row = merge_execution(
            existing, scope_id, phase, status,
            scope_kind=scope_kind, domain_id=domain_id, progress=progress,
            result=result, error=error, degraded=degraded, cost_units=cost_units,
        )
        try:
            self._client.set(_phase_key(scope_id, phase), row.model_dump_json())
            self._client.sadd(_domain_index_key(domain_id), f"{scope_id}\t{phase}")
        except self._redis_error as e:
            raise PersistenceError(f"Checkpoint write failed for {scope_id}/{phase}: {e}") from e
        return row

    async def list_for_domain(self, domain_id: str) -> list[PhaseExecution]:
        try:
            members = self._client.smembers(_domain_index_key(domain_id))
        except self._redis_error as e:
            raise PersistenceError(f"Checkpoint listing failed for {domain_id}: {e}") from e
        rows: list[PhaseExecution] = []
        for member in sorted(members):
            scope_id, phase = member.split("\t", 1)
            row = await self.get(scope_id, phase)
            if row is not None:
                rows.append(row)
        return rows

    # --- Run lease ---

    async def acquire_lease(self, domain_id: str, owner: str, ttl_s: float) -> None:
        key = _lease_key(domain_id)
        ttl = max(1, int(ttl_s))
        try:
            if self._client.set(key, owner, nx=True, ex=ttl):
                return
            holder = self._client.get(key)
            if holder == owner:
                self._client.expire(key, ttl)
                return
            if holder is None and self._client.set(key, owner, nx=True, ex=ttl):
                return
        except self._redis_error as e:
            raise PersistenceError(f"Lease acquisition failed for {domain_id}: {e}") from e
        raise ConcurrentRunConflict(domain_id, holder=holder)

    async def renew_lease(self, domain_id: str, owner: str, ttl_s: float) -> bool:
        key = _lease_key(domain_id)
        try:
            if self._client.get(key) != owner:
                return False
            return bool(self._client.expire(key, max(1, int(ttl_s))))
        except self._redis_error as e:
            raise PersistenceError(f"Lease renewal failed for {domain_id}: {e}") from e

    async def release_lease(self, domain_id: str, owner: str) -> None:
        key = _lease_key(domain_id)
        try:
            if self._client.get(key) == owner:
                self._client.delete(key)
        except self._redis_error as e:
            raise PersistenceError(f"Lease release failed for {domain_id}: {e}") from e

    # --- Phrases ---

    async def replace_phrases(self, keyword_id: str, phrases: list[GeneratedPhrase]) -> None:
        key = _phrases_key(keyword_id)
        try:
            pipe = self._client.pipeline()
            pipe.delete(key)
            if phrases:
                pipe.rpush(key, *[p.model_dump_json() for p in phrases])
            for domain_id in {p.domain_id for p in phrases}:
                pipe.sadd(_domain_keywords_key(domain_id), keyword_id)
            pipe.execute()
        except self._redis_error as e:
            raise PersistenceError(f"Phrase write failed for keyword {keyword_id}: {e}") from e

    async def list_phrases(
        self, domain_id: str | None = None, keyword_id: str | None = None
    ) -> list[GeneratedPhrase]:
        try:
            if keyword_id is not None:
                keyword_ids = [keyword_id]
            elif domain_id is not None:
                keyword_ids = sorted(self._client.smembers(_domain_keywords_key(domain_id)))
            else:
                keyword_ids = sorted(
                    k[len(_phrases_key("")):]
                    for k in self._client.scan_iter(match=_phrases_key("*"))
                )
            phrases: list[GeneratedPhrase] = []
            for kid in keyword_ids:
                for data in self._client.lrange(_phrases_key(kid), 0, -1):
                    phrase = GeneratedPhrase.model_validate_json(data)
                    if domain_id is None or phrase.domain_id == domain_id:
                        phrases.append(phrase)
        except self._redis_error as e:
            raise PersistenceError(f"Phrase listing failed: {e}") from e
        return phrases

    async def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
