# src/checkpoint/sqlite_store.py — v1
"""SQLite-based checkpoint store (CHECKPOINT_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Every sqlite3 error is
surfaced as PersistenceError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

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

_SCHEMA = """
CREATE TABLE IF NOT EXISTS phase_executions (
    scope_id TEXT NOT NULL,
    phase TEXT NOT NULL,
    scope_kind TEXT NOT NULL,
    domain_id TEXT NOT NULL,
    status TEXT NOT NULL,
    progress INTEGER NOT NULL DEFAULT 0,
    result TEXT,
    error TEXT,
    degraded INTEGER NOT NULL DEFAULT 0,
    cost_units REAL NOT NULL DEFAULT 0,
    started_at TEXT,
    ended_at TEXT,
    updated_at TEXT,
    PRIMARY KEY (scope_id, phase)
);
CREATE INDEX IF NOT EXISTS idx_phase_domain ON phase_executions(domain_id);

CREATE TABLE IF NOT EXISTS domain_leases (
    domain_id TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS generated_phrases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    keyword_id TEXT NOT NULL,
    domain_id TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_phrase_keyword ON generated_phrases(keyword_id);
CREATE INDEX IF NOT EXISTS idx_phrase_domain ON generated_phrases(domain_id);
"""

_COLUMNS = (
    "scope_id, phase, scope_kind, domain_id, status, progress, result, error, "
    "degraded, cost_units, started_at, ended_at, updated_at"
)


class SqliteCheckpointStore(BaseCheckpointStore):
    """SQLite-backed checkpoint store.

    Args:
        db_path: Database file (``:memory:`` for an in-process store).
        clock: Wall clock in epoch seconds, used for lease expiry.
    """

    def __init__(
        self,
        db_path: Path | str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        target = str(db_path)
        if target != ":memory:":
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        try:
            self._conn = sqlite3.connect(target)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open checkpoint database {target}: {e}") from e

    async def get(self, scope_id: str, phase: str) -> PhaseExecution | None:
        try:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM phase_executions WHERE scope_id = ? AND phase = ?",
                (scope_id, phase),
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Checkpoint read failed for {scope_id}/{phase}: {e}") from e
        return _row_to_execution(row) if row else None

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
            self._conn.execute(
                f"INSERT OR REPLACE INTO phase_executions ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _execution_to_row(row),
            )
            self._conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceError(f"Checkpoint write failed for {scope_id}/{phase}: {e}") from e
        return row

    async def list_for_domain(self, domain_id: str) -> list[PhaseExecution]:
        try:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM phase_executions WHERE domain_id = ? "
                "ORDER BY scope_kind, scope_id, started_at",
                (domain_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Checkpoint listing failed for {domain_id}: {e}") from e
        return [_row_to_execution(r) for r in rows]

    # --- Run lease ---

    async def acquire_lease(self, domain_id: str, owner: str, ttl_s: float) -> None:
        now = self._clock()
        try:
            with self._conn:
                row = self._conn.execute(
                    "SELECT owner, expires_at FROM domain_leases WHERE domain_id = ?",
                    (domain_id,),
                ).fetchone()
                if row is not None and row[0] != owner and row[1] > now:
                    raise ConcurrentRunConflict(domain_id, holder=row[0])
                if row is not None and row[0] != owner:
                    logger.warning(
                        "Taking over expired lease on domain %s from %s", domain_id, row[0]
                    )
                self._conn.execute(
                    "INSERT OR REPLACE INTO domain_leases (domain_id, owner, expires_at) "
                    "VALUES (?, ?, ?)",
                    (domain_id, owner, now + ttl_s),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Lease acquisition failed for {domain_id}: {e}") from e

    async def renew_lease(self, domain_id: str, owner: str, ttl_s: float) -> bool:
        try:
            with self._conn:
                cursor = self._conn.execute(
                    "UPDATE domain_leases SET expires_at = ? WHERE domain_id = ? AND owner = ?",
                    (self._clock() + ttl_s, domain_id, owner),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Lease renewal failed for {domain_id}: {e}") from e
        return cursor.rowcount == 1

    async def release_lease(self, domain_id: str, owner: str) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "DELETE FROM domain_leases WHERE domain_id = ? AND owner = ?",
                    (domain_id, owner),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Lease release failed for {domain_id}: {e}") from e

    # --- Phrases ---

    async def replace_phrases(self, keyword_id: str, phrases: list[GeneratedPhrase]) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "DELETE FROM generated_phrases WHERE keyword_id = ?", (keyword_id,)
                )
                self._conn.executemany(
                    "INSERT INTO generated_phrases (keyword_id, domain_id, data) VALUES (?, ?, ?)",
                    [(keyword_id, p.domain_id, p.model_dump_json()) for p in phrases],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Phrase write failed for keyword {keyword_id}: {e}") from e

    async def list_phrases(
        self, domain_id: str | None = None, keyword_id: str | None = None
    ) -> list[GeneratedPhrase]:
        clauses: list[str] = []
        params: list[str] = []
        if domain_id is not None:
            clauses.append("domain_id = ?")
            params.append(domain_id)
        if keyword_id is not None:
            clauses.append("keyword_id = ?")
            params.append(keyword_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            rows = self._conn.execute(
                f"SELECT data FROM generated_phrases{where} ORDER BY id", params
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Phrase listing failed: {e}") from e
        return [GeneratedPhrase.model_validate_json(r[0]) for r in rows]

    async def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def _execution_to_row(row: PhaseExecution) -> tuple:
    return (
        row.scope_id,
        row.phase,
        row.scope_kind,
        row.domain_id,
        row.status,
        row.progress,
        json.dumps(row.result) if row.result is not None else None,
        row.error,
        int(row.degraded),
        row.cost_units,
        _iso(row.started_at),
        _iso(row.ended_at),
        _iso(row.updated_at),
    )


def _row_to_execution(row: tuple) -> PhaseExecution:
    return PhaseExecution(
        scope_id=row[0],
        phase=row[1],
        scope_kind=row[2],
        domain_id=row[3],
        status=row[4],
        progress=row[5],
        result=json.loads(row[6]) if row[6] is not None else None,
        error=row[7],
        degraded=bool(row[8]),
        cost_units=row[9],
        started_at=row[10],
        ended_at=row[11],
        updated_at=row[12],
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
