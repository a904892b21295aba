# src/checkpoint/checkpoint_factory.py — v1
"""Factory for checkpoint store instantiation."""

from __future__ import annotations

from intentphrase.checkpoint.base_checkpoint_store import BaseCheckpointStore
from intentphrase.config.settings import Settings


def create_checkpoint_store(settings: Settings | None = None) -> BaseCheckpointStore:
    """Instantiate the configured checkpoint backend.

    Args:
        settings: Application settings. Defaults to SQLite at the default path.

    Returns:
        Configured BaseCheckpointStore implementation.
    """
    backend = "sqlite" if settings is None else settings.checkpoint_backend

    if backend == "sqlite":
        from intentphrase.checkpoint.sqlite_store import SqliteCheckpointStore
        db_path = (
            "~/.intentphrase/checkpoints.db" if settings is None
            else str(settings.checkpoint_db_path)
        )
        return SqliteCheckpointStore(db_path=db_path)

    if backend == "redis":
        from intentphrase.checkpoint.redis_store import RedisCheckpointStore
        if settings is None or not settings.checkpoint_redis_url:
            raise ValueError(
                "CHECKPOINT_REDIS_URL must be set when CHECKPOINT_BACKEND=redis"
            )
        return RedisCheckpointStore(redis_url=settings.checkpoint_redis_url)

    raise ValueError(f"Unsupported checkpoint backend: {backend!r}")
