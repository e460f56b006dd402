"""Persistence layer for fieldflow."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from ..config import FieldflowConfig, load_config
from .inmemory import InMemoryRecordStore
from .repository import RecordStore
from .sqlite import SQLiteRecordStore
from .workflows import WorkflowRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresRecordStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresRecordStore = None  # type: ignore

logger = logging.getLogger(__name__)

_store_instance: RecordStore | None = None


def _sqlite_path(database_url: str) -> str:
    """Map ``sqlite://path`` to a file path, creating its directory.

    ``sqlite:///abs/path`` is absolute, ``sqlite://rel/path`` is relative to
    the working directory and ``sqlite://:memory:`` keeps the default
    in-process database.
    """
    path = database_url[len("sqlite://"):]
    if not path:
        raise ValueError("SQLite database URL has no path: sqlite://<path>")
    if path == ":memory:":
        return path
    db_path = Path(path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return str(db_path)


def get_record_store(
    database_url: Optional[str] = None, config: Optional[FieldflowConfig] = None
) -> RecordStore:
    """Factory function to obtain a record store.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``FIELDFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory store is returned.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("FIELDFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        logger.warning(
            "No database configured; executions and logs are kept in memory only"
        )
        _store_instance = InMemoryRecordStore()
        return _store_instance

    if database_url.startswith("sqlite://"):
        _store_instance = SQLiteRecordStore(_sqlite_path(database_url))
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresRecordStore is None:
            raise RuntimeError("Postgres support not available; install asyncpg")
        _store_instance = PostgresRecordStore(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    logger.info(f"Using {type(_store_instance).__name__} record store")

    return _store_instance


__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "PostgresRecordStore",
    "WorkflowRepository",
    "get_record_store",
]
