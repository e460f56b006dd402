"""SQLite implementation of the record store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator

from ..errors import PersistenceError
from .inmemory import _matches
from .repository import RecordStore


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class SQLiteRecordStore(RecordStore):
    """Persist records as JSON documents in a single SQLite table.

    Every logical table is a ``table_name`` partition of ``records``; the
    insertion sequence gives a stable row order.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._procedures: Dict[str, Callable[..., Any]] = {}
        self._ensure_schema()

    def register_procedure(self, name: str, func: Callable[..., Any]) -> None:
        self._procedures[name] = func

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._transaction() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    table_name TEXT NOT NULL,
                    record_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    UNIQUE (table_name, record_id)
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS records_table_idx ON records (table_name)"
            )

    # ------------------------------------------------------------------
    # Helper methods
    @contextmanager
    def _transaction(self, mode: str = "DEFERRED") -> Iterator[sqlite3.Cursor]:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(f"BEGIN {mode}")
                yield cur
                cur.execute("COMMIT")
            except sqlite3.Error as e:
                if self._conn.in_transaction:
                    cur.execute("ROLLBACK")
                raise PersistenceError(str(e)) from e
            except BaseException:
                if self._conn.in_transaction:
                    cur.execute("ROLLBACK")
                raise

    def _rows(
        self, cur: sqlite3.Cursor, table: str, filters: dict | None
    ) -> list[tuple[int, dict]]:
        cur.execute(
            "SELECT seq, data FROM records WHERE table_name = ? ORDER BY seq", (table,)
        )
        rows = [(r["seq"], json.loads(r["data"])) for r in cur.fetchall()]
        return [(seq, data) for seq, data in rows if _matches(data, filters)]

    def _select(self, table: str, filters: dict | None) -> list[dict]:
        with self._transaction() as cur:
            return [data for _, data in self._rows(cur, table, filters)]

    def _insert(self, table: str, values: dict) -> dict:
        row = dict(values)
        row.setdefault("id", str(uuid.uuid4()))
        data = json.dumps(row, default=_json_default)
        with self._transaction() as cur:
            cur.execute(
                "INSERT INTO records (table_name, record_id, data) VALUES (?, ?, ?)",
                (table, str(row["id"]), data),
            )
        return json.loads(data)

    def _update(self, table: str, filters: dict, values: dict) -> list[dict]:
        updated = []
        with self._transaction("IMMEDIATE") as cur:
            for seq, data in self._rows(cur, table, filters):
                data.update(values)
                encoded = json.dumps(data, default=_json_default)
                cur.execute("UPDATE records SET data = ? WHERE seq = ?", (encoded, seq))
                updated.append(json.loads(encoded))
        return updated

    def _delete(self, table: str, filters: dict) -> int:
        with self._transaction("IMMEDIATE") as cur:
            matched = self._rows(cur, table, filters)
            cur.executemany(
                "DELETE FROM records WHERE seq = ?", [(seq,) for seq, _ in matched]
            )
        return len(matched)

    def _increment(self, table: str, filters: dict, column: str, start: int) -> int:
        with self._transaction("IMMEDIATE") as cur:
            matched = self._rows(cur, table, filters)
            if not matched:
                row = {"id": str(uuid.uuid4()), **filters, column: start + 1}
                cur.execute(
                    "INSERT INTO records (table_name, record_id, data) VALUES (?, ?, ?)",
                    (table, row["id"], json.dumps(row, default=_json_default)),
                )
                return start
            seq, data = matched[0]
            current = data.get(column) or start
            data[column] = current + 1
            cur.execute(
                "UPDATE records SET data = ? WHERE seq = ?",
                (json.dumps(data, default=_json_default), seq),
            )
            return current

    # ------------------------------------------------------------------
    # Record store API
    async def select(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        rows = await asyncio.to_thread(self._select, table, filters)
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)))
        return rows

    async def select_one(self, table: str, filters: dict) -> dict | None:
        rows = await asyncio.to_thread(self._select, table, filters)
        return rows[0] if rows else None

    async def insert(self, table: str, values: dict) -> dict:
        return await asyncio.to_thread(self._insert, table, values)

    async def update(self, table: str, filters: dict, values: dict) -> list[dict]:
        return await asyncio.to_thread(self._update, table, filters, values)

    async def delete(self, table: str, filters: dict) -> int:
        return await asyncio.to_thread(self._delete, table, filters)

    async def increment(
        self, table: str, filters: dict, column: str, start: int = 1
    ) -> int:
        return await asyncio.to_thread(self._increment, table, filters, column, start)

    async def rpc(self, name: str, params: dict | None = None) -> Any:
        func = self._procedures.get(name)
        if func is None:
            raise PersistenceError(f"Unknown procedure: {name}")
        result = func(self, **(params or {}))
        if hasattr(result, "__await__"):
            result = await result
        return result

    def close(self) -> None:
        self._conn.close()
