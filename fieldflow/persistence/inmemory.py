"""In-memory implementation of the record store."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Callable, Dict, List

from ..errors import PersistenceError
from .repository import RecordStore


def _matches(row: dict, filters: dict | None) -> bool:
    return all(row.get(key) == value for key, value in (filters or {}).items())


class InMemoryRecordStore(RecordStore):
    """Store records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Rows are returned as copies so
    callers cannot mutate stored state by accident.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, List[dict]] = {}
        self._procedures: Dict[str, Callable[..., Any]] = {}

    def register_procedure(self, name: str, func: Callable[..., Any]) -> None:
        """Expose ``func`` to :meth:`rpc` under ``name``."""
        self._procedures[name] = func

    def table(self, name: str) -> List[dict]:
        """Direct access to a table's rows, for tests and seeding."""
        return self._tables.setdefault(name, [])

    # ------------------------------------------------------------------
    async def select(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        rows = [copy.deepcopy(r) for r in self.table(table) if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)))
        return rows

    async def select_one(self, table: str, filters: dict) -> dict | None:
        for row in self.table(table):
            if _matches(row, filters):
                return copy.deepcopy(row)
        return None

    async def insert(self, table: str, values: dict) -> dict:
        row = copy.deepcopy(values)
        row.setdefault("id", str(uuid.uuid4()))
        rows = self.table(table)
        if any(r.get("id") == row["id"] for r in rows):
            raise PersistenceError(f"Duplicate id {row['id']} in {table}")
        rows.append(row)
        return copy.deepcopy(row)

    async def update(self, table: str, filters: dict, values: dict) -> list[dict]:
        updated = []
        for row in self.table(table):
            if _matches(row, filters):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, table: str, filters: dict) -> int:
        rows = self.table(table)
        keep = [r for r in rows if not _matches(r, filters)]
        removed = len(rows) - len(keep)
        self._tables[table] = keep
        return removed

    async def increment(
        self, table: str, filters: dict, column: str, start: int = 1
    ) -> int:
        # no await between read and write, so this cannot interleave
        for row in self.table(table):
            if _matches(row, filters):
                current = row.get(column) or start
                row[column] = current + 1
                return current
        self.table(table).append(
            {"id": str(uuid.uuid4()), **filters, column: start + 1}
        )
        return start

    async def rpc(self, name: str, params: dict | None = None) -> Any:
        func = self._procedures.get(name)
        if func is None:
            raise PersistenceError(f"Unknown procedure: {name}")
        result = func(self, **(params or {}))
        if hasattr(result, "__await__"):
            result = await result
        return result
