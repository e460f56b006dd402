"""PostgreSQL implementation of the record store."""

from __future__ import annotations

import json
import re
import uuid
from typing import Any

import asyncpg

from ..errors import PersistenceError
from .repository import RecordStore

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _quote(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise PersistenceError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def _encode_json(value: Any) -> str:
    # rows read back from asyncpg carry UUID, datetime and Decimal values
    return json.dumps(value, default=str)


def _normalize(record: asyncpg.Record) -> dict:
    return {
        key: str(value) if isinstance(value, uuid.UUID) else value
        for key, value in record.items()
    }


def _insert_sql(table: str, values: dict) -> str:
    columns = ", ".join(_quote(c) for c in values)
    placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
    return f"INSERT INTO {_quote(table)} ({columns}) VALUES ({placeholders}) RETURNING *"


def _where(filters: dict | None, offset: int = 0) -> tuple[str, list[Any]]:
    if not filters:
        return "", []
    clauses = [
        f"{_quote(key)} = ${offset + i}" for i, key in enumerate(filters, start=1)
    ]
    return " WHERE " + " AND ".join(clauses), list(filters.values())


class PostgresRecordStore(RecordStore):
    """Operate on existing PostgreSQL tables.

    Table and column names come from workflow configuration, so every
    identifier is validated before it is interpolated into SQL.
    """

    def __init__(self, dsn: str):
        self._dsn = dsn

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
        except (OSError, asyncpg.PostgresError) as e:
            raise PersistenceError(f"Could not connect to PostgreSQL: {e}") from e
        for typename in ("json", "jsonb"):
            await conn.set_type_codec(
                typename, encoder=_encode_json, decoder=json.loads, schema="pg_catalog"
            )
        return conn

    async def _fetch(self, query: str, *params: Any) -> list[dict]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(query, *params)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            # InterfaceError covers client-side DataError on bad parameters
            raise PersistenceError(str(e)) from e
        finally:
            await conn.close()
        return [_normalize(r) for r in rows]

    # ------------------------------------------------------------------
    async def select(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        where, params = _where(filters)
        order = f" ORDER BY {_quote(order_by)}" if order_by else ""
        return await self._fetch(f"SELECT * FROM {_quote(table)}{where}{order}", *params)

    async def select_one(self, table: str, filters: dict) -> dict | None:
        where, params = _where(filters)
        rows = await self._fetch(
            f"SELECT * FROM {_quote(table)}{where} LIMIT 1", *params
        )
        return rows[0] if rows else None

    async def insert(self, table: str, values: dict) -> dict:
        rows = await self._fetch(_insert_sql(table, values), *values.values())
        return rows[0]

    async def update(self, table: str, filters: dict, values: dict) -> list[dict]:
        assignments = ", ".join(
            f"{_quote(c)} = ${i}" for i, c in enumerate(values, start=1)
        )
        where, params = _where(filters, offset=len(values))
        return await self._fetch(
            f"UPDATE {_quote(table)} SET {assignments}{where} RETURNING *",
            *values.values(),
            *params,
        )

    async def delete(self, table: str, filters: dict) -> int:
        where, params = _where(filters)
        rows = await self._fetch(
            f"DELETE FROM {_quote(table)}{where} RETURNING 1", *params
        )
        return len(rows)

    async def increment(
        self, table: str, filters: dict, column: str, start: int = 1
    ) -> int:
        """Claim the counter in ``column`` and advance it by one.

        Claimants for the same ``table`` and ``filters`` hold a
        transaction-scoped advisory lock, so the first claim for a missing
        row cannot be inserted twice.
        """
        col = _quote(column)
        where, params = _where(filters, offset=1)
        lock_key = f"{table}:{json.dumps(filters, sort_keys=True, default=str)}"
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", lock_key)
                row = await conn.fetchrow(
                    f"UPDATE {_quote(table)} SET {col} = COALESCE({col}, $1) + 1{where} "
                    f"RETURNING {col} - 1 AS claimed",
                    start,
                    *params,
                )
                if row is not None:
                    return row["claimed"]
                values = {**filters, column: start + 1}
                await conn.execute(_insert_sql(table, values), *values.values())
                return start
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise PersistenceError(str(e)) from e
        finally:
            await conn.close()

    async def rpc(self, name: str, params: dict | None = None) -> Any:
        params = params or {}
        args = ", ".join(
            f"{_quote(k)} => ${i}" for i, k in enumerate(params, start=1)
        )
        return await self._fetch(f"SELECT * FROM {_quote(name)}({args})", *params.values())
