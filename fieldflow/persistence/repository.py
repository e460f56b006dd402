"""Record store abstraction used by the engine and its actions."""

from __future__ import annotations

from typing import Any, Protocol


class RecordStore(Protocol):
    """Protocol for generic table-oriented storage backends.

    Filters are equality matches on every key. Backends raise
    :class:`~fieldflow.errors.PersistenceError` when an operation fails.
    """

    async def select(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Return all rows of ``table`` matching ``filters``."""

    async def select_one(self, table: str, filters: dict) -> dict | None:
        """Return the first matching row or ``None``."""

    async def insert(self, table: str, values: dict) -> dict:
        """Insert a row and return it as stored, including its ``id``."""

    async def update(self, table: str, filters: dict, values: dict) -> list[dict]:
        """Apply ``values`` to matching rows and return the updated rows."""

    async def delete(self, table: str, filters: dict) -> int:
        """Delete matching rows and return how many were removed."""

    async def increment(
        self, table: str, filters: dict, column: str, start: int = 1
    ) -> int:
        """Atomically claim the current value of ``column`` and advance it.

        Returns the claimed value. When no row matches, one is created with
        ``filters`` and ``column = start + 1`` and ``start`` is returned.
        """

    async def rpc(self, name: str, params: dict | None = None) -> Any:
        """Invoke a named stored procedure."""
