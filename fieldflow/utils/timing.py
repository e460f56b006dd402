from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional


async def wait_minutes(minutes: float) -> None:
    """Suspend the calling task for ``minutes`` of wall-clock time."""
    await asyncio.sleep(minutes * 60)


def today() -> date:
    return datetime.now(timezone.utc).date()


def days_from_today(days: int) -> date:
    return today() + timedelta(days=days)


def as_date(value: Any) -> Optional[date]:
    """Coerce an ISO ``YYYY-MM-DD`` string from node config to a date.

    Raises:
        ValueError: If ``value`` is a string that is not an ISO date.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
