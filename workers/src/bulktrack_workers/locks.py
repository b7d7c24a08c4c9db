"""Per-scope serialization for rollup rebuilds.

Two rebuilds of the same (user_id, scope_key) must never interleave their
delete and insert phases. Within one process this is an asyncio.Lock per
key; across workers the job handlers also take a transaction-scoped
Postgres advisory lock on the same key.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

import psycopg

logger = logging.getLogger(__name__)


def day_scope(day: date) -> str:
    return f"day:{day.isoformat()}"


def week_scope(week_start: date) -> str:
    return f"week:{week_start.isoformat()}"


def scope_lock_key(user_id: str, scope_key: str) -> str:
    return f"{user_id}:{scope_key}"


class ScopeLocks:
    """Keyed asyncio locks. Entries are dropped once no coroutine holds or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str, scope_key: str) -> AsyncIterator[None]:
        key = scope_lock_key(user_id, scope_key)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def active_keys(self) -> list[str]:
        return sorted(self._locks)


async def acquire_scope_advisory_lock(
    conn: psycopg.AsyncConnection[Any], user_id: str, scope_key: str
) -> None:
    """Serialize rebuilds of one scope across workers (released on commit/rollback)."""
    await conn.execute(
        "SELECT pg_advisory_xact_lock(hashtext(%s)::bigint)",
        (scope_lock_key(user_id, scope_key),),
    )
