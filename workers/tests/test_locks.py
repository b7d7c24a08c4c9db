"""Tests for per-scope serialization."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock

import pytest

from bulktrack_workers.locks import (
    ScopeLocks,
    acquire_scope_advisory_lock,
    day_scope,
    scope_lock_key,
    week_scope,
)


def test_scope_keys():
    assert day_scope(date(2024, 1, 3)) == "day:2024-01-03"
    assert week_scope(date(2024, 1, 1)) == "week:2024-01-01"
    assert scope_lock_key("u1", "day:2024-01-03") == "u1:day:2024-01-03"


class TestScopeLocks:
    @pytest.mark.asyncio
    async def test_same_scope_is_serialized(self):
        locks = ScopeLocks()
        events: list[str] = []

        async def rebuild(name: str) -> None:
            async with locks.hold("u1", "day:2024-01-01"):
                events.append(f"{name}:start")
                await asyncio.sleep(0.01)
                events.append(f"{name}:end")

        await asyncio.gather(rebuild("a"), rebuild("b"))

        assert events in (
            ["a:start", "a:end", "b:start", "b:end"],
            ["b:start", "b:end", "a:start", "a:end"],
        )

    @pytest.mark.asyncio
    async def test_different_scopes_run_concurrently(self):
        locks = ScopeLocks()
        inside = asyncio.Event()
        release = asyncio.Event()

        async def first() -> None:
            async with locks.hold("u1", "day:2024-01-01"):
                inside.set()
                await release.wait()

        task = asyncio.create_task(first())
        await inside.wait()
        async with locks.hold("u1", "day:2024-01-02"):
            assert locks.active_keys() == ["u1:day:2024-01-01", "u1:day:2024-01-02"]
        release.set()
        await task

    @pytest.mark.asyncio
    async def test_entries_dropped_when_idle(self):
        locks = ScopeLocks()
        async with locks.hold("u1", "week:2024-01-01"):
            pass
        assert locks.active_keys() == []

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = ScopeLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("u1", "week:2024-01-01"):
                raise RuntimeError("boom")
        assert locks.active_keys() == []


@pytest.mark.asyncio
async def test_advisory_lock_uses_scope_key():
    conn = AsyncMock()
    await acquire_scope_advisory_lock(conn, "u1", "week:2024-01-01")

    sql, params = conn.execute.call_args.args
    assert "pg_advisory_xact_lock(hashtext(%s)::bigint)" in sql
    assert params == ("u1:week:2024-01-01",)
