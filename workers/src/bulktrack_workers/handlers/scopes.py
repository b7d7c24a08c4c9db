"""Scope rebuilds as run from job handlers.

Each rebuild first takes the transaction-scoped advisory lock for its
(user, scope) key, so two workers never interleave on one scope. The lock
is released when the job's transaction commits or rolls back.
"""

import logging
import time
from datetime import date
from typing import Any

import psycopg

from ..aggregation import RollupContext, update_daily_aggregation, update_weekly_aggregation
from ..locks import ScopeLocks, acquire_scope_advisory_lock, day_scope, week_scope
from ..metrics import record_handler_invocation
from ..stores import PostgresReferenceReader, PostgresRollupStore, PostgresSetReader

logger = logging.getLogger(__name__)

# Shared by every job handled in this process.
_scope_locks = ScopeLocks()


def rollup_context(conn: psycopg.AsyncConnection[Any]) -> RollupContext:
    return RollupContext(
        sets=PostgresSetReader(conn),
        reference=PostgresReferenceReader(conn),
        rollups=PostgresRollupStore(conn),
        locks=_scope_locks,
    )


async def rebuild_day(
    conn: psycopg.AsyncConnection[Any], ctx: RollupContext, user_id: str, day: date
) -> None:
    await acquire_scope_advisory_lock(conn, user_id, day_scope(day))
    t0 = time.monotonic()
    try:
        await update_daily_aggregation(ctx, user_id, day)
    except Exception:
        record_handler_invocation("update_daily_aggregation", (time.monotonic() - t0) * 1000, success=False)
        raise
    record_handler_invocation("update_daily_aggregation", (time.monotonic() - t0) * 1000, success=True)


async def rebuild_week(
    conn: psycopg.AsyncConnection[Any], ctx: RollupContext, user_id: str, week_start: date
) -> None:
    await acquire_scope_advisory_lock(conn, user_id, week_scope(week_start))
    t0 = time.monotonic()
    try:
        await update_weekly_aggregation(ctx, user_id, week_start)
    except Exception:
        record_handler_invocation("update_weekly_aggregation", (time.monotonic() - t0) * 1000, success=False)
        raise
    record_handler_invocation("update_weekly_aggregation", (time.monotonic() - t0) * 1000, success=True)
