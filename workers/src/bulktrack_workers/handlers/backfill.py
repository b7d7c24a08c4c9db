"""rollup.backfill: rebuild every rollup scope of a user from the raw sets.

Scopes that still have rollup rows but no longer have sets are rebuilt too,
which clears them.
"""

import logging
import time
from typing import Any

import psycopg

from ..logging import log_fields
from ..registry import register
from ..utils import get_week_start
from .payloads import BackfillPayload, parse_payload
from .scopes import rebuild_day, rebuild_week, rollup_context

logger = logging.getLogger(__name__)


@register("rollup.backfill")
async def handle_rollup_backfill(
    conn: psycopg.AsyncConnection[Any], payload: dict[str, Any]
) -> None:
    job = parse_payload(BackfillPayload, payload)
    ctx = rollup_context(conn)
    t0 = time.monotonic()

    set_days = set(await ctx.sets.list_set_dates(job.user_id))
    stale_days = set(await ctx.rollups.list_daily_summary_dates(job.user_id)) - set_days
    days = sorted(set_days | stale_days)

    set_weeks = {get_week_start(d) for d in set_days}
    stale_weeks = set(await ctx.rollups.list_weekly_volume_weeks(job.user_id)) - set_weeks
    weeks = sorted(set_weeks | stale_weeks)

    for day in days:
        await rebuild_day(conn, ctx, job.user_id, day)
    for week_start in weeks:
        await rebuild_week(conn, ctx, job.user_id, week_start)

    duration_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Backfilled rollups for user=%s (days=%d, weeks=%d, cleared_days=%d, cleared_weeks=%d)",
        job.user_id, len(days), len(weeks), len(stale_days), len(stale_weeks),
        extra=log_fields(user_id=job.user_id, job_type="rollup.backfill", duration_ms=duration_ms),
    )
