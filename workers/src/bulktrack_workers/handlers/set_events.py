"""set.mutated: recompute the day and week scopes touched by one set change."""

import logging
from datetime import date
from typing import Any

import psycopg

from ..logging import log_fields
from ..registry import register
from ..utils import get_week_start, utc_date
from .payloads import SetMutationPayload, parse_payload
from .scopes import rebuild_day, rebuild_week, rollup_context

logger = logging.getLogger(__name__)


def affected_days(payload: SetMutationPayload) -> list[date]:
    """UTC dates whose rollups the mutation can change, ascending, no duplicates."""
    days = {utc_date(payload.performed_at)}
    if payload.previous_performed_at is not None:
        days.add(utc_date(payload.previous_performed_at))
    return sorted(days)


def affected_weeks(days: list[date]) -> list[date]:
    return sorted({get_week_start(d) for d in days})


@register("set.mutated")
async def handle_set_mutated(
    conn: psycopg.AsyncConnection[Any], payload: dict[str, Any]
) -> None:
    """Daily rollups first, then the containing weeks; errors propagate for retry."""
    event = parse_payload(SetMutationPayload, payload)
    days = affected_days(event)
    weeks = affected_weeks(days)
    ctx = rollup_context(conn)

    for day in days:
        await rebuild_day(conn, ctx, event.user_id, day)
    for week_start in weeks:
        await rebuild_week(conn, ctx, event.user_id, week_start)

    logger.info(
        "Processed set.mutated for user=%s (mutation=%s, set=%s, days=%s, weeks=%s)",
        event.user_id, event.mutation, event.set_id,
        [d.isoformat() for d in days], [w.isoformat() for w in weeks],
        extra=log_fields(user_id=event.user_id, job_type="set.mutated"),
    )
