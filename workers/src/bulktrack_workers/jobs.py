"""Enqueue rollup jobs into background_jobs."""

from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

SET_MUTATED = "set.mutated"
ROLLUP_BACKFILL = "rollup.backfill"


async def enqueue_job(
    conn: psycopg.AsyncConnection[Any],
    job_type: str,
    payload: dict[str, Any],
    *,
    max_retries: int = 3,
) -> int:
    """Insert a pending job; the insert trigger NOTIFYs bulktrack_jobs."""
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(
            """
            INSERT INTO background_jobs (user_id, job_type, payload, max_retries)
            VALUES (%s, %s, %s, %s)
            RETURNING id
            """,
            (payload.get("user_id"), job_type, Json(payload), max_retries),
        )
        row = await cur.fetchone()
    return int(row["id"])


async def enqueue_set_mutation(
    conn: psycopg.AsyncConnection[Any],
    *,
    user_id: str,
    performed_at: str,
    mutation: str,
    set_id: str | None = None,
    previous_performed_at: str | None = None,
    max_retries: int = 3,
) -> int:
    payload: dict[str, Any] = {
        "user_id": user_id,
        "performed_at": performed_at,
        "mutation": mutation,
    }
    if set_id is not None:
        payload["set_id"] = set_id
    if previous_performed_at is not None:
        payload["previous_performed_at"] = previous_performed_at
    return await enqueue_job(conn, SET_MUTATED, payload, max_retries=max_retries)


async def enqueue_backfill(
    conn: psycopg.AsyncConnection[Any], user_id: str, *, max_retries: int = 3
) -> int:
    return await enqueue_job(conn, ROLLUP_BACKFILL, {"user_id": user_id}, max_retries=max_retries)
