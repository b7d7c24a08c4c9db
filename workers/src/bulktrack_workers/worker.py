"""Job loop: claim background_jobs rows and run their registered handlers.

A job's rollup writes and its 'completed' status commit in one transaction.
On failure the transaction rolls back and the job is either rescheduled with
exponential backoff or marked dead.
"""

import asyncio
import logging
import signal
from typing import Any, Literal

import psycopg
from psycopg.rows import dict_row

from .config import Config
from .errors import RollupErrorClass, classify_error
from .logging import log_fields
from .metrics import record_job_completed, record_job_dead, record_job_failed
from .registry import get_handler

logger = logging.getLogger(__name__)

LISTEN_CHANNEL = "bulktrack_jobs"
RECONNECT_DELAY_SECONDS = 5

_CLAIM_SQL = """
    UPDATE background_jobs
    SET status = 'processing', started_at = NOW(), attempt = attempt + 1
    WHERE id IN (
        SELECT id FROM background_jobs
        WHERE status = 'pending' AND scheduled_for <= NOW()
        ORDER BY scheduled_for, priority DESC, id
        LIMIT %s
        FOR UPDATE SKIP LOCKED
    )
    RETURNING id, user_id, job_type, payload, attempt, max_retries
"""

_COMPLETE_SQL = """
    UPDATE background_jobs
    SET status = 'completed', completed_at = NOW(), error_message = NULL
    WHERE id = %s
"""

_DEAD_SQL = """
    UPDATE background_jobs
    SET status = 'dead', error_message = %s, completed_at = NOW()
    WHERE id = %s
"""

_RETRY_SQL = """
    UPDATE background_jobs
    SET status = 'pending', error_message = %s,
        scheduled_for = NOW() + make_interval(secs => %s)
    WHERE id = %s
"""

FailureOutcome = Literal["retry", "dead"]


def retry_backoff_seconds(attempt: int) -> int:
    return 2**attempt


def failure_outcome(error_class: RollupErrorClass, attempt: int, max_retries: int) -> FailureOutcome:
    """Malformed input fails identically on every attempt, so it is never retried."""
    if error_class == "validation" or attempt >= max_retries:
        return "dead"
    return "retry"


class Worker:
    def __init__(self, config: Config) -> None:
        self.config = config
        self._stopping = asyncio.Event()

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.stop)

        logger.info(
            "Worker up: poll every %.1fs, batches of %d, at most %d attempts per job",
            self.config.poll_interval_seconds, self.config.batch_size, self.config.max_retries,
        )
        async with asyncio.TaskGroup() as tg:
            tg.create_task(self._listen_loop())
            tg.create_task(self._poll_loop())

    def stop(self) -> None:
        logger.info("Shutdown requested")
        self._stopping.set()

    async def _listen_loop(self) -> None:
        """Drain the queue whenever an enqueue NOTIFYs bulktrack_jobs."""
        while not self._stopping.is_set():
            try:
                await self._listen_once()
            except psycopg.OperationalError:
                if self._stopping.is_set():
                    break
                logger.warning("LISTEN connection lost, reconnecting in %ds", RECONNECT_DELAY_SECONDS)
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)
        logger.info("Listen loop stopped")

    async def _listen_once(self) -> None:
        async with await psycopg.AsyncConnection.connect(
            self.config.listen_database_url, autocommit=True
        ) as conn:
            await conn.execute(f"LISTEN {LISTEN_CHANNEL}")
            logger.info("Listening on %s", LISTEN_CHANNEL)
            while not self._stopping.is_set():
                # notifies() ends after the timeout; loop to re-check shutdown
                async for notify in conn.notifies(timeout=self.config.poll_interval_seconds):
                    logger.debug("Woken by %s job", notify.payload)
                    await self._process_batch()
                    if self._stopping.is_set():
                        return

    async def _poll_loop(self) -> None:
        """Catch jobs whose NOTIFY was missed and retries whose backoff expired."""
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.config.poll_interval_seconds)
            except TimeoutError:
                await self._process_batch()
        logger.info("Poll loop stopped")

    async def _process_batch(self) -> None:
        try:
            async with await psycopg.AsyncConnection.connect(self.config.database_url) as conn:
                jobs = await self._claim_jobs(conn)
                await conn.commit()
                for job in jobs:
                    await self._process_job(conn, job)
        except psycopg.Error:
            logger.exception("Job batch aborted")

    async def _claim_jobs(self, conn: psycopg.AsyncConnection[Any]) -> list[dict[str, Any]]:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(_CLAIM_SQL, (self.config.batch_size,))
            return await cur.fetchall()

    async def _process_job(self, conn: psycopg.AsyncConnection[Any], job: dict[str, Any]) -> None:
        job_id, job_type = job["id"], job["job_type"]
        fields = log_fields(job_id=job_id, job_type=job_type, user_id=job.get("user_id"))

        handler = get_handler(job_type)
        if handler is None:
            logger.warning("No handler for job_type=%s (job_id=%d)", job_type, job_id, extra=fields)
            await self._mark_dead(conn, job_id, f"No handler for job_type={job_type}")
            return

        try:
            async with conn.transaction():
                await handler(conn, job["payload"])
                await conn.execute(_COMPLETE_SQL, (job_id,))
        except Exception as exc:
            await self._handle_failure(conn, job, exc, fields)
            return

        record_job_completed()
        logger.info("Job %d completed (type=%s)", job_id, job_type, extra=fields)

    async def _handle_failure(
        self,
        conn: psycopg.AsyncConnection[Any],
        job: dict[str, Any],
        exc: Exception,
        fields: dict[str, Any],
    ) -> None:
        error_class = classify_error(exc)
        logger.exception(
            "Job %d failed (type=%s, error_class=%s)", job["id"], job["job_type"], error_class,
            extra=fields,
        )
        max_retries = min(job["max_retries"], self.config.max_retries)
        if failure_outcome(error_class, job["attempt"], max_retries) == "dead":
            await self._mark_dead(conn, job["id"], str(exc))
            return

        record_job_failed()
        backoff = retry_backoff_seconds(job["attempt"])
        logger.info("Job %d retrying in %ds (attempt=%d)", job["id"], backoff, job["attempt"], extra=fields)
        await self._set_status(conn, _RETRY_SQL, (str(exc), float(backoff), job["id"]))

    async def _mark_dead(self, conn: psycopg.AsyncConnection[Any], job_id: int, error: str) -> None:
        record_job_dead()
        logger.error("Job %d is dead: %s", job_id, error)
        await self._set_status(conn, _DEAD_SQL, (error, job_id))

    async def _set_status(
        self, conn: psycopg.AsyncConnection[Any], query: str, params: tuple[Any, ...]
    ) -> None:
        async with conn.cursor() as cur:
            await cur.execute(query, params)
        await conn.commit()
