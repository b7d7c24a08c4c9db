"""job_type → handler lookup for the worker.

Handlers register at import time (``bulktrack_workers.handlers``) and run
inside the job's transaction:

    @register("set.mutated")
    async def handle_set_mutated(conn, payload): ...
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import psycopg

logger = logging.getLogger(__name__)

JobHandler = Callable[[psycopg.AsyncConnection[Any], dict[str, Any]], Awaitable[None]]

_registry: dict[str, JobHandler] = {}


def register(job_type: str) -> Callable[[JobHandler], JobHandler]:
    def decorator(fn: JobHandler) -> JobHandler:
        existing = _registry.get(job_type)
        if existing is not None:
            raise ValueError(
                f"Duplicate handler for job_type={job_type!r}: "
                f"{existing.__module__}.{existing.__name__} already registered"
            )
        _registry[job_type] = fn
        logger.debug("Registered %s for job_type=%s", fn.__name__, job_type)
        return fn

    return decorator


def get_handler(job_type: str) -> JobHandler | None:
    return _registry.get(job_type)


def registered_types() -> list[str]:
    return sorted(_registry)
