"""Health and metrics HTTP endpoints for container healthchecks.

GET /health  → DB reachability + metrics snapshot (503 when the DB is down)
GET /metrics → metrics snapshot only
"""

import asyncio
import json
import logging

import psycopg

from .metrics import get_metrics
from .registry import registered_types

logger = logging.getLogger(__name__)

_STATUS_LINES = {
    200: "HTTP/1.1 200 OK",
    404: "HTTP/1.1 404 Not Found",
    503: "HTTP/1.1 503 Service Unavailable",
}


async def check_db(db_url: str, timeout: float = 2.0) -> str:
    """Run SELECT 1; returns 'ok' or 'error'."""
    try:
        async with asyncio.timeout(timeout):
            async with await psycopg.AsyncConnection.connect(db_url, autocommit=True) as conn:
                await conn.execute("SELECT 1")
        return "ok"
    except (psycopg.Error, OSError, TimeoutError) as exc:
        logger.warning("Health DB check failed: %s", exc)
        return "error"


def _response(status: int, payload: dict) -> bytes:
    body = json.dumps(payload)
    return (
        f"{_STATUS_LINES[status]}\r\nContent-Type: application/json\r\n"
        f"Content-Length: {len(body.encode())}\r\n\r\n{body}"
    ).encode()


async def build_response(path: str, db_url: str) -> bytes:
    if path == "/health":
        db_status = await check_db(db_url)
        metrics = get_metrics()
        status = "ok" if db_status == "ok" else "degraded"
        return _response(200 if status == "ok" else 503, {
            "status": status,
            "uptime_seconds": metrics["uptime_seconds"],
            "db": db_status,
            "job_types": registered_types(),
            "metrics": metrics,
        })
    if path == "/metrics":
        return _response(200, get_metrics())
    return _response(404, {"error": "not_found"})


async def _handle_request(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    db_url: str,
) -> None:
    try:
        request_line = await asyncio.wait_for(reader.readline(), timeout=5)
        # "GET /health HTTP/1.1"
        parts = request_line.decode("utf-8", errors="replace").strip().split()
        path = parts[1] if len(parts) >= 2 else "/"
        writer.write(await build_response(path, db_url))
        await writer.drain()
    except (OSError, TimeoutError, UnicodeError):
        logger.debug("Health endpoint request error", exc_info=True)
    finally:
        writer.close()
        await writer.wait_closed()


async def start_health_server(port: int, db_url: str) -> asyncio.Server:
    async def handler(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await _handle_request(reader, writer, db_url)

    server = await asyncio.start_server(handler, "0.0.0.0", port)
    logger.info("Health endpoint listening on port %d", port)
    return server
