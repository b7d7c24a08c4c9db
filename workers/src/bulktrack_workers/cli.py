"""CLI for operators: backfill rollups and inspect a user's dashboard."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from typing import Any, Sequence

import psycopg

from .config import Config
from .dashboard import get_dashboard
from .handlers.backfill import handle_rollup_backfill
from .jobs import enqueue_backfill
from .logging import setup_logging
from .stores import PostgresDashboardReader
from .utils import SUPPORTED_SPANS


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulktrack-rollups",
        description="Backfill workout rollups or print a user's dashboard.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    backfill = sub.add_parser("backfill", help="Rebuild every rollup scope of one or more users.")
    backfill.add_argument(
        "--user-id",
        action="append",
        required=True,
        help="User id to backfill (repeatable).",
    )
    backfill.add_argument(
        "--enqueue",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enqueue rollup.backfill jobs instead of rebuilding inline.",
    )

    dashboard = sub.add_parser("dashboard", help="Print the dashboard view model as JSON.")
    dashboard.add_argument("--user-id", required=True)
    dashboard.add_argument("--span", default="4w", choices=SUPPORTED_SPANS)
    dashboard.add_argument(
        "--language",
        default=None,
        help="Accept-Language style tag (defaults to BULKTRACK_DEFAULT_LANGUAGE).",
    )
    return parser


async def _backfill(conn: psycopg.AsyncConnection[Any], args: argparse.Namespace) -> dict[str, Any]:
    result: dict[str, Any] = {"users": {}}
    for user_id in args.user_id:
        if args.enqueue:
            job_id = await enqueue_backfill(conn, user_id)
            result["users"][user_id] = {"enqueued_job_id": job_id}
        else:
            async with conn.transaction():
                await handle_rollup_backfill(conn, {"user_id": user_id})
            result["users"][user_id] = {"status": "rebuilt"}
    await conn.commit()
    return result


async def _run(args: argparse.Namespace) -> int:
    config = Config.from_env()

    async with await psycopg.AsyncConnection.connect(config.database_url) as conn:
        if args.command == "backfill":
            result = await _backfill(conn, args)
        else:
            data = await get_dashboard(
                PostgresDashboardReader(conn),
                args.user_id,
                args.span,
                args.language or config.default_language,
            )
            result = data.model_dump(by_alias=True, mode="json")

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    setup_logging(os.environ.get("BULKTRACK_LOG_FORMAT", "text"), os.environ.get("BULKTRACK_LOG_LEVEL", "INFO"))
    parser = _build_parser()
    args = parser.parse_args(argv)
    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
