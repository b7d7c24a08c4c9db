"""Tests for the bulktrack-rollups operator CLI."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bulktrack_workers.cli import _backfill, _build_parser


def test_parser_backfill_repeatable_user_ids():
    args = _build_parser().parse_args(["backfill", "--user-id", "u1", "--user-id", "u2", "--enqueue"])
    assert args.command == "backfill"
    assert args.user_id == ["u1", "u2"]
    assert args.enqueue is True


def test_parser_dashboard_defaults():
    args = _build_parser().parse_args(["dashboard", "--user-id", "u1"])
    assert args.span == "4w"
    assert args.language is None


def test_parser_rejects_unknown_span():
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["dashboard", "--user-id", "u1", "--span", "3w"])


def _conn() -> AsyncMock:
    conn = AsyncMock()
    tx = MagicMock()
    tx.__aenter__ = AsyncMock(return_value=None)
    tx.__aexit__ = AsyncMock(return_value=False)
    conn.transaction = MagicMock(return_value=tx)
    return conn


@pytest.mark.asyncio
async def test_backfill_inline_runs_handler_per_user():
    conn = _conn()
    args = _build_parser().parse_args(["backfill", "--user-id", "u1", "--user-id", "u2"])

    with patch("bulktrack_workers.cli.handle_rollup_backfill", new=AsyncMock()) as handler:
        result = await _backfill(conn, args)

    assert [c.args[1] for c in handler.call_args_list] == [{"user_id": "u1"}, {"user_id": "u2"}]
    assert result == {"users": {"u1": {"status": "rebuilt"}, "u2": {"status": "rebuilt"}}}
    conn.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_backfill_enqueue_reports_job_ids():
    conn = _conn()
    args = _build_parser().parse_args(["backfill", "--user-id", "u1", "--enqueue"])

    with patch("bulktrack_workers.cli.enqueue_backfill", new=AsyncMock(return_value=11)) as enqueue:
        result = await _backfill(conn, args)

    enqueue.assert_awaited_once_with(conn, "u1")
    assert result == {"users": {"u1": {"enqueued_job_id": 11}}}
