"""Structured logging for bulktrack workers.

BULKTRACK_LOG_FORMAT selects "json" (default) or "text"; BULKTRACK_LOG_LEVEL
the root level. Rollup context travels on records as ``bulktrack_*``
attributes, built with :func:`log_fields`.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

FIELD_PREFIX = "bulktrack_"

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def log_fields(**fields: Any) -> dict[str, Any]:
    """``extra=`` mapping for a log call; None values are left out.

    log_fields(user_id="u1", scope="day:2024-01-01")
    → {"bulktrack_user_id": "u1", "bulktrack_scope": "day:2024-01-01"}
    """
    return {
        f"{FIELD_PREFIX}{key}": round(value, 2) if isinstance(value, float) else value
        for key, value in fields.items()
        if value is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, rollup fields flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in vars(record).items() if key.startswith(FIELD_PREFIX)
        )
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(log_format: str, level: int | str = logging.INFO) -> None:
    """Replace the root handlers with a single stderr handler."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
