"""Shared utility functions for bulktrack workers."""

from datetime import date, datetime, timedelta, timezone
from typing import Any

from .errors import ValidationError

SUPPORTED_SPANS: tuple[str, ...] = ("1w", "4w", "8w", "12w", "24w")


# ---------------------------------------------------------------------------
# Week arithmetic
# ---------------------------------------------------------------------------


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def utc_date(ts: datetime) -> date:
    """Calendar date of a timestamp in UTC (naive timestamps are UTC)."""
    return _as_utc(ts).date()


def get_week_start(value: date | datetime) -> date:
    """Return the Monday of the ISO week containing ``value``.

    Sunday belongs to the week that started six days earlier.
    """
    d = utc_date(value) if isinstance(value, datetime) else value
    weekday = d.isoweekday()  # Monday=1 .. Sunday=7
    offset = -6 if weekday == 7 else 1 - weekday
    return d + timedelta(days=offset)


def week_end(week_start: date) -> date:
    return week_start + timedelta(days=6)


def require_week_start(week_start: date) -> date:
    if week_start.isoweekday() != 1:
        raise ValidationError(f"week_start must be a Monday, got {week_start.isoformat()}")
    return week_start


def iter_week_starts(start: date, end: date) -> list[date]:
    """Mondays from ``start`` to ``end`` inclusive, in 7-day steps."""
    weeks: list[date] = []
    current = start
    while current <= end:
        weeks.append(current)
        current += timedelta(days=7)
    return weeks


def parse_span(span: str) -> int:
    """Parse a dashboard span token such as ``"4w"`` into a week count."""
    raw = str(span or "").strip().lower()
    if raw not in SUPPORTED_SPANS:
        raise ValidationError(
            f"Unsupported span {span!r}; expected one of {', '.join(SUPPORTED_SPANS)}"
        )
    return int(raw[:-1])


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def parse_date(value: Any, *, field: str = "date") -> date:
    if isinstance(value, datetime):
        return utc_date(value)
    if isinstance(value, date):
        return value
    raw = str(value or "").strip()
    if not raw:
        raise ValidationError(f"Missing {field}")
    try:
        return date.fromisoformat(raw[:10])
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}: {value!r}") from exc


def parse_timestamp(value: Any, *, field: str = "performed_at") -> datetime:
    """Parse an ISO-8601 timestamp or epoch (seconds or millis) into UTC."""
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        epoch = float(value)
        if epoch > 1_000_000_000_000:
            epoch /= 1000.0
        return datetime.fromtimestamp(epoch, tz=timezone.utc)

    raw = str(value or "").strip()
    if not raw:
        raise ValidationError(f"Missing {field}")
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}: {value!r}") from exc
    return _as_utc(parsed)


def as_optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def mean(values: list[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def extract_locale(language: str | None) -> str:
    """Primary language subtag, e.g. ``"ja"`` from ``"ja-JP,en;q=0.8"``."""
    primary = str(language or "").split(",")[0].split(";")[0].strip()
    primary = primary.split("-")[0].split("_")[0].lower()
    return primary or "en"
