"""Day and week rollup rebuilds."""

from .context import RollupContext
from .daily import update_daily_aggregation
from .weekly import get_week_start, update_weekly_aggregation

__all__ = [
    "RollupContext",
    "get_week_start",
    "update_daily_aggregation",
    "update_weekly_aggregation",
]
