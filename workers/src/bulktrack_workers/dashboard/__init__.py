"""Dashboard query layer over the weekly rollups."""

from .assembler import get_dashboard
from .consolidation import consolidate_leg_groups
from .models import DashboardData, DashboardQuery

__all__ = [
    "DashboardData",
    "DashboardQuery",
    "consolidate_leg_groups",
    "get_dashboard",
]
