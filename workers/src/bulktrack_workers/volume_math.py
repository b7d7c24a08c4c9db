"""Effective-volume and E1RM formulas shared by the daily and weekly rollups.

Pure functions, no I/O. ``relative_share`` is an integer in thousandths and
is only divided at the final multiplication.
"""

from __future__ import annotations

from .errors import ComputationError

SHARE_SCALE = 1000


def estimate_one_rep_max(weight: float | None, reps: float | None) -> float | None:
    """Estimate 1RM with the Epley formula: weight * (1 + reps / 30).

    Returns None when either input is missing or non-positive.
    """
    if weight is None or reps is None:
        return None
    if weight <= 0 or reps <= 0:
        return None
    return weight * (1 + reps / 30)


def average_rm(avg_weight: float | None, avg_reps: float | None) -> float | None:
    """E1RM of averaged inputs (daily summary and weekly user volume)."""
    if not avg_weight or not avg_reps or avg_reps <= 0:
        return None
    return estimate_one_rep_max(avg_weight, avg_reps)


def effective_volume(total_volume: float, relative_share: int, tension_factor: float) -> float:
    """Scale raw volume by a muscle's share (thousandths) and tension factor."""
    if relative_share < 0 or relative_share > SHARE_SCALE:
        raise ComputationError(
            f"relative_share must be within [0, {SHARE_SCALE}], got {relative_share}"
        )
    if tension_factor < 0:
        raise ComputationError(f"tension_factor must be >= 0, got {tension_factor}")
    return total_volume * relative_share * tension_factor / SHARE_SCALE


def set_volume(weight: float | None, reps: float | None) -> float:
    """Raw volume of a single set; missing inputs contribute nothing."""
    if weight is None or reps is None:
        return 0.0
    if weight <= 0 or reps <= 0:
        return 0.0
    return float(weight) * float(reps)
