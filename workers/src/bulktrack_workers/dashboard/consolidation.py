"""Merge the hip & glutes muscle group into legs for display."""

from ..utils import extract_locale
from .models import MuscleGroupSeries, MuscleGroupWeekPoint

HIP_GLUTES_GROUP_ID = 6
LEGS_GROUP_ID = 7

_LEGS_NAMES = {
    "ja": "脚",
    "en": "Legs",
    "de": "Beine",
    "fr": "Jambes",
    "es": "Piernas",
    "zh": "腿部",
    "ko": "다리",
}


def legs_display_name(language: str | None) -> str:
    return _LEGS_NAMES.get(extract_locale(language), "Legs")


def merge_avg_e1rm(a: MuscleGroupWeekPoint, b: MuscleGroupWeekPoint) -> float | None:
    """Set-count weighted mean; a None side contributes nothing."""
    if a.avg_e1rm is None and b.avg_e1rm is None:
        return None
    if a.avg_e1rm is None:
        return b.avg_e1rm
    if b.avg_e1rm is None:
        return a.avg_e1rm
    total_sets = a.set_count + b.set_count
    if total_sets == 0:
        return None
    return (a.avg_e1rm * a.set_count + b.avg_e1rm * b.set_count) / total_sets


def _merge_point(legs: MuscleGroupWeekPoint, hip: MuscleGroupWeekPoint | None) -> MuscleGroupWeekPoint:
    if hip is None:
        return legs
    return MuscleGroupWeekPoint(
        week_start=legs.week_start,
        total_volume=legs.total_volume + hip.total_volume,
        set_count=legs.set_count + hip.set_count,
        avg_e1rm=merge_avg_e1rm(legs, hip),
    )


def consolidate_leg_groups(
    series: list[MuscleGroupSeries], language: str | None
) -> list[MuscleGroupSeries]:
    """Fold hip & glutes into legs; the merged legs series goes last.

    Hip & glutes alone is relabelled as legs under the locale's legs
    name. Legs alone, or neither group, returns the input unchanged.
    """
    hip = next((s for s in series if s.muscle_group_id == HIP_GLUTES_GROUP_ID), None)
    legs = next((s for s in series if s.muscle_group_id == LEGS_GROUP_ID), None)

    if hip is None:
        return list(series)
    if legs is None:
        relabelled = MuscleGroupSeries(
            muscle_group_id=LEGS_GROUP_ID,
            group_name=legs_display_name(language),
            points=list(hip.points),
        )
        return [s for s in series if s.muscle_group_id != HIP_GLUTES_GROUP_ID] + [relabelled]

    merged = MuscleGroupSeries(
        muscle_group_id=LEGS_GROUP_ID,
        group_name=legs.group_name or legs_display_name(language),
        points=[
            _merge_point(point, hip.points[i] if i < len(hip.points) else None)
            for i, point in enumerate(legs.points)
        ],
    )
    rest = [
        s for s in series
        if s.muscle_group_id not in (HIP_GLUTES_GROUP_ID, LEGS_GROUP_ID)
    ]
    return rest + [merged]
