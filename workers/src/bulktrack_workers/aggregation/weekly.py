"""Weekly rollups: user volume, user × muscle volume, weekly metrics.

Scope is the ISO week [week_start, week_start + 6 days], week_start a Monday.
Full rebuild on every call, like the daily rollups.
"""

import logging
import time
from collections import defaultdict
from datetime import date
from typing import Any

from ..locks import week_scope
from ..logging import log_fields
from ..metrics import record_scope_rebuild
from ..models import WeeklyUserMetric, WeeklyUserMuscleVolume, WeeklyUserVolume, WorkoutSet
from ..utils import get_week_start, mean, parse_date, require_week_start, utc_date, week_end
from ..volume_math import average_rm, effective_volume, estimate_one_rep_max
from .context import RollupContext
from .daily import order_sets, require_user_id
from .reference import ExerciseMuscleMap, load_exercise_muscles

logger = logging.getLogger(__name__)

ACTIVE_DAYS_METRIC = "active_days"

__all__ = [
    "ACTIVE_DAYS_METRIC",
    "build_weekly_metrics",
    "build_weekly_muscle_volumes",
    "build_weekly_volume",
    "exercise_e1rm_metric_key",
    "get_week_start",
    "update_weekly_aggregation",
]


def exercise_e1rm_metric_key(exercise_id: str) -> str:
    return f"exercise_{exercise_id}_1rm_epley"


def build_weekly_volume(
    user_id: str, week_start: date, sets: list[WorkoutSet]
) -> WeeklyUserVolume | None:
    if not sets:
        return None
    total_volume = sum(s.effective_set_volume for s in sets)
    avg_weight = mean([float(s.weight) for s in sets if s.weight is not None])
    avg_reps = mean([float(s.reps) for s in sets if s.reps is not None])
    return WeeklyUserVolume(
        user_id=user_id,
        week_start=week_start,
        total_volume=total_volume,
        avg_set_volume=total_volume / len(sets),
        e1rm_avg=average_rm(avg_weight, avg_reps),
    )


def build_weekly_muscle_volumes(
    user_id: str,
    week_start: date,
    sets: list[WorkoutSet],
    muscle_map: ExerciseMuscleMap,
) -> list[WeeklyUserMuscleVolume]:
    by_exercise: dict[str, list[WorkoutSet]] = defaultdict(list)
    for s in sets:
        by_exercise[s.exercise_id].append(s)

    acc: dict[int, dict[str, float]] = defaultdict(
        lambda: {"volume": 0.0, "set_count": 0, "e1rm_sum": 0.0, "e1rm_count": 0}
    )
    for exercise_id in sorted(by_exercise):
        exercise_sets = by_exercise[exercise_id]
        exercise_volume = sum(s.effective_set_volume for s in exercise_sets)
        # Per-set E1RM, summed; consumers divide by e1rm_count.
        e1rms = [
            e1rm
            for e1rm in (estimate_one_rep_max(s.weight, s.reps) for s in exercise_sets)
            if e1rm is not None
        ]
        for mapping, muscle in muscle_map.get(exercise_id, []):
            entry = acc[mapping.muscle_id]
            entry["volume"] += effective_volume(
                exercise_volume, mapping.relative_share, muscle.tension_factor
            )
            entry["set_count"] += len(exercise_sets)
            entry["e1rm_sum"] += sum(e1rms)
            entry["e1rm_count"] += len(e1rms)

    return [
        WeeklyUserMuscleVolume(
            user_id=user_id,
            week_start=week_start,
            muscle_id=muscle_id,
            volume=entry["volume"],
            set_count=int(entry["set_count"]),
            e1rm_sum=entry["e1rm_sum"],
            e1rm_count=int(entry["e1rm_count"]),
        )
        for muscle_id, entry in sorted(acc.items())
    ]


def build_weekly_metrics(
    user_id: str, week_start: date, sets: list[WorkoutSet]
) -> list[WeeklyUserMetric]:
    """active_days plus the best per-set Epley estimate of each exercise."""
    if not sets:
        return []

    metrics = [
        WeeklyUserMetric(
            user_id=user_id,
            week_start=week_start,
            metric_key=ACTIVE_DAYS_METRIC,
            metric_value=float(len({utc_date(s.performed_at) for s in sets})),
            metric_unit="days",
        )
    ]

    best: dict[str, float] = {}
    for s in sets:
        e1rm = estimate_one_rep_max(s.weight, s.reps)
        if e1rm is None:
            continue
        if s.exercise_id not in best or e1rm > best[s.exercise_id]:
            best[s.exercise_id] = e1rm

    for exercise_id in sorted(best):
        metrics.append(
            WeeklyUserMetric(
                user_id=user_id,
                week_start=week_start,
                metric_key=exercise_e1rm_metric_key(exercise_id),
                metric_value=round(best[exercise_id], 2),
                metric_unit="kg",
            )
        )
    return metrics


async def update_weekly_aggregation(ctx: RollupContext, user_id: str, week_start: Any) -> None:
    """Rebuild every week-scoped rollup for one user and ISO week."""
    user_id = require_user_id(user_id)
    week_start = require_week_start(parse_date(week_start, field="week_start"))
    last_day = week_end(week_start)

    async with ctx.locks.hold(user_id, week_scope(week_start)):
        t0 = time.monotonic()
        sets = order_sets([
            s for s in await ctx.sets.list_sets(user_id, week_start, last_day)
            if week_start <= utc_date(s.performed_at) <= last_day
        ])

        volume = build_weekly_volume(user_id, week_start, sets)
        if volume is None:
            await ctx.rollups.delete_weekly_volume(user_id, week_start)
            await ctx.rollups.replace_weekly_muscle_volumes(user_id, week_start, [])
            await ctx.rollups.replace_weekly_metrics(user_id, week_start, [])
            record_scope_rebuild("weekly", (time.monotonic() - t0) * 1000, cleared=True)
            logger.info(
                "Cleared weekly rollups for user=%s week=%s (no sets)",
                user_id, week_start.isoformat(),
                extra=log_fields(user_id=user_id, scope=week_scope(week_start)),
            )
            return

        await ctx.rollups.upsert_weekly_volume(volume)

        muscle_map = await load_exercise_muscles(ctx.reference, [s.exercise_id for s in sets])
        muscle_rows = build_weekly_muscle_volumes(user_id, week_start, sets, muscle_map)
        await ctx.rollups.replace_weekly_muscle_volumes(user_id, week_start, muscle_rows)

        metric_rows = build_weekly_metrics(user_id, week_start, sets)
        await ctx.rollups.replace_weekly_metrics(user_id, week_start, metric_rows)

        duration_ms = (time.monotonic() - t0) * 1000
        record_scope_rebuild("weekly", duration_ms, cleared=False)
        logger.info(
            "Updated weekly rollups for user=%s week=%s (sets=%d, muscles=%d, metrics=%d)",
            user_id, week_start.isoformat(), len(sets), len(muscle_rows), len(metric_rows),
            extra=log_fields(user_id=user_id, scope=week_scope(week_start), duration_ms=duration_ms),
        )
