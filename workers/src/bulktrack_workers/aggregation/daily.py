"""Daily rollups: workout summary, per-exercise summary, exercise × muscle volume.

Every call rebuilds the whole (user_id, date) scope from the raw sets, so
running it twice yields identical rows and a day without sets ends up with
no rows at all.
"""

import logging
import time
from collections import defaultdict
from datetime import date
from typing import Any

from ..errors import ValidationError
from ..locks import day_scope
from ..logging import log_fields
from ..metrics import record_scope_rebuild
from ..models import (
    DailyExerciseMuscleVolume,
    DailyExerciseSummary,
    DailyWorkoutSummary,
    WorkoutSet,
)
from ..utils import mean, parse_date, utc_date
from ..volume_math import average_rm, effective_volume
from .context import RollupContext
from .reference import ExerciseMuscleMap, load_exercise_muscles

logger = logging.getLogger(__name__)


def require_user_id(user_id: Any) -> str:
    value = str(user_id or "").strip()
    if not value:
        raise ValidationError("Missing user_id")
    return value


def order_sets(sets: list[WorkoutSet]) -> list[WorkoutSet]:
    return sorted(sets, key=lambda s: (s.performed_at, s.id))


def _avg_rm_of(sets: list[WorkoutSet]) -> float | None:
    # Average weight and average reps first, then one Epley estimate.
    avg_weight = mean([float(s.weight) for s in sets if s.weight is not None])
    avg_reps = mean([float(s.reps) for s in sets if s.reps is not None])
    return average_rm(avg_weight, avg_reps)


def build_daily_summary(
    user_id: str, day: date, sets: list[WorkoutSet]
) -> DailyWorkoutSummary | None:
    if not sets:
        return None
    return DailyWorkoutSummary(
        user_id=user_id,
        date=day,
        total_volume=sum(s.effective_set_volume for s in sets),
        set_count=len(sets),
        exercise_count=len({s.exercise_id for s in sets}),
        avg_rm=_avg_rm_of(sets),
    )


def build_exercise_summaries(
    user_id: str, day: date, sets: list[WorkoutSet]
) -> list[DailyExerciseSummary]:
    by_exercise: dict[str, list[WorkoutSet]] = defaultdict(list)
    for s in order_sets(sets):
        by_exercise[s.exercise_id].append(s)

    return [
        DailyExerciseSummary(
            user_id=user_id,
            date=day,
            exercise_id=exercise_id,
            total_volume=sum(s.effective_set_volume for s in exercise_sets),
            set_count=len(exercise_sets),
            avg_rm=_avg_rm_of(exercise_sets),
            set_ids=tuple(s.id for s in exercise_sets),
        )
        for exercise_id, exercise_sets in sorted(by_exercise.items())
    ]


def build_exercise_muscle_volumes(
    exercise_summaries: list[DailyExerciseSummary],
    muscle_map: ExerciseMuscleMap,
) -> list[DailyExerciseMuscleVolume]:
    rows: list[DailyExerciseMuscleVolume] = []
    for summary in exercise_summaries:
        for mapping, muscle in muscle_map.get(summary.exercise_id, []):
            rows.append(
                DailyExerciseMuscleVolume(
                    user_id=summary.user_id,
                    date=summary.date,
                    exercise_id=summary.exercise_id,
                    muscle_id=mapping.muscle_id,
                    effective_volume=effective_volume(
                        summary.total_volume,
                        mapping.relative_share,
                        muscle.tension_factor,
                    ),
                )
            )
    return rows


async def update_daily_aggregation(ctx: RollupContext, user_id: str, day: Any) -> None:
    """Rebuild every day-scoped rollup for one user and calendar date (UTC)."""
    user_id = require_user_id(user_id)
    day = parse_date(day)

    async with ctx.locks.hold(user_id, day_scope(day)):
        t0 = time.monotonic()
        sets = order_sets([
            s for s in await ctx.sets.list_sets(user_id, day, day)
            if utc_date(s.performed_at) == day
        ])

        summary = build_daily_summary(user_id, day, sets)
        if summary is None:
            await ctx.rollups.delete_daily_summary(user_id, day)
            await ctx.rollups.replace_daily_exercise_summaries(user_id, day, [])
            await ctx.rollups.replace_daily_exercise_muscle_volumes(user_id, day, [])
            record_scope_rebuild("daily", (time.monotonic() - t0) * 1000, cleared=True)
            logger.info(
                "Cleared daily rollups for user=%s date=%s (no sets)",
                user_id, day.isoformat(),
                extra=log_fields(user_id=user_id, scope=day_scope(day)),
            )
            return

        await ctx.rollups.upsert_daily_summary(summary)

        exercise_rows = build_exercise_summaries(user_id, day, sets)
        await ctx.rollups.replace_daily_exercise_summaries(user_id, day, exercise_rows)

        muscle_map = await load_exercise_muscles(ctx.reference, [r.exercise_id for r in exercise_rows])
        muscle_rows = build_exercise_muscle_volumes(exercise_rows, muscle_map)
        await ctx.rollups.replace_daily_exercise_muscle_volumes(user_id, day, muscle_rows)

        duration_ms = (time.monotonic() - t0) * 1000
        record_scope_rebuild("daily", duration_ms, cleared=False)
        logger.info(
            "Updated daily rollups for user=%s date=%s (sets=%d, exercises=%d, muscle_rows=%d)",
            user_id, day.isoformat(), summary.set_count, len(exercise_rows), len(muscle_rows),
            extra=log_fields(user_id=user_id, scope=day_scope(day), duration_ms=duration_ms),
        )
