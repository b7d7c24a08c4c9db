"""Collaborator interfaces (ports) for the rollup engine.

The aggregators read raw sets and reference data and write rollups only
through these protocols. ``stores.postgres`` implements them on psycopg;
tests use in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Protocol

from .models import (
    DailyExerciseMuscleVolume,
    DailyExerciseSummary,
    DailyWorkoutSummary,
    ExerciseMuscle,
    Muscle,
    MuscleGroup,
    MuscleGroupVolumeRow,
    WeeklyUserMetric,
    WeeklyUserMuscleVolume,
    WeeklyUserVolume,
    WorkoutSet,
)


class SetReader(Protocol):
    """Read access to the raw workout-set log."""

    async def list_sets(self, user_id: str, start: date, end: date) -> list[WorkoutSet]:
        """Sets with ``start <= date(performed_at) <= end``, ordered by performed_at, id."""
        ...

    async def list_set_dates(self, user_id: str) -> list[date]:
        """Distinct calendar dates on which the user logged sets, ascending."""
        ...


class ReferenceReader(Protocol):
    """Static exercise → muscle mapping and muscle tension factors."""

    async def list_exercise_muscles(self, exercise_ids: Iterable[str]) -> list[ExerciseMuscle]:
        ...

    async def get_muscle(self, muscle_id: int) -> Muscle | None:
        ...

    async def list_muscles(self, muscle_ids: Iterable[int]) -> dict[int, Muscle]:
        ...


class RollupStore(Protocol):
    """Keyed writes and reads for the derived rollup tables.

    ``replace_*`` methods delete every row of the scope and insert the given
    rows; an empty sequence clears the scope.
    """

    # Day scope
    async def upsert_daily_summary(self, row: DailyWorkoutSummary) -> None: ...

    async def delete_daily_summary(self, user_id: str, day: date) -> None: ...

    async def get_daily_summary(self, user_id: str, day: date) -> DailyWorkoutSummary | None: ...

    async def replace_daily_exercise_summaries(
        self, user_id: str, day: date, rows: Sequence[DailyExerciseSummary]
    ) -> None: ...

    async def list_daily_exercise_summaries(
        self, user_id: str, day: date
    ) -> list[DailyExerciseSummary]: ...

    async def replace_daily_exercise_muscle_volumes(
        self, user_id: str, day: date, rows: Sequence[DailyExerciseMuscleVolume]
    ) -> None: ...

    async def list_daily_exercise_muscle_volumes(
        self, user_id: str, day: date
    ) -> list[DailyExerciseMuscleVolume]: ...

    async def list_daily_summary_dates(self, user_id: str) -> list[date]: ...

    # Week scope
    async def upsert_weekly_volume(self, row: WeeklyUserVolume) -> None: ...

    async def delete_weekly_volume(self, user_id: str, week_start: date) -> None: ...

    async def get_weekly_volume(self, user_id: str, week_start: date) -> WeeklyUserVolume | None: ...

    async def list_weekly_volumes(
        self, user_id: str, start: date, end: date
    ) -> list[WeeklyUserVolume]: ...

    async def replace_weekly_muscle_volumes(
        self, user_id: str, week_start: date, rows: Sequence[WeeklyUserMuscleVolume]
    ) -> None: ...

    async def list_weekly_muscle_volumes(
        self, user_id: str, week_start: date
    ) -> list[WeeklyUserMuscleVolume]: ...

    async def replace_weekly_metrics(
        self, user_id: str, week_start: date, rows: Sequence[WeeklyUserMetric]
    ) -> None: ...

    async def list_weekly_metrics(
        self, user_id: str, start: date, end: date
    ) -> list[WeeklyUserMetric]: ...

    async def list_weekly_volume_weeks(self, user_id: str) -> list[date]: ...


class DashboardReader(Protocol):
    """Read side of the rollups used by the dashboard assembler."""

    async def get_weekly_volume(self, user_id: str, week_start: date) -> WeeklyUserVolume | None:
        ...

    async def list_weekly_volumes(
        self, user_id: str, start: date, end: date
    ) -> list[WeeklyUserVolume]:
        ...

    async def list_muscle_group_volumes(
        self, user_id: str, start: date, end: date, locale: str
    ) -> list[MuscleGroupVolumeRow]:
        ...

    async def list_weekly_metrics(
        self, user_id: str, start: date, end: date
    ) -> list[WeeklyUserMetric]:
        ...

    async def list_muscle_groups(self, locale: str) -> list[MuscleGroup]:
        """Every reference muscle group, ordered by id."""
        ...
