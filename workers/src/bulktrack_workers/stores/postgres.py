"""psycopg implementations of the rollup ports.

All classes share the caller's connection and never commit: the job handler
owns the transaction, so a rebuild and its job-completion update land
together or not at all.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

import psycopg
from psycopg.rows import dict_row

from ..errors import StorageError
from ..models import (
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
from ..utils import as_optional_float

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _storage(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except psycopg.Error as exc:
        logger.error("Storage operation %s failed: %s", operation, exc)
        raise StorageError(f"{operation} failed: {exc}", operation=operation) from exc


class _PostgresBase:
    def __init__(self, conn: psycopg.AsyncConnection[Any]) -> None:
        self.conn = conn

    async def _fetchall(self, operation: str, query: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        async with _storage(operation):
            async with self.conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchall()

    async def _fetchone(self, operation: str, query: str, params: Sequence[Any]) -> dict[str, Any] | None:
        async with _storage(operation):
            async with self.conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchone()

    async def _execute(self, operation: str, query: str, params: Sequence[Any]) -> None:
        async with _storage(operation):
            async with self.conn.cursor() as cur:
                await cur.execute(query, params)

    async def _replace(
        self,
        operation: str,
        delete_query: str,
        scope: Sequence[Any],
        insert_query: str,
        rows: list[Sequence[Any]],
    ) -> None:
        async with _storage(operation):
            async with self.conn.cursor() as cur:
                await cur.execute(delete_query, scope)
                if rows:
                    await cur.executemany(insert_query, rows)


# ---------------------------------------------------------------------------
# Row converters
# ---------------------------------------------------------------------------


def _workout_set(row: dict[str, Any]) -> WorkoutSet:
    return WorkoutSet(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        exercise_id=str(row["exercise_id"]),
        performed_at=row["performed_at"],
        weight=as_optional_float(row.get("weight")),
        reps=as_optional_float(row.get("reps")),
        volume=as_optional_float(row.get("volume")),
    )


def _muscle(row: dict[str, Any]) -> Muscle:
    return Muscle(
        muscle_id=int(row["id"]),
        tension_factor=float(row["tension_factor"]),
        muscle_group_id=row.get("muscle_group_id"),
    )


def _daily_summary(row: dict[str, Any]) -> DailyWorkoutSummary:
    return DailyWorkoutSummary(
        user_id=str(row["user_id"]),
        date=row["date"],
        total_volume=float(row["total_volume"]),
        set_count=int(row["set_count"]),
        exercise_count=int(row["exercise_count"]),
        avg_rm=as_optional_float(row["avg_rm"]),
    )


def _weekly_volume(row: dict[str, Any]) -> WeeklyUserVolume:
    return WeeklyUserVolume(
        user_id=str(row["user_id"]),
        week_start=row["week_start"],
        total_volume=float(row["total_volume"]),
        avg_set_volume=float(row["avg_set_volume"]),
        e1rm_avg=as_optional_float(row["e1rm_avg"]),
    )


def _weekly_metric(row: dict[str, Any]) -> WeeklyUserMetric:
    return WeeklyUserMetric(
        user_id=str(row["user_id"]),
        week_start=row["week_start"],
        metric_key=row["metric_key"],
        metric_value=float(row["metric_value"]),
        metric_unit=row["metric_unit"],
    )


# ---------------------------------------------------------------------------
# Raw sets + reference data
# ---------------------------------------------------------------------------


class PostgresSetReader(_PostgresBase):
    async def list_sets(self, user_id: str, start: date, end: date) -> list[WorkoutSet]:
        rows = await self._fetchall(
            "list_sets",
            """
            SELECT id, user_id, exercise_id, weight, reps, volume, performed_at
            FROM workout_sets
            WHERE user_id = %s
              AND (performed_at AT TIME ZONE 'UTC')::date BETWEEN %s AND %s
            ORDER BY performed_at, id
            """,
            (user_id, start, end),
        )
        return [_workout_set(r) for r in rows]

    async def list_set_dates(self, user_id: str) -> list[date]:
        rows = await self._fetchall(
            "list_set_dates",
            """
            SELECT DISTINCT (performed_at AT TIME ZONE 'UTC')::date AS day
            FROM workout_sets
            WHERE user_id = %s
            ORDER BY day
            """,
            (user_id,),
        )
        return [r["day"] for r in rows]


class PostgresReferenceReader(_PostgresBase):
    async def list_exercise_muscles(self, exercise_ids: Iterable[str]) -> list[ExerciseMuscle]:
        ids = sorted(set(exercise_ids))
        if not ids:
            return []
        rows = await self._fetchall(
            "list_exercise_muscles",
            """
            SELECT exercise_id, muscle_id, relative_share
            FROM exercise_muscles
            WHERE exercise_id = ANY(%s)
            ORDER BY exercise_id, muscle_id
            """,
            (ids,),
        )
        return [
            ExerciseMuscle(
                exercise_id=str(r["exercise_id"]),
                muscle_id=int(r["muscle_id"]),
                relative_share=int(r["relative_share"]),
            )
            for r in rows
        ]

    async def get_muscle(self, muscle_id: int) -> Muscle | None:
        row = await self._fetchone(
            "get_muscle",
            "SELECT id, tension_factor, muscle_group_id FROM muscles WHERE id = %s",
            (muscle_id,),
        )
        return _muscle(row) if row else None

    async def list_muscles(self, muscle_ids: Iterable[int]) -> dict[int, Muscle]:
        ids = sorted(set(muscle_ids))
        if not ids:
            return {}
        rows = await self._fetchall(
            "list_muscles",
            "SELECT id, tension_factor, muscle_group_id FROM muscles WHERE id = ANY(%s)",
            (ids,),
        )
        return {int(r["id"]): _muscle(r) for r in rows}


# ---------------------------------------------------------------------------
# Derived rollups
# ---------------------------------------------------------------------------


class PostgresRollupStore(_PostgresBase):
    # Day scope

    async def upsert_daily_summary(self, row: DailyWorkoutSummary) -> None:
        await self._execute(
            "upsert_daily_summary",
            """
            INSERT INTO daily_workout_summaries
                (user_id, date, total_volume, set_count, exercise_count, avg_rm, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (user_id, date) DO UPDATE SET
                total_volume = EXCLUDED.total_volume,
                set_count = EXCLUDED.set_count,
                exercise_count = EXCLUDED.exercise_count,
                avg_rm = EXCLUDED.avg_rm,
                updated_at = NOW()
            """,
            (row.user_id, row.date, row.total_volume, row.set_count, row.exercise_count, row.avg_rm),
        )

    async def delete_daily_summary(self, user_id: str, day: date) -> None:
        await self._execute(
            "delete_daily_summary",
            "DELETE FROM daily_workout_summaries WHERE user_id = %s AND date = %s",
            (user_id, day),
        )

    async def get_daily_summary(self, user_id: str, day: date) -> DailyWorkoutSummary | None:
        row = await self._fetchone(
            "get_daily_summary",
            """
            SELECT user_id, date, total_volume, set_count, exercise_count, avg_rm
            FROM daily_workout_summaries
            WHERE user_id = %s AND date = %s
            """,
            (user_id, day),
        )
        return _daily_summary(row) if row else None

    async def list_daily_summary_dates(self, user_id: str) -> list[date]:
        rows = await self._fetchall(
            "list_daily_summary_dates",
            "SELECT date FROM daily_workout_summaries WHERE user_id = %s ORDER BY date",
            (user_id,),
        )
        return [r["date"] for r in rows]

    async def replace_daily_exercise_summaries(
        self, user_id: str, day: date, rows: Sequence[DailyExerciseSummary]
    ) -> None:
        await self._replace(
            "replace_daily_exercise_summaries",
            "DELETE FROM daily_exercise_summaries WHERE user_id = %s AND date = %s",
            (user_id, day),
            """
            INSERT INTO daily_exercise_summaries
                (user_id, date, exercise_id, total_volume, set_count, avg_rm, set_ids, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
            """,
            [
                (r.user_id, r.date, r.exercise_id, r.total_volume, r.set_count, r.avg_rm, list(r.set_ids))
                for r in rows
            ],
        )

    async def list_daily_exercise_summaries(
        self, user_id: str, day: date
    ) -> list[DailyExerciseSummary]:
        rows = await self._fetchall(
            "list_daily_exercise_summaries",
            """
            SELECT user_id, date, exercise_id, total_volume, set_count, avg_rm, set_ids
            FROM daily_exercise_summaries
            WHERE user_id = %s AND date = %s
            ORDER BY exercise_id
            """,
            (user_id, day),
        )
        return [
            DailyExerciseSummary(
                user_id=str(r["user_id"]),
                date=r["date"],
                exercise_id=str(r["exercise_id"]),
                total_volume=float(r["total_volume"]),
                set_count=int(r["set_count"]),
                avg_rm=as_optional_float(r["avg_rm"]),
                set_ids=tuple(r["set_ids"] or ()),
            )
            for r in rows
        ]

    async def replace_daily_exercise_muscle_volumes(
        self, user_id: str, day: date, rows: Sequence[DailyExerciseMuscleVolume]
    ) -> None:
        await self._replace(
            "replace_daily_exercise_muscle_volumes",
            "DELETE FROM daily_exercise_muscle_volumes WHERE user_id = %s AND date = %s",
            (user_id, day),
            """
            INSERT INTO daily_exercise_muscle_volumes
                (user_id, date, exercise_id, muscle_id, effective_volume, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW())
            """,
            [(r.user_id, r.date, r.exercise_id, r.muscle_id, r.effective_volume) for r in rows],
        )

    async def list_daily_exercise_muscle_volumes(
        self, user_id: str, day: date
    ) -> list[DailyExerciseMuscleVolume]:
        rows = await self._fetchall(
            "list_daily_exercise_muscle_volumes",
            """
            SELECT user_id, date, exercise_id, muscle_id, effective_volume
            FROM daily_exercise_muscle_volumes
            WHERE user_id = %s AND date = %s
            ORDER BY exercise_id, muscle_id
            """,
            (user_id, day),
        )
        return [
            DailyExerciseMuscleVolume(
                user_id=str(r["user_id"]),
                date=r["date"],
                exercise_id=str(r["exercise_id"]),
                muscle_id=int(r["muscle_id"]),
                effective_volume=float(r["effective_volume"]),
            )
            for r in rows
        ]

    # Week scope

    async def upsert_weekly_volume(self, row: WeeklyUserVolume) -> None:
        await self._execute(
            "upsert_weekly_volume",
            """
            INSERT INTO weekly_user_volumes
                (user_id, week_start, total_volume, avg_set_volume, e1rm_avg, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW())
            ON CONFLICT (user_id, week_start) DO UPDATE SET
                total_volume = EXCLUDED.total_volume,
                avg_set_volume = EXCLUDED.avg_set_volume,
                e1rm_avg = EXCLUDED.e1rm_avg,
                updated_at = NOW()
            """,
            (row.user_id, row.week_start, row.total_volume, row.avg_set_volume, row.e1rm_avg),
        )

    async def delete_weekly_volume(self, user_id: str, week_start: date) -> None:
        await self._execute(
            "delete_weekly_volume",
            "DELETE FROM weekly_user_volumes WHERE user_id = %s AND week_start = %s",
            (user_id, week_start),
        )

    async def get_weekly_volume(self, user_id: str, week_start: date) -> WeeklyUserVolume | None:
        row = await self._fetchone(
            "get_weekly_volume",
            """
            SELECT user_id, week_start, total_volume, avg_set_volume, e1rm_avg
            FROM weekly_user_volumes
            WHERE user_id = %s AND week_start = %s
            """,
            (user_id, week_start),
        )
        return _weekly_volume(row) if row else None

    async def list_weekly_volumes(
        self, user_id: str, start: date, end: date
    ) -> list[WeeklyUserVolume]:
        rows = await self._fetchall(
            "list_weekly_volumes",
            """
            SELECT user_id, week_start, total_volume, avg_set_volume, e1rm_avg
            FROM weekly_user_volumes
            WHERE user_id = %s AND week_start BETWEEN %s AND %s
            ORDER BY week_start
            """,
            (user_id, start, end),
        )
        return [_weekly_volume(r) for r in rows]

    async def list_weekly_volume_weeks(self, user_id: str) -> list[date]:
        rows = await self._fetchall(
            "list_weekly_volume_weeks",
            "SELECT week_start FROM weekly_user_volumes WHERE user_id = %s ORDER BY week_start",
            (user_id,),
        )
        return [r["week_start"] for r in rows]

    async def replace_weekly_muscle_volumes(
        self, user_id: str, week_start: date, rows: Sequence[WeeklyUserMuscleVolume]
    ) -> None:
        await self._replace(
            "replace_weekly_muscle_volumes",
            "DELETE FROM weekly_user_muscle_volumes WHERE user_id = %s AND week_start = %s",
            (user_id, week_start),
            """
            INSERT INTO weekly_user_muscle_volumes
                (user_id, week_start, muscle_id, volume, set_count, e1rm_sum, e1rm_count, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
            """,
            [
                (r.user_id, r.week_start, r.muscle_id, r.volume, r.set_count, r.e1rm_sum, r.e1rm_count)
                for r in rows
            ],
        )

    async def list_weekly_muscle_volumes(
        self, user_id: str, week_start: date
    ) -> list[WeeklyUserMuscleVolume]:
        rows = await self._fetchall(
            "list_weekly_muscle_volumes",
            """
            SELECT user_id, week_start, muscle_id, volume, set_count, e1rm_sum, e1rm_count
            FROM weekly_user_muscle_volumes
            WHERE user_id = %s AND week_start = %s
            ORDER BY muscle_id
            """,
            (user_id, week_start),
        )
        return [
            WeeklyUserMuscleVolume(
                user_id=str(r["user_id"]),
                week_start=r["week_start"],
                muscle_id=int(r["muscle_id"]),
                volume=float(r["volume"]),
                set_count=int(r["set_count"]),
                e1rm_sum=float(r["e1rm_sum"]),
                e1rm_count=int(r["e1rm_count"]),
            )
            for r in rows
        ]

    async def replace_weekly_metrics(
        self, user_id: str, week_start: date, rows: Sequence[WeeklyUserMetric]
    ) -> None:
        await self._replace(
            "replace_weekly_metrics",
            "DELETE FROM weekly_user_metrics WHERE user_id = %s AND week_start = %s",
            (user_id, week_start),
            """
            INSERT INTO weekly_user_metrics
                (user_id, week_start, metric_key, metric_value, metric_unit, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW())
            """,
            [(r.user_id, r.week_start, r.metric_key, r.metric_value, r.metric_unit) for r in rows],
        )

    async def list_weekly_metrics(
        self, user_id: str, start: date, end: date
    ) -> list[WeeklyUserMetric]:
        rows = await self._fetchall(
            "list_weekly_metrics",
            """
            SELECT user_id, week_start, metric_key, metric_value, metric_unit
            FROM weekly_user_metrics
            WHERE user_id = %s AND week_start BETWEEN %s AND %s
            ORDER BY metric_key, week_start
            """,
            (user_id, start, end),
        )
        return [_weekly_metric(r) for r in rows]


class PostgresDashboardReader(PostgresRollupStore):
    """Read side for the dashboard; adds the muscle-group join."""

    async def list_muscle_group_volumes(
        self, user_id: str, start: date, end: date, locale: str
    ) -> list[MuscleGroupVolumeRow]:
        rows = await self._fetchall(
            "list_muscle_group_volumes",
            """
            SELECT wmv.week_start, wmv.muscle_id, m.muscle_group_id,
                   COALESCE(t.name, g.name) AS muscle_group_name,
                   wmv.volume, wmv.set_count, wmv.e1rm_sum, wmv.e1rm_count
            FROM weekly_user_muscle_volumes wmv
            JOIN muscles m ON m.id = wmv.muscle_id
            JOIN muscle_groups g ON g.id = m.muscle_group_id
            LEFT JOIN muscle_group_translations t
              ON t.muscle_group_id = g.id AND t.locale = %s
            WHERE wmv.user_id = %s AND wmv.week_start BETWEEN %s AND %s
            ORDER BY m.muscle_group_id, wmv.week_start, wmv.muscle_id
            """,
            (locale, user_id, start, end),
        )
        return [
            MuscleGroupVolumeRow(
                week_start=r["week_start"],
                muscle_id=int(r["muscle_id"]),
                muscle_group_id=int(r["muscle_group_id"]),
                muscle_group_name=r["muscle_group_name"],
                volume=float(r["volume"]),
                set_count=int(r["set_count"]),
                e1rm_sum=float(r["e1rm_sum"]),
                e1rm_count=int(r["e1rm_count"]),
            )
            for r in rows
        ]

    async def list_muscle_groups(self, locale: str) -> list[MuscleGroup]:
        rows = await self._fetchall(
            "list_muscle_groups",
            """
            SELECT g.id, COALESCE(t.name, g.name) AS name
            FROM muscle_groups g
            LEFT JOIN muscle_group_translations t
              ON t.muscle_group_id = g.id AND t.locale = %s
            ORDER BY g.id
            """,
            (locale,),
        )
        return [MuscleGroup(id=int(r["id"]), name=r["name"]) for r in rows]
