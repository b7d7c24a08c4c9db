"""Row types for raw sets, reference data and derived rollups.

Derived rows carry no timestamps: two rebuilds from the same sets compare
equal field by field. ``updated_at`` is stamped by the store on write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from .volume_math import set_volume


# ---------------------------------------------------------------------------
# Raw + reference data (read-only for the rollup engine)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkoutSet:
    id: str
    user_id: str
    exercise_id: str
    performed_at: datetime
    weight: float | None = None
    reps: float | None = None
    volume: float | None = None

    @property
    def effective_set_volume(self) -> float:
        """Stored volume when present, otherwise weight * reps."""
        if self.volume is not None:
            return max(float(self.volume), 0.0)
        return set_volume(self.weight, self.reps)


@dataclass(frozen=True)
class ExerciseMuscle:
    exercise_id: str
    muscle_id: int
    relative_share: int


@dataclass(frozen=True)
class Muscle:
    muscle_id: int
    tension_factor: float = 1.0
    muscle_group_id: int | None = None


# ---------------------------------------------------------------------------
# Day-scoped rollups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyWorkoutSummary:
    user_id: str
    date: date
    total_volume: float
    set_count: int
    exercise_count: int
    avg_rm: float | None


@dataclass(frozen=True)
class DailyExerciseSummary:
    user_id: str
    date: date
    exercise_id: str
    total_volume: float
    set_count: int
    avg_rm: float | None
    set_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DailyExerciseMuscleVolume:
    user_id: str
    date: date
    exercise_id: str
    muscle_id: int
    effective_volume: float


# ---------------------------------------------------------------------------
# Week-scoped rollups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WeeklyUserVolume:
    user_id: str
    week_start: date
    total_volume: float
    avg_set_volume: float
    e1rm_avg: float | None


@dataclass(frozen=True)
class WeeklyUserMuscleVolume:
    """Per-muscle weekly volume.

    ``e1rm_sum``/``e1rm_count`` are accumulators, not an average, so that
    merged groups can be averaged with the correct set weighting.
    """

    user_id: str
    week_start: date
    muscle_id: int
    volume: float
    set_count: int
    e1rm_sum: float
    e1rm_count: int


@dataclass(frozen=True)
class WeeklyUserMetric:
    user_id: str
    week_start: date
    metric_key: str
    metric_value: float
    metric_unit: str | None


# ---------------------------------------------------------------------------
# Read-side rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MuscleGroupVolumeRow:
    """A weekly muscle rollup joined with its muscle group (dashboard read)."""

    week_start: date
    muscle_id: int
    muscle_group_id: int
    muscle_group_name: str
    volume: float
    set_count: int
    e1rm_sum: float
    e1rm_count: int


@dataclass(frozen=True)
class MuscleGroup:
    """Reference muscle group with its name resolved for one locale."""

    id: int
    name: str
