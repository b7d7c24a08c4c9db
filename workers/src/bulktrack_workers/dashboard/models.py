"""Dashboard view model and query validation.

Field names are snake_case in Python and camelCase on the wire
(``model_dump(by_alias=True)``).
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

Span = Literal["1w", "4w", "8w", "12w", "24w"]


def _camel(name: str) -> str:
    # e1rm_avg -> e1rmAvg
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class _ViewModel(BaseModel):
    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)


class WeekPoint(_ViewModel):
    week_start: date
    total_volume: float = 0.0
    avg_set_volume: float = 0.0
    e1rm_avg: float | None = None


class MuscleGroupWeekPoint(_ViewModel):
    week_start: date
    total_volume: float = 0.0
    set_count: int = 0
    avg_e1rm: float | None = None


class MuscleGroupSeries(_ViewModel):
    muscle_group_id: int
    group_name: str
    points: list[MuscleGroupWeekPoint]


class MetricPoint(_ViewModel):
    week_start: date
    value: float = 0.0


class MetricSeries(_ViewModel):
    metric_key: str
    unit: str | None = None
    points: list[MetricPoint]


class DashboardData(_ViewModel):
    this_week: WeekPoint
    last_week: WeekPoint
    trend: list[WeekPoint]
    muscle_groups: list[MuscleGroupSeries]
    metrics: list[MetricSeries]


class DashboardQuery(BaseModel):
    """Inbound dashboard request."""

    user_id: str
    span: Span = "4w"
    language: str = "en"

    @field_validator("user_id")
    @classmethod
    def user_id_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("user_id must not be empty")
        return v

    @field_validator("language")
    @classmethod
    def language_default(cls, v: str) -> str:
        return v.strip() or "en"
