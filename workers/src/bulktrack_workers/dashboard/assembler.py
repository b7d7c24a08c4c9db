"""Dashboard read path: weekly rollups → gap-filled week series.

Only rollup tables are read, never raw sets. A week without a rollup row is
a zero point, not an error.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..models import MuscleGroup, MuscleGroupVolumeRow, WeeklyUserMetric, WeeklyUserVolume
from ..ports import DashboardReader
from ..utils import extract_locale, get_week_start, iter_week_starts, parse_span
from .consolidation import HIP_GLUTES_GROUP_ID, consolidate_leg_groups
from .models import (
    DashboardData,
    DashboardQuery,
    MetricPoint,
    MetricSeries,
    MuscleGroupSeries,
    MuscleGroupWeekPoint,
    WeekPoint,
)

logger = logging.getLogger(__name__)


def _week_point(week_start: date, row: WeeklyUserVolume | None) -> WeekPoint:
    if row is None:
        return WeekPoint(week_start=week_start)
    return WeekPoint(
        week_start=week_start,
        total_volume=row.total_volume,
        avg_set_volume=row.avg_set_volume,
        e1rm_avg=row.e1rm_avg,
    )


def fill_trend(rows: list[WeeklyUserVolume], weeks: list[date]) -> list[WeekPoint]:
    by_week = {r.week_start: r for r in rows}
    return [_week_point(w, by_week.get(w)) for w in weeks]


def build_muscle_group_series(
    rows: list[MuscleGroupVolumeRow], weeks: list[date]
) -> list[MuscleGroupSeries]:
    """Group weekly muscle rows by muscle group and gap-fill each series.

    avg_e1rm is Σe1rm_sum / Σe1rm_count over the group's muscles.
    """
    names: dict[int, str] = {}
    acc: dict[int, dict[date, dict[str, float]]] = defaultdict(
        lambda: defaultdict(lambda: {"volume": 0.0, "set_count": 0, "e1rm_sum": 0.0, "e1rm_count": 0})
    )
    for r in rows:
        names.setdefault(r.muscle_group_id, r.muscle_group_name)
        entry = acc[r.muscle_group_id][r.week_start]
        entry["volume"] += r.volume
        entry["set_count"] += r.set_count
        entry["e1rm_sum"] += r.e1rm_sum
        entry["e1rm_count"] += r.e1rm_count

    series: list[MuscleGroupSeries] = []
    for group_id in sorted(acc):
        by_week = acc[group_id]
        points = []
        for w in weeks:
            entry = by_week.get(w)
            if entry is None:
                points.append(MuscleGroupWeekPoint(week_start=w))
                continue
            points.append(
                MuscleGroupWeekPoint(
                    week_start=w,
                    total_volume=entry["volume"],
                    set_count=int(entry["set_count"]),
                    avg_e1rm=(
                        entry["e1rm_sum"] / entry["e1rm_count"] if entry["e1rm_count"] else None
                    ),
                )
            )
        series.append(
            MuscleGroupSeries(muscle_group_id=group_id, group_name=names[group_id], points=points)
        )
    return series


def complete_muscle_group_series(
    series: list[MuscleGroupSeries], groups: list[MuscleGroup], weeks: list[date]
) -> list[MuscleGroupSeries]:
    """One series per reference group, hip & glutes excluded (folded into legs).

    Groups the user never trained get all-zero points. Series are ordered by
    group id; any series without a reference group keeps its place at the end.
    """
    by_id = {s.muscle_group_id: s for s in series}
    completed = [
        by_id.pop(g.id, None)
        or MuscleGroupSeries(
            muscle_group_id=g.id,
            group_name=g.name,
            points=[MuscleGroupWeekPoint(week_start=w) for w in weeks],
        )
        for g in sorted(groups, key=lambda g: g.id)
        if g.id != HIP_GLUTES_GROUP_ID
    ]
    return completed + [s for s in series if s.muscle_group_id in by_id]


def build_metric_series(rows: list[WeeklyUserMetric], weeks: list[date]) -> list[MetricSeries]:
    values: dict[str, dict[date, float]] = defaultdict(dict)
    units: dict[str, str | None] = {}
    for r in rows:
        values[r.metric_key][r.week_start] = r.metric_value
        if units.get(r.metric_key) is None:
            units[r.metric_key] = r.metric_unit

    return [
        MetricSeries(
            metric_key=key,
            unit=units.get(key),
            points=[MetricPoint(week_start=w, value=values[key].get(w, 0.0)) for w in weeks],
        )
        for key in sorted(values)
    ]


async def get_dashboard(
    reader: DashboardReader,
    user_id: str,
    span: str,
    language: str | None = "en",
    today: date | datetime | None = None,
) -> DashboardData:
    span_weeks = parse_span(span)
    try:
        query = DashboardQuery(user_id=str(user_id or ""), span=span.strip().lower(), language=language or "en")
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid dashboard query: {exc.errors()[0]['msg']}") from exc

    current_week = get_week_start(today if today is not None else datetime.now(timezone.utc))
    last_week = current_week - timedelta(days=7)
    span_start = current_week - timedelta(days=(span_weeks - 1) * 7)
    weeks = iter_week_starts(span_start, current_week)
    locale = extract_locale(query.language)

    this_week_row = await reader.get_weekly_volume(query.user_id, current_week)
    last_week_row = await reader.get_weekly_volume(query.user_id, last_week)
    trend_rows = await reader.list_weekly_volumes(query.user_id, span_start, current_week)
    group_rows = await reader.list_muscle_group_volumes(query.user_id, span_start, current_week, locale)
    metric_rows = await reader.list_weekly_metrics(query.user_id, span_start, current_week)
    reference_groups = await reader.list_muscle_groups(locale)

    muscle_groups = complete_muscle_group_series(
        consolidate_leg_groups(build_muscle_group_series(group_rows, weeks), query.language),
        reference_groups,
        weeks,
    )

    logger.debug(
        "Dashboard for user=%s span=%s (%s..%s, groups=%d, metrics=%d)",
        query.user_id, query.span, span_start.isoformat(), current_week.isoformat(),
        len(muscle_groups), len({r.metric_key for r in metric_rows}),
    )

    return DashboardData(
        this_week=_week_point(current_week, this_week_row),
        last_week=_week_point(last_week, last_week_row),
        trend=fill_trend(trend_rows, weeks),
        muscle_groups=muscle_groups,
        metrics=build_metric_series(metric_rows, weeks),
    )
