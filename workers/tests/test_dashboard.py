"""Dashboard assembly over fake rollups."""

from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from bulktrack_workers.aggregation import update_daily_aggregation, update_weekly_aggregation
from bulktrack_workers.dashboard import get_dashboard
from bulktrack_workers.dashboard.assembler import build_metric_series, complete_muscle_group_series, fill_trend
from bulktrack_workers.dashboard.consolidation import HIP_GLUTES_GROUP_ID, LEGS_GROUP_ID
from bulktrack_workers.dashboard.models import MuscleGroupSeries, MuscleGroupWeekPoint
from bulktrack_workers.errors import ValidationError
from bulktrack_workers.models import ExerciseMuscle, MuscleGroup, WeeklyUserMetric, WeeklyUserVolume
from bulktrack_workers.utils import SUPPORTED_SPANS, iter_week_starts, parse_span

from conftest import GLUTES
from fakes import USER, FakeRollupStore, make_set

TODAY = date(2024, 1, 24)  # Wednesday, week of 2024-01-22


class TestGetDashboard:
    @pytest.mark.asyncio
    async def test_gap_fill_with_no_data(self, rollups):
        data = await get_dashboard(rollups, USER, "4w", "en", today=TODAY)

        assert [p.week_start for p in data.trend] == [
            date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22),
        ]
        assert all(p.total_volume == 0 and p.e1rm_avg is None for p in data.trend)
        assert data.this_week.week_start == date(2024, 1, 22)
        assert data.this_week.total_volume == 0
        assert data.last_week.week_start == date(2024, 1, 15)
        # every reference group but hip & glutes, zero-filled
        assert [s.muscle_group_id for s in data.muscle_groups] == [1, 4, 7]
        assert [s.group_name for s in data.muscle_groups] == ["Chest", "Arms", "Legs"]
        for series in data.muscle_groups:
            assert [p.week_start for p in series.points] == [p.week_start for p in data.trend]
            assert all(p.total_volume == 0 and p.set_count == 0 and p.avg_e1rm is None for p in series.points)
        assert data.metrics == []

    @pytest.mark.asyncio
    async def test_single_week_span(self, rollups):
        data = await get_dashboard(rollups, USER, "1w", "en", today=date(2024, 1, 28))
        assert [p.week_start for p in data.trend] == [date(2024, 1, 22)]

    @pytest.mark.asyncio
    async def test_rejects_unknown_span(self, rollups):
        with pytest.raises(ValidationError, match="Unsupported span"):
            await get_dashboard(rollups, USER, "3w", "en", today=TODAY)

    @pytest.mark.asyncio
    async def test_rejects_blank_user(self, rollups):
        with pytest.raises(ValidationError, match="user_id"):
            await get_dashboard(rollups, " ", "4w", "en", today=TODAY)

    @pytest.mark.asyncio
    async def test_end_to_end_from_rollups(self, ctx, sets, rollups):
        sets.seed([
            make_set("b1", "bench", "2024-01-08T10:00:00Z", 100, 10),
            make_set("q1", "squat", "2024-01-22T10:00:00Z", 100, 5),
            make_set("q2", "squat", "2024-01-23T10:00:00Z", 100, 5),
        ])
        for d in (date(2024, 1, 8), date(2024, 1, 22), date(2024, 1, 23)):
            await update_daily_aggregation(ctx, USER, d)
        for w in (date(2024, 1, 8), date(2024, 1, 22)):
            await update_weekly_aggregation(ctx, USER, w)

        data = await get_dashboard(rollups, USER, "4w", "ja-JP", today=TODAY)

        assert data.this_week.total_volume == pytest.approx(1000.0)
        assert data.last_week.total_volume == 0
        assert [p.total_volume for p in data.trend] == pytest.approx([0, 1000.0, 0, 1000.0])

        # chest (group 1), arms (4), then legs (7) merged with hip & glutes (6) last
        assert [s.muscle_group_id for s in data.muscle_groups] == [1, 4, 7]
        chest, _, legs = data.muscle_groups
        assert chest.group_name == "胸"
        assert legs.group_name == "脚"
        assert [p.total_volume for p in legs.points] == pytest.approx([0, 0, 0, 1000.0])
        assert legs.points[3].set_count == 4  # two squat sets counted by glutes and quads
        assert legs.points[3].avg_e1rm == pytest.approx(116.6667, abs=1e-3)
        assert chest.points[1].avg_e1rm == pytest.approx(133.3333, abs=1e-3)
        assert chest.points[0].avg_e1rm is None

        metrics = {m.metric_key: m for m in data.metrics}
        assert [p.value for p in metrics["active_days"].points] == [0, 1, 0, 2]
        assert metrics["exercise_squat_1rm_epley"].unit == "kg"

    @pytest.mark.asyncio
    async def test_hip_only_week_shows_as_legs(self, ctx, sets, reference, rollups):
        reference.mappings.append(ExerciseMuscle("hip_thrust", GLUTES, 1000))
        sets.seed([make_set("h1", "hip_thrust", "2024-01-22T10:00:00Z", 100, 10)])
        await update_daily_aggregation(ctx, USER, date(2024, 1, 22))
        await update_weekly_aggregation(ctx, USER, date(2024, 1, 22))

        data = await get_dashboard(rollups, USER, "4w", "en", today=TODAY)

        by_id = {s.muscle_group_id: s for s in data.muscle_groups}
        assert HIP_GLUTES_GROUP_ID not in by_id
        legs = by_id[LEGS_GROUP_ID]
        assert legs.group_name == "Legs"
        assert [p.total_volume for p in legs.points] == pytest.approx([0, 0, 0, 1000.0])
        assert legs.points[3].set_count == 1
        assert [p.total_volume for p in by_id[1].points] == [0, 0, 0, 0]

    @pytest.mark.asyncio
    async def test_wire_format_is_camel_case(self, rollups):
        data = await get_dashboard(rollups, USER, "1w", "en", today=TODAY)
        wire = data.model_dump(by_alias=True, mode="json")
        assert set(wire) == {"thisWeek", "lastWeek", "trend", "muscleGroups", "metrics"}
        assert wire["thisWeek"] == {
            "weekStart": "2024-01-22", "totalVolume": 0.0, "avgSetVolume": 0.0, "e1rmAvg": None,
        }

    @pytest.mark.asyncio
    @given(span=st.sampled_from(SUPPORTED_SPANS), today=st.dates(min_value=date(2000, 1, 1), max_value=date(2099, 12, 31)))
    async def test_every_series_has_span_points(self, span, today):
        rollups = FakeRollupStore()
        data = await get_dashboard(rollups, USER, span, "en", today=today)
        weeks = [p.week_start for p in data.trend]
        assert len(weeks) == parse_span(span)
        assert weeks[-1] == data.this_week.week_start
        assert all((b - a).days == 7 for a, b in zip(weeks, weeks[1:]))


class TestFillers:
    def test_fill_trend_keeps_rows(self):
        weeks = iter_week_starts(date(2024, 1, 1), date(2024, 1, 15))
        row = WeeklyUserVolume(USER, date(2024, 1, 8), 500.0, 250.0, 110.0)
        points = fill_trend([row], weeks)
        assert [p.total_volume for p in points] == [0, 500.0, 0]
        assert points[1].e1rm_avg == 110.0

    def test_metric_series_gap_filled_with_zero(self):
        weeks = iter_week_starts(date(2024, 1, 1), date(2024, 1, 15))
        rows = [WeeklyUserMetric(USER, date(2024, 1, 15), "active_days", 3.0, "days")]
        [series] = build_metric_series(rows, weeks)
        assert series.unit == "days"
        assert [p.value for p in series.points] == [0, 0, 3.0]

    def test_complete_muscle_group_series(self):
        weeks = iter_week_starts(date(2024, 1, 1), date(2024, 1, 8))
        arms = MuscleGroupSeries(
            muscle_group_id=4,
            group_name="Arms",
            points=[MuscleGroupWeekPoint(week_start=w, total_volume=200.0, set_count=2) for w in weeks],
        )
        orphan = MuscleGroupSeries(muscle_group_id=99, group_name="Other", points=[])
        groups = [MuscleGroup(7, "Legs"), MuscleGroup(6, "Hip & Glutes"), MuscleGroup(1, "Chest"), MuscleGroup(4, "Arms")]

        result = complete_muscle_group_series([orphan, arms], groups, weeks)

        assert [s.muscle_group_id for s in result] == [1, 4, 7, 99]
        assert result[1] is arms
        assert [p.week_start for p in result[0].points] == weeks
        assert all(p.total_volume == 0 for p in result[2].points)
