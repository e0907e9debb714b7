"""Test Suite for the Analytics Engine.

Covers report assembly, result caching, milestones, recommendations, period
analysis and real-time statistics.
"""

from datetime import datetime, timedelta, timezone

import pytest

from todo_analytics.config import AnalyticsConfig
from todo_analytics.record import TaskRecord
from todo_analytics.services.analytics import (
    AnalyticsEngine, AnalysisReport, ReportBuilder, ReportOptions,
    ComparisonTrend, RecommendationPriority, compare_trend,
)
from todo_analytics.services.cache import ResultCache
from todo_analytics.services.metrics import CompletionStats, ProcrastinationLevel
from todo_analytics.utils.time_buckets import Period, UnsupportedPeriodError
from todo_analytics.utils.validation import RecordValidationError


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def engine(clock) -> AnalyticsEngine:
    return AnalyticsEngine(clock=clock)


class TestReportCaching:
    """Cached reports are reused within the TTL"""

    def test_identical_input_returns_cached_report(self, engine, mixed_records):
        first = engine.generate_report(mixed_records)
        second = engine.generate_report(list(mixed_records))
        assert second is first

    def test_dict_and_record_input_share_cache(self, engine, mixed_records):
        first = engine.generate_report(mixed_records)
        second = engine.generate_report([r.to_dict() for r in mixed_records])
        assert second is first

    def test_recomputed_after_expiry(self, engine, clock, now, mixed_records):
        first = engine.generate_report(mixed_records, now=now)
        clock.advance(minutes=5, seconds=1)
        second = engine.generate_report(mixed_records, now=now)
        assert second is not first
        assert second == first

    def test_different_content_same_length(self, engine, make_record):
        a = engine.generate_report([make_record(title="a")])
        b = engine.generate_report([make_record(title="b")])
        assert a is not b

    def test_options_are_part_of_key(self, engine, mixed_records):
        full = engine.generate_report(mixed_records)
        short = engine.generate_report(mixed_records, {"periodCount": 3})
        assert short is not full
        assert len(short.time_period_analysis["day"]) == 3

    def test_clear_cache(self, engine, mixed_records):
        first = engine.generate_report(mixed_records)
        engine.clear_cache()
        assert engine.generate_report(mixed_records) is not first

    def test_ttl_from_config(self, clock, mixed_records):
        engine = AnalyticsEngine(config=AnalyticsConfig(cache_ttl_seconds=0), clock=clock)
        first = engine.generate_report(mixed_records)
        assert engine.generate_report(mixed_records) is not first

    def test_injected_cache(self, clock, mixed_records):
        cache = ResultCache(ttl=timedelta(hours=1), clock=clock)
        engine = AnalyticsEngine(cache=cache, clock=clock)
        engine.generate_report(mixed_records)
        assert len(cache) == 1

    def test_engines_do_not_share_cache(self, clock, mixed_records):
        a = AnalyticsEngine(clock=clock).generate_report(mixed_records)
        b = AnalyticsEngine(clock=clock).generate_report(mixed_records)
        assert a is not b
        assert a == b

    def test_cached_report_cannot_be_changed_by_callers(self, engine, mixed_records):
        first = engine.generate_report(mixed_records)
        with pytest.raises(AttributeError):
            first.overview.overall.total = -1
        with pytest.raises(AttributeError):
            first.time_period_analysis["day"].clear()
        with pytest.raises(TypeError):
            first.time_period_analysis["day"] = ()
        with pytest.raises(TypeError):
            first.overview.periods["today"] = None
        with pytest.raises(AttributeError):
            first.recommendations.strategic.append(None)
        with pytest.raises(AttributeError):
            first.procrastination_analysis.recommendations.append("nothing")

        second = engine.generate_report(mixed_records)
        assert second is first
        assert second.overview.overall.total == 10
        assert len(second.time_period_analysis["day"]) == 7


class TestReportContents:
    """Test suite for report sections"""

    def test_sections(self, engine, mixed_records, now):
        report = engine.generate_report(mixed_records)
        assert isinstance(report, AnalysisReport)
        assert report.metadata.total_todos == 10
        assert report.metadata.generated_at == now
        assert set(report.time_period_analysis) == {"day", "week", "month"}
        assert len(report.time_period_analysis["week"]) == 7
        assert report.personalized_insights is not None
        assert report.recommendations is not None

    def test_overview(self, engine, mixed_records):
        overview = engine.generate_report(mixed_records).overview
        assert overview.overall.total == 10
        assert overview.overall.completion_rate == 70
        assert overview.overall.created_today == 4
        assert overview.overall.completed_today == 4
        assert set(overview.periods) == {"today", "this_week", "this_month"}
        assert overview.periods["this_month"].total == 10

    def test_sections_can_be_disabled(self, engine, mixed_records):
        report = engine.generate_report(mixed_records, ReportOptions(
            include_periods=(Period.DAY,), period_count=2,
            include_insights=False, include_recommendations=False))
        assert list(report.time_period_analysis) == ["day"]
        assert len(report.time_period_analysis["day"]) == 2
        assert report.personalized_insights is None
        assert report.recommendations is None

    def test_camel_case_options(self, engine, mixed_records):
        report = engine.generate_report(mixed_records, {
            "includePeriods": ["week"], "periodCount": 4, "includeInsights": False})
        assert report.metadata.analysis_options == ReportOptions(
            include_periods=(Period.WEEK,), period_count=4, include_insights=False)

    def test_single_period_as_string(self, engine, mixed_records):
        options = ReportOptions.from_dict({"includePeriods": "week"})
        assert options.include_periods == (Period.WEEK,)
        report = engine.generate_report(mixed_records, {"includePeriods": "day"})
        assert list(report.time_period_analysis) == ["day"]

    def test_unknown_period_option(self, engine, mixed_records):
        with pytest.raises(UnsupportedPeriodError):
            engine.generate_report(mixed_records, {"includePeriods": ["year"]})

    def test_default_period_count_from_config(self, clock, mixed_records):
        engine = AnalyticsEngine(config=AnalyticsConfig(default_period_count=3), clock=clock)
        report = engine.generate_report(mixed_records)
        assert len(report.time_period_analysis["day"]) == 3

    def test_empty_records(self, engine):
        report = engine.generate_report([])
        assert report.overview.overall.total == 0
        assert report.procrastination_analysis.procrastination_level == ProcrastinationLevel.LOW
        assert report.recommendations.all() == []

    def test_invalid_input(self, engine):
        with pytest.raises(RecordValidationError):
            engine.generate_report([{"title": "no id"}])

    def test_inconsistent_records_counted(self, engine, now, caplog):
        records = [TaskRecord(id="odd", create_time=now, completed=True,
                              update_time=now - timedelta(hours=1))]
        report = engine.generate_report(records)
        assert report.metadata.inconsistent_records == 1
        assert "odd" in caplog.text

    def test_report_is_immutable(self, engine, mixed_records):
        report = engine.generate_report(mixed_records)
        with pytest.raises(AttributeError):
            report.overview = None


class TestMilestones:

    def test_next_count_and_rate(self, engine, mixed_records):
        milestones = {m.type: m for m in engine.calculate_milestones(mixed_records)}
        count = milestones["completion_count"]
        assert (count.current, count.target, count.progress) == (7, 10, 70)
        assert count.description == "3 more completed tasks to reach 10"
        rate = milestones["completion_rate"]
        assert (rate.current, rate.target) == (70, 75)
        assert "Complete 1 more tasks" in rate.description

    def test_no_rate_milestone_below_ten_tasks(self, engine, make_record):
        milestones = engine.calculate_milestones([make_record(completed=True)])
        assert [m.type for m in milestones] == ["completion_count"]
        assert milestones[0].target == 5

    def test_first_milestone(self, engine):
        milestones = engine.calculate_milestones([])
        assert milestones[0].target == 1
        assert milestones[0].progress == 0


class TestRecommendations:
    """Test suite for recommendation rules"""

    def test_moderate_procrastination_is_strategic(self, engine, mixed_records):
        recs = engine.generate_report(mixed_records).recommendations
        assert [r.category for r in recs.strategic] == ["procrastination"]
        assert [r.category for r in recs.optimization] == ["scheduling"]
        assert recs.immediate == ()

    def test_very_high_procrastination_is_immediate(self, engine, make_record):
        records = [make_record(age=timedelta(days=40)) for _ in range(5)]
        recs = engine.generate_recommendations(records)
        categories = [r.category for r in recs.immediate]
        assert "procrastination" in categories
        assert "task_management" in categories
        assert all(r.category != "procrastination" for r in recs.strategic)
        assert recs.immediate[0].priority == RecommendationPriority.HIGH

    def test_daily_planning_when_nothing_created_today(self, engine, make_record):
        records = [make_record(age=timedelta(days=2), completed=True)]
        recs = engine.generate_recommendations(records)
        assert any(r.category == "daily_planning" for r in recs.immediate)

    def test_decreasing_trend(self, engine, now, make_record):
        records = [make_record(created=now - timedelta(days=29, hours=1), completed=True,
                               took=timedelta(minutes=5))
                   for _ in range(20)]
        recs = engine.generate_recommendations(records)
        productivity = [r for r in recs.strategic if r.category == "productivity"]
        assert productivity and productivity[0].priority == RecommendationPriority.HIGH


class TestReportBuilder:

    def test_missing_sections(self):
        with pytest.raises(ValueError, match="overview"):
            ReportBuilder().build()


class TestPeriodAnalysis:
    """Test suite for ad hoc window analysis"""

    @pytest.fixture
    def week_records(self):
        return [
            TaskRecord(id="a", create_time=utc(2024, 3, 12, 9), completed=True,
                       update_time=utc(2024, 3, 13, 10)),
            TaskRecord(id="b", create_time=utc(2024, 3, 12, 9, 30)),
            TaskRecord(id="c", create_time=utc(2024, 3, 14, 9), completed=True,
                       update_time=utc(2024, 3, 14, 11)),
            TaskRecord(id="old", create_time=utc(2024, 3, 5, 9)),
        ]

    @pytest.fixture
    def analysis(self, engine, week_records):
        return engine.get_period_analysis(week_records, utc(2024, 3, 11),
                                          utc(2024, 3, 17, 23, 59, 59, 999999))

    def test_period_and_overview(self, analysis):
        assert analysis.period.start == "2024-03-11"
        assert analysis.period.end == "2024-03-17"
        assert analysis.period.duration == 7
        assert analysis.overview.total == 3
        assert analysis.overview.completion_rate == 67

    def test_daily_breakdown(self, analysis):
        days = analysis.daily_breakdown
        assert len(days) == 7
        assert days[0].day_of_week == "Monday"
        assert [(d.created, d.completed) for d in days[1:4]] == [(2, 0), (0, 1), (1, 1)]
        assert [t.id for t in days[1].todo_details] == ["a", "b"]
        assert days[5].is_weekend

    def test_work_patterns(self, analysis):
        patterns = analysis.work_patterns
        assert len(patterns.hourly_distribution) == 24
        assert len(patterns.weekly_distribution) == 7
        assert patterns.peak_hour == {"hour": 9, "count": 3, "time_slot": "morning"}
        assert patterns.peak_day == {"day": 1, "name": "Tuesday", "count": 2}
        assert patterns.hourly_distribution[9]["percentage"] == 100

    def test_comparison_with_previous_week(self, analysis):
        comparison = analysis.comparisons
        assert comparison.previous_period == {"start": "2024-03-04", "end": "2024-03-10"}
        assert comparison.previous_stats.total == 1
        assert comparison.total_tasks == 2
        assert comparison.completion_rate == 67
        assert comparison.trend == ComparisonTrend.IMPROVING

    def test_cached(self, engine, week_records, analysis):
        again = engine.get_period_analysis(week_records, utc(2024, 3, 11),
                                           utc(2024, 3, 17, 23, 59, 59, 999999))
        assert again is analysis

    def test_end_before_start(self, engine, week_records):
        with pytest.raises(ValueError):
            engine.get_period_analysis(week_records, utc(2024, 3, 17), utc(2024, 3, 11))

    def test_empty_window(self, engine):
        analysis = engine.get_period_analysis([], utc(2024, 3, 11), utc(2024, 3, 11, 23))
        assert analysis.overview.total == 0
        assert analysis.work_patterns.peak_hour["count"] == 0
        assert analysis.comparisons.trend == ComparisonTrend.STABLE

    def test_cached_analysis_is_read_only(self, analysis):
        with pytest.raises(TypeError):
            analysis.work_patterns.peak_hour["hour"] = 0
        with pytest.raises(AttributeError):
            analysis.daily_breakdown[0].created = 99

    def test_local_calendar_window(self, engine):
        local = timezone(timedelta(hours=8))
        # 09:00 at +08:00 is 01:00 UTC
        records = [TaskRecord(id=str(i), create_time=datetime(2024, 3, 12, 9, tzinfo=local))
                   for i in range(2)]
        analysis = engine.get_period_analysis(records, datetime(2024, 3, 11, tzinfo=local),
                                              datetime(2024, 3, 17, 23, 59, tzinfo=local))
        assert analysis.work_patterns.peak_hour == {"hour": 9, "count": 2, "time_slot": "morning"}
        assert analysis.work_patterns.peak_day["name"] == "Tuesday"
        assert analysis.daily_breakdown[1].created == 2

    def test_to_dict(self, analysis):
        data = analysis.to_dict()
        assert data["comparisons"]["trend"] == "improving"
        assert data["daily_breakdown"][1]["todo_details"][0]["create_time"].startswith("2024-03-12")


class TestCompareTrend:

    @pytest.mark.parametrize("current,previous,expected", [
        ((10, 50), (10, 50), ComparisonTrend.STABLE),
        ((10, 80), (10, 50), ComparisonTrend.IMPROVING),
        ((10, 20), (10, 50), ComparisonTrend.DECLINING),
        ((15, 50), (10, 50), ComparisonTrend.IMPROVING),
        ((5, 50), (10, 50), ComparisonTrend.DECLINING),
    ])
    def test_trend(self, current, previous, expected):
        def stats(total, rate):
            return CompletionStats(total=total, completion_rate=rate)
        assert compare_trend(stats(*current), stats(*previous)) == expected


class TestRealTimeStats:
    """Test suite for real-time snapshots"""

    def test_snapshot(self, engine, mixed_records, now):
        stats = engine.get_real_time_stats(mixed_records)
        assert stats.timestamp == now
        assert stats.today.total == 4
        assert stats.this_week.total == 7
        assert stats.overview.total == 10

    def test_recent_activity_newest_first(self, engine, mixed_records):
        activity = engine.get_real_time_stats(mixed_records).recent_activity
        assert len(activity) == 10
        timestamps = [a.timestamp for a in activity]
        assert timestamps == sorted(timestamps, reverse=True)
        assert activity[0].type == "completed"
        assert activity[0].relative_time == "1 hour ago"
        assert activity[0].description == "Completed task: Done 0"

    def test_quick_insights(self, engine, mixed_records):
        insights = engine.get_real_time_stats(mixed_records).quick_insights
        assert [i.type for i in insights] == ["achievement", "warning"]

    def test_best_slot_tip(self, engine, now, make_record):
        records = [make_record(created=now - timedelta(days=1), completed=True) for _ in range(3)]
        insights = engine.get_real_time_stats(records).quick_insights
        assert "tip" in [i.type for i in insights]

    def test_never_cached(self, engine, mixed_records):
        first = engine.get_real_time_stats(mixed_records)
        second = engine.get_real_time_stats(mixed_records)
        assert first is not second
        assert len(engine.cache) == 0

    def test_explicit_now(self, engine, mixed_records, now):
        later = now + timedelta(days=3)
        stats = engine.get_real_time_stats(mixed_records, now=later)
        assert stats.timestamp == later
        assert stats.today.total == 0
        assert stats.recent_activity == ()

    def test_to_dict(self, engine, mixed_records):
        data = engine.get_real_time_stats(mixed_records).to_dict()
        assert data["timestamp"] == "2024-03-15T14:30:00+00:00"
        assert data["recent_activity"][0]["type"] == "completed"


class TestLocalCalendar:
    """Buckets, time slots and hours all follow the calendar of ``now``"""

    @pytest.fixture
    def local_now(self) -> datetime:
        return datetime(2024, 3, 15, 9, 30, tzinfo=timezone(timedelta(hours=8)))

    @pytest.fixture
    def morning_records(self, local_now):
        # Created 09:00 local (01:00 UTC), completed ten minutes later
        created = local_now - timedelta(minutes=30)
        return [TaskRecord(id=f"m{i}", create_time=created, completed=True,
                           update_time=created + timedelta(minutes=10))
                for i in range(3)]

    def test_report_uses_local_slots(self, engine, morning_records, local_now):
        report = engine.generate_report(morning_records, now=local_now)
        assert report.overview.periods["today"].total == 3
        assert report.optimal_work_periods.best_time_slot.time_slot.value == "morning"
        assert report.personalized_insights.task_patterns.peak_creation_hour == 9

    def test_best_slot_tip_in_local_morning(self, engine, morning_records, local_now):
        insights = engine.get_real_time_stats(morning_records, now=local_now).quick_insights
        assert [i.type for i in insights] == ["achievement", "tip"]
