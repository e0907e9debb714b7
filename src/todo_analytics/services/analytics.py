"""Analytics Engine for task records.

This module assembles the composite analysis report from the metrics
calculator and provides:
- Cached full reports keyed by a content fingerprint of records and options
- Ad hoc window analysis with a comparison against the preceding window
- Uncached real-time snapshots with recent activity and quick insights
- Export of reports as structured, tabular or summary text
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..config import AnalyticsConfig
from ..record import TaskRecord, TimeRange
from ..utils.datetime import now_utc, ensure_aware, to_iso_string, from_iso_string
from ..utils.time_buckets import (
    Period, to_period, start_of_day, end_of_day, date_range,
    is_weekend, time_slot, time_slot_for_hour, format_date,
    relative_time, day_range, this_week_range, this_month_range,
)
from ..utils.validation import ensure_records, count_inconsistent
from .cache import ResultCache, fingerprint
from .metrics import (
    CompletionStats, PeriodStat, ProductivityTrend, ProcrastinationMetrics,
    ProcrastinationLevel, TrendDirection, WorkPeriodAnalysis, PersonalizedInsights,
    completion_rate, time_period_stats, productivity_trend, procrastination_metrics,
    optimal_work_periods, personalized_insights, percentage, freeze_fields,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
COMPLETION_MILESTONES = [1, 5, 10, 25, 50, 100, 200, 500, 1000]
COMPLETION_RATE_MILESTONES = [0.5, 0.75, 0.9, 0.95]

_OPTION_ALIASES = {
    "includePeriods": "include_periods",
    "periodCount": "period_count",
    "includeInsights": "include_insights",
    "includeRecommendations": "include_recommendations",
}


class RecommendationPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ComparisonTrend(Enum):
    """Change between a window and the window before it"""
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    MIXED = "mixed"


def read_only(mapping: Mapping) -> Mapping:
    """Read-only view over a copy of ``mapping``."""
    return MappingProxyType(dict(mapping))


# ---------------------------------------------------------------------------
# Report sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReportOptions:
    """Which sections a report contains and how many buckets per period"""
    include_periods: Tuple[Period, ...] = (Period.DAY, Period.WEEK, Period.MONTH)
    period_count: int = 7
    include_insights: bool = True
    include_recommendations: bool = True

    def __post_init__(self):
        periods = tuple(to_period(p) for p in self.include_periods)
        object.__setattr__(self, "include_periods", periods)
        if self.period_count < 0:
            raise ValueError("period_count must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'include_periods': [p.value for p in self.include_periods],
            'period_count': self.period_count,
            'include_insights': self.include_insights,
            'include_recommendations': self.include_recommendations,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]],
                  default_period_count: int = 7) -> "ReportOptions":
        """Build options from a mapping with camelCase or snake_case keys."""
        values: Dict[str, Any] = {'period_count': default_period_count}
        for key, value in (data or {}).items():
            key = _OPTION_ALIASES.get(key, key)
            if key not in ('include_periods', 'period_count',
                           'include_insights', 'include_recommendations'):
                logger.warning(f"Ignoring unknown report option: {key}")
                continue
            values[key] = value
        if 'include_periods' in values:
            periods = values['include_periods']
            if isinstance(periods, (str, Period)):
                periods = [periods]
            values['include_periods'] = tuple(periods)
        return cls(**values)


@dataclass(frozen=True)
class ReportMetadata:
    generated_at: datetime
    total_todos: int
    analysis_options: ReportOptions
    inconsistent_records: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'generated_at': to_iso_string(self.generated_at),
            'total_todos': self.total_todos,
            'analysis_options': self.analysis_options.to_dict(),
            'inconsistent_records': self.inconsistent_records,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportMetadata":
        return cls(
            generated_at=from_iso_string(data['generated_at']),
            total_todos=data['total_todos'],
            analysis_options=ReportOptions.from_dict(data['analysis_options']),
            inconsistent_records=data.get('inconsistent_records', 0),
        )


@dataclass(frozen=True)
class OverallStats(CompletionStats):
    created_today: int = 0
    completed_today: int = 0


@dataclass(frozen=True)
class Milestone:
    type: str  # "completion_count" or "completion_rate"
    current: int
    target: int
    progress: int
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(**data)


@dataclass(frozen=True)
class Overview:
    """Overall, today, this week and this month completion statistics"""
    overall: OverallStats
    periods: Mapping[str, CompletionStats]
    milestones: Tuple[Milestone, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "periods", read_only(self.periods))
        freeze_fields(self, "milestones")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': self.overall.to_dict(),
            'periods': {name: stats.to_dict() for name, stats in self.periods.items()},
            'milestones': [m.to_dict() for m in self.milestones],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Overview":
        return cls(
            overall=OverallStats(**data['overall']),
            periods={name: CompletionStats.from_dict(stats)
                     for name, stats in data['periods'].items()},
            milestones=[Milestone.from_dict(m) for m in data.get('milestones', [])],
        )


@dataclass(frozen=True)
class Recommendation:
    priority: RecommendationPriority
    category: str
    title: str
    description: str
    actions: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "actions")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'priority': self.priority.value,
            'category': self.category,
            'title': self.title,
            'description': self.description,
            'actions': list(self.actions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        data = dict(data)
        data['priority'] = RecommendationPriority(data['priority'])
        return cls(**data)


@dataclass(frozen=True)
class Recommendations:
    """Recommendations grouped by urgency for the notification layer"""
    immediate: Tuple[Recommendation, ...] = ()
    strategic: Tuple[Recommendation, ...] = ()
    optimization: Tuple[Recommendation, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "immediate", "strategic", "optimization")

    def all(self) -> List[Recommendation]:
        return [*self.immediate, *self.strategic, *self.optimization]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'immediate': [r.to_dict() for r in self.immediate],
            'strategic': [r.to_dict() for r in self.strategic],
            'optimization': [r.to_dict() for r in self.optimization],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendations":
        return cls(**{
            group: [Recommendation.from_dict(r) for r in data.get(group, [])]
            for group in ('immediate', 'strategic', 'optimization')
        })


@dataclass(frozen=True)
class AnalysisReport:
    """Complete, immutable result of one analytics computation"""
    metadata: ReportMetadata
    overview: Overview
    time_period_analysis: Mapping[str, Tuple[PeriodStat, ...]]
    productivity_trend: ProductivityTrend
    procrastination_analysis: ProcrastinationMetrics
    optimal_work_periods: WorkPeriodAnalysis
    personalized_insights: Optional[PersonalizedInsights] = None
    recommendations: Optional[Recommendations] = None

    def __post_init__(self):
        object.__setattr__(self, "time_period_analysis", read_only(
            {period: tuple(stats) for period, stats in self.time_period_analysis.items()}))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'metadata': self.metadata.to_dict(),
            'overview': self.overview.to_dict(),
            'time_period_analysis': {
                period: [stat.to_dict() for stat in stats]
                for period, stats in self.time_period_analysis.items()
            },
            'productivity_trend': self.productivity_trend.to_dict(),
            'procrastination_analysis': self.procrastination_analysis.to_dict(),
            'optimal_work_periods': self.optimal_work_periods.to_dict(),
            'personalized_insights': (self.personalized_insights.to_dict()
                                      if self.personalized_insights else None),
            'recommendations': self.recommendations.to_dict() if self.recommendations else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisReport":
        insights = data.get('personalized_insights')
        recommendations = data.get('recommendations')
        return cls(
            metadata=ReportMetadata.from_dict(data['metadata']),
            overview=Overview.from_dict(data['overview']),
            time_period_analysis={
                period: [PeriodStat.from_dict(s) for s in stats]
                for period, stats in data['time_period_analysis'].items()
            },
            productivity_trend=ProductivityTrend.from_dict(data['productivity_trend']),
            procrastination_analysis=ProcrastinationMetrics.from_dict(data['procrastination_analysis']),
            optimal_work_periods=WorkPeriodAnalysis.from_dict(data['optimal_work_periods']),
            personalized_insights=PersonalizedInsights.from_dict(insights) if insights else None,
            recommendations=Recommendations.from_dict(recommendations) if recommendations else None,
        )


class ReportBuilder:
    """Assembles an AnalysisReport one section at a time.

    The six core sections are required; insights and recommendations are
    optional and stay None unless set.
    """

    _REQUIRED = ('metadata', 'overview', 'time_period_analysis', 'productivity_trend',
                 'procrastination_analysis', 'optimal_work_periods')

    def __init__(self):
        self._sections: Dict[str, Any] = {'time_period_analysis': {}}

    def metadata(self, metadata: ReportMetadata) -> "ReportBuilder":
        self._sections['metadata'] = metadata
        return self

    def overview(self, overview: Overview) -> "ReportBuilder":
        self._sections['overview'] = overview
        return self

    def period_stats(self, period: Union[Period, str], stats: List[PeriodStat]) -> "ReportBuilder":
        self._sections['time_period_analysis'][to_period(period).value] = list(stats)
        return self

    def productivity_trend(self, trend: ProductivityTrend) -> "ReportBuilder":
        self._sections['productivity_trend'] = trend
        return self

    def procrastination(self, metrics: ProcrastinationMetrics) -> "ReportBuilder":
        self._sections['procrastination_analysis'] = metrics
        return self

    def work_periods(self, analysis: WorkPeriodAnalysis) -> "ReportBuilder":
        self._sections['optimal_work_periods'] = analysis
        return self

    def insights(self, insights: PersonalizedInsights) -> "ReportBuilder":
        self._sections['personalized_insights'] = insights
        return self

    def recommendations(self, recommendations: Recommendations) -> "ReportBuilder":
        self._sections['recommendations'] = recommendations
        return self

    def build(self) -> AnalysisReport:
        missing = [name for name in self._REQUIRED if name not in self._sections]
        if missing:
            raise ValueError(f"Report is missing required sections: {', '.join(missing)}")
        return AnalysisReport(**self._sections)


# ---------------------------------------------------------------------------
# Period analysis and real-time sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PeriodWindow:
    start: str
    end: str
    duration: int  # calendar days

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TaskDetail:
    id: str
    title: str
    completed: bool
    create_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'completed': self.completed,
            'create_time': to_iso_string(self.create_time),
        }


@dataclass(frozen=True)
class DailyBreakdown:
    date: str
    day_of_week: str
    is_weekend: bool
    created: int
    completed: int
    todo_details: Tuple[TaskDetail, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "todo_details")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'day_of_week': self.day_of_week,
            'is_weekend': self.is_weekend,
            'created': self.created,
            'completed': self.completed,
            'todo_details': [d.to_dict() for d in self.todo_details],
        }


@dataclass(frozen=True)
class WorkPatterns:
    """Creation distribution by hour of day and day of week (Monday = 0)"""
    hourly_distribution: Tuple[Mapping[str, int], ...]
    weekly_distribution: Tuple[Mapping[str, Any], ...]
    peak_hour: Mapping[str, Any]
    peak_day: Mapping[str, Any]

    def __post_init__(self):
        for name in ("hourly_distribution", "weekly_distribution"):
            object.__setattr__(self, name, tuple(read_only(e) for e in getattr(self, name)))
        object.__setattr__(self, "peak_hour", read_only(self.peak_hour))
        object.__setattr__(self, "peak_day", read_only(self.peak_day))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hourly_distribution': [dict(e) for e in self.hourly_distribution],
            'weekly_distribution': [dict(e) for e in self.weekly_distribution],
            'peak_hour': dict(self.peak_hour),
            'peak_day': dict(self.peak_day),
        }


@dataclass(frozen=True)
class PeriodComparison:
    previous_period: Mapping[str, str]
    previous_stats: CompletionStats
    total_tasks: int
    completed_tasks: int
    completion_rate: int
    trend: ComparisonTrend

    def __post_init__(self):
        object.__setattr__(self, "previous_period", read_only(self.previous_period))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'previous_period': dict(self.previous_period),
            'previous_stats': self.previous_stats.to_dict(),
            'total_tasks': self.total_tasks,
            'completed_tasks': self.completed_tasks,
            'completion_rate': self.completion_rate,
            'trend': self.trend.value,
        }


@dataclass(frozen=True)
class PeriodAnalysis:
    """Analysis of an arbitrary [start, end] window"""
    period: PeriodWindow
    overview: CompletionStats
    daily_breakdown: Tuple[DailyBreakdown, ...]
    work_patterns: WorkPatterns
    comparisons: PeriodComparison

    def __post_init__(self):
        freeze_fields(self, "daily_breakdown")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period': self.period.to_dict(),
            'overview': self.overview.to_dict(),
            'daily_breakdown': [d.to_dict() for d in self.daily_breakdown],
            'work_patterns': self.work_patterns.to_dict(),
            'comparisons': self.comparisons.to_dict(),
        }


@dataclass(frozen=True)
class ActivityEvent:
    type: str  # "created" or "completed"
    task_id: str
    timestamp: datetime
    description: str
    relative_time: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'task_id': self.task_id,
            'timestamp': to_iso_string(self.timestamp),
            'description': self.description,
            'relative_time': self.relative_time,
        }


@dataclass(frozen=True)
class QuickInsight:
    type: str  # "achievement", "warning" or "tip"
    icon: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RealTimeStats:
    timestamp: datetime
    overview: CompletionStats
    today: CompletionStats
    this_week: CompletionStats
    recent_activity: Tuple[ActivityEvent, ...] = ()
    quick_insights: Tuple[QuickInsight, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "recent_activity", "quick_insights")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': to_iso_string(self.timestamp),
            'overview': self.overview.to_dict(),
            'today': self.today.to_dict(),
            'this_week': self.this_week.to_dict(),
            'recent_activity': [a.to_dict() for a in self.recent_activity],
            'quick_insights': [i.to_dict() for i in self.quick_insights],
        }


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class AnalyticsEngine:
    """Builds and caches analytics reports over task records"""

    def __init__(self, config: Optional[AnalyticsConfig] = None,
                 cache: Optional[ResultCache] = None,
                 clock: Callable[[], datetime] = now_utc):
        self.config = config or AnalyticsConfig()
        self.clock = clock
        if cache is None:
            cache = ResultCache(ttl=timedelta(seconds=self.config.cache_ttl_seconds), clock=clock)
        self.cache = cache

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_aware(now) if now is not None else self.clock()

    def _resolve_options(self, options: Union[ReportOptions, Dict[str, Any], None]) -> ReportOptions:
        if isinstance(options, ReportOptions):
            return options
        return ReportOptions.from_dict(options, default_period_count=self.config.default_period_count)

    def generate_report(self, records, options: Union[ReportOptions, Dict[str, Any], None] = None,
                        now: Optional[datetime] = None) -> AnalysisReport:
        """Generate the full analysis report, served from cache when fresh.

        Args:
            records: Task records (TaskRecord instances or storage dicts)
            options: ReportOptions or a mapping with includePeriods,
                periodCount, includeInsights and includeRecommendations
            now: Reference time for the analysis; defaults to the engine clock

        Returns:
            The cached report for identical records and options within the
            TTL, otherwise a newly computed report.
        """
        records = ensure_records(records)
        options = self._resolve_options(options)

        cache_key = fingerprint("report", records, options=options.to_dict())
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        now = self._now(now)
        logger.debug(f"Generating analysis report for {len(records)} records")

        trend = productivity_trend(records, now=now, config=self.config)
        procrastination = procrastination_metrics(records, now=now, config=self.config)
        work_periods = optimal_work_periods(records, now=now, config=self.config)
        overview = self.generate_overview(records, now=now)

        builder = (ReportBuilder()
                   .metadata(ReportMetadata(
                       generated_at=now,
                       total_todos=len(records),
                       analysis_options=options,
                       inconsistent_records=count_inconsistent(records),
                   ))
                   .overview(overview)
                   .productivity_trend(trend)
                   .procrastination(procrastination)
                   .work_periods(work_periods))

        for period in options.include_periods:
            builder.period_stats(period, time_period_stats(records, period,
                                                           options.period_count, now=now))

        if options.include_insights:
            builder.insights(personalized_insights(records, now=now))

        if options.include_recommendations:
            builder.recommendations(self._build_recommendations(
                records, overview, procrastination, work_periods, trend))

        report = builder.build()
        self.cache.set(cache_key, report)
        return report

    def generate_overview(self, records, now: Optional[datetime] = None) -> Overview:
        records = ensure_records(records)
        now = self._now(now)

        overall = completion_rate(records)
        today = completion_rate(records, day_range(now))
        this_week = completion_rate(records, this_week_range(now))
        this_month = completion_rate(records, this_month_range(now))

        return Overview(
            overall=OverallStats(
                created_today=today.total,
                completed_today=today.completed,
                **overall.to_dict()
            ),
            periods={'today': today, 'this_week': this_week, 'this_month': this_month},
            milestones=self.calculate_milestones(records),
        )

    def calculate_milestones(self, records) -> List[Milestone]:
        """Next completion-count and completion-rate milestones."""
        records = ensure_records(records)
        completed = sum(1 for r in records if r.completed)
        total = len(records)
        milestones = []

        next_count = next((m for m in COMPLETION_MILESTONES if m > completed), None)
        if next_count is not None:
            milestones.append(Milestone(
                type="completion_count",
                current=completed,
                target=next_count,
                progress=percentage(completed, next_count),
                description=f"{next_count - completed} more completed tasks to reach {next_count}",
            ))

        if total >= 10:
            rate = completed / total
            next_rate = next((r for r in COMPLETION_RATE_MILESTONES if r > rate), None)
            if next_rate is not None:
                # Counted as if the remaining tasks are completed without new ones added
                needed = max(math.ceil(round(next_rate * total, 6)) - completed, 1)
                milestones.append(Milestone(
                    type="completion_rate",
                    current=percentage(completed, total),
                    target=int(round(next_rate * 100)),
                    progress=percentage(rate, next_rate),
                    description=(f"Complete {needed} more tasks to reach a "
                                 f"{int(round(next_rate * 100))}% completion rate"),
                ))

        return milestones

    def generate_recommendations(self, records, now: Optional[datetime] = None) -> Recommendations:
        """Recommendations computed on their own, outside a full report."""
        records = ensure_records(records)
        now = self._now(now)
        return self._build_recommendations(
            records,
            self.generate_overview(records, now=now),
            procrastination_metrics(records, now=now, config=self.config),
            optimal_work_periods(records, now=now, config=self.config),
            productivity_trend(records, now=now, config=self.config),
        )

    def _build_recommendations(self, records: List[TaskRecord], overview: Overview,
                               procrastination: ProcrastinationMetrics,
                               work_periods: WorkPeriodAnalysis,
                               trend: ProductivityTrend) -> Recommendations:
        immediate: List[Recommendation] = []
        strategic: List[Recommendation] = []
        optimization: List[Recommendation] = []

        if procrastination.procrastination_level == ProcrastinationLevel.VERY_HIGH:
            immediate.append(Recommendation(
                priority=RecommendationPriority.HIGH,
                category="procrastination",
                title="Clear your backlog",
                description=(f"You have {procrastination.long_term_delayed} long-delayed "
                             f"tasks that need attention now"),
                actions=[
                    "Pick one or two of the most important overdue tasks",
                    "Set a minimum goal you must finish today",
                    "Remove every distraction while you work on them",
                ],
            ))
        elif procrastination.delayed_tasks > 0:
            strategic.append(Recommendation(
                priority=RecommendationPriority.MEDIUM,
                category="procrastination",
                title="Finish tasks sooner",
                description=(f"{procrastination.delayed_tasks} tasks have been waiting "
                             f"longer than a day"),
                actions=list(procrastination.recommendations),
            ))

        best = work_periods.best_time_slot
        if best.total > 0:
            optimization.append(Recommendation(
                priority=RecommendationPriority.MEDIUM,
                category="scheduling",
                title="Schedule around your best hours",
                description=f"You are most productive in the {best.label}",
                actions=list(work_periods.recommendations),
            ))

        if trend.trend == TrendDirection.DECREASING:
            strategic.append(Recommendation(
                priority=RecommendationPriority.HIGH,
                category="productivity",
                title="Reverse the productivity decline",
                description=trend.description,
                actions=[
                    "Look into what changed recently",
                    "Re-evaluate task priorities",
                    "Consider adjusting your working method or environment",
                    "Set more realistic daily goals",
                ],
            ))
        elif trend.trend == TrendDirection.INCREASING:
            optimization.append(Recommendation(
                priority=RecommendationPriority.LOW,
                category="productivity",
                title="Keep up the momentum",
                description=trend.description,
                actions=[
                    "Keep your current working rhythm",
                    "Try taking on a few more tasks",
                    "Write down what is working well",
                ],
            ))

        overall = overview.overall
        if overall.total > 0 and overall.pending / overall.total > 0.7:
            immediate.append(Recommendation(
                priority=RecommendationPriority.HIGH,
                category="task_management",
                title="Tidy up your task list",
                description=f"You have {overall.pending} pending tasks; consider cleaning them up",
                actions=[
                    "Delete tasks that are no longer needed",
                    "Split large tasks into smaller ones",
                    "Re-prioritize what is left",
                ],
            ))

        if overview.periods['today'].total == 0 and records:
            immediate.append(Recommendation(
                priority=RecommendationPriority.MEDIUM,
                category="daily_planning",
                title="Plan your day",
                description="No tasks have been created today yet",
                actions=[
                    "Review what was left unfinished yesterday",
                    "Pick the three most important goals for today",
                    "Create concrete, actionable tasks",
                ],
            ))

        return Recommendations(immediate=immediate, strategic=strategic, optimization=optimization)

    # -- ad hoc windows -----------------------------------------------------

    def get_period_analysis(self, records, start: datetime, end: datetime) -> PeriodAnalysis:
        """Analyze records created within ``[start, end]``."""
        records = ensure_records(records)
        window = TimeRange(start, end)
        if window.end < window.start:
            raise ValueError("Period end must not be before its start")

        cache_key = fingerprint("period", records,
                                start=to_iso_string(window.start), end=to_iso_string(window.end))
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        in_window = [r for r in records if window.contains(r.create_time)]
        duration = (window.end.date() - window.start.date()).days + 1

        analysis = PeriodAnalysis(
            period=PeriodWindow(
                start=format_date(window.start),
                end=format_date(window.end),
                duration=duration,
            ),
            overview=completion_rate(in_window),
            daily_breakdown=self._daily_breakdown(in_window, window),
            work_patterns=self._work_patterns(in_window, window),
            comparisons=self._compare_with_previous(records, in_window, window, duration),
        )

        self.cache.set(cache_key, analysis)
        return analysis

    def _daily_breakdown(self, records: List[TaskRecord], window: TimeRange) -> List[DailyBreakdown]:
        breakdown = []
        for day in date_range(start_of_day(window.start), window.end):
            bounds = TimeRange(start_of_day(day), end_of_day(day))
            created = [r for r in records if bounds.contains(r.create_time)]
            completed = [r for r in records if bounds.contains(r.completion_time)]
            breakdown.append(DailyBreakdown(
                date=format_date(day),
                day_of_week=WEEKDAY_NAMES[day.weekday()],
                is_weekend=is_weekend(day),
                created=len(created),
                completed=len(completed),
                todo_details=[
                    TaskDetail(id=r.id, title=r.title, completed=r.completed,
                               create_time=r.create_time)
                    for r in created
                ],
            ))
        return breakdown

    def _work_patterns(self, records: List[TaskRecord], window: TimeRange) -> WorkPatterns:
        # Same calendar as the daily breakdown
        hourly = [0] * 24
        weekly = [0] * 7
        for record in records:
            created = record.create_time.astimezone(window.start.tzinfo)
            hourly[created.hour] += 1
            weekly[created.weekday()] += 1

        total = len(records)
        peak_hour = hourly.index(max(hourly))
        peak_day = weekly.index(max(weekly))

        return WorkPatterns(
            hourly_distribution=[
                {'hour': hour, 'count': count, 'percentage': percentage(count, total)}
                for hour, count in enumerate(hourly)
            ],
            weekly_distribution=[
                {'day': day, 'day_name': WEEKDAY_NAMES[day], 'count': count,
                 'percentage': percentage(count, total)}
                for day, count in enumerate(weekly)
            ],
            peak_hour={
                'hour': peak_hour,
                'count': hourly[peak_hour],
                'time_slot': time_slot_for_hour(peak_hour).value,
            },
            peak_day={'day': peak_day, 'name': WEEKDAY_NAMES[peak_day], 'count': weekly[peak_day]},
        )

    def _compare_with_previous(self, all_records: List[TaskRecord], current_records: List[TaskRecord],
                               window: TimeRange, duration: int) -> PeriodComparison:
        shift = timedelta(days=duration)
        previous = TimeRange(window.start - shift, window.end - shift)
        previous_records = [r for r in all_records if previous.contains(r.create_time)]

        current_stats = completion_rate(current_records)
        previous_stats = completion_rate(previous_records)

        return PeriodComparison(
            previous_period={'start': format_date(previous.start), 'end': format_date(previous.end)},
            previous_stats=previous_stats,
            total_tasks=current_stats.total - previous_stats.total,
            completed_tasks=current_stats.completed - previous_stats.completed,
            completion_rate=current_stats.completion_rate - previous_stats.completion_rate,
            trend=compare_trend(current_stats, previous_stats),
        )

    # -- real time ----------------------------------------------------------

    def get_real_time_stats(self, records, now: Optional[datetime] = None) -> RealTimeStats:
        """Fresh snapshot; never cached."""
        records = ensure_records(records)
        now = self._now(now)

        return RealTimeStats(
            timestamp=now,
            overview=completion_rate(records),
            today=completion_rate(records, day_range(now)),
            this_week=completion_rate(records, this_week_range(now)),
            recent_activity=self.recent_activity(records, now),
            quick_insights=self.quick_insights(records, now),
        )

    def recent_activity(self, records: List[TaskRecord], now: datetime,
                        per_kind: int = 5, limit: int = 10) -> List[ActivityEvent]:
        """Creations and completions from the last 24 hours, newest first."""
        since = now - timedelta(hours=24)

        created = sorted((r for r in records if r.create_time >= since),
                         key=lambda r: r.create_time, reverse=True)[:per_kind]
        completed = sorted((r for r in records
                            if r.completion_time is not None and r.completion_time >= since),
                           key=lambda r: r.completion_time, reverse=True)[:per_kind]

        events = [
            ActivityEvent("created", r.id, r.create_time, f"Created task: {r.title}",
                          relative_time(r.create_time, now))
            for r in created
        ]
        events.extend(
            ActivityEvent("completed", r.id, r.completion_time, f"Completed task: {r.title}",
                          relative_time(r.completion_time, now))
            for r in completed
        )
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

    def quick_insights(self, records: List[TaskRecord], now: datetime) -> List[QuickInsight]:
        insights = []

        today = completion_rate(records, day_range(now))
        if today.completed > 0:
            insights.append(QuickInsight(
                "achievement", "✅",
                f"{today.completed} tasks completed today, keep it up!"))

        procrastination = procrastination_metrics(records, now=now, config=self.config)
        if procrastination.long_term_delayed > 0:
            insights.append(QuickInsight(
                "warning", "⏰",
                f"{procrastination.long_term_delayed} tasks have been waiting more than "
                f"{self.config.long_term_threshold_days} days; consider handling them first"))

        best = optimal_work_periods(records, now=now, config=self.config).best_time_slot
        if best.total > 0 and time_slot(now) == best.time_slot:
            insights.append(QuickInsight(
                "tip", "💡",
                "You are in your most productive time slot right now, a good time for important work"))

        return insights

    # -- export & cache -----------------------------------------------------

    def export_analysis_data(self, report: AnalysisReport, format="structured") -> str:
        # Imported here: export depends on the report types defined above
        from .export import export_report
        return export_report(report, format)

    def clear_cache(self) -> None:
        self.cache.clear()


def compare_trend(current: CompletionStats, previous: CompletionStats) -> ComparisonTrend:
    """Coarse change between two windows.

    Within 5 completion-rate points and 1 task of volume the change is stable.
    """
    rate_change = current.completion_rate - previous.completion_rate
    volume_change = current.total - previous.total

    if abs(rate_change) <= 5 and abs(volume_change) <= 1:
        return ComparisonTrend.STABLE
    if rate_change > 5 or (rate_change >= 0 and volume_change > 0):
        return ComparisonTrend.IMPROVING
    if rate_change < -5 or (rate_change <= 0 and volume_change < 0):
        return ComparisonTrend.DECLINING
    return ComparisonTrend.MIXED
