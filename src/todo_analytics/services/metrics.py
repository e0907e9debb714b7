"""Metrics Calculator for task records.

This module provides the stateless calculations behind the analytics report:
- Completion rates, overall and per day/week/month bucket
- Linear productivity trend over daily completions
- Procrastination scoring from task age and completion latency
- Productivity by time of day and weekday/weekend
- Personalized insights: working style, task patterns, streaks, achievements

Every function is a pure function of its arguments. Where the current time
matters it is taken from an explicit ``now`` argument, which only defaults to
the wall clock when omitted. Empty inputs always produce zero/neutral results.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..config import AnalyticsConfig, DEFAULT_CONFIG
from ..record import TaskRecord, TimeRange
from ..utils.datetime import now_utc, ensure_aware, to_iso_string, from_iso_string
from ..utils.time_buckets import (
    Period, TimeSlot, SECONDS_PER_DAY, to_period,
    start_of_day, end_of_day, start_of_week, end_of_week,
    start_of_month, end_of_month, add_months,
    days_difference, is_weekday, time_slot, time_slot_label,
    week_number, format_date,
)
from ..utils.validation import ensure_records

logger = logging.getLogger(__name__)


class TrendDirection(Enum):
    """Direction of the daily completion trend"""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class ProcrastinationLevel(Enum):
    """Procrastination severity levels"""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


class WorkingStyle(Enum):
    """Working styles derived from completion latency"""
    SPRINT = "sprint"
    MARATHON = "marathon"
    MIXED_FAST = "mixed_fast"
    BALANCED = "balanced"
    UNKNOWN = "unknown"


PROCRASTINATION_RECOMMENDATIONS = {
    ProcrastinationLevel.LOW: [
        "Maintain your current pace",
        "Consider taking on more challenging tasks",
        "Review and refine your workflow regularly",
    ],
    ProcrastinationLevel.MODERATE: [
        "Break large tasks into smaller steps",
        "Set concrete deadlines for each task",
        "Use focused work sessions such as the Pomodoro technique",
    ],
    ProcrastinationLevel.HIGH: [
        "Handle the most urgent tasks first",
        "Limit yourself to three important tasks per day",
        "Remove distractions from your work environment",
        "Ask someone to hold you accountable",
    ],
    ProcrastinationLevel.VERY_HIGH: [
        "Deal with the backlog of overdue tasks immediately",
        "Focus on only one or two key tasks each day",
        "Seek structured guidance on time management",
        "Analyze the root causes of your procrastination",
        "Set up a system of rewards and consequences",
    ],
}

WORKING_STYLE_DESCRIPTIONS = {
    WorkingStyle.SPRINT: "Sprinter: prefers finishing tasks quickly, strong execution",
    WorkingStyle.MARATHON: "Marathoner: plans for the long run and thinks deeply",
    WorkingStyle.MIXED_FAST: "Mixed, leaning fast: combines quick and slow work, mostly quick",
    WorkingStyle.BALANCED: "Balanced: steady rhythm between quick and slow tasks",
    WorkingStyle.UNKNOWN: "Not enough completed tasks to determine a working style",
}

DAY_TYPE_LABELS = {"weekday": "Weekdays", "weekend": "Weekends"}

RecordsArg = Iterable[Union[TaskRecord, Dict[str, Any]]]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a calculator (0.5 always rounds up)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percentage(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))


def freeze_fields(instance, *names: str) -> None:
    """Store the named sequence fields of a frozen dataclass as tuples."""
    for name in names:
        object.__setattr__(instance, name, tuple(getattr(instance, name)))


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompletionStats:
    """Completion counts and rates for a set of records"""
    total: int = 0
    completed: int = 0
    pending: int = 0
    completion_rate: int = 0
    pending_rate: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletionStats":
        return cls(**data)


@dataclass(frozen=True)
class PeriodStat:
    """Completion statistics for one day/week/month bucket"""
    label: str
    period: Period
    start_date: datetime
    end_date: datetime
    total: int = 0
    completed: int = 0
    pending: int = 0
    completion_rate: int = 0
    pending_rate: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'period': self.period.value,
            'start_date': to_iso_string(self.start_date),
            'end_date': to_iso_string(self.end_date),
            'total': self.total,
            'completed': self.completed,
            'pending': self.pending,
            'completion_rate': self.completion_rate,
            'pending_rate': self.pending_rate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PeriodStat":
        data = dict(data)
        data['period'] = Period(data['period'])
        data['start_date'] = from_iso_string(data['start_date'])
        data['end_date'] = from_iso_string(data['end_date'])
        return cls(**data)


@dataclass(frozen=True)
class ProductivityTrend:
    """Linear trend of completed tasks per day"""
    trend: TrendDirection
    change: float
    daily_average: float
    description: str
    periods: Tuple[PeriodStat, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "periods")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'trend': self.trend.value,
            'change': self.change,
            'daily_average': self.daily_average,
            'description': self.description,
            'periods': [p.to_dict() for p in self.periods],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductivityTrend":
        return cls(
            trend=TrendDirection(data['trend']),
            change=data['change'],
            daily_average=data['daily_average'],
            description=data['description'],
            periods=[PeriodStat.from_dict(p) for p in data.get('periods', [])],
        )


@dataclass(frozen=True)
class ProcrastinationMetrics:
    """Delay statistics and the derived procrastination level"""
    total_pending_tasks: int = 0
    delayed_tasks: int = 0
    long_term_delayed: int = 0
    very_long_term_delayed: int = 0
    avg_delay_days: float = 0.0
    avg_completion_days: float = 0.0  # whole days, rounded up per task
    procrastination_score: float = 0.0
    procrastination_level: ProcrastinationLevel = ProcrastinationLevel.LOW
    recommendations: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "recommendations")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['procrastination_level'] = self.procrastination_level.value
        data['recommendations'] = list(self.recommendations)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcrastinationMetrics":
        data = dict(data)
        data['procrastination_level'] = ProcrastinationLevel(data['procrastination_level'])
        return cls(**data)


@dataclass(frozen=True)
class TimeSlotStat:
    """Productivity of tasks created in one time-of-day slot"""
    time_slot: TimeSlot
    label: str
    total: int = 0
    completed: int = 0
    completion_rate: int = 0
    productivity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['time_slot'] = self.time_slot.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSlotStat":
        data = dict(data)
        data['time_slot'] = TimeSlot(data['time_slot'])
        return cls(**data)


@dataclass(frozen=True)
class DayTypeStat:
    """Productivity of tasks created on weekdays or weekends"""
    day_type: str  # "weekday" or "weekend"
    label: str
    total: int = 0
    completed: int = 0
    completion_rate: int = 0
    productivity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DayTypeStat":
        return cls(**data)


@dataclass(frozen=True)
class WorkPeriodAnalysis:
    """Best and worst periods to work in"""
    time_slot_analysis: Tuple[TimeSlotStat, ...]
    day_type_analysis: Tuple[DayTypeStat, ...]
    best_time_slot: TimeSlotStat
    recommendations: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "time_slot_analysis", "day_type_analysis", "recommendations")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time_slot_analysis': [s.to_dict() for s in self.time_slot_analysis],
            'day_type_analysis': [d.to_dict() for d in self.day_type_analysis],
            'best_time_slot': self.best_time_slot.to_dict(),
            'recommendations': list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkPeriodAnalysis":
        return cls(
            time_slot_analysis=[TimeSlotStat.from_dict(s) for s in data['time_slot_analysis']],
            day_type_analysis=[DayTypeStat.from_dict(d) for d in data['day_type_analysis']],
            best_time_slot=TimeSlotStat.from_dict(data['best_time_slot']),
            recommendations=list(data.get('recommendations', [])),
        )


@dataclass(frozen=True)
class WorkingStyleAnalysis:
    style: WorkingStyle
    description: str
    mean_latency_days: float = 0.0  # fractional days
    quick_task_ratio: int = 0  # percent of tasks completed within a day

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['style'] = self.style.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkingStyleAnalysis":
        data = dict(data)
        data['style'] = WorkingStyle(data['style'])
        return cls(**data)


@dataclass(frozen=True)
class TaskPatterns:
    avg_title_length: int = 0
    description_usage: int = 0  # percent of records with a description
    peak_creation_hour: Optional[int] = None
    task_complexity: str = "simple"
    planning_habit: str = "minimal"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskPatterns":
        return cls(**data)


@dataclass(frozen=True)
class StreakInfo:
    current_streak: int = 0
    max_streak: int = 0
    streak_dates: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "streak_dates")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['streak_dates'] = list(self.streak_dates)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreakInfo":
        return cls(**data)


@dataclass(frozen=True)
class Achievement:
    category: str
    name: str
    description: str
    icon: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Achievement":
        return cls(**data)


@dataclass(frozen=True)
class PersonalizedInsights:
    """Working style, task patterns, streaks and achievements"""
    working_style: WorkingStyleAnalysis
    task_patterns: TaskPatterns
    streaks: StreakInfo
    achievements: Tuple[Achievement, ...] = ()
    summary: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, "achievements", "summary")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'working_style': self.working_style.to_dict(),
            'task_patterns': self.task_patterns.to_dict(),
            'streaks': self.streaks.to_dict(),
            'achievements': [a.to_dict() for a in self.achievements],
            'summary': list(self.summary),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersonalizedInsights":
        return cls(
            working_style=WorkingStyleAnalysis.from_dict(data['working_style']),
            task_patterns=TaskPatterns.from_dict(data['task_patterns']),
            streaks=StreakInfo.from_dict(data['streaks']),
            achievements=[Achievement.from_dict(a) for a in data.get('achievements', [])],
            summary=list(data.get('summary', [])),
        )


# ---------------------------------------------------------------------------
# Completion rates
# ---------------------------------------------------------------------------

def completion_rate(records: RecordsArg, time_range: Optional[TimeRange] = None) -> CompletionStats:
    """Completion counts for records created inside ``time_range`` (all if None)."""
    records = ensure_records(records)
    if time_range is not None:
        records = [r for r in records if time_range.contains(r.create_time)]

    total = len(records)
    if total == 0:
        return CompletionStats()

    completed = sum(1 for r in records if r.completed)
    pending = total - completed
    return CompletionStats(
        total=total,
        completed=completed,
        pending=pending,
        completion_rate=percentage(completed, total),
        pending_rate=percentage(pending, total),
    )


def period_bounds(period: Union[Period, str], offset: int, now: datetime) -> TimeRange:
    """Bounds of the bucket ``offset`` periods before the one containing ``now``."""
    period = to_period(period)
    if period == Period.DAY:
        day = now - timedelta(days=offset)
        return TimeRange(start_of_day(day), end_of_day(day))
    if period == Period.WEEK:
        week_day = now - timedelta(weeks=offset)
        return TimeRange(start_of_week(week_day), end_of_week(week_day))
    month = add_months(start_of_month(now), -offset)
    return TimeRange(month, end_of_month(month))


def period_label(period: Period, start: datetime) -> str:
    if period == Period.DAY:
        return format_date(start, "MM/DD")
    if period == Period.WEEK:
        return f"W{week_number(start)}"
    return format_date(start, "YYYY-MM")


def time_period_stats(records: RecordsArg, period: Union[Period, str] = Period.DAY,
                      count: int = 7, now: Optional[datetime] = None) -> List[PeriodStat]:
    """Completion statistics for the ``count`` most recent buckets, oldest first."""
    period = to_period(period)
    records = ensure_records(records)
    now = ensure_aware(now) if now is not None else now_utc()

    stats = []
    for offset in range(max(count, 0)):
        bounds = period_bounds(period, offset, now)
        rate = completion_rate(records, bounds)
        stats.append(PeriodStat(
            label=period_label(period, bounds.start),
            period=period,
            start_date=bounds.start,
            end_date=bounds.end,
            **rate.to_dict()
        ))

    stats.reverse()
    return stats


# ---------------------------------------------------------------------------
# Productivity trend
# ---------------------------------------------------------------------------

def linear_slope(values: List[float]) -> float:
    """Least-squares slope of values against their index 0..n-1."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(i * y for i, y in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def productivity_trend(records: RecordsArg, days: Optional[int] = None,
                       now: Optional[datetime] = None,
                       config: Optional[AnalyticsConfig] = None) -> ProductivityTrend:
    """Fit a line through completed tasks per day over the last ``days`` days."""
    config = config or DEFAULT_CONFIG
    if days is None:
        days = config.trend_days

    daily_stats = time_period_stats(records, Period.DAY, days, now=now)

    if len(daily_stats) < 2:
        return ProductivityTrend(
            trend=TrendDirection.STABLE,
            change=0.0,
            daily_average=0.0,
            description="Not enough data to analyze the productivity trend",
            periods=daily_stats,
        )

    completions = [stat.completed for stat in daily_stats]
    slope = linear_slope(completions)
    daily_average = sum(completions) / len(completions)

    if abs(slope) < config.trend_stable_threshold:
        trend = TrendDirection.STABLE
        description = "Productivity is holding steady"
    elif slope > 0:
        trend = TrendDirection.INCREASING
        description = f"Productivity is rising by about {slope:.1f} completed tasks per day"
    else:
        trend = TrendDirection.DECREASING
        description = f"Productivity is falling by about {abs(slope):.1f} completed tasks per day"

    return ProductivityTrend(
        trend=trend,
        change=slope,
        daily_average=round_half_up(daily_average, 1),
        description=description,
        periods=daily_stats,
    )


# ---------------------------------------------------------------------------
# Procrastination
# ---------------------------------------------------------------------------

def procrastination_score(total_tasks: int, delayed_tasks: int, long_term_delayed: int,
                          very_long_term_delayed: int, avg_completion_days: float,
                          config: Optional[AnalyticsConfig] = None) -> float:
    """Weighted 0-100 procrastination score.

    Components, each capped at its weight:
    - share of all tasks that are delayed
    - share of delayed tasks delayed long term
    - share of delayed tasks delayed very long term
    - average completion time beyond the grace period
    """
    config = config or DEFAULT_CONFIG
    score = 0.0

    if total_tasks > 0:
        score += min(delayed_tasks / total_tasks * config.delayed_ratio_weight,
                     config.delayed_ratio_weight)

    if delayed_tasks > 0:
        score += min(long_term_delayed / delayed_tasks * config.long_term_weight,
                     config.long_term_weight)
        score += min(very_long_term_delayed / delayed_tasks * config.very_long_term_weight,
                     config.very_long_term_weight)

    if avg_completion_days > config.completion_time_grace_days:
        overdue = avg_completion_days - config.completion_time_grace_days
        score += min(overdue * config.completion_time_multiplier, config.completion_time_weight)

    return max(0.0, min(score, 100.0))


def procrastination_level(score: float,
                          config: Optional[AnalyticsConfig] = None) -> ProcrastinationLevel:
    config = config or DEFAULT_CONFIG
    if score < config.moderate_threshold:
        return ProcrastinationLevel.LOW
    if score < config.high_threshold:
        return ProcrastinationLevel.MODERATE
    if score < config.very_high_threshold:
        return ProcrastinationLevel.HIGH
    return ProcrastinationLevel.VERY_HIGH


def procrastination_metrics(records: RecordsArg, now: Optional[datetime] = None,
                            config: Optional[AnalyticsConfig] = None) -> ProcrastinationMetrics:
    """Analyze how long pending tasks linger and how long completed ones took."""
    config = config or DEFAULT_CONFIG
    records = ensure_records(records)
    now = ensure_aware(now) if now is not None else now_utc()

    pending = [r for r in records if not r.completed]
    delayed = 0
    long_term = 0
    very_long_term = 0
    total_delay_days = 0

    for record in pending:
        age = days_difference(record.create_time, now)
        if age > config.delayed_threshold_days:
            delayed += 1
            total_delay_days += age
            if age > config.long_term_threshold_days:
                long_term += 1
            if age > config.very_long_term_threshold_days:
                very_long_term += 1

    # Completed tasks without an update_time have an unknown latency
    latencies = [
        days_difference(r.create_time, r.update_time)
        for r in records if r.completed and r.update_time is not None
    ]
    avg_completion_days = round_half_up(sum(latencies) / len(latencies), 1) if latencies else 0.0

    score = procrastination_score(len(records), delayed, long_term, very_long_term,
                                  avg_completion_days, config)
    level = procrastination_level(score, config)

    return ProcrastinationMetrics(
        total_pending_tasks=len(pending),
        delayed_tasks=delayed,
        long_term_delayed=long_term,
        very_long_term_delayed=very_long_term,
        avg_delay_days=round_half_up(total_delay_days / delayed, 1) if delayed else 0.0,
        avg_completion_days=avg_completion_days,
        procrastination_score=round_half_up(score, 1),
        procrastination_level=level,
        recommendations=list(PROCRASTINATION_RECOMMENDATIONS[level]),
    )


# ---------------------------------------------------------------------------
# Optimal work periods
# ---------------------------------------------------------------------------

def productivity_score(total: int, completed: int,
                       config: Optional[AnalyticsConfig] = None) -> int:
    """Blend of completion ratio and task volume, 0-100.

    Volume counts so that one task completed out of one does not outrank
    eight out of ten.
    """
    config = config or DEFAULT_CONFIG
    if total <= 0:
        return 0
    rate = completed / total
    volume = min(total / config.productivity_volume_cap, 1)
    blended = rate * config.productivity_rate_weight + volume * config.productivity_volume_weight
    return int(round_half_up(blended * 100))


def optimal_work_periods(records: RecordsArg, now: Optional[datetime] = None,
                         config: Optional[AnalyticsConfig] = None) -> WorkPeriodAnalysis:
    """Rank time-of-day slots and weekday/weekend by productivity.

    Creation times are classified on the calendar of ``now``.
    """
    config = config or DEFAULT_CONFIG
    records = ensure_records(records)
    now = ensure_aware(now) if now is not None else now_utc()

    slot_counts = {slot: {"total": 0, "completed": 0} for slot in TimeSlot}
    day_counts = {"weekday": {"total": 0, "completed": 0},
                  "weekend": {"total": 0, "completed": 0}}

    for record in records:
        created = record.create_time.astimezone(now.tzinfo)
        slot = slot_counts[time_slot(created)]
        day = day_counts["weekday" if is_weekday(created) else "weekend"]
        for bucket in (slot, day):
            bucket["total"] += 1
            if record.completed:
                bucket["completed"] += 1

    slot_analysis = [
        TimeSlotStat(
            time_slot=slot,
            label=time_slot_label(slot),
            total=counts["total"],
            completed=counts["completed"],
            completion_rate=percentage(counts["completed"], counts["total"]),
            productivity=productivity_score(counts["total"], counts["completed"], config),
        )
        for slot, counts in slot_counts.items()
    ]

    day_analysis = [
        DayTypeStat(
            day_type=day_type,
            label=DAY_TYPE_LABELS[day_type],
            total=counts["total"],
            completed=counts["completed"],
            completion_rate=percentage(counts["completed"], counts["total"]),
            productivity=productivity_score(counts["total"], counts["completed"], config),
        )
        for day_type, counts in day_counts.items()
    ]

    best = slot_analysis[0]
    for stat in slot_analysis[1:]:
        if stat.productivity > best.productivity:
            best = stat

    return WorkPeriodAnalysis(
        time_slot_analysis=slot_analysis,
        day_type_analysis=day_analysis,
        best_time_slot=best,
        recommendations=_work_period_recommendations(best, slot_analysis, config),
    )


def _work_period_recommendations(best: TimeSlotStat, analysis: List[TimeSlotStat],
                                 config: AnalyticsConfig) -> List[str]:
    recommendations = []

    if best.total > 0:
        recommendations.append(
            f"You are most productive in the {best.label} "
            f"(completion rate {best.completion_rate}%)"
        )
        recommendations.append(f"Schedule important tasks in the {best.label}")

    low_slots = [s.label for s in analysis
                 if s.total > 0 and s.productivity < config.low_productivity_threshold]
    if low_slots:
        recommendations.append(f"Avoid scheduling important tasks in: {', '.join(low_slots)}")

    mean = sum(s.total for s in analysis) / len(analysis)
    if any(abs(s.total - mean) > mean * 0.5 for s in analysis):
        recommendations.append("Try to spread tasks more evenly across the day")

    return recommendations


# ---------------------------------------------------------------------------
# Personalized insights
# ---------------------------------------------------------------------------

def analyze_working_style(records: RecordsArg) -> WorkingStyleAnalysis:
    """Classify how quickly tasks tend to get done."""
    records = ensure_records(records)
    completed = [r for r in records if r.completed and r.update_time is not None]

    if not completed:
        return WorkingStyleAnalysis(
            style=WorkingStyle.UNKNOWN,
            description=WORKING_STYLE_DESCRIPTIONS[WorkingStyle.UNKNOWN],
        )

    latencies = [abs((r.update_time - r.create_time).total_seconds()) / SECONDS_PER_DAY
                 for r in completed]
    mean_latency = sum(latencies) / len(latencies)
    quick_ratio = sum(1 for days in latencies if days < 1) / len(latencies)

    if mean_latency < 1 and quick_ratio > 0.7:
        style = WorkingStyle.SPRINT
    elif mean_latency > 3:
        style = WorkingStyle.MARATHON
    elif quick_ratio > 0.5:
        style = WorkingStyle.MIXED_FAST
    else:
        style = WorkingStyle.BALANCED

    return WorkingStyleAnalysis(
        style=style,
        description=WORKING_STYLE_DESCRIPTIONS[style],
        mean_latency_days=round_half_up(mean_latency, 1),
        quick_task_ratio=int(round_half_up(quick_ratio * 100)),
    )


def most_frequent(values: Iterable[Any]) -> Optional[Any]:
    """Mode of values; on ties the value seen first wins."""
    counts = Counter(values)
    if not counts:
        return None
    # Counter keeps insertion order, and max() returns the first maximal key
    return max(counts, key=counts.get)


def analyze_task_patterns(records: RecordsArg, now: Optional[datetime] = None) -> TaskPatterns:
    records = ensure_records(records)
    if not records:
        return TaskPatterns()
    now = ensure_aware(now) if now is not None else now_utc()

    avg_title_length = sum(len(r.title) for r in records) / len(records)
    with_description = sum(1 for r in records if r.description and r.description.strip())
    usage = percentage(with_description, len(records))

    return TaskPatterns(
        avg_title_length=int(round_half_up(avg_title_length)),
        description_usage=usage,
        peak_creation_hour=most_frequent(r.create_time.astimezone(now.tzinfo).hour
                                         for r in records),
        task_complexity="complex" if avg_title_length > 30 else "simple",
        planning_habit="detailed" if usage > 50 else "minimal",
    )


def calculate_streaks(records: RecordsArg, now: Optional[datetime] = None) -> StreakInfo:
    """Consecutive days with at least one completion.

    The current streak walks backward from today and stops at the first day
    without a completion. The max streak is the longest such run on record.
    Completion days are taken on the calendar of ``now``.
    """
    records = ensure_records(records)
    now = ensure_aware(now) if now is not None else now_utc()

    completion_days = {
        r.update_time.astimezone(now.tzinfo).date()
        for r in records if r.completed and r.update_time is not None
    }
    if not completion_days:
        return StreakInfo()

    streak_dates = []
    day = now.date()
    while day in completion_days:
        streak_dates.append(day)
        day -= timedelta(days=1)
    streak_dates.reverse()

    max_streak = 0
    run = 0
    previous = None
    for day in sorted(completion_days):
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        max_streak = max(max_streak, run)
        previous = day

    return StreakInfo(
        current_streak=len(streak_dates),
        max_streak=max(max_streak, len(streak_dates)),
        streak_dates=[d.isoformat() for d in streak_dates],
    )


def calculate_achievements(records: RecordsArg, now: Optional[datetime] = None,
                           streaks: Optional[StreakInfo] = None) -> List[Achievement]:
    """Badges for completion count, completion rate and current streak.

    Only the highest tier reached in each category is awarded.
    """
    records = ensure_records(records)
    completed = sum(1 for r in records if r.completed)
    total = len(records)
    achievements = []

    if completed >= 100:
        achievements.append(Achievement("completion_count", "Century Club",
                                        "Completed 100 tasks", "🏆"))
    elif completed >= 50:
        achievements.append(Achievement("completion_count", "Half-Century Hero",
                                        "Completed 50 tasks", "🥇"))
    elif completed >= 10:
        achievements.append(Achievement("completion_count", "Perfect Ten",
                                        "Completed 10 tasks", "🥉"))

    if total >= 10:
        rate = completed / total
        if rate >= 0.9:
            achievements.append(Achievement("completion_rate", "Perfectionist",
                                            "Completion rate of 90% or more", "💎"))
        elif rate >= 0.75:
            achievements.append(Achievement("completion_rate", "Efficient Executor",
                                            "Completion rate of 75% or more", "⚡"))

    if streaks is None:
        streaks = calculate_streaks(records, now)
    if streaks.current_streak >= 7:
        achievements.append(Achievement("streak", "Seven-Day Miracle",
                                        f"Completed tasks {streaks.current_streak} days in a row", "🔥"))
    elif streaks.current_streak >= 3:
        achievements.append(Achievement("streak", "Staying Power",
                                        f"Completed tasks {streaks.current_streak} days in a row", "💪"))

    return achievements


def personalized_insights(records: RecordsArg, now: Optional[datetime] = None) -> PersonalizedInsights:
    """Combine working style, task patterns, streaks and achievements."""
    records = ensure_records(records)
    now = ensure_aware(now) if now is not None else now_utc()

    working_style = analyze_working_style(records)
    patterns = analyze_task_patterns(records, now)
    streaks = calculate_streaks(records, now)
    achievements = calculate_achievements(records, now, streaks=streaks)

    summary = [f"Working style: {working_style.description}"]
    if patterns.planning_habit == "detailed":
        summary.append("Task planning: detailed planner")
    else:
        summary.append("Task planning: concise and efficient")
    if streaks.current_streak > 0:
        summary.append(f"Current streak: {streaks.current_streak} consecutive days with completed tasks")
    if achievements:
        summary.append(f"Achievements earned: {len(achievements)}")

    return PersonalizedInsights(
        working_style=working_style,
        task_patterns=patterns,
        streaks=streaks,
        achievements=achievements,
        summary=summary,
    )
