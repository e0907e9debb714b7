"""Application services for Todo Analytics."""

from .cache import ResultCache, fingerprint
from .metrics import (
    CompletionStats,
    ProcrastinationLevel,
    TrendDirection,
    WorkingStyle,
)
from .analytics import (
    AnalyticsEngine,
    AnalysisReport,
    ReportBuilder,
    ReportOptions,
    PeriodAnalysis,
    RealTimeStats,
)
from .export import ExportManager, ExportFormat, UnsupportedFormatError, load_structured_report

__all__ = [
    "ResultCache",
    "fingerprint",
    "CompletionStats",
    "ProcrastinationLevel",
    "TrendDirection",
    "WorkingStyle",
    "AnalyticsEngine",
    "AnalysisReport",
    "ReportBuilder",
    "ReportOptions",
    "PeriodAnalysis",
    "RealTimeStats",
    "ExportManager",
    "ExportFormat",
    "UnsupportedFormatError",
    "load_structured_report",
]
