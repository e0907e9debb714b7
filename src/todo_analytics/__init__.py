"""Todo Analytics - behavioral analytics over task records."""

__version__ = "0.1.0"
__author__ = "Todo CLI Team"

from .config import AnalyticsConfig, load_config
from .record import TaskRecord, TimeRange
from .services.analytics import AnalyticsEngine, AnalysisReport, ReportOptions

__all__ = [
    "AnalyticsConfig",
    "load_config",
    "TaskRecord",
    "TimeRange",
    "AnalyticsEngine",
    "AnalysisReport",
    "ReportOptions",
    "__version__",
]
