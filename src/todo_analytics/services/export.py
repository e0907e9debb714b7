"""
Export System for analytics reports

This module serializes AnalysisReport instances as a lossless structured
document (JSON), a tabular per-day sheet (CSV) or a human-readable summary.
"""

import csv
import json
import os
from abc import ABC, abstractmethod
from enum import Enum
from io import StringIO
from typing import Dict, List, Optional, Union

from .analytics import AnalysisReport


class ExportFormat(Enum):
    """Supported export formats"""
    STRUCTURED = "structured"
    TABULAR = "tabular"
    SUMMARY = "summary"


FORMAT_ALIASES = {
    "json": ExportFormat.STRUCTURED,
    "csv": ExportFormat.TABULAR,
    "text": ExportFormat.SUMMARY,
}


class UnsupportedFormatError(ValueError):
    """Raised when a report is exported in a format that does not exist."""

    def __init__(self, format):
        self.format = format
        supported = ", ".join(f.value for f in ExportFormat)
        super().__init__(f"Unsupported export format: {format!r} (supported: {supported})")


def to_export_format(format: Union[ExportFormat, str]) -> ExportFormat:
    if isinstance(format, ExportFormat):
        return format
    if isinstance(format, str):
        name = format.strip().lower()
        if name in FORMAT_ALIASES:
            return FORMAT_ALIASES[name]
        try:
            return ExportFormat(name)
        except ValueError:
            pass
    raise UnsupportedFormatError(format)


class BaseExporter(ABC):
    """Abstract base class for report exporters"""

    @abstractmethod
    def export_report(self, report: AnalysisReport) -> str:
        """Export a report to string format"""
        pass

    @abstractmethod
    def get_file_extension(self) -> str:
        """Get recommended file extension"""
        pass


class StructuredExporter(BaseExporter):
    """Full report as JSON; load_structured_report reverses it"""

    def export_report(self, report: AnalysisReport) -> str:
        return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)

    def get_file_extension(self) -> str:
        return "json"


class TabularExporter(BaseExporter):
    """One CSV row per day bucket of the report's day period analysis"""

    FIELDS = ['date', 'created', 'completed', 'completion_rate']

    def export_report(self, report: AnalysisReport, delimiter: str = ',') -> str:
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=self.FIELDS, delimiter=delimiter,
                                lineterminator='\n')
        writer.writeheader()

        for stat in report.time_period_analysis.get('day', []):
            writer.writerow({
                'date': stat.start_date.strftime('%Y-%m-%d'),
                'created': stat.total,
                'completed': stat.completed,
                'completion_rate': stat.completion_rate,
            })

        return output.getvalue()

    def get_file_extension(self) -> str:
        return "csv"


class SummaryExporter(BaseExporter):
    """Fixed-section plain text digest"""

    def __init__(self, max_recommendations: int = 5):
        self.max_recommendations = max_recommendations

    def export_report(self, report: AnalysisReport) -> str:
        overall = report.overview.overall
        trend = report.productivity_trend
        procrastination = report.procrastination_analysis

        lines = [
            "Task Analytics Report",
            f"Generated: {report.metadata.generated_at.strftime('%Y-%m-%d %H:%M:%S %Z')}",
            "",
            "== Overview ==",
            f"Total tasks: {overall.total}",
            f"Completed: {overall.completed}",
            f"Pending: {overall.pending}",
            f"Completion rate: {overall.completion_rate}%",
            f"Created today: {overall.created_today}",
            f"Completed today: {overall.completed_today}",
            "",
            "== Productivity Trend ==",
            f"Trend: {trend.trend.value}",
            f"Daily average: {trend.daily_average} completed tasks",
            trend.description,
            "",
            "== Procrastination ==",
            f"Level: {procrastination.procrastination_level.value}",
            f"Score: {procrastination.procrastination_score}",
            f"Delayed tasks: {procrastination.delayed_tasks}",
            f"Long-term delayed: {procrastination.long_term_delayed}",
            f"Average delay: {procrastination.avg_delay_days} days",
            "",
            "== Top Recommendations ==",
        ]

        recommendations = report.recommendations.all() if report.recommendations else []
        if not recommendations:
            lines.append("No recommendations")
        for i, rec in enumerate(recommendations[:self.max_recommendations], 1):
            lines.append(f"{i}. [{rec.priority.value}] {rec.title}: {rec.description}")

        return "\n".join(lines) + "\n"

    def get_file_extension(self) -> str:
        return "txt"


class ExportManager:
    """Dispatches reports to the exporter for a format"""

    def __init__(self):
        self.exporters: Dict[ExportFormat, BaseExporter] = {
            ExportFormat.STRUCTURED: StructuredExporter(),
            ExportFormat.TABULAR: TabularExporter(),
            ExportFormat.SUMMARY: SummaryExporter(),
        }

    def export_report(self, report: AnalysisReport, format: Union[ExportFormat, str],
                      output_path: Optional[str] = None) -> str:
        """Export a report, optionally writing it to ``output_path``"""
        exporter = self.exporters[to_export_format(format)]
        content = exporter.export_report(report)

        if output_path:
            self._write_to_file(content, output_path)

        return content

    def get_supported_formats(self) -> List[str]:
        return [fmt.value for fmt in self.exporters.keys()]

    def get_file_extension(self, format: Union[ExportFormat, str]) -> str:
        return self.exporters[to_export_format(format)].get_file_extension()

    def _write_to_file(self, content: str, file_path: str):
        dir_path = os.path.dirname(file_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8', newline='') as f:
            f.write(content)


def export_report(report: AnalysisReport, format: Union[ExportFormat, str] = ExportFormat.STRUCTURED) -> str:
    return ExportManager().export_report(report, format)


def load_structured_report(text: str) -> AnalysisReport:
    """Parse the output of the structured exporter back into a report."""
    return AnalysisReport.from_dict(json.loads(text))
