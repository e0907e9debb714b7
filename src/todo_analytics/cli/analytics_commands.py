"""CLI Analytics Commands for Todo Analytics.

This module provides command-line access to the analytics engine over a JSON
export of task records.

Features:
- Full analysis reports as a summary, structured JSON or per-day CSV
- Ad hoc period analysis with daily breakdown and work patterns
- Real-time snapshot of today's progress and recent activity
"""

import click
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Any, Optional

import tabulate
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import AnalyticsConfig, load_config, save_config
from ..services.analytics import AnalyticsEngine, ReportOptions
from ..services.export import ExportManager
from ..utils.time_buckets import start_of_day, end_of_day
from ..utils.datetime import ensure_aware


def load_records(path: str) -> List[Dict[str, Any]]:
    """Read task records from a JSON file (a list, or an object with "todos")."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict) and "todos" in data:
        data = data["todos"]
    return data


def format_table(data: List[Dict], headers: Optional[List[str]] = None,
                 tablefmt: str = "grid") -> str:
    """Format data as a table"""
    if not data:
        return "No data available"

    if headers is None:
        headers = "keys"

    return tabulate.tabulate(data, headers=headers, tablefmt=tablefmt)


def print_section(title: str, content: str = ""):
    """Print a formatted section"""
    click.echo(f"\n{'=' * 60}")
    click.echo(f"{title:^60}")
    click.echo(f"{'=' * 60}")
    if content:
        click.echo(content)
    click.echo()


def _make_engine(config_path: Optional[str]) -> AnalyticsEngine:
    return AnalyticsEngine(config=load_config(config_path))


# Main analytics command group
@click.group(name='analytics')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def analytics_cli(verbose: bool):
    """Behavioral analytics over exported task records"""
    if verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(asctime)s %(name)s %(levelname)s %(message)s")


@analytics_cli.command(name='report')
@click.argument('input_file', metavar='INPUT', type=click.Path(exists=True, dir_okay=False))
@click.option('--periods', '-p', default='day,week,month',
              help='Comma-separated periods to break down (day, week, month)')
@click.option('--count', '-n', type=int, default=None,
              help='Number of buckets per period')
@click.option('--no-insights', is_flag=True, help='Skip personalized insights')
@click.option('--no-recommendations', is_flag=True, help='Skip recommendations')
@click.option('--format', '-f', 'output_format',
              type=click.Choice(['summary', 'structured', 'tabular', 'json', 'csv']),
              default='summary', help='Output format')
@click.option('--config', '-c', 'config_path', type=click.Path(dir_okay=False),
              help='YAML analytics configuration')
@click.option('--export', '-e', type=click.Path(), help='Export to file')
def analytics_report(input_file: str, periods: str, count: Optional[int], no_insights: bool,
                     no_recommendations: bool, output_format: str,
                     config_path: Optional[str], export: Optional[str]):
    """Generate the full analysis report"""

    try:
        records = load_records(input_file)
        engine = _make_engine(config_path)

        options = ReportOptions(
            include_periods=tuple(p.strip() for p in periods.split(',') if p.strip()),
            period_count=count if count is not None else engine.config.default_period_count,
            include_insights=not no_insights,
            include_recommendations=not no_recommendations,
        )
        report = engine.generate_report(records, options)

        if export:
            ExportManager().export_report(report, output_format, output_path=export)
            click.echo(f"Report exported to {export}")
        else:
            click.echo(engine.export_analysis_data(report, output_format), nl=False)

    except (ValueError, OSError) as e:
        click.echo(f"Error generating analytics: {e}", err=True)
        sys.exit(1)


@analytics_cli.command(name='period')
@click.argument('input_file', metavar='INPUT', type=click.Path(exists=True, dir_okay=False))
@click.option('--start', '-s', required=True, type=click.DateTime(formats=['%Y-%m-%d']),
              help='First day of the period (YYYY-MM-DD)')
@click.option('--end', '-e', required=True, type=click.DateTime(formats=['%Y-%m-%d']),
              help='Last day of the period (YYYY-MM-DD)')
@click.option('--config', '-c', 'config_path', type=click.Path(dir_okay=False),
              help='YAML analytics configuration')
def period_analysis(input_file: str, start: datetime, end: datetime, config_path: Optional[str]):
    """Analyze the tasks created between two dates"""

    try:
        records = load_records(input_file)
        engine = _make_engine(config_path)
        analysis = engine.get_period_analysis(
            records, start_of_day(ensure_aware(start)), end_of_day(ensure_aware(end)))

        overview = analysis.overview
        print_section(
            f"Period {analysis.period.start} to {analysis.period.end} "
            f"({analysis.period.duration} days)",
            f"Tasks: {overview.total}  Completed: {overview.completed}  "
            f"Completion rate: {overview.completion_rate}%"
        )

        click.echo(format_table([
            {
                'Date': day.date,
                'Day': day.day_of_week,
                'Created': day.created,
                'Completed': day.completed,
            }
            for day in analysis.daily_breakdown
        ]))

        patterns = analysis.work_patterns
        click.echo(f"\nPeak hour: {patterns.peak_hour['hour']:02d}:00 "
                   f"({patterns.peak_hour['count']} tasks)")
        click.echo(f"Peak day: {patterns.peak_day['name']} ({patterns.peak_day['count']} tasks)")

        comparison = analysis.comparisons
        click.echo(f"Compared with {comparison.previous_period['start']} to "
                   f"{comparison.previous_period['end']}: {comparison.trend.value} "
                   f"({comparison.total_tasks:+d} tasks, "
                   f"{comparison.completion_rate:+d} completion rate points)")

    except (ValueError, OSError) as e:
        click.echo(f"Error generating period analysis: {e}", err=True)
        sys.exit(1)


@analytics_cli.command(name='realtime')
@click.argument('input_file', metavar='INPUT', type=click.Path(exists=True, dir_okay=False))
def realtime_stats(input_file: str):
    """Show a live snapshot of today's progress"""

    try:
        records = load_records(input_file)
        stats = AnalyticsEngine().get_real_time_stats(records)
    except (ValueError, OSError) as e:
        click.echo(f"Error generating real-time stats: {e}", err=True)
        sys.exit(1)

    console = Console()

    table = Table(title="📊 Progress", show_header=True, header_style="bold blue")
    table.add_column("Scope", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Rate", justify="right")
    for scope, snapshot in (("Today", stats.today), ("This week", stats.this_week),
                            ("All time", stats.overview)):
        table.add_row(scope, str(snapshot.total), str(snapshot.completed),
                      f"{snapshot.completion_rate}%")
    console.print(table)

    if stats.quick_insights:
        insights = "\n".join(f"{i.icon} {i.message}" for i in stats.quick_insights)
    else:
        insights = "Nothing to report yet"
    console.print(Panel(insights, title="Quick insights", border_style="green"))

    if stats.recent_activity:
        activity = "\n".join(f"[dim]{event.relative_time:>16}[/dim]  {event.description}"
                             for event in stats.recent_activity)
    else:
        activity = "No activity in the last 24 hours"
    console.print(Panel(activity, title="Recent activity", border_style="blue"))


@analytics_cli.command(name='init-config')
@click.argument('path', type=click.Path(dir_okay=False))
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def init_config(path: str, force: bool):
    """Write the default analytics configuration as YAML"""
    if Path(path).exists() and not force:
        click.echo(f"Configuration already exists at {path} (use --force to overwrite)", err=True)
        sys.exit(1)

    try:
        save_config(AnalyticsConfig(), path)
    except OSError as e:
        click.echo(f"Error writing configuration: {e}", err=True)
        sys.exit(1)

    click.echo(f"Default configuration written to {path}")
