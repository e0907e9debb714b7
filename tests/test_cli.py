"""Tests for the analytics command line."""

import json
import logging
import sys

import pytest
from click.testing import CliRunner

from todo_analytics.cli import main
from todo_analytics.cli.analytics_commands import analytics_cli, load_records


RECORDS = [
    {"id": 1, "text": "Plan sprint", "completed": True,
     "createTime": "2024-03-12T09:00:00Z", "updateTime": "2024-03-13T10:00:00Z"},
    {"id": 2, "text": "Write docs", "completed": False,
     "createTime": "2024-03-12T09:30:00Z"},
    {"id": 3, "text": "Fix bug", "completed": True,
     "createTime": "2024-03-14T09:00:00Z", "updateTime": "2024-03-14T11:00:00Z"},
]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "todos.json"
    path.write_text(json.dumps(RECORDS), encoding="utf-8")
    return str(path)


class TestLoadRecords:

    def test_plain_list(self, records_file):
        assert len(load_records(records_file)) == 3

    def test_wrapped_in_todos(self, tmp_path):
        path = tmp_path / "export.json"
        path.write_text(json.dumps({"todos": RECORDS}), encoding="utf-8")
        assert load_records(str(path)) == RECORDS


class TestReportCommand:
    """Test suite for the report command"""

    def test_summary(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["report", records_file])
        assert result.exit_code == 0
        assert "== Overview ==" in result.output
        assert "Total tasks: 3" in result.output

    def test_structured(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["report", records_file, "--format", "structured"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["metadata"]["total_todos"] == 3

    def test_tabular_with_count(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["report", records_file, "-f", "tabular",
                                               "--count", "3"])
        assert result.exit_code == 0
        assert result.output.splitlines()[0] == "date,created,completed,completion_rate"
        assert len(result.output.splitlines()) == 4

    def test_disabled_sections(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["report", records_file, "-f", "json",
                                               "--no-insights", "--no-recommendations",
                                               "--periods", "week"])
        data = json.loads(result.output)
        assert data["personalized_insights"] is None
        assert data["recommendations"] is None
        assert list(data["time_period_analysis"]) == ["week"]

    def test_unsupported_period(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["report", records_file, "--periods", "year"])
        assert result.exit_code == 1
        assert "Unsupported period" in result.output

    def test_invalid_records(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"id": 1}]), encoding="utf-8")
        result = runner.invoke(analytics_cli, ["report", str(path)])
        assert result.exit_code == 1
        assert "missing required field" in result.output

    def test_invalid_json(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        result = runner.invoke(analytics_cli, ["report", str(path)])
        assert result.exit_code == 1

    def test_export(self, runner, records_file, tmp_path):
        target = tmp_path / "report.csv"
        result = runner.invoke(analytics_cli, ["report", records_file, "-f", "csv",
                                               "--export", str(target)])
        assert result.exit_code == 0
        assert "Report exported" in result.output
        assert target.read_text(encoding="utf-8").startswith("date,created")

    def test_config_file(self, runner, records_file, tmp_path):
        config = tmp_path / "analytics.yaml"
        config.write_text("default_period_count: 2\n", encoding="utf-8")
        result = runner.invoke(analytics_cli, ["report", records_file, "-f", "tabular",
                                               "--config", str(config)])
        assert result.exit_code == 0
        assert len(result.output.splitlines()) == 3

    def test_verbose(self, runner, records_file, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        result = runner.invoke(analytics_cli, ["--verbose", "report", records_file])
        assert result.exit_code == 0
        assert calls[0]["level"] == logging.DEBUG


class TestPeriodCommand:

    def test_period_table(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["period", records_file,
                                               "--start", "2024-03-11", "--end", "2024-03-17"])
        assert result.exit_code == 0
        assert "Period 2024-03-11 to 2024-03-17 (7 days)" in result.output
        assert "Tuesday" in result.output
        assert "Peak hour: 09:00 (3 tasks)" in result.output
        assert "improving" in result.output

    def test_bad_date(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["period", records_file,
                                               "--start", "March", "--end", "2024-03-17"])
        assert result.exit_code == 2

    def test_end_before_start(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["period", records_file,
                                               "--start", "2024-03-17", "--end", "2024-03-11"])
        assert result.exit_code == 1


class TestRealtimeCommand:

    def test_panels(self, runner, records_file):
        result = runner.invoke(analytics_cli, ["realtime", records_file])
        assert result.exit_code == 0
        assert "Quick insights" in result.output
        assert "Recent activity" in result.output
        assert "All time" in result.output


class TestInitConfig:

    def test_writes_defaults(self, runner, tmp_path):
        path = tmp_path / "analytics.yaml"
        result = runner.invoke(analytics_cli, ["init-config", str(path)])
        assert result.exit_code == 0
        assert "cache_ttl_seconds: 300.0" in path.read_text()

    def test_refuses_to_overwrite(self, runner, tmp_path):
        path = tmp_path / "analytics.yaml"
        path.write_text("trend_days: 5\n")
        result = runner.invoke(analytics_cli, ["init-config", str(path)])
        assert result.exit_code == 1
        assert path.read_text() == "trend_days: 5\n"

        result = runner.invoke(analytics_cli, ["init-config", str(path), "--force"])
        assert result.exit_code == 0
        assert "trend_days: 30" in path.read_text()


class TestEntryPoint:

    def test_main_runs_command_group(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["todo-analytics", "--help"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0
        output = capsys.readouterr().out
        assert "report" in output
        assert "init-config" in output
