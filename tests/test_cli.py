"""Tests for the apitrail command line interface."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest
from click.testing import CliRunner

from apitrail.cli import cli
from apitrail.cli.commands import _comparator
from apitrail.comparison import ComparisonStrategy
from apitrail.config import TrailConfig
from apitrail.errors import ValidationError
from apitrail.storage import InMemorySessionStore, SessionRepository

from .conftest import BASE_TIME, SCENARIO_CURRENT, SCENARIO_PREVIOUS, add_session, make_session


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> CliRunner:
    for name in ("PROJECT_NAME", "SUBPROJECT_NAME", "OPENROUTER_API_KEY", "APITRAIL_STRATEGY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return CliRunner()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    url = f"sqlite:///{tmp_path}/history.db"
    with SessionRepository(url) as repo:
        add_session(repo, "shop", "api", make_session("prev", BASE_TIME, SCENARIO_PREVIOUS))
        add_session(
            repo, "shop", "api", make_session("curr", BASE_TIME + timedelta(hours=1), SCENARIO_CURRENT)
        )
        add_session(repo, "shop", "ui", make_session("ui-1", BASE_TIME, {"GET /x": 200}))
    return url


class TestCompareCommand:
    """Tests for 'apitrail compare'."""

    def test_compare_json(self, runner: CliRunner, database_url: str) -> None:
        """Test JSON output of a two-session comparison."""
        result = runner.invoke(
            cli,
            ["--database-url", database_url, "compare", "-p", "shop", "-s", "api", "-f", "json"],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["available"] is True
        assert data["previous"]["rate"] == 50.0
        assert data["current"]["rate"] == 66.67
        assert data["added"] == ["GET /c"]
        assert data["fixed"] == ["POST /b"]
        assert data["new_failures"] == ["GET /c"]
        assert data["trend"] == "improvement"

    def test_compare_text(self, runner: CliRunner, database_url: str) -> None:
        """Test the table output names the trend and fixed endpoints."""
        result = runner.invoke(
            cli, ["--database-url", database_url, "compare", "-p", "shop", "-s", "api"]
        )

        assert result.exit_code == 0, result.output
        assert "improvement" in result.output
        assert "POST /b" in result.output

    def test_single_session_reports_insufficient_data(
        self, runner: CliRunner, database_url: str
    ) -> None:
        """Test one session is reported rather than failing."""
        result = runner.invoke(
            cli, ["--database-url", database_url, "compare", "-p", "shop", "-s", "ui"]
        )

        assert result.exit_code == 0, result.output
        assert "insufficient data" in result.output

    def test_project_falls_back_to_latest(self, runner: CliRunner, database_url: str) -> None:
        """Test an unknown working-directory project resolves to the latest stored one."""
        result = runner.invoke(
            cli, ["--database-url", database_url, "compare", "-s", "api", "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["project"] == "shop"

    def test_time_window_strategy(self, runner: CliRunner, database_url: str) -> None:
        """Test the strategy option switches to time-window grouping."""
        result = runner.invoke(
            cli,
            [
                "--database-url",
                database_url,
                "compare",
                "-p",
                "shop",
                "-s",
                "api",
                "--strategy",
                "time_window",
                "--window-ms",
                "60000",
                "-f",
                "json",
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["fixed"] == ["POST /b"]
        assert data["current"]["total"] == 3


class TestCompareAllCommand:
    """Tests for 'apitrail compare-all'."""

    def test_compare_all_json(self, runner: CliRunner, database_url: str) -> None:
        """Test the weighted average skips subprojects without two runs."""
        result = runner.invoke(
            cli, ["--database-url", database_url, "compare-all", "-p", "shop", "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["weighted_average"] == 66.67
        assert data["per_subproject"]["api"]["available"] is True
        assert data["per_subproject"]["ui"]["available"] is False

    def test_compare_all_empty_project(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test an empty store reports no history."""
        result = runner.invoke(
            cli,
            ["--database-url", f"sqlite:///{tmp_path}/empty.db", "compare-all", "-p", "nothing"],
        )

        assert result.exit_code == 0, result.output
        assert "No history found" in result.output


class TestHistoryCommand:
    """Tests for 'apitrail history'."""

    def test_history_json(self, runner: CliRunner, database_url: str) -> None:
        """Test sessions are listed newest first."""
        result = runner.invoke(
            cli,
            ["--database-url", database_url, "history", "-p", "shop", "-s", "api", "-f", "json"],
        )

        assert result.exit_code == 0, result.output
        sessions = json.loads(result.stdout)
        assert [s["sessionId"] for s in sessions] == ["curr", "prev"]
        assert len(sessions[0]["endpoints"]) == 3

    def test_history_limit(self, runner: CliRunner, database_url: str) -> None:
        """Test the limit option."""
        result = runner.invoke(
            cli,
            ["--database-url", database_url, "history", "-p", "shop", "-s", "api", "-n", "1", "-f", "json"],
        )

        assert [s["sessionId"] for s in json.loads(result.stdout)] == ["curr"]


class TestSummaryCommand:
    """Tests for 'apitrail summary'."""

    def test_summary_without_ai(
        self, runner: CliRunner, database_url: str, tmp_path: Path
    ) -> None:
        """Test reports are written with the narrative placeholder."""
        out = tmp_path / "out"
        result = runner.invoke(
            cli,
            [
                "--database-url",
                database_url,
                "summary",
                "-p",
                "shop",
                "-o",
                str(out),
                "-f",
                "markdown",
                "-f",
                "json",
                "--no-ai",
            ],
        )

        assert result.exit_code == 0, result.output
        markdown = (out / "shop_summary.md").read_text(encoding="utf-8")
        assert "AI summary unavailable" in markdown
        assert "# API Run Summary: shop" in markdown
        data = json.loads((out / "shop_summary.json").read_text(encoding="utf-8"))
        assert data["comparison"]["weighted_average"] == 66.67
        assert data["run_log"]["endpoint_status"]["GET /c"] == 404

    def test_summary_without_key_uses_placeholder(
        self, runner: CliRunner, database_url: str, tmp_path: Path
    ) -> None:
        """Test a missing API key degrades to the placeholder."""
        out = tmp_path / "out"
        result = runner.invoke(
            cli, ["--database-url", database_url, "summary", "-p", "shop", "-o", str(out)]
        )

        assert result.exit_code == 0, result.output
        assert "AI summary unavailable" in (out / "shop_summary.md").read_text(encoding="utf-8")


class TestReportsCommand:
    """Tests for 'apitrail reports'."""

    def test_reports_json(self, runner: CliRunner, database_url: str) -> None:
        """Test saved narratives are listed newest first."""
        with SessionRepository(database_url) as repo:
            repo.save_report("shop", None, "Overall Summary:\nFirst run.")
            repo.save_report("shop", "api", "Overall Summary:\nSecond run.")

        result = runner.invoke(
            cli, ["--database-url", database_url, "reports", "-p", "shop", "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [r["aiSummary"] for r in data] == [
            "Overall Summary:\nSecond run.",
            "Overall Summary:\nFirst run.",
        ]
        assert data[0]["projectName"] == "shop"
        assert data[0]["subproject"] == "api"

    def test_no_reports(self, runner: CliRunner, database_url: str) -> None:
        """Test a project without saved narratives says so."""
        result = runner.invoke(cli, ["--database-url", database_url, "reports", "-p", "shop"])

        assert result.exit_code == 0, result.output
        assert "No saved reports for project shop." in result.output


class TestComparatorOptions:
    """Tests for strategy and window overrides."""

    def test_overrides_applied(self) -> None:
        """Test command line values replace the configured ones."""
        comparator = _comparator(InMemorySessionStore(), TrailConfig(), "time_window", 5000)

        assert comparator.config.strategy is ComparisonStrategy.TIME_WINDOW
        assert comparator.config.time_window_ms == 5000

    def test_zero_window_rejected(self) -> None:
        """Test an overridden window is validated like a configured one."""
        with pytest.raises(ValidationError):
            _comparator(InMemorySessionStore(), TrailConfig(), None, 0)

    def test_zero_window_option_is_usage_error(self, runner: CliRunner, database_url: str) -> None:
        """Test --window-ms 0 is refused before any comparison runs."""
        result = runner.invoke(
            cli,
            ["--database-url", database_url, "compare", "-p", "shop", "-s", "api", "--window-ms", "0"],
        )

        assert result.exit_code == 2


class TestCliErrors:
    """Tests for CLI error handling."""

    def test_invalid_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test an invalid config file exits with status 1."""
        path = tmp_path / "apitrail.yaml"
        path.write_text("strategy: sideways\n")

        result = runner.invoke(cli, ["--config", str(path), "history"])

        assert result.exit_code == 1

    def test_unopenable_store(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test an unusable database exits with status 1."""
        result = runner.invoke(
            cli, ["--database-url", f"sqlite:///{tmp_path}", "history", "-p", "shop"]
        )

        assert result.exit_code == 1
