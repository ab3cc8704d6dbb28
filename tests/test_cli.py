import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from crash_watch import cli
from crash_watch.models import AggregateCounters, SummaryState
from crash_watch.runner import RunReport
from crash_watch.summary import save_summary

runner = CliRunner()

LOCATIONS_YAML = """
locations:
  richmond:
    display_name: RVA
    time_zone: America/New_York
    bbox:
      lower_latitude: 37.4
      lower_longitude: -77.7
      upper_latitude: 37.7
      upper_longitude: -77.3
"""


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **kw: None)


@pytest.fixture
def locations_file(tmp_path) -> Path:
    path = tmp_path / "locations.yaml"
    path.write_text(LOCATIONS_YAML, encoding="utf-8")
    return path


def test_run_requires_location(locations_file):
    result = runner.invoke(cli.app, ["run", "--config", str(locations_file), "--dry-run"])
    assert result.exit_code == 1
    assert "location must be passed in" in result.output


def test_run_rejects_reps_without_config(locations_file):
    result = runner.invoke(cli.app, ["run", "--location", "richmond", "--tweet-reps", "--dry-run", "--config", str(locations_file)])
    assert result.exit_code == 1
    assert "representative info" in result.output


def test_run_dry_run(locations_file, tmp_path, monkeypatch):
    seen = {}

    def fake_run(config, *, poster):
        seen["config"] = config
        seen["poster"] = poster
        return RunReport(fetched=5, recent=3, pedestrian_or_cyclist=1, vehicle_only=1, new=2, posted=2)

    monkeypatch.setattr(cli, "run_once", fake_run)
    result = runner.invoke(cli.app, [
        "run", "--location", "richmond", "--dry-run", "--days", "2", "--summary", "on",
        "--config", str(locations_file), "--archive-dir", str(tmp_path / "archive"),
    ])

    assert result.exit_code == 0, result.output
    assert "Posted: 2" in result.output
    config = seen["config"]
    assert config.dry_run and config.days == 2 and config.summary_mode == "on"
    assert config.feed_limit == 400


def test_classify_command(tmp_path):
    feed = tmp_path / "feed.json"
    feed.write_text(json.dumps({"results": [
        {"key": "k1", "ts": 1, "raw": "Pedestrian struck", "title": "Pedestrian struck"},
        {"key": "k2", "ts": 1, "raw": "A dog was spotted eating a burger", "title": "Dog eating"},
    ]}), encoding="utf-8")
    result = runner.invoke(cli.app, ["classify", str(feed)])
    assert result.exit_code == 0, result.output
    assert "pedestrian_or_cyclist" in result.output
    assert "irrelevant" in result.output


def test_summary_command(tmp_path):
    save_summary(tmp_path / "summary-richmond.json", SummaryState(week=AggregateCounters(total=3), month=AggregateCounters(total=9)))
    result = runner.invoke(cli.app, ["summary", "--location", "richmond", "--archive-dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Week: 3" in result.output
    assert "Month: 9" in result.output
