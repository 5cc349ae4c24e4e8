"""Tests for the sleepstage command line."""

from datetime import datetime

import pytest
from click.testing import CliRunner

from sleepstage import cli
from sleepstage.cli import main
from sleepstage.config import HOME_ENV, AlarmPreferences, load_preferences, save_preferences
from sleepstage.results import CSV_HEADER
from sleepstage.samples import SAMPLE_CSV_HEADER

from tests.conftest import make_samples, wire_batch, write_jsonl
from tests.test_records import EXPORT_XML


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv(HOME_ENV, str(tmp_path / "home"))
    return CliRunner()


@pytest.fixture
def capture(tmp_path):
    """Ten minutes of one-per-second samples from 05:00, in batches of 30."""
    samples = make_samples(600)
    batches = [wire_batch(samples[i:i + 30]) for i in range(0, 600, 30)]
    return write_jsonl(tmp_path / "capture.jsonl", batches)


class TestPrefs:
    def test_set_then_show(self, runner, tmp_path):
        path = tmp_path / "prefs.json"
        result = runner.invoke(main, [
            "prefs", "set", "--file", str(path),
            "--alarm", "06:15", "--buffer", "45", "--realarm", "10", "--no-smart",
        ])
        assert result.exit_code == 0, result.output
        saved = load_preferences(path)
        assert saved.alarm_time == "06:15"
        assert saved.wake_up_buffer_min == 45
        assert saved.realarm_min == 10
        assert saved.smart_alarm is False

        result = runner.invoke(main, ["prefs", "show", "--file", str(path)])
        assert result.exit_code == 0
        assert "06:15" in result.output
        assert "45 min" in result.output
        assert "Smart alarm:   off" in result.output

    def test_show_defaults(self, runner):
        result = runner.invoke(main, ["prefs", "show"])
        assert result.exit_code == 0
        assert "07:00" in result.output
        assert "Re-alarm:      off" in result.output

    def test_invalid_alarm(self, runner, tmp_path):
        path = tmp_path / "prefs.json"
        result = runner.invoke(main, ["prefs", "set", "--file", str(path), "--alarm", "noon"])
        assert result.exit_code != 0
        assert not path.exists()

    def test_buffer_choice_enforced(self, runner, tmp_path):
        result = runner.invoke(main, ["prefs", "set", "--file", str(tmp_path / "p.json"),
                                      "--buffer", "20"])
        assert result.exit_code == 2


class TestPredict:
    def test_writes_predictions(self, runner, capture, tmp_path):
        out = tmp_path / "out.csv"
        result = runner.invoke(main, ["predict", str(capture), "--alarm", "05:30",
                                      "--buffer", "30", "-o", str(out)])
        assert result.exit_code == 0, result.output
        lines = out.read_text().splitlines()
        assert lines[0] == CSV_HEADER
        assert len(lines) == 1 + 600 // 90
        assert "6 prediction(s)" in result.output

    def test_reports_realarm_time(self, runner, capture, tmp_path):
        save_preferences(AlarmPreferences(realarm_min=10))
        result = runner.invoke(main, ["predict", str(capture), "--alarm", "05:30",
                                      "-o", str(tmp_path / "out.csv")])
        assert result.exit_code == 0, result.output
        assert "Re-alarm at 05:40" in result.output

    def test_no_realarm_line_when_off(self, runner, capture, tmp_path):
        result = runner.invoke(main, ["predict", str(capture), "--alarm", "05:30",
                                      "-o", str(tmp_path / "out.csv")])
        assert "Re-alarm" not in result.output

    def test_window_not_reached(self, runner, capture, tmp_path):
        out = tmp_path / "out.csv"
        result = runner.invoke(main, ["predict", str(capture), "--alarm", "09:00",
                                      "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "No predictions were made." in result.output
        assert out.read_text().splitlines() == [CSV_HEADER]

    def test_empty_capture(self, runner, tmp_path):
        path = tmp_path / "empty.jsonl"
        path.write_text("garbage\n")
        result = runner.invoke(main, ["predict", str(path)])
        assert result.exit_code != 0
        assert "No sample batches" in result.output


class TestSamples:
    def test_export(self, runner, capture, tmp_path):
        out = tmp_path / "samples.csv"
        result = runner.invoke(main, ["samples", str(capture), "-o", str(out)])
        assert result.exit_code == 0, result.output
        lines = out.read_text().splitlines()
        assert lines[0] == SAMPLE_CSV_HEADER
        assert len(lines) == 601
        assert lines[1].startswith("2024-02-13 05:00:00,58.0,30.0")


class TestHealthExport:
    @pytest.fixture
    def export(self, tmp_path):
        path = tmp_path / "export.xml"
        path.write_text(EXPORT_XML)
        return path

    def test_report_level_mode(self, runner, export):
        result = runner.invoke(main, ["report", str(export), "--mode", "level"])
        assert result.exit_code == 0, result.output
        assert "Core,2,01:30:00" in result.output

    def test_report_to_file(self, runner, export, tmp_path):
        out = tmp_path / "report.csv"
        result = runner.invoke(main, ["report", str(export), "--start", "2024-02-14",
                                      "-o", str(out)])
        assert result.exit_code == 0, result.output
        lines = out.read_text().splitlines()
        assert lines[0] == "start,end,level,level(Int)"
        assert len(lines) == 1 + 4

    def test_report_recent(self, runner, export, monkeypatch):
        class FixedDateTime(datetime):
            @classmethod
            def now(cls, tz=None):
                return datetime(2024, 2, 14, 9, 0)

        monkeypatch.setattr(cli, "datetime", FixedDateTime)
        result = runner.invoke(main, ["report", str(export), "--recent"])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "start,end,level,level(Int)"
        assert len(lines) == 1 + 5
        assert all(",In Bed," not in line for line in lines)

    def test_report_recent_excludes_old_nights(self, runner, export, monkeypatch):
        class FixedDateTime(datetime):
            @classmethod
            def now(cls, tz=None):
                return datetime(2024, 3, 1, 9, 0)

        monkeypatch.setattr(cli, "datetime", FixedDateTime)
        result = runner.invoke(main, ["report", str(export), "--recent"])
        assert result.output.splitlines() == ["start,end,level,level(Int)"]

    def test_heart_rate(self, runner, export):
        result = runner.invoke(main, ["heart-rate", str(export)])
        assert result.exit_code == 0
        assert "Heart Rate: 64 bpm" in result.output
