"""Tests for the validate and export command-line scripts."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

from chesshawk import export, validate_puzzles
from chesshawk.config import PROJECT_ROOT, TrainerConfig
from chesshawk.models import DifficultyStats, ThemeStats, UserStatistics
from chesshawk.progress import ProgressTracker
from chesshawk.storage import JsonFileStorage

from conftest import make_puzzle, make_record


def _write_collection(path, records):
    path.write_text(json.dumps({"puzzles": records}), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# validate_puzzles
# ---------------------------------------------------------------------------


class TestValidatePuzzles:

    def test_valid_collection(self, tmp_path, puzzle_records, capsys):
        path = _write_collection(tmp_path / "problems.json", puzzle_records)
        assert validate_puzzles.main([str(path)]) == 0
        out = capsys.readouterr().out
        assert "PASS: problems.json (3/3 puzzles valid)" in out
        assert "All puzzles valid!" in out

    def test_errors_fail(self, tmp_path, capsys):
        path = _write_collection(
            tmp_path / "problems.json",
            [make_record(), make_record(id="bad", solution=["Qh5"])],
        )
        assert validate_puzzles.main([str(path)]) == 1
        out = capsys.readouterr().out
        assert "FAIL" in out
        assert "illegal move 'Qh5'" in out

    def test_no_legality_skips_replay(self, tmp_path):
        path = _write_collection(
            tmp_path / "problems.json", [make_record(solution=["Qh5"])]
        )
        assert validate_puzzles.main([str(path), "--no-legality"]) == 0

    def test_warnings_pass_unless_strict(self, tmp_path, capsys):
        path = _write_collection(
            tmp_path / "problems.json", [make_record(rating=1750)]
        )
        assert validate_puzzles.main([str(path)]) == 0
        assert "1 data-quality warning(s)" in capsys.readouterr().out
        assert validate_puzzles.main([str(path), "--strict"]) == 1

    def test_empty_collection(self, tmp_path):
        path = _write_collection(tmp_path / "problems.json", [])
        assert validate_puzzles.main([str(path)]) == 1

    def test_missing_file(self, tmp_path, capsys):
        assert validate_puzzles.main([str(tmp_path / "nope.json")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_shipped_collection_is_valid(self):
        report = validate_puzzles.validate_file(PROJECT_ROOT / "data" / "problems.json")
        assert report.ok, report.errors
        assert report.warnings == []
        assert report.loaded == report.total > 0


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


class TestExportProgress:

    def test_no_data(self):
        assert "No progress data found" in export.export_progress(None)

    def test_report_sections(self):
        stats = UserStatistics(
            puzzles_solved=4,
            total_attempts=9,
            total_time_spent=125,
            streak_current=2,
            streak_best=3,
            total_score=410,
            last_solved="2026-03-04T10:00:00+00:00",
            theme_stats={
                "fork": ThemeStats(solved=1, attempts=4, average_time=40.0),
                "pin": ThemeStats(solved=3, attempts=3, average_time=20.0),
            },
            difficulty_stats={"beginner": DifficultyStats(4, 7, 57.1)},
        )
        report = export.export_progress(stats, "alice")
        assert report.startswith("# Chess Hawk Progress Report (alice)")
        assert "- Time spent: 2m 5s" in report
        assert "- Last solved: 2026-03-04" in report
        assert "| fork | 1 | 4 | 25% | 40s |" in report
        assert "- beginner: 4/7 (57%)" in report
        assert "- Weakest theme: fork" in report


class TestExportMain:

    def _seed(self, data_dir):
        tracker = ProgressTracker(JsonFileStorage(TrainerConfig(data_dir=data_dir).users_dir))
        tracker.record_outcome("local", make_puzzle(), True, 30, 1, score=80)
        asyncio.run(tracker.flush())

    def test_raw_progress(self, tmp_path, capsys):
        self._seed(tmp_path)
        with patch.dict("os.environ", {"CHESS_HAWK_DATA_DIR": str(tmp_path)}):
            assert export.main(["progress", "--raw"]) == 0
        out = capsys.readouterr().out
        assert "- Puzzles solved: 1" in out
        assert "- Total score: 80" in out

    def test_rendered_progress(self, tmp_path, capsys):
        self._seed(tmp_path)
        with patch.dict("os.environ", {"CHESS_HAWK_DATA_DIR": str(tmp_path)}):
            assert export.main(["progress"]) == 0
        assert "Puzzles solved: 1" in capsys.readouterr().out

    def test_data_export(self, tmp_path, capsys):
        self._seed(tmp_path)
        with patch.dict("os.environ", {"CHESS_HAWK_DATA_DIR": str(tmp_path)}):
            assert export.main(["data"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["progress"]["puzzles_solved"] == 1
        assert data["settings"] is None

    def test_unknown_user(self, tmp_path, capsys):
        with patch.dict("os.environ", {"CHESS_HAWK_DATA_DIR": str(tmp_path)}):
            assert export.main(["progress", "--raw", "--user", "ghost"]) == 0
        assert "No progress data found" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestTrainerConfig:

    def test_defaults(self):
        config = TrainerConfig.from_env({})
        assert config.data_dir == PROJECT_ROOT / "data"
        assert config.puzzles_file == PROJECT_ROOT / "data" / "problems.json"
        assert config.user_id == "local"
        assert config.validate_responses is False
        assert config.log_level == "INFO"

    def test_overrides(self, tmp_path):
        config = TrainerConfig.from_env({
            "CHESS_HAWK_DATA_DIR": str(tmp_path),
            "CHESS_HAWK_USER": "alice",
            "CHESS_HAWK_VALIDATE": "1",
            "CHESS_HAWK_LOG_LEVEL": "debug",
        })
        assert config.puzzles_file == tmp_path / "problems.json"
        assert config.users_dir == tmp_path / "users"
        assert config.session_file == tmp_path / "current_session.json"
        assert config.user_id == "alice"
        assert config.validate_responses is True
        assert config.log_level == "DEBUG"

    def test_puzzles_override(self, tmp_path):
        config = TrainerConfig.from_env({"CHESS_HAWK_PUZZLES": str(tmp_path / "x.json")})
        assert config.puzzles_file == tmp_path / "x.json"
