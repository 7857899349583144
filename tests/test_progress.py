"""Tests for progress tracking, settings and user data export/import."""

from __future__ import annotations

import asyncio

import pytest

from chesshawk.models import UserStatistics
from chesshawk.progress import ProgressTracker, settings_key, stats_key
from chesshawk.storage import MemoryStorage

from conftest import make_puzzle


class FailingStorage(MemoryStorage):
    """Storage whose writes always fail."""

    async def set(self, key, value):
        raise OSError("disk full")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def tracker(storage):
    return ProgressTracker(storage)


class TestRecordOutcome:

    def test_first_solve(self, tracker):
        assert tracker.get_statistics("u") is None
        stats = tracker.record_outcome("u", make_puzzle(), True, 30, 2, score=120)
        assert stats.puzzles_solved == 1
        assert stats.total_attempts == 2
        assert stats.total_time_spent == 30
        assert stats.streak_current == 1
        assert stats.streak_best == 1
        assert stats.total_score == 120
        assert stats.solved_puzzle_ids == ["p1"]
        assert stats.last_solved is not None
        assert tracker.get_statistics("u") is stats

    def test_theme_bucket_running_average(self, tracker):
        tracker.record_outcome("u", make_puzzle(), True, 10, 1)
        tracker.record_outcome("u", make_puzzle(id="p2"), False, 40, 3)
        bucket = tracker.get_statistics("u").theme_stats["fork"]
        assert bucket.attempts == 2
        assert bucket.solved == 1
        assert bucket.average_time == pytest.approx(25.0)

    def test_difficulty_bucket_success_rate(self, tracker):
        for success in (True, True, False, True):
            tracker.record_outcome("u", make_puzzle(), success, 10, 1)
        bucket = tracker.get_statistics("u").difficulty_stats["beginner"]
        assert bucket.attempts == 4
        assert bucket.solved == 3
        assert bucket.success_rate == pytest.approx(75.0)

    def test_streak_resets_on_failure(self, tracker):
        # S, S, S, F, S
        for success in (True, True, True, False, True):
            tracker.record_outcome("u", make_puzzle(), success, 5, 1)
        stats = tracker.get_statistics("u")
        assert stats.streak_current == 1
        assert stats.streak_best == 3

    def test_resolving_does_not_duplicate_id(self, tracker):
        tracker.record_outcome("u", make_puzzle(), True, 5, 1)
        tracker.record_outcome("u", make_puzzle(), True, 5, 1)
        stats = tracker.get_statistics("u")
        assert stats.solved_puzzle_ids == ["p1"]
        assert stats.puzzles_solved == 2

    def test_failure_adds_no_score(self, tracker):
        stats = tracker.record_outcome("u", make_puzzle(), False, 5, 4, score=0)
        assert stats.total_score == 0
        assert stats.solved_puzzle_ids == []
        assert stats.last_solved is None

    def test_users_are_partitioned(self, tracker):
        tracker.record_outcome("alice", make_puzzle(), True, 5, 1)
        assert tracker.get_statistics("bob") is None

    def test_reset_statistics(self, tracker):
        tracker.record_outcome("u", make_puzzle(), True, 5, 1)
        tracker.reset_statistics("u")
        assert tracker.get_statistics("u") == UserStatistics()


class TestPersistence:

    def test_outcome_is_persisted(self, tracker, storage):
        tracker.record_outcome("u", make_puzzle(), True, 5, 1)
        assert asyncio.run(tracker.flush())
        blob = asyncio.run(storage.get(stats_key("u")))
        assert blob["puzzles_solved"] == 1

    def test_keys(self):
        assert stats_key("u") == "chess-hawk-progress-u"
        assert settings_key("u") == "chess-hawk-settings-u"

    def test_write_failure_keeps_memory_state(self):
        tracker = ProgressTracker(FailingStorage())
        tracker.record_outcome("u", make_puzzle(), True, 5, 1)
        assert asyncio.run(tracker.flush()) is False
        assert isinstance(tracker.persister.last_error, OSError)
        assert tracker.get_statistics("u").puzzles_solved == 1

    def test_load_user(self, tracker, storage):
        tracker.record_outcome("u", make_puzzle(), True, 5, 1)
        tracker.update_settings("u", difficulty="advanced")
        asyncio.run(tracker.flush())

        fresh = ProgressTracker(storage)
        stats = asyncio.run(fresh.load_user("u"))
        assert stats == tracker.get_statistics("u")
        assert fresh.get_settings("u").difficulty == "advanced"

    def test_load_user_ignores_corrupt_blob(self, storage):
        asyncio.run(storage.set(stats_key("u"), ["not", "stats"]))
        tracker = ProgressTracker(storage)
        assert asyncio.run(tracker.load_user("u")) is None


class TestSettings:

    def test_defaults(self, tracker):
        assert tracker.get_settings("u").difficulty == "auto"

    def test_update(self, tracker):
        settings = tracker.update_settings("u", difficulty="beginner", preferred_themes=["fork"])
        assert settings.difficulty == "beginner"
        assert tracker.get_settings("u").preferred_themes == ["fork"]

    def test_unknown_setting(self, tracker):
        with pytest.raises(ValueError, match="Unknown settings: volume"):
            tracker.update_settings("u", volume=11)

    def test_bad_difficulty_leaves_settings(self, tracker):
        with pytest.raises(ValueError):
            tracker.update_settings("u", difficulty="expert")
        assert tracker.get_settings("u").difficulty == "auto"


class TestExportImport:

    def test_round_trip(self, tracker):
        for success in (True, False, True):
            tracker.record_outcome("u", make_puzzle(), success, 12, 2, score=50)
        tracker.update_settings("u", board_orientation="black")
        exported = tracker.export_user_data("u")
        assert set(exported) == {"progress", "settings", "exported_at"}

        fresh = ProgressTracker()
        fresh.import_user_data("u", exported)
        assert fresh.get_statistics("u") == tracker.get_statistics("u")
        assert fresh.get_settings("u") == tracker.get_settings("u")

    def test_export_empty_user(self, tracker):
        exported = tracker.export_user_data("nobody")
        assert exported["progress"] is None
        assert exported["settings"] is None

    @pytest.mark.parametrize(
        "data",
        [
            "not a dict",
            {"progress": [1, 2]},
            {"settings": {"difficulty": "expert"}},
        ],
    )
    def test_malformed_import(self, tracker, data):
        with pytest.raises(ValueError):
            tracker.import_user_data("u", data)

    def test_import_persists(self, tracker, storage):
        tracker.import_user_data("u", {"progress": {"puzzles_solved": 4}})
        asyncio.run(tracker.flush())
        assert asyncio.run(storage.get(stats_key("u")))["puzzles_solved"] == 4

    def test_rejected_import_keeps_current_state(self, tracker, storage):
        tracker.record_outcome("u", make_puzzle(), True, 20, 1, score=70)
        before = tracker.get_statistics("u").to_dict()
        with pytest.raises(ValueError):
            tracker.import_user_data(
                "u",
                {"progress": {"puzzles_solved": 99}, "settings": {"difficulty": "godlike"}},
            )
        assert tracker.get_statistics("u").to_dict() == before
        asyncio.run(tracker.flush())
        assert asyncio.run(storage.get(stats_key("u")))["puzzles_solved"] == 1
        assert asyncio.run(storage.get(settings_key("u"))) is None

    @pytest.mark.parametrize("themes", ["fork", ["fork", 3], {"fork": 1}])
    def test_preferred_themes_must_be_string_list(self, tracker, themes):
        with pytest.raises(ValueError):
            tracker.import_user_data("u", {"settings": {"preferred_themes": themes}})
        assert tracker.get_settings("u").preferred_themes == []
