"""Progress tracker: per-user statistics, settings and their persistence.

Statistics are partitioned by user id and never merged. Every update is
handed to a write-behind persister as a single blob per user; a failed
write is logged and the in-memory statistics remain authoritative.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from chesshawk.models import (
    DifficultyStats,
    Puzzle,
    ThemeStats,
    UserSettings,
    UserStatistics,
)
from chesshawk.storage import MemoryStorage, Storage, WriteBehindPersister

logger = logging.getLogger(__name__)


def stats_key(user_id: str) -> str:
    return f"chess-hawk-progress-{user_id}"


def settings_key(user_id: str) -> str:
    return f"chess-hawk-settings-{user_id}"


class ProgressTracker:
    """Aggregates puzzle outcomes into ``UserStatistics``."""

    def __init__(
        self,
        storage: Storage | None = None,
        persister: WriteBehindPersister | None = None,
    ) -> None:
        """Create a tracker.

        Args:
            storage: Backend for statistics and settings blobs. Defaults to
                an in-memory store.
            persister: Write-behind queue in front of ``storage``. Built
                from ``storage`` when omitted.
        """
        if persister is None:
            persister = WriteBehindPersister(storage or MemoryStorage())
        self._persister = persister
        self._stats: dict[str, UserStatistics] = {}
        self._settings: dict[str, UserSettings] = {}

    @property
    def persister(self) -> WriteBehindPersister:
        return self._persister

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self, user_id: str) -> UserStatistics | None:
        """Return the user's statistics, or None before their first outcome."""
        return self._stats.get(user_id)

    def record_outcome(
        self,
        user_id: str,
        puzzle: Puzzle,
        success: bool,
        time_spent_seconds: int,
        attempts: int,
        score: int = 0,
    ) -> UserStatistics:
        """Fold one puzzle outcome into the user's statistics.

        Statistics are created on the first outcome. The updated blob is
        queued for persistence before returning.

        Args:
            user_id: Owner of the statistics.
            puzzle: The puzzle that was played.
            success: Whether it was solved.
            time_spent_seconds: Elapsed solving time.
            attempts: Moves submitted during the session.
            score: Score awarded (0 for failures).

        Returns:
            The updated statistics object.
        """
        stats = self._stats.setdefault(user_id, UserStatistics())

        stats.total_attempts += attempts
        stats.total_time_spent += time_spent_seconds
        if success:
            stats.puzzles_solved += 1
            stats.streak_current += 1
            stats.streak_best = max(stats.streak_best, stats.streak_current)
            stats.total_score += score
            stats.last_solved = datetime.now(timezone.utc).isoformat()
            if puzzle.id not in stats.solved_puzzle_ids:
                stats.solved_puzzle_ids.append(puzzle.id)
        else:
            stats.streak_current = 0

        theme = stats.theme_stats.setdefault(puzzle.theme, ThemeStats())
        theme.attempts += 1
        if success:
            theme.solved += 1
        n = theme.attempts
        theme.average_time = (theme.average_time * (n - 1) + time_spent_seconds) / n

        bucket = stats.difficulty_stats.setdefault(puzzle.difficulty, DifficultyStats())
        bucket.attempts += 1
        if success:
            bucket.solved += 1
        bucket.success_rate = bucket.solved / bucket.attempts * 100

        self._persist_statistics(user_id, stats)
        return stats

    def reset_statistics(self, user_id: str) -> None:
        """Forget a user's statistics and persist the empty profile."""
        stats = UserStatistics()
        self._stats[user_id] = stats
        self._persist_statistics(user_id, stats)

    def _persist_statistics(self, user_id: str, stats: UserStatistics) -> None:
        self._persister.submit(stats_key(user_id), stats.to_dict())

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self, user_id: str) -> UserSettings:
        return self._settings.setdefault(user_id, UserSettings())

    def update_settings(self, user_id: str, **changes) -> UserSettings:
        """Apply ``changes`` to the user's settings and persist them.

        Raises:
            ValueError: If a change names an unknown setting or difficulty.
        """
        current = self.get_settings(user_id).to_dict()
        unknown = set(changes) - set(current)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        current.update(changes)
        settings = UserSettings.from_dict(current)
        self._settings[user_id] = settings
        self._persister.submit(settings_key(user_id), settings.to_dict())
        return settings

    # ------------------------------------------------------------------
    # Loading, export and import
    # ------------------------------------------------------------------

    async def load_user(self, user_id: str) -> UserStatistics | None:
        """Pull a user's statistics and settings from storage into memory.

        Corrupt blobs are logged and ignored.

        Returns:
            The loaded statistics, or None if none were stored.
        """
        storage = self._persister.storage

        blob = await storage.get(stats_key(user_id))
        if blob is not None:
            try:
                self._stats[user_id] = UserStatistics.from_dict(blob)
            except ValueError as exc:
                logger.warning("Ignoring stored statistics for %s: %s", user_id, exc)

        blob = await storage.get(settings_key(user_id))
        if blob is not None:
            try:
                self._settings[user_id] = UserSettings.from_dict(blob)
            except (TypeError, ValueError) as exc:
                logger.warning("Ignoring stored settings for %s: %s", user_id, exc)

        return self._stats.get(user_id)

    async def flush(self) -> bool:
        """Wait for all queued writes. Returns False if any write failed."""
        return await self._persister.flush()

    def export_user_data(self, user_id: str) -> dict:
        """Export statistics and settings as one JSON-ready dict."""
        stats = self._stats.get(user_id)
        settings = self._settings.get(user_id)
        return {
            "progress": stats.to_dict() if stats is not None else None,
            "settings": settings.to_dict() if settings is not None else None,
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }

    def import_user_data(self, user_id: str, data: dict) -> UserStatistics | None:
        """Replace a user's statistics and settings with exported data.

        Raises:
            ValueError: If ``data`` or one of its blobs is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Import data must be an object, got {type(data).__name__}")

        stats = settings = None
        if data.get("progress") is not None:
            stats = UserStatistics.from_dict(data["progress"])
        if data.get("settings") is not None:
            try:
                settings = UserSettings.from_dict(data["settings"])
            except TypeError as exc:
                raise ValueError(f"Malformed settings blob: {exc}") from exc

        # Both blobs parse before either replaces the current state
        if stats is not None:
            self._stats[user_id] = stats
            self._persist_statistics(user_id, stats)
        if settings is not None:
            self._settings[user_id] = settings
            self._persister.submit(settings_key(user_id), settings.to_dict())

        return self._stats.get(user_id)
