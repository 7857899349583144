"""Adaptive puzzle selection driven by the player's weakest theme."""

from __future__ import annotations

import logging
import random
from typing import Iterable

from chesshawk.models import Puzzle, PuzzleFilter, UserSettings, UserStatistics
from chesshawk.repository import PuzzleRepository

logger = logging.getLogger(__name__)

# Themes need this many played puzzles before their success rate counts
MIN_THEME_ATTEMPTS = 3


def weakest_theme(statistics: UserStatistics) -> str | None:
    """Return the theme with the lowest success rate, or None.

    Only themes with at least ``MIN_THEME_ATTEMPTS`` played puzzles are
    considered, and a theme solved every time is never weak. Ties go to the
    theme recorded first.
    """
    lowest_rate = 1.0
    weakest: str | None = None
    for theme, bucket in statistics.theme_stats.items():
        if bucket.attempts < MIN_THEME_ATTEMPTS:
            continue
        rate = bucket.solved / bucket.attempts
        if rate < lowest_rate:
            lowest_rate = rate
            weakest = theme
    return weakest


class AdaptiveSelector:
    """Chooses the next puzzle for a user.

    New users get a random puzzle at their chosen difficulty. Users with
    history get an unsolved puzzle from their weakest theme when one is
    available, and a random (preferably unsolved) puzzle otherwise.
    """

    def __init__(
        self, repository: PuzzleRepository, rng: random.Random | None = None
    ) -> None:
        self._repository = repository
        self._rng = rng or random.Random()

    def select_next(
        self,
        user_id: str,
        settings: UserSettings | None = None,
        statistics: UserStatistics | None = None,
        exclude_ids: Iterable[str] = (),
    ) -> Puzzle | None:
        """Pick the next puzzle, or None when the collection is empty.

        Args:
            user_id: User the puzzle is for (used for logging).
            settings: User preferences; defaults apply when None.
            statistics: The user's statistics, None for a new user. Statistics
                with no theme history are treated the same way.
            exclude_ids: Puzzles to avoid (e.g. the one just played) as long
                as other candidates exist.

        Returns:
            The chosen puzzle, or None if nothing is available.
        """
        settings = settings or UserSettings()
        excluded = frozenset(exclude_ids)
        everything = self._repository.list()

        # A reset profile has no history to adapt to
        if statistics is None or not statistics.theme_stats:
            difficulty = None if settings.difficulty == "auto" else settings.difficulty
            pools = [self._repository.list(PuzzleFilter(difficulty=difficulty)), everything]
            pick = self._choose(pools, excluded)
            logger.debug("New user %s: picked %s", user_id, pick and pick.id)
            return pick

        solved = set(statistics.solved_puzzle_ids)
        pools = []
        theme = weakest_theme(statistics)
        if theme is not None:
            pools.append([p for p in everything if p.theme == theme and p.id not in solved])
        preferred = set(settings.preferred_themes)
        if preferred:
            pools.append([p for p in everything if p.theme in preferred and p.id not in solved])
        pools.append([p for p in everything if p.id not in solved])
        pools.append(everything)

        pick = self._choose(pools, excluded)
        logger.debug(
            "User %s: weakest theme %s, picked %s", user_id, theme, pick and pick.id
        )
        return pick

    def _choose(
        self, pools: list[list[Puzzle]], excluded: frozenset[str]
    ) -> Puzzle | None:
        """Random pick from the first pool with a non-excluded puzzle.

        Exclusion is dropped only when every pool holds nothing else.
        """
        for pool in pools:
            fresh = [p for p in pool if p.id not in excluded]
            if fresh:
                return self._rng.choice(fresh)
        for pool in pools:
            if pool:
                return self._rng.choice(pool)
        return None
