"""Score calculation for finished puzzle sessions."""

from __future__ import annotations

from chesshawk.models import Puzzle

DIFFICULTY_BONUS = {
    "beginner": 0,
    "intermediate": 50,
    "advanced": 100,
}

# Seconds under which a solve earns a time bonus (one point per second saved)
_TIME_BONUS_WINDOW = 100

_ATTEMPT_PENALTY = 10


def score(puzzle: Puzzle, time_spent_seconds: float, attempts: int, success: bool) -> int:
    """Compute the reward for one puzzle outcome.

    Faster solves and fewer wrong attempts score higher; any genuine solve
    scores at least 1. Hints are not penalized.

    Args:
        puzzle: The puzzle that was played.
        time_spent_seconds: Elapsed solving time (floored to whole seconds).
        attempts: Number of moves submitted, correct ones included.
        success: Whether the puzzle was solved.

    Returns:
        Integer score, 0 for a failure.

    Raises:
        ValueError: If time or attempts is negative.
    """
    if time_spent_seconds < 0:
        raise ValueError(f"time_spent_seconds must be >= 0, got {time_spent_seconds}")
    if attempts < 0:
        raise ValueError(f"attempts must be >= 0, got {attempts}")

    if not success:
        return 0

    time_bonus = max(0, _TIME_BONUS_WINDOW - int(time_spent_seconds))
    attempt_penalty = max(0, (attempts - 1) * _ATTEMPT_PENALTY)
    difficulty_bonus = DIFFICULTY_BONUS.get(puzzle.difficulty, 0)
    return max(1, puzzle.points + time_bonus + difficulty_bonus - attempt_penalty)
