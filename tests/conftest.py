"""Shared test fixtures.

Usage:
    pytest tests/

Fixtures:
    puzzle_records     - Raw collection records covering single-move,
                         forced-reply and promotion puzzles.
    repository         - PuzzleRepository built from puzzle_records.
    clock              - Controllable monotonic clock for session timing.
    enable_validation  - Sets CHESS_HAWK_VALIDATE=1 for schema validation.
"""

from __future__ import annotations

import random

import pytest

from chesshawk.models import Puzzle
from chesshawk.repository import PuzzleRepository
from chesshawk.rules import PythonChessRules

# Petrov after 2...Nf6: e5 is undefended
PETROV_FEN = "rnbqkb1r/pppp1ppp/5n2/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R w KQkq - 2 3"
# White mates with Re8+ Rxe8 Rxe8#
BACK_RANK_FEN = "3r2k1/5ppp/8/8/8/8/4RPPP/4R1K1 w - - 0 1"
# Lone pawn one step from promotion
PROMOTION_FEN = "8/4P3/8/8/8/k7/8/K7 w - - 0 1"


def make_record(**overrides) -> dict:
    """A valid single-move puzzle record with optional overrides."""
    record = {
        "id": "p1",
        "theme": "hangingPiece",
        "fen": PETROV_FEN,
        "solution": ["Nxe5"],
        "difficulty": "beginner",
        "rating": 800,
        "points": 10,
        "tags": ["hangingPiece", "beginner"],
    }
    record.update(overrides)
    return record


def make_puzzle(**overrides) -> Puzzle:
    """A Puzzle built directly, without legality checks."""
    fields = {
        "id": "p1",
        "theme": "fork",
        "fen": PETROV_FEN,
        "solution": ("Nxe5",),
        "difficulty": "beginner",
        "rating": 800,
        "points": 10,
    }
    fields.update(overrides)
    return Puzzle(**fields)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Puzzle fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def puzzle_records() -> list[dict]:
    return [
        make_record(),
        make_record(
            id="p2",
            theme="backRankMate",
            fen=BACK_RANK_FEN,
            solution=["Re8+", "Rxe8", "Rxe8#"],
            difficulty="intermediate",
            rating=1400,
            points=20,
            tags=["backRankMate", "intermediate"],
        ),
        make_record(
            id="p3",
            theme="promotion",
            fen=PROMOTION_FEN,
            solution=["e8=Q"],
            difficulty="advanced",
            rating=1800,
            points=30,
            tags=["promotion", "advanced", "endgame"],
        ),
    ]


@pytest.fixture
def repository(puzzle_records) -> PuzzleRepository:
    return PuzzleRepository.from_records(
        puzzle_records, rules=PythonChessRules(), rng=random.Random(7)
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Validation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def enable_validation(monkeypatch):
    """Set CHESS_HAWK_VALIDATE=1 so validate_response actually checks."""
    monkeypatch.setenv("CHESS_HAWK_VALIDATE", "1")
