"""Shared data models for the Chess Hawk puzzle trainer.

Puzzle, Session and UserStatistics are the shared contract between the
session engine, the progress tracker and the MCP server.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

DIFFICULTIES = ("beginner", "intermediate", "advanced")

MIN_RATING = 500
MAX_RATING = 3000

# Rating bands: < 1300 beginner, 1300-1699 intermediate, >= 1700 advanced
_INTERMEDIATE_FLOOR = 1300
_ADVANCED_FLOOR = 1700


def rating_to_difficulty(rating: int) -> str:
    """Map a puzzle rating to its difficulty label."""
    if rating < _INTERMEDIATE_FLOOR:
        return "beginner"
    if rating < _ADVANCED_FLOOR:
        return "intermediate"
    return "advanced"


class SessionStatus(str, Enum):
    """States of the puzzle session state machine."""

    MENU = "menu"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    SOLVED = "solved"
    FAILED = "failed"


@dataclass(frozen=True)
class Puzzle:
    """A fixed starting position plus its known-correct move sequence."""

    id: str
    theme: str
    fen: str
    solution: tuple[str, ...]
    difficulty: str
    rating: int
    points: int
    tags: frozenset[str] = frozenset()
    title: str = ""
    description: str = ""
    hint: str = ""
    source: str = ""
    url: str = ""
    created_at: str = ""

    @property
    def expected_difficulty(self) -> str:
        return rating_to_difficulty(self.rating)

    @property
    def band_mismatch(self) -> bool:
        """True when ``difficulty`` disagrees with the rating band."""
        return self.difficulty != self.expected_difficulty

    def to_dict(self) -> dict:
        data = asdict(self)
        data["solution"] = list(self.solution)
        data["tags"] = sorted(self.tags)
        return data


@dataclass(frozen=True)
class PuzzleFilter:
    """Optional constraints for repository queries.

    ``tags`` matches puzzles carrying any of the given tags. ``offset`` and
    ``limit`` are applied after all other constraints.
    """

    theme: str | None = None
    difficulty: str | None = None
    min_rating: int | None = None
    max_rating: int | None = None
    tags: frozenset[str] = frozenset()
    exclude_ids: frozenset[str] = frozenset()
    limit: int | None = None
    offset: int = 0

    def matches(self, puzzle: Puzzle) -> bool:
        if self.theme is not None and puzzle.theme != self.theme:
            return False
        if self.difficulty is not None and puzzle.difficulty != self.difficulty:
            return False
        if self.min_rating is not None and puzzle.rating < self.min_rating:
            return False
        if self.max_rating is not None and puzzle.rating > self.max_rating:
            return False
        if self.tags and not (self.tags & puzzle.tags):
            return False
        if puzzle.id in self.exclude_ids:
            return False
        return True


@dataclass
class Session:
    """One puzzle-solving attempt, from load to solved/failed.

    ``move_history`` holds accepted player moves and auto-applied replies
    in canonical UCI form. ``expected_index`` only ever moves forward.
    """

    puzzle: Puzzle
    position: str
    started_at: float
    status: SessionStatus = SessionStatus.PLAYING
    move_history: list[str] = field(default_factory=list)
    expected_index: int = 0
    attempts_count: int = 0
    hints_used: int = 0
    time_spent_seconds: int = 0
    score: int = 0
    error_message: str | None = None
    paused_at: float | None = None
    paused_seconds: float = 0.0

    @property
    def is_complete(self) -> bool:
        return self.expected_index >= len(self.puzzle.solution)

    @property
    def is_finished(self) -> bool:
        return self.status in (SessionStatus.SOLVED, SessionStatus.FAILED)


@dataclass(frozen=True)
class MoveResult:
    """Outcome of submitting one candidate move."""

    accepted: bool
    session_complete: bool = False
    move: str | None = None
    reply: str | None = None


@dataclass(frozen=True)
class SolutionResult:
    """Outcome of submitting a whole solution line in one go."""

    success: bool
    time_spent: int
    attempts: int
    score: int
    next_puzzle_id: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LoadOutcome:
    """Outcome of a puzzle load: the puzzle, or the reason there is none."""

    puzzle: Puzzle | None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.puzzle is not None


@dataclass
class ThemeStats:
    solved: int = 0
    attempts: int = 0
    average_time: float = 0.0

    @property
    def success_rate(self) -> float:
        return self.solved / self.attempts if self.attempts else 0.0


@dataclass
class DifficultyStats:
    solved: int = 0
    attempts: int = 0
    success_rate: float = 0.0


@dataclass
class UserStatistics:
    """Aggregate progress for one user.

    Theme and difficulty buckets count sessions: ``attempts`` is the number
    of puzzles played in that bucket, ``solved`` the number solved.
    """

    puzzles_solved: int = 0
    total_attempts: int = 0
    total_time_spent: int = 0
    streak_current: int = 0
    streak_best: int = 0
    total_score: int = 0
    last_solved: str | None = None
    solved_puzzle_ids: list[str] = field(default_factory=list)
    theme_stats: dict[str, ThemeStats] = field(default_factory=dict)
    difficulty_stats: dict[str, DifficultyStats] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> UserStatistics:
        """Rebuild statistics from a ``to_dict`` blob.

        Raises:
            ValueError: If the blob is not a dict or a field has the wrong
                shape.
        """
        if not isinstance(data, dict):
            raise ValueError(
                f"Statistics must be a JSON object, got {type(data).__name__}"
            )
        try:
            themes = {
                name: ThemeStats(**bucket)
                for name, bucket in data.get("theme_stats", {}).items()
            }
            difficulties = {
                name: DifficultyStats(**bucket)
                for name, bucket in data.get("difficulty_stats", {}).items()
            }
            return cls(
                puzzles_solved=int(data.get("puzzles_solved", 0)),
                total_attempts=int(data.get("total_attempts", 0)),
                total_time_spent=int(data.get("total_time_spent", 0)),
                streak_current=int(data.get("streak_current", 0)),
                streak_best=int(data.get("streak_best", 0)),
                total_score=int(data.get("total_score", 0)),
                last_solved=data.get("last_solved"),
                solved_puzzle_ids=list(data.get("solved_puzzle_ids", [])),
                theme_stats=themes,
                difficulty_stats=difficulties,
            )
        except (AttributeError, TypeError) as exc:
            raise ValueError(f"Malformed statistics blob: {exc}") from exc


@dataclass
class UserSettings:
    """User preferences. Only ``difficulty`` and ``preferred_themes``
    influence puzzle selection."""

    board_orientation: str = "white"
    difficulty: str = "auto"
    preferred_themes: list[str] = field(default_factory=list)
    show_hints: bool = True
    auto_promote_queen: bool = True
    language: str = "en"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> UserSettings:
        """Build settings from a blob, ignoring unknown keys.

        Raises:
            ValueError: If the blob is not a dict or holds an invalid
                difficulty or theme list.
        """
        if not isinstance(data, dict):
            raise ValueError(
                f"Settings must be a JSON object, got {type(data).__name__}"
            )
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        settings = cls(**known)
        if settings.difficulty != "auto" and settings.difficulty not in DIFFICULTIES:
            raise ValueError(f"Unknown difficulty setting: {settings.difficulty}")
        themes = settings.preferred_themes
        if not isinstance(themes, (list, tuple)) or not all(isinstance(t, str) for t in themes):
            raise ValueError(f"preferred_themes must be a list of strings, got {themes!r}")
        settings.preferred_themes = list(themes)
        return settings
