"""Puzzle repository: the static puzzle collection and its queries.

Records are validated once at load time. Malformed records are reported and
left out of the collection; a difficulty that disagrees with the rating band
is reported as a data-quality warning but the puzzle is still loaded.
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from chesshawk.models import (
    DIFFICULTIES,
    MAX_RATING,
    MIN_RATING,
    Puzzle,
    PuzzleFilter,
    rating_to_difficulty,
)
from chesshawk.rules import ChessRules

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["id", "theme", "fen", "solution", "difficulty", "rating", "points"]

_OPTIONAL_TEXT_FIELDS = {
    "title": "title",
    "description": "description",
    "hint": "hint",
    "source": "source",
    "url": "url",
    "lichessUrl": "url",
    "created_at": "created_at",
    "createdAt": "created_at",
}


@dataclass
class LoadReport:
    """What happened while loading a puzzle collection."""

    total: int = 0
    loaded: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    flagged_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_record(
    record: object, index: int, rules: ChessRules | None = None
) -> tuple[list[str], list[str]]:
    """Validate a single puzzle record.

    Args:
        record: Raw record from the collection.
        index: Position of the record, used in messages.
        rules: When given, the FEN and every solution move are also
            replayed for legality.

    Returns:
        Tuple of (errors, warnings). Any error excludes the record.
    """
    prefix = f"puzzles[{index}]"
    if not isinstance(record, dict):
        return [f"{prefix}: expected an object, got {type(record).__name__}"], []

    errors: list[str] = []
    warnings: list[str] = []

    for name in REQUIRED_FIELDS:
        if name not in record:
            errors.append(f"{prefix}: missing field '{name}'")
    if errors:
        return errors, warnings

    prefix = f"{prefix} ({record['id']})"

    for name in ("id", "theme", "fen"):
        if not isinstance(record[name], str) or not record[name].strip():
            errors.append(f"{prefix}: field '{name}' must be a non-empty string")

    fen = record["fen"]
    if isinstance(fen, str) and len(fen.split()) < 4:
        errors.append(f"{prefix}: invalid FEN '{fen}'")

    solution = record["solution"]
    if not isinstance(solution, list) or not solution:
        errors.append(f"{prefix}: solution must be a non-empty list of moves")
    elif not all(isinstance(m, str) and m.strip() for m in solution):
        errors.append(f"{prefix}: solution moves must be non-empty strings")

    difficulty = record["difficulty"]
    if difficulty not in DIFFICULTIES:
        errors.append(f"{prefix}: unknown difficulty '{difficulty}'")

    rating = record["rating"]
    if not _is_int(rating):
        errors.append(f"{prefix}: rating must be an integer")
    elif not MIN_RATING <= rating <= MAX_RATING:
        errors.append(
            f"{prefix}: rating {rating} outside {MIN_RATING}-{MAX_RATING}"
        )

    points = record["points"]
    if not _is_int(points) or points < 0:
        errors.append(f"{prefix}: points must be a non-negative integer")

    tags = record.get("tags", [])
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        errors.append(f"{prefix}: tags must be a list of strings")

    if errors:
        return errors, warnings

    expected = rating_to_difficulty(rating)
    if difficulty != expected:
        warnings.append(
            f"{prefix}: difficulty '{difficulty}' does not match rating "
            f"{rating} (expected '{expected}')"
        )

    if rules is not None:
        for problem in rules.check_line(fen, solution):
            errors.append(f"{prefix}: {problem}")

    return errors, warnings


def puzzle_from_record(record: dict) -> Puzzle:
    """Build a Puzzle from a record that passed ``validate_record``."""
    extras: dict[str, str] = {}
    for key, attr in _OPTIONAL_TEXT_FIELDS.items():
        value = record.get(key)
        if isinstance(value, str) and value and attr not in extras:
            extras[attr] = value
    return Puzzle(
        id=record["id"],
        theme=record["theme"],
        fen=record["fen"],
        solution=tuple(m.strip() for m in record["solution"]),
        difficulty=record["difficulty"],
        rating=record["rating"],
        points=record["points"],
        tags=frozenset(record.get("tags", [])),
        **extras,
    )


class PuzzleRepository:
    """Read-only puzzle collection with filtered and random retrieval."""

    def __init__(
        self,
        puzzles: Iterable[Puzzle] = (),
        rng: random.Random | None = None,
    ) -> None:
        self._puzzles: dict[str, Puzzle] = {}
        for puzzle in puzzles:
            self._puzzles.setdefault(puzzle.id, puzzle)
        self._rng = rng or random.Random()
        self.report = LoadReport(total=len(self._puzzles), loaded=len(self._puzzles))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        records: list,
        rules: ChessRules | None = None,
        rng: random.Random | None = None,
    ) -> PuzzleRepository:
        """Validate raw records and build a repository from the good ones.

        Args:
            records: Raw puzzle dicts.
            rules: Optional rules adapter for FEN/solution legality checks.
            rng: Random source for ``random_pick``.

        Returns:
            Repository whose ``report`` lists every excluded record and
            every data-quality warning.
        """
        report = LoadReport(total=len(records))
        puzzles: list[Puzzle] = []
        seen: set[str] = set()

        for i, record in enumerate(records):
            errors, warnings = validate_record(record, i, rules)
            if not errors and record["id"] in seen:
                errors.append(f"puzzles[{i}] ({record['id']}): duplicate id")
            report.warnings.extend(warnings)
            if errors:
                report.errors.extend(errors)
                continue
            if warnings:
                report.flagged_ids.append(record["id"])
            seen.add(record["id"])
            puzzles.append(puzzle_from_record(record))

        report.loaded = len(puzzles)
        for message in report.errors:
            logger.warning("Excluded puzzle: %s", message)
        for message in report.warnings:
            logger.warning("Data-quality issue: %s", message)
        logger.info("Loaded %d of %d puzzles", report.loaded, report.total)

        repo = cls(puzzles, rng=rng)
        repo.report = report
        return repo

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        rules: ChessRules | None = None,
        rng: random.Random | None = None,
    ) -> PuzzleRepository:
        """Load a JSON collection from disk.

        The file holds either a list of puzzles or an object with a
        ``puzzles`` (or legacy ``problems``) array. An unreadable file
        yields an empty repository with the failure in its report.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.error("Could not load puzzle collection %s: %s", path, exc)
            repo = cls(rng=rng)
            repo.report.errors.append(f"{path.name}: failed to load: {exc}")
            return repo

        if isinstance(data, dict):
            records = data.get("puzzles", data.get("problems"))
        else:
            records = data
        if not isinstance(records, list):
            repo = cls(rng=rng)
            repo.report.errors.append(f"{path.name}: expected a puzzles array")
            return repo

        return cls.from_records(records, rules=rules, rng=rng)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self, filter: PuzzleFilter | None = None) -> list[Puzzle]:
        """Return puzzles matching ``filter`` in collection order."""
        puzzles = list(self._puzzles.values())
        if filter is None:
            return puzzles
        matched = [p for p in puzzles if filter.matches(p)]
        matched = matched[filter.offset:]
        if filter.limit is not None:
            matched = matched[:filter.limit]
        return matched

    def get(self, puzzle_id: str) -> Puzzle | None:
        return self._puzzles.get(puzzle_id)

    def random_pick(self, filter: PuzzleFilter | None = None) -> Puzzle | None:
        """Uniformly pick one puzzle matching ``filter``, or None if none do."""
        candidates = self.list(filter)
        if not candidates:
            return None
        return self._rng.choice(candidates)

    def themes(self) -> list[str]:
        return sorted({p.theme for p in self._puzzles.values()})

    def stats(self) -> dict:
        """Summary counts by difficulty and theme plus the rating range."""
        by_difficulty: dict[str, int] = {}
        by_theme: dict[str, int] = {}
        for puzzle in self._puzzles.values():
            by_difficulty[puzzle.difficulty] = by_difficulty.get(puzzle.difficulty, 0) + 1
            by_theme[puzzle.theme] = by_theme.get(puzzle.theme, 0) + 1
        ratings = [p.rating for p in self._puzzles.values()]
        return {
            "total": len(self._puzzles),
            "by_difficulty": by_difficulty,
            "by_theme": by_theme,
            "rating_range": {
                "min": min(ratings) if ratings else None,
                "max": max(ratings) if ratings else None,
            },
        }

    def __len__(self) -> int:
        return len(self._puzzles)

    def __contains__(self, puzzle_id: object) -> bool:
        return puzzle_id in self._puzzles

    def __iter__(self) -> Iterator[Puzzle]:
        return iter(self._puzzles.values())
