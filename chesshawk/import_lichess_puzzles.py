#!/usr/bin/env python3
"""Import puzzles from the Lichess puzzle database (CSV.ZST format).

Streams data/lichess_db_puzzle.csv.zst, filters by theme/rating/popularity,
converts to the Chess Hawk collection format with full validation.

Lichess CSV columns:
  PuzzleId, FEN, Moves, Rating, RatingDeviation, Popularity, NbPlays,
  Themes, GameUrl, OpeningTags

Key format detail: Lichess FEN is the game position BEFORE the puzzle setup
move. moves[0] is applied to reach the puzzle position, then moves[1:] are
the solution (alternating: player solution move, opponent forced response).
"""

from __future__ import annotations

import argparse
import csv
import io
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import chess
import zstandard

from chesshawk.config import DEFAULT_DATA_DIR
from chesshawk.models import MAX_RATING, MIN_RATING, rating_to_difficulty

# Lichess themes that make a good primary theme, in order of preference
PRIMARY_THEMES = [
    "fork",
    "pin",
    "skewer",
    "discoveredAttack",
    "doubleCheck",
    "backRankMate",
    "smotheredMate",
    "mateIn1",
    "mateIn2",
    "mateIn3",
    "deflection",
    "decoy",
    "attraction",
    "clearance",
    "interference",
    "removeDefender",
    "sacrifice",
    "hangingPiece",
    "exposedKing",
    "promotion",
    "endgame",
    "middlegame",
    "opening",
]

HINT_TEMPLATES: dict[str, str] = {
    "fork": "Look for a move that attacks two or more pieces at once.",
    "pin": "Find a piece that can be pinned to the king or a more valuable piece.",
    "skewer": "Attack a valuable piece that must move and expose the one behind it.",
    "discoveredAttack": "Move one piece to uncover an attack from another.",
    "doubleCheck": "Two pieces can give check at the same time.",
    "backRankMate": "The king is trapped on its back rank by its own pieces.",
    "smotheredMate": "The king is smothered by its own pieces; a knight can finish.",
    "mateIn1": "One move to checkmate. Which one?",
    "mateIn2": "Plan two moves ahead to checkmate.",
    "mateIn3": "A forcing sequence leads to mate in three.",
    "deflection": "Which piece is holding the defence together?",
    "decoy": "Can you lure a piece onto a bad square?",
    "sacrifice": "Consider giving up material for a bigger gain.",
    "promotion": "Push the pawn to the last rank.",
    "hangingPiece": "Which piece has no defender?",
}

DESCRIPTION_TEMPLATES: dict[str, str] = {
    "fork": "Attack two or more pieces simultaneously.",
    "pin": "Pin a piece to a more valuable piece behind it.",
    "skewer": "Force a valuable piece to move and win the piece behind it.",
    "discoveredAttack": "Uncover an attack by moving a piece out of the way.",
    "backRankMate": "Deliver mate on the back rank.",
    "mateIn1": "Checkmate in one move.",
    "mateIn2": "Checkmate in two moves.",
    "mateIn3": "Checkmate in three moves.",
    "sacrifice": "Sacrifice material for a decisive advantage.",
}

# Base points per difficulty; one bonus point per 100 rating above 1000
_BASE_POINTS = {"beginner": 5, "intermediate": 15, "advanced": 35}

DEFAULT_DB = DEFAULT_DATA_DIR / "lichess_db_puzzle.csv.zst"


def _calculate_points(rating: int, difficulty: str) -> int:
    return _BASE_POINTS[difficulty] + max(0, (rating - 1000) // 100)


def _normalize_fen(fen: str) -> str:
    """Strip move counters from FEN for deduplication."""
    parts = fen.split()
    return " ".join(parts[:4]) if len(parts) >= 4 else fen


def _pick_theme(themes: list[str]) -> str | None:
    """Pick the primary theme from a list of Lichess themes."""
    for theme in PRIMARY_THEMES:
        if theme in themes:
            return theme
    return None


def _moves_to_san(board: chess.Board, uci_moves: list[str]) -> list[str] | None:
    """Convert UCI moves to SAN, advancing the board. None if any is illegal."""
    san_list = []
    for uci in uci_moves:
        try:
            move = chess.Move.from_uci(uci)
        except ValueError:
            return None
        if move not in board.legal_moves:
            return None
        san_list.append(board.san(move))
        board.push(move)
    return san_list


def convert_row(row: list[str], created_at: str) -> dict | None:
    """Convert one Lichess CSV row to a Chess Hawk puzzle record.

    Returns:
        Puzzle dict, or None if the row is malformed or its moves are
        not legal.
    """
    if len(row) < 8:
        return None

    puzzle_id = row[0]
    game_fen = row[1]
    uci_moves = row[2].split()
    try:
        rating = int(row[3])
    except ValueError:
        return None
    if not MIN_RATING <= rating <= MAX_RATING:
        return None
    if len(uci_moves) < 2:
        return None  # Need at least setup move + 1 solution move

    lichess_themes = row[7].split() if row[7] else []
    theme = _pick_theme(lichess_themes)
    if theme is None:
        return None

    # Apply setup move to get puzzle position
    try:
        board = chess.Board(game_fen)
        setup_move = chess.Move.from_uci(uci_moves[0])
    except ValueError:
        return None
    if setup_move not in board.legal_moves:
        return None
    board.push(setup_move)
    puzzle_fen = board.fen()

    solution = _moves_to_san(board.copy(), uci_moves[1:])
    if solution is None:
        return None

    difficulty = rating_to_difficulty(rating)
    extra_tags = [t for t in lichess_themes if t != theme][:2]
    return {
        "id": f"lichess_{puzzle_id}",
        "theme": theme,
        "title": f"{theme} {rating}",
        "description": DESCRIPTION_TEMPLATES.get(theme, "Solve the tactical problem."),
        "fen": puzzle_fen,
        "solution": solution,
        "difficulty": difficulty,
        "rating": rating,
        "points": _calculate_points(rating, difficulty),
        "hint": HINT_TEMPLATES.get(theme, "Analyse the position carefully."),
        "tags": [theme, difficulty, *extra_tags],
        "source": "Lichess",
        "url": f"https://lichess.org/training/{puzzle_id}",
        "created_at": created_at,
    }


def import_puzzles(
    db_path: Path,
    themes: list[str],
    min_rating: int = MIN_RATING,
    max_rating: int = MAX_RATING,
    min_popularity: int = 80,
    limit: int = 50,
) -> list[dict]:
    """Stream Lichess puzzle DB and extract matching puzzles.

    Args:
        db_path: Path to lichess_db_puzzle.csv.zst
        themes: List of Lichess theme names to filter by
        min_rating: Minimum puzzle rating
        max_rating: Maximum puzzle rating
        min_popularity: Minimum popularity score (0-100)
        limit: Maximum puzzles to return

    Returns:
        List of Chess Hawk puzzle dicts
    """
    if not db_path.exists():
        print(f"Error: {db_path} not found", file=sys.stderr)
        return []

    theme_set = set(themes)
    puzzles: list[dict] = []
    seen_fens: set[str] = set()
    rows_scanned = 0
    created_at = datetime.now(timezone.utc).isoformat()

    with open(db_path, "rb") as f:
        dctx = zstandard.ZstdDecompressor()
        reader = dctx.stream_reader(f)
        text = io.TextIOWrapper(reader, encoding="utf-8")
        csv_reader = csv.reader(text)

        # Skip header
        header = next(csv_reader, None)
        if header is None:
            return []

        for row in csv_reader:
            if len(puzzles) >= limit:
                break

            rows_scanned += 1
            if len(row) < 8:
                continue

            try:
                rating = int(row[3])
                popularity = int(row[5])
            except ValueError:
                continue
            if rating < min_rating or rating > max_rating:
                continue
            if popularity < min_popularity:
                continue
            if not theme_set & set(row[7].split()):
                continue

            puzzle = convert_row(row, created_at)
            if puzzle is None:
                continue

            # Deduplicate by normalized FEN
            norm_fen = _normalize_fen(puzzle["fen"])
            if norm_fen in seen_fens:
                continue
            seen_fens.add(norm_fen)
            puzzles.append(puzzle)

    print(f"Scanned {rows_scanned} rows, found {len(puzzles)} matching puzzles",
          file=sys.stderr)
    return puzzles


def build_collection(puzzles: list[dict]) -> dict:
    """Wrap puzzles in the collection envelope the repository loads."""
    return {
        "version": "1.0",
        "generated": datetime.now(timezone.utc).isoformat(),
        "totalPuzzles": len(puzzles),
        "source": "Lichess",
        "importMethod": "lichess-csv-zst",
        "puzzles": puzzles,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Import puzzles from Lichess puzzle database"
    )
    parser.add_argument(
        "--themes",
        type=str,
        required=True,
        help="Comma-separated Lichess theme names (e.g., mateIn1,backRankMate,fork)",
    )
    parser.add_argument(
        "--min-rating", type=int, default=MIN_RATING,
        help=f"Minimum puzzle rating (default: {MIN_RATING})",
    )
    parser.add_argument(
        "--max-rating", type=int, default=MAX_RATING,
        help=f"Maximum puzzle rating (default: {MAX_RATING})",
    )
    parser.add_argument(
        "--min-popularity",
        type=int,
        default=80,
        help="Minimum popularity score 0-100 (default: 80)",
    )
    parser.add_argument(
        "--limit", type=int, default=50, help="Maximum puzzles to import (default: 50)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output JSON file path (default: stdout)",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=str(DEFAULT_DB),
        help=f"Path to lichess_db_puzzle.csv.zst (default: {DEFAULT_DB})",
    )
    args = parser.parse_args(argv)

    themes = [t.strip() for t in args.themes.split(",") if t.strip()]
    if not themes:
        print("Error: --themes must specify at least one theme", file=sys.stderr)
        return 1

    puzzles = import_puzzles(
        db_path=Path(args.db),
        themes=themes,
        min_rating=args.min_rating,
        max_rating=args.max_rating,
        min_popularity=args.min_popularity,
        limit=args.limit,
    )

    if not puzzles:
        print("No matching puzzles found.", file=sys.stderr)
        return 1

    output_json = json.dumps(build_collection(puzzles), indent=2)
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(output_json + "\n", encoding="utf-8")
        print(f"Wrote {len(puzzles)} puzzles to {args.output}", file=sys.stderr)
    else:
        print(output_json)

    return 0


if __name__ == "__main__":
    sys.exit(main())
