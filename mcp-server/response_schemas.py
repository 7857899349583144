"""Response schemas and minification for MCP tool responses.

Minifies MCP tool return values to reduce LLM context token waste.
data/current_session.json (UI sync) is NOT affected, only MCP return values.

Move history is returned as a single space-separated UCI string, which is
compact and unambiguous whichever side is to move in the puzzle.
"""

from __future__ import annotations

import os


# ---------------------------------------------------------------------------
# Minification functions
# ---------------------------------------------------------------------------


def minify_session(snapshot: dict) -> dict:
    """Minify a session snapshot for MCP response.

    Flattens the puzzle sub-dict to the fields an agent needs to play,
    compacts move_history to a string and drops the start FEN and
    descriptive text.

    Args:
        snapshot: Full snapshot dict (as produced by SessionManager.snapshot).

    Returns:
        Minified dict with reduced token footprint.
    """
    result = {
        "status": snapshot.get("status"),
        "error_message": snapshot.get("error_message"),
    }

    puzzle = snapshot.get("puzzle")
    if not isinstance(puzzle, dict):
        result["puzzle_id"] = None
        return result

    result["puzzle_id"] = puzzle.get("id")
    for key in ("theme", "difficulty", "rating"):
        result[key] = puzzle.get(key)
    result["solution_length"] = puzzle.get("solution_length", 0)

    for key in (
        "fen", "expected_index", "attempts", "hints_used", "time_spent", "score",
    ):
        if key in snapshot:
            result[key] = snapshot[key]

    history = snapshot.get("move_history", [])
    if isinstance(history, list):
        result["move_history"] = " ".join(history)
    else:
        result["move_history"] = history

    # Only present once the puzzle is finished
    if "solution" in snapshot:
        result["solution"] = snapshot["solution"]

    # Removed fields: user_id, start_fen, title, description, points

    return result


def minify_statistics(stats: dict | None, weakest: str | None = None) -> dict:
    """Minify a UserStatistics dict for MCP response.

    Replaces solved_puzzle_ids with a count and collapses each theme and
    difficulty bucket to a "solved/attempts" string.

    Args:
        stats: Full statistics dict (from UserStatistics.to_dict), or None
            for a user with no history.
        weakest: Weakest theme to report alongside, if any.

    Returns:
        Minified dict.
    """
    stats = stats or {}
    result = {}

    for key in (
        "puzzles_solved", "total_attempts", "total_time_spent",
        "streak_current", "streak_best", "total_score",
    ):
        result[key] = stats.get(key, 0)
    result["last_solved"] = stats.get("last_solved")
    result["solved_count"] = len(stats.get("solved_puzzle_ids", []))

    result["themes"] = {
        name: f"{bucket.get('solved', 0)}/{bucket.get('attempts', 0)}"
        for name, bucket in stats.get("theme_stats", {}).items()
    }
    result["difficulty"] = {
        name: f"{bucket.get('solved', 0)}/{bucket.get('attempts', 0)}"
        for name, bucket in stats.get("difficulty_stats", {}).items()
    }
    result["weakest_theme"] = weakest

    return result


def minify_puzzle_list(puzzles: list[dict], total: int) -> dict:
    """Minify a puzzle listing: id, theme, difficulty and rating only.

    Args:
        puzzles: Puzzle dicts (from Puzzle.to_dict).
        total: Number of matches before offset/limit were applied.

    Returns:
        Dict with count, total and compact puzzle entries.
    """
    return {
        "count": len(puzzles),
        "total": total,
        "puzzles": [
            {
                "id": p.get("id"),
                "theme": p.get("theme"),
                "difficulty": p.get("difficulty"),
                "rating": p.get("rating"),
            }
            for p in puzzles
        ],
    }


# ---------------------------------------------------------------------------
# Validation schemas (dict-based)
# ---------------------------------------------------------------------------

SESSION_SCHEMA = {
    "status": str,
    "error_message": (str, type(None)),
    "puzzle_id": str,
    "theme": str,
    "difficulty": str,
    "rating": int,
    "solution_length": int,
    "fen": str,
    "expected_index": int,
    "attempts": int,
    "hints_used": int,
    "time_spent": int,
    "score": int,
    "move_history": str,
}

IDLE_SCHEMA = {
    "status": str,
    "error_message": (str, type(None)),
    "puzzle_id": type(None),
}

STATISTICS_SCHEMA = {
    "puzzles_solved": int,
    "total_attempts": int,
    "total_time_spent": int,
    "streak_current": int,
    "streak_best": int,
    "total_score": int,
    "last_solved": (str, type(None)),
    "solved_count": int,
    "themes": dict,
    "difficulty": dict,
    "weakest_theme": (str, type(None)),
}

SOLUTION_RESULT_SCHEMA = {
    "success": bool,
    "time_spent": int,
    "attempts": int,
    "score": int,
    "next_puzzle_id": (str, type(None)),
    "events": list,
}

PUZZLE_LIST_SCHEMA = {
    "count": int,
    "total": int,
    "puzzles": list,
}

ERROR_SCHEMA = {
    "error": str,
}


def validate_response(response: dict, schema: dict) -> list[str]:
    """Validate a response dict against a schema.

    Only runs when CHESS_HAWK_VALIDATE=1 env var is set.

    Args:
        response: Response dict to validate.
        schema: Dict mapping key names to expected types (or tuple of types).

    Returns:
        List of validation error strings (empty = valid).
    """
    if os.environ.get("CHESS_HAWK_VALIDATE") != "1":
        return []

    errors = []

    if not isinstance(response, dict):
        errors.append(f"Response is not a dict: {type(response).__name__}")
        return errors

    for key, expected_types in schema.items():
        if key not in response:
            errors.append(f"Missing key: {key}")
            continue

        value = response[key]
        if isinstance(expected_types, tuple):
            if not isinstance(value, expected_types):
                type_names = ", ".join(t.__name__ for t in expected_types)
                errors.append(
                    f"Key '{key}': expected ({type_names}), "
                    f"got {type(value).__name__}"
                )
        else:
            if not isinstance(value, expected_types):
                errors.append(
                    f"Key '{key}': expected {expected_types.__name__}, "
                    f"got {type(value).__name__}"
                )

    return errors
