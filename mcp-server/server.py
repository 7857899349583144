"""MCP server for the Chess Hawk puzzle trainer.

Exposes the puzzle session engine to an agent client via FastMCP.
One session manager serves the configured user. Session state is synced
to data/current_session.json after every call for UI consumption.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

# Add project root and mcp-server dir to path for imports
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MCP_SERVER_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(_PROJECT_ROOT))
sys.path.insert(0, str(_MCP_SERVER_DIR))

from mcp.server.fastmcp import FastMCP

from chesshawk.config import TrainerConfig
from chesshawk.events import Event
from chesshawk.models import PuzzleFilter, SessionStatus
from chesshawk.progress import ProgressTracker
from chesshawk.repository import PuzzleRepository
from chesshawk.rules import PythonChessRules
from chesshawk.selector import weakest_theme
from chesshawk.session import SessionManager
from chesshawk.storage import JsonFileStorage

from response_schemas import (  # noqa: E402
    ERROR_SCHEMA,
    IDLE_SCHEMA,
    PUZZLE_LIST_SCHEMA,
    SESSION_SCHEMA,
    SOLUTION_RESULT_SCHEMA,
    STATISTICS_SCHEMA,
    minify_puzzle_list,
    minify_session,
    minify_statistics,
    validate_response,
)

logger = logging.getLogger("chesshawk.mcp")

mcp = FastMCP("chess-hawk")

# Events emitted during the current tool call
_events: list[Event] = []


def _configure(
    config: TrainerConfig, repository: PuzzleRepository | None = None
) -> SessionManager:
    """(Re)build the server's repository, tracker and session manager.

    Args:
        config: Paths and user id to serve.
        repository: Preloaded repository; loaded from config.puzzles_file
            (with legality checks) when None.

    Returns:
        The new session manager.
    """
    global _config, _repository, _tracker, _manager

    _config = config
    if repository is None:
        repository = PuzzleRepository.from_file(config.puzzles_file, rules=PythonChessRules())
    _repository = repository
    _tracker = ProgressTracker(JsonFileStorage(config.users_dir))
    _manager = SessionManager(_repository, _tracker, user_id=config.user_id)
    _manager.events.subscribe(_events.append)
    return _manager


_configure(TrainerConfig.from_env())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sync_session_json(snapshot: dict) -> None:
    """Write the session snapshot to data/current_session.json atomically.

    Uses temp file + os.replace() for atomic write.

    Args:
        snapshot: SessionManager snapshot dict to persist.
    """
    target = _config.session_file
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(".tmp")
    tmp.write_text(
        json.dumps(snapshot, indent=2, default=str, ensure_ascii=False),
        encoding="utf-8",
    )
    os.replace(tmp, target)


def _persist() -> None:
    """Flush queued statistics/settings writes when no event loop runs them."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        if not asyncio.run(_tracker.flush()):
            logger.warning("Progress write failed: %s", _tracker.persister.last_error)


def _check(response: dict, schema: dict) -> dict:
    if _config.validate_responses:
        for problem in validate_response(response, schema):
            logger.warning("Response schema: %s", problem)
    return response


def _error(message: str, **extra) -> dict:
    _events.clear()
    return _check({"error": message, **extra}, ERROR_SCHEMA)


def _session_response(**extra) -> dict:
    """Snapshot, sync and minify the session, attaching this call's events."""
    snapshot = _manager.snapshot()
    _sync_session_json(snapshot)
    _persist()

    response = minify_session(snapshot)
    response.update(extra)
    response["events"] = [event.type.value for event in _events]
    _events.clear()

    schema = IDLE_SCHEMA if response.get("puzzle_id") is None else SESSION_SCHEMA
    return _check(response, schema)


def _statistics_response() -> dict:
    stats = _tracker.get_statistics(_manager.user_id)
    weakest = weakest_theme(stats) if stats is not None else None
    response = minify_statistics(stats.to_dict() if stats else None, weakest)
    return _check(response, STATISTICS_SCHEMA)


# ---------------------------------------------------------------------------
# Session tools
# ---------------------------------------------------------------------------


@mcp.tool()
def load_puzzle(puzzle_id: str | None = None) -> dict:
    """Load a puzzle by id, or let the adaptive selector pick one.

    A puzzle still in progress is abandoned and recorded as failed.

    Args:
        puzzle_id: Puzzle id from the collection. Omit for an adaptive pick.

    Returns:
        Session dict for the new puzzle, or an error with a reason
        ('not-found' or 'none-available').
    """
    _events.clear()
    outcome = _manager.load_puzzle(puzzle_id)
    if not outcome.ok:
        snapshot = _manager.snapshot()
        _sync_session_json(snapshot)
        _persist()
        return _error(_manager.error_message or "Load failed", reason=outcome.reason)
    return _session_response()


@mcp.tool()
def next_puzzle() -> dict:
    """Move on to the next adaptively selected puzzle.

    Returns:
        Session dict for the new puzzle, or an error if none is available.
    """
    _events.clear()
    outcome = _manager.load_next_puzzle()
    if not outcome.ok:
        _sync_session_json(_manager.snapshot())
        _persist()
        return _error(_manager.error_message or "Load failed", reason=outcome.reason)
    return _session_response()


@mcp.tool()
def load_random_puzzle(theme: str | None = None, difficulty: str | None = None) -> dict:
    """Load a random puzzle, optionally narrowed by theme and difficulty.

    Unlike load_puzzle this ignores the player's history. A puzzle still in
    progress is abandoned and recorded as failed.

    Args:
        theme: Tactical theme, e.g. 'fork'.
        difficulty: 'beginner', 'intermediate' or 'advanced'.

    Returns:
        Session dict for the new puzzle, or an error with reason
        'none-available'.
    """
    _events.clear()
    outcome = _manager.load_random_puzzle(theme, difficulty)
    if not outcome.ok:
        _sync_session_json(_manager.snapshot())
        _persist()
        return _error(_manager.error_message or "Load failed", reason=outcome.reason)
    return _session_response()


@mcp.tool()
def make_move(move: str) -> dict:
    """Submit a move for the current puzzle.

    Args:
        move: Move in SAN ('Nxe5', 'e8=Q') or UCI ('g1f3', 'e7e8q').

    Returns:
        Session dict with 'accepted', the auto-played 'reply' (if any) and
        'complete'. Wrong moves only increase the attempt counter.
    """
    _events.clear()
    if _manager.status is not SessionStatus.PLAYING:
        _manager.make_move(move)
        return _error(_manager.error_message or "No puzzle in progress")

    result = _manager.make_move(move)
    return _session_response(
        accepted=result.accepted,
        reply=result.reply,
        complete=result.session_complete,
    )


@mcp.tool()
def show_hint() -> dict:
    """Reveal the next expected move without playing it.

    Returns:
        Session dict with 'hint' (the move) and the puzzle's text 'clue'.
    """
    _events.clear()
    hint = _manager.show_hint()
    if hint is None:
        return _error("No puzzle in progress")
    return _session_response(hint=hint, clue=_manager.session.puzzle.hint)


@mcp.tool()
def give_up() -> dict:
    """Abandon the current puzzle. Records a failure and reveals the solution.

    Returns:
        Session dict including 'solution'.
    """
    _events.clear()
    if not _manager.give_up():
        return _error("No puzzle in progress")
    return _session_response()


@mcp.tool()
def pause_game() -> dict:
    """Pause the current puzzle; the solving clock stops."""
    _events.clear()
    if not _manager.pause_game():
        return _error("No puzzle is being played")
    return _session_response()


@mcp.tool()
def resume_game() -> dict:
    """Resume a paused puzzle."""
    _events.clear()
    if not _manager.resume_game():
        return _error("No puzzle is paused")
    return _session_response()


@mcp.tool()
def reset_puzzle() -> dict:
    """Restart the current puzzle from its starting position."""
    _events.clear()
    if not _manager.reset_puzzle():
        return _error("No puzzle in progress")
    return _session_response()


@mcp.tool()
def return_to_menu() -> dict:
    """Leave the current puzzle (an unfinished one counts as failed)."""
    _events.clear()
    _manager.return_to_menu()
    return _session_response()


@mcp.tool()
def get_session() -> dict:
    """Get the current session state without changing it."""
    _events.clear()
    return _session_response()


# ---------------------------------------------------------------------------
# Progress and settings tools
# ---------------------------------------------------------------------------


@mcp.tool()
def submit_solution(
    puzzle_id: str,
    moves: list[str],
    time_spent: int,
    attempts: int = 1,
) -> dict:
    """Grade a whole solution line in one call, outside the current session.

    Args:
        puzzle_id: Puzzle the line was played on.
        moves: The full solution line (SAN or UCI), or only the player's moves.
        time_spent: Seconds the player took.
        attempts: Attempts the player needed.

    Returns:
        Dict with success, score and next_puzzle_id, or an error.
    """
    _events.clear()
    try:
        result = _manager.submit_solution(puzzle_id, moves, time_spent, attempts)
    except ValueError as exc:
        return _error(str(exc))
    if result is None:
        return _error(f"Puzzle not found: {puzzle_id}", reason="not-found")
    _persist()

    response = result.to_dict()
    response["events"] = [event.type.value for event in _events]
    _events.clear()
    return _check(response, SOLUTION_RESULT_SCHEMA)


@mcp.tool()
def get_statistics() -> dict:
    """Get the user's progress statistics and weakest theme."""
    return _statistics_response()


@mcp.tool()
def reset_statistics() -> dict:
    """Erase the user's progress statistics."""
    _tracker.reset_statistics(_manager.user_id)
    _persist()
    return _statistics_response()


@mcp.tool()
def update_settings(
    difficulty: str | None = None,
    preferred_themes: list[str] | None = None,
    board_orientation: str | None = None,
    show_hints: bool | None = None,
    auto_promote_queen: bool | None = None,
    language: str | None = None,
) -> dict:
    """Change user preferences. Only the given fields change.

    Args:
        difficulty: 'auto', 'beginner', 'intermediate' or 'advanced'.
        preferred_themes: Themes to favour when no weak theme applies.
        board_orientation: 'white' or 'black'.
        show_hints: Whether the UI offers hints.
        auto_promote_queen: Whether the UI promotes to a queen by default.
        language: UI language code.

    Returns:
        The full updated settings dict.
    """
    changes = {
        key: value
        for key, value in {
            "difficulty": difficulty,
            "preferred_themes": preferred_themes,
            "board_orientation": board_orientation,
            "show_hints": show_hints,
            "auto_promote_queen": auto_promote_queen,
            "language": language,
        }.items()
        if value is not None
    }
    try:
        settings = _tracker.update_settings(_manager.user_id, **changes)
    except ValueError as exc:
        return _error(str(exc))
    _persist()
    return settings.to_dict()


@mcp.tool()
def export_user_data() -> dict:
    """Export statistics and settings as one JSON object for backup."""
    return _tracker.export_user_data(_manager.user_id)


@mcp.tool()
def import_user_data(data: dict) -> dict:
    """Replace statistics and settings with a previous export.

    Args:
        data: Object produced by export_user_data.

    Returns:
        Minified statistics after the import.
    """
    try:
        _tracker.import_user_data(_manager.user_id, data)
    except ValueError as exc:
        return _error(f"Import failed: {exc}")
    _persist()
    return _statistics_response()


# ---------------------------------------------------------------------------
# Collection tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_puzzles(
    theme: str | None = None,
    difficulty: str | None = None,
    min_rating: int | None = None,
    max_rating: int | None = None,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    """List puzzles in the collection matching optional filters.

    Args:
        theme: Tactical theme, e.g. 'fork' or 'backRankMate'.
        difficulty: 'beginner', 'intermediate' or 'advanced'.
        min_rating: Lowest rating to include.
        max_rating: Highest rating to include.
        limit: Maximum puzzles to return (default 20).
        offset: Matches to skip, for paging.

    Returns:
        Dict with count, total matches and compact puzzle entries.
    """
    if limit < 0 or offset < 0:
        return _error("limit and offset must be non-negative")
    base = PuzzleFilter(
        theme=theme, difficulty=difficulty, min_rating=min_rating, max_rating=max_rating
    )
    total = len(_repository.list(base))
    page = _repository.list(
        PuzzleFilter(
            theme=theme,
            difficulty=difficulty,
            min_rating=min_rating,
            max_rating=max_rating,
            limit=limit,
            offset=offset,
        )
    )
    response = minify_puzzle_list([p.to_dict() for p in page], total)
    return _check(response, PUZZLE_LIST_SCHEMA)


@mcp.tool()
def collection_info() -> dict:
    """Summarize the loaded collection and any load-time problems."""
    report = _repository.report
    return {
        **_repository.stats(),
        "themes": _repository.themes(),
        "load_errors": len(report.errors),
        "data_quality_warnings": len(report.warnings),
        "flagged_ids": list(report.flagged_ids),
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    # stdout carries the MCP stdio transport
    logging.basicConfig(
        level=_config.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_tracker.load_user(_manager.user_id))
    logger.info(
        "Serving %d puzzles for user %s", len(_repository), _manager.user_id
    )
    mcp.run()


if __name__ == "__main__":
    main()
