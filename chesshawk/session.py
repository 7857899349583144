"""Puzzle session state machine.

    menu -> loading -> playing <-> paused
                          |
                          +-> solved | failed -> loading (next puzzle) | menu

``SessionManager`` owns the current ``Session`` and orchestrates the
repository, selector, validator, scoring and progress tracker around it.
Every operation settles fully before returning; nothing here raises for a
domain failure. Missing puzzles and empty selections return the machine
to ``menu`` with an explanatory ``error_message``.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Sequence

from chesshawk import scoring
from chesshawk.events import EventBus, EventType
from chesshawk.models import (
    LoadOutcome,
    MoveResult,
    Puzzle,
    PuzzleFilter,
    Session,
    SessionStatus,
    SolutionResult,
    UserSettings,
)
from chesshawk.progress import ProgressTracker
from chesshawk.repository import PuzzleRepository
from chesshawk.selector import AdaptiveSelector
from chesshawk.validator import SolutionValidator

logger = logging.getLogger(__name__)

INCORRECT_MOVE_MESSAGE = "Incorrect move, try again"
NOT_FOUND = "not-found"
NONE_AVAILABLE = "none-available"

_ACTIVE = (SessionStatus.PLAYING, SessionStatus.PAUSED)


class SessionManager:
    """Runs one user's puzzle sessions, one at a time."""

    def __init__(
        self,
        repository: PuzzleRepository,
        tracker: ProgressTracker,
        user_id: str = "local",
        selector: AdaptiveSelector | None = None,
        validator: SolutionValidator | None = None,
        events: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._tracker = tracker
        self._selector = selector or AdaptiveSelector(repository)
        self._validator = validator or SolutionValidator()
        self._clock = clock
        self.user_id = user_id
        self.events = events or EventBus()
        self.session: Session | None = None
        self.error_message: str | None = None
        self._loading = False

    @property
    def status(self) -> SessionStatus:
        if self._loading:
            return SessionStatus.LOADING
        if self.session is None:
            return SessionStatus.MENU
        return self.session.status

    @property
    def settings(self) -> UserSettings:
        return self._tracker.get_settings(self.user_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_puzzle(self, puzzle_id: str | None = None) -> LoadOutcome:
        """Start a session on ``puzzle_id``, or on the selector's choice.

        A puzzle still in progress is abandoned first and recorded as a
        failure.

        Returns:
            LoadOutcome with the puzzle, or with reason ``not-found`` /
            ``none-available`` (the machine is then back in ``menu``).
        """
        if puzzle_id is not None:
            return self._load(
                lambda previous: self._repository.get(puzzle_id),
                NOT_FOUND,
                f"Puzzle not found: {puzzle_id}",
            )
        return self._load(
            lambda previous: self._selector.select_next(
                self.user_id,
                self.settings,
                self._tracker.get_statistics(self.user_id),
                exclude_ids=[previous] if previous else (),
            ),
            NONE_AVAILABLE,
            "No puzzle available",
        )

    def load_random_puzzle(
        self, theme: str | None = None, difficulty: str | None = None
    ) -> LoadOutcome:
        """Start a session on a uniformly random puzzle, ignoring history.

        Unlike ``load_puzzle`` this bypasses the adaptive selector. A puzzle
        in progress is abandoned first.
        """
        return self._load(
            lambda previous: self._repository.random_pick(
                PuzzleFilter(theme=theme, difficulty=difficulty)
            ),
            NONE_AVAILABLE,
            "No puzzle available",
        )

    def load_next_puzzle(self) -> LoadOutcome:
        """Move on to the selector's next pick.

        Meant for ``solved``/``failed``; like ``load_puzzle``, a puzzle still
        in progress is abandoned and recorded as a failure.
        """
        return self.load_puzzle()

    def _load(
        self,
        pick: Callable[[str | None], Puzzle | None],
        reason: str,
        message: str,
    ) -> LoadOutcome:
        previous = self.session.puzzle.id if self.session else None
        if self.status in _ACTIVE:
            self._finalize(success=False)

        self._loading = True
        try:
            puzzle = pick(previous)
        finally:
            self._loading = False

        if puzzle is None:
            self.session = None
            self.error_message = message
            logger.info("Load failed for %s: %s", self.user_id, message)
            return LoadOutcome(None, reason)

        self._start(puzzle)
        return LoadOutcome(puzzle)

    def reset_puzzle(self) -> bool:
        """Restart the current puzzle from its first position."""
        if self.status not in _ACTIVE:
            return False
        self._start(self.session.puzzle)
        return True

    def return_to_menu(self) -> None:
        """Leave the current session. A puzzle in progress counts as failed."""
        if self.status in _ACTIVE:
            self._finalize(success=False)
        self.session = None
        self.error_message = None

    def _start(self, puzzle: Puzzle) -> None:
        self.session = Session(
            puzzle=puzzle,
            position=puzzle.fen,
            started_at=self._clock(),
        )
        self.error_message = None
        logger.info("User %s started puzzle %s", self.user_id, puzzle.id)
        self.events.emit(
            EventType.PUZZLE_LOADED,
            puzzle_id=puzzle.id,
            fen=puzzle.fen,
            theme=puzzle.theme,
            difficulty=puzzle.difficulty,
            rating=puzzle.rating,
        )

    # ------------------------------------------------------------------
    # Playing
    # ------------------------------------------------------------------

    def make_move(self, move: str | Mapping) -> MoveResult:
        """Submit a player move.

        Outside ``playing`` the move is ignored and not counted.
        """
        if self.status is not SessionStatus.PLAYING:
            if self.status is SessionStatus.PAUSED:
                self.error_message = "Puzzle is paused"
            else:
                self.error_message = "No puzzle in progress"
            return MoveResult(accepted=False)

        session = self.session
        result = self._validator.accept(session, move)

        if not result.accepted:
            session.error_message = INCORRECT_MOVE_MESSAGE
            self.events.emit(
                EventType.MOVE_REJECTED,
                puzzle_id=session.puzzle.id,
                attempts=session.attempts_count,
            )
            return result

        session.error_message = None
        self.events.emit(
            EventType.MOVE_ACCEPTED,
            puzzle_id=session.puzzle.id,
            move=result.move,
            reply=result.reply,
            fen=session.position,
        )
        if result.session_complete:
            self._finalize(success=True)
        return result

    def show_hint(self) -> str | None:
        """Reveal the next expected solution move without playing it."""
        if self.status is not SessionStatus.PLAYING:
            return None
        session = self.session
        if session.is_complete:
            return None
        session.hints_used += 1
        hint = session.puzzle.solution[session.expected_index]
        self.events.emit(
            EventType.HINT_REVEALED,
            puzzle_id=session.puzzle.id,
            hint=hint,
            hints_used=session.hints_used,
        )
        return hint

    def give_up(self) -> bool:
        """Abandon the current puzzle and record a failure."""
        if self.status not in _ACTIVE:
            return False
        self._finalize(success=False)
        return True

    def submit_solution(
        self,
        puzzle_id: str,
        moves: Sequence[str],
        time_spent_seconds: float,
        attempts: int = 1,
    ) -> SolutionResult | None:
        """Grade a whole solution line played outside the session machine.

        The line is replayed from the puzzle's start, scored and recorded
        for the user. The current session, if any, is left alone.

        Args:
            puzzle_id: Puzzle the line was played on.
            moves: Full solution line, or only the player's moves.
            time_spent_seconds: Solving time reported by the caller.
            attempts: Attempts reported by the caller.

        Returns:
            SolutionResult with the score and the selector's next puzzle id,
            or None if ``puzzle_id`` is unknown.

        Raises:
            ValueError: If time or attempts is negative.
        """
        puzzle = self._repository.get(puzzle_id)
        if puzzle is None:
            logger.info("Submission for unknown puzzle %s", puzzle_id)
            return None

        seconds = int(time_spent_seconds)
        success = self._validator.replay(puzzle, moves)
        points = scoring.score(puzzle, seconds, attempts, success)
        self.events.emit(
            EventType.PUZZLE_SOLVED if success else EventType.PUZZLE_FAILED,
            puzzle_id=puzzle.id,
            score=points,
            time_spent=seconds,
            attempts=attempts,
            hints_used=0,
        )
        stats = self._tracker.record_outcome(
            self.user_id, puzzle, success, seconds, attempts, points
        )
        self.events.emit(EventType.STATISTICS_UPDATED, user_id=self.user_id, statistics=stats.to_dict())

        following = self._selector.select_next(
            self.user_id, self.settings, stats, exclude_ids=[puzzle.id]
        )
        logger.info(
            "User %s submitted %s for %s (score %d)",
            self.user_id, "a solution" if success else "a wrong line", puzzle.id, points,
        )
        return SolutionResult(
            success=success,
            time_spent=seconds,
            attempts=attempts,
            score=points,
            next_puzzle_id=following.id if following else None,
        )

    def pause_game(self) -> bool:
        if self.status is not SessionStatus.PLAYING:
            return False
        self.session.status = SessionStatus.PAUSED
        self.session.paused_at = self._clock()
        return True

    def resume_game(self) -> bool:
        if self.status is not SessionStatus.PAUSED:
            return False
        session = self.session
        session.paused_seconds += self._clock() - session.paused_at
        session.paused_at = None
        session.status = SessionStatus.PLAYING
        return True

    def elapsed_seconds(self) -> int:
        """Solving time so far, excluding paused stretches."""
        session = self.session
        if session is None:
            return 0
        if session.is_finished:
            return session.time_spent_seconds
        now = session.paused_at if session.paused_at is not None else self._clock()
        return max(0, int(now - session.started_at - session.paused_seconds))

    def _finalize(self, success: bool) -> None:
        session = self.session
        if session.paused_at is not None:
            session.paused_seconds += self._clock() - session.paused_at
            session.paused_at = None
        session.time_spent_seconds = max(
            0, int(self._clock() - session.started_at - session.paused_seconds)
        )
        session.status = SessionStatus.SOLVED if success else SessionStatus.FAILED
        session.score = scoring.score(
            session.puzzle, session.time_spent_seconds, session.attempts_count, success
        )

        event = EventType.PUZZLE_SOLVED if success else EventType.PUZZLE_FAILED
        self.events.emit(
            event,
            puzzle_id=session.puzzle.id,
            score=session.score,
            time_spent=session.time_spent_seconds,
            attempts=session.attempts_count,
            hints_used=session.hints_used,
        )

        stats = self._tracker.record_outcome(
            self.user_id,
            session.puzzle,
            success,
            session.time_spent_seconds,
            session.attempts_count,
            session.score,
        )
        logger.info(
            "User %s %s puzzle %s (score %d)",
            self.user_id, "solved" if success else "failed",
            session.puzzle.id, session.score,
        )
        self.events.emit(EventType.STATISTICS_UPDATED, user_id=self.user_id, statistics=stats.to_dict())

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> dict:
        """JSON-ready view of the current state for UI collaborators."""
        session = self.session
        state: dict = {
            "status": self.status.value,
            "user_id": self.user_id,
            "error_message": self.error_message,
            "puzzle": None,
        }
        if session is None:
            return state

        puzzle = session.puzzle
        state.update({
            "puzzle": {
                "id": puzzle.id,
                "theme": puzzle.theme,
                "difficulty": puzzle.difficulty,
                "rating": puzzle.rating,
                "points": puzzle.points,
                "title": puzzle.title,
                "description": puzzle.description,
                "start_fen": puzzle.fen,
                "solution_length": len(puzzle.solution),
            },
            "fen": session.position,
            "move_history": list(session.move_history),
            "expected_index": session.expected_index,
            "attempts": session.attempts_count,
            "hints_used": session.hints_used,
            "time_spent": self.elapsed_seconds(),
            "score": session.score,
            "error_message": session.error_message or self.error_message,
        })
        if session.is_finished:
            state["solution"] = list(puzzle.solution)
        return state
