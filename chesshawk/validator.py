"""Solution validator: checks candidate moves against a puzzle's solution.

Solution lines alternate player move, forced opponent reply, player move,
and so on. After a correct player move the forced reply (if any) is applied
automatically, so the player is only ever asked for even-indexed entries.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from chesshawk.models import MoveResult, Puzzle, Session, SessionStatus
from chesshawk.rules import CanonicalMove, ChessRules, PythonChessRules, move_text

logger = logging.getLogger(__name__)


class SolutionValidator:
    """Matches candidate moves against the expected solution entry.

    By default an unspecified promotion piece in the solution matches any
    promotion to the same square. ``strict_promotion=True`` requires the
    exact piece, treating an unspecified solution piece as a queen.
    """

    def __init__(
        self, rules: ChessRules | None = None, strict_promotion: bool = False
    ) -> None:
        self._rules = rules or PythonChessRules()
        self._strict_promotion = strict_promotion

    def expected_move(self, session: Session) -> CanonicalMove | None:
        """Canonical form of the solution entry the player must find next."""
        if session.is_complete:
            return None
        entry = session.puzzle.solution[session.expected_index]
        expected = self._rules.parse(
            session.position, entry, allow_implicit_promotion=True
        )
        if expected is None:
            logger.warning(
                "Puzzle %s: solution move '%s' at index %d is not legal in %s",
                session.puzzle.id, entry, session.expected_index, session.position,
            )
        return expected

    def matches(self, candidate: CanonicalMove, expected: CanonicalMove) -> bool:
        if not candidate.same_squares(expected):
            return False
        if not expected.is_promotion:
            return True
        # A promotion candidate must name its piece
        if candidate.promotion is None:
            return False
        if expected.promotion is None:
            return not self._strict_promotion or candidate.promotion == "q"
        return candidate.promotion == expected.promotion

    def accept(self, session: Session, candidate_move: str | Mapping) -> MoveResult:
        """Check ``candidate_move`` and advance the session when it is right.

        Every call counts as one attempt. A wrong, illegal or unreadable
        move leaves ``move_history``, ``expected_index`` and ``position``
        untouched.

        Args:
            session: Session in progress; mutated in place.
            candidate_move: Move text (SAN or UCI) or a board-adapter mapping.

        Returns:
            MoveResult with ``accepted`` and ``session_complete``; ``reply``
            carries the auto-applied opponent move, if one was played.
        """
        session.attempts_count += 1

        text = move_text(candidate_move)
        if not self._step(session, text):
            logger.debug("Puzzle %s: rejected '%s'", session.puzzle.id, text)
            return MoveResult(accepted=False)

        played = session.move_history[-1]
        reply = None
        if not session.is_complete and session.expected_index % 2 == 1:
            reply = self._play_forced_reply(session)

        complete = session.is_complete
        if complete:
            session.status = SessionStatus.SOLVED
        return MoveResult(
            accepted=True,
            session_complete=complete,
            move=played,
            reply=reply,
        )

    def replay(self, puzzle: Puzzle, moves: Sequence[str]) -> bool:
        """Check a whole submitted line against ``puzzle`` from its start.

        ``moves`` is either the full solution line, forced replies included,
        or only the player's moves, in which case replies are auto-applied.

        Returns:
            True if the line reaches the end of the solution.
        """
        session = Session(puzzle=puzzle, position=puzzle.fen, started_at=0.0)
        if len(moves) == len(puzzle.solution):
            for move in moves:
                if not self._step(session, move_text(move)):
                    return False
            return True
        for move in moves:
            if session.is_complete or not self.accept(session, move).accepted:
                return False
        return session.is_complete

    def _step(self, session: Session, text: str) -> bool:
        expected = self.expected_move(session)
        if expected is None:
            return False
        candidate = self._rules.parse(session.position, text)
        if candidate is None or not self.matches(candidate, expected):
            return False
        self._play(session, candidate)
        return True

    def _play(self, session: Session, move: CanonicalMove) -> None:
        session.position = self._rules.apply(session.position, move)
        session.move_history.append(move.uci())
        session.expected_index += 1

    def _play_forced_reply(self, session: Session) -> str | None:
        reply = self.expected_move(session)
        if reply is None:
            return None
        if reply.is_promotion and reply.promotion is None:
            reply = CanonicalMove(reply.from_square, reply.to_square, "q", True)
        self._play(session, reply)
        return reply.uci()
