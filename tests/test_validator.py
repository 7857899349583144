"""Tests for solution validation, forced replies and promotion matching."""

from __future__ import annotations

import pytest

from chesshawk.config import PROJECT_ROOT
from chesshawk.models import Session, SessionStatus
from chesshawk.repository import PuzzleRepository
from chesshawk.rules import CanonicalMove, PythonChessRules
from chesshawk.validator import SolutionValidator

from conftest import BACK_RANK_FEN, PETROV_FEN, PROMOTION_FEN, make_puzzle


def _session(**overrides) -> Session:
    puzzle = make_puzzle(**overrides)
    return Session(puzzle=puzzle, position=puzzle.fen, started_at=0.0)


@pytest.fixture
def validator():
    return SolutionValidator()


def _back_rank_session() -> Session:
    return _session(
        id="br",
        fen=BACK_RANK_FEN,
        solution=("Re8+", "Rxe8", "Rxe8#"),
        difficulty="intermediate",
        rating=1400,
    )


class TestSingleMove:

    def test_correct_move_solves(self, validator):
        session = _session()
        result = validator.accept(session, "Nxe5")
        assert result.accepted
        assert result.session_complete
        assert result.move == "f3e5"
        assert result.reply is None
        assert session.status is SessionStatus.SOLVED
        assert session.expected_index == 1
        assert session.attempts_count == 1
        assert session.move_history == ["f3e5"]
        assert session.position != PETROV_FEN

    def test_uci_spelling_accepted(self, validator):
        assert validator.accept(_session(), "f3e5").accepted

    def test_mapping_accepted(self, validator):
        assert validator.accept(_session(), {"from": "f3", "to": "e5"}).accepted


class TestRejection:

    @pytest.mark.parametrize("move", ["e4", "d4", "garbage", "", "0000"])
    def test_only_attempts_change(self, validator, move):
        session = _session()
        result = validator.accept(session, move)
        assert not result.accepted
        assert not result.session_complete
        assert session.attempts_count == 1
        assert session.expected_index == 0
        assert session.move_history == []
        assert session.position == PETROV_FEN
        assert session.status is SessionStatus.PLAYING

    def test_retry_after_mistake(self, validator):
        session = _session()
        validator.accept(session, "d4")
        validator.accept(session, "Nc3")
        result = validator.accept(session, "Nxe5")
        assert result.session_complete
        assert session.attempts_count == 3

    def test_broken_solution_entry_rejects(self, validator):
        # Solution move is not legal in the position
        session = _session(solution=("Qh5",))
        assert not validator.accept(session, "Nxe5").accepted
        assert session.attempts_count == 1


class TestForcedReplies:

    def test_full_replay_completes(self, validator):
        session = _back_rank_session()

        first = validator.accept(session, "Re8+")
        assert first.accepted
        assert not first.session_complete
        assert first.reply == "d8e8"
        assert session.expected_index == 2
        assert session.move_history == ["e2e8", "d8e8"]

        last = validator.accept(session, "e1e8")
        assert last.session_complete
        assert last.reply is None
        assert session.expected_index == 3
        assert session.move_history == ["e2e8", "d8e8", "e1e8"]
        assert session.status is SessionStatus.SOLVED
        assert session.attempts_count == 2

    def test_wrong_move_mid_line(self, validator):
        session = _back_rank_session()
        validator.accept(session, "Re8+")
        position = session.position
        result = validator.accept(session, "h3")
        assert not result.accepted
        assert session.position == position
        assert session.expected_index == 2
        assert session.attempts_count == 2

    def test_expected_index_only_moves_forward(self, validator):
        session = _back_rank_session()
        seen = [session.expected_index]
        for move in ["h3", "Re8+", "h3", "Rxe8#"]:
            validator.accept(session, move)
            seen.append(session.expected_index)
        assert seen == sorted(seen)


class TestPromotion:

    def test_exact_piece(self, validator):
        session = _session(fen=PROMOTION_FEN, solution=("e8=Q",))
        assert validator.accept(session, "e7e8q").session_complete

    def test_wrong_piece_rejected(self, validator):
        session = _session(fen=PROMOTION_FEN, solution=("e8=Q",))
        assert not validator.accept(session, "e8=N").accepted

    def test_candidate_must_name_piece(self, validator):
        session = _session(fen=PROMOTION_FEN, solution=("e8=Q",))
        assert not validator.accept(session, "e7e8").accepted

    def test_unspecified_solution_accepts_any_piece(self, validator):
        session = _session(fen=PROMOTION_FEN, solution=("e7e8",))
        assert validator.accept(session, "e8=N").session_complete
        assert session.move_history == ["e7e8n"]

    def test_strict_promotion(self):
        strict = SolutionValidator(strict_promotion=True)
        session = _session(fen=PROMOTION_FEN, solution=("e7e8",))
        assert not strict.accept(session, "e8=N").accepted
        assert strict.accept(session, "e8=Q").session_complete


class TestMatches:

    def test_plain_move_ignores_promotion_field(self, validator):
        expected = CanonicalMove("f3", "e5")
        assert validator.matches(CanonicalMove("f3", "e5"), expected)
        assert not validator.matches(CanonicalMove("f3", "d4"), expected)

    def test_expected_move_after_completion(self, validator):
        session = _session()
        validator.accept(session, "Nxe5")
        assert validator.expected_move(session) is None


# ---------------------------------------------------------------------------
# Shipped collection
# ---------------------------------------------------------------------------

_SHIPPED = list(
    PuzzleRepository.from_file(
        PROJECT_ROOT / "data" / "problems.json", rules=PythonChessRules()
    )
)


class TestShippedCollection:

    def test_collection_not_empty(self):
        assert len(_SHIPPED) == 8

    @pytest.mark.parametrize("puzzle", _SHIPPED, ids=lambda p: p.id)
    def test_player_moves_complete_the_puzzle(self, validator, puzzle):
        session = Session(puzzle=puzzle, position=puzzle.fen, started_at=0.0)
        results = [validator.accept(session, move) for move in puzzle.solution[::2]]
        assert all(result.accepted for result in results)
        assert results[-1].session_complete
        assert session.status is SessionStatus.SOLVED
        assert len(session.move_history) == len(puzzle.solution)

    @pytest.mark.parametrize("puzzle", _SHIPPED, ids=lambda p: p.id)
    def test_full_line_replays(self, validator, puzzle):
        assert validator.replay(puzzle, list(puzzle.solution))


class TestReplay:

    def test_player_moves_only(self, validator):
        puzzle = _back_rank_session().puzzle
        assert validator.replay(puzzle, ["Re8+", "Rxe8#"])

    def test_wrong_reply_in_full_line(self, validator):
        puzzle = _back_rank_session().puzzle
        assert not validator.replay(puzzle, ["Re8+", "Kh7", "Rxe8#"])

    def test_incomplete_line(self, validator):
        puzzle = _back_rank_session().puzzle
        assert not validator.replay(puzzle, ["Re8+"])
        assert not validator.replay(puzzle, [])

    def test_extra_moves(self, validator):
        puzzle = _session().puzzle
        assert not validator.replay(puzzle, ["Nxe5", "d6"])
