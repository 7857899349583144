"""Chess-rules adapter for the puzzle engine.

The engine never decides legality itself. Everything that needs chess
knowledge goes through a ``ChessRules`` object; ``PythonChessRules`` is the
python-chess backed implementation.

Moves are compared in canonical form ``(from_square, to_square, promotion)``
so that SAN (``Nxe5``, ``e8=Q``, ``O-O``) and long algebraic / UCI
(``f3e5``, ``e7e8q``) spellings of the same transition are equal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol

import chess


@dataclass(frozen=True)
class CanonicalMove:
    """A move reduced to its squares and optional promotion piece.

    ``promotion`` is ``None`` either for non-promotion moves or for a
    promotion whose piece was left unspecified.
    """

    from_square: str
    to_square: str
    promotion: str | None = None
    is_promotion: bool = False

    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def same_squares(self, other: CanonicalMove) -> bool:
        return (
            self.from_square == other.from_square
            and self.to_square == other.to_square
        )


class ChessRules(Protocol):
    """What the engine needs from a chess-rules collaborator."""

    def parse(
        self, fen: str, move: str, allow_implicit_promotion: bool = False
    ) -> CanonicalMove | None:
        """Return the canonical form of a legal move, or None."""

    def apply(self, fen: str, move: CanonicalMove) -> str:
        """Return the FEN reached after playing ``move`` from ``fen``."""

    def to_san(self, fen: str, move: CanonicalMove) -> str:
        """Return the SAN spelling of ``move`` in ``fen``."""


def move_text(move: str | Mapping) -> str:
    """Coerce a board-adapter move into text notation.

    Board adapters may hand over either a string or a mapping with
    ``from``/``to`` (and optional ``promotion``) keys, or ``san``/``lan``.
    """
    if isinstance(move, str):
        return move.strip()
    if isinstance(move, Mapping):
        if move.get("from") and move.get("to"):
            return f"{move['from']}{move['to']}{move.get('promotion') or ''}"
        for key in ("lan", "san", "uci"):
            if move.get(key):
                return str(move[key]).strip()
    return ""


class PythonChessRules:
    """ChessRules implementation backed by python-chess."""

    def parse(
        self, fen: str, move: str, allow_implicit_promotion: bool = False
    ) -> CanonicalMove | None:
        """Canonicalize ``move`` in ``fen``.

        Tries UCI first, then SAN. Unrecognized notation, illegal moves and
        ambiguous SAN all yield ``None``.

        Args:
            fen: Position the move is played from.
            move: Move text in SAN or UCI.
            allow_implicit_promotion: Accept a pawn move to the last rank
                that names no promotion piece. Used for solution entries.

        Returns:
            Canonical move, or None if the move is not legal here.
        """
        try:
            board = chess.Board(fen)
        except ValueError:
            return None

        text = move.strip()
        if not text:
            return None

        parsed = self._parse_on_board(board, text)
        if parsed is not None:
            return _canonical(parsed)

        if allow_implicit_promotion:
            queened = self._parse_on_board(board, _with_queen(text))
            if queened is not None:
                return CanonicalMove(
                    from_square=chess.square_name(queened.from_square),
                    to_square=chess.square_name(queened.to_square),
                    promotion=None,
                    is_promotion=True,
                )
        return None

    def apply(self, fen: str, move: CanonicalMove) -> str:
        """Play ``move`` and return the resulting FEN.

        An unspecified promotion piece is played as a queen.

        Raises:
            ValueError: If the move is not legal in ``fen``.
        """
        board = chess.Board(fen)
        board.push(self._to_legal(board, move))
        return board.fen()

    def to_san(self, fen: str, move: CanonicalMove) -> str:
        board = chess.Board(fen)
        return board.san(self._to_legal(board, move))

    def check_line(self, fen: str, moves: list[str]) -> list[str]:
        """Replay a solution line and describe the first problem found.

        Returns:
            List of error messages (empty when the whole line is legal).
        """
        try:
            board = chess.Board(fen)
        except ValueError as exc:
            return [f"invalid FEN '{fen}': {exc}"]
        if not board.is_valid():
            return [f"FEN is not a legal position: '{fen}'"]

        for step, text in enumerate(moves):
            canonical = self.parse(board.fen(), text, allow_implicit_promotion=True)
            if canonical is None:
                return [f"illegal move '{text}' at step {step} (FEN: {board.fen()})"]
            board.push(self._to_legal(board, canonical))
        return []

    @staticmethod
    def _parse_on_board(board: chess.Board, text: str) -> chess.Move | None:
        try:
            move = board.parse_uci(text.lower())
        except ValueError:
            pass
        else:
            # Null moves ("0000", "--") parse but are never legal here
            return move or None
        try:
            return board.parse_san(text) or None
        except ValueError:
            return None

    @staticmethod
    def _to_legal(board: chess.Board, move: CanonicalMove) -> chess.Move:
        promotion = move.promotion
        if move.is_promotion and promotion is None:
            promotion = "q"
        candidate = chess.Move.from_uci(
            f"{move.from_square}{move.to_square}{promotion or ''}"
        )
        if candidate not in board.legal_moves:
            raise ValueError(f"Illegal move {candidate.uci()} in {board.fen()}")
        return candidate


def _canonical(move: chess.Move) -> CanonicalMove:
    promotion = chess.piece_symbol(move.promotion) if move.promotion else None
    return CanonicalMove(
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        promotion=promotion,
        is_promotion=move.promotion is not None,
    )


def _with_queen(text: str) -> str:
    """Append a queen promotion to SAN or UCI move text."""
    stripped = text.rstrip("+#!?")
    if len(stripped) == 4 and stripped[:2].isalnum() and stripped[1].isdigit():
        return stripped + "q"
    return stripped + "=Q"
