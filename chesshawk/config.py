"""Paths and environment overrides for Chess Hawk.

Defaults live under the project's ``data/`` directory. Each can be
overridden through an environment variable:

    CHESS_HAWK_DATA_DIR   directory for user blobs and session sync files
    CHESS_HAWK_PUZZLES    puzzle collection JSON file
    CHESS_HAWK_USER       user id the MCP server plays as
    CHESS_HAWK_VALIDATE   set to 1 to schema-check MCP responses
    CHESS_HAWK_LOG_LEVEL  logging level for the MCP server (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_PUZZLES_FILE = DEFAULT_DATA_DIR / "problems.json"
DEFAULT_USER_ID = "local"


@dataclass(frozen=True)
class TrainerConfig:
    data_dir: Path = DEFAULT_DATA_DIR
    puzzles_file: Path = DEFAULT_PUZZLES_FILE
    user_id: str = DEFAULT_USER_ID
    validate_responses: bool = False
    log_level: str = "INFO"

    @property
    def users_dir(self) -> Path:
        return self.data_dir / "users"

    @property
    def session_file(self) -> Path:
        return self.data_dir / "current_session.json"

    @classmethod
    def from_env(cls, environ: dict | None = None) -> TrainerConfig:
        env = os.environ if environ is None else environ
        data_dir = Path(env.get("CHESS_HAWK_DATA_DIR", DEFAULT_DATA_DIR))
        puzzles = env.get("CHESS_HAWK_PUZZLES")
        return cls(
            data_dir=data_dir,
            puzzles_file=Path(puzzles) if puzzles else data_dir / "problems.json",
            user_id=env.get("CHESS_HAWK_USER", DEFAULT_USER_ID),
            validate_responses=env.get("CHESS_HAWK_VALIDATE") == "1",
            log_level=env.get("CHESS_HAWK_LOG_LEVEL", "INFO").upper(),
        )
