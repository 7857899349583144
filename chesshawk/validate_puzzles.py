#!/usr/bin/env python3
"""Validate a puzzle collection for required fields, rating bands and legality.

Supports two modes:
- Default: field, band and FEN/solution legality checks via python-chess
- --no-legality: field and band checks only (fast, no move replay)

Band mismatches are data-quality warnings; pass --strict to fail on them.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from chesshawk.config import TrainerConfig
from chesshawk.repository import LoadReport, PuzzleRepository
from chesshawk.rules import PythonChessRules


def validate_file(filepath: Path, check_legality: bool = True) -> LoadReport:
    """Validate a collection file. Returns the repository's load report."""
    rules = PythonChessRules() if check_legality else None
    return PuzzleRepository.from_file(filepath, rules=rules).report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a puzzle collection")
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Puzzle collection JSON (default: $CHESS_HAWK_PUZZLES or data/problems.json)",
    )
    parser.add_argument(
        "--no-legality",
        action="store_true",
        help="Skip replaying FENs and solution moves",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat rating/difficulty band mismatches as failures",
    )
    args = parser.parse_args(argv)

    filepath = Path(args.path) if args.path else TrainerConfig.from_env().puzzles_file
    if not filepath.exists():
        print(f"Error: {filepath} not found", file=sys.stderr)
        return 1

    report = validate_file(filepath, check_legality=not args.no_legality)

    print("=== Puzzle Validation ===")
    status = "PASS" if report.ok and report.loaded else "FAIL"
    print(f"  {status}: {filepath.name} ({report.loaded}/{report.total} puzzles valid)")

    if report.warnings:
        print(f"\n{len(report.warnings)} data-quality warning(s):")
        for warn in report.warnings:
            print(f"  - {warn}")

    if report.errors:
        print(f"\n{len(report.errors)} error(s):")
        for err in report.errors:
            print(f"  - {err}")
        return 1

    if not report.loaded:
        print("\nNo puzzles found.")
        return 1

    if args.strict and report.warnings:
        print("\nFailing on data-quality warnings (--strict).")
        return 1

    print("\nAll puzzles valid!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
