#!/usr/bin/env python3
"""Export a user's progress report as markdown, or their data as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from rich.console import Console
from rich.markdown import Markdown

from chesshawk.config import TrainerConfig
from chesshawk.models import DIFFICULTIES, UserStatistics
from chesshawk.progress import ProgressTracker
from chesshawk.selector import weakest_theme
from chesshawk.storage import JsonFileStorage


def export_progress(stats: UserStatistics | None, user_id: str = "local") -> str:
    """Render statistics as a markdown progress report."""
    if stats is None:
        return "No progress data found. Solve some puzzles first!"

    lines = [f"# Chess Hawk Progress Report ({user_id})", ""]

    lines.append("## Overview")
    lines.append(f"- Puzzles solved: {stats.puzzles_solved}")
    lines.append(f"- Total moves attempted: {stats.total_attempts}")
    lines.append(f"- Total score: {stats.total_score}")
    lines.append(f"- Current streak: {stats.streak_current}")
    lines.append(f"- Best streak: {stats.streak_best}")
    minutes, seconds = divmod(stats.total_time_spent, 60)
    lines.append(f"- Time spent: {minutes}m {seconds}s")
    if stats.last_solved:
        lines.append(f"- Last solved: {stats.last_solved[:10]}")
    lines.append("")

    if stats.theme_stats:
        lines.append("## Themes")
        lines.append("")
        lines.append("| Theme | Solved | Played | Success | Avg time |")
        lines.append("|---|---|---|---|---|")
        for name, bucket in sorted(stats.theme_stats.items()):
            lines.append(
                f"| {name} | {bucket.solved} | {bucket.attempts} "
                f"| {bucket.success_rate * 100:.0f}% | {bucket.average_time:.0f}s |"
            )
        lines.append("")

    if stats.difficulty_stats:
        lines.append("## Difficulty")
        for name in DIFFICULTIES:
            bucket = stats.difficulty_stats.get(name)
            if bucket is None:
                continue
            lines.append(
                f"- {name}: {bucket.solved}/{bucket.attempts} "
                f"({bucket.success_rate:.0f}%)"
            )
        lines.append("")

    weak = weakest_theme(stats)
    if weak is not None:
        lines.append("## Areas for Improvement")
        lines.append(f"- Weakest theme: {weak}")
        lines.append("")

    return "\n".join(lines)


async def _load(config: TrainerConfig, user_id: str) -> ProgressTracker:
    tracker = ProgressTracker(JsonFileStorage(config.users_dir))
    await tracker.load_user(user_id)
    return tracker


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export Chess Hawk progress")
    parser.add_argument(
        "command",
        choices=["progress", "data"],
        help="progress: markdown report; data: JSON export of statistics and settings",
    )
    parser.add_argument("--user", default=None, help="User id (default: $CHESS_HAWK_USER or local)")
    parser.add_argument(
        "--raw", action="store_true", help="Print plain markdown instead of rendering it"
    )
    args = parser.parse_args(argv)

    config = TrainerConfig.from_env()
    user_id = args.user or config.user_id
    tracker = asyncio.run(_load(config, user_id))

    if args.command == "data":
        print(json.dumps(tracker.export_user_data(user_id), indent=2))
        return 0

    report = export_progress(tracker.get_statistics(user_id), user_id)
    if args.raw:
        print(report)
    else:
        Console().print(Markdown(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
