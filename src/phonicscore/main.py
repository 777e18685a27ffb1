"""CLI entrypoint for inspecting and managing phonics game progress."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from pathlib import Path

from .achievements import ACHIEVEMENTS
from .errors import NotFoundError, PersistenceError
from .service import GameService
from .storage import SqliteBackend

PrintFn = Callable[[str], None]
DEFAULT_DB_PATH = Path(".phonicscore") / "progress.db"


def _service(db_path: Path) -> GameService:
    """Create app service backed by the local progress database."""
    return GameService(backend=SqliteBackend(db_path))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phonicscore", description="Phonics game curriculum and progress tools")
    parser.add_argument("--db", type=Path, default=DEFAULT_DB_PATH, help="progress database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("stages", help="list curriculum stages")
    commands.add_parser("status", help="show per-stage progress")
    commands.add_parser("daily", help="show today's daily challenge and streaks")
    words = commands.add_parser("words", help="list a stage's battle words")
    words.add_argument("stage_id", type=int)
    reset = commands.add_parser("reset", help="wipe all progress")
    reset.add_argument("--yes", action="store_true", help="confirm the reset")
    export = commands.add_parser("export", help="write progress to a JSON file")
    export.add_argument("path", type=Path)
    import_ = commands.add_parser("import", help="replace progress from a JSON file")
    import_.add_argument("path", type=Path)
    return parser


def run(argv: list[str] | None = None, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    command = args.command or "status"

    try:
        service = _service(args.db)
    except PersistenceError as exc:
        print_fn(f"Error: {exc}")
        return 1

    try:
        if command == "stages":
            _stages_flow(service, print_fn)
        elif command == "status":
            _status_flow(service, print_fn)
        elif command == "daily":
            _daily_flow(service, print_fn)
        elif command == "words":
            _words_flow(service, args.stage_id, print_fn)
        elif command == "reset":
            return _reset_flow(service, args.yes, print_fn)
        elif command == "export":
            summary = service.export_progress(args.path)
            print_fn(f"Exported {summary.stage_count} stages to {summary.path}.")
        elif command == "import":
            summary = service.import_progress(args.path)
            print_fn(f"Imported {summary.stage_count} stages from {summary.path}.")
            if summary.save is not None and not summary.save.saved:
                print_fn("Warning: progress could not be saved.")
    except (NotFoundError, ValueError) as exc:
        print_fn(f"Error: {exc}")
        return 1
    finally:
        service.close()
    return 0


def _stages_flow(service: GameService, print_fn: PrintFn) -> None:
    """Print catalog stages."""
    stages = service.catalog.list_stages()
    name_width = max(len("Name"), max(len(stage.name) for stage in stages))
    header = f"{'#':>2} {'Name':<{name_width}} Pattern"
    print_fn(header)
    print_fn("-" * len(header))
    for stage in stages:
        print_fn(f"{stage.id:>2} {stage.name:<{name_width}} {stage.pattern}")


def _status_flow(service: GameService, print_fn: PrintFn) -> None:
    """Print per-stage progress and totals."""
    states = service.list_stage_states()
    name_width = max(len("Stage"), max(len(state.stage.name) for state in states))
    header = f"{'#':>2} {'Stage':<{name_width}} {'Status':<8} {'Stars':<5} {'Best':>6} {'Mastered':>8} {'Runs':>4} Level"
    print_fn(header)
    print_fn("-" * len(header))
    for state in states:
        summary = state.summary
        status = "open" if summary.unlocked else "locked"
        stars = "*" * summary.stars + "." * (3 - summary.stars)
        print_fn(
            f"{state.stage.id:>2} "
            f"{state.stage.name:<{name_width}} "
            f"{status:<8} "
            f"{stars:<5} "
            f"{summary.best_score:>6} "
            f"{summary.mastered_count:>8} "
            f"{summary.attempts:>4} "
            f"{state.difficulty_label}"
        )
    progress = service.progress
    print_fn(f"\nCurrency: {progress.get_currency()} (lifetime {progress.get_lifetime_currency()})")
    print_fn(f"Words blended: {progress.get_total_words_mastered()}")
    earned = sum(1 for achievement in ACHIEVEMENTS if progress.has_achievement(achievement.id))
    print_fn(f"Achievements: {earned}/{len(ACHIEVEMENTS)}")
    if progress.load_status == "repaired":
        print_fn("Note: saved progress was unreadable and has been replaced with a fresh start.")


def _words_flow(service: GameService, stage_id: int, print_fn: PrintFn) -> None:
    """Print the battle words of one stage with mastery marks."""
    stage = service.catalog.get_stage(stage_id)
    mastered = service.progress.get_mastered_words(stage_id)
    print_fn(f"{stage.name}: {stage.pattern}")
    for word in service.catalog.get_battle_words(stage_id):
        mark = "*" if word.text in mastered else " "
        print_fn(f"{mark} {word.text:<8} {'-'.join(word.phonemes):<12} {word.hint}")


def _daily_flow(service: GameService, print_fn: PrintFn) -> None:
    """Print today's daily challenge words and streak counters."""
    challenge = service.daily_challenge()
    if challenge is None:
        print_fn("No daily challenge available.")
        return
    status = challenge.status
    done = "done" if status.completed else f"{status.progress} words so far"
    print_fn(f"{challenge.emoji} {challenge.theme} ({status.date}): {done}")
    print_fn(" ".join(word.text for word in challenge.words))
    print_fn(f"Daily streak: {status.streak}  Login streak: {status.login_streak}")


def _reset_flow(service: GameService, confirmed: bool, print_fn: PrintFn) -> int:
    """Reset progress, requiring explicit confirmation."""
    if not confirmed:
        print_fn("Refusing to reset without --yes. This permanently deletes all stage progress and currency.")
        return 1
    result = service.progress.reset()
    if result.saved:
        print_fn("Progress reset.")
    else:
        print_fn(f"Progress reset in memory but not saved: {result.error}")
    return 0


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
