"""
Lesson engine command line.

Runs the engine's workflows against a JSON lesson store.

Usage:
    lesson-engine [--data-file PATH] [--log-level LEVEL] COMMAND [options]

Examples:
    # Fill in lessons for January
    lesson-engine generate --from 2024-01-01 --to 2024-02-01

    # Re-apply an edited template to future lessons
    lesson-engine sync --project student_kim

    # Open a lesson (carries the previous lesson's homework into it)
    lesson-engine load --occurrence occ_1a2b3c4d5e6f

    # Cancel a lesson and move its homework to the next one
    lesson-engine cancel --occurrence occ_1a2b3c4d5e6f --mode forward-next

    # Cancel a lesson with a makeup lesson on Wednesday 15:00
    lesson-engine cancel --occurrence occ_1a2b3c4d5e6f --mode makeup-first \\
        --makeup-at 2024-01-03T15:00:00+09:00

    # Show the side-by-side layout of a day
    lesson-engine layout --date 2024-01-08

    # Export a month to CSV
    lesson-engine export --from 2024-01-01 --to 2024-02-01 --out output/january.csv
"""

import sys
import argparse
import asyncio
import logging
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from .engine import LessonEngine
from .models.occurrence import parse_timestamp
from .models.result import Result
from .persistence.json_store import JsonFileRepository
from .scheduling.cancellation import CancelMode
from .utils.config import config
from .utils.file_utils import generate_filename
from .utils.logger import setup_logger


def parse_day(value: str) -> date:
    """
    Parse a YYYY-MM-DD argument.

    Raises:
        argparse.ArgumentTypeError: If the format is invalid
    """
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}' (expected YYYY-MM-DD)")


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 timestamp that carries a UTC offset."""
    try:
        parsed = parse_timestamp(value)
    except ValueError:
        parsed = None
    if parsed is None or parsed.tzinfo is None:
        raise argparse.ArgumentTypeError(
            f"Invalid timestamp '{value}' (expected ISO-8601 with offset)"
        )
    return parsed


def parse_arguments(argv: Optional[List[str]] = None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="lesson-engine",
        description="Generate, cancel and lay out tutoring lessons",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "--data-file",
        type=Path,
        default=None,
        help="Lesson store (default: LESSON_DATA_FILE or output/lessons.json)"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--log-file",
        help="Also write logs to this file"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Create missing lessons in a window")
    generate.add_argument("--from", dest="start", type=parse_day, required=True)
    generate.add_argument("--to", dest="end", type=parse_day, required=True)

    sync = commands.add_parser("sync", help="Reconcile future lessons with a project's template")
    sync.add_argument("--project", required=True, help="Project id")

    load = commands.add_parser("load", help="Open a lesson and carry homework into it")
    load.add_argument("--occurrence", required=True, help="Occurrence id")

    cancel = commands.add_parser("cancel", help="Cancel a lesson")
    cancel.add_argument("--occurrence", required=True, help="Occurrence id")
    cancel.add_argument(
        "--mode",
        choices=[m.value for m in CancelMode],
        required=True,
        help="Where the lesson's homework goes"
    )
    cancel.add_argument(
        "--makeup-at",
        type=parse_instant,
        help="Start of the makeup lesson (required for makeup-first)"
    )

    layout = commands.add_parser("layout", help="Show side-by-side placement for a day")
    layout.add_argument("--date", type=parse_day, required=True)

    export = commands.add_parser("export", help="Export lessons in a window to CSV")
    export.add_argument("--from", dest="start", type=parse_day, required=True)
    export.add_argument("--to", dest="end", type=parse_day, required=True)
    export.add_argument(
        "--out",
        type=Path,
        help="CSV file to write (default: OUTPUT_DIR/schedule_<timestamp>.csv)"
    )

    return parser.parse_args(argv)


def report(result: Result) -> int:
    """Print a workflow result and turn it into an exit code."""
    if result.is_failure:
        print(f"ERROR: {result.message}")
        return 1
    if result.message:
        print(f"✓ {result.message}")
    return 0


async def run_command(args, engine: LessonEngine, logger: logging.Logger) -> int:
    """Dispatch one sub-command."""
    repo = engine.repository

    if args.command == "generate":
        result = await engine.ensure_schedule_in_range(None, args.start, args.end)
        if result.is_success:
            for generation in result.value:
                print(f"  {generation.summary()}")
        return report(result)

    if args.command == "sync":
        definition = await repo.get_schedule_definition(args.project)
        result = await engine.sync_project_schedule(definition)
        return report(result)

    if args.command == "load":
        occurrence = await repo.get_occurrence(args.occurrence)
        result = await engine.on_occurrence_loaded(occurrence)
        if result.is_success:
            for check in result.value.homework_checks:
                mark = "x" if check.is_completed else " "
                print(f"  [{mark}] {check.textbook_name or check.textbook_id} ch.{check.chapter}")
        return report(result)

    if args.command == "cancel":
        occurrence = await repo.get_occurrence(args.occurrence)
        mode = CancelMode(args.mode)
        if mode == CancelMode.MAKEUP_FIRST and args.makeup_at is None:
            print("ERROR: --makeup-at is required with --mode makeup-first")
            return 1

        result = await engine.cancel_lesson(occurrence, mode)
        if result.is_failure or mode == CancelMode.FORWARD_NEXT:
            return report(result)

        placed = await engine.place_makeup(args.makeup_at)
        if placed.is_failure:
            engine.abandon_makeup()
            logger.info("Makeup placement abandoned after failure")
        return report(placed)

    if args.command == "layout":
        occurrences = await engine.occurrences_on(args.date)
        slots = engine.layout_day(occurrences)
        print(f"\n{args.date.isoformat()}: {len(occurrences)} items")
        print("-" * 60)
        for occurrence in occurrences:
            slot = slots.get(occurrence.id)
            if slot is None:
                continue
            local = occurrence.start_time.astimezone(engine.tz)
            print(
                f"{local:%H:%M} {occurrence.duration:3d}min | "
                f"left {slot.left_offset_percent:5.1f}% width {slot.width_percent:5.1f}% | "
                f"{occurrence.title or occurrence.id}"
            )
        print("-" * 60)
        return 0

    if args.command == "export":
        out = args.out or config.output_dir / generate_filename("schedule", "csv")
        result = await engine.export_schedule(args.start, args.end, out)
        return report(result)

    logger.error(f"Unknown command: {args.command}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    args = parse_arguments(argv)

    level_name = args.log_level or config.log_level
    logger = setup_logger(
        "lesson_engine",
        level=getattr(logging, level_name, logging.INFO),
        log_file=args.log_file
    )

    try:
        config.validate()

        data_file = args.data_file or config.data_file
        logger.info(f"Using lesson store {data_file}")
        repo = JsonFileRepository.open(data_file)
        engine = LessonEngine(repo, settings=config)

        return asyncio.run(run_command(args, engine, logger))

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"\nERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
