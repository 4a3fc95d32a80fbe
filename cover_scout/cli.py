"""Command-line entry point for the cover waterfall."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Sequence

from .catalog import DEFAULT_TITLE_COLUMN, read_titles
from .config import (
    COLLISION_POLICIES,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_IMAGE_ROOT,
    DEFAULT_INTER_ATTEMPT_DELAY,
    DEFAULT_MIN_IMAGE_BYTES,
    DEFAULT_SOURCES,
    SCRIPT_RANGES,
    PipelineConfig,
    select_sources,
)
from .errors import CatalogError
from .postprocess import count_images, upscale_images, write_filename_index
from .waterfall import run_pipeline

logger = logging.getLogger("cover_scout.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("fetch", *argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("catalog", type=Path, help="CSV file listing the book titles")
    parser.add_argument(
        "--images",
        default=DEFAULT_IMAGE_ROOT,
        type=Path,
        help="Directory where per-source image folders are created",
    )
    parser.add_argument(
        "--column",
        default=DEFAULT_TITLE_COLUMN,
        help="Name of the CSV column holding the titles",
    )
    title_filter = parser.add_mutually_exclusive_group()
    title_filter.add_argument(
        "--script",
        choices=sorted(SCRIPT_RANGES),
        help="Drop title characters outside this writing system",
    )
    title_filter.add_argument(
        "--keep",
        help="Regex character-class body of title characters to keep",
    )
    parser.add_argument(
        "--sources",
        default=",".join(source.name for source in DEFAULT_SOURCES),
        help="Comma-separated source names in priority order",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_INTER_ATTEMPT_DELAY,
        help="Seconds to wait after a source fails before trying the next one",
    )
    parser.add_argument(
        "--settle",
        type=float,
        default=None,
        help="Override the per-source wait after page load, in seconds",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Override the per-source navigation timeout, in seconds",
    )
    parser.add_argument(
        "--download-timeout",
        type=float,
        default=DEFAULT_DOWNLOAD_TIMEOUT,
        help="Timeout for each image download, in seconds",
    )
    parser.add_argument(
        "--min-bytes",
        type=int,
        default=DEFAULT_MIN_IMAGE_BYTES,
        help="Images smaller than this are treated as placeholders",
    )
    parser.add_argument(
        "--collision",
        choices=COLLISION_POLICIES,
        default="overwrite",
        help="What to do when two titles map to the same filename",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window instead of running headless",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find a cover image for every title in a book catalog.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser(
        "fetch", help="Search the configured sources for each catalog title"
    )
    _add_fetch_arguments(fetch_parser)

    convert_parser = subparsers.add_parser(
        "convert", help="Upscale downloaded covers and convert them to WebP"
    )
    convert_parser.add_argument("input", type=Path, help="Directory of JPEG/PNG images")
    convert_parser.add_argument(
        "output", type=Path, nargs="?", default=Path("upscaled"), help="Output directory"
    )
    convert_parser.add_argument("--scale", type=float, default=2.0, help="Scale factor")
    convert_parser.add_argument("--quality", type=int, default=80, help="WebP quality")
    convert_parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    stats_parser = subparsers.add_parser("stats", help="Count images by extension")
    stats_parser.add_argument("directory", type=Path, nargs="?", default=Path("."))
    stats_parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    list_parser = subparsers.add_parser("list", help="Write every image filename to a file")
    list_parser.add_argument("directory", type=Path, nargs="?", default=Path("upscaled"))
    list_parser.add_argument(
        "--output", type=Path, default=Path("image_filenames.txt"), help="Index file to write"
    )
    list_parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    names = [name for name in args.sources.split(",") if name.strip()]
    return PipelineConfig(
        image_root=Path(args.images).resolve(),
        sources=select_sources(
            names, settle_delay=args.settle, navigation_timeout=args.timeout
        ),
        inter_attempt_delay=args.delay,
        download_timeout=args.download_timeout,
        min_image_bytes=args.min_bytes,
        collision=args.collision,
        headless=not args.headed,
    )


def _run_fetch(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    keep = SCRIPT_RANGES[args.script] if args.script else args.keep

    try:
        titles = read_titles(args.catalog, column=args.column, keep=keep)
    except CatalogError as exc:
        logger.error("%s", exc)
        return 1

    overall_start = time.perf_counter()
    outcomes = asyncio.run(run_pipeline(titles, config))
    total_elapsed = time.perf_counter() - overall_start

    found = sum(1 for outcome in outcomes if outcome.succeeded)
    logger.info(
        "All books processed in %.2fs (%d/%d with a cover)",
        total_elapsed,
        found,
        len(outcomes),
    )
    if args.verbose:
        for outcome in outcomes:
            logger.debug(
                "%s -> %s (%s)",
                outcome.title,
                outcome.artifact.path if outcome.artifact else "no image",
                ", ".join(attempt.source for attempt in outcome.attempts),
            )
    return 0


def _run_convert(args: argparse.Namespace) -> int:
    written = upscale_images(args.input, args.output, scale=args.scale, quality=args.quality)
    logger.info("All processing complete! %d images written to %s", len(written), args.output)
    return 0


def _run_stats(args: argparse.Namespace) -> int:
    logger.info("Scanning directory: %s", args.directory)
    stats = count_images(args.directory)
    for suffix, count in stats.counts.items():
        logger.info("%s: %d", suffix.upper(), count)
    logger.info("Total image files: %d", stats.total)
    logger.info("Total unique filenames: %d", len(stats.unique_filenames))
    return 0


def _run_list(args: argparse.Namespace) -> int:
    write_filename_index(args.directory, args.output)
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    handlers = {
        "fetch": _run_fetch,
        "convert": _run_convert,
        "stats": _run_stats,
        "list": _run_list,
    }
    status = handlers[args.command](args)
    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
