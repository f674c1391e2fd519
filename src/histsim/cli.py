#!/usr/bin/env python3
"""CLI interface for histsim."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .config import Config
from .exceptions import HistSimError
from .models import ChannelStatistics, ImageStatistics, MatchResult
from .pixels import OpenCVPixelSource
from .search import SimilaritySearch
from .stats import load_statistics

logger = logging.getLogger(__name__)


def _format_channel(name: str, channel: ChannelStatistics) -> str:
    return (f"  {name:<5} min={channel.min:>3} max={channel.max:>3} "
            f"median={channel.median:>3} mean={channel.mean:8.3f} "
            f"std={channel.std_dev:8.3f}")


def _print_statistics(stats: ImageStatistics) -> None:
    print(f"{stats.identifier} ({stats.width}x{stats.height})")
    for name, channel in zip(("red", "green", "blue"), stats.channels, strict=True):
        print(_format_channel(name, channel))


def _print_matches(matches: list[MatchResult]) -> None:
    for rank, match in enumerate(matches, start=1):
        print(f"{rank:>3}. {match.score:8.4f}  {match.identifier}")


def _stats_command(args: argparse.Namespace) -> int:
    source = OpenCVPixelSource()
    results = [load_statistics(image, source) for image in args.images]

    if args.json:
        # Histograms omitted from JSON output
        payload = [s.model_dump(exclude={c: {"histogram"} for c in ("red", "green", "blue")})
                   for s in results]
        print(json.dumps(payload, indent=2))
    else:
        for stats in results:
            _print_statistics(stats)
    return 0


def _match_command(args: argparse.Namespace) -> int:
    cfg = Config(
        top_k=args.top_k,
        num_workers=args.num_workers,
        skip_failed=args.skip_failed,
        show_progress=not args.no_progress,
    )
    search = SimilaritySearch(cfg)
    search.build_catalog(args.targets)
    matches = search.query(args.query)

    if args.json:
        print(json.dumps([m.model_dump() for m in matches], indent=2))
    else:
        _print_matches(matches)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the histsim CLI."""
    parser = argparse.ArgumentParser(
        prog="histsim",
        description="Color statistics and histogram similarity ranking for images",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    stats_parser = subparsers.add_parser(
        "stats", help="Print per-channel statistics of images",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    stats_parser.add_argument("images", nargs="+", help="Image files")
    stats_parser.add_argument("--json", action="store_true", help="Print JSON output")
    stats_parser.set_defaults(func=_stats_command)

    match_parser = subparsers.add_parser(
        "match", help="Rank target images by similarity to a query image",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    match_parser.add_argument("query", help="Query image file")
    match_parser.add_argument("targets", nargs="+",
                              help="Target image files and/or folders of images")
    match_parser.add_argument("--top-k", type=int, default=5,
                              help="Number of top matches to print")
    match_parser.add_argument("--num-workers", type=int, default=None,
                              help="Number of parallel workers (default: auto-detect CPU count)")
    match_parser.add_argument("--skip-failed", action="store_true",
                              help="Skip target images that fail to load instead of aborting")
    match_parser.add_argument("--json", action="store_true", help="Print JSON output")
    match_parser.add_argument("--no-progress", action="store_true",
                              help="Hide the progress bar")
    match_parser.set_defaults(func=_match_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for histsim.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    )

    try:
        return int(args.func(args))
    except HistSimError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
