"""Command-line interface for quote-graph.

Usage:
    quote-graph replay FILE [--policy=POLICY] [--column=COLUMN] [--config=PATH]
    quote-graph status
    quote-graph version
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from .config import load_config
from .models.types import MergePolicy
from .services.replay import ReplayFeed
from .services.stream_adapter import StreamAdapter


def setup_logging(level: str = "INFO", log_file: str = None) -> None:
    """Configure logging."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=handlers,
    )


def cmd_replay(args: argparse.Namespace) -> int:
    """Replay recorded batches and print the aggregated series."""
    config = load_config(args.config)
    if args.policy:
        config.store.merge_policy = args.policy

    setup_logging(os.environ.get("LOG_LEVEL", "WARNING"), os.environ.get("LOG_FILE"))

    path = Path(args.file)
    if not path.exists():
        print(f"Error: replay file not found: {path}")
        return 1

    spec = config.view.to_view_spec()
    measures = [
        name for name in dict.fromkeys(list(spec.columns) + list(spec.aggregates))
        if name not in spec.group_keys
    ]
    if args.column and args.column not in measures:
        print(f"Error: unknown column {args.column!r}, choose from: {', '.join(measures)}")
        return 1

    adapter = StreamAdapter(config)
    adapter.on_mount()
    if not adapter.is_active:
        print("Error: aggregation engine unavailable")
        return 1

    try:
        ReplayFeed(adapter).replay(path)

        column = args.column or (spec.columns[0] if spec.columns else None)
        series = adapter.store.series(column)

        print(f"Aggregated {column} by {', '.join(config.view.column_pivots)}:")
        for name, points in series.items():
            print(f"\n  {name} ({len(points)} points)")
            for x, value in points:
                print(f"    {x}  {value:.4f}" if isinstance(value, float) else f"    {x}  {value}")

        stats = adapter.get_stats_dict()
        print("\nStatistics:")
        print(f"  Batches: {stats['batches_received']}")
        print(f"  Records received: {stats['records_received']}")
        print(f"  Records dropped: {stats['records_dropped']}")
        print(f"  Rows submitted: {stats['rows_submitted']}")
        print(f"  Rows stored: {stats['raw_rows']}")
    finally:
        adapter.close()

    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show effective configuration."""
    config = load_config(args.config)
    print("Quote Graph Status")
    print("=" * 40)
    print("\nStore:")
    print(f"  Database: {config.store.database}")
    print(f"  Table: {config.store.table_name}")
    print(f"  View: {config.store.view_name}")
    print(f"  Merge policy: {config.store.merge_policy}")

    print("\nView directives:")
    for key, value in config.view.to_view_spec().directives().items():
        print(f"  {key}: {value}")

    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    from . import __version__
    print(f"quote-graph version {__version__}")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="quote-graph",
        description="Aggregated, deduplicated quote table for time-series charts",
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to config file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # replay command
    replay_parser = subparsers.add_parser("replay", help="Replay a JSONL file of quote batches")
    replay_parser.add_argument("file", help="JSON Lines file, one batch per line")
    replay_parser.add_argument(
        "--policy", "-p",
        choices=[policy.value for policy in MergePolicy],
        default=None,
        help="Merge policy (default: from config)",
    )
    replay_parser.add_argument(
        "--column",
        default=None,
        help="Measure to print (default: first view column)",
    )
    replay_parser.set_defaults(func=cmd_replay)

    # status command
    status_parser = subparsers.add_parser("status", help="Show configuration")
    status_parser.set_defaults(func=cmd_status)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
