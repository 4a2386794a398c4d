#!/usr/bin/env python3
"""
Populate the demo schema with synthetic data.

Default volumes (override with --config):
- 10 departments, 10 categories
- 5,000 users (500 per batch)
- 2,000 products (250 per batch, 1 MB image on the first 2%)
- 10,000 orders (200 per batch, 8 KB invoice each)
- 20,000 order items

Phases run in FK order; each child FK only references parent rows that
were already committed. Exit status is 0 on success, 1 when a phase fails
or the sink cannot be cleared or counted, and 2 on invalid configuration.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import RANDOM_SEED, PopulationConfig, get_connection, load_config
from .entities import PHASE_ORDER, EntityKind
from .errors import MisconfiguredVolume, PhaseFailed, SetupFailed
from .monitor import PerformanceMonitor, format_duration
from .phases import PhaseOrchestrator, RunReport
from .sinks import BulkSink, CopyFileSink, CountingSink, PostgresSink
from .stats import collect_statistics, format_statistics


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="massload",
        description="Populate the lazy-loading demo schema with synthetic data.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Populate the database from MASSLOAD_DSN with default volumes
  massload --clear

  # Large run from a config file, 4 generation threads
  massload --config massive.yaml --workers 4 --clear

  # Write a COPY-format seed file instead of touching a database
  massload --output seed.sql

  # Measure generation only
  massload --dry-run --config massive.yaml

  # Continue an interrupted run
  massload --config massive.yaml --resume
""",
    )

    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help=f"Random seed (default: config value or {RANDOM_SEED})",
    )

    target = parser.add_mutually_exclusive_group()
    target.add_argument("--dsn", help="PostgreSQL DSN (default: $MASSLOAD_DSN)")
    target.add_argument("--output", type=Path, help="Write COPY-format SQL to this file")
    target.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate everything but keep only counts",
    )

    parser.add_argument("--clear", action="store_true", help="Remove existing rows first")
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Only generate rows missing from each table's configured volume",
    )
    parser.add_argument("--workers", type=int, help="Threads for value generation")
    parser.add_argument(
        "--only",
        nargs="+",
        metavar="TABLE",
        choices=[kind.table for kind in PHASE_ORDER],
        help="Run only these phases (parents must already be committed)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print row counts and storage sizes after the run",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PopulationConfig:
    config = load_config(args.config) if args.config else PopulationConfig()
    if args.seed is not None:
        config.seed = args.seed
    if args.workers is not None:
        config.workers = args.workers
    config.validate()
    return config


def build_sink(args: argparse.Namespace) -> BulkSink:
    if args.dry_run:
        return CountingSink()
    if args.output:
        return CopyFileSink(args.output)
    return PostgresSink(get_connection(args.dsn))


def print_banner(config: PopulationConfig) -> None:
    print("=" * 60)
    print("massload - synthetic data population")
    print("=" * 60)
    print(f"Seed: {config.seed}")
    for kind in PHASE_ORDER:
        line = f"  {kind.table:<12} {config.volume(kind):>12,} rows  (batch {config.batch_size(kind):,})"
        blob_rows = config.blob_rows(kind)
        if blob_rows:
            line += f"  {blob_rows:,} with {config.blobs[kind].size_bytes:,}-byte blobs"
        print(line)
    print()


def print_summary(report: RunReport, monitor: PerformanceMonitor) -> None:
    print()
    print("=" * 60)
    print("Population Summary")
    print("=" * 60)
    elapsed = report.elapsed_seconds
    rows_per_sec = report.total_committed / elapsed if elapsed > 0 else 0
    print(f"Total rows: {report.total_committed:,}")
    print(f"Total time: {elapsed:.2f}s ({rows_per_sec:,.0f} rows/sec)")
    print(f"Peak in-memory records: {report.peak_live_records:,}")

    print()
    print("Phase Performance:")
    for phase in report.phases:
        print(
            f"  {phase.kind.label:<10} {format_duration(phase.duration_ms):>12} - "
            f"{phase.committed:>10,} rows in {phase.batches:,} batches"
        )

    skips = report.skip_summary()
    if skips:
        print()
        print("Skipped records:")
        for line in skips:
            print(f"  - {line}")

    print()
    for line in monitor.report_lines():
        print(line)


def main(argv: list[str] | None = None) -> int:
    """
    Run a population with CLI options.

    Returns:
        0 on success, 1 on a failed phase or sink setup, 2 on invalid configuration
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except MisconfiguredVolume as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"Error: cannot read config: {e}", file=sys.stderr)
        return 2

    print_banner(config)

    monitor = PerformanceMonitor()
    sink = build_sink(args)
    phases = [EntityKind.from_table(t) for t in args.only] if args.only else None

    try:
        orchestrator = PhaseOrchestrator(config, sink, monitor)
        try:
            report = orchestrator.run(phases=phases, clear=args.clear, resume=args.resume)
        except PhaseFailed as e:
            print(f"\nError: {e.kind.label} phase failed: {e.cause}", file=sys.stderr)
            print(f"Committed before failure: {e.committed}", file=sys.stderr)
            for line in monitor.report_lines():
                print(line)
            return 1
        except SetupFailed as e:
            print(f"\nError: {e}", file=sys.stderr)
            print(f"Committed before failure: {e.committed}", file=sys.stderr)
            for line in monitor.report_lines():
                print(line)
            return 1

        print_summary(report, monitor)

        if args.stats:
            print()
            for line in format_statistics(collect_statistics(sink)):
                print(line)
    finally:
        sink.close()

    if args.output:
        print(f"\nOutput: {args.output}")
    print("\nSuccess!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
