"""
Database statistics report: per-table row counts and storage sizes.
"""

from __future__ import annotations

from typing import Any

from .sinks import BulkSink


def format_bytes(n: int) -> str:
    """Format a byte count as B / KB / MB / GB."""
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.2f} KB"
    if n < 1024 * 1024 * 1024:
        return f"{n / (1024 * 1024):.2f} MB"
    return f"{n / (1024 * 1024 * 1024):.2f} GB"


def collect_statistics(sink: BulkSink) -> dict[str, Any]:
    return sink.statistics()


def format_statistics(stats: dict[str, Any]) -> list[str]:
    """Render statistics as report lines."""
    lines = ["Database Statistics:", "-" * 19]
    for table, count in stats["row_counts"].items():
        lines.append(f"  {table}: {count:,} records")
    lines.append(f"  Total: {stats['total_rows']:,} records")

    if stats.get("database_bytes") is not None:
        lines.append("")
        lines.append(f"Database size: {format_bytes(stats['database_bytes'])}")
    for table, size in stats.get("blob_bytes", {}).items():
        if size:
            lines.append(f"BLOB storage ({table}): {format_bytes(size)}")
    return lines
