"""
Persistence boundary for the batch writer.

A sink takes an entity kind, its column order and a sequence of row tuples,
and either commits them all or raises. Three sinks ship here:

- PostgresSink: multi-row INSERT per batch through psycopg2, one transaction
  per batch. Row i of a batch (0-based) is written with id = prior count +
  i + 1.
- CopyFileSink: streams PostgreSQL COPY blocks to a SQL file with explicit
  ids, for loading later with psql -f.
- CountingSink: keeps counts only (dry runs, benchmarks of generation).
"""

from __future__ import annotations

import io
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Protocol, Sequence, TextIO

from psycopg2.extensions import connection as PgConnection
from psycopg2.extras import execute_values

from .entities import BLOB_COLUMNS, PHASE_ORDER, EntityKind


class BulkSink(Protocol):
    """Bulk write and count interface consumed by BatchWriter."""

    def bulk_insert(
        self, kind: EntityKind, columns: Sequence[str], rows: Sequence[tuple]
    ) -> int:
        """Commit `rows` and return the number of rows committed."""
        ...

    def count_rows(self, kind: EntityKind) -> int:
        """Number of committed rows of `kind`."""
        ...

    def clear(self) -> None:
        """Remove all rows of every entity kind."""
        ...

    def statistics(self) -> dict[str, Any]:
        """Per-table counts and storage sizes."""
        ...

    def close(self) -> None:
        ...


# =============================================================================
# PostgreSQL
# =============================================================================

class PostgresSink:
    """
    Batch inserts into PostgreSQL.

    Ids are written explicitly as prior count + position, so they stay dense
    even when a rolled-back batch has consumed sequence values. Sequences
    are moved past the written ids on close.

    Attributes:
        conn: psycopg2 connection (autocommit off; the sink commits per batch)
    """

    def __init__(self, conn: PgConnection) -> None:
        self.conn = conn
        self._next_ids: dict[EntityKind, int] = {}

    def bulk_insert(
        self, kind: EntityKind, columns: Sequence[str], rows: Sequence[tuple]
    ) -> int:
        if not rows:
            return 0
        if kind not in self._next_ids:
            self._next_ids[kind] = self.count_rows(kind) + 1
        first_id = self._next_ids[kind]
        sql = f"INSERT INTO {kind.table} (id, {', '.join(columns)}) VALUES %s"
        values = [(first_id + offset, *row) for offset, row in enumerate(rows)]
        try:
            with self.conn.cursor() as cur:
                # One statement per batch so rowcount covers the whole batch
                execute_values(cur, sql, values, page_size=len(values))
                count = cur.rowcount
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        self._next_ids[kind] = first_id + count
        return count

    def _scalar(self, sql: str) -> Any:
        with self.conn.cursor() as cur:
            cur.execute(sql)
            row = cur.fetchone()
        self.conn.rollback()  # end the read-only transaction
        return row[0] if row else None

    def count_rows(self, kind: EntityKind) -> int:
        return int(self._scalar(f"SELECT COUNT(*) FROM {kind.table}"))

    def clear(self) -> None:
        tables = ", ".join(kind.table for kind in reversed(PHASE_ORDER))
        try:
            with self.conn.cursor() as cur:
                cur.execute(f"TRUNCATE {tables} RESTART IDENTITY CASCADE")
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        self._next_ids.clear()

    def statistics(self) -> dict[str, Any]:
        counts = {kind.table: self.count_rows(kind) for kind in PHASE_ORDER}
        blob_bytes = {
            kind.table: int(
                self._scalar(
                    f"SELECT COALESCE(SUM(pg_column_size({column})), 0) "
                    f"FROM {kind.table} WHERE {column} IS NOT NULL"
                )
            )
            for kind, column in BLOB_COLUMNS.items()
        }
        return {
            "row_counts": counts,
            "total_rows": sum(counts.values()),
            "database_bytes": int(self._scalar("SELECT pg_database_size(current_database())")),
            "blob_bytes": blob_bytes,
        }

    def close(self) -> None:
        """Move each written table's id sequence past its last id, then close."""
        try:
            if self._next_ids:
                with self.conn.cursor() as cur:
                    for kind, next_id in self._next_ids.items():
                        if next_id > 1:
                            cur.execute(
                                "SELECT setval(pg_get_serial_sequence(%s, 'id'), %s)",
                                (kind.table, next_id - 1),
                            )
                self.conn.commit()
        finally:
            self.conn.close()


# =============================================================================
# COPY format helpers
# =============================================================================

def copy_str(val: str | None) -> str:
    """Format string for COPY format (tab-separated, \\N for NULL)."""
    if val is None:
        return "\\N"
    return val.replace("\\", "\\\\").replace("\t", "\\t").replace("\n", "\\n")


def copy_bytes(val: bytes | None) -> str:
    """Format bytea as hex; the backslash is doubled for COPY text format."""
    if val is None:
        return "\\N"
    return "\\\\x" + val.hex()


def format_copy_value(val: Any) -> str:
    """Auto-detect type and format value for COPY."""
    if val is None:
        return "\\N"
    if isinstance(val, bool):
        return "t" if val else "f"
    if isinstance(val, (bytes, bytearray, memoryview)):
        return copy_bytes(bytes(val))
    if isinstance(val, (datetime, date)):
        return val.isoformat()
    if isinstance(val, (int, float, Decimal)):
        return str(val)
    return copy_str(str(val))


class CopyFileSink:
    """
    Streams batches as PostgreSQL COPY blocks to a SQL file.

    Output is buffered in memory and flushed to disk once the buffer passes
    the threshold. Ids are written explicitly (prior count + position) and
    sequences are reset when the file is closed.

    Attributes:
        output_path: Path to output SQL file
        buffer_size_bytes: Buffer flush threshold in bytes
    """

    def __init__(self, output_path: Path | str, buffer_size_mb: float = 10.0) -> None:
        self.output_path = Path(output_path)
        self.buffer_size_bytes = int(buffer_size_mb * 1024 * 1024)

        self._buffer = io.StringIO()
        self._buffer_bytes = 0
        self._file: TextIO | None = None
        self._total_bytes_written = 0

        self._open_table: EntityKind | None = None
        self._row_counts: dict[EntityKind, int] = {kind: 0 for kind in PHASE_ORDER}
        self._blob_bytes: dict[EntityKind, int] = {kind: 0 for kind in BLOB_COLUMNS}
        self._cleared = False

    def _ensure_file_open(self) -> None:
        if self._file is None:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.output_path, "w", encoding="utf-8")
            self._file.write("-- massload - generated seed data\n")
            self._file.write("-- Load with: psql -f <file>\n\n")
            self._file.write("SET client_encoding = 'UTF8';\n")
            self._file.write("SET standard_conforming_strings = on;\n\n")

    def _flush_buffer(self) -> None:
        if self._buffer_bytes > 0:
            self._ensure_file_open()
            content = self._buffer.getvalue()
            self._file.write(content)
            self._total_bytes_written += len(content.encode("utf-8"))
            self._buffer = io.StringIO()
            self._buffer_bytes = 0

    def _write(self, text: str) -> None:
        self._buffer.write(text)
        self._buffer_bytes += len(text.encode("utf-8"))
        if self._buffer_bytes >= self.buffer_size_bytes:
            self._flush_buffer()

    def _end_table(self) -> None:
        if self._open_table is not None:
            self._write("\\.\n")
            self._open_table = None

    def _start_table(self, kind: EntityKind, columns: Sequence[str]) -> None:
        self._end_table()
        self._open_table = kind
        self._write(f"\n-- Table: {kind.table}\n")
        self._write(f"COPY {kind.table} (id, {', '.join(columns)}) FROM stdin;\n")

    def bulk_insert(
        self, kind: EntityKind, columns: Sequence[str], rows: Sequence[tuple]
    ) -> int:
        if not rows:
            return 0
        if self._open_table is not kind:
            self._start_table(kind, columns)

        first_id = self._row_counts[kind] + 1
        blob_index = list(columns).index(BLOB_COLUMNS[kind]) if kind in BLOB_COLUMNS else None
        lines = []
        for offset, row in enumerate(rows):
            values = [str(first_id + offset)]
            values.extend(format_copy_value(v) for v in row)
            lines.append("\t".join(values))
            if blob_index is not None and row[blob_index] is not None:
                self._blob_bytes[kind] += len(row[blob_index])

        self._write("\n".join(lines) + "\n")
        self._row_counts[kind] += len(rows)
        return len(rows)

    def count_rows(self, kind: EntityKind) -> int:
        return self._row_counts[kind]

    def clear(self) -> None:
        """Emit a TRUNCATE ahead of any data."""
        if any(self._row_counts.values()):
            raise ValueError("clear() must be called before any rows are written")
        if not self._cleared:
            tables = ", ".join(kind.table for kind in reversed(PHASE_ORDER))
            self._write(f"TRUNCATE {tables} RESTART IDENTITY CASCADE;\n")
            self._cleared = True

    def statistics(self) -> dict[str, Any]:
        counts = {kind.table: n for kind, n in self._row_counts.items()}
        return {
            "row_counts": counts,
            "total_rows": sum(counts.values()),
            "database_bytes": self._total_bytes_written + self._buffer_bytes,
            "blob_bytes": {kind.table: n for kind, n in self._blob_bytes.items()},
        }

    def close(self) -> None:
        """End the open COPY block, reset sequences, flush and close."""
        self._end_table()
        for kind, n in self._row_counts.items():
            if n:
                self._write(f"SELECT setval('{kind.table}_id_seq', {n});\n")
        self._flush_buffer()

        if self._file is not None:
            self._file.write("\n-- Generation Summary\n")
            self._file.write(f"-- Total rows: {sum(self._row_counts.values()):,}\n")
            self._file.close()
            self._file = None

    def __enter__(self) -> CopyFileSink:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


# =============================================================================
# Counting (dry run)
# =============================================================================

class CountingSink:
    """Discards rows, keeping per-kind counts and blob byte totals."""

    def __init__(self) -> None:
        self._row_counts: dict[EntityKind, int] = {kind: 0 for kind in PHASE_ORDER}
        self._blob_bytes: dict[EntityKind, int] = {kind: 0 for kind in BLOB_COLUMNS}

    def bulk_insert(
        self, kind: EntityKind, columns: Sequence[str], rows: Sequence[tuple]
    ) -> int:
        if kind in BLOB_COLUMNS:
            blob_index = list(columns).index(BLOB_COLUMNS[kind])
            self._blob_bytes[kind] += sum(
                len(row[blob_index]) for row in rows if row[blob_index] is not None
            )
        self._row_counts[kind] += len(rows)
        return len(rows)

    def count_rows(self, kind: EntityKind) -> int:
        return self._row_counts[kind]

    def clear(self) -> None:
        for kind in self._row_counts:
            self._row_counts[kind] = 0
        for kind in self._blob_bytes:
            self._blob_bytes[kind] = 0

    def statistics(self) -> dict[str, Any]:
        counts = {kind.table: n for kind, n in self._row_counts.items()}
        return {
            "row_counts": counts,
            "total_rows": sum(counts.values()),
            "database_bytes": None,
            "blob_bytes": {kind.table: n for kind, n in self._blob_bytes.items()},
        }

    def close(self) -> None:
        pass
