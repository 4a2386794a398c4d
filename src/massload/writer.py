"""
BatchWriter - flush bounded batches through a BulkSink.

Flow: ValueGenerator -> ReferentialResolver -> BatchWriter -> BulkSink

Usage:
    commits = CommitTracker()
    writer = BatchWriter(sink, commits, monitor)

    for size in BatchWriter.batch_sizes(total, batch_size):
        records = build(size)
        writer.hold(len(records))
        committed = writer.flush_batch(EntityKind.USER, records)
        writer.release(len(records))

After a successful flush the CommitTracker holds the new committed count
for that kind, which is the only valid upper bound for child FKs.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Sequence

from .entities import PHASE_ORDER, EntityKind
from .errors import BatchWriteFailure
from .monitor import PerformanceMonitor
from .sinks import BulkSink

logger = logging.getLogger(__name__)


class CommitTracker:
    """
    Durable committed counts per entity kind.

    Counts only ever grow; checkpoints snapshot all counts at phase
    boundaries.

    Attributes:
        counts: Committed rows per kind
        checkpoints: (label, counts-by-table) snapshots in order taken
    """

    __slots__ = ("counts", "checkpoints")

    def __init__(self) -> None:
        self.counts: dict[EntityKind, int] = {kind: 0 for kind in PHASE_ORDER}
        self.checkpoints: list[tuple[str, dict[str, int]]] = []

    def committed(self, kind: EntityKind) -> int:
        return self.counts[kind]

    def advance(self, kind: EntityKind, rows: int) -> int:
        """Add `rows` newly committed rows and return the new count."""
        if rows < 0:
            raise ValueError(f"Committed count for {kind.table} cannot shrink")
        self.counts[kind] += rows
        return self.counts[kind]

    def seed(self, kind: EntityKind, existing: int) -> None:
        """Start from rows already present in the store (resumed runs)."""
        if existing < self.counts[kind]:
            raise ValueError(
                f"Committed count for {kind.table} cannot shrink "
                f"({self.counts[kind]} -> {existing})"
            )
        self.counts[kind] = existing

    def snapshot(self) -> dict[str, int]:
        return {kind.table: n for kind, n in self.counts.items()}

    def checkpoint(self, label: str) -> dict[str, int]:
        """Record and log the committed counts at a phase boundary."""
        snap = self.snapshot()
        self.checkpoints.append((label, snap))
        logger.info("Checkpoint after %s: %s", label, snap)
        return snap


class BatchWriter:
    """
    Flush one bounded batch at a time and track committed counts.

    Attributes:
        sink: Persistence boundary
        commits: CommitTracker updated after each successful flush
        monitor: Optional PerformanceMonitor for per-batch spans
        instrument_batches: Wrap each flush in a "<table>.batch" span
        live_records: Records currently held by the caller
        peak_live_records: High-water mark of live_records
    """

    def __init__(
        self,
        sink: BulkSink,
        commits: CommitTracker,
        monitor: PerformanceMonitor | None = None,
        instrument_batches: bool = False,
    ) -> None:
        self.sink = sink
        self.commits = commits
        self.monitor = monitor
        self.instrument_batches = instrument_batches and monitor is not None
        self.live_records = 0
        self.peak_live_records = 0
        self.batches_flushed: dict[EntityKind, int] = {kind: 0 for kind in PHASE_ORDER}

    @staticmethod
    def batch_sizes(total: int, batch_size: int) -> Iterator[int]:
        """
        Yield ceil(total / batch_size) batch lengths.

        All but the last are batch_size; the last is the remainder, or
        batch_size when total divides evenly.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")
        full, remainder = divmod(total, batch_size)
        for _ in range(full):
            yield batch_size
        if remainder:
            yield remainder

    def hold(self, n: int) -> None:
        """Account for `n` records now held in memory."""
        self.live_records += n
        self.peak_live_records = max(self.peak_live_records, self.live_records)

    def release(self, n: int) -> None:
        """Account for `n` records released after a flush."""
        self.live_records = max(0, self.live_records - n)

    def _rows(self, kind: EntityKind, records: Sequence[dict[str, Any]]) -> list[tuple]:
        columns = kind.columns
        return [tuple(record.get(col) for col in columns) for record in records]

    def _insert(self, kind: EntityKind, records: Sequence[dict[str, Any]], batch_index: int) -> int:
        try:
            acknowledged = self.sink.bulk_insert(kind, kind.columns, self._rows(kind, records))
        except Exception as e:
            raise BatchWriteFailure(kind, batch_index, e) from e
        if acknowledged != len(records):
            raise BatchWriteFailure(
                kind,
                batch_index,
                f"sink acknowledged {acknowledged} of {len(records)} rows",
            )
        return acknowledged

    def flush_batch(self, kind: EntityKind, records: Sequence[dict[str, Any]]) -> int:
        """
        Commit one batch of fully-formed records.

        Args:
            kind: Entity kind of every record in the batch
            records: Row dicts with all FKs resolved

        Returns:
            New committed count for `kind`

        Raises:
            BatchWriteFailure: If the sink raises or acknowledges a
                different number of rows than were sent
        """
        batch_index = self.batches_flushed[kind]
        if not records:
            return self.commits.committed(kind)

        if self.instrument_batches:
            written = self.monitor.measure(
                f"{kind.table}.batch",
                f"Flush {kind.label} batch {batch_index} ({len(records)} rows)",
                self._insert,
                kind,
                records,
                batch_index,
            )
        else:
            written = self._insert(kind, records, batch_index)

        self.batches_flushed[kind] += 1
        return self.commits.advance(kind, written)
