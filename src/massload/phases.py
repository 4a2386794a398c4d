"""
PhaseOrchestrator - populate entity kinds in FK dependency order.

Phases run strictly in sequence (Departments -> Categories -> Users ->
Products -> Orders -> OrderItems). Each phase generates and flushes one
batch at a time; the next batch is not generated until the previous flush
has been acknowledged, so at most one batch of records is alive.

Within a batch, value synthesis and FK resolution may be fanned out over a
thread pool. Both are pure functions of (seed, kind, index) and of parent
committed counts that do not change during the phase, so worker count
never changes the output.

Usage:
    config = PopulationConfig(seed=42)
    orchestrator = PhaseOrchestrator(config, PostgresSink(conn))
    report = orchestrator.run(clear=True)
    for line in report.skip_summary():
        print(line)
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import numpy as np

from .config import PopulationConfig
from .entities import PARENTS, PHASE_ORDER, EntityKind, NULLABLE_FKS
from .errors import BatchWriteFailure, PhaseFailed, ResolutionSkip, SetupFailed
from .monitor import PerformanceMonitor, SpanResult
from .resolver import ReferentialResolver
from .sinks import BulkSink
from .values import ValueGenerator, order_number
from .writer import BatchWriter, CommitTracker

logger = logging.getLogger(__name__)


@dataclass
class PhaseReport:
    """Outcome of one phase."""

    kind: EntityKind
    requested: int
    committed: int = 0
    skipped: int = 0
    batches: int = 0
    duration_ms: int = 0
    skip_reasons: Counter = field(default_factory=Counter)

    def skip_line(self) -> str | None:
        if not self.skipped:
            return None
        reasons = ", ".join(f"unresolved {parent.lower()}" for parent in sorted(self.skip_reasons))
        return f"{self.kind.label}: skipped {self.skipped} of {self.requested} ({reasons})"


@dataclass
class RunReport:
    """Outcome of a full run."""

    phases: list[PhaseReport] = field(default_factory=list)
    checkpoints: list[tuple[str, dict[str, int]]] = field(default_factory=list)
    spans: list[SpanResult] = field(default_factory=list)
    peak_live_records: int = 0
    elapsed_seconds: float = 0.0

    @property
    def total_committed(self) -> int:
        return sum(p.committed for p in self.phases)

    def phase(self, kind: EntityKind) -> PhaseReport | None:
        for report in self.phases:
            if report.kind is kind:
                return report
        return None

    def skip_summary(self) -> list[str]:
        return [line for line in (p.skip_line() for p in self.phases) if line]


class LogicalIndexMap:
    """
    Committed id -> logical index for one entity kind.

    Ids up to `base` were committed before this run and map to id - 1.
    Later ids map through a compact int64 array extended as batches commit,
    so skipped logical indexes never shift the mapping.

    Attributes:
        base: Rows committed before the first tracked batch
    """

    def __init__(self, base: int = 0, capacity: int = 0) -> None:
        self.base = base
        self._indexes = np.empty(capacity, dtype=np.int64)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def extend(self, indexes: Sequence[int]) -> None:
        end = self._size + len(indexes)
        if end > len(self._indexes):
            grown = np.empty(max(end, 2 * len(self._indexes)), dtype=np.int64)
            grown[: self._size] = self._indexes[: self._size]
            self._indexes = grown
        self._indexes[self._size : end] = indexes
        self._size = end

    def lookup(self, record_id: int) -> int:
        offset = record_id - self.base - 1
        if offset < 0:
            return record_id - 1
        if offset >= self._size:
            raise KeyError(f"id {record_id} has not been committed")
        return int(self._indexes[offset])


class PhaseOrchestrator:
    """
    Drive value generation, FK resolution and batch flushing per phase.

    Attributes:
        config: Validated population configuration
        sink: Persistence boundary
        monitor: PerformanceMonitor for phase (and optional batch) spans
        values: ValueGenerator
        commits: CommitTracker shared with writer and resolver
        resolver: ReferentialResolver
        writer: BatchWriter
        product_indexes: LogicalIndexMap for committed products, used to
            price order items from their product's own draw
    """

    def __init__(
        self,
        config: PopulationConfig,
        sink: BulkSink,
        monitor: PerformanceMonitor | None = None,
        values: ValueGenerator | None = None,
    ) -> None:
        self.config = config
        self.sink = sink
        self.monitor = monitor or PerformanceMonitor()
        self.commits = CommitTracker()
        self.resolver = ReferentialResolver(self.commits, config.reference_ranges)
        self.writer = BatchWriter(
            sink,
            self.commits,
            self.monitor,
            instrument_batches=config.instrument_batches,
        )
        self._values = values
        self.product_indexes = LogicalIndexMap()

    @property
    def values(self) -> ValueGenerator:
        # Built lazily so that validation failures never pay for pool setup
        if self._values is None:
            self._values = ValueGenerator(self.config)
        return self._values

    def validate(self) -> None:
        """Fail fast on bad configuration (MisconfiguredVolume)."""
        self.config.validate()

    def run(
        self,
        phases: Iterable[EntityKind] | None = None,
        clear: bool = False,
        resume: bool = False,
    ) -> RunReport:
        """
        Populate all (or the selected) phases in dependency order.

        Args:
            phases: Subset of kinds to run; order is always PHASE_ORDER
            clear: Remove existing rows before populating
            resume: Only generate rows missing from each kind's volume

        Returns:
            RunReport with per-phase counts, checkpoints and span summary

        Raises:
            MisconfiguredVolume: Before any generation, on bad config
            PhaseFailed: When a batch flush fails; carries partial counts
            SetupFailed: When the sink cannot be cleared or counted
        """
        self.validate()
        values = self.values
        selected = set(phases) if phases is not None else set(PHASE_ORDER)
        report = RunReport()
        run_start = time.time()

        if clear:
            try:
                self.monitor.measure(
                    "clearDatabase", "Remove all generated rows", self.sink.clear
                )
            except Exception as e:
                logger.error("Clearing the sink failed: %s", e)
                raise SetupFailed("clearDatabase", self.commits.snapshot(), e) from e

        # Existing rows bound FK sampling and offset logical indexes
        for kind in PHASE_ORDER:
            try:
                existing = self.sink.count_rows(kind)
            except Exception as e:
                logger.error("Counting %s rows failed: %s", kind.table, e)
                raise SetupFailed("countRows", self.commits.snapshot(), e) from e
            if existing:
                self.commits.seed(kind, existing)
                logger.info("%s: %d rows already committed", kind.label, existing)

        self.product_indexes = LogicalIndexMap(base=self.commits.committed(EntityKind.PRODUCT))

        executor: Executor | None = None
        if self.config.workers > 1:
            executor = ThreadPoolExecutor(
                max_workers=self.config.workers, thread_name_prefix="massload"
            )

        try:
            for kind in PHASE_ORDER:
                if kind not in selected:
                    continue
                phase_report = self._run_measured(kind, resume, values, executor, report)
                report.phases.append(phase_report)
                self.commits.checkpoint(kind.table)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)
            report.checkpoints = list(self.commits.checkpoints)
            report.spans = self.monitor.summary()
            report.peak_live_records = self.writer.peak_live_records
            report.elapsed_seconds = time.time() - run_start

        return report

    def _run_measured(
        self,
        kind: EntityKind,
        resume: bool,
        values: ValueGenerator,
        executor: Executor | None,
        report: RunReport,
    ) -> PhaseReport:
        target = self._target(kind, resume)
        description = (
            f"Create {target} {kind.table} in batches of {self.config.batch_size(kind)}"
        )
        try:
            return self.monitor.measure(
                f"populate.{kind.table}",
                description,
                self._run_phase,
                kind,
                target,
                values,
                executor,
            )
        except BatchWriteFailure as e:
            logger.error("Phase %s failed: %s", kind.label, e)
            raise PhaseFailed(kind, self.commits.snapshot(), e, list(report.phases)) from e

    def _target(self, kind: EntityKind, resume: bool) -> int:
        volume = self.config.volume(kind)
        if resume:
            return max(0, volume - self.commits.committed(kind))
        return volume

    def _run_phase(
        self,
        kind: EntityKind,
        target: int,
        values: ValueGenerator,
        executor: Executor | None,
    ) -> PhaseReport:
        phase = PhaseReport(kind=kind, requested=target)
        phase_start = time.perf_counter()
        batch_size = self.config.batch_size(kind)
        interval = self.config.progress_interval_rows
        next_progress = interval
        first_index = self.commits.committed(kind)
        generated = 0

        self._warn_missing_parents(kind, target)
        if kind is EntityKind.PRODUCT:
            self.product_indexes = LogicalIndexMap(base=first_index, capacity=target)

        for size in BatchWriter.batch_sizes(target, batch_size):
            start = first_index + generated
            self.writer.hold(size)
            try:
                records, kept = self._build_batch(kind, start, size, values, executor, phase)
                self._assign_ids(kind, records)
                self.writer.flush_batch(kind, records)
                if kind is EntityKind.PRODUCT:
                    self.product_indexes.extend(kept)
            finally:
                # Buffer is dropped on every exit path
                records = None
                self.writer.release(size)

            generated += size
            phase.batches += 1
            phase.committed = self.commits.committed(kind) - first_index

            if generated >= next_progress or generated == target:
                logger.info("%s: %d of %d created", kind.label, phase.committed, target)
                while next_progress <= generated:
                    next_progress += interval

        if phase.skipped:
            logger.warning(phase.skip_line())
        phase.duration_ms = int((time.perf_counter() - phase_start) * 1000)
        return phase

    def _build_batch(
        self,
        kind: EntityKind,
        start: int,
        size: int,
        values: ValueGenerator,
        executor: Executor | None,
        phase: PhaseReport,
    ) -> tuple[list[dict[str, Any]], list[int]]:
        """Build one batch; returns the kept records and their logical indexes."""
        indexes = range(start, start + size)
        if executor is None:
            built = [self._build(values, kind, i) for i in indexes]
        else:
            built = list(executor.map(lambda i: self._build(values, kind, i), indexes))

        records = []
        kept = []
        for index, (record, skipped_parent) in zip(indexes, built):
            if record is None:
                phase.skipped += 1
                phase.skip_reasons[skipped_parent.label] += 1
            else:
                records.append(record)
                kept.append(index)
        return records, kept

    def _build(
        self, values: ValueGenerator, kind: EntityKind, index: int
    ) -> tuple[dict[str, Any] | None, EntityKind | None]:
        """Synthesize one record and resolve its FKs; (None, parent) on skip."""
        record, rng = values.generate(kind, index)
        try:
            self.resolver.fill(kind, record, rng)
        except ResolutionSkip as e:
            return None, e.parent
        if kind is EntityKind.ORDER_ITEM:
            record["unit_price"] = values.price(self.product_indexes.lookup(record["product_id"]))
        return record, None

    def _assign_ids(self, kind: EntityKind, records: list[dict[str, Any]]) -> None:
        """
        Fill fields derived from the id the store will assign.

        Ids follow insertion order: row j of the batch gets committed + j + 1.
        """
        if kind is EntityKind.ORDER:
            base = self.commits.committed(kind)
            for offset, record in enumerate(records, 1):
                record["order_number"] = order_number(base + offset)

    def _warn_missing_parents(self, kind: EntityKind, target: int) -> None:
        if target == 0:
            return
        for column, parent in PARENTS.get(kind, {}).items():
            if (kind, column) in NULLABLE_FKS:
                continue
            if self.resolver.sampling_upper(parent) < 1 or self.commits.committed(parent) == 0:
                logger.warning(
                    "%s: no committed %s rows; every record will be skipped",
                    kind.label,
                    parent.table,
                )
