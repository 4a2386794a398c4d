"""
Error types raised during population.

Per-record problems (ResolutionSkip) are absorbed by the orchestrator and only
reported in aggregate. Per-batch and per-phase problems propagate to the
caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .entities import EntityKind


class MassloadError(Exception):
    """Base class for all population errors."""

    pass


class MisconfiguredVolume(MassloadError, ValueError):
    """Raised when configuration is invalid, before any generation starts."""

    pass


class ResolutionSkip(MassloadError):
    """Raised when a record's foreign key cannot be resolved to a committed parent."""

    def __init__(self, parent: EntityKind, candidate: int | None, committed: int):
        self.parent = parent
        self.candidate = candidate
        self.committed = committed
        super().__init__(
            f"{parent.label} id {candidate} outside committed range [1, {committed}]"
        )


class BatchWriteFailure(MassloadError):
    """Raised when the persistence boundary rejects or cannot complete a batch."""

    def __init__(self, kind: EntityKind, batch_index: int, cause: BaseException | str):
        self.kind = kind
        self.batch_index = batch_index
        self.cause = cause
        super().__init__(f"{kind.label} batch {batch_index} failed: {cause}")


class PhaseFailed(MassloadError):
    """
    Raised when a phase aborts the run.

    Attributes:
        kind: Entity kind of the failing phase
        committed: Committed row counts per table at the time of failure
        cause: Underlying BatchWriteFailure
        reports: PhaseReports of the phases completed before the failure
    """

    def __init__(
        self,
        kind: EntityKind,
        committed: dict[str, int],
        cause: BaseException,
        reports: list[Any] | None = None,
    ):
        self.kind = kind
        self.committed = committed
        self.cause = cause
        self.reports = reports or []
        super().__init__(
            f"Phase {kind.label} failed after committing {committed}: {cause}"
        )


class SetupFailed(MassloadError):
    """
    Raised when the sink cannot be cleared or counted before the first phase.

    Attributes:
        operation: Name of the failing step ("clearDatabase", "countRows")
        committed: Committed row counts per table at the time of failure
        cause: Underlying sink exception
    """

    def __init__(self, operation: str, committed: dict[str, int], cause: BaseException):
        self.operation = operation
        self.committed = committed
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")
