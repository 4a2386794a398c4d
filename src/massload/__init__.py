"""
massload - bounded-memory synthetic data population with span instrumentation.

Populates the departments / categories / users / products / orders /
order_items schema at scale for lazy loading, batching and N+1 demos.
Records are generated deterministically from a seed, flushed one bounded
batch at a time in FK dependency order, and every phase is timed by a
PerformanceMonitor.
"""

from .config import BlobConfig, PopulationConfig, get_connection, load_config
from .entities import PHASE_ORDER, EntityKind
from .errors import (
    BatchWriteFailure,
    MassloadError,
    MisconfiguredVolume,
    PhaseFailed,
    ResolutionSkip,
    SetupFailed,
)
from .monitor import PerformanceMonitor, SpanResult, format_duration
from .phases import PhaseOrchestrator, PhaseReport, RunReport
from .resolver import ReferentialResolver
from .sinks import BulkSink, CopyFileSink, CountingSink, PostgresSink
from .values import ValueGenerator, order_number
from .writer import BatchWriter, CommitTracker

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "PopulationConfig",
    "BlobConfig",
    "load_config",
    "get_connection",
    # Entities
    "EntityKind",
    "PHASE_ORDER",
    # Generation
    "ValueGenerator",
    "ReferentialResolver",
    "order_number",
    # Writing
    "BatchWriter",
    "CommitTracker",
    "BulkSink",
    "PostgresSink",
    "CopyFileSink",
    "CountingSink",
    # Orchestration
    "PhaseOrchestrator",
    "PhaseReport",
    "RunReport",
    # Instrumentation
    "PerformanceMonitor",
    "SpanResult",
    "format_duration",
    # Errors
    "MassloadError",
    "MisconfiguredVolume",
    "ResolutionSkip",
    "BatchWriteFailure",
    "PhaseFailed",
    "SetupFailed",
]
