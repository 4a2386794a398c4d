"""
ReferentialResolver - FK values sampled from already-committed parent ranges.

Parents are never held in memory. A child's FK is a draw from [1, upper]
where upper is the configured reference range for the parent (if any) or
the parent's committed count, and the draw is only accepted when it falls
inside [1, committed]. Anything else is a ResolutionSkip and the record is
dropped by the orchestrator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from .entities import NULLABLE_FKS, PARENTS, EntityKind
from .errors import ResolutionSkip

if TYPE_CHECKING:
    from .writer import CommitTracker


class ReferentialResolver:
    """
    Resolve foreign keys against committed counts.

    Attributes:
        commits: CommitTracker holding durable per-kind counts
        reference_ranges: Optional per-parent sampling upper bounds
    """

    def __init__(
        self,
        commits: CommitTracker,
        reference_ranges: dict[EntityKind, int] | None = None,
    ) -> None:
        self.commits = commits
        self.reference_ranges = dict(reference_ranges or {})

    def sampling_upper(self, parent: EntityKind) -> int:
        """Upper bound of the candidate id range for `parent`."""
        if parent in self.reference_ranges:
            return self.reference_ranges[parent]
        return self.commits.committed(parent)

    def sample(self, parent: EntityKind, rng: np.random.Generator) -> int | None:
        """Draw a candidate id, or None when the sampling range is empty."""
        upper = self.sampling_upper(parent)
        if upper < 1:
            return None
        return int(rng.integers(1, upper + 1))

    def resolve(self, parent: EntityKind, rng: np.random.Generator) -> int:
        """
        Sample and validate a parent id.

        Raises:
            ResolutionSkip: If the candidate is not a committed parent id
        """
        committed = self.commits.committed(parent)
        candidate = self.sample(parent, rng)
        if candidate is None or not 1 <= candidate <= committed:
            raise ResolutionSkip(parent, candidate, committed)
        return candidate

    def fill(self, kind: EntityKind, record: dict, rng: np.random.Generator) -> dict:
        """
        Fill every FK column of `record` in place.

        Nullable FKs whose parent has no committed rows are written as None
        instead of skipping the record.

        Raises:
            ResolutionSkip: If any non-nullable FK cannot be resolved
        """
        for column, parent in PARENTS.get(kind, {}).items():
            if (kind, column) in NULLABLE_FKS and self.commits.committed(parent) == 0:
                record[column] = None
                continue
            record[column] = self.resolve(parent, rng)
        return record
