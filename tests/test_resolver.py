"""
Tests for FK resolution against committed counts.
"""

import numpy as np
import pytest

from massload.entities import EntityKind
from massload.errors import ResolutionSkip
from massload.resolver import ReferentialResolver
from massload.writer import CommitTracker


def rngs(n):
    return [np.random.default_rng(seed) for seed in range(n)]


@pytest.fixture
def commits():
    return CommitTracker()


class TestResolve:
    """Sampling and validation of single parent ids."""

    def test_no_committed_parents_skips(self, commits):
        resolver = ReferentialResolver(commits)
        with pytest.raises(ResolutionSkip) as exc_info:
            resolver.resolve(EntityKind.USER, np.random.default_rng(0))
        assert exc_info.value.parent is EntityKind.USER
        assert exc_info.value.candidate is None
        assert exc_info.value.committed == 0

    def test_ids_within_committed_range(self, commits):
        commits.advance(EntityKind.USER, 10)
        resolver = ReferentialResolver(commits)
        ids = {resolver.resolve(EntityKind.USER, rng) for rng in rngs(300)}
        assert min(ids) >= 1
        assert max(ids) <= 10
        assert len(ids) == 10

    def test_reference_range_beyond_committed_skips_some(self, commits):
        """Sampling [1, 1000] against 500 committed rows skips about half."""
        commits.advance(EntityKind.USER, 500)
        resolver = ReferentialResolver(commits, {EntityKind.USER: 1000})
        resolved, skipped = 0, 0
        for rng in rngs(400):
            try:
                assert 1 <= resolver.resolve(EntityKind.USER, rng) <= 500
                resolved += 1
            except ResolutionSkip as e:
                assert 500 < e.candidate <= 1000
                skipped += 1
        assert resolved > 0
        assert skipped > 0

    def test_reference_range_within_committed_never_skips(self, commits):
        commits.advance(EntityKind.PRODUCT, 50)
        resolver = ReferentialResolver(commits, {EntityKind.PRODUCT: 20})
        for rng in rngs(100):
            assert 1 <= resolver.resolve(EntityKind.PRODUCT, rng) <= 20

    def test_sampling_upper(self, commits):
        commits.advance(EntityKind.ORDER, 7)
        resolver = ReferentialResolver(commits, {EntityKind.USER: 99})
        assert resolver.sampling_upper(EntityKind.ORDER) == 7
        assert resolver.sampling_upper(EntityKind.USER) == 99

    def test_same_rng_same_id(self, commits):
        commits.advance(EntityKind.CATEGORY, 1000)
        resolver = ReferentialResolver(commits)
        a = resolver.resolve(EntityKind.CATEGORY, np.random.default_rng(5))
        b = resolver.resolve(EntityKind.CATEGORY, np.random.default_rng(5))
        assert a == b


class TestFill:
    """Filling every FK column of a record."""

    def test_fills_all_columns(self, commits):
        commits.advance(EntityKind.ORDER, 5)
        commits.advance(EntityKind.PRODUCT, 8)
        resolver = ReferentialResolver(commits)
        record = resolver.fill(EntityKind.ORDER_ITEM, {"quantity": 2}, np.random.default_rng(1))
        assert 1 <= record["order_id"] <= 5
        assert 1 <= record["product_id"] <= 8

    def test_nullable_fk_without_parents_is_none(self, commits):
        resolver = ReferentialResolver(commits)
        record = resolver.fill(EntityKind.USER, {}, np.random.default_rng(1))
        assert record["department_id"] is None

    def test_nullable_fk_with_parents_is_resolved(self, commits):
        commits.advance(EntityKind.DEPARTMENT, 3)
        resolver = ReferentialResolver(commits)
        record = resolver.fill(EntityKind.USER, {}, np.random.default_rng(1))
        assert record["department_id"] in (1, 2, 3)

    def test_missing_second_parent_skips(self, commits):
        commits.advance(EntityKind.ORDER, 5)
        resolver = ReferentialResolver(commits)
        with pytest.raises(ResolutionSkip) as exc_info:
            resolver.fill(EntityKind.ORDER_ITEM, {}, np.random.default_rng(1))
        assert exc_info.value.parent is EntityKind.PRODUCT

    def test_kind_without_parents_unchanged(self, commits):
        resolver = ReferentialResolver(commits)
        record = {"name": "Sales"}
        assert resolver.fill(EntityKind.DEPARTMENT, record, np.random.default_rng(1)) == {
            "name": "Sales"
        }
