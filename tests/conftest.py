"""
Pytest fixtures for massload tests.

Provides:
- RecordingSink: in-memory BulkSink that keeps every committed row
- Small population configs that run in well under a second
- PostgreSQL connection for integration tests (skipped unless
  MASSLOAD_TEST_DSN is set)
"""

import os
from pathlib import Path

import pytest

from massload.config import BlobConfig, PopulationConfig
from massload.entities import PHASE_ORDER, EntityKind

SCHEMA_PATH = Path(__file__).parent.parent / "sql" / "schema.sql"

TEST_DSN_ENV_VAR = "MASSLOAD_TEST_DSN"


class RecordingSink:
    """
    BulkSink that stores rows as dicts with dense ids.

    Args:
        fail_kind: Kind whose batch `fail_on_batch` (0-based) raises
        fail_on_batch: Batch index that raises for `fail_kind`
        short_ack: Acknowledge one row fewer than was sent
    """

    def __init__(self, fail_kind=None, fail_on_batch=0, short_ack=False):
        self.fail_kind = fail_kind
        self.fail_on_batch = fail_on_batch
        self.short_ack = short_ack
        self.rows = {kind: [] for kind in PHASE_ORDER}
        self.batches = []
        self.calls = []
        self.closed = False

    def bulk_insert(self, kind, columns, rows):
        self.calls.append("bulk_insert")
        batch_index = sum(1 for k, _ in self.batches if k is kind)
        if kind is self.fail_kind and batch_index == self.fail_on_batch:
            raise RuntimeError("connection reset by peer")

        self.batches.append((kind, len(rows)))
        table = self.rows[kind]
        for row in rows:
            record = dict(zip(columns, row))
            record["id"] = len(table) + 1
            table.append(record)
        return len(rows) - 1 if self.short_ack else len(rows)

    def count_rows(self, kind):
        self.calls.append("count_rows")
        return len(self.rows[kind])

    def clear(self):
        self.calls.append("clear")
        for kind in self.rows:
            self.rows[kind] = []

    def statistics(self):
        counts = {kind.table: len(rows) for kind, rows in self.rows.items()}
        return {
            "row_counts": counts,
            "total_rows": sum(counts.values()),
            "database_bytes": None,
            "blob_bytes": {},
        }

    def close(self):
        self.closed = True

    def batch_lengths(self, kind):
        return [n for k, n in self.batches if k is kind]


SMALL_VOLUMES = {
    EntityKind.DEPARTMENT: 3,
    EntityKind.CATEGORY: 2,
    EntityKind.USER: 25,
    EntityKind.PRODUCT: 12,
    EntityKind.ORDER: 40,
    EntityKind.ORDER_ITEM: 60,
}

SMALL_BATCH_SIZES = {
    EntityKind.DEPARTMENT: 2,
    EntityKind.CATEGORY: 2,
    EntityKind.USER: 10,
    EntityKind.PRODUCT: 5,
    EntityKind.ORDER: 15,
    EntityKind.ORDER_ITEM: 25,
}


def make_config(**overrides):
    """Small config; `volumes` and `batch_sizes` overrides are merged."""
    volumes = dict(SMALL_VOLUMES)
    volumes.update(overrides.pop("volumes", {}))
    batch_sizes = dict(SMALL_BATCH_SIZES)
    batch_sizes.update(overrides.pop("batch_sizes", {}))
    options = {
        "seed": 42,
        "volumes": volumes,
        "batch_sizes": batch_sizes,
        "blobs": {
            EntityKind.PRODUCT: BlobConfig(size_bytes=16, fraction_of_rows_with_blob=0.5),
            EntityKind.ORDER: BlobConfig(size_bytes=8),
        },
        "progress_interval_rows": 10,
        "name_pool_size": 0,
    }
    options.update(overrides)
    return PopulationConfig(**options)


@pytest.fixture
def small_config():
    return make_config()


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def sink_factory():
    return RecordingSink


@pytest.fixture
def small_config_file(tmp_path):
    """YAML equivalent of the small config."""
    path = tmp_path / "small.yaml"
    path.write_text(
        """
seed: 42
progress_interval_rows: 10
name_pool_size: 0
volumes:
  departments: 3
  categories: 2
  users: 25
  products: 12
  orders: 40
  order_items: 60
batch_sizes:
  users: 10
  products: 5
  orders: 15
  order_items: 25
blobs:
  products: {size_bytes: 16, fraction_of_rows_with_blob: 0.5}
  orders: {size_bytes: 8}
"""
    )
    return path


@pytest.fixture
def pg_connection():
    """
    PostgreSQL connection with a freshly created schema.

    Skipped unless MASSLOAD_TEST_DSN points at a scratch database.
    """
    dsn = os.environ.get(TEST_DSN_ENV_VAR)
    if not dsn:
        pytest.skip(f"{TEST_DSN_ENV_VAR} not set")

    import psycopg2

    conn = psycopg2.connect(dsn)
    with conn.cursor() as cur:
        cur.execute(SCHEMA_PATH.read_text())
    conn.commit()
    yield conn
    if not conn.closed:
        conn.close()
