"""
Population configuration.

Configuration can be built in code or loaded from a YAML file:

    seed: 42
    progress_interval_rows: 5000
    volumes:
      users: 1000000
      orders: 500000
    batch_sizes:
      products: 250
    blobs:
      products: {size_bytes: 1048576, fraction_of_rows_with_blob: 0.02}
    reference_ranges:
      users: 5000

Keys under volumes, batch_sizes, blobs and reference_ranges are entity
table names.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg2
import yaml
from psycopg2.extensions import connection as PgConnection

from .entities import BLOB_COLUMNS, PHASE_ORDER, EntityKind
from .errors import MisconfiguredVolume

RANDOM_SEED = 42

DSN_ENV_VAR = "MASSLOAD_DSN"

# Defaults follow the demo dataset: small reference tables, larger
# transactional tables, smaller batches for blob-bearing kinds.
DEFAULT_VOLUMES: dict[EntityKind, int] = {
    EntityKind.DEPARTMENT: 10,
    EntityKind.CATEGORY: 10,
    EntityKind.USER: 5_000,
    EntityKind.PRODUCT: 2_000,
    EntityKind.ORDER: 10_000,
    EntityKind.ORDER_ITEM: 20_000,
}

DEFAULT_BATCH_SIZES: dict[EntityKind, int] = {
    EntityKind.DEPARTMENT: 1_000,
    EntityKind.CATEGORY: 1_000,
    EntityKind.USER: 500,
    EntityKind.PRODUCT: 250,
    EntityKind.ORDER: 200,
    EntityKind.ORDER_ITEM: 1_000,
}

# Fixed so that timestamps are reproducible across runs
DEFAULT_REFERENCE_TIME = datetime(2024, 1, 1)


@dataclass
class BlobConfig:
    """
    Blob payload settings for one blob-bearing entity kind.

    The first K logical rows get a payload of exactly size_bytes, where
    K = floor(volume * fraction_of_rows_with_blob), capped by max_rows.
    """

    size_bytes: int
    fraction_of_rows_with_blob: float = 1.0
    max_rows: int | None = None

    def rows_with_blob(self, volume: int) -> int:
        k = int(volume * self.fraction_of_rows_with_blob)
        if self.max_rows is not None:
            k = min(k, self.max_rows)
        return k


def _default_blobs() -> dict[EntityKind, BlobConfig]:
    return {
        EntityKind.PRODUCT: BlobConfig(size_bytes=1024 * 1024, fraction_of_rows_with_blob=0.02),
        EntityKind.ORDER: BlobConfig(size_bytes=8 * 1024, fraction_of_rows_with_blob=1.0),
    }


@dataclass
class PopulationConfig:
    """
    Options consumed by the PhaseOrchestrator.

    Attributes:
        seed: Governs all pseudo-random draws
        volumes: Total rows to generate per entity kind
        batch_sizes: Rows per flushed batch per entity kind
        blobs: Blob settings per blob-bearing kind (products, orders)
        progress_interval_rows: Emit a progress line every N rows
        reference_ranges: Upper bound for FK sampling per parent kind.
            Unset kinds sample from their committed count. A bound larger
            than the committed count produces resolution skips.
        workers: Threads used to synthesize values within a batch
        instrument_batches: Wrap each batch flush in a monitor span
        email_domain: Domain for generated user emails
        reference_time: "Now" for generated timestamps
        name_pool_size: Faker-generated names added to the fixed name pools
    """

    seed: int = RANDOM_SEED
    volumes: dict[EntityKind, int] = field(default_factory=lambda: dict(DEFAULT_VOLUMES))
    batch_sizes: dict[EntityKind, int] = field(default_factory=lambda: dict(DEFAULT_BATCH_SIZES))
    blobs: dict[EntityKind, BlobConfig] = field(default_factory=_default_blobs)
    progress_interval_rows: int = 5_000
    reference_ranges: dict[EntityKind, int] = field(default_factory=dict)
    workers: int = 1
    instrument_batches: bool = False
    email_domain: str = "example.com"
    reference_time: datetime = DEFAULT_REFERENCE_TIME
    name_pool_size: int = 200

    def volume(self, kind: EntityKind) -> int:
        return self.volumes.get(kind, 0)

    def batch_size(self, kind: EntityKind) -> int:
        return self.batch_sizes.get(kind, DEFAULT_BATCH_SIZES[kind])

    def blob_rows(self, kind: EntityKind) -> int:
        """Number of leading logical rows of `kind` that carry a blob."""
        blob = self.blobs.get(kind)
        if blob is None or blob.size_bytes == 0:
            return 0
        return blob.rows_with_blob(self.volume(kind))

    def validate(self) -> None:
        """
        Check the configuration before any generation begins.

        Raises:
            MisconfiguredVolume: On zero/negative batch sizes, negative
                volumes or otherwise unusable settings
        """
        if self.seed < 0:
            raise MisconfiguredVolume(f"seed must be >= 0, got {self.seed}")

        for kind in PHASE_ORDER:
            volume = self.volume(kind)
            if volume < 0:
                raise MisconfiguredVolume(f"{kind.table}: volume must be >= 0, got {volume}")
            size = self.batch_size(kind)
            if size <= 0:
                raise MisconfiguredVolume(f"{kind.table}: batch size must be > 0, got {size}")

        for kind, blob in self.blobs.items():
            if kind not in BLOB_COLUMNS:
                raise MisconfiguredVolume(f"{kind.table} has no blob column")
            if blob.size_bytes < 0:
                raise MisconfiguredVolume(f"{kind.table}: blob size must be >= 0")
            if not 0.0 <= blob.fraction_of_rows_with_blob <= 1.0:
                raise MisconfiguredVolume(
                    f"{kind.table}: fraction_of_rows_with_blob must be in [0, 1], "
                    f"got {blob.fraction_of_rows_with_blob}"
                )
            if blob.max_rows is not None and blob.max_rows < 0:
                raise MisconfiguredVolume(f"{kind.table}: max_rows must be >= 0")

        for kind, upper in self.reference_ranges.items():
            if upper < 0:
                raise MisconfiguredVolume(f"{kind.table}: reference range must be >= 0")

        if self.workers < 1:
            raise MisconfiguredVolume(f"workers must be >= 1, got {self.workers}")
        if self.progress_interval_rows < 1:
            raise MisconfiguredVolume("progress_interval_rows must be >= 1")
        if self.name_pool_size < 0:
            raise MisconfiguredVolume("name_pool_size must be >= 0")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> PopulationConfig:
        """
        Build a config from a plain dict (as parsed from YAML).

        Raises:
            MisconfiguredVolume: On unknown keys, entity names or mistyped values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise MisconfiguredVolume(f"Unknown config keys: {sorted(unknown)}")

        config = cls()
        for key, value in raw.items():
            if key == "volumes":
                config.volumes.update(_kind_map(value, int, key))
            elif key == "batch_sizes":
                config.batch_sizes.update(_kind_map(value, int, key))
            elif key == "reference_ranges":
                config.reference_ranges = _kind_map(value, int, key)
            elif key == "blobs":
                config.blobs = {
                    kind: _blob_config(kind, options)
                    for kind, options in _kind_map(value, dict, key).items()
                }
            elif key == "reference_time":
                try:
                    config.reference_time = (
                        value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
                    )
                except ValueError as e:
                    raise MisconfiguredVolume(f"reference_time: {e}") from e
            else:
                setattr(config, key, _scalar(key, value))
        return config


_SCALAR_TYPES = {
    "seed": int,
    "progress_interval_rows": int,
    "workers": int,
    "instrument_batches": bool,
    "email_domain": str,
    "name_pool_size": int,
}


def _scalar(key: str, value: Any) -> Any:
    cast = _SCALAR_TYPES[key]
    if cast is bool:
        if not isinstance(value, bool):
            raise MisconfiguredVolume(f"{key}: expected true or false, got {value!r}")
        return value
    if cast is int and isinstance(value, (bool, float)):
        raise MisconfiguredVolume(f"{key}: expected an integer, got {value!r}")
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise MisconfiguredVolume(f"{key}: {e}") from e


def _blob_config(kind: EntityKind, options: Any) -> BlobConfig:
    try:
        blob = BlobConfig(**options)
        return BlobConfig(
            size_bytes=int(blob.size_bytes),
            fraction_of_rows_with_blob=float(blob.fraction_of_rows_with_blob),
            max_rows=None if blob.max_rows is None else int(blob.max_rows),
        )
    except (TypeError, ValueError) as e:
        raise MisconfiguredVolume(f"blobs.{kind.table}: {e}") from e


def _kind_map(raw: Any, cast: type, section: str) -> dict[EntityKind, Any]:
    if not isinstance(raw, dict):
        raise MisconfiguredVolume(f"'{section}' must be a mapping of table name to value")
    result = {}
    for name, value in raw.items():
        try:
            kind = EntityKind.from_table(str(name))
        except KeyError as e:
            raise MisconfiguredVolume(f"{section}: {e.args[0]}") from e
        if cast is dict:
            result[kind] = value
            continue
        try:
            result[kind] = cast(value)
        except (TypeError, ValueError) as e:
            raise MisconfiguredVolume(f"{section}.{name}: {e}") from e
    return result


def load_config(path: Path | str) -> PopulationConfig:
    """
    Load and validate a YAML configuration file.

    Args:
        path: Path to YAML file

    Returns:
        Validated PopulationConfig
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise MisconfiguredVolume(f"Config {path} is not valid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise MisconfiguredVolume(f"Config {path} must be a mapping")
    config = PopulationConfig.from_dict(raw)
    config.validate()
    return config


def get_connection(
    dsn: str | None = None,
    host: str = "localhost",
    port: int = 5432,
    database: str = "hibernate_formation",
    user: str = "postgres",
    password: str = "postgres",
) -> PgConnection:
    """
    Get a PostgreSQL connection.

    An explicit DSN wins, then the MASSLOAD_DSN environment variable, then
    the keyword defaults.

    Returns:
        PostgreSQL connection with autocommit off
    """
    dsn = dsn or os.environ.get(DSN_ENV_VAR)
    if dsn:
        return psycopg2.connect(dsn)
    return psycopg2.connect(
        host=host,
        port=port,
        database=database,
        user=user,
        password=password,
    )
