"""
ValueGenerator - deterministic field synthesis per (seed, entity kind, index).

Every record gets its own NumPy generator seeded from
SeedSequence([seed, kind.code, index]). Values therefore do not depend on
batch size, worker count or the order in which records are produced, and
generation can be fanned out across threads without sharing RNG state.

Identity fields (names, emails, statuses) come from fixed
vocabularies by index-modular selection. Numeric fields and blobs are drawn
from the record's generator within the ranges in constants.

Usage:
    values = ValueGenerator(config)
    record, rng = values.generate(EntityKind.PRODUCT, 17)
    # rng is positioned after the value draws; FK sampling continues on it
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any

import numpy as np

from .config import PopulationConfig
from .constants import (
    BRANDS,
    BUDGET_RANGE,
    CATEGORY_NAMES,
    DAYS_BACK_RANGE,
    DEPARTMENT_NAMES,
    NAME_STRIDES,
    ORDER_TOTAL_CENTS_RANGE,
    PRICE_CENTS_RANGE,
    PRODUCT_ADJECTIVES,
    PRODUCT_NOUNS,
    QUANTITY_RANGE,
    STOCK_RANGE,
)
from .entities import BLOB_COLUMNS, ORDER_STATUSES, EntityKind
from .pool import NamePool, ascii_fold, modular_pick


def order_number(order_id: int) -> str:
    """Globally unique order number derived from the order's id."""
    return f"ORD-{order_id:010d}"


def _cents(rng: np.random.Generator, bounds: tuple[int, int]) -> Decimal:
    return Decimal(int(rng.integers(*bounds))).scaleb(-2)


def _cycled_name(pool: list[str], index: int) -> str:
    """pool[i % n], suffixed with the cycle number after the first pass."""
    base = pool[index % len(pool)]
    cycle = index // len(pool)
    return base if cycle == 0 else f"{base} {cycle + 1}"


class ValueGenerator:
    """
    Side-effect-free synthesis of field values.

    Attributes:
        config: Population configuration (seed, blobs, reference time)
        names: NamePool for user names
    """

    def __init__(self, config: PopulationConfig, names: NamePool | None = None) -> None:
        self.config = config
        self.seed = config.seed
        self.names = names or NamePool(seed=config.seed, extra_size=config.name_pool_size)
        self._blob_rows = {kind: config.blob_rows(kind) for kind in BLOB_COLUMNS}
        self._builders = {
            EntityKind.DEPARTMENT: self._department,
            EntityKind.CATEGORY: self._category,
            EntityKind.USER: self._user,
            EntityKind.PRODUCT: self._product,
            EntityKind.ORDER: self._order,
            EntityKind.ORDER_ITEM: self._order_item,
        }

    def rng(self, kind: EntityKind, index: int) -> np.random.Generator:
        """Fresh generator for one record."""
        return np.random.default_rng(np.random.SeedSequence([self.seed, kind.code, index]))

    def generate(self, kind: EntityKind, index: int) -> tuple[dict[str, Any], np.random.Generator]:
        """
        Synthesize the non-FK fields of one record.

        Args:
            kind: Entity kind
            index: 0-based logical index within the kind

        Returns:
            (record dict, the record's generator for subsequent FK draws)
        """
        rng = self.rng(kind, index)
        return self._builders[kind](index, rng), rng

    def blob(self, kind: EntityKind, index: int, rng: np.random.Generator) -> bytes | None:
        """Payload of exactly size_bytes for the first K rows, else None."""
        if index >= self._blob_rows.get(kind, 0):
            return None
        return rng.bytes(self.config.blobs[kind].size_bytes)

    def price(self, product_index: int) -> Decimal:
        """
        Price of the product at `product_index`.

        Price is the first draw of the product's generator, so it can be
        recomputed for order items without re-reading product rows.
        """
        return _cents(self.rng(EntityKind.PRODUCT, product_index), PRICE_CENTS_RANGE)

    def _days_back(self, rng: np.random.Generator):
        days = int(rng.integers(*DAYS_BACK_RANGE))
        seconds = int(rng.integers(0, 86_400))
        return self.config.reference_time - timedelta(days=days, seconds=seconds)

    # =========================================================================
    # Builders (draw order is part of the determinism contract)
    # =========================================================================

    def _department(self, i: int, rng: np.random.Generator) -> dict[str, Any]:
        name = _cycled_name(DEPARTMENT_NAMES, i)
        return {
            "name": name,
            "description": f"Department of {name}",
            "budget": Decimal(int(rng.integers(*BUDGET_RANGE))),
        }

    def _category(self, i: int, rng: np.random.Generator) -> dict[str, Any]:
        name = _cycled_name(CATEGORY_NAMES, i)
        return {"name": name, "description": f"Product category {name}"}

    def _user(self, i: int, rng: np.random.Generator) -> dict[str, Any]:
        first = self.names.first_name(i)
        last = self.names.last_name(i)
        return {
            "name": f"{first} {last}",
            "email": f"{ascii_fold(first)}.{ascii_fold(last)}.{i}@{self.config.email_domain}",
            "created_at": self._days_back(rng),
        }

    def _product(self, i: int, rng: np.random.Generator) -> dict[str, Any]:
        price = _cents(rng, PRICE_CENTS_RANGE)
        adjective = modular_pick(PRODUCT_ADJECTIVES, i, NAME_STRIDES["adjective"])
        noun = modular_pick(PRODUCT_NOUNS, i, NAME_STRIDES["noun"])
        brand = modular_pick(BRANDS, i, NAME_STRIDES["brand"])
        name = f"{brand} {adjective} {noun} {i + 1}"
        return {
            "name": name,
            "description": f"Detailed description of {name}",
            "price": price,
            "stock_quantity": int(rng.integers(*STOCK_RANGE)),
            "image_data": self.blob(EntityKind.PRODUCT, i, rng),
        }

    def _order(self, i: int, rng: np.random.Generator) -> dict[str, Any]:
        # order_number is derived from the id assigned at flush time
        return {
            "order_date": self._days_back(rng),
            "status": ORDER_STATUSES[i % len(ORDER_STATUSES)],
            "total_amount": _cents(rng, ORDER_TOTAL_CENTS_RANGE),
            "invoice_pdf": self.blob(EntityKind.ORDER, i, rng),
        }

    def _order_item(self, i: int, rng: np.random.Generator) -> dict[str, Any]:
        # unit_price is filled in once product_id is resolved
        return {"quantity": int(rng.integers(*QUANTITY_RANGE))}
