"""
NamePool - fixed person-name vocabularies extended with Faker-generated names.

The fixed lists from constants always come first; Faker names are appended
after them, generated once at construction from the run seed. Selection is
index-modular, so a given (seed, pool size, index) always yields the same
name.

Usage:
    pool = NamePool(seed=42, extra_size=200)
    first = pool.first_name(17)
    last = pool.last_name(17)
"""

from __future__ import annotations

import unicodedata
from math import gcd
from typing import Callable

from faker import Faker

from .constants import FIRST_NAMES, LAST_NAMES, NAME_STRIDES


def modular_pick(pool: list[str], index: int, stride: int) -> str:
    """
    Select pool[(index * k) % len(pool)].

    k starts at `stride` and is bumped until it is coprime to the pool
    length, so the selection visits every entry.
    """
    n = len(pool)
    k = stride
    while gcd(k, n) != 1:
        k += 1
    return pool[(index * k) % n]


def ascii_fold(value: str) -> str:
    """Strip accents and non-alphanumerics for use in email local parts."""
    normalized = unicodedata.normalize("NFKD", value)
    folded = normalized.encode("ascii", "ignore").decode("ascii")
    return "".join(ch for ch in folded.lower() if ch.isalnum())


class NamePool:
    """
    First/last name pools for user synthesis.

    Attributes:
        seed: Seed used for the Faker-generated part of the pools
        first_names: Fixed first names followed by generated ones
        last_names: Fixed last names followed by generated ones
    """

    def __init__(self, seed: int = 42, extra_size: int = 200) -> None:
        self.seed = seed
        self._faker = Faker()
        self._faker.seed_instance(seed)

        self.first_names: list[str] = self._extend(
            FIRST_NAMES, self._faker.first_name, extra_size
        )
        self.last_names: list[str] = self._extend(
            LAST_NAMES, self._faker.last_name, extra_size
        )

    @staticmethod
    def _extend(base: list[str], generator_func: Callable[[], str], size: int) -> list[str]:
        """
        Append up to `size` unique generated values not already in `base`.

        Gives up after 3x attempts; pools may come out smaller than asked.
        """
        pool = list(base)
        seen = set(base)
        max_attempts = size * 3
        attempts = 0
        added = 0

        while added < size and attempts < max_attempts:
            value = generator_func()
            if value not in seen:
                seen.add(value)
                pool.append(value)
                added += 1
            attempts += 1

        return pool

    def first_name(self, index: int) -> str:
        return modular_pick(self.first_names, index, NAME_STRIDES["first"])

    def last_name(self, index: int) -> str:
        return modular_pick(self.last_names, index, NAME_STRIDES["last"])
