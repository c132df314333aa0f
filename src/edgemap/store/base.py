"""Interface of the ordered key-value store an edge map is built on.

Any object providing these operations can back a ``DirectedGraphMap``:

- put/delete/get by key
- ordered range scans over byte-lexicographically sorted keys
- a batch write so an edge's two records land together
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from edgemap.errors import EdgeMapError


class NotFoundError(EdgeMapError, KeyError):
    """Raised by ``OrderedStore.get`` when the key is absent."""

    def __init__(self, key: bytes):
        self.key = key
        super().__init__(key)


@dataclass(frozen=True)
class KeyRange:
    """Bounds of a range scan.

    ``gt``/``gte`` are the exclusive/inclusive lower bound (at most one of
    them), ``lt`` the exclusive upper bound. ``None`` leaves the side open.
    """

    gt: bytes | None = None
    gte: bytes | None = None
    lt: bytes | None = None

    def __post_init__(self) -> None:
        if self.gt is not None and self.gte is not None:
            raise ValueError("KeyRange takes gt or gte, not both")

    @property
    def start(self) -> bytes:
        """Key to position a cursor at (first key >= start)."""
        if self.gte is not None:
            return self.gte
        if self.gt is not None:
            return self.gt
        return b""

    def after(self, key: bytes) -> KeyRange:
        """Same upper bound, starting strictly after ``key``."""
        return KeyRange(gt=key, lt=self.lt)


@runtime_checkable
class OrderedStore(Protocol):
    def put(self, key: bytes, value: bytes) -> None: ...

    def delete(self, key: bytes) -> None:
        """Delete ``key``. Deleting an absent key is not an error."""
        ...

    def get(self, key: bytes) -> bytes:
        """Return the value of ``key`` or raise NotFoundError."""
        ...

    def scan(
        self, key_range: KeyRange, limit: int | None = None
    ) -> list[tuple[bytes, bytes]]:
        """Return ``(key, value)`` pairs in range, ascending key order."""
        ...

    def count(self, key_range: KeyRange) -> int: ...

    def write_batch(
        self,
        puts: Iterable[tuple[bytes, bytes]] = (),
        deletes: Iterable[bytes] = (),
    ) -> None:
        """Apply all puts and deletes together."""
        ...

    def close(self) -> None: ...
