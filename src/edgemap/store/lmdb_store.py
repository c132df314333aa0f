"""LMDB-backed ordered key-value store.

LMDB keeps keys sorted byte-lexicographically, so range scans are a cursor
positioned with ``set_range`` and walked forward until the upper bound.
Every call runs in its own transaction; no transaction outlives a call.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

import lmdb

from edgemap.config import DEFAULT_MAP_SIZE
from edgemap.logging_config import get_logger
from edgemap.store.base import KeyRange, NotFoundError

logger = get_logger(__name__)


def _seek(cursor: lmdb.Cursor, key_range: KeyRange) -> bool:
    """Position cursor at the first key >= the range start."""
    start = key_range.start
    if not start:
        return cursor.first()
    return cursor.set_range(start)


class LMDBStore:
    """Ordered store on a single LMDB environment directory."""

    def __init__(
        self,
        location: Path | str,
        map_size: int = DEFAULT_MAP_SIZE,
    ):
        self.location = Path(location)
        self.location.mkdir(parents=True, exist_ok=True)

        self.env: lmdb.Environment | None = lmdb.open(
            str(self.location),
            map_size=map_size,
            max_dbs=0,
            writemap=True,
            sync=False,
            metasync=False,
        )
        logger.debug("lmdb store opened", location=str(self.location))

    @property
    def closed(self) -> bool:
        return self.env is None

    def _env(self) -> lmdb.Environment:
        if self.env is None:
            raise lmdb.Error(f"store at {self.location} is closed")
        return self.env

    def put(self, key: bytes, value: bytes) -> None:
        with self._env().begin(write=True) as txn:
            txn.put(key, value)

    def delete(self, key: bytes) -> None:
        with self._env().begin(write=True) as txn:
            txn.delete(key)

    def get(self, key: bytes) -> bytes:
        with self._env().begin() as txn:
            data = txn.get(key)
        if data is None:
            raise NotFoundError(key)
        return data

    def write_batch(
        self,
        puts: Iterable[tuple[bytes, bytes]] = (),
        deletes: Iterable[bytes] = (),
    ) -> None:
        """Apply puts and deletes in one write transaction."""
        with self._env().begin(write=True) as txn:
            for key, value in puts:
                txn.put(key, value)
            for key in deletes:
                txn.delete(key)

    def scan(
        self, key_range: KeyRange, limit: int | None = None
    ) -> list[tuple[bytes, bytes]]:
        """Return ``(key, value)`` pairs in ``key_range``, ascending."""
        result: list[tuple[bytes, bytes]] = []
        if limit is not None and limit <= 0:
            return result

        with self._env().begin() as txn:
            cursor = txn.cursor()
            if not _seek(cursor, key_range):
                return result
            for key, value in cursor:
                if key_range.lt is not None and key >= key_range.lt:
                    break
                if key_range.gt is not None and key == key_range.gt:
                    continue
                result.append((key, value))
                if limit is not None and len(result) >= limit:
                    break

        return result

    def count(self, key_range: KeyRange) -> int:
        """Count keys in ``key_range`` (walks the range)."""
        count = 0
        with self._env().begin() as txn:
            cursor = txn.cursor()
            if not _seek(cursor, key_range):
                return 0
            for key in cursor.iternext(keys=True, values=False):
                if key_range.lt is not None and key >= key_range.lt:
                    break
                if key_range.gt is not None and key == key_range.gt:
                    continue
                count += 1
        return count

    def close(self) -> None:
        """Close the LMDB environment. Safe to call twice."""
        if self.env is None:
            return
        self.env.close()
        self.env = None
        logger.debug("lmdb store closed", location=str(self.location))

    @classmethod
    def destroy(cls, location: Path | str) -> None:
        """Irreversibly delete a store location that is not open."""
        path = Path(location)
        if not path.exists():
            return
        shutil.rmtree(path)
        logger.info("lmdb store destroyed", location=str(path))
