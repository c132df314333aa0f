from edgemap.store.base import KeyRange, NotFoundError, OrderedStore
from edgemap.store.lmdb_store import LMDBStore

__all__ = [
    "KeyRange",
    "LMDBStore",
    "NotFoundError",
    "OrderedStore",
]
