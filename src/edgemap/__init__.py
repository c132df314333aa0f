"""Directed edge index on an ordered key-value store."""

from edgemap.errors import (
    EdgeMapError,
    EncodingError,
    GraphClosedError,
    UsageError,
)
from edgemap.graph import DirectedGraphMap, EdgeIterator, LifecycleState
from edgemap.store import KeyRange, LMDBStore, NotFoundError, OrderedStore

__version__ = "0.1.0"

__all__ = [
    "DirectedGraphMap",
    "EdgeIterator",
    "EdgeMapError",
    "EncodingError",
    "GraphClosedError",
    "KeyRange",
    "LMDBStore",
    "LifecycleState",
    "NotFoundError",
    "OrderedStore",
    "UsageError",
]
