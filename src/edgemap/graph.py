"""Directed graph map on an ordered key-value store.

Every edge (source, target) is two store records: a forward record keyed by
source and a backward record keyed by target (see ``edgemap.keys``). Lookups
in either direction are prefix range scans, so neither "targets of X" nor
"sources of Y" touches the rest of the graph.

Store calls are blocking, so each one runs in a worker thread via
``asyncio.to_thread``. There are no locks: one logical caller per map.
"""

from __future__ import annotations

import asyncio
import atexit
import tempfile
import uuid
from collections import deque
from collections.abc import Awaitable, Iterable
from enum import Enum
from pathlib import Path
from types import TracebackType

from edgemap.config import DEFAULT_MAP_SIZE, DEFAULT_PAGE_SIZE, TEMP_DIR_PREFIX
from edgemap.errors import GraphClosedError, UsageError
from edgemap.keys import (
    SENTINEL_VALUE,
    Direction,
    decode,
    direction_range,
    encode_backward,
    encode_forward,
    prefix_range,
    validate_identifier,
    validate_namespace,
)
from edgemap.logging_config import get_logger
from edgemap.store.base import KeyRange, NotFoundError, OrderedStore
from edgemap.store.lmdb_store import LMDBStore

logger = get_logger(__name__)


class LifecycleState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


def _check_page_size(page_size: int) -> int:
    if (
        isinstance(page_size, bool)
        or not isinstance(page_size, int)
        or page_size < 1
    ):
        raise ValueError(f"page_size must be a positive int: {page_size!r}")
    return page_size


class EdgeIterator:
    """Lazy iterator over every (source, target) pair of a graph map.

    Walks the forward records one page at a time. The cursor is the last key
    fetched; the next page starts strictly after it. A page shorter than
    ``page_size`` ends the iteration. Nothing is held between pages, so an
    abandoned iterator leaks nothing.

    Edges added or removed while iterating may or may not be seen.
    """

    def __init__(self, graph: DirectedGraphMap, page_size: int):
        self._graph = graph
        self.page_size = _check_page_size(page_size)
        self._range = direction_range(graph.namespace, Direction.FORWARD)
        self._buffer: deque[tuple[str, str]] = deque()
        self._cursor: bytes | None = None
        self._exhausted = False

    def __aiter__(self) -> EdgeIterator:
        return self

    async def __anext__(self) -> tuple[str, str]:
        if not self._buffer:
            if self._exhausted:
                raise StopAsyncIteration
            await self._fetch_page()
            if not self._buffer:
                raise StopAsyncIteration
        return self._buffer.popleft()

    async def _fetch_page(self) -> None:
        if self._cursor is None:
            key_range = self._range
        else:
            key_range = self._range.after(self._cursor)

        page = await self._graph._scan(key_range, limit=self.page_size)
        if len(page) < self.page_size:
            self._exhausted = True
        if not page:
            return

        self._cursor = page[-1][0]
        namespace = self._graph.namespace
        for key, _ in page:
            self._buffer.append(decode(Direction.FORWARD, key, namespace))


class DirectedGraphMap:
    """Persistent map of directed edges between string identifiers.

    Without ``store`` or ``location`` the map creates a private LMDB store in
    a fresh temporary directory and deletes it on close. With ``location``
    it opens (and on close, closes) a store there but keeps the files. With
    ``store`` it shares an existing store: only keys under ``namespace`` are
    touched and the store is never closed by the map.

    The constructor does no I/O. Await ``ready`` (or use ``async with``)
    before relying on the bulk ``edges``; operations issued earlier wait for
    initialization to finish.

    ``close()`` is the cleanup contract. Owned stores also register an
    ``atexit`` hook as a fallback.

    Example:
        async with DirectedGraphMap([("A", "B")]) as graph:
            await graph.add_edge("B", "C")
            await graph.get_targets("B")  # {"C"}
    """

    def __init__(
        self,
        edges: Iterable[tuple[str, str]] = (),
        *,
        store: OrderedStore | None = None,
        location: Path | str | None = None,
        namespace: str = "",
        page_size: int | None = None,
        map_size: int = DEFAULT_MAP_SIZE,
    ):
        if store is not None and location is not None:
            raise UsageError("pass either store or location, not both")

        self.namespace = validate_namespace(namespace)
        self.page_size = _check_page_size(
            DEFAULT_PAGE_SIZE if page_size is None else page_size
        )
        self.location = Path(location) if location is not None else None
        self.state = LifecycleState.UNINITIALIZED

        self._store = store
        self._owns_store = store is None
        self._remove_on_close = store is None and location is None
        self._map_size = map_size
        self._initial_edges = edges
        self._init_task: asyncio.Task[None] | None = None

    @property
    def owns_store(self) -> bool:
        return self._owns_store

    @property
    def ready(self) -> Awaitable[None]:
        """Awaitable that resolves once the map is initialized.

        First access starts initialization on the running event loop.
        """
        if self._init_task is None:
            if self.state is LifecycleState.CLOSED:
                raise GraphClosedError(self.namespace)
            loop = asyncio.get_running_loop()
            self._init_task = loop.create_task(self._init())
        return self._init_task

    async def _init(self) -> None:
        if self.state is LifecycleState.CLOSED:
            return
        self.state = LifecycleState.INITIALIZING

        if self._store is None:
            if self.location is None:
                self.location = (
                    Path(tempfile.gettempdir())
                    / f"{TEMP_DIR_PREFIX}{uuid.uuid4().hex}"
                )
            self._store = await asyncio.to_thread(
                LMDBStore, self.location, self._map_size
            )
            atexit.register(self._close_at_exit)

        count = 0
        for source, target in self._initial_edges:
            validate_identifier(source)
            validate_identifier(target)
            await self._write_edge(self._store, source, target)
            count += 1
        self._initial_edges = ()

        if self.state is LifecycleState.INITIALIZING:
            self.state = LifecycleState.READY
        logger.info(
            "graph map ready",
            namespace=self.namespace,
            location=str(self.location) if self.location else None,
            owns_store=self._owns_store,
            initial_edges=count,
        )

    async def _ensure_ready(self) -> OrderedStore:
        if self.state is not LifecycleState.READY:
            if self.state is LifecycleState.CLOSED:
                raise GraphClosedError(self.namespace)
            await self.ready
            if self.state is LifecycleState.CLOSED:
                raise GraphClosedError(self.namespace)
        assert self._store is not None
        return self._store

    async def close(self) -> None:
        """Close the map. Safe to call more than once or before ``ready``.

        Owned stores are closed, and private temporary stores deleted.
        Shared stores are left untouched.
        """
        if self.state is LifecycleState.CLOSED:
            return
        self.state = LifecycleState.CLOSED

        task = self._init_task
        if task is not None:
            if not task.done():
                await asyncio.wait([task])
            if not task.cancelled() and task.exception() is not None:
                logger.warning(
                    "closing graph map after failed initialization",
                    namespace=self.namespace,
                    error=str(task.exception()),
                )

        store = self._store
        self._store = None
        if not self._owns_store or store is None:
            logger.debug("graph map released", namespace=self.namespace)
            return

        atexit.unregister(self._close_at_exit)
        await asyncio.to_thread(store.close)
        if self._remove_on_close and self.location is not None:
            await asyncio.to_thread(LMDBStore.destroy, self.location)
        logger.info(
            "graph map closed",
            namespace=self.namespace,
            location=str(self.location),
        )

    def _close_at_exit(self) -> None:
        store = self._store
        if store is None:
            return
        self._store = None
        self.state = LifecycleState.CLOSED
        store.close()
        if self._remove_on_close and self.location is not None:
            LMDBStore.destroy(self.location)

    async def __aenter__(self) -> DirectedGraphMap:
        await self.ready
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # =========================================================================
    # Store access
    # =========================================================================

    async def _scan(
        self, key_range: KeyRange, limit: int | None = None
    ) -> list[tuple[bytes, bytes]]:
        store = await self._ensure_ready()
        return await asyncio.to_thread(store.scan, key_range, limit)

    async def _write_edge(
        self, store: OrderedStore, source: str, target: str
    ) -> None:
        forward = encode_forward(self.namespace, source, target)
        backward = encode_backward(self.namespace, source, target)
        await asyncio.to_thread(
            store.write_batch,
            puts=[(forward, SENTINEL_VALUE), (backward, SENTINEL_VALUE)],
        )

    async def _delete_edges(
        self, store: OrderedStore, edges: list[tuple[str, str]]
    ) -> None:
        if not edges:
            return
        deletes: list[bytes] = []
        for source, target in edges:
            deletes.append(encode_forward(self.namespace, source, target))
            deletes.append(encode_backward(self.namespace, source, target))
        await asyncio.to_thread(store.write_batch, deletes=deletes)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add_edge(self, source: str, target: str) -> None:
        """Add an edge. Adding an existing edge changes nothing."""
        validate_identifier(source)
        validate_identifier(target)
        store = await self._ensure_ready()
        await self._write_edge(store, source, target)

    async def remove_edge(self, source: str, target: str) -> None:
        """Remove an edge. Removing a missing edge is not an error."""
        validate_identifier(source)
        validate_identifier(target)
        store = await self._ensure_ready()
        await self._delete_edges(store, [(source, target)])

    async def remove_source(self, source: str) -> None:
        """Remove all edges from ``source``."""
        validate_identifier(source)
        store = await self._ensure_ready()
        key_range = prefix_range(self.namespace, Direction.FORWARD, source)
        records = await asyncio.to_thread(store.scan, key_range)
        edges = [
            decode(Direction.FORWARD, key, self.namespace)
            for key, _ in records
        ]
        await self._delete_edges(store, edges)
        logger.debug(
            "source removed",
            namespace=self.namespace,
            source=source,
            edges=len(edges),
        )

    async def remove_target(self, target: str) -> None:
        """Remove all edges to ``target``."""
        validate_identifier(target)
        store = await self._ensure_ready()
        key_range = prefix_range(self.namespace, Direction.BACKWARD, target)
        records = await asyncio.to_thread(store.scan, key_range)
        edges = []
        for key, _ in records:
            t, s = decode(Direction.BACKWARD, key, self.namespace)
            edges.append((s, t))
        await self._delete_edges(store, edges)
        logger.debug(
            "target removed",
            namespace=self.namespace,
            target=target,
            edges=len(edges),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def has_edge(self, source: str, target: str) -> bool:
        validate_identifier(source)
        validate_identifier(target)
        store = await self._ensure_ready()
        key = encode_forward(self.namespace, source, target)
        try:
            await asyncio.to_thread(store.get, key)
        except NotFoundError:
            return False
        return True

    async def has_source(self, source: str) -> bool:
        """Whether ``source`` has at least one outgoing edge."""
        validate_identifier(source)
        records = await self._scan(
            prefix_range(self.namespace, Direction.FORWARD, source), limit=1
        )
        return bool(records)

    async def has_target(self, target: str) -> bool:
        """Whether ``target`` has at least one incoming edge."""
        validate_identifier(target)
        records = await self._scan(
            prefix_range(self.namespace, Direction.BACKWARD, target), limit=1
        )
        return bool(records)

    async def get_targets(self, source: str) -> set[str]:
        """Get all targets with edges from ``source``."""
        validate_identifier(source)
        records = await self._scan(
            prefix_range(self.namespace, Direction.FORWARD, source)
        )
        return {
            decode(Direction.FORWARD, key, self.namespace)[1]
            for key, _ in records
        }

    async def get_sources(self, target: str) -> set[str]:
        """Get all sources with edges to ``target``."""
        validate_identifier(target)
        records = await self._scan(
            prefix_range(self.namespace, Direction.BACKWARD, target)
        )
        return {
            decode(Direction.BACKWARD, key, self.namespace)[1]
            for key, _ in records
        }

    # =========================================================================
    # Enumeration
    # =========================================================================

    def iter_edges(self, page_size: int | None = None) -> EdgeIterator:
        """Iterate all edges, fetching ``page_size`` edges per scan.

        Each call starts a new, independent pass over the graph.
        """
        return EdgeIterator(
            self, self.page_size if page_size is None else page_size
        )

    def __aiter__(self) -> EdgeIterator:
        return self.iter_edges()

    async def edges(self) -> list[tuple[str, str]]:
        return [edge async for edge in self.iter_edges()]

    async def sources(self) -> set[str]:
        return {source async for source, _ in self.iter_edges()}

    async def targets(self) -> set[str]:
        return {target async for _, target in self.iter_edges()}

    async def size(self) -> int:
        """Edge count. Walks every forward record, so it costs O(edges)."""
        store = await self._ensure_ready()
        key_range = direction_range(self.namespace, Direction.FORWARD)
        return await asyncio.to_thread(store.count, key_range)
