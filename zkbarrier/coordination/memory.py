"""
In-Memory Coordination Backend: A Single-Process ZooKeeper Model

Models exactly the parts of ZooKeeper the barrier relies on:
    - Hierarchical persistent nodes created with mkdir -p semantics
    - Ephemeral nodes owned by a client session, removed on close/expiry
    - Per-parent sequence counters (10-digit, zero-padded suffix)
    - One-shot child watches, consumed when they fire

One InMemoryCoordinationStore is shared by many InMemoryCoordinationClient
instances, each standing in for a separate participant process.

Fault injection (for tests):
    client.fail_listing = True        -> list_children returns Err
    client.fail_reads = {"name", ...} -> read_data of those nodes returns Err
    client.fail_create = True         -> create_sequential_ephemeral returns Err

Example:
    store = InMemoryCoordinationStore()
    client = InMemoryCoordinationClient(store)
    await client.connect()
    await client.ensure_path("/barrier")
    path = (await client.create_sequential_ephemeral("/barrier/p-", b"1")).unwrap()
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import Counter as TallyCounter
from dataclasses import dataclass
from typing import Callable, Optional

from zkbarrier.core import constants as C
from zkbarrier.core.types import Result, Ok, Err, ConnectionEvent, basename
from zkbarrier.core.errors import (
    CoordinationConnectionError,
    ListingError,
    ReadError,
    RegistrationError,
)
from zkbarrier.coordination.protocols import ConnectionListener, WatchCallback

logger = logging.getLogger(__name__)


class NoNodeError(LookupError):
    """The node (or the parent of a node being created) does not exist."""


class ClientClosedError(RuntimeError):
    """Operation issued on a closed or expired session."""


class InjectedFaultError(RuntimeError):
    """Failure requested by a test through a fault-injection flag."""


# =============================================================================
# STORE
# =============================================================================
@dataclass
class _Node:
    data: bytes = b""
    owner: Optional[int] = None  # Session id for ephemeral nodes


class InMemoryCoordinationStore:
    """
    Shared node tree.

    Synchronous and single-threaded: every caller lives on the same
    event loop, so no locking is needed. Watch callbacks are invoked
    inline; clients wrap them so delivery happens on a later loop turn.
    """

    __slots__ = ("_nodes", "_children", "_sequences", "_child_watches", "_session_ids")

    def __init__(self) -> None:
        self._nodes: dict[str, _Node] = {"/": _Node()}
        self._children: dict[str, set[str]] = {"/": set()}
        self._sequences: dict[str, int] = {}
        self._child_watches: dict[str, list[Callable[[], None]]] = {}
        self._session_ids = itertools.count(1)

    def new_session(self) -> int:
        return next(self._session_ids)

    # -------------------------------------------------------------------------
    # Node operations
    # -------------------------------------------------------------------------

    def exists(self, path: str) -> bool:
        return path in self._nodes

    def ensure_path(self, path: str) -> None:
        current = ""
        for part in [p for p in path.split("/") if p]:
            parent = current or "/"
            current = f"{current}/{part}"
            if current not in self._nodes:
                self._add(parent, current, _Node())

    def create(
        self,
        path: str,
        data: bytes,
        owner: Optional[int],
        sequential: bool,
    ) -> str:
        parent, _, _ = path.rpartition("/")
        parent = parent or "/"
        if parent not in self._nodes:
            raise NoNodeError(parent)
        if sequential:
            seq = self._sequences.get(parent, 0)
            self._sequences[parent] = seq + 1
            path = f"{path}{seq:0{C.SEQUENCE_DIGITS}d}"
        if path in self._nodes:
            raise FileExistsError(path)
        self._add(parent, path, _Node(data=data, owner=owner))
        return path

    def delete(self, path: str) -> None:
        if path not in self._nodes:
            raise NoNodeError(path)
        parent = path.rpartition("/")[0] or "/"
        del self._nodes[path]
        self._children.pop(path, None)
        self._children[parent].discard(basename(path))
        self._fire_child_watches(parent)

    def get_children(self, path: str, watch: Optional[Callable[[], None]] = None) -> list[str]:
        if path not in self._nodes:
            raise NoNodeError(path)
        if watch is not None:
            self._child_watches.setdefault(path, []).append(watch)
        return list(self._children.get(path, ()))

    def get_data(self, path: str) -> bytes:
        node = self._nodes.get(path)
        if node is None:
            raise NoNodeError(path)
        return node.data

    def drop_session(self, session_id: int) -> int:
        """Remove all ephemeral nodes owned by a session. Returns count."""
        owned = [p for p, n in self._nodes.items() if n.owner == session_id]
        for path in owned:
            self.delete(path)
        return len(owned)

    def pending_watches(self, path: str) -> int:
        return len(self._child_watches.get(path, ()))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _add(self, parent: str, path: str, node: _Node) -> None:
        self._nodes[path] = node
        self._children.setdefault(path, set())
        self._children.setdefault(parent, set()).add(basename(path))
        self._fire_child_watches(parent)

    def _fire_child_watches(self, parent: str) -> None:
        # One-shot: the whole list is consumed by this change
        for watch in self._child_watches.pop(parent, []):
            watch()


# =============================================================================
# CLIENT
# =============================================================================
class InMemoryCoordinationClient:
    """
    CoordinationClient backed by an InMemoryCoordinationStore.

    Each instance is one session. Call counters (list_calls, read_calls)
    let tests assert how the barrier used the service.
    """

    def __init__(
        self,
        store: InMemoryCoordinationStore,
        *,
        latency_s: float = 0.0,
    ) -> None:
        self._store = store
        self._session_id = store.new_session()
        self._latency_s = latency_s
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._listeners: list[ConnectionListener] = []
        self._connected = False
        self._closed = False

        self.fail_listing = False
        self.fail_create = False
        self.fail_reads: set[str] = set()

        self.list_calls = 0
        self.close_calls = 0
        self.read_calls: TallyCounter[str] = TallyCounter()

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def closed(self) -> bool:
        return self._closed

    async def connect(self) -> Result[None, CoordinationConnectionError]:
        if self._closed:
            return Err(CoordinationConnectionError.connect_failed(
                "memory", 0.0, cause=ClientClosedError("session closed"),
            ))
        self._loop = asyncio.get_running_loop()
        self._connected = True
        self._emit(ConnectionEvent.CONNECTED)
        return Ok(None)

    async def ensure_path(self, path: str) -> Result[None, RegistrationError]:
        await self._delay()
        if not self._usable():
            return Err(RegistrationError.root_create_failed(
                path, cause=ClientClosedError("session not connected"),
            ))
        self._store.ensure_path(path)
        return Ok(None)

    async def create_sequential_ephemeral(
        self,
        path_prefix: str,
        data: Optional[bytes] = None,
    ) -> Result[str, RegistrationError]:
        await self._delay()
        if not self._usable():
            return Err(RegistrationError.node_create_failed(
                path_prefix, cause=ClientClosedError("session not connected"),
            ))
        if self.fail_create:
            return Err(RegistrationError.node_create_failed(
                path_prefix, cause=InjectedFaultError("create failure"),
            ))
        try:
            created = self._store.create(
                path_prefix, data or b"", owner=self._session_id, sequential=True,
            )
        except NoNodeError as e:
            return Err(RegistrationError.node_create_failed(path_prefix, cause=e))
        return Ok(created)

    async def list_children(
        self,
        path: str,
        on_change: WatchCallback,
    ) -> Result[list[str], ListingError]:
        await self._delay()
        self.list_calls += 1
        if not self._usable():
            return Err(ListingError.list_failed(
                path, cause=ClientClosedError("session not connected"),
            ))
        if self.fail_listing:
            return Err(ListingError.list_failed(
                path, cause=InjectedFaultError("listing failure"),
            ))
        try:
            return Ok(self._store.get_children(path, watch=self._deliver(on_change)))
        except NoNodeError as e:
            return Err(ListingError.list_failed(path, cause=e))

    async def read_data(self, path: str) -> Result[bytes, ReadError]:
        await self._delay()
        self.read_calls[path] += 1
        if not self._usable():
            return Err(ReadError.read_failed(
                path, cause=ClientClosedError("session not connected"),
            ))
        if basename(path) in self.fail_reads or path in self.fail_reads:
            return Err(ReadError.read_failed(path, cause=InjectedFaultError("read failure")))
        try:
            return Ok(self._store.get_data(path))
        except NoNodeError as e:
            return Err(ReadError.read_failed(path, cause=e))

    async def close(self) -> None:
        self.close_calls += 1
        if self._closed:
            return
        self._closed = True
        self._connected = False
        removed = self._store.drop_session(self._session_id)
        logger.debug("Closed in-memory session %d (%d ephemeral nodes removed)",
                     self._session_id, removed)

    def expire(self) -> None:
        """
        Simulate session expiry: ephemeral nodes vanish and listeners
        receive LOST, as when a ZooKeeper session times out.
        """
        if self._closed:
            return
        self._closed = True
        self._connected = False
        self._store.drop_session(self._session_id)
        self._emit(ConnectionEvent.LOST)

    def add_connection_listener(self, listener: ConnectionListener) -> None:
        self._listeners.append(listener)

    def remove_connection_listener(self, listener: ConnectionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _usable(self) -> bool:
        return self._connected and not self._closed

    async def _delay(self) -> None:
        # Always yield so concurrent participants interleave like real clients
        await asyncio.sleep(self._latency_s)

    def _deliver(self, callback: WatchCallback) -> Callable[[], None]:
        loop = self._loop

        def fire() -> None:
            if loop is not None and not loop.is_closed():
                loop.call_soon(callback)

        return fire

    def _emit(self, event: ConnectionEvent) -> None:
        loop = self._loop
        for listener in list(self._listeners):
            if loop is not None and not loop.is_closed():
                loop.call_soon(listener, event)
