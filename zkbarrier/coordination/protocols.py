"""
Coordination Client Protocol: What the Barrier Needs from ZooKeeper

Structural subtyping (PEP 544) for pluggable coordination backends:
- KazooCoordinationClient: a real ZooKeeper ensemble through kazoo
- InMemoryCoordinationClient: a single-process model for tests and demos

Design Principles:
    - Async-first; implementations never block the event loop
    - Result-returning; expected failures are values, not exceptions
    - Callbacks (watch fires, connection state changes) are always
      delivered on the event loop that issued the call, one at a time

Watch semantics:
    list_children() registers a one-shot watch. The on_change callback
    fires at most once, for the next child added or removed under the
    path; after that the watch is consumed and must be re-registered
    by listing again.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Callable, Optional, Protocol, runtime_checkable

from zkbarrier.core.types import Result, ConnectionEvent
from zkbarrier.core.errors import (
    CoordinationConnectionError,
    ListingError,
    ReadError,
    RegistrationError,
)

WatchCallback = Callable[[], None]
ConnectionListener = Callable[[ConnectionEvent], None]


@runtime_checkable
class CoordinationClient(Protocol):
    """Async facade over a ZooKeeper-like hierarchical node store."""

    @abstractmethod
    async def connect(self) -> Result[None, CoordinationConnectionError]:
        """Establish the session; ephemeral nodes live as long as it does."""
        ...

    @abstractmethod
    async def ensure_path(self, path: str) -> Result[None, RegistrationError]:
        """
        Create path and any missing parents as persistent nodes.

        Idempotent: an existing node, including one created concurrently
        by another participant, is not an error.
        """
        ...

    @abstractmethod
    async def create_sequential_ephemeral(
        self,
        path_prefix: str,
        data: Optional[bytes] = None,
    ) -> Result[str, RegistrationError]:
        """
        Atomically create an ephemeral sequential node carrying data.

        Returns the full path the service assigned, e.g.
        "/barrier/participant-0000000003".
        """
        ...

    @abstractmethod
    async def list_children(
        self,
        path: str,
        on_change: WatchCallback,
    ) -> Result[list[str], ListingError]:
        """List child names and register a one-shot children watch."""
        ...

    @abstractmethod
    async def read_data(self, path: str) -> Result[bytes, ReadError]:
        """Read a node's data."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Tear down the session. Calling it again is a no-op."""
        ...

    @abstractmethod
    def add_connection_listener(self, listener: ConnectionListener) -> None:
        ...

    @abstractmethod
    def remove_connection_listener(self, listener: ConnectionListener) -> None:
        ...
