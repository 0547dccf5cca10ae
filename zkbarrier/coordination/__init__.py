"""
Coordination Module: Access to the ZooKeeper-like Node Store

Provides:
- CoordinationClient: protocol the barrier is written against
- KazooCoordinationClient: ZooKeeper through kazoo
- InMemoryCoordinationClient: shared in-process store for tests and demos
"""

from zkbarrier.coordination.protocols import (
    CoordinationClient,
    ConnectionListener,
    WatchCallback,
)
from zkbarrier.coordination.memory import (
    InMemoryCoordinationClient,
    InMemoryCoordinationStore,
)
from zkbarrier.coordination.kazoo_client import KazooCoordinationClient

__all__ = [
    "CoordinationClient",
    "ConnectionListener",
    "WatchCallback",
    "InMemoryCoordinationClient",
    "InMemoryCoordinationStore",
    "KazooCoordinationClient",
]
