"""
Shared helpers for driving barrier components on an event loop.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from zkbarrier.coordination.memory import InMemoryCoordinationClient, InMemoryCoordinationStore
from zkbarrier.observability.metrics import BarrierMetrics, MetricsCollector


def fresh_metrics() -> BarrierMetrics:
    """Metrics on a private collector so counts start at zero."""
    return BarrierMetrics(MetricsCollector())


async def connected(store: InMemoryCoordinationStore, count: int = 1) -> list[InMemoryCoordinationClient]:
    clients = [InMemoryCoordinationClient(store) for _ in range(count)]
    for client in clients:
        result = await client.connect()
        assert result.is_ok()
    return clients


async def wait_until(condition: Callable[[], bool], timeout_s: float = 2.0) -> None:
    """Yield to the loop until condition() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)
