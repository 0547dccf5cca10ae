"""
Barrier Watcher: List, Diff, Decide, Re-arm

State machine:
    UNARMED  → WATCHING : start()
    WATCHING → PASSED   : a listing reaches target_count (terminal)
    WATCHING → FAILED   : listing error or stop()         (terminal)

Each cycle:
    1. create a fresh single-fire future for this cycle
    2. list children with a one-shot watch that resolves that future
    3. replace the observed set with the listing, diff against the old one
    4. passed -> return, the watch just armed is abandoned
       otherwise -> await the future, then go to 1

The watch is registered by the same call that returns the listing, so
a change that lands after the listing always resolves the future; a
change can never fall between "listed" and "watching".

Notifications arriving once the watcher is terminal are counted and
dropped; they never start another listing.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, Optional

from zkbarrier.core.types import Result, Ok, Err, BarrierState, order_children
from zkbarrier.core.errors import BarrierError, SessionError
from zkbarrier.coordination.protocols import CoordinationClient
from zkbarrier.observability.logging import StructuredLogger
from zkbarrier.observability.metrics import BarrierMetrics

log = StructuredLogger("zkbarrier.barrier.watcher")


@dataclass(frozen=True, slots=True)
class ListingDelta:
    """Outcome of one listing: what appeared, the full set, and the decision."""
    added: tuple[str, ...]
    children: tuple[str, ...]
    passed: bool

    @property
    def count(self) -> int:
        return len(self.children)


class BarrierWatcher:
    """
    Watches the barrier root until target_count children exist.

    Usage:
        watcher = BarrierWatcher(client, "/barrier", target_count=5)
        result = await watcher.run(on_delta=schedule_aggregation)
        if result.is_ok():
            final = result.unwrap()   # ListingDelta with passed=True

    handle_listing() is the pure transition used by run(); it can be
    driven directly with synthetic listings.
    """

    __slots__ = (
        "_client", "_path", "_target", "_metrics",
        "_state", "_observed", "_pending", "_final",
    )

    def __init__(
        self,
        client: CoordinationClient,
        barrier_path: str,
        target_count: int,
        metrics: Optional[BarrierMetrics] = None,
    ) -> None:
        if target_count < 1:
            raise ValueError(f"target_count must be >= 1, got {target_count}")
        self._client = client
        self._path = barrier_path
        self._target = target_count
        self._metrics = metrics or BarrierMetrics()
        self._state = BarrierState.UNARMED
        self._observed: tuple[str, ...] = ()
        self._pending: Optional[asyncio.Future[None]] = None
        self._final: Optional[ListingDelta] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> BarrierState:
        return self._state

    @property
    def observed(self) -> tuple[str, ...]:
        """Children as of the latest listing, in sequence order."""
        return self._observed

    @property
    def target_count(self) -> int:
        return self._target

    @property
    def final(self) -> Optional[ListingDelta]:
        """The passing listing, once PASSED."""
        return self._final

    @property
    def watch_armed(self) -> bool:
        """A watch is live exactly while the watcher is WATCHING."""
        return self._state is BarrierState.WATCHING

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._state is not BarrierState.UNARMED:
            raise RuntimeError(f"Watcher already started (state={self._state.name})")
        self._state = BarrierState.WATCHING

    def handle_listing(self, children: Iterable[str]) -> Optional[ListingDelta]:
        """
        Apply one listing result.

        The listing replaces the observed set; added is the set
        difference against the previous listing. Returns None when the
        watcher is no longer WATCHING, so a late listing cannot produce
        a second pass.
        """
        if self._state is not BarrierState.WATCHING:
            return None

        current = order_children(children)
        previous = set(self._observed)
        added = tuple(name for name in current if name not in previous)
        self._observed = current
        self._metrics.observed_children.set(len(current))

        passed = len(current) >= self._target
        delta = ListingDelta(added=added, children=current, passed=passed)
        if passed:
            self._state = BarrierState.PASSED
            self._final = delta
        return delta

    def stop(self) -> None:
        """Abandon the barrier. No further listings are issued."""
        if self._state.is_terminal:
            return
        self._state = BarrierState.FAILED
        self._wake()

    # -------------------------------------------------------------------------
    # Watch loop
    # -------------------------------------------------------------------------

    async def run(
        self,
        on_delta: Optional[Callable[[ListingDelta], None]] = None,
    ) -> Result[ListingDelta, BarrierError]:
        """
        Run list/re-arm cycles until the barrier passes or fails.

        on_delta is called synchronously for every accepted listing,
        including the passing one, before run() returns or waits.
        """
        self.start()
        loop = asyncio.get_running_loop()
        try:
            while self._state is BarrierState.WATCHING:
                changed: asyncio.Future[None] = loop.create_future()
                self._pending = changed
                self._metrics.listings.inc()

                listing = await self._client.list_children(
                    self._path, partial(self._notify, changed),
                )
                if self._state is not BarrierState.WATCHING:
                    break
                if listing.is_err():
                    self._state = BarrierState.FAILED
                    log.error("Listing failed", **listing.error.log_fields())
                    return listing

                delta = self.handle_listing(listing.unwrap())
                if delta is None:
                    break
                if on_delta is not None:
                    on_delta(delta)

                if delta.passed:
                    log.info("Barrier passed", ready=delta.count, target=self._target)
                    return Ok(delta)

                self._metrics.rearms.inc()
                log.info(
                    "Waiting for participants",
                    ready=delta.count,
                    target=self._target,
                    added=len(delta.added),
                )
                await changed
        finally:
            self._pending = None
            if self._state is BarrierState.WATCHING:
                # Cancelled mid-cycle
                self._state = BarrierState.FAILED

        return Err(SessionError.stopped(self._path))

    def _notify(self, changed: asyncio.Future[None]) -> None:
        if self._state is not BarrierState.WATCHING:
            self._metrics.stale_notifications.inc()
            log.debug("Ignoring notification after resolution", state=self._state.name)
            return
        if not changed.done():
            changed.set_result(None)

    def _wake(self) -> None:
        pending = self._pending
        if pending is not None and not pending.done():
            pending.set_result(None)
