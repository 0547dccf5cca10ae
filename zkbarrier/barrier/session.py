"""
Barrier Session: Register, Watch, Aggregate, Resolve Once

Orchestration:
    ParticipantRegistrar ─► BarrierWatcher ─► BarrierPassed
                                 │
                                 └─(each delta)─► AggregationCache (background)

Resolution:
    The session resolves exactly once, with the first of:
        - Ok(BarrierPassed)                 watcher saw target_count children
        - Err(RegistrationError)            root or own node could not be created
        - Err(ListingError)                 a listing failed
        - Err(CoordinationConnectionError)  the service session was lost
        - Err(SessionError)                 stop() was called (e.g. caller timeout)
    Later calls to wait() return the same result; no component can
    produce a second resolution or start another listing.

Counting never waits on payload reads: aggregation for each delta runs
in its own task. Only after the pass decision does the session drain
those tasks to report the final summary.

The session never deletes its participant node. Ownership stays with
the service, which removes it when the connection is closed.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

from zkbarrier.core import constants as C
from zkbarrier.core.config import BarrierConfig
from zkbarrier.core.types import Result, Ok, Err, BarrierState, ConnectionEvent
from zkbarrier.core.errors import (
    BarrierError,
    CoordinationConnectionError,
    SessionError,
)
from zkbarrier.coordination.protocols import CoordinationClient
from zkbarrier.barrier.aggregation import AggregationCache, Summary
from zkbarrier.barrier.payload import encode_payload
from zkbarrier.barrier.registrar import ParticipantNode, ParticipantRegistrar
from zkbarrier.barrier.watcher import BarrierWatcher, ListingDelta
from zkbarrier.observability.logging import StructuredLogger
from zkbarrier.observability.metrics import BarrierMetrics

log = StructuredLogger("zkbarrier.barrier.session")


@dataclass(frozen=True, slots=True)
class BarrierPassed:
    """Successful resolution of a session."""
    node: ParticipantNode
    final_children: tuple[str, ...]
    elapsed_ms: float
    summary: Optional[Summary] = None

    @property
    def participant_count(self) -> int:
        return len(self.final_children)


class BarrierSession:
    """
    One participant's pass through one barrier.

    Usage:
        session = BarrierSession(client, BarrierConfig(target_count=5))
        result = await session.wait()
        match result:
            case Ok(passed):
                ...
            case Err(error):
                ...

    The client must already be connected. The session does not close it.
    """

    __slots__ = (
        "_client", "_config", "_metrics", "_watcher", "_cache",
        "_node", "_outcome", "_running", "_aggregations",
        "_interrupt", "_pending_stop", "_started_at",
    )

    def __init__(
        self,
        client: CoordinationClient,
        config: BarrierConfig,
        metrics: Optional[BarrierMetrics] = None,
        read_timeout_s: float = C.READ_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._config = config
        self._metrics = metrics or BarrierMetrics()
        self._watcher = BarrierWatcher(
            client, config.barrier_path, config.target_count, self._metrics,
        )
        self._cache: Optional[AggregationCache] = None
        if config.payload_kind is not None:
            self._cache = AggregationCache(
                client,
                config.barrier_path,
                config.payload_kind,
                top_n=config.top_n,
                read_timeout_s=read_timeout_s,
                metrics=self._metrics,
            )
        self._node: Optional[ParticipantNode] = None
        self._outcome: Optional[Result[BarrierPassed, BarrierError]] = None
        self._running: Optional[asyncio.Task[Result[BarrierPassed, BarrierError]]] = None
        self._aggregations: set[asyncio.Task[Summary]] = set()
        self._interrupt: Optional[asyncio.Future[BarrierError]] = None
        self._pending_stop: Optional[BarrierError] = None
        self._started_at = 0.0

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> BarrierState:
        return self._watcher.state

    @property
    def node(self) -> Optional[ParticipantNode]:
        return self._node

    @property
    def observed(self) -> tuple[str, ...]:
        return self._watcher.observed

    @property
    def resolved(self) -> bool:
        return self._outcome is not None

    @property
    def cache(self) -> Optional[AggregationCache]:
        return self._cache

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def wait(self) -> Result[BarrierPassed, BarrierError]:
        """
        Block until the barrier passes or fails.

        Safe to call repeatedly or concurrently; every caller gets the
        single resolution. Cancelling a caller does not cancel the
        session; use stop() for that.
        """
        if self._outcome is not None:
            return self._outcome
        if self._running is None:
            self._running = asyncio.ensure_future(self._run())
        return await asyncio.shield(self._running)

    def stop(self, error: Optional[BarrierError] = None) -> None:
        """
        Abandon the barrier.

        A pending wait() resolves with error (SessionError.stopped by
        default). No-op once resolved.
        """
        if self._outcome is not None:
            return
        error = error or SessionError.stopped(self._config.barrier_path)
        self._watcher.stop()
        self._interrupt_with(error)

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    async def _run(self) -> Result[BarrierPassed, BarrierError]:
        loop = asyncio.get_running_loop()
        self._started_at = time.monotonic()
        self._interrupt = loop.create_future()
        if self._pending_stop is not None:
            self._interrupt.set_result(self._pending_stop)
        self._client.add_connection_listener(self._on_connection_event)
        try:
            with log.context(barrier_path=self._config.barrier_path):
                result = await self._register_and_watch()
        finally:
            self._client.remove_connection_listener(self._on_connection_event)
            for task in list(self._aggregations):
                task.cancel()
        return self._resolve(result)

    async def _register_and_watch(self) -> Result[BarrierPassed, BarrierError]:
        payload_bytes = None
        if self._config.payload is not None and self._config.payload_kind is not None:
            try:
                payload_bytes = encode_payload(self._config.payload, self._config.payload_kind)
            except ValueError as e:
                self._watcher.stop()
                return Err(SessionError.invalid_config(str(e)))

        registrar = ParticipantRegistrar(self._client)
        registered = await self._until_interrupted(
            registrar.register(
                self._config.barrier_path, payload_bytes, self._config.node_prefix,
            )
        )
        if registered.is_err():
            self._watcher.stop()
            return registered
        self._node = registered.unwrap()

        with log.context(node=self._node.name):
            watched = await self._until_interrupted(self._watcher.run(self._on_delta))
            if watched.is_err():
                self._watcher.stop()
                return watched
            return Ok(await self._passed(watched.unwrap()))

    async def _until_interrupted(self, operation: Awaitable[Result[Any, BarrierError]]) -> Result[Any, BarrierError]:
        """Run an operation, resolving early on connection loss or stop()."""
        task = asyncio.ensure_future(operation)
        interrupt = self._interrupt
        if interrupt is None:
            return await task

        done, _ = await asyncio.wait({task, interrupt}, return_when=asyncio.FIRST_COMPLETED)
        if task in done:
            result = task.result()
            # A watcher stopped by the interrupt reports the interrupt's error
            if result.is_ok() or not interrupt.done():
                return result
            return Err(interrupt.result())

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
        return Err(interrupt.result())

    async def _passed(self, final: ListingDelta) -> BarrierPassed:
        elapsed_ms = (time.monotonic() - self._started_at) * 1000
        self._metrics.wait_seconds.observe(elapsed_ms / 1000)

        summary: Optional[Summary] = None
        if self._cache is not None:
            if self._aggregations:
                # Failures were logged by _aggregation_done
                await asyncio.gather(*self._aggregations, return_exceptions=True)
            summary = self._cache.summarize(final.children)
            log.info("Final aggregate", **summary.to_dict())

        return BarrierPassed(
            node=self._node,
            final_children=final.children,
            elapsed_ms=elapsed_ms,
            summary=summary,
        )

    def _resolve(
        self,
        result: Result[BarrierPassed, BarrierError],
    ) -> Result[BarrierPassed, BarrierError]:
        if self._outcome is not None:
            return self._outcome
        self._outcome = result
        if result.is_ok():
            passed = result.unwrap()
            log.info(
                "Barrier resolved",
                barrier_path=self._config.barrier_path,
                ready=passed.participant_count,
                elapsed_ms=round(passed.elapsed_ms, 1),
            )
        else:
            log.error(
                "Barrier failed",
                barrier_path=self._config.barrier_path,
                **result.error.log_fields(),
            )
        return result

    def _interrupt_with(self, error: BarrierError) -> None:
        interrupt = self._interrupt
        if interrupt is None:
            # wait() not started yet; applied when it is
            self._pending_stop = self._pending_stop or error
        elif not interrupt.done():
            interrupt.set_result(error)

    # -------------------------------------------------------------------------
    # Callbacks (on the event loop)
    # -------------------------------------------------------------------------

    def _on_delta(self, delta: ListingDelta) -> None:
        if self._cache is None or not delta.added:
            return
        task = asyncio.ensure_future(self._cache.update(delta.added, delta.children))
        self._aggregations.add(task)
        task.add_done_callback(self._aggregation_done)

    def _aggregation_done(self, task: asyncio.Task[Summary]) -> None:
        self._aggregations.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error(
                "Aggregation failed, summary will omit this delta",
                cause=f"{type(error).__name__}: {error}",
            )

    def _on_connection_event(self, event: ConnectionEvent) -> None:
        if event is ConnectionEvent.SUSPENDED:
            log.warning("Coordination connection suspended")
            return
        if event is not ConnectionEvent.LOST or self._outcome is not None:
            return
        self._watcher.stop()
        self._interrupt_with(CoordinationConnectionError.session_lost(event.name))
