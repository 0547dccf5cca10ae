"""
Barrier Runner: One Participant, Start to Finish

Lifecycle:
    validate ─► connect ─► BarrierSession.wait() ─► grace period ─► close
                               │ (optional caller timeout)
                               └──────────────► Failed(TIMEOUT)

The runner is the process-level owner of the coordination client: it
closes it exactly once on every path, which is also what removes this
participant's ephemeral node.

Outcomes are plain values; run_barrier() does not raise for barrier
failures. Only the CLI maps an outcome to an exit status.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Union

from zkbarrier.core.config import ZkBarrierConfig
from zkbarrier.core.errors import BarrierError, SessionError
from zkbarrier.coordination.protocols import CoordinationClient
from zkbarrier.coordination.kazoo_client import KazooCoordinationClient
from zkbarrier.barrier.aggregation import Summary
from zkbarrier.barrier.registrar import ParticipantNode
from zkbarrier.barrier.session import BarrierSession
from zkbarrier.observability.logging import StructuredLogger
from zkbarrier.observability.metrics import BarrierMetrics, MetricsCollector

log = StructuredLogger("zkbarrier.barrier.runner")


@dataclass(frozen=True, slots=True)
class Passed:
    participant_count: int
    elapsed_ms: float
    summary: Optional[Summary] = None
    node: Optional[ParticipantNode] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": "passed",
            "participant_count": self.participant_count,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "summary": self.summary.to_dict() if self.summary is not None else None,
            "node": self.node.name if self.node is not None else None,
        }


@dataclass(frozen=True, slots=True)
class Failed:
    error_kind: str
    message: str

    @classmethod
    def from_error(cls, error: BarrierError) -> Failed:
        return cls(error_kind=error.error_kind, message=error.message)

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": "failed", "error_kind": self.error_kind, "message": self.message}


BarrierOutcome = Union[Passed, Failed]


async def run_barrier(
    config: ZkBarrierConfig,
    client: Optional[CoordinationClient] = None,
    metrics: Optional[BarrierMetrics] = None,
) -> BarrierOutcome:
    """
    Join the configured barrier and wait for it to pass.

    Args:
        config: Full configuration; validated before anything connects
        client: Coordination client to use (default: kazoo on
            config.coordination.hosts). Closed before returning.
        metrics: Metric handles (default: process-wide collector, or a
            private one when config.observability.metrics_enabled is off)
    """
    valid = config.validate()
    if valid.is_err():
        error = SessionError.invalid_config(valid.error)
        log.error("Refusing to start barrier", **error.log_fields())
        if client is not None:
            await client.close()
        return Failed.from_error(error)

    if client is None:
        client = KazooCoordinationClient(config.coordination)
    if metrics is None and not config.observability.metrics_enabled:
        # Recorded but never reachable from the process-wide collector
        metrics = BarrierMetrics(MetricsCollector())

    try:
        return await _run_connected(config, client, metrics)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        error = SessionError.internal(e)
        log.error("Barrier aborted", **error.log_fields())
        return Failed.from_error(error)
    finally:
        await client.close()


async def _run_connected(
    config: ZkBarrierConfig,
    client: CoordinationClient,
    metrics: Optional[BarrierMetrics],
) -> BarrierOutcome:
    barrier = config.barrier
    connected = await client.connect()
    if connected.is_err():
        log.error("Could not connect", **connected.error.log_fields())
        return Failed.from_error(connected.error)

    session = BarrierSession(
        client,
        barrier,
        metrics=metrics,
        read_timeout_s=config.coordination.read_timeout_s,
    )
    log.info(
        "Joining barrier",
        hosts=config.coordination.hosts,
        barrier_path=barrier.barrier_path,
        target=barrier.target_count,
    )

    try:
        result = await asyncio.wait_for(session.wait(), timeout=barrier.timeout_s)
    except asyncio.TimeoutError:
        session.stop(SessionError.timed_out(
            barrier.barrier_path,
            barrier.timeout_s,
            observed=len(session.observed),
            target=barrier.target_count,
        ))
        result = await session.wait()
    except asyncio.CancelledError:
        # wait() is shielded; the session itself must be told to stop
        session.stop()
        raise

    if result.is_err():
        return Failed.from_error(result.error)

    passed = result.unwrap()
    if barrier.grace_period_ms > 0:
        # Keep our node visible while slower participants observe quorum
        log.debug("Holding node before disconnect", grace_ms=barrier.grace_period_ms)
        await asyncio.sleep(barrier.grace_period_ms / 1000)

    return Passed(
        participant_count=passed.participant_count,
        elapsed_ms=passed.elapsed_ms,
        summary=passed.summary,
        node=passed.node,
    )
