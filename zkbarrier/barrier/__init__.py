"""
Barrier Module: Distributed Start Barrier over Ephemeral Sequential Nodes

Provides:
- ParticipantRegistrar: creates the root and this participant's node
- BarrierWatcher: list/diff/re-arm state machine deciding the pass
- AggregationCache: read-once payload cache with numeric/address summaries
- BarrierSession: one participant's single-resolution wait
- run_barrier: connect, wait, hold, close
"""

from zkbarrier.barrier.payload import encode_payload, decode_payload
from zkbarrier.barrier.registrar import ParticipantNode, ParticipantRegistrar
from zkbarrier.barrier.watcher import BarrierWatcher, ListingDelta
from zkbarrier.barrier.aggregation import (
    AddressSummary,
    AggregationCache,
    NumericSummary,
    Summary,
)
from zkbarrier.barrier.session import BarrierPassed, BarrierSession
from zkbarrier.barrier.runner import BarrierOutcome, Failed, Passed, run_barrier

__all__ = [
    "encode_payload",
    "decode_payload",
    "ParticipantNode",
    "ParticipantRegistrar",
    "BarrierWatcher",
    "ListingDelta",
    "AddressSummary",
    "AggregationCache",
    "NumericSummary",
    "Summary",
    "BarrierPassed",
    "BarrierSession",
    "BarrierOutcome",
    "Failed",
    "Passed",
    "run_barrier",
]
