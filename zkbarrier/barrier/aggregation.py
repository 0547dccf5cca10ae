"""
Aggregation Cache: Read Each Participant's Payload Once, Summarize Often

Data Model:
    values:  node name -> decoded payload    (successful reads)
    issued:  every node name a read was ever started for

A node's data is set atomically at creation and never changes for the
node's lifetime, so a value read once stays correct; nothing is ever
re-read. A node whose read failed stays out of every later summary.

Summaries are computed over the caller's current children filtered to
the names present in the cache: reads still in flight are left out
instead of waited for, and nodes that have since disappeared (ephemeral
owner gone) drop out even though their value stays cached.

Complexity:
    update: O(|added|) reads, issued concurrently
    summarize: O(|children|)
"""

from __future__ import annotations

import asyncio
from collections import Counter as TallyCounter
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Union

import numpy as np

from zkbarrier.core import constants as C
from zkbarrier.core.types import Result, Ok, Err, PayloadKind, join_path
from zkbarrier.core.errors import ReadError
from zkbarrier.coordination.protocols import CoordinationClient
from zkbarrier.barrier.payload import PayloadValue, decode_payload
from zkbarrier.observability.logging import StructuredLogger
from zkbarrier.observability.metrics import BarrierMetrics

log = StructuredLogger("zkbarrier.barrier.aggregation")


# =============================================================================
# SUMMARIES
# =============================================================================
@dataclass(frozen=True, slots=True)
class NumericSummary:
    """count/min/max/mean over numeric payloads; empty -> None fields."""
    count: int
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None

    @classmethod
    def of(cls, values: Sequence[float]) -> NumericSummary:
        if not values:
            return cls(count=0)
        arr = np.fromiter(values, dtype=np.float64, count=len(values))
        return cls(
            count=int(arr.size),
            min=float(arr.min()),
            max=float(arr.max()),
            mean=float(arr.mean()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "min": self.min, "max": self.max, "mean": self.mean}


@dataclass(frozen=True, slots=True)
class AddressSummary:
    """
    Frequency counts over address payloads.

    frequency_table keeps first-seen order (children in sequence order);
    top lists the top_n most frequent, ties in first-seen order.
    """
    unique_count: int
    frequency_table: dict[str, int] = field(default_factory=dict)
    top: tuple[tuple[str, int], ...] = ()

    @classmethod
    def of(cls, values: Iterable[str], top_n: int) -> AddressSummary:
        table: TallyCounter[str] = TallyCounter()
        for value in values:
            table[value] += 1
        return cls(
            unique_count=len(table),
            frequency_table=dict(table),
            # most_common sorts stably, so equal counts keep insertion order
            top=tuple(table.most_common(top_n)),
        )

    @property
    def count(self) -> int:
        return sum(self.frequency_table.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "unique_count": self.unique_count,
            "frequency_table": dict(self.frequency_table),
            "top": [list(item) for item in self.top],
        }


Summary = Union[NumericSummary, AddressSummary]


# =============================================================================
# CACHE
# =============================================================================
class AggregationCache:
    """
    Memoized payload reads plus summary computation.

    Usage:
        cache = AggregationCache(client, "/barrier", PayloadKind.NUMERIC)
        summary = await cache.update(delta.added, delta.children)

    Owned by a single BarrierSession; never shared across sessions.
    """

    __slots__ = (
        "_client", "_path", "_kind", "_top_n",
        "_read_timeout_s", "_metrics", "_values", "_issued",
    )

    def __init__(
        self,
        client: CoordinationClient,
        barrier_path: str,
        kind: PayloadKind,
        top_n: int = C.DEFAULT_TOP_N,
        read_timeout_s: float = C.READ_TIMEOUT_S,
        metrics: Optional[BarrierMetrics] = None,
    ) -> None:
        self._client = client
        self._path = barrier_path
        self._kind = kind
        self._top_n = top_n
        self._read_timeout_s = read_timeout_s
        self._metrics = metrics or BarrierMetrics()
        self._values: dict[str, PayloadValue] = {}
        self._issued: set[str] = set()

    @property
    def kind(self) -> PayloadKind:
        return self._kind

    @property
    def values(self) -> dict[str, PayloadValue]:
        """Copy of the decoded payloads read so far."""
        return dict(self._values)

    @property
    def reads_issued(self) -> frozenset[str]:
        return frozenset(self._issued)

    async def update(
        self,
        added: Iterable[str],
        all_children: Sequence[str],
    ) -> Summary:
        """
        Read payloads of newly added nodes, then summarize all_children.

        Names already read (or already being read) are skipped, so a name
        repeated across deltas is still fetched only once.
        """
        fresh = []
        for name in added:
            if name not in self._issued:
                self._issued.add(name)
                fresh.append(name)

        if fresh:
            results = await asyncio.gather(*(self._read(name) for name in fresh))
            for name, result in zip(fresh, results):
                if result.is_ok():
                    self._values[name] = result.unwrap()
                else:
                    log.warning(
                        "Skipping participant payload",
                        node=name,
                        **result.error.log_fields(),
                    )

        summary = self.summarize(all_children)
        log.debug("Aggregated payloads", cached=len(self._values), **summary.to_dict())
        return summary

    def summarize(self, all_children: Sequence[str]) -> Summary:
        """Summary over all_children that have a cached value."""
        present = [self._values[n] for n in all_children if n in self._values]
        if self._kind is PayloadKind.NUMERIC:
            return NumericSummary.of([float(v) for v in present])
        return AddressSummary.of([str(v) for v in present], self._top_n)

    async def _read(self, name: str) -> Result[PayloadValue, ReadError]:
        path = join_path(self._path, name)
        try:
            result = await asyncio.wait_for(
                self._client.read_data(path), timeout=self._read_timeout_s,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Timeouts and client bugs alike only cost this node its value
            result = Err(ReadError.read_failed(path, cause=e))

        if result.is_err():
            self._metrics.payload_reads.inc(outcome="error")
            return result

        raw = result.unwrap()
        try:
            value = decode_payload(raw, self._kind)
        except ValueError as e:
            self._metrics.payload_reads.inc(outcome="error")
            return Err(ReadError.decode_failed(path, raw, self._kind.value, cause=e))

        self._metrics.payload_reads.inc(outcome="ok")
        return Ok(value)
