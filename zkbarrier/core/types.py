"""
Core Type Definitions for the ZooKeeper Barrier

Implements the Result/Either monad used by every component boundary,
plus the small value types shared by the coordination and barrier layers.

Design Principles:
- Components return Result instead of raising for expected failures
- Node names are plain strings; ordering is by service-assigned sequence
- Enums for every closed set of states or modes
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    Literal,
    Optional,
    TypeVar,
    Union,
)

from zkbarrier.core import constants as C

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for the value of a successful coordination call.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries the BarrierError (or message) describing what went wrong.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Unwrapping an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    Wall-clock timestamp with nanosecond precision.

    Used to stamp errors and log records; elapsed-time measurement
    inside the barrier uses the monotonic clock instead.
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        return cls(nanos=time.time_ns())

    @property
    def seconds(self) -> float:
        return self.nanos / C.NS_PER_S

    @property
    def millis(self) -> int:
        return self.nanos // C.NS_PER_MS

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# =============================================================================
# ENUMS
# =============================================================================
class PayloadKind(Enum):
    """
    How participant payloads are encoded and summarized.

    NUMERIC payloads are summarized as count/min/max/mean,
    ADDRESS payloads as frequency counts.
    """

    NUMERIC = "numeric"
    ADDRESS = "address"

    @classmethod
    def parse(cls, value: str) -> Result[PayloadKind, str]:
        try:
            return Ok(cls(value.strip().lower()))
        except ValueError:
            choices = ", ".join(k.value for k in cls)
            return Err(f"Unknown payload kind '{value}' (expected one of: {choices})")


class BarrierState(Enum):
    """
    Barrier watcher lifecycle.

    UNARMED  → WATCHING : start()
    WATCHING → PASSED   : listing with count >= target
    WATCHING → FAILED   : listing error, connection loss or stop()
    """

    UNARMED = auto()
    WATCHING = auto()
    PASSED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (BarrierState.PASSED, BarrierState.FAILED)


class ConnectionEvent(Enum):
    """Connection state changes reported by a coordination client."""

    CONNECTED = auto()
    SUSPENDED = auto()  # Transient; the service may still recover
    LOST = auto()       # Session expired, ephemeral nodes are gone


# =============================================================================
# NODE NAMES
# =============================================================================
def sequence_of(name: str) -> Optional[int]:
    """
    Parse the service-assigned sequence suffix of a node name.

    "participant-0000000007" -> 7; names without a numeric
    10-digit suffix return None.
    """
    suffix = name[-C.SEQUENCE_DIGITS:]
    if len(suffix) == C.SEQUENCE_DIGITS and suffix.isdigit():
        return int(suffix)
    return None


def order_children(names: Iterable[str]) -> tuple[str, ...]:
    """
    Order child names by creation sequence.

    The service returns children in no particular order; sequential
    names sort first by counter, anything else after them by name.
    """
    def key(name: str) -> tuple[int, int, str]:
        seq = sequence_of(name)
        if seq is None:
            return (1, 0, name)
        return (0, seq, name)

    return tuple(sorted(set(names), key=key))


def join_path(parent: str, child: str) -> str:
    """Join a node path and a child name."""
    if parent.endswith("/"):
        return f"{parent}{child}"
    return f"{parent}/{child}"


def basename(path: str) -> str:
    """Last component of a node path."""
    return path.rsplit("/", 1)[-1]
