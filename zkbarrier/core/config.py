"""
Configuration Management for the ZooKeeper Barrier

Provides validated configuration with sensible defaults.
Supports environment variable overrides (prefix ZKBARRIER_) and
explicit overrides from the command line.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Union

from zkbarrier.core.types import Result, Ok, Err, PayloadKind
from zkbarrier.core import constants as C

Payload = Union[int, float, str]

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class CoordinationConfig:
    """Coordination service (ZooKeeper) connection settings."""

    hosts: str = C.DEFAULT_HOSTS
    connect_timeout_s: float = C.CONNECT_TIMEOUT_S
    session_timeout_s: float = C.SESSION_TIMEOUT_S
    read_timeout_s: float = C.READ_TIMEOUT_S


@dataclass(frozen=True)
class BarrierConfig:
    """What to wait for and what to publish while waiting."""

    barrier_path: str = C.DEFAULT_BARRIER_PATH
    target_count: int = C.DEFAULT_TARGET_COUNT
    payload: Optional[Payload] = None
    payload_kind: Optional[PayloadKind] = None
    top_n: int = C.DEFAULT_TOP_N
    node_prefix: str = C.DEFAULT_NODE_PREFIX
    grace_period_ms: int = C.DEFAULT_GRACE_PERIOD_MS
    timeout_s: Optional[float] = None  # None waits forever

    @property
    def node_path_prefix(self) -> str:
        """Path handed to the sequential create call."""
        return f"{self.barrier_path}/{self.node_prefix}"

    def validate(self) -> Result[None, str]:
        """Validate barrier invariants."""
        if self.target_count < 1:
            return Err("target_count must be >= 1")
        path = self.barrier_path
        if not path.startswith("/") or path == "/" or path.endswith("/"):
            return Err(f"barrier_path must be an absolute node path, got '{path}'")
        if "/" in self.node_prefix:
            return Err("node_prefix must not contain '/'")
        if self.top_n < 1:
            return Err("top_n must be >= 1")
        if self.grace_period_ms < 0:
            return Err("grace_period_ms must be >= 0")
        if self.timeout_s is not None and self.timeout_s <= 0:
            return Err("timeout_s must be > 0 when set")
        if self.payload is not None:
            if self.payload_kind is None:
                return Err("a payload requires a payload_kind")
            if self.payload_kind is PayloadKind.NUMERIC:
                if isinstance(self.payload, bool) or not isinstance(self.payload, (int, float)):
                    return Err(f"numeric payload must be a number, got {self.payload!r}")
                try:
                    finite = math.isfinite(self.payload)
                except OverflowError:
                    return Err("numeric payload out of range")
                if not finite:
                    return Err("numeric payload must be finite")
            elif not isinstance(self.payload, str) or not self.payload.strip():
                return Err("address payload must be a non-empty string")
        return Ok(None)


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging and metrics configuration."""

    log_level: str = "INFO"
    log_json: bool = False
    metrics_enabled: bool = True


@dataclass(frozen=True)
class ZkBarrierConfig:
    """Root configuration for one barrier participant."""

    coordination: CoordinationConfig = field(default_factory=CoordinationConfig)
    barrier: BarrierConfig = field(default_factory=BarrierConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[ZkBarrierConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with ZKBARRIER_.
        Example: ZKBARRIER_HOSTS, ZKBARRIER_COUNT
        """
        try:
            coordination = CoordinationConfig(
                hosts=os.getenv("ZKBARRIER_HOSTS", C.DEFAULT_HOSTS),
                connect_timeout_s=float(
                    os.getenv("ZKBARRIER_CONNECT_TIMEOUT_S", str(C.CONNECT_TIMEOUT_S))
                ),
                read_timeout_s=float(
                    os.getenv("ZKBARRIER_READ_TIMEOUT_S", str(C.READ_TIMEOUT_S))
                ),
            )

            timeout = os.getenv("ZKBARRIER_TIMEOUT_S")
            barrier = BarrierConfig(
                barrier_path=os.getenv("ZKBARRIER_PATH", C.DEFAULT_BARRIER_PATH),
                target_count=int(os.getenv("ZKBARRIER_COUNT", str(C.DEFAULT_TARGET_COUNT))),
                top_n=int(os.getenv("ZKBARRIER_TOP_N", str(C.DEFAULT_TOP_N))),
                grace_period_ms=int(
                    os.getenv("ZKBARRIER_GRACE_MS", str(C.DEFAULT_GRACE_PERIOD_MS))
                ),
                timeout_s=float(timeout) if timeout else None,
            )

            observability = ObservabilityConfig(
                log_level=os.getenv("ZKBARRIER_LOG_LEVEL", "INFO").upper(),
                log_json=os.getenv("ZKBARRIER_LOG_JSON", "").lower() in _TRUE_VALUES,
                metrics_enabled=os.getenv("ZKBARRIER_METRICS", "true").lower() in _TRUE_VALUES,
            )

            return Ok(cls(
                coordination=coordination,
                barrier=barrier,
                observability=observability,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"invalid environment value: {e}")

    def with_overrides(self, **overrides: Any) -> ZkBarrierConfig:
        """
        Return a copy with selected fields replaced.

        Keys are routed to the section that declares them; None
        values are ignored so unset CLI flags keep env defaults.
        """
        sections: dict[str, dict[str, Any]] = {
            "coordination": {},
            "barrier": {},
            "observability": {},
        }
        for key, value in overrides.items():
            if value is None:
                continue
            for name in sections:
                if key in getattr(self, name).__dataclass_fields__:
                    sections[name][key] = value
                    break
            else:
                raise KeyError(f"Unknown configuration field: {key}")

        return replace(
            self,
            coordination=replace(self.coordination, **sections["coordination"]),
            barrier=replace(self.barrier, **sections["barrier"]),
            observability=replace(self.observability, **sections["observability"]),
        )

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if not self.coordination.hosts.strip():
            return Err("coordination hosts must not be empty")
        if self.coordination.connect_timeout_s <= 0:
            return Err("connect_timeout_s must be > 0")
        if self.coordination.read_timeout_s <= 0:
            return Err("read_timeout_s must be > 0")
        return self.barrier.validate()
