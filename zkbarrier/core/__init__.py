"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for the barrier:
- Result/Either monad for component boundaries
- Error hierarchy with codes and cause chains
- Configuration management with validation
"""

from zkbarrier.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    PayloadKind,
    BarrierState,
    ConnectionEvent,
)
from zkbarrier.core.errors import (
    BarrierError,
    CoordinationConnectionError,
    RegistrationError,
    ListingError,
    ReadError,
    SessionError,
)
from zkbarrier.core.config import (
    BarrierConfig,
    CoordinationConfig,
    ObservabilityConfig,
    ZkBarrierConfig,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "PayloadKind",
    "BarrierState",
    "ConnectionEvent",
    "BarrierError",
    "CoordinationConnectionError",
    "RegistrationError",
    "ListingError",
    "ReadError",
    "SessionError",
    "BarrierConfig",
    "CoordinationConfig",
    "ObservabilityConfig",
    "ZkBarrierConfig",
]
