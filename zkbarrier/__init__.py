"""
ZooKeeper Start Barrier

A distributed barrier for independently started processes:
- Each participant registers an ephemeral sequential node under a shared path
- Participants watch the children count until the target is reached
- Optional per-participant payloads (numbers or addresses) are read once
  and summarized (count/min/max/mean or frequency counts with top-N)

Guarantees:
- Every session resolves exactly once (Passed or Failed)
- A change is never missed between a listing and its watch
- Counting never waits on payload reads

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from zkbarrier.core.types import Result, Ok, Err, PayloadKind, BarrierState
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
from zkbarrier.coordination import (
    CoordinationClient,
    InMemoryCoordinationClient,
    InMemoryCoordinationStore,
    KazooCoordinationClient,
)
from zkbarrier.barrier import (
    AddressSummary,
    BarrierOutcome,
    BarrierPassed,
    BarrierSession,
    Failed,
    NumericSummary,
    Passed,
    run_barrier,
)
from zkbarrier.discovery import discover_public_address

__all__ = [
    # Version
    "__version__",
    # Core types
    "Result",
    "Ok",
    "Err",
    "PayloadKind",
    "BarrierState",
    # Errors
    "BarrierError",
    "CoordinationConnectionError",
    "RegistrationError",
    "ListingError",
    "ReadError",
    "SessionError",
    # Config
    "BarrierConfig",
    "CoordinationConfig",
    "ObservabilityConfig",
    "ZkBarrierConfig",
    # Coordination
    "CoordinationClient",
    "InMemoryCoordinationClient",
    "InMemoryCoordinationStore",
    "KazooCoordinationClient",
    # Barrier
    "AddressSummary",
    "BarrierOutcome",
    "BarrierPassed",
    "BarrierSession",
    "Failed",
    "NumericSummary",
    "Passed",
    "run_barrier",
    "discover_public_address",
]
