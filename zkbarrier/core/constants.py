"""
System-Wide Constants for the ZooKeeper Barrier

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
MS: Final[int] = 1
SECOND_MS: Final[int] = 1000
MINUTE_MS: Final[int] = 60 * SECOND_MS

NS_PER_MS: Final[int] = 1_000_000
NS_PER_S: Final[int] = 1_000_000_000

# =============================================================================
# COORDINATION SERVICE
# =============================================================================
DEFAULT_HOSTS: Final[str] = "127.0.0.1:2181"
CONNECT_TIMEOUT_S: Final[float] = 15.0
SESSION_TIMEOUT_S: Final[float] = 10.0
READ_TIMEOUT_S: Final[float] = 5.0

# ZooKeeper appends a 10-digit, zero-padded counter to sequential nodes
SEQUENCE_DIGITS: Final[int] = 10

# =============================================================================
# BARRIER
# =============================================================================
DEFAULT_BARRIER_PATH: Final[str] = "/barrier"
DEFAULT_TARGET_COUNT: Final[int] = 50
DEFAULT_NODE_PREFIX: Final[str] = "participant-"
DEFAULT_GRACE_PERIOD_MS: Final[int] = 1 * SECOND_MS
DEFAULT_TOP_N: Final[int] = 5

# =============================================================================
# PUBLIC ADDRESS DISCOVERY
# =============================================================================
DISCOVERY_SERVICES: Final[tuple[str, ...]] = (
    "https://api.ipify.org",
    "https://icanhazip.com",
    "https://ifconfig.me/ip",
)
DISCOVERY_TIMEOUT_S: Final[float] = 5.0

# =============================================================================
# PROCESS EXIT STATUS
# =============================================================================
EXIT_OK: Final[int] = 0
EXIT_BARRIER_FAILED: Final[int] = 1
EXIT_CONFIG_ERROR: Final[int] = 2
