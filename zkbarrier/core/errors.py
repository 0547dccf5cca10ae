"""
Error Hierarchy for the ZooKeeper Barrier

Design Principles:
- Expected failures travel as Err(BarrierError), never as raised exceptions
- Every error carries a code, a human-readable message and its cause
- Fatal vs non-fatal is decided by the caller, not by the error type

Taxonomy:
- CoordinationConnectionError: session with the service cannot be
  established or was lost (fatal)
- RegistrationError: barrier root or participant node creation failed (fatal)
- ListingError: a children listing failed (fatal, never retried)
- ReadError: one participant's payload could not be read (non-fatal)
- SessionError: timeouts, stops and configuration problems

Usage:
    result = await registrar.register(path)
    match result:
        case Ok(node):
            ...
        case Err(RegistrationError() as error):
            log.error("registration failed", **error.log_fields())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from zkbarrier.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Connection errors
    - 2xxx: Registration errors
    - 3xxx: Listing errors
    - 4xxx: Payload read errors
    - 5xxx: Session errors
    - 9xxx: Internal errors
    """

    # Connection errors (1xxx)
    CONNECTION_FAILED = 1001
    CONNECTION_LOST = 1002

    # Registration errors (2xxx)
    REGISTRATION_ROOT_FAILED = 2001
    REGISTRATION_NODE_FAILED = 2002

    # Listing errors (3xxx)
    LISTING_FAILED = 3001

    # Read errors (4xxx)
    READ_FAILED = 4001
    READ_DECODE_FAILED = 4002

    # Session errors (5xxx)
    SESSION_TIMEOUT = 5001
    SESSION_STOPPED = 5002
    SESSION_INVALID_CONFIG = 5003

    # Internal errors (9xxx)
    INTERNAL_ERROR = 9001


# Stable kind strings reported in Failed outcomes
_KIND_BY_CODE: dict[ErrorCode, str] = {
    ErrorCode.CONNECTION_FAILED: "CONNECTION",
    ErrorCode.CONNECTION_LOST: "CONNECTION",
    ErrorCode.REGISTRATION_ROOT_FAILED: "REGISTRATION",
    ErrorCode.REGISTRATION_NODE_FAILED: "REGISTRATION",
    ErrorCode.LISTING_FAILED: "LISTING",
    ErrorCode.READ_FAILED: "READ",
    ErrorCode.READ_DECODE_FAILED: "READ",
    ErrorCode.SESSION_TIMEOUT: "TIMEOUT",
    ErrorCode.SESSION_STOPPED: "STOPPED",
    ErrorCode.SESSION_INVALID_CONFIG: "CONFIG",
    ErrorCode.INTERNAL_ERROR: "INTERNAL",
}


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class BarrierError(Exception):
    """
    Base class for all barrier errors.

    Provides:
    - Unique error ID for correlating log lines across participants
    - Error code for programmatic handling
    - Cause chain for the underlying client exception
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def error_kind(self) -> str:
        """Coarse category reported to the caller."""
        return _KIND_BY_CODE.get(self.code, "INTERNAL")

    def with_context(self, **kwargs: Any) -> BarrierError:
        """Add context to error (returns new instance of the same class)."""
        return type(self)(
            code=self.code,
            message=self.message,
            error_id=self.error_id,
            timestamp=self.timestamp,
            cause=self.cause,
            context={**self.context, **kwargs},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for structured logging."""
        data: dict[str, Any] = {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "error_kind": self.error_kind,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data

    def log_fields(self) -> dict[str, Any]:
        """Keyword fields for StructuredLogger calls."""
        fields: dict[str, Any] = {
            "error_code": self.code.name,
            "error_kind": self.error_kind,
            "error_id": self.error_id,
            "detail": self.message,
        }
        if self.cause is not None:
            fields["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return fields

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# CONNECTION ERRORS
# =============================================================================
@dataclass
class CoordinationConnectionError(BarrierError):
    """
    The coordination-service session could not be established or was lost.

    Always fatal; the core never reconnects on its own.
    """

    @classmethod
    def connect_failed(
        cls,
        hosts: str,
        timeout_s: float,
        cause: Optional[BaseException] = None,
    ) -> CoordinationConnectionError:
        return cls(
            code=ErrorCode.CONNECTION_FAILED,
            message=f"Could not connect to {hosts} within {timeout_s:g}s",
            cause=cause,
            context={"hosts": hosts, "timeout_s": timeout_s},
        )

    @classmethod
    def session_lost(cls, state: str) -> CoordinationConnectionError:
        return cls(
            code=ErrorCode.CONNECTION_LOST,
            message=f"Coordination session lost (state={state})",
            context={"state": state},
        )


# =============================================================================
# REGISTRATION ERRORS
# =============================================================================
@dataclass
class RegistrationError(BarrierError):
    """Barrier root or participant node could not be created."""

    @classmethod
    def root_create_failed(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> RegistrationError:
        return cls(
            code=ErrorCode.REGISTRATION_ROOT_FAILED,
            message=f"Could not create barrier root '{path}'",
            cause=cause,
            context={"path": path},
        )

    @classmethod
    def node_create_failed(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> RegistrationError:
        return cls(
            code=ErrorCode.REGISTRATION_NODE_FAILED,
            message=f"Could not create participant node under '{path}'",
            cause=cause,
            context={"path": path},
        )


# =============================================================================
# LISTING ERRORS
# =============================================================================
@dataclass
class ListingError(BarrierError):
    """
    A children listing failed.

    Not retried: a silent retry could hide a wrong path or missing
    permissions, and would leave a gap with no watch registered.
    """

    @classmethod
    def list_failed(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> ListingError:
        return cls(
            code=ErrorCode.LISTING_FAILED,
            message=f"Could not list children of '{path}'",
            cause=cause,
            context={"path": path},
        )


# =============================================================================
# READ ERRORS
# =============================================================================
@dataclass
class ReadError(BarrierError):
    """One participant's payload could not be read or decoded."""

    @classmethod
    def read_failed(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> ReadError:
        return cls(
            code=ErrorCode.READ_FAILED,
            message=f"Could not read payload of '{path}'",
            cause=cause,
            context={"path": path},
        )

    @classmethod
    def decode_failed(
        cls,
        path: str,
        raw: bytes,
        kind: str,
        cause: Optional[BaseException] = None,
    ) -> ReadError:
        return cls(
            code=ErrorCode.READ_DECODE_FAILED,
            message=f"Payload of '{path}' is not a valid {kind} value",
            cause=cause,
            context={"path": path, "raw": raw[:64].hex(), "kind": kind},
        )


# =============================================================================
# SESSION ERRORS
# =============================================================================
@dataclass
class SessionError(BarrierError):
    """Session-level failures not caused by a single component call."""

    @classmethod
    def timed_out(
        cls,
        path: str,
        timeout_s: float,
        observed: int,
        target: int,
    ) -> SessionError:
        return cls(
            code=ErrorCode.SESSION_TIMEOUT,
            message=(
                f"Barrier '{path}' not passed within {timeout_s:g}s "
                f"({observed}/{target} ready)"
            ),
            context={
                "path": path,
                "timeout_s": timeout_s,
                "observed": observed,
                "target": target,
            },
        )

    @classmethod
    def stopped(cls, path: str) -> SessionError:
        return cls(
            code=ErrorCode.SESSION_STOPPED,
            message=f"Barrier '{path}' stopped before quorum",
            context={"path": path},
        )

    @classmethod
    def invalid_config(cls, reason: str) -> SessionError:
        return cls(
            code=ErrorCode.SESSION_INVALID_CONFIG,
            message=f"Invalid configuration: {reason}",
            context={"reason": reason},
        )

    @classmethod
    def internal(cls, cause: BaseException) -> SessionError:
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Unexpected failure: {type(cause).__name__}: {cause}",
            cause=cause,
        )
