"""
Failure classification for reachability probes.

Probes never raise. Echo replies and transport exceptions are folded into
a ProbeStatus plus a short error string by the pure functions below, so the
mapping does not depend on how a particular transport signals failure.
"""

import re
import socket
from enum import Enum
from types import MappingProxyType

from hostdiag.diag.models import ProbeStatus
from hostdiag.diag.transport import (
    EchoError,
    EchoStatus,
    ResolutionError,
    TransportClosedError,
)


class FailureCategory(str, Enum):
    """Kind of exception raised while probing."""
    RESOLUTION = "resolution"
    SOCKET = "socket"
    INVALID_ARGUMENT = "invalid_argument"
    DISPOSED = "disposed"
    UNEXPECTED = "unexpected"


_REPLY_STATUS = MappingProxyType({
    EchoStatus.SUCCESS: ProbeStatus.SUCCESS,
    EchoStatus.TIMED_OUT: ProbeStatus.TIMED_OUT,
    EchoStatus.TTL_EXPIRED: ProbeStatus.TTL_EXPIRED,
    EchoStatus.DEST_HOST_UNREACHABLE: ProbeStatus.UNREACHABLE,
    EchoStatus.DEST_NET_UNREACHABLE: ProbeStatus.UNREACHABLE,
    EchoStatus.DEST_PORT_UNREACHABLE: ProbeStatus.UNREACHABLE,
    EchoStatus.DEST_PROHIBITED: ProbeStatus.UNREACHABLE,
})

_PING_ERRORS = MappingProxyType({
    EchoStatus.TIMED_OUT: "Request timed out.",
    EchoStatus.DEST_HOST_UNREACHABLE: "Destination host unreachable.",
    EchoStatus.DEST_NET_UNREACHABLE: "Destination network unreachable.",
    EchoStatus.TTL_EXPIRED: "TTL expired in transit.",
})

_HOP_ERRORS = MappingProxyType({
    EchoStatus.DEST_HOST_UNREACHABLE: "Host unreachable reported by router.",
    EchoStatus.DEST_NET_UNREACHABLE: "Network unreachable reported by router.",
    EchoStatus.DEST_PROHIBITED: "Destination prohibited reported by router.",
    EchoStatus.PARAMETER_PROBLEM: "ICMP parameter problem.",
})

_FAILURE_PREFIX = MappingProxyType({
    FailureCategory.RESOLUTION: "Resolution failed",
    FailureCategory.SOCKET: "Socket error",
    FailureCategory.INVALID_ARGUMENT: "Invalid argument",
    FailureCategory.DISPOSED: "Transport closed",
})

UNEXPECTED_ERROR = "An unexpected error occurred during the probe."

_CLAUSE_END = re.compile(r"[.;](?=\s|$)|\n")


def reply_status(status: EchoStatus, *, hop: bool = False) -> ProbeStatus:
    """Map an echo subsystem status onto the probe vocabulary.

    TtlExpired is a hop-level outcome only; a plain ping reports it as Unknown.
    """
    mapped = _REPLY_STATUS.get(status, ProbeStatus.UNKNOWN)
    if mapped == ProbeStatus.TTL_EXPIRED and not hop:
        return ProbeStatus.UNKNOWN
    return mapped


def ping_error(status: EchoStatus) -> str | None:
    """User-facing message for a non-success ping reply."""
    if status == EchoStatus.SUCCESS:
        return None
    return _PING_ERRORS.get(status, f"Ping failed (status: {status.value}).")


def hop_error(status: EchoStatus) -> str | None:
    """User-facing message for a hop that ended the trace."""
    if status in (EchoStatus.SUCCESS, EchoStatus.TTL_EXPIRED, EchoStatus.TIMED_OUT):
        return None
    return _HOP_ERRORS.get(status, f"Reply status: {status.value}")


def categorize_exception(exc: BaseException) -> FailureCategory:
    """Place an exception raised while probing into a failure category."""
    if isinstance(exc, (ResolutionError, socket.gaierror)):
        return FailureCategory.RESOLUTION
    if isinstance(exc, TransportClosedError):
        return FailureCategory.DISPOSED
    if isinstance(exc, (EchoError, OSError)):
        return FailureCategory.SOCKET
    if isinstance(exc, ValueError):
        return FailureCategory.INVALID_ARGUMENT
    return FailureCategory.UNEXPECTED


def first_clause(message: str) -> str:
    """Trim a diagnostic message to its first clause."""
    return _CLAUSE_END.split(message.strip(), maxsplit=1)[0].strip()


def classify_failure(category: FailureCategory, message: str) -> tuple[ProbeStatus, str]:
    """Turn a failure category and message into a status and a short error."""
    if category == FailureCategory.UNEXPECTED:
        return ProbeStatus.TRANSPORT_ERROR, UNEXPECTED_ERROR

    prefix = _FAILURE_PREFIX[category]
    clause = first_clause(message)
    return ProbeStatus.TRANSPORT_ERROR, f"{prefix}: {clause}" if clause else prefix
