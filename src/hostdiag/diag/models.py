"""
Data models for reachability probes.
"""

from dataclasses import dataclass, field
from enum import Enum


# Responder address when no reply could be attributed to a host
WILDCARD_ADDRESS = "*"


class ProbeStatus(str, Enum):
    """Outcome of a ping or a single traceroute hop."""
    SUCCESS = "Success"
    TIMED_OUT = "TimedOut"
    UNREACHABLE = "Unreachable"
    TTL_EXPIRED = "TtlExpired"
    TRANSPORT_ERROR = "TransportError"
    INVALID_TARGET = "InvalidTarget"
    RESOLUTION_FAILED = "ResolutionFailed"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class PingResult:
    """Result of a single echo request."""
    target: str
    status: ProbeStatus
    roundtrip_ms: float | None = None  # Success only
    resolved_address: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class TracerouteHop:
    """A single hop in a traceroute. Hop 0 marks a target that could not be resolved."""
    hop_number: int
    status: ProbeStatus
    address: str = WILDCARD_ADDRESS
    roundtrip_ms: float | None = None  # Success / TtlExpired only
    error: str | None = None


@dataclass
class TracerouteRun:
    """An ordered traceroute towards one resolved address."""
    target: str
    resolved_address: str | None = None
    hops: list[TracerouteHop] = field(default_factory=list)

    @property
    def terminal_status(self) -> ProbeStatus | None:
        return self.hops[-1].status if self.hops else None

    @property
    def reached_target(self) -> bool:
        if not self.hops or self.resolved_address is None:
            return False
        last = self.hops[-1]
        return last.status == ProbeStatus.SUCCESS and last.address == self.resolved_address


@dataclass
class DnsResolutionResult:
    """Result of a DNS resolution test."""
    hostname: str
    success: bool = False
    addresses: list[str] = field(default_factory=list)
    resolution_ms: float | None = None
    error: str | None = None
