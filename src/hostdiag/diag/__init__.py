"""
Diagnostics Module

Provides reachability probes: single-target ping, TTL-stepped
traceroute and DNS resolution tests.
"""

from hostdiag.diag.core import (
    ping,
    traceroute,
    dns_resolve,
    validate_target,
)
from hostdiag.diag.gateway import discover_gateway
from hostdiag.diag.models import (
    ProbeStatus,
    PingResult,
    TracerouteHop,
    TracerouteRun,
    DnsResolutionResult,
)
from hostdiag.diag.transport import (
    EchoReply,
    EchoStatus,
    EchoTransport,
    SystemPingTransport,
)

__all__ = [
    "ping",
    "traceroute",
    "dns_resolve",
    "validate_target",
    "discover_gateway",
    "ProbeStatus",
    "PingResult",
    "TracerouteHop",
    "TracerouteRun",
    "DnsResolutionResult",
    "EchoReply",
    "EchoStatus",
    "EchoTransport",
    "SystemPingTransport",
]
