"""
Echo transports.

The probes never build ICMP packets themselves. They hand each echo request
to a transport, which relies on the host's own facility and reports the
outcome as an EchoReply. SystemPingTransport drives the system ping command
once per request and parses its output.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import math
import platform
import re
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class EchoStatus(str, Enum):
    """Status reported by the echo subsystem."""
    SUCCESS = "Success"
    TIMED_OUT = "TimedOut"
    DEST_HOST_UNREACHABLE = "DestinationHostUnreachable"
    DEST_NET_UNREACHABLE = "DestinationNetworkUnreachable"
    DEST_PORT_UNREACHABLE = "DestinationPortUnreachable"
    DEST_PROHIBITED = "DestinationProhibited"
    TTL_EXPIRED = "TtlExpired"
    PARAMETER_PROBLEM = "ParameterProblem"
    PACKET_TOO_BIG = "PacketTooBig"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class EchoReply:
    """Raw answer to one echo request."""
    status: EchoStatus
    address: str | None = None
    roundtrip_ms: float | None = None


class EchoError(Exception):
    """Base error raised by echo transports."""


class ResolutionError(EchoError):
    """The target name could not be resolved."""


class EchoSocketError(EchoError):
    """The echo facility failed at the socket level."""


class EchoUnavailableError(EchoSocketError):
    """No usable echo facility on this host."""


class TransportClosedError(EchoError):
    """The transport was used after being closed."""


class EchoTransport(Protocol):
    """Sends a single echo request and waits for its outcome."""

    def send(
        self,
        address: str,
        timeout_ms: int,
        ttl: int | None = None,
        payload: bytes | None = None,
        dont_fragment: bool = False,
    ) -> EchoReply:
        ...


# "64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=10.3 ms"
# "22 bytes from 8.8.8.8: icmp_seq=1 ttl=117" (payloads under 16 bytes carry no timestamp)
# "Reply from 8.8.8.8: bytes=32 time<1ms TTL=117"
_REPLY_RE = re.compile(
    r"(?:bytes from|Reply from)\s+(?P<addr>\d+\.\d+\.\d+\.\d+):?\s+(?:icmp_seq=|bytes=)(?P<rest>.*)$",
    re.IGNORECASE | re.MULTILINE,
)
_RTT_RE = re.compile(r"time[=<](?P<rtt>\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)

# "From 192.168.1.1 icmp_seq=1 Time to live exceeded"
# "36 bytes from 192.168.1.1: Time to live exceeded"
# "Reply from 192.168.1.1: TTL expired in transit."
_ICMP_ERROR_RE = re.compile(
    r"(?:^From|bytes from|Reply from)\s+(?P<addr>\d+\.\d+\.\d+\.\d+)[:\s]+(?:icmp_seq=\d+\s+)?(?P<message>.+)$",
    re.IGNORECASE | re.MULTILINE,
)

_ICMP_MESSAGES = [
    (re.compile(r"time to live exceeded|ttl expired", re.I), EchoStatus.TTL_EXPIRED),
    (re.compile(r"host unreachable", re.I), EchoStatus.DEST_HOST_UNREACHABLE),
    (re.compile(r"net(work)? unreachable", re.I), EchoStatus.DEST_NET_UNREACHABLE),
    (re.compile(r"port unreachable", re.I), EchoStatus.DEST_PORT_UNREACHABLE),
    (re.compile(r"prohibited|filtered", re.I), EchoStatus.DEST_PROHIBITED),
    (re.compile(r"frag needed|needs to be fragmented", re.I), EchoStatus.PACKET_TOO_BIG),
    (re.compile(r"parameter problem", re.I), EchoStatus.PARAMETER_PROBLEM),
]

_TIMEOUT_RE = re.compile(
    r"request timed out|\b0 (?:packets )?received|received = 0",
    re.IGNORECASE,
)

_RESOLUTION_RE = re.compile(
    r"name or service not known|temporary failure in name resolution|cannot resolve"
    r"|unknown host|could not find host|no address associated",
    re.IGNORECASE,
)

_NO_ROUTE_RE = re.compile(r"network is unreachable", re.IGNORECASE)


def parse_ping_output(output: str, returncode: int, elapsed_ms: float | None = None) -> EchoReply:
    """Parse the output of a single-request ping run.

    Raises:
        ResolutionError: the command could not resolve its target
        EchoSocketError: the command failed without producing a reply
    """
    if _RESOLUTION_RE.search(output):
        raise ResolutionError(_first_line(output))

    fallback_rtt = round(elapsed_ms, 1) if elapsed_ms is not None else None

    match = _REPLY_RE.search(output)
    if match:
        rtt = _RTT_RE.search(match.group("rest"))
        return EchoReply(
            status=EchoStatus.SUCCESS,
            address=match.group("addr"),
            roundtrip_ms=float(rtt.group("rtt")) if rtt else fallback_rtt,
        )

    for match in _ICMP_ERROR_RE.finditer(output):
        message = match.group("message")
        for pattern, status in _ICMP_MESSAGES:
            if pattern.search(message):
                roundtrip = fallback_rtt if status == EchoStatus.TTL_EXPIRED else None
                return EchoReply(status=status, address=match.group("addr"), roundtrip_ms=roundtrip)

    if _NO_ROUTE_RE.search(output):
        return EchoReply(status=EchoStatus.DEST_NET_UNREACHABLE)

    if _TIMEOUT_RE.search(output):
        return EchoReply(status=EchoStatus.TIMED_OUT)

    # iputils ping exits 1 when no reply arrived and 2 on other errors
    if returncode not in (0, 1):
        raise EchoSocketError(_first_line(output) or f"ping exited with status {returncode}")

    return EchoReply(status=EchoStatus.UNKNOWN)


def _first_line(output: str) -> str:
    for line in output.splitlines():
        line = line.strip()
        if line:
            return line
    return ""


class SystemPingTransport:
    """EchoTransport backed by the system ping command."""

    def __init__(self, system: str | None = None, grace_s: float = 2.0):
        self.system = (system or platform.system()).lower()
        self.grace_s = grace_s
        self._closed = False

    def close(self) -> None:
        self._closed = True

    def build_command(
        self,
        address: str,
        timeout_ms: int,
        ttl: int | None = None,
        payload: bytes | None = None,
        dont_fragment: bool = False,
    ) -> list[str]:
        """Build the ping command line for one echo request."""
        if self.system == "linux":
            cmd = ["ping", "-c", "1", "-n", "-W", str(max(1, math.ceil(timeout_ms / 1000)))]
            if ttl is not None:
                cmd += ["-t", str(ttl)]
            if dont_fragment:
                cmd += ["-M", "do"]
            if payload:
                cmd += ["-s", str(len(payload)), "-p", payload[:16].hex()]
        elif self.system == "darwin":
            cmd = ["ping", "-c", "1", "-n", "-W", str(timeout_ms)]
            if ttl is not None:
                cmd += ["-m", str(ttl)]
            if dont_fragment:
                cmd += ["-D"]
            if payload:
                cmd += ["-s", str(len(payload)), "-p", payload[:16].hex()]
        elif self.system == "windows":
            cmd = ["ping", "-n", "1", "-w", str(timeout_ms)]
            if ttl is not None:
                cmd += ["-i", str(ttl)]
            if dont_fragment:
                cmd += ["-f"]
            if payload:
                cmd += ["-l", str(len(payload))]
        else:
            raise EchoUnavailableError(f"Unsupported platform: {self.system}")

        cmd.append(address)
        return cmd

    def send(
        self,
        address: str,
        timeout_ms: int,
        ttl: int | None = None,
        payload: bytes | None = None,
        dont_fragment: bool = False,
    ) -> EchoReply:
        if self._closed:
            raise TransportClosedError("Echo transport has been closed")

        cmd = self.build_command(address, timeout_ms, ttl, payload, dont_fragment)
        logger.debug(f"Running {' '.join(cmd)}")

        start = time.monotonic()
        try:
            output = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout_ms / 1000 + self.grace_s,
            )
        except subprocess.TimeoutExpired:
            return EchoReply(status=EchoStatus.TIMED_OUT)
        except FileNotFoundError as e:
            raise EchoUnavailableError(f"ping command not found: {cmd[0]}") from e
        elapsed_ms = (time.monotonic() - start) * 1000

        return parse_ping_output(output.stdout + output.stderr, output.returncode, elapsed_ms)
