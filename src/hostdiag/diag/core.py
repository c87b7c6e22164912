"""
Core reachability probes: ping, traceroute and DNS resolution tests.

Every probe here returns a result object and never raises. Echo requests
go through an EchoTransport (the system ping command by default), and
hostnames are resolved through an injectable resolver.
"""

import logging
import re
import time
from typing import Callable

import dns.exception
import dns.resolver
from netaddr import valid_ipv4, valid_ipv6

from hostdiag.diag.classify import (
    FailureCategory,
    categorize_exception,
    classify_failure,
    hop_error,
    ping_error,
    reply_status,
)
from hostdiag.diag.models import (
    WILDCARD_ADDRESS,
    DnsResolutionResult,
    PingResult,
    ProbeStatus,
    TracerouteHop,
    TracerouteRun,
)
from hostdiag.diag.transport import EchoTransport, ResolutionError, SystemPingTransport
from hostdiag.logging_config import track_error

logger = logging.getLogger(__name__)

Resolver = Callable[[str], list[str]]

DEFAULT_TIMEOUT_MS = 1000
DEFAULT_MAX_HOPS = 30
DEFAULT_DNS_TIMEOUT_MS = 2000

MAX_TARGET_LENGTH = 255
MAX_LABEL_LENGTH = 63
HOP_LIMITS = (1, 64)
HOP_TIMEOUT_LIMITS_MS = (100, 5000)

# At least 16 bytes so ping implementations embed a timestamp and report time=
TRACE_PAYLOAD = b"hostdiag-traceroute"

# Hop outcomes that advance the trace to the next TTL
_CONTINUE_STATUSES = (ProbeStatus.SUCCESS, ProbeStatus.TTL_EXPIRED, ProbeStatus.TIMED_OUT)

_UNSAFE_TARGET_RE = re.compile(r"[\s\\/?#@!$&'()*+,;=]|\.\.")
_HOSTNAME_RE = re.compile(r"[A-Za-z0-9_](?:[A-Za-z0-9_.-]*[A-Za-z0-9_])?\.?")


def validate_target(target: str | None) -> str | None:
    """Check a probe target. Returns the reason it is invalid, or None."""
    if target is None or not target.strip():
        return "Target cannot be empty."
    if len(target) > MAX_TARGET_LENGTH:
        return "Target name is too long."
    if valid_ipv4(target) or valid_ipv6(target):
        return None
    if _UNSAFE_TARGET_RE.search(target):
        return "Target contains invalid characters (spaces, slashes, etc.) or patterns ('..')."
    if target.startswith("-") or target.endswith("-"):
        return "DNS hostname cannot start or end with a hyphen."
    if any(len(label) > MAX_LABEL_LENGTH for label in target.split(".")):
        return f"DNS label exceeds maximum length of {MAX_LABEL_LENGTH} characters."
    if not _HOSTNAME_RE.fullmatch(target):
        return "Target is not a recognized DNS name or IP address format."
    return None


def dns_lookup(hostname: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> list[str]:
    """Resolve a hostname to its A answers, or AAAA when it has none.

    The whole lookup, retries included, is bounded by ``timeout_ms``.

    Raises:
        ResolutionError: the name does not exist, the lookup timed out or failed
    """
    if hostname.rstrip(".").lower() == "localhost":
        return ["127.0.0.1"]

    try:
        resolver = dns.resolver.Resolver()
        resolver.timeout = timeout_ms / 1000
        resolver.lifetime = timeout_ms / 1000
        for rdtype in ("A", "AAAA"):
            try:
                answer = resolver.resolve(hostname, rdtype)
            except dns.resolver.NoAnswer:
                continue
            addresses = [rdata.to_text() for rdata in answer]
            if addresses:
                return addresses
    except dns.resolver.NXDOMAIN:
        raise ResolutionError(f"{hostname} does not exist") from None
    except dns.exception.Timeout:
        raise ResolutionError(f"Lookup of {hostname} timed out after {timeout_ms} ms") from None
    except dns.exception.DNSException as e:
        raise ResolutionError(f"Lookup of {hostname} failed ({type(e).__name__})") from e
    return []


def pick_address(addresses: list[str]) -> str | None:
    """Prefer the first IPv4 answer, else the first answer of any family."""
    for address in addresses:
        if valid_ipv4(address):
            return address
    return addresses[0] if addresses else None


def resolve_target(target: str, resolver: Resolver | None = None, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> str:
    """Resolve a probe target to one concrete address.

    Without a resolver the name goes through dns_lookup, bounded by timeout_ms.

    Raises:
        ResolutionError: the lookup produced no address
    """
    if valid_ipv4(target) or valid_ipv6(target):
        return target

    addresses = resolver(target) if resolver else dns_lookup(target, timeout_ms)
    address = pick_address(addresses)
    if address is None:
        raise ResolutionError(f"No addresses returned for {target}")
    return address


def _clamp(value: int, limits: tuple[int, int]) -> int:
    low, high = limits
    return max(low, min(high, value))


def _classify(probe: str, exc: BaseException, target: str) -> tuple[ProbeStatus, str]:
    """Classify a probe exception, logging it at a level fitting its category."""
    category = categorize_exception(exc)
    status, error = classify_failure(category, str(exc))
    if category == FailureCategory.UNEXPECTED:
        track_error("probe_unexpected", f"[{probe}] Unexpected error", exc, {"target": target})
    else:
        logger.warning(f"[{probe}] {category.value} failure (target: {target}): {exc}")
    return status, error


def ping(
    target: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    transport: EchoTransport | None = None,
    resolver: Resolver | None = None,
) -> PingResult:
    """Send one echo request to a target and report the outcome."""
    problem = validate_target(target)
    if problem:
        logger.warning(f"[ping] Invalid target {target!r}: {problem}")
        return PingResult(target=target, status=ProbeStatus.INVALID_TARGET, error=problem)

    resolved = None
    try:
        resolved = resolve_target(target, resolver, timeout_ms)
        reply = (transport or SystemPingTransport()).send(resolved, timeout_ms)
    except Exception as e:
        status, error = _classify("ping", e, target)
        return PingResult(target=target, status=status, resolved_address=resolved, error=error)

    status = reply_status(reply.status)
    if status == ProbeStatus.SUCCESS:
        return PingResult(
            target=target,
            status=status,
            roundtrip_ms=reply.roundtrip_ms,
            resolved_address=resolved,
        )

    logger.info(f"[ping] {target}: {reply.status.value}")
    return PingResult(
        target=target,
        status=status,
        resolved_address=resolved,
        error=ping_error(reply.status),
    )


def traceroute(
    target: str,
    max_hops: int = DEFAULT_MAX_HOPS,
    per_hop_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    transport: EchoTransport | None = None,
    resolver: Resolver | None = None,
) -> TracerouteRun:
    """Trace the route to a target with sequential TTL-limited echo probes.

    Each TTL is probed only after the previous hop's outcome is known. The
    trace ends when the target itself answers, when a hop reports anything
    other than Success, TtlExpired or TimedOut, or after max_hops probes.
    """
    run = TracerouteRun(target=target)

    problem = validate_target(target)
    if problem:
        logger.warning(f"[traceroute] Invalid target {target!r}: {problem}")
        run.hops.append(TracerouteHop(hop_number=0, status=ProbeStatus.INVALID_TARGET, error=problem))
        return run

    max_hops = _clamp(max_hops, HOP_LIMITS)
    per_hop_timeout_ms = _clamp(per_hop_timeout_ms, HOP_TIMEOUT_LIMITS_MS)

    try:
        # The lookup gets twice the per-hop timeout
        run.resolved_address = resolve_target(target, resolver, per_hop_timeout_ms * 2)
    except Exception as e:
        _, error = _classify("traceroute", e, target)
        run.hops.append(TracerouteHop(hop_number=0, status=ProbeStatus.RESOLUTION_FAILED, error=error))
        return run

    transport = transport or SystemPingTransport()
    logger.debug(f"Tracing {target} [{run.resolved_address}] over at most {max_hops} hops")

    for ttl in range(1, max_hops + 1):
        try:
            reply = transport.send(
                run.resolved_address,
                per_hop_timeout_ms,
                ttl=ttl,
                payload=TRACE_PAYLOAD,
                dont_fragment=True,
            )
        except Exception as e:
            # A failed send says nothing about the path; move on to the next TTL
            status, error = _classify("traceroute", e, target)
            run.hops.append(TracerouteHop(hop_number=ttl, status=status, error=error))
            continue

        status = reply_status(reply.status, hop=True)
        error = hop_error(reply.status)
        if error:
            logger.info(f"[traceroute] Hop {ttl} to {target} failed with status {reply.status.value}")

        hop = TracerouteHop(
            hop_number=ttl,
            status=status,
            address=reply.address or WILDCARD_ADDRESS,
            roundtrip_ms=reply.roundtrip_ms if status in (ProbeStatus.SUCCESS, ProbeStatus.TTL_EXPIRED) else None,
            error=error,
        )
        run.hops.append(hop)

        if status == ProbeStatus.SUCCESS and hop.address == run.resolved_address:
            break
        if status not in _CONTINUE_STATUSES:
            break

    return run


def dns_resolve(
    hostname: str,
    timeout_ms: int = DEFAULT_DNS_TIMEOUT_MS,
    nameservers: list[str] | None = None,
) -> DnsResolutionResult:
    """Resolve A and AAAA records for a hostname and time the lookup."""
    result = DnsResolutionResult(hostname=hostname)

    problem = validate_target(hostname)
    if problem:
        result.error = problem
        return result

    if valid_ipv4(hostname) or valid_ipv6(hostname):
        result.success = True
        result.addresses = [hostname]
        result.resolution_ms = 0.0
        return result

    resolver = dns.resolver.Resolver()
    if nameservers:
        resolver.nameservers = nameservers
    resolver.timeout = timeout_ms / 1000
    resolver.lifetime = timeout_ms / 1000

    start = time.perf_counter()
    addresses: list[str] = []
    try:
        for rdtype in ("A", "AAAA"):
            try:
                answer = resolver.resolve(hostname, rdtype)
            except dns.resolver.NoAnswer:
                continue
            addresses.extend(rdata.to_text() for rdata in answer)
    except dns.resolver.NXDOMAIN:
        result.error = "Domain does not exist."
    except dns.exception.Timeout:
        result.error = f"DNS resolution timed out ({timeout_ms} ms)."
    except dns.resolver.NoNameservers:
        result.error = "No nameservers could answer the query."
    except dns.exception.DNSException as e:
        logger.warning(f"[dns] Resolution of {hostname} failed: {e}")
        result.error = f"DNS resolution failed (Error Type: {type(e).__name__})."
    except Exception as e:
        track_error("dns_unexpected", f"Unexpected error resolving {hostname}", e)
        result.error = "An unexpected error occurred during DNS resolution."

    result.resolution_ms = round((time.perf_counter() - start) * 1000, 2)

    if result.error is None:
        if addresses:
            result.success = True
            result.addresses = addresses
        else:
            result.error = "Hostname resolved but returned no addresses."

    return result
