import socket

import dns.exception
import pytest

from hostdiag.diag.core import ping, validate_target
from hostdiag.diag.models import PingResult, ProbeStatus
from hostdiag.diag.transport import (
    EchoReply,
    EchoSocketError,
    EchoStatus,
    TransportClosedError,
)
from hostdiag.logging_config import get_error_stats, reset_error_stats

from conftest import FakeTransport, static_resolver


@pytest.mark.parametrize("target", ["", "   ", "\t\n"])
def test_empty_target_sends_nothing(target):
    transport = FakeTransport(AssertionError("no probe expected"))

    result = ping(target, transport=transport)

    assert result.status == ProbeStatus.INVALID_TARGET
    assert result.error
    assert transport.calls == []


@pytest.mark.parametrize("target", [
    "exa mple.com",
    "http://example.com",
    "a..b",
    "-leading.example",
    "x" * 64 + ".example",
    "y" * 256,
])
def test_malformed_targets_are_invalid(target):
    transport = FakeTransport(AssertionError("no probe expected"))

    result = ping(target, transport=transport)

    assert result.status == ProbeStatus.INVALID_TARGET
    assert transport.calls == []


@pytest.mark.parametrize("target", ["8.8.8.8", "::1", "localhost", "www.cloudflare.com", "host-1.example."])
def test_valid_targets(target):
    assert validate_target(target) is None


def test_success_keeps_roundtrip():
    transport = FakeTransport(EchoReply(EchoStatus.SUCCESS, "10.0.0.1", 3.5))

    result = ping("10.0.0.1", 500, transport=transport)

    assert result == PingResult(
        target="10.0.0.1",
        status=ProbeStatus.SUCCESS,
        roundtrip_ms=3.5,
        resolved_address="10.0.0.1",
    )
    assert transport.calls == [{
        "address": "10.0.0.1",
        "timeout_ms": 500,
        "ttl": None,
        "payload": None,
        "dont_fragment": False,
    }]


def test_default_timeout_is_one_second():
    transport = FakeTransport(EchoReply(EchoStatus.SUCCESS, "10.0.0.1", 1.0))
    ping("10.0.0.1", transport=transport)
    assert transport.calls[0]["timeout_ms"] == 1000


def test_timeout_has_no_roundtrip():
    transport = FakeTransport(EchoReply(EchoStatus.TIMED_OUT))

    result = ping("10.0.0.1", 500, transport=transport)

    assert result.status == ProbeStatus.TIMED_OUT
    assert result.roundtrip_ms is None
    assert result.error == "Request timed out."


@pytest.mark.parametrize("status, message", [
    (EchoStatus.DEST_HOST_UNREACHABLE, "Destination host unreachable."),
    (EchoStatus.DEST_NET_UNREACHABLE, "Destination network unreachable."),
])
def test_unreachable(status, message):
    result = ping("10.0.0.1", transport=FakeTransport(EchoReply(status, "10.0.0.254")))

    assert result.status == ProbeStatus.UNREACHABLE
    assert result.error == message
    assert result.roundtrip_ms is None


def test_ttl_expired_on_plain_ping_is_unknown():
    result = ping("10.0.0.1", transport=FakeTransport(EchoReply(EchoStatus.TTL_EXPIRED, "10.0.0.254", 2.0)))

    assert result.status == ProbeStatus.UNKNOWN
    assert result.error == "TTL expired in transit."
    assert result.roundtrip_ms is None


def test_hostname_is_resolved_preferring_ipv4():
    resolver = static_resolver({"example.com": ["2606:2800:220:1::248", "93.184.216.34"]})
    transport = FakeTransport(EchoReply(EchoStatus.SUCCESS, "93.184.216.34", 20.0))

    result = ping("example.com", transport=transport, resolver=resolver)

    assert result.status == ProbeStatus.SUCCESS
    assert result.resolved_address == "93.184.216.34"
    assert transport.calls[0]["address"] == "93.184.216.34"


def test_resolution_failure_is_transport_error():
    transport = FakeTransport(AssertionError("no probe expected"))

    result = ping("doesnotexist.invalid", transport=transport, resolver=static_resolver({}))

    assert result.status == ProbeStatus.TRANSPORT_ERROR
    assert result.error.startswith("Resolution failed")
    assert transport.calls == []


def test_empty_resolution_is_transport_error():
    result = ping("empty.example", transport=FakeTransport(None), resolver=static_resolver({"empty.example": []}))
    assert result.status == ProbeStatus.TRANSPORT_ERROR


@pytest.mark.parametrize("exc, prefix", [
    (EchoSocketError("ping: socket: Operation not permitted. Try again"), "Socket error"),
    (OSError("Network down"), "Socket error"),
    (ValueError("bad timeout; must be positive"), "Invalid argument"),
    (TransportClosedError("Echo transport has been closed"), "Transport closed"),
    (socket.gaierror("lookup failed"), "Resolution failed"),
])
def test_transport_exceptions_are_captured(exc, prefix):
    result = ping("10.0.0.1", transport=FakeTransport(exc))

    assert result.status == ProbeStatus.TRANSPORT_ERROR
    assert result.error.startswith(prefix)
    assert "Try again" not in result.error
    assert "must be positive" not in result.error


def test_unexpected_exception_is_logged_and_tracked(caplog):
    reset_error_stats()

    with caplog.at_level("ERROR"):
        result = ping("10.0.0.1", transport=FakeTransport(RuntimeError("kaboom")))

    assert result.status == ProbeStatus.TRANSPORT_ERROR
    assert "kaboom" not in result.error
    assert "kaboom" in caplog.text
    assert get_error_stats()["probe_unexpected"] == 1


def test_ping_is_idempotent_for_a_deterministic_transport():
    transport = FakeTransport(lambda address, ttl: EchoReply(EchoStatus.SUCCESS, address, 7.25))

    first = ping("10.0.0.1", 750, transport=transport)
    second = ping("10.0.0.1", 750, transport=transport)

    assert first == second
    assert repr(first) == repr(second)


def test_hostname_lookup_is_bounded_by_timeout(fake_resolver):
    fake_resolver.records = {"A": ["93.184.216.34"]}
    transport = FakeTransport(EchoReply(EchoStatus.SUCCESS, "93.184.216.34", 20.0))

    result = ping("example.com", 500, transport=transport)

    assert result.resolved_address == "93.184.216.34"
    resolver = fake_resolver.instances[0]
    assert resolver.lifetime == 0.5
    assert resolver.queries == [("example.com", "A")]


def test_lookup_timeout_is_transport_error(fake_resolver):
    fake_resolver.records = {"A": dns.exception.Timeout()}
    transport = FakeTransport(AssertionError("no echo expected"))

    result = ping("slow.example", 500, transport=transport)

    assert result.status == ProbeStatus.TRANSPORT_ERROR
    assert result.error == "Resolution failed: Lookup of slow.example timed out after 500 ms"
    assert transport.calls == []


def test_ipv6_only_hostname_falls_back_to_aaaa(fake_resolver):
    fake_resolver.records = {"AAAA": ["2001:db8::1"]}
    transport = FakeTransport(EchoReply(EchoStatus.SUCCESS, "2001:db8::1", 5.0))

    result = ping("v6only.example", transport=transport)

    assert result.resolved_address == "2001:db8::1"


def test_localhost_needs_no_lookup(fake_resolver):
    transport = FakeTransport(EchoReply(EchoStatus.SUCCESS, "127.0.0.1", 0.1))

    result = ping("localhost", transport=transport)

    assert result.resolved_address == "127.0.0.1"
    assert fake_resolver.instances == []
