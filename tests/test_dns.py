import dns.exception
import dns.resolver
import pytest

from hostdiag.diag.core import dns_resolve
from hostdiag.logging_config import get_error_stats, reset_error_stats


def test_resolves_a_and_aaaa(fake_resolver):
    fake_resolver.records = {"A": ["93.184.216.34"], "AAAA": ["2606:2800:220:1::248"]}

    result = dns_resolve("example.com", 1500)

    assert result.success
    assert result.addresses == ["93.184.216.34", "2606:2800:220:1::248"]
    assert result.error is None
    assert result.resolution_ms >= 0
    resolver = fake_resolver.instances[0]
    assert resolver.queries == [("example.com", "A"), ("example.com", "AAAA")]
    assert resolver.timeout == 1.5
    assert resolver.lifetime == 1.5


def test_ipv4_only_host(fake_resolver):
    fake_resolver.records = {"A": ["10.1.2.3"]}

    result = dns_resolve("intranet.example")

    assert result.success
    assert result.addresses == ["10.1.2.3"]


def test_custom_nameservers(fake_resolver):
    fake_resolver.records = {"A": ["10.1.2.3"]}

    dns_resolve("intranet.example", nameservers=["1.1.1.1", "8.8.8.8"])

    assert fake_resolver.instances[0].nameservers == ["1.1.1.1", "8.8.8.8"]


def test_no_addresses(fake_resolver):
    result = dns_resolve("empty.example")

    assert not result.success
    assert result.addresses == []
    assert result.error == "Hostname resolved but returned no addresses."


def test_nxdomain(fake_resolver):
    fake_resolver.records = {"A": dns.resolver.NXDOMAIN()}

    result = dns_resolve("nope.example")

    assert not result.success
    assert result.error == "Domain does not exist."
    assert result.resolution_ms is not None


def test_timeout(fake_resolver):
    fake_resolver.records = {"A": dns.exception.Timeout()}

    result = dns_resolve("slow.example", 500)

    assert result.error == "DNS resolution timed out (500 ms)."


def test_no_nameservers(fake_resolver):
    fake_resolver.records = {"A": dns.resolver.NoNameservers()}

    result = dns_resolve("broken.example")

    assert result.error == "No nameservers could answer the query."


def test_unexpected_error_is_tracked(fake_resolver):
    reset_error_stats()
    fake_resolver.records = {"A": RuntimeError("resolver exploded")}

    result = dns_resolve("odd.example")

    assert not result.success
    assert result.error == "An unexpected error occurred during DNS resolution."
    assert get_error_stats()["dns_unexpected"] == 1


def test_literal_address_needs_no_lookup(fake_resolver):
    result = dns_resolve("192.0.2.10")

    assert result.success
    assert result.addresses == ["192.0.2.10"]
    assert result.resolution_ms == 0.0
    assert fake_resolver.instances == []


@pytest.mark.parametrize("hostname", ["", "bad host", "a..b"])
def test_invalid_hostname(fake_resolver, hostname):
    result = dns_resolve(hostname)

    assert not result.success
    assert result.error
    assert fake_resolver.instances == []
