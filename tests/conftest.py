"""
Shared fakes for socket-table and probe tests.
"""

import ctypes
import socket
import struct

import dns.resolver
import pytest

from hostdiag.config import DiagConfig, set_config
from hostdiag.net.codec import TABLE_HEADER, TCP_ROW, UDP_ROW
from hostdiag.net.table import ERROR_INSUFFICIENT_BUFFER, NO_ERROR, TableKind


def raw_address(address: str) -> int:
    """Encode a dotted quad the way the OS stores it in a table row."""
    return struct.unpack("<I", socket.inet_aton(address))[0]


def raw_port(port: int) -> bytes:
    return struct.pack("!H", port) + b"\x00\x00"


def tcp_row(state: int, local: str, lport: int, remote: str, rport: int, pid: int) -> bytes:
    return TCP_ROW.pack(state, raw_address(local), raw_port(lport), raw_address(remote), raw_port(rport), pid)


def udp_row(local: str, lport: int, pid: int) -> bytes:
    return UDP_ROW.pack(raw_address(local), raw_port(lport), pid)


def table_bytes(rows: list[bytes], declared: int | None = None) -> bytes:
    count = len(rows) if declared is None else declared
    return TABLE_HEADER.pack(count) + b"".join(rows)


class FakeTableApi:
    """ExtendedTableApi returning canned table bytes and status codes."""

    def __init__(
        self,
        tcp: bytes = b"",
        udp: bytes = b"",
        probe_status: int = ERROR_INSUFFICIENT_BUFFER,
        fetch_status: int = NO_ERROR,
    ):
        self.tables = {TableKind.TCP: tcp, TableKind.UDP: udp}
        self.probe_status = probe_status
        self.fetch_status = fetch_status
        self.calls: list[tuple[TableKind, int | None]] = []

    def query(self, kind, buffer):
        data = self.tables[kind]
        if buffer is None:
            self.calls.append((kind, None))
            return self.probe_status, len(data)

        size = ctypes.sizeof(buffer)
        self.calls.append((kind, size))
        ctypes.memmove(buffer, data, min(size, len(data)))
        return self.fetch_status, len(data)


class FakeTransport:
    """EchoTransport answering from a script.

    ``script`` is a single reply/exception, a list consumed in order, or a
    callable taking (address, ttl).
    """

    def __init__(self, script):
        self.script = script
        self.calls: list[dict] = []

    def send(self, address, timeout_ms, ttl=None, payload=None, dont_fragment=False):
        self.calls.append({
            "address": address,
            "timeout_ms": timeout_ms,
            "ttl": ttl,
            "payload": payload,
            "dont_fragment": dont_fragment,
        })
        if callable(self.script):
            reply = self.script(address, ttl)
        elif isinstance(self.script, list):
            reply = self.script[len(self.calls) - 1]
        else:
            reply = self.script

        if isinstance(reply, BaseException):
            raise reply
        return reply


def static_resolver(mapping: dict[str, list[str]]):
    """Resolver answering from a dict; unknown names raise gaierror."""
    calls: list[str] = []

    def resolve(hostname: str) -> list[str]:
        calls.append(hostname)
        if hostname not in mapping:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        return mapping[hostname]

    resolve.calls = calls
    return resolve


class FakeRdata:
    def __init__(self, text):
        self.text = text

    def to_text(self):
        return self.text


class FakeResolver:
    """Stands in for dns.resolver.Resolver; answers come from ``records``."""

    records: dict = {}
    instances: list = []

    def __init__(self):
        self.nameservers = ["127.0.0.53"]
        self.timeout = None
        self.lifetime = None
        self.queries = []
        FakeResolver.instances.append(self)

    def resolve(self, hostname, rdtype):
        self.queries.append((hostname, rdtype))
        answer = self.records.get(rdtype)
        if isinstance(answer, BaseException):
            raise answer
        if answer is None:
            raise dns.resolver.NoAnswer()
        return [FakeRdata(text) for text in answer]


@pytest.fixture
def fake_resolver(monkeypatch):
    FakeResolver.records = {}
    FakeResolver.instances = []
    monkeypatch.setattr(dns.resolver, "Resolver", FakeResolver)
    return FakeResolver


@pytest.fixture(autouse=True)
def isolated_config():
    """Keep the global config out of the environment during tests."""
    set_config(DiagConfig(ping_targets=[], dns_test_hostname="", collect_deadline_s=30))
    yield
    set_config(None)
