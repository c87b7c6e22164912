"""
Network section collector.

Assembles one network snapshot: socket inventory joined with owning
processes, plus pings of the default gateway and public targets, a DNS
resolution test and an optional traceroute. Each unit is a blocking call
run in a worker thread; units run concurrently and are skipped once the
collection deadline has passed.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
import socket
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

import psutil

from hostdiag.config import DiagConfig, get_config
from hostdiag.diag.core import Resolver, dns_resolve, ping, traceroute
from hostdiag.diag.gateway import discover_gateway
from hostdiag.diag.models import DnsResolutionResult, PingResult, ProbeStatus, TracerouteRun
from hostdiag.diag.transport import EchoTransport
from hostdiag.net.models import SocketState
from hostdiag.net.privilege import is_elevated
from hostdiag.net.process import resolve_process_name
from hostdiag.net.table import (
    ExtendedTableApi,
    build_pid_lookup,
    lookup_key,
    read_tcp_table,
    read_udp_table,
)

logger = logging.getLogger(__name__)

# psutil connection status -> SocketState
_PSUTIL_STATES = {
    psutil.CONN_ESTABLISHED: SocketState.ESTABLISHED,
    psutil.CONN_SYN_SENT: SocketState.SYN_SENT,
    psutil.CONN_SYN_RECV: SocketState.SYN_RECEIVED,
    psutil.CONN_FIN_WAIT1: SocketState.FIN_WAIT_1,
    psutil.CONN_FIN_WAIT2: SocketState.FIN_WAIT_2,
    psutil.CONN_TIME_WAIT: SocketState.TIME_WAIT,
    psutil.CONN_CLOSE: SocketState.CLOSED,
    psutil.CONN_CLOSE_WAIT: SocketState.CLOSE_WAIT,
    psutil.CONN_LAST_ACK: SocketState.LAST_ACK,
    psutil.CONN_LISTEN: SocketState.LISTEN,
    psutil.CONN_CLOSING: SocketState.CLOSING,
    "DELETE_TCB": SocketState.DELETE_TCB,
}


class Deadline:
    """Collection-wide deadline, checked before each unit of work starts."""

    def __init__(self, seconds: float | None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires = None if seconds is None else clock() + seconds

    @property
    def expired(self) -> bool:
        return self._expires is not None and self._clock() >= self._expires

    @property
    def remaining(self) -> float | None:
        if self._expires is None:
            return None
        return max(0.0, self._expires - self._clock())


@dataclass
class SocketEntry:
    """An active socket annotated with its owning process."""
    protocol: str  # TCP / UDP
    local_address: str
    local_port: int
    remote_address: str | None = None
    remote_port: int | None = None
    state: SocketState | None = None
    pid: int | None = None
    process_name: str | None = None
    error: str | None = None


@dataclass
class NetworkSnapshot:
    """Everything collected for the network section."""
    elevated: bool = False
    tcp_sockets: list[SocketEntry] = field(default_factory=list)
    udp_sockets: list[SocketEntry] = field(default_factory=list)
    gateway_ping: PingResult | None = None
    pings: list[PingResult] = field(default_factory=list)
    dns_resolution: DnsResolutionResult | None = None
    traceroute: TracerouteRun | None = None
    errors: dict[str, str] = field(default_factory=dict)

    def add_error(self, section: str, message: str) -> None:
        self.errors[section] = message


def list_connections() -> list[Any]:
    """Active IPv4 sockets from psutil."""
    return psutil.net_connections(kind="inet4")


def join_connections(
    connections: Iterable[Any],
    tcp_lookup: Mapping[str, int],
    udp_lookup: Mapping[str, int],
) -> tuple[list[SocketEntry], list[SocketEntry]]:
    """Annotate connections with owning PIDs and process names.

    PIDs come from the extended-table lookups; psutil's own pid is used when
    a key is missing there.
    """
    tcp_entries: list[SocketEntry] = []
    udp_entries: list[SocketEntry] = []
    names: dict[int, str] = {}

    for conn in connections:
        if not conn.laddr:
            continue
        local_ip, local_port = conn.laddr.ip, conn.laddr.port

        if conn.type == socket.SOCK_DGRAM:
            entry = SocketEntry(protocol="UDP", local_address=local_ip, local_port=local_port)
            entry.pid = udp_lookup.get(lookup_key(local_ip, local_port))
            bucket = udp_entries
        else:
            state = _PSUTIL_STATES.get(conn.status, SocketState.UNKNOWN)
            entry = SocketEntry(
                protocol="TCP",
                local_address=local_ip,
                local_port=local_port,
                state=state,
            )
            if state == SocketState.LISTEN or not conn.raddr:
                entry.pid = tcp_lookup.get(lookup_key(local_ip, local_port))
            else:
                entry.remote_address, entry.remote_port = conn.raddr.ip, conn.raddr.port
                entry.pid = tcp_lookup.get(
                    lookup_key(local_ip, local_port, entry.remote_address, entry.remote_port)
                )
            bucket = tcp_entries

        if entry.pid is None:
            entry.pid = conn.pid

        if entry.pid is None:
            entry.error = "Owning PID not found"
        else:
            if entry.pid not in names:
                names[entry.pid] = resolve_process_name(entry.pid)
            entry.process_name = names[entry.pid]

        bucket.append(entry)

    return tcp_entries, udp_entries


class NetworkCollector:
    """Runs the network section's units concurrently under one deadline."""

    def __init__(
        self,
        config: DiagConfig | None = None,
        deadline: Deadline | None = None,
        transport: EchoTransport | None = None,
        resolver: Resolver | None = None,
        table_api: ExtendedTableApi | None = None,
        connections: Callable[[], Iterable[Any]] = list_connections,
        dns_test: Callable[[str, int], DnsResolutionResult] = dns_resolve,
        gateway_finder: Callable[[], str | None] = discover_gateway,
    ):
        self.config = config or get_config()
        self.deadline = deadline or Deadline(self.config.collect_deadline_s)
        self.transport = transport
        self.resolver = resolver
        self.table_api = table_api
        self.connections = connections
        self.dns_test = dns_test
        self.gateway_finder = gateway_finder

    def _skipped(self, snapshot: NetworkSnapshot, section: str) -> bool:
        if not self.deadline.expired:
            return False
        logger.warning(f"Skipping {section}: collection deadline reached")
        snapshot.add_error(section, "Skipped: collection deadline reached.")
        return True

    async def _unit(self, snapshot: NetworkSnapshot, section: str, func: Callable, *args, **kwargs):
        """Run one blocking unit in a thread unless the deadline has passed.

        The deadline is checked again once a worker thread picks the unit up,
        since units can sit queued behind others for a while.
        """
        if self._skipped(snapshot, section):
            return None

        def run():
            if self._skipped(snapshot, section):
                return None
            return func(*args, **kwargs)

        return await asyncio.to_thread(run)

    async def _collect_sockets(self, snapshot: NetworkSnapshot) -> None:
        tcp, udp = await asyncio.gather(
            self._unit(snapshot, "TCPTable", read_tcp_table, self.table_api),
            self._unit(snapshot, "UDPTable", read_udp_table, self.table_api),
        )

        if tcp is not None and tcp.error:
            snapshot.add_error("TCPTable", f"Error reading TCP owner table: {tcp.error}")
        if udp is not None and udp.error:
            snapshot.add_error("UDPTable", f"Error reading UDP owner table: {udp.error}")

        tcp_lookup = build_pid_lookup(tcp.records if tcp else [], [])
        udp_lookup = build_pid_lookup([], udp.records if udp else [])

        try:
            joined = await self._unit(
                snapshot, "Connections", lambda: join_connections(self.connections(), tcp_lookup, udp_lookup)
            )
        except (psutil.Error, OSError) as e:
            logger.error(f"Listing active connections failed: {e}")
            snapshot.add_error("Connections", f"Error listing active connections: {e}")
            return

        if joined is not None:
            snapshot.tcp_sockets, snapshot.udp_sockets = joined

    def _ping_gateway(self) -> PingResult:
        # A configured gateway wins over the routing table
        gateway = self.config.gateway or self.gateway_finder()
        if not gateway:
            return PingResult(target="Default Gateway", status=ProbeStatus.UNKNOWN, error="Not Found")
        return ping(gateway, self.config.ping_timeout_ms, self.transport, self.resolver)

    async def _collect_gateway(self, snapshot: NetworkSnapshot) -> None:
        snapshot.gateway_ping = await self._unit(snapshot, "GatewayPing", self._ping_gateway)

    async def _collect_pings(self, snapshot: NetworkSnapshot) -> None:
        results = await asyncio.gather(*[
            self._unit(
                snapshot, f"Ping-{target}", ping, target, self.config.ping_timeout_ms, self.transport, self.resolver
            )
            for target in self.config.ping_targets
        ])
        snapshot.pings = [result for result in results if result is not None]

    async def _collect_dns(self, snapshot: NetworkSnapshot) -> None:
        hostname = self.config.dns_test_hostname
        if not hostname:
            snapshot.dns_resolution = DnsResolutionResult(
                hostname="Default",
                error="No DNS test hostname specified.",
            )
            return
        snapshot.dns_resolution = await self._unit(
            snapshot, "DnsResolution", self.dns_test, hostname, self.config.dns_timeout_ms
        )

    async def _collect_traceroute(self, snapshot: NetworkSnapshot) -> None:
        target = self.config.trace_target
        if not target:
            return
        snapshot.traceroute = await self._unit(
            snapshot,
            "Traceroute",
            traceroute,
            target,
            self.config.trace_max_hops,
            self.config.trace_timeout_ms,
            self.transport,
            self.resolver,
        )

    async def collect(self) -> NetworkSnapshot:
        snapshot = NetworkSnapshot(elevated=is_elevated())
        if not snapshot.elevated:
            snapshot.add_error(
                "Privileges",
                "Not running with administrative rights; owning process details may be incomplete.",
            )

        await asyncio.gather(
            self._collect_sockets(snapshot),
            self._collect_gateway(snapshot),
            self._collect_pings(snapshot),
            self._collect_dns(snapshot),
            self._collect_traceroute(snapshot),
        )
        return snapshot


async def collect_network_async(config: DiagConfig | None = None, **kwargs) -> NetworkSnapshot:
    """Collect the network section."""
    return await NetworkCollector(config, **kwargs).collect()


def collect_network(config: DiagConfig | None = None, **kwargs) -> NetworkSnapshot:
    """Synchronous wrapper for collect_network_async."""
    return asyncio.run(collect_network_async(config, **kwargs))
