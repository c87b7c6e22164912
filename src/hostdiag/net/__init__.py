"""
Socket Inventory Module

Reads the IPv4 TCP/UDP socket tables with owning process ids, builds
endpoint-to-PID lookups, and resolves process names.
"""

from hostdiag.net.models import (
    SocketState,
    TcpSocketRecord,
    UdpSocketRecord,
    SocketTableResult,
)
from hostdiag.net.table import (
    read_tcp_table,
    read_udp_table,
    build_pid_lookup,
    map_tcp_state,
)
from hostdiag.net.process import resolve_process_name
from hostdiag.net.errors import (
    SocketTableError,
    BufferNegotiationError,
    TablePermissionError,
    DecodeBoundsError,
)

__all__ = [
    "SocketState",
    "TcpSocketRecord",
    "UdpSocketRecord",
    "SocketTableResult",
    "read_tcp_table",
    "read_udp_table",
    "build_pid_lookup",
    "map_tcp_state",
    "resolve_process_name",
    "SocketTableError",
    "BufferNegotiationError",
    "TablePermissionError",
    "DecodeBoundsError",
]
