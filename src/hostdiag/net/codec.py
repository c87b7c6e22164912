"""
Endpoint decoding for raw socket-table rows.

The extended socket tables store IPv4 addresses as 32-bit integers whose
in-memory bytes are already in network order, and ports as 4-byte fields
whose first two bytes hold the port in network order.
"""

import socket
import struct


# Header: DWORD dwNumEntries
TABLE_HEADER = struct.Struct("<I")

# MIB_TCPROW_OWNER_PID: state, localAddr, localPort[4], remoteAddr, remotePort[4], owningPid
TCP_ROW = struct.Struct("<II4sI4sI")

# MIB_UDPROW_OWNER_PID: localAddr, localPort[4], owningPid
UDP_ROW = struct.Struct("<I4sI")


def decode_address(raw: int) -> str:
    """Convert a raw little-endian address integer to dotted-quad notation."""
    return socket.inet_ntoa(struct.pack("<I", raw))


def decode_port(raw: bytes) -> int:
    """Convert a 4-byte port field to a host-order port number."""
    return (raw[0] << 8) | raw[1]


def endpoint(address: str, port: int) -> str:
    """Format an address/port pair as used in lookup keys."""
    return f"{address}:{port}"
