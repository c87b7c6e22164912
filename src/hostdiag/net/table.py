"""
Extended socket table reader.

Reads the IPv4 TCP and UDP socket tables annotated with owning process ids
through the IP Helper API (GetExtendedTcpTable / GetExtendedUdpTable).
The table size is unknown until queried, so every read negotiates its
buffer in two calls: a size probe with no buffer, then a data fetch into a
buffer of exactly the reported size.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import ctypes
import logging
import struct
import sys
from contextlib import contextmanager
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, Mapping, Protocol

from hostdiag.net.codec import (
    TABLE_HEADER,
    TCP_ROW,
    UDP_ROW,
    decode_address,
    decode_port,
    endpoint,
)
from hostdiag.net.errors import (
    BufferNegotiationError,
    DecodeBoundsError,
    SocketTableError,
    TablePermissionError,
    UnsupportedPlatformError,
)
from hostdiag.net.models import (
    SocketState,
    SocketTableResult,
    TcpSocketRecord,
    UdpSocketRecord,
)

logger = logging.getLogger(__name__)

# Win32 status codes
NO_ERROR = 0
ERROR_ACCESS_DENIED = 5
ERROR_INSUFFICIENT_BUFFER = 122

AF_INET = 2
TCP_TABLE_OWNER_PID_ALL = 5
UDP_TABLE_OWNER_PID = 1

# MIB_TCP_STATE_* codes
_TCP_STATES: Mapping[int, SocketState] = MappingProxyType({
    1: SocketState.CLOSED,
    2: SocketState.LISTEN,
    3: SocketState.SYN_SENT,
    4: SocketState.SYN_RECEIVED,
    5: SocketState.ESTABLISHED,
    6: SocketState.FIN_WAIT_1,
    7: SocketState.FIN_WAIT_2,
    8: SocketState.CLOSE_WAIT,
    9: SocketState.CLOSING,
    10: SocketState.LAST_ACK,
    11: SocketState.TIME_WAIT,
    12: SocketState.DELETE_TCB,
})


class TableKind(str, Enum):
    """Socket table to query."""
    TCP = "tcp"
    UDP = "udp"


class ExtendedTableApi(Protocol):
    """The OS table-query operation.

    ``query`` is called with ``buffer=None`` to probe the required size and
    with an allocated buffer to fetch the data. It returns the status code
    and the size (in bytes) the OS reports.
    """

    def query(self, kind: TableKind, buffer: ctypes.Array | None) -> tuple[int, int]:
        ...


class WindowsTableApi:
    """ExtendedTableApi backed by iphlpapi.dll."""

    def __init__(self):
        if sys.platform != "win32":
            raise UnsupportedPlatformError(
                f"Extended socket table query requires Windows (running on {sys.platform})"
            )

        from ctypes import wintypes

        iphlpapi = ctypes.WinDLL("iphlpapi.dll")
        argtypes = [
            ctypes.c_void_p,
            ctypes.POINTER(wintypes.DWORD),
            wintypes.BOOL,
            wintypes.ULONG,
            ctypes.c_int,
            wintypes.ULONG,
        ]

        self._tcp = iphlpapi.GetExtendedTcpTable
        self._tcp.restype = wintypes.DWORD
        self._tcp.argtypes = argtypes

        self._udp = iphlpapi.GetExtendedUdpTable
        self._udp.restype = wintypes.DWORD
        self._udp.argtypes = argtypes

        self._dword = wintypes.DWORD

    def query(self, kind: TableKind, buffer: ctypes.Array | None) -> tuple[int, int]:
        size = self._dword(ctypes.sizeof(buffer) if buffer is not None else 0)
        if kind == TableKind.TCP:
            status = self._tcp(buffer, ctypes.byref(size), True, AF_INET, TCP_TABLE_OWNER_PID_ALL, 0)
        else:
            status = self._udp(buffer, ctypes.byref(size), True, AF_INET, UDP_TABLE_OWNER_PID, 0)
        return int(status), int(size.value)


def default_table_api() -> ExtendedTableApi:
    """Build the table API for the running platform."""
    return WindowsTableApi()


def map_tcp_state(code: int) -> SocketState:
    """Map a raw MIB_TCP_STATE code to a SocketState. Unrecognised codes are Unknown."""
    return _TCP_STATES.get(code, SocketState.UNKNOWN)


@contextmanager
def table_buffer(size: int) -> Iterator[ctypes.Array]:
    """Allocate a table buffer of exactly ``size`` bytes for the duration of a read."""
    buffer = ctypes.create_string_buffer(size)
    try:
        yield buffer
    finally:
        ctypes.memset(buffer, 0, size)
        del buffer


def _check_status(kind: TableKind, phase: str, status: int, expected: tuple[int, ...]) -> None:
    if status in expected:
        return
    name = f"GetExtended{kind.value.capitalize()}Table"
    if status == ERROR_ACCESS_DENIED:
        raise TablePermissionError(f"{name} {phase} denied (status {status})", status)
    raise BufferNegotiationError(f"{name} {phase} failed with status {status}", status)


def _decode_rows(
    data: bytes,
    layout: struct.Struct,
    decode: Callable[[tuple], TcpSocketRecord | UdpSocketRecord],
) -> tuple[list, DecodeBoundsError | None]:
    """Walk the row array following the table header.

    Only rows lying entirely inside ``data`` are decoded. If the header
    declares more rows than fit, the rows that fit are returned together
    with a DecodeBoundsError.
    """
    if len(data) < TABLE_HEADER.size:
        return [], DecodeBoundsError(
            f"Table buffer of {len(data)} bytes is shorter than its header",
            declared=0,
            decoded=0,
        )

    (declared,) = TABLE_HEADER.unpack_from(data, 0)
    available = (len(data) - TABLE_HEADER.size) // layout.size

    error = None
    count = declared
    if declared > available:
        error = DecodeBoundsError(
            f"Table declares {declared} rows but the buffer only holds {available}",
            declared=declared,
            decoded=available,
        )
        count = available

    rows = []
    offset = TABLE_HEADER.size
    for _ in range(count):
        rows.append(decode(layout.unpack_from(data, offset)))
        offset += layout.size

    return rows, error


def _decode_tcp_row(fields: tuple) -> TcpSocketRecord:
    state, local_addr, local_port, remote_addr, remote_port, pid = fields
    return TcpSocketRecord(
        local_address=decode_address(local_addr),
        local_port=decode_port(local_port),
        remote_address=decode_address(remote_addr),
        remote_port=decode_port(remote_port),
        state=map_tcp_state(state),
        owning_pid=pid,
    )


def _decode_udp_row(fields: tuple) -> UdpSocketRecord:
    local_addr, local_port, pid = fields
    return UdpSocketRecord(
        local_address=decode_address(local_addr),
        local_port=decode_port(local_port),
        owning_pid=pid,
    )


def _read_table(
    kind: TableKind,
    layout: struct.Struct,
    decode: Callable[[tuple], TcpSocketRecord | UdpSocketRecord],
    api: ExtendedTableApi | None,
) -> SocketTableResult:
    result = SocketTableResult()

    try:
        if api is None:
            api = default_table_api()

        status, size = api.query(kind, None)
        _check_status(kind, "size probe", status, (ERROR_INSUFFICIENT_BUFFER, NO_ERROR))

        with table_buffer(size) as buffer:
            status, _ = api.query(kind, buffer)
            _check_status(kind, "data fetch", status, (NO_ERROR,))
            result.records, result.error = _decode_rows(buffer.raw, layout, decode)

    except SocketTableError as e:
        logger.error(f"{kind.value.upper()} table read failed: {e}")
        result.records = []
        result.error = e
        return result
    except OSError as e:
        logger.error(f"{kind.value.upper()} table query raised: {e}", exc_info=e)
        result.records = []
        result.error = SocketTableError(f"{kind.value.upper()} table query failed: {e}")
        return result

    if result.error:
        logger.warning(f"{kind.value.upper()} table truncated: {result.error}")
    else:
        logger.debug(f"Read {len(result.records)} {kind.value.upper()} rows")

    return result


def read_tcp_table(api: ExtendedTableApi | None = None) -> SocketTableResult[TcpSocketRecord]:
    """Read all IPv4 TCP sockets with their owning process ids."""
    return _read_table(TableKind.TCP, TCP_ROW, _decode_tcp_row, api)


def read_udp_table(api: ExtendedTableApi | None = None) -> SocketTableResult[UdpSocketRecord]:
    """Read all IPv4 UDP sockets with their owning process ids."""
    return _read_table(TableKind.UDP, UDP_ROW, _decode_udp_row, api)


def lookup_key(
    local_address: str,
    local_port: int,
    remote_address: str | None = None,
    remote_port: int | None = None,
) -> str:
    """Build the composite key used by the PID lookup.

    Listeners and UDP sockets are keyed by their local endpoint only;
    connections by both endpoints.
    """
    key = endpoint(local_address, local_port)
    if remote_address is not None and remote_port is not None:
        key += f"-{endpoint(remote_address, remote_port)}"
    return key


def build_pid_lookup(
    tcp_rows: Iterable[TcpSocketRecord],
    udp_rows: Iterable[UdpSocketRecord],
) -> Mapping[str, int]:
    """Map socket endpoint keys to owning process ids.

    On a key present in both tables the TCP entry is kept.
    """
    lookup: dict[str, int] = {}

    for row in tcp_rows:
        if row.is_listener:
            key = lookup_key(row.local_address, row.local_port)
        else:
            key = lookup_key(row.local_address, row.local_port, row.remote_address, row.remote_port)
        lookup[key] = row.owning_pid

    for row in udp_rows:
        lookup.setdefault(lookup_key(row.local_address, row.local_port), row.owning_pid)

    return MappingProxyType(lookup)
