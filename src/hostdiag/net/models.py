"""
Data models for socket inventory.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from hostdiag.net.errors import SocketTableError


class SocketState(str, Enum):
    """TCP connection state."""
    CLOSED = "Closed"
    LISTEN = "Listen"
    SYN_SENT = "SynSent"
    SYN_RECEIVED = "SynReceived"
    ESTABLISHED = "Established"
    FIN_WAIT_1 = "FinWait1"
    FIN_WAIT_2 = "FinWait2"
    CLOSE_WAIT = "CloseWait"
    CLOSING = "Closing"
    LAST_ACK = "LastAck"
    TIME_WAIT = "TimeWait"
    DELETE_TCB = "DeleteTcb"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class TcpSocketRecord:
    """A row from the extended TCP table."""
    local_address: str
    local_port: int
    remote_address: str
    remote_port: int  # 0 for listeners
    state: SocketState
    owning_pid: int

    @property
    def is_listener(self) -> bool:
        return self.state == SocketState.LISTEN


@dataclass(frozen=True)
class UdpSocketRecord:
    """A row from the extended UDP table."""
    local_address: str
    local_port: int
    owning_pid: int


RowT = TypeVar("RowT", TcpSocketRecord, UdpSocketRecord)


@dataclass
class SocketTableResult(Generic[RowT]):
    """Rows read from one table query, or the reason the read failed."""
    records: list[RowT] = field(default_factory=list)
    error: SocketTableError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
