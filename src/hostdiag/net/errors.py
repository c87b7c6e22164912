"""
Socket table errors.
"""


class SocketTableError(Exception):
    """Base error for extended socket table reads."""


class BufferNegotiationError(SocketTableError):
    """The table query returned an unexpected status code."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TablePermissionError(BufferNegotiationError):
    """The table query was denied for lack of privilege."""


class DecodeBoundsError(SocketTableError):
    """The declared row count would read past the end of the buffer."""

    def __init__(self, message: str, declared: int, decoded: int):
        super().__init__(message)
        self.declared = declared
        self.decoded = decoded


class UnsupportedPlatformError(SocketTableError):
    """The extended table query is not available on this platform."""
