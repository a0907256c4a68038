"""Error types for the marketsync client.

None of these are fatal to the process: the worst outcome of any of them is a
disconnected client waiting on its reconnect timer.
"""

from __future__ import annotations


class MarketSyncError(Exception):
    """Base class for client errors."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


class NotConnectedError(MarketSyncError):
    """A frame was sent while the connection was not open."""

    def __init__(self, message: str = "not connected"):
        super().__init__(message)


class ProtocolDecodeError(MarketSyncError):
    """A frame could not be decoded (wrong arity, bad number, ...)."""

    def __init__(self, message: str):
        super().__init__(f"malformed frame: {message}")


class ValidationError(MarketSyncError):
    """A user intent failed its local pre-check; nothing was sent."""


class ServerError(MarketSyncError):
    """The server answered with an ERROR frame."""

    def __init__(self, message: str):
        super().__init__(message)


class ConnectionLostError(MarketSyncError):
    """The connection closed uncleanly."""

    def __init__(self, cause: BaseException | None = None):
        super().__init__("connection lost", cause)
