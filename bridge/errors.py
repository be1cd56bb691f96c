from __future__ import annotations
from typing import Optional


class BridgeError(Exception):
    """Base class for all bridge client failures."""
    pass


class AuthenticationError(BridgeError):
    """Login failed: bad credentials, unreachable endpoint or missing token cookie."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class BridgeConnectionError(BridgeError, ConnectionError):
    """The transport could not be opened or no session announcement arrived."""
    pass


class NotConnected(BridgeError):
    """A request was issued while the connection is not open."""
    pass


class RequestTimeout(BridgeError, TimeoutError):
    """No response arrived for one request before its deadline."""

    def __init__(self, message_type: str, timeout: float) -> None:
        super().__init__(f"Request timed out after {timeout:g}s: {message_type}")
        self.message_type = message_type
        self.timeout = timeout


class ConnectionLost(BridgeError):
    """The transport closed while the request was outstanding."""

    def __init__(self, reason: str = "WebSocket closed") -> None:
        super().__init__(reason)
        self.reason = reason
