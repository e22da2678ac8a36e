"""Execution transport module for execterm.

Carries one run per connection between the session controller and the
execution backend. The abstract interface lets the controller be driven
by the WebSocket implementation in production and by scripted
connections in tests.

Public API:
    Connection -- Abstract base class
    ConnectionFactory -- Callable building a Connection for a listener
    WebSocketConnection -- WebSocket implementation
    WebSocketConnectionFactory -- Configured factory for the controller
"""

from execterm.transport.base import (
    Connection,
    ConnectionFactory,
    ConnectionListener,
    TransportError,
)

__all__ = [
    "Connection",
    "ConnectionFactory",
    "ConnectionListener",
    "TransportError",
    "WebSocketConnection",
    "WebSocketConnectionFactory",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "WebSocketConnection":
        from execterm.transport.websocket import WebSocketConnection
        return WebSocketConnection
    if name == "WebSocketConnectionFactory":
        from execterm.transport.websocket import WebSocketConnectionFactory
        return WebSocketConnectionFactory
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
