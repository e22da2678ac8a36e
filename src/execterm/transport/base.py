"""Abstract base class for execution transports.

A connection carries one run: the start envelope, the keystrokes that
follow it, and the frames the backend streams back. Connections are
event driven -- nothing here blocks or awaits a reply. Progress is
reported to a ConnectionListener through four callbacks, mirroring the
open/message/error/close events of a browser WebSocket.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ConnectionListener(Protocol):
    """Receives the events of a Connection, in delivery order.

    Every callback names the connection it came from, so a listener
    that has moved on to a newer connection can recognize and drop
    late events from an old one.
    """

    def on_open(self, connection: Connection) -> None: ...

    def on_message(self, connection: Connection, raw: str | bytes) -> None: ...

    def on_error(self, connection: Connection, error: Exception) -> None: ...

    def on_close(self, connection: Connection) -> None: ...


class Connection(ABC):
    """Abstract interface for a message-oriented duplex transport.

    Implementations must deliver ``on_close`` exactly once per opened
    connection, including after a client-initiated ``close()``; a
    connect failure is reported as ``on_error`` followed by ``on_close``.

    Example usage::

        connection = factory(listener)
        connection.open()        # returns immediately
        ...
        connection.send("x")     # ordered, non-blocking
        connection.close()       # immediate
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the connection can currently carry data."""
        ...

    @abstractmethod
    def open(self) -> None:
        """Begin connecting. Must not block.

        ``on_open`` fires once the transport is ready for ``send()``.
        """
        ...

    @abstractmethod
    def send(self, data: str) -> None:
        """Queue data for transmission, preserving call order.

        Data sent while the connection is not open is dropped.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Tear the connection down without waiting for the peer.

        Safe to call multiple times. ``is_open`` is False as soon as
        this returns, even though ``on_close`` is delivered later.
        """
        ...


ConnectionFactory = Callable[[ConnectionListener], Connection]


class TransportError(Exception):
    """Raised (and reported to listeners) when the transport fails."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url
