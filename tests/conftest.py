"""Shared test fixtures for the execterm test suite.

Provides a scripted in-memory Connection so the session controller can
be driven event by event without a network, plus factories and
controllers wired to it.
"""

from __future__ import annotations

import pytest

from execterm.session.controller import SessionController
from execterm.transport.base import Connection, ConnectionListener


# ---------------------------------------------------------------------------
# Scripted transport
# ---------------------------------------------------------------------------


class FakeConnection(Connection):
    """A Connection whose events are fired by the test."""

    def __init__(self, listener: ConnectionListener) -> None:
        self.listener = listener
        self.sent: list[str] = []
        self.open_calls = 0
        self.close_calls = 0
        self.connected = False
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self.connected and not self.closed

    def open(self) -> None:
        self.open_calls += 1

    def send(self, data: str) -> None:
        if self.is_open:
            self.sent.append(data)

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    # -- events --------------------------------------------------------

    def fire_open(self) -> None:
        self.connected = True
        self.listener.on_open(self)

    def fire_message(self, raw: str | bytes) -> None:
        self.listener.on_message(self, raw)

    def fire_error(self, error: Exception) -> None:
        self.listener.on_error(self, error)

    def fire_close(self) -> None:
        self.closed = True
        self.listener.on_close(self)


class FakeConnectionFactory:
    """Builds FakeConnections and records how many were live at each call."""

    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []
        self.live_at_creation: list[int] = []

    def __call__(self, listener: ConnectionListener) -> FakeConnection:
        self.live_at_creation.append(sum(1 for c in self.connections if not c.closed))
        connection = FakeConnection(listener)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


# ---------------------------------------------------------------------------
# Controller fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def connection_factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
def controller(connection_factory: FakeConnectionFactory) -> SessionController:
    """A controller with default codec, output log and restart policy."""
    return SessionController(connection_factory=connection_factory)


@pytest.fixture
def running(controller: SessionController, connection_factory: FakeConnectionFactory) -> FakeConnection:
    """Start a Python run and open its connection; returns the connection."""
    controller.start("print(1)", "python")
    connection = connection_factory.last
    connection.fire_open()
    return connection
