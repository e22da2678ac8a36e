"""Tests for the WebSocket transport, against a loopback server."""

from __future__ import annotations

import asyncio
import json
from typing import Callable

import pytest
from websockets.asyncio.server import ServerConnection, serve

from execterm.domain.models import SessionState
from execterm.session.controller import SessionController
from execterm.transport.base import Connection, TransportError
from execterm.transport.websocket import (
    WebSocketConnection,
    WebSocketConnectionFactory,
    build_endpoint_url,
)

EXIT = "\n\n[Process exited]"


async def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


class RecordingListener:
    """Collects transport events in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def on_open(self, connection: Connection) -> None:
        self.events.append(("open", None))

    def on_message(self, connection: Connection, raw: str | bytes) -> None:
        self.events.append(("message", raw))

    def on_error(self, connection: Connection, error: Exception) -> None:
        self.events.append(("error", error))

    def on_close(self, connection: Connection) -> None:
        self.events.append(("close", None))

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]


class TestBuildEndpointUrl:
    def test_without_token(self) -> None:
        assert build_endpoint_url("ws://host/ws/run") == "ws://host/ws/run"
        assert build_endpoint_url("ws://host/ws/run", "") == "ws://host/ws/run"

    def test_token_appended(self) -> None:
        assert build_endpoint_url("ws://host/ws/run", "s3cret") == "ws://host/ws/run?token=s3cret"

    def test_existing_query_preserved(self) -> None:
        url = build_endpoint_url("wss://host/run?lang=py", "abc", token_param="auth")
        assert url == "wss://host/run?lang=py&auth=abc"

    def test_previous_token_replaced(self) -> None:
        assert build_endpoint_url("ws://h/r?token=old", "new") == "ws://h/r?token=new"

    def test_token_is_escaped(self) -> None:
        assert build_endpoint_url("ws://h/r", "a b&c") == "ws://h/r?token=a+b%26c"


class TestWebSocketConnectionFactory:
    def test_builds_connection_for_listener(self) -> None:
        factory = WebSocketConnectionFactory("ws://h/r", token="t", open_timeout=2.0)
        listener = RecordingListener()
        connection = factory(listener)
        assert isinstance(connection, WebSocketConnection)
        assert connection.url == "ws://h/r?token=t"
        assert connection.is_open is False


class TestWebSocketConnection:
    @pytest.mark.asyncio
    async def test_event_order_and_send(self) -> None:
        received: list[str] = []

        async def handler(ws: ServerConnection) -> None:
            received.append(await ws.recv())
            await ws.send("one")
            await ws.send("two")

        async with serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            listener = RecordingListener()
            connection = WebSocketConnection(f"ws://127.0.0.1:{port}", listener)

            def on_open(conn: Connection) -> None:
                listener.events.append(("open", None))
                conn.send("hello")

            listener.on_open = on_open  # type: ignore[method-assign]
            connection.open()
            await asyncio.wait_for(connection.wait_closed(), timeout=5.0)

        assert received == ["hello"]
        assert listener.events == [
            ("open", None),
            ("message", "one"),
            ("message", "two"),
            ("close", None),
        ]
        assert connection.is_open is False

    @pytest.mark.asyncio
    async def test_connect_failure_reports_error_then_close(self) -> None:
        async with serve(lambda ws: asyncio.sleep(0), "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
        # The server is gone; its port now refuses connections.
        listener = RecordingListener()
        connection = WebSocketConnection(f"ws://127.0.0.1:{port}", listener, open_timeout=2.0)
        connection.open()
        await asyncio.wait_for(connection.wait_closed(), timeout=5.0)

        assert listener.kinds == ["error", "close"]
        error = listener.events[0][1]
        assert isinstance(error, TransportError)
        assert error.url == f"ws://127.0.0.1:{port}"

    @pytest.mark.asyncio
    async def test_send_before_open_is_dropped(self) -> None:
        connection = WebSocketConnection("ws://127.0.0.1:9", RecordingListener())
        connection.send("x")
        assert connection._outbox.empty()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        listener = RecordingListener()
        connection = WebSocketConnection("ws://127.0.0.1:9", listener)
        connection.close()
        connection.close()
        assert connection.is_open is False


class TestControllerOverWebSocket:
    @pytest.mark.asyncio
    async def test_print_scenario(self) -> None:
        starts: list[dict] = []

        async def handler(ws: ServerConnection) -> None:
            starts.append(json.loads(await ws.recv()))
            await ws.send(json.dumps({"output": "1\n"}))
            await ws.send(json.dumps({"type": "done"}))
            await ws.wait_closed()

        async with serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            controller = SessionController(WebSocketConnectionFactory(f"ws://127.0.0.1:{port}/ws/run"))
            controller.start("print(1)", "python")
            await _wait_for(lambda: controller.state.is_terminal)

        assert starts == [{"code": "print(1)", "language": "python"}]
        assert controller.state is SessionState.COMPLETED
        assert controller.text() == "1\n" + EXIT

    @pytest.mark.asyncio
    async def test_interactive_echo(self) -> None:
        async def handler(ws: ServerConnection) -> None:
            await ws.recv()
            await ws.send(json.dumps({"output": "> "}))
            async for key in ws:
                if key == "\n":
                    await ws.send(json.dumps({"output": "\n"}))
                    await ws.send(json.dumps({"type": "done"}))
                    break
                await ws.send(key)  # raw echo, no envelope

        async with serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            controller = SessionController(WebSocketConnectionFactory(f"ws://127.0.0.1:{port}"))
            controller.start("name = input('> ')", "python")
            await _wait_for(lambda: controller.text() == "> ")
            for key in ["h", "x", "Backspace", "i"]:
                assert controller.send_key(key)
            await _wait_for(lambda: controller.text() == "> hi")
            controller.send_key("Enter")
            await _wait_for(lambda: controller.state.is_terminal)

        assert controller.state is SessionState.COMPLETED
        assert controller.text() == "> hi\n" + EXIT

    @pytest.mark.asyncio
    async def test_remote_close_is_implicit_exit(self) -> None:
        async def handler(ws: ServerConnection) -> None:
            await ws.recv()
            await ws.send("bye\n")

        async with serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            controller = SessionController(WebSocketConnectionFactory(f"ws://127.0.0.1:{port}"))
            controller.start("print('bye')", "python")
            await _wait_for(lambda: controller.state.is_terminal)

        assert controller.state is SessionState.COMPLETED
        assert controller.text() == "bye\n" + EXIT

    @pytest.mark.asyncio
    async def test_stop_is_not_overridden_by_close(self) -> None:
        async def handler(ws: ServerConnection) -> None:
            await ws.recv()
            await ws.send(json.dumps({"output": "looping"}))
            async for _ in ws:
                pass

        async with serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            controller = SessionController(WebSocketConnectionFactory(f"ws://127.0.0.1:{port}"))
            controller.start("while True: pass", "python")
            await _wait_for(lambda: controller.text() == "looping")
            connection = controller.session.connection
            assert controller.stop()
            assert connection.is_open is False
            await asyncio.wait_for(connection.wait_closed(), timeout=5.0)

        assert controller.state is SessionState.STOPPED
        assert controller.text() == "looping\n[Stopped by user]\n"

    @pytest.mark.asyncio
    async def test_unreachable_backend(self) -> None:
        async with serve(lambda ws: asyncio.sleep(0), "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
        controller = SessionController(
            WebSocketConnectionFactory(f"ws://127.0.0.1:{port}", open_timeout=2.0)
        )
        controller.start("print(1)", "python")
        await _wait_for(lambda: controller.state.is_terminal)
        assert controller.state is SessionState.ERRORED
        assert "[Connection error: Cannot connect to backend" in controller.text()
