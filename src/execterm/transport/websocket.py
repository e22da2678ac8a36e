"""WebSocket transport for the execution backend.

Each connection runs as one asyncio task: connect, report open, pump
incoming frames to the listener in arrival order, and finally report
close. Outgoing data goes through a queue drained by a writer task so
``send()`` never blocks and keystrokes keep their order.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from execterm.transport.base import Connection, ConnectionListener, TransportError

logger = logging.getLogger(__name__)


def build_endpoint_url(url: str, token: str | None = None, token_param: str = "token") -> str:
    """Attach an opaque access token to an endpoint URL as a query parameter.

    Existing query parameters are preserved; a previous value of
    ``token_param`` is replaced.
    """
    if not token:
        return url
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != token_param]
    query.append((token_param, token))
    return urlunsplit(parts._replace(query=urlencode(query)))


class WebSocketConnection(Connection):
    """A Connection over a WebSocket, driven by the running event loop."""

    def __init__(
        self,
        url: str,
        listener: ConnectionListener,
        open_timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._listener = listener
        self._open_timeout = open_timeout
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._ws: ClientConnection | None = None
        self._closing = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    def open(self) -> None:
        """Start the connection task on the running event loop."""
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def send(self, data: str) -> None:
        if not self.is_open:
            logger.debug("Dropping %d chars sent on a closed connection", len(data))
            return
        self._outbox.put_nowait(data)

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        # From inside our own task (a listener callback) the read loop
        # notices _closing and exits cleanly instead.
        if self._task is not None and not self._task.done() and self._task is not _current_task():
            self._task.cancel()
        logger.debug("Closing connection to %s", _redact(self._url))

    async def wait_closed(self) -> None:
        """Wait until the connection task has finished."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        try:
            async with connect(self._url, open_timeout=self._open_timeout) as ws:
                if self._closing:
                    return
                self._ws = ws
                logger.info("Connected to %s", _redact(self._url))
                self._listener.on_open(self)
                writer = asyncio.create_task(self._drain_outbox(ws))
                try:
                    if not self._closing:
                        async for message in ws:
                            self._listener.on_message(self, message)
                            if self._closing:
                                break
                except ConnectionClosed as e:
                    logger.info("Connection closed by peer: %s", e)
                finally:
                    writer.cancel()
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning("WebSocket connection to %s failed: %s", _redact(self._url), e)
            self._closing = True
            self._listener.on_error(
                self, TransportError(f"Cannot connect to backend: {e}", url=self._url)
            )
        finally:
            self._closing = True
            self._ws = None
            self._listener.on_close(self)

    async def _drain_outbox(self, ws: ClientConnection) -> None:
        while True:
            data = await self._outbox.get()
            try:
                await ws.send(data)
            except ConnectionClosed:
                logger.debug("Send failed, connection already closed")
                return


class WebSocketConnectionFactory:
    """Builds WebSocketConnections for a configured endpoint.

    The session controller is handed an instance of this class and never
    builds the endpoint address itself.
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        token_param: str = "token",
        open_timeout: float = 10.0,
    ) -> None:
        self._url = build_endpoint_url(url, token, token_param)
        self._open_timeout = open_timeout

    def __call__(self, listener: ConnectionListener) -> WebSocketConnection:
        return WebSocketConnection(self._url, listener, open_timeout=self._open_timeout)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _redact(url: str) -> str:
    """Strip the query string, which may carry the access token."""
    return urlunsplit(urlsplit(url)._replace(query=""))
