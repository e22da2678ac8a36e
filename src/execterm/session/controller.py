"""Session controller: the run/stop state machine.

The controller owns at most one live Session and that session's
connection. It is driven by three synchronous user actions (start,
stop, send_key) and by the four transport events it receives as the
connections' listener. Everything runs on one thread: no method blocks
and none awaits a reply.

State machine::

    idle -> connecting -> running -> completed
                 |           |-----> errored
                 |           '-----> stopped
                 '--> errored / stopped

completed, errored and stopped are dead ends for their Session; a new
start() always builds a fresh one. clear() and select_language() drop
the controller back to idle.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Literal

from execterm.domain.models import DoneEvent, Language, RunRequest, SessionState
from execterm.protocol.codec import MessageCodec
from execterm.session.output_log import OutputLog
from execterm.transport.base import Connection, ConnectionFactory

logger = logging.getLogger(__name__)

DEFAULT_STOPPED_LABEL = "[Stopped by user]"

RestartPolicy = Literal["replace", "ignore"]


class Session:
    """One run attempt: an immutable request plus mutable lifecycle state."""

    def __init__(self, request: RunRequest) -> None:
        self.session_id = uuid.uuid4().hex[:8]
        self.request = request
        self.state = SessionState.IDLE
        self.connection: Connection | None = None

    def __repr__(self) -> str:
        return (
            f"Session(id={self.session_id}, language={self.request.language.value}, "
            f"state={self.state.value})"
        )


StateListener = Callable[[Session], None]


class SessionController:
    """Runs code on the execution backend, one session at a time.

    Args:
        connection_factory: Builds a Connection reporting to a listener.
            The controller never constructs endpoint addresses itself.
        codec: Message codec; defaults to a codec sending ``\\x7f``
            for Backspace.
        output: Output log the consumer renders from.
        restart_policy: What start() does while a session is active.
            "replace" closes the active session first (last start wins),
            "ignore" leaves it running and returns it.
        language: Initially selected language, used by start() when no
            language is given.
        stopped_label: Annotation appended when the user stops a run.
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        codec: MessageCodec | None = None,
        output: OutputLog | None = None,
        restart_policy: RestartPolicy = "replace",
        language: Language | str = Language.PYTHON,
        stopped_label: str = DEFAULT_STOPPED_LABEL,
    ) -> None:
        if restart_policy not in ("replace", "ignore"):
            raise ValueError(f"Unknown restart policy: {restart_policy!r}")
        self._connection_factory = connection_factory
        self._codec = codec or MessageCodec()
        self._output = output if output is not None else OutputLog()
        self._restart_policy = restart_policy
        self._language = Language(language)
        self._stopped_label = stopped_label
        self._session: Session | None = None
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session is not None else SessionState.IDLE

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def language(self) -> Language:
        """The currently selected language."""
        return self._language

    @property
    def output(self) -> OutputLog:
        return self._output

    def text(self) -> str:
        """Snapshot of the output log."""
        return self._output.text()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback invoked after every state transition.

        Returns:
            A function that removes the callback again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start(self, code: str, language: Language | str | None = None) -> Session:
        """Start running ``code`` on the backend.

        Args:
            code: Source code to run.
            language: Language of the code; the selected language if None.

        Returns:
            The new Session, or the active one if the restart policy
            is "ignore" and a run is in flight.

        Raises:
            ValueError: If ``language`` is not a supported language.
        """
        request = RunRequest(
            code=code,
            language=Language(language) if language is not None else self._language,
        )

        current = self._session
        if current is not None and current.state.is_active:
            if self._restart_policy == "ignore":
                logger.info("Session %s still active, ignoring start()", current.session_id)
                return current
            logger.info("Replacing active session %s", current.session_id)
            self._release(current)
            self._transition(current, SessionState.STOPPED)

        self._output.clear()
        session = Session(request)
        self._session = session
        self._transition(session, SessionState.CONNECTING)

        # The connection must be attached before open() in case the
        # transport reports events synchronously.
        session.connection = self._connection_factory(self)
        session.connection.open()
        return session

    def stop(self) -> bool:
        """Cancel the active run immediately.

        Returns:
            True if a run was stopped.
        """
        session = self._session
        if session is None or not session.state.is_active:
            return False
        self._release(session)
        self._output.append_line(self._stopped_label)
        self._transition(session, SessionState.STOPPED)
        return True

    def send_key(self, key: str) -> bool:
        """Forward one key press to the running process.

        Nothing is echoed locally; any echo arrives as backend output.

        Returns:
            True if anything was sent.
        """
        session = self._session
        if session is None or session.state is not SessionState.RUNNING:
            return False
        if session.connection is None:
            return False
        data = self._codec.encode_key(key)
        if data is None:
            logger.debug("Ignoring key %r", key)
            return False
        session.connection.send(data)
        return True

    def clear(self) -> bool:
        """Empty the output log and return to idle.

        Refused while a run is connecting or running.

        Returns:
            True if the log was cleared.
        """
        if self.state.is_active:
            logger.debug("clear() ignored while %s", self.state.value)
            return False
        self._output.clear()
        self._reset()
        return True

    def select_language(self, language: Language | str) -> None:
        """Change the selected language.

        Any residual run is discarded and the output log emptied.
        """
        language = Language(language)
        session = self._session
        if session is not None and session.state.is_active:
            logger.info("Language changed, discarding session %s", session.session_id)
            self._release(session)
            self._transition(session, SessionState.STOPPED)
        self._language = language
        self._output.clear()
        self._reset()

    def dispose(self) -> None:
        """Close any connection and detach all subscribers."""
        session = self._session
        if session is not None:
            self._release(session)
            if session.state.is_active:
                session.state = SessionState.STOPPED
        self._session = None
        self._listeners.clear()
        self._output.unsubscribe_all()

    # ------------------------------------------------------------------
    # Transport events (ConnectionListener)
    # ------------------------------------------------------------------

    def on_open(self, connection: Connection) -> None:
        session = self._owner_of(connection)
        if session is None or session.state is not SessionState.CONNECTING:
            return
        self._transition(session, SessionState.RUNNING)
        connection.send(self._codec.encode_start(session.request.code, session.request.language))

    def on_message(self, connection: Connection, raw: str | bytes) -> None:
        session = self._owner_of(connection)
        if session is None or session.state is not SessionState.RUNNING:
            logger.debug("Dropping frame from inactive connection")
            return
        event = self._codec.decode_frame(raw)
        if event is None:
            return
        if isinstance(event, DoneEvent):
            self._output.append_exit_marker()
            self._release(session)
            self._transition(session, SessionState.COMPLETED)
        else:
            self._output.append(event.text)

    def on_error(self, connection: Connection, error: Exception) -> None:
        session = self._owner_of(connection)
        if session is None or session.state.is_terminal:
            return
        logger.warning("Session %s transport error: %s", session.session_id, error)
        self._release(session)
        self._output.append_line(f"[Connection error: {error}]")
        self._transition(session, SessionState.ERRORED)

    def on_close(self, connection: Connection) -> None:
        session = self._owner_of(connection)
        if session is None:
            # Released already: done, stop, error or a replaced run
            return
        if session.state.is_terminal:
            return
        session.connection = None
        if session.state is SessionState.CONNECTING:
            self._output.append_line("[Connection closed before the run started]")
            self._transition(session, SessionState.ERRORED)
            return
        # Closed without a done frame: the process exited anyway
        self._output.append_exit_marker()
        self._transition(session, SessionState.COMPLETED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _owner_of(self, connection: Connection) -> Session | None:
        session = self._session
        if session is not None and session.connection is connection:
            return session
        return None

    def _release(self, session: Session) -> None:
        """Detach and close the session's connection.

        Detaching first turns any close event the transport delivers
        afterwards, synchronously or not, into a stale one.
        """
        connection = session.connection
        session.connection = None
        if connection is not None:
            connection.close()

    def _reset(self) -> None:
        self._session = None
        logger.debug("Controller idle")

    def _transition(self, session: Session, state: SessionState) -> None:
        previous = session.state
        session.state = state
        logger.info(
            "Session %s: %s -> %s", session.session_id, previous.value, state.value
        )
        for listener in list(self._listeners):
            listener(session)
