"""Terminal consumer for an execution session.

Renders the output log to a text stream and forwards raw keyboard input
from the controlling terminal to the session controller. Typed input is
never echoed locally: stdin is switched to cbreak mode (echo off) and
anything the user sees comes back from the backend as output.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
import termios
import tty
from typing import Iterator, TextIO

from execterm.domain.models import Language, SessionState
from execterm.session.controller import Session, SessionController
from execterm.session.output_log import OutputLog

logger = logging.getLogger(__name__)

# Raw terminal input -> logical key names understood by the codec
INPUT_KEYS: dict[str, str] = {
    "\r": "Enter",
    "\n": "Enter",
    "\x7f": "Backspace",
    "\b": "Backspace",
}

INTERRUPT = "\x03"  # Ctrl+C


def render_delta(previous: str, current: str) -> str:
    """Text to write to a terminal showing ``previous`` so it shows ``current``.

    The part of ``previous`` after the common prefix is rubbed out with
    backspace-space-backspace, then the rest of ``current`` is written.
    Rubbing out only works within the cursor's line, which is where
    interactive erasing happens.
    """
    common = len(os.path.commonprefix([previous, current]))
    return "\b \b" * (len(previous) - common) + current[common:]


class TerminalConsole:
    """Drives one SessionController from the process's own terminal."""

    def __init__(
        self,
        controller: SessionController,
        stream: TextIO | None = None,
        stdin: TextIO | None = None,
    ) -> None:
        self._controller = controller
        self._stream = stream or sys.stdout
        self._stdin = stdin or sys.stdin
        self._rendered = ""

    def handle_input(self, data: str) -> None:
        """Forward raw terminal input, one character at a time."""
        for char in data:
            if char == INTERRUPT:
                self._controller.stop()
                continue
            self._controller.send_key(INPUT_KEYS.get(char, char))

    async def run(self, code: str, language: Language | str) -> SessionState:
        """Run ``code`` interactively until the session ends.

        Returns:
            The terminal state the session ended in.
        """
        finished = asyncio.Event()

        def on_state(session: Session) -> None:
            if session.state.is_terminal:
                finished.set()

        self._rendered = self._controller.text()
        unsubscribe_state = self._controller.subscribe(on_state)
        unsubscribe_output = self._controller.output.subscribe(self._render)
        try:
            with self._keyboard(asyncio.get_running_loop()):
                session = self._controller.start(code, language)
                if not session.state.is_terminal:
                    await finished.wait()
        finally:
            unsubscribe_state()
            unsubscribe_output()
        self._stream.write("\n")
        self._stream.flush()
        return session.state

    def _render(self, log: OutputLog) -> None:
        current = log.text()
        delta = render_delta(self._rendered, current)
        self._rendered = current
        if delta:
            self._stream.write(delta)
            self._stream.flush()

    @contextlib.contextmanager
    def _keyboard(self, loop: asyncio.AbstractEventLoop) -> Iterator[None]:
        """Read stdin keystrokes while the session runs, if stdin is a TTY."""
        if not self._stdin.isatty():
            logger.debug("stdin is not a terminal, keyboard input disabled")
            yield
            return

        fd = self._stdin.fileno()
        saved = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        loop.add_reader(fd, self._on_stdin_ready, fd)
        # cbreak keeps ISIG, so Ctrl+C arrives as SIGINT rather than \x03
        loop.add_signal_handler(signal.SIGINT, self._controller.stop)
        try:
            yield
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_reader(fd)
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)

    def _on_stdin_ready(self, fd: int) -> None:
        data = os.read(fd, 1024)
        if not data:
            # EOF on the terminal; stop polling it
            asyncio.get_running_loop().remove_reader(fd)
            return
        self.handle_input(data.decode("utf-8", errors="replace"))
