"""Backspace-aware transcript of a run's terminal output.

The log is the single source of truth for what a view renders: backend
output, completion and stop annotations, and transport diagnostics all
land here. Erase control codes are applied to every chunk, because the
remote side may emit them itself (line editing in the backend process),
not only in response to local keystrokes.
"""

from __future__ import annotations

import logging
from typing import Callable

from execterm.protocol.codec import BACKSPACE_CODES

logger = logging.getLogger(__name__)

DEFAULT_EXIT_LABEL = "[Process exited]"

OutputListener = Callable[["OutputLog"], None]


class OutputLog:
    """Append-only character buffer with backspace semantics.

    Example usage::

        log = OutputLog()
        log.append("abc\\b")
        log.text()  # -> "ab"
    """

    def __init__(self, exit_label: str = DEFAULT_EXIT_LABEL) -> None:
        self._exit_label = exit_label
        self._buffer: list[str] = []
        self._listeners: list[OutputListener] = []
        # True only while the last change was a real exit marker
        self._marker_at_tail = False

    @property
    def exit_marker(self) -> str:
        """The annotation appended once the remote process has exited."""
        return "\n\n" + self._exit_label

    def text(self) -> str:
        return "".join(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def append(self, chunk: str) -> None:
        """Apply a chunk of backend output.

        Literal exit-label text is stripped so that a sentinel embedded in
        normal output cannot fake a completion annotation, including one
        split across several chunks.
        """
        chunk = chunk.replace(self._exit_label, "")
        if not chunk:
            return
        low = len(self._buffer)
        for char in chunk:
            if char in BACKSPACE_CODES:
                if self._buffer:
                    self._buffer.pop()
                    low = min(low, len(self._buffer))
            else:
                self._buffer.append(char)
        self._strip_label(since=low)
        self._marker_at_tail = False
        self._notify()

    def append_line(self, text: str) -> None:
        """Append an annotation on a line of its own, taken verbatim."""
        prefix = "\n" if self._buffer and self._buffer[-1] != "\n" else ""
        self._buffer.extend(prefix + text + "\n")
        self._marker_at_tail = False
        self._notify()

    def append_exit_marker(self) -> bool:
        """Append the exit marker unless it was the last thing appended.

        Returns:
            True if the marker was appended.
        """
        if self._marker_at_tail:
            logger.debug("Exit marker already present, not appending")
            return False
        self._buffer.extend(self.exit_marker)
        self._marker_at_tail = True
        self._notify()
        return True

    def clear(self) -> None:
        self._buffer.clear()
        self._marker_at_tail = False
        self._notify()

    def subscribe(self, listener: OutputListener) -> Callable[[], None]:
        """Register a callback invoked after every change.

        Returns:
            A function that removes the callback again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def unsubscribe_all(self) -> None:
        self._listeners.clear()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _strip_label(self, since: int) -> None:
        """Remove label text that the characters from ``since`` completed."""
        label = self._exit_label
        start = max(0, since - len(label) + 1)
        tail = "".join(self._buffer[start:])
        if label not in tail:
            return
        while label in tail:
            tail = tail.replace(label, "")
        self._buffer[start:] = tail
