"""Message codec for the execution backend protocol.

Outgoing traffic is one JSON start envelope followed by raw keystroke
characters. Incoming frames are either JSON envelopes (``{"output": ...}``
or ``{"type": "done"}``) or plain text, which is treated as output so
that a backend emitting unstructured frames loses nothing.
"""

from __future__ import annotations

import json
import logging

from execterm.domain.models import DoneEvent, FrameEvent, Language, OutputEvent

logger = logging.getLogger(__name__)

# Control bytes that erase one character, in either direction
BACKSPACE_CODES: frozenset[str] = frozenset({"\b", "\x7f"})

KEY_MAP: dict[str, str] = {
    "Enter": "\n",
}


class MessageCodec:
    """Translates between session events and wire text.

    Args:
        backspace_code: Control byte sent for the Backspace key. Backends
            disagree on ``\\x7f`` versus ``\\b``, so this is configurable.
    """

    def __init__(self, backspace_code: str = "\x7f") -> None:
        if backspace_code not in BACKSPACE_CODES:
            raise ValueError(f"Unsupported backspace code: {backspace_code!r}")
        self._backspace_code = backspace_code

    @property
    def backspace_code(self) -> str:
        return self._backspace_code

    def encode_start(self, code: str, language: Language | str) -> str:
        """Build the envelope that starts a run."""
        return json.dumps({"code": code, "language": Language(language).value})

    def encode_key(self, key: str) -> str | None:
        """Map a logical key name to its wire token.

        Returns None for keys that produce no traffic, such as
        modifier-only presses ('Shift', 'Control') or other named keys.
        """
        if key == "Backspace":
            return self._backspace_code
        if key in KEY_MAP:
            return KEY_MAP[key]
        if len(key) == 1:
            return key
        return None

    def decode_frame(self, raw: str | bytes) -> FrameEvent | None:
        """Decode one incoming frame."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        try:
            message = json.loads(raw)
        except ValueError:
            return OutputEvent(text=raw)

        if not isinstance(message, dict):
            # Valid JSON but not an envelope, e.g. a program printing "42"
            return OutputEvent(text=raw)

        if message.get("type") == "done":
            return DoneEvent()
        if "output" in message:
            output = message["output"]
            return OutputEvent(text=output if isinstance(output, str) else str(output))

        logger.debug("Ignoring envelope without output: %s", raw[:80])
        return None
