"""Wire protocol for the execution backend.

Public API:
    MessageCodec -- Encodes start/keystroke messages, decodes frames
"""

from execterm.protocol.codec import BACKSPACE_CODES, MessageCodec

__all__ = ["BACKSPACE_CODES", "MessageCodec"]
