"""Domain models for execterm.

This package contains the core data structures, enumerations, and value
objects shared by the codec, the output log, and the session controller.
All models use Pydantic v2 for validation and serialization.
"""

from execterm.domain.models import (
    DoneEvent,
    FrameEvent,
    Language,
    OutputEvent,
    RunRequest,
    SessionState,
)

__all__ = [
    "DoneEvent",
    "FrameEvent",
    "Language",
    "OutputEvent",
    "RunRequest",
    "SessionState",
]
