"""Core domain models for execterm.

These models represent the data flowing through a run: the immutable
request captured when a run starts, the lifecycle state of a session,
and the events decoded from backend frames.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Language(str, enum.Enum):
    """Languages the execution backend accepts."""

    PYTHON = "python"
    JAVASCRIPT = "javascript"
    CPP = "cpp"


class SessionState(str, enum.Enum):
    """Lifecycle state of one execution session."""

    IDLE = "idle"
    CONNECTING = "connecting"  # Connection requested, not yet open
    RUNNING = "running"  # Start envelope sent, process is live
    COMPLETED = "completed"
    ERRORED = "errored"
    STOPPED = "stopped"  # Cancelled by the user

    @property
    def is_active(self) -> bool:
        """Whether a connection is expected to be live in this state."""
        return self in (SessionState.CONNECTING, SessionState.RUNNING)

    @property
    def is_terminal(self) -> bool:
        """Whether this state is a dead end for its session."""
        return self in (SessionState.COMPLETED, SessionState.ERRORED, SessionState.STOPPED)


# ---------------------------------------------------------------------------
# Run request
# ---------------------------------------------------------------------------


class RunRequest(BaseModel):
    """Snapshot of what a session was asked to run.

    Captured once at start time; later edits to the code or language
    selection never reach an in-flight session.
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Source code submitted to the backend")
    language: Language = Field(description="Language the code is written in")
    started_at: datetime = Field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Frame events (discriminated union)
# ---------------------------------------------------------------------------


class OutputEvent(BaseModel):
    """A chunk of combined stdout/stderr text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["output"] = "output"
    text: str = Field(description="Text to append to the output log")


class DoneEvent(BaseModel):
    """The remote process has exited."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["done"] = "done"


FrameEvent = Annotated[
    Union[OutputEvent, DoneEvent],
    Field(discriminator="kind"),
]
