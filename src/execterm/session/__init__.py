"""Interactive execution session module for execterm.

Public API:
    SessionController -- Run/stop state machine owning the connection
    Session -- One run attempt
    OutputLog -- Backspace-aware transcript the consumer renders
"""

from execterm.session.controller import Session, SessionController
from execterm.session.output_log import OutputLog

__all__ = ["OutputLog", "Session", "SessionController"]
