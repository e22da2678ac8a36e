"""execterm -- Interactive execution session client.

This package drives a remote sandboxed execution backend over a
WebSocket: it submits source code, forwards keystrokes to the running
process, and maintains a backspace-aware transcript of its output that
a terminal-like view can render.
"""

__version__ = "0.1.0"
