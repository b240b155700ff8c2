"""
runtime.session
===============
Per-connection layer of the intcode server.

Exports:
    SessionState     — lifecycle enum (CONNECTING | OPEN | CLOSED)
    SessionHandle    — lightweight struct stored in the registry
    SessionRegistry  — thread-safe table of all connected peers
    ThreadSession    — one OS thread per connection
"""

from .session_registry import (
    SessionRegistry,
    SessionNotFoundError,
    SessionAlreadyExistsError,
    SessionLimitError,
)
from .thread_session import ThreadSession
from .lifecycle import SessionState, SessionHandle

__all__ = [
    "SessionState", "SessionHandle", "SessionRegistry", "ThreadSession",
    "SessionNotFoundError", "SessionAlreadyExistsError", "SessionLimitError",
]
