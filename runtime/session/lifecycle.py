"""
runtime.session.lifecycle
=========================
Shared enums and data types for connection lifecycle management.

These are imported by both session_registry and thread_session to avoid
circular imports.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Optional, Tuple


# ─────────────────────────────────────────────
# Session lifecycle states
# ─────────────────────────────────────────────

class SessionState(Enum):
    """
    State machine for one client connection.

        CONNECTING ──► OPEN ──► CLOSED
    """
    CONNECTING = auto()   # registered, reader thread not started yet
    OPEN       = auto()   # reading messages and sending replies
    CLOSED     = auto()   # peer left, quit/program reply sent, or killed


# ─────────────────────────────────────────────
# Per-session handle (stored in SessionRegistry)
# ─────────────────────────────────────────────

@dataclass
class SessionHandle:
    """
    Lightweight descriptor for one connected peer.

    Fields
    ------
    session_id : str
        UUID hex string handed out by ``SessionRegistry.next_id()``.

    peer : tuple | None
        Remote ``(host, port)`` as returned by ``socket.accept()``.

    sender : Callable[[str], None] | None
        Writes one line to the peer.  Must be safe to call from any thread;
        ``SessionRegistry.send()`` is the only caller.

    thread : threading.Thread | None
        The reader thread serving this peer.

    messages_in, messages_out : int
        Lines received from / sent to the peer.
    """
    session_id   : str
    peer         : Optional[Tuple[str, int]] = None
    state        : SessionState              = SessionState.CONNECTING
    sender       : Optional[Callable[[str], None]] = field(default=None, repr=False)
    thread       : Optional[threading.Thread] = field(default=None, repr=False)
    messages_in  : int                       = 0
    messages_out : int                       = 0
    opened_at    : float                     = field(default_factory=time.monotonic)
    closed_at    : Optional[float]           = None

    # ── convenience ──────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self.state in (SessionState.CONNECTING, SessionState.OPEN)

    @property
    def lifetime_ms(self) -> float:
        """Wall-clock lifetime in milliseconds (up to now, or until close)."""
        end = self.closed_at if self.closed_at else time.monotonic()
        return (end - self.opened_at) * 1_000

    def mark_closed(self) -> None:
        self.state     = SessionState.CLOSED
        self.closed_at = time.monotonic()

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"SessionHandle(id={self.session_id}, state={self.state.name}, "
            f"peer={self.peer}, in={self.messages_in}, out={self.messages_out})"
        )
