"""
runtime.session.session_registry
================================
Global, thread-safe table of connected peers.

Design principles
-----------------
*  One process-wide singleton (``SessionRegistry.get_instance()``) with
   explicit instances allowed for servers and tests.
*  Sessions are registered/deregistered under an ``RLock`` so any reader
   thread can safely look up or message any other session.
*  Session IDs are UUID4 hex strings; nothing about a peer is encoded in
   its ID.
*  ``send()`` is the single path for outbound lines, so message counters
   stay consistent and a closed session never receives anything.
*  ``wait_until_empty(timeout)`` lets a shutting-down server block until
   every session has been deregistered, without busy-polling.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .lifecycle import SessionHandle, SessionState

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class SessionNotFoundError(KeyError):
    """Raised when a session_id is not present in the registry."""


class SessionAlreadyExistsError(ValueError):
    """Raised when registering a session_id that is already open."""


class SessionLimitError(RuntimeError):
    """Raised when registering would exceed ``max_sessions`` open sessions."""


# ─────────────────────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────────────────────

class SessionRegistry:
    """
    Table of client sessions keyed by session ID.

    Usage
    -----
    ::

        registry = SessionRegistry(max_sessions=64)

        sid = registry.next_id()
        handle = registry.register(sid, peer=("127.0.0.1", 50512), sender=write_line)
        registry.set_state(sid, SessionState.OPEN)

        registry.send(sid, ["[1, 0, 0, 2, 99]"])

        registry.set_state(sid, SessionState.CLOSED)
        registry.deregister(sid)
    """

    _instance: Optional["SessionRegistry"] = None
    _instance_lock = threading.Lock()

    # ── singleton ────────────────────────────────────────────────────────────

    @classmethod
    def get_instance(cls) -> "SessionRegistry":
        """Return the process-wide singleton, creating it on first call."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """
        Destroy and recreate the singleton.

        **Only for use in tests.**  Closes every registered session and
        resets the registry to a clean state.
        """
        with cls._instance_lock:
            if cls._instance is not None:
                cls._instance._shutdown()
            cls._instance = None

    # ── construction ─────────────────────────────────────────────────────────

    def __init__(self, *, max_sessions: Optional[int] = None) -> None:
        if max_sessions is not None and max_sessions < 1:
            raise ValueError(f"max_sessions must be >= 1, got {max_sessions!r}")
        self.max_sessions = max_sessions
        self._lock: threading.RLock = threading.RLock()
        self._sessions: Dict[str, SessionHandle] = {}
        # Notified whenever a session is deregistered.
        self._removed: threading.Condition = threading.Condition(self._lock)

    # ── ID allocation ─────────────────────────────────────────────────────────

    def next_id(self) -> str:
        """Return a fresh session ID not currently in the table."""
        with self._lock:
            while True:
                candidate = uuid.uuid4().hex
                if candidate not in self._sessions:
                    return candidate

    # ── registration ──────────────────────────────────────────────────────────

    def register(
        self,
        session_id: str,
        *,
        peer: Optional[Tuple[str, int]] = None,
        sender: Optional[Callable[[str], None]] = None,
    ) -> SessionHandle:
        """
        Create and store a new SessionHandle for ``session_id``.

        Returns
        -------
        SessionHandle
            The newly created handle (state = CONNECTING).

        Raises
        ------
        SessionAlreadyExistsError
            If an *open* session with ``session_id`` already exists.
        SessionLimitError
            If ``max_sessions`` sessions are already open.
        """
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is not None and existing.is_open:
                raise SessionAlreadyExistsError(
                    f"Session {session_id} is already open ({existing.state.name})."
                )
            if self.max_sessions is not None and self.open_count() >= self.max_sessions:
                raise SessionLimitError(
                    f"All {self.max_sessions} session slots are in use."
                )
            handle = SessionHandle(session_id=session_id, peer=peer, sender=sender)
            self._sessions[session_id] = handle
            return handle

    def deregister(self, session_id: str) -> None:
        """
        Remove a CLOSED session from the registry.

        Raises ``SessionNotFoundError`` if the ID is not registered and
        ``RuntimeError`` if the session is still open.
        """
        with self._removed:
            handle = self._sessions.get(session_id)
            if handle is None:
                raise SessionNotFoundError(
                    f"Session {session_id} not found in registry."
                )
            if handle.is_open:
                raise RuntimeError(
                    f"Cannot deregister open session {session_id} "
                    f"(state={handle.state.name}). Close it first."
                )
            del self._sessions[session_id]
            self._removed.notify_all()

    # ── lookup ────────────────────────────────────────────────────────────────

    def get(self, session_id: str) -> SessionHandle:
        """
        Return the handle for ``session_id``.

        Raises
        ------
        SessionNotFoundError
        """
        with self._lock:
            handle = self._sessions.get(session_id)
            if handle is None:
                raise SessionNotFoundError(
                    f"Session {session_id} not found in registry."
                )
            return handle

    def get_or_none(self, session_id: str) -> Optional[SessionHandle]:
        """Return the handle or ``None`` if not found."""
        with self._lock:
            return self._sessions.get(session_id)

    # ── state mutation (always under lock) ────────────────────────────────────

    def set_state(self, session_id: str, state: SessionState) -> None:
        with self._lock:
            handle = self._sessions.get(session_id)
            if handle is None:
                raise SessionNotFoundError(session_id)
            if state is SessionState.CLOSED:
                handle.mark_closed()
            else:
                handle.state = state

    def record_inbound(self, session_id: str) -> None:
        with self._lock:
            handle = self._sessions.get(session_id)
            if handle is None:
                raise SessionNotFoundError(session_id)
            handle.messages_in += 1

    # ── outbound messages ─────────────────────────────────────────────────────

    def send(self, session_id: str, lines: Iterable[str]) -> bool:
        """
        Deliver ``lines`` to one session, in order.

        Returns ``False`` (and sends nothing further) if the session is
        unknown, closed, has no sender, or the sender fails.
        """
        with self._lock:
            handle = self._sessions.get(session_id)
            if handle is None or not handle.is_open or handle.sender is None:
                return False
            sender = handle.sender

        # Write outside the table lock: a slow peer must not stall lookups.
        for line in lines:
            logger.debug("sending message to %s: %r", session_id, line)
            try:
                sender(line)
            except OSError as e:
                logger.warning("send to %s failed: %s", session_id, e)
                return False
            with self._lock:
                handle.messages_out += 1
        return True

    # ── shutdown primitive ────────────────────────────────────────────────────

    def wait_until_empty(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no session is registered.

        Returns ``True`` if the table emptied within ``timeout`` seconds.
        """
        deadline = (time.monotonic() + timeout) if timeout is not None else None

        with self._removed:
            while self._sessions:
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                self._removed.wait(timeout=remaining)
            return True

    # ── iteration & stats ─────────────────────────────────────────────────────

    def all_handles(self) -> List[SessionHandle]:
        """Snapshot of all registered handles (open + closed) at call time."""
        with self._lock:
            return list(self._sessions.values())

    def open_handles(self) -> List[SessionHandle]:
        with self._lock:
            return [h for h in self._sessions.values() if h.is_open]

    def count(self) -> int:
        """Total registered sessions (open + closed not yet deregistered)."""
        with self._lock:
            return len(self._sessions)

    def open_count(self) -> int:
        with self._lock:
            return sum(1 for h in self._sessions.values() if h.is_open)

    def __iter__(self) -> Iterator[SessionHandle]:
        return iter(self.all_handles())

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __repr__(self) -> str:  # pragma: no cover
        return f"SessionRegistry(open={self.open_count()}, total={self.count()})"

    # ── internal ──────────────────────────────────────────────────────────────

    def _shutdown(self) -> None:
        """
        Mark every session closed and clear the registry.

        Called only by ``reset()`` during test teardown.  Reader threads
        notice on their next send and exit.
        """
        with self._removed:
            for handle in self._sessions.values():
                if handle.is_open:
                    handle.mark_closed()
            self._sessions.clear()
            self._removed.notify_all()
