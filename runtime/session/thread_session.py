"""
runtime.session.thread_session
==============================
One OS thread per connected peer.

Design
------
``ThreadSession`` wraps ``threading.Thread`` and ties it to a
``SessionHandle`` in the ``SessionRegistry``.  It manages the full
lifecycle:

    CONNECTING  →  start()  →  OPEN  →  (peer leaves, reply says hang up, or kill())  →  CLOSED

Key decisions
-------------
*  Threads are daemon threads so they never block interpreter shutdown.
*  Each inbound line is one message; it goes through
   ``intcode.command.classify_and_render`` and every reply line goes back
   through ``SessionRegistry.send``.
*  If the serving loop raises, the thread logs it and still closes and
   deregisters the session (never silently stalls).
*  ``kill()`` shuts the socket down, which wakes a reader blocked in
   ``readline()``; it is idempotent.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Optional, Tuple

from intcode.command import classify_and_render
from intcode.isa import COMMAND_PREFIX

from .lifecycle import SessionHandle, SessionState
from .session_registry import SessionNotFoundError, SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_BYTES = 65_536


class ThreadSession:
    """
    A client connection served by a real OS thread.

    Parameters
    ----------
    conn : socket.socket
        Connected, blocking socket returned by ``accept()``.  The session
        owns it from now on and closes it when done.
    peer : tuple | None
        Remote address, for logging and the handle.
    registry : SessionRegistry | None
        Defaults to the process-wide singleton.
    max_message_bytes : int
        Longest accepted line, newline excluded.  A longer line gets a
        one-line diagnostic and the session closes.
    greeting : str | None
        Sent line by line as soon as the session opens.

    Raises
    ------
    SessionLimitError
        From ``SessionRegistry.register`` when the registry is full.  The
        caller still owns ``conn`` in that case.
    """

    def __init__(
        self,
        conn: socket.socket,
        *,
        peer: Optional[Tuple[str, int]] = None,
        registry: Optional[SessionRegistry] = None,
        max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
        greeting: Optional[str] = None,
    ) -> None:
        if max_message_bytes < 1:
            raise ValueError(f"max_message_bytes must be >= 1, got {max_message_bytes}")
        self._registry = registry if registry is not None else SessionRegistry.get_instance()
        self._conn = conn
        self._max_message_bytes = max_message_bytes
        self._greeting = greeting
        self._write_lock = threading.Lock()

        self._session_id = self._registry.next_id()
        self._handle: SessionHandle = self._registry.register(
            self._session_id,
            peer=peer,
            sender=self._write_line,
        )

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── properties ───────────────────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def handle(self) -> SessionHandle:
        return self._handle

    @property
    def is_stopped(self) -> bool:
        """True once kill() has been called or the serving loop has ended."""
        return self._stop_event.is_set()

    # ── lifecycle ────────────────────────────────────────────────────────────

    def start(self) -> "ThreadSession":
        """
        Spawn the reader thread and transition to OPEN.

        Raises
        ------
        RuntimeError
            If called more than once.
        """
        if self._thread is not None:
            raise RuntimeError(
                f"ThreadSession {self._session_id} has already been started."
            )

        self._thread = threading.Thread(
            target=self._run,
            name=f"intcode-session-{self._session_id[:8]}",
            daemon=True,
        )
        self._handle.thread = self._thread
        self._registry.set_state(self._session_id, SessionState.OPEN)
        self._thread.start()

        logger.debug(
            "Established client connection: session=%s peer=%s",
            self._session_id,
            self._handle.peer,
        )
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the session thread to finish.

        Returns ``True`` if the thread has finished, ``False`` if timed out.
        """
        if self._thread is None:
            raise RuntimeError(
                f"ThreadSession {self._session_id}: start() was never called."
            )
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def kill(self) -> None:
        """Close the connection and wait up to 2 s for the thread to exit."""
        if self._stop_event.is_set():
            return

        logger.debug("kill session=%s", self._session_id)
        self._stop_event.set()
        self._shutdown_socket()

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=2.0)
            if self._thread.is_alive():
                logger.warning(
                    "Session %s thread did not stop within 2 s after kill().",
                    self._session_id,
                )
        elif self._thread is None:
            # Never started: nobody else will release the slot.
            self._finish()

    # ── internal thread target ─────────────────────────────────────────────

    def _run(self) -> None:
        try:
            self._serve()
        except Exception:  # noqa: BLE001
            logger.exception(
                "Uncaught exception in session %s, closing",
                self._session_id,
            )
        finally:
            self._finish()

    def _serve(self) -> None:
        sid = self._session_id
        if self._greeting is not None:
            self._registry.send(sid, self._greeting.splitlines())

        limit = self._max_message_bytes
        with self._conn.makefile("rb") as reader:
            while not self._stop_event.is_set():
                try:
                    raw = reader.readline(limit + 1)
                except OSError as e:
                    logger.debug("error receiving message for %s: %s", sid, e)
                    return
                if not raw:
                    return

                if len(raw) > limit and not raw.endswith(b"\n"):
                    logger.warning("session %s sent a message over %d bytes", sid, limit)
                    self._registry.send(
                        sid, [f"{COMMAND_PREFIX}message longer than {limit} bytes"]
                    )
                    return

                try:
                    text = raw.decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning("session %s sent a message that is not UTF-8", sid)
                    return

                if not text.strip():
                    continue

                self._registry.record_inbound(sid)
                logger.debug("received message from %s: %r", sid, text)
                reply = classify_and_render(text)
                delivered = self._registry.send(sid, reply.lines)
                if reply.terminate or not delivered:
                    return

    def _write_line(self, line: str) -> None:
        data = (line + "\n").encode("utf-8")
        with self._write_lock:
            self._conn.sendall(data)

    def _shutdown_socket(self) -> None:
        try:
            self._conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected.
            pass

    def _finish(self) -> None:
        """Mark the session CLOSED, release the socket and the registry slot."""
        self._stop_event.set()
        self._shutdown_socket()
        self._conn.close()

        sid = self._session_id
        handle = self._registry.get_or_none(sid)
        if handle is not None:
            if handle.is_open:
                self._registry.set_state(sid, SessionState.CLOSED)
            try:
                self._registry.deregister(sid)
            except SessionNotFoundError:
                logger.debug("session %s was already removed from the registry", sid)
        logger.debug(
            "%s disconnected. in=%d out=%d lifetime=%.2f ms",
            sid,
            self._handle.messages_in,
            self._handle.messages_out,
            self._handle.lifetime_ms,
        )

    # ── repr ──────────────────────────────────────────────────────────────────

    def __repr__(self) -> str:  # pragma: no cover
        state = self._handle.state.name
        tid = self._thread.ident if self._thread else None
        return (
            f"ThreadSession(id={self._session_id}, state={state}, "
            f"peer={self._handle.peer}, tid={tid})"
        )
