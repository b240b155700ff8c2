"""
runtime/server.py — TCP front end for the intcode command protocol.

  peer ──line──▶ ThreadSession ──classify_and_render()──▶ Reply ──lines──▶ peer
                      ▲
  _SessionListener ───┘   (socketserver accept loop, one ThreadSession per connection)

The server owns the listening socket and a SessionRegistry sized by
``ServerConfig.max_sessions``.  Connections beyond that limit get a one-line
busy reply and are closed straight away.
"""

from __future__ import annotations

import logging
import socket
import socketserver
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from intcode.isa import BUSY_REPLY, greeting

from runtime.session import SessionLimitError, SessionRegistry, ThreadSession

logger = logging.getLogger(__name__)


# ── Configuration ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ServerConfig:
    host:              str   = "127.0.0.1"
    port:              int   = 8000      # 0 = pick a free port
    max_sessions:      int   = 64
    max_message_bytes: int   = 65_536
    greet:             bool  = True
    poll_interval:     float = 0.2       # serve_forever() poll; bounds shutdown latency

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be 0-65535, got {self.port}")
        if self.max_sessions < 1:
            raise ValueError(f"max_sessions must be >= 1, got {self.max_sessions}")
        if self.max_message_bytes < 1:
            raise ValueError(f"max_message_bytes must be >= 1, got {self.max_message_bytes}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")


# ── Listener ──────────────────────────────────────────────────────────────────

class _SessionListener(socketserver.TCPServer):
    """
    Accept loop only: every accepted socket is handed to the owning
    ``OpcodeServer``, whose ThreadSession serves and closes it.
    """

    allow_reuse_address = True
    request_queue_size = 64

    def __init__(self, server_address: Tuple[str, int], owner: "OpcodeServer") -> None:
        super().__init__(server_address, socketserver.BaseRequestHandler)
        self.owner = owner

    def process_request(self, request: socket.socket, client_address) -> None:
        # No finish_request / shutdown_request: the session owns the socket now.
        self.owner._handle_connection(request, client_address)


# ── Server ────────────────────────────────────────────────────────────────────

class OpcodeServer:
    """
    Accept loop on a daemon thread plus one ThreadSession per peer.

    ::

        with OpcodeServer(ServerConfig(port=0)) as server:
            host, port = server.address
            ...
    """

    def __init__(self, config: Optional[ServerConfig] = None, *,
                 registry: Optional[SessionRegistry] = None) -> None:
        self.config = config if config is not None else ServerConfig()
        if registry is None:
            registry = SessionRegistry(max_sessions=self.config.max_sessions)
        self._registry = registry
        self._listener: Optional[_SessionListener] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped = False
        self._sessions: Dict[str, ThreadSession] = {}
        self._sessions_lock = threading.Lock()

    # ── properties ───────────────────────────────────────────────────────────

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def address(self) -> Tuple[str, int]:
        """The bound ``(host, port)``; the real port when configured with 0."""
        if self._listener is None:
            raise RuntimeError("OpcodeServer has not been started.")
        host, port = self._listener.server_address[:2]
        return host, port

    @property
    def is_serving(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ── lifecycle ────────────────────────────────────────────────────────────

    def start(self) -> "OpcodeServer":
        if self._thread is not None:
            raise RuntimeError("OpcodeServer has already been started.")

        self._listener = _SessionListener((self.config.host, self.config.port), self)
        self._thread = threading.Thread(
            target=self._listener.serve_forever,
            kwargs={"poll_interval": self.config.poll_interval},
            name="intcode-server",
            daemon=True,
        )
        self._thread.start()
        logger.info("listening on %s:%d", *self.address)
        return self

    def shutdown(self, timeout: float = 2.0) -> None:
        """Stop accepting, close every session and wait for them to leave."""
        if self._stopped:
            return
        self._stopped = True

        if self._listener is not None:
            # The listener thread is already running, so this cannot block forever.
            self._listener.shutdown()
            self._listener.server_close()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

        with self._sessions_lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.kill()

        if not self._registry.wait_until_empty(timeout=timeout):
            logger.warning(
                "%d session(s) still registered after shutdown",
                len(self._registry),
            )
        logger.info("server stopped")

    def serve_forever(self) -> None:
        """Block until interrupted (Ctrl+C), then shut down."""
        if self._thread is None:
            self.start()
        try:
            while self._thread.is_alive():
                self._thread.join(timeout=0.5)
        except KeyboardInterrupt:
            logger.info("interrupted")
        finally:
            self.shutdown()

    def __enter__(self) -> "OpcodeServer":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.shutdown()

    # ── internal ─────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: socket.socket, peer: Tuple[str, int]) -> None:
        self._reap()
        banner = greeting(*self.address) if self.config.greet else None
        try:
            session = ThreadSession(
                conn,
                peer=peer,
                registry=self._registry,
                max_message_bytes=self.config.max_message_bytes,
                greeting=banner,
            )
        except SessionLimitError:
            logger.warning(
                "refusing %s: %d session(s) already open",
                peer, self._registry.open_count(),
            )
            self._refuse(conn)
            return

        with self._sessions_lock:
            self._sessions[session.session_id] = session
        session.start()

    @staticmethod
    def _refuse(conn: socket.socket) -> None:
        try:
            conn.sendall((BUSY_REPLY + "\n").encode("utf-8"))
        except OSError as e:
            logger.debug("could not send busy reply: %s", e)
        finally:
            conn.close()

    def _reap(self) -> None:
        """Drop finished sessions from the local table."""
        with self._sessions_lock:
            done = [sid for sid, s in self._sessions.items() if s.is_stopped]
            for sid in done:
                del self._sessions[sid]
