"""
runtime/client.py — interactive line client for the intcode server.

Reads commands from stdin, sends one line per command and prints every
line the server sends back, until the server hangs up.
"""

from __future__ import annotations

import logging
import socket
import sys
import threading
from typing import Optional, TextIO

from intcode.isa import CMD_QUIT

logger = logging.getLogger(__name__)


def connect(host: str = "127.0.0.1", port: int = 8000, *,
            timeout: Optional[float] = None) -> socket.socket:
    sock = socket.create_connection((host, port), timeout=timeout)
    logger.debug("connection to %s:%d established", host, port)
    return sock


def send_line(sock: socket.socket, text: str) -> None:
    sock.sendall((text.rstrip("\r\n") + "\n").encode("utf-8"))


def pump_responses(sock: socket.socket, out: Optional[TextIO] = None) -> int:
    """Copy server lines to ``out`` until the server closes; return the line count."""
    out = out if out is not None else sys.stdout
    count = 0
    try:
        with sock.makefile("r", encoding="utf-8", newline="\n") as reader:
            for line in reader:
                out.write(line if line.endswith("\n") else line + "\n")
                out.flush()
                count += 1
    except OSError as e:
        logger.warning("error receiving message: %s", e)
    return count


def run_client(
    host: str = "127.0.0.1",
    port: int = 8000,
    *,
    inp: Optional[TextIO] = None,
    out: Optional[TextIO] = None,
    prompt: str = "> ",
    timeout: float = 5.0,
) -> int:
    """
    Prompt loop: every non-blank input line is sent as one message.

    ``quit`` is forwarded so the server closes the connection cleanly.
    End of input half-closes the socket; the server then hangs up and any
    replies still in flight are printed before returning.
    """
    inp = inp if inp is not None else sys.stdin
    out = out if out is not None else sys.stdout

    sock = connect(host, port)
    reader = threading.Thread(
        target=pump_responses,
        args=(sock, out),
        name="intcode-client-reader",
        daemon=True,
    )
    reader.start()

    try:
        while reader.is_alive():
            if prompt:
                out.write(prompt)
                out.flush()
            line = inp.readline()
            if not line:
                break
            text = line.strip()
            if not text:
                continue
            try:
                send_line(sock, text)
            except OSError as e:
                logger.debug("error sending message: %s", e)
                break
            if text == CMD_QUIT:
                break

        try:
            sock.shutdown(socket.SHUT_WR)
        except OSError:
            # Server already hung up.
            pass
        reader.join(timeout=timeout)
    finally:
        sock.close()
    return 0
