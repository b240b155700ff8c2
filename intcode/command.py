"""
intcode.command
===============
Command protocol: one inbound text line → one ``Reply``.

    text ──classify()──► Help | Quit | Program ──render()──► Reply(lines, terminate)

``classify_and_render()`` is the only call a transport needs; it never
raises for bad input, every failure becomes reply text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple, Union

from intcode.errors import ExecutionError, ParseError
from intcode.isa import CMD_HELP, CMD_QUIT, HELP, ERROR_PREFIX, COMMAND_PREFIX
from intcode.literal import parse_intcode, render_literal
from intcode.vm import run

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Help:
    """Show the instructions."""


@dataclass(frozen=True)
class Quit:
    """Close the connection."""


@dataclass(frozen=True)
class Program:
    """Run an intcode."""
    intcode: List[int]


Command = Union[Help, Quit, Program]


@dataclass(frozen=True)
class Reply:
    """Lines to deliver to the peer, and whether to hang up afterwards."""
    lines: Tuple[str, ...] = ()
    terminate: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Protocol
# ─────────────────────────────────────────────────────────────────────────────

def classify(text: str) -> Command:
    """
    Turn one inbound message into a ``Command``.

    Only the exact words ``help`` and ``quit`` (after trimming) are control
    commands; anything else must be an intcode literal.

    Raises
    ------
    NotASequence, NotAnInteger
        Via ``parse_intcode``.
    """
    message = text.strip()
    if message == CMD_HELP:
        return Help()
    if message == CMD_QUIT:
        return Quit()
    return Program(parse_intcode(message))


def render(command: Command) -> Reply:
    if isinstance(command, Help):
        return Reply(lines=HELP, terminate=False)
    if isinstance(command, Quit):
        return Reply(lines=(), terminate=True)
    if isinstance(command, Program):
        try:
            # The run owns its memory; the command itself stays untouched.
            result = run(list(command.intcode))
        except ExecutionError as e:
            logger.debug("program failed: %s", e)
            return Reply(lines=(f"{ERROR_PREFIX}{e}",), terminate=True)
        return Reply(lines=(render_literal(result),), terminate=True)
    raise TypeError(f"Not a command: {command!r}")


def classify_and_render(text: str) -> Reply:
    try:
        command = classify(text)
    except ParseError as e:
        logger.debug("rejected message %r: %s", text, e)
        return Reply(lines=(f"{COMMAND_PREFIX}{e}",), terminate=True)
    return render(command)
