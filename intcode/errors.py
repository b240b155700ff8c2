"""
intcode.errors
==============
Error taxonomy shared by the VM and the command protocol.

    IntcodeError
    ├── ExecutionError            decode / step failures (abort a run)
    │   ├── NoOpcodeAtIndex
    │   ├── UnknownOpcode
    │   ├── MissingSlot
    │   │   ├── MissingOperandSlot
    │   │   ├── MissingResultSlot
    │   │   └── MissingNextInstructionSlot
    │   ├── InvalidAddress
    │   │   ├── InvalidOperandIndex
    │   │   └── InvalidResultIndex
    │   ├── ValueOverflow         result above the 64-bit cell range
    │   └── StepLimitExceeded     only with an explicit max_steps
    └── ParseError                inbound text is not a command
        ├── NotASequence
        └── NotAnInteger

Every error keeps the offending positions as attributes so callers (and
tests) can inspect them without parsing the message.
"""

from __future__ import annotations


class IntcodeError(Exception):
    """Base class for every error raised by the intcode package."""


# ─────────────────────────────────────────────────────────────────────────────
# Execution errors
# ─────────────────────────────────────────────────────────────────────────────

class ExecutionError(IntcodeError):
    """Raised when decoding or applying an instruction fails."""


class NoOpcodeAtIndex(ExecutionError):
    """The position to decode lies outside the program."""

    def __init__(self, index: int, length: int) -> None:
        self.index = index
        self.length = length
        super().__init__(f"no opcode at index {index} (program length {length})")


class UnknownOpcode(ExecutionError):
    """The value at the decoded position is not 1, 2 or 99."""

    def __init__(self, value: int, index: int) -> None:
        self.value = value
        self.index = index
        super().__init__(f"unknown opcode {value} at index {index}")


class MissingSlot(ExecutionError):
    slot_kind = "slot"

    def __init__(self, at: int, slot: int, length: int) -> None:
        self.at = at
        self.slot = slot
        self.length = length
        super().__init__(
            f"missing {self.slot_kind} slot {slot} for instruction at {at} "
            f"(program length {length})"
        )


class MissingOperandSlot(MissingSlot):
    slot_kind = "operand"


class MissingResultSlot(MissingSlot):
    slot_kind = "result"


class MissingNextInstructionSlot(MissingSlot):
    slot_kind = "next instruction"


class InvalidAddress(ExecutionError):
    address_kind = "address"

    def __init__(self, at: int, address: int, length: int) -> None:
        self.at = at
        self.address = address
        self.length = length
        super().__init__(
            f"invalid {self.address_kind} index {address} for instruction at {at} "
            f"(program length {length})"
        )


class InvalidOperandIndex(InvalidAddress):
    address_kind = "operand"


class InvalidResultIndex(InvalidAddress):
    address_kind = "result"


class ValueOverflow(ExecutionError):
    """An ADD / MULTIPLY result does not fit in an unsigned 64-bit cell."""

    def __init__(self, at: int, address: int, limit: int) -> None:
        self.at = at
        self.address = address
        self.limit = limit
        super().__init__(
            f"value overflow for instruction at {at}: result for index {address} "
            f"exceeds {limit}"
        )


class StepLimitExceeded(ExecutionError):
    """The run did not halt within the caller's ``max_steps`` budget."""

    def __init__(self, max_steps: int, pc: int) -> None:
        self.max_steps = max_steps
        self.pc = pc
        super().__init__(f"no halt within {max_steps} steps (stopped at index {pc})")


# ─────────────────────────────────────────────────────────────────────────────
# Parse errors
# ─────────────────────────────────────────────────────────────────────────────

class ParseError(IntcodeError):
    """Raised when inbound text is neither a control word nor an intcode."""


class NotASequence(ParseError):
    """The text is not wrapped in ``[`` … ``]``."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"{text!r} does not look like a list of integers")


class NotAnInteger(ParseError):
    """The text looks like a list but one item is not a 64-bit unsigned integer."""

    def __init__(self, token: str, position: int) -> None:
        self.token = token
        self.position = position
        shown = token if len(token) <= 32 else token[:29] + "..."
        super().__init__(
            f"item {position} ({shown!r}) is not a non-negative 64-bit integer"
        )
