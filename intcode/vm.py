"""Intcode Virtual Machine — decodes and executes an intcode in place.

The whole machine state is one ``list[int]``: the program *is* the memory.
Execution starts at index 0, every arithmetic instruction is four cells
wide and there is no jump, so a run always ends after at most
``len(memory) // 4 + 1`` steps.
"""
from __future__ import annotations
import logging
import operator
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from intcode.isa import OPCODES, OPERAND_SLOTS, RESULT_SLOT, INSTRUCTION_WIDTH, MAX_VALUE, opcode_name
from intcode.errors import (
    NoOpcodeAtIndex, UnknownOpcode,
    MissingOperandSlot, MissingResultSlot, MissingNextInstructionSlot,
    InvalidOperandIndex, InvalidResultIndex, ValueOverflow,
    StepLimitExceeded,
)

logger = logging.getLogger(__name__)


# ── Instructions ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Add:
    """Opcode 1 found at ``at``."""
    at: int

    def __post_init__(self):
        if self.at < 0:
            raise ValueError(f"Instruction position must be >= 0, got {self.at}")


@dataclass(frozen=True)
class Multiply:
    """Opcode 2 found at ``at``."""
    at: int

    def __post_init__(self):
        if self.at < 0:
            raise ValueError(f"Instruction position must be >= 0, got {self.at}")


@dataclass(frozen=True)
class Halt:
    """Opcode 99."""


Instruction = Union[Add, Multiply, Halt]

_ARITHMETIC: Dict[type, Callable[[int, int], int]] = {
    Add:      operator.add,
    Multiply: operator.mul,
}


def _in_bounds(index: int, memory: List[int]) -> bool:
    # Explicit lower bound: a negative index must never reach list indexing.
    return 0 <= index < len(memory)


# ── Decode ────────────────────────────────────────────────────────────────────

def decode(memory: List[int], index: int) -> Instruction:
    """
    Decode the instruction whose opcode sits at ``memory[index]``.

    Raises
    ------
    NoOpcodeAtIndex
        If ``index`` is not a position in ``memory``.
    UnknownOpcode
        If the value there is not 1, 2 or 99.
    """
    if not _in_bounds(index, memory):
        raise NoOpcodeAtIndex(index, len(memory))

    op = memory[index]
    if op == OPCODES["ADD"]:
        return Add(index)
    if op == OPCODES["MULTIPLY"]:
        return Multiply(index)
    if op == OPCODES["HALT"]:
        return Halt()
    raise UnknownOpcode(op, index)


# ── Apply ─────────────────────────────────────────────────────────────────────

def apply(instruction: Instruction, memory: List[int]) -> Optional[int]:
    """
    Execute one instruction against ``memory`` (mutated in place).

    Returns the index of the next instruction, or ``None`` after ``Halt``.

    Slots are checked before addresses, in memory order:
    operands (``at+1``, ``at+2``) → result (``at+3``) → next opcode (``at+4``),
    then the operand addresses, then the result address, then the result
    itself must fit in ``MAX_VALUE``.  Nothing is written unless every
    check passes.
    """
    if isinstance(instruction, Halt):
        return None

    try:
        op = _ARITHMETIC[type(instruction)]
    except KeyError:
        raise TypeError(f"Not an intcode instruction: {instruction!r}") from None

    at = instruction.at
    n  = len(memory)

    for slot in range(at + 1, at + 1 + OPERAND_SLOTS):
        if not _in_bounds(slot, memory):
            raise MissingOperandSlot(at, slot, n)
    if not _in_bounds(at + RESULT_SLOT, memory):
        raise MissingResultSlot(at, at + RESULT_SLOT, n)
    if not _in_bounds(at + INSTRUCTION_WIDTH, memory):
        raise MissingNextInstructionSlot(at, at + INSTRUCTION_WIDTH, n)

    src1, src2, dst = memory[at + 1], memory[at + 2], memory[at + RESULT_SLOT]
    for src in (src1, src2):
        if not _in_bounds(src, memory):
            raise InvalidOperandIndex(at, src, n)
    if not _in_bounds(dst, memory):
        raise InvalidResultIndex(at, dst, n)

    value = op(memory[src1], memory[src2])
    if value > MAX_VALUE:
        raise ValueOverflow(at, dst, MAX_VALUE)

    memory[dst] = value
    return at + INSTRUCTION_WIDTH


# ── VM ────────────────────────────────────────────────────────────────────────

class IntcodeVM:
    """
    Run-to-completion interpreter over one intcode.

    ``memory`` is used as-is (no copy) and is the object ``run()`` returns.
    ``max_steps`` is optional: the instruction set cannot loop, so the
    default is to run until the program halts or fails.
    """

    def __init__(self, memory: List[int], *, max_steps: Optional[int] = None,
                 trace: bool = False):
        for i, val in enumerate(memory):
            if isinstance(val, bool) or not isinstance(val, int) or not 0 <= val <= MAX_VALUE:
                raise ValueError(f"Intcode value at {i} is not a 64-bit unsigned integer: {val!r}")
        if max_steps is not None and max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {max_steps}")

        self.memory    = memory
        self.max_steps = max_steps
        self.trace     = trace
        self.pc        = 0
        self.steps     = 0
        self.halted    = False
        self.log: List[str] = []

    def step(self) -> bool:
        """Execute the instruction at ``pc``; return ``True`` once halted."""
        if self.halted:
            return True

        instr = decode(self.memory, self.pc)
        if self.trace:
            self.log.append(self._describe(instr))
        logger.debug("pc=%d %r", self.pc, instr)

        nxt = apply(instr, self.memory)
        self.steps += 1
        if nxt is None:
            self.halted = True
        else:
            self.pc = nxt
        return self.halted

    def run(self) -> List[int]:
        while not self.step():
            if self.max_steps is not None and self.steps >= self.max_steps:
                raise StepLimitExceeded(self.max_steps, self.pc)
        logger.debug("halted after %d step(s) at pc=%d", self.steps, self.pc)
        return self.memory

    def _describe(self, instr: Instruction) -> str:
        if isinstance(instr, Halt):
            return f"{self.pc:04d}  HALT"
        mem = self.memory
        at  = instr.at
        # Raw cells only; apply() validates them right after.
        args = ", ".join(str(v) for v in mem[at + 1: at + INSTRUCTION_WIDTH])
        name = opcode_name(mem[at])
        return f"{at:04d}  {name:<8s} {args}"


def run(memory: List[int]) -> List[int]:
    """Run ``memory`` to completion and return it (mutated in place)."""
    return IntcodeVM(memory).run()
