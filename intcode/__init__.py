"""Intcode: a three-opcode integer-list interpreter and its text command protocol."""

from .errors import (
    IntcodeError, ExecutionError, ParseError,
    NoOpcodeAtIndex, UnknownOpcode,
    MissingSlot, MissingOperandSlot, MissingResultSlot, MissingNextInstructionSlot,
    InvalidAddress, InvalidOperandIndex, InvalidResultIndex,
    ValueOverflow, StepLimitExceeded,
    NotASequence, NotAnInteger,
)
from .vm import Add, Multiply, Halt, Instruction, IntcodeVM, decode, apply, run
from .literal import parse_intcode, render_literal
from .command import (
    Help, Quit, Program, Command, Reply,
    classify, render, classify_and_render,
)

__version__ = "0.1.0"
