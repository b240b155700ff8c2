"""Intcode ISA — opcode table, instruction geometry and protocol text.

Opcodes:
     1  ADD       mem[mem[at+3]] = mem[mem[at+1]] + mem[mem[at+2]]
     2  MULTIPLY  mem[mem[at+3]] = mem[mem[at+1]] * mem[mem[at+2]]
    99  HALT      stop, return memory
"""

# ── Opcodes ────────────────────────────────────────────────────────────────────
OPCODES: dict[str, int] = {
    "ADD":      1,
    "MULTIPLY": 2,
    "HALT":     99,
}

# Reverse lookup: opcode int → mnemonic string
OPCODE_NAMES: dict[int, str] = {v: k for k, v in OPCODES.items()}

# ── Instruction geometry ───────────────────────────────────────────────────────
# An arithmetic instruction occupies [opcode, op1, op2, dst] and the next
# instruction must start right after it.
OPERAND_SLOTS     = 2
RESULT_SLOT       = 3
INSTRUCTION_WIDTH = 4

# ── Cell values ────────────────────────────────────────────────────────────────
# Cells are unsigned 64-bit: parsing rejects larger items and arithmetic that
# would leave the range is an execution error.
MAX_VALUE     = 2 ** 64 - 1
MAX_DIGITS    = len(str(MAX_VALUE))

# ── Program literal format ─────────────────────────────────────────────────────
LITERAL_OPEN  = "["
LITERAL_CLOSE = "]"
LITERAL_SEP   = ", "

# ── Protocol text ──────────────────────────────────────────────────────────────
CMD_HELP = "help"
CMD_QUIT = "quit"

HELP: tuple[str, ...] = (
    "You can send me an intcode, i.e. a list of integers like '[1, 0, 0, 3, 99]'.",
    "Index 0 is an opcode of the following:",
    "    -  1 - add     : Adds together numbers read from two positions and stores a result in a third position.",
    "    -  2 - multiply: Does the same as 1 but with multiplication.",
    "    - 99 - halt    : Stops the program and sends back the resulting intcode.",
    "Positions are indices into the intcode itself; the next opcode follows four positions later.",
    "Send 'help' to see this text again or 'quit' to close the connection.",
)

ERROR_PREFIX   = "Invalid OpCode: "
COMMAND_PREFIX = "Invalid command: "
BUSY_REPLY     = "Server busy, try again later."


def opcode_name(op: int) -> str:
    return OPCODE_NAMES.get(op, f"UNK({op})")


def greeting(host: str = "127.0.0.1", port: int = 8000) -> str:
    """Banner sent to a peer right after it connects."""
    return "\n".join((
        "Welcome to opcode server!",
        "",
        HELP[0],
        "",
        f"Connected to {host}:{port}; send one intcode per line and I will give you back the modified intcode.",
        "",
        *HELP[1:],
    ))
