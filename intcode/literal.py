"""Intcode literal reader/writer — ``"[1, 0, 0, 3, 99]"`` ⇄ ``[1, 0, 0, 3, 99]``."""
from __future__ import annotations
import re
from typing import Iterable, List

from intcode.errors import NotASequence, NotAnInteger
from intcode.isa import LITERAL_OPEN, LITERAL_CLOSE, LITERAL_SEP, MAX_VALUE, MAX_DIGITS

# ASCII digits only: int() alone would also take "+5", "1_0" and "٣".
_INT_RE = re.compile(r"[0-9]+")


def parse_intcode(text: str) -> List[int]:
    """
    Parse a bracketed, comma separated list of non-negative integers.

    Whitespace around the brackets and around each item is ignored, so the
    compact ``[1,0,99]`` and the rendered ``[1, 0, 99]`` forms both parse.
    ``[]`` is the empty intcode.

    Raises
    ------
    NotASequence
        If the text is not wrapped in ``[`` … ``]``.
    NotAnInteger
        If any item is not a plain decimal integer in ``0 .. MAX_VALUE``.
    """
    body = text.strip()
    if not (body.startswith(LITERAL_OPEN) and body.endswith(LITERAL_CLOSE)):
        raise NotASequence(text)
    inner = body[1:-1]
    if not inner.strip():
        return []

    ints: List[int] = []
    for pos, raw in enumerate(inner.split(",")):
        tok = raw.strip()
        # Bound the digit count before int(): long strings are slow or refused.
        if not _INT_RE.fullmatch(tok) or len(tok.lstrip("0")) > MAX_DIGITS:
            raise NotAnInteger(tok, pos)
        value = int(tok.lstrip("0") or "0")
        if value > MAX_VALUE:
            raise NotAnInteger(tok, pos)
        ints.append(value)
    return ints


def render_literal(intcode: Iterable[int]) -> str:
    return LITERAL_OPEN + LITERAL_SEP.join(str(v) for v in intcode) + LITERAL_CLOSE
