"""
IL Interpreter: ALU

combine() folds a right operand into the accumulator for the binary
operators. All quantities are 16-bit unsigned:

  AND OR XOR       bitwise
  ADD SUB MUL      wrap modulo 65536
  DIV              truncating; x / 0 per DivZeroPolicy
  GT GE EQ NE LE LT  always exactly 0 or 1

With NEGATE set in the word, op2 is bitwise complemented before the
operation.
"""

import logging
import operator

from .config import DivZeroPolicy
from .errors import DivisionByZero
from .opcodes import Opcode, FLG_NEG, WORD_MASK, base_opcode


log = logging.getLogger(__name__)

_ARITH = {
    Opcode.AND: operator.and_,
    Opcode.OR:  operator.or_,
    Opcode.XOR: operator.xor,
    Opcode.ADD: operator.add,
    Opcode.SUB: operator.sub,
    Opcode.MUL: operator.mul,
}

_RELATIONAL = {
    Opcode.GT: operator.gt,
    Opcode.GE: operator.ge,
    Opcode.EQ: operator.eq,
    Opcode.NE: operator.ne,
    Opcode.LE: operator.le,
    Opcode.LT: operator.lt,
}

SATURATED = WORD_MASK


def divide(op1: int, op2: int, policy: DivZeroPolicy = DivZeroPolicy.ZERO,
           line: int = 0) -> int:
    """Unsigned 16-bit division with an explicit zero-divisor policy."""
    if op2 == 0:
        if policy is DivZeroPolicy.ERROR:
            raise DivisionByZero(line, op1)
        result = SATURATED if policy is DivZeroPolicy.SATURATE else 0
        log.warning("line %d: division by zero (%d / 0) -> %d", line, op1, result)
        return result
    return op1 // op2


def combine(word: int, op1: int, op2: int,
            div_zero: DivZeroPolicy = DivZeroPolicy.ZERO, line: int = 0) -> int:
    """Apply the binary operator in word to (op1, op2).

    Args:
        word: instruction word; only the base opcode and NEGATE are used
        op1: left operand (the accumulator, or the saved accumulator when
             a bracket closes)
        op2: right operand (memory value, immediate, or inner result)
        div_zero: what DIV does with a zero divisor
        line: current program line, for diagnostics

    Returns:
        16-bit result. Opcodes that are not binary operators yield 0.
    """
    op1 &= WORD_MASK
    op2 &= WORD_MASK
    if word & FLG_NEG:
        op2 = ~op2 & WORD_MASK

    op = base_opcode(word)
    if op in _ARITH:
        return _ARITH[op](op1, op2) & WORD_MASK
    if op in _RELATIONAL:
        return int(_RELATIONAL[op](op1, op2))
    if op is Opcode.DIV:
        return divide(op1, op2, div_zero, line)
    return 0
