"""
IL Interpreter: Opcode and Flag Model

An instruction word is a plain 16-bit integer:

  bits 0-7    base opcode (Opcode below)
  bit 12      FLG_IMM  'I'  operand is the value itself, not an address
  bit 13      FLG_NEG  'N'  negate: invert the operand / flip the gate polarity
  bit 14      FLG_CND  'C'  conditional branch, call or return
  bit 15      FLG_PAR  '{'  open a bracketed sub-expression

The operand (address or immediate value) travels beside the word and is
never packed into it.
"""

import enum


class Opcode(enum.IntEnum):
    NOP   = 0
    LOAD  = 1
    STOR  = 2
    SET   = 3
    RST   = 4
    AND   = 5
    OR    = 6
    XOR   = 7
    ADD   = 8
    SUB   = 9
    MUL   = 10
    DIV   = 11
    GT    = 12
    GE    = 13
    EQ    = 14
    NE    = 15
    LE    = 16
    LT    = 17
    JMP   = 18
    CALL  = 19
    RET   = 20
    CLOSE = 21    # '}'


OPCODE_MASK = 0x00FF

FLG_IMM = 0x1000
FLG_NEG = 0x2000
FLG_CND = 0x4000
FLG_PAR = 0x8000

FLAG_MASK = FLG_IMM | FLG_NEG | FLG_CND | FLG_PAR

WORD_MASK = 0xFFFF

# Operators that take a right operand and fold it into the accumulator
BINARY_OPS = frozenset({
    Opcode.AND, Opcode.OR, Opcode.XOR,
    Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.DIV,
    Opcode.GT, Opcode.GE, Opcode.EQ, Opcode.NE, Opcode.LE, Opcode.LT,
})

RELATIONAL_OPS = frozenset({
    Opcode.GT, Opcode.GE, Opcode.EQ, Opcode.NE, Opcode.LE, Opcode.LT,
})


def make_word(opcode: int, flags: int = 0) -> int:
    """Pack a base opcode and flag bits into an instruction word."""
    return (int(opcode) & OPCODE_MASK) | (flags & FLAG_MASK)


def base_opcode(word: int) -> Opcode:
    """Return the base opcode of a word. Unknown codes read as NOP."""
    code = word & OPCODE_MASK
    try:
        return Opcode(code)
    except ValueError:
        return Opcode.NOP


def gate_passes(word: int, accum: int) -> bool:
    """Accumulator polarity gate used by SET/RST and conditional branches.

    Without NEGATE the accumulator must be non-zero; with NEGATE it must
    be zero.
    """
    if word & FLG_NEG:
        return not accum
    return bool(accum)
