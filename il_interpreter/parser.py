"""
IL Interpreter: Mnemonic Parser

Turns a mnemonic such as ``LOAD_N{`` or ``JUMP_CN`` into an instruction
word (see opcodes.py).

Matching rules:
  - The mnemonic must START with one of the keywords in KEYWORDS. The
    table is ordered and the first prefix match wins, so ``ORX`` is OR.
  - Flag characters are looked for in the text from the first ``_``
    onward. Each one present sets its flag, in any order, any number of
    times. No ``_`` means no flags.
  - Anything that matches no keyword is a NOP carrying whatever flags
    were found, so an empty or unknown line is skipped by the engine.
"""

from typing import Dict, List, Optional, Tuple

from .opcodes import (
    Opcode, FLG_IMM, FLG_NEG, FLG_CND, FLG_PAR, base_opcode,
)


SEPARATOR = '_'

# Ordered (keyword, opcode) table. Order matters for prefix matching.
KEYWORDS: List[Tuple[str, Opcode]] = [
    ('LOAD', Opcode.LOAD),
    ('STOR', Opcode.STOR),
    ('SET',  Opcode.SET),
    ('RST',  Opcode.RST),
    ('AND',  Opcode.AND),
    ('OR',   Opcode.OR),
    ('XOR',  Opcode.XOR),
    ('ADD',  Opcode.ADD),
    ('SUB',  Opcode.SUB),
    ('MUL',  Opcode.MUL),
    ('DIV',  Opcode.DIV),
    ('GT',   Opcode.GT),
    ('GE',   Opcode.GE),
    ('EQ',   Opcode.EQ),
    ('NE',   Opcode.NE),
    ('LE',   Opcode.LE),
    ('LT',   Opcode.LT),
    ('JUMP', Opcode.JMP),
    ('CALL', Opcode.CALL),
    ('RET',  Opcode.RET),
    ('}',    Opcode.CLOSE),
]

# Flag characters in canonical rendering order
FLAG_CHARS: List[Tuple[str, int]] = [
    ('I', FLG_IMM),
    ('C', FLG_CND),
    ('N', FLG_NEG),
    ('{', FLG_PAR),
]

_OPCODE_KEYWORD: Dict[Opcode, str] = {op: kw for kw, op in KEYWORDS}


# ──────────────────────────────────────────────
# Instruction catalogue
# ──────────────────────────────────────────────
# Every spelling offered by the controller's instruction menu. Variants
# not listed here still parse; this is the set editors should offer.

MNEMONICS: List[str] = [
    'LOAD', 'LOAD_N', 'LOAD_I', 'LOAD_{', 'LOAD_N{',
    'STOR', 'STOR_N', 'STOR_{', 'STOR_N{',
    'SET',
    'RST',
    'AND', 'AND_N', 'AND_I', 'AND_{', 'AND_N{',
    'OR', 'OR_N', 'OR_I', 'OR_{', 'OR_N{',
    'XOR', 'XOR_I', 'XOR_{',
    'ADD', 'ADD_I', 'ADD_{',
    'SUB', 'SUB_I', 'SUB_{',
    'MUL', 'MUL_I', 'MUL_{',
    'DIV', 'DIV_I', 'DIV_{',
    'GT', 'GT_I', 'GT_{',
    'GE', 'GE_I', 'GE_{',
    'EQ', 'EQ_I', 'EQ_{',
    'NE', 'NE_I', 'NE_{',
    'LE', 'LE_I', 'LE_{',
    'LT', 'LT_I', 'LT_{',
    'JUMP', 'JUMP_C', 'JUMP_CN',
    'CALL', 'CALL_C', 'CALL_CN',
    'RET', 'RET_C', 'RET_CN',
    '}',
]


def match_keyword(mnemonic: str) -> Opcode:
    """Return the opcode of the first keyword the mnemonic starts with."""
    for keyword, opcode in KEYWORDS:
        if mnemonic.startswith(keyword):
            return opcode
    return Opcode.NOP


def scan_flags(mnemonic: str) -> int:
    """Collect flag bits from the text following the first separator."""
    sep = mnemonic.find(SEPARATOR)
    if sep < 0:
        return 0
    tail = mnemonic[sep:]
    flags = 0
    for char, flag in FLAG_CHARS:
        if char in tail:
            flags |= flag
    return flags


def parse(mnemonic: Optional[str]) -> int:
    """Parse a mnemonic string into an instruction word.

    Never raises: unknown text decodes to NOP (plus any flags present),
    and None or an empty string decodes to a plain NOP.
    """
    if not mnemonic:
        return int(Opcode.NOP)
    return int(match_keyword(mnemonic)) | scan_flags(mnemonic)


def format_word(word: int) -> str:
    """Render an instruction word in its canonical mnemonic spelling.

    parse(format_word(w)) == w for any word made of a known opcode and
    flags. A flagless NOP renders as ``NOP``.
    """
    op = base_opcode(word)
    flags = ''.join(char for char, flag in FLAG_CHARS if word & flag)
    keyword = _OPCODE_KEYWORD.get(op, '')
    if not keyword:
        return f'NOP_{flags}' if flags else 'NOP'
    return f'{keyword}_{flags}' if flags else keyword
