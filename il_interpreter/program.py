"""
IL Interpreter: Program Store

Holds the host's program as a list of (mnemonic, operand) lines and
caches each line's parsed instruction word.

Text format, one program line per text line:

    ; comment
    LOAD    10001       ; discrete input 1
    AND_N   10002
    STOR    1
    LOAD_I  0x7F
    JUMP_C  $0A

An operand may be decimal, 0x-hex or $-hex and defaults to 0. A blank
line is an empty program line and executes as a no-op. Trailing blank
lines are dropped.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .errors import ProgramError
from .parser import parse, format_word


COMMENT = ';'
MAX_OPERAND = 0xFFFF


@dataclass(frozen=True)
class ProgramLine:
    mnemonic: str = ''
    operand: int = 0

    @property
    def empty(self) -> bool:
        return not self.mnemonic


def parse_operand(text: str) -> int:
    """Parse an operand that may be hex (0x...), $ prefix, or decimal."""
    text = text.strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    if text.startswith("$"):
        return int(text[1:], 16)
    return int(text)


def parse_line(text: str, line_num: int = 0) -> ProgramLine:
    """Parse one line of program text."""
    code = text.split(COMMENT, 1)[0].strip()
    if not code:
        return ProgramLine()
    parts = code.split()
    if len(parts) > 2:
        raise ProgramError(f"expected 'MNEMONIC [OPERAND]', got {code!r}",
                           line_num, text)
    mnemonic = parts[0]
    if len(parts) == 1:
        return ProgramLine(mnemonic, 0)
    try:
        operand = parse_operand(parts[1])
    except ValueError:
        raise ProgramError(f"bad operand {parts[1]!r}", line_num, text) from None
    if not 0 <= operand <= MAX_OPERAND:
        raise ProgramError(f"operand {operand} out of range 0..{MAX_OPERAND}",
                           line_num, text)
    return ProgramLine(mnemonic, operand)


class Program:
    """Ordered program lines with a per-line parse cache."""

    def __init__(self, lines: Optional[Iterable[ProgramLine]] = None):
        self.lines: List[ProgramLine] = list(lines or [])
        self._words: Dict[int, int] = {}

    @classmethod
    def from_text(cls, text: str) -> 'Program':
        lines = [parse_line(raw, num)
                 for num, raw in enumerate(text.splitlines(), start=1)]
        while lines and lines[-1].empty:
            lines.pop()
        return cls(lines)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'Program':
        return cls.from_text(Path(path).read_text(encoding="utf-8"))

    def __len__(self) -> int:
        return len(self.lines)

    def fetch(self, index: int) -> Optional[ProgramLine]:
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return None

    def word(self, index: int) -> int:
        """Parsed instruction word for a line (cached). Outside the
        program this is a plain NOP and nothing is cached."""
        if index not in self._words:
            line = self.fetch(index)
            if line is None:
                return parse('')
            self._words[index] = parse(line.mnemonic)
        return self._words[index]

    def replace(self, index: int, line: ProgramLine):
        """Edit one line in place, dropping its cached word."""
        self.lines[index] = line
        self._words.pop(index, None)

    def listing(self) -> str:
        """Numbered listing with the decoded form of each mnemonic."""
        out = []
        for i, line in enumerate(self.lines):
            if line.empty:
                out.append(f"{i:3d}")
                continue
            decoded = format_word(self.word(i))
            out.append(f"{i:3d}  {line.mnemonic:<8s} {line.operand:5d}   ({decoded})")
        return '\n'.join(out)
