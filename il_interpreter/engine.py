"""
IL Interpreter: Execution Engine

An Interpreter owns one accumulator, one evaluation stack, one call
stack and a bound MemoryPort. Each execute() call runs exactly one
instruction and says where to go next:

    interp = Interpreter(ModbusMemory())
    word = parse("LOAD_I")
    outcome = interp.execute(word, 42, line=0)
    outcome.line        # 1
    interp.accumulator  # 42

The engine never looks at the program itself; line indices are opaque
16-bit values owned by the host.

Bracket model:
  ``OP_{ x`` saves {OP, accumulator} on the evaluation stack and loads
  the right operand (LOAD_{ / STOR_{ load x itself, as an address
  expression). Following lines compute into the accumulator. ``}``
  pops the frame and applies OP with the saved accumulator on the left
  and the inner result on the right; LOAD_{ / STOR_{ use the inner
  result as the address to read or write.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from . import alu
from .config import InterpreterConfig, EvalOverflowPolicy
from .errors import DivisionByZero, EvalStackOverflow
from .memory import MemoryPort
from .opcodes import (
    Opcode, BINARY_OPS, FLG_IMM, FLG_NEG, FLG_CND, FLG_PAR, WORD_MASK,
    base_opcode, gate_passes,
)
from .parser import format_word
from .stacks import CallStack, EvalStack, EvalFrame


log = logging.getLogger(__name__)

# Legacy encoding of "no return address": the line value older hosts
# receive when RET finds the call stack empty.
NO_RETURN_LINE = 0xFFFF


class OutcomeKind(enum.Enum):
    CONTINUE = 'CONTINUE'
    HALT = 'HALT'


@dataclass(frozen=True)
class Outcome:
    """Result of one execute() call."""
    kind: OutcomeKind
    line: int = NO_RETURN_LINE

    @classmethod
    def continue_at(cls, line: int) -> 'Outcome':
        return cls(OutcomeKind.CONTINUE, line & WORD_MASK)

    @classmethod
    def halt(cls) -> 'Outcome':
        return cls(OutcomeKind.HALT)

    @property
    def halted(self) -> bool:
        return self.kind is OutcomeKind.HALT

    def as_line(self) -> int:
        """Next line as a raw 16-bit value (HALT -> NO_RETURN_LINE)."""
        return NO_RETURN_LINE if self.halted else self.line


@dataclass(frozen=True)
class InterpreterState:
    """Read-only snapshot for display and debugging."""
    accumulator: int
    eval_frames: Tuple[EvalFrame, ...]
    call_lines: Tuple[int, ...]

    def display(self) -> str:
        evals = ' '.join(f"{format_word(f.word)}:{f.accum}" for f in self.eval_frames)
        calls = ' '.join(str(n) for n in self.call_lines)
        return (f"ACC={self.accumulator:04X} ({self.accumulator}) "
                f"EVAL=[{evals}] CALL=[{calls}]")


class Interpreter:
    """Accumulator machine executing one IL instruction per call.

    Not thread-safe: every call mutates instance state, so concurrent
    use of one instance needs external locking.
    """

    def __init__(self, memory: MemoryPort,
                 config: Optional[InterpreterConfig] = None):
        self.config = config or InterpreterConfig()
        self._eval = EvalStack(self.config.eval_depth)
        self._calls = CallStack(self.config.call_depth)
        self._dispatch = self._build_dispatch()
        self.init(memory)

    # ══════════════════════════════════════════════
    # Lifecycle
    # ══════════════════════════════════════════════

    def init(self, memory: MemoryPort):
        """Bind a memory port and reset accumulator and both stacks."""
        self.mem = memory
        self._accum = 0
        self._eval.clear()
        self._calls.clear()

    @property
    def accumulator(self) -> int:
        return self._accum

    @property
    def eval_depth(self) -> int:
        return len(self._eval)

    @property
    def call_depth(self) -> int:
        return len(self._calls)

    def state(self) -> InterpreterState:
        return InterpreterState(
            accumulator=self._accum,
            eval_frames=tuple(self._eval.frames()),
            call_lines=tuple(self._calls.lines()),
        )

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def execute(self, word: int, operand: int, line: int) -> Outcome:
        """Execute one instruction.

        Args:
            word: instruction word from parser.parse()
            operand: the line's address or immediate value
            line: index of the line being executed

        Returns:
            Outcome.continue_at(next_line), or Outcome.halt() when RET
            finds no return address.

        Raises:
            ILRuntimeError: only when a fault policy is set to ERROR.
        """
        word &= WORD_MASK
        operand &= WORD_MASK
        line &= WORD_MASK
        op = base_opcode(word)

        handler = self._dispatch.get(op, self._op_nop)
        outcome = handler(word, operand, line)

        if log.isEnabledFor(logging.DEBUG):
            log.debug("L%03d %-8s %5d -> %s ACC=%04X",
                      line, format_word(word), operand,
                      'HALT' if outcome.halted else f"L{outcome.line:03d}",
                      self._accum)
        return outcome

    def _build_dispatch(self) -> Dict[Opcode, Callable]:
        table = {
            Opcode.NOP:   self._op_nop,
            Opcode.LOAD:  self._op_load,
            Opcode.STOR:  self._op_stor,
            Opcode.SET:   self._op_set,
            Opcode.RST:   self._op_rst,
            Opcode.JMP:   self._op_jmp,
            Opcode.CALL:  self._op_call,
            Opcode.RET:   self._op_ret,
            Opcode.CLOSE: self._op_close,
        }
        for op in BINARY_OPS:
            table[op] = self._op_binary
        return table

    def _next(self, line: int) -> Outcome:
        return Outcome.continue_at(line + 1)

    def _open_bracket(self, word: int, line: int) -> bool:
        """Save {word, accumulator}. False if the stack is full."""
        if self._eval.push(word, self._accum):
            return True
        if self.config.eval_overflow is EvalOverflowPolicy.ERROR:
            raise EvalStackOverflow(line, self._eval.capacity)
        log.warning("line %d: bracket nesting exceeds %d levels, %s ignored",
                    line, self._eval.capacity, format_word(word))
        return False

    # ── Handlers ──

    def _op_nop(self, word, operand, line):
        return self._next(line)

    def _op_set(self, word, operand, line):
        if gate_passes(word, self._accum):
            self.mem.set(operand, 1, False)
        return self._next(line)

    def _op_rst(self, word, operand, line):
        if gate_passes(word, self._accum):
            self.mem.set(operand, 0, False)
        return self._next(line)

    def _branch_taken(self, word) -> bool:
        if not word & FLG_CND:
            return True
        return gate_passes(word, self._accum)

    def _op_jmp(self, word, operand, line):
        if self._branch_taken(word):
            return Outcome.continue_at(operand)
        return self._next(line)

    def _op_call(self, word, operand, line):
        if not self._branch_taken(word):
            return self._next(line)
        if self._calls.push((line + 1) & WORD_MASK):
            return Outcome.continue_at(operand)
        log.warning("line %d: call stack full (%d), CALL %d not taken",
                    line, self._calls.capacity, operand)
        return self._next(line)

    def _op_ret(self, word, operand, line):
        if not self._branch_taken(word):
            return self._next(line)
        ret = self._calls.pop()
        if ret is None:
            log.info("line %d: RET with empty call stack, halting", line)
            return Outcome.halt()
        return Outcome.continue_at(ret)

    def _op_load(self, word, operand, line):
        if word & FLG_PAR:
            if self._open_bracket(word, line):
                self._accum = operand
        elif word & FLG_IMM:
            self._accum = operand
        else:
            self._accum = self.mem.get(operand, bool(word & FLG_NEG)) & WORD_MASK
        return self._next(line)

    def _op_stor(self, word, operand, line):
        if word & FLG_PAR:
            if self._open_bracket(word, line):
                self._accum = operand
        else:
            self.mem.set(operand, self._accum, bool(word & FLG_NEG))
        return self._next(line)

    def _op_binary(self, word, operand, line):
        if word & FLG_IMM:
            value = operand
        else:
            value = self.mem.get(operand, False) & WORD_MASK
        if word & FLG_PAR:
            if self._open_bracket(word, line):
                self._accum = value
        else:
            self._accum = alu.combine(word, self._accum, value,
                                      self.config.div_zero, line)
        return self._next(line)

    def _op_close(self, word, operand, line):
        frame = self._eval.pop()
        if frame is None:
            log.debug("line %d: '}' with no open bracket ignored", line)
            return self._next(line)

        saved = base_opcode(frame.word)
        invert = bool(frame.word & FLG_NEG)
        if saved is Opcode.LOAD:
            self._accum = self.mem.get(self._accum, invert) & WORD_MASK
        elif saved is Opcode.STOR:
            self.mem.set(self._accum, frame.accum, invert)
        else:
            try:
                self._accum = alu.combine(frame.word, frame.accum, self._accum,
                                          self.config.div_zero, line)
            except DivisionByZero:
                # leave the frame in place so the failed line can be inspected
                self._eval.push(frame.word, frame.accum)
                raise
        return self._next(line)
