"""
IL Interpreter
==============
A per-instruction interpreter for Instruction List (IL) control programs,
the accumulator language used by programmable telemetry controllers.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌─────────────┐    ┌─────────────┐
    │ Program  │───>│  Parser  │───>│ Interpreter │<──>│ Memory Port │
    │ (lines)  │    │ (words)  │    │ (1 line per │    │ (get / set) │
    └──────────┘    └──────────┘    │   execute)  │    └─────────────┘
          ^                         └─────────────┘
          └───────────── Runner (step / scan / continuous) ──┘

    - opcodes.py:  opcode enumeration, flag bits, polarity gate
    - parser.py:   mnemonic text -> instruction word
    - alu.py:      16-bit combine() and the divide-by-zero policy
    - stacks.py:   bounded evaluation and call stacks
    - engine.py:   Interpreter, Outcome
    - memory.py:   MemoryPort protocol, callback adapter, Modbus image
    - program.py:  program lines and text loader
    - runner.py:   host execution loop
"""

__version__ = "1.0.0"

from .config import (
    InterpreterConfig, DivZeroPolicy, EvalOverflowPolicy, HOST_PROFILES,
)
from .errors import (
    ILError, ProgramError, ILRuntimeError, EvalStackOverflow, DivisionByZero,
)
from .opcodes import Opcode, FLG_IMM, FLG_NEG, FLG_CND, FLG_PAR, make_word
from .parser import parse, format_word, MNEMONICS
from .alu import combine
from .stacks import EvalStack, CallStack, EvalFrame
from .memory import MemoryPort, CallbackMemory, ModbusMemory
from .engine import Interpreter, Outcome, OutcomeKind, NO_RETURN_LINE
from .program import Program, ProgramLine
from .runner import Runner, StopReason


def run_source(source: str, memory=None, *, scans: int = 1,
               config: InterpreterConfig = None,
               max_steps: int = None) -> Runner:
    """Load IL program text and run it for a number of scans.

    Full pipeline: Program.from_text -> Interpreter -> Runner.

    Args:
        source: program text (see program.py for the format).
        memory: MemoryPort to run against (default: a fresh ModbusMemory).
        scans: number of complete scans, run back to back.
        config: engine settings (default InterpreterConfig()).
        max_steps: per-scan instruction limit.

    Returns:
        The Runner, for inspecting stop state, interpreter and memory.
        runner.last_reason holds the StopReason.
    """
    if memory is None:
        memory = ModbusMemory()
    runner = Runner(Program.from_text(source), Interpreter(memory, config),
                    loop_time=0.0)
    runner.run_continuous(scans=scans, max_steps=max_steps)
    return runner
