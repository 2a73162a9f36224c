"""
IL Interpreter: Program Runner

Host-side execution control around an Interpreter and a Program. The
interpreter only ever executes one line; the runner decides which line
and when to stop.

A scan runs from the current line until the line index leaves the
program. Controllers repeat scans forever with a fixed delay between
them (run_continuous).

Termination reasons:
  - END:      line index left the program; line reset to 0
  - HALT:     request_halt() was called; line kept for resuming
  - ABORT:    RET with an empty call stack; reset() needed
  - TIMEOUT:  max_steps instructions in one scan (runaway loop)
  - DONE:     run_continuous() completed the requested number of scans
"""

import logging
import time
from collections import deque
from enum import Enum
from typing import Deque, Optional

from .engine import Interpreter
from .program import Program


log = logging.getLogger(__name__)


class StopReason(Enum):
    END = 'END'
    HALT = 'HALT'
    ABORT = 'ABORT'
    TIMEOUT = 'TIMEOUT'
    DONE = 'DONE'


class Runner:
    """Single-step, run-to-end and continuous execution of a Program.

    Usage:
        mem = ModbusMemory()
        runner = Runner(Program.from_file("pump.il"), Interpreter(mem))
        runner.run_to_end()          # one scan
        runner.run_continuous(10)    # ten scans, loop_time apart
    """

    DEFAULT_MAX_STEPS = 100_000
    DEFAULT_TRACE_LIMIT = 5000

    def __init__(self, program: Program, interp: Interpreter,
                 loop_time: float = 0.250,
                 trace_limit: int = DEFAULT_TRACE_LIMIT):
        self.program = program
        self.interp = interp
        self.loop_time = loop_time
        self.line = 0
        self.steps = 0
        self.scans = 0
        self.aborted = False
        self.last_reason: Optional[StopReason] = None
        self._halt = False
        self._trace = False
        # oldest entries drop off once trace_limit lines are held
        self._trace_output: Deque[str] = deque(maxlen=trace_limit)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute the current line.

        Returns END when the line index is (or has just moved) outside
        the program, ABORT on RET with an empty call stack, else None.
        """
        if self.aborted:
            return StopReason.ABORT
        entry = self.program.fetch(self.line)
        if entry is None:
            return StopReason.END

        line = self.line
        outcome = self.interp.execute(self.program.word(line), entry.operand, line)
        self.steps += 1

        if self._trace:
            self._trace_output.append(
                f"L{line:03d}: {entry.mnemonic:8s} {entry.operand:5d}  "
                f"{self.interp.state().display()}"
            )

        if outcome.halted:
            self.line = outcome.as_line()
            self.aborted = True
            log.warning("RET without CALL at line %d, program aborted", line)
            return StopReason.ABORT

        self.line = outcome.line
        if self.program.fetch(self.line) is None:
            return StopReason.END
        return None

    def run_to_end(self, max_steps: Optional[int] = None) -> StopReason:
        """Run the rest of the current scan."""
        self._halt = False
        self.last_reason = self._scan(max_steps)
        return self.last_reason

    def run_continuous(self, scans: Optional[int] = None,
                       max_steps: Optional[int] = None) -> StopReason:
        """Scan repeatedly, sleeping loop_time between scans.

        Args:
            scans: stop with DONE after this many completed scans
                   (None: until halted, aborted or timed out)
            max_steps: per-scan instruction limit
        """
        self._halt = False
        self.last_reason = self._continuous(scans, max_steps)
        return self.last_reason

    def _continuous(self, scans: Optional[int],
                    max_steps: Optional[int]) -> StopReason:
        if not len(self.program):
            return StopReason.END

        done = 0
        while True:
            reason = self._scan(max_steps)
            if reason is not StopReason.END:
                return reason
            if self._halt:
                log.info("halt requested at end of scan %d", self.scans)
                return StopReason.HALT
            done += 1
            if scans is not None and done >= scans:
                return StopReason.DONE
            if self.loop_time > 0:
                time.sleep(self.loop_time)

    def _scan(self, max_steps: Optional[int]) -> StopReason:
        if max_steps is None:
            max_steps = self.DEFAULT_MAX_STEPS

        if self.aborted:
            return StopReason.ABORT

        count = 0
        while self.program.fetch(self.line) is not None:
            if self._halt:
                log.info("halt requested at line %d", self.line)
                return StopReason.HALT
            if count >= max_steps:
                log.warning("scan exceeded %d steps at line %d", max_steps, self.line)
                return StopReason.TIMEOUT
            reason = self.step()
            count += 1
            if reason is StopReason.ABORT:
                return reason

        self.line = 0
        self.scans += 1
        return StopReason.END

    # ══════════════════════════════════════════════
    # Control
    # ══════════════════════════════════════════════

    def request_halt(self):
        """Stop before the next instruction. Safe to call from a memory
        watcher or another thread; the current instruction completes."""
        self._halt = True

    @property
    def halt_requested(self) -> bool:
        return self._halt

    def reset(self):
        """Back to line 0 with a fresh interpreter state."""
        self.interp.init(self.interp.mem)
        self.line = 0
        self.steps = 0
        self.scans = 0
        self.aborted = False
        self._halt = False

    # ══════════════════════════════════════════════
    # Trace
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()
