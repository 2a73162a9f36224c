"""
IL Interpreter: Configuration

InterpreterConfig holds the per-instance knobs of the engine (stack
depths and fault policies). HOST_PROFILES describes the controller
hosts the runner and CLI know about.
"""

import enum
from dataclasses import dataclass


DEFAULT_STACK_DEPTH = 20


class DivZeroPolicy(enum.Enum):
    ZERO = 'zero'           # x / 0 -> 0
    SATURATE = 'saturate'   # x / 0 -> 0xFFFF
    ERROR = 'error'         # raise DivisionByZero


class EvalOverflowPolicy(enum.Enum):
    IGNORE = 'ignore'       # refuse the push, log it, carry on
    ERROR = 'error'         # refuse the push and raise EvalStackOverflow


@dataclass
class InterpreterConfig:
    """Engine settings. Defaults match the field controllers."""
    eval_depth: int = DEFAULT_STACK_DEPTH
    call_depth: int = DEFAULT_STACK_DEPTH
    div_zero: DivZeroPolicy = DivZeroPolicy.ZERO
    eval_overflow: EvalOverflowPolicy = EvalOverflowPolicy.IGNORE

    def __post_init__(self):
        if self.eval_depth < 1:
            raise ValueError(f"eval_depth must be >= 1 (got {self.eval_depth})")
        if self.call_depth < 1:
            raise ValueError(f"call_depth must be >= 1 (got {self.call_depth})")
        self.div_zero = DivZeroPolicy(self.div_zero)
        self.eval_overflow = EvalOverflowPolicy(self.eval_overflow)


# ──────────────────────────────────────────────
# Host profiles
# ──────────────────────────────────────────────
# bank_size:  registers per memory bank (addresses x0001..x<bank_size>)
# max_lines:  program length the host editor allows
# loop_time:  seconds between scans in continuous mode

HOST_PROFILES = {
    "demo": {
        "bank_size": 26,
        "max_lines": 31,
        "loop_time": 0.250,
        "description": "Desktop demo host - 26 registers per bank, 31 lines",
    },
    "io_plus": {
        "bank_size": 9999,
        "max_lines": 255,
        "loop_time": 0.250,
        "description": "Telemetry module - full Modbus bank range",
    },
    "bench": {
        "bank_size": 100,
        "max_lines": 1000,
        "loop_time": 0.0,
        "description": "Bench testing - no delay between scans",
    },
}

DEFAULT_PROFILE = "demo"
