"""
IL Interpreter: Exceptions

The engine itself never raises on a well-formed call. These are used by
the program loader and by the opt-in ERROR fault policies.
"""


class ILError(Exception):
    """Base class for every error raised by this package."""
    pass


class ProgramError(ILError):
    """Raised when program text cannot be turned into program lines."""
    def __init__(self, message: str, line_num: int = 0, line_text: str = ""):
        self.line_num = line_num
        self.line_text = line_text
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


class ILRuntimeError(ILError):
    """Raised by the engine under a fault policy set to ERROR."""
    def __init__(self, message: str, line: int):
        self.line = line
        super().__init__(f"Runtime error at line {line}: {message}")


class EvalStackOverflow(ILRuntimeError):
    def __init__(self, line: int, depth: int):
        self.depth = depth
        super().__init__(f"bracket nesting exceeds {depth} levels", line)


class DivisionByZero(ILRuntimeError):
    def __init__(self, line: int, dividend: int):
        self.dividend = dividend
        super().__init__(f"division by zero ({dividend} / 0)", line)
