"""
IL Interpreter: Evaluation Stack + Call Stack

Both stacks are bounded and fail cleanly: a push onto a full stack
returns False and a pop from an empty stack returns None, leaving the
stack exactly as it was.
"""

from typing import List, NamedTuple, Optional

from .config import DEFAULT_STACK_DEPTH


class EvalFrame(NamedTuple):
    """Context saved by an opening bracket: the operator word and the
    accumulator it will combine with when the bracket closes."""
    word: int
    accum: int


class _BoundedStack:
    """Fixed-capacity LIFO."""

    def __init__(self, capacity: int = DEFAULT_STACK_DEPTH):
        if capacity < 1:
            raise ValueError(f"stack capacity must be >= 1 (got {capacity})")
        self.capacity = capacity
        self._items: list = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def full(self) -> bool:
        return len(self._items) >= self.capacity

    @property
    def empty(self) -> bool:
        return not self._items

    def _push(self, item) -> bool:
        if self.full:
            return False
        self._items.append(item)
        return True

    def _pop(self):
        if not self._items:
            return None
        return self._items.pop()

    def clear(self):
        self._items.clear()


class EvalStack(_BoundedStack):
    """Saved {opcode, accumulator} frames for bracketed sub-expressions."""

    def push(self, word: int, accum: int) -> bool:
        return self._push(EvalFrame(word, accum))

    def pop(self) -> Optional[EvalFrame]:
        return self._pop()

    def frames(self) -> List[EvalFrame]:
        """Frames from bottom to top."""
        return list(self._items)


class CallStack(_BoundedStack):
    """Return line indices for CALL/RET."""

    def push(self, line: int) -> bool:
        return self._push(line)

    def pop(self) -> Optional[int]:
        return self._pop()

    def lines(self) -> List[int]:
        """Return lines from bottom to top."""
        return list(self._items)
