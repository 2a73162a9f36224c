"""
IL Interpreter: Memory Port + Reference Modbus Memory Image

The engine reaches process memory only through a MemoryPort:

  get(address, invert) -> int
      0 for an invalid address. Bit registers read as 0/1 (logically
      negated when invert is set); word registers read as their 16-bit
      value (bitwise complemented when invert is set).
  set(address, value, invert)
      Ignored for an invalid address. Bit registers store bool(value)
      (or its negation); word registers store the value (or its
      complement).

ModbusMemory is the reference image used by the controller hosts:

  0xxxx  discrete bank 0      1xxxx  discrete bank 1
  3xxxx  word bank 0          4xxxx  word bank 1

  bank   = address // 10000
  offset = address % 10000 - 1    valid for 0 <= offset < bank_size

Address x0000, any other bank digit, or an offset past bank_size is
invalid. Reads return 0 and writes are dropped (matches the hardware).
"""

import logging
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from .opcodes import WORD_MASK


log = logging.getLogger(__name__)

BANK_SPAN = 10000
DEFAULT_BANK_SIZE = 26

BIT_BANKS = (0, 1)
WORD_BANKS = (3, 4)


class MemoryPort(Protocol):
    """Capability the interpreter uses for every memory access."""

    def get(self, address: int, invert: bool) -> int: ...

    def set(self, address: int, value: int, invert: bool) -> None: ...


class CallbackMemory:
    """Adapt a plain (get, set) callback pair to a MemoryPort.

    Lets a host hand over two functions instead of writing a class:

        port = CallbackMemory(my_get, my_set)
    """

    def __init__(self, get: Callable[[int, bool], int],
                 set: Callable[[int, int, bool], None]):
        self._get = get
        self._set = set

    def get(self, address: int, invert: bool) -> int:
        return self._get(address & WORD_MASK, bool(invert)) & WORD_MASK

    def set(self, address: int, value: int, invert: bool) -> None:
        self._set(address & WORD_MASK, value & WORD_MASK, bool(invert))


class ModbusMemory:
    """Two discrete banks and two word banks behind Modbus-style addresses.

    Change watchers fire on every write that changes a stored value:
    callback(address, old, new).
    """

    def __init__(self, bank_size: int = DEFAULT_BANK_SIZE):
        if not 0 < bank_size < BANK_SPAN:
            raise ValueError(f"bank_size must be 1..{BANK_SPAN - 1} (got {bank_size})")
        self.bank_size = bank_size
        self._bits: List[List[int]] = [[0] * bank_size for _ in BIT_BANKS]
        self._words: List[List[int]] = [[0] * bank_size for _ in WORD_BANKS]
        self._watchers: Dict[int, List[Callable]] = {}

    # --- Address decoding ---

    def decode(self, address: int) -> Optional[Tuple[int, int]]:
        """Map an address to (column, offset), or None if invalid.

        Columns 0 and 1 are the discrete banks, 2 and 3 the word banks.
        """
        bank = address // BANK_SPAN
        rem = address % BANK_SPAN
        if rem == 0 or rem > self.bank_size:
            return None
        if bank in BIT_BANKS:
            col = bank
        elif bank in WORD_BANKS:
            col = bank - 1
        else:
            return None
        return col, rem - 1

    def is_bit(self, address: int) -> bool:
        loc = self.decode(address)
        return loc is not None and loc[0] < 2

    # --- MemoryPort ---

    def get(self, address: int, invert: bool = False) -> int:
        loc = self.decode(address)
        if loc is None:
            log.debug("read of invalid address %d", address)
            return 0
        col, row = loc
        if col < 2:
            val = self._bits[col][row]
            return int(not val) if invert else val
        val = self._words[col - 2][row]
        return (~val & WORD_MASK) if invert else val

    def set(self, address: int, value: int, invert: bool = False) -> None:
        loc = self.decode(address)
        if loc is None:
            log.debug("write of invalid address %d dropped", address)
            return
        col, row = loc
        if col < 2:
            new = int(not value) if invert else int(bool(value))
            bank = self._bits[col]
        else:
            value &= WORD_MASK
            new = (~value & WORD_MASK) if invert else value
            bank = self._words[col - 2]
        old = bank[row]
        bank[row] = new
        if old != new and address in self._watchers:
            for cb in self._watchers[address]:
                cb(address, old, new)

    # --- Watchers ---

    def watch(self, address: int, callback: Callable[[int, int, int], None]):
        """Call callback(address, old, new) whenever the register changes."""
        self._watchers.setdefault(address, []).append(callback)

    def unwatch(self, address: int, callback: Optional[Callable] = None):
        """Remove a watcher. If callback is None, removes all on that address."""
        if address not in self._watchers:
            return
        if callback is None:
            del self._watchers[address]
        else:
            self._watchers[address] = [
                cb for cb in self._watchers[address] if cb != callback
            ]

    # --- Snapshots ---

    def snapshot(self) -> Dict[int, int]:
        """Capture every register as {address: value}."""
        snap = {}
        for bank in BIT_BANKS + WORD_BANKS:
            for row in range(self.bank_size):
                addr = bank * BANK_SPAN + row + 1
                snap[addr] = self.get(addr)
        return snap

    @staticmethod
    def diff(snap_a: Dict[int, int], snap_b: Dict[int, int]) -> Dict[int, tuple]:
        """Compare two snapshots, return {address: (old, new)} for changes."""
        changes = {}
        for addr in sorted(set(snap_a) | set(snap_b)):
            old, new = snap_a.get(addr, 0), snap_b.get(addr, 0)
            if old != new:
                changes[addr] = (old, new)
        return changes

    def clear(self):
        """Zero every register. Watchers are kept."""
        for bank in self._bits + self._words:
            bank[:] = [0] * self.bank_size

    # --- Display ---

    def dump(self, nonzero_only: bool = False) -> str:
        """Render the four banks as text, one register per row."""
        lines = [f"{'ADDR':>5}  {'0xxxx':>5}  {'1xxxx':>5}  {'3xxxx':>6}  {'4xxxx':>6}"]
        for row in range(self.bank_size):
            vals = [self._bits[0][row], self._bits[1][row],
                    self._words[0][row], self._words[1][row]]
            if nonzero_only and not any(vals):
                continue
            lines.append(f"{row + 1:5d}  {vals[0]:5d}  {vals[1]:5d}  "
                         f"{vals[2]:6d}  {vals[3]:6d}")
        return '\n'.join(lines)
