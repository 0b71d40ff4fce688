"""
RV32 Stepper — Register File

Register model:
  x0..x31 — 32 general-purpose registers, signed 32-bit
  PC      — program counter, byte address of the next fetch

All 32 registers are ordinary storage. Writes to x0 stick; nothing
forces it back to zero. Values are wrapped to signed 32-bit two's
complement on every write, the way a 32-bit int register behaves.
"""

from typing import Optional, Sequence, Tuple

from ..config import NUM_REGISTERS, WORD_MASK, SIGN_BIT
from ..errors import RegisterFault


def to_signed_32(value: int) -> int:
    """Wrap an arbitrary int to signed 32-bit."""
    v = value & WORD_MASK
    if v & SIGN_BIT:
        return v - 0x100000000
    return v


def to_unsigned_32(value: int) -> int:
    """Wrap an arbitrary int to unsigned 32-bit."""
    return value & WORD_MASK


def format_registers(values: Sequence[int], changed: Optional[int] = None) -> str:
    """One line per register, 8-digit hex, '<---' on the changed one."""
    lines = ["Register File:"]
    for i, value in enumerate(values):
        line = f"x{i}: {to_unsigned_32(value):08x}"
        if i == changed:
            line += " <---"
        lines.append(line)
    return '\n'.join(lines)


class RegisterFile:
    """32 x signed 32-bit registers plus the program counter."""

    __slots__ = ('_x', 'PC')

    def __init__(self):
        self._x = [0] * NUM_REGISTERS
        self.PC: int = 0

    def __len__(self) -> int:
        return NUM_REGISTERS

    def __getitem__(self, index: int) -> int:
        self._check(index)
        return self._x[index]

    def __setitem__(self, index: int, value: int):
        self._check(index)
        self._x[index] = to_signed_32(value)

    @staticmethod
    def _check(index: int):
        if not 0 <= index < NUM_REGISTERS:
            raise RegisterFault(index, NUM_REGISTERS)

    def values(self) -> Tuple[int, ...]:
        """Immutable copy of x0..x31 for publishing."""
        return tuple(self._x)

    # --- Display ---

    def display(self, changed: Optional[int] = None) -> str:
        return format_registers(self._x, changed)
