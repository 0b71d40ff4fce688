"""
RV32 Stepper — Data Memory + Program Image

Two separate stores:

  DataMemory    — fixed number of 32-bit word cells. The address from the
                  execute stage is used directly as the cell index; it is
                  neither scaled by 4 nor masked. Anything outside
                  [0, capacity) raises MemoryFault.

  ProgramImage  — the loaded program. Word i lives at byte address 4*i.
                  Addresses are always word aligned and issued from 0, so
                  the image is a plain list indexed by address // 4.
                  A fetch from an unmapped address returns None, which the
                  step driver treats as program completion.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from ..config import MEMORY_SIZE, WORD_SIZE, WORD_MASK
from ..errors import MemoryFault
from ..cpu.regs import to_signed_32


class DataMemory:
    """Word-indexed data memory."""

    def __init__(self, capacity: int = MEMORY_SIZE):
        if capacity <= 0:
            raise ValueError(f"data memory capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._cells = [0] * capacity

    def __len__(self) -> int:
        return self.capacity

    # --- Core read/write ---

    def read(self, address: int) -> int:
        """Read the cell at address. Raises MemoryFault when out of range."""
        if not 0 <= address < self.capacity:
            raise MemoryFault(address, self.capacity, is_write=False)
        return self._cells[address]

    def write(self, address: int, value: int):
        """Write a signed 32-bit value. Raises MemoryFault when out of range."""
        if not 0 <= address < self.capacity:
            raise MemoryFault(address, self.capacity, is_write=True)
        self._cells[address] = to_signed_32(value)

    # --- Snapshots ---

    def snapshot(self, start: int = 0, end: Optional[int] = None) -> Tuple[int, ...]:
        """Copy of cells [start, end). Defaults to the whole memory."""
        if end is None:
            end = self.capacity
        return tuple(self._cells[start:end])

    @staticmethod
    def diff_snapshots(before: Tuple[int, ...], after: Tuple[int, ...],
                       start: int = 0) -> Dict[int, Tuple[int, int]]:
        """{address: (old, new)} for every cell that differs."""
        return {start + i: (old, new)
                for i, (old, new) in enumerate(zip(before, after))
                if old != new}

    # --- Dump ---

    def dump(self, start: int = 0, length: int = 32, width: int = 8) -> str:
        """Hex dump of cells, `width` cells per line."""
        lines = []
        end = min(start + length, self.capacity)
        for row in range(start, end, width):
            cells = ' '.join(f'{self._cells[a] & WORD_MASK:08x}'
                             for a in range(row, min(row + width, end)))
            lines.append(f'{row:04d}  {cells}')
        return '\n'.join(lines)


class ProgramImage:
    """Loaded program, word i at byte address WORD_SIZE * i."""

    def __init__(self, words: Iterable[int] = ()):
        self._words: List[int] = [w & WORD_MASK for w in words]

    def __len__(self) -> int:
        return len(self._words)

    def fetch(self, address: int) -> Optional[int]:
        """Instruction word at address, or None when nothing is mapped there."""
        if address < 0 or address % WORD_SIZE:
            return None
        index = address // WORD_SIZE
        if index >= len(self._words):
            return None
        return self._words[index]

    @property
    def end_address(self) -> int:
        """First unmapped address after the program."""
        return len(self._words) * WORD_SIZE


def parse_hex_words(text: str) -> List[int]:
    """Parse a hex program listing into instruction words.

    One word per line. '#' and '//' start comments, blank lines are
    skipped, an optional 0x prefix and '_' separators are accepted.
    Several words may share a line separated by whitespace or commas.
    """
    words = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        for marker in ('#', '//'):
            line = line.split(marker, 1)[0]
        for token in line.replace(',', ' ').split():
            try:
                value = int(token.replace('_', ''), 16)
            except ValueError:
                raise ValueError(f"line {lineno}: not a hex word: {token!r}") from None
            if not 0 <= value <= WORD_MASK:
                raise ValueError(f"line {lineno}: word out of 32-bit range: {token!r}")
            words.append(value)
    return words
