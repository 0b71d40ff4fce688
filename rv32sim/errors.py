"""
RV32 Stepper — Step Faults

Raised when a step cannot complete because an index leaves the bounds
of the register file or data memory. Decode/execute irregularities are
never faults: unknown opcodes and funct3 values produce a zero result.

Hierarchy:
  StepFault       — base, carries the PC and raw word of the failed step
    MemoryFault   — load/store address outside data memory
    RegisterFault — register index outside 0–31
"""

from typing import Optional


class StepFault(Exception):
    """A step failed before writeback. No state was mutated."""

    def __init__(self, message: str, pc: Optional[int] = None,
                 instruction: Optional[int] = None):
        super().__init__(message)
        self.pc = pc
        self.instruction = instruction

    def at(self, pc: int, instruction: int) -> 'StepFault':
        """Attach the location of the failing step and return self."""
        self.pc = pc
        self.instruction = instruction
        return self

    def __str__(self):
        msg = super().__str__()
        if self.pc is None:
            return msg
        return f"{msg} (pc=0x{self.pc:08X}, instruction=0x{self.instruction:08X})"


class MemoryFault(StepFault):
    """Load or store address is not a valid data memory index."""

    def __init__(self, address: int, capacity: int, is_write: bool = False):
        kind = 'store' if is_write else 'load'
        super().__init__(
            f"{kind} address {address} outside data memory [0, {capacity})")
        self.address = address
        self.capacity = capacity
        self.is_write = is_write


class RegisterFault(StepFault):
    """Register index is not in 0–31."""

    def __init__(self, index: int, count: int = 32):
        super().__init__(f"register index {index} outside [0, {count})")
        self.index = index
