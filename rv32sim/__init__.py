# RV32 Stepper — single-issue instruction stepper for a small RV32 subset
#
# Fetch, decode, execute, memory access and writeback for one word per
# step. Branches and jumps compute a value only; the PC always moves on
# by 4. See emu.py for the step driver and cli.py for the console front end.

from .emu import Emulator, State, StepSnapshot, StopReason, parse_rate
from .errors import MemoryFault, RegisterFault, StepFault

__version__ = "1.0.0"

__all__ = [
    "Emulator",
    "State",
    "StepSnapshot",
    "StopReason",
    "parse_rate",
    "StepFault",
    "MemoryFault",
    "RegisterFault",
]
