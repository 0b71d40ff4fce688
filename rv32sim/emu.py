"""
RV32 Stepper — Step Driver

Top-level class tying together:
  - Register file (cpu/regs.py)
  - Data memory + program image (mem/memory.py)
  - Decoder (cpu/decoder.py)
  - Execution unit (cpu/alu.py)

Execution model, one step():
  1. Fetch the word mapped at PC (none mapped -> HALTED, done)
  2. Decode fields + immediate
  3. Execute -> single result value
  4. Memory access (LOAD reads, STORE writes, others pass through)
  5. Writeback into x[rd] (skipped for STORE)
  6. Publish a StepSnapshot to step listeners
  7. PC += 4, whatever the instruction was

Branches and jumps never move the PC. Their computed value lands in rd.

Auto-run executes step() on a background thread with a fixed wait of
1000/rate ms between steps. It ends on HALT, FAULT (a step raised
StepFault), ERROR (a listener raised) or CANCELLED (stop() was called).
Only one auto-run worker exists at a time; a second run() while one is
active is rejected.

Every step holds a single lock from fetch through publish, so the
synchronous caller and the worker never interleave inside a step.
Listeners run while that lock is held and must not call step().
"""

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .config import MEMORY_SIZE, WORD_SIZE, WORD_MASK, STOP_JOIN_TIMEOUT
from .cpu import alu
from .cpu.decoder import DecodedInstruction, OP_LOAD, OP_STORE, decode, mnemonic
from .cpu.regs import RegisterFile
from .errors import StepFault
from .mem.memory import DataMemory, ProgramImage, parse_hex_words

log = logging.getLogger(__name__)


class State(Enum):
    RUNNING = 'RUNNING'
    HALTED = 'HALTED'


class StopReason(Enum):
    HALT = 'HALT'            # no instruction mapped at PC
    FAULT = 'FAULT'          # a step raised StepFault
    CANCELLED = 'CANCELLED'  # stop() called
    ERROR = 'ERROR'          # a listener raised


@dataclass(frozen=True)
class StepSnapshot:
    """Observable state published after each completed step."""

    registers: Tuple[int, ...]
    fields: DecodedInstruction
    pc: int                       # PC at the start of the step
    instruction: int              # raw fetched word, unsigned
    changed_register: Optional[int]  # rd, or None for STORE

    @property
    def mnemonic(self) -> str:
        return mnemonic(self.fields)


StepListener = Callable[[StepSnapshot], None]
CompleteListener = Callable[[], None]
FaultListener = Callable[[StepFault], None]


def parse_rate(rate: Union[str, float, int, None]) -> Optional[float]:
    """Steps/second as a positive float, or None when unusable.

    Accepts numbers and text (as typed into a speed field). Empty,
    non-numeric, non-positive and NaN values all give None.
    """
    if rate is None or isinstance(rate, bool):
        return None
    if isinstance(rate, str):
        rate = rate.strip()
        if not rate:
            return None
        try:
            value = float(rate)
        except ValueError:
            return None
    else:
        try:
            value = float(rate)
        except (TypeError, ValueError):
            return None
    if math.isnan(value) or value <= 0:
        return None
    return value


class Emulator:
    """RV32 instruction stepper.

    Usage:
        emu = Emulator()
        emu.load_program([0x00500093, 0x0080a103])
        snap = emu.step()          # x1 = 5, PC = 4
        emu.run(10)                # remaining steps at 10/s on a worker
        emu.wait()
        emu.stop_reason            # StopReason.HALT
    """

    def __init__(self, memory_size: int = MEMORY_SIZE):
        self.regs = RegisterFile()
        self.mem = DataMemory(memory_size)
        self.program = ProgramImage()

        self.state = State.RUNNING
        self.last_snapshot: Optional[StepSnapshot] = None
        self.fault: Optional[StepFault] = None
        self.error: Optional[Exception] = None
        self.stop_reason: Optional[StopReason] = None

        self._lock = threading.Lock()
        # Guards worker start only; listeners run under _lock.
        self._start_lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._cancel = threading.Event()

        self._step_listeners: List[StepListener] = []
        self._complete_listeners: List[CompleteListener] = []
        self._fault_listeners: List[FaultListener] = []

        self._trace = False
        self._trace_output: List[str] = []

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    @property
    def pc(self) -> int:
        return self.regs.PC

    def load_program(self, words: Iterable[int]):
        """Install words at addresses 0, 4, 8, ...

        Replaces any previous image. Registers, data memory and the PC
        are left as they are.
        """
        image = ProgramImage(words)
        with self._lock:
            self.program = image
        log.info("Loaded program: %d words (0x%08X-0x%08X)",
                 len(image), 0, max(image.end_address - WORD_SIZE, 0))

    def load_program_file(self, path_or_text: Union[str, Path]):
        """Load a hex word listing from a file path or from the text itself."""
        if isinstance(path_or_text, Path):
            text = path_or_text.read_text()
        else:
            p = Path(path_or_text)
            try:
                is_file = p.is_file()
            except OSError:
                is_file = False
            text = p.read_text() if is_file else path_or_text
        self.load_program(parse_hex_words(text))

    # ══════════════════════════════════════════════
    # Listeners
    # ══════════════════════════════════════════════

    def add_step_listener(self, callback: StepListener):
        self._step_listeners.append(callback)

    def add_complete_listener(self, callback: CompleteListener):
        self._complete_listeners.append(callback)

    def add_fault_listener(self, callback: FaultListener):
        self._fault_listeners.append(callback)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    @property
    def halted(self) -> bool:
        return self.state is State.HALTED

    def step(self) -> Optional[StepSnapshot]:
        """Execute the instruction at PC.

        Returns the published snapshot, or None when nothing is mapped
        at PC (the emulator is HALTED). Raises StepFault when a load or
        store address is outside data memory; in that case nothing was
        written and the PC stays where it was. An exception from a step
        listener propagates after the PC has advanced.
        """
        with self._lock:
            pc = self.regs.PC

            # Fetch
            word = self.program.fetch(pc)
            if word is None:
                if self.state is not State.HALTED:
                    self.state = State.HALTED
                    log.info("Simulation complete at pc=0x%08X", pc)
                    for cb in self._complete_listeners:
                        cb()
                return None
            self.state = State.RUNNING

            # Decode + execute
            inst = decode(word)
            result = alu.execute(inst, self.regs, pc)

            # Memory + writeback
            try:
                value = self._memory_access(inst, result)
                changed = self._write_back(inst, value)
            except StepFault as exc:
                exc.at(pc, word)
                log.debug("Step fault: %s", exc)
                raise

            snapshot = StepSnapshot(
                registers=self.regs.values(),
                fields=inst,
                pc=pc,
                instruction=word,
                changed_register=changed,
            )
            self.last_snapshot = snapshot

            if self._trace:
                self._trace_output.append(self._format_trace(snapshot))
            log.debug("pc=0x%08X word=0x%08X %s rd=x%d value=%d",
                      pc, word, snapshot.mnemonic, inst.rd, value)

            # The step is committed; PC moves on even if a listener raises.
            try:
                for cb in self._step_listeners:
                    cb(snapshot)
            finally:
                self.regs.PC = pc + WORD_SIZE
            return snapshot

    def _memory_access(self, inst: DecodedInstruction, result: int) -> int:
        """LOAD reads mem[result]; STORE writes x[rs2] there and passes result on."""
        if inst.opcode == OP_LOAD:
            return self.mem.read(result)
        if inst.opcode == OP_STORE:
            self.mem.write(result, self.regs[inst.rs2])
        return result

    def _write_back(self, inst: DecodedInstruction, value: int) -> Optional[int]:
        """Commit value into x[rd]. Returns the written index, None for STORE."""
        if inst.opcode == OP_STORE:
            return None
        self.regs[inst.rd] = value
        return inst.rd

    # ══════════════════════════════════════════════
    # Auto-run
    # ══════════════════════════════════════════════

    @property
    def is_running(self) -> bool:
        """True while an auto-run worker is alive."""
        worker = self._worker
        return worker is not None and worker.is_alive()

    def run(self, rate: Union[str, float, int, None]) -> bool:
        """Start auto-run at `rate` steps/second on a background thread.

        Returns True when a worker was started. An unusable rate, or a
        worker that is already running, starts nothing and returns False.
        """
        steps_per_sec = parse_rate(rate)
        if steps_per_sec is None:
            log.debug("Auto-run not started: unusable rate %r", rate)
            return False

        interval = 1.0 / steps_per_sec
        with self._start_lock:
            if self.is_running:
                log.warning("Auto-run already active; ignoring run(%r)", rate)
                return False

            self._cancel = threading.Event()
            self.stop_reason = None
            self.fault = None
            self.error = None
            self._worker = threading.Thread(
                target=self._run_loop,
                args=(interval, self._cancel),
                name="rv32sim-autorun",
                daemon=True,
            )
            log.info("Auto-run started: %.3g steps/s (%.1f ms interval)",
                     steps_per_sec, interval * 1000)
            self._worker.start()
        return True

    def _run_loop(self, interval: float, cancel: threading.Event):
        reason = StopReason.CANCELLED
        try:
            while not cancel.is_set():
                try:
                    snapshot = self.step()
                except StepFault as exc:
                    self.fault = exc
                    reason = StopReason.FAULT
                    log.error("Auto-run stopped by fault: %s", exc)
                    self._notify_fault(exc)
                    break
                except Exception as exc:
                    self.error = exc
                    reason = StopReason.ERROR
                    log.exception("Auto-run stopped by listener error: %s", exc)
                    break
                if snapshot is None:
                    reason = StopReason.HALT
                    break
                if cancel.wait(interval):
                    break
        finally:
            self.stop_reason = reason
            log.info("Auto-run finished: %s", reason.value)

    def _notify_fault(self, fault: StepFault):
        for cb in self._fault_listeners:
            try:
                cb(fault)
            except Exception as exc:
                self.error = exc
                log.exception("Fault listener failed: %s", exc)

    def stop(self, timeout: Optional[float] = STOP_JOIN_TIMEOUT) -> bool:
        """Cancel auto-run and wait for the worker. True if it has exited."""
        self._cancel.set()
        return self.wait(timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the auto-run worker exits. True if it has exited."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    # ══════════════════════════════════════════════
    # Trace
    # ══════════════════════════════════════════════

    def enable_trace(self, enabled: bool = True):
        self._trace = enabled

    @property
    def trace_output(self) -> List[str]:
        return list(self._trace_output)

    @staticmethod
    def _format_trace(snap: StepSnapshot) -> str:
        line = f"{snap.pc:08X}: {snap.instruction:08X}  {snap.mnemonic:7s}"
        if snap.changed_register is not None:
            value = snap.registers[snap.changed_register] & WORD_MASK
            line += f" x{snap.changed_register}={value:08x}"
        return line
