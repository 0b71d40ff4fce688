#!/usr/bin/env python3
"""
rv32sim — console front end for the RV32 stepper
=================================================

Shows the register file, the decoded fields and the current PC /
instruction after every step, like a debugger window.

Usage:
    rv32sim                          # interactive, built-in demo program
    rv32sim --program prog.hex       # interactive, your program
    rv32sim --run 4                  # auto-run at 4 steps/second
    rv32sim --steps 3                # three single steps, then exit

Interactive commands:
    <Enter> / n     next instruction
    r <rate>        auto-run at <rate> steps/second
    q               quit

Program files hold one hex word per line ('#' comments allowed).
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from . import __version__
from .config import MEMORY_SIZE, WORD_MASK, LOGGER_NAME
from .cpu.regs import format_registers
from .emu import Emulator, StepSnapshot, StopReason, parse_rate
from .errors import StepFault
from .mem.memory import DataMemory
from .log_setup import setup_logging

# Built-in demo: ADDI/ADD/SUB/XOR/SLT/OR/SLL/SRL/SRA, LUI, AUIPC, JAL,
# JALR, the four branches plus two unsupported funct3 values, LW and SW.
DEMO_PROGRAM = [
    0x00500093,
    0x001080b3,
    0x40108133,
    0x0020c233,
    0x0020a2b3,
    0x0020e333,
    0x002090b3,
    0x00109133,
    0x401091b3,
    0x12345037,
    0x6789a017,
    0x008006ef,
    0x00408067,
    0x00410063,
    0x00414063,
    0x00418063,
    0x0041c063,
    0x0041e063,
    0x0041f063,
    0x0080a103,
    0x0080af23,
]

COMPLETE_MESSAGE = "Simulation Complete."


# ═══════════════════════════════════════════════════════════════════════
# RENDERING
# ═══════════════════════════════════════════════════════════════════════

def format_fetched(snap: StepSnapshot) -> str:
    return ("Currently Executed Instruction:\n"
            f"PC: {snap.pc:08x}\n"
            f"Instruction: {snap.instruction & WORD_MASK:08x}  ({snap.mnemonic})")


def format_memory_changes(before, after) -> str:
    changes = DataMemory.diff_snapshots(before, after)
    if not changes:
        return "Memory changes: none"
    lines = ["Memory changes:"]
    for addr, (old, new) in sorted(changes.items()):
        lines.append(f"  mem[{addr}]: {old & WORD_MASK:08x} -> {new & WORD_MASK:08x}")
    return '\n'.join(lines)


def render_snapshot(snap: StepSnapshot):
    """Three panels: registers, decoded fields, fetched instruction."""
    regs = Text()
    for line in format_registers(snap.registers, snap.changed_register).splitlines():
        style = "bold yellow" if line.endswith("<---") else None
        regs.append(line + "\n", style=style)
    return Columns([
        Panel(regs, title="Registers"),
        Panel(snap.fields.display(), title="Decode"),
        Panel(format_fetched(snap), title="Fetch"),
    ])


class ConsoleView:
    """Step/complete/fault listener that prints to a rich console."""

    def __init__(self, console: Console):
        self.console = console
        self.completed = False
        self.fault: Optional[StepFault] = None

    def attach(self, emu: Emulator):
        emu.add_step_listener(self.on_step)
        emu.add_complete_listener(self.on_complete)
        emu.add_fault_listener(self.on_fault)

    def on_step(self, snap: StepSnapshot):
        self.console.print(render_snapshot(snap))

    def on_complete(self):
        self.completed = True
        self.console.print(f"[bold green]{COMPLETE_MESSAGE}[/]")

    def on_fault(self, exc: StepFault):
        self.fault = exc
        self.console.print(f"[bold red]Fault:[/] {exc}")


# ═══════════════════════════════════════════════════════════════════════
# MODES
# ═══════════════════════════════════════════════════════════════════════

def step_mode(emu: Emulator, view: ConsoleView, count: int) -> int:
    """Single-step up to `count` times. Returns a process exit code."""
    for _ in range(count):
        try:
            if emu.step() is None:
                break
        except StepFault as exc:
            view.on_fault(exc)
            return 1
    return 0


def run_mode(emu: Emulator, view: ConsoleView, rate_text: str) -> int:
    """Auto-run to completion. An unusable rate runs nothing."""
    if not emu.run(rate_text):
        view.console.print(f"Not running: rate {rate_text!r} must be a positive number")
        return 2
    if not wait_for_run(emu, view):
        return 130
    if view.fault is not None or emu.stop_reason is StopReason.ERROR:
        return 1
    return 0


def wait_for_run(emu: Emulator, view: ConsoleView) -> bool:
    """Block until auto-run ends. False when Ctrl-C cut it short."""
    try:
        emu.wait()
    except KeyboardInterrupt:
        view.console.print("Interrupted")
        emu.stop()
        return False
    return True


def interactive_mode(emu: Emulator, view: ConsoleView, input_fn=input) -> int:
    """Read commands until quit, EOF or completion."""
    view.console.print("Commands: <Enter>/n = next, r <rate> = auto-run, q = quit")
    while not view.completed:
        try:
            line = input_fn("rv32sim> ").strip()
        except EOFError:
            break
        cmd, _, arg = line.partition(' ')
        cmd = cmd.lower()

        if cmd in ('', 'n', 'next'):
            try:
                emu.step()
            except StepFault as exc:
                view.on_fault(exc)
        elif cmd in ('r', 'run'):
            if parse_rate(arg) is None:
                # Same as an empty/garbled speed field: nothing happens.
                continue
            if emu.run(arg) and not wait_for_run(emu, view):
                return 130
        elif cmd in ('q', 'quit', 'exit'):
            break
        else:
            view.console.print(f"Unknown command: {cmd}")
    emu.stop()
    return 0


# ═══════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rv32sim",
        description="RV32 instruction stepper — registers, decode and fetch view",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rv32sim --steps 5
  rv32sim --program prog.hex --run 2
  rv32sim --run 10 --trace --verbose
""",
    )
    parser.add_argument("--version", action="version", version=f"rv32sim {__version__}")
    parser.add_argument("--program", type=str, default=None,
                        help="Hex word file to load (default: built-in demo)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--run", type=str, default=None, metavar="RATE",
                      help="Auto-run at RATE steps/second")
    mode.add_argument("--steps", type=int, default=None, metavar="N",
                      help="Single-step N times, then exit")
    parser.add_argument("--memory-size", type=int, default=MEMORY_SIZE,
                        help=f"Data memory cells (default: {MEMORY_SIZE})")
    parser.add_argument("--trace", action="store_true",
                        help="Print a one-line trace per step and the memory changes at the end")
    parser.add_argument("--dump-mem", type=int, default=0, metavar="N",
                        help="Print the first N data memory cells at the end")
    parser.add_argument("--log-dir", type=str, default=None,
                        help="Also write a DEBUG log file into this directory")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose debug logging")
    return parser


def main(argv=None, console: Optional[Console] = None) -> int:
    args = build_parser().parse_args(argv)
    console = console or Console()

    console_level = logging.DEBUG if args.verbose else logging.WARNING
    log = setup_logging(
        name=LOGGER_NAME,
        console_level=console_level,
        log_dir=Path(args.log_dir) if args.log_dir else None,
        console=console,
    )

    try:
        emu = Emulator(memory_size=args.memory_size)
    except ValueError as e:
        log.error("%s", e)
        return 2
    emu.enable_trace(args.trace)

    if args.program:
        path = Path(args.program)
        if not path.is_file():
            log.error("Program file not found: %s", path)
            return 2
        try:
            emu.load_program_file(path)
        except ValueError as e:
            log.error("Bad program file %s: %s", path, e)
            return 2
    else:
        emu.load_program(DEMO_PROGRAM)

    view = ConsoleView(console)
    view.attach(emu)
    mem_before = emu.mem.snapshot()

    if args.steps is not None:
        rc = step_mode(emu, view, args.steps)
    elif args.run is not None:
        rc = run_mode(emu, view, args.run)
    else:
        rc = interactive_mode(emu, view)

    if args.trace:
        for line in emu.trace_output:
            console.print(line, highlight=False, markup=False)
        console.print(format_memory_changes(mem_before, emu.mem.snapshot()),
                      highlight=False, markup=False)
    if args.dump_mem:
        console.print(emu.mem.dump(0, args.dump_mem), highlight=False, markup=False)
    return rc


if __name__ == "__main__":
    sys.exit(main())
