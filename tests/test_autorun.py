"""
Auto-run Tests — background stepping at a fixed rate.

Timing assertions use wide tolerances: they check the spacing is in
the right range, not scheduler precision.
"""
import sys
import os
import threading
import time
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from rv32sim.emu import Emulator, StopReason, parse_rate
from rv32sim.errors import MemoryFault
from rv32sim.cpu.decoder import encode_fields, OP_LOAD

ADDI_X1_X1_1 = 0x00108093     # ADDI x1, x1, 1


def counter_program(n):
    emu = Emulator()
    emu.load_program([ADDI_X1_X1_1] * n)
    return emu


class TestParseRate:

    @pytest.mark.parametrize("text,expected", [
        ("2", 2.0),
        (" 2.5 ", 2.5),
        (4, 4.0),
        (0.5, 0.5),
    ])
    def test_usable(self, text, expected):
        assert parse_rate(text) == expected

    @pytest.mark.parametrize("bad", ["", "   ", "abc", "0", "-3", "nan", 0, -1.0, None, True])
    def test_unusable(self, bad):
        assert parse_rate(bad) is None


class TestRunRejects:

    @pytest.mark.parametrize("bad", ["", "fast", "0", -2, 0])
    def test_bad_rate_starts_nothing(self, bad):
        emu = counter_program(3)
        assert emu.run(bad) is False
        assert not emu.is_running
        time.sleep(0.05)
        assert emu.pc == 0
        assert emu.stop_reason is None

    def test_overlap_rejected(self):
        emu = counter_program(100)
        assert emu.run(5) is True
        try:
            assert emu.run(5) is False
            assert emu.run(1000) is False
        finally:
            assert emu.stop()
        assert emu.stop_reason is StopReason.CANCELLED

    def test_concurrent_run_starts_one_worker(self):
        """Two callers released together: exactly one run() wins."""
        for _ in range(50):
            emu = counter_program(10)
            barrier = threading.Barrier(2)
            results = []

            def caller():
                barrier.wait()
                results.append(emu.run(0.5))

            threads = [threading.Thread(target=caller) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join(5)
            try:
                assert sorted(results) == [False, True]
            finally:
                assert emu.stop()
            assert emu.pc <= 4      # one worker, at most one step so far

    def test_restart_after_finish(self):
        emu = counter_program(2)
        assert emu.run(1000)
        assert emu.wait(5)
        emu.load_program([ADDI_X1_X1_1] * 4)
        assert emu.run(1000)
        assert emu.wait(5)
        assert emu.regs[1] == 4
        assert emu.pc == 16


class TestRunToCompletion:

    def test_runs_until_halt(self):
        emu = counter_program(5)
        done = []
        emu.add_complete_listener(lambda: done.append(True))
        assert emu.run(200)
        assert emu.wait(5)
        assert emu.regs[1] == 5
        assert emu.pc == 20
        assert emu.halted
        assert emu.stop_reason is StopReason.HALT
        assert done == [True]

    def test_no_steps_after_halt(self):
        emu = counter_program(3)
        steps = []
        emu.add_step_listener(lambda s: steps.append(s.pc))
        emu.run(500)
        emu.wait(5)
        count = len(steps)
        time.sleep(0.1)
        assert len(steps) == count == 3
        assert not emu.is_running

    def test_rate_as_text(self):
        emu = counter_program(2)
        assert emu.run("250")
        assert emu.wait(5)
        assert emu.regs[1] == 2

    def test_step_spacing(self):
        """rate 20 → 50 ms between steps."""
        emu = counter_program(5)
        stamps = []
        emu.add_step_listener(lambda s: stamps.append(time.monotonic()))
        emu.run(20)
        assert emu.wait(5)
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert len(gaps) == 4
        for gap in gaps:
            assert 0.04 <= gap < 0.5

    def test_runs_on_worker_thread(self):
        emu = counter_program(1)
        threads = []
        emu.add_step_listener(lambda s: threads.append(threading.current_thread()))
        emu.run(100)
        emu.wait(5)
        assert threads and threads[0] is not threading.current_thread()


class TestCancellation:

    def test_stop_interrupts_wait(self):
        """A 2 s interval is cut short by stop()."""
        emu = counter_program(10)
        assert emu.run(0.5)
        deadline = time.monotonic() + 2
        while emu.pc == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        t0 = time.monotonic()
        assert emu.stop(timeout=2)
        assert time.monotonic() - t0 < 1.0
        assert emu.pc == 4
        assert emu.stop_reason is StopReason.CANCELLED

    def test_stop_without_worker(self):
        emu = counter_program(1)
        assert emu.stop() is True
        assert emu.wait() is True


class TestWorkerFault:

    def test_fault_ends_run(self):
        """LW from address 2000 faults inside the worker."""
        lw = encode_fields(OP_LOAD, rd=2, funct3=2, rs1=1)
        emu = Emulator()
        emu.load_program([ADDI_X1_X1_1, lw, ADDI_X1_X1_1])
        emu.regs[1] = 1999
        faults = []
        emu.add_fault_listener(faults.append)
        assert emu.run(500)
        assert emu.wait(5)
        assert emu.stop_reason is StopReason.FAULT
        assert isinstance(emu.fault, MemoryFault)
        assert faults == [emu.fault]
        assert emu.fault.pc == 4
        assert emu.pc == 4
        assert not emu.halted


class TestListenerErrors:

    def test_step_listener_error_still_advances_pc(self):
        """ADDI x1, x1, 1 commits once even when the listener raises."""
        emu = counter_program(1)
        calls = []

        def listener(snap):
            calls.append(snap.pc)
            if len(calls) == 1:
                raise RuntimeError("display failed")
        emu.add_step_listener(listener)

        with pytest.raises(RuntimeError):
            emu.step()
        assert emu.regs[1] == 1
        assert emu.pc == 4
        assert emu.step() is None
        assert emu.regs[1] == 1
        assert calls == [0]

    def test_listener_error_ends_run(self):
        emu = counter_program(3)
        emu.add_step_listener(lambda s: 1 / 0)
        assert emu.run(500)
        assert emu.wait(5)
        assert emu.stop_reason is StopReason.ERROR
        assert isinstance(emu.error, ZeroDivisionError)
        assert emu.fault is None
        assert emu.regs[1] == 1
        assert emu.pc == 4

    def test_fault_listener_error_keeps_fault_reason(self):
        lw = encode_fields(OP_LOAD, rd=2, funct3=2, rs1=1)
        emu = Emulator()
        emu.load_program([lw])
        emu.regs[1] = 5000

        def listener(exc):
            raise RuntimeError("report failed")
        emu.add_fault_listener(listener)
        assert emu.run(500)
        assert emu.wait(5)
        assert emu.stop_reason is StopReason.FAULT
        assert isinstance(emu.fault, MemoryFault)
        assert isinstance(emu.error, RuntimeError)


class TestStepAtomicity:

    def test_caller_and_worker_share_program(self):
        """Every word runs exactly once when both contexts step."""
        n = 300
        emu = counter_program(n)
        emu.run(1_000_000)
        while emu.step() is not None:
            pass
        assert emu.wait(5)
        assert emu.regs[1] == n
        assert emu.pc == 4 * n
