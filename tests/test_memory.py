"""
Memory Tests — data memory bounds, program image mapping, hex listings.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from rv32sim.cpu.regs import RegisterFile, to_signed_32, to_unsigned_32
from rv32sim.errors import MemoryFault, RegisterFault, StepFault
from rv32sim.mem.memory import DataMemory, ProgramImage, parse_hex_words


class TestDataMemory:

    def test_initial_zero(self):
        mem = DataMemory()
        assert len(mem) == 1024
        assert mem.read(0) == 0
        assert mem.read(1023) == 0

    def test_write_then_read(self):
        mem = DataMemory()
        mem.write(8, 0x1234)
        assert mem.read(8) == 0x1234

    def test_address_is_word_index(self):
        """Address 1 and address 4 are separate cells, no scaling."""
        mem = DataMemory()
        mem.write(1, 11)
        mem.write(4, 44)
        assert mem.read(1) == 11
        assert mem.read(4) == 44

    def test_write_wraps_to_signed_32(self):
        mem = DataMemory()
        mem.write(0, 0xFFFFFFFF)
        assert mem.read(0) == -1

    def test_read_out_of_range(self):
        mem = DataMemory(capacity=16)
        with pytest.raises(MemoryFault) as ei:
            mem.read(16)
        assert ei.value.address == 16
        assert ei.value.capacity == 16
        assert not ei.value.is_write

    def test_negative_address_faults(self):
        """No Python-style negative indexing into the tail."""
        mem = DataMemory()
        mem.write(1023, 5)
        with pytest.raises(MemoryFault):
            mem.read(-1)

    def test_write_out_of_range_leaves_memory(self):
        mem = DataMemory(capacity=4)
        with pytest.raises(MemoryFault) as ei:
            mem.write(4, 9)
        assert ei.value.is_write
        assert mem.snapshot() == (0, 0, 0, 0)

    def test_fault_is_step_fault(self):
        assert issubclass(MemoryFault, StepFault)

    def test_bad_capacity(self):
        with pytest.raises(ValueError):
            DataMemory(capacity=0)

    def test_snapshot_diff(self):
        mem = DataMemory(capacity=8)
        before = mem.snapshot()
        mem.write(3, 7)
        after = mem.snapshot()
        assert mem.diff_snapshots(before, after) == {3: (0, 7)}
        assert DataMemory.diff_snapshots(after[2:], before[2:], start=2) == {3: (7, 0)}

    def test_dump(self):
        mem = DataMemory(capacity=8)
        mem.write(0, -1)
        mem.write(2, 0x10)
        assert mem.dump(0, 4) == "0000  ffffffff 00000000 00000010 00000000"

    def test_dump_wraps_lines(self):
        mem = DataMemory(capacity=8)
        lines = mem.dump(0, 8, width=4).splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("0004  ")


class TestProgramImage:

    def test_word_aligned_mapping(self):
        img = ProgramImage([0x11, 0x22, 0x33])
        assert img.fetch(0) == 0x11
        assert img.fetch(4) == 0x22
        assert img.fetch(8) == 0x33

    def test_unmapped_addresses(self):
        img = ProgramImage([0x11, 0x22])
        assert img.fetch(8) is None
        assert img.fetch(2) is None     # unaligned
        assert img.fetch(-4) is None
        assert img.fetch(4) == 0x22

    def test_empty(self):
        img = ProgramImage()
        assert len(img) == 0
        assert img.fetch(0) is None
        assert img.end_address == 0

    def test_words_masked_to_32_bits(self):
        img = ProgramImage([-1])
        assert img.fetch(0) == 0xFFFFFFFF

    def test_end_address(self):
        img = ProgramImage([5, 6])
        assert img.end_address == 8
        assert img.fetch(img.end_address) is None


class TestParseHexWords:

    def test_plain_listing(self):
        assert parse_hex_words("00500093\n0080a103\n") == [0x00500093, 0x0080a103]

    def test_prefix_comments_and_blanks(self):
        text = """
        # demo
        0x00500093   # ADDI x1, x0, 5
        // next
        0x0080_a103
        """
        assert parse_hex_words(text) == [0x00500093, 0x0080a103]

    def test_several_per_line(self):
        assert parse_hex_words("1, 2 3") == [1, 2, 3]

    def test_bad_token(self):
        with pytest.raises(ValueError, match="line 2"):
            parse_hex_words("00000013\nnothex\n")

    def test_too_wide(self):
        with pytest.raises(ValueError):
            parse_hex_words("100000000")


class TestRegisterFile:

    def test_all_zero(self):
        r = RegisterFile()
        assert r.values() == (0,) * 32
        assert r.PC == 0

    def test_x0_is_writable(self):
        r = RegisterFile()
        r[0] = 7
        assert r[0] == 7

    def test_write_wraps(self):
        r = RegisterFile()
        r[5] = 0x80000000
        assert r[5] == -0x80000000

    def test_index_out_of_range(self):
        r = RegisterFile()
        with pytest.raises(RegisterFault):
            r[32] = 1
        with pytest.raises(RegisterFault):
            r[-1]

    def test_display_marks_changed(self):
        r = RegisterFile()
        r[1] = 5
        text = r.display(changed=1)
        assert "x1: 00000005 <---" in text
        assert "x2: 00000000\n" in text
        assert text.startswith("Register File:")

    def test_wrap_helpers(self):
        assert to_signed_32(0xFFFFFFFF) == -1
        assert to_signed_32(0x7FFFFFFF) == 0x7FFFFFFF
        assert to_unsigned_32(-1) == 0xFFFFFFFF
