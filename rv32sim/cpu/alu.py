"""
RV32 Stepper — Execution Unit

Computes the single result value of an instruction from its decoded
fields, the register file and the PC. Nothing here mutates state.

Dispatch by opcode:
  LUI      imm
  AUIPC    pc + imm
  JAL      pc + 4           (return address only, no jump happens)
  JALR     (x[rs1] + imm) & ~1
  BRANCH   imm if the funct3 comparison holds, else 0
  LOAD     x[rs1] + imm     (data memory index)
  STORE    x[rs1] + imm     (data memory index)
  OP-IMM   alu_op()
  OP       alu_op()
  other    0

ALU routine (funct3, funct7):
  0x0  add imm / sub imm (funct7 != 0)
  0x1  x[rs1] << rs2
  0x2  x[rs1] < imm
  0x4  xor imm
  0x5  logical >> rs2 / arithmetic >> rs2 (funct7 != 0)
  0x6  or imm
  0x7  and imm

The register-register class goes through the same routine and so
also combines x[rs1] with imm (0 for OP). Shift amounts are always
the raw 5-bit rs2 field, never x[rs2].

Loads and stores carry the access width in funct3 (2 for a word), so
their address always comes from the add slot, never from funct3.
This deliberately differs from dispatching them through alu_op by
funct3, where LW (funct3 2) would select SLT.

All results are wrapped to signed 32-bit.
"""

from .decoder import (
    DecodedInstruction,
    OP_LUI, OP_AUIPC, OP_JAL, OP_JALR, OP_BRANCH,
    OP_LOAD, OP_STORE, OP_IMM, OP_REG,
    F3_BEQ, F3_BNE, F3_BLT, F3_BGE,
)
from .regs import to_signed_32, to_unsigned_32
from ..config import WORD_SIZE

MEMORY_OPCODES = (OP_LOAD, OP_STORE)
ALU_OPCODES = (OP_IMM, OP_REG)


def execute(inst: DecodedInstruction, regs, pc: int) -> int:
    """Result value of inst. regs is indexable by register number."""
    op = inst.opcode

    if op == OP_LUI:
        return inst.imm
    if op == OP_AUIPC:
        return to_signed_32(pc + inst.imm)
    if op == OP_JAL:
        return to_signed_32(pc + WORD_SIZE)
    if op == OP_JALR:
        return to_signed_32((regs[inst.rs1] + inst.imm) & ~1)
    if op == OP_BRANCH:
        return branch_compare(inst, regs)
    if op in MEMORY_OPCODES:
        return effective_address(inst, regs)
    if op in ALU_OPCODES:
        return alu_op(inst, regs)
    return 0


def branch_compare(inst: DecodedInstruction, regs) -> int:
    """Branch offset when the condition holds, 0 otherwise.

    Only BEQ/BNE/BLT/BGE exist; other funct3 values never hold.
    """
    a = regs[inst.rs1]
    b = regs[inst.rs2]
    f3 = inst.funct3

    if f3 == F3_BEQ:
        taken = a == b
    elif f3 == F3_BNE:
        taken = a != b
    elif f3 == F3_BLT:
        taken = a < b
    elif f3 == F3_BGE:
        taken = a >= b
    else:
        taken = False
    return inst.imm if taken else 0


def effective_address(inst: DecodedInstruction, regs) -> int:
    """Data memory index for LOAD/STORE: x[rs1] + imm, unscaled."""
    return to_signed_32(regs[inst.rs1] + inst.imm)


def alu_op(inst: DecodedInstruction, regs) -> int:
    """Shared ALU routine for OP-IMM and OP."""
    a = regs[inst.rs1]
    imm = inst.imm
    f3 = inst.funct3

    if f3 == 0x0:
        result = a + imm if inst.funct7 == 0 else a - imm
    elif f3 == 0x1:
        result = a << inst.rs2
    elif f3 == 0x2:
        result = 1 if a < imm else 0
    elif f3 == 0x4:
        result = a ^ imm
    elif f3 == 0x5:
        if inst.funct7 == 0:
            result = to_unsigned_32(a) >> inst.rs2
        else:
            result = a >> inst.rs2
    elif f3 == 0x6:
        result = a | imm
    elif f3 == 0x7:
        result = a & imm
    else:
        result = 0
    return to_signed_32(result)
