"""
RV32 Stepper — Instruction Decoder

Splits a 32-bit instruction word into its fixed fields and the
format-dependent immediate.

Fixed fields (same position in every format):
  opcode  bits  0–6
  rd      bits  7–11
  funct3  bits 12–14
  rs1     bits 15–19
  rs2     bits 20–24
  funct7  bits 25–31

Immediate formats:
  U  LUI, AUIPC        word & 0xFFFFF000
  J  JAL               [21:30]->1, [20]->11, [12:19]->12, [31]->20
  B  BRANCH            [8:11]->1, [25:30]->5, [7]->11, [31]->12
  I  LOAD, STORE, OP-IMM   signed word >> 20
  -  everything else   0

J and B immediates keep their shaped width. Bit 20 (J) and bit 12 (B)
carry the sign bit but are not extended further, so a "negative" offset
decodes as a large positive value. JALR takes no immediate here.

Unknown opcodes decode fine. They get a zero immediate and execute as
a zero result.
"""

from dataclasses import dataclass

from .regs import to_signed_32
from ..config import WORD_MASK

# ──────────────────────────────────────────────
# Opcode constants
# ──────────────────────────────────────────────

OP_LUI    = 0x37
OP_AUIPC  = 0x17
OP_JAL    = 0x6F
OP_JALR   = 0x67
OP_BRANCH = 0x63
OP_LOAD   = 0x03
OP_STORE  = 0x23
OP_IMM    = 0x13
OP_REG    = 0x33
OP_SYSTEM = 0x73

U_TYPE = (OP_LUI, OP_AUIPC)
I_TYPE = (OP_LOAD, OP_STORE, OP_IMM)

# Branch funct3 selectors
F3_BEQ = 0x0
F3_BNE = 0x1
F3_BLT = 0x4
F3_BGE = 0x5


# ──────────────────────────────────────────────
# Mnemonic tables (display/trace only)
# ──────────────────────────────────────────────

BRANCH_NAMES = {F3_BEQ: 'BEQ', F3_BNE: 'BNE', F3_BLT: 'BLT', F3_BGE: 'BGE'}

# funct3 -> (funct7 == 0 name, funct7 != 0 name)
ALU_IMM_NAMES = {
    0x0: ('ADDI', 'SUBI'),
    0x1: ('SLLI', 'SLLI'),
    0x2: ('SLTI', 'SLTI'),
    0x4: ('XORI', 'XORI'),
    0x5: ('SRLI', 'SRAI'),
    0x6: ('ORI',  'ORI'),
    0x7: ('ANDI', 'ANDI'),
}

ALU_REG_NAMES = {
    0x0: ('ADD', 'SUB'),
    0x1: ('SLL', 'SLL'),
    0x2: ('SLT', 'SLT'),
    0x4: ('XOR', 'XOR'),
    0x5: ('SRL', 'SRA'),
    0x6: ('OR',  'OR'),
    0x7: ('AND', 'AND'),
}

FIXED_NAMES = {
    OP_LUI: 'LUI',
    OP_AUIPC: 'AUIPC',
    OP_JAL: 'JAL',
    OP_JALR: 'JALR',
    OP_LOAD: 'LW',
    OP_STORE: 'SW',
    OP_SYSTEM: 'SYSTEM',
}


@dataclass(frozen=True)
class DecodedInstruction:
    """Decoded fields of one instruction word. Rebuilt every step."""

    opcode: int
    rd: int
    funct3: int
    rs1: int
    rs2: int
    funct7: int
    imm: int

    def display(self) -> str:
        """Field listing in the same layout as the register display."""
        return (
            "Instruction Fields:\n"
            f"Opcode: {self.opcode:02x}\n"
            f"rd: {self.rd}\n"
            f"funct3: {self.funct3}\n"
            f"rs1: {self.rs1}\n"
            f"rs2: {self.rs2}\n"
            f"funct7: {self.funct7:02x}\n"
            f"imm: {self.imm & WORD_MASK:08x}"
        )


def extract_immediate(word: int, opcode: int) -> int:
    """Immediate for the format selected by opcode."""
    if opcode in U_TYPE:
        return to_signed_32(word & 0xFFFFF000)

    if opcode == OP_JAL:
        return (((word >> 21) & 0x3FF) << 1
                | ((word >> 20) & 0x1) << 11
                | word & 0x000FF000
                | ((word >> 31) & 0x1) << 20)

    if opcode == OP_BRANCH:
        return (((word >> 8) & 0xF) << 1
                | ((word >> 25) & 0x3F) << 5
                | ((word >> 7) & 0x1) << 11
                | ((word >> 31) & 0x1) << 12)

    if opcode in I_TYPE:
        return to_signed_32(word) >> 20

    return 0


def decode(word: int) -> DecodedInstruction:
    """Decode a 32-bit word. Never raises for unknown encodings."""
    word &= WORD_MASK
    opcode = word & 0x7F
    return DecodedInstruction(
        opcode=opcode,
        rd=(word >> 7) & 0x1F,
        funct3=(word >> 12) & 0x7,
        rs1=(word >> 15) & 0x1F,
        rs2=(word >> 20) & 0x1F,
        funct7=(word >> 25) & 0x7F,
        imm=extract_immediate(word, opcode),
    )


def encode_fields(opcode: int, rd: int = 0, funct3: int = 0, rs1: int = 0,
                  rs2: int = 0, funct7: int = 0) -> int:
    """Pack the six fixed fields back into a word (immediate bits aside)."""
    return ((funct7 & 0x7F) << 25
            | (rs2 & 0x1F) << 20
            | (rs1 & 0x1F) << 15
            | (funct3 & 0x7) << 12
            | (rd & 0x1F) << 7
            | opcode & 0x7F)


def mnemonic(inst: DecodedInstruction) -> str:
    """Instruction name for trace and display. Has no effect on execution."""
    if inst.opcode == OP_BRANCH:
        return BRANCH_NAMES.get(inst.funct3, 'BRANCH?')
    if inst.opcode in (OP_IMM, OP_REG):
        table = ALU_IMM_NAMES if inst.opcode == OP_IMM else ALU_REG_NAMES
        names = table.get(inst.funct3)
        if names is None:
            return 'ALU?'
        return names[0] if inst.funct7 == 0 else names[1]
    return FIXED_NAMES.get(inst.opcode, 'UNKNOWN')
