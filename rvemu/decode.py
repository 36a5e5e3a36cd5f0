"""Instruction field extraction and immediate decoding."""

from dataclasses import dataclass

MASK64 = (1 << 64) - 1


def sext(value, bits):
    """Sign-extend the low ``bits`` of ``value`` to a 64-bit unsigned integer."""
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        value -= 1 << bits
    return value & MASK64


@dataclass(frozen=True)
class Instruction:
    """The register and function fields of a 32-bit instruction."""

    raw: int
    opcode: int
    rd: int
    rs1: int
    rs2: int
    funct3: int
    funct7: int

    @property
    def csr(self):
        """CSR address held in bits 31:20."""
        return (self.raw >> 20) & 0xFFF


def decode(inst):
    """Split an instruction word into its fields."""
    return Instruction(
        raw=inst,
        opcode=inst & 0x7F,
        rd=(inst >> 7) & 0x1F,
        rs1=(inst >> 15) & 0x1F,
        rs2=(inst >> 20) & 0x1F,
        funct3=(inst >> 12) & 0x7,
        funct7=(inst >> 25) & 0x7F,
    )


def i_imm(inst):
    """I-type immediate: imm[11:0] = inst[31:20]."""
    return sext(inst >> 20, 12)


def s_imm(inst):
    """S-type immediate: imm[11:5|4:0] = inst[31:25|11:7]."""
    return sext(((inst >> 25) << 5) | ((inst >> 7) & 0x1F), 12)


def b_imm(inst):
    """B-type immediate: imm[12|10:5|4:1|11] = inst[31|30:25|11:8|7]."""
    imm = (
        ((inst >> 31) & 1) << 12
        | ((inst >> 7) & 1) << 11
        | ((inst >> 25) & 0x3F) << 5
        | ((inst >> 8) & 0xF) << 1
    )
    return sext(imm, 13)


def u_imm(inst):
    """U-type immediate: imm[31:12] = inst[31:12]."""
    return sext(inst & 0xFFFFF000, 32)


def j_imm(inst):
    """J-type immediate: imm[20|10:1|11|19:12] = inst[31|30:21|20|19:12]."""
    imm = (
        ((inst >> 31) & 1) << 20
        | (inst & 0xFF000)
        | ((inst >> 20) & 1) << 11
        | ((inst >> 21) & 0x3FF) << 1
    )
    return sext(imm, 21)