"""Branch, jump and system instructions."""

from .csr import (
    MASK_MIE,
    MASK_MPIE,
    MASK_MPP,
    MASK_MPRV,
    MASK_SIE,
    MASK_SPIE,
    MASK_SPP,
    MEPC,
    MSTATUS,
    SEPC,
    SSTATUS,
    Mode,
)
from .decode import MASK64, b_imm, decode, i_imm, j_imm
from .exceptions import (
    Breakpoint,
    EnvironmentCallFromMMode,
    EnvironmentCallFromSMode,
    EnvironmentCallFromUMode,
    IllegalInstruction,
)


def _signed(value):
    value &= MASK64
    return value - (1 << 64) if value >> 63 else value


def _privilege(value):
    """Turn a status field into a Mode, keeping reserved encodings as plain ints."""
    try:
        return Mode(value)
    except ValueError:
        return value


# funct3 -> whether the branch is taken for (rs1, rs2)
_BRANCHES = {
    0x0: lambda a, b: a == b,  # beq
    0x1: lambda a, b: a != b,  # bne
    0x4: lambda a, b: _signed(a) < _signed(b),  # blt
    0x5: lambda a, b: _signed(a) >= _signed(b),  # bge
    0x6: lambda a, b: a < b,  # bltu
    0x7: lambda a, b: a >= b,  # bgeu
}

# funct3 -> (source is the rs1 field itself, new CSR value from old and source)
_CSR_OPS = {
    0x1: (False, lambda old, src: src),  # csrrw
    0x2: (False, lambda old, src: old | src),  # csrrs
    0x3: (False, lambda old, src: old & ~src),  # csrrc
    0x5: (True, lambda old, src: src),  # csrrwi
    0x6: (True, lambda old, src: old | src),  # csrrsi
    0x7: (True, lambda old, src: old & ~src),  # csrrci
}

_ECALLS = {
    Mode.USER: EnvironmentCallFromUMode,
    Mode.SUPERVISOR: EnvironmentCallFromSMode,
    Mode.MACHINE: EnvironmentCallFromMMode,
}


def execute_branch(cpu, inst):
    """Execute a conditional branch (opcode 0x63); return the next pc."""
    fields = decode(inst)
    try:
        taken = _BRANCHES[fields.funct3]
    except KeyError:
        raise IllegalInstruction(inst) from None
    if taken(cpu.regs[fields.rs1], cpu.regs[fields.rs2]):
        return (cpu.pc + b_imm(inst)) & MASK64
    return cpu.pc + 4


def execute_jal(cpu, inst):
    """Execute jal; return the jump target."""
    cpu.regs[decode(inst).rd] = cpu.pc + 4
    return (cpu.pc + j_imm(inst)) & MASK64


def execute_jalr(cpu, inst):
    """Execute jalr; return the jump target with bit 0 cleared."""
    fields = decode(inst)
    link = cpu.pc + 4
    target = ((cpu.regs[fields.rs1] + i_imm(inst)) & MASK64) & ~1
    cpu.regs[fields.rd] = link
    return target


def _sret(cpu):
    sstatus = cpu.csr.load(SSTATUS)
    cpu.mode = _privilege((sstatus & MASK_SPP) >> 8)
    spie = (sstatus & MASK_SPIE) >> 5
    sstatus = (sstatus & ~MASK_SIE) | (spie << 1)
    sstatus |= MASK_SPIE
    sstatus &= ~MASK_SPP
    cpu.csr.store(SSTATUS, sstatus)
    return cpu.csr.load(SEPC) & ~0b11


def _mret(cpu):
    mstatus = cpu.csr.load(MSTATUS)
    cpu.mode = _privilege((mstatus & MASK_MPP) >> 11)
    mpie = (mstatus & MASK_MPIE) >> 7
    mstatus = (mstatus & ~MASK_MIE) | (mpie << 3)
    mstatus |= MASK_MPIE
    mstatus &= ~MASK_MPP
    mstatus &= ~MASK_MPRV
    cpu.csr.store(MSTATUS, mstatus)
    return cpu.csr.load(MEPC) & ~0b11


def _execute_privileged(cpu, fields):
    key = (fields.rs2, fields.funct7)
    if key == (0x0, 0x0):
        # The epc of an ecall or ebreak is the instruction itself.
        exception = _ECALLS.get(cpu.mode)
        if exception is None:
            raise RuntimeError(f"invalid privilege mode {int(cpu.mode)}")
        raise exception(cpu.pc)
    if key == (0x1, 0x0):
        raise Breakpoint(cpu.pc)
    if key == (0x2, 0x8):
        return _sret(cpu)
    if key == (0x2, 0x18):
        return _mret(cpu)
    if fields.funct7 == 0x9:  # sfence.vma
        return cpu.pc + 4
    raise IllegalInstruction(fields.raw)


def execute_system(cpu, inst):
    """Execute a SYSTEM instruction (opcode 0x73); return the next pc."""
    fields = decode(inst)
    if fields.funct3 == 0x0:
        return _execute_privileged(cpu, fields)
    try:
        immediate, combine = _CSR_OPS[fields.funct3]
    except KeyError:
        raise IllegalInstruction(inst) from None
    source = fields.rs1 if immediate else cpu.regs[fields.rs1]
    old = cpu.csr.load(fields.csr)
    cpu.csr.store(fields.csr, combine(old, source))
    cpu.regs[fields.rd] = old
    return cpu.pc + 4