"""Load, store, atomic and fence instructions."""

from .decode import MASK64, decode, i_imm, s_imm, sext
from .exceptions import IllegalInstruction

# funct3 -> (access size in bits, sign-extend result)
_LOADS = {
    0x0: (8, True),  # lb
    0x1: (16, True),  # lh
    0x2: (32, True),  # lw
    0x3: (64, False),  # ld
    0x4: (8, False),  # lbu
    0x5: (16, False),  # lhu
    0x6: (32, False),  # lwu
}

# funct3 -> access size in bits: sb, sh, sw, sd
_STORES = {0x0: 8, 0x1: 16, 0x2: 32, 0x3: 64}

# (funct3, funct5) -> (access size in bits, new memory value from old and rs2)
_AMOS = {
    (0x2, 0x00): (32, lambda old, src: (old + src) & MASK64),  # amoadd.w
    (0x3, 0x00): (64, lambda old, src: (old + src) & MASK64),  # amoadd.d
    (0x2, 0x01): (32, lambda old, src: src),  # amoswap.w
    (0x3, 0x01): (64, lambda old, src: src),  # amoswap.d
}


def execute_load(cpu, inst):
    """Execute a load (opcode 0x03); return the next pc."""
    fields = decode(inst)
    try:
        size, signed = _LOADS[fields.funct3]
    except KeyError:
        raise IllegalInstruction(inst) from None
    addr = (cpu.regs[fields.rs1] + i_imm(inst)) & MASK64
    value = cpu.load(addr, size)
    cpu.regs[fields.rd] = sext(value, size) if signed else value
    return cpu.pc + 4


def execute_store(cpu, inst):
    """Execute a store (opcode 0x23); return the next pc."""
    fields = decode(inst)
    try:
        size = _STORES[fields.funct3]
    except KeyError:
        raise IllegalInstruction(inst) from None
    addr = (cpu.regs[fields.rs1] + s_imm(inst)) & MASK64
    cpu.store(addr, size, cpu.regs[fields.rs2])
    return cpu.pc + 4


def execute_amo(cpu, inst):
    """Execute an atomic memory operation (opcode 0x2f); return the next pc."""
    fields = decode(inst)
    funct5 = (fields.funct7 & 0b1111100) >> 2
    try:
        size, combine = _AMOS[(fields.funct3, funct5)]
    except KeyError:
        raise IllegalInstruction(inst) from None
    addr = cpu.regs[fields.rs1]
    old = cpu.load(addr, size)
    cpu.store(addr, size, combine(old, cpu.regs[fields.rs2]))
    cpu.regs[fields.rd] = old
    return cpu.pc + 4


def execute_fence(cpu, inst):
    """Execute a fence (opcode 0x0f), a no-op on a single hart; return the next pc."""
    if decode(inst).funct3 != 0x0:
        raise IllegalInstruction(inst)
    return cpu.pc + 4