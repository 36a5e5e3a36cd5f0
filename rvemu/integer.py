"""Integer computational instructions of RV64I and the M extension subset."""

from .decode import MASK64, decode, i_imm, sext, u_imm
from .exceptions import IllegalInstruction

MASK32 = (1 << 32) - 1


def _signed(value, bits=64):
    """Interpret the low ``bits`` of ``value`` as a two's complement integer."""
    value &= (1 << bits) - 1
    return value - (1 << bits) if value >> (bits - 1) else value


def _word(value):
    """Sign-extend the low 32 bits of ``value`` to 64 bits."""
    return sext(value, 32)


def _divu(a, b):
    return MASK64 if b == 0 else a // b


def _remuw(a, b):
    if b == 0:
        return a
    return _word((a & MASK32) % (b & MASK32))


# R-type operations on full registers, keyed by (funct3, funct7).
# Each takes rs1, rs2 and the shift amount drawn from rs2[5:0].
_OP = {
    (0x0, 0x00): lambda a, b, sh: (a + b) & MASK64,  # add
    (0x0, 0x01): lambda a, b, sh: (a * b) & MASK64,  # mul
    (0x0, 0x20): lambda a, b, sh: (a - b) & MASK64,  # sub
    (0x1, 0x00): lambda a, b, sh: (a << sh) & MASK64,  # sll
    (0x2, 0x00): lambda a, b, sh: int(_signed(a) < _signed(b)),  # slt
    (0x3, 0x00): lambda a, b, sh: int(a < b),  # sltu
    (0x4, 0x00): lambda a, b, sh: a ^ b,  # xor
    (0x5, 0x00): lambda a, b, sh: a >> sh,  # srl
    (0x5, 0x20): lambda a, b, sh: (_signed(a) >> sh) & MASK64,  # sra
    (0x6, 0x00): lambda a, b, sh: a | b,  # or
    (0x7, 0x00): lambda a, b, sh: a & b,  # and
}

# R-type word operations, keyed by (funct3, funct7); the shift amount is rs2[4:0].
_OP32 = {
    (0x0, 0x00): lambda a, b, sh: _word(a + b),  # addw
    (0x0, 0x20): lambda a, b, sh: _word(a - b),  # subw
    (0x1, 0x00): lambda a, b, sh: _word((a & MASK32) << sh),  # sllw
    (0x5, 0x00): lambda a, b, sh: _word((a & MASK32) >> sh),  # srlw
    (0x5, 0x01): lambda a, b, sh: _divu(a, b),  # divu
    (0x5, 0x20): lambda a, b, sh: _word(_signed(a, 32) >> sh),  # sraw
    (0x7, 0x01): lambda a, b, sh: _remuw(a, b),  # remuw
}


def execute_op_imm(cpu, inst):
    """Execute an OP-IMM instruction (opcode 0x13); return the next pc."""
    fields = decode(inst)
    imm = i_imm(inst)
    shamt = imm & 0x3F
    src = cpu.regs[fields.rs1]
    funct3 = fields.funct3
    if funct3 == 0x0:  # addi
        result = (src + imm) & MASK64
    elif funct3 == 0x1:  # slli
        result = (src << shamt) & MASK64
    elif funct3 == 0x2:  # slti
        result = int(_signed(src) < _signed(imm))
    elif funct3 == 0x3:  # sltiu
        result = int(src < imm)
    elif funct3 == 0x4:  # xori
        result = src ^ imm
    elif funct3 == 0x5:
        kind = fields.funct7 >> 1
        if kind == 0x00:  # srli
            result = src >> shamt
        elif kind == 0x10:  # srai
            result = (_signed(src) >> shamt) & MASK64
        else:
            raise IllegalInstruction(inst)
    elif funct3 == 0x6:  # ori
        result = src | imm
    else:  # andi
        result = src & imm
    cpu.regs[fields.rd] = result
    return cpu.pc + 4


def execute_op_imm32(cpu, inst):
    """Execute an OP-IMM-32 instruction (opcode 0x1b); return the next pc."""
    fields = decode(inst)
    imm = i_imm(inst)
    shamt = imm & 0x1F
    src = cpu.regs[fields.rs1]
    funct3 = fields.funct3
    if funct3 == 0x0:  # addiw
        result = _word(src + imm)
    elif funct3 == 0x1:  # slliw
        result = _word(src << shamt)
    elif funct3 == 0x5:
        if fields.funct7 == 0x00:  # srliw
            result = _word((src & MASK32) >> shamt)
        elif fields.funct7 == 0x20:  # sraiw
            result = _word(_signed(src, 32) >> shamt)
        else:
            raise IllegalInstruction(inst)
    else:
        raise IllegalInstruction(inst)
    cpu.regs[fields.rd] = result
    return cpu.pc + 4


def _execute_register_op(cpu, inst, table, shift_mask):
    fields = decode(inst)
    operation = table.get((fields.funct3, fields.funct7))
    if operation is None:
        raise IllegalInstruction(inst)
    a = cpu.regs[fields.rs1]
    b = cpu.regs[fields.rs2]
    cpu.regs[fields.rd] = operation(a, b, b & shift_mask)
    return cpu.pc + 4


def execute_op(cpu, inst):
    """Execute an OP instruction (opcode 0x33); return the next pc."""
    return _execute_register_op(cpu, inst, _OP, 0x3F)


def execute_op32(cpu, inst):
    """Execute an OP-32 instruction (opcode 0x3b); return the next pc."""
    return _execute_register_op(cpu, inst, _OP32, 0x1F)


def execute_lui(cpu, inst):
    """Execute lui; return the next pc."""
    cpu.regs[decode(inst).rd] = u_imm(inst)
    return cpu.pc + 4


def execute_auipc(cpu, inst):
    """Execute auipc; return the next pc."""
    cpu.regs[decode(inst).rd] = (cpu.pc + u_imm(inst)) & MASK64
    return cpu.pc + 4