import io

import pytest

from rvemu.cpu import Cpu
from rvemu.csr import (
    MASK_MEIP,
    MASK_MIE,
    MASK_MPIE,
    MASK_MPP,
    MASK_MTIP,
    MASK_SEIP,
    MASK_SIE,
    MASK_SPP,
    MCAUSE,
    MEDELEG,
    MEPC,
    MIE,
    MIP,
    MSTATUS,
    MTVAL,
    MTVEC,
    SCAUSE,
    SEPC,
    SSTATUS,
    STVEC,
    Mode,
)
from rvemu.decode import MASK64
from rvemu.exceptions import (
    EnvironmentCallFromUMode,
    IllegalInstruction,
    InstructionAccessFault,
    RiscvException,
)
from rvemu.interrupt import MASK_INTERRUPT_BIT, Interrupt
from rvemu.param import (
    DESC_NUM,
    DRAM_BASE,
    DRAM_END,
    PAGE_SIZE,
    PLIC_SCLAIM,
    SECTOR_SIZE,
    UART_IRQ,
    VIRTIO_BLK_T_IN,
    VIRTIO_BLK_T_OUT,
    VIRTIO_GUEST_PAGE_SIZE,
    VIRTIO_IRQ,
    VIRTIO_QUEUE_NOTIFY,
    VIRTIO_QUEUE_PFN,
)
from rvemu.uart import Uart
from rvemu.virtio import (
    VIRTIO_BLK_REQ_IOTYPE,
    VIRTIO_BLK_REQ_SECTOR,
    VIRTQ_AVAIL_IDX,
    VIRTQ_AVAIL_RING,
    VIRTQ_DESC_ADDR,
    VIRTQ_DESC_LEN,
    VIRTQ_DESC_NEXT,
    VIRTQ_DESC_SIZE,
    VIRTQ_USED_IDX,
)

ZERO, RA, SP, S0 = 0, 1, 2, 8
T0, T1, T2, T3, T4 = 5, 6, 7, 28, 29
A0, A1, A2, A3, A4, A5 = 10, 11, 12, 13, 14, 15

ILLEGAL_INSTRUCTION_CAUSE = 2
ECALL_FROM_U_CAUSE = 8
MACHINE_TIMER_CAUSE = 7 | MASK_INTERRUPT_BIT


def enc_r(opcode, rd, funct3, rs1, rs2, funct7):
    return funct7 << 25 | rs2 << 20 | rs1 << 15 | funct3 << 12 | rd << 7 | opcode


def enc_i(opcode, rd, funct3, rs1, imm):
    return ((imm & 0xFFF) << 20) | rs1 << 15 | funct3 << 12 | rd << 7 | opcode


def enc_s(funct3, rs1, rs2, imm):
    return (
        ((imm >> 5) & 0x7F) << 25 | rs2 << 20 | rs1 << 15 | funct3 << 12
        | (imm & 0x1F) << 7 | 0x23
    )


def enc_b(funct3, rs1, rs2, imm):
    return (
        ((imm >> 12) & 1) << 31 | ((imm >> 5) & 0x3F) << 25 | rs2 << 20 | rs1 << 15
        | funct3 << 12 | ((imm >> 1) & 0xF) << 8 | ((imm >> 11) & 1) << 7 | 0x63
    )


def enc_u(opcode, rd, imm20):
    return (imm20 & 0xFFFFF) << 12 | rd << 7 | opcode


def enc_j(rd, imm):
    return (
        ((imm >> 20) & 1) << 31 | ((imm >> 1) & 0x3FF) << 21 | ((imm >> 11) & 1) << 20
        | ((imm >> 12) & 0xFF) << 12 | rd << 7 | 0x6F
    )


def addi(rd, rs1, imm):
    return enc_i(0x13, rd, 0, rs1, imm)


def csr_op(funct3, rd, rs1, csr):
    return enc_i(0x73, rd, funct3, rs1, csr)


def make_cpu(program=b"", disk=b""):
    return Cpu(program, disk, Uart(output_stream=io.StringIO()))


def run(words, clocks):
    cpu = make_cpu(b"".join(w.to_bytes(4, "little") for w in words))
    for _ in range(clocks):
        try:
            inst = cpu.fetch()
        except RiscvException:
            break
        try:
            cpu.pc = cpu.execute(inst)
        except RiscvException:
            pass
    return cpu


def test_addi():
    cpu = run([addi(31, ZERO, 42)], 1)
    assert cpu.reg("x31") == 42


def test_simple():
    program = [
        addi(SP, SP, -16),
        enc_s(3, SP, S0, 8),
        addi(S0, SP, 16),
        addi(A5, ZERO, 42),
        addi(A0, A5, 0),
        enc_i(0x03, S0, 3, SP, 8),
        addi(SP, SP, 16),
        enc_i(0x67, ZERO, 0, RA, 0),
    ]
    cpu = run(program, 20)
    assert cpu.reg("a0") == 42


def test_lui():
    assert run([enc_u(0x37, A0, 42)], 1).reg("a0") == 42 << 12


def test_auipc():
    assert run([enc_u(0x17, A0, 42)], 1).reg("a0") == DRAM_BASE + (42 << 12)


def test_jal():
    cpu = run([enc_j(A0, 42)], 1)
    assert cpu.reg("a0") == DRAM_BASE + 4
    assert cpu.reg("pc") == DRAM_BASE + 42


def test_jalr():
    cpu = run([addi(A1, ZERO, 42), enc_i(0x67, A0, 0, A1, -8)], 2)
    assert cpu.reg("a0") == DRAM_BASE + 8
    assert cpu.reg("pc") == 34


def test_beq():
    assert run([enc_b(0, 0, 0, 42)], 3).reg("pc") == DRAM_BASE + 42


def test_bne():
    cpu = run([addi(1, 0, 10), enc_b(1, 0, 1, 42)], 5)
    assert cpu.reg("pc") == DRAM_BASE + 42 + 4


@pytest.mark.parametrize(
    "funct3, rs1, rs2",
    [(4, 1, 2), (5, 2, 1), (6, 1, 2), (7, 2, 1)],
    ids=["blt", "bge", "bltu", "bgeu"],
)
def test_conditional_branches(funct3, rs1, rs2):
    cpu = run([addi(1, 0, 10), addi(2, 0, 20), enc_b(funct3, rs1, rs2, 42)], 10)
    assert cpu.reg("pc") == DRAM_BASE + 42 + 8


def test_store_load1():
    program = [
        addi(S0, ZERO, 256),
        addi(SP, SP, -16),
        enc_s(3, SP, S0, 8),
        enc_i(0x03, T1, 0, SP, 8),
        enc_i(0x03, T2, 1, SP, 8),
    ]
    cpu = run(program, 10)
    assert cpu.reg("t1") == 0
    assert cpu.reg("t2") == 256


def test_slt():
    program = [
        addi(T0, ZERO, 14),
        addi(T1, ZERO, 24),
        enc_r(0x33, T2, 2, T0, T1, 0),
        enc_i(0x13, T3, 2, T0, 42),
        enc_i(0x13, T4, 3, T0, 84),
    ]
    cpu = run(program, 7)
    assert (cpu.reg("t2"), cpu.reg("t3"), cpu.reg("t4")) == (1, 1, 1)


def test_xor():
    program = [addi(A0, ZERO, 0b10), enc_i(0x13, A1, 4, A0, 0b01), enc_r(0x33, A2, 4, A1, A1, 0)]
    cpu = run(program, 5)
    assert cpu.reg("a1") == 3
    assert cpu.reg("a2") == 0


def test_or():
    program = [addi(A0, ZERO, 0b10), enc_i(0x13, A1, 6, A0, 0b01), enc_r(0x33, A2, 6, A0, A0, 0)]
    cpu = run(program, 3)
    assert cpu.reg("a1") == 0b11
    assert cpu.reg("a2") == 0b10


def test_and():
    program = [addi(A0, ZERO, 0b10), enc_i(0x13, A1, 7, A0, 0b11), enc_r(0x33, A2, 7, A0, A1, 0)]
    cpu = run(program, 3)
    assert cpu.reg("a1") == 0b10
    assert cpu.reg("a2") == 0b10


def test_sll():
    program = [
        addi(A0, ZERO, 1),
        addi(A1, ZERO, 5),
        enc_r(0x33, A2, 1, A0, A1, 0),
        enc_i(0x13, A3, 1, A0, 5),
        addi(S0, ZERO, 64),
        enc_r(0x33, A4, 1, A0, S0, 0),
    ]
    cpu = run(program, 10)
    assert cpu.reg("a2") == 1 << 5
    assert cpu.reg("a3") == 1 << 5
    assert cpu.reg("a4") == 1


def test_sra_srl():
    program = [
        addi(A0, ZERO, -8),
        addi(A1, ZERO, 1),
        enc_r(0x33, A2, 5, A0, A1, 0x20),
        enc_i(0x13, A3, 5, A0, 0x400 | 2),
        enc_i(0x13, A4, 5, A0, 2),
        enc_r(0x33, A5, 5, A0, A1, 0),
    ]
    cpu = run(program, 10)
    assert cpu.reg("a2") == -4 & MASK64
    assert cpu.reg("a3") == -2 & MASK64
    assert cpu.reg("a4") == (-8 & MASK64) >> 2
    assert cpu.reg("a5") == (-8 & MASK64) >> 1


def test_word_op():
    program = [addi(A0, ZERO, 42), enc_u(0x37, A1, 0x7F000), enc_r(0x3B, A2, 0, A0, A1, 0)]
    assert run(program, 29).reg("a2") == 0x7F00002A


def test_csrs1():
    program = [
        addi(T0, ZERO, 1),
        addi(T1, ZERO, 2),
        addi(T2, ZERO, 3),
        csr_op(1, ZERO, T0, MSTATUS),
        csr_op(2, ZERO, T1, MTVEC),
        csr_op(1, ZERO, T2, MEPC),
        csr_op(3, T2, ZERO, MEPC),
        csr_op(5, ZERO, 4, SSTATUS),
        csr_op(6, ZERO, 5, STVEC),
        csr_op(5, ZERO, 6, SEPC),
        csr_op(7, ZERO, 0, SEPC),
    ]
    cpu = run(program, 20)
    assert cpu.reg("mstatus") == 1
    assert cpu.reg("mtvec") == 2
    assert cpu.reg("mepc") == 3
    assert cpu.reg("sstatus") == 0
    assert cpu.reg("stvec") == 5
    assert cpu.reg("sepc") == 6


def test_initial_state():
    cpu = make_cpu()
    assert cpu.reg("sp") == DRAM_END
    assert cpu.reg("pc") == DRAM_BASE
    assert cpu.mode == Mode.MACHINE


def test_reg_aliases_and_errors():
    cpu = make_cpu()
    cpu.regs[S0] = 7
    assert cpu.reg("fp") == 7
    assert cpu.reg("x8") == 7
    with pytest.raises(ValueError):
        cpu.reg("x32")
    with pytest.raises(ValueError):
        cpu.reg("bogus")


def test_execute_unknown_opcode():
    with pytest.raises(IllegalInstruction) as info:
        make_cpu().execute(0)
    assert info.value.value == 0


def test_execute_keeps_x0_zero():
    cpu = make_cpu()
    cpu.regs[0] = 99
    cpu.execute(addi(A0, ZERO, 1))
    assert cpu.regs[A0] == 1


def test_fetch_outside_memory_faults():
    cpu = make_cpu()
    cpu.pc = 0
    with pytest.raises(InstructionAccessFault) as info:
        cpu.fetch()
    assert info.value.value == 0


def test_dump_output(capsys):
    cpu = make_cpu()
    cpu.dump_registers()
    cpu.dump_pc()
    out = capsys.readouterr().out
    assert "x2 ( sp ) = 0x87ffffff" in out
    assert f"PC = {DRAM_BASE:#x}" in out


def test_handle_exception_in_machine_mode():
    cpu = make_cpu()
    cpu.pc = DRAM_BASE + 8
    cpu.csr.store(MTVEC, DRAM_BASE + 0x101)
    cpu.csr.store(MSTATUS, MASK_MIE)
    cpu.handle_exception(IllegalInstruction(0x1234))
    assert cpu.pc == DRAM_BASE + 0x100
    assert cpu.csr.load(MEPC) == DRAM_BASE + 8
    assert cpu.csr.load(MCAUSE) == ILLEGAL_INSTRUCTION_CAUSE
    assert cpu.csr.load(MTVAL) == 0x1234
    status = cpu.csr.load(MSTATUS)
    assert status & MASK_MPIE
    assert status & MASK_MIE == 0
    assert status & MASK_MPP == MASK_MPP
    assert cpu.mode == Mode.MACHINE


def test_delegated_exception_traps_to_supervisor():
    cpu = make_cpu()
    cpu.mode = Mode.USER
    cpu.pc = DRAM_BASE + 12
    cpu.csr.store(MEDELEG, 1 << ECALL_FROM_U_CAUSE)
    cpu.csr.store(STVEC, DRAM_BASE + 0x200)
    cpu.handle_exception(EnvironmentCallFromUMode(cpu.pc))
    assert cpu.mode == Mode.SUPERVISOR
    assert cpu.pc == DRAM_BASE + 0x200
    assert cpu.csr.load(SEPC) == DRAM_BASE + 12
    assert cpu.csr.load(SCAUSE) == ECALL_FROM_U_CAUSE
    assert cpu.csr.load(SSTATUS) & MASK_SPP == 0


def test_handle_interrupt_direct_mode():
    cpu = make_cpu()
    cpu.pc = DRAM_BASE + 4
    cpu.csr.store(MTVEC, DRAM_BASE + 0x300)
    cpu.csr.store(MTVAL, 5)
    cpu.handle_interrupt(Interrupt.MACHINE_TIMER)
    assert cpu.pc == DRAM_BASE + 0x300
    assert cpu.csr.load(MEPC) == DRAM_BASE + 4
    assert cpu.csr.load(MCAUSE) == MACHINE_TIMER_CAUSE
    assert cpu.csr.load(MTVAL) == 0


def test_handle_interrupt_reserved_vector_mode():
    cpu = make_cpu()
    cpu.csr.store(MTVEC, DRAM_BASE | 0b10)
    with pytest.raises(ValueError):
        cpu.handle_interrupt(Interrupt.MACHINE_TIMER)


def test_interrupts_masked_when_globally_disabled():
    cpu = make_cpu()
    cpu.csr.store(MIE, MASK_MTIP)
    cpu.csr.store(MIP, MASK_MTIP)
    assert cpu.check_pending_interrupt() is None
    cpu.mode = Mode.SUPERVISOR
    cpu.csr.store(SSTATUS, 0)
    assert cpu.csr.load(SSTATUS) & MASK_SIE == 0
    assert cpu.check_pending_interrupt() is None


def test_pending_interrupt_priority_and_clearing():
    cpu = make_cpu()
    cpu.csr.store(MSTATUS, MASK_MIE)
    cpu.csr.store(MIE, MASK_MEIP | MASK_MTIP)
    cpu.csr.store(MIP, MASK_MEIP | MASK_MTIP)
    assert cpu.check_pending_interrupt() is Interrupt.MACHINE_EXTERNAL
    assert cpu.csr.load(MIP) == MASK_MTIP
    assert cpu.check_pending_interrupt() is Interrupt.MACHINE_TIMER
    assert cpu.check_pending_interrupt() is None


def test_uart_input_raises_external_interrupt():
    cpu = make_cpu()
    cpu.csr.store(MSTATUS, MASK_MIE)
    cpu.csr.store(MIE, MASK_SEIP)
    cpu.bus.uart.receive(ord("a"))
    assert cpu.check_pending_interrupt() is Interrupt.SUPERVISOR_EXTERNAL
    assert cpu.bus.load(PLIC_SCLAIM, 32) == UART_IRQ


def _setup_queue(cpu, iotype, sector, buffer_addr, length):
    desc = DRAM_BASE + 0x10000
    cpu.store(VIRTIO_GUEST_PAGE_SIZE, 32, PAGE_SIZE)
    cpu.store(VIRTIO_QUEUE_PFN, 32, desc // PAGE_SIZE)
    avail = desc + DESC_NUM * VIRTQ_DESC_SIZE
    cpu.store(avail + VIRTQ_AVAIL_IDX, 16, 0)
    cpu.store(avail + VIRTQ_AVAIL_RING, 16, 0)
    req = DRAM_BASE + 0x20000
    cpu.store(desc + VIRTQ_DESC_ADDR, 64, req)
    cpu.store(desc + VIRTQ_DESC_NEXT, 16, 1)
    cpu.store(req + VIRTIO_BLK_REQ_IOTYPE, 32, iotype)
    cpu.store(req + VIRTIO_BLK_REQ_SECTOR, 64, sector)
    cpu.store(desc + VIRTQ_DESC_SIZE + VIRTQ_DESC_ADDR, 64, buffer_addr)
    cpu.store(desc + VIRTQ_DESC_SIZE + VIRTQ_DESC_LEN, 32, length)
    return desc


def _read_bytes(cpu, addr, length):
    return bytes(cpu.load(addr + i, 8) for i in range(length))


def test_disk_read_request():
    disk = bytearray(2 * SECTOR_SIZE)
    disk[SECTOR_SIZE:SECTOR_SIZE + 4] = b"ABCD"
    cpu = make_cpu(disk=bytes(disk))
    buffer_addr = DRAM_BASE + 0x30000
    desc = _setup_queue(cpu, VIRTIO_BLK_T_IN, 1, buffer_addr, 4)
    cpu.disk_access()
    assert _read_bytes(cpu, buffer_addr, 4) == b"ABCD"
    assert cpu.load(desc + PAGE_SIZE + VIRTQ_USED_IDX, 16) == 1


def test_disk_write_request():
    cpu = make_cpu(disk=bytes(2 * SECTOR_SIZE))
    buffer_addr = DRAM_BASE + 0x30000
    for i, byte in enumerate(b"wxyz"):
        cpu.store(buffer_addr + i, 8, byte)
    _setup_queue(cpu, VIRTIO_BLK_T_OUT, 1, buffer_addr, 4)
    cpu.disk_access()
    assert bytes(cpu.bus.virtio_blk.disk[SECTOR_SIZE:SECTOR_SIZE + 4]) == b"wxyz"


def test_virtio_notification_serves_request_and_interrupts():
    disk = bytearray(SECTOR_SIZE)
    disk[:2] = b"hi"
    cpu = make_cpu(disk=bytes(disk))
    buffer_addr = DRAM_BASE + 0x30000
    _setup_queue(cpu, VIRTIO_BLK_T_IN, 0, buffer_addr, 2)
    cpu.store(VIRTIO_QUEUE_NOTIFY, 32, 0)
    cpu.csr.store(MSTATUS, MASK_MIE)
    cpu.csr.store(MIE, MASK_SEIP)
    assert cpu.check_pending_interrupt() is Interrupt.SUPERVISOR_EXTERNAL
    assert _read_bytes(cpu, buffer_addr, 2) == b"hi"
    assert cpu.bus.load(PLIC_SCLAIM, 32) == VIRTIO_IRQ