"""The hart: registers, traps, interrupts and instruction dispatch."""

from dataclasses import dataclass

from .bus import Bus
from .control import execute_branch, execute_jal, execute_jalr, execute_system
from .csr import (
    MASK_MEIP,
    MASK_MIE,
    MASK_MPIE,
    MASK_MPP,
    MASK_MSIP,
    MASK_MTIP,
    MASK_SEIP,
    MASK_SIE,
    MASK_SPIE,
    MASK_SPP,
    MASK_SSIP,
    MASK_STIP,
    MCAUSE,
    MCOUNTEREN,
    MEDELEG,
    MEPC,
    MHARTID,
    MIE,
    MIP,
    MSCRATCH,
    MSTATUS,
    MTVAL,
    MTVEC,
    SATP,
    SCAUSE,
    SEPC,
    SIP,
    SSCRATCH,
    SSTATUS,
    STVAL,
    STVEC,
    Csr,
    Mode,
)
from .decode import MASK64
from .exceptions import IllegalInstruction, InstructionAccessFault, RiscvException
from .integer import (
    execute_auipc,
    execute_lui,
    execute_op,
    execute_op32,
    execute_op_imm,
    execute_op_imm32,
)
from .interrupt import Interrupt
from .memory import execute_amo, execute_fence, execute_load, execute_store
from .param import (
    DESC_NUM,
    DRAM_BASE,
    DRAM_END,
    PAGE_SIZE,
    PLIC_SCLAIM,
    SECTOR_SIZE,
    UART_IRQ,
    VIRTIO_BLK_T_IN,
    VIRTIO_BLK_T_OUT,
    VIRTIO_IRQ,
)
from .virtio import (
    VIRTIO_BLK_REQ_IOTYPE,
    VIRTIO_BLK_REQ_SECTOR,
    VIRTQ_AVAIL_ENTRY_SIZE,
    VIRTQ_AVAIL_IDX,
    VIRTQ_AVAIL_RING,
    VIRTQ_DESC_ADDR,
    VIRTQ_DESC_LEN,
    VIRTQ_DESC_NEXT,
    VIRTQ_DESC_SIZE,
    VIRTQ_USED_IDX,
)

RVABI = (
    "zero", "ra", "sp", "gp", "tp", "t0", "t1", "t2",
    "s0", "s1", "a0", "a1", "a2", "a3", "a4", "a5",
    "a6", "a7", "s2", "s3", "s4", "s5", "s6", "s7",
    "s8", "s9", "s10", "s11", "t3", "t4", "t5", "t6",
)

_CSR_NAMES = {
    "mhartid": MHARTID,
    "mstatus": MSTATUS,
    "mtvec": MTVEC,
    "mepc": MEPC,
    "mcause": MCAUSE,
    "mtval": MTVAL,
    "medeleg": MEDELEG,
    "mscratch": MSCRATCH,
    "MIP": MIP,
    "mcounteren": MCOUNTEREN,
    "sstatus": SSTATUS,
    "stvec": STVEC,
    "sepc": SEPC,
    "scause": SCAUSE,
    "stval": STVAL,
    "sscratch": SSCRATCH,
    "SIP": SIP,
    "SATP": SATP,
}

_HANDLERS = {
    0x03: execute_load,
    0x0F: execute_fence,
    0x13: execute_op_imm,
    0x17: execute_auipc,
    0x1B: execute_op_imm32,
    0x23: execute_store,
    0x2F: execute_amo,
    0x33: execute_op,
    0x37: execute_lui,
    0x3B: execute_op32,
    0x63: execute_branch,
    0x67: execute_jalr,
    0x6F: execute_jal,
    0x73: execute_system,
}

# Decreasing priority: MEI, MSI, MTI, SEI, SSI, STI.
_INTERRUPT_PRIORITY = (
    (MASK_MEIP, Interrupt.MACHINE_EXTERNAL),
    (MASK_MSIP, Interrupt.MACHINE_SOFTWARE),
    (MASK_MTIP, Interrupt.MACHINE_TIMER),
    (MASK_SEIP, Interrupt.SUPERVISOR_EXTERNAL),
    (MASK_SSIP, Interrupt.SUPERVISOR_SOFTWARE),
    (MASK_STIP, Interrupt.SUPERVISOR_TIMER),
)


@dataclass(frozen=True)
class _TrapRegisters:
    status: int
    tvec: int
    cause: int
    tval: int
    epc: int
    mask_pie: int
    pie_shift: int
    mask_ie: int
    ie_shift: int
    mask_pp: int
    pp_shift: int


_S_TRAP = _TrapRegisters(SSTATUS, STVEC, SCAUSE, STVAL, SEPC, MASK_SPIE, 5, MASK_SIE, 1, MASK_SPP, 8)
_M_TRAP = _TrapRegisters(MSTATUS, MTVEC, MCAUSE, MTVAL, MEPC, MASK_MPIE, 7, MASK_MIE, 3, MASK_MPP, 11)


class Cpu:
    """A single RV64 hart connected to the system bus."""

    def __init__(self, code, disk_image=b"", uart=None):
        self.regs = [0] * 32
        self.regs[2] = DRAM_END
        self.pc = DRAM_BASE
        self.mode = Mode.MACHINE
        self.bus = Bus(code, disk_image, uart)
        self.csr = Csr()

    def reg(self, name):
        """Value of a register by ABI name, xN name, pc, fp or a CSR name."""
        if name in RVABI:
            return self.regs[RVABI.index(name)]
        if name == "pc":
            return self.pc
        if name == "fp":
            return self.reg("s0")
        if name.startswith("x"):
            number = name[1:]
            if number.isdigit() and int(number) <= 31:
                return self.regs[int(number)]
            raise ValueError(f"Invalid register {name}")
        if name in _CSR_NAMES:
            return self.csr.load(_CSR_NAMES[name])
        raise ValueError(f"Invalid register {name}")

    def dump_pc(self):
        print(f"{'PC register':-^80}")
        print(f"PC = {self.pc:#x}\n")

    def dump_registers(self):
        print(f"{'registers':-^80}")
        self.regs[0] = 0
        lines = []
        for row in range(0, 32, 4):
            cells = (
                f"{f'x{i}':3}({RVABI[i]:^4}) = {self.regs[i]:<#18x}"
                for i in range(row, row + 4)
            )
            lines.append(" ".join(cells) + "\n")
        print("".join(lines))

    def dump_csrs(self):
        """Print values in some CSRs."""
        self.csr.dump_csrs()

    def _enter_trap(self, delegated):
        previous = self.mode
        in_s_mode = previous <= Mode.SUPERVISOR and delegated
        self.mode = Mode.SUPERVISOR if in_s_mode else Mode.MACHINE
        return previous, (_S_TRAP if in_s_mode else _M_TRAP)

    def _record_trap(self, regs, previous, pc, cause, tval):
        csr = self.csr
        csr.store(regs.epc, pc)
        csr.store(regs.cause, cause)
        csr.store(regs.tval, tval)
        status = csr.load(regs.status)
        ie = (status & regs.mask_ie) >> regs.ie_shift
        status = (status & ~regs.mask_pie) | (ie << regs.pie_shift)
        status &= ~regs.mask_ie
        status = (status & ~regs.mask_pp) | (int(previous) << regs.pp_shift)
        csr.store(regs.status, status)

    def handle_exception(self, exc):
        """Take a trap for a synchronous exception."""
        pc = self.pc
        cause = exc.code
        previous, regs = self._enter_trap(self.csr.is_medelegated(cause))
        self.pc = self.csr.load(regs.tvec) & ~0b11
        self._record_trap(regs, previous, pc, cause, exc.value)

    def handle_interrupt(self, interrupt):
        """Take a trap for an interrupt, honouring direct and vectored tvec modes."""
        pc = self.pc
        cause = interrupt.code()
        previous, regs = self._enter_trap(self.csr.is_midelegated(cause))
        tvec = self.csr.load(regs.tvec)
        tvec_mode = tvec & 0b11
        tvec_base = tvec & ~0b11
        if tvec_mode == 0:
            self.pc = tvec_base
        elif tvec_mode == 1:
            self.pc = ((tvec_base + cause) << 2) & MASK64
        else:
            raise ValueError(f"reserved trap vector mode {tvec_mode}")
        self._record_trap(regs, previous, pc, cause, 0)

    def check_pending_interrupt(self):
        """Return the highest-priority enabled pending interrupt, or None."""
        csr = self.csr
        if self.mode == Mode.MACHINE and csr.load(MSTATUS) & MASK_MIE == 0:
            return None
        if self.mode == Mode.SUPERVISOR and csr.load(SSTATUS) & MASK_SIE == 0:
            return None

        if self.bus.uart.is_interrupting():
            self.bus.store(PLIC_SCLAIM, 32, UART_IRQ)
            csr.store(MIP, csr.load(MIP) | MASK_SEIP)
        elif self.bus.virtio_blk.is_interrupting():
            self.disk_access()
            self.bus.store(PLIC_SCLAIM, 32, VIRTIO_IRQ)
            csr.store(MIP, csr.load(MIP) | MASK_SEIP)

        pending = csr.load(MIE) & csr.load(MIP)
        for mask, interrupt in _INTERRUPT_PRIORITY:
            if pending & mask:
                csr.store(MIP, csr.load(MIP) & ~mask)
                return interrupt
        return None

    def disk_access(self):
        """Serve the block request the driver placed in the virtqueue."""
        bus = self.bus
        blk = bus.virtio_blk
        desc_addr = blk.desc_addr()
        avail_addr = desc_addr + DESC_NUM * VIRTQ_DESC_SIZE
        used_addr = desc_addr + PAGE_SIZE

        idx = bus.load(avail_addr + VIRTQ_AVAIL_IDX, 16)
        ring_entry = avail_addr + VIRTQ_AVAIL_RING + (idx % DESC_NUM) * VIRTQ_AVAIL_ENTRY_SIZE
        index = bus.load(ring_entry, 16)

        desc0 = desc_addr + VIRTQ_DESC_SIZE * index
        req_addr = bus.load(desc0 + VIRTQ_DESC_ADDR, 64)
        sector = bus.load(req_addr + VIRTIO_BLK_REQ_SECTOR, 64)
        iotype = bus.load(req_addr + VIRTIO_BLK_REQ_IOTYPE, 32)
        next0 = bus.load(desc0 + VIRTQ_DESC_NEXT, 16)

        desc1 = desc_addr + VIRTQ_DESC_SIZE * next0
        data_addr = bus.load(desc1 + VIRTQ_DESC_ADDR, 64)
        length = bus.load(desc1 + VIRTQ_DESC_LEN, 32)
        offset = sector * SECTOR_SIZE

        if iotype == VIRTIO_BLK_T_OUT:
            for i in range(length):
                blk.write_disk(offset + i, bus.load(data_addr + i, 8))
        elif iotype == VIRTIO_BLK_T_IN:
            for i in range(length):
                bus.store(data_addr + i, 8, blk.read_disk(offset + i))
        else:
            raise ValueError(f"unknown virtio block request type {iotype}")

        bus.store(used_addr + VIRTQ_USED_IDX, 16, blk.get_new_id() % 8)

    def load(self, addr, size):
        return self.bus.load(addr, size)

    def store(self, addr, size, value):
        self.bus.store(addr, size, value)

    def fetch(self):
        """Read the instruction at pc."""
        try:
            return self.bus.load(self.pc, 32)
        except RiscvException:
            raise InstructionAccessFault(self.pc) from None

    def execute(self, inst):
        """Execute one instruction and return the next pc."""
        self.regs[0] = 0
        handler = _HANDLERS.get(inst & 0x7F)
        if handler is None:
            raise IllegalInstruction(inst)
        return handler(self, inst)