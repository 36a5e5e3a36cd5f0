"""Control and status registers."""

from enum import IntEnum

MASK64 = (1 << 64) - 1

NUM_CSRS = 4096

# Machine-level CSRs.
MHARTID = 0xF14
MSTATUS = 0x300
MEDELEG = 0x302
MIDELEG = 0x303
MIE = 0x304
MTVEC = 0x305
MCOUNTEREN = 0x306
MSCRATCH = 0x340
MEPC = 0x341
MCAUSE = 0x342
MTVAL = 0x343
MIP = 0x344

# Supervisor-level CSRs.
SSTATUS = 0x100
SIE = 0x104
STVEC = 0x105
SSCRATCH = 0x140
SEPC = 0x141
SCAUSE = 0x142
STVAL = 0x143
SIP = 0x144
SATP = 0x180

# mstatus / sstatus fields.
MASK_SIE = 1 << 1
MASK_MIE = 1 << 3
MASK_SPIE = 1 << 5
MASK_UBE = 1 << 6
MASK_MPIE = 1 << 7
MASK_SPP = 1 << 8
MASK_VS = 0b11 << 9
MASK_MPP = 0b11 << 11
MASK_FS = 0b11 << 13
MASK_XS = 0b11 << 15
MASK_MPRV = 1 << 17
MASK_SUM = 1 << 18
MASK_MXR = 1 << 19
MASK_TVM = 1 << 20
MASK_TW = 1 << 21
MASK_TSR = 1 << 22
MASK_UXL = 0b11 << 32
MASK_SXL = 0b11 << 34
MASK_SBE = 1 << 36
MASK_MBE = 1 << 37
MASK_SD = 1 << 63
MASK_SSTATUS = (
    MASK_SIE | MASK_SPIE | MASK_UBE | MASK_SPP | MASK_FS
    | MASK_XS | MASK_SUM | MASK_MXR | MASK_UXL | MASK_SD
)

# mip / sip fields.
MASK_SSIP = 1 << 1
MASK_MSIP = 1 << 3
MASK_STIP = 1 << 5
MASK_MTIP = 1 << 7
MASK_SEIP = 1 << 9
MASK_MEIP = 1 << 11


class Mode(IntEnum):
    """RISC-V privilege mode."""

    USER = 0b00
    SUPERVISOR = 0b01
    MACHINE = 0b11


class Csr:
    """The 4096 control and status registers, with supervisor views of machine ones."""

    def __init__(self):
        self._csrs = [0] * NUM_CSRS

    def load(self, addr):
        csrs = self._csrs
        if addr == SIE:
            return csrs[MIE] & csrs[MIDELEG]
        if addr == SIP:
            return csrs[MIP] & csrs[MIDELEG]
        if addr == SSTATUS:
            return csrs[MSTATUS] & MASK_SSTATUS
        return csrs[addr]

    def store(self, addr, value):
        csrs = self._csrs
        value &= MASK64
        mideleg = csrs[MIDELEG]
        if addr == SIE:
            csrs[MIE] = (csrs[MIE] & ~mideleg & MASK64) | (value & mideleg)
        elif addr == SIP:
            # The pending view is rebuilt from mie, as the device model does.
            csrs[MIP] = (csrs[MIE] & ~mideleg & MASK64) | (value & mideleg)
        elif addr == SSTATUS:
            csrs[MSTATUS] = (csrs[MSTATUS] & ~MASK_SSTATUS & MASK64) | (value & MASK_SSTATUS)
        else:
            csrs[addr] = value

    def is_medelegated(self, cause):
        """Whether exception ``cause`` is delegated to S-mode."""
        return (self._csrs[MEDELEG] >> (cause & 63)) & 1 == 1

    def is_midelegated(self, cause):
        """Whether interrupt ``cause`` is delegated to S-mode."""
        return (self._csrs[MIDELEG] >> (cause & 63)) & 1 == 1

    def dump_csrs(self):
        """Print the main machine and supervisor trap registers."""
        print(f"{'control status registers':-^80}")
        machine = (
            f"mstatus = {self.load(MSTATUS):<#18x}  mtvec = {self.load(MTVEC):<#18x}  "
            f"mepc = {self.load(MEPC):<#18x}  mcause = {self.load(MCAUSE):<#18x}"
        )
        supervisor = (
            f"sstatus = {self.load(SSTATUS):<#18x}  stvec = {self.load(STVEC):<#18x}  "
            f"sepc = {self.load(SEPC):<#18x}  scause = {self.load(SCAUSE):<#18x}"
        )
        print(f"{machine}\n{supervisor}\n")