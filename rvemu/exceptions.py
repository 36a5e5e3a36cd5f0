"""Synchronous RISC-V exceptions, raised as Python exceptions."""


class RiscvException(Exception):
    """A RISC-V exception carrying its trap value (an address, pc or instruction)."""

    code: int = -1
    label: str = "Exception"
    fatal: bool = False

    def __init__(self, value):
        super().__init__(value)
        self.value = value

    def __str__(self):
        return f"{self.label} {self.value:#x}"

    def __repr__(self):
        return f"{type(self).__name__}({self.value:#x})"

    def is_fatal(self):
        """Whether the emulator should stop after this exception."""
        return self.fatal


class InstructionAddrMisaligned(RiscvException):
    code = 0
    label = "Instruction address misaligned"
    fatal = True


class InstructionAccessFault(RiscvException):
    code = 1
    label = "Instruction access fault"
    fatal = True


class IllegalInstruction(RiscvException):
    code = 2
    label = "Illegal instruction"
    fatal = True


class Breakpoint(RiscvException):
    code = 3
    label = "Breakpoint"


class LoadAccessMisaligned(RiscvException):
    code = 4
    label = "Load access"


class LoadAccessFault(RiscvException):
    code = 5
    label = "Load access fault"
    fatal = True


class StoreAMOAddrMisaligned(RiscvException):
    code = 6
    label = "Store or AMO address misaliged"
    fatal = True


class StoreAMOAccessFault(RiscvException):
    code = 7
    label = "Store or AMO access fault"
    fatal = True


class EnvironmentCallFromUMode(RiscvException):
    code = 8
    label = "Environment call from U-mode"


class EnvironmentCallFromSMode(RiscvException):
    code = 9
    label = "Environment call from S-mode"


class EnvironmentCallFromMMode(RiscvException):
    code = 11
    label = "Environment call from M-mode"


class InstructionPageFault(RiscvException):
    code = 12
    label = "Instruction page fault"


class LoadPageFault(RiscvException):
    code = 13
    label = "Load page fault"


class StoreAMOPageFault(RiscvException):
    code = 15
    label = "Store or AMO page fault"