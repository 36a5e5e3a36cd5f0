"""Asynchronous RISC-V interrupts."""

from enum import Enum

MASK_INTERRUPT_BIT = 1 << 63


class Interrupt(Enum):
    """Interrupt kinds; the value is the cause number without the interrupt bit."""

    SUPERVISOR_SOFTWARE = 1
    MACHINE_SOFTWARE = 3
    SUPERVISOR_TIMER = 5
    MACHINE_TIMER = 7
    SUPERVISOR_EXTERNAL = 9
    MACHINE_EXTERNAL = 11

    def code(self):
        """The cause value written to xcause, with the interrupt bit set."""
        return self.value | MASK_INTERRUPT_BIT