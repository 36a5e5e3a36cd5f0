"""Platform-level interrupt controller."""

from .exceptions import LoadAccessFault, StoreAMOAccessFault
from .param import PLIC_PENDING, PLIC_SCLAIM, PLIC_SENABLE, PLIC_SPRIORITY

_REGISTERS = {
    PLIC_PENDING: "pending",
    PLIC_SENABLE: "senable",
    PLIC_SPRIORITY: "spriority",
    PLIC_SCLAIM: "sclaim",
}


class Plic:
    """Supervisor context registers of the PLIC, accessed with 32-bit operations."""

    def __init__(self):
        self.pending = 0
        self.senable = 0
        self.spriority = 0
        self.sclaim = 0

    def load(self, addr, size):
        if size != 32:
            raise LoadAccessFault(addr)
        name = _REGISTERS.get(addr)
        return getattr(self, name) if name else 0

    def store(self, addr, size, value):
        if size != 32:
            raise StoreAMOAccessFault(addr)
        name = _REGISTERS.get(addr)
        if name:
            setattr(self, name, value)