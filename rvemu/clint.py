"""Core-local interruptor: memory-mapped timer registers."""

from .exceptions import LoadAccessFault, StoreAMOAccessFault
from .param import CLINT_MTIME, CLINT_MTIMECMP


class Clint:
    """Holds mtime and mtimecmp, accessible only with 64-bit accesses."""

    def __init__(self):
        self.mtime = 0
        self.mtimecmp = 0

    def load(self, addr, size):
        if size != 64:
            raise LoadAccessFault(addr)
        if addr == CLINT_MTIMECMP:
            return self.mtimecmp
        if addr == CLINT_MTIME:
            return self.mtime
        raise LoadAccessFault(addr)

    def store(self, addr, size, value):
        if size != 64:
            # A wrongly sized store reports a load fault, as the device model does.
            raise LoadAccessFault(addr)
        if addr == CLINT_MTIMECMP:
            self.mtimecmp = value
        elif addr == CLINT_MTIME:
            self.mtime = value
        else:
            raise StoreAMOAccessFault(addr)