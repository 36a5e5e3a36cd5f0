"""Main memory."""

from .exceptions import LoadAccessFault, StoreAMOAccessFault
from .param import DRAM_BASE, DRAM_SIZE

_SIZES = (8, 16, 32, 64)


class Dram:
    """Little-endian byte-addressed memory starting at DRAM_BASE."""

    def __init__(self, code):
        code = bytes(code)
        if len(code) > DRAM_SIZE:
            raise ValueError(f"program of {len(code)} bytes does not fit in memory")
        self.dram = bytearray(DRAM_SIZE)
        self.dram[: len(code)] = code

    def _span(self, addr, size):
        nbytes = size // 8
        index = addr - DRAM_BASE
        if index < 0 or index + nbytes > len(self.dram):
            raise IndexError(f"address {addr:#x} outside memory")
        return index, nbytes

    def load(self, addr, size):
        """Read ``size`` bits at ``addr``."""
        if size not in _SIZES:
            raise LoadAccessFault(addr)
        index, nbytes = self._span(addr, size)
        return int.from_bytes(self.dram[index : index + nbytes], "little")

    def store(self, addr, size, value):
        """Write the low ``size`` bits of ``value`` at ``addr``."""
        if size not in _SIZES:
            raise StoreAMOAccessFault(addr)
        index, nbytes = self._span(addr, size)
        mask = (1 << size) - 1
        self.dram[index : index + nbytes] = (value & mask).to_bytes(nbytes, "little")