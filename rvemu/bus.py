"""System bus routing accesses to memory and memory-mapped devices."""

from .clint import Clint
from .dram import Dram
from .exceptions import LoadAccessFault, StoreAMOAccessFault
from .param import (
    CLINT_BASE,
    CLINT_END,
    DRAM_BASE,
    DRAM_END,
    PLIC_BASE,
    PLIC_END,
    UART_BASE,
    UART_END,
    VIRTIO_BASE,
    VIRTIO_END,
)
from .plic import Plic
from .uart import Uart
from .virtio import VirtioBlock


class Bus:
    """Connects the CPU to DRAM, CLINT, PLIC, UART and the virtio disk."""

    def __init__(self, code, disk_image=b"", uart=None):
        self.dram = Dram(code)
        self.clint = Clint()
        self.plic = Plic()
        self.uart = uart if uart is not None else Uart()
        self.virtio_blk = VirtioBlock(disk_image)
        self._regions = (
            (CLINT_BASE, CLINT_END, self.clint),
            (PLIC_BASE, PLIC_END, self.plic),
            (DRAM_BASE, DRAM_END, self.dram),
            (UART_BASE, UART_END, self.uart),
            (VIRTIO_BASE, VIRTIO_END, self.virtio_blk),
        )

    def _device(self, addr):
        return next(
            (device for base, end, device in self._regions if base <= addr <= end),
            None,
        )

    def load(self, addr, size):
        device = self._device(addr)
        if device is None:
            raise LoadAccessFault(addr)
        return device.load(addr, size)

    def store(self, addr, size, value):
        device = self._device(addr)
        if device is None:
            raise StoreAMOAccessFault(addr)
        device.store(addr, size, value)