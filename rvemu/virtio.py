"""Legacy virtio MMIO block device and the split virtqueue layout it uses."""

from .exceptions import LoadAccessFault, StoreAMOAccessFault
from .param import (
    VIRTIO_DEVICE_FEATURES,
    VIRTIO_DEVICE_ID,
    VIRTIO_DRIVER_FEATURES,
    VIRTIO_GUEST_PAGE_SIZE,
    VIRTIO_MAGIC,
    VIRTIO_QUEUE_NOTIFY,
    VIRTIO_QUEUE_NUM,
    VIRTIO_QUEUE_NUM_MAX,
    VIRTIO_QUEUE_PFN,
    VIRTIO_QUEUE_SEL,
    VIRTIO_STATUS,
    VIRTIO_VENDOR_ID,
    VIRTIO_VERSION,
)

MASK32 = (1 << 32) - 1
MASK64 = (1 << 64) - 1

# Virtqueue descriptor: u64 addr, u32 len, u16 flags, u16 next.
VIRTQ_DESC_SIZE = 16
VIRTQ_DESC_ADDR = 0
VIRTQ_DESC_LEN = 8
VIRTQ_DESC_FLAGS = 12
VIRTQ_DESC_NEXT = 14

# Available ring: u16 flags, u16 idx, u16 ring[DESC_NUM], u16 used_event.
VIRTQ_AVAIL_FLAGS = 0
VIRTQ_AVAIL_IDX = 2
VIRTQ_AVAIL_RING = 4
VIRTQ_AVAIL_ENTRY_SIZE = 2

# Used ring: u16 flags, u16 idx, {u32 id, u32 len}[DESC_NUM], u16 avail_event.
VIRTQ_USED_FLAGS = 0
VIRTQ_USED_IDX = 2
VIRTQ_USED_RING = 4
VIRTQ_USED_ENTRY_SIZE = 8

# Block request header: u32 type, u32 reserved, u64 sector.
VIRTIO_BLK_REQ_IOTYPE = 0
VIRTIO_BLK_REQ_RESERVED = 4
VIRTIO_BLK_REQ_SECTOR = 8

MAX_BLOCK_QUEUE = 1

_CONSTANT_REGISTERS = {
    VIRTIO_MAGIC: 0x74726976,
    VIRTIO_VERSION: 0x1,
    VIRTIO_DEVICE_ID: 0x2,
    VIRTIO_VENDOR_ID: 0x554D4551,
    VIRTIO_DEVICE_FEATURES: 0,
    VIRTIO_QUEUE_NUM_MAX: 8,
}

_READABLE = {
    VIRTIO_DRIVER_FEATURES: "driver_features",
    VIRTIO_QUEUE_PFN: "queue_pfn",
    VIRTIO_STATUS: "status",
}

# A write to the device-features register sets the driver features.
_WRITABLE = {
    VIRTIO_DEVICE_FEATURES: "driver_features",
    VIRTIO_GUEST_PAGE_SIZE: "page_size",
    VIRTIO_QUEUE_SEL: "queue_sel",
    VIRTIO_QUEUE_NUM: "queue_num",
    VIRTIO_QUEUE_PFN: "queue_pfn",
    VIRTIO_QUEUE_NOTIFY: "queue_notify",
    VIRTIO_STATUS: "status",
}


class VirtioBlock:
    """A virtio disk backed by an in-memory image, accessed with 32-bit operations."""

    def __init__(self, disk_image=b""):
        self.id = 0
        self.driver_features = 0
        self.page_size = 0
        self.queue_sel = 0
        self.queue_num = 0
        self.queue_pfn = 0
        self.queue_notify = MAX_BLOCK_QUEUE
        self.status = 0
        self.disk = bytearray(disk_image)

    def is_interrupting(self):
        """Return whether the driver has notified a queue, clearing the notification."""
        if self.queue_notify < MAX_BLOCK_QUEUE:
            self.queue_notify = MAX_BLOCK_QUEUE
            return True
        return False

    def load(self, addr, size):
        if size != 32:
            raise LoadAccessFault(addr)
        if addr in _CONSTANT_REGISTERS:
            return _CONSTANT_REGISTERS[addr]
        name = _READABLE.get(addr)
        return getattr(self, name) if name else 0

    def store(self, addr, size, value):
        if size != 32:
            raise StoreAMOAccessFault(addr)
        name = _WRITABLE.get(addr)
        if name:
            setattr(self, name, value & MASK32)

    def get_new_id(self):
        """Advance and return the used-ring counter."""
        self.id = (self.id + 1) & MASK64
        return self.id

    def desc_addr(self):
        """Guest physical address of the descriptor table."""
        return self.queue_pfn * self.page_size

    def read_disk(self, addr):
        return self.disk[addr]

    def write_disk(self, addr, value):
        self.disk[addr] = value & 0xFF