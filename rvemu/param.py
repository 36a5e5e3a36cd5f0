"""Memory map and device register layout of the emulated machine."""

DRAM_BASE = 0x8000_0000
DRAM_SIZE = 1024 * 1024 * 128
DRAM_END = DRAM_SIZE + DRAM_BASE - 1

# Core-local interruptor: timer and per-hart software interrupts.
CLINT_BASE = 0x200_0000
CLINT_SIZE = 0x10000
CLINT_END = CLINT_BASE + CLINT_SIZE - 1

CLINT_MTIMECMP = CLINT_BASE + 0x4000
CLINT_MTIME = CLINT_BASE + 0xBFF8

# Platform-level interrupt controller.
PLIC_BASE = 0xC00_0000
PLIC_SIZE = 0x4000000
PLIC_END = PLIC_BASE + PLIC_SIZE - 1

PLIC_PENDING = PLIC_BASE + 0x1000
PLIC_SENABLE = PLIC_BASE + 0x2000
PLIC_SPRIORITY = PLIC_BASE + 0x201000
PLIC_SCLAIM = PLIC_BASE + 0x201004

# 16550a UART.
UART_BASE = 0x1000_0000
UART_SIZE = 0x100
UART_END = UART_BASE + UART_SIZE - 1
UART_IRQ = 10
# Receive holding register (input bytes).
UART_RHR = 0
# Transmit holding register (output bytes).
UART_THR = 0
# Line control register.
UART_LCR = 3
# Line status register: bit 0 = data received, bit 5 = transmitter empty.
UART_LSR = 5
MASK_UART_LSR_RX = 1
MASK_UART_LSR_TX = 1 << 5

# Legacy virtio MMIO block device.
VIRTIO_BASE = 0x1000_1000
VIRTIO_SIZE = 0x1000
VIRTIO_END = VIRTIO_BASE + VIRTIO_SIZE - 1
VIRTIO_IRQ = 1

# Number of virtqueue descriptors; a power of two.
DESC_NUM = 8

VIRTIO_MAGIC = VIRTIO_BASE + 0x000
VIRTIO_VERSION = VIRTIO_BASE + 0x004
VIRTIO_DEVICE_ID = VIRTIO_BASE + 0x008
VIRTIO_VENDOR_ID = VIRTIO_BASE + 0x00C
VIRTIO_DEVICE_FEATURES = VIRTIO_BASE + 0x010
VIRTIO_DRIVER_FEATURES = VIRTIO_BASE + 0x020
VIRTIO_GUEST_PAGE_SIZE = VIRTIO_BASE + 0x028
VIRTIO_QUEUE_SEL = VIRTIO_BASE + 0x030
VIRTIO_QUEUE_NUM_MAX = VIRTIO_BASE + 0x034
VIRTIO_QUEUE_NUM = VIRTIO_BASE + 0x038
VIRTIO_QUEUE_PFN = VIRTIO_BASE + 0x040
VIRTIO_QUEUE_NOTIFY = VIRTIO_BASE + 0x050
VIRTIO_STATUS = VIRTIO_BASE + 0x070

PAGE_SIZE = 4096
SECTOR_SIZE = 512

# Virtio block request types.
VIRTIO_BLK_T_IN = 0
VIRTIO_BLK_T_OUT = 1

# Virtqueue descriptor flags.
VIRTQ_DESC_F_NEXT = 1
VIRTQ_DESC_F_WRITE = 2
VIRTQ_DESC_F_INDIRECT = 4