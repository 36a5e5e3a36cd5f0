"""An RV64 RISC-V emulator with CLINT, PLIC, UART and virtio block devices."""

__version__ = "0.1.0"

__all__ = ["__version__"]