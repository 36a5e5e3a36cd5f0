"""Command-line entry point: run a raw RISC-V binary on the emulator."""

import argparse
import sys

from .cpu import Cpu
from .exceptions import RiscvException
from .uart import Uart


def _parser():
    parser = argparse.ArgumentParser(
        prog="rvemu",
        description="Run a raw RV64 binary loaded at the start of DRAM.",
    )
    parser.add_argument("filename", help="program binary")
    parser.add_argument("image", nargs="?", help="optional virtio disk image")
    return parser


def _read(path):
    with open(path, "rb") as handle:
        return handle.read()


def _run(cpu):
    """Step the hart until a fatal exception stops it."""
    while True:
        try:
            inst = cpu.fetch()
        except RiscvException as exc:
            cpu.handle_exception(exc)
            if exc.is_fatal():
                print(exc)
                return
            continue

        try:
            cpu.pc = cpu.execute(inst)
        except RiscvException as exc:
            cpu.handle_exception(exc)
            if exc.is_fatal():
                print(exc)
                return

        interrupt = cpu.check_pending_interrupt()
        if interrupt is not None:
            cpu.handle_interrupt(interrupt)


def main(argv=None):
    """Load the program (and disk image), run it, then dump the machine state."""
    args = _parser().parse_args(argv)
    binary = _read(args.filename)
    disk_image = _read(args.image) if args.image else b""

    stdin = sys.stdin
    input_stream = getattr(stdin, "buffer", stdin) if stdin is not None else None
    uart = Uart(input_stream=input_stream, output_stream=sys.stdout)

    cpu = Cpu(binary, disk_image, uart)
    _run(cpu)

    cpu.dump_registers()
    cpu.dump_csrs()
    cpu.dump_pc()
    return 0


if __name__ == "__main__":
    sys.exit(main())