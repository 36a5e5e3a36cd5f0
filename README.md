# rvemu

A small emulator for 64-bit RISC-V. It covers RV64I, the Zicsr
instructions, a handful of M-extension instructions (`mul`, `divu`,
`remuw`) and the atomics `amoadd.w/.d` and `amoswap.w/.d`. It models the
machine layout of the QEMU `virt` board:

| Device | Base address  | Module           | Notes |
| ------ | ------------- | ---------------- | ----- |
| CLINT  | `0x0200_0000` | `rvemu.clint`    | `mtime` and `mtimecmp`, 64-bit accesses only |
| PLIC   | `0x0c00_0000` | `rvemu.plic`     | pending, enable, priority and claim registers |
| UART   | `0x1000_0000` | `rvemu.uart`     | 16550-style, byte accesses only |
| virtio | `0x1000_1000` | `rvemu.virtio`   | legacy virtio block device backed by a disk image |
| DRAM   | `0x8000_0000` | `rvemu.dram`     | 128 MiB; the program is loaded here |

The CPU (`rvemu.cpu.Cpu`) takes traps into machine or supervisor mode,
honours exception and interrupt delegation (`medeleg`, `mideleg`),
supports direct and vectored trap vectors for interrupts, and executes
`mret`, `sret`, `ecall` and `ebreak`.

## Installation

```
pip install .
```

## Running a program

Give the emulator a raw binary linked to run from address `0x80000000`
(for example one produced with `llvm-objcopy -O binary`), and optionally a
disk image for the virtio block device:

```
rvemu program.bin
rvemu kernel.bin fs.img
```

The program runs until a fatal exception: an illegal instruction, an
instruction, load or store access fault, or a misaligned instruction or
store address. Non-fatal exceptions such as `ecall` are taken as traps and
execution continues at the trap vector. When the run stops, the emulator
prints the exception, the general-purpose registers, the main machine and
supervisor trap registers, and the program counter.

Bytes the guest writes to the UART transmit register appear on standard
output. Bytes read from standard input are placed in the UART receive
register one at a time; each one sets the supervisor external interrupt
pending bit and writes the UART IRQ number to the PLIC claim register.
When the guest writes 0 to the virtio queue-notify register, the emulator
serves the block request from the virtqueue the next time it checks for
interrupts, and raises the same external interrupt with the virtio IRQ.

## Using it as a library

```python
from rvemu.cpu import Cpu

code = bytes.fromhex("930fa002")  # addi x31, x0, 42
cpu = Cpu(code)
inst = cpu.fetch()
cpu.pc = cpu.execute(inst)
print(cpu.reg("x31"))  # 42
```

`Cpu(code, disk_image=b"", uart=None)` builds the machine; pass a
`rvemu.uart.Uart(input_stream=..., output_stream=...)` to choose where the
UART reads and writes (by default it writes to standard output and reads
nothing). `Cpu.reg` accepts ABI names (`a0`, `sp`, ...), `x0`–`x31`, `pc`,
`fp` and some CSR names such as `mstatus`, `mepc` or `sepc`.

`Cpu.fetch` and `Cpu.execute` raise subclasses of
`rvemu.exceptions.RiscvException` for traps; pass them to
`Cpu.handle_exception` to take the trap. `Cpu.check_pending_interrupt`
returns an `rvemu.interrupt.Interrupt` (or `None`) to hand to
`Cpu.handle_interrupt`. The decoding helpers live in `rvemu.decode`, and
the instruction groups in `rvemu.integer`, `rvemu.memory` and
`rvemu.control`.

## What it does not do

- No virtual memory: `satp` is stored but not used and `sfence.vma` does
  nothing; all addresses are physical.
- The CLINT timer does not advance and no timer or software interrupts are
  generated by devices; they occur only if software sets the pending bits.
- No floating-point or compressed instructions, and only the M and A
  instructions listed above.
- A single hart; `fence` is a no-op.
- There is no debugger or tracing; the only way a run ends is a fatal
  exception.

## Tests

```
pip install .[test]
pytest
```