"""16550a UART as found on the QEMU virt machine."""

import sys
import threading

from .exceptions import LoadAccessFault, StoreAMOAccessFault
from .param import (
    MASK_UART_LSR_RX,
    MASK_UART_LSR_TX,
    UART_BASE,
    UART_LSR,
    UART_RHR,
    UART_SIZE,
    UART_THR,
)


class Uart:
    """A byte-wide UART.

    Bytes written to the transmit register go to ``output_stream`` (standard
    output by default). When ``input_stream`` is given, a background thread
    feeds its bytes into the receive register one at a time.
    """

    def __init__(self, input_stream=None, output_stream=None):
        self._registers = bytearray(UART_SIZE)
        self._registers[UART_LSR] |= MASK_UART_LSR_TX
        self._cond = threading.Condition()
        self._interrupt = False
        self._output = output_stream if output_stream is not None else sys.stdout
        self._reader = None
        if input_stream is not None:
            self._reader = threading.Thread(
                target=self._pump, args=(input_stream,), daemon=True
            )
            self._reader.start()

    def _pump(self, stream):
        while True:
            try:
                data = stream.read(1)
            except (OSError, ValueError) as exc:
                print(exc, file=sys.stderr)
                return
            if not data:
                return
            byte = data[0] if isinstance(data, (bytes, bytearray)) else ord(data[0]) & 0xFF
            self.receive(byte)

    def receive(self, byte):
        """Place ``byte`` in the receive register, waiting until the previous one is read."""
        with self._cond:
            while self._registers[UART_LSR] & MASK_UART_LSR_RX:
                self._cond.wait()
            self._registers[UART_RHR] = byte & 0xFF
            self._interrupt = True
            self._registers[UART_LSR] |= MASK_UART_LSR_RX

    def is_interrupting(self):
        """Return whether an interrupt is pending, clearing the flag."""
        with self._cond:
            pending = self._interrupt
            self._interrupt = False
            return pending

    def load(self, addr, size):
        if size != 8:
            raise LoadAccessFault(addr)
        index = addr - UART_BASE
        with self._cond:
            if index == UART_RHR:
                self._cond.notify()
                self._registers[UART_LSR] &= ~MASK_UART_LSR_RX & 0xFF
                return self._registers[UART_RHR]
            return self._registers[index]

    def store(self, addr, size, value):
        if size != 8:
            raise StoreAMOAccessFault(addr)
        index = addr - UART_BASE
        with self._cond:
            if index == UART_THR:
                self._output.write(chr(value & 0xFF))
                self._output.flush()
            else:
                self._registers[index] = value & 0xFF