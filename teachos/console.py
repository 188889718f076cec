"""Console: a line-edited input buffer fed by interrupts and an output stream."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional, TextIO, Union

BACKSPACE = 0x100
INPUT_BUF = 128


def _ctrl(x: str) -> int:
    return ord(x) - ord("@")


_NEWLINE = ord("\n")
_EOF = _ctrl("D")


class Console:
    """Line discipline over an output stream.

    ``interrupt`` takes typed characters and edits the input line; ``read``
    returns completed input. Control-P calls ``on_procdump`` if it is set.
    """

    def __init__(self, output: TextIO) -> None:
        self.output = output
        self.on_procdump: Optional[Callable[[], None]] = None
        self.killed = False
        self._buf = [0] * INPUT_BUF
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index
        self._cond = threading.Condition()

    def _putc(self, c: int) -> None:
        if c == BACKSPACE:
            self.output.write("\b \b")
        else:
            self.output.write(chr(c & 0xFF))

    def interrupt(self, chars: Iterable[Union[int, str]]) -> None:
        """Handle typed characters, given as codes or one-character strings."""
        dump = False
        with self._cond:
            for item in chars:
                c = ord(item) if isinstance(item, str) else int(item)
                if c < 0:
                    break
                if c == _ctrl("P"):
                    dump = True
                elif c == _ctrl("U"):
                    while (
                        self._e != self._w
                        and self._buf[(self._e - 1) % INPUT_BUF] != _NEWLINE
                    ):
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c in (_ctrl("H"), 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = _NEWLINE
                    self._buf[self._e % INPUT_BUF] = c & 0xFF
                    self._e += 1
                    self._putc(c)
                    if c == _NEWLINE or c == _EOF or self._e == self._r + INPUT_BUF:
                        self._w = self._e
                        self._cond.notify_all()
        if dump and self.on_procdump is not None:
            self.on_procdump()

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, stopping after a newline; Control-D ends input.

        Waits for a completed line; raises InterruptedError once killed.
        """
        if n < 0:
            raise ValueError("cannot read a negative number of bytes")
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self._r == self._w:
                    if self.killed:
                        raise InterruptedError("console read interrupted")
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _EOF:
                    if n < target:
                        # Keep the ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                n -= 1
                if c == _NEWLINE:
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Send ``data`` to the output; returns the number of bytes written."""
        payload = bytes(data)
        with self._cond:
            for byte in payload:
                self._putc(byte)
        return len(payload)

    def kill(self) -> None:
        """Interrupt pending and future reads that would wait."""
        with self._cond:
            self.killed = True
            self._cond.notify_all()