"""In-memory pipe with a bounded buffer, a read end and a write end."""

from __future__ import annotations

import threading

PIPESIZE = 512


class PipeError(Exception):
    """A write to a pipe whose read end has been closed."""


class Pipe:
    """Bounded byte channel; readers and writers block the way pipes do.

    A write blocks while the buffer is full and a reader remains. A read
    blocks while the buffer is empty and a writer remains. Once the write
    end is closed, a read of an empty pipe returns ``b""``.
    """

    def __init__(self) -> None:
        self._data = bytearray(PIPESIZE)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True
        self._cond = threading.Condition()

    def write(self, data: bytes) -> int:
        """Write all of ``data``; raises PipeError if the pipe fills with no reader."""
        payload = bytes(data)
        with self._cond:
            for byte in payload:
                while self.nwrite == self.nread + PIPESIZE:
                    if not self.readopen:
                        raise PipeError("write to a pipe with no reader")
                    self._cond.notify_all()
                    self._cond.wait()
                self._data[self.nwrite % PIPESIZE] = byte
                self.nwrite += 1
            self._cond.notify_all()
        return len(payload)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, waiting while the pipe is empty and a writer remains."""
        if n < 0:
            raise ValueError("cannot read a negative number of bytes")
        with self._cond:
            while self.nread == self.nwrite and self.writeopen:
                self._cond.wait()
            out = bytearray()
            while len(out) < n and self.nread != self.nwrite:
                out.append(self._data[self.nread % PIPESIZE])
                self.nread += 1
            self._cond.notify_all()
            return bytes(out)

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()