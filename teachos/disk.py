"""A disk kept entirely in memory, addressed in blocks."""

from __future__ import annotations

from typing import Protocol

from .layout import BSIZE

DEFAULT_DEV = 1


class DiskError(Exception):
    """A request the disk cannot carry out."""


class _Syncable(Protocol):
    dev: int
    blockno: int
    data: bytearray
    valid: bool
    dirty: bool
    locked: bool


class MemDisk:
    """Holds a file system image in memory and serves block reads and writes."""

    def __init__(self, image: bytes, dev: int = DEFAULT_DEV) -> None:
        self._data = bytearray(image)
        self.dev = dev
        self.nblocks = len(self._data) // BSIZE

    def sync(self, buf: _Syncable) -> None:
        """Write ``buf`` if dirty, else read it; either way it ends up valid."""
        if not buf.locked:
            raise DiskError("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise DiskError("iderw: nothing to do")
        if buf.dev != self.dev:
            raise DiskError(f"iderw: request not for disk {self.dev}")
        if not 0 <= buf.blockno < self.nblocks:
            raise DiskError("iderw: block out of range")
        if len(buf.data) != BSIZE:
            raise DiskError(f"buffer must hold {BSIZE} bytes")

        start = buf.blockno * BSIZE
        if buf.dirty:
            buf.dirty = False
            self._data[start:start + BSIZE] = buf.data
        else:
            buf.data[:] = self._data[start:start + BSIZE]
        buf.valid = True

    def image(self) -> bytes:
        """Current contents of the whole disk."""
        return bytes(self._data)