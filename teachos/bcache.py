"""Buffer cache: a fixed set of block buffers kept in most-recently-used order."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .layout import BSIZE

NBUF = 30


class CacheError(Exception):
    """Misuse of the buffer cache or no buffer available."""


def _block() -> bytearray:
    return bytearray(BSIZE)


@dataclass(eq=False)
class Buffer:
    """Cached copy of one disk block."""

    dev: int = 0
    blockno: int = 0
    data: bytearray = field(default_factory=_block)
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    locked: bool = False


class BufferCache:
    """Caches disk blocks; only one user may hold a buffer at a time."""

    def __init__(self, disk, nbuf: int = NBUF) -> None:
        if nbuf < 1:
            raise ValueError("a buffer cache needs at least one buffer")
        self.disk = disk
        # Index 0 is the most recently used buffer.
        self._mru = [Buffer() for _ in range(nbuf)]

    def _get(self, dev: int, blockno: int) -> Buffer:
        for b in self._mru:
            if b.dev == dev and b.blockno == blockno:
                if b.locked:
                    raise CacheError(f"block {blockno} on device {dev} is in use")
                b.refcnt += 1
                b.locked = True
                return b

        # Not cached; recycle the least recently used free, clean buffer.
        # A dirty buffer is pinned by the log until it is committed.
        for b in reversed(self._mru):
            if b.refcnt == 0 and not b.dirty:
                b.dev = dev
                b.blockno = blockno
                b.valid = False
                b.dirty = False
                b.refcnt = 1
                b.locked = True
                return b
        raise CacheError("bget: no buffers")

    def read(self, dev: int, blockno: int) -> Buffer:
        """Return a locked buffer holding the contents of the block."""
        b = self._get(dev, blockno)
        if not b.valid:
            self.disk.sync(b)
        return b

    def write(self, buf: Buffer) -> None:
        """Write the buffer's contents to disk; the buffer must be held."""
        if not buf.locked:
            raise CacheError("bwrite")
        buf.dirty = True
        self.disk.sync(buf)

    def release(self, buf: Buffer) -> None:
        """Give up a held buffer, making it the most recently used."""
        if not buf.locked:
            raise CacheError("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._mru.remove(buf)
            self._mru.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buffer]:
        """Hold the block's buffer for the duration of a with-block."""
        buf = self.read(dev, blockno)
        try:
            yield buf
        finally:
            self.release(buf)