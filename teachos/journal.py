"""Write-ahead redo log that makes groups of block writes atomic."""

from __future__ import annotations

import struct
from contextlib import contextmanager
from typing import Iterator

from .bcache import Buffer, BufferCache
from .layout import BSIZE, Superblock

MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3

_COUNT = struct.Struct("<i")


class LogError(Exception):
    """Misuse of the log or a transaction that does not fit."""


class Log:
    """Collects the blocks written by file system operations and commits them.

    On disk the log is a header block (a count and the home block numbers)
    followed by the logged copies of those blocks.
    """

    def __init__(
        self,
        cache: BufferCache,
        dev: int,
        sb: Superblock,
        logsize: int = LOGSIZE,
        maxopblocks: int = MAXOPBLOCKS,
    ) -> None:
        if _COUNT.size * (1 + logsize) >= BSIZE:
            raise LogError("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.logsize = logsize
        self.maxopblocks = maxopblocks
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self.recover()

    def _read_head(self) -> list[int]:
        with self.cache.block(self.dev, self.start) as buf:
            (n,) = _COUNT.unpack_from(buf.data)
            if not 0 <= n <= self.logsize:
                raise LogError(f"log header holds bad count {n}")
            return list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))

    def _write_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            n = len(self.blocks)
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self.blocks)
            self.cache.write(buf)

    def _install(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as lbuf, \
                    self.cache.block(self.dev, blockno) as dbuf:
                dbuf.data[:] = lbuf.data
                self.cache.write(dbuf)

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as to, \
                    self.cache.block(self.dev, blockno) as src:
                to.data[:] = src.data
                self.cache.write(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()  # the real commit point
            self._install()
            self.blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self.blocks = self._read_head()
        self._install()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start a file system operation, reserving room in the log for it."""
        if self.committing:
            raise LogError("log is committing")
        reserved = len(self.blocks) + (self.outstanding + 1) * self.maxopblocks
        if reserved > self.logsize:
            raise LogError("operation might exhaust log space")
        self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last one outstanding commits the log."""
        if self.outstanding < 1:
            raise LogError("end_op without begin_op")
        self.outstanding -= 1
        if self.committing:
            raise LogError("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        n = len(self.blocks)
        if n >= self.logsize or n >= self.size - 1:
            raise LogError("too big a transaction")
        if self.outstanding < 1:
            raise LogError("log_write outside of trans")
        if buf.blockno not in self.blocks:
            self.blocks.append(buf.blockno)
        buf.dirty = True

    @contextmanager
    def operation(self) -> Iterator["Log"]:
        """Run a with-block as one file system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()