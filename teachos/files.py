"""Open file objects shared between descriptors: pipes and inodes."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from .fs import FileSystem, FsError, Inode, Stat
from .journal import MAXOPBLOCKS
from .layout import BSIZE
from .pipe import Pipe

NFILE = 100


class FileKind(enum.Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class OpenFile:
    """One open file: its kind, references, access mode and offset."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Optional[Pipe] = None
    ip: Optional[Inode] = None
    off: int = 0


class FileTable:
    """Fixed-size table of open files on top of a file system."""

    def __init__(
        self, fs: FileSystem, nfile: int = NFILE, maxopblocks: int = MAXOPBLOCKS
    ) -> None:
        self.fs = fs
        self.maxopblocks = maxopblocks
        self._files = [OpenFile() for _ in range(nfile)]

    def alloc(self) -> OpenFile:
        """Take a free entry with one reference; raises FsError if the table is full."""
        for f in self._files:
            if f.ref == 0:
                f.kind = FileKind.NONE
                f.ref = 1
                f.readable = False
                f.writable = False
                f.pipe = None
                f.ip = None
                f.off = 0
                return f
        raise FsError("filealloc: file table full")

    def dup(self, f: OpenFile) -> OpenFile:
        """Take another reference to ``f``."""
        if f.ref < 1:
            raise FsError("filedup")
        f.ref += 1
        return f

    def close(self, f: OpenFile) -> None:
        """Drop a reference; the last one closes the pipe end or releases the inode."""
        if f.ref < 1:
            raise FsError("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
        f.kind = FileKind.NONE
        f.pipe = None
        f.ip = None
        if kind is FileKind.PIPE and pipe is not None:
            pipe.close(writable)
        elif kind is FileKind.INODE and ip is not None:
            with self.fs.log.operation():
                self.fs.iput(ip)

    def stat(self, f: OpenFile) -> Stat:
        """Metadata of the inode behind ``f``; raises FsError for other kinds."""
        if f.kind is not FileKind.INODE or f.ip is None:
            raise FsError("stat of a file that is not an inode")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stat(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: OpenFile, n: int) -> bytes:
        """Read up to ``n`` bytes from ``f`` at its offset."""
        if not f.readable:
            raise FsError("file not open for reading")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.kind is FileKind.INODE and f.ip is not None:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise FsError("fileread")

    def write(self, f: OpenFile, data: bytes) -> int:
        """Write ``data`` to ``f``; inode writes go a few blocks per log operation."""
        if not f.writable:
            raise FsError("file not open for writing")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.kind is FileKind.INODE and f.ip is not None:
            # Room for the inode, an indirect block, allocation blocks and
            # two blocks of slop for unaligned writes.
            limit = ((self.maxopblocks - 1 - 1 - 2) // 2) * BSIZE
            if limit <= 0:
                raise FsError("log operations too small to write")
            payload = bytes(data)
            written = 0
            while written < len(payload):
                chunk = payload[written:written + limit]
                with self.fs.log.operation():
                    self.fs.ilock(f.ip)
                    try:
                        r = self.fs.writei(f.ip, chunk, f.off)
                        if r > 0:
                            f.off += r
                    finally:
                        self.fs.iunlock(f.ip)
                if r != len(chunk):
                    raise FsError("short filewrite")
                written += r
            return len(payload)
        raise FsError("filewrite")

    def open_pipe(self) -> tuple[OpenFile, OpenFile]:
        """Create a pipe; returns its (read end, write end)."""
        rf = self.alloc()
        try:
            wf = self.alloc()
        except FsError:
            self.close(rf)
            raise
        pipe = Pipe()
        rf.kind = FileKind.PIPE
        rf.readable = True
        rf.writable = False
        rf.pipe = pipe
        wf.kind = FileKind.PIPE
        wf.readable = False
        wf.writable = True
        wf.pipe = pipe
        return rf, wf