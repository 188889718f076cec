"""Inodes, directories and path names on top of the buffer cache and the log."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol

from .bcache import BufferCache
from .journal import Log
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DiskInode,
    Dirent,
    FileType,
    Superblock,
    bitmap_block,
    inode_block,
)

NINODE = 50

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class FsError(Exception):
    """A file system operation that cannot be carried out."""


class Device(Protocol):
    """Driver for a device inode, looked up by its major number."""

    def read(self, n: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...


def _empty_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus its cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    locked: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_empty_addrs)


@dataclass(frozen=True)
class Stat:
    """Metadata about an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


def read_superblock(cache: BufferCache, dev: int) -> Superblock:
    """Read the superblock from block 1 of ``dev``."""
    with cache.block(dev, 1) as buf:
        return Superblock.unpack(bytes(buf.data))


def skip_elem(path: str) -> Optional[tuple[str, str]]:
    """Split off the first element of ``path``.

    Returns ``(name, rest)`` where ``rest`` has no leading slashes, or None
    when there is no element left. Names are cut to DIRSIZ characters.
    """
    path = path.lstrip("/")
    if not path:
        return None
    name, _, rest = path.partition("/")
    return name[:DIRSIZ], rest.lstrip("/")


def _names_equal(a: str, b: str) -> bool:
    return a.encode("utf-8")[:DIRSIZ] == b.encode("utf-8")[:DIRSIZ]


class FileSystem:
    """Allocates blocks and inodes and reads, writes and names files on one device."""

    def __init__(
        self,
        cache: BufferCache,
        log: Log,
        dev: int,
        ninode: int = NINODE,
        devices: Optional[Mapping[int, Device]] = None,
    ) -> None:
        if ninode < 1:
            raise ValueError("the inode cache needs at least one slot")
        self.cache = cache
        self.log = log
        self.dev = dev
        self.devices: dict[int, Device] = dict(devices or {})
        self.sb = read_superblock(cache, dev)
        self._icache = [Inode() for _ in range(ninode)]

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.cache.block(self.dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _balloc(self) -> int:
        size = self.sb.size
        for b in range(0, size, BPB):
            found = None
            with self.cache.block(self.dev, bitmap_block(b, self.sb)) as bp:
                for bi in range(min(BPB, size - b)):
                    mask = 1 << (bi % 8)
                    if not bp.data[bi // 8] & mask:
                        bp.data[bi // 8] |= mask
                        self.log.log_write(bp)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise FsError("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self.cache.block(self.dev, bitmap_block(b, self.sb)) as bp:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if not bp.data[bi // 8] & mask:
                raise FsError("freeing free block")
            bp.data[bi // 8] &= ~mask & 0xFF
            self.log.log_write(bp)

    # Inodes.

    @staticmethod
    def _slot(inum: int) -> slice:
        start = (inum % IPB) * DINODE_SIZE
        return slice(start, start + DINODE_SIZE)

    def ialloc(self, file_type: int) -> Inode:
        """Allocate a free inode on disk with the given type; returned unlocked."""
        for inum in range(1, self.sb.ninodes):
            slot = self._slot(inum)
            with self.cache.block(self.dev, inode_block(inum, self.sb)) as bp:
                din = DiskInode.unpack(bytes(bp.data[slot]))
                if din.type != 0:
                    continue
                bp.data[slot] = DiskInode(type=int(file_type)).pack()
                self.log.log_write(bp)
            return self.iget(inum)
        raise FsError("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy the in-memory inode to disk; the caller holds its lock."""
        slot = self._slot(ip.inum)
        din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
        with self.cache.block(ip.dev, inode_block(ip.inum, self.sb)) as bp:
            bp.data[slot] = din.pack()
            self.log.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode for ``inum``, unlocked and not read from disk."""
        empty = None
        for ip in self._icache:
            if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise FsError("iget: no inodes")
        empty.dev = self.dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        empty.locked = False
        return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        ip.ref += 1
        return ip

    def ilock(self, ip: Optional[Inode]) -> None:
        """Lock ``ip``, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise FsError("ilock")
        if ip.locked:
            raise FsError(f"ilock: inode {ip.inum} already locked")
        ip.locked = True
        if not ip.valid:
            slot = self._slot(ip.inum)
            with self.cache.block(ip.dev, inode_block(ip.inum, self.sb)) as bp:
                din = DiskInode.unpack(bytes(bp.data[slot]))
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise FsError("ilock: no type")

    def iunlock(self, ip: Optional[Inode]) -> None:
        """Unlock ``ip``."""
        if ip is None or not ip.locked or ip.ref < 1:
            raise FsError("iunlock")
        ip.locked = False

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        if ip.locked:
            raise FsError(f"iput: inode {ip.inum} is locked")
        ip.locked = True
        try:
            if ip.valid and ip.nlink == 0 and ip.ref == 1:
                self._itrunc(ip)
                ip.type = 0
                self.iupdate(ip)
                ip.valid = False
        finally:
            ip.locked = False
        ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        """Unlock, then drop a reference."""
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                entries = list(_INDIRECT.unpack(bytes(bp.data)))
                if entries[bn] == 0:
                    entries[bn] = self._balloc()
                    bp.data[:] = _INDIRECT.pack(*entries)
                    self.log.log_write(bp)
                return entries[bn]
        raise FsError("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                entries = _INDIRECT.unpack(bytes(bp.data))
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stat(self, ip: Inode) -> Stat:
        """Metadata of a locked inode."""
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def _device(self, ip: Inode) -> Device:
        try:
            return self.devices[ip.major]
        except KeyError:
            raise FsError(f"no driver for device {ip.major}") from None

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off`` from a locked inode."""
        if ip.type == FileType.DEVICE:
            return bytes(self._device(ip).read(n))
        if off < 0 or n < 0 or off > ip.size:
            raise FsError(f"read at offset {off} past end of file")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            with self.cache.block(ip.dev, self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start:start + m]
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off`` into a locked inode; returns the count written."""
        if ip.type == FileType.DEVICE:
            return self._device(ip).write(bytes(data))
        n = len(data)
        if off < 0 or off > ip.size:
            raise FsError(f"write at offset {off} past end of file")
        if off + n > MAXFILE * BSIZE:
            raise FsError("write exceeds the maximum file size")
        pos = 0
        while pos < n:
            with self.cache.block(ip.dev, self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - pos, BSIZE - start)
                bp.data[start:start + m] = data[pos:pos + m]
                self.log.log_write(bp)
            pos += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def dirlookup(self, dp: Inode, name: str) -> Optional[tuple[Inode, int]]:
        """Find ``name`` in locked directory ``dp``; returns (inode, offset) or None."""
        if dp.type != FileType.DIR:
            raise FsError("dirlookup not DIR")
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise FsError("dirlookup read")
            de = Dirent.unpack(raw)
            if de.inum == 0:
                continue
            if _names_equal(name, de.name):
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (name, inum) to locked directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FsError(f"{name!r} already exists")
        off = 0
        while off < dp.size:
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise FsError("dirlink read")
            if Dirent.unpack(raw).inum == 0:
                break
            off += DIRENT_SIZE
        if self.writei(dp, Dirent(inum, name).pack(), off) != DIRENT_SIZE:
            raise FsError("dirlink")

    # Paths.

    def _namex(
        self, path: str, parent: bool, cwd: Optional[Inode]
    ) -> Optional[tuple[Inode, str]]:
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        step = skip_elem(path)
        while step is not None:
            name, path = step
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]
            step = skip_elem(path)
        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Optional[Inode] = None) -> Optional[Inode]:
        """Inode for ``path``, or None; relative paths start at ``cwd`` (root if None)."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(
        self, path: str, cwd: Optional[Inode] = None
    ) -> Optional[tuple[Inode, str]]:
        """Parent directory of ``path`` and its final element, or None."""
        return self._namex(path, True, cwd)