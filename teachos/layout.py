"""On-disk file system format: block layout, superblock, inodes and directory entries."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

ROOTINO = 1
BSIZE = 512

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

SUPERBLOCK_SIZE = _SUPERBLOCK.size
DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

# Inodes per block.
IPB = BSIZE // DINODE_SIZE
# Bitmap bits per block.
BPB = BSIZE * 8


class FileType(IntEnum):
    """Kind of object an inode describes; zero on disk means a free inode."""

    DIR = 1
    FILE = 2
    DEVICE = 3


def _require(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


@dataclass
class Superblock:
    """Describes the disk layout; stored in block 1."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Superblock":
        _require(data, SUPERBLOCK_SIZE, "superblock")
        return cls(*_SUPERBLOCK.unpack_from(data))


def _empty_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass
class DiskInode:
    """On-disk inode: type, device numbers, link count, size and block addresses."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_empty_addrs)

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds {NDIRECT + 1} addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data: bytes) -> "DiskInode":
        _require(data, DINODE_SIZE, "inode")
        kind, major, minor, nlink, size, *addrs = _DINODE.unpack_from(data)
        return cls(kind, major, minor, nlink, size, list(addrs))


@dataclass
class Dirent:
    """Directory entry: an inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    def pack(self) -> bytes:
        # struct pads with NULs and truncates to DIRSIZ, as strncpy does.
        return _DIRENT.pack(self.inum, self.name.encode("utf-8"))

    @classmethod
    def unpack(cls, data: bytes) -> "Dirent":
        _require(data, DIRENT_SIZE, "directory entry")
        inum, raw = _DIRENT.unpack_from(data)
        name = raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        return cls(inum, name)


def inode_block(inum: int, sb: Superblock) -> int:
    """Block that holds inode ``inum``."""
    return inum // IPB + sb.inodestart


def bitmap_block(b: int, sb: Superblock) -> int:
    """Block of the free map that holds the bit for block ``b``."""
    return b // BPB + sb.bmapstart