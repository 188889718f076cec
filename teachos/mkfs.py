"""Build a file system image holding a root directory and a set of files."""

from __future__ import annotations

import struct
import sys
from pathlib import Path
from typing import Iterable, Sequence

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DiskInode,
    Dirent,
    FileType,
    Superblock,
    inode_block,
)

DEFAULT_SIZE = 1000
DEFAULT_NINODES = 200
DEFAULT_NLOG = 30

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a fresh image: boot, superblock, log, inodes, bitmap, data."""

    def __init__(
        self,
        size: int = DEFAULT_SIZE,
        ninodes: int = DEFAULT_NINODES,
        nlog: int = DEFAULT_NLOG,
    ) -> None:
        self.size = size
        self.nbitmap = size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = nlog
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = size - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("image too small for its metadata")

        self.sb = Superblock(
            size=size,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.freeinode = 1
        self.freeblock = self.nmeta
        self._image = bytearray(size * BSIZE)
        self._finished = False

        self._wsect(1, self.sb.pack())

        self.root = self.ialloc(FileType.DIR)
        if self.root != ROOTINO:
            raise RuntimeError("root directory did not get the root inode number")
        self.append(self.root, Dirent(self.root, ".").pack())
        self.append(self.root, Dirent(self.root, "..").pack())

    def _check_sector(self, sec: int) -> None:
        if not 0 <= sec < self.size:
            raise ValueError(f"sector {sec} outside image of {self.size} blocks")

    def _rsect(self, sec: int) -> bytes:
        self._check_sector(sec)
        return bytes(self._image[sec * BSIZE:(sec + 1) * BSIZE])

    def _wsect(self, sec: int, data: bytes) -> None:
        self._check_sector(sec)
        block = bytes(data[:BSIZE]).ljust(BSIZE, b"\0")
        self._image[sec * BSIZE:(sec + 1) * BSIZE] = block

    def _next_block(self) -> int:
        if self.freeblock >= self.size:
            raise ValueError("image out of data blocks")
        block = self.freeblock
        self.freeblock += 1
        return block

    def ialloc(self, file_type: int) -> int:
        """Allocate the next inode with the given type and one link."""
        inum = self.freeinode
        if inum >= self.sb.ninodes:
            raise ValueError("image out of inodes")
        self.freeinode += 1
        self.write_inode(inum, DiskInode(type=int(file_type), nlink=1, size=0))
        return inum

    def read_inode(self, inum: int) -> DiskInode:
        block = self._rsect(inode_block(inum, self.sb))
        offset = (inum % IPB) * DINODE_SIZE
        return DiskInode.unpack(block[offset:offset + DINODE_SIZE])

    def write_inode(self, inum: int, inode: DiskInode) -> None:
        bn = inode_block(inum, self.sb)
        block = bytearray(self._rsect(bn))
        offset = (inum % IPB) * DINODE_SIZE
        block[offset:offset + DINODE_SIZE] = inode.pack()
        self._wsect(bn, block)

    def _block_for(self, din: DiskInode, fbn: int) -> int:
        if fbn < NDIRECT:
            if din.addrs[fbn] == 0:
                din.addrs[fbn] = self._next_block()
            return din.addrs[fbn]
        if din.addrs[NDIRECT] == 0:
            din.addrs[NDIRECT] = self._next_block()
        indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
        if indirect[fbn - NDIRECT] == 0:
            indirect[fbn - NDIRECT] = self._next_block()
            self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
        return indirect[fbn - NDIRECT]

    def append(self, inum: int, data: bytes) -> None:
        """Append ``data`` to the content of inode ``inum``."""
        din = self.read_inode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file exceeds the maximum file size")
            block = self._block_for(din, fbn)
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            start = block * BSIZE + off - fbn * BSIZE
            self._image[start:start + n1] = data[pos:pos + n1]
            pos += n1
            off += n1
        din.size = off
        self.write_inode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Store ``data`` as a file in the root directory; a leading '_' is dropped."""
        if "/" in name:
            raise ValueError(f"file name must not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(FileType.FILE)
        self.append(self.root, Dirent(inum, name).pack())
        self.append(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round the root directory size up, write the bitmap and return the image."""
        if self._finished:
            raise RuntimeError("image already finished")
        din = self.read_inode(self.root)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self.write_inode(self.root, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("allocated blocks do not fit in one bitmap block")
        bitmap = bytearray(BSIZE)
        for block in range(used):
            bitmap[block // 8] |= 1 << (block % 8)
        self._wsect(self.sb.bmapstart, bitmap)
        self._finished = True
        return bytes(self._image)


def build_image(
    files: Iterable[tuple[str, bytes]],
    size: int = DEFAULT_SIZE,
    ninodes: int = DEFAULT_NINODES,
    nlog: int = DEFAULT_NLOG,
) -> bytes:
    """Build an image holding ``files``, given as (name, content) pairs."""
    builder = ImageBuilder(size, ninodes, nlog)
    for name, data in files:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    image_path, names = args[0], args[1:]

    try:
        builder = ImageBuilder()
        print(
            f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
            f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
            f"blocks {builder.nblocks} total {builder.size}"
        )
        for name in names:
            if "/" in name:
                raise ValueError(f"file name must not contain '/': {name!r}")
            builder.add_file(name, Path(name).read_bytes())
        used = builder.freeblock
        image = builder.finish()
        print(f"balloc: first {used} blocks have been allocated")
        print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
        Path(image_path).write_bytes(image)
    except (OSError, ValueError) as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1
    return 0