import pytest

from teachos.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    DiskInode,
    Dirent,
    FileType,
    Superblock,
    bitmap_block,
    inode_block,
)


def _sb():
    return Superblock(
        size=1000, nblocks=941, ninodes=200, nlog=30, logstart=2, inodestart=32, bmapstart=58
    )


def test_superblock_round_trip():
    sb = _sb()
    assert Superblock.unpack(sb.pack()) == sb


def test_superblock_is_little_endian():
    sb = Superblock(size=1)
    assert sb.pack()[:4] == b"\x01\x00\x00\x00"


def test_superblock_unpack_ignores_trailing_bytes():
    sb = _sb()
    assert Superblock.unpack(sb.pack() + bytes(100)) == sb


def test_superblock_unpack_too_short():
    with pytest.raises(ValueError):
        Superblock.unpack(b"\x00" * 4)


def test_disk_inode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    din = DiskInode(type=FileType.FILE, major=0, minor=0, nlink=2, size=1234, addrs=addrs)
    back = DiskInode.unpack(din.pack())
    assert back == din
    assert back.addrs == addrs


def test_disk_inodes_fill_a_block_exactly():
    assert len(DiskInode().pack()) * IPB == BSIZE


def test_disk_inode_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[0, 1]).pack()


def test_disk_inode_unpack_too_short():
    with pytest.raises(ValueError):
        DiskInode.unpack(bytes(10))


def test_dirent_round_trip():
    de = Dirent(7, "README")
    assert Dirent.unpack(de.pack()) == de


def test_dirent_name_truncated_to_dirsiz():
    de = Dirent(5, "abcdefghijklmnopq")
    packed = de.pack()
    assert packed[2:] == b"abcdefghijklmn"
    assert Dirent.unpack(packed).name == "abcdefghijklmnopq"[:DIRSIZ]


def test_dirents_fill_a_block_exactly():
    size = len(Dirent().pack())
    assert BSIZE % size == 0
    assert size == 2 + DIRSIZ


def test_inode_block_boundaries():
    sb = _sb()
    assert inode_block(0, sb) == sb.inodestart
    assert inode_block(IPB - 1, sb) == sb.inodestart
    assert inode_block(IPB, sb) == sb.inodestart + 1


def test_bitmap_block_boundaries():
    sb = _sb()
    assert bitmap_block(0, sb) == sb.bmapstart
    assert bitmap_block(BPB - 1, sb) == sb.bmapstart
    assert bitmap_block(BPB, sb) == sb.bmapstart + 1