import pytest

from teachos.bcache import Buffer
from teachos.disk import DiskError, MemDisk
from teachos.layout import BSIZE


def _image(nblocks=4):
    return b"".join(bytes([i + 1]) * BSIZE for i in range(nblocks))


def _buf(blockno, dev=1, locked=True, valid=False, dirty=False):
    return Buffer(dev=dev, blockno=blockno, valid=valid, dirty=dirty, locked=locked)


def test_read_fills_buffer_and_marks_valid():
    disk = MemDisk(_image())
    b = _buf(2)
    disk.sync(b)
    assert bytes(b.data) == bytes([3]) * BSIZE
    assert b.valid is True
    assert b.dirty is False


def test_write_stores_data_and_clears_dirty():
    disk = MemDisk(_image())
    b = _buf(1, dirty=True)
    b.data[:] = b"z" * BSIZE
    disk.sync(b)
    assert disk.image()[BSIZE:2 * BSIZE] == b"z" * BSIZE
    assert b.dirty is False
    assert b.valid is True


def test_write_leaves_other_blocks_alone():
    original = _image()
    disk = MemDisk(original)
    b = _buf(0, dirty=True)
    disk.sync(b)
    assert disk.image()[BSIZE:] == original[BSIZE:]


def test_unlocked_buffer_rejected():
    disk = MemDisk(_image())
    with pytest.raises(DiskError):
        disk.sync(_buf(0, locked=False))


def test_valid_clean_buffer_has_nothing_to_do():
    disk = MemDisk(_image())
    with pytest.raises(DiskError):
        disk.sync(_buf(0, valid=True))


def test_wrong_device_rejected():
    disk = MemDisk(_image())
    with pytest.raises(DiskError):
        disk.sync(_buf(0, dev=0))


def test_block_out_of_range_rejected():
    disk = MemDisk(_image(4))
    with pytest.raises(DiskError):
        disk.sync(_buf(4))


def test_partial_trailing_block_is_not_addressable():
    disk = MemDisk(_image(2) + b"x" * 10)
    assert disk.nblocks == 2
    with pytest.raises(DiskError):
        disk.sync(_buf(2))


def test_image_is_a_snapshot():
    source = bytearray(_image())
    disk = MemDisk(bytes(source))
    source[0] = 0xFF
    assert disk.image() == _image()