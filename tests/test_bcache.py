import pytest

from teachos.bcache import BufferCache, CacheError
from teachos.disk import MemDisk
from teachos.layout import BSIZE

NBLOCKS = 8


def _image():
    return b"".join(bytes([i]) * BSIZE for i in range(NBLOCKS))


@pytest.fixture
def disk():
    return MemDisk(_image())


def test_read_returns_block_contents(disk):
    cache = BufferCache(disk)
    b = cache.read(1, 3)
    assert bytes(b.data) == bytes([3]) * BSIZE
    assert b.locked and b.valid
    assert b.refcnt == 1


def test_cached_block_is_reused(disk):
    cache = BufferCache(disk)
    first = cache.read(1, 5)
    cache.release(first)
    again = cache.read(1, 5)
    assert again is first
    assert bytes(again.data) == bytes([5]) * BSIZE


def test_reading_held_block_fails(disk):
    cache = BufferCache(disk)
    cache.read(1, 2)
    with pytest.raises(CacheError):
        cache.read(1, 2)


def test_running_out_of_buffers(disk):
    cache = BufferCache(disk, nbuf=2)
    cache.read(1, 0)
    cache.read(1, 1)
    with pytest.raises(CacheError):
        cache.read(1, 2)


def test_dirty_buffer_is_not_recycled(disk):
    cache = BufferCache(disk, nbuf=1)
    b = cache.read(1, 0)
    b.dirty = True
    cache.release(b)
    with pytest.raises(CacheError):
        cache.read(1, 1)


def test_least_recently_used_is_recycled(disk):
    cache = BufferCache(disk, nbuf=2)
    b0 = cache.read(1, 0)
    cache.release(b0)
    b1 = cache.read(1, 1)
    cache.release(b1)
    b2 = cache.read(1, 2)
    assert b2 is b0
    assert bytes(b2.data) == bytes([2]) * BSIZE
    cache.release(b2)
    assert cache.read(1, 1) is b1


def test_write_reaches_disk(disk):
    cache = BufferCache(disk)
    b = cache.read(1, 4)
    b.data[:4] = b"data"
    cache.write(b)
    cache.release(b)
    assert disk.image()[4 * BSIZE:4 * BSIZE + 4] == b"data"
    assert b.dirty is False


def test_write_requires_held_buffer(disk):
    cache = BufferCache(disk)
    b = cache.read(1, 0)
    cache.release(b)
    with pytest.raises(CacheError):
        cache.write(b)


def test_release_requires_held_buffer(disk):
    cache = BufferCache(disk)
    b = cache.read(1, 0)
    cache.release(b)
    with pytest.raises(CacheError):
        cache.release(b)


def test_block_context_releases(disk):
    cache = BufferCache(disk)
    with cache.block(1, 6) as b:
        assert b.locked
        assert bytes(b.data) == bytes([6]) * BSIZE
    assert b.locked is False
    assert b.refcnt == 0


def test_block_context_releases_on_error(disk):
    cache = BufferCache(disk)
    with pytest.raises(KeyError):
        with cache.block(1, 6) as b:
            raise KeyError("boom")
    assert b.locked is False
    assert cache.read(1, 6) is b


def test_zero_buffers_rejected(disk):
    with pytest.raises(ValueError):
        BufferCache(disk, nbuf=0)