import pytest

from teachos.bcache import BufferCache
from teachos.disk import MemDisk
from teachos.files import FileKind, FileTable
from teachos.fs import FileSystem, FsError, read_superblock
from teachos.journal import Log
from teachos.layout import FileType
from teachos.mkfs import build_image

CONTENT = b"hi there"


@pytest.fixture
def table():
    image = build_image([("hello", CONTENT)])
    disk = MemDisk(image)
    cache = BufferCache(disk)
    sb = read_superblock(cache, disk.dev)
    log = Log(cache, disk.dev, sb)
    fs = FileSystem(cache, log, disk.dev)
    return FileTable(fs)


def open_inode(table, path, readable=True, writable=False):
    ip = table.fs.namei(path)
    f = table.alloc()
    f.kind = FileKind.INODE
    f.ip = ip
    f.readable = readable
    f.writable = writable
    return f


def test_read_inode_file(table):
    f = open_inode(table, "/hello")
    assert table.read(f, 100) == CONTENT
    assert f.off == len(CONTENT)
    assert table.read(f, 100) == b""


def test_stat_inode_file(table):
    f = open_inode(table, "/hello")
    st = table.stat(f)
    assert st.size == len(CONTENT)
    assert st.type == FileType.FILE


def test_write_spans_several_operations_and_reads_back(table):
    payload = bytes(range(250)) * 16
    f = open_inode(table, "/hello", readable=False, writable=True)
    assert table.write(f, payload) == len(payload)
    assert f.off == len(payload)
    g = open_inode(table, "/hello")
    assert table.read(g, len(payload) + 100) == payload
    assert table.stat(g).size == len(payload)


def test_close_releases_inode_reference(table):
    f = open_inode(table, "/hello")
    ip = f.ip
    refs = ip.ref
    table.close(f)
    assert ip.ref == refs - 1
    assert f.kind is FileKind.NONE


def test_dup_and_close(table):
    f = table.alloc()
    assert table.dup(f) is f
    assert f.ref == 2
    table.close(f)
    assert f.ref == 1
    table.close(f)
    assert f.ref == 0
    with pytest.raises(FsError):
        table.close(f)
    with pytest.raises(FsError):
        table.dup(f)


def test_pipe_round_trip(table):
    r, w = table.open_pipe()
    assert table.write(w, b"abc") == 3
    assert table.read(r, 10) == b"abc"
    table.close(w)
    assert table.read(r, 10) == b""


def test_pipe_ends_have_one_direction(table):
    r, w = table.open_pipe()
    with pytest.raises(FsError):
        table.read(w, 1)
    with pytest.raises(FsError):
        table.write(r, b"x")


def test_stat_of_pipe_fails(table):
    r, _ = table.open_pipe()
    with pytest.raises(FsError):
        table.stat(r)


def test_table_full(table):
    small = FileTable(table.fs, nfile=2)
    small.alloc()
    small.alloc()
    with pytest.raises(FsError):
        small.alloc()


def test_open_pipe_failure_frees_slot(table):
    small = FileTable(table.fs, nfile=1)
    with pytest.raises(FsError):
        small.open_pipe()
    f = small.alloc()
    assert f.ref == 1