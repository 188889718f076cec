# teachos

`teachos` models the storage and I/O layers of a small Unix-like teaching
operating system in plain Python, using only the standard library.

## What is in it

- `teachos.layout` — the on-disk format: `Superblock`, `DiskInode` and
  `Dirent` with byte-exact `pack()` / `unpack()`, the `FileType` enum, and
  `inode_block()` / `bitmap_block()` for locating inodes and bitmap bits.
  Blocks are 512 bytes; an inode has 12 direct blocks and one indirect block.
- `teachos.mkfs` — `ImageBuilder` and `build_image()` lay out a fresh image
  (boot block, superblock, log, inode blocks, free bitmap, data blocks) with a
  root directory holding the given files. Defaults: 1000 blocks, 200 inodes,
  30 log blocks.
- `teachos.disk` — `MemDisk`, a block device backed by an image held in
  memory (device number 1 by default).
- `teachos.bcache` — `BufferCache`, a fixed pool of `Buffer` objects recycled
  in least-recently-used order; `block()` holds a buffer for a `with` block.
- `teachos.journal` — `Log`, a redo log. File system updates go inside
  `Log.operation()` (or `begin_op()` / `end_op()`); the last operation to end
  commits. `recover()` replays a committed transaction found on disk and runs
  when the log is created.
- `teachos.fs` — `FileSystem`: inode cache (`iget`, `idup`, `ilock`,
  `iunlock`, `iput`, `iunlockput`), allocation (`ialloc`, `iupdate`), content
  (`readi`, `writei`, `stat`), directories (`dirlookup`, `dirlink`) and paths
  (`namei`, `nameiparent`, `skip_elem`). Device inodes are served by objects
  passed in `devices`, keyed by major number.
- `teachos.files` and `teachos.pipe` — `FileTable` of reference-counted
  `OpenFile` entries over inodes or pipes, and `Pipe`, a 512-byte bounded
  channel whose reads and writes block on a condition variable.
- `teachos.console` — `Console`, a line-editing input buffer (backspace,
  Control-U to kill the line, Control-D for end of input, Control-P calls
  `on_procdump`) writing its echo to a text stream.
- `teachos.keyboard` — `Keyboard`, a PC scancode decoder tracking shift,
  control, Caps Lock and the E0 escape.
- `teachos.mp` — finding and checking the MP floating pointer and
  configuration table in a memory image; `parse_machine()` returns a
  `MachineConfig` with the processors' APIC ids, the I/O APIC id and the
  local APIC address.
- `teachos.pattern`, `teachos.fmt`, `teachos.tools` — a matcher supporting
  `^ . * $`, a minimal `%d %x %p %s %c %%` formatter, and `cat`, `echo` and
  `grep`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Commands

Build an image from files in the current directory (names must not contain
`/`; a leading `_` is dropped inside the image):

```
teachos-mkfs fs.img README _cat _echo
```

Print files, or standard input when none is given:

```
teachos-cat notes.txt
```

Print the arguments separated by spaces:

```
teachos-echo hello world
```

Print the lines that match a pattern, from files or standard input:

```
teachos-grep '^ab*c$' notes.txt
```

## Library use

Build an image in memory, mount it and read a file:

```python
from teachos.bcache import BufferCache
from teachos.disk import MemDisk
from teachos.fs import FileSystem, read_superblock
from teachos.journal import Log
from teachos.mkfs import build_image

image = build_image([("hello.txt", b"hi\n")])
disk = MemDisk(image)
cache = BufferCache(disk)
log = Log(cache, disk.dev, read_superblock(cache, disk.dev))
fs = FileSystem(cache, log, disk.dev)

ip = fs.namei("/hello.txt")
fs.ilock(ip)
data = fs.readi(ip, 0, ip.size)   # b"hi\n"
fs.iunlockput(ip)
```

Changes made through `ialloc`, `iupdate`, `writei` or `dirlink` must happen
inside `with log.operation():`; `MemDisk.image()` returns the disk contents
afterwards.

Patterns and formatting:

```python
from teachos.fmt import format
from teachos.pattern import match

match("^a.c$", "abc")                     # True
format("%d items in %s\n", 3, "root")     # "3 items in root\n"
```

Conditions that cannot be recovered from are raised as exceptions:
`DiskError`, `CacheError`, `LogError`, `FsError`, `PipeError` and `MPError`.

## What it does not do

There are no processes, scheduler, system calls, virtual memory or shell, and
nothing talks to real disks or hardware. The log does not wait for room:
`begin_op()` raises `LogError` when the log is committing or an operation
might not fit, so it is meant for one caller at a time. There is no command
for listing or extracting the contents of an image; use `FileSystem` for that.