"""Disk image builder, buffer cache, redo log, file system, pipes, console, keyboard, MP tables and small text tools."""

__version__ = "0.1.0"

__all__ = [
    "bcache",
    "console",
    "disk",
    "files",
    "fmt",
    "fs",
    "journal",
    "keyboard",
    "layout",
    "mkfs",
    "mp",
    "pattern",
    "pipe",
    "tools",
]