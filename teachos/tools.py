"""Small user programs: cat, echo and grep."""

from __future__ import annotations

import sys
from typing import BinaryIO, Iterator, Sequence, TextIO

from .pattern import grep_lines

_CAT_CHUNK = 512
_GREP_CHUNK = 1023


def cat(stream: BinaryIO, out: BinaryIO) -> None:
    """Copy ``stream`` to ``out``; raises OSError on a read or short write."""
    while True:
        try:
            chunk = stream.read(_CAT_CHUNK)
        except OSError as exc:
            raise OSError("cat: read error") from exc
        if not chunk:
            return
        written = out.write(chunk)
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")


def echo(words: Sequence[str], out: TextIO) -> None:
    """Write ``words`` separated by spaces and ended by a newline."""
    if words:
        out.write(" ".join(words) + "\n")


def _args(argv: Sequence[str] | None) -> list[str]:
    return list(sys.argv[1:] if argv is None else argv)


def cat_main(argv: Sequence[str] | None = None) -> int:
    args = _args(argv)
    out = sys.stdout.buffer
    try:
        if not args:
            cat(sys.stdin.buffer, out)
            return 0
        for name in args:
            try:
                stream = open(name, "rb")
            except OSError:
                out.write(f"cat: cannot open {name}\n".encode())
                return 1
            with stream:
                cat(stream, out)
    except OSError as exc:
        out.write(f"{exc}\n".encode())
        return 1
    finally:
        out.flush()
    return 0


def echo_main(argv: Sequence[str] | None = None) -> int:
    echo(_args(argv), sys.stdout)
    return 0


def _chunks(stream: TextIO) -> Iterator[str]:
    return iter(lambda: stream.read(_GREP_CHUNK), "")


def grep_main(argv: Sequence[str] | None = None) -> int:
    args = _args(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, names = args[0], args[1:]
    if not names:
        sys.stdout.writelines(grep_lines(pattern, _chunks(sys.stdin)))
        return 0
    for name in names:
        try:
            stream = open(name, encoding="utf-8", errors="replace")
        except OSError:
            sys.stdout.write(f"grep: cannot open {name}\n")
            return 1
        with stream:
            sys.stdout.writelines(grep_lines(pattern, _chunks(stream)))
    return 0