"""Minimal printf-style formatting: %d, %x, %p, %s, %c and %%."""

from __future__ import annotations

UPPER_DIGITS = "0123456789ABCDEF"

_MASK32 = 0xFFFFFFFF


def _as_int32(value: int) -> int:
    value &= _MASK32
    return value - (1 << 32) if value & 0x80000000 else value


def format_int(value: int, base: int, signed: bool, digits: str = UPPER_DIGITS) -> str:
    """Render a 32-bit integer in ``base``; negative only when ``signed``."""
    if not 2 <= base <= len(digits):
        raise ValueError(f"unsupported base {base}")
    xx = _as_int32(value)
    negative = signed and xx < 0
    x = -xx if negative else xx & _MASK32
    out = []
    while True:
        x, rem = divmod(x, base)
        out.append(digits[rem])
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _char(value) -> str:
    if isinstance(value, str):
        return value[:1]
    return chr(int(value) & 0xFF)


def format(fmt: str, *args) -> str:
    """Format ``args`` into ``fmt``; unknown % sequences are copied through."""
    values = iter(args)

    def take():
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out: list[str] = []
    in_spec = False
    for c in fmt:
        if not in_spec:
            if c == "%":
                in_spec = True
            else:
                out.append(c)
            continue
        in_spec = False
        if c == "d":
            out.append(format_int(take(), 10, True))
        elif c in "xp":
            out.append(format_int(take(), 16, False))
        elif c == "s":
            s = take()
            out.append("(null)" if s is None else str(s))
        elif c == "c":
            out.append(_char(take()))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)