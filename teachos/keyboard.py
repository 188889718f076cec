"""PC keyboard scancode decoder with shift, control and lock state."""

from __future__ import annotations

from typing import Iterable

NO = 0

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2

CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5

E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctrl(x: str) -> int:
    return (ord(x) - ord("@")) & 0xFF


_SHIFTCODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
_TOGGLECODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}

_KEYPAD = (
    "\x00 \x00\x00\x00\x00\x00\x00"  # 0x38
    "\x00\x00\x00\x00\x00\x00\x007"  # 0x40
    "89-456+1"
    "230.\x00\x00\x00\x00"  # 0x50
)

_NORMAL = (
    "\x00\x1b123456"  # 0x00
    "7890-=\b\t"
    "qwertyui"  # 0x10
    "op[]\n\x00as"
    "dfghjkl;"  # 0x20
    "'`\x00\\zxcv"
    "bnm,./\x00*"  # 0x30
) + _KEYPAD

_SHIFTED = (
    "\x00\x1b!@#$%^"  # 0x00
    "&*()_+\b\t"
    "QWERTYUI"  # 0x10
    "OP{}\n\x00AS"
    "DFGHJKL:"  # 0x20
    "\"~\x00|ZXCV"
    "BNM<>?\x00*"  # 0x30
) + _KEYPAD

_SPECIAL = {
    0xC8: KEY_UP, 0xD0: KEY_DN,
    0xC9: KEY_PGUP, 0xD1: KEY_PGDN,
    0xCB: KEY_LF, 0xCD: KEY_RT,
    0x97: KEY_HOME, 0xCF: KEY_END,
    0xD2: KEY_INS, 0xD3: KEY_DEL,
}


def _table(prefix: list[int], extra: dict[int, int]) -> list[int]:
    table = prefix + [NO] * (256 - len(prefix))
    for code, value in {**_SPECIAL, **extra}.items():
        table[code] = value
    return table


_NORMALMAP = _table([ord(ch) for ch in _NORMAL], {0x9C: ord("\n"), 0xB5: ord("/")})
_SHIFTMAP = _table([ord(ch) for ch in _SHIFTED], {0x9C: ord("\n"), 0xB5: ord("/")})
_CTLMAP = _table(
    [NO] * 16
    + [_ctrl(c) for c in "QWERTYUI"]
    + [_ctrl("O"), _ctrl("P"), NO, NO, ord("\r"), NO, _ctrl("A"), _ctrl("S")]
    + [_ctrl(c) for c in "DFGHJKL"] + [NO]
    + [NO, NO, NO, _ctrl("\\"), _ctrl("Z"), _ctrl("X"), _ctrl("C"), _ctrl("V")]
    + [_ctrl("B"), _ctrl("N"), _ctrl("M"), NO, NO, _ctrl("/"), NO, NO],
    {0x9C: ord("\r"), 0xB5: _ctrl("/")},
)

_CHARCODE = (_NORMALMAP, _SHIFTMAP, _CTLMAP, _CTLMAP)


class Keyboard:
    """Turns scancodes into character codes, tracking modifier keys."""

    def __init__(self) -> None:
        self.shift = 0

    def decode(self, data: int) -> int:
        """Decode one scancode; returns the character code, or 0 for none."""
        if not 0 <= data <= 0xFF:
            raise ValueError(f"scancode out of range: {data}")
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            data = data if self.shift & E0ESC else data & 0x7F
            self.shift &= ~(_SHIFTCODE.get(data, 0) | E0ESC)
            return 0
        if self.shift & E0ESC:
            # The previous byte was an E0 escape.
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= _SHIFTCODE.get(data, 0)
        self.shift ^= _TOGGLECODE.get(data, 0)
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def feed(self, scancodes: Iterable[int]) -> list[int]:
        """Decode a sequence of scancodes; returns the characters they produce."""
        return [c for c in map(self.decode, scancodes) if c]