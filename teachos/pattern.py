"""Tiny regular-expression matcher supporting ^ . * $ and a line filter built on it."""

from __future__ import annotations

from typing import Iterable, Iterator


def match(regex: str, text: str) -> bool:
    """Search for ``regex`` anywhere in ``text``."""
    if regex.startswith("^"):
        return match_here(regex[1:], text)
    return any(match_here(regex, text[i:]) for i in range(len(text) + 1))


def match_here(regex: str, text: str) -> bool:
    """Search for ``regex`` at the beginning of ``text``."""
    if not regex:
        return True
    if len(regex) >= 2 and regex[1] == "*":
        return match_star(regex[0], regex[2:], text)
    if regex == "$":
        return text == ""
    if text and (regex[0] == "." or regex[0] == text[0]):
        return match_here(regex[1:], text[1:])
    return False


def match_star(c: str, regex: str, text: str) -> bool:
    """Search for ``c*regex`` at the beginning of ``text``."""
    while True:
        if match_here(regex, text):
            return True
        if not text or not (text[0] == c or c == "."):
            return False
        text = text[1:]


def grep_lines(regex: str, stream: Iterable[str]) -> Iterator[str]:
    """Yield each newline-terminated line of ``stream`` that matches ``regex``.

    ``stream`` yields chunks of text; a final line without a newline is dropped.
    """
    pending = ""
    for chunk in stream:
        pending += chunk
        *lines, pending = pending.split("\n")
        for line in lines:
            if match(regex, line):
                yield line + "\n"