"""NUL-terminated byte-string helpers with C comparison semantics."""

from __future__ import annotations

from typing import IO, AnyStr, Union

_Text = Union[bytes, bytearray, str]


def _raw(s: _Text) -> bytes:
    if isinstance(s, str):
        return s.encode("utf-8")
    return bytes(s)


def _cstr(s: _Text) -> bytes:
    return _raw(s).split(b"\0", 1)[0]


def _at(s: bytes, i: int) -> int:
    return s[i] if i < len(s) else 0


def atoi(s: _Text) -> int:
    """Value of the leading decimal digits of s; no sign is recognised."""
    n = 0
    for c in _raw(s):
        if not 0x30 <= c <= 0x39:
            break
        n = n * 10 + c - 0x30
    return n


def strncmp(p: _Text, q: _Text, n: int) -> int:
    """Compare at most n characters as unsigned bytes."""
    a, b = _cstr(p), _cstr(q)
    i = 0
    while n > 0 and _at(a, i) and _at(a, i) == _at(b, i):
        n -= 1
        i += 1
    if n <= 0:
        return 0
    return _at(a, i) - _at(b, i)


def strcmp(p: _Text, q: _Text) -> int:
    """Compare two strings as unsigned bytes."""
    a, b = _cstr(p), _cstr(q)
    i = 0
    while _at(a, i) and _at(a, i) == _at(b, i):
        i += 1
    return _at(a, i) - _at(b, i)


def strncpy(src: _Text, n: int) -> bytes:
    """The n-byte buffer strncpy fills: src up to its NUL, then zero padding."""
    if n <= 0:
        return b""
    return (_cstr(src) + bytes(n))[:n]


def safestrcpy(src: _Text, n: int) -> bytes:
    """At most n-1 bytes of src followed by a NUL; nothing when n is not positive."""
    if n <= 0:
        return b""
    return _cstr(src)[: n - 1] + b"\0"


def memcmp(a: _Text, b: _Text, n: int) -> int:
    """Difference of the first unequal bytes among the first n, or 0."""
    x, y = _raw(a), _raw(b)
    if len(x) < n or len(y) < n:
        raise ValueError(f"both buffers must hold at least {n} bytes")
    for c1, c2 in zip(x[:n], y[:n]):
        if c1 != c2:
            return c1 - c2
    return 0


def read_line(stream: IO[AnyStr], limit: int) -> AnyStr:
    """Read one character at a time up to and including a newline or carriage return.

    At most limit-1 characters are read; an empty result means end of input.
    """
    empty = stream.read(0)
    newlines = ("\n", "\r") if isinstance(empty, str) else (b"\n", b"\r")
    pieces = []
    while len(pieces) + 1 < limit:
        c = stream.read(1)
        if not c:
            break
        pieces.append(c)
        if c in newlines:
            break
    return empty.join(pieces)