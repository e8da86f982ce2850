"""Collapse adjacent repeated lines of a file or of standard input."""

from __future__ import annotations

import sys
from typing import IO, Iterator, Optional, Sequence, Union

_CHUNK = 512
_Line = Union[bytes, bytearray, str]


def _as_bytes(line: _Line) -> bytes:
    return line.encode("utf-8") if isinstance(line, str) else bytes(line)


def _same_char(a: int, b: int) -> bool:
    if a == b:
        return True
    if 0x61 <= a <= 0x7A:
        return a - b == 32
    if 0x41 <= a <= 0x5A:
        return b - a == 32
    return False


def same_line(a: _Line, b: _Line, ignore_case: bool = False) -> bool:
    """Whether two lines are equal, letters matched regardless of case if asked."""
    x, y = _as_bytes(a), _as_bytes(b)
    if len(x) != len(y):
        return False
    if not ignore_case:
        return x == y
    return all(_same_char(c1, c2) for c1, c2 in zip(x, y))


def _complete_lines(stream: IO) -> Iterator[bytes]:
    pending = b""
    while True:
        chunk = stream.read(_CHUNK)
        if not chunk:
            return
        pending += _as_bytes(chunk)
        *lines, pending = pending.split(b"\n")
        for line in lines:
            yield line + b"\n"


def _emit(line: bytes, n: int, count: bool, duplicates_only: bool) -> Iterator[bytes]:
    if n > 1 or not duplicates_only:
        yield (b"\t%d " % n if count else b"") + line


def uniq_lines(
    stream: IO,
    ignore_case: bool = False,
    count: bool = False,
    duplicates_only: bool = False,
) -> Iterator[bytes]:
    """Yield the output for each run of equal adjacent lines.

    The first line of a run is kept. With count, each is prefixed by a tab
    and the run length; with duplicates_only, runs of one line are left out.
    """
    current: Optional[bytes] = None
    n = 0
    for line in _complete_lines(stream):
        if current is not None and same_line(current, line, ignore_case):
            n += 1
            continue
        if current is not None:
            yield from _emit(current, n, count, duplicates_only)
        current, n = line, 1
    if current is not None:
        yield from _emit(current, n, count, duplicates_only)


def _write(data: bytes) -> None:
    sys.stdout.flush()
    out = getattr(sys.stdout, "buffer", None)
    if out is None:
        sys.stdout.write(data.decode("utf-8", "replace"))
    else:
        out.write(data)
        out.flush()


def _run(stream: IO, flags: dict[str, bool]) -> int:
    try:
        for piece in uniq_lines(stream, **flags):
            _write(piece)
    except OSError:
        _write(b"read error\n")
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Filter the named file, or standard input; options -i, -c and -d."""
    args = sys.argv[1:] if argv is None else list(argv)
    flags = {"ignore_case": False, "count": False, "duplicates_only": False}
    options = {"i": "ignore_case", "c": "count", "d": "duplicates_only"}
    path: Optional[str] = None
    for arg in args:
        if arg.startswith("-"):
            for letter in arg[1:]:
                if letter not in options:
                    _write(f"uniq: invalid option -- '{letter}'\n".encode("utf-8"))
                    return 1
                flags[options[letter]] = True
        else:
            path = arg
    if path is None:
        return _run(getattr(sys.stdin, "buffer", sys.stdin), flags)
    try:
        handle = open(path, "rb")
    except OSError:
        _write(f"uniq: cannot open {path}\n".encode("utf-8"))
        return 1
    with handle:
        return _run(handle, flags)


if __name__ == "__main__":
    sys.exit(main())