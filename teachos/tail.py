"""Print the last lines of a file or of standard input."""

from __future__ import annotations

import sys
from collections import deque
from typing import IO, Iterator, Optional, Sequence

DEFAULT_LINES = 10
_CHUNK = 512


def _complete_lines(stream: IO) -> Iterator[bytes]:
    """Yield each newline-terminated line; an unterminated tail is dropped."""
    pending = b""
    while True:
        chunk = stream.read(_CHUNK)
        if not chunk:
            return
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for line in lines:
            yield line + b"\n"


def tail_lines(stream: IO, nline: int) -> list[bytes]:
    """The last nline complete lines of stream, each with its newline."""
    if nline < 0:
        raise ValueError("line count must not be negative")
    if nline == 0:
        return []
    return list(deque(_complete_lines(stream), maxlen=nline))


def _write(data: bytes) -> None:
    sys.stdout.flush()
    out = getattr(sys.stdout, "buffer", None)
    if out is None:
        sys.stdout.write(data.decode("utf-8", "replace"))
    else:
        out.write(data)
        out.flush()


def _is_numeric(text: str) -> bool:
    return all(c in "0123456789" for c in text)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Print the last lines; '-N' chooses how many, the last other argument is the file."""
    args = sys.argv[1:] if argv is None else list(argv)
    nline = DEFAULT_LINES
    path: Optional[str] = None
    for arg in args:
        if arg.startswith("-"):
            option = arg[1:]
            if not _is_numeric(option):
                _write(f"tail: invalid option -- '{option[0]}'\n".encode("utf-8"))
                return 1
            nline = int(option) if option else 0
        else:
            path = arg
    if path is None:
        stdin = getattr(sys.stdin, "buffer", sys.stdin)
        _write(b"".join(tail_lines(stdin, nline)))
        return 0
    try:
        handle = open(path, "rb")
    except OSError:
        _write(f"tail: cannot open {path}\n".encode("utf-8"))
        return 1
    with handle:
        _write(b"".join(tail_lines(handle, nline)))
    return 0


if __name__ == "__main__":
    sys.exit(main())