"""Count lines, words and bytes of files or standard input."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import IO, Iterator, Optional, Sequence

# A NUL byte also ends a word: it is found in the separator set along with
# the set's own terminator.
WHITESPACE = frozenset(b" \r\t\n\v\0")
_CHUNK = 512


@dataclass(frozen=True)
class Counts:
    """Line, word and byte totals of one input."""

    lines: int = 0
    words: int = 0
    chars: int = 0


def _chunks(stream: IO) -> Iterator[bytes]:
    while True:
        chunk = stream.read(_CHUNK)
        if not chunk:
            return
        yield chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk)


def count(stream: IO) -> Counts:
    """Count the newlines, words and bytes read from stream."""
    lines = words = chars = 0
    inword = False
    for chunk in _chunks(stream):
        chars += len(chunk)
        lines += chunk.count(b"\n")
        for c in chunk:
            if c in WHITESPACE:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return Counts(lines, words, chars)


def _report(counts: Counts, name: str) -> None:
    print(f"{counts.lines} {counts.words} {counts.chars} {name}")


def _count_and_report(stream: IO, name: str) -> bool:
    try:
        counts = count(stream)
    except OSError:
        print("wc: read error")
        return False
    _report(counts, name)
    return True


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Report counts for each named file, or for standard input."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        stdin = getattr(sys.stdin, "buffer", sys.stdin)
        return 0 if _count_and_report(stdin, "") else 1
    for name in args:
        try:
            handle = open(name, "rb")
        except OSError:
            print(f"wc: cannot open {name}")
            return 1
        with handle:
            if not _count_and_report(handle, name):
                return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())