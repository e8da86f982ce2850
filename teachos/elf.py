"""ELF executable headers and the real-time clock date record."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import Iterator

ELF_MAGIC = 0x464C457F  # "\x7FELF" read as a little-endian word
ELF_PROG_LOAD = 1

_ELF_HEADER = struct.Struct("<I12sHHIIIIIHHHHHH")
_PROG_HEADER = struct.Struct("<8I")


class ProgFlag(enum.IntFlag):
    """Flag bits of a program header."""

    EXEC = 1
    WRITE = 2
    READ = 4


class ElfFormatError(ValueError):
    """The data is not a well-formed ELF image."""


@dataclass(frozen=True)
class ElfHeader:
    """The ELF file header."""

    magic: int = ELF_MAGIC
    elf: bytes = field(default=bytes(12))
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = _ELF_HEADER.size
    phentsize: int = _PROG_HEADER.size
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    SIZE = _ELF_HEADER.size

    @classmethod
    def parse(cls, data: bytes) -> ElfHeader:
        """Read the header at the start of data, checking the magic number."""
        if len(data) < _ELF_HEADER.size:
            raise ElfFormatError(
                f"ELF header needs {_ELF_HEADER.size} bytes, got {len(data)}"
            )
        header = cls(*_ELF_HEADER.unpack_from(data, 0))
        if header.magic != ELF_MAGIC:
            raise ElfFormatError(f"bad ELF magic {header.magic:#010x}")
        return header

    def pack(self) -> bytes:
        """Encode the header as it appears in a file."""
        if len(self.elf) != 12:
            raise ElfFormatError("ident field must be 12 bytes")
        return _ELF_HEADER.pack(
            self.magic,
            self.elf,
            self.type,
            self.machine,
            self.version,
            self.entry,
            self.phoff,
            self.shoff,
            self.flags,
            self.ehsize,
            self.phentsize,
            self.phnum,
            self.shentsize,
            self.shnum,
            self.shstrndx,
        )


@dataclass(frozen=True)
class ProgramHeader:
    """One program section header."""

    type: int = 0
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    flags: int = 0
    align: int = 0

    SIZE = _PROG_HEADER.size

    @classmethod
    def parse(cls, data: bytes) -> ProgramHeader:
        """Read a program header at the start of data."""
        if len(data) < _PROG_HEADER.size:
            raise ElfFormatError(
                f"program header needs {_PROG_HEADER.size} bytes, got {len(data)}"
            )
        return cls(*_PROG_HEADER.unpack_from(data, 0))

    def pack(self) -> bytes:
        """Encode the program header as it appears in a file."""
        return _PROG_HEADER.pack(
            self.type,
            self.off,
            self.vaddr,
            self.paddr,
            self.filesz,
            self.memsz,
            self.flags,
            self.align,
        )

    def is_loadable(self) -> bool:
        """True for segments that are loaded into memory."""
        return self.type == ELF_PROG_LOAD


def program_headers(data: bytes) -> Iterator[ProgramHeader]:
    """Yield every program header of the ELF image in data."""
    header = ElfHeader.parse(data)
    for index in range(header.phnum):
        start = header.phoff + index * _PROG_HEADER.size
        chunk = data[start : start + _PROG_HEADER.size]
        if len(chunk) < _PROG_HEADER.size:
            raise ElfFormatError(f"program header {index} lies past end of image")
        yield ProgramHeader.parse(chunk)


@dataclass(frozen=True)
class RtcDate:
    """A date and time as read from the real-time clock."""

    second: int
    minute: int
    hour: int
    day: int
    month: int
    year: int