import pytest

from teachos.elf import (
    ELF_MAGIC,
    ELF_PROG_LOAD,
    ElfFormatError,
    ElfHeader,
    ProgFlag,
    ProgramHeader,
    RtcDate,
    program_headers,
)


def _image(headers):
    elf = ElfHeader(entry=0x1000, phoff=ElfHeader.SIZE, phnum=len(headers))
    return elf.pack() + b"".join(h.pack() for h in headers)


def test_header_starts_with_magic_bytes():
    assert ElfHeader().pack()[:4] == b"\x7fELF"


def test_header_sizes():
    assert len(ElfHeader().pack()) == 52
    assert len(ProgramHeader().pack()) == 32


def test_header_round_trip():
    header = ElfHeader(entry=0x1234, phoff=52, phnum=3, machine=3, elf=b"\x01" * 12)
    assert ElfHeader.parse(header.pack()) == header


def test_header_bad_magic():
    data = b"\x00ELF" + ElfHeader().pack()[4:]
    with pytest.raises(ElfFormatError):
        ElfHeader.parse(data)


def test_header_too_short():
    with pytest.raises(ElfFormatError):
        ElfHeader.parse(ElfHeader().pack()[:20])


def test_header_bad_ident_length():
    with pytest.raises(ElfFormatError):
        ElfHeader(elf=b"abc").pack()


def test_program_header_round_trip():
    ph = ProgramHeader(
        type=ELF_PROG_LOAD,
        off=0x1000,
        vaddr=0,
        paddr=0,
        filesz=100,
        memsz=200,
        flags=ProgFlag.READ | ProgFlag.EXEC,
        align=4096,
    )
    assert ProgramHeader.parse(ph.pack()) == ph
    assert ph.is_loadable()


def test_program_header_not_loadable():
    assert not ProgramHeader(type=ELF_PROG_LOAD + 1).is_loadable()


def test_program_header_too_short():
    with pytest.raises(ElfFormatError):
        ProgramHeader.parse(b"\x00" * 31)


def test_program_headers_iterates_all():
    phs = [
        ProgramHeader(type=ELF_PROG_LOAD, vaddr=0, filesz=10, memsz=10),
        ProgramHeader(type=ELF_PROG_LOAD + 1),
        ProgramHeader(type=ELF_PROG_LOAD, vaddr=0x2000, filesz=5, memsz=50),
    ]
    assert list(program_headers(_image(phs))) == phs


def test_program_headers_empty():
    assert list(program_headers(_image([]))) == []


def test_program_headers_truncated():
    data = _image([ProgramHeader(), ProgramHeader()])[:-4]
    with pytest.raises(ElfFormatError):
        list(program_headers(data))


def test_magic_value():
    assert ELF_MAGIC.to_bytes(4, "little") == b"\x7fELF"


def test_rtcdate_fields():
    date = RtcDate(second=1, minute=2, hour=3, day=4, month=5, year=2020)
    assert (date.second, date.minute, date.hour) == (1, 2, 3)
    assert (date.day, date.month, date.year) == (4, 5, 2020)
    assert date == RtcDate(1, 2, 3, 4, 5, 2020)