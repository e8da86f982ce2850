"""Memory layout, paging arithmetic and x86 descriptor encodings."""

from __future__ import annotations

import enum
from dataclasses import dataclass, fields
from typing import ClassVar, TypeVar

_U32 = 0xFFFFFFFF

# Physical and virtual memory layout.
EXTMEM = 0x100000
PHYSTOP = 0xE000000
DEVSPACE = 0xFE000000
KERNBASE = 0x80000000
KERNLINK = KERNBASE + EXTMEM

# Eflags register.
FL_CF = 0x00000001
FL_PF = 0x00000004
FL_AF = 0x00000010
FL_ZF = 0x00000040
FL_SF = 0x00000080
FL_TF = 0x00000100
FL_IF = 0x00000200
FL_DF = 0x00000400
FL_OF = 0x00000800
FL_IOPL_MASK = 0x00003000
FL_IOPL_0 = 0x00000000
FL_IOPL_1 = 0x00001000
FL_IOPL_2 = 0x00002000
FL_IOPL_3 = 0x00003000
FL_NT = 0x00004000
FL_RF = 0x00010000
FL_VM = 0x00020000
FL_AC = 0x00040000
FL_VIF = 0x00080000
FL_VIP = 0x00100000
FL_ID = 0x00200000

# Control register flags.
CR0_PE = 0x00000001
CR0_MP = 0x00000002
CR0_EM = 0x00000004
CR0_TS = 0x00000008
CR0_ET = 0x00000010
CR0_NE = 0x00000020
CR0_WP = 0x00010000
CR0_AM = 0x00040000
CR0_NW = 0x20000000
CR0_CD = 0x40000000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment indices in the GDT.
SEG_KCODE = 1
SEG_KDATA = 2
SEG_KCPU = 3
SEG_UCODE = 4
SEG_UDATA = 5
SEG_TSS = 6
NSEGS = 7

DPL_USER = 0x3

# Application segment type bits.
STA_X = 0x8
STA_E = 0x4
STA_C = 0x4
STA_W = 0x2
STA_R = 0x2
STA_A = 0x1

# System segment type bits.
STS_T16A = 0x1
STS_LDT = 0x2
STS_T16B = 0x3
STS_CG16 = 0x4
STS_TG = 0x5
STS_IG16 = 0x6
STS_TG16 = 0x7
STS_T32A = 0x9
STS_T32B = 0xB
STS_CG32 = 0xC
STS_IG32 = 0xE
STS_TG32 = 0xF

# Paging.
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PGSHIFT = 12
PTXSHIFT = 12
PDXSHIFT = 22

PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PWT = 0x008
PTE_PCD = 0x010
PTE_A = 0x020
PTE_D = 0x040
PTE_PS = 0x080
PTE_MBZ = 0x180

# The all-zero descriptor that must occupy slot 0 of any GDT.
NULL_DESCRIPTOR = bytes(8)


def pdx(va: int) -> int:
    """Page directory index of a virtual address."""
    return ((va & _U32) >> PDXSHIFT) & 0x3FF


def ptx(va: int) -> int:
    """Page table index of a virtual address."""
    return ((va & _U32) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Build a virtual address from directory index, table index and offset."""
    return ((d << PDXSHIFT) | (t << PTXSHIFT) | o) & _U32


def pg_round_up(sz: int) -> int:
    """Round up to a page boundary, wrapping like a 32-bit unsigned value."""
    return ((sz + PGSIZE - 1) & ~(PGSIZE - 1)) & _U32


def pg_round_down(a: int) -> int:
    """Round down to a page boundary."""
    return (a & ~(PGSIZE - 1)) & _U32


def pte_addr(pte: int) -> int:
    """Physical address held in a page table or directory entry."""
    return pte & _U32 & ~0xFFF


def pte_flags(pte: int) -> int:
    """Flag bits of a page table or directory entry."""
    return pte & 0xFFF


def v2p(a: int) -> int:
    """Kernel virtual address to physical address."""
    return (a - KERNBASE) & _U32


def p2v(a: int) -> int:
    """Physical address to kernel virtual address."""
    return (a + KERNBASE) & _U32


_T = TypeVar("_T")


def _check_widths(obj, widths: dict[str, int]) -> None:
    for f in fields(obj):
        width = widths[f.name]
        value = getattr(obj, f.name)
        if not 0 <= value < (1 << width):
            raise ValueError(f"{f.name}={value} does not fit in {width} bits")


def _pack_bits(obj, widths: dict[str, int]) -> bytes:
    word = 0
    shift = 0
    for f in fields(obj):
        word |= getattr(obj, f.name) << shift
        shift += widths[f.name]
    return word.to_bytes(8, "little")


def _unpack_bits(cls: type[_T], widths: dict[str, int], data: bytes) -> _T:
    if len(data) != 8:
        raise ValueError(f"descriptor must be 8 bytes, got {len(data)}")
    word = int.from_bytes(data, "little")
    values = {}
    for f in fields(cls):  # type: ignore[arg-type]
        width = widths[f.name]
        values[f.name] = word & ((1 << width) - 1)
        word >>= width
    return cls(**values)


@dataclass(frozen=True)
class SegmentDescriptor:
    """An x86 segment descriptor."""

    lim_15_0: int = 0
    base_15_0: int = 0
    base_23_16: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    lim_19_16: int = 0
    avl: int = 0
    rsv1: int = 0
    db: int = 0
    g: int = 0
    base_31_24: int = 0

    _WIDTHS: ClassVar[dict[str, int]] = {
        "lim_15_0": 16,
        "base_15_0": 16,
        "base_23_16": 8,
        "type": 4,
        "s": 1,
        "dpl": 2,
        "p": 1,
        "lim_19_16": 4,
        "avl": 1,
        "rsv1": 1,
        "db": 1,
        "g": 1,
        "base_31_24": 8,
    }

    def __post_init__(self) -> None:
        _check_widths(self, self._WIDTHS)

    def pack(self) -> bytes:
        """Encode as the eight bytes the processor reads."""
        return _pack_bits(self, self._WIDTHS)

    @classmethod
    def unpack(cls, data: bytes) -> SegmentDescriptor:
        """Decode eight bytes into a descriptor."""
        return _unpack_bits(cls, cls._WIDTHS, data)

    @classmethod
    def segment(cls, type: int, base: int, limit: int, dpl: int) -> SegmentDescriptor:
        """Normal 32-bit segment whose limit is counted in 4 KiB pages."""
        base &= _U32
        limit &= _U32
        return cls(
            lim_15_0=(limit >> 12) & 0xFFFF,
            base_15_0=base & 0xFFFF,
            base_23_16=(base >> 16) & 0xFF,
            type=type,
            s=1,
            dpl=dpl,
            p=1,
            lim_19_16=(limit >> 28) & 0xF,
            avl=0,
            rsv1=0,
            db=1,
            g=1,
            base_31_24=base >> 24,
        )

    @classmethod
    def segment16(cls, type: int, base: int, limit: int, dpl: int) -> SegmentDescriptor:
        """Segment whose limit is counted in bytes."""
        base &= _U32
        limit &= _U32
        return cls(
            lim_15_0=limit & 0xFFFF,
            base_15_0=base & 0xFFFF,
            base_23_16=(base >> 16) & 0xFF,
            type=type,
            s=1,
            dpl=dpl,
            p=1,
            lim_19_16=(limit >> 16) & 0xF,
            avl=0,
            rsv1=0,
            db=1,
            g=0,
            base_31_24=base >> 24,
        )


@dataclass(frozen=True)
class GateDescriptor:
    """An x86 interrupt or trap gate descriptor."""

    off_15_0: int = 0
    cs: int = 0
    args: int = 0
    rsv1: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    off_31_16: int = 0

    _WIDTHS: ClassVar[dict[str, int]] = {
        "off_15_0": 16,
        "cs": 16,
        "args": 5,
        "rsv1": 3,
        "type": 4,
        "s": 1,
        "dpl": 2,
        "p": 1,
        "off_31_16": 16,
    }

    def __post_init__(self) -> None:
        _check_widths(self, self._WIDTHS)

    def pack(self) -> bytes:
        """Encode as the eight bytes the processor reads."""
        return _pack_bits(self, self._WIDTHS)

    @classmethod
    def unpack(cls, data: bytes) -> GateDescriptor:
        """Decode eight bytes into a gate descriptor."""
        return _unpack_bits(cls, cls._WIDTHS, data)

    @classmethod
    def make(cls, istrap: bool, sel: int, off: int, dpl: int) -> GateDescriptor:
        """Build a gate; a trap gate leaves interrupts enabled, an interrupt gate clears them."""
        off &= _U32
        return cls(
            off_15_0=off & 0xFFFF,
            cs=sel,
            args=0,
            rsv1=0,
            type=STS_TG32 if istrap else STS_IG32,
            s=0,
            dpl=dpl,
            p=1,
            off_31_16=off >> 16,
        )


class Syscall(enum.IntEnum):
    """System call numbers."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21


class OpenFlag(enum.IntFlag):
    """Mode bits for opening a file."""

    RDONLY = 0x000
    WRONLY = 0x001
    RDWR = 0x002
    CREATE = 0x200