"""Simulated physical memory and two-level x86 page tables."""

from __future__ import annotations

import struct
from typing import Iterable, Optional

from teachos.layout import (
    KERNBASE,
    NPDENTRIES,
    NPTENTRIES,
    PGSIZE,
    PHYSTOP,
    PTE_P,
    PTE_U,
    PTE_W,
    pdx,
    pg_round_down,
    pg_round_up,
    pte_addr,
    pte_flags,
    ptx,
)

_U32 = 0xFFFFFFFF
_ENTRY = struct.Struct("<I")


class PagingError(Exception):
    """A page table operation met an invalid or inconsistent state."""


class OutOfMemory(Exception):
    """No physical page or user address space is left."""


class PhysicalMemory:
    """A pool of 4 KiB physical pages handed out one at a time."""

    def __init__(self, npages: int = 1024, base: int = 0x400000) -> None:
        if npages <= 0:
            raise ValueError("npages must be positive")
        if base <= 0 or base % PGSIZE:
            raise ValueError("base must be a non-zero page-aligned address")
        if base + npages * PGSIZE > PHYSTOP:
            raise ValueError("memory would extend past PHYSTOP")
        self.base = base
        self.npages = npages
        self._pages: dict[int, bytearray] = {}
        # Pages are released in ascending order, so the highest comes out first.
        self._free = [base + i * PGSIZE for i in range(npages)]

    def alloc(self) -> int:
        """Take a zeroed page and return its physical address."""
        if not self._free:
            raise OutOfMemory("no free physical pages")
        pa = self._free.pop()
        self._pages[pa] = bytearray(PGSIZE)
        return pa

    def free(self, pa: int) -> None:
        """Return a page to the pool."""
        if pa % PGSIZE or not self.base <= pa < self.base + self.npages * PGSIZE:
            raise PagingError(f"kfree: bad address {pa:#x}")
        if pa not in self._pages:
            raise PagingError(f"kfree: page {pa:#x} is not allocated")
        del self._pages[pa]
        self._free.append(pa)

    def _page(self, pa: int) -> tuple[bytearray, int]:
        start = pg_round_down(pa)
        page = self._pages.get(start)
        if page is None:
            raise PagingError(f"physical address {pa:#x} is not allocated")
        return page, pa - start

    def read(self, pa: int, n: int) -> bytes:
        """Read n bytes starting at a physical address."""
        out = bytearray()
        while n > 0:
            page, off = self._page(pa)
            take = min(n, PGSIZE - off)
            out += page[off : off + take]
            pa += take
            n -= take
        return bytes(out)

    def write(self, pa: int, data: bytes) -> None:
        """Write bytes starting at a physical address."""
        view = memoryview(bytes(data))
        while view:
            page, off = self._page(pa)
            take = min(len(view), PGSIZE - off)
            page[off : off + take] = view[:take]
            pa += take
            view = view[take:]

    def free_pages(self) -> int:
        """Number of pages still available."""
        return len(self._free)


class AddressSpace:
    """A page directory with its page tables, all kept in physical memory."""

    def __init__(
        self,
        memory: PhysicalMemory,
        kernel_map: Iterable[tuple[int, int, int, int]] = (),
    ) -> None:
        self.memory = memory
        self.kernel_map = tuple(tuple(m) for m in kernel_map)
        self.pgdir: Optional[int] = memory.alloc()
        try:
            for virt, start, end, perm in self.kernel_map:
                self.map_pages(virt, (end - start) & _U32, start, perm)
        except BaseException:
            self.free()
            raise

    def _entry(self, pa: int) -> int:
        return _ENTRY.unpack(self.memory.read(pa, _ENTRY.size))[0]

    def _set_entry(self, pa: int, value: int) -> None:
        self.memory.write(pa, _ENTRY.pack(value & _U32))

    def walk(self, va: int, alloc: bool = False) -> Optional[int]:
        """Physical address of the page table entry for va, or None if absent."""
        if self.pgdir is None:
            raise PagingError("address space has been freed")
        pde_pa = self.pgdir + 4 * pdx(va)
        pde = self._entry(pde_pa)
        if pde & PTE_P:
            pgtab = pte_addr(pde)
        else:
            if not alloc:
                return None
            pgtab = self.memory.alloc()
            # Permissions here are generous; the entries below restrict them.
            self._set_entry(pde_pa, pgtab | PTE_P | PTE_W | PTE_U)
        return pgtab + 4 * ptx(va)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map [va, va+size) onto physical memory starting at pa."""
        if size <= 0:
            raise ValueError("mapping size must be positive")
        a = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        while True:
            pte = self.walk(a, True)
            if self._entry(pte) & PTE_P:
                raise PagingError("remap")
            self._set_entry(pte, pa | perm | PTE_P)
            if a == last:
                break
            a = (a + PGSIZE) & _U32
            pa = (pa + PGSIZE) & _U32

    def load_init(self, code: bytes) -> None:
        """Place the first program at address 0; it must fit in one page."""
        if len(code) >= PGSIZE:
            raise PagingError("inituvm: more than a page")
        mem = self.memory.alloc()
        self.map_pages(0, PGSIZE, mem, PTE_W | PTE_U)
        self.memory.write(mem, code)

    def alloc_user(self, oldsz: int, newsz: int) -> int:
        """Grow user memory from oldsz to newsz and return the new size."""
        if newsz >= KERNBASE:
            raise OutOfMemory("user memory would reach the kernel")
        if newsz < oldsz:
            return oldsz
        a = pg_round_up(oldsz)
        while a < newsz:
            mem = None
            try:
                mem = self.memory.alloc()
                self.map_pages(a, PGSIZE, mem, PTE_W | PTE_U)
            except OutOfMemory:
                if mem is not None and self.user_to_kernel(a) != mem:
                    self.memory.free(mem)
                self.dealloc_user(newsz, oldsz)
                raise
            a += PGSIZE
        return newsz

    def dealloc_user(self, oldsz: int, newsz: int) -> int:
        """Shrink user memory from oldsz to newsz and return the new size."""
        if newsz >= oldsz:
            return oldsz
        a = pg_round_up(newsz)
        while a < oldsz:
            pte = self.walk(a, False)
            if pte is None:
                a += (NPTENTRIES - 1) * PGSIZE
            else:
                entry = self._entry(pte)
                if entry & PTE_P:
                    pa = pte_addr(entry)
                    if pa == 0:
                        raise PagingError("kfree")
                    self.memory.free(pa)
                    self._set_entry(pte, 0)
            a += PGSIZE
        return newsz

    def copy(self, sz: int) -> AddressSpace:
        """A new address space holding a copy of the first sz bytes of user memory."""
        child = AddressSpace(self.memory, self.kernel_map)
        try:
            for va in range(0, sz, PGSIZE):
                pte = self.walk(va, False)
                if pte is None:
                    raise PagingError("copyuvm: pte should exist")
                entry = self._entry(pte)
                if not entry & PTE_P:
                    raise PagingError("copyuvm: page not present")
                mem = self.memory.alloc()
                self.memory.write(mem, self.memory.read(pte_addr(entry), PGSIZE))
                try:
                    child.map_pages(va, PGSIZE, mem, pte_flags(entry))
                except OutOfMemory:
                    self.memory.free(mem)
                    raise
        except OutOfMemory:
            child.free()
            raise
        return child

    def free(self) -> None:
        """Release every user page, every page table and the directory."""
        if self.pgdir is None:
            raise PagingError("freevm: no pgdir")
        self.dealloc_user(KERNBASE, 0)
        for index in range(NPDENTRIES):
            pde = self._entry(self.pgdir + 4 * index)
            if pde & PTE_P:
                self.memory.free(pte_addr(pde))
        self.memory.free(self.pgdir)
        self.pgdir = None

    def clear_user(self, va: int) -> None:
        """Make the page at va inaccessible to user code."""
        pte = self.walk(va, False)
        if pte is None:
            raise PagingError("clearpteu")
        self._set_entry(pte, self._entry(pte) & ~PTE_U)

    def user_to_kernel(self, va: int) -> Optional[int]:
        """Physical address of the user page at va, or None if not user-accessible."""
        pte = self.walk(va, False)
        if pte is None:
            return None
        entry = self._entry(pte)
        if not entry & PTE_P or not entry & PTE_U:
            return None
        return pte_addr(entry)

    def copy_out(self, va: int, data: bytes) -> None:
        """Copy bytes into user memory at va."""
        view = memoryview(bytes(data))
        while view:
            va0 = pg_round_down(va)
            pa0 = self.user_to_kernel(va0)
            if pa0 is None:
                raise PagingError(f"user address {va:#x} is not mapped")
            n = min(PGSIZE - (va - va0), len(view))
            self.memory.write(pa0 + (va - va0), view[:n])
            view = view[n:]
            va = va0 + PGSIZE

    def read_user(self, va: int, n: int) -> bytes:
        """Read n bytes of user memory at va."""
        out = bytearray()
        while n > 0:
            va0 = pg_round_down(va)
            pa0 = self.user_to_kernel(va0)
            if pa0 is None:
                raise PagingError(f"user address {va:#x} is not mapped")
            take = min(PGSIZE - (va - va0), n)
            out += self.memory.read(pa0 + (va - va0), take)
            n -= take
            va = va0 + PGSIZE
        return bytes(out)