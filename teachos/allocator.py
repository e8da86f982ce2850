"""A first-fit free-list memory allocator over a growable heap."""

from __future__ import annotations

from typing import Optional

HEADER_SIZE = 8
MIN_UNITS = 4096


class Heap:
    """Hands out blocks from memory obtained by moving a program break."""

    def __init__(self, base: int = 0, capacity: Optional[int] = None) -> None:
        self.base = base
        self.capacity = capacity
        self._brk = base
        self._sentinel = base - HEADER_SIZE
        self._size: dict[int, int] = {}
        self._next: dict[int, int] = {}
        self._freep: Optional[int] = None
        self._allocated: set[int] = set()

    def sbrk(self, n: int) -> int:
        """Move the break by n bytes and return the old break."""
        old = self._brk
        new = old + n
        if new < self.base or (
            self.capacity is not None and new > self.base + self.capacity
        ):
            raise MemoryError("cannot move the break that far")
        self._brk = new
        return old

    def malloc(self, nbytes: int) -> int:
        """Allocate at least nbytes and return the address of the block."""
        if nbytes < 0:
            raise ValueError("size must not be negative")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        if self._freep is None:
            self._next[self._sentinel] = self._sentinel
            self._size[self._sentinel] = 0
            self._freep = self._sentinel
        prevp = self._freep
        p = self._next[prevp]
        while True:
            if self._size[p] >= nunits:
                if self._size[p] == nunits:
                    self._next[prevp] = self._next[p]
                else:
                    self._size[p] -= nunits
                    p += self._size[p] * HEADER_SIZE
                    self._size[p] = nunits
                self._freep = prevp
                self._allocated.add(p)
                return p + HEADER_SIZE
            if p == self._freep:
                grown = self._morecore(nunits)
                if grown is None:
                    raise MemoryError(f"cannot allocate {nbytes} bytes")
                p = grown
            prevp = p
            p = self._next[p]

    def free(self, ptr: int) -> None:
        """Return a block obtained from malloc."""
        bp = ptr - HEADER_SIZE
        if bp not in self._allocated:
            raise ValueError(f"{ptr:#x} is not an allocated block")
        self._allocated.remove(bp)
        self._insert(bp)

    def free_units(self) -> int:
        """Total size, in header units, of the blocks on the free list."""
        if self._freep is None:
            return 0
        total = 0
        p = self._next[self._sentinel]
        while p != self._sentinel:
            total += self._size[p]
            p = self._next[p]
        return total

    def _morecore(self, nu: int) -> Optional[int]:
        nu = max(nu, MIN_UNITS)
        try:
            p = self.sbrk(nu * HEADER_SIZE)
        except MemoryError:
            return None
        self._size[p] = nu
        self._insert(p)
        return self._freep

    def _insert(self, bp: int) -> None:
        size, nxt = self._size, self._next
        p = self._freep
        while not (p < bp < nxt[p]):
            if p >= nxt[p] and (bp > p or bp < nxt[p]):
                break
            p = nxt[p]
        following = nxt[p]
        if bp + size[bp] * HEADER_SIZE == following:
            size[bp] += size[following]
            nxt[bp] = nxt[following]
            del size[following]
            nxt.pop(following, None)
        else:
            nxt[bp] = following
        if p + size[p] * HEADER_SIZE == bp:
            size[p] += size[bp]
            nxt[p] = nxt[bp]
            del size[bp]
            del nxt[bp]
        else:
            nxt[p] = bp
        self._freep = p