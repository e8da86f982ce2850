"""System call argument fetching and the process-related system calls."""

from __future__ import annotations

import struct
import sys
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TextIO

from teachos.layout import PGSIZE, Syscall
from teachos.paging import OutOfMemory, PagingError
from teachos.proc import NoChildren, Proc, ProcessTable
from teachos.spinlock import SpinLock

_U32 = 0xFFFFFFFF
_INT = struct.Struct("<i")


class BadAddress(Exception):
    """A system call argument points outside the process's memory."""


def _user_bytes(proc: Proc, addr: int, n: int) -> bytes:
    if proc.pgdir is None:
        raise BadAddress("process has no address space")
    try:
        return proc.pgdir.read_user(addr, n)
    except PagingError as exc:
        raise BadAddress(str(exc)) from exc


def fetch_int(proc: Proc, addr: int) -> int:
    """Read the 32-bit signed integer at addr in proc's memory."""
    addr &= _U32
    if addr >= proc.sz or addr + 4 > proc.sz:
        raise BadAddress(f"int at {addr:#x} lies outside the process")
    return _INT.unpack(_user_bytes(proc, addr, 4))[0]


def fetch_str(proc: Proc, addr: int) -> bytes:
    """Read the NUL-terminated string at addr, without its terminator."""
    addr &= _U32
    if addr >= proc.sz:
        raise BadAddress(f"string at {addr:#x} lies outside the process")
    out = bytearray()
    va = addr
    while va < proc.sz:
        take = min(PGSIZE - va % PGSIZE, proc.sz - va)
        chunk = _user_bytes(proc, va, take)
        nul = chunk.find(0)
        if nul >= 0:
            return bytes(out + chunk[:nul])
        out += chunk
        va += take
    raise BadAddress(f"string at {addr:#x} is not terminated")


def arg_int(proc: Proc, n: int) -> int:
    """The nth 32-bit system call argument."""
    return fetch_int(proc, (proc.tf.esp + 4 + 4 * n) & _U32)


def arg_ptr(proc: Proc, n: int, size: int) -> int:
    """The nth argument as the address of size bytes inside the process."""
    i = arg_int(proc, n) & _U32
    if i >= proc.sz or (i + size) & _U32 > proc.sz:
        raise BadAddress(f"block at {i:#x} of {size} bytes lies outside the process")
    return i


def arg_str(proc: Proc, n: int) -> bytes:
    """The nth argument as a NUL-terminated string."""
    return fetch_str(proc, arg_int(proc, n) & _U32)


class Kernel:
    """Dispatches system calls for the processes of a process table.

    A system call that has to block returns None and leaves the call
    number in eax, so calling syscall again once the process runs
    repeats it.
    """

    def __init__(
        self, table: Optional[ProcessTable] = None, console: Optional[TextIO] = None
    ) -> None:
        self.table = table if table is not None else ProcessTable()
        self.console = console if console is not None else sys.stdout
        self.ticks = 0
        self.tickslock = SpinLock("time")
        self.ticks_channel = object()
        self._sleep_start: dict[Proc, int] = {}
        self._handlers: dict[int, Callable[[Proc], Optional[int]]] = {
            Syscall.FORK: self.sys_fork,
            Syscall.EXIT: self.sys_exit,
            Syscall.WAIT: self.sys_wait,
            Syscall.KILL: self.sys_kill,
            Syscall.GETPID: self.sys_getpid,
            Syscall.SBRK: self.sys_sbrk,
            Syscall.SLEEP: self.sys_sleep,
            Syscall.UPTIME: self.sys_uptime,
        }

    @contextmanager
    def _ticks_locked(self) -> Iterator[None]:
        self.tickslock.acquire(self.table.cpu)
        try:
            yield
        finally:
            self.tickslock.release(self.table.cpu)

    def tick(self) -> None:
        """Count one clock interrupt and wake processes sleeping on the clock."""
        with self._ticks_locked():
            self.ticks = (self.ticks + 1) & _U32
            self.table.wakeup(self.ticks_channel)

    def syscall(self, proc: Proc) -> Optional[int]:
        """Run the system call whose number is in proc's eax."""
        num = proc.tf.eax
        handler = self._handlers.get(num)
        if handler is None:
            print(f"{proc.pid} {proc.name}: unknown sys call {num}", file=self.console)
            proc.tf.eax = _U32
            return -1
        result = handler(proc)
        if result is None:
            return None
        proc.tf.eax = result & _U32
        return result

    def sys_fork(self, proc: Proc) -> int:
        try:
            return self.table.fork(proc)
        except OutOfMemory:
            return -1

    def sys_exit(self, proc: Proc) -> int:
        self.table.exit(proc)
        return 0

    def sys_wait(self, proc: Proc) -> Optional[int]:
        try:
            return self.table.wait(proc)
        except NoChildren:
            return -1

    def sys_kill(self, proc: Proc) -> int:
        try:
            pid = arg_int(proc, 0)
            self.table.kill(pid)
        except (BadAddress, ProcessLookupError):
            return -1
        return 0

    def sys_getpid(self, proc: Proc) -> int:
        return proc.pid

    def sys_sbrk(self, proc: Proc) -> int:
        try:
            n = arg_int(proc, 0)
        except BadAddress:
            return -1
        addr = proc.sz
        try:
            self.table.grow(proc, n)
        except OutOfMemory:
            return -1
        return addr

    def sys_sleep(self, proc: Proc) -> Optional[int]:
        try:
            n = arg_int(proc, 0)
        except BadAddress:
            self._sleep_start.pop(proc, None)
            return -1
        with self._ticks_locked():
            start = self._sleep_start.setdefault(proc, self.ticks)
            if (self.ticks - start) & _U32 >= n & _U32:
                del self._sleep_start[proc]
                return 0
            if proc.killed:
                del self._sleep_start[proc]
                return -1
            self.table.sleep(proc, self.ticks_channel)
            return None

    def sys_uptime(self, proc: Proc) -> int:
        with self._ticks_locked():
            return self.ticks