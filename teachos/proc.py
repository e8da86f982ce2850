"""Process table, process life cycle and a cooperative scheduler."""

from __future__ import annotations

import enum
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Optional

from teachos.layout import DPL_USER, FL_IF, PGSIZE, SEG_UCODE, SEG_UDATA
from teachos.paging import AddressSpace, OutOfMemory, PhysicalMemory
from teachos.spinlock import Cpu, KernelPanic, SpinLock

NPROC = 64
NOFILE = 16
_NAME_LEN = 16
_U32 = 0xFFFFFFFF


class ProcState(enum.IntEnum):
    """Life-cycle state of a process slot."""

    UNUSED = 0
    EMBRYO = 1
    SLEEPING = 2
    RUNNABLE = 3
    RUNNING = 4
    ZOMBIE = 5


_STATE_NAMES = {
    ProcState.UNUSED: "unused",
    ProcState.EMBRYO: "embryo",
    ProcState.SLEEPING: "sleep ",
    ProcState.RUNNABLE: "runble",
    ProcState.RUNNING: "run   ",
    ProcState.ZOMBIE: "zombie",
}


@dataclass
class Context:
    """Registers saved across a kernel context switch."""

    edi: int = 0
    esi: int = 0
    ebx: int = 0
    ebp: int = 0
    eip: int = 0


@dataclass
class TrapFrame:
    """User registers saved on entry to the kernel."""

    edi: int = 0
    esi: int = 0
    ebp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    gs: int = 0
    fs: int = 0
    es: int = 0
    ds: int = 0
    trapno: int = 0
    err: int = 0
    eip: int = 0
    cs: int = 0
    eflags: int = 0
    esp: int = 0
    ss: int = 0


@dataclass(eq=False)
class Proc:
    """One slot of the process table."""

    sz: int = 0
    pgdir: Optional[AddressSpace] = None
    kstack: Optional[int] = None
    state: ProcState = ProcState.UNUSED
    pid: int = 0
    parent: Optional[Proc] = None
    tf: Optional[TrapFrame] = None
    context: Optional[Context] = None
    chan: Any = None
    killed: bool = False
    ofile: list = field(default_factory=list)
    cwd: Any = None
    name: str = ""


class NoChildren(Exception):
    """The waiting process has no children, or has been killed."""


class ProcessTable:
    """All processes of the machine, guarded by one lock."""

    def __init__(
        self,
        memory: Optional[PhysicalMemory] = None,
        nproc: int = NPROC,
        nofile: int = NOFILE,
        kernel_map: Iterable[tuple[int, int, int, int]] = (),
    ) -> None:
        if nproc <= 0:
            raise ValueError("nproc must be positive")
        self.memory = memory if memory is not None else PhysicalMemory()
        self.kernel_map = tuple(kernel_map)
        self.nofile = nofile
        self.procs = [Proc(ofile=[None] * nofile) for _ in range(nproc)]
        self.lock = SpinLock("ptable")
        self.cpu = Cpu()
        self.next_pid = 1
        self.initproc: Optional[Proc] = None

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.lock.acquire(self.cpu)
        try:
            yield
        finally:
            self.lock.release(self.cpu)

    def alloc(self) -> Proc:
        """Claim an unused slot with a fresh pid and a kernel stack."""
        with self._locked():
            p = next((p for p in self.procs if p.state == ProcState.UNUSED), None)
            if p is None:
                raise OutOfMemory("process table is full")
            p.state = ProcState.EMBRYO
            p.pid = self.next_pid
            self.next_pid += 1
        try:
            p.kstack = self.memory.alloc()
        except OutOfMemory:
            p.state = ProcState.UNUSED
            raise
        p.tf = TrapFrame()
        p.context = Context()
        return p

    def user_init(self, code: bytes) -> Proc:
        """Create the first user process running code from address 0."""
        p = self.alloc()
        self.initproc = p
        try:
            p.pgdir = AddressSpace(self.memory, self.kernel_map)
        except OutOfMemory as exc:
            raise KernelPanic("userinit: out of memory?") from exc
        p.pgdir.load_init(code)
        p.sz = PGSIZE
        udata = (SEG_UDATA << 3) | DPL_USER
        p.tf = TrapFrame(
            cs=(SEG_UCODE << 3) | DPL_USER,
            ds=udata,
            es=udata,
            ss=udata,
            eflags=FL_IF,
            esp=PGSIZE,
            eip=0,
        )
        p.name = "initcode"
        p.cwd = "/"
        p.state = ProcState.RUNNABLE
        return p

    def grow(self, proc: Proc, n: int) -> int:
        """Grow or shrink the memory of proc by n bytes and return its new size."""
        if proc.pgdir is None:
            raise KernelPanic("switchuvm: no pgdir")
        sz = proc.sz
        if n > 0:
            sz = proc.pgdir.alloc_user(sz, sz + n)
        elif n < 0:
            sz = proc.pgdir.dealloc_user(sz, (sz + n) & _U32)
        proc.sz = sz
        return sz

    def fork(self, parent: Proc) -> int:
        """Create a copy of parent, ready to run, and return the child's pid."""
        if parent.pgdir is None or parent.tf is None:
            raise KernelPanic("fork: parent has no address space")
        np = self.alloc()
        try:
            pgdir = parent.pgdir.copy(parent.sz)
        except OutOfMemory:
            self.memory.free(np.kstack)
            np.kstack = None
            np.state = ProcState.UNUSED
            raise
        np.pgdir = pgdir
        np.sz = parent.sz
        np.parent = parent
        np.tf = replace(parent.tf, eax=0)
        np.ofile = list(parent.ofile)
        np.cwd = parent.cwd
        np.name = parent.name[: _NAME_LEN - 1]
        with self._locked():
            np.state = ProcState.RUNNABLE
        return np.pid

    def exit(self, proc: Proc) -> None:
        """Turn proc into a zombie, handing its children to the first process."""
        if proc is self.initproc:
            raise KernelPanic("init exiting")
        proc.ofile = [None] * self.nofile
        proc.cwd = None
        with self._locked():
            self._wakeup1(proc.parent)
            for p in self.procs:
                if p.parent is proc:
                    p.parent = self.initproc
                    if p.state == ProcState.ZOMBIE:
                        self._wakeup1(self.initproc)
            proc.state = ProcState.ZOMBIE

    def wait(self, proc: Proc) -> Optional[int]:
        """Reap a zombie child and return its pid.

        Returns None when proc had to go to sleep until a child exits;
        the call is then repeated once proc runs again.
        """
        with self._locked():
            havekids = False
            for p in self.procs:
                if p.parent is not proc:
                    continue
                havekids = True
                if p.state == ProcState.ZOMBIE:
                    pid = p.pid
                    if p.kstack is not None:
                        self.memory.free(p.kstack)
                    p.kstack = None
                    if p.pgdir is not None:
                        p.pgdir.free()
                    p.pgdir = None
                    p.state = ProcState.UNUSED
                    p.pid = 0
                    p.parent = None
                    p.name = ""
                    p.killed = False
                    return pid
            if not havekids or proc.killed:
                raise NoChildren(f"process {proc.pid} has nothing to wait for")
            proc.chan = proc
            proc.state = ProcState.SLEEPING
            return None

    def sleep(self, proc: Optional[Proc], chan: Any) -> None:
        """Put proc to sleep until chan is woken."""
        if proc is None:
            raise KernelPanic("sleep")
        with self._locked():
            proc.chan = chan
            proc.state = ProcState.SLEEPING

    def _wakeup1(self, chan: Any) -> None:
        for p in self.procs:
            if p.state == ProcState.SLEEPING and p.chan is chan:
                p.state = ProcState.RUNNABLE

    def wakeup(self, chan: Any) -> None:
        """Make every process sleeping on chan runnable."""
        with self._locked():
            self._wakeup1(chan)

    def kill(self, pid: int) -> None:
        """Mark the process with pid as killed, waking it if asleep."""
        with self._locked():
            for p in self.procs:
                if p.state != ProcState.UNUSED and p.pid == pid:
                    p.killed = True
                    if p.state == ProcState.SLEEPING:
                        p.state = ProcState.RUNNABLE
                    return
        raise ProcessLookupError(f"no process with pid {pid}")

    def yield_cpu(self, proc: Proc) -> None:
        """Give up the processor for one scheduling round."""
        with self._locked():
            proc.state = ProcState.RUNNABLE

    def scheduler_round(self) -> Iterator[Proc]:
        """Yield each runnable process in turn as the CPU switches to it.

        While a process is yielded it is RUNNING and is the CPU's current
        process. A process still RUNNING when control comes back is put
        back to RUNNABLE, as if it had yielded.
        """
        for p in self.procs:
            with self._locked():
                if p.state != ProcState.RUNNABLE:
                    continue
                if p.pgdir is None:
                    raise KernelPanic("switchuvm: no pgdir")
                p.state = ProcState.RUNNING
                p.chan = None
                self.cpu.proc = p
            try:
                yield p
            finally:
                with self._locked():
                    if p.state == ProcState.RUNNING:
                        p.state = ProcState.RUNNABLE
                self.cpu.proc = None

    def dump(self) -> str:
        """A listing of every process in use, one line each."""
        return "".join(
            f"{p.pid} {_STATE_NAMES.get(p.state, '???')} {p.name}\n"
            for p in self.procs
            if p.state != ProcState.UNUSED
        )