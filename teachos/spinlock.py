"""Per-CPU interrupt nesting and mutual-exclusion spin locks."""

from __future__ import annotations

import threading
import traceback
from dataclasses import dataclass
from typing import Any, Optional

_MAX_PCS = 10


class KernelPanic(RuntimeError):
    """The kernel reached a state it cannot continue from."""


@dataclass(eq=False)
class Cpu:
    """State of one processor that locking depends on."""

    id: int = 0
    interrupts_enabled: bool = False
    ncli: int = 0
    intena: bool = False
    started: bool = False
    proc: Any = None

    def push_cli(self) -> None:
        """Disable interrupts, remembering whether they were on at the outermost level."""
        enabled = self.interrupts_enabled
        self.interrupts_enabled = False
        if self.ncli == 0:
            self.intena = enabled
        self.ncli += 1

    def pop_cli(self) -> None:
        """Undo one push_cli, re-enabling interrupts when the last one is undone."""
        if self.interrupts_enabled:
            raise KernelPanic("popcli - interruptible")
        self.ncli -= 1
        if self.ncli < 0:
            raise KernelPanic("popcli")
        if self.ncli == 0 and self.intena:
            self.interrupts_enabled = True


def _caller_pcs() -> tuple[str, ...]:
    frames = traceback.extract_stack()[:-2]
    recent = list(reversed(frames))[:_MAX_PCS]
    return tuple(f"{f.filename}:{f.lineno} {f.name}" for f in recent)


class SpinLock:
    """A lock held by one CPU at a time, with interrupts off while held."""

    def __init__(self, name: str = "lock") -> None:
        self.name = name
        self.cpu: Optional[Cpu] = None
        self.pcs: tuple[str, ...] = ()
        self._lock = threading.Lock()

    @property
    def locked(self) -> bool:
        """Whether any CPU holds the lock."""
        return self._lock.locked()

    def acquire(self, cpu: Cpu) -> None:
        """Take the lock on behalf of cpu, waiting until it is free."""
        cpu.push_cli()
        if self.holding(cpu):
            raise KernelPanic("acquire")
        self._lock.acquire()
        self.cpu = cpu
        self.pcs = _caller_pcs()

    def release(self, cpu: Cpu) -> None:
        """Give the lock up; cpu must be holding it."""
        if not self.holding(cpu):
            raise KernelPanic("release")
        self.pcs = ()
        self.cpu = None
        self._lock.release()
        cpu.pop_cli()

    def holding(self, cpu: Cpu) -> bool:
        """Whether cpu holds the lock."""
        return self.locked and self.cpu is cpu

    def __repr__(self) -> str:
        return f"SpinLock({self.name!r}, locked={self.locked})"