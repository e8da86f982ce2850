"""Interrupt descriptor table set-up, timer programming and trap dispatch."""

from __future__ import annotations

import enum
from typing import Iterable, Optional

from teachos.layout import DPL_USER, SEG_KCODE, GateDescriptor
from teachos.proc import Proc, ProcState, TrapFrame
from teachos.spinlock import Cpu, KernelPanic
from teachos.syscall import Kernel

TIMER_FREQ = 1193182
IDT_ENTRIES = 256

_DEVICE_KINDS = frozenset()


class TrapKind(enum.Enum):
    """What caused entry into the kernel."""

    SYSCALL = "syscall"
    TIMER = "timer"
    IDE = "ide"
    IDE_SECONDARY = "ide1"
    KEYBOARD = "keyboard"
    COM1 = "com1"
    SPURIOUS = "spurious"
    FAULT = "fault"


_DEVICE_KINDS = frozenset(
    {TrapKind.IDE, TrapKind.IDE_SECONDARY, TrapKind.KEYBOARD, TrapKind.COM1}
)


def timer_divisor(hz: int) -> int:
    """Count to load into the interval timer for an interrupt rate of hz."""
    if hz <= 0:
        raise ValueError("timer frequency must be positive")
    return (TIMER_FREQ + hz // 2) // hz


def build_idt(vectors: Iterable[int], syscall_vector: int) -> list[GateDescriptor]:
    """Interrupt gates for every vector, with a user-callable trap gate for system calls."""
    handlers = list(vectors)
    if len(handlers) != IDT_ENTRIES:
        raise ValueError(f"expected {IDT_ENTRIES} vectors, got {len(handlers)}")
    if not 0 <= syscall_vector < IDT_ENTRIES:
        raise ValueError(f"system call vector {syscall_vector} out of range")
    idt = [GateDescriptor.make(False, SEG_KCODE << 3, off, 0) for off in handlers]
    idt[syscall_vector] = GateDescriptor.make(
        True, SEG_KCODE << 3, handlers[syscall_vector], DPL_USER
    )
    return idt


def _from_user(tf: TrapFrame) -> bool:
    return (tf.cs & 3) == DPL_USER


def _must_exit(proc: Optional[Proc], tf: TrapFrame) -> bool:
    return proc is not None and proc.killed and _from_user(tf)


def dispatch(
    kernel: Kernel,
    cpu: Cpu,
    proc: Optional[Proc],
    kind: TrapKind,
    tf: TrapFrame,
) -> None:
    """Handle one trap taken on cpu while proc (or no process) was running."""
    console = kernel.console
    table = kernel.table

    if kind is TrapKind.SYSCALL:
        if proc is None:
            raise KernelPanic("syscall without a process")
        if proc.killed:
            table.exit(proc)
            return
        proc.tf = tf
        kernel.syscall(proc)
        if proc.state == ProcState.ZOMBIE:
            return
        if proc.killed:
            table.exit(proc)
        return

    if kind is TrapKind.TIMER:
        if cpu.id == 0:
            kernel.tick()
    elif kind in _DEVICE_KINDS:
        # Disk, keyboard and serial drivers live outside this kernel;
        # the interrupt needs no further work here.
        pass
    elif kind is TrapKind.SPURIOUS:
        print(f"cpu{cpu.id}: spurious interrupt at {tf.cs:x}:{tf.eip:x}", file=console)
    else:
        if proc is None or (tf.cs & 3) == 0:
            print(
                f"unexpected trap {tf.trapno} from cpu {cpu.id} eip {tf.eip:x}",
                file=console,
            )
            raise KernelPanic("trap")
        print(
            f"pid {proc.pid} {proc.name}: trap {tf.trapno} err {tf.err} "
            f"on cpu {cpu.id} eip 0x{tf.eip:x}--kill proc",
            file=console,
        )
        proc.killed = True

    if _must_exit(proc, tf):
        table.exit(proc)
        return

    if proc is not None and proc.state == ProcState.RUNNING and kind is TrapKind.TIMER:
        table.yield_cpu(proc)

    if _must_exit(proc, tf):
        table.exit(proc)