import io
import struct

import pytest

from teachos.layout import PGSIZE, Syscall
from teachos.proc import ProcState
from teachos.spinlock import KernelPanic
from teachos.syscall import (
    BadAddress,
    Kernel,
    arg_int,
    arg_ptr,
    arg_str,
    fetch_int,
    fetch_str,
)


def _setup(args=()):
    kernel = Kernel(console=io.StringIO())
    proc = kernel.table.user_init(b"\x90")
    proc.tf.esp = 0x100
    proc.pgdir.copy_out(0x104, b"".join(struct.pack("<i", a) for a in args))
    return kernel, proc


def _by_pid(kernel, pid):
    return next(p for p in kernel.table.procs if p.pid == pid)


def _call(kernel, proc, num):
    proc.tf.eax = num
    return kernel.syscall(proc)


def test_fetch_int_reads_signed_value():
    _, proc = _setup()
    proc.pgdir.copy_out(0x200, struct.pack("<i", -7))
    assert fetch_int(proc, 0x200) == -7


@pytest.mark.parametrize("addr", [PGSIZE - 2, PGSIZE, PGSIZE + 100])
def test_fetch_int_out_of_bounds(addr):
    _, proc = _setup()
    with pytest.raises(BadAddress):
        fetch_int(proc, addr)


def test_fetch_str_stops_at_nul():
    _, proc = _setup()
    proc.pgdir.copy_out(0x300, b"hello\0world")
    assert fetch_str(proc, 0x300) == b"hello"


def test_fetch_str_unterminated():
    _, proc = _setup()
    proc.pgdir.copy_out(PGSIZE - 3, b"abc")
    with pytest.raises(BadAddress):
        fetch_str(proc, PGSIZE - 3)


def test_fetch_str_outside_process():
    _, proc = _setup()
    with pytest.raises(BadAddress):
        fetch_str(proc, PGSIZE)


def test_arg_int_reads_arguments_above_return_address():
    _, proc = _setup((5, 9))
    assert arg_int(proc, 0) == 5
    assert arg_int(proc, 1) == 9


def test_arg_ptr_checks_block():
    _, proc = _setup((0x200,))
    assert arg_ptr(proc, 0, 16) == 0x200
    with pytest.raises(BadAddress):
        arg_ptr(proc, 0, PGSIZE)


def test_arg_str_follows_pointer():
    _, proc = _setup((0x300,))
    proc.pgdir.copy_out(0x300, b"echo\0")
    assert arg_str(proc, 0) == b"echo"


def test_getpid():
    kernel, proc = _setup()
    assert _call(kernel, proc, Syscall.GETPID) == proc.pid
    assert proc.tf.eax == proc.pid


def test_unknown_syscall():
    kernel, proc = _setup()
    assert _call(kernel, proc, 99) == -1
    assert proc.tf.eax == 0xFFFFFFFF
    assert "unknown sys call 99" in kernel.console.getvalue()


def test_fork_returns_zero_in_child():
    kernel, proc = _setup()
    pid = _call(kernel, proc, Syscall.FORK)
    child = _by_pid(kernel, pid)
    assert proc.tf.eax == pid
    assert child.tf.eax == 0
    assert child.parent is proc


def test_sbrk_grows_and_returns_old_break():
    kernel, proc = _setup((2 * PGSIZE,))
    assert _call(kernel, proc, Syscall.SBRK) == PGSIZE
    assert proc.sz == 3 * PGSIZE


def test_sbrk_failure_keeps_size():
    kernel, proc = _setup((0x7FFFFFFF,))
    assert _call(kernel, proc, Syscall.SBRK) == -1
    assert proc.sz == PGSIZE


def test_kill_by_pid():
    kernel, proc = _setup()
    child = _by_pid(kernel, _call(kernel, proc, Syscall.FORK))
    proc.pgdir.copy_out(0x104, struct.pack("<i", child.pid))
    assert _call(kernel, proc, Syscall.KILL) == 0
    assert child.killed


def test_kill_unknown_pid():
    kernel, proc = _setup((4242,))
    assert _call(kernel, proc, Syscall.KILL) == -1


def test_wait_without_children():
    kernel, proc = _setup()
    assert _call(kernel, proc, Syscall.WAIT) == -1


def test_wait_blocks_then_reaps():
    kernel, proc = _setup()
    child = _by_pid(kernel, _call(kernel, proc, Syscall.FORK))
    assert _call(kernel, proc, Syscall.WAIT) is None
    assert proc.state == ProcState.SLEEPING
    assert proc.tf.eax == Syscall.WAIT
    pid = child.pid
    assert _call(kernel, child, Syscall.EXIT) == 0
    assert child.state == ProcState.ZOMBIE
    assert proc.state == ProcState.RUNNABLE
    assert kernel.syscall(proc) == pid
    assert child.state == ProcState.UNUSED


def test_init_exit_panics():
    kernel, proc = _setup()
    with pytest.raises(KernelPanic) as excinfo:
        _call(kernel, proc, Syscall.EXIT)
    assert "init exiting" in str(excinfo.value)
    assert proc.state is not ProcState.ZOMBIE
    assert _by_pid(kernel, proc.pid) is proc


def test_sleep_waits_for_ticks():
    kernel, proc = _setup((2,))
    assert _call(kernel, proc, Syscall.SLEEP) is None
    assert proc.state == ProcState.SLEEPING
    kernel.tick()
    assert proc.state == ProcState.RUNNABLE
    assert kernel.syscall(proc) is None
    kernel.tick()
    assert kernel.syscall(proc) == 0
    assert proc.tf.eax == 0


def test_sleep_zero_returns_at_once():
    kernel, proc = _setup((0,))
    assert _call(kernel, proc, Syscall.SLEEP) == 0
    assert proc.state == ProcState.RUNNABLE


def test_sleep_interrupted_by_kill():
    kernel, proc = _setup((5,))
    assert _call(kernel, proc, Syscall.SLEEP) is None
    kernel.table.kill(proc.pid)
    assert kernel.syscall(proc) == -1


def test_uptime_counts_ticks():
    kernel, proc = _setup()
    for _ in range(3):
        kernel.tick()
    assert _call(kernel, proc, Syscall.UPTIME) == kernel.ticks == 3
    assert not kernel.tickslock.locked