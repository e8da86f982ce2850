# teachos

`teachos` models the core of a small x86 teaching kernel in plain Python,
together with a few user-space tools. Everything runs in an ordinary Python
process. No emulator or hardware is involved.

## What is inside

- `teachos.layout`: the memory layout constants and paging arithmetic.
  - Page directory and page table indexes: `pdx`, `ptx`, `pgaddr`.
  - Page rounding: `pg_round_up`, `pg_round_down`.
  - Page-table-entry fields: `pte_addr`, `pte_flags`.
  - Kernel address translation: `v2p`, `p2v`.
  - Segment and gate descriptors, which can be packed to and unpacked from their 8-byte form: `SegmentDescriptor` (`segment`, `segment16`) and `GateDescriptor` (`make`).
  - System call numbers (`Syscall`) and open-mode bits (`OpenFlag`).
- `teachos.elf`: ELF file and program headers.
  - `ElfHeader.parse` checks the magic number and raises `ElfFormatError`.
  - `ProgramHeader` and the `program_headers` iterator.
  - The clock date record `RtcDate`.
- `teachos.paging`: a pool of 4 KiB pages (`PhysicalMemory`) and two-level page tables (`AddressSpace`).
  - `AddressSpace` can walk, map, grow (`alloc_user`), shrink (`dealloc_user`), copy for fork (`copy`) and free an address space.
  - `copy_out` and `read_user` move bytes to and from user memory.
  - Exhaustion raises `OutOfMemory`. Inconsistent states raise `PagingError`.
- `teachos.allocator`: a first-fit free-list `Heap` with `malloc`, `free`, `sbrk` and `free_units`.
- `teachos.spinlock`: `SpinLock` and per-CPU interrupt nesting on `Cpu` (`push_cli`, `pop_cli`). Misuse raises `KernelPanic`.
- `teachos.proc`: the `ProcessTable`.
  - It allocates, forks, exits, waits, sleeps, wakes and kills processes.
  - `dump` gives a text listing.
  - `scheduler_round` is a generator that yields each runnable process in turn while it is running.
- `teachos.syscall`: system call arguments and process calls.
  - Argument fetching from user memory: `fetch_int`, `fetch_str`, `arg_int`, `arg_ptr`, `arg_str`. A bad address raises `BadAddress`.
  - `Kernel` implements the process system calls `fork`, `exit`, `wait`, `kill`, `getpid`, `sbrk`, `sleep` and `uptime`, plus the clock `tick`.
  - A call that must block returns `None`. Calling it again later repeats it.
- `teachos.trap`:
  - `timer_divisor` computes the interval-timer count.
  - `build_idt` builds the interrupt descriptor table.
  - `dispatch` handles one trap, selected by a `TrapKind`.
- `teachos.commands`: the shell command-line parser.
  - `tokenize` splits a line into tokens.
  - `parse_command` builds a tree of `ExecCommand`, `RedirCommand`, `PipeCommand`, `ListCommand` and `BackCommand`.
  - Bad input raises `ShellSyntaxError`.
- `teachos.cstring`: C-style string helpers: `atoi`, `strcmp`, `strncmp`, `strncpy`, `safestrcpy`, `memcmp`, `read_line`.
- `teachos.wc`, `teachos.tail`, `teachos.uniq`, `teachos.rm`: the command-line tools.
  - `count`, `tail_lines`, `uniq_lines` and `same_line` can also be called as functions.

## Installing

```
pip install .
```

## Command-line tools

```
teachos-wc [FILE...]        # lines, words and bytes per file
teachos-tail [-N] [FILE]    # last N lines (10 by default)
teachos-uniq [-icd] [FILE]  # collapse adjacent repeated lines
teachos-rm FILE...          # remove files and empty directories
```

With no file, `teachos-wc`, `teachos-tail` and `teachos-uniq` read standard input.

`teachos-uniq` options:

- `-i` ignores letter case.
- `-c` prefixes each line with a tab and its count.
- `-d` prints only lines that repeat.

`teachos-tail` and `teachos-uniq` work on newline-terminated lines. A final line with no newline is not printed.

`teachos-rm` stops at the first path it cannot remove. Every tool exits with status 1 on an error.

## Using the library

```python
from teachos.commands import parse_command, PipeCommand

cmd = parse_command("cat README.md | wc")
assert isinstance(cmd, PipeCommand)
```

```python
from teachos.layout import pg_round_up, pdx, ptx

pg_round_up(4097)                  # 8192
pdx(0x80400000), ptx(0x80400000)   # (513, 0)
```

```python
from teachos.allocator import Heap

heap = Heap()
block = heap.malloc(100)
heap.free(block)
```

## What it does not do

- There is no file system. `Kernel` handles only the process system calls listed above. For the file, pipe and exec call numbers in `Syscall`, it prints "unknown sys call" and returns -1.
- The shell is a parser only: `parse_command` builds command trees but nothing runs them.
- There are no device drivers. Disk, keyboard and serial interrupts are accepted by `dispatch` and otherwise ignored.
- Nothing boots or emulates a machine. The caller drives scheduling by iterating `ProcessTable.scheduler_round`.

## Running the tests

```
pip install .[test]
pytest
```