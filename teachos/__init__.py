"""A small teaching operating system kernel modelled in Python, with parsers and user tools."""

__version__ = "0.1.0"

__all__ = [
    "allocator",
    "commands",
    "cstring",
    "elf",
    "layout",
    "paging",
    "proc",
    "rm",
    "spinlock",
    "syscall",
    "tail",
    "trap",
    "uniq",
    "wc",
]