"""Parsing of shell command lines into command trees."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Union

from teachos.layout import OpenFlag

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"
MAXARGS = 10


class ShellSyntaxError(ValueError):
    """The command line cannot be parsed."""


@dataclass
class ExecCommand:
    """Run a program with arguments."""

    argv: list[str] = field(default_factory=list)


@dataclass
class RedirCommand:
    """Run a command with one file descriptor redirected to a file."""

    cmd: "Command"
    file: str
    mode: OpenFlag
    fd: int


@dataclass
class PipeCommand:
    """Connect the output of one command to the input of another."""

    left: "Command"
    right: "Command"


@dataclass
class ListCommand:
    """Run one command after another."""

    left: "Command"
    right: "Command"


@dataclass
class BackCommand:
    """Run a command in the background."""

    cmd: "Command"


Command = Union[ExecCommand, RedirCommand, PipeCommand, ListCommand, BackCommand]


def _terminate(line: str) -> str:
    return line.split("\0", 1)[0]


def _scan(line: str) -> Iterator[tuple[str, str, int]]:
    i, n = 0, len(line)
    while True:
        while i < n and line[i] in WHITESPACE:
            i += 1
        if i >= n:
            return
        start = i
        c = line[i]
        if c in "|();&<":
            kind = c
            i += 1
        elif c == ">":
            kind = ">"
            i += 1
            if i < n and line[i] == ">":
                kind = "+"
                i += 1
        else:
            kind = "a"
            while i < n and line[i] not in WHITESPACE and line[i] not in SYMBOLS:
                i += 1
        yield kind, line[start:i], start


def tokenize(line: str) -> list[tuple[str, str]]:
    """Split a line into (kind, text) tokens.

    The kind is the symbol itself, '+' for '>>', or 'a' for a word.
    """
    return [(kind, text) for kind, text, _ in _scan(_terminate(line))]


class _Parser:
    def __init__(self, line: str) -> None:
        self.line = _terminate(line)
        self.tokens = list(_scan(self.line))
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self, chars: str) -> bool:
        return not self.at_end() and self.tokens[self.pos][1][0] in chars

    def take(self) -> tuple[str, str]:
        if self.at_end():
            return "", ""
        kind, text, _ = self.tokens[self.pos]
        self.pos += 1
        return kind, text

    def rest(self) -> str:
        return self.line[self.tokens[self.pos][2]:]

    def parse_line(self) -> Command:
        cmd = self.parse_pipe()
        while self.peek("&"):
            self.take()
            cmd = BackCommand(cmd)
        if self.peek(";"):
            self.take()
            cmd = ListCommand(cmd, self.parse_line())
        return cmd

    def parse_pipe(self) -> Command:
        cmd = self.parse_exec()
        if self.peek("|"):
            self.take()
            cmd = PipeCommand(cmd, self.parse_pipe())
        return cmd

    def parse_redirs(self, cmd: Command) -> Command:
        while self.peek("<>"):
            tok, _ = self.take()
            kind, name = self.take()
            if kind != "a":
                raise ShellSyntaxError("missing file for redirection")
            if tok == "<":
                cmd = RedirCommand(cmd, name, OpenFlag.RDONLY, 0)
            else:
                cmd = RedirCommand(cmd, name, OpenFlag.WRONLY | OpenFlag.CREATE, 1)
        return cmd

    def parse_block(self) -> Command:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.take()
        cmd = self.parse_line()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.take()
        return self.parse_redirs(cmd)

    def parse_exec(self) -> Command:
        if self.peek("("):
            return self.parse_block()
        ecmd = ExecCommand()
        ret = self.parse_redirs(ecmd)
        while not self.peek("|)&;"):
            kind, text = self.take()
            if not kind:
                break
            if kind != "a":
                raise ShellSyntaxError("syntax")
            ecmd.argv.append(text)
            if len(ecmd.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.parse_redirs(ret)
        return ret


def parse_command(line: str) -> Command:
    """Parse a whole command line into a command tree."""
    parser = _Parser(line)
    cmd = parser.parse_line()
    if not parser.at_end():
        raise ShellSyntaxError(f"leftovers: {parser.rest()}")
    return cmd