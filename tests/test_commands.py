import pytest

from teachos.commands import (
    BackCommand,
    ExecCommand,
    ListCommand,
    PipeCommand,
    RedirCommand,
    ShellSyntaxError,
    parse_command,
    tokenize,
)
from teachos.layout import OpenFlag


def test_tokenize_append_redirection():
    assert tokenize("ls>>out") == [("a", "ls"), ("+", ">>"), ("a", "out")]


def test_tokenize_symbols_and_whitespace():
    assert tokenize(" a|b\t&\n") == [("a", "a"), ("|", "|"), ("a", "b"), ("&", "&")]


def test_tokenize_stops_at_nul():
    assert tokenize("echo hi\0ignored") == [("a", "echo"), ("a", "hi")]


def test_simple_exec():
    assert parse_command("echo hello world\n") == ExecCommand(["echo", "hello", "world"])


def test_empty_line():
    assert parse_command("\n") == ExecCommand([])


def test_redirections_wrap_in_order():
    cmd = parse_command("cat < in > out")
    inner = RedirCommand(ExecCommand(["cat"]), "in", OpenFlag.RDONLY, 0)
    assert cmd == RedirCommand(inner, "out", OpenFlag.WRONLY | OpenFlag.CREATE, 1)


def test_append_opens_for_writing():
    cmd = parse_command("echo x >> log")
    assert cmd == RedirCommand(
        ExecCommand(["echo", "x"]), "log", OpenFlag.WRONLY | OpenFlag.CREATE, 1
    )


def test_pipe_is_right_associative():
    cmd = parse_command("a | b | c")
    assert cmd == PipeCommand(
        ExecCommand(["a"]), PipeCommand(ExecCommand(["b"]), ExecCommand(["c"]))
    )


def test_list_and_background():
    cmd = parse_command("a & ; b")
    assert cmd == ListCommand(BackCommand(ExecCommand(["a"])), ExecCommand(["b"]))


def test_double_background():
    assert parse_command("a & &") == BackCommand(BackCommand(ExecCommand(["a"])))


def test_block_with_redirection():
    cmd = parse_command("(a ; b) > f")
    assert cmd == RedirCommand(
        ListCommand(ExecCommand(["a"]), ExecCommand(["b"])),
        "f",
        OpenFlag.WRONLY | OpenFlag.CREATE,
        1,
    )


def test_missing_redirection_file():
    with pytest.raises(ShellSyntaxError, match="missing file for redirection"):
        parse_command("a >")


def test_leftovers():
    with pytest.raises(ShellSyntaxError, match="leftovers: \\) b"):
        parse_command("a ) b")


def test_missing_close_paren():
    with pytest.raises(ShellSyntaxError, match="missing \\)"):
        parse_command("(a")


def test_paren_inside_arguments():
    with pytest.raises(ShellSyntaxError, match="syntax"):
        parse_command("echo (a)")


def test_too_many_args():
    with pytest.raises(ShellSyntaxError, match="too many args"):
        parse_command(" ".join(["x"] * 10))


def test_nine_args_accepted():
    args = [f"x{i}" for i in range(9)]
    assert parse_command(" ".join(args)) == ExecCommand(args)