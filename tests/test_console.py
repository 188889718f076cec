import io

import pytest

from teachos.console import INPUT_BUF, Console


@pytest.fixture
def out():
    return io.StringIO()


def test_line_is_echoed_and_read(out):
    con = Console(out)
    con.interrupt("hi\n")
    assert con.read(10) == b"hi\n"
    assert out.getvalue() == "hi\n"


def test_backspace_removes_character(out):
    con = Console(out)
    con.interrupt("ab\x7fc\n")
    assert con.read(10) == b"ac\n"
    assert "\b \b" in out.getvalue()


def test_kill_line(out):
    con = Console(out)
    con.interrupt("abc\x15d\n")
    assert con.read(10) == b"d\n"
    assert out.getvalue().count("\b \b") == 3


def test_carriage_return_becomes_newline(out):
    con = Console(out)
    con.interrupt([ord("x"), ord("\r")])
    assert con.read(10) == b"x\n"


def test_control_d_ends_input(out):
    con = Console(out)
    con.interrupt("ab\x04")
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_partial_reads(out):
    con = Console(out)
    con.interrupt("hello\n")
    assert con.read(2) == b"he"
    assert con.read(10) == b"llo\n"


def test_full_buffer_completes_line(out):
    con = Console(out)
    con.interrupt("a" * (INPUT_BUF + 5))
    assert con.read(INPUT_BUF) == b"a" * INPUT_BUF
    assert out.getvalue() == "a" * INPUT_BUF


def test_killed_read_raises(out):
    con = Console(out)
    con.kill()
    with pytest.raises(InterruptedError):
        con.read(1)


def test_write_goes_to_output(out):
    con = Console(out)
    assert con.write(b"xyz") == 3
    assert out.getvalue() == "xyz"


def test_procdump_callback(out):
    con = Console(out)
    calls = []
    con.on_procdump = lambda: calls.append(True)
    con.interrupt([16])
    assert calls == [True]


def test_backspace_on_empty_line_does_nothing(out):
    con = Console(out)
    con.interrupt("\x08")
    assert out.getvalue() == ""