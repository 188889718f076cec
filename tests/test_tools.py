import io
import sys

import pytest

from teachos.tools import cat, cat_main, echo, echo_main, grep_main


class ShortWriter:
    def write(self, data):
        return len(data) - 1


def test_cat_copies_everything():
    data = bytes(range(256)) * 10
    out = io.BytesIO()
    cat(io.BytesIO(data), out)
    assert out.getvalue() == data


def test_cat_empty_stream():
    out = io.BytesIO()
    cat(io.BytesIO(b""), out)
    assert out.getvalue() == b""


def test_cat_short_write_raises():
    with pytest.raises(OSError, match="cat: write error"):
        cat(io.BytesIO(b"hello"), ShortWriter())


def test_echo_joins_words():
    out = io.StringIO()
    echo(["hello", "world"], out)
    assert out.getvalue() == "hello world\n"


def test_echo_without_words_prints_nothing():
    out = io.StringIO()
    echo([], out)
    assert out.getvalue() == ""


def test_cat_main_concatenates_files(tmp_path, capsysbinary):
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.write_bytes(b"first\n")
    b.write_bytes(b"second\n")
    assert cat_main([str(a), str(b)]) == 0
    assert capsysbinary.readouterr().out == b"first\nsecond\n"


def test_cat_main_missing_file(tmp_path, capsysbinary):
    missing = tmp_path / "nope"
    assert cat_main([str(missing)]) == 1
    assert capsysbinary.readouterr().out == f"cat: cannot open {missing}\n".encode()


def test_cat_main_reads_stdin(monkeypatch, capsysbinary):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"piped\n")))
    assert cat_main([]) == 0
    assert capsysbinary.readouterr().out == b"piped\n"


def test_echo_main(capsys):
    assert echo_main(["a", "b", "c"]) == 0
    assert capsys.readouterr().out == "a b c\n"


def test_grep_main_filters_file(tmp_path, capsys):
    path = tmp_path / "text"
    path.write_text("apple\nbanana\ncherry\napricot\n")
    assert grep_main(["^ap", str(path)]) == 0
    assert capsys.readouterr().out == "apple\napricot\n"


def test_grep_main_usage(capsys):
    assert grep_main([]) == 1
    assert capsys.readouterr().err == "usage: grep pattern [file ...]\n"


def test_grep_main_missing_file(tmp_path, capsys):
    missing = tmp_path / "nope"
    assert grep_main(["x", str(missing)]) == 1
    assert capsys.readouterr().out == f"grep: cannot open {missing}\n"


def test_grep_main_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("one\ntwo\nthree\n"))
    assert grep_main(["o$"]) == 0
    assert capsys.readouterr().out == "two\n"