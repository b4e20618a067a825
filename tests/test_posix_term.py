import errno
import os
import select
import signal
from unittest import mock

import pytest

from linekit.keyseq import KeyEvent
from linekit.posix_render import PosixRenderer
from linekit.posix_term import (
    Behavior,
    ColorMode,
    PosixTerminal,
    is_unsupported_term,
    suspend,
)


def _read_available(fd, timeout=2.0):
    ready, _, _ = select.select([fd], [], [], timeout)
    if not ready:
        return b""
    return os.read(fd, 4096)


@pytest.fixture
def pipe_terminal(monkeypatch):
    """A terminal whose standard input and output are pipes."""
    monkeypatch.setenv("TERM", "xterm")
    in_r, in_w = os.pipe()
    out_r, out_w = os.pipe()
    saved_in, saved_out = os.dup(0), os.dup(1)
    os.dup2(in_r, 0)
    os.dup2(out_w, 1)
    term = None
    try:
        term = PosixTerminal()
        yield term, in_w, out_r
    finally:
        if term is not None:
            term.close()
        os.dup2(saved_in, 0)
        os.dup2(saved_out, 1)
        for fd in (saved_in, saved_out, in_r, in_w, out_r, out_w):
            os.close(fd)


def test_unsupported_term(monkeypatch):
    monkeypatch.setenv("TERM", "xterm")
    assert not is_unsupported_term()
    monkeypatch.setenv("TERM", "dumb")
    assert is_unsupported_term()


def test_unsupported_term_ignores_case(monkeypatch):
    monkeypatch.setenv("TERM", "EMACS")
    assert is_unsupported_term()


def test_unsupported_term_unset(monkeypatch):
    monkeypatch.delenv("TERM", raising=False)
    assert is_unsupported_term() is False


def test_suspend_reports_kill_failure():
    with mock.patch(
        "linekit.posix_term.os.kill", side_effect=PermissionError(errno.EPERM, "denied")
    ) as kill:
        with pytest.raises(PermissionError):
            suspend()
    assert kill.call_args == mock.call(0, signal.SIGTSTP)


def test_pipes_are_not_ttys(pipe_terminal):
    term, _, _ = pipe_terminal
    assert term.is_input_tty() is False
    assert term.is_output_tty() is False
    assert term.is_unsupported() is False


def test_unsupported_term_is_reported(monkeypatch):
    monkeypatch.setenv("TERM", "cons25")
    with PosixTerminal() as term:
        assert term.is_unsupported() is True


def test_enable_raw_mode_needs_tty(pipe_terminal):
    term, _, _ = pipe_terminal
    with pytest.raises(OSError) as info:
        term.enable_raw_mode()
    assert info.value.errno == errno.ENOTTY


def test_external_printer_needs_tty(pipe_terminal):
    term, _, _ = pipe_terminal
    with pytest.raises(OSError) as info:
        term.create_external_printer()
    assert info.value.errno == errno.ENOTTY


@pytest.mark.parametrize(
    "mode, expected",
    [(ColorMode.ENABLED, False), (ColorMode.FORCED, True), (ColorMode.DISABLED, False)],
)
def test_colors_enabled_without_tty(pipe_terminal, mode, expected):
    term, _, _ = pipe_terminal
    term.color_mode = mode
    assert term.colors_enabled() is expected


def test_writeln_writes_newline(pipe_terminal):
    term, _, out_r = pipe_terminal
    term.writeln()
    assert _read_available(out_r) == b"\n"


def test_create_writer_writes_to_output(pipe_terminal):
    term, _, out_r = pipe_terminal
    term.color_mode = ColorMode.FORCED
    writer = term.create_writer()
    assert isinstance(writer, PosixRenderer)
    assert writer.colors_enabled() is True
    writer.write_and_flush("abc")
    assert _read_available(out_r) == b"abc"


def test_create_reader_reads_keys(pipe_terminal):
    term, in_w, _ = pipe_terminal
    os.write(in_w, b"x\x1b[A")
    reader = term.create_reader(100, {})
    assert reader.next_key() == KeyEvent.char("x")
    assert reader.next_key().code.name == "UP"


def test_create_reader_uses_key_map(pipe_terminal):
    term, _, _ = pipe_terminal
    key = KeyEvent.char("\x03")
    reader = term.create_reader(-1, {key: "interrupt"})
    assert reader.find_binding(key) == "interrupt"
    assert reader.find_binding(KeyEvent.char("a")) is None


def test_prefer_term_behavior_closes_cleanly(monkeypatch):
    monkeypatch.setenv("TERM", "dumb")
    term = PosixTerminal(behavior=Behavior.PREFER_TERM)
    try:
        assert term.is_unsupported() is True
    finally:
        term.close()