"""POSIX terminal: raw mode, window-size signals and external printing."""

from __future__ import annotations

import enum
import errno
import logging
import os
import queue
import signal
import threading
import termios
import weakref
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from linekit.keyseq import KeyEvent, KeyReader
from linekit.posix_render import BellStyle, PosixRenderer

_log = logging.getLogger(__name__)

_UNSUPPORTED_TERM = ("dumb", "cons25", "emacs")

BRACKETED_PASTE_ON = "\x1b[?2004h"
BRACKETED_PASTE_OFF = "\x1b[?2004l"

_STDIN_FILENO = 0
_STDOUT_FILENO = 1

# termios attribute list indices
_IFLAG, _OFLAG, _CFLAG, _LFLAG, _ISPEED, _OSPEED, _CC = range(7)


class ColorMode(enum.Enum):
    """Whether colours are used in the output."""

    ENABLED = "enabled"
    FORCED = "forced"
    DISABLED = "disabled"


class Behavior(enum.Enum):
    """Which streams the terminal talks to."""

    STDIO = "stdio"
    PREFER_TERM = "prefer_term"


def is_unsupported_term() -> bool:
    """Whether $TERM names a terminal that cannot do rich line editing."""
    term = os.environ.get("TERM")
    if term is None:
        return False
    return term.lower() in _UNSUPPORTED_TERM


def suspend() -> None:
    """Suspend the whole process group."""
    os.kill(0, signal.SIGTSTP)


def _is_a_tty(fd: int) -> bool:
    try:
        return os.isatty(fd)
    except OSError:
        return False


def _write_all(fd: int, text: str) -> None:
    data = text.encode("utf-8")
    while data:
        written = os.write(fd, data)
        if written == 0:
            raise OSError(errno.EIO, "failed to write to terminal")
        data = data[written:]


def _control_char(value: Union[bytes, int]) -> str:
    if isinstance(value, int):
        return chr(value)
    return chr(value[0]) if value else "\x00"


@dataclass
class PosixMode:
    """Saved terminal settings; restore them with :meth:`disable_raw_mode`."""

    termios_attrs: list
    tty_in: int
    tty_out: Optional[int]
    raw_mode: threading.Event

    def disable_raw_mode(self) -> None:
        """Leave raw mode and turn bracketed paste off."""
        termios.tcsetattr(self.tty_in, termios.TCSADRAIN, self.termios_attrs)
        if self.tty_out is not None:
            _write_all(self.tty_out, BRACKETED_PASTE_OFF)
        self.raw_mode.clear()

    def __enter__(self) -> "PosixMode":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.disable_raw_mode()


class _PrintChannel:
    """A self-pipe paired with a one-slot message queue."""

    def __init__(self) -> None:
        self.read_fd, self.write_fd = os.pipe()
        self.messages: "queue.Queue[str]" = queue.Queue(maxsize=1)
        self.lock = threading.Lock()

    def close(self) -> None:
        for fd in (self.read_fd, self.write_fd):
            try:
                os.close(fd)
            except OSError:
                pass


class ExternalPrinter:
    """Prints messages from other threads without breaking the edited line."""

    def __init__(
        self, channel: _PrintChannel, raw_mode: threading.Event, tty_out: int
    ) -> None:
        self._channel = channel
        self._raw_mode = raw_mode
        self._tty_out = tty_out

    def print(self, msg: str) -> None:
        """Print ``msg``: directly when not editing, else through the reader."""
        if not self._raw_mode.is_set():
            _write_all(self._tty_out, msg)
            return
        with self._channel.lock:
            self._channel.messages.put(msg)
            os.write(self._channel.write_fd, b"m")


class _SigWinch:
    """Turns SIGWINCH into readable data on a non-blocking pipe."""

    def __init__(self, read_fd: int, write_fd: int, original: Any) -> None:
        self.read_fd = read_fd
        self._write_fd = write_fd
        self._original = original

    @classmethod
    def install(cls) -> Optional["_SigWinch"]:
        read_fd, write_fd = os.pipe()
        os.set_blocking(read_fd, False)
        os.set_blocking(write_fd, False)

        def handler(signum: int, frame: Any) -> None:
            try:
                os.write(write_fd, b"s")
            except OSError:
                pass

        try:
            original = signal.signal(signal.SIGWINCH, handler)
        except ValueError:
            # signal handlers can only be installed from the main thread
            os.close(read_fd)
            os.close(write_fd)
            return None
        return cls(read_fd, write_fd, original)

    def uninstall(self) -> None:
        original = self._original if self._original is not None else signal.SIG_DFL
        try:
            signal.signal(signal.SIGWINCH, original)
        except ValueError:
            _log.debug("cannot restore SIGWINCH handler outside the main thread")
        os.close(self.read_fd)
        os.close(self._write_fd)


class PosixTerminal:
    """A POSIX terminal on stdin/stdout or on the controlling tty."""

    def __init__(
        self,
        color_mode: ColorMode = ColorMode.ENABLED,
        behavior: Behavior = Behavior.STDIO,
        tab_stop: int = 8,
        bell_style: BellStyle = BellStyle.AUDIBLE,
        enable_bracketed_paste: bool = True,
    ) -> None:
        self._close_on_drop = False
        if behavior is Behavior.PREFER_TERM:
            try:
                fd = os.open("/dev/tty", os.O_RDWR)
            except OSError:
                tty_in, tty_out = _STDIN_FILENO, _STDOUT_FILENO
            else:
                tty_in = tty_out = fd
                self._close_on_drop = True
        else:
            tty_in, tty_out = _STDIN_FILENO, _STDOUT_FILENO

        self._tty_in = tty_in
        self._tty_out = tty_out
        self._is_in_a_tty = _is_a_tty(tty_in)
        self._is_out_a_tty = _is_a_tty(tty_out)
        self.color_mode = color_mode
        self._tab_stop = tab_stop
        self._bell_style = bell_style
        self._enable_bracketed_paste = enable_bracketed_paste
        self._unsupported = is_unsupported_term()
        self._raw_mode = threading.Event()
        self._channel: Optional[_PrintChannel] = None
        self._printers: "weakref.WeakSet[ExternalPrinter]" = weakref.WeakSet()
        self._sigwinch: Optional[_SigWinch] = None
        self._closed = False
        if not self._unsupported and self._is_in_a_tty and self._is_out_a_tty:
            self._sigwinch = _SigWinch.install()

    def is_unsupported(self) -> bool:
        """Whether the terminal cannot provide rich line editing."""
        return self._unsupported

    def is_input_tty(self) -> bool:
        return self._is_in_a_tty

    def is_output_tty(self) -> bool:
        return self._is_out_a_tty

    def colors_enabled(self) -> bool:
        if self.color_mode is ColorMode.ENABLED:
            return self._is_out_a_tty
        return self.color_mode is ColorMode.FORCED

    def enable_raw_mode(self) -> tuple[PosixMode, dict[KeyEvent, str]]:
        """Switch to raw mode; return the saved mode and the terminal key map."""
        if not self._is_in_a_tty:
            raise OSError(errno.ENOTTY, os.strerror(errno.ENOTTY))
        original = termios.tcgetattr(self._tty_in)
        raw = termios.tcgetattr(self._tty_in)
        raw[_IFLAG] &= ~(
            termios.BRKINT | termios.ICRNL | termios.INPCK | termios.ISTRIP | termios.IXON
        )
        raw[_CFLAG] |= termios.CS8
        raw[_LFLAG] &= ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)
        cc = list(raw[_CC])
        cc[termios.VMIN] = 1
        cc[termios.VTIME] = 0
        raw[_CC] = cc

        key_map: dict[KeyEvent, str] = {}
        for index, name, cmd in (
            (termios.VEOF, "VEOF", "end_of_file"),
            (termios.VINTR, "VINTR", "interrupt"),
            (termios.VQUIT, "VQUIT", "interrupt"),
            (termios.VSUSP, "VSUSP", "suspend"),
        ):
            key = KeyEvent.char(_control_char(cc[index]))
            _log.debug("%s: %r", name, key)
            key_map[key] = cmd

        termios.tcsetattr(self._tty_in, termios.TCSADRAIN, raw)
        self._raw_mode.set()

        out: Optional[int] = None
        if self._enable_bracketed_paste:
            try:
                _write_all(self._tty_out, BRACKETED_PASTE_ON)
            except OSError as exc:
                _log.debug("Cannot enable bracketed paste: %s", exc)
            else:
                out = self._tty_out

        # no printer left: the reader does not need to watch the pipe
        if len(self._printers) == 0 and self._channel is not None:
            self._channel.close()
            self._channel = None

        return PosixMode(original, self._tty_in, out, self._raw_mode), key_map

    def create_reader(
        self, timeout_ms: int = -1, key_map: Optional[Mapping[KeyEvent, Any]] = None
    ) -> KeyReader:
        """Create a key reader on the terminal input."""
        channel = self._channel
        reader = KeyReader(self._tty_in, timeout_ms, key_map)
        reader._watch(
            self._sigwinch.read_fd if self._sigwinch else None,
            (channel.read_fd, channel.messages) if channel else None,
        )
        return reader

    def create_writer(self) -> PosixRenderer:
        """Create a renderer on the terminal output."""
        return PosixRenderer(
            self._tty_out, self._tab_stop, self.colors_enabled(), self._bell_style
        )

    def writeln(self) -> None:
        _write_all(self._tty_out, "\n")

    def create_external_printer(self) -> ExternalPrinter:
        """Create a printer usable from other threads while editing."""
        if self._channel is None:
            if self._unsupported or not self._is_in_a_tty or not self._is_out_a_tty:
                raise OSError(errno.ENOTTY, os.strerror(errno.ENOTTY))
            self._channel = _PrintChannel()
        printer = ExternalPrinter(self._channel, self._raw_mode, self._tty_out)
        self._printers.add(printer)
        return printer

    def close(self) -> None:
        """Release the tty and restore the window-size signal handler."""
        if self._closed:
            return
        self._closed = True
        if self._close_on_drop:
            try:
                os.close(self._tty_in)
            except OSError:
                pass
        if self._sigwinch is not None:
            self._sigwinch.uninstall()
            self._sigwinch = None
        if self._channel is not None:
            self._channel.close()
            self._channel = None

    def __enter__(self) -> "PosixTerminal":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()