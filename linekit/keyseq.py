"""Keys, input events and readers that turn terminal bytes into keys."""

from __future__ import annotations

import codecs
import enum
import logging
import os
import queue
import select
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

_log = logging.getLogger(__name__)


class KeyCode(enum.Enum):
    """Kind of key pressed."""

    UNKNOWN_ESC_SEQ = "unknown_esc_seq"
    BACKSPACE = "backspace"
    BACK_TAB = "back_tab"
    BRACKETED_PASTE_START = "bracketed_paste_start"
    BRACKETED_PASTE_END = "bracketed_paste_end"
    CHAR = "char"
    DELETE = "delete"
    DOWN = "down"
    END = "end"
    ENTER = "enter"
    ESC = "esc"
    F = "f"
    HOME = "home"
    INSERT = "insert"
    LEFT = "left"
    NULL = "null"
    PAGE_DOWN = "page_down"
    PAGE_UP = "page_up"
    RIGHT = "right"
    TAB = "tab"
    UP = "up"


class Modifiers(enum.Flag):
    """Modifier keys held while a key is pressed."""

    NONE = 0
    SHIFT = 1
    ALT = 2
    CTRL = 4
    ALT_SHIFT = ALT | SHIFT
    CTRL_SHIFT = CTRL | SHIFT
    CTRL_ALT = CTRL | ALT
    CTRL_ALT_SHIFT = CTRL | ALT | SHIFT


@dataclass(frozen=True)
class KeyEvent:
    """A key with its modifiers.

    ``value`` holds the character for ``KeyCode.CHAR`` and the number for
    ``KeyCode.F``; it is ``None`` for every other key.
    """

    code: KeyCode
    mods: Modifiers = Modifiers.NONE
    value: Union[str, int, None] = None

    @classmethod
    def char(cls, c: str, mods: Modifiers = Modifiers.NONE) -> "KeyEvent":
        """Key for character ``c``, mapping control characters to their keys."""
        if len(c) != 1:
            raise ValueError(f"expected a single character, got {c!r}")
        if c == "\x1b":
            return cls(KeyCode.ESC, mods)
        if c == "\r":
            return cls(KeyCode.ENTER, mods)
        if c == "\t":
            return cls(KeyCode.TAB, mods)
        if c == "\x7f":
            return cls(KeyCode.BACKSPACE, mods)
        if c == "\x00":
            return cls(KeyCode.NULL, mods)
        if ord(c) < 0x20:
            return cls(KeyCode.CHAR, mods | Modifiers.CTRL, chr(ord(c) + 0x40))
        return cls(KeyCode.CHAR, mods, c)

    @classmethod
    def alt(cls, c: str) -> "KeyEvent":
        """Key for character ``c`` pressed with Alt."""
        return cls.char(c, Modifiers.ALT)

    @classmethod
    def function(cls, n: int, mods: Modifiers = Modifiers.NONE) -> "KeyEvent":
        """Function key ``F<n>``."""
        return cls(KeyCode.F, mods, n)

    def with_mods(self, mods: Modifiers) -> "KeyEvent":
        """The same key with ``mods`` added."""
        return KeyEvent(self.code, self.mods | mods, self.value)


KeyEvent.ESC = KeyEvent(KeyCode.ESC)  # type: ignore[attr-defined]
KeyEvent.ENTER = KeyEvent(KeyCode.ENTER)  # type: ignore[attr-defined]

ESC = KeyEvent(KeyCode.ESC)
ENTER = KeyEvent(KeyCode.ENTER)
_UNKNOWN = KeyEvent(KeyCode.UNKNOWN_ESC_SEQ)


@dataclass(frozen=True)
class KeyPress:
    """Input event: a key was pressed."""

    key: KeyEvent


@dataclass(frozen=True)
class ExternalPrint:
    """Input event: a message to print arrived from another thread."""

    message: str


Event = Union[KeyPress, ExternalPrint]


class EndOfInput(EOFError):
    """The input stream has no more data."""


class WindowResized(Exception):
    """The terminal window was resized while waiting for input."""


# Final characters of cursor-key sequences.
_UP, _DOWN, _RIGHT, _LEFT, _END, _HOME = "A", "B", "C", "D", "F", "H"
# Numeric key identifiers in "\E[<n>~" sequences.
_INSERT, _DELETE, _PAGE_UP, _PAGE_DOWN = "2", "3", "5", "6"
_RXVT_HOME, _RXVT_END = "7", "8"
_RXVT_SHIFT, _RXVT_CTRL, _RXVT_CTRL_SHIFT = "$", "\x1e", "@"

M = Modifiers
K = KeyCode

_MOD_PARAM = {
    "2": M.SHIFT,
    "3": M.ALT,
    "4": M.ALT_SHIFT,
    "5": M.CTRL,
    "6": M.CTRL_SHIFT,
    "7": M.CTRL_ALT,
    "8": M.CTRL_ALT_SHIFT,
}
_CURSOR_KEYS = {
    _UP: K.UP,
    _DOWN: K.DOWN,
    _RIGHT: K.RIGHT,
    _LEFT: K.LEFT,
    _END: K.END,
    _HOME: K.HOME,
}
_ARROWS = {_UP: K.UP, _DOWN: K.DOWN, _RIGHT: K.RIGHT, _LEFT: K.LEFT}

_CSI_ANSI = {
    _UP: KeyEvent(K.UP),
    _DOWN: KeyEvent(K.DOWN),
    _RIGHT: KeyEvent(K.RIGHT),
    _LEFT: KeyEvent(K.LEFT),
    _END: KeyEvent(K.END),
    _HOME: KeyEvent(K.HOME),
    "Z": KeyEvent(K.BACK_TAB),
    "a": KeyEvent(K.UP, M.SHIFT),
    "b": KeyEvent(K.DOWN, M.SHIFT),
    "c": KeyEvent(K.RIGHT, M.SHIFT),
    "d": KeyEvent(K.LEFT, M.SHIFT),
}
_LINUX_CONSOLE = {c: KeyEvent.function(n) for n, c in enumerate("ABCDE", start=1)}

_TILDE_ONE = {
    "1": KeyEvent(K.HOME),
    _RXVT_HOME: KeyEvent(K.HOME),
    _INSERT: KeyEvent(K.INSERT),
    _DELETE: KeyEvent(K.DELETE),
    "4": KeyEvent(K.END),
    _RXVT_END: KeyEvent(K.END),
    _PAGE_UP: KeyEvent(K.PAGE_UP),
    _PAGE_DOWN: KeyEvent(K.PAGE_DOWN),
}
_TILDE_TWO_F = {
    ("1", "1"): 1,
    ("1", "2"): 2,
    ("1", "3"): 3,
    ("1", "4"): 4,
    ("1", "5"): 5,
    ("1", "7"): 6,
    ("1", "8"): 7,
    ("1", "9"): 8,
    ("2", "0"): 9,
    ("2", "1"): 10,
    ("2", "3"): 11,
    ("2", "4"): 12,
}
_TILDE_TWO_CTRL_F = {k: v for k, v in _TILDE_TWO_F.items() if v >= 5}
_TILDE_THREE = {
    ("2", "0", "0"): KeyEvent(K.BRACKETED_PASTE_START),
    ("2", "0", "1"): KeyEvent(K.BRACKETED_PASTE_END),
}
_TILDE_MOD_KEYS = {
    _INSERT: K.INSERT,
    _DELETE: K.DELETE,
    _PAGE_UP: K.PAGE_UP,
    _PAGE_DOWN: K.PAGE_DOWN,
}
_DIGIT_FINALS = {c: str(d) for d, c in enumerate("pqrstuvwxy")}
_CTRL_F_FINALS = {"P": 1, "Q": 2, "S": 4}
_CTRL_FAMILY = {"5", "6", "7", "8"}


def _csi_one_semicolon(mod: str, final: str) -> KeyEvent:
    """Decode "\\E[1;<mod><final>"."""
    mods = _MOD_PARAM.get(mod)
    if mods is not None and final in _CURSOR_KEYS:
        return KeyEvent(_CURSOR_KEYS[final], mods)
    if mod == "5" and final in _CTRL_F_FINALS:
        return KeyEvent.function(_CTRL_F_FINALS[final], M.CTRL)
    if mod in _CTRL_FAMILY and final in _DIGIT_FINALS:
        return KeyEvent(K.CHAR, _MOD_PARAM[mod], _DIGIT_FINALS[final])
    if mod == "9" and final in _ARROWS:
        return KeyEvent(_ARROWS[final], M.ALT)
    _log.debug("unsupported esc sequence: \\E[1;%s%r", mod, final)
    return _UNKNOWN


_RXVT_MODS = {_RXVT_CTRL: M.CTRL, _RXVT_SHIFT: M.SHIFT, _RXVT_CTRL_SHIFT: M.CTRL_SHIFT}
_RXVT_KEYS = {
    _PAGE_UP: K.PAGE_UP,
    _PAGE_DOWN: K.PAGE_DOWN,
    _RXVT_HOME: K.HOME,
    _RXVT_END: K.END,
}


def _csi_rxvt(seq2: str, seq3: str) -> KeyEvent:
    """Decode "\\E[<digit><final>" sequences from rxvt and friends."""
    if seq2 == _DELETE and seq3 in (_RXVT_CTRL, _RXVT_CTRL_SHIFT):
        return KeyEvent(K.DELETE, _RXVT_MODS[seq3])
    if seq2 == "5" and seq3 in _ARROWS:
        return KeyEvent(_ARROWS[seq3], M.CTRL)
    if seq2 in _RXVT_KEYS and seq3 in _RXVT_MODS:
        return KeyEvent(_RXVT_KEYS[seq2], _RXVT_MODS[seq3])
    _log.debug("unsupported esc sequence: \\E[%s%r", seq2, seq3)
    return _UNKNOWN


_SS3 = {
    _UP: KeyEvent(K.UP),
    _DOWN: KeyEvent(K.DOWN),
    _RIGHT: KeyEvent(K.RIGHT),
    _LEFT: KeyEvent(K.LEFT),
    _END: KeyEvent(K.END),
    _HOME: KeyEvent(K.HOME),
    "M": ENTER,
    "P": KeyEvent.function(1),
    "Q": KeyEvent.function(2),
    "R": KeyEvent.function(3),
    "S": KeyEvent.function(4),
    "a": KeyEvent(K.UP, M.CTRL),
    "b": KeyEvent(K.DOWN, M.CTRL),
    "c": KeyEvent(K.RIGHT, M.CTRL),
    "d": KeyEvent(K.LEFT, M.CTRL),
    "l": KeyEvent.function(8),
    "t": KeyEvent.function(5),
    "u": KeyEvent.function(6),
    "v": KeyEvent.function(7),
    "w": KeyEvent.function(9),
    "x": KeyEvent.function(10),
}


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


class KeyReader:
    """Reads keys from a terminal file descriptor.

    ``timeout_ms`` is how long to wait for the rest of an escape sequence
    after ESC (negative waits forever).  ``key_map`` binds keys to commands
    defined by the terminal settings.
    """

    def __init__(
        self,
        stream: Any,
        timeout_ms: int = -1,
        key_map: Optional[Mapping[KeyEvent, Any]] = None,
    ) -> None:
        self._fd: int = stream if isinstance(stream, int) else stream.fileno()
        self._timeout_ms = timeout_ms
        self._key_map = dict(key_map or {})
        self._sigwinch_fd: Optional[int] = None
        self._print_channel: Optional[tuple[int, "queue.Queue[str]"]] = None
        self._buffer = bytearray()
        self._decoder = codecs.getincrementaldecoder("utf-8")()

    def _watch(
        self,
        sigwinch_fd: Optional[int],
        print_channel: Optional[tuple[int, "queue.Queue[str]"]],
    ) -> None:
        """Also watch a window-size pipe and an external-print channel."""
        self._sigwinch_fd = sigwinch_fd
        self._print_channel = print_channel

    def fileno(self) -> int:
        return self._fd

    def poll(self, timeout_ms: int) -> int:
        """Return how much input is ready, waiting at most ``timeout_ms``."""
        if self._buffer:
            return len(self._buffer)
        timeout = None if timeout_ms < 0 else timeout_ms / 1000
        ready, _, _ = select.select([self._fd], [], [], timeout)
        return len(ready)

    def _read_byte(self) -> int:
        if not self._buffer:
            data = os.read(self._fd, 1024)
            if not data:
                raise EndOfInput("end of input")
            self._buffer.extend(data)
        byte = self._buffer[0]
        del self._buffer[0]
        return byte

    def next_char(self) -> str:
        """Read one UTF-8 encoded character."""
        while True:
            byte = self._read_byte()
            try:
                decoded = self._decoder.decode(bytes((byte,)))
            except UnicodeDecodeError as exc:
                self._decoder.reset()
                raise ValueError("invalid UTF-8 input") from exc
            if decoded:
                return decoded

    def next_key(self, single_esc_abort: bool = False) -> KeyEvent:
        """Read one key, decoding escape sequences."""
        c = self.next_char()
        key = KeyEvent.char(c)
        if key == ESC:
            if self._buffer:
                _log.debug("read buffer %r", bytes(self._buffer))
            timeout_ms = (
                0 if single_esc_abort and self._timeout_ms == -1 else self._timeout_ms
            )
            if self.poll(timeout_ms) > 0:
                key = self._escape_sequence()
        _log.debug("c: %r => key: %r", c, key)
        return key

    def wait_for_input(self, single_esc_abort: bool = False) -> Event:
        """Block until a key is pressed or an external message arrives."""
        if self._print_channel is None and self._sigwinch_fd is None:
            return KeyPress(self.next_key(single_esc_abort))
        while True:
            if self._buffer:
                return KeyPress(self.next_key(single_esc_abort))
            fds = [self._fd]
            if self._sigwinch_fd is not None:
                fds.append(self._sigwinch_fd)
            if self._print_channel is not None:
                fds.append(self._print_channel[0])
            ready, _, _ = select.select(fds, [], [])
            if self._sigwinch_fd is not None and self._sigwinch_fd in ready:
                self._drain_sigwinch()
                raise WindowResized()
            if self._fd in ready:
                return KeyPress(self.next_key(single_esc_abort))
            if self._print_channel is not None and self._print_channel[0] in ready:
                pipe_fd, messages = self._print_channel
                os.read(pipe_fd, 1)
                try:
                    return ExternalPrint(messages.get_nowait())
                except queue.Empty:
                    continue

    def _drain_sigwinch(self) -> bool:
        if self._sigwinch_fd is None:
            return False
        try:
            return bool(os.read(self._sigwinch_fd, 64))
        except (BlockingIOError, InterruptedError):
            return False

    def read_pasted_text(self) -> str:
        """Read bracketed-paste text up to its end marker."""
        chunks: list[str] = []
        while True:
            c = self.next_char()
            if c == "\x1b":
                if self._escape_sequence() == KeyEvent(K.BRACKETED_PASTE_END):
                    break
                continue
            chunks.append(c)
        return "".join(chunks).replace("\r\n", "\n").replace("\r", "\n")

    def find_binding(self, key: KeyEvent) -> Any:
        """Command bound to ``key`` by the terminal settings, if any."""
        cmd = self._key_map.get(key)
        if cmd is not None:
            _log.debug("terminal key binding: %r => %r", key, cmd)
        return cmd

    def _escape_sequence(self, allow_recurse: bool = True) -> KeyEvent:
        seq1 = self.next_char()
        if seq1 == "[":
            return self._escape_csi()
        if seq1 == "O":
            return self._escape_o()
        if seq1 == "\x1b":
            # ESC ESC <seq> adds Alt to <seq>; a lone ESC ESC is the Esc key.
            if not allow_recurse:
                return ESC
            timeout = 100 if self._timeout_ms < 0 else self._timeout_ms
            try:
                ready = self.poll(timeout)
            except OSError:
                return ESC
            if ready == 0:
                return ESC
            return self._escape_sequence(False).with_mods(M.ALT)
        return KeyEvent.alt(seq1)

    def _escape_csi(self) -> KeyEvent:
        seq2 = self.next_char()
        if _is_digit(seq2):
            if seq2 in ("0", "9"):
                _log.debug("unsupported esc sequence: \\E[%r", seq2)
                return _UNKNOWN
            return self._extended_escape(seq2)
        if seq2 == "[":
            seq3 = self.next_char()
            key = _LINUX_CONSOLE.get(seq3)
            if key is None:
                _log.debug("unsupported esc sequence: \\E[[%r", seq3)
                return _UNKNOWN
            return key
        key = _CSI_ANSI.get(seq2)
        if key is None:
            _log.debug("unsupported esc sequence: \\E[%r", seq2)
            return _UNKNOWN
        return key

    def _extended_escape(self, seq2: str) -> KeyEvent:
        seq3 = self.next_char()
        if seq3 == "~":
            return _TILDE_ONE.get(seq2, _UNKNOWN)
        if _is_digit(seq3):
            return self._extended_two_digits(seq2, seq3)
        if seq3 == ";":
            seq4 = self.next_char()
            if not _is_digit(seq4):
                _log.debug("unsupported esc sequence: \\E[%s;%r", seq2, seq4)
                return _UNKNOWN
            seq5 = self.next_char()
            if _is_digit(seq5):
                self.next_char()  # 'R' expected
                return _UNKNOWN
            if seq2 == "1":
                return _csi_one_semicolon(seq4, seq5)
            if seq5 == "~":
                mods = _MOD_PARAM.get(seq4)
                code = _TILDE_MOD_KEYS.get(seq2)
                if mods is not None and code is not None:
                    return KeyEvent(code, mods)
                _log.debug("unsupported esc sequence: \\E[%s;%r~", seq2, seq4)
                return _UNKNOWN
            _log.debug("unsupported esc sequence: \\E[%s;%s%r", seq2, seq4, seq5)
            return _UNKNOWN
        return _csi_rxvt(seq2, seq3)

    def _extended_two_digits(self, seq2: str, seq3: str) -> KeyEvent:
        seq4 = self.next_char()
        if seq4 == "~":
            n = _TILDE_TWO_F.get((seq2, seq3))
            return _UNKNOWN if n is None else KeyEvent.function(n)
        if seq4 == ";":
            seq5 = self.next_char()
            if not _is_digit(seq5):
                return _UNKNOWN
            seq6 = self.next_char()
            if _is_digit(seq6):
                self.next_char()  # 'R' expected
                return _UNKNOWN
            if seq6 == "~" and seq5 == "5":
                n = _TILDE_TWO_CTRL_F.get((seq2, seq3))
                if n is not None:
                    return KeyEvent.function(n, M.CTRL)
            _log.debug(
                "unsupported esc sequence: \\E[%s%s;%s%r", seq2, seq3, seq5, seq6
            )
            return _UNKNOWN
        if _is_digit(seq4):
            seq5 = self.next_char()
            if seq5 == "~":
                return _TILDE_THREE.get((seq2, seq3, seq4), _UNKNOWN)
            return _UNKNOWN
        _log.debug("unsupported esc sequence: \\E[%s%s%r", seq2, seq3, seq4)
        return _UNKNOWN

    def _escape_o(self) -> KeyEvent:
        seq2 = self.next_char()
        key = _SS3.get(seq2)
        if key is None:
            _log.debug("unsupported esc sequence: \\EO%r", seq2)
            return _UNKNOWN
        return key


class IterReader:
    """Reads keys from a prepared sequence, for scripted sessions."""

    def __init__(self, keys: Iterable[KeyEvent]) -> None:
        self._keys = iter(keys)

    def next_key(self, single_esc_abort: bool = False) -> KeyEvent:
        try:
            return next(self._keys)
        except StopIteration:
            raise EndOfInput("no more keys") from None

    def next_char(self) -> str:
        key = self.next_key()
        if key.code is not KeyCode.CHAR or key.mods != Modifiers.NONE:
            raise ValueError(f"{key!r} is not a plain character")
        assert isinstance(key.value, str)
        return key.value

    def wait_for_input(self, single_esc_abort: bool = False) -> Event:
        return KeyPress(self.next_key(single_esc_abort))

    def find_binding(self, key: KeyEvent) -> Any:
        return None