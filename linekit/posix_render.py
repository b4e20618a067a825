"""Rendering of prompt and line on POSIX terminals with ANSI sequences."""

from __future__ import annotations

import enum
import logging
import os
import sys
from dataclasses import replace
from typing import Any, Optional, Protocol, TextIO, Union

from linekit.term import EscapeAwareWidth, Layout, Position, Renderer, graphemes

_log = logging.getLogger(__name__)

_U32_MAX = 2**32 - 1


class BellStyle(enum.Enum):
    """How the terminal bell is rung."""

    AUDIBLE = "audible"
    NONE = "none"
    VISIBLE = "visible"


class _CharReader(Protocol):
    def poll(self, timeout_ms: int) -> int: ...

    def next_char(self) -> str: ...


Output = Union[int, TextIO]


def get_win_size(fd: int) -> tuple[int, int]:
    """Return ``(columns, rows)`` of the terminal behind ``fd``.

    A zero width counts as 80 columns and a zero height as unlimited rows;
    when the size cannot be read, ``(80, 24)`` is returned.
    """
    try:
        size = os.get_terminal_size(fd)
    except (OSError, ValueError):
        return 80, 24
    cols = size.columns or 80
    rows = size.lines or sys.maxsize
    return cols, rows


def read_digits_until(reader: _CharReader, sep: str) -> Optional[int]:
    """Read decimal digits up to ``sep``; return None on any other character."""
    num = 0
    while True:
        c = reader.next_char()
        if "0" <= c <= "9":
            num = min(num * 10 + int(c), _U32_MAX)
        elif c == sep:
            return num
        else:
            return None


def _write_all(out: Output, text: str) -> None:
    if isinstance(out, int):
        data = text.encode("utf-8")
        while data:
            written = os.write(out, data)
            if written == 0:
                raise OSError("failed to write to terminal")
            data = data[written:]
    else:
        out.write(text)
        out.flush()


class PosixRenderer(Renderer):
    """Draws prompt, line and cursor with ANSI escape sequences.

    ``out`` is a file descriptor or a writable text stream.  ``cols`` fixes
    the terminal width; when omitted it is read from the terminal.
    """

    def __init__(
        self,
        out: Output,
        tab_stop: int = 8,
        colors_enabled: bool = False,
        bell_style: BellStyle = BellStyle.AUDIBLE,
        cols: Optional[int] = None,
    ) -> None:
        self._out = out
        self._tab_stop = tab_stop
        self._colors_enabled = colors_enabled
        self._bell_style = bell_style
        if cols is None:
            fd = self._fd()
            cols = get_win_size(fd)[0] if fd is not None else 80
        self.cols = cols
        self.buffer = ""

    def _fd(self) -> Optional[int]:
        if isinstance(self._out, int):
            return self._out
        fileno = getattr(self._out, "fileno", None)
        if fileno is None:
            return None
        try:
            return fileno()
        except (OSError, ValueError):
            return None

    def _clear_old_rows(self, layout: Layout) -> str:
        current_row = layout.cursor.row
        old_rows = layout.end.row
        parts = []
        cursor_row_movement = max(0, old_rows - current_row)
        if cursor_row_movement > 0:
            parts.append(f"\x1b[{cursor_row_movement}B")
        parts.append("\r\x1b[K\x1b[A" * old_rows)
        parts.append("\r\x1b[K")
        return "".join(parts)

    def move_cursor(self, old: Position, new: Position) -> None:
        parts = []
        if new.row > old.row:
            shift = new.row - old.row
            parts.append("\x1b[B" if shift == 1 else f"\x1b[{shift}B")
        elif new.row < old.row:
            shift = old.row - new.row
            parts.append("\x1b[A" if shift == 1 else f"\x1b[{shift}A")
        if new.col > old.col:
            shift = new.col - old.col
            parts.append("\x1b[C" if shift == 1 else f"\x1b[{shift}C")
        elif new.col < old.col:
            shift = old.col - new.col
            parts.append("\x1b[D" if shift == 1 else f"\x1b[{shift}D")
        self.buffer = "".join(parts)
        _write_all(self._out, self.buffer)

    def refresh_line(
        self,
        prompt: str,
        line: str,
        pos: int,
        hint: Optional[str],
        old_layout: Layout,
        new_layout: Layout,
        highlighter: Any = None,
    ) -> None:
        cursor = new_layout.cursor
        end_pos = new_layout.end
        parts = [self._clear_old_rows(old_layout)]

        if highlighter is not None:
            parts.append(highlighter.highlight_prompt(prompt, new_layout.default_prompt))
            parts.append(highlighter.highlight(line, pos))
        else:
            parts.append(prompt)
            parts.append(line)
        if hint is not None:
            parts.append(highlighter.highlight_hint(hint) if highlighter is not None else hint)

        # the terminal does not move to a new row by itself on an exact wrap
        ends_with_newline = hint.endswith("\n") if hint is not None else line.endswith("\n")
        if end_pos.col == 0 and end_pos.row > 0 and not ends_with_newline:
            parts.append("\n")

        rows_up = end_pos.row - cursor.row
        if rows_up > 0:
            parts.append(f"\x1b[{rows_up}A")
        parts.append(f"\r\x1b[{cursor.col}C" if cursor.col > 0 else "\r")

        self.buffer = "".join(parts)
        _write_all(self._out, self.buffer)

    def write_and_flush(self, buf: str) -> None:
        _write_all(self._out, buf)

    def calculate_position(self, s: str, orig: Position) -> Position:
        """Position after ``s``; escape sequences and controls take no width."""
        col, row = orig.col, orig.row
        measure = EscapeAwareWidth()
        for g in graphemes(s):
            if g == "\n":
                row += 1
                col = 0
                continue
            if g == "\t":
                cw = self._tab_stop - (col % self._tab_stop)
            else:
                cw = measure.width(g)
            col += cw
            if col > self.cols:
                row += 1
                col = cw
        if col == self.cols:
            col = 0
            row += 1
        return replace(orig, col=col, row=row)

    def beep(self) -> None:
        if self._bell_style is BellStyle.AUDIBLE:
            self.write_and_flush("\x07")

    def clear_screen(self) -> None:
        self.write_and_flush("\x1b[H\x1b[J")

    def clear_rows(self, layout: Layout) -> None:
        self.buffer = self._clear_old_rows(layout)
        _write_all(self._out, self.buffer)

    def update_size(self) -> None:
        fd = self._fd()
        if fd is not None:
            self.cols = get_win_size(fd)[0]

    def get_columns(self) -> int:
        return self.cols

    def get_rows(self) -> int:
        fd = self._fd()
        return get_win_size(fd)[1] if fd is not None else 24

    def colors_enabled(self) -> bool:
        return self._colors_enabled

    def move_cursor_at_leftmost(self, reader: Any) -> None:
        if reader.poll(0) != 0:
            _log.debug("cannot request cursor location")
            return
        self.write_and_flush("\x1b[6n")
        if (
            reader.poll(100) == 0
            or reader.next_char() != "\x1b"
            or reader.next_char() != "["
            or read_digits_until(reader, ";") is None
        ):
            _log.warning("cannot read initial cursor location")
            return
        col = read_digits_until(reader, "R")
        _log.debug("initial cursor location: %r", col)
        if col != 1:
            self.write_and_flush("\n")