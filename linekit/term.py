"""Terminal geometry: positions, layouts and the renderer interface."""

from __future__ import annotations

import abc
import functools
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Optional

import regex
from wcwidth import wcwidth

_GRAPHEME = regex.compile(r"\X")


def graphemes(s: str) -> Iterator[str]:
    """Yield the extended grapheme clusters of ``s``."""
    for match in _GRAPHEME.finditer(s):
        yield match.group()


def _plain_width(g: str) -> int:
    """Column width of a grapheme; control characters count as zero."""
    return sum(max(wcwidth(ch), 0) for ch in g)


class EscapeAwareWidth:
    """Measures graphemes one by one, giving ANSI escape sequences no width."""

    def __init__(self) -> None:
        # 0: plain text, 1: just after ESC, 2: inside a CSI sequence
        self._state = 0

    def width(self, g: str) -> int:
        """Return the column width of grapheme ``g`` and advance the state."""
        if self._state == 1:
            self._state = 2 if g == "[" else 0
            return 0
        if self._state == 2:
            if not (g == ";" or (g and "0" <= g[0] <= "9")):
                self._state = 0
            return 0
        if g == "\x1b":
            self._state = 1
            return 0
        if g == "\n":
            return 0
        return _plain_width(g)


def display_width(s: str) -> int:
    """Number of columns ``s`` takes, ignoring ANSI escape sequences."""
    measure = EscapeAwareWidth()
    return sum(measure.width(g) for g in graphemes(s))


@functools.total_ordering
@dataclass(frozen=True)
class Position:
    """A cell on screen; ordered by row, then column."""

    col: int = 0
    row: int = 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return (self.row, self.col) < (other.row, other.col)


@dataclass(frozen=True)
class Layout:
    """Where the prompt, the cursor and the end of input fall on screen."""

    prompt_size: Position = field(default_factory=Position)
    default_prompt: bool = False
    cursor: Position = field(default_factory=Position)
    end: Position = field(default_factory=Position)


class Renderer(abc.ABC):
    """Displays prompt, line and cursor on a terminal."""

    @abc.abstractmethod
    def calculate_position(self, s: str, orig: Position) -> Position:
        """Position reached after displaying ``s`` starting at ``orig``."""

    def compute_layout(
        self,
        prompt_size: Position,
        default_prompt: bool,
        line: str,
        pos: int,
        info: Optional[str] = None,
    ) -> Layout:
        """Lay out prompt, ``line`` with cursor at ``pos`` and optional ``info``."""
        cursor = self.calculate_position(line[:pos], prompt_size)
        end = cursor if pos == len(line) else self.calculate_position(line[pos:], cursor)
        if info is not None:
            end = self.calculate_position(info, end)
        layout = Layout(prompt_size, default_prompt, cursor, end)
        assert layout.prompt_size <= layout.cursor
        assert layout.cursor <= layout.end
        return layout

    @abc.abstractmethod
    def get_columns(self) -> int:
        """Number of columns of the terminal."""

    @abc.abstractmethod
    def get_rows(self) -> int:
        """Number of rows of the terminal."""

    @abc.abstractmethod
    def move_cursor(self, old: Position, new: Position) -> None:
        """Move the cursor from ``old`` to ``new``."""

    @abc.abstractmethod
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
        """Redraw prompt, line and hint, then place the cursor."""

    @abc.abstractmethod
    def write_and_flush(self, buf: str) -> None:
        """Write ``buf`` to the terminal."""

    @abc.abstractmethod
    def beep(self) -> None:
        """Ring the bell."""

    @abc.abstractmethod
    def clear_screen(self) -> None:
        """Clear the whole screen."""

    @abc.abstractmethod
    def clear_rows(self, layout: Layout) -> None:
        """Clear the rows used by prompt and line."""

    @abc.abstractmethod
    def update_size(self) -> None:
        """Refresh the known terminal size."""

    @abc.abstractmethod
    def colors_enabled(self) -> bool:
        """Whether output supports colours."""

    @abc.abstractmethod
    def move_cursor_at_leftmost(self, reader: Any) -> None:
        """Make sure the prompt starts at the leftmost column."""


class Sink(Renderer):
    """A renderer that draws nothing, with a fixed 80x24 screen."""

    def calculate_position(self, s: str, orig: Position) -> Position:
        return replace(orig, col=orig.col + len(s))

    def move_cursor(self, old: Position, new: Position) -> None:
        return None

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
        return None

    def write_and_flush(self, buf: str) -> None:
        return None

    def beep(self) -> None:
        return None

    def clear_screen(self) -> None:
        return None

    def clear_rows(self, layout: Layout) -> None:
        return None

    def update_size(self) -> None:
        return None

    def get_columns(self) -> int:
        return 80

    def get_rows(self) -> int:
        return 24

    def colors_enabled(self) -> bool:
        return False

    def move_cursor_at_leftmost(self, reader: Any) -> None:
        return None