"""Undo manager for line edits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

import regex

_log = logging.getLogger(__name__)
_GRAPHEME = regex.compile(r"\X")


class _EditableLine(Protocol):
    def delete_range(self, start: int, end: int) -> None: ...

    def insert_str(self, idx: int, text: str) -> None: ...

    def replace(self, start: int, end: int, text: str) -> None: ...

    def set_pos(self, pos: int) -> None: ...


class _Begin:
    __slots__ = ()


class _End:
    __slots__ = ()


_BEGIN = _Begin()
_END = _End()


@dataclass
class _Insert:
    idx: int
    text: str

    def undo(self, line: _EditableLine) -> None:
        line.delete_range(self.idx, self.idx + len(self.text))

    def redo(self, line: _EditableLine) -> None:
        line.insert_str(self.idx, self.text)


@dataclass
class _Delete:
    idx: int
    text: str

    def undo(self, line: _EditableLine) -> None:
        line.insert_str(self.idx, self.text)
        line.set_pos(self.idx + len(self.text))

    def redo(self, line: _EditableLine) -> None:
        line.delete_range(self.idx, self.idx + len(self.text))


@dataclass
class _Replace:
    idx: int
    old: str
    new: str

    def undo(self, line: _EditableLine) -> None:
        line.replace(self.idx, self.idx + len(self.new), self.old)

    def redo(self, line: _EditableLine) -> None:
        line.replace(self.idx, self.idx + len(self.old), self.new)


_Change = Union[_Begin, _End, _Insert, _Delete, _Replace]


def _single_char(s: str) -> bool:
    graphemes = _GRAPHEME.findall(s)
    return len(graphemes) == 1 and all(ch.isalnum() for ch in graphemes[0])


class Changeset:
    """Records edits so that they can be undone and redone."""

    def __init__(self) -> None:
        self.undo_group_level = 0
        self.undos: list[_Change] = []
        self.redos: list[_Change] = []

    def _last(self) -> Optional[_Change]:
        return self.undos[-1] if self.undos else None

    def begin(self) -> int:
        """Open an undo group; return a mark usable with :meth:`truncate`."""
        _log.debug("Changeset::begin")
        self.redos.clear()
        mark = len(self.undos)
        self.undos.append(_BEGIN)
        self.undo_group_level += 1
        return mark

    def end(self) -> bool:
        """Close all open groups; return True if anything changed inside."""
        _log.debug("Changeset::end")
        self.redos.clear()
        touched = False
        while self.undo_group_level > 0:
            self.undo_group_level -= 1
            if self._last() is _BEGIN:
                self.undos.pop()
            else:
                self.undos.append(_END)
                touched = True
        return touched

    def insert(self, idx: int, c: str) -> None:
        """Record insertion of one character, merging alphanumeric runs."""
        _log.debug("Changeset::insert(%d, %r)", idx, c)
        self.redos.clear()
        last = self._last()
        if (
            c.isalnum()
            and isinstance(last, _Insert)
            and last.idx + len(last.text) == idx
        ):
            last.text += c
            return
        self.undos.append(_Insert(idx, c))

    def insert_str(self, idx: int, string: str) -> None:
        """Record insertion of a string."""
        _log.debug("Changeset::insert_str(%d, %r)", idx, string)
        self.redos.clear()
        if not string:
            return
        self.undos.append(_Insert(idx, string))

    def delete(self, idx: int, string: str) -> None:
        """Record deletion of ``string`` at ``idx``, merging single-char runs."""
        _log.debug("Changeset::delete(%d, %r)", idx, string)
        self.redos.clear()
        if not string:
            return
        last = self._last()
        if (
            _single_char(string)
            and isinstance(last, _Delete)
            and (last.idx == idx or last.idx == idx + len(string))
        ):
            if last.idx == idx:
                last.text += string
            else:
                last.text = string + last.text
                last.idx = idx
            return
        self.undos.append(_Delete(idx, string))

    def replace(self, idx: int, old: str, new: str) -> None:
        """Record replacement of ``old`` by ``new`` at ``idx``."""
        _log.debug("Changeset::replace(%d, %r, %r)", idx, old, new)
        self.redos.clear()
        last = self._last()
        if isinstance(last, _Replace) and last.idx + len(last.new) == idx:
            last.old += old
            last.new += new
            return
        self.undos.append(_Replace(idx, old, new))

    def undo(self, line: _EditableLine, n: int = 1) -> bool:
        """Undo ``n`` changes or groups on ``line``; return True if any."""
        _log.debug("Changeset::undo")
        count = 0
        waiting_for_begin = 0
        undone = False
        while self.undos:
            change = self.undos.pop()
            if change is _BEGIN:
                waiting_for_begin -= 1
            elif change is _END:
                waiting_for_begin += 1
            else:
                change.undo(line)
                undone = True
            self.redos.append(change)
            if waiting_for_begin <= 0:
                count += 1
                if count >= n:
                    break
        return undone

    def redo(self, line: _EditableLine) -> bool:
        """Redo the last undone change or group; return True if any."""
        waiting_for_end = 0
        redone = False
        while self.redos:
            change = self.redos.pop()
            if change is _BEGIN:
                waiting_for_end += 1
            elif change is _END:
                waiting_for_end -= 1
            else:
                change.redo(line)
                redone = True
            self.undos.append(change)
            if waiting_for_end <= 0:
                break
        return redone

    def truncate(self, length: int) -> None:
        """Drop recorded changes beyond ``length``."""
        _log.debug("Changeset::truncate(%d)", length)
        del self.undos[length:]

    def last_insert(self) -> Optional[str]:
        """Return the text of the most recent insertion or replacement."""
        for change in reversed(self.undos):
            if isinstance(change, _Insert):
                return change.text
            if isinstance(change, _Replace):
                return change.new
            if change is _END:
                continue
            return None
        return None