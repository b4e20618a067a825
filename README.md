# linekit

linekit provides building blocks for an interactive line editor on a POSIX
terminal.

It does not provide a finished `readline()`. It provides the parts such a
function is built from:

- **`linekit.undo`**
  - `Changeset` is an undo/redo history of edits to a line.
  - It records inserts, deletes and replacements.
  - Consecutive typed alphanumeric characters are merged into one step.
  - Consecutive single-character deletes and backspaces are also merged into one step.
  - `begin()` and `end()` group edits together.
  - `last_insert()` returns the most recently inserted or replacing text.
- **`linekit.validate`**
  - Provides `ValidationResult`, `ValidationContext`, the `Validator` base class and `MatchingBracketValidator`.
  - They decide whether the current input is complete and valid.
  - `validate_brackets(text)` runs the bracket check on its own.
- **`linekit.term`**
  - `Position`, `Layout` and the `Renderer` base class work out where the prompt, the line and the cursor land on screen.
  - `display_width()` measures a string and gives ANSI escape sequences no width.
  - `Sink` is a renderer that draws nothing and reports a fixed 80x24 screen.
- **`linekit.keyseq`**
  - `KeyReader` reads raw terminal bytes from a file descriptor and decodes them into `KeyEvent`s.
  - It handles the escape sequences of xterm, rxvt, tmux and the Linux console.
  - It also handles bracketed paste (`read_pasted_text()`).
  - `IterReader` replays a fixed sequence of keys.
- **`linekit.posix_render`**
  - `PosixRenderer` draws the prompt, the line and an optional hint with ANSI control sequences.
  - It wraps long lines and handles tab stops.
- **`linekit.posix_term`**
  - `PosixTerminal` works on stdin/stdout, or on `/dev/tty` with `Behavior.PREFER_TERM`.
  - It detects terminals that cannot do line editing (`is_unsupported_term()`).
  - It switches raw mode on and off (`enable_raw_mode()` returns a `PosixMode`).
  - It turns window-resize signals into an event.
  - It hands out `ExternalPrinter`s, which print from other threads while the user is editing.

## Installation

```
pip install linekit
```

linekit requires:

- Python 3.10 or later
- `regex`, for splitting text into grapheme clusters
- `wcwidth`, for column widths

## Undo history

```python
from linekit.undo import Changeset

cs = Changeset()
cs.insert(0, "H")
cs.insert(1, "i")           # merged with the previous insert
cs.insert_str(2, ", world")
print(cs.last_insert())     # ", world"
```

`Changeset.undo(line, n)` and `Changeset.redo(line)` apply the recorded
changes to a line object that you supply. That object must provide four
methods:

- `delete_range(start, end)`
- `insert_str(idx, text)`
- `replace(start, end, text)`
- `set_pos(pos)`

## Validation

```python
from linekit.validate import MatchingBracketValidator, ValidationContext

result = MatchingBracketValidator().validate(ValidationContext("([)"))
print(result.is_valid())    # False
print(result.message)       # Mismatched brackets: '[' is not properly closed
```

To write your own validator, subclass `Validator` and override
`validate(ctx)`. It may return any of the following:

- `ValidationResult.valid(message)`
- `ValidationResult.invalid(message)`
- `ValidationResult.incomplete()`

## Layout

```python
from linekit.term import Position, Sink

sink = Sink()
prompt_size = sink.calculate_position("> ", Position())
layout = sink.compute_layout(prompt_size, True, "hello", 5, None)
print(layout.cursor)        # Position(col=7, row=0)
```

## Decoding keys

```python
import os
from linekit.keyseq import KeyCode, KeyReader

r, w = os.pipe()
os.write(w, b"\x1b[A")
reader = KeyReader(r, 500)
key = reader.next_key(False)
print(key.code is KeyCode.UP)   # True
```

`KeyReader` accepts either a file descriptor or an object with a `fileno()`
method.

- When the input is exhausted, the reader raises `EndOfInput`.
- On a reader created by `PosixTerminal.create_reader()`, `wait_for_input()`
  raises `WindowResized` when the terminal window changes size.
- On the same kind of reader, `wait_for_input()` returns an `ExternalPrint`
  event when a message arrives from an `ExternalPrinter`.

## Terminal

```python
from linekit.posix_term import PosixTerminal

with PosixTerminal() as term:
    mode, key_map = term.enable_raw_mode()
    with mode:
        reader = term.create_reader(500, key_map)
        key = reader.next_key(False)
```

The key map returned by `enable_raw_mode()` binds the terminal's EOF,
interrupt, quit and suspend characters to command names:

- `"end_of_file"`
- `"interrupt"`
- `"suspend"`

`reader.find_binding(key)` looks a key up in this map.

## What linekit does not do

linekit has no editing loop. It does not provide:

- key bindings to commands (Emacs or vi modes)
- a command history
- completion, hints or highlighting
- a `readline()` function

These have to be built on top of the pieces above. A highlighter passed to
`PosixRenderer.refresh_line()` is any object with the following methods:

- `highlight_prompt(prompt, default_prompt)`
- `highlight(line, pos)`
- `highlight_hint(hint)`

linekit supports only POSIX terminals.