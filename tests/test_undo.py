from linekit.undo import Changeset


class Buffer:
    def __init__(self, text=""):
        self.text = text
        self.pos = len(text)

    def delete_range(self, start, end):
        self.text = self.text[:start] + self.text[end:]
        self.pos = start

    def insert_str(self, idx, text):
        self.text = self.text[:idx] + text + self.text[idx:]

    def replace(self, start, end, text):
        self.text = self.text[:start] + text + self.text[end:]
        self.pos = start + len(text)

    def set_pos(self, pos):
        self.pos = pos


def test_insert_chars():
    cs = Changeset()
    cs.insert(0, "H")
    cs.insert(1, "i")
    assert len(cs.undos) == 1
    assert len(cs.redos) == 0
    cs.insert(0, " ")
    assert len(cs.undos) == 2


def test_insert_non_alphanumeric_not_merged():
    cs = Changeset()
    cs.insert(0, "a")
    cs.insert(1, " ")
    cs.insert(2, "b")
    assert len(cs.undos) == 3


def test_insert_strings():
    cs = Changeset()
    cs.insert_str(0, "Hello")
    cs.insert_str(5, ", ")
    assert len(cs.undos) == 2
    assert len(cs.redos) == 0


def test_insert_empty_string_ignored():
    cs = Changeset()
    cs.insert_str(0, "")
    cs.delete(0, "")
    assert len(cs.undos) == 0


def test_undo_insert():
    buf = Buffer("Hello, world!")
    cs = Changeset()
    cs.insert_str(5, ", world!")

    cs.undo(buf, 1)
    assert len(cs.undos) == 0
    assert len(cs.redos) == 1
    assert buf.text == "Hello"

    cs.redo(buf)
    assert len(cs.undos) == 1
    assert len(cs.redos) == 0
    assert buf.text == "Hello, world!"


def test_undo_delete():
    buf = Buffer("Hello")
    cs = Changeset()
    cs.delete(5, ", world!")

    cs.undo(buf, 1)
    assert buf.text == "Hello, world!"
    assert buf.pos == len("Hello, world!")

    cs.redo(buf)
    assert buf.text == "Hello"


def test_delete_chars():
    buf = Buffer("Hlo")
    cs = Changeset()
    cs.delete(1, "e")
    cs.delete(1, "l")
    assert len(cs.undos) == 1

    cs.undo(buf, 1)
    assert buf.text == "Hello"


def test_backspace_chars():
    buf = Buffer("Hlo")
    cs = Changeset()
    cs.delete(2, "l")
    cs.delete(1, "e")
    assert len(cs.undos) == 1

    cs.undo(buf, 1)
    assert buf.text == "Hello"


def test_delete_word_not_merged():
    cs = Changeset()
    cs.delete(1, "e")
    cs.delete(1, "ll")
    assert len(cs.undos) == 2


def test_undo_replace():
    buf = Buffer("Hello, world!")
    cs = Changeset()
    buf.replace(1, 5, "i")
    assert buf.text == "Hi, world!"
    cs.replace(1, "ello", "i")

    cs.undo(buf, 1)
    assert buf.text == "Hello, world!"

    cs.redo(buf)
    assert buf.text == "Hi, world!"


def test_consecutive_replacements_merge():
    cs = Changeset()
    cs.replace(0, "a", "A")
    cs.replace(1, "b", "B")
    assert len(cs.undos) == 1
    buf = Buffer("ABc")
    cs.undo(buf, 1)
    assert buf.text == "abc"


def test_last_insert():
    cs = Changeset()
    cs.begin()
    cs.delete(0, "Hello")
    cs.insert_str(0, "Bye")
    cs.end()
    assert cs.last_insert() == "Bye"


def test_last_insert_after_delete_is_none():
    cs = Changeset()
    cs.insert_str(0, "Bye")
    cs.delete(0, "B")
    assert cs.last_insert() is None
    assert Changeset().last_insert() is None


def test_end():
    cs = Changeset()
    cs.begin()
    assert not cs.end()
    cs.begin()
    cs.insert_str(0, "Hi")
    assert cs.end()


def test_group_undone_as_one():
    buf = Buffer("Hello")
    cs = Changeset()
    cs.begin()
    cs.delete(0, "Hello")
    buf.delete_range(0, 5)
    cs.insert_str(0, "Bye")
    buf.insert_str(0, "Bye")
    cs.end()
    assert buf.text == "Bye"

    assert cs.undo(buf, 1)
    assert buf.text == "Hello"
    assert cs.undos == []

    assert cs.redo(buf)
    assert buf.text == "Bye"


def test_undo_count():
    buf = Buffer("a b")
    cs = Changeset()
    cs.insert(0, "a")
    cs.insert(1, " ")
    cs.insert(2, "b")
    cs.undo(buf, 2)
    assert buf.text == "a"
    assert len(cs.undos) == 1


def test_undo_empty_returns_false():
    cs = Changeset()
    assert not cs.undo(Buffer("x"), 1)
    assert not cs.redo(Buffer("x"))


def test_new_change_clears_redos():
    buf = Buffer("Hello")
    cs = Changeset()
    cs.insert_str(0, "Hello")
    cs.undo(buf, 1)
    assert len(cs.redos) == 1
    cs.insert(0, "x")
    assert cs.redos == []


def test_truncate_to_mark():
    cs = Changeset()
    cs.insert_str(0, "a")
    mark = cs.begin()
    cs.insert_str(1, "b")
    cs.truncate(mark)
    assert len(cs.undos) == 1
    assert cs.last_insert() == "a"