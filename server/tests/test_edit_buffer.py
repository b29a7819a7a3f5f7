import pytest

from statekit.services.edit_buffer import EditBuffer, EditConflictError


def test_unchanged_buffer_renders_original() -> None:
    buffer = EditBuffer("let a = 1")

    assert not buffer.has_changed()
    assert buffer.render() == "let a = 1"


def test_left_inserts_render_before_right_inserts() -> None:
    buffer = EditBuffer("abc")
    buffer.prepend_right(1, "Y")
    buffer.append_left(1, "X")

    assert buffer.render() == "aXYbc"


def test_prepend_and_append_order_at_same_slot() -> None:
    buffer = EditBuffer("ab")
    buffer.append_left(1, "2")
    buffer.prepend_left(1, "1")
    buffer.append_left(1, "3")
    buffer.prepend_right(1, "5")
    buffer.append_right(1, "6")
    buffer.prepend_right(1, "4")

    assert buffer.render() == "a123456b"


def test_overwrite_and_remove() -> None:
    buffer = EditBuffer("new Map()")
    buffer.remove(0, 4)
    buffer.overwrite(4, 7, "$proxyMap")

    assert buffer.has_changed()
    assert buffer.render() == "$proxyMap()"


def test_overwrite_discards_inserts_inside_range() -> None:
    buffer = EditBuffer("abc")
    buffer.append_left(1, "<")
    buffer.append_right(1, "dropped")
    buffer.append_left(2, "dropped")
    buffer.append_right(2, ">")
    buffer.overwrite(1, 2, "B")

    assert buffer.render() == "a<B>c"


def test_inserts_at_replaced_boundaries_are_kept() -> None:
    buffer = EditBuffer("while (x) {}")
    buffer.overwrite(0, 5, "$when(() =>")
    buffer.append_left(5, "")
    buffer.append_right(0, "/*a*/")

    assert buffer.render() == "/*a*/$when(() => (x) {}"


def test_overlapping_replacements_conflict() -> None:
    buffer = EditBuffer("abcdef")
    buffer.overwrite(0, 3, "x")

    with pytest.raises(EditConflictError):
        buffer.overwrite(2, 4, "y")
    with pytest.raises(EditConflictError):
        buffer.remove(1, 2)


def test_insert_inside_replaced_range_conflicts() -> None:
    buffer = EditBuffer("abcdef")
    buffer.overwrite(1, 4, "x")

    with pytest.raises(EditConflictError):
        buffer.append_left(2, "!")


def test_empty_overwrite_is_rejected() -> None:
    buffer = EditBuffer("abc")

    with pytest.raises(ValueError):
        buffer.overwrite(1, 1, "x")


def test_prepend_goes_before_everything() -> None:
    buffer = EditBuffer("x")
    buffer.append_right(0, "(")
    buffer.prepend("import { $atom } from 'rt'\n")

    assert buffer.render() == "import { $atom } from 'rt'\n(x"
