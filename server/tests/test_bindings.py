from typing import List, Optional

import pytest

from statekit.services.bindings import (
    UnsupportedPatternError,
    collect_bindings,
    find_bindings,
    get_left_references,
    is_being_assigned,
    is_purely_being_declared,
)
from statekit.services.syntax import SourceFile, parse_source


def _parse(code: str):
    source = SourceFile(code, "test.ts")
    return source, parse_source(source).root_node


def _find_all(node, type_name: str) -> List:
    found = []
    if node.type == type_name:
        found.append(node)
    for child in node.children:
        found.extend(_find_all(child, type_name))
    return found


def _find(node, type_name: str, source: SourceFile, text: Optional[str] = None):
    for candidate in _find_all(node, type_name):
        if text is None or source.text(candidate) == text:
            return candidate
    raise AssertionError(f"No {type_name} node {text!r}")


def test_collects_nested_destructuring() -> None:
    source, root = _parse("const { a, b: [c, ...d], e = 1, ...f } = x")
    declarator = _find(root, "variable_declarator", source)

    names = [source.text(n) for n in collect_bindings(declarator.child_by_field_name("name"))]

    assert names == ["a", "c", "d", "e", "f"]


def test_renamed_flag_for_key_value_properties() -> None:
    source, root = _parse("const { a, b: renamed } = x")
    declarator = _find(root, "variable_declarator", source)
    seen = []

    find_bindings(
        declarator.child_by_field_name("name"),
        lambda ident, renamed: seen.append((source.text(ident), renamed)),
    )

    assert seen == [("a", False), ("renamed", True)]


def test_callback_can_stop_the_walk() -> None:
    source, root = _parse("let [a, b, c] = x")
    pattern = _find(root, "array_pattern", source)
    seen = []

    def on_identifier(ident, _renamed):
        seen.append(source.text(ident))
        return source.text(ident) == "b"

    assert find_bindings(pattern, on_identifier) is True
    assert seen == ["a", "b"]


def test_parameters_with_defaults_and_types() -> None:
    source, root = _parse("function f(a: number, { b } = {}, ...rest: string[]) {}")
    params = _find(root, "formal_parameters", source)

    names = []
    for param in params.named_children:
        names.extend(source.text(n) for n in collect_bindings(param))

    assert names == ["a", "b", "rest"]


def test_member_targets_bind_nothing() -> None:
    source, root = _parse("[obj.a, b] = pair")
    assignment = _find(root, "assignment_expression", source)

    names = [source.text(n) for n in collect_bindings(assignment.child_by_field_name("left"))]

    assert names == ["b"]


def test_unsupported_pattern_raises() -> None:
    source, root = _parse("f(1)")
    call = _find(root, "call_expression", source)

    with pytest.raises(UnsupportedPatternError):
        collect_bindings(call)


def test_left_references_of_property_assignment() -> None:
    source, root = _parse("a.b.c = 1")
    assignment = _find(root, "assignment_expression", source)

    assert [source.text(n) for n in get_left_references(assignment)] == ["a"]


def test_left_references_of_update_and_destructuring() -> None:
    source, root = _parse("count++; [x, y] = [y, x]")
    update = _find(root, "update_expression", source)
    assignment = _find(root, "assignment_expression", source)

    assert [source.text(n) for n in get_left_references(update)] == ["count"]
    assert [source.text(n) for n in get_left_references(assignment)] == ["x", "y"]


def test_declarations_are_not_references() -> None:
    source, root = _parse("let a = b; const { c } = d; function f(e) { return a }")

    assert is_purely_being_declared(_find(root, "identifier", source, "a"))
    assert not is_purely_being_declared(_find(root, "identifier", source, "b"))
    assert is_purely_being_declared(_find(root, "shorthand_property_identifier_pattern", source, "c"))
    assert is_purely_being_declared(_find(root, "identifier", source, "e"))
    assert is_purely_being_declared(_find(root, "identifier", source, "f"))
    returned = _find_all(root, "identifier")[-1]
    assert source.text(returned) == "a"
    assert not is_purely_being_declared(returned)


def test_is_being_assigned() -> None:
    source, root = _parse("a = 1; b.c = 2; d++; e + 1")

    assert is_being_assigned(_find(root, "identifier", source, "a"))
    assert is_being_assigned(_find(root, "identifier", source, "b"))
    assert is_being_assigned(_find(root, "identifier", source, "d"))
    assert not is_being_assigned(_find(root, "identifier", source, "e"))
