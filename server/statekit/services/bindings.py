"""
Binding collection over declaration and assignment patterns.

tree-sitter represents declaration patterns with `*_pattern` nodes, while the
targets of a destructuring assignment may come back either as patterns or as
the equivalent literal nodes (`array`, `object`, `pair`). Both forms are
accepted everywhere a target is expected.
"""
from typing import Callable, Iterable, List, Optional

from tree_sitter import Node

from statekit.services.syntax import (
    declaration_kind,
    declarators,
    find_child,
    named_children,
    same_node,
    unwrap_parentheses,
)

# Called once per bound name. The second argument is True when the name is
# the renamed target of an object-destructuring property (`{ key: name }`).
# Returning True stops the walk.
OnIdentifier = Callable[[Node, bool], Optional[bool]]

LEAF_TYPES = {
    "identifier",
    "shorthand_property_identifier_pattern",
    "shorthand_property_identifier",
}

PARAMETER_TYPES = {"required_parameter", "optional_parameter", "rest_parameter"}

ASSIGNMENT_TYPES = {"assignment_expression", "augmented_assignment_expression"}

# Nodes an identifier may sit in while still being part of an assignment target.
_TARGET_CONTAINERS = {
    "array_pattern",
    "object_pattern",
    "pair_pattern",
    "assignment_pattern",
    "object_assignment_pattern",
    "rest_pattern",
    "array",
    "object",
    "pair",
    "spread_element",
    "parenthesized_expression",
}

_DECLARATION_PATTERNS = {"array_pattern", "object_pattern", "rest_pattern"}

_NAMED_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "generator_function",
    "class_declaration",
    "class",
}


class UnsupportedPatternError(ValueError):
    def __init__(self, node: Node):
        super().__init__(f"Unsupported binding pattern: {node.type}")
        self.node = node


def find_bindings(node: Node, on_identifier: OnIdentifier, renamed: bool = False) -> bool:
    node_type = node.type

    if node_type in LEAF_TYPES:
        return bool(on_identifier(node, renamed))

    if node_type in PARAMETER_TYPES:
        pattern = node.child_by_field_name("pattern")
        if pattern is None:
            children = [c for c in named_children(node) if c.type != "type_annotation"]
            pattern = children[0] if children else None
        if pattern is None or pattern.type == "this":
            return False
        return find_bindings(pattern, on_identifier)

    if node_type in {"rest_pattern", "spread_element"}:
        children = named_children(node)
        return bool(children) and find_bindings(children[0], on_identifier)

    if node_type in {"assignment_pattern", "object_assignment_pattern", "assignment_expression"}:
        left = node.child_by_field_name("left")
        return left is not None and find_bindings(left, on_identifier, renamed)

    if node_type == "parenthesized_expression":
        inner = unwrap_parentheses(node)
        if inner is node:
            raise UnsupportedPatternError(node)
        return find_bindings(inner, on_identifier, renamed)

    if node_type in {"array_pattern", "array"}:
        for element in named_children(node):
            if find_bindings(element, on_identifier):
                return True
        return False

    if node_type in {"object_pattern", "object"}:
        for prop in named_children(node):
            if prop.type in {"pair_pattern", "pair"}:
                value = prop.child_by_field_name("value")
                if value is not None and find_bindings(value, on_identifier, renamed=True):
                    return True
            elif prop.type in LEAF_TYPES or prop.type in {
                "object_assignment_pattern",
                "rest_pattern",
                "spread_element",
            }:
                if find_bindings(prop, on_identifier):
                    return True
            else:
                raise UnsupportedPatternError(prop)
        return False

    # Property targets in a destructuring assignment bind nothing.
    if node_type in {"member_expression", "subscript_expression"}:
        return False

    raise UnsupportedPatternError(node)


def collect_bindings(node: Node) -> List[Node]:
    bindings: List[Node] = []
    find_bindings(node, lambda ident, _renamed: bindings.append(ident))
    return bindings


def parameter_nodes(function: Node) -> List[Node]:
    # `x => ...` has a bare identifier instead of a parameter list.
    single = function.child_by_field_name("parameter")
    if single is not None:
        return [single]
    params = function.child_by_field_name("parameters")
    if params is None:
        return []
    return named_children(params)


def find_bindings_in_statements(statements: Iterable[Node], on_identifier: OnIdentifier) -> None:
    for statement in statements:
        if statement.type in {"lexical_declaration", "variable_declaration"}:
            for declarator in declarators(statement):
                name = declarator.child_by_field_name("name")
                if name is not None:
                    find_bindings(name, on_identifier)
        elif statement.type in {
            "function_declaration",
            "generator_function_declaration",
            "class_declaration",
        }:
            name = statement.child_by_field_name("name")
            if name is not None:
                on_identifier(name, False)
        elif statement.type == "switch_statement":
            body = statement.child_by_field_name("body")
            for case in named_children(body) if body is not None else []:
                find_bindings_in_statements(switch_case_statements(case), on_identifier)


def switch_case_statements(case: Node) -> List[Node]:
    value = case.child_by_field_name("value")
    return [c for c in named_children(case) if not same_node(c, value)]


def has_declaration_keyword(node: Node) -> bool:
    return any(c.type in {"const", "let", "var"} for c in node.children)


def is_purely_being_declared(ident: Node) -> bool:
    """True when the identifier introduces a binding rather than using one."""
    child = ident
    parent = ident.parent
    while parent is not None:
        parent_type = parent.type
        if parent_type == "variable_declarator":
            return same_node(parent.child_by_field_name("name"), child)
        if parent_type in PARAMETER_TYPES:
            pattern = parent.child_by_field_name("pattern")
            return pattern is None or same_node(pattern, child)
        if parent_type == "formal_parameters":
            return True
        if parent_type == "arrow_function":
            return same_node(parent.child_by_field_name("parameter"), child)
        if parent_type == "catch_clause":
            return same_node(parent.child_by_field_name("parameter"), child)
        if parent_type == "for_in_statement":
            return same_node(parent.child_by_field_name("left"), child) and has_declaration_keyword(parent)
        if parent_type in _NAMED_DECLARATIONS:
            return same_node(parent.child_by_field_name("name"), child)
        if parent_type in {"assignment_pattern", "object_assignment_pattern"}:
            if not same_node(parent.child_by_field_name("left"), child):
                return False
        elif parent_type == "pair_pattern":
            if not same_node(parent.child_by_field_name("value"), child):
                return False
        elif parent_type not in _DECLARATION_PATTERNS:
            return False
        child = parent
        parent = parent.parent
    return False


def find_assignment(ident: Node) -> Optional[Node]:
    """
    Find the assignment or update expression the identifier is directly part
    of, climbing only through destructuring containers. Whether the identifier
    is actually on the left-hand side is up to the caller.
    """
    child = ident
    parent = ident.parent
    while parent is not None:
        if parent.type in ASSIGNMENT_TYPES or parent.type == "update_expression":
            return parent
        if parent.type in {"assignment_pattern", "object_assignment_pattern"}:
            if not same_node(parent.child_by_field_name("left"), child):
                return None
        elif parent.type in {"pair_pattern", "pair"}:
            if not same_node(parent.child_by_field_name("value"), child):
                return None
        elif parent.type not in _TARGET_CONTAINERS:
            return None
        child = parent
        parent = parent.parent
    return None


def assignment_target(node: Node) -> Optional[Node]:
    if node.type == "variable_declarator":
        return node.child_by_field_name("name")
    if node.type in ASSIGNMENT_TYPES:
        return node.child_by_field_name("left")
    if node.type == "update_expression":
        return node.child_by_field_name("argument")
    return None


def get_left_references(node: Node) -> List[Node]:
    """
    Find the variable identifiers written by a declarator, assignment or
    update expression. Property identifiers are never returned; for
    `a.b.c = 1` the result is `[a]`.
    """
    target = assignment_target(node)
    if target is None:
        return []
    target = unwrap_parentheses(target)
    while target.type in {"member_expression", "subscript_expression", "non_null_expression"}:
        inner = target.child_by_field_name("object")
        if inner is None:
            children = named_children(target)
            inner = children[0] if children else None
        if inner is None:
            return []
        target = unwrap_parentheses(inner)
    if target.type == "identifier":
        return [target]
    if target.type in {"array_pattern", "object_pattern", "array", "object"}:
        return collect_bindings(target)
    return []


def is_being_assigned(ident: Node) -> bool:
    """True when the identifier (or a property path rooted at it) is written."""
    target = ident
    parent = target.parent
    while parent is not None and parent.type in {"member_expression", "subscript_expression", "non_null_expression"}:
        obj = parent.child_by_field_name("object")
        if obj is not None and not same_node(obj, target):
            break
        target = parent
        parent = target.parent
    if parent is None:
        return False
    if parent.type in ASSIGNMENT_TYPES and same_node(parent.child_by_field_name("left"), target):
        return True
    if parent.type == "update_expression":
        return True
    assignment = find_assignment(ident)
    if assignment is not None and assignment.type in ASSIGNMENT_TYPES:
        return any(same_node(ref, ident) for ref in get_left_references(assignment))
    return False


def declared_kind_of(declarator: Node) -> Optional[str]:
    statement = declarator.parent
    return declaration_kind(statement) if statement is not None else None


def is_reassignable(declarator: Node) -> bool:
    return declared_kind_of(declarator) in {"let", "var"}


def statement_terminator(statement: Node) -> Optional[Node]:
    return find_child(statement, ";")
