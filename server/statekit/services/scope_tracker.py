from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Set

from tree_sitter import Node

from statekit.services.bindings import (
    find_bindings,
    find_bindings_in_statements,
    has_declaration_keyword,
    parameter_nodes,
)
from statekit.services.syntax import (
    SourceFile,
    block_statements,
    declarators,
    find_parent_node,
    function_body,
    is_block_node,
    is_function_node,
    same_node,
)


@dataclass
class Scope:
    node: Node
    parent: Optional["Scope"]
    names: Set[str] = field(default_factory=set)

    @property
    def id(self) -> int:
        return self.node.id


class ScopeTracker:
    """
    Parent-linked scope tree over one factory function.

    Scopes are created lazily and memoized by node id; the factory function
    itself is the only scope without a parent.
    """

    def __init__(self, root: Node, source: SourceFile):
        self.root = root
        self.source = source
        self.scopes: Dict[int, Scope] = {}

    def closest_scope(self, node: Node) -> Scope:
        scope_node = find_parent_node(node, is_block_node) or self.root
        return self.scope_for(scope_node)

    def scope_for(self, node: Node) -> Scope:
        existing = self.scopes.get(node.id)
        if existing is not None:
            return existing

        parent: Optional[Scope] = None
        if not same_node(node, self.root):
            parent_node = find_parent_node(node, is_block_node) or self.root
            parent = self.scope_for(parent_node)

        scope = Scope(node=node, parent=parent)
        self.scopes[node.id] = scope
        self._collect_names(scope)
        return scope

    def _collect_names(self, scope: Scope) -> None:
        def on_identifier(ident: Node, _renamed: bool) -> None:
            scope.names.add(self.source.text(ident))

        block = scope.node
        if is_function_node(block):
            for param in parameter_nodes(block):
                find_bindings(param, on_identifier)
            body = function_body(block)
            if body is not None and body.type == "statement_block":
                find_bindings_in_statements(block_statements(body), on_identifier)
        elif block.type in {"while_statement", "do_statement"}:
            find_bindings_in_statements(block_statements(function_body(block)), on_identifier)
        elif block.type == "for_statement":
            # Track the loop variable
            init = block.child_by_field_name("initializer")
            if init is not None and init.type in {"lexical_declaration", "variable_declaration"}:
                for declarator in declarators(init):
                    name = declarator.child_by_field_name("name")
                    if name is not None:
                        find_bindings(name, on_identifier)
            self._collect_block_body(block, on_identifier)
        elif block.type == "for_in_statement":
            left = block.child_by_field_name("left")
            if left is not None and has_declaration_keyword(block):
                find_bindings(left, on_identifier)
            self._collect_block_body(block, on_identifier)
        elif block.type == "catch_clause":
            param = block.child_by_field_name("parameter")
            if param is not None:
                find_bindings(param, on_identifier)
        elif block.type == "statement_block":
            find_bindings_in_statements(block_statements(block), on_identifier)

    def _collect_block_body(self, block: Node, on_identifier) -> None:
        body = function_body(block)
        if body is not None and body.type == "statement_block":
            find_bindings_in_statements(block_statements(body), on_identifier)

    def find_binding(
        self,
        name: str,
        scope: Optional[Scope],
        test: Optional[Callable[[Scope], bool]] = None,
    ) -> bool:
        """
        Ascend from `scope` to the factory root. At the first scope declaring
        `name`, return the result of `test` (or True without one).
        """
        while scope is not None:
            if name in scope.names:
                return test is None or test(scope)
            scope = scope.parent
        return False

    def is_root_scope(self, scope: Scope, allow_arrow_function: bool = True) -> bool:
        # The factory's body block is equivalent to the factory itself, since
        # parameters live one level above the body.
        if scope.parent is None:
            return True
        if scope.node.type == "statement_block" and scope.parent.parent is None:
            return True
        return (
            allow_arrow_function
            and scope.node.type == "arrow_function"
            and scope.node.parent is not None
            and scope.node.parent.type == "return_statement"
            and self.is_root_scope(scope.parent, False)
        )

    def is_in_nested_function_scope(self, scope: Optional[Scope]) -> bool:
        while scope is not None and not self.is_root_scope(scope):
            if is_function_node(scope.node):
                return True
            scope = scope.parent
        return False
