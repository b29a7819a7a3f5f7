from dataclasses import dataclass, field
from typing import Dict

from tree_sitter import Node

from statekit.services.bindings import (
    find_bindings,
    parameter_nodes,
    switch_case_statements,
)
from statekit.services.intrinsics import IntrinsicResolver
from statekit.services.syntax import (
    SourceFile,
    block_statements,
    declaration_kind,
    declarators,
    function_body,
    named_children,
)


@dataclass
class RootVariable:
    """
    A parameter or declaration at the factory's outermost reachable level.
    Node-valued collections are keyed by node id to keep traversal order.
    """

    identifier: Node
    # The factory function (parameters) or the block holding the declaration.
    declaring_scope: Node
    is_parameter: bool = False
    is_computed: bool = False
    reactive: bool = False
    references: Dict[int, Node] = field(default_factory=dict)
    enclosing_returned_literals: Dict[int, Node] = field(default_factory=dict)

    def add_reference(self, node: Node) -> None:
        self.references.setdefault(node.id, node)


def find_root_variables(
    root: Node,
    resolver: IntrinsicResolver,
    source: SourceFile,
) -> Dict[str, RootVariable]:
    root_variables: Dict[str, RootVariable] = {}

    def add_root_variables(pattern: Node, scope: Node, is_parameter: bool) -> None:
        def on_identifier(ident: Node, _renamed: bool) -> None:
            root_variables[source.text(ident)] = RootVariable(
                identifier=ident,
                declaring_scope=scope,
                is_parameter=is_parameter,
            )

        find_bindings(pattern, on_identifier)

    def visit(node: Node, scope: Node) -> None:
        kind = declaration_kind(node)
        if kind == "const":
            for decl in declarators(node):
                name = decl.child_by_field_name("name")
                value = decl.child_by_field_name("value")
                if (
                    name is not None
                    and name.type == "identifier"
                    and value is not None
                    and resolver.is_global_call_to(value, "computed")
                ):
                    root_variables[source.text(name)] = RootVariable(
                        identifier=name,
                        declaring_scope=scope,
                        is_computed=True,
                        reactive=True,
                    )
        elif kind in {"let", "var"}:
            for decl in declarators(node):
                name = decl.child_by_field_name("name")
                if name is not None:
                    add_root_variables(name, scope, False)
        elif node.type == "if_statement":
            consequence = node.child_by_field_name("consequence")
            if consequence is not None and consequence.type == "statement_block":
                for statement in block_statements(consequence):
                    visit(statement, consequence)
            alternative = node.child_by_field_name("alternative")
            if alternative is not None:
                branch = named_children(alternative)
                if branch and branch[0].type == "statement_block":
                    for statement in block_statements(branch[0]):
                        visit(statement, branch[0])
        elif node.type == "switch_statement":
            body = node.child_by_field_name("body")
            for case in named_children(body) if body is not None else []:
                for statement in switch_case_statements(case):
                    visit(statement, scope)
        elif node.type == "statement_block":
            for statement in block_statements(node):
                visit(statement, node)

    for param in parameter_nodes(root):
        add_root_variables(param, root, True)

    body = function_body(root)
    if body is not None and body.type == "statement_block":
        for statement in block_statements(body):
            visit(statement, body)

    return root_variables
