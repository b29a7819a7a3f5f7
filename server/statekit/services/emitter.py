import json
from typing import Callable, Dict, Iterable, List, Optional, Set

from tree_sitter import Node

from statekit.config import ATOM, ATOM_DEV, GET_PARAM, PROXY, UNNEST
from statekit.services.bindings import statement_terminator
from statekit.services.edit_buffer import EditBuffer
from statekit.services.root_variables import RootVariable
from statekit.services.syntax import (
    SourceFile,
    find_parent_node,
    function_body,
    same_node,
)

SHORTHAND_TYPES = {"shorthand_property_identifier", "shorthand_property_identifier_pattern"}

LITERAL_TYPES = {"object", "array"}


def find_literal_container(node: Node) -> Optional[Node]:
    """
    Nearest property, return statement, declarator or arrow function around
    an object literal. Returned literals (by `return` or as an arrow body)
    are unwrapped by the runtime and must never be wrapped again.
    """
    child = node
    parent = node.parent
    while parent is not None:
        if parent.type in {"pair", "return_statement", "variable_declarator"}:
            return parent
        if (
            parent.type == "arrow_function"
            and child.type != "statement_block"
            and same_node(function_body(parent), child)
        ):
            return parent
        child = parent
        parent = parent.parent
    return None


def is_returned_container(container: Optional[Node]) -> bool:
    return container is not None and container.type in {"return_statement", "arrow_function"}


class ImportManifest:
    """Runtime names used by the rewrite, in first-use order."""

    def __init__(self):
        self.names: List[str] = []

    def use(self, name: str) -> str:
        if name not in self.names:
            self.names.append(name)
        return name

    def __bool__(self) -> bool:
        return bool(self.names)

    def statement(self, runtime_path: str) -> str:
        if not self.names:
            return ""
        return f"import {{ {', '.join(self.names)} }} from '{runtime_path}'\n"


class RewriteEmitter:
    def __init__(
        self,
        buffer: EditBuffer,
        source: SourceFile,
        manifest: ImportManifest,
        debug: bool = False,
    ):
        self.buffer = buffer
        self.source = source
        self.manifest = manifest
        self.debug = debug
        # Literal node ids already wrapped with `$unnest(...)`.
        self.unnested: Set[int] = set()
        self.proxied: Set[int] = set()
        # Destructuring statements already given a trailing `;`.
        self.terminated: Set[int] = set()

    def use(self, name: str) -> str:
        return self.manifest.use(name)

    # --- Declarations ---

    def transform_reactive_variable(self, variable: RootVariable, root: Node) -> None:
        if variable.is_computed:
            return

        atom = self.use(ATOM_DEV if self.debug else ATOM)
        ident = variable.identifier
        name = self.source.text(ident)
        debug_args = f", {json.dumps(name)}, this" if self.debug else ""

        if variable.is_parameter:
            # Dynamic parameters are re-assigned at the start of the body.
            body = function_body(root)
            if body is not None and body.type == "statement_block":
                self.buffer.append_left(
                    self.source.start(body) + 1,
                    f"\n  {name} = {atom}({name}{debug_args});",
                )
            return

        parent = ident.parent
        if parent is not None and parent.type == "variable_declarator" and same_node(
            parent.child_by_field_name("name"), ident
        ):
            value = parent.child_by_field_name("value")
            if value is not None:
                self.buffer.prepend_left(self.source.start(value), f"{atom}(")
                self.buffer.append_right(self.source.end(value), f"{debug_args})")
            else:
                anchor = parent.child_by_field_name("type") or ident
                args = f"undefined{debug_args}" if self.debug else ""
                self.buffer.append_left(self.source.end(anchor), f" = {atom}({args})")
            return

        # Destructured declaration
        declarator = find_parent_node(
            ident,
            lambda p: p.type == "variable_declarator",
            variable.declaring_scope,
        )
        if declarator is None or declarator.parent is None:
            return
        statement = declarator.parent
        end = self.source.end(statement)
        if statement_terminator(statement) is None and statement.id not in self.terminated:
            self.terminated.add(statement.id)
            self.buffer.append_left(end, ";")
        self.buffer.append_left(end, f" {name} = {atom}({name}{debug_args});")

    # --- References ---

    def emit_references(self, variable: RootVariable, is_watched: Callable[[Node], bool]) -> None:
        for ident in variable.references.values():
            name = self.source.text(ident)
            prefix = ""
            suffix = ""
            if is_watched(ident):
                prefix = f"{GET_PARAM}("
                suffix = ")"
            if ident.type in SHORTHAND_TYPES:
                suffix = f": {prefix}{name}{suffix}"
                prefix = ""
            if prefix:
                self.buffer.prepend_right(self.source.start(ident), prefix)
            self.buffer.append_left(self.source.end(ident), f"{suffix}.value")

    def emit_returned_literals(self, variable: RootVariable) -> None:
        """
        Nested literals of the returned object that hold a reactive variable
        are wrapped with `$unnest(...)`. The returned literal itself is left
        to the runtime.
        """
        for literal in variable.enclosing_returned_literals.values():
            if literal.id in self.unnested:
                continue
            container = find_literal_container(literal)
            if container is None or is_returned_container(container):
                continue
            self.unnested.add(literal.id)
            self.buffer.append_left(self.source.start(literal), f"{self.use(UNNEST)}(")
            self.buffer.append_left(self.source.end(literal), ")")

    def unnest_literal(self, literal: Node) -> None:
        if literal.id in self.unnested:
            return
        self.unnested.add(literal.id)
        self.buffer.prepend_left(self.source.start(literal), f"{self.use(UNNEST)}(")
        self.buffer.append_right(self.source.end(literal), ")")

    # --- Proxies ---

    def emit_proxies(
        self,
        proxies: Dict[str, Node],
        root_variables: Dict[str, RootVariable],
        unnested_names: Iterable[str],
    ) -> None:
        skipped = set(unnested_names)
        for name, node in proxies.items():
            if node.type not in LITERAL_TYPES:
                continue
            # A cell or `$unnest` already deep-wraps the literal.
            variable = root_variables.get(name)
            if variable is not None and variable.reactive:
                continue
            if name in skipped or node.id in self.unnested or node.id in self.proxied:
                continue
            self.proxied.add(node.id)
            self.buffer.prepend_left(self.source.start(node), f"{self.use(PROXY)}(")
            self.buffer.append_right(self.source.end(node), ")")

    def emit_watched_proxies(
        self,
        identifiers: Iterable[Node],
        root_variables: Dict[str, RootVariable],
        is_proxy_reference: Callable[[Node], bool],
    ) -> None:
        for ident in identifiers:
            name = self.source.text(ident)
            variable = root_variables.get(name)
            if variable is not None and variable.reactive:
                continue
            if not is_proxy_reference(ident):
                continue
            if ident.type in SHORTHAND_TYPES:
                self.buffer.append_left(self.source.end(ident), f": {GET_PARAM}({name})")
            else:
                self.buffer.append_left(self.source.start(ident), f"{GET_PARAM}(")
                self.buffer.append_left(self.source.end(ident), ")")
