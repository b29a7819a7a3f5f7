import bisect
from typing import Callable, List, Optional, Tuple

import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser, Tree

from statekit.config import BLOCK_TYPES, FUNCTION_TYPES, TSX_SUFFIXES

# Load TypeScript and TSX grammars
TYPESCRIPT_LANGUAGE = Language(tstypescript.language_typescript())
TSX_LANGUAGE = Language(tstypescript.language_tsx())


class FactorySyntaxError(SyntaxError):
    """
    A fatal problem with the shape of a factory function or the use of an
    intrinsic. Carries a 1-based line and a 0-based character column so the
    caller can report it as a file-level syntax error.
    """

    def __init__(self, message: str, line: int, column: int, file_path: str = ""):
        super().__init__(message)
        self.msg = message
        self.line = line
        self.column = column
        self.file_path = file_path
        # Keep the builtin SyntaxError attributes populated for tracebacks.
        self.lineno = line
        self.offset = column + 1
        self.filename = file_path or None

    @property
    def loc(self) -> dict:
        return {"line": self.line, "column": self.column}

    def __str__(self) -> str:
        where = f"{self.file_path}:" if self.file_path else ""
        return f"{self.msg} ({where}{self.line}:{self.column})"


class SourceFile:
    """
    The immutable source buffer of one invocation.

    tree-sitter reports byte offsets; edits and source maps work on character
    offsets, so every node position goes through `start`/`end`.
    """

    def __init__(self, code: str, file_path: str):
        self.code = code
        self.file_path = file_path
        self.data = code.encode("utf-8")
        self._byte_to_char: Optional[List[int]] = None
        if len(self.data) != len(code):
            table: List[int] = []
            for index, ch in enumerate(code):
                table.extend([index] * len(ch.encode("utf-8")))
            table.append(len(code))
            self._byte_to_char = table
        self._line_starts = [0]
        for index, ch in enumerate(code):
            if ch == "\n":
                self._line_starts.append(index + 1)

    def offset(self, byte_offset: int) -> int:
        if self._byte_to_char is None:
            return byte_offset
        return self._byte_to_char[byte_offset]

    def start(self, node: Node) -> int:
        return self.offset(node.start_byte)

    def end(self, node: Node) -> int:
        return self.offset(node.end_byte)

    def text(self, node: Node) -> str:
        return self.code[self.start(node) : self.end(node)]

    def position(self, index: int) -> Tuple[int, int]:
        """Return the 0-based (line, column) of a character offset."""
        line = bisect.bisect_right(self._line_starts, index) - 1
        return line, index - self._line_starts[line]

    def error(self, message: str, node: Node) -> FactorySyntaxError:
        line, column = self.position(self.start(node))
        return FactorySyntaxError(message, line + 1, column, self.file_path)


def parse_source(source: SourceFile) -> Tree:
    is_tsx = source.file_path.lower().endswith(TSX_SUFFIXES)
    parser = Parser(TSX_LANGUAGE if is_tsx else TYPESCRIPT_LANGUAGE)
    tree = parser.parse(source.data)
    if tree.root_node.has_error:
        bad = _first_error_node(tree.root_node)
        if bad is not None:
            if bad.is_missing:
                raise source.error(f"Missing {bad.type}", bad)
            raise source.error("Unexpected token", bad)
    return tree


def _first_error_node(node: Node) -> Optional[Node]:
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error_node(child)
            if found is not None:
                return found
    return None


# --- Node helpers ---

def named_children(node: Node) -> List[Node]:
    return [c for c in node.named_children if c.type != "comment"]


def same_node(a: Optional[Node], b: Optional[Node]) -> bool:
    return a is not None and b is not None and a.id == b.id


def unwrap_parentheses(node: Node) -> Node:
    while node.type == "parenthesized_expression":
        inner = named_children(node)
        if len(inner) != 1:
            break
        node = inner[0]
    return node


def find_parent_node(
    node: Node,
    predicate: Callable[[Node], bool],
    stop_node: Optional[Node] = None,
) -> Optional[Node]:
    parent = node.parent
    while parent is not None:
        if stop_node is not None and parent.id == stop_node.id:
            return None
        if predicate(parent):
            return parent
        parent = parent.parent
    return None


def find_child(node: Node, node_type: str) -> Optional[Node]:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def is_function_node(node: Node) -> bool:
    return node.type in FUNCTION_TYPES


def is_block_node(node: Node) -> bool:
    return node.type in BLOCK_TYPES


def declaration_kind(node: Node) -> Optional[str]:
    """Return 'let', 'const' or 'var' for a declaration statement."""
    if node.type == "variable_declaration":
        return "var"
    if node.type == "lexical_declaration":
        kind = node.child_by_field_name("kind")
        if kind is not None:
            return kind.type
        for child in node.children:
            if child.type in {"let", "const"}:
                return child.type
    return None


def declarators(node: Node) -> List[Node]:
    return [c for c in node.named_children if c.type == "variable_declarator"]


def callee_of(node: Node) -> Optional[Node]:
    if node.type == "call_expression":
        return node.child_by_field_name("function")
    if node.type == "new_expression":
        return node.child_by_field_name("constructor")
    return None


def call_arguments(node: Node) -> List[Node]:
    args = node.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return named_children(args)


def has_callee_named(node: Node, name: str, source: SourceFile) -> bool:
    callee = callee_of(node)
    return callee is not None and callee.type == "identifier" and source.text(callee) == name


def function_body(node: Node) -> Optional[Node]:
    return node.child_by_field_name("body")


def block_statements(node: Optional[Node]) -> List[Node]:
    """Statements of a block, or the single statement of a blockless body."""
    if node is None:
        return []
    if node.type == "statement_block":
        return named_children(node)
    return [node]


def return_argument(node: Node) -> Optional[Node]:
    children = named_children(node)
    return children[0] if children else None


def is_jsx_tag_name(node: Node) -> bool:
    parent = node.parent
    if parent is None:
        return False
    if parent.type in {"jsx_opening_element", "jsx_closing_element", "jsx_self_closing_element"}:
        return same_node(parent.child_by_field_name("name"), node)
    return False
