from typing import Callable, Dict, List, Optional, Set

from tree_sitter import Node

from statekit.config import TYPE_ONLY_TYPES

Visitor = Callable[[Node, "NodeTraversal"], None]


class NodeTraversal:
    """
    Pre-order walk over a tree-sitter subtree.

    `visitors` maps node types to callbacks and `enter` runs before them on
    every node. A callback may call `skip()` to keep the walk out of the
    current node's children. Type-only subtrees (annotations, type
    arguments, ...) are never entered.
    """

    def __init__(
        self,
        visitors: Optional[Dict[str, Visitor]] = None,
        enter: Optional[Visitor] = None,
    ):
        self.visitors = visitors or {}
        self.enter = enter
        self._skipped: Set[int] = set()
        self._stack: List[Node] = []

    @property
    def current_node(self) -> Optional[Node]:
        return self._stack[-1] if self._stack else None

    def skip(self, node: Optional[Node] = None) -> None:
        target = node or self.current_node
        if target is not None:
            self._skipped.add(target.id)

    def traverse(self, node: Node) -> None:
        if node.id in self._skipped:
            return
        if node.type in TYPE_ONLY_TYPES or node.type == "comment":
            return

        self._stack.append(node)
        try:
            if self.enter is not None:
                self.enter(node, self)
                if node.id in self._skipped:
                    return

            visitor = self.visitors.get(node.type)
            if visitor is not None:
                visitor(node, self)
                if node.id in self._skipped:
                    return

            for child in node.children:
                self.traverse(child)
        finally:
            self._stack.pop()


def traverse(
    node: Node,
    visitors: Optional[Dict[str, Visitor]] = None,
    enter: Optional[Visitor] = None,
) -> None:
    NodeTraversal(visitors=visitors, enter=enter).traverse(node)
