from typing import Iterable, Optional

from tree_sitter import Node

from statekit.services.scope_tracker import ScopeTracker
from statekit.services.syntax import SourceFile, callee_of, has_callee_named


class IntrinsicResolver:
    """
    Decides whether a call refers to a framework intrinsic or to a user
    binding of the same name declared somewhere inside the factory.
    """

    def __init__(self, scopes: ScopeTracker, source: SourceFile):
        self.scopes = scopes
        self.source = source

    def is_global_call_to(self, node: Node, name: str) -> bool:
        if node.type not in {"call_expression", "new_expression"}:
            return False
        if not has_callee_named(node, name, self.source):
            return False
        scope = self.scopes.closest_scope(node)
        return not self.scopes.find_binding(name, scope)

    def resolve(self, node: Node, names: Iterable[str]) -> Optional[str]:
        callee = callee_of(node)
        if callee is None or callee.type != "identifier":
            return None
        callee_name = self.source.text(callee)
        for name in names:
            if name == callee_name and self.is_global_call_to(node, name):
                return name
        return None
