"""
Factory transformer.

Finds every `createClass(...)` factory in a module and rewrites its body so
that root variables reassigned from nested functions (or subscribed to) are
backed by reactive cells, literals become deep-reactive proxies, and
dependency-tracking callbacks read through `$get`.

Each factory is handled in one pre-order traversal of its body: visitors
record facts and the edits that can be decided immediately, then the
reactive variables, proxies and watched references are emitted.
"""
import json
import logging
from typing import Dict, List, Optional, Set

from tree_sitter import Node

from statekit.config import (
    ASSIGN,
    COMPUTED_DEV,
    EFFECT_FUNCTIONS,
    FACTORY_FUNCTION,
    GET_PARAM,
    GLOBAL_FUNCTIONS,
    PROXY,
    PROXYABLE_COLLECTIONS,
    WATCH_FUNCTIONS,
    WHEN,
)
from statekit.models import TransformOptions, TransformResult
from statekit.services.bindings import (
    ASSIGNMENT_TYPES,
    UnsupportedPatternError,
    find_assignment,
    find_bindings,
    get_left_references,
    is_being_assigned,
    is_purely_being_declared,
    is_reassignable,
    parameter_nodes,
)
from statekit.services.edit_buffer import EditBuffer
from statekit.services.emitter import (
    SHORTHAND_TYPES,
    ImportManifest,
    RewriteEmitter,
    find_literal_container,
    is_returned_container,
)
from statekit.services.intrinsics import IntrinsicResolver
from statekit.services.root_variables import RootVariable, find_root_variables
from statekit.services.scope_tracker import Scope, ScopeTracker
from statekit.services.syntax import (
    SourceFile,
    call_arguments,
    callee_of,
    declarators,
    find_child,
    find_parent_node,
    function_body,
    has_callee_named,
    is_function_node,
    is_jsx_tag_name,
    named_children,
    parse_source,
    return_argument,
    same_node,
    unwrap_parentheses,
)
from statekit.services.traverse import NodeTraversal, traverse

logger = logging.getLogger(__name__)

FACTORY_TYPES = {"arrow_function", "function_expression"}

IDENTIFIER_TYPES = {"identifier"} | SHORTHAND_TYPES


def transform(
    code: str,
    file_path: str,
    options: Optional[TransformOptions] = None,
) -> Optional[TransformResult]:
    """
    Rewrite every `createClass` factory in `code`.

    Returns None when the module needs no changes. Raises
    `FactorySyntaxError` for malformed factories and unparsable input.
    """
    options = options or TransformOptions()
    source = SourceFile(code, file_path)
    tree = parse_source(source)

    buffer = EditBuffer(code)
    manifest = ImportManifest()

    try:
        module_names = module_bound_names(tree.root_node, source)
        constructors = find_class_constructors(tree.root_node, source)
        logger.debug(f"Found {len(constructors)} factories in {file_path}")

        for root in constructors:
            FactoryTransformer(root, source, buffer, manifest, options, module_names).run()
    except UnsupportedPatternError as e:
        raise source.error(str(e), e.node) from e

    if not buffer.has_changed() and not manifest:
        return None

    buffer.prepend(manifest.statement(options.runtime_path))
    return TransformResult(code=buffer.render(), map=buffer.generate_map(file_path))


def find_class_constructors(node: Node, source: SourceFile) -> List[Node]:
    constructors: List[Node] = []

    def enter(current: Node, walk: NodeTraversal) -> None:
        if current.type != "call_expression" or not has_callee_named(current, FACTORY_FUNCTION, source):
            return
        args = call_arguments(current)
        if args and args[0].type in FACTORY_TYPES:
            constructors.append(args[0])
            # createClass cannot be nested.
            walk.skip()

    traverse(node, enter=enter)
    return constructors


def module_bound_names(program: Node, source: SourceFile) -> Set[str]:
    """Names imported or declared at the top level of the module."""
    names: Set[str] = set()

    def on_identifier(ident: Node, _renamed: bool) -> None:
        names.add(source.text(ident))

    for statement in named_children(program):
        if statement.type == "export_statement":
            declaration = statement.child_by_field_name("declaration")
            if declaration is None:
                continue
            statement = declaration
        if statement.type == "import_statement":
            clause = find_child(statement, "import_clause")
            if clause is None:
                continue
            for child in named_children(clause):
                if child.type == "identifier":
                    names.add(source.text(child))
                elif child.type == "namespace_import":
                    for ident in named_children(child):
                        names.add(source.text(ident))
                elif child.type == "named_imports":
                    for specifier in named_children(child):
                        local = specifier.child_by_field_name("alias") or specifier.child_by_field_name("name")
                        if local is not None:
                            names.add(source.text(local))
        elif statement.type in {"lexical_declaration", "variable_declaration"}:
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
                names.add(source.text(name))
    return names


class FactoryTransformer:
    def __init__(
        self,
        root: Node,
        source: SourceFile,
        buffer: EditBuffer,
        manifest: ImportManifest,
        options: TransformOptions,
        module_names: Set[str],
    ):
        self.root = root
        self.source = source
        self.buffer = buffer
        self.options = options
        self.module_names = module_names
        self.emitter = RewriteEmitter(buffer, source, manifest, debug=options.debug_mode)

        self.scopes = ScopeTracker(root, source)
        self.resolver = IntrinsicResolver(self.scopes, source)
        self.root_variables: Dict[str, RootVariable] = {}

        self.proxies: Dict[str, Node] = {}
        self.unnested_proxies: Set[str] = set()
        self.watch_callbacks: Set[int] = set()
        self.watched_identifiers: Dict[int, Node] = {}
        self.transformed_scopes: Set[int] = set()

    def run(self) -> None:
        body = function_body(self.root)
        if body is None or body.type != "statement_block":
            raise self.source.error(
                "Every `createClass` factory function must have curly braces",
                body or self.root,
            )

        if self.options.debug_mode and self.root.type == "arrow_function":
            self.convert_arrow_to_function()

        self.append_class_name()

        self.root_variables = find_root_variables(self.root, self.resolver, self.source)

        visitors = {
            "object": self.wrap_proxyable_literal,
            "array": self.wrap_proxyable_literal,
            "return_statement": self.validate_factory_return,
            "new_expression": self.rewrite_proxyable_collection,
            "call_expression": self.handle_global_function_call,
            "assignment_expression": self.track_explicit_proxy,
            "variable_declarator": self.track_explicit_proxy,
        }
        for node_type in IDENTIFIER_TYPES:
            visitors[node_type] = self.track_reference_or_assignment
        traverse(body, visitors=visitors)

        reactive = [name for name, v in self.root_variables.items() if v.reactive]
        logger.debug(f"Reactive variables: {reactive}")

        for variable in self.root_variables.values():
            if not variable.reactive:
                continue
            self.emitter.transform_reactive_variable(variable, self.root)
            self.emitter.emit_references(variable, self.is_being_watched)
            self.emitter.emit_returned_literals(variable)

        self.emitter.emit_proxies(self.proxies, self.root_variables, self.unnested_proxies)
        self.emitter.emit_watched_proxies(
            self.watched_identifiers.values(),
            self.root_variables,
            self.is_proxy_reference,
        )

    # --- Factory shape ---

    def convert_arrow_to_function(self) -> None:
        """Rewrite the arrow factory as a function expression so `this` is bound."""
        root = self.root
        params = root.child_by_field_name("type_parameters") or root.child_by_field_name("parameters")
        bare_param = root.child_by_field_name("parameter")
        if bare_param is not None:
            self.buffer.prepend_left(self.source.start(bare_param), "function (")
            self.buffer.append_left(self.source.end(bare_param), ")")
        elif params is not None:
            self.buffer.prepend_left(self.source.start(params), "function ")
        arrow = find_child(root, "=>")
        if arrow is not None:
            start = self.source.start(arrow)
            # Drop the space before `=>` along with the token.
            if start > 0 and self.source.code[start - 1] == " ":
                start -= 1
            self.buffer.remove(start, self.source.end(arrow))

    def append_class_name(self) -> None:
        declarator = find_parent_node(self.root, lambda p: p.type == "variable_declarator")
        if declarator is None:
            return
        name = declarator.child_by_field_name("name")
        if name is None or name.type != "identifier":
            return
        class_name = self.source.text(name)
        # Curried factories are usually named `createFoo`.
        if class_name.startswith("create"):
            class_name = class_name[len("create"):]
        self.buffer.append_left(self.source.end(self.root), f", {json.dumps(class_name)}")

    # --- Scope queries ---

    def closest_scope(self, node: Node) -> Scope:
        return self.scopes.closest_scope(node)

    def is_in_nested_function_scope(self, node: Node) -> bool:
        return self.scopes.is_in_nested_function_scope(self.closest_scope(node))

    def is_root_reference(self, ident: Node) -> bool:
        return self.scopes.find_binding(
            self.source.text(ident),
            self.closest_scope(ident),
            self.scopes.is_root_scope,
        )

    def is_proxy_reference(self, ident: Node) -> bool:
        return self.source.text(ident) in self.proxies and self.is_root_reference(ident)

    def match_root_variable(self, ident: Node) -> Optional[RootVariable]:
        """The root variable this identifier resolves to, if any."""
        name = self.source.text(ident)
        variable = self.root_variables.get(name)
        if variable is None:
            return None
        scope: Optional[Scope] = self.closest_scope(ident)
        while scope is not None:
            if name in scope.names:
                return variable if same_node(scope.node, variable.declaring_scope) else None
            scope = scope.parent
        return None

    def is_being_watched(self, ident: Node) -> bool:
        callback = find_parent_node(
            ident,
            lambda p: p.id in self.watch_callbacks,
            self.root,
        )
        return callback is not None and not is_being_assigned(ident)

    def is_reactive_assignment(self, node: Node) -> bool:
        refs = get_left_references(node)
        return bool(refs) and all(self.is_root_reference(ref) for ref in refs)

    def is_reactive_object_literal(self, literal: Node) -> bool:
        child = literal
        parent = literal.parent
        while parent is not None and parent.type in {"pair", "object", "parenthesized_expression"}:
            child = parent
            parent = parent.parent
        if parent is None:
            return False
        if parent.type == "return_statement" or (
            parent.type == "arrow_function" and same_node(function_body(parent), child)
        ):
            return not self.is_in_nested_function_scope(literal)
        return False

    # --- Visitors ---

    def track_reference_or_assignment(self, node: Node, walk: NodeTraversal) -> None:
        if is_jsx_tag_name(node) or is_purely_being_declared(node):
            return

        # Assignments to root variables (or their properties).
        assignment = find_assignment(node)
        if assignment is not None and any(
            same_node(ref, node) for ref in get_left_references(assignment)
        ):
            variable = self.match_root_variable(node)
            if variable is not None:
                variable.add_reference(node)
                # Only writes from a nested function make a variable reactive.
                if self.is_in_nested_function_scope(node):
                    variable.reactive = True
            return

        literal = self.enclosing_object_literal(node)
        if literal is not None and self.is_reactive_object_literal(literal):
            # The runtime subscribes to variables returned from the factory.
            variable = self.match_root_variable(node)
            if variable is not None:
                variable.enclosing_returned_literals.setdefault(literal.id, literal)
            return

        if self.is_being_watched(node):
            self.watched_identifiers.setdefault(node.id, node)

        variable = self.match_root_variable(node)
        if variable is None:
            return
        if self.is_subscription_target(node):
            # The cell itself is passed to `subscribe`, never its value.
            variable.reactive = True
        else:
            variable.add_reference(node)

    def enclosing_object_literal(self, node: Node) -> Optional[Node]:
        parent = node.parent
        if parent is None:
            return None
        if node.type == "shorthand_property_identifier" and parent.type == "object":
            return parent
        if (
            parent.type == "pair"
            and same_node(parent.child_by_field_name("value"), node)
            and parent.parent is not None
            and parent.parent.type == "object"
        ):
            return parent.parent
        return None

    def is_subscription_target(self, node: Node) -> bool:
        args = node.parent
        if args is None or args.type != "arguments" or args.parent is None:
            return False
        call = args.parent
        return (
            call.type == "call_expression"
            and same_node(call_arguments(call)[0], node)
            and self.resolver.is_global_call_to(call, "subscribe")
        )

    def wrap_proxyable_literal(self, node: Node, walk: NodeTraversal) -> None:
        scope = self.closest_scope(node)
        if self.scopes.is_in_nested_function_scope(scope):
            return

        # Literals nested in another literal or passed to a call are ignored.
        context = find_parent_node(
            node,
            lambda p: p.type in {"pair", "array", "variable_declarator", "new_expression", "call_expression"},
            scope.node,
        )
        declared_name = None
        if context is not None and context.type == "variable_declarator":
            name = context.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                declared_name = self.source.text(name)
                self.proxies[declared_name] = node

        if node.type != "object":
            return
        container = find_literal_container(node)
        if container is None or is_returned_container(container):
            return
        for prop in named_children(node):
            if prop.type != "pair":
                continue
            value = prop.child_by_field_name("value")
            if value is not None and self.resolver.is_global_call_to(value, "computed"):
                self.emitter.unnest_literal(node)
                if declared_name is not None:
                    self.unnested_proxies.add(declared_name)
                break

    def validate_factory_return(self, node: Node, walk: NodeTraversal) -> None:
        if self.is_in_nested_function_scope(node):
            return
        argument = return_argument(node)
        if argument is not None:
            argument = unwrap_parentheses(argument)
        if argument is not None and argument.type == "object":
            return
        if argument is not None and argument.type == "arrow_function":
            body = function_body(argument)
            if body is not None and unwrap_parentheses(body).type == "object":
                return
            raise self.source.error(
                "When returning an arrow function, its body must be an object literal",
                node,
            )
        raise self.source.error("You must return an object literal or an arrow function", node)

    def rewrite_proxyable_collection(self, node: Node, walk: NodeTraversal) -> None:
        callee = callee_of(node)
        if callee is None or callee.type != "identifier":
            return
        callee_name = self.source.text(callee)
        proxy_func = PROXYABLE_COLLECTIONS.get(callee_name)
        if proxy_func is None or not self.resolver.is_global_call_to(node, callee_name):
            return

        assignment = find_parent_node(
            node,
            lambda p: p.type in {"variable_declarator", "assignment_expression", "call_expression"},
        )
        if assignment is None or assignment.type == "call_expression":
            return
        if not self.is_reactive_assignment(assignment):
            return

        if assignment.type == "variable_declarator":
            name = assignment.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                self.proxies[self.source.text(name)] = node

        start = self.source.start(node)
        callee_start = self.source.start(callee)
        # Drop the `new` keyword.
        self.buffer.remove(start, callee_start)
        self.buffer.overwrite(callee_start, self.source.end(callee), self.emitter.use(proxy_func))

    def handle_while_effects(self, node: Node) -> None:
        scope: Optional[Scope] = self.closest_scope(node)

        # Root-level while loops containing the call, innermost first.
        loops: List[Scope] = []
        while scope is not None:
            if scope.node.type == "while_statement":
                if scope.id in self.transformed_scopes:
                    break
                loops.append(scope)
            else:
                if is_function_node(scope.node):
                    loops = []
                    break
                if self.scopes.is_root_scope(scope):
                    break
            scope = scope.parent

        code = self.source.code
        for loop in loops:
            self.transformed_scopes.add(loop.id)
            statement = loop.node
            start = self.source.start(statement)
            self.buffer.overwrite(start, start + len("while"), f"{self.emitter.use(WHEN)}(() =>")

            body = statement.child_by_field_name("body")
            body_start = self.source.start(body)
            body_end = self.source.end(body)
            if code[body_start - 1] == " ":
                body_start -= 1
            if code[body_end - 1] == ";":
                body_end -= 1
            self.buffer.prepend_left(body_start, ", () =>")
            self.buffer.append_left(body_end, ")")

    def handle_global_function_call(self, node: Node, walk: NodeTraversal) -> None:
        intrinsic = self.resolver.resolve(node, GLOBAL_FUNCTIONS)
        if intrinsic is None:
            self.handle_set_debug_id(node)
            return

        if intrinsic in EFFECT_FUNCTIONS:
            self.handle_while_effects(node)

        import_intrinsic = True
        if intrinsic in WATCH_FUNCTIONS:
            args = call_arguments(node)
            callback = args[0] if args else None
            if callback is None or callback.type not in FACTORY_TYPES:
                raise self.source.error("The first argument must be a function", node)
            self.inject_get_parameter(callback)
            self.watch_callbacks.add(callback.id)

            if intrinsic == "computed":
                import_intrinsic = self.handle_computed(node, callback)

        if import_intrinsic and self.options.emit_intrinsic_imports and intrinsic not in self.module_names:
            self.emitter.use(intrinsic)

    def inject_get_parameter(self, callback: Node) -> None:
        bare_param = callback.child_by_field_name("parameter")
        if bare_param is not None:
            self.buffer.prepend_left(self.source.start(bare_param), f"({GET_PARAM}, ")
            self.buffer.append_left(self.source.end(bare_param), ")")
            return
        params = callback.child_by_field_name("parameters")
        if params is None:
            return
        paren = find_child(params, "(")
        if paren is None:
            return
        separator = ", " if parameter_nodes(callback) else ""
        self.buffer.append_left(self.source.end(paren), f"{GET_PARAM}{separator}")

    def handle_computed(self, node: Node, callback: Node) -> bool:
        """Returns False when the `computed` callee no longer appears in the output."""
        parent = node.parent

        # A computed property declaration.
        if parent.type == "pair" and same_node(parent.child_by_field_name("value"), node):
            return True

        if parent.type in ASSIGNMENT_TYPES and same_node(parent.child_by_field_name("right"), node):
            self.rewrite_computed_assignment(node, parent)
            return False

        if parent.type != "variable_declarator" or not same_node(parent.child_by_field_name("value"), node):
            raise self.source.error(
                "Cannot use computed(…) outside of a const variable's initializer",
                node,
            )
        if is_reassignable(parent):
            raise self.source.error(
                "Expected 'const' keyword in computed variable declaration",
                parent.parent,
            )

        name = parent.child_by_field_name("name")
        if self.options.debug_mode and name is not None and name.type == "identifier":
            callee = callee_of(node)
            self.buffer.overwrite(
                self.source.start(callee),
                self.source.end(callee),
                self.emitter.use(COMPUTED_DEV),
            )
            self.buffer.append_right(
                self.source.end(callback),
                f", {json.dumps(self.source.text(name))}, this",
            )
            return False
        return True

    def rewrite_computed_assignment(self, node: Node, assignment: Node) -> None:
        left = unwrap_parentheses(assignment.child_by_field_name("left"))
        if left.type not in {"member_expression", "subscript_expression"}:
            raise self.source.error("Computed assignments must be property assignments", node)
        if assignment.type != "assignment_expression":
            raise self.source.error('Computed assignment must use "=" operator', node)

        source = self.source
        equals = find_child(assignment, "=")
        obj = left.child_by_field_name("object")

        if left.type == "member_expression":
            key = left.child_by_field_name("property")
            dot = find_child(left, ".") or find_child(left, "?.")
            # Object and key become separate arguments.
            self.buffer.overwrite(source.start(dot), source.end(dot), ", ")
            self.buffer.overwrite(source.start(key), source.end(key), json.dumps(source.text(key)))
            # The compute function becomes the third argument.
            self.buffer.overwrite(source.end(key), source.end(equals), ",")
        else:
            index = left.child_by_field_name("index")
            open_bracket = find_child(left, "[")
            close_bracket = find_child(left, "]")
            self.buffer.overwrite(source.start(open_bracket), source.end(open_bracket), ", ")
            self.buffer.overwrite(source.start(close_bracket), source.end(equals), ",")
            if index.type not in {"string", "number"}:
                # Dynamic keys are read lazily.
                self.buffer.append_left(source.start(index), "() => ")

        callee = callee_of(node)
        self.buffer.remove(source.start(callee), source.end(callee))

        prefix = "" if obj is not None and obj.type == "identifier" else "() => "
        self.buffer.append_left(source.start(assignment), f"{self.emitter.use(ASSIGN)}({prefix}")
        self.buffer.append_right(source.end(assignment), ")")

    def handle_set_debug_id(self, node: Node) -> None:
        if not has_callee_named(node, "setDebugId", self.source):
            return
        args = call_arguments(node)
        if len(args) != 2:
            return
        if self.scopes.is_root_scope(self.closest_scope(node)):
            self.buffer.append_right(self.source.end(args[1]), ", this")

    def track_explicit_proxy(self, node: Node, walk: NodeTraversal) -> None:
        if node.type == "variable_declarator":
            left = node.child_by_field_name("name")
            right = node.child_by_field_name("value")
        else:
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
        if left is None or right is None or left.type != "identifier":
            return
        if right.type != "call_expression" or not self.resolver.is_global_call_to(right, "proxy"):
            return
        if node.type == "variable_declarator" and self.is_in_nested_function_scope(node):
            return
        # `$proxy` tolerates values that are already reactive.
        callee = callee_of(right)
        self.buffer.overwrite(
            self.source.start(callee),
            self.source.end(callee),
            self.emitter.use(PROXY),
        )
        self.proxies[self.source.text(left)] = right
