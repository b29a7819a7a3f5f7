from typing import Set, Tuple

DEFAULT_RUNTIME_PATH = "statekit/runtime"

CACHE_DIR_NAME = ".statekit-cache"

# Paths ending in one of these parse with the TSX grammar.
TSX_SUFFIXES: Tuple[str, ...] = (".tsx", ".jsx")

FACTORY_FUNCTION = "createClass"

# Intrinsics that create a side effect, and therefore turn an enclosing
# root-level `while` loop into a conditional effect.
EFFECT_FUNCTIONS: Tuple[str, ...] = (
    "computed",
    "on",
    "onMount",
    "onUnmount",
    "onUpdate",
    "subscribe",
    "subscribeKey",
    "watch",
    "when",
)

GLOBAL_FUNCTIONS: Tuple[str, ...] = EFFECT_FUNCTIONS + ("getVersion", "ref", "snapshot")

# Intrinsics whose first argument is a dependency-tracking callback.
WATCH_FUNCTIONS: Set[str] = {"computed", "watch", "when"}

# Runtime primitives that only the compiler emits.
ATOM = "$atom"
ATOM_DEV = "$atomDEV"
PROXY = "$proxy"
PROXY_MAP = "$proxyMap"
PROXY_SET = "$proxySet"
UNNEST = "$unnest"
ASSIGN = "$assign"
WHEN = "$when"
COMPUTED_DEV = "$computedDEV"

# Parameter injected into watch callbacks.
GET_PARAM = "$get"

PROXYABLE_COLLECTIONS = {
    "Map": PROXY_MAP,
    "Set": PROXY_SET,
}

FUNCTION_TYPES: Set[str] = {
    "arrow_function",
    "function_expression",
    "function_declaration",
    "generator_function",
    "generator_function_declaration",
    "method_definition",
}

LOOP_TYPES: Set[str] = {
    "for_statement",
    "for_in_statement",
    "while_statement",
    "do_statement",
}

BLOCK_TYPES: Set[str] = FUNCTION_TYPES | LOOP_TYPES | {"statement_block", "catch_clause"}

# Type-level subtrees never contain runtime references.
TYPE_ONLY_TYPES: Set[str] = {
    "type_annotation",
    "type_arguments",
    "type_parameters",
    "type_alias_declaration",
    "interface_declaration",
    "type_query",
    "type_predicate_annotation",
    "asserts_annotation",
    "opting_type_annotation",
    "omitting_type_annotation",
    "adding_type_annotation",
    "ambient_declaration",
}
