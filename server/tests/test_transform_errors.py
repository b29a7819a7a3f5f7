import pytest

from statekit.services.syntax import FactorySyntaxError
from statekit.services.transform import transform


def _error(code: str, path: str = "factory.ts") -> FactorySyntaxError:
    with pytest.raises(FactorySyntaxError) as excinfo:
        transform(code, path)
    return excinfo.value


def test_factory_without_block_body() -> None:
    error = _error("createClass(() => ({}))\n")

    assert error.msg == "Every `createClass` factory function must have curly braces"
    assert error.line == 1
    assert error.column == 18


def test_return_must_be_object_literal() -> None:
    error = _error(
        """createClass(() => {
  return 1
})
"""
    )

    assert error.msg == "You must return an object literal or an arrow function"
    assert error.loc == {"line": 2, "column": 2}
    assert error.file_path == "factory.ts"


def test_returned_arrow_must_return_object_literal() -> None:
    error = _error(
        """createClass(() => {
  return () => 1
})
"""
    )

    assert error.msg == "When returning an arrow function, its body must be an object literal"


def test_nested_function_returns_are_not_validated() -> None:
    result = transform(
        """const Thing = createClass(() => {
  const get = () => { return 1 }
  return { get }
})
""",
        "factory.ts",
    )

    assert result is not None


def test_watch_requires_function_argument() -> None:
    error = _error(
        """createClass(() => {
  const fn = () => {}
  watch(fn)
  return {}
})
"""
    )

    assert error.msg == "The first argument must be a function"
    assert error.line == 3


def test_computed_must_initialize_const() -> None:
    error = _error(
        """createClass(() => {
  let total = computed(() => 1)
  return {}
})
"""
    )

    assert error.msg == "Expected 'const' keyword in computed variable declaration"
    assert error.line == 2


def test_computed_outside_declaration() -> None:
    error = _error(
        """createClass(() => {
  computed(() => 1)
  return {}
})
"""
    )

    assert error.msg == "Cannot use computed(…) outside of a const variable's initializer"


def test_computed_assignment_requires_property_target() -> None:
    error = _error(
        """createClass(() => {
  let total
  total = computed(() => 1)
  return {}
})
"""
    )

    assert error.msg == "Computed assignments must be property assignments"


def test_computed_assignment_requires_plain_operator() -> None:
    error = _error(
        """createClass(() => {
  const state = {}
  state.total += computed(() => 1)
  return {}
})
"""
    )

    assert error.msg == 'Computed assignment must use "=" operator'


def test_parse_errors_are_reported() -> None:
    error = _error("const = ;\n")

    assert error.line == 1
    assert "factory.ts" in str(error)


def test_error_is_a_syntax_error() -> None:
    error = _error("createClass(() => 1)\n")

    assert isinstance(error, SyntaxError)
    assert error.lineno == 1
