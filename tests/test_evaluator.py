"""Tests for the libcel evaluator.

Tests cover:
- Identifiers, selection, presence tests and indexing
- Arithmetic, comparison, equality and membership operators
- Logical short-circuiting and conditionals
- Macros and variable scoping
- Comprehension folds
"""

import math

import pytest

from libcel import (
    BinaryOp,
    BinaryOperator,
    Comprehension,
    EvaluationContext,
    EvaluationError,
    Evaluator,
    FunctionNotFoundError,
    Identifier,
    Literal,
    LiteralKind,
    Struct,
    evaluate,
    parse,
    standard_functions,
)


def run(source, **variables):
    return evaluate(source, variables)


@pytest.fixture
def functions():
    return standard_functions()


# =============================================================================
# Identifiers and Selection
# =============================================================================


class TestIdentifiers:
    """Tests for variable lookup and field selection."""

    def test_variable_lookup(self):
        assert run("x", x=5) == 5

    def test_null_variable_is_defined(self):
        assert run("x", x=None) is None

    def test_undefined_variable(self):
        with pytest.raises(EvaluationError, match="Undefined variable: y"):
            run("y", x=1)

    def test_field_selection(self):
        assert run("user.name", user={"name": "Ada"}) == "Ada"

    def test_nested_selection(self):
        assert run("a.b.c", a={"b": {"c": 3}}) == 3

    def test_missing_field(self):
        with pytest.raises(EvaluationError, match="Field age not found"):
            run("user.age", user={"name": "Ada"})

    def test_select_from_null(self):
        with pytest.raises(EvaluationError, match="from null"):
            run("user.name", user=None)

    def test_select_from_non_map(self):
        with pytest.raises(EvaluationError, match="Cannot select field name from int"):
            run("user.name", user=3)

    def test_leading_dot_selects_binding(self):
        assert run(".x + 1", x=2) == 3

    def test_leading_dot_missing_binding(self):
        with pytest.raises(EvaluationError, match="Field y not found"):
            run(".y", x=2)


class TestPresence:
    """Tests for has() presence-test selection."""

    def test_present_field(self):
        assert run("has(user.email)", user={"email": "a@b.c"}) is True

    def test_absent_field(self):
        assert run("has(user.email)", user={}) is False

    def test_null_target(self):
        assert run("has(user.email)", user=None) is False

    def test_present_field_with_null_value(self):
        assert run("has(user.email)", user={"email": None}) is True

    def test_top_level_binding(self):
        assert run("has(.x)", x=1) is True
        assert run("has(.y)", x=1) is False

    def test_non_map_target_still_raises(self):
        with pytest.raises(EvaluationError):
            run("has(user.email)", user="text")


# =============================================================================
# Indexing
# =============================================================================


class TestIndexing:
    """Tests for list, string and map indexing."""

    def test_list_index(self):
        assert run("xs[1]", xs=[10, 20, 30]) == 20

    def test_list_index_truncates_double(self):
        assert run("xs[1.9]", xs=[10, 20, 30]) == 20

    def test_list_index_out_of_bounds(self):
        with pytest.raises(EvaluationError, match="out of bounds"):
            run("xs[3]", xs=[10, 20, 30])

    def test_negative_index_out_of_bounds(self):
        with pytest.raises(EvaluationError, match="out of bounds"):
            run("xs[-1]", xs=[10])

    def test_list_index_requires_number(self):
        with pytest.raises(EvaluationError, match="Index must be a number"):
            run("xs['a']", xs=[1])

    def test_bool_is_not_an_index(self):
        with pytest.raises(EvaluationError, match="Index must be a number"):
            run("xs[true]", xs=[1, 2])

    def test_string_index(self):
        assert run("'hello'[1]") == "e"

    def test_string_index_out_of_bounds(self):
        with pytest.raises(EvaluationError, match="out of bounds"):
            run("'hi'[2]")

    def test_map_index(self):
        assert run("m['a']", m={"a": 1}) == 1
        assert run("m[2]", m={2: "two"}) == "two"

    def test_map_key_not_found(self):
        with pytest.raises(EvaluationError, match="Map key not found"):
            run("m['b']", m={"a": 1})

    def test_map_unhashable_key_not_found(self):
        with pytest.raises(EvaluationError, match="Map key not found"):
            run("m[[1]]", m={"a": 1})

    def test_index_into_number(self):
        with pytest.raises(EvaluationError, match="Cannot index into int"):
            run("x[0]", x=5)


# =============================================================================
# Arithmetic
# =============================================================================


class TestArithmetic:
    """Tests for arithmetic operators."""

    def test_integer_arithmetic(self):
        assert run("1 + 2 * 3 - 4") == 3

    def test_division_always_yields_double(self):
        result = run("10 / 2")
        assert result == 5
        assert isinstance(result, float)

    def test_division_by_zero(self):
        with pytest.raises(EvaluationError, match="Division by zero"):
            run("1 / 0")

    def test_modulo_by_zero(self):
        with pytest.raises(EvaluationError, match="Modulo by zero"):
            run("1 % 0")

    def test_modulo_truncates_toward_zero(self):
        assert run("7 % 3") == 1
        assert run("-7 % 3") == -1
        assert run("7 % -3") == 1

    def test_double_modulo(self):
        assert run("5.5 % 2") == pytest.approx(1.5)
        assert run("-5.5 % 2") == pytest.approx(-1.5)

    def test_string_concatenation(self):
        assert run("'a' + 'b'") == "ab"

    def test_string_concatenation_stringifies_other_side(self):
        assert run("'n=' + 3") == "n=3"
        assert run("1.0 + ' apple'") == "1 apple"
        assert run("'v: ' + null") == "v: null"
        assert run("'ok: ' + true") == "ok: true"

    def test_list_concatenation(self):
        assert run("[1] + [2, 3]") == [1, 2, 3]

    def test_mismatched_addition(self):
        with pytest.raises(EvaluationError, match="Cannot add list and int"):
            run("[1] + 2")

    def test_bool_is_not_numeric(self):
        with pytest.raises(EvaluationError, match="Cannot add bool and int"):
            run("true + 1")

    def test_subtraction_requires_numbers(self):
        with pytest.raises(EvaluationError, match="Subtraction requires numeric operands"):
            run("'a' - 1")

    def test_string_repetition(self):
        assert run("'ab' * 3") == "ababab"

    def test_list_repetition(self):
        assert run("[1, 2] * 3") == [1, 2, 1, 2, 1, 2]

    def test_repetition_requires_non_negative_integer(self):
        with pytest.raises(EvaluationError, match="Repetition count"):
            run("'a' * -1")
        with pytest.raises(EvaluationError, match="Repetition count"):
            run("'a' * 1.5")

    def test_invalid_multiplication(self):
        with pytest.raises(EvaluationError, match="Cannot multiply"):
            run("{} * 2")

    def test_huge_integer_division_overflow(self):
        big = "1" + "0" * 400
        with pytest.raises(EvaluationError, match="Numeric overflow in '/'"):
            run(f"{big} / 1")

    def test_huge_integer_times_double_overflow(self):
        big = "1" + "0" * 400
        with pytest.raises(EvaluationError, match="Numeric overflow in '\\*'"):
            run(f"2.5 * {big}")
        with pytest.raises(EvaluationError, match="Numeric overflow in '\\+'"):
            run(f"0.5 + {big}")
        with pytest.raises(EvaluationError, match="Numeric overflow in '-'"):
            run(f"{big} - 0.5")

    def test_huge_integer_arithmetic_stays_exact(self):
        big = "1" + "0" * 400
        assert run(f"{big} + 1") == 10**400 + 1

    def test_bytes_concatenation_keeps_bytes(self):
        assert run("type(b'a' + b'b')") == "bytes"
        assert run("b'a' + b'b' == 'ab'") is True

    def test_bytes_repetition_keeps_bytes(self):
        assert run("type(b'ab' * 2)") == "bytes"
        assert run("b'ab' * 2") == "abab"

    def test_bytes_plus_string_is_string(self):
        assert run("type(b'a' + 'b')") == "string"

    def test_negation(self):
        assert run("-x", x=4) == -4
        assert run("--2.5") == 2.5

    def test_negation_requires_number(self):
        with pytest.raises(EvaluationError, match="Cannot negate"):
            run("-'a'")


# =============================================================================
# Comparison, Equality, Membership
# =============================================================================


class TestComparison:
    """Tests for the total-order comparator."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("1 < 2", True),
            ("2 <= 2.0", True),
            ("'abc' < 'abd'", True),
            ("false < true", True),
            ("null < 0", True),
            ("null <= null", True),
            ("0 > null", True),
            ("[1, 2] < [1, 3]", True),
            ("[1, 2] < [1, 2, 3]", True),
            ("[1, 3] < [1, 2]", False),
            ("[] >= []", True),
        ],
    )
    def test_ordering(self, source, expected):
        assert run(source) is expected

    def test_mixed_types_not_comparable(self):
        with pytest.raises(EvaluationError, match="not comparable"):
            run("1 < 'a'")

    def test_bool_and_number_not_comparable(self):
        with pytest.raises(EvaluationError, match="Values of type bool and int are not comparable"):
            run("true < 1")

    def test_maps_not_comparable(self):
        with pytest.raises(EvaluationError, match="not comparable"):
            run("{} < {}")


class TestEquality:
    """Tests for deep structural equality."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("{'a': 1, 'b': 2} == {'b': 2, 'a': 1}", True),
            ("[1, 2, 3] == [1, 2, 3]", True),
            ("[1, 2] == [1, 2, 3]", False),
            ("1 == 1.0", True),
            ("1u == 1", True),
            ("'1' == 1", False),
            ("true == 1", False),
            ("null == null", True),
            ("null == 0", False),
            ("[[1], {'k': [2]}] == [[1], {'k': [2]}]", True),
            ("{'a': 1} != {'a': 2}", True),
            ("{a: 1} == {'a': 1}", True),
            ("b'abc' == 'abc'", True),
        ],
    )
    def test_deep_equality(self, source, expected):
        assert run(source) is expected

    def test_equality_never_raises(self):
        assert run("x == y", x={"a": [1]}, y="text") is False


class TestMembership:
    """Tests for the in operator."""

    def test_list_membership_uses_deep_equality(self):
        assert run("[1, 2] in [[1, 2], [3]]") is True
        assert run("2.0 in [1, 2]") is True
        assert run("4 in [1, 2]") is False

    def test_map_membership_checks_keys(self):
        assert run("'a' in {'a': 1}") is True
        assert run("1 in {'a': 1}") is False

    def test_string_membership_is_substring(self):
        assert run("'ell' in 'hello'") is True
        assert run("'xyz' in 'hello'") is False

    def test_membership_on_unsupported_type(self):
        with pytest.raises(EvaluationError, match="'in' operator requires"):
            run("1 in 5")


# =============================================================================
# Logic and Conditionals
# =============================================================================


class TestLogic:
    """Tests for short-circuit logic and conditionals."""

    def test_and_short_circuits(self):
        assert run("false && undefined_name") is False

    def test_or_short_circuits(self):
        assert run("true || undefined_name") is True

    def test_right_operand_evaluated_when_needed(self):
        assert run("true && x > 1", x=2) is True
        assert run("false || x > 1", x=0) is False

    def test_logical_operands_must_be_bool(self):
        with pytest.raises(EvaluationError, match="'&&' requires bool operands"):
            run("1 && true")
        with pytest.raises(EvaluationError, match="'\\|\\|' requires bool operands"):
            run("false || 'yes'")

    def test_not_requires_bool(self):
        assert run("!false") is True
        with pytest.raises(EvaluationError, match="'!' requires a bool operand"):
            run("!0")

    def test_conditional_evaluates_selected_branch_only(self):
        assert run("x > 0 ? 'pos' : missing", x=1) == "pos"
        assert run("x > 0 ? missing : 'neg'", x=-1) == "neg"

    def test_conditional_non_bool_takes_else_branch(self):
        assert run("1 ? 'a' : 'b'") == "b"


# =============================================================================
# Literals and Calls
# =============================================================================


class TestLiteralsAndCalls:
    """Tests for composite literals and registry calls."""

    def test_list_literal(self):
        assert run("[1, 'a', null]") == [1, "a", None]

    def test_map_literal_last_key_wins(self):
        assert run("{'a': 1, 'a': 2}") == {"a": 2}

    def test_map_key_must_be_scalar(self):
        with pytest.raises(EvaluationError, match="Map key must be a scalar"):
            run("{[1]: 2}")

    def test_struct_literal(self):
        result = run("Person{name: 'Ada', age: 36}")
        assert isinstance(result, Struct)
        assert result.type_name == "Person"
        assert result == {"name": "Ada", "age": 36}

    def test_struct_field_access(self):
        assert run("a.b.Point{x: 1, y: 2}.y") == 2

    def test_escape_sequences(self):
        assert run(r'"\x41\x42"') == "AB"
        assert run(r'r"\n"') == "\\n"

    def test_function_call(self):
        assert run("size('abc')") == 3

    def test_method_call(self):
        assert run("'abc'.startsWith('a')") is True

    def test_unknown_function_propagates_registry_error(self):
        with pytest.raises(FunctionNotFoundError, match="Unknown function: nope"):
            run("nope(1)")

    def test_arguments_evaluated_before_dispatch(self):
        with pytest.raises(EvaluationError, match="Undefined variable: y"):
            run("nope(y)")


# =============================================================================
# Macros
# =============================================================================


class TestMacros:
    """Tests for map/filter/all/exists/existsOne."""

    def test_map(self):
        assert run("[1, 2, 3].map(x, x * 2)") == [2, 4, 6]

    def test_filter_keeps_exactly_true(self):
        assert run("[1, 2, 3, 4].filter(x, x % 2 == 0)") == [2, 4]

    def test_all(self):
        assert run("[1, 2].all(x, x > 0)") is True
        assert run("[1, -2].all(x, x > 0)") is False
        assert run("[].all(x, x > 0)") is True

    def test_all_short_circuits(self):
        assert run("[0, 'a'].all(x, x > 0)") is False

    def test_exists(self):
        assert run("[1, 2].exists(x, x == 2)") is True
        assert run("[].exists(x, x == 2)") is False

    def test_exists_short_circuits(self):
        assert run("[2, 'a'].exists(x, x == 2)") is True

    def test_exists_one(self):
        assert run("[].existsOne(x, x > 0)") is False
        assert run("[1, 2, 3].existsOne(x, x == 2)") is True
        assert run("[1, 2, 3].existsOne(x, x > 1)") is False

    def test_chained_macros(self):
        assert run("xs.filter(x, x > 1).map(x, x * 10)", xs=[1, 2, 3]) == [20, 30]

    def test_nested_macros(self):
        assert run("[[1, 2], [3]].map(row, row.map(v, v + 1))") == [[2, 3], [4]]

    def test_macro_over_tuple(self):
        assert run("xs.map(x, x)", xs=(1, 2)) == [1, 2]

    def test_macro_requires_list_target(self):
        with pytest.raises(EvaluationError, match="requires a list target"):
            run("{'a': 1}.map(x, x)")

    def test_macro_requires_identifier(self):
        with pytest.raises(EvaluationError, match="must be a variable name"):
            run("[1].map(1, 2)")

    def test_macro_requires_two_arguments(self):
        with pytest.raises(EvaluationError, match="requires a variable and an expression"):
            run("[1].map(x)")

    def test_macro_name_as_free_function(self):
        with pytest.raises(FunctionNotFoundError, match="Unknown function: map"):
            run("map(x, x)", x=1)


class TestMacroScoping:
    """Tests that macro loop variables never leak."""

    def test_existing_binding_restored(self, functions):
        context = EvaluationContext(functions, {"x": 100})
        result = Evaluator(context).evaluate(parse("[1, 2, 3].map(x, x * 2)"))

        assert result == [2, 4, 6]
        assert context.variables["x"] == 100

    def test_binding_restored_when_body_raises(self, functions):
        context = EvaluationContext(functions, {"x": 100})

        with pytest.raises(EvaluationError, match="Cannot add"):
            Evaluator(context).evaluate(parse("[1, 'a', 3].map(x, x + [0])"))

        assert context.variables == {"x": 100}

    def test_new_binding_removed(self, functions):
        context = EvaluationContext(functions, {})
        Evaluator(context).evaluate(parse("[1].exists(y, y == 1)"))
        assert "y" not in context.variables

    def test_binding_restored_after_short_circuit(self, functions):
        context = EvaluationContext(functions, {"x": "outer"})
        assert Evaluator(context).evaluate(parse("[1, 2].exists(x, x == 1)")) is True
        assert context.variables["x"] == "outer"

    def test_loop_variable_shadows_outer_in_body(self):
        assert run("[1, 2].map(x, x + y)", x=100, y=10) == [11, 12]


# =============================================================================
# Comprehension
# =============================================================================


class TestComprehension:
    """Tests for the generalized fold node."""

    def _sum_of_evens(self, range_node):
        return Comprehension(
            variable="v",
            range=range_node,
            accumulator="acc",
            initializer=Literal(0, LiteralKind.INT),
            condition=parse("v % 2 == 0"),
            step=BinaryOp(BinaryOperator.ADD, Identifier("acc"), Identifier("v")),
            result=Identifier("acc"),
        )

    def test_fold(self, functions):
        context = EvaluationContext(functions, {"xs": [1, 2, 3, 4]})
        assert Evaluator(context).evaluate(self._sum_of_evens(Identifier("xs"))) == 6
        assert context.variables == {"xs": [1, 2, 3, 4]}

    def test_bindings_restored_on_error(self, functions):
        context = EvaluationContext(functions, {"xs": [2, "a"], "acc": "keep"})
        with pytest.raises(EvaluationError):
            Evaluator(context).evaluate(self._sum_of_evens(Identifier("xs")))
        assert context.variables == {"xs": [2, "a"], "acc": "keep"}

    def test_range_must_be_list(self, functions):
        context = EvaluationContext(functions, {"xs": 3})
        with pytest.raises(EvaluationError, match="requires a list range"):
            Evaluator(context).evaluate(self._sum_of_evens(Identifier("xs")))


# =============================================================================
# Limits
# =============================================================================


class TestEvaluationLimits:
    """Tests for pathological trees built by hosts."""

    def test_deep_tree_reports_nesting(self, functions):
        node = Literal(1, LiteralKind.INT)
        for _ in range(20000):
            node = BinaryOp(BinaryOperator.ADD, node, Literal(1, LiteralKind.INT))

        with pytest.raises(EvaluationError, match="nested too deeply"):
            Evaluator(EvaluationContext(functions)).evaluate(node)

    def test_non_finite_index(self):
        with pytest.raises(EvaluationError, match="Invalid index"):
            run("xs[x]", xs=[1], x=math.inf)
