"""
Tests for the value model, operators and built-in functions
"""

import io
import pytest
from stdlib import (
  BUILTIN_FUNCTIONS,
  ember_add,
  ember_div,
  ember_eq,
  ember_lt,
  ember_mod,
  ember_mul,
  ember_neg,
  ember_not,
  ember_sub,
  literal_value,
  make_array,
  make_bool,
  make_function,
  make_unit,
  make_value,
  show,
  values_equal,
)
from error_handling import (
  ArityMismatchError,
  DivisionByZeroError,
  IndexOutOfBoundsError,
  IntegerOverflowError,
  TypeMismatchError,
)
from utilities import INT_MAX, INT_MIN, trunc_div, trunc_mod


def num(n):
  return literal_value(n)


def text(s):
  return make_value(s, "Str")


def call_builtin(name, *args, output=None):
  func, _ = BUILTIN_FUNCTIONS[name]
  return func(list(args), {'output': output})


class TestArithmetic:

  def test_int_arithmetic(self):
    assert ember_add(num(2), num(3)) == num(5)
    assert ember_sub(num(2), num(3)) == num(-1)
    assert ember_mul(num(4), num(3)) == num(12)

  def test_int_division_truncates_toward_zero(self):
    assert ember_div(num(7), num(2)) == num(3)
    assert ember_div(num(-7), num(2)) == num(-3)
    assert trunc_div(7, -2) == -3

  def test_modulo_sign_follows_dividend(self):
    assert ember_mod(num(7), num(2)) == num(1)
    assert ember_mod(num(-7), num(2)) == num(-1)
    assert trunc_mod(7, -2) == 1

  def test_mixed_arithmetic_is_float(self):
    result = ember_add(num(1), num(0.5))
    assert result == {'type': "Float", 'value': 1.5}
    assert ember_div(num(1.0), num(4)) == num(0.25)

  def test_division_by_zero(self):
    with pytest.raises(DivisionByZeroError):
      ember_div(num(10), num(0))
    with pytest.raises(DivisionByZeroError):
      ember_div(num(1.5), num(0.0))
    with pytest.raises(DivisionByZeroError):
      ember_mod(num(3), num(0))

  def test_modulo_is_int_only(self):
    with pytest.raises(TypeMismatchError):
      ember_mod(num(3.5), num(2))

  def test_overflow(self):
    with pytest.raises(IntegerOverflowError):
      ember_add(num(INT_MAX), num(1))
    with pytest.raises(IntegerOverflowError):
      ember_neg(num(INT_MIN))
    with pytest.raises(IntegerOverflowError):
      ember_div(num(INT_MIN), num(-1))

  def test_string_concatenation(self):
    assert ember_add(text("ab"), text("cd")) == text("abcd")

  def test_mismatched_operands(self):
    with pytest.raises(TypeMismatchError):
      ember_add(text("a"), num(1))
    with pytest.raises(TypeMismatchError):
      ember_sub(make_bool(True), num(1))

  def test_unary(self):
    assert ember_neg(num(2.5)) == num(-2.5)
    assert ember_not(make_bool(False)) == make_bool(True)
    with pytest.raises(TypeMismatchError):
      ember_not(num(0))


class TestComparison:

  def test_numbers_compare_across_kinds(self):
    assert ember_lt(num(1), num(1.5)) == make_bool(True)
    assert values_equal(num(2), num(2.0))

  def test_strings_compare_lexicographically(self):
    assert ember_lt(text("apple"), text("banana")) == make_bool(True)

  def test_ordering_across_kinds_is_an_error(self):
    with pytest.raises(TypeMismatchError):
      ember_lt(text("1"), num(2))

  def test_cross_kind_equality_is_false(self):
    assert ember_eq(text("1"), num(1)) == make_bool(False)
    assert ember_eq(make_unit(), make_bool(False)) == make_bool(False)

  def test_array_equality_is_structural(self):
    left = make_array([num(1), make_array([text("x")])])
    right = make_array([num(1), make_array([text("x")])])
    assert values_equal(left, right)
    assert not values_equal(left, make_array([num(1)]))

  def test_self_containing_arrays_compare(self):
    left = make_array([num(1)])
    left['value'].append(left)
    right = make_array([num(1)])
    right['value'].append(right)
    assert values_equal(left, right)
    assert values_equal(left, left)
    other = make_array([num(2)])
    other['value'].append(other)
    assert not values_equal(left, other)
    assert not values_equal(left, make_array([num(1), make_array([])]))

  def test_function_equality_is_identity(self):
    f = make_function("f", [], {'type': "BLOCK", 'value': {'statements': []}}, {})
    g = make_function("f", [], {'type': "BLOCK", 'value': {'statements': []}}, {})
    assert values_equal(f, f)
    assert not values_equal(f, g)


class TestShow:

  def test_scalars(self):
    assert show(num(42)) == "42"
    assert show(num(2.0)) == "2.0"
    assert show(make_bool(True)) == "true"
    assert show(make_unit()) == "nil"
    assert show(text("hi")) == "hi"

  def test_strings_are_quoted_inside_arrays(self):
    assert show(make_array([num(1), text("a"), make_array([])])) == '[1, "a", []]'

  def test_self_containing_array(self):
    array = make_array([num(1)])
    array['value'].append(array)
    assert show(array) == "[1, [...]]"

  def test_functions(self):
    body = {'type': "BLOCK", 'value': {'statements': []}}
    assert show(make_function("fact", ["n"], body, {})) == "<fun fact>"
    assert show(make_function(None, [], body, {})) == "<fun anonymous>"


class TestBuiltins:

  def test_print_joins_with_spaces(self):
    output = io.StringIO()
    result = call_builtin("print", num(1), text("two"), make_array([text("3")]), output=output)
    assert output.getvalue() == '1 two ["3"]\n'
    assert result == make_unit()

  def test_print_without_arguments(self):
    output = io.StringIO()
    call_builtin("print", output=output)
    assert output.getvalue() == "\n"

  def test_len(self):
    assert call_builtin("len", make_array([num(1), num(2)])) == num(2)
    assert call_builtin("len", text("hello")) == num(5)
    with pytest.raises(TypeMismatchError):
      call_builtin("len", num(3))

  def test_push_and_pop_mutate_in_place(self):
    array = make_array([])
    call_builtin("push", array, num(7))
    assert array['value'] == [num(7)]
    assert call_builtin("pop", array) == num(7)
    with pytest.raises(IndexOutOfBoundsError):
      call_builtin("pop", array)

  def test_str_and_type(self):
    assert call_builtin("str", num(12)) == text("12")
    assert call_builtin("type", num(1.5)) == text("Float")
    assert call_builtin("type", make_unit()) == text("Unit")

  def test_range(self):
    assert call_builtin("range", num(1), num(4)) == make_array([num(1), num(2), num(3)])
    assert call_builtin("range", num(3), num(1)) == make_array([])
    with pytest.raises(TypeMismatchError):
      call_builtin("range", num(1), num(2.0))

  def test_argument_count_checked(self):
    with pytest.raises(ArityMismatchError):
      call_builtin("len")
