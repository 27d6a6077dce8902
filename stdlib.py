"""
Ember Standard Library
Runtime value model, operators and built-in functions
Values are tagged dictionaries: {'type': <kind>, 'value': <payload>}
"""

from typing import Dict, Callable, Any, List, Optional
import operator
import sys

from error_handling import IndexOutOfBoundsError, TypeMismatchError
from utilities import (
  binary_comparison_op,
  binary_arithmetic_op,
  check_int_range,
  dispatch_by_type,
  get_value_type,
  is_numeric,
  operation_error,
  trunc_div,
  trunc_mod,
  type_mismatch_error,
  validate_function_args,
)


# ============================================================================
# VALUE CONSTRUCTORS
# ============================================================================

def make_value(value: Any, type_name: str) -> Dict:
  """Create a runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_unit() -> Dict:
  return make_value(None, "Unit")


def make_bool(flag: bool) -> Dict:
  return make_value(bool(flag), "Bool")


def make_array(elements: List[Dict]) -> Dict:
  """Arrays hold a Python list that is shared by every alias of the value"""
  return make_value(elements, "Array")


def make_function(name: Optional[str], params: List[str], body: Dict, closure_env: Dict) -> Dict:
  """Create a closure over the environment active at its definition"""
  return make_value({
      'name': name,
      'params': params,
      'body': body,
      'closure_env': closure_env,
  }, "Function")


def make_builtin(name: str, func: Callable, arity: Optional[int]) -> Dict:
  """Wrap a host function; arity None means variadic"""
  return make_value({
      'name': name,
      'func': func,
      'arity': arity,
  }, "Builtin")


def literal_value(literal: Any) -> Dict:
  """Build a value from a Python literal produced by the parser"""
  if literal is None:
    return make_unit()
  if isinstance(literal, bool):
    return make_bool(literal)
  if isinstance(literal, int):
    return make_value(literal, "Int")
  if isinstance(literal, float):
    return make_value(literal, "Float")
  return make_value(str(literal), "Str")


# ============================================================================
# DISPLAY
# ============================================================================

def format_float(number: float) -> str:
  if number != number:
    return "nan"
  if number in (float('inf'), float('-inf')):
    return "inf" if number > 0 else "-inf"
  return repr(number)


def show(value: Dict, nested: bool = False, _seen: Optional[set] = None) -> str:
  """Render a value the way print displays it.

  Strings are bare at the top level and quoted inside arrays so that
  ``["a, b"]`` and ``["a", "b"]`` stay distinguishable.
  """
  seen = _seen if _seen is not None else set()

  def show_array(array_value: Dict) -> str:
    marker = id(array_value['value'])
    if marker in seen:
      return "[...]"
    seen.add(marker)
    try:
      parts = [show(elem, True, seen) for elem in array_value['value']]
    finally:
      seen.discard(marker)
    return "[" + ", ".join(parts) + "]"

  return dispatch_by_type(value, {
      "Int": lambda v: str(v['value']),
      "Float": lambda v: format_float(v['value']),
      "Bool": lambda v: "true" if v['value'] else "false",
      "Str": lambda v: _quote(v['value']) if nested else v['value'],
      "Array": show_array,
      "Function": lambda v: f"<fun {v['value']['name'] or 'anonymous'}>",
      "Builtin": lambda v: f"<builtin {v['value']['name']}>",
      "Unit": lambda v: "nil",
  })


def _quote(text: str) -> str:
  escaped = text.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n').replace('\t', '\\t')
  return f'"{escaped}"'


# ============================================================================
# EQUALITY
# ============================================================================

def values_equal(x: Dict, y: Dict, _pairs: Optional[set] = None) -> bool:
  """Structural equality; values of different kinds are never equal
  except Int and Float, which compare numerically.

  Arrays that contain themselves compare equal when every pair of
  elements reached before the cycle closes is equal.
  """
  if is_numeric(x) and is_numeric(y):
    return x['value'] == y['value']
  if x['type'] != y['type']:
    return False
  kind = x['type']
  if kind == "Unit":
    return True
  if kind == "Array":
    left, right = x['value'], y['value']
    if left is right:
      return True
    if len(left) != len(right):
      return False
    pairs = _pairs if _pairs is not None else set()
    key = (id(left), id(right))
    if key in pairs:
      return True
    pairs.add(key)
    try:
      return all(values_equal(a, b, pairs) for a, b in zip(left, right))
    finally:
      pairs.discard(key)
  if kind in ("Function", "Builtin"):
    return x['value'] is y['value']
  return x['value'] == y['value']


def ember_eq(x: Dict, y: Dict) -> Dict:
  """Equality comparison"""
  return make_bool(values_equal(x, y))


def ember_ne(x: Dict, y: Dict) -> Dict:
  """Not equal comparison"""
  return make_bool(not values_equal(x, y))


# ============================================================================
# COMPARISON FUNCTIONS
# ============================================================================

_ember_lt_impl = binary_comparison_op(operator.lt, "compare")
_ember_gt_impl = binary_comparison_op(operator.gt, "compare")
_ember_le_impl = binary_comparison_op(operator.le, "compare")
_ember_ge_impl = binary_comparison_op(operator.ge, "compare")


def ember_lt(x: Dict, y: Dict) -> Dict:
  """Less than comparison"""
  return _ember_lt_impl(x, y, make_value)


def ember_gt(x: Dict, y: Dict) -> Dict:
  """Greater than comparison"""
  return _ember_gt_impl(x, y, make_value)


def ember_le(x: Dict, y: Dict) -> Dict:
  """Less than or equal comparison"""
  return _ember_le_impl(x, y, make_value)


def ember_ge(x: Dict, y: Dict) -> Dict:
  """Greater than or equal comparison"""
  return _ember_ge_impl(x, y, make_value)


# ============================================================================
# ARITHMETIC FUNCTIONS
# ============================================================================

_ember_add_impl = binary_arithmetic_op(operator.add, operator.add, "add")
_ember_sub_impl = binary_arithmetic_op(operator.sub, operator.sub, "subtract")
_ember_mul_impl = binary_arithmetic_op(operator.mul, operator.mul, "multiply")
_ember_div_impl = binary_arithmetic_op(trunc_div, operator.truediv, "divide", check_zero=True)
_ember_mod_impl = binary_arithmetic_op(trunc_mod, None, "take remainder of", check_zero=True)


def ember_add(x: Dict, y: Dict) -> Dict:
  """Addition for numbers, concatenation for strings"""
  if x['type'] == "Str" and y['type'] == "Str":
    return make_value(x['value'] + y['value'], "Str")
  return _ember_add_impl(x, y, make_value)


def ember_sub(x: Dict, y: Dict) -> Dict:
  """Subtraction"""
  return _ember_sub_impl(x, y, make_value)


def ember_mul(x: Dict, y: Dict) -> Dict:
  """Multiplication"""
  return _ember_mul_impl(x, y, make_value)


def ember_div(x: Dict, y: Dict) -> Dict:
  """Division; Int / Int truncates toward zero"""
  return _ember_div_impl(x, y, make_value)


def ember_mod(x: Dict, y: Dict) -> Dict:
  """Integer remainder"""
  return _ember_mod_impl(x, y, make_value)


# ============================================================================
# UNARY OPERATORS
# ============================================================================

def ember_neg(x: Dict) -> Dict:
  """Arithmetic negation"""
  if x['type'] == "Int":
    return make_value(check_int_range(-x['value'], "negate"), "Int")
  if x['type'] == "Float":
    return make_value(-x['value'], "Float")
  raise operation_error("negate", get_value_type(x))


def ember_not(x: Dict) -> Dict:
  """Logical negation"""
  if x['type'] != "Bool":
    raise operation_error("apply '!' to", get_value_type(x))
  return make_bool(not x['value'])


BUILTIN_OPERATORS = {
    '+': ember_add,
    '-': ember_sub,
    '*': ember_mul,
    '/': ember_div,
    '%': ember_mod,
    '==': ember_eq,
    '!=': ember_ne,
    '<': ember_lt,
    '>': ember_gt,
    '<=': ember_le,
    '>=': ember_ge,
}

UNARY_OPERATORS = {
    '-': ember_neg,
    '!': ember_not,
}


def require_bool(value: Dict, what: str) -> bool:
  """Unwrap a Bool used in a condition or logical operator"""
  if value['type'] != "Bool":
    raise TypeMismatchError(f"{what} must be Bool, got {get_value_type(value)}")
  return value['value']


# ============================================================================
# BUILT-IN FUNCTIONS
# Every built-in receives (args, context) and returns a value.
# ============================================================================

def ember_print(args: List[Dict], context: Dict) -> Dict:
  """Print values separated by spaces, followed by a newline"""
  output = context.get('output')
  if output is None:
    output = sys.stdout
  output.write(" ".join(show(arg) for arg in args) + "\n")
  return make_unit()


def ember_len(args: List[Dict], context: Dict) -> Dict:
  """Length of an array or string"""
  validate_function_args("len", args, [None])
  target = args[0]
  if target['type'] not in ("Array", "Str"):
    raise type_mismatch_error("len", "argument 1", "Array or Str", target)
  return make_value(len(target['value']), "Int")


def ember_push(args: List[Dict], context: Dict) -> Dict:
  """Append a value to an array in place"""
  validate_function_args("push", args, ["Array", None])
  args[0]['value'].append(args[1])
  return make_unit()


def ember_pop(args: List[Dict], context: Dict) -> Dict:
  """Remove and return the last element of an array"""
  validate_function_args("pop", args, ["Array"])
  elements = args[0]['value']
  if not elements:
    raise IndexOutOfBoundsError("Cannot pop from an empty array")
  return elements.pop()


def ember_str(args: List[Dict], context: Dict) -> Dict:
  """Display string of any value"""
  validate_function_args("str", args, [None])
  return make_value(show(args[0]), "Str")


def ember_type(args: List[Dict], context: Dict) -> Dict:
  """Kind name of any value"""
  validate_function_args("type", args, [None])
  return make_value(get_value_type(args[0]), "Str")


def ember_range(args: List[Dict], context: Dict) -> Dict:
  """Array of the integers start <= i < end"""
  validate_function_args("range", args, ["Int", "Int"])
  start, end = args[0]['value'], args[1]['value']
  return make_array([make_value(i, "Int") for i in range(start, end)])


BUILTIN_FUNCTIONS = {
    'print': (ember_print, None),
    'len': (ember_len, 1),
    'push': (ember_push, 2),
    'pop': (ember_pop, 1),
    'str': (ember_str, 1),
    'type': (ember_type, 1),
    'range': (ember_range, 2),
}
