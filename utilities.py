"""
Utilities module for the Ember interpreter
Contains common helper functions shared by the value model, stdlib and evaluator
"""

from typing import Any, Dict, List, Optional, Callable

from error_handling import (
  ArityMismatchError,
  DivisionByZeroError,
  IntegerOverflowError,
  TypeMismatchError,
)


INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1

NUMERIC_TYPES = ("Int", "Float")


# ==================== TYPE CHECKING UTILITIES ====================

def is_value_dict(val: Any) -> bool:
  """
  Check if value is a wrapped runtime value

  Args:
    val: Value to check

  Returns:
    True if val is a dict with 'type' and 'value' keys
  """
  return isinstance(val, dict) and 'type' in val and 'value' in val


def get_value_type(val: Any) -> str:
  """Type tag of a runtime value, 'Unknown' for anything else"""
  return val['type'] if is_value_dict(val) else 'Unknown'


def is_numeric(val: Dict) -> bool:
  return get_value_type(val) in NUMERIC_TYPES


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  func_name: str,
  param_name: str,
  expected: str,
  actual: Dict
) -> TypeMismatchError:
  """
  Generate type mismatch error

  Args:
    func_name: Function name
    param_name: Parameter name
    expected: Expected type
    actual: Actual value dict

  Returns:
    TypeMismatchError with formatted message
  """
  return TypeMismatchError(
    f"{func_name} requires {expected} for {param_name}, got {get_value_type(actual)}"
  )


def arity_error(func_name: str, expected: int, got: int) -> ArityMismatchError:
  """
  Generate arity mismatch error

  Args:
    func_name: Function name
    expected: Expected number of arguments
    got: Actual number of arguments

  Returns:
    ArityMismatchError with formatted message
  """
  plural = "argument" if expected == 1 else "arguments"
  return ArityMismatchError(
    f"{func_name} expects {expected} {plural}, got {got}"
  )


def operation_error(
  op: str,
  left_type: str,
  right_type: Optional[str] = None
) -> TypeMismatchError:
  """
  Generate operation error

  Args:
    op: Operation name
    left_type: Left (or only) operand type
    right_type: Right operand type, omitted for unary operations

  Returns:
    TypeMismatchError with formatted message
  """
  if right_type is None:
    return TypeMismatchError(f"Cannot {op} {left_type}")
  return TypeMismatchError(f"Cannot {op} {left_type} and {right_type}")


# ==================== VALIDATION UTILITIES ====================

def validate_function_args(
  func_name: str,
  args: List[Dict],
  expected_types: List[Optional[str]]
) -> None:
  """
  Validate function arguments match expected types

  Args:
    func_name: Function name for error messages
    args: List of argument values
    expected_types: List of expected type names, None accepts any type

  Raises:
    ArityMismatchError or TypeMismatchError if validation fails
  """
  if len(args) != len(expected_types):
    raise arity_error(func_name, len(expected_types), len(args))

  for i, (arg, expected) in enumerate(zip(args, expected_types)):
    if expected is not None and get_value_type(arg) != expected:
      raise type_mismatch_error(func_name, f"argument {i+1}", expected, arg)


def dispatch_by_type(
  value: Dict,
  handlers: Dict[str, Callable],
  default_handler: Optional[Callable] = None
) -> Any:
  """
  Generic type-based dispatch

  Args:
    value: Value dict with 'type' field
    handlers: Map of type names to handler functions
    default_handler: Fallback handler

  Returns:
    Result of calling the appropriate handler

  Raises:
    TypeMismatchError if no handler found and no default

  Examples:
    dispatch_by_type(
      {"type": "Int", "value": 42},
      {"Int": lambda v: v['value'] * 2}
    ) -> 84
  """
  value_type = get_value_type(value)
  handler = handlers.get(value_type, default_handler)
  if handler is None:
    raise TypeMismatchError(f"No handler for type: {value_type}")
  return handler(value)


# ==================== NUMERIC HELPERS ====================

def check_int_range(result: int, op_name: str) -> int:
  """Confine an integer result to the signed 64-bit range"""
  if result < INT_MIN or result > INT_MAX:
    raise IntegerOverflowError(f"Integer overflow in {op_name}: result does not fit in 64 bits")
  return result


def trunc_div(x: int, y: int) -> int:
  """Integer division rounding toward zero"""
  quotient = abs(x) // abs(y)
  return quotient if (x < 0) == (y < 0) else -quotient


def trunc_mod(x: int, y: int) -> int:
  """Remainder whose sign follows the dividend, paired with trunc_div"""
  return x - y * trunc_div(x, y)


# ==================== BINARY OPERATION FACTORIES ====================

def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  op_name: str,
  allow_strings: bool = True
) -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Factory for ordering comparisons

  Numbers compare by value across Int and Float; strings compare
  lexicographically with each other. Anything else is a type mismatch.

  Examples:
    ember_lt = binary_comparison_op(operator.lt, "compare")
    result = ember_lt({"type": "Int", "value": 1}, {"type": "Float", "value": 2.0}, make_value)
  """
  def comparison(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if is_numeric(x) and is_numeric(y):
      return make_value(op(x['value'], y['value']), "Bool")
    if allow_strings and x['type'] == "Str" and y['type'] == "Str":
      return make_value(op(x['value'], y['value']), "Bool")
    raise operation_error(op_name, get_value_type(x), get_value_type(y))

  return comparison


def binary_arithmetic_op(
  int_op: Callable[[int, int], int],
  float_op: Optional[Callable[[float, float], float]],
  op_name: str,
  check_zero: bool = False
) -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Factory for numeric binary operations

  Args:
    int_op: Operation applied when both operands are Int
    float_op: Operation applied once either operand is Float; None makes
      the operator Int-only
    op_name: Name for error messages
    check_zero: Raise DivisionByZeroError when the right operand is zero

  Returns:
    Function that performs the arithmetic operation

  Examples:
    ember_sub = binary_arithmetic_op(operator.sub, operator.sub, "subtract")
    result = ember_sub({"type": "Int", "value": 3}, {"type": "Int", "value": 2}, make_value)
  """
  def arithmetic(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if not (is_numeric(x) and is_numeric(y)):
      raise operation_error(op_name, get_value_type(x), get_value_type(y))

    both_int = x['type'] == "Int" and y['type'] == "Int"
    if float_op is None and not both_int:
      raise operation_error(op_name, x['type'], y['type'])

    if check_zero and y['value'] == 0:
      raise DivisionByZeroError(f"Cannot {op_name} {x['type']} by zero")

    if both_int:
      return make_value(check_int_range(int_op(x['value'], y['value']), op_name), "Int")
    return make_value(float(float_op(float(x['value']), float(y['value']))), "Float")

  return arithmetic

