"""
Ember Interpreter
Tree-walking evaluator over the AST dictionaries produced by semantics.py
Expressions evaluate to values; statements return control signals so that
'return' unwinds through nested blocks up to the nearest call boundary
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple
import sys

from environment import (
  env_assign,
  env_child,
  env_declare,
  env_local_bindings,
  env_lookup,
  make_runtime_env,
)
from error_handling import (
  EmberRuntimeError,
  IndexOutOfBoundsError,
  NotCallableError,
  RecursionDepthExceededError,
  StructuralError,
  TypeMismatchError,
)
from stdlib import (
  BUILTIN_FUNCTIONS,
  BUILTIN_OPERATORS,
  UNARY_OPERATORS,
  literal_value,
  make_array,
  make_builtin,
  make_function,
  make_unit,
  require_bool,
  show,
)
from utilities import arity_error, check_int_range, get_value_type


DEFAULT_MAX_CALL_DEPTH = 1000

# Python frames consumed per Ember call, with headroom
_FRAMES_PER_CALL = 24


# ============================================================================
# DATA STRUCTURES
# ============================================================================

def make_execution_context(output: Any = None, debug: bool = False,
                           max_call_depth: int = DEFAULT_MAX_CALL_DEPTH) -> Dict:
  """Per-run state shared by every evaluation step"""
  return {
      'output': output,
      'debug': debug,
      'max_call_depth': max_call_depth,
      'call_depth': 0,
  }


NORMAL = 'normal'
RETURN = 'return'


def make_signal(kind: str, value: Optional[Dict] = None) -> Dict:
  """Outcome of executing a statement.

  NORMAL carries the value of an expression statement (or None);
  RETURN carries the function result and stops every enclosing block
  until a call absorbs it.
  """
  return {
      'signal': kind,
      'value': value,
  }


def node_field(ast_node: Dict, name: str) -> Any:
  """Named field of a node's payload; a missing field means a malformed tree"""
  value = ast_node.get('value')
  if not isinstance(value, dict) or name not in value:
    raise StructuralError(f"{ast_node.get('type')} node is missing '{name}'", ast_node.get('span'))
  return value[name]


def create_builtin_runtime_env() -> Dict:
  """Root frame holding the built-in functions"""
  env = make_runtime_env()
  for name, (func, arity) in BUILTIN_FUNCTIONS.items():
    env_declare(env, name, make_builtin(name, func, arity), mutable=False)
  return env


def unwrap_value(val: Dict, _seen: Optional[Dict] = None) -> Any:
  """Recursively convert a runtime value to plain Python data.
  An array that contains itself becomes a list that contains itself."""
  kind = get_value_type(val)
  if kind == "Array":
    seen = _seen if _seen is not None else {}
    marker = id(val['value'])
    if marker in seen:
      return seen[marker]
    result = seen[marker] = []
    result.extend(unwrap_value(elem, seen) for elem in val['value'])
    return result
  if kind in ("Function", "Builtin"):
    return show(val)
  return val['value']


def _trace(context: Dict, message: str) -> None:
  print(f"{'  ' * context['call_depth']}{message}", file=sys.stderr)


# ============================================================================
# EXPRESSION EVALUATION
# ============================================================================

def eval_ast(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate an expression node to a value"""
  if not isinstance(ast_node, dict) or 'type' not in ast_node:
    raise StructuralError(f"Expected an expression node, got {ast_node!r}")

  node_type = ast_node['type']
  handler = EXPRESSION_HANDLERS.get(node_type)
  if handler is None:
    raise StructuralError(f"'{node_type}' is not an expression", ast_node.get('span'))

  if context['debug']:
    _trace(context, f"Evaluating: {node_type}")

  try:
    return handler(ast_node, env, context)
  except EmberRuntimeError as e:
    if e.span is None:
      e.span = ast_node.get('span')
    raise


def eval_literal(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  value = literal_value(ast_node['value'])
  if value['type'] == "Int":
    check_int_range(value['value'], "integer literal")
  return value


def eval_identifier(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate identifier by looking up in environment"""
  return env_lookup(env, ast_node['value'])


def eval_array(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate array literal, elements left to right"""
  return make_array([eval_ast(elem, env, context) for elem in node_field(ast_node, 'elements')])


def eval_binary(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate arithmetic and comparison operators"""
  op = node_field(ast_node, 'op')
  op_func = BUILTIN_OPERATORS.get(op)
  if op_func is None:
    raise StructuralError(f"Unknown operator '{op}'")

  left_val = eval_ast(node_field(ast_node, 'left'), env, context)
  right_val = eval_ast(node_field(ast_node, 'right'), env, context)
  return op_func(left_val, right_val)


def eval_logical(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate && and ||, skipping the right operand when the left decides"""
  op = node_field(ast_node, 'op')
  if op not in ("&&", "||"):
    raise StructuralError(f"Unknown logical operator '{op}'")

  left_val = eval_ast(node_field(ast_node, 'left'), env, context)
  left = require_bool(left_val, f"Left operand of '{op}'")
  if op == "&&" and not left:
    return left_val
  if op == "||" and left:
    return left_val

  right_val = eval_ast(node_field(ast_node, 'right'), env, context)
  require_bool(right_val, f"Right operand of '{op}'")
  return right_val


def eval_unary(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  op = node_field(ast_node, 'op')
  op_func = UNARY_OPERATORS.get(op)
  if op_func is None:
    raise StructuralError(f"Unknown unary operator '{op}'")
  return op_func(eval_ast(node_field(ast_node, 'operand'), env, context))


def checked_index(target: Dict, index: Dict) -> int:
  """Validate an array/index pair and return the Python index"""
  if target['type'] != "Array":
    raise TypeMismatchError(f"Cannot index into {get_value_type(target)}")
  if index['type'] != "Int":
    raise TypeMismatchError(f"Array index must be Int, got {get_value_type(index)}")
  position = index['value']
  length = len(target['value'])
  if position < 0 or position >= length:
    raise IndexOutOfBoundsError(f"Index {position} out of bounds for array of length {length}")
  return position


def eval_index(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate arr[i]"""
  target = eval_ast(node_field(ast_node, 'target'), env, context)
  index = eval_ast(node_field(ast_node, 'index'), env, context)
  return target['value'][checked_index(target, index)]


def eval_function_expr(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Anonymous function: a closure over the current frame"""
  return make_function(None, node_field(ast_node, 'params'), node_field(ast_node, 'body'), env)


def eval_call(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate function application"""
  func_val = eval_ast(node_field(ast_node, 'callee'), env, context)
  if func_val['type'] not in ("Function", "Builtin"):
    raise NotCallableError(f"Value of type {get_value_type(func_val)} is not callable")

  args = [eval_ast(arg, env, context) for arg in node_field(ast_node, 'args')]
  return call_function(func_val, args, context)


def call_function(func_val: Dict, args: List[Dict], context: Dict) -> Dict:
  """Apply a Function or Builtin value to already-evaluated arguments"""
  func_data = func_val['value']

  if func_val['type'] == "Builtin":
    arity = func_data['arity']
    if arity is not None and len(args) != arity:
      raise arity_error(func_data['name'], arity, len(args))
    return func_data['func'](args, context)

  if func_val['type'] != "Function":
    raise NotCallableError(f"Value of type {get_value_type(func_val)} is not callable")

  name = func_data['name'] or "anonymous function"
  params = func_data['params']
  if len(args) != len(params):
    raise arity_error(name, len(params), len(args))

  if context['call_depth'] >= context['max_call_depth']:
    raise RecursionDepthExceededError(
        f"Maximum call depth of {context['max_call_depth']} exceeded in '{name}'")

  # Lexical scoping: the new frame hangs off the captured environment,
  # not the caller's
  frame = env_child(func_data['closure_env'])
  for param, arg in zip(params, args):
    env_declare(frame, param, arg, mutable=True)

  if context['debug']:
    _trace(context, f"Calling: {name}({', '.join(show(arg, True) for arg in args)})")

  context['call_depth'] += 1
  try:
    signal = exec_block(func_data['body'], frame, context)
  except RecursionError:
    raise RecursionDepthExceededError(f"Recursion too deep in '{name}'") from None
  finally:
    context['call_depth'] -= 1

  if signal['signal'] == RETURN:
    return signal['value']
  return make_unit()


# ============================================================================
# STATEMENT EXECUTION
# ============================================================================

def exec_statement(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Execute a statement node and return its control signal"""
  if not isinstance(ast_node, dict) or 'type' not in ast_node:
    raise StructuralError(f"Expected a statement node, got {ast_node!r}")

  node_type = ast_node['type']
  handler = STATEMENT_HANDLERS.get(node_type)
  if handler is None:
    raise StructuralError(f"'{node_type}' is not a statement", ast_node.get('span'))

  if context['debug']:
    _trace(context, f"Executing: {node_type}")

  try:
    return handler(ast_node, env, context)
  except EmberRuntimeError as e:
    if e.span is None:
      e.span = ast_node.get('span')
    raise


def exec_block(block_node: Dict, frame: Dict, context: Dict) -> Dict:
  """Run a block's statements in the given frame, stopping at the first RETURN"""
  if block_node.get('type') != "BLOCK":
    raise StructuralError(f"Expected a block, got {block_node.get('type')}", block_node.get('span'))

  signal = make_signal(NORMAL)
  for statement in node_field(block_node, 'statements'):
    signal = exec_statement(statement, frame, context)
    if signal['signal'] == RETURN:
      return signal
  return signal


def exec_expression_statement(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  return make_signal(NORMAL, eval_ast(node_field(ast_node, 'expr'), env, context))


def exec_let(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Evaluate the initializer once, then bind in the current frame"""
  value = eval_ast(node_field(ast_node, 'init'), env, context)
  env_declare(env, node_field(ast_node, 'name'), value, bool(node_field(ast_node, 'mutable')))
  return make_signal(NORMAL)


def exec_assign(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  value = eval_ast(node_field(ast_node, 'value'), env, context)
  env_assign(env, node_field(ast_node, 'name'), value)
  return make_signal(NORMAL)


def exec_index_assign(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """arr[i] = v mutates the shared element list"""
  target = eval_ast(node_field(ast_node, 'target'), env, context)
  index = eval_ast(node_field(ast_node, 'index'), env, context)
  value = eval_ast(node_field(ast_node, 'value'), env, context)
  target['value'][checked_index(target, index)] = value
  return make_signal(NORMAL)


def exec_function_def(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Create a closure over the current frame and bind it by name there"""
  name = node_field(ast_node, 'name')
  func_val = make_function(name, node_field(ast_node, 'params'), node_field(ast_node, 'body'), env)
  env_declare(env, name, func_val, mutable=False)
  return make_signal(NORMAL)


def exec_if(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  condition = eval_ast(node_field(ast_node, 'condition'), env, context)
  if require_bool(condition, "Condition of 'if'"):
    return exec_block(node_field(ast_node, 'then'), env_child(env), context)

  else_branch = node_field(ast_node, 'else')
  if else_branch is None:
    return make_signal(NORMAL)
  if else_branch['type'] == "IF":
    return exec_statement(else_branch, env, context)
  return exec_block(else_branch, env_child(env), context)


def exec_while(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Condition in the enclosing frame, body in a fresh frame per iteration"""
  condition_node = node_field(ast_node, 'condition')
  body = node_field(ast_node, 'body')

  while require_bool(eval_ast(condition_node, env, context), "Condition of 'while'"):
    signal = exec_block(body, env_child(env), context)
    if signal['signal'] == RETURN:
      return signal
  return make_signal(NORMAL)


def exec_for(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """Bind each element immutably in a fresh frame and run the body there"""
  var = node_field(ast_node, 'var')
  body = node_field(ast_node, 'body')
  collection = eval_ast(node_field(ast_node, 'iterable'), env, context)
  if collection['type'] != "Array":
    raise TypeMismatchError(f"'for' needs an Array to iterate, got {get_value_type(collection)}")

  elements = collection['value']
  position = 0
  while position < len(elements):
    frame = env_child(env)
    env_declare(frame, var, elements[position], mutable=False)
    signal = exec_block(body, frame, context)
    if signal['signal'] == RETURN:
      return signal
    position += 1
  return make_signal(NORMAL)


def exec_return(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  expr = node_field(ast_node, 'value')
  value = eval_ast(expr, env, context) if expr is not None else make_unit()
  return make_signal(RETURN, value)


def exec_block_statement(ast_node: Dict, env: Dict, context: Dict) -> Dict:
  """A bare { ... } opens its own scope"""
  return exec_block(ast_node, env_child(env), context)


EXPRESSION_HANDLERS = {
    "LITERAL": eval_literal,
    "IDENTIFIER": eval_identifier,
    "ARRAY": eval_array,
    "BINARY": eval_binary,
    "LOGICAL": eval_logical,
    "UNARY": eval_unary,
    "INDEX": eval_index,
    "CALL": eval_call,
    "FUNCTION_EXPR": eval_function_expr,
}

STATEMENT_HANDLERS = {
    "EXPR_STMT": exec_expression_statement,
    "LET": exec_let,
    "ASSIGN": exec_assign,
    "INDEX_ASSIGN": exec_index_assign,
    "FUNCTION_DEF": exec_function_def,
    "IF": exec_if,
    "WHILE": exec_while,
    "FOR": exec_for,
    "RETURN": exec_return,
    "BLOCK": exec_block_statement,
}


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

@contextmanager
def recursion_headroom(max_call_depth: int) -> Iterator[None]:
  """Make sure Python's own stack limit is not hit before the call-depth guard"""
  previous = sys.getrecursionlimit()
  needed = max_call_depth * _FRAMES_PER_CALL + 1000
  if needed > previous:
    sys.setrecursionlimit(needed)
  try:
    yield
  finally:
    sys.setrecursionlimit(previous)


def eval_program(ast_nodes: List[Dict], env: Optional[Dict] = None,
                 context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """
  Evaluate top-level statements in order.
  Returns (final value, root environment); the final value is that of the
  last expression statement, or Unit.
  """
  if env is None:
    env = create_builtin_runtime_env()
  if context is None:
    context = make_execution_context()

  result = make_unit()
  with recursion_headroom(context['max_call_depth']):
    for ast_node in ast_nodes:
      signal = exec_statement(ast_node, env, context)
      if signal['signal'] == RETURN:
        raise StructuralError("'return' outside of a function", ast_node.get('span'))
      if signal['value'] is not None:
        result = signal['value']

  return result, env


def user_bindings(env: Dict) -> Dict[str, Tuple[Dict, bool]]:
  """Bindings of a frame other than the built-ins the root starts with"""
  return {
      name: (value, mutable)
      for name, value, mutable in env_local_bindings(env)
      if not (value['type'] == "Builtin" and name in BUILTIN_FUNCTIONS)
  }


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False, output: Any = None,
                       max_call_depth: int = DEFAULT_MAX_CALL_DEPTH):
  """Factory function returning an interpreter.

  ``interpret`` runs a program in a fresh root frame and returns its final
  value; ``interpret_program`` does the same but returns the top-level
  bindings as plain Python data; ``execute`` runs in the interpreter's
  persistent ``global_env`` (used by the REPL).
  """
  global_env = create_builtin_runtime_env()

  def new_context():
    return make_execution_context(output=output, debug=debug, max_call_depth=max_call_depth)

  def interpret(ast_nodes):
    value, _ = eval_program(ast_nodes, create_builtin_runtime_env(), new_context())
    return value

  def interpret_program(ast_nodes):
    _, env = eval_program(ast_nodes, create_builtin_runtime_env(), new_context())
    return {name: unwrap_value(value) for name, (value, _) in user_bindings(env).items()}

  def execute(ast_nodes):
    value, _ = eval_program(ast_nodes, global_env, new_context())
    return value

  return type('Interpreter', (), {
      'debug': debug,
      'global_env': global_env,
      'interpret': lambda self, ast_nodes: interpret(ast_nodes),
      'interpret_program': lambda self, ast_nodes: interpret_program(ast_nodes),
      'execute': lambda self, ast_nodes: execute(ast_nodes),
  })()


def create_debug_interpreter(output: Any = None, max_call_depth: int = DEFAULT_MAX_CALL_DEPTH):
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True, output=output, max_call_depth=max_call_depth)
