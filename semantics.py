"""
Ember Semantic Analysis
Turns the parser's CST into the AST dictionaries the interpreter walks,
rejecting programs that are well-formed text but structurally invalid
"""

from typing import Any, Dict, List, Optional
import sys

from parsing import CSTNode, SourceSpan


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_type_info(name: str) -> Dict:
  """Static kind known for literal nodes"""
  return {'name': name}


def make_ast_node(node_type: str, value: Any, children: Optional[List[Dict]] = None,
                  span: Optional[SourceSpan] = None, type_info: Optional[Dict] = None) -> Dict:
  """Create an AST node dictionary"""
  return {
      'type': node_type,
      'value': value,
      'children': children or [],
      'span': span,
      'type_info': type_info,
  }


def make_scope_context(in_function: bool = False, function_name: Optional[str] = None) -> Dict:
  """What the analyser knows about the code surrounding a node"""
  return {
      'in_function': in_function,
      'function_name': function_name,
  }


class EmberSemanticsError(Exception):
  """Ember semantics analysis error"""

  def __init__(self, message: str, span: Optional[SourceSpan] = None):
    self.message = message
    self.span = span
    super().__init__(self._format_error())

  def _format_error(self) -> str:
    if self.span:
      return f"Semantics error at {self.span}: {self.message}"
    return f"Semantics error: {self.message}"


# ============================================================================
# EXPRESSION ANALYSIS
# ============================================================================

LITERAL_KINDS = {
    "STRING": "Str",
    "BOOL": "Bool",
    "NIL": "Unit",
}


def analyze_literal(cst: CSTNode, scope: Dict) -> Dict:
  if cst.type == "NUMBER":
    kind = "Float" if isinstance(cst.value, float) else "Int"
  else:
    kind = LITERAL_KINDS[cst.type]
  return make_ast_node("LITERAL", cst.value, [], cst.span, make_type_info(kind))


def analyze_identifier(cst: CSTNode, scope: Dict) -> Dict:
  return make_ast_node("IDENTIFIER", cst.value, [], cst.span)


def analyze_array(cst: CSTNode, scope: Dict) -> Dict:
  elements = [analyze_cst_node(child, scope) for child in cst.children]
  return make_ast_node("ARRAY", {'elements': elements}, elements, cst.span, make_type_info("Array"))


def analyze_binary(cst: CSTNode, scope: Dict) -> Dict:
  left = analyze_cst_node(cst.children[0], scope)
  right = analyze_cst_node(cst.children[1], scope)
  return make_ast_node(cst.type, {'op': cst.value, 'left': left, 'right': right}, [left, right], cst.span)


def analyze_unary(cst: CSTNode, scope: Dict) -> Dict:
  target = cst.children[0]
  # -<number> is a single literal, so the smallest Int can be written
  if cst.value == "-" and target.type == "NUMBER":
    kind = "Float" if isinstance(target.value, float) else "Int"
    return make_ast_node("LITERAL", -target.value, [], cst.span, make_type_info(kind))
  operand = analyze_cst_node(target, scope)
  return make_ast_node("UNARY", {'op': cst.value, 'operand': operand}, [operand], cst.span)


def analyze_call(cst: CSTNode, scope: Dict) -> Dict:
  callee = analyze_cst_node(cst.children[0], scope)
  args = [analyze_cst_node(child, scope) for child in cst.children[1:]]
  return make_ast_node("CALL", {'callee': callee, 'args': args}, [callee] + args, cst.span)


def analyze_index(cst: CSTNode, scope: Dict) -> Dict:
  target = analyze_cst_node(cst.children[0], scope)
  index = analyze_cst_node(cst.children[1], scope)
  return make_ast_node("INDEX", {'target': target, 'index': index}, [target, index], cst.span)


def analyze_function(cst: CSTNode, scope: Dict) -> Dict:
  """Shared by named declarations and anonymous function expressions"""
  name = cst.value['name']
  params = list(cst.value['params'])

  seen = set()
  for param in params:
    if param in seen:
      label = f"function '{name}'" if name else "anonymous function"
      raise EmberSemanticsError(f"Duplicate parameter '{param}' in {label}", cst.span)
    seen.add(param)

  body_scope = make_scope_context(in_function=True, function_name=name)
  body = analyze_block(cst.children[0], body_scope)
  node_type = "FUNCTION_DEF" if cst.type == "FUNCTION_DEF" else "FUNCTION_EXPR"
  return make_ast_node(node_type, {'name': name, 'params': params, 'body': body}, [body],
                       cst.span, make_type_info("Function"))


# ============================================================================
# STATEMENT ANALYSIS
# ============================================================================

def analyze_block(cst: CSTNode, scope: Dict) -> Dict:
  statements = [analyze_cst_node(child, scope) for child in cst.children]
  return make_ast_node("BLOCK", {'statements': statements}, statements, cst.span)


def analyze_block_statement(cst: CSTNode, scope: Dict) -> Dict:
  return analyze_block(cst.children[0], scope)


def analyze_let(cst: CSTNode, scope: Dict) -> Dict:
  init = analyze_cst_node(cst.children[0], scope)
  value = {'name': cst.value['name'], 'mutable': bool(cst.value['mutable']), 'init': init}
  return make_ast_node("LET", value, [init], cst.span)


def analyze_assign(cst: CSTNode, scope: Dict) -> Dict:
  expr = analyze_cst_node(cst.children[0], scope)
  return make_ast_node("ASSIGN", {'name': cst.value, 'value': expr}, [expr], cst.span)


def analyze_index_assign(cst: CSTNode, scope: Dict) -> Dict:
  target, index, expr = (analyze_cst_node(child, scope) for child in cst.children)
  return make_ast_node("INDEX_ASSIGN", {'target': target, 'index': index, 'value': expr},
                       [target, index, expr], cst.span)


def analyze_if(cst: CSTNode, scope: Dict) -> Dict:
  condition = analyze_cst_node(cst.children[0], scope)
  then_block = analyze_block(cst.children[1], scope)
  else_branch = None
  if len(cst.children) > 2:
    else_cst = cst.children[2]
    # 'else if' chains nest as IF nodes; plain 'else' is a block
    else_branch = analyze_if(else_cst, scope) if else_cst.type == "IF" else analyze_block(else_cst, scope)
  children = [condition, then_block] + ([else_branch] if else_branch else [])
  return make_ast_node("IF", {'condition': condition, 'then': then_block, 'else': else_branch},
                       children, cst.span)


def analyze_while(cst: CSTNode, scope: Dict) -> Dict:
  condition = analyze_cst_node(cst.children[0], scope)
  body = analyze_block(cst.children[1], scope)
  return make_ast_node("WHILE", {'condition': condition, 'body': body}, [condition, body], cst.span)


def analyze_for(cst: CSTNode, scope: Dict) -> Dict:
  iterable = analyze_cst_node(cst.children[0], scope)
  body = analyze_block(cst.children[1], scope)
  return make_ast_node("FOR", {'var': cst.value, 'iterable': iterable, 'body': body},
                       [iterable, body], cst.span)


def analyze_return(cst: CSTNode, scope: Dict) -> Dict:
  if not scope['in_function']:
    raise EmberSemanticsError("'return' outside of a function", cst.span)
  expr = analyze_cst_node(cst.children[0], scope) if cst.children else None
  return make_ast_node("RETURN", {'value': expr}, [expr] if expr else [], cst.span)


def analyze_expression_statement(cst: CSTNode, scope: Dict) -> Dict:
  expr = analyze_cst_node(cst.children[0], scope)
  return make_ast_node("EXPR_STMT", {'expr': expr}, [expr], cst.span)


CST_HANDLERS = {
    "NUMBER": analyze_literal,
    "STRING": analyze_literal,
    "BOOL": analyze_literal,
    "NIL": analyze_literal,
    "IDENTIFIER": analyze_identifier,
    "ARRAY": analyze_array,
    "BINARY": analyze_binary,
    "LOGICAL": analyze_binary,
    "UNARY": analyze_unary,
    "CALL": analyze_call,
    "INDEX": analyze_index,
    "FUNCTION_EXPR": analyze_function,
    "FUNCTION_DEF": analyze_function,
    "LET": analyze_let,
    "ASSIGN": analyze_assign,
    "INDEX_ASSIGN": analyze_index_assign,
    "IF": analyze_if,
    "WHILE": analyze_while,
    "FOR": analyze_for,
    "RETURN": analyze_return,
    "BLOCK": analyze_block,
    "BLOCK_STMT": analyze_block_statement,
    "EXPR_STMT": analyze_expression_statement,
}


def analyze_cst_node(cst_node: CSTNode, scope: Optional[Dict] = None) -> Dict:
  """Analyze any CST node and return its AST node"""
  if scope is None:
    scope = make_scope_context()
  if not isinstance(cst_node, CSTNode):
    raise EmberSemanticsError(f"Unable to analyze {cst_node!r}")
  handler = CST_HANDLERS.get(cst_node.type)
  if handler is None:
    raise EmberSemanticsError(f"Unknown syntax node '{cst_node.type}'", cst_node.span)
  return handler(cst_node, scope)


def analyze_program(cst_nodes: List[CSTNode], debug: bool = False) -> List[Dict]:
  """Analyze top-level statements"""
  scope = make_scope_context()
  ast_nodes = [analyze_cst_node(node, scope) for node in cst_nodes]
  if debug:
    print(f"[analyze] {len(ast_nodes)} top-level statements", file=sys.stderr)
  return ast_nodes


def pretty_print_ast(ast_node: Dict, indent: int = 0) -> str:
  """Pretty print an AST node for debugging"""
  label = ast_node['type']
  value = ast_node['value']
  if not isinstance(value, dict):
    label += f"({value!r})"
  else:
    scalars = {k: v for k, v in value.items()
               if not isinstance(v, dict) and not (isinstance(v, list) and any(isinstance(i, dict) for i in v))}
    if scalars:
      label += " " + " ".join(f"{k}={v!r}" for k, v in scalars.items())
  if ast_node.get('type_info'):
    label += f" : {ast_node['type_info']['name']}"

  result = "  " * indent + label + "\n"
  for child in ast_node['children']:
    result += pretty_print_ast(child, indent + 1)
  return result


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_analyzer(debug: bool = False):
  """Factory function returning an analyzer"""
  def analyze(cst_nodes):
    return analyze_program(cst_nodes, debug)

  def analyze_module(cst_node):
    return analyze_cst_node(cst_node, make_scope_context())

  return type('Analyzer', (), {
      'debug': debug,
      'analyze': lambda self, cst_nodes: analyze(cst_nodes),
      'analyze_module': lambda self, cst_node: analyze_module(cst_node),
  })()


def create_debug_analyzer():
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)
