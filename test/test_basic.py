"""
Basic parsing tests for Ember language
Tests fundamental parsing capabilities
"""

import pytest
from parsing import CSTNode, EmberGrammar, create_parser, pretty_print_cst
from error_handling import EmberParseError


class TestBasicParsing:
  """Test basic parsing functionality"""

  @pytest.fixture
  def grammar(self):
    """Provide a fresh grammar instance for each test"""
    return EmberGrammar()

  def test_simple_program_parsing(self, grammar):
    result = grammar.parse_program("let myValue = 42")
    assert len(result) == 1
    assert result[0].type == 'LET'
    assert result[0].value == {'name': 'myValue', 'mutable': False}
    assert result[0].children[0].type == 'NUMBER'
    assert result[0].children[0].value == 42

  def test_mutable_let(self, grammar):
    result = grammar.parse_program("let @mut counter = 0;")
    assert result[0].value == {'name': 'counter', 'mutable': True}

  def test_let_initializer_is_a_node(self):
    parser = create_parser()
    for code in ("let x = 5", "let x = 5;", "let x = [1]", "let @mut x = 5"):
      node = parser.parse_string(code)[0]
      assert isinstance(node.children[0], CSTNode)
      assert node.value['name'] == 'x'
    assert parser.parse_string("let x = [1]")[0].children[0].type == 'ARRAY'

  def test_empty_program(self, grammar):
    assert grammar.parse_program("") == []
    assert grammar.parse_program("  // only a comment\n") == []

  def test_function_definition_parsing(self, grammar):
    code = "fun add(a, b) { return a + b }"
    result = grammar.parse_program(code)
    assert len(result) == 1

    definition = result[0]
    assert definition.type == 'FUNCTION_DEF'
    assert definition.value == {'name': 'add', 'params': ['a', 'b']}
    body = definition.children[0]
    assert body.type == 'BLOCK'
    assert body.children[0].type == 'RETURN'

  def test_anonymous_function(self, grammar):
    result = grammar.parse_program("let inc = fun (x) { return x + 1 }")
    func = result[0].children[0]
    assert func.type == 'FUNCTION_EXPR'
    assert func.value == {'name': None, 'params': ['x']}

  def test_statements_separated_by_semicolons(self, grammar):
    result = grammar.parse_program("let a = 1; let b = 2; a + b")
    assert [node.type for node in result] == ['LET', 'LET', 'EXPR_STMT']

  def test_comments_are_ignored(self, grammar):
    code = """
    // line comment
    let a = 1 /* inline */ + 2
    /* block
       comment */
    print(a)
    """
    result = grammar.parse_program(code)
    assert [node.type for node in result] == ['LET', 'EXPR_STMT']

  def test_keyword_prefix_is_an_identifier(self, grammar):
    result = grammar.parse_program("let letter = 1; letter")
    assert result[1].children[0].type == 'IDENTIFIER'
    assert result[1].children[0].value == 'letter'


class TestExpressions:
  """Test expression parsing and operator precedence"""

  @pytest.fixture
  def grammar(self):
    return EmberGrammar()

  def test_literals(self, grammar):
    assert grammar.parse_expression("42").value == 42
    assert grammar.parse_expression("2.5").value == 2.5
    assert grammar.parse_expression("1e3").value == 1000.0
    assert grammar.parse_expression("true").value is True
    assert grammar.parse_expression("false").value is False
    assert grammar.parse_expression("nil").type == 'NIL'

  def test_string_escapes(self, grammar):
    node = grammar.parse_expression(r'"a\tb\n\"c\""')
    assert node.type == 'STRING'
    assert node.value == 'a\tb\n"c"'

  def test_multiplication_binds_tighter(self, grammar):
    node = grammar.parse_expression("2 + 3 * 4")
    assert node.type == 'BINARY'
    assert node.value == '+'
    assert node.children[1].value == '*'

  def test_left_associative(self, grammar):
    node = grammar.parse_expression("10 - 3 - 2")
    assert node.value == '-'
    assert node.children[0].value == '-'
    assert node.children[1].value == 2

  def test_comparison_below_arithmetic(self, grammar):
    node = grammar.parse_expression("a + 1 < b * 2")
    assert node.value == '<'

  def test_logical_operators(self, grammar):
    node = grammar.parse_expression("a || b && c")
    assert node.type == 'LOGICAL'
    assert node.value == '||'
    assert node.children[1].type == 'LOGICAL'
    assert node.children[1].value == '&&'

  def test_equality_below_comparison(self, grammar):
    node = grammar.parse_expression("a < b == c > d")
    assert node.value == '=='

  def test_unary_operators(self, grammar):
    node = grammar.parse_expression("-x")
    assert node.type == 'UNARY'
    assert node.value == '-'
    node = grammar.parse_expression("!done")
    assert node.value == '!'

  def test_parentheses_override_precedence(self, grammar):
    node = grammar.parse_expression("(2 + 3) * 4")
    assert node.value == '*'
    assert node.children[0].value == '+'

  def test_call_and_index_chain(self, grammar):
    node = grammar.parse_expression("make()(1)[0]")
    assert node.type == 'INDEX'
    call = node.children[0]
    assert call.type == 'CALL'
    assert call.children[1].value == 1
    assert call.children[0].type == 'CALL'

  def test_array_literal(self, grammar):
    node = grammar.parse_expression("[1, \"two\", [3]]")
    assert node.type == 'ARRAY'
    assert [child.type for child in node.children] == ['NUMBER', 'STRING', 'ARRAY']
    assert grammar.parse_expression("[]").children == []

  def test_newline_ends_binary_expression(self, grammar):
    result = grammar.parse_program("total = total\n-3")
    assert [node.type for node in result] == ['ASSIGN', 'EXPR_STMT']
    assert result[0].children[0].type == 'IDENTIFIER'
    assert result[1].children[0].type == 'UNARY'

  def test_operator_at_line_end_continues(self, grammar):
    result = grammar.parse_program("let x = 1 +\n  2\nprint(x)")
    assert len(result) == 2
    assert result[0].children[0].value == '+'

  def test_newline_ends_call_and_index(self, grammar):
    result = grammar.parse_program("print(x)\n(f)()")
    assert len(result) == 2
    assert result[0].children[0].children[0].value == 'print'
    assert result[1].children[0].children[0].value == 'f'
    result = grammar.parse_program("let a = b\n[1, 2]")
    assert result[0].children[0].type == 'IDENTIFIER'
    assert result[1].children[0].type == 'ARRAY'

  def test_arguments_may_span_lines(self, grammar):
    result = grammar.parse_program("f(\n  1,\n  2\n)")
    assert len(result) == 1
    assert len(result[0].children[0].children) == 3


class TestStatements:
  """Test statement forms"""

  @pytest.fixture
  def grammar(self):
    return EmberGrammar()

  def test_assignment(self, grammar):
    node = grammar.parse_program("x = x + 1")[0]
    assert node.type == 'ASSIGN'
    assert node.value == 'x'

  def test_index_assignment(self, grammar):
    node = grammar.parse_program("arr[0] = 5")[0]
    assert node.type == 'INDEX_ASSIGN'
    assert [child.type for child in node.children] == ['IDENTIFIER', 'NUMBER', 'NUMBER']

  def test_equality_is_not_assignment(self, grammar):
    node = grammar.parse_program("x == 1")[0]
    assert node.type == 'EXPR_STMT'

  def test_if_else_chain(self, grammar):
    code = "if a { 1 } else if b { 2 } else { 3 }"
    node = grammar.parse_program(code)[0]
    assert node.type == 'IF'
    assert len(node.children) == 3
    nested = node.children[2]
    assert nested.type == 'IF'
    assert nested.children[2].type == 'BLOCK'

  def test_while_and_for(self, grammar):
    loops = grammar.parse_program("while i < 3 { i = i + 1 }\nfor n in [1, 2] { print(n) }")
    assert loops[0].type == 'WHILE'
    assert loops[1].type == 'FOR'
    assert loops[1].value == 'n'

  def test_bare_return(self, grammar):
    body = grammar.parse_program("fun f() {\n  return\n}")[0].children[0]
    assert body.children[0].type == 'RETURN'
    assert body.children[0].children == []

  def test_bare_block(self, grammar):
    node = grammar.parse_program("{ let a = 1 }")[0]
    assert node.type == 'BLOCK_STMT'

  def test_spans(self, grammar):
    node = grammar.parse_program("\n  let x = 1", "demo.emb")[0]
    assert node.span.filename == "demo.emb"
    assert node.span.start_line == 2
    assert node.span.start_col == 3

  def test_pretty_print(self, grammar):
    text = pretty_print_cst(grammar.parse_program("let x = 1")[0])
    assert text.startswith("LET")
    assert "NUMBER(1)" in text


class TestErrorHandling:
  """Test error handling and reporting"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_missing_initializer(self, parser):
    with pytest.raises(EmberParseError) as exc_info:
      parser.parse_string("let x =")
    assert exc_info.value.line == 1

  def test_unclosed_block(self, parser):
    with pytest.raises(EmberParseError):
      parser.parse_string("fun f() { return 1")

  def test_keyword_as_name(self, parser):
    with pytest.raises(EmberParseError):
      parser.parse_string("let while = 3")

  def test_invalid_assignment_target(self, parser):
    with pytest.raises(EmberParseError):
      parser.parse_string("f(x) = 3")

  def test_error_location(self, parser):
    with pytest.raises(EmberParseError) as exc_info:
      parser.parse_string("let a = 1\nlet b = )", "bad.emb")
    error = exc_info.value
    assert error.line == 2
    assert "bad.emb" in str(error)

  def test_missing_file(self, parser, tmp_path):
    with pytest.raises(EmberParseError):
      parser.parse_file(str(tmp_path / "missing.emb"))

  def test_deep_nesting(self, parser):
    code = "(" * 300 + "1" + ")" * 300
    with pytest.raises(EmberParseError, match="nested too deeply"):
      parser.parse_string(code)
    with pytest.raises(EmberParseError, match="nested too deeply"):
      parser.parse_expression(code)
