"""
Ember Programming Language Parser
pyparsing grammar producing a concrete syntax tree with source spans
"""

from typing import List, Any, Optional
from dataclasses import dataclass, field
import sys

# Import pyparsing with error handling
try:
    from pyparsing import (
        DelimitedList, Forward, Group, Keyword, Literal, OpAssoc,
        Opt, ParseBaseException, ParseException, ParserElement, Regex,
        StringEnd, Suppress, ZeroOrMore, c_style_comment, col,
        dbl_slash_comment, infix_notation, lineno, one_of
    )
    # Enable packrat parsing for performance
    ParserElement.enable_packrat()
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from error_handling import EmberErrorHandler, EmberParseError


KEYWORDS = frozenset({
    'let', 'fun', 'if', 'else', 'while', 'for', 'in', 'return',
    'true', 'false', 'nil',
})

IDENTIFIER_PATTERN = r'[A-Za-z_][A-Za-z0-9_]*'


@dataclass(frozen=True)
class SourceSpan:
    """Source location information for preserving CST"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


@dataclass(frozen=True)
class CSTNode:
    """Concrete Syntax Tree node preserving all source information"""
    type: str
    value: Any
    children: List['CSTNode'] = field(default_factory=list)
    span: Optional[SourceSpan] = None

    def __str__(self) -> str:
        if self.children:
            children_str = ", ".join(str(child) for child in self.children)
            return f"{self.type}({self.value}, [{children_str}])"
        return f"{self.type}({self.value})"


def process_string_escapes(s: str) -> str:
    """Process escape sequences in strings"""
    escape_map = {
        'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', '0': '\0'
    }

    result = []
    i = 0
    while i < len(s):
        if s[i] == '\\' and i + 1 < len(s):
            next_char = s[i + 1]
            if next_char in escape_map:
                result.append(escape_map[next_char])
                i += 2
            else:
                # Unknown escape, keep as-is
                result.append(s[i])
                i += 1
        else:
            result.append(s[i])
            i += 1

    return ''.join(result)


class EmberGrammar:
    """Ember grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.filename = "<input>"
        self._setup_grammar()

    def _span(self, s: str, loc: int, text: str = "") -> SourceSpan:
        line_num = lineno(loc, s)
        col_num = col(loc, s)
        return SourceSpan(self.filename, line_num, col_num, line_num, col_num + max(len(text), 1), text)

    def _node(self, node_type: str, value: Any, children: List[CSTNode], s: str, loc: int,
              text: str = "") -> CSTNode:
        return CSTNode(node_type, value, list(children), self._span(s, loc, text))

    def _setup_grammar(self):
        """Setup the Ember grammar"""

        # Forward declarations for recursive structures
        expression = Forward()
        statement = Forward()
        block = Forward()
        if_statement = Forward()

        # Punctuation
        LPAREN, RPAREN, LBRACK, RBRACK, LBRACE, RBRACE = map(Suppress, "()[]{}")
        SEMI = Suppress(";")
        # '=' that is not the start of '=='
        ASSIGN = Suppress(Regex(r'=(?!=)'))

        # Tokens that must stay on the line of the expression they extend,
        # so a newline ends an expression before a call, index or operator
        def same_line(expr):
            return expr.set_whitespace_chars(" \t")

        CALL_OPEN = Suppress(same_line(Literal("(")))
        INDEX_OPEN = Suppress(same_line(Literal("[")))

        # Keywords
        let_kw = Keyword("let")
        fun_kw = Keyword("fun")
        if_kw = Keyword("if")
        else_kw = Keyword("else")
        while_kw = Keyword("while")
        for_kw = Keyword("for")
        in_kw = Keyword("in")
        return_kw = Keyword("return")
        mut_marker = Regex(r'@mut(?![A-Za-z0-9_])')

        # Names (raw strings for binding positions)
        name = Regex(IDENTIFIER_PATTERN).add_condition(
            lambda t: t[0] not in KEYWORDS, message="keyword used as a name")

        # Literals
        number = Regex(r'\d+\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+|\d+')
        number.set_parse_action(lambda s, loc, t: self._node(
            "NUMBER",
            float(t[0]) if any(c in t[0] for c in '.eE') else int(t[0]),
            [], s, loc, t[0]))

        string_literal = Regex(r'"(?:[^"\\\n]|\\.)*"')
        string_literal.set_parse_action(lambda s, loc, t: self._node(
            "STRING", process_string_escapes(t[0][1:-1]), [], s, loc, t[0]))

        true_literal = Keyword("true").set_parse_action(
            lambda s, loc, t: self._node("BOOL", True, [], s, loc, "true"))
        false_literal = Keyword("false").set_parse_action(
            lambda s, loc, t: self._node("BOOL", False, [], s, loc, "false"))
        nil_literal = Keyword("nil").set_parse_action(
            lambda s, loc, t: self._node("NIL", None, [], s, loc, "nil"))

        identifier = name.copy().add_parse_action(
            lambda s, loc, t: self._node("IDENTIFIER", t[0], [], s, loc, t[0]))

        param_list = LPAREN + Group(Opt(DelimitedList(name))) + RPAREN

        # Anonymous function expression: fun (a, b) { ... }
        function_expr = (fun_kw + param_list + block).set_parse_action(
            lambda s, loc, t: self._node(
                "FUNCTION_EXPR", {"name": None, "params": list(t[1])}, [t[2]], s, loc))

        array_literal = (
            LBRACK + Group(Opt(DelimitedList(expression, allow_trailing_delim=True))) + RBRACK
        ).set_parse_action(lambda s, loc, t: self._node("ARRAY", None, list(t[0]), s, loc))

        parenthesized = LPAREN + expression + RPAREN

        primary_expr = (
            number | string_literal | true_literal | false_literal | nil_literal |
            function_expr | array_literal | parenthesized | identifier
        )

        # Postfix: calls and indexing, applied left to right
        call_suffix = (CALL_OPEN + Group(Opt(DelimitedList(expression))) + RPAREN).set_parse_action(
            lambda s, loc, t: ("CALL", list(t[0]), self._span(s, loc, "(")))
        index_suffix = (INDEX_OPEN + expression + RBRACK).set_parse_action(
            lambda s, loc, t: ("INDEX", t[0], self._span(s, loc, "[")))
        suffixes = ZeroOrMore(same_line(call_suffix | index_suffix))

        def make_postfix(s, loc, tokens):
            node = tokens[0]
            for suffix_type, payload, span in tokens[1:]:
                if suffix_type == "CALL":
                    node = CSTNode("CALL", None, [node] + payload, span)
                else:
                    node = CSTNode("INDEX", None, [node, payload], span)
            return node

        postfix_expr = (primary_expr + suffixes).set_parse_action(make_postfix)

        def make_unary(s, loc, tokens):
            op, operand = tokens[0][0], tokens[0][1]
            return self._node("UNARY", op, [operand], s, loc, op)

        def make_binary(s, loc, tokens):
            items = list(tokens[0])
            result = items[0]
            for i in range(1, len(items), 2):
                op = items[i]
                node_type = "LOGICAL" if op in ("&&", "||") else "BINARY"
                result = self._node(node_type, op, [result, items[i + 1]], s, loc, op)
            return result

        # Operators, tightest binding first. Unary operators may start a line,
        # binary operators may not.
        expression <<= infix_notation(postfix_expr, [
            (one_of("- !"), 1, OpAssoc.RIGHT, make_unary),
            (same_line(one_of("* / %")), 2, OpAssoc.LEFT, make_binary),
            (same_line(one_of("+ -")), 2, OpAssoc.LEFT, make_binary),
            (same_line(one_of("<= >= < >")), 2, OpAssoc.LEFT, make_binary),
            (same_line(one_of("== !=")), 2, OpAssoc.LEFT, make_binary),
            (same_line(Literal("&&")), 2, OpAssoc.LEFT, make_binary),
            (same_line(Literal("||")), 2, OpAssoc.LEFT, make_binary),
        ])

        # Statements
        def make_let(s, loc, tokens):
            # let [@mut] name init
            mutable = tokens[1] == "@mut"
            return self._node("LET", {"name": tokens[-2], "mutable": mutable}, [tokens[-1]], s, loc)

        let_statement = (let_kw - Opt(mut_marker) - name - ASSIGN - expression).set_parse_action(make_let)

        function_def = (fun_kw + name + param_list - block).set_parse_action(
            lambda s, loc, t: self._node(
                "FUNCTION_DEF", {"name": t[1], "params": list(t[2])}, [t[3]], s, loc))

        def make_if(s, loc, tokens):
            children = [tokens[1], tokens[2]]
            if len(tokens) > 3:
                children.append(tokens[-1])
            return self._node("IF", None, children, s, loc)

        if_statement <<= (
            if_kw - expression - block + Opt(else_kw - (if_statement | block))
        ).set_parse_action(make_if)

        while_statement = (while_kw - expression - block).set_parse_action(
            lambda s, loc, t: self._node("WHILE", None, [t[1], t[2]], s, loc))

        for_statement = (for_kw - name - Suppress(in_kw) - expression - block).set_parse_action(
            lambda s, loc, t: self._node("FOR", t[1], [t[2], t[3]], s, loc))

        # A bare 'return' ends at the line, a ';', a '}' or a comment
        bare_return = Regex(r'return(?![A-Za-z0-9_])(?=[ \t]*(?:\r?\n|;|\}|//|/\*|$))').set_parse_action(
            lambda s, loc, t: self._node("RETURN", None, [], s, loc))
        value_return = (return_kw + expression).set_parse_action(
            lambda s, loc, t: self._node("RETURN", None, [t[1]], s, loc))
        return_statement = bare_return | value_return

        def make_assignment(s, loc, tokens):
            target, value = tokens[0], tokens[1]
            if target.type == "IDENTIFIER":
                return self._node("ASSIGN", target.value, [value], s, loc)
            if target.type == "INDEX":
                return self._node("INDEX_ASSIGN", None, target.children + [value], s, loc)
            raise ParseException(s, loc, f"Cannot assign to {target.type.lower()} expression")

        assignment = (postfix_expr + ASSIGN + expression).set_parse_action(make_assignment)

        block_statement = block.copy().add_parse_action(
            lambda s, loc, t: self._node("BLOCK_STMT", None, [t[0]], s, loc))

        expression_statement = expression.copy().add_parse_action(
            lambda s, loc, t: self._node("EXPR_STMT", None, [t[0]], s, loc))

        statement <<= (
            let_statement |
            function_def |
            if_statement |
            while_statement |
            for_statement |
            return_statement |
            block_statement |
            assignment |
            expression_statement
        ) + Opt(SEMI)

        block <<= (LBRACE + Group(ZeroOrMore(statement)) - RBRACE).set_parse_action(
            lambda s, loc, t: self._node("BLOCK", None, list(t[0]), s, loc))

        program = ZeroOrMore(statement) + StringEnd()

        comment = dbl_slash_comment | c_style_comment
        program.ignore(comment)
        expression.ignore(comment)

        # Store the main parsers
        self.program = program
        self.statement = statement
        self.expression = expression
        self.block = block
        self.name = name

    def parse_program(self, text: str, filename: str = "<input>") -> List[CSTNode]:
        """Parse a complete Ember program"""
        self.filename = filename
        try:
            result = self.program.parse_string(text, parse_all=True)
            return list(result)
        except ParseBaseException as e:
            raise self._parse_error(e, text) from e
        except RecursionError:
            raise self._nesting_error() from None

    def parse_expression(self, text: str, filename: str = "<input>") -> CSTNode:
        """Parse a single Ember expression"""
        self.filename = filename
        try:
            result = self.expression.parse_string(text, parse_all=True)
            return result[0]
        except ParseBaseException as e:
            raise self._parse_error(e, text) from e
        except RecursionError:
            raise self._nesting_error() from None

    def _parse_error(self, exc: ParseBaseException, text: str) -> EmberParseError:
        span = SourceSpan(self.filename, exc.lineno, exc.column, exc.lineno, exc.column + 1, "")
        return EmberErrorHandler(text, self.filename).enhance_parse_exception(exc, span)

    def _nesting_error(self) -> EmberParseError:
        message = "Program is nested too deeply to parse"
        span = SourceSpan(self.filename, 1, 1, 1, 2, "")
        return EmberParseError(message, span, report=f"Parse error in {self.filename}: {message}\n")


class EmberParser:
    """Main Ember parser"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = EmberGrammar(debug)

    def parse_file(self, filepath: str) -> List[CSTNode]:
        """Parse an Ember source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise EmberParseError(f"File not found: {filepath}")
        except UnicodeDecodeError as e:
            raise EmberParseError(f"Cannot decode file {filepath}: {e}")
        return self.parse_string(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> List[CSTNode]:
        """Parse Ember source code from string"""
        nodes = self.grammar.parse_program(text, filename)
        if self.debug:
            print(f"[parse] {filename}: {len(nodes)} top-level statements", file=sys.stderr)
        return nodes

    def parse_expression(self, text: str, filename: str = "<input>") -> CSTNode:
        """Parse a single Ember expression"""
        return self.grammar.parse_expression(text, filename)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> EmberParser:
    """Create an Ember parser"""
    return EmberParser(debug=debug)


def create_debug_parser() -> EmberParser:
    """Create an Ember parser with debug enabled"""
    return EmberParser(debug=True)


def pretty_print_cst(cst: CSTNode, indent: int = 0) -> str:
    """Pretty print a CST node for debugging"""
    result = "  " * indent + f"{cst.type}"
    if cst.value is not None:
        result += f"({repr(cst.value)})"
    if cst.span is not None:
        result += f"  @{cst.span.start_line}:{cst.span.start_col}"
    result += "\n"

    for child in cst.children:
        result += pretty_print_cst(child, indent + 1)

    return result
