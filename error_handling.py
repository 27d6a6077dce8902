"""
Error handling for Ember: parse diagnostics and the runtime error taxonomy
Parse diagnostics are built as plain dictionaries and rendered at the edge
"""

from typing import List, Optional, Dict, Any
from pyparsing import ParseBaseException
import re


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_parse_error(
    message: str,
    location: int,
    line: int,
    column: int,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
    """Create an immutable parse error structure"""
    return {
        'message': message,
        'location': location,
        'line': line,
        'column': column,
        'expected': expected or [],
        'got': got,
        'context': context,
        'suggestions': suggestions or []
    }


def format_parse_error(error: Dict, filename: str = "<input>") -> str:
    """Format parse error as string"""
    error_msg = f"Parse error in {filename} at line {error['line']}, column {error['column']}:\n"
    error_msg += f"  {error['message']}\n"

    if error['expected']:
        error_msg += f"  Expected: {', '.join(error['expected'])}\n"

    if error['got']:
        error_msg += f"  Got: {error['got']}\n"

    if error['context']:
        error_msg += f"  Context:\n{error['context']}\n"

    if error['suggestions']:
        error_msg += "  Suggestions:\n"
        for suggestion in error['suggestions']:
            error_msg += f"    - {suggestion}\n"

    return error_msg


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")

    return '\n'.join(context_parts)


def extract_expected(exc: ParseBaseException) -> List[str]:
    """Extract expected tokens from exception"""
    expected = []

    # pyparsing only exposes this through the message
    msg = str(exc)
    if "Expected" in msg:
        expected_match = re.search(r"Expected\s+(.+?)(?:,\s+found|\s+\(at|$)", msg)
        if expected_match:
            expected.append(expected_match.group(1))

    return expected if expected else ["valid syntax"]


def extract_got(source_text: str, line_num: int, col_num: int) -> str:
    """Extract what was actually found at the error location"""
    lines = source_text.split('\n')

    if 0 < line_num <= len(lines):
        error_line = lines[line_num - 1]
        if col_num <= len(error_line):
            start = max(0, col_num - 1)
            end = min(len(error_line), col_num + 10)
            got_text = error_line[start:end].strip()
            if got_text:
                return f"'{got_text}'"
        return "end of line"
    return "end of input"


def generate_suggestions(got: str, expected: List[str]) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []
    expected_text = " ".join(expected)

    if "'}'" in expected_text or got == "end of input":
        suggestions.append("Check that every '{' has a matching '}'")

    if "')'" in expected_text:
        suggestions.append("Check that every '(' has a matching ')'")

    if "']'" in expected_text:
        suggestions.append("Array literals and indexes need a closing ']'")

    if got.startswith("'mut"):
        suggestions.append("Mutable bindings are written 'let @mut name = value'")

    if got.startswith("'=") and not got.startswith("'=="):
        suggestions.append("Use '==' to compare values; '=' only assigns")

    if got.startswith("'then") or got.startswith("'do"):
        suggestions.append("Conditions and loops take a '{ ... }' block directly")

    return suggestions


def enhance_parse_exception_dict(exc: ParseBaseException, source_text: str) -> Dict:
    """Convert pyparsing exception to enhanced Ember error dict"""
    line_num = exc.lineno
    col_num = exc.column

    context = get_context_lines(source_text, line_num, col_num)
    expected = extract_expected(exc)
    got = extract_got(source_text, line_num, col_num)
    suggestions = generate_suggestions(got, expected)

    return make_parse_error(
        message=str(exc),
        location=exc.loc,
        line=line_num,
        column=col_num,
        expected=expected,
        got=got,
        context=context,
        suggestions=suggestions
    )


# ============================================================================
# PARSE ERRORS
# ============================================================================

class EmberParseError(Exception):
    """Ember parsing error with source location and diagnostics"""

    def __init__(self, message: str, span: Any = None, context: str = "",
                 expected: Optional[List[str]] = None, got: Optional[str] = None,
                 suggestions: Optional[List[str]] = None, report: str = ""):
        self.message = message
        self.report = report
        self.span = span
        self.context = context
        self.expected = expected or []
        self.got = got
        self.suggestions = suggestions or []
        super().__init__(self._format_error())

    @property
    def line(self) -> int:
        return self.span.start_line if self.span else 0

    @property
    def column(self) -> int:
        return self.span.start_col if self.span else 0

    def _format_error(self) -> str:
        if self.span:
            result = f"Parse error at {self.span}: {self.message}"
        else:
            result = f"Parse error: {self.message}"
        if self.context:
            result += f"\n  Context: {self.context}"
        if self.got:
            result += f"\n  Got: {self.got}"
        for suggestion in self.suggestions:
            result += f"\n  Hint: {suggestion}"
        return result


class EmberErrorHandler:
    """Turns raw pyparsing failures into EmberParseError with rich context"""

    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename
        self.lines = source_text.split('\n')

    def enhance_parse_exception(self, exc: ParseBaseException, span: Any = None) -> EmberParseError:
        """Convert pyparsing exception to enhanced Ember error"""
        error_dict = enhance_parse_exception_dict(exc, self.source_text)
        line_num = error_dict['line']
        source_line = self.lines[line_num - 1].strip() if 0 < line_num <= len(self.lines) else ""
        return EmberParseError(
            message=error_dict['message'],
            span=span,
            context=source_line,
            expected=error_dict['expected'],
            got=error_dict['got'],
            suggestions=error_dict['suggestions'],
            report=format_parse_error(error_dict, self.filename)
        )


# ============================================================================
# RUNTIME ERRORS
# ============================================================================

class EmberRuntimeError(Exception):
    """Base class of every error raised while evaluating a program.

    ``kind`` names the error category; ``span`` is the source location of the
    node being evaluated when the error surfaced. The evaluator fills in the
    span on the way out if the raiser did not know it.
    """

    kind = "RuntimeError"

    def __init__(self, message: str, span: Any = None):
        self.message = message
        self.span = span
        super().__init__(message)

    def __str__(self) -> str:
        if self.span:
            return f"{self.kind} at {self.span}: {self.message}"
        return f"{self.kind}: {self.message}"


class UndefinedVariableError(EmberRuntimeError):
    kind = "UndefinedVariable"


class ImmutableAssignmentError(EmberRuntimeError):
    kind = "ImmutableAssignment"


class TypeMismatchError(EmberRuntimeError):
    kind = "TypeMismatch"


class DivisionByZeroError(EmberRuntimeError):
    kind = "DivisionByZero"


class IndexOutOfBoundsError(EmberRuntimeError):
    kind = "IndexOutOfBounds"


class ArityMismatchError(EmberRuntimeError):
    kind = "ArityMismatch"


class NotCallableError(EmberRuntimeError):
    kind = "NotCallable"


class StructuralError(EmberRuntimeError):
    """A malformed tree reached the evaluator"""
    kind = "StructuralError"


class IntegerOverflowError(EmberRuntimeError):
    kind = "IntegerOverflow"


class RecursionDepthExceededError(EmberRuntimeError):
    kind = "RecursionDepthExceeded"
