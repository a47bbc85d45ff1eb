"""
Error handling for the Quill toolchain
Semantic error taxonomy, parse error enrichment and error report formatting
"""

from typing import List, Optional, Dict
from pyparsing import ParseException
import re

from core import SourceSpan


# ============================================================================
# SEMANTIC ERRORS
# ============================================================================

class SemanticError(Exception):
    """Static-semantic violation found while resolving identifiers"""

    def __init__(self, message: str, span: Optional[SourceSpan] = None):
        self.message = message
        self.span = span
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        if self.span:
            return f"Line {self.span.start_line}, Column {self.span.start_col}: {self.message}"
        return self.message


class AlreadyDeclared(SemanticError):
    """A name is declared twice in the same scope"""


class NotDeclared(SemanticError):
    """An identifier has no binding in the scope chain"""


class WrongEntityKind(SemanticError):
    """A function used where a variable is required, or vice versa"""


class ReadOnlyViolation(SemanticError):
    """An assignment targets a read-only entity"""


class ArityMismatch(SemanticError):
    """A call passes a different number of arguments than the callee takes"""


# ============================================================================
# PARSE ERRORS
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


def format_parse_error(error: Dict) -> str:
    """Format parse error as string"""
    error_msg = f"Parse error at line {error['line']}, column {error['column']}:\n"
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


def get_context_lines(source_text: str, line_num: int, col_num: int,
                      context_lines: int = 2, width: int = 1) -> str:
    """Get context lines around the error, underlining width characters"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    marker = '^' + '~' * (max(width, 1) - 1)
    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}{marker} Error here")

    return '\n'.join(context_parts)


def extract_expected(exc: ParseException) -> List[str]:
    """Extract expected tokens from exception"""
    expected = []

    # pyparsing only reports what it expected in the message text
    msg = str(exc)
    if "Expected" in msg:
        expected_match = re.search(r"Expected\s+(.+?)(?:,\s+found|\s+\(|$)", msg)
        if expected_match:
            expected.append(expected_match.group(1))

    return expected if expected else ["valid syntax"]


QUILL_TOKEN = re.compile(
    r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|[^\W\d]\w*|\*\*|&&|\|\||[<>=!]=|\S"
)
SKIPPED = re.compile(r"(?:\s+|//[^\n]*)*")
STATEMENT_KEYWORDS = ("let", "function", "while", "print")
KEYWORDS = STATEMENT_KEYWORDS + ("true", "false")


def next_token(source_text: str, location: int) -> Optional[str]:
    """The Quill token starting at location, skipping blanks and comments"""
    start = SKIPPED.match(source_text, location).end()
    match = QUILL_TOKEN.match(source_text, start)
    return match.group(0) if match else None


def open_blocks(source_text: str, location: int) -> List[int]:
    """Offsets of the '{' still unclosed before location, innermost last"""
    stack = []
    for match in re.finditer(r"//[^\n]*|[{}]", source_text[:location]):
        if match.group(0) == '{':
            stack.append(match.start())
        elif match.group(0) == '}' and stack:
            stack.pop()
    return stack


def extract_got(source_text: str, location: int) -> str:
    """Extract the token actually found at the error location"""
    token = next_token(source_text, location)
    return f"'{token}'" if token else "end of input"


def generate_suggestions(got: str, expected: List[str], source_text: str,
                         location: int) -> List[str]:
    """Generate suggestions from the statement and block structure around the error"""
    suggestions = []
    expected_text = str(expected)
    token = got.strip("'") if got.startswith("'") else None
    blocks = open_blocks(source_text, location)

    if "';'" in expected_text:
        if token in STATEMENT_KEYWORDS or token == '}':
            suggestions.append(f"The statement before '{token}' is missing its ';'")
        else:
            suggestions.append("Every statement except 'while' ends with a semicolon")
    elif token in KEYWORDS:
        suggestions.append("Keywords can not be used as identifiers")

    if "'{'" in expected_text:
        suggestions.append("A while loop body is a block in braces: while x < 3 { ... }")

    if token is None and blocks:
        opened_at = source_text.count('\n', 0, blocks[-1]) + 1
        suggestions.append(f"The while block opened at line {opened_at} is missing its closing '}}'")

    if token == '}' and not blocks:
        suggestions.append("This '}' does not close any while block")
    elif token == '{' and not blocks:
        suggestions.append("Braces are only used for while loop bodies")

    if "end of text" in expected_text and token not in KEYWORDS \
            and re.match(r"\s*[^\W\d]\w*\s*\(", source_text[location:]):
        suggestions.append("Calls are expressions: use them inside 'print' or an assignment")

    return suggestions


def enhance_parse_exception_dict(exc: ParseException, source_text: str) -> Dict:
    """Convert pyparsing exception to an enriched error dict"""
    line_num = exc.lineno
    col_num = exc.column

    token = next_token(source_text, exc.loc)
    context = get_context_lines(source_text, line_num, col_num, width=len(token or ' '))
    expected = extract_expected(exc)
    got = extract_got(source_text, exc.loc)
    suggestions = generate_suggestions(got, expected, source_text, exc.loc)

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


class QuillParseError(Exception):
    """Syntax error with source context"""
    def __init__(self, message: str, location: int = 0, line: int = 0, column: int = 0,
                 expected: Optional[List[str]] = None, got: Optional[str] = None,
                 context: Optional[str] = None, suggestions: Optional[List[str]] = None):
        self.message = message
        self.location = location
        self.line = line
        self.column = column
        self.expected = expected or []
        self.got = got
        self.context = context
        self.suggestions = suggestions or []
        super().__init__(message)

    def __str__(self) -> str:
        error_dict = make_parse_error(
            self.message, self.location, self.line, self.column,
            self.expected, self.got, self.context, self.suggestions
        )
        return format_parse_error(error_dict)


def parse_error_from_exception(exc: ParseException, source_text: str) -> QuillParseError:
    """Build a QuillParseError from a pyparsing exception"""
    error_dict = enhance_parse_exception_dict(exc, source_text)
    return QuillParseError(
        message=error_dict['message'],
        location=error_dict['location'],
        line=error_dict['line'],
        column=error_dict['column'],
        expected=error_dict['expected'],
        got=error_dict['got'],
        context=error_dict['context'],
        suggestions=error_dict['suggestions']
    )


# ============================================================================
# REPORTING
# ============================================================================

def format_error_report(error: Exception, source_text: str = "") -> str:
    """Render an error for the command line, with source context when known"""
    if isinstance(error, QuillParseError):
        return str(error)

    if isinstance(error, SemanticError):
        report = f"Semantic error ({type(error).__name__}): {error}"
        if error.span and source_text:
            report += "\n" + get_context_lines(
                source_text, error.span.start_line, error.span.start_col,
                context_lines=1, width=error.span.end_col - error.span.start_col)
        return report

    return f"Error: {error}"
