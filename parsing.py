"""
Quill Programming Language Parser
Builds the raw program tree from source text. Identifiers stay unresolved
Tokens carrying their source span; semantics.py binds them to entities
"""

from typing import Any

from pyparsing import (
    Forward, Group, Keyword, MatchFirst, OpAssoc, Opt,
    ParseBaseException, ParserElement, Regex, StringEnd, Suppress, ZeroOrMore,
    col, infix_notation, lineno, one_of
)

from core import (
    SourceSpan, Token, Program, VariableDeclaration, FunctionDeclaration,
    Assignment, WhileStatement, PrintStatement, Call, Conditional,
    BinaryExpression, UnaryExpression
)
from error_handling import KEYWORDS, QuillParseError, parse_error_from_exception

# Packrat parsing keeps the operator-precedence grammar linear
ParserElement.enable_packrat()


# ============================================================================
# TREE BUILDERS (parse actions)
# ============================================================================

def make_left_binary(tokens) -> Any:
    """Fold `a op b op c` into left-nested BinaryExpressions"""
    items = list(tokens[0])
    result = items[0]
    for i in range(1, len(items), 2):
        result = BinaryExpression(items[i], result, items[i + 1])
    return result


def make_right_binary(tokens) -> Any:
    """Fold `a op b op c` into right-nested BinaryExpressions"""
    items = list(tokens[0])
    result = items[-1]
    for i in range(len(items) - 2, 0, -2):
        result = BinaryExpression(items[i], items[i - 1], result)
    return result


def make_unary(tokens) -> Any:
    items = list(tokens[0])
    result = items[-1]
    for op in reversed(items[:-1]):
        result = UnaryExpression(op, result)
    return result


def make_conditional(tokens) -> Conditional:
    # The "?" and ":" markers are plain strings; operands never are
    test, consequent, alternate = [item for item in tokens[0] if not isinstance(item, str)]
    return Conditional(test, consequent, alternate)


# ============================================================================
# GRAMMAR
# ============================================================================

class QuillGrammar:
    """Quill grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.filename = "<input>"
        self._setup_grammar()

    def _make_identifier(self, source: str, loc: int, tokens) -> Token:
        name = tokens[0]
        line = lineno(loc, source)
        column = col(loc, source)
        span = SourceSpan(self.filename, line, column, line, column + len(name), name)
        return Token("IDENTIFIER", name, span)

    def _setup_grammar(self):
        """Setup statements and the operator precedence table"""

        let_kw, function_kw, while_kw, print_kw, true_kw, false_kw = (
            Keyword(word) for word in KEYWORDS
        )
        keyword = MatchFirst([Keyword(word) for word in KEYWORDS])

        # Identifiers are unicode words (so π is one) that are not keywords
        identifier = ~keyword + Regex(r"[^\W\d]\w*").set_parse_action(self._make_identifier)

        number = Regex(r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?").set_parse_action(lambda t: float(t[0]))
        true_lit = true_kw.copy().set_parse_action(lambda t: True)
        false_lit = false_kw.copy().set_parse_action(lambda t: False)

        expression = Forward()

        arguments = Group(Opt(expression + ZeroOrMore(Suppress(",") + expression)))
        call = (
            identifier + Suppress("(") + arguments + Suppress(")")
        ).set_parse_action(lambda t: Call(t[0], list(t[1])))

        operand = number | true_lit | false_lit | call | identifier

        # Tightest binding first
        expression <<= infix_notation(operand, [
            ("**", 2, OpAssoc.RIGHT, make_right_binary),
            (one_of("- !"), 1, OpAssoc.RIGHT, make_unary),
            (one_of("* / %"), 2, OpAssoc.LEFT, make_left_binary),
            (one_of("+ -"), 2, OpAssoc.LEFT, make_left_binary),
            (one_of("<= >= == != < >"), 2, OpAssoc.LEFT, make_left_binary),
            ("&&", 2, OpAssoc.LEFT, make_left_binary),
            ("||", 2, OpAssoc.LEFT, make_left_binary),
            (("?", ":"), 3, OpAssoc.RIGHT, make_conditional),
        ])

        # After a statement keyword the statement is committed: a failure
        # inside it is reported there instead of at the statement start
        statement = Forward()
        semicolon = Suppress(";")

        variable_declaration = (
            Suppress(let_kw) - identifier + Suppress("=") + expression + semicolon
        ).set_parse_action(lambda t: VariableDeclaration(t[0], t[1]))

        parameters = Group(Opt(identifier + ZeroOrMore(Suppress(",") + identifier)))
        function_declaration = (
            Suppress(function_kw) - identifier +
            Suppress("(") + parameters + Suppress(")") +
            Suppress("=") + expression + semicolon
        ).set_parse_action(lambda t: FunctionDeclaration(t[0], list(t[1]), t[2]))

        assignment = (
            identifier + Suppress("=") + expression + semicolon
        ).set_parse_action(lambda t: Assignment(t[0], t[1]))

        print_statement = (
            Suppress(print_kw) - expression + semicolon
        ).set_parse_action(lambda t: PrintStatement(t[0]))

        block = Suppress("{") + Group(ZeroOrMore(statement)) + Suppress("}")
        while_statement = (
            Suppress(while_kw) - expression + block
        ).set_parse_action(lambda t: WhileStatement(t[0], list(t[1])))

        statement <<= (
            variable_declaration | function_declaration | while_statement |
            print_statement | assignment
        )

        program = (ZeroOrMore(statement) + StringEnd()).set_parse_action(
            lambda t: Program(list(t))
        )

        comment = Regex(r"//[^\n]*")
        program.ignore(comment)

        self.expression = expression
        self.statement = statement
        self.program = program

    def parse_program(self, text: str, filename: str = "<input>") -> Program:
        """Parse a complete Quill program"""
        self.filename = filename
        try:
            result = self.program.parse_string(text, parse_all=True)
        except ParseBaseException as e:
            raise parse_error_from_exception(e, text) from e

        tree = result[0]
        if self.debug:
            print(f"Parsed {len(tree.statements)} top-level statements from {filename}")
        return tree

    def parse_expression(self, text: str, filename: str = "<input>") -> Any:
        """Parse a single Quill expression"""
        self.filename = filename
        try:
            result = self.expression.parse_string(text, parse_all=True)
        except ParseBaseException as e:
            raise parse_error_from_exception(e, text) from e
        return result[0]


class QuillParser:
    """Main Quill parser"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = QuillGrammar(debug)

    def parse_file(self, filepath: str) -> Program:
        """Parse a Quill source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise QuillParseError(f"File not found: {filepath}")
        except UnicodeDecodeError as e:
            raise QuillParseError(f"Cannot decode file {filepath}: {e}")
        return self.grammar.parse_program(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> Program:
        """Parse Quill source code from string"""
        return self.grammar.parse_program(text, filename)

    def parse_expression(self, text: str, filename: str = "<input>") -> Any:
        """Parse a single Quill expression"""
        return self.grammar.parse_expression(text, filename)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> QuillParser:
    """Create a Quill parser"""
    return QuillParser(debug=debug)


def parse(source: str, filename: str = "<input>") -> Program:
    """Parse source text into a raw program tree"""
    return create_parser().parse_string(source, filename)
