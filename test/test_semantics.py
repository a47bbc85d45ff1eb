"""
Semantic analysis tests for Quill
Covers accepted programs, every error kind and entity sharing
"""

import re
import pytest
from parsing import parse
from semantics import (
  analyze, analyze_program, create_analyzer, create_debug_analyzer, create_root_env,
  make_environment, env_bind, env_lookup, env_declares,
  STATEMENT_ANALYZERS, EXPRESSION_ANALYZERS
)
from core import Variable, Function, Token, NODE_TYPES, Program
from error_handling import (
  SemanticError, AlreadyDeclared, NotDeclared, WrongEntityKind,
  ReadOnlyViolation, ArityMismatch
)
from utilities import stringify
import stdlib


SEMANTIC_CHECKS = [
    ("variables can be printed", "let x = 1; print x;"),
    ("variables can be reassigned", "let x = 1; x = x * 5 / ((-3) + x);"),
    ("all predefined identifiers", "print ln(sqrt(sin(cos(hypot(π,1) + exp(5.5E2)))));"),
    ("recursion", "function f(n) = n < 1 ? 1 : n * f(n - 1); print f(5);"),
    ("parameters shadowing globals", "let x = 1; function f(x) = x; print f(x);"),
    ("parameters shadowing library names", "function f(sqrt) = sqrt * 2;"),
    ("declarations inside loops", "let x = 1; while x < 3 { let y = x; x = x + y; } print y;"),
    ("zero argument intrinsics", "print random();"),
    ("conditionals and logic", "let b = true; print b && !b ? 1 : 2;"),
]

SEMANTIC_ERRORS = [
    ("using undeclared identifiers", "print(x);", NotDeclared, r"Identifier x not declared"),
    ("a variable used as function", "let x = 1; print x(2);", WrongEntityKind, r"x is not a function"),
    ("a function used as variable", "print(sin + 1);", WrongEntityKind, r"Functions can not appear here"),
    ("re-declared identifier", "let x = 1; let x = 2;", AlreadyDeclared, r"Identifier x already declared"),
    ("re-declared library name", "let sqrt = 1;", AlreadyDeclared, r"Identifier sqrt already declared"),
    ("re-declared function", "let f = 1; function f() = 2;", AlreadyDeclared, r"Identifier f already declared"),
    ("repeated parameter", "function f(x, x) = x;", AlreadyDeclared, r"Identifier x already declared"),
    ("an attempt to write a read-only var", "π = 3;", ReadOnlyViolation, r"π is read only"),
    ("an attempt to write a function", "function f() = 1; f = 2;", ReadOnlyViolation, r"f is read only"),
    ("an attempt to write an intrinsic", "sqrt = 2;", ReadOnlyViolation, r"sqrt is read only"),
    ("assigning to an undeclared name", "y = 2;", NotDeclared, r"Identifier y not declared"),
    ("too few arguments", "print(sin());", ArityMismatch, r"1 argument\(s\) required but 0 passed"),
    ("too many arguments", "print(sin(5, 10));", ArityMismatch, r"1 argument\(s\) required but 2 passed"),
    ("wrong user arity", "function f(a, b) = a; print f(1);", ArityMismatch, r"2 argument\(s\) required but 1 passed"),
    ("self-referencing declaration", "let x = x;", NotDeclared, r"Identifier x not declared"),
    ("self-referencing declaration in a loop", "let a = 1; while a { let x = x + 1; }", NotDeclared, r"Identifier x not declared"),
    ("undeclared name in a function body", "function f(n) = m;", NotDeclared, r"Identifier m not declared"),
    ("parameter used outside its function", "function f(n) = n; print n;", NotDeclared, r"Identifier n not declared"),
]

SAMPLE = "let x=sqrt(9);function f(x)=3*x;while(true){x=3;print(0?f(x):2);}"

EXPECTED_GRAPH = """\
   1 | Program statements=[#2,#6,#10]
   2 | VariableDeclaration variable=#3 initializer=#4
   3 | Variable name='x' read_only=False
   4 | Call callee=#5 args=[9]
   5 | Function name='sqrt' param_count=1 read_only=True
   6 | FunctionDeclaration fun=#7 params=[#8] body=#9
   7 | Function name='f' param_count=1 read_only=True
   8 | Variable name='x' read_only=True
   9 | BinaryExpression op='*' left=3 right=#8
  10 | WhileStatement test=True body=[#11,#12]
  11 | Assignment target=#3 source=3
  12 | PrintStatement argument=#13
  13 | Conditional test=0 consequent=#14 alternate=2
  14 | Call callee=#7 args=[#3]"""


class TestAnalyzer:
  """Accepted and rejected programs"""

  @pytest.mark.parametrize("scenario, source", SEMANTIC_CHECKS)
  def test_recognizes(self, scenario, source):
    assert isinstance(analyze(parse(source)), Program)

  @pytest.mark.parametrize("scenario, source, error_type, pattern", SEMANTIC_ERRORS)
  def test_rejects(self, scenario, source, error_type, pattern):
    with pytest.raises(error_type, match=pattern):
      analyze(parse(source))

  def test_all_errors_are_semantic_errors(self):
    for error_type in (AlreadyDeclared, NotDeclared, WrongEntityKind, ReadOnlyViolation, ArityMismatch):
      assert issubclass(error_type, SemanticError)

  def test_error_message_has_position(self):
    with pytest.raises(NotDeclared) as info:
      analyze(parse("let a = 1;\nprint(x);"))
    assert str(info.value) == "Line 2, Column 7: Identifier x not declared"
    assert info.value.message == "Identifier x not declared"
    assert info.value.span.start_line == 2

  def test_arity_error_points_at_callee(self):
    with pytest.raises(ArityMismatch) as info:
      analyze(parse("print hypot(1);"))
    assert str(info.value).startswith("Line 1, Column 7:")
    assert "2 argument(s) required but 1 passed" in str(info.value)

  def test_expected_graph_for_sample_program(self):
    assert stringify(analyze(parse(SAMPLE))) == EXPECTED_GRAPH


class TestEntitySharing:
  """Every use of a name is the entity created at its declaration"""

  def test_variable_uses_share_the_declared_entity(self, analyzed):
    declaration, assignment, show = analyzed("let x = 1; x = x + 1; print x;").statements
    variable = declaration.variable
    assert isinstance(variable, Variable)
    assert assignment.target is variable
    assert assignment.source.left is variable
    assert show.argument is variable

  def test_shadowing_binds_to_innermost(self, analyzed):
    declaration, fun, show = analyzed("let x = 1; function f(x) = x; print x;").statements
    parameter = fun.params[0]
    assert fun.body is parameter
    assert parameter is not declaration.variable
    assert show.argument is declaration.variable

  def test_same_name_different_entities(self, analyzed):
    declaration, fun = analyzed("let x = 1; function f(x) = x;").statements
    assert declaration.variable != fun.params[0]
    assert declaration.variable.name == fun.params[0].name

  def test_recursive_call_refers_to_function(self, analyzed):
    fun = analyzed("function f(n) = f(n);").statements[0]
    assert isinstance(fun.fun, Function)
    assert fun.fun.param_count == 1
    assert fun.body.callee is fun.fun

  def test_parameters_are_read_only(self, analyzed):
    fun = analyzed("function f(a, b) = a + b;").statements[0]
    assert all(p.read_only for p in fun.params)
    assert fun.fun.read_only

  def test_library_entities_are_shared(self, analyzed):
    show, again = analyzed("print π; print sqrt(π);").statements
    assert show.argument is stdlib.PI
    assert again.argument.callee is stdlib.SQRT
    assert again.argument.args[0] is stdlib.PI

  def test_no_tokens_survive_resolution(self, analyzed):
    graph = stringify(analyzed(SAMPLE))
    assert "IDENTIFIER" not in graph
    assert not re.search(r"=x\b", graph)


class TestEnvironments:
  """Scope frames"""

  def test_root_environment_holds_standard_library(self):
    env = create_root_env()
    for name, entity in stdlib.STANDARD_LIBRARY.items():
      assert env_lookup(env, name) is entity
    assert env['parent'] is None

  def test_bind_returns_new_environment(self):
    env = make_environment()
    variable = Variable("x")
    extended = env_bind(env, "x", variable)
    assert env_lookup(extended, "x") is variable
    assert env_lookup(env, "x") is None

  def test_lookup_walks_parents_but_declares_does_not(self):
    outer = env_bind(make_environment(), "x", Variable("x"))
    inner = make_environment(parent=outer)
    assert env_lookup(inner, "x") is env_lookup(outer, "x")
    assert not env_declares(inner, "x")
    assert env_declares(outer, "x")

  def test_incremental_analysis_keeps_bindings(self):
    _, env = analyze_program(parse("let x = 1;"))
    resolved, env = analyze_program(parse("x = 2;"), env)
    assert resolved.statements[0].target is env_lookup(env, "x")

  def test_failed_analysis_leaves_previous_environment(self):
    _, env = analyze_program(parse("let x = 1;"))
    with pytest.raises(NotDeclared):
      analyze_program(parse("let y = 1; print z;"), env)
    assert env_lookup(env, "y") is None

  def test_analyzer_session_keeps_bindings(self):
    analyzer = create_analyzer()
    analyzer.analyze_incremental(parse("let x = 1;"))
    resolved = analyzer.analyze_incremental(parse("x = 2;"))
    assert resolved.statements[0].target is env_lookup(analyzer.global_env, "x")

  def test_analyzer_session_discards_failed_fragment(self):
    analyzer = create_analyzer()
    with pytest.raises(NotDeclared):
      analyzer.analyze_incremental(parse("let y = 1; print z;"))
    assert env_lookup(analyzer.global_env, "y") is None
    assert env_lookup(analyzer.global_env, "sqrt") is stdlib.SQRT

  def test_library_table_is_frozen(self):
    with pytest.raises(TypeError):
      stdlib.STANDARD_LIBRARY["sqrt"] = Function("sqrt", 1)


class TestDispatch:
  """Every node kind has a handler"""

  def test_every_node_kind_is_analyzed(self):
    handled = set(STATEMENT_ANALYZERS) | set(EXPRESSION_ANALYZERS)
    assert Token in handled
    for node_type in NODE_TYPES:
      if node_type is not Program:
        assert node_type in handled

  def test_unknown_node_is_rejected(self):
    with pytest.raises(ValueError):
      analyze(Program([object()]))

  def test_debug_output(self, capsys):
    create_debug_analyzer().analyze(parse("let x = 1;"))
    assert "Analyzing statement: VariableDeclaration" in capsys.readouterr().out
