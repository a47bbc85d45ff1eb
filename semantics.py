"""
Quill Semantics Analysis
Resolves every identifier Token to the entity it denotes and rejects
ill-formed programs. Environments are plain dictionaries threaded through
the statement analyzers; entities are shared by reference at every use site
"""

from typing import Any, Dict, List, Optional, Tuple

from core import (
  Token, Variable, Function, Entity, Program, VariableDeclaration,
  FunctionDeclaration, Assignment, WhileStatement, PrintStatement, Call,
  Conditional, BinaryExpression, UnaryExpression, is_literal
)
from stdlib import STANDARD_LIBRARY
from error_handling import (
  AlreadyDeclared, NotDeclared, WrongEntityKind, ReadOnlyViolation, ArityMismatch
)


# ============================================================================
# ENVIRONMENTS
# ============================================================================

def make_environment(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create an environment frame"""
  return {
      'parent': parent,
      'bindings': bindings or {}
  }


def env_bind(env: Dict, name: str, entity: Entity) -> Dict:
  """Return the same frame with name bound to entity"""
  return {
      **env,
      'bindings': {**env['bindings'], name: entity}
  }


def env_lookup(env: Dict, name: str) -> Optional[Entity]:
  """Look up a name in the environment chain, innermost frame first"""
  if name in env['bindings']:
    return env['bindings'][name]
  elif env['parent']:
    return env_lookup(env['parent'], name)
  return None


def env_declares(env: Dict, name: str) -> bool:
  """True if name is bound in this frame (enclosing frames are not searched)"""
  return name in env['bindings']


def create_root_env() -> Dict:
  """Create the root environment holding the standard library"""
  return make_environment(bindings=dict(STANDARD_LIBRARY))


# ============================================================================
# CHECKS
# ============================================================================

def must_not_be_declared(env: Dict, token: Token) -> None:
  if env_declares(env, token.value):
    raise AlreadyDeclared(f"Identifier {token.value} already declared", token.span)


def must_have_been_found(entity: Optional[Entity], token: Token) -> Entity:
  if entity is None:
    raise NotDeclared(f"Identifier {token.value} not declared", token.span)
  return entity


def must_not_be_read_only(entity: Entity, token: Token) -> None:
  if entity.read_only:
    raise ReadOnlyViolation(f"{entity.name} is read only", token.span)


def must_be_a_variable(entity: Entity, token: Token) -> None:
  # Quill has two kinds of entities: variables and functions
  if not isinstance(entity, Variable):
    raise WrongEntityKind("Functions can not appear here", token.span)


def must_be_a_function(entity: Entity, token: Token) -> None:
  if not isinstance(entity, Function):
    raise WrongEntityKind(f"{entity.name} is not a function", token.span)


def must_have_right_number_of_arguments(callee: Function, arg_count: int, token: Token) -> None:
  if arg_count != callee.param_count:
    raise ArityMismatch(
        f"{callee.param_count} argument(s) required but {arg_count} passed", token.span)


# ============================================================================
# STATEMENT ANALYSIS
# ============================================================================

def analyze_variable_declaration(node: VariableDeclaration, env: Dict,
                                 debug: bool = False) -> Tuple[VariableDeclaration, Dict]:
  """Analyze `let x = e;`"""
  # The initializer is analyzed before the variable comes into scope, so
  # `let x = x;` only works when an enclosing scope already has an x.
  initializer = analyze_expression(node.initializer, env, debug)
  token = node.variable
  must_not_be_declared(env, token)
  variable = Variable(token.value, False)
  return VariableDeclaration(variable, initializer), env_bind(env, token.value, variable)


def analyze_function_declaration(node: FunctionDeclaration, env: Dict,
                                 debug: bool = False) -> Tuple[FunctionDeclaration, Dict]:
  """Analyze `function f(p, ...) = e;`"""
  token = node.fun
  must_not_be_declared(env, token)

  # Bound before the body is analyzed so the body may call f recursively
  fun = Function(token.value, len(node.params))
  env = env_bind(env, token.value, fun)

  body_env = make_environment(parent=env)
  params = []
  for param_token in node.params:
    must_not_be_declared(body_env, param_token)
    param = Variable(param_token.value, True)
    body_env = env_bind(body_env, param_token.value, param)
    params.append(param)

  body = analyze_expression(node.body, body_env, debug)
  return FunctionDeclaration(fun, params, body), env


def analyze_assignment(node: Assignment, env: Dict, debug: bool = False) -> Tuple[Assignment, Dict]:
  """Analyze `x = e;`"""
  token = node.target
  target = must_have_been_found(env_lookup(env, token.value), token)
  must_not_be_read_only(target, token)
  must_be_a_variable(target, token)
  source = analyze_expression(node.source, env, debug)
  return Assignment(target, source), env


def analyze_print_statement(node: PrintStatement, env: Dict,
                            debug: bool = False) -> Tuple[PrintStatement, Dict]:
  return PrintStatement(analyze_expression(node.argument, env, debug)), env


def analyze_while_statement(node: WhileStatement, env: Dict,
                            debug: bool = False) -> Tuple[WhileStatement, Dict]:
  """Analyze a while loop; its body shares the enclosing frame"""
  test = analyze_expression(node.test, env, debug)
  body, env = analyze_statements(node.body, env, debug)
  return WhileStatement(test, body), env


STATEMENT_ANALYZERS = {
    VariableDeclaration: analyze_variable_declaration,
    FunctionDeclaration: analyze_function_declaration,
    Assignment: analyze_assignment,
    PrintStatement: analyze_print_statement,
    WhileStatement: analyze_while_statement,
}


def analyze_statement(node: Any, env: Dict, debug: bool = False) -> Tuple[Any, Dict]:
  """Analyze one statement, returning the resolved node and the updated environment"""
  if debug:
    print(f"Analyzing statement: {type(node).__name__}")

  handler = STATEMENT_ANALYZERS.get(type(node))
  if handler is None:
    raise ValueError(f"Unable to analyze statement: {node!r}")
  return handler(node, env, debug)


def analyze_statements(nodes: List[Any], env: Dict, debug: bool = False) -> Tuple[List[Any], Dict]:
  """Analyze a statement list in order, threading the environment"""
  resolved = []
  for node in nodes:
    resolved_node, env = analyze_statement(node, env, debug)
    resolved.append(resolved_node)
  return resolved, env


# ============================================================================
# EXPRESSION ANALYSIS
# ============================================================================

def analyze_identifier(token: Token, env: Dict, debug: bool = False) -> Variable:
  """Identifiers in value position must denote variables"""
  entity = must_have_been_found(env_lookup(env, token.value), token)
  must_be_a_variable(entity, token)
  return entity


def analyze_call(node: Call, env: Dict, debug: bool = False) -> Call:
  """Identifiers in call position must denote functions of matching arity"""
  token = node.callee
  callee = must_have_been_found(env_lookup(env, token.value), token)
  must_be_a_function(callee, token)
  args = [analyze_expression(arg, env, debug) for arg in node.args]
  must_have_right_number_of_arguments(callee, len(args), token)
  return Call(callee, args)


def analyze_conditional(node: Conditional, env: Dict, debug: bool = False) -> Conditional:
  return Conditional(
      analyze_expression(node.test, env, debug),
      analyze_expression(node.consequent, env, debug),
      analyze_expression(node.alternate, env, debug)
  )


def analyze_binary(node: BinaryExpression, env: Dict, debug: bool = False) -> BinaryExpression:
  return BinaryExpression(
      node.op,
      analyze_expression(node.left, env, debug),
      analyze_expression(node.right, env, debug)
  )


def analyze_unary(node: UnaryExpression, env: Dict, debug: bool = False) -> UnaryExpression:
  return UnaryExpression(node.op, analyze_expression(node.operand, env, debug))


EXPRESSION_ANALYZERS = {
    Token: analyze_identifier,
    Call: analyze_call,
    Conditional: analyze_conditional,
    BinaryExpression: analyze_binary,
    UnaryExpression: analyze_unary,
}


def analyze_expression(node: Any, env: Dict, debug: bool = False) -> Any:
  """Analyze any expression and return its resolved form"""
  if debug:
    print(f"Analyzing expression: {type(node).__name__}")

  if is_literal(node):
    return node

  handler = EXPRESSION_ANALYZERS.get(type(node))
  if handler is None:
    raise ValueError(f"Unable to analyze expression: {node!r}")
  return handler(node, env, debug)


# ============================================================================
# MAIN ANALYSIS FUNCTION
# ============================================================================

def analyze_program(program: Program, env: Optional[Dict] = None,
                    debug: bool = False) -> Tuple[Program, Dict]:
  """
  Analyze a whole program and return the resolved program and final
  environment. Starts from the root environment unless one is given, which
  lets an interactive session keep its bindings between inputs.
  """
  if env is None:
    env = create_root_env()
  statements, env = analyze_statements(program.statements, env, debug)
  return Program(statements), env


def analyze(program: Program, debug: bool = False) -> Program:
  """Resolve a raw program tree; raises SemanticError on the first violation"""
  resolved, _ = analyze_program(program, debug=debug)
  return resolved


resolve = analyze


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class Analyzer:
  """Analyzer bound to a debug setting, with a session environment for incremental use"""

  def __init__(self, debug: bool = False):
    self.debug = debug
    self.global_env = create_root_env()

  def analyze(self, program: Program) -> Program:
    return analyze(program, self.debug)

  def analyze_incremental(self, program: Program) -> Program:
    """
    Analyze a program fragment on top of the declarations of earlier
    fragments. The session environment only advances when the whole
    fragment analyzes cleanly.
    """
    resolved, self.global_env = analyze_program(program, self.global_env, self.debug)
    return resolved


def create_analyzer(debug: bool = False) -> Analyzer:
  """Create an analyzer"""
  return Analyzer(debug=debug)


def create_debug_analyzer() -> Analyzer:
  """Create an analyzer with debug output"""
  return Analyzer(debug=True)
