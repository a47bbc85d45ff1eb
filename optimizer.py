"""
Quill Optimizer
Machine-independent rewriting of the resolved program graph:

  - assignments to self (x = x) disappear
  - constant folding of operators and math intrinsics, with IEEE-754
    double results (1/0 is inf, 0/0 and 5%0 are nan)
  - algebraic identities (+0, -0, *0, *1, /1, **0, 1**)
  - conditionals with a literal test collapse into one arm

Nodes are rewritten bottom-up and may be mutated in place. Entities are
never copied, so identity checks keep working on the result.
"""

from typing import Any, Callable, Dict, List, Optional
import operator

from core import (
  Variable, Function, Program, VariableDeclaration, FunctionDeclaration,
  Assignment, WhileStatement, PrintStatement, Call, Conditional,
  BinaryExpression, UnaryExpression, is_number, is_boolean, is_literal
)
from stdlib import get_intrinsic
from utilities import divide, remainder, power, is_truthy


ARITHMETIC_OPS: Dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": divide,
    "%": remainder,
    "**": power,
}

COMPARISON_OPS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    ">": operator.gt,
}

LOGICAL_OPS: Dict[str, Callable[[bool, bool], bool]] = {
    "&&": lambda x, y: x and y,
    "||": lambda x, y: x or y,
}


# ============================================================================
# FOLDING
# ============================================================================

def fold_binary(op: str, left: Any, right: Any) -> Optional[Any]:
  """Value of `left op right` for two literals, or None if it must not fold"""
  if is_number(left) and is_number(right):
    if op == "**" and left == 0 and right == 0:
      # 0 ** 0 is kept symbolic
      return None
    if op in ARITHMETIC_OPS:
      return ARITHMETIC_OPS[op](left, right)
    if op in COMPARISON_OPS:
      return COMPARISON_OPS[op](left, right)
  elif is_boolean(left) and is_boolean(right):
    if op in ("==", "!="):
      return COMPARISON_OPS[op](left, right)
    if op in LOGICAL_OPS:
      return LOGICAL_OPS[op](left, right)
  return None


def simplify_left_literal(e: BinaryExpression) -> Any:
  """Identities where only the left operand is a number"""
  if e.left == 0 and e.op == "+":
    return e.right
  elif e.left == 1 and e.op == "*":
    return e.right
  elif e.left == 0 and e.op == "-":
    return UnaryExpression("-", e.right)
  elif e.left == 0 and e.op in ("*", "/", "%"):
    return 0.0
  elif e.left == 1 and e.op == "**":
    return 1.0
  return e


def simplify_right_literal(e: BinaryExpression) -> Any:
  """Identities where only the right operand is a number"""
  if e.right == 0 and e.op in ("+", "-"):
    return e.left
  elif e.right == 1 and e.op in ("*", "/"):
    return e.left
  elif e.right == 0 and e.op == "*":
    return 0.0
  elif e.right == 0 and e.op == "**":
    # The left operand is not a literal here, so this never covers 0 ** 0
    return 1.0
  return e


# ============================================================================
# NODE OPTIMIZERS
# ============================================================================

def optimize_program(p: Program) -> Program:
  p.statements = optimize_list(p.statements)
  return p


def optimize_variable_declaration(d: VariableDeclaration) -> VariableDeclaration:
  d.initializer = optimize(d.initializer)
  return d


def optimize_function_declaration(d: FunctionDeclaration) -> FunctionDeclaration:
  d.params = optimize_list(d.params)
  d.body = optimize(d.body)
  return d


def optimize_assignment(s: Assignment) -> Any:
  s.source = optimize(s.source)
  if s.source is s.target:
    return []
  return s


def optimize_while_statement(s: WhileStatement) -> WhileStatement:
  # The loop itself always stays, even when the test folds to a constant
  s.test = optimize(s.test)
  s.body = optimize_list(s.body)
  return s


def optimize_print_statement(s: PrintStatement) -> PrintStatement:
  s.argument = optimize(s.argument)
  return s


def optimize_call(c: Call) -> Any:
  c.args = optimize_list(c.args)
  intrinsic = get_intrinsic(c.callee)
  if intrinsic is not None and all(is_number(arg) for arg in c.args):
    return intrinsic(*c.args)
  return c


def optimize_conditional(c: Conditional) -> Any:
  c.test = optimize(c.test)
  c.consequent = optimize(c.consequent)
  c.alternate = optimize(c.alternate)
  if is_literal(c.test):
    return c.consequent if is_truthy(c.test) else c.alternate
  return c


def optimize_binary(e: BinaryExpression) -> Any:
  e.left = optimize(e.left)
  e.right = optimize(e.right)
  if is_literal(e.left) and is_literal(e.right):
    folded = fold_binary(e.op, e.left, e.right)
    return e if folded is None else folded
  if is_number(e.left):
    return simplify_left_literal(e)
  if is_number(e.right):
    return simplify_right_literal(e)
  return e


def optimize_unary(e: UnaryExpression) -> Any:
  e.operand = optimize(e.operand)
  if e.op == "-" and is_number(e.operand):
    return -e.operand
  if e.op == "!" and is_boolean(e.operand):
    return not e.operand
  return e


def optimize_leaf(value: Any) -> Any:
  return value


def optimize_list(nodes: List[Any]) -> List[Any]:
  """Optimize element-wise, splicing in statements that turned into sequences"""
  result = []
  for node in nodes:
    optimized = optimize(node)
    if isinstance(optimized, list):
      result.extend(optimized)
    else:
      result.append(optimized)
  return result


OPTIMIZERS: Dict[type, Callable[[Any], Any]] = {
    Program: optimize_program,
    VariableDeclaration: optimize_variable_declaration,
    FunctionDeclaration: optimize_function_declaration,
    Assignment: optimize_assignment,
    WhileStatement: optimize_while_statement,
    PrintStatement: optimize_print_statement,
    Call: optimize_call,
    Conditional: optimize_conditional,
    BinaryExpression: optimize_binary,
    UnaryExpression: optimize_unary,
    Variable: optimize_leaf,
    Function: optimize_leaf,
    float: optimize_leaf,
    int: optimize_leaf,
    bool: optimize_leaf,
    list: optimize_list,
}


def optimize(node: Any) -> Any:
  """Rewrite a resolved tree (or any part of one) into a no-larger equivalent"""
  handler = OPTIMIZERS.get(type(node))
  if handler is None:
    raise ValueError(f"Unable to optimize: {node!r}")
  return handler(node)
