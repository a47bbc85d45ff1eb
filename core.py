"""
Quill Core - program tree vocabulary
Entities, tree nodes and source positions. Only data lives here: analysis is in
semantics.py and rewriting in optimizer.py
"""

from typing import Any, List, Optional, Union
from dataclasses import dataclass, field


# ============================================================================
# SOURCE POSITIONS
# ============================================================================

@dataclass(frozen=True)
class SourceSpan:
  """Source location of a token"""
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
class Token:
  """Raw identifier leaf as produced by the parser"""
  type: str
  value: Any
  span: Optional[SourceSpan] = None

  def __str__(self) -> str:
    return f"{self.type}({self.value})"


# ============================================================================
# ENTITIES
# ============================================================================

# Entities are shared by reference across every use site, so equality and
# hashing are identity based (eq=False).

@dataclass(eq=False)
class Variable:
  name: str
  read_only: bool = False


@dataclass(eq=False)
class Function:
  name: str
  param_count: int = 0
  read_only: bool = True


Entity = Union[Variable, Function]


# ============================================================================
# TREE NODES
# ============================================================================

@dataclass
class Program:
  statements: List[Any] = field(default_factory=list)


@dataclass
class VariableDeclaration:
  variable: Any
  initializer: Any


@dataclass
class FunctionDeclaration:
  fun: Any
  params: List[Any]
  body: Any


@dataclass
class Assignment:
  target: Any
  source: Any


@dataclass
class WhileStatement:
  test: Any
  body: List[Any] = field(default_factory=list)


@dataclass
class PrintStatement:
  argument: Any


@dataclass
class Call:
  callee: Any
  args: List[Any] = field(default_factory=list)


@dataclass
class Conditional:
  test: Any
  consequent: Any
  alternate: Any


@dataclass
class BinaryExpression:
  op: str
  left: Any
  right: Any


@dataclass
class UnaryExpression:
  op: str
  operand: Any


STATEMENT_TYPES = (VariableDeclaration, FunctionDeclaration, Assignment,
                   WhileStatement, PrintStatement)

EXPRESSION_TYPES = (Call, Conditional, BinaryExpression, UnaryExpression)

NODE_TYPES = (Program,) + STATEMENT_TYPES + EXPRESSION_TYPES


# ============================================================================
# LITERALS
# ============================================================================

def is_number(value: Any) -> bool:
  """True for numeric literals (bool is an int subclass but is not a number here)"""
  return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_boolean(value: Any) -> bool:
  return isinstance(value, bool)


def is_literal(value: Any) -> bool:
  return is_number(value) or is_boolean(value)
