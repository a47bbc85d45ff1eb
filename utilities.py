"""
Utilities module for the Quill toolchain
Folding arithmetic helpers and the graph stringifier shared by the
optimizer, the command line driver and the tests
"""

from typing import Any, Dict, Iterator, List
from dataclasses import fields, is_dataclass
import math

from core import Token, is_number, is_boolean


# ==================== FOLDING HELPERS ====================

def divide(x: float, y: float) -> float:
  """
  `/` with IEEE-754 double semantics

  Examples:
    divide(1.0, 0.0) -> inf
    divide(1.0, -0.0) -> -inf
    divide(0.0, 0.0) -> nan
  """
  try:
    return x / y
  except ZeroDivisionError:
    if x == 0 or math.isnan(x):
      return math.nan
    return math.copysign(math.inf, x) * math.copysign(1.0, y)


def remainder(x: float, y: float) -> float:
  """`%` truncated towards zero (sign of the dividend); nan where fmod rejects"""
  try:
    return math.fmod(x, y)
  except ValueError:
    # x % 0 and inf % y
    return math.nan


def _is_odd_integer(value: float) -> bool:
  return float(value).is_integer() and value % 2 == 1


def power(base: float, exponent: float) -> float:
  """
  `**` with IEEE-754 double semantics

  math.pow raises where IEEE gives an infinity or nan; those cases are
  mapped back, keeping the sign an odd integer exponent gives.

  Examples:
    power(10.0, 400.0) -> inf
    power(-10.0, 401.0) -> -inf
    power(0.0, -1.0) -> inf
    power(-8.0, 0.5) -> nan
  """
  try:
    return math.pow(base, exponent)
  except OverflowError:
    return -math.inf if base < 0 and _is_odd_integer(exponent) else math.inf
  except ValueError:
    if base == 0:
      negative = math.copysign(1.0, base) < 0 and _is_odd_integer(exponent)
      return -math.inf if negative else math.inf
    return math.nan


def is_truthy(value: Any) -> bool:
  """Truthiness of a literal: false, 0 and NaN are falsy"""
  if is_boolean(value):
    return value
  return value != 0 and not math.isnan(value)


def format_number(value: float) -> str:
  """Render a number the way the language writes it (5 rather than 5.0)"""
  if isinstance(value, float) and value.is_integer():
    if value == 0 and math.copysign(1.0, value) < 0:
      return "-0"
    return str(int(value))
  return repr(value)


# ==================== GRAPH STRINGIFIER ====================

def _children(node: Any) -> List[Any]:
  return [getattr(node, f.name) for f in fields(node)]


def _is_tagged(value: Any) -> bool:
  # Tokens are leaves shown inline; every other dataclass (node or entity) gets a tag
  return is_dataclass(value) and not isinstance(value, (type, Token))


def stringify(root: Any) -> str:
  """
  Render a program graph one object per line

  Every node and entity reachable from root receives an integer tag the
  first time it is met (pre-order); later references print as #tag, so
  entities shared by many use sites appear once.

  Examples:
    stringify(analyze(parse("let x = 1;"))) ->
       1 | Program statements=[#2]
       2 | VariableDeclaration variable=#3 initializer=1
       3 | Variable name='x' read_only=False
  """
  tags: Dict[int, int] = {}
  order: List[Any] = []

  def tag(value: Any) -> None:
    if isinstance(value, list):
      for item in value:
        tag(item)
      return
    if not _is_tagged(value) or id(value) in tags:
      return
    tags[id(value)] = len(order) + 1
    order.append(value)
    for child in _children(value):
      tag(child)

  def view(value: Any) -> str:
    if isinstance(value, list):
      return f"[{','.join(view(item) for item in value)}]"
    if _is_tagged(value):
      return f"#{tags[id(value)]}"
    if isinstance(value, Token):
      return str(value.value)
    if is_number(value):
      return format_number(value)
    return repr(value)

  def lines() -> Iterator[str]:
    for index, node in enumerate(order, 1):
      props = "".join(f" {f.name}={view(getattr(node, f.name))}" for f in fields(node))
      yield f"{index:4d} | {type(node).__name__}{props}"

  tag(root)
  return "\n".join(lines())
