"""
Quill Standard Library
Pre-declared entities installed in the root scope, and the host
implementations used to fold calls to the math intrinsics
"""

from typing import Callable, Dict, Optional
from types import MappingProxyType
import math

from core import Variable, Function, Entity


# ============================================================================
# PRE-DECLARED ENTITIES
# ============================================================================

PI = Variable("π", True)

SQRT = Function("sqrt", 1)
SIN = Function("sin", 1)
COS = Function("cos", 1)
EXP = Function("exp", 1)
LN = Function("ln", 1)
HYPOT = Function("hypot", 2)
RANDOM = Function("random", 0)


STANDARD_LIBRARY: MappingProxyType = MappingProxyType({
    "π": PI,
    "sqrt": SQRT,
    "sin": SIN,
    "cos": COS,
    "exp": EXP,
    "ln": LN,
    "hypot": HYPOT,
    "random": RANDOM,
})


# ============================================================================
# INTRINSIC IMPLEMENTATIONS
# ============================================================================

# The math module raises where IEEE-754 gives an infinity or nan; these
# wrappers return the IEEE result instead.

def ieee_sqrt(x: float) -> float:
  return math.nan if x < 0 else math.sqrt(x)


def ieee_sin(x: float) -> float:
  return math.nan if math.isinf(x) else math.sin(x)


def ieee_cos(x: float) -> float:
  return math.nan if math.isinf(x) else math.cos(x)


def ieee_exp(x: float) -> float:
  try:
    return math.exp(x)
  except OverflowError:
    return math.inf


def ieee_ln(x: float) -> float:
  if x == 0:
    return -math.inf
  if x < 0:
    return math.nan
  return math.log(x)


# Keyed by entity identity: a user function that shadows "sqrt" is a
# different entity and never folds.
INTRINSIC_IMPLEMENTATIONS: MappingProxyType = MappingProxyType({
    SQRT: ieee_sqrt,
    SIN: ieee_sin,
    COS: ieee_cos,
    EXP: ieee_exp,
    LN: ieee_ln,
    HYPOT: math.hypot,
})


def get_intrinsic(entity: Entity) -> Optional[Callable]:
  """Host implementation of a foldable intrinsic, or None"""
  if not isinstance(entity, Function):
    return None
  return INTRINSIC_IMPLEMENTATIONS.get(entity)


def is_standard_entity(entity: Entity) -> bool:
  """True if the entity is one of the pre-declared library entities"""
  return any(entity is builtin for builtin in STANDARD_LIBRARY.values())


def describe_standard_library() -> Dict[str, str]:
  """Short signature for each pre-declared name"""
  signatures = {}
  for name, entity in STANDARD_LIBRARY.items():
    if isinstance(entity, Function):
      params = ", ".join(["Num"] * entity.param_count)
      signatures[name] = f"({params}) -> Num"
    else:
      signatures[name] = "Num (read only)"
  return signatures
