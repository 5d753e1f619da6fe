"""Runtime values of the formula language.

A formula evaluates to one of: ``str``, ``float``, ``bool``, ``None``, a
``list`` of values, or a :class:`LambdaValue`.
"""

import math
from dataclasses import dataclass
from typing import List, Union

NO_SIGNAL = "No Signal"

# Epsilon absorbing floating point drift in =, <>, >=, <= and criteria matches
EPSILON = 1e-7


@dataclass(frozen=True)
class LambdaValue:
    """A LAMBDA: a saved ``[body_start, body_end)`` span of the token buffer.

    The body is re-parsed against a fresh parameter binding on every call.
    """

    param_name: str
    body_start: int
    body_end: int


FormulaResult = Union[str, float, bool, None, List["FormulaResult"], LambdaValue]


def is_number(value) -> bool:
    """True for int/float values (booleans excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_boolean(value: FormulaResult) -> bool:
    """Truthiness coercion used by IF, AND, OR and NOT."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return len(value) > 0 and value.lower() != "false"
    if isinstance(value, list):
        return len(value) > 0
    if isinstance(value, LambdaValue):
        return True
    return False


def to_text(value: FormulaResult) -> str:
    """Render a value as text ('1' for 1.0, 'true' for True, '1,2' for arrays)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        if isinstance(value, float):
            if math.isnan(value):
                return "NaN"
            if math.isinf(value):
                return "Infinity" if value > 0 else "-Infinity"
            if value.is_integer() and abs(value) < 1e21:
                return str(int(value))
        return repr(value) if isinstance(value, float) else str(value)
    if isinstance(value, list):
        return ",".join("" if v is None else to_text(v) for v in value)
    if isinstance(value, LambdaValue):
        return f"LAMBDA({value.param_name})"
    return str(value)


def strict_equal(left: FormulaResult, right: FormulaResult) -> bool:
    """Equality without cross-type coercion (1 is not equal to TRUE or '1')."""
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, (list, LambdaValue)) or isinstance(right, (list, LambdaValue)):
        return left is right
    if type(left) is not type(right):
        return False
    return left == right
