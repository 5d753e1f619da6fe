"""Shared helpers for the built-in function library."""

import math
import re
from typing import List, Optional, Sequence

from quarter_signal.formulas.errors import FormulaArityError
from quarter_signal.formulas.values import EPSILON, FormulaResult, is_number, strict_equal, to_text

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

# Longer operators first so '>=' is not read as '>'
_CRITERIA_OPERATORS = (">=", "<=", "<>", "!=", ">", "<", "=")


def check_arity(name: str, args: Sequence, min_args: int, max_args: Optional[int] = None) -> None:
    """Raise FormulaArityError unless ``min_args <= len(args) <= max_args``."""
    count = len(args)
    if max_args is not None and min_args == max_args and count != min_args:
        plural = "argument" if min_args == 1 else "arguments"
        raise FormulaArityError(f"{name} requires {min_args} {plural}")
    if count < min_args:
        raise FormulaArityError(f"{name} requires at least {min_args} argument{'s' if min_args != 1 else ''}")
    if max_args is not None and count > max_args:
        raise FormulaArityError(f"{name} requires {min_args} or {max_args} arguments")


def numbers(args: Sequence[FormulaResult]) -> List[float]:
    """Numeric arguments only (NaN dropped); strings, booleans and arrays are ignored."""
    return [a for a in args if is_number(a) and not math.isnan(a)]


def finite_or_none(value: float) -> Optional[float]:
    """None for infinite or NaN results (overflowing sums)."""
    return value if math.isfinite(value) else None


def as_list(value: FormulaResult) -> List[FormulaResult]:
    """Wrap a scalar into a one-element list; arrays pass through."""
    return value if isinstance(value, list) else [value]


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded towards +infinity (index arguments)."""
    return math.floor(value + 0.5)


def parse_leading_number(text: str) -> Optional[float]:
    """Parse the numeric prefix of a string ('10abc' -> 10.0), None if there is none."""
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    return float(match.group(0))


def _compare(value: float, op: str, threshold: float) -> bool:
    if op == ">=":
        return value >= threshold
    if op == "<=":
        return value <= threshold
    if op in ("<>", "!="):
        return value != threshold
    if op == ">":
        return value > threshold
    if op == "<":
        return value < threshold
    return abs(value - threshold) < EPSILON


def matches_criteria(value: FormulaResult, criteria: FormulaResult) -> bool:
    """Check a SUMIF/COUNTIF criteria against one value.

    String criteria may start with ``>=, <=, <>, !=, >, <, =`` followed by a
    number, which compares numerically. ``<>text`` / ``=text`` compare the
    remaining text exactly. Anything else is an exact match against the
    trimmed criteria. Numeric criteria match numbers within an epsilon.

    Args:
        value: Candidate value from the range
        criteria: Criteria value or string

    Returns:
        True if the value satisfies the criteria
    """
    if criteria is None:
        return value is None

    if isinstance(criteria, str):
        trimmed = criteria.strip()

        for op in _CRITERIA_OPERATORS:
            if not trimmed.startswith(op):
                continue
            operand = trimmed[len(op):]
            threshold = parse_leading_number(operand)
            if threshold is not None and is_number(value):
                return _compare(value, op, threshold)
            if op in ("<>", "!="):
                return not strict_equal(value, operand)
            if op == "=":
                return strict_equal(value, operand)
            break

        return strict_equal(value, trimmed) or (value is not None and to_text(value) == trimmed)

    if is_number(criteria) and is_number(value):
        return abs(value - criteria) < EPSILON

    return strict_equal(value, criteria)
