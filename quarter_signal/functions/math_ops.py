"""Mathematical functions.

Domain violations (square root of a negative, invalid logarithm, overflow)
return None instead of raising or producing NaN/Infinity.
"""

import math
from typing import Callable, Optional

from quarter_signal.formulas.values import FormulaResult, is_number
from quarter_signal.functions.helpers import check_arity, finite_or_none, numbers


def MIN(*args: FormulaResult) -> Optional[float]:
    """Minimum of the numeric arguments, None if there are none."""
    nums = numbers(args)
    return min(nums) if nums else None


def MAX(*args: FormulaResult) -> Optional[float]:
    """Maximum of the numeric arguments, None if there are none."""
    nums = numbers(args)
    return max(nums) if nums else None


def ABS(*args: FormulaResult) -> Optional[float]:
    check_arity("ABS", args, 1, 1)
    return abs(args[0]) if is_number(args[0]) else None


def SUM(*args: FormulaResult) -> Optional[float]:
    """Sum of the numeric arguments (0 if there are none, None on overflow)."""
    return finite_or_none(sum(numbers(args)))


def AVERAGE(*args: FormulaResult) -> Optional[float]:
    nums = numbers(args)
    return finite_or_none(sum(nums) / len(nums)) if nums else None


def COUNT(*args: FormulaResult) -> int:
    """Count arguments that are numbers or strings."""
    return sum(1 for a in args if is_number(a) or isinstance(a, str))


def _scaled(name: str, args, rounder: Callable[[float], float]) -> Optional[float]:
    check_arity(name, args, 2, 2)
    value, digits = args
    if not is_number(value) or not is_number(digits):
        return None
    try:
        factor = math.pow(10, digits)
        return rounder(value * factor) / factor
    except (OverflowError, ValueError, ZeroDivisionError):
        return None


def _round_half_away(x: float) -> float:
    return math.copysign(math.floor(abs(x) + 0.5), x)


def ROUND(*args: FormulaResult) -> Optional[float]:
    """
    Round half away from zero to the given number of digits.

    Args:
        args: value, digits

    Returns:
        Rounded value, or None for non-numeric input

    Example:
        ROUND(1234.5678, 2) -> 1234.57, ROUND(-2.5, 0) -> -3
    """
    return _scaled("ROUND", args, _round_half_away)


def ROUNDUP(*args: FormulaResult) -> Optional[float]:
    """Ceil to the given number of digits (scale, ceil, unscale)."""
    return _scaled("ROUNDUP", args, math.ceil)


def ROUNDDOWN(*args: FormulaResult) -> Optional[float]:
    """Floor to the given number of digits (scale, floor, unscale)."""
    return _scaled("ROUNDDOWN", args, math.floor)


def SQRT(*args: FormulaResult) -> Optional[float]:
    check_arity("SQRT", args, 1, 1)
    value = args[0]
    if not is_number(value) or value < 0:
        return None
    return math.sqrt(value)


def POWER(*args: FormulaResult) -> Optional[float]:
    """base ** exponent; None when the result is undefined or overflows."""
    check_arity("POWER", args, 2, 2)
    base, exponent = args
    if not is_number(base) or not is_number(exponent):
        return None
    try:
        return math.pow(base, exponent)
    except (OverflowError, ValueError, ZeroDivisionError):
        return None


def LOG(*args: FormulaResult) -> Optional[float]:
    """
    Logarithm of x in the given base (default 10).

    Args:
        args: x, optional base

    Returns:
        log_base(x), or None when x <= 0 or base is <= 0 or 1
    """
    check_arity("LOG", args, 1, 2)
    value = args[0]
    if not is_number(value) or value <= 0:
        return None
    base = args[1] if len(args) == 2 and is_number(args[1]) else 10
    if base <= 0 or base == 1:
        return None
    return math.log(value) / math.log(base)


def _significance(args) -> float:
    if len(args) == 2 and is_number(args[1]) and args[1] > 0:
        return args[1]
    return 1


def CEILING(*args: FormulaResult) -> Optional[float]:
    """Round up to the nearest multiple of significance (default 1)."""
    check_arity("CEILING", args, 1, 2)
    if not is_number(args[0]):
        return None
    significance = _significance(args)
    try:
        return math.ceil(args[0] / significance) * significance
    except (OverflowError, ValueError):
        return None


def FLOOR(*args: FormulaResult) -> Optional[float]:
    """Round down to the nearest multiple of significance (default 1)."""
    check_arity("FLOOR", args, 1, 2)
    if not is_number(args[0]):
        return None
    significance = _significance(args)
    try:
        return math.floor(args[0] / significance) * significance
    except (OverflowError, ValueError):
        return None
