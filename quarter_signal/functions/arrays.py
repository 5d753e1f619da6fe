"""Array and lambda functions: CHOOSE, SEQUENCE, MAP, INDEX, XLOOKUP."""

import math
from typing import Callable, List, Optional

from quarter_signal.formulas.errors import FormulaError
from quarter_signal.formulas.values import FormulaResult, LambdaValue, is_number
from quarter_signal.functions.helpers import as_list, check_arity, round_half_up

# Tolerance for numeric XLOOKUP matches
XLOOKUP_EPSILON = 1e-10

LambdaInvoker = Callable[[LambdaValue, FormulaResult], FormulaResult]


def _choose_one(index: FormulaResult, choices) -> FormulaResult:
    if not is_number(index) or not math.isfinite(index):
        return None
    position = round_half_up(index)
    if 1 <= position <= len(choices):
        return choices[position - 1]
    return None


def CHOOSE(*args: FormulaResult) -> FormulaResult:
    """
    Pick the index-th value (1-based) from the remaining arguments.

    An array index picks by position, not by value: element i of the array
    yields the i-th choice, so ``CHOOSE({2, 1}, "a", "b")`` returns
    ``{"a", "b"}``. Out-of-range indexes and positions pick null.
    """
    check_arity("CHOOSE", args, 2)
    index, choices = args[0], args[1:]
    if isinstance(index, list):
        return [choices[i] if i < len(choices) else None for i in range(len(index))]
    return _choose_one(index, choices)


def _count_arg(args, position: int, default: int) -> int:
    if len(args) <= position or not is_number(args[position]) or not math.isfinite(args[position]):
        return default
    return max(0, math.floor(args[position]))


def _step_arg(args, position: int) -> float:
    if len(args) <= position or not is_number(args[position]):
        return 1
    return args[position]


def SEQUENCE(*args: FormulaResult) -> List[float]:
    """
    Generate ``rows * cols`` numbers from start in increments of step.

    Missing or non-numeric arguments take their defaults (cols=1, start=1,
    step=1). An explicit 0 for start or step is kept as 0, not replaced
    by 1. The result is flattened row by row into one array.

    Args:
        args: rows, optional cols, optional start, optional step

    Returns:
        Flat list of numbers
    """
    rows = _count_arg(args, 0, 0)
    cols = _count_arg(args, 1, 1)
    start = _step_arg(args, 2)
    step = _step_arg(args, 3)
    return [start + i * step for i in range(rows * cols)]


def MAP(*args: FormulaResult, invoke: Optional[LambdaInvoker] = None) -> List[FormulaResult]:
    """
    Apply a LAMBDA to every element of an array.

    Args:
        args: array (a scalar is treated as a one-element array), LAMBDA
        invoke: Callback evaluating a lambda body for one argument

    Returns:
        List of per-element results
    """
    check_arity("MAP", args, 2, 2)
    items, fn = args
    if not isinstance(fn, LambdaValue):
        raise FormulaError("MAP second argument must be a LAMBDA")
    if invoke is None:
        raise FormulaError("MAP requires a lambda invoker")
    return [invoke(fn, item) for item in as_list(items)]


def INDEX(*args: FormulaResult) -> FormulaResult:
    """1-based element access; rows below 1 are clamped to 1, beyond the end give null."""
    check_arity("INDEX", args, 2)
    items = args[0]
    if not isinstance(items, list):
        return None
    row = round_half_up(args[1]) if is_number(args[1]) and math.isfinite(args[1]) else 0
    position = max(1, row) - 1
    if position >= len(items):
        return None
    return items[position]


def _xlookup_match(a: FormulaResult, b: FormulaResult) -> bool:
    if is_number(a) and is_number(b):
        return abs(a - b) < XLOOKUP_EPSILON
    if isinstance(a, (list, LambdaValue)) or isinstance(b, (list, LambdaValue)):
        return a is b
    return type(a) is type(b) and a == b


def XLOOKUP(*args: FormulaResult) -> FormulaResult:
    """
    Find lookup_value in lookup_array and return the matching return_array entry.

    Args:
        args: lookup_value, lookup_array, return_array, optional if_not_found,
            optional match_mode (ignored, exact only), optional search_mode
            (-1 scans from the end, anything else from the start)

    Returns:
        The matched value, or if_not_found (null by default)
    """
    check_arity("XLOOKUP", args, 3)
    lookup_value = args[0]
    lookup_array = as_list(args[1])
    return_array = as_list(args[2])
    if_not_found = args[3] if len(args) >= 4 else None
    search_mode = args[5] if len(args) >= 6 and is_number(args[5]) else 0

    positions = range(len(lookup_array))
    if search_mode == -1:
        positions = reversed(positions)

    for i in positions:
        if _xlookup_match(lookup_value, lookup_array[i]):
            if i < len(return_array) and return_array[i] is not None:
                return return_array[i]
            return if_not_found
    return if_not_found
