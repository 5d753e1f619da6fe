"""Conditional aggregation over arrays of quarterly values."""

import math
from typing import Optional

from quarter_signal.formulas.values import FormulaResult, is_number
from quarter_signal.functions.helpers import as_list, check_arity, finite_or_none, matches_criteria


def SUMIF(*args: FormulaResult) -> Optional[float]:
    """
    Sum values whose paired range entry matches the criteria.

    Scalars are treated as one-element ranges. Only positions present in
    both the range and the sum range are considered.

    Args:
        args: range, criteria, optional sum range (defaults to range)

    Returns:
        Sum of the matching numeric values (0 if none match, None on overflow)

    Example:
        SUMIF({10, 20, 30}, ">15") -> 50
    """
    check_arity("SUMIF", args, 2, 3)
    value_range = as_list(args[0])
    criteria = args[1]
    sum_range = as_list(args[2]) if len(args) == 3 else value_range

    total = 0
    for candidate, value in zip(value_range, sum_range):
        if matches_criteria(candidate, criteria) and is_number(value) and not math.isnan(value):
            total += value
    return finite_or_none(total)


def COUNTIF(*args: FormulaResult) -> int:
    """Count range entries matching the criteria."""
    check_arity("COUNTIF", args, 2, 2)
    criteria = args[1]
    return sum(1 for value in as_list(args[0]) if matches_criteria(value, criteria))
