"""Null-intercepting functions: IFERROR, NOTNULL, COALESCE."""

import math

from quarter_signal.formulas.values import FormulaResult, is_number
from quarter_signal.functions.helpers import check_arity


def IFERROR(*args: FormulaResult) -> FormulaResult:
    """Return the fallback when the value is null or NaN."""
    check_arity("IFERROR", args, 2, 2)
    value, fallback = args
    if value is None or (is_number(value) and math.isnan(value)):
        return fallback
    return value


def NOTNULL(*args: FormulaResult) -> FormulaResult:
    """Return the value, or the optional default (null if absent) when it is null."""
    check_arity("NOTNULL", args, 1)
    if args[0] is not None:
        return args[0]
    return args[1] if len(args) > 1 else None


def COALESCE(*args: FormulaResult) -> FormulaResult:
    check_arity("COALESCE", args, 1)
    for arg in args:
        if arg is not None:
            return arg
    return None
