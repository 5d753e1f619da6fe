"""Logical functions: IF, AND, OR, NOT, ISNUMBER, ISBLANK."""

import math

from quarter_signal.formulas.values import NO_SIGNAL, FormulaResult, is_number, to_boolean
from quarter_signal.functions.helpers import check_arity


def IF(*args: FormulaResult) -> FormulaResult:
    """
    Return ``then`` if the condition is truthy, otherwise ``else``.

    Never returns null: a missing else branch, or a branch that resolves to
    null, yields "No Signal".

    Args:
        args: condition, then value, optional else value

    Returns:
        The selected branch value
    """
    check_arity("IF", args, 2)
    if to_boolean(args[0]):
        result = args[1]
    else:
        result = args[2] if len(args) > 2 else NO_SIGNAL
    return NO_SIGNAL if result is None else result


def AND(*args: FormulaResult) -> bool:
    """True if every argument is truthy (all arguments were already evaluated)."""
    return all(to_boolean(a) for a in args)


def OR(*args: FormulaResult) -> bool:
    """True if any argument is truthy."""
    return any(to_boolean(a) for a in args)


def NOT(*args: FormulaResult) -> bool:
    check_arity("NOT", args, 1, 1)
    return not to_boolean(args[0])


def ISNUMBER(*args: FormulaResult) -> bool:
    """True for numeric values other than NaN (booleans are not numbers)."""
    check_arity("ISNUMBER", args, 1, 1)
    value = args[0]
    return is_number(value) and not math.isnan(value)


def ISBLANK(*args: FormulaResult) -> bool:
    """True for null or the empty string."""
    check_arity("ISBLANK", args, 1, 1)
    return args[0] is None or args[0] == ""
