"""Binary operator semantics for arithmetic and comparison."""

import math

from quarter_signal.formulas.values import EPSILON, FormulaResult, is_number, strict_equal

COMPARISON_OPERATORS = ("=", ">", "<", ">=", "<=", "<>", "!=")


def evaluate_arithmetic(left: FormulaResult, op: str, right: FormulaResult) -> FormulaResult:
    """Apply ``+ - * /`` to two numbers.

    Non-numeric operands (null included), division by zero and non-finite
    results all give None.
    """
    if not is_number(left) or not is_number(right):
        return None

    if op == "+":
        result = left + right
    elif op == "-":
        result = left - right
    elif op == "*":
        result = left * right
    elif op == "/":
        if right == 0:
            return None
        result = left / right
    else:
        raise ValueError(f"Unknown arithmetic operator: {op}")

    if isinstance(result, float) and not math.isfinite(result):
        return None
    return result


def evaluate_comparison(left: FormulaResult, op: str, right: FormulaResult) -> bool:
    """Compare two values.

    Numbers compare with an epsilon for ``=, <>, !=, >=, <=`` and strictly
    for ``<`` and ``>``. Other values only support equality, without type
    coercion. A null operand always gives False.
    """
    if left is None or right is None:
        return False

    if is_number(left) and is_number(right):
        diff = left - right
        if op == ">":
            return left > right
        if op == "<":
            return left < right
        if op == ">=":
            return left >= right - EPSILON
        if op == "<=":
            return left <= right + EPSILON
        if op == "=":
            return abs(diff) < EPSILON
        if op in ("<>", "!="):
            return abs(diff) >= EPSILON
        raise ValueError(f"Unknown comparison operator: {op}")

    if op == "=":
        return strict_equal(left, right)
    if op in ("<>", "!="):
        return not strict_equal(left, right)
    return False
