"""Text functions."""

from quarter_signal.formulas.values import FormulaResult, to_text
from quarter_signal.functions.helpers import check_arity


def TRIM(*args: FormulaResult) -> str:
    """Strip surrounding whitespace; null becomes the empty string."""
    check_arity("TRIM", args, 1, 1)
    if args[0] is None:
        return ""
    return to_text(args[0]).strip()


def CONCAT(*args: FormulaResult) -> str:
    """Join all arguments as text; null arguments contribute nothing."""
    return "".join("" if a is None else to_text(a) for a in args)


CONCATENATE = CONCAT
