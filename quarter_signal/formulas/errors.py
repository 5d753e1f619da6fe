"""Exceptions raised while tokenizing, parsing and evaluating formulas.

None of these escape ``FormulaEvaluator.evaluate``; they are converted to the
``"No Signal"`` sentinel at that boundary.
"""


class FormulaError(Exception):
    """Base class for formula faults."""


class FormulaParseError(FormulaError):
    """Malformed token sequence (unexpected token, missing punctuation)."""

    def __init__(self, message: str, position: int = None):
        self.position = position
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)


class FormulaArityError(FormulaParseError):
    """A built-in function was called with the wrong number of arguments."""


class FormulaRecursionError(FormulaError):
    """Expression nesting or lambda invocation exceeded the configured depth."""
