"""Built-in function library for quarterly signal formulas."""

# Logical
from quarter_signal.functions.logical import IF, AND, OR, NOT, ISNUMBER, ISBLANK

# Math
from quarter_signal.functions.math_ops import (
    MIN,
    MAX,
    ABS,
    SUM,
    AVERAGE,
    COUNT,
    ROUND,
    ROUNDUP,
    ROUNDDOWN,
    SQRT,
    POWER,
    LOG,
    CEILING,
    FLOOR,
)

# Text
from quarter_signal.functions.text import TRIM, CONCAT, CONCATENATE

# Error handling
from quarter_signal.functions.error_handling import IFERROR, NOTNULL, COALESCE

# Conditional aggregation
from quarter_signal.functions.conditional import SUMIF, COUNTIF

# Arrays and lambdas
from quarter_signal.functions.arrays import CHOOSE, SEQUENCE, MAP, INDEX, XLOOKUP

# Name -> implementation used by the evaluator
FUNCTION_REGISTRY = {
    "IF": IF,
    "AND": AND,
    "OR": OR,
    "NOT": NOT,
    "ISNUMBER": ISNUMBER,
    "ISBLANK": ISBLANK,
    "MIN": MIN,
    "MAX": MAX,
    "ABS": ABS,
    "SUM": SUM,
    "AVERAGE": AVERAGE,
    "COUNT": COUNT,
    "ROUND": ROUND,
    "ROUNDUP": ROUNDUP,
    "ROUNDDOWN": ROUNDDOWN,
    "SQRT": SQRT,
    "POWER": POWER,
    "LOG": LOG,
    "CEILING": CEILING,
    "FLOOR": FLOOR,
    "TRIM": TRIM,
    "CONCAT": CONCAT,
    "CONCATENATE": CONCATENATE,
    "IFERROR": IFERROR,
    "NOTNULL": NOTNULL,
    "COALESCE": COALESCE,
    "SUMIF": SUMIF,
    "COUNTIF": COUNTIF,
    "CHOOSE": CHOOSE,
    "SEQUENCE": SEQUENCE,
    "MAP": MAP,
    "INDEX": INDEX,
    "XLOOKUP": XLOOKUP,
}

# Functions that receive the evaluator's lambda invoker
LAMBDA_FUNCTIONS = {"MAP"}

# Forms handled by the parser itself rather than dispatched with evaluated arguments
SPECIAL_FORMS = {"LET", "LAMBDA"}

FUNCTION_NAMES = frozenset(FUNCTION_REGISTRY) | SPECIAL_FORMS

__all__ = [
    # Logical
    "IF",
    "AND",
    "OR",
    "NOT",
    "ISNUMBER",
    "ISBLANK",
    # Math
    "MIN",
    "MAX",
    "ABS",
    "SUM",
    "AVERAGE",
    "COUNT",
    "ROUND",
    "ROUNDUP",
    "ROUNDDOWN",
    "SQRT",
    "POWER",
    "LOG",
    "CEILING",
    "FLOOR",
    # Text
    "TRIM",
    "CONCAT",
    "CONCATENATE",
    # Error handling
    "IFERROR",
    "NOTNULL",
    "COALESCE",
    # Conditional
    "SUMIF",
    "COUNTIF",
    # Arrays
    "CHOOSE",
    "SEQUENCE",
    "MAP",
    "INDEX",
    "XLOOKUP",
    # Registry
    "FUNCTION_REGISTRY",
    "FUNCTION_NAMES",
    "LAMBDA_FUNCTIONS",
    "SPECIAL_FORMS",
]
