"""Formula language: tokenizer, parse-and-evaluate engine, trace and validation."""

from quarter_signal.formulas.errors import (
    FormulaError,
    FormulaParseError,
    FormulaArityError,
    FormulaRecursionError,
)
from quarter_signal.formulas.values import NO_SIGNAL, LambdaValue, to_boolean, to_text
from quarter_signal.formulas.tokenizer import Token, TokenType, tokenize
from quarter_signal.formulas.trace import EvaluationStep, FormulaTrace, MetricSubstitution
from quarter_signal.formulas.evaluator import FormulaEvaluator
from quarter_signal.formulas.validator import validate_formula, validate_formulas

__all__ = [
    "FormulaError",
    "FormulaParseError",
    "FormulaArityError",
    "FormulaRecursionError",
    "NO_SIGNAL",
    "LambdaValue",
    "to_boolean",
    "to_text",
    "Token",
    "TokenType",
    "tokenize",
    "EvaluationStep",
    "FormulaTrace",
    "MetricSubstitution",
    "FormulaEvaluator",
    "validate_formula",
    "validate_formulas",
]
