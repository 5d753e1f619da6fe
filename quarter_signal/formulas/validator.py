"""
Formula validation for quarterly signal formulas.

Validates formulas before they are run over a dataset to catch errors early.
"""

import logging
from typing import Any, Dict, List

from pyparsing import (
    FollowedBy,
    QuotedString,
    Regex,
    Suppress,
    Word,
    alphanums,
    alphas,
    original_text_for,
)

from quarter_signal.data.metric_table import MetricTable
from quarter_signal.formulas.errors import FormulaError
from quarter_signal.formulas.parser import EvaluationContext, FormulaParser
from quarter_signal.formulas.tokenizer import tokenize
from quarter_signal.formulas.trace import TraceCollector
from quarter_signal.functions import FUNCTION_NAMES

logger = logging.getLogger(__name__)

_identifier = Word(alphas + "_", alphanums + "_")
_quoted = (QuotedString('"') | QuotedString("'")).set_name("string")

# Name[Q12], Name[P1], Name[3]
METRIC_REFERENCE = original_text_for(
    _identifier + Suppress("[") + Regex(r"[QqPp]?\d+") + Suppress("]")
).set_name("metric_reference")("reference")

FUNCTION_CALL = (_identifier("function") + FollowedBy("(")).set_name("function_call")

# Quoted strings and plain words are matched only so their contents are skipped
_SCANNER = _quoted | METRIC_REFERENCE | FUNCTION_CALL | _identifier


def _strip_formula(formula) -> str:
    text = "" if formula is None else str(formula).strip()
    return text[1:] if text.startswith("=") else text


def extract_metric_references(formula: str) -> List[str]:
    """Extract unique metric references (e.g. 'Sales[Q12]') in order of appearance."""
    references = []
    for tokens, _start, _end in _SCANNER.scan_string(_strip_formula(formula)):
        if "reference" in tokens:
            references.append(tokens["reference"])
    return list(dict.fromkeys(references))


def extract_functions(formula: str) -> List[str]:
    """Extract unique called function names (uppercased), sorted."""
    functions = set()
    for tokens, _start, _end in _SCANNER.scan_string(_strip_formula(formula)):
        if "function" in tokens:
            functions.add(tokens["function"].upper())
    return sorted(functions)


def _check_syntax(text: str) -> None:
    """Run the formula against an empty window so syntax and arity faults surface."""
    context = EvaluationContext(
        formula=text,
        tokens=tokenize(text),
        table=MetricTable({}, []),
        trace=TraceCollector(enabled=False),
    )
    FormulaParser(context).parse()


def validate_formula(formula: str) -> Dict[str, Any]:
    """
    Validate a signal formula.

    Args:
        formula: Formula to validate (e.g., 'IF(Sales[Q12] > Sales[Q11], "BUY", "SELL")')

    Returns:
        Dict with validation results:
        {
            "valid": bool,
            "formula": str,
            "error": str or None,
            "metric_references": list (metric references used in the formula),
            "functions": list (known functions used in the formula),
            "unknown_functions": list (called names that are not built-in),
        }
    """
    result = {
        "valid": False,
        "formula": formula,
        "error": None,
        "metric_references": [],
        "functions": [],
        "unknown_functions": [],
    }

    text = _strip_formula(formula)
    if not text:
        result["error"] = "Formula is empty"
        return result

    try:
        called = extract_functions(text)
        result["metric_references"] = extract_metric_references(text)
        result["functions"] = [f for f in called if f in FUNCTION_NAMES]
        result["unknown_functions"] = [f for f in called if f not in FUNCTION_NAMES]

        if result["unknown_functions"]:
            result["error"] = f"Unknown function(s): {', '.join(result['unknown_functions'])}"
            return result

        _check_syntax(text)
        result["valid"] = True

    except (FormulaError, RecursionError, ArithmeticError, ValueError) as e:
        result["error"] = str(e)

    return result


def validate_formulas(formulas: List[Dict[str, str]]) -> Dict[str, Any]:
    """
    Validate multiple named formulas.

    Args:
        formulas: List of {"name": "...", "formula": "..."} dicts

    Returns:
        Dict with overall validation results:
        {
            "valid": bool (all formulas valid),
            "results": list of validation results per formula,
            "errors": list of error messages,
        }
    """
    results = []
    errors = []

    for formula_dict in formulas:
        name = formula_dict.get("name", "unknown")
        validation = validate_formula(formula_dict.get("formula", ""))
        validation["name"] = name
        results.append(validation)

        if not validation["valid"]:
            errors.append(f"{name}: {validation['error']}")
            logger.debug(f"[validate_formulas] {name} invalid: {validation['error']}")

    return {
        "valid": len(errors) == 0,
        "results": results,
        "errors": errors,
    }
