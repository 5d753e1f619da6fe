"""Shared fixtures: a two-quarter window for one company."""

from typing import Any, Dict, List

import pytest

from quarter_signal.formulas import FormulaEvaluator


def make_records(ticker: str = "TEST") -> List[Dict[str, Any]]:
    """Sep 2024 (newest) and Jun 2024, in the camelCase shape a JSON API returns."""
    rows = [
        ("Sep 2024", "Sales", 50000),
        ("Jun 2024", "Sales", 40000),
        ("Sep 2024", "Sales Growth(YoY) %", 25),
        ("Jun 2024", "Sales Growth(YoY) %", 20),
        ("Sep 2024", "OPM %", 15),
        ("Jun 2024", "OPM %", 12),
        ("Sep 2024", "EPS in Rs", 10.5),
    ]
    return [
        {"ticker": ticker, "companyId": 1, "quarter": q, "metricName": name, "metricValue": value}
        for q, name, value in rows
    ]


@pytest.fixture
def records() -> List[Dict[str, Any]]:
    return make_records()


@pytest.fixture
def evaluator(records) -> FormulaEvaluator:
    return FormulaEvaluator(records)


@pytest.fixture
def traced(records) -> FormulaEvaluator:
    return FormulaEvaluator(records, collect_trace=True)
