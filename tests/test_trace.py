"""Tests for the evaluation trace and metric substitution."""

import pytest

from quarter_signal.formulas import NO_SIGNAL, FormulaEvaluator, TokenType, tokenize
from quarter_signal.formulas.trace import TraceCollector


class TestFormulaWithSubstitutions:
    def test_signal_formula(self, traced) -> None:
        assert traced.evaluate('IF(Sales[Q2] > Sales[Q1], "BUY", "SELL")') == "BUY"
        assert traced.get_formula_with_substitutions() == 'IF(50000 > 40000, "BUY", "SELL")'

    def test_no_references_remain(self, traced) -> None:
        traced.evaluate("Sales[Q2] / Sales[Q1] + OPM[Q2] - SalesGrowthYoY[P1]")
        substituted = traced.get_formula_with_substitutions()
        tokens = tokenize(substituted)
        for current, following in zip(tokens, tokens[1:]):
            assert not (current.kind == TokenType.IDENTIFIER and following.kind == TokenType.LBRACKET)

    def test_longest_reference_first(self, records) -> None:
        evaluator = FormulaEvaluator(records, window_size=12, collect_trace=True)
        assert evaluator.evaluate("Sales[Q12] - Sales[Q1]") == NO_SIGNAL
        assert evaluator.get_formula_with_substitutions() == "50000 - null"

    def test_prefix_names_are_not_rewritten(self) -> None:
        collector = TraceCollector()
        collector.add_substitution("Sales[Q1]", "Sales", "Jun 2024", 1, 40000.0)
        collector.add_substitution("NetSales[Q1]", "NetSales", "Jun 2024", 1, 7.0)
        assert collector.formula_with_substitutions("NetSales[Q1] + Sales[Q1]") == "7 + 40000"

    def test_bare_identifiers_are_left_alone(self, traced) -> None:
        assert traced.evaluate("Sales - Sales[Q1]") == 0
        assert traced.get_formula_with_substitutions() == "Sales - 40000"

    def test_quoted_literals_are_left_alone(self, traced) -> None:
        assert traced.evaluate("IF(Sales[Q2] > 1, \"Sales[Q2]\", 'Sales[Q1]')") == "Sales[Q2]"
        assert traced.get_formula_with_substitutions() == "IF(50000 > 1, \"Sales[Q2]\", 'Sales[Q1]')"

    def test_reference_after_unterminated_quote_is_kept(self) -> None:
        collector = TraceCollector()
        collector.add_substitution("Sales[Q1]", "Sales", "Jun 2024", 1, 40000.0)
        assert collector.formula_with_substitutions('Sales[Q1] & "Sales[Q1]') == '40000 & "Sales[Q1]'

    def test_fractional_values(self, traced) -> None:
        traced.evaluate("OPM[Q2]")
        assert traced.get_formula_with_substitutions() == "0.15"


class TestTraceContents:
    def test_disabled_by_default(self, evaluator) -> None:
        evaluator.evaluate("Sales[Q2]")
        assert evaluator.get_trace() is None
        assert evaluator.get_formula_with_substitutions() is None

    def test_tracing_does_not_change_results(self, evaluator, traced) -> None:
        formulas = [
            'IF(Sales[Q2] > Sales[Q1], "BUY", "SELL")',
            "LET(a, Sales[Q2], b, Sales[Q1], (a - b) / b)",
            "MAP({1, 2}, LAMBDA(x, x * Sales[Q1]))",
            "ROUND(OPM[Q2] * 100, 1)",
        ]
        for formula in formulas:
            assert traced.evaluate(formula) == evaluator.evaluate(formula)

    def test_substitution_details(self, traced) -> None:
        traced.evaluate("Sales[Q2] - Sales[Q3]")
        trace = traced.get_trace()
        first, second = trace.substitutions
        assert first.reference == "Sales[Q2]"
        assert first.quarter == "Sep 2024"
        assert first.value == 50000
        assert second.quarter is None
        assert second.value is None
        assert trace.result == NO_SIGNAL

    def test_step_kinds(self, traced) -> None:
        traced.evaluate("ABS(-(Sales[Q2] - Sales[Q1])) > 1")
        kinds = {step.kind for step in traced.get_trace().steps}
        assert {"metric_lookup", "arithmetic", "unary", "function_call", "comparison"} <= kinds

    def test_used_quarters_and_timing(self, traced) -> None:
        traced.evaluate("Sales[Q1] * 2")
        trace = traced.get_trace()
        assert trace.used_quarters == ["Jun 2024"]
        assert trace.original_formula == "Sales[Q1] * 2"
        assert trace.evaluation_time_ms >= 0

    def test_trace_is_replaced_per_evaluation(self, traced) -> None:
        traced.evaluate("Sales[Q1]")
        traced.evaluate("1 + 1")
        trace = traced.get_trace()
        assert trace.substitutions == []
        assert trace.result == 2


class TestFinancingMarginFallback:
    @pytest.fixture
    def bank(self):
        records = [
            {"ticker": "BANK", "quarter": "Sep 2024", "metricName": "Financing Margin %", "metricValue": 30},
            {"ticker": "BANK", "quarter": "Sep 2024", "metricName": "Sales", "metricValue": 900},
        ]
        return FormulaEvaluator(records, collect_trace=True)

    def test_opm_falls_back(self, bank) -> None:
        assert bank.evaluate("OPM[Q1]") == pytest.approx(0.3)
        (substitution,) = bank.get_trace().substitutions
        assert substitution.used_fallback is True
        assert "fallback" in bank.get_trace().steps[0].description

    def test_other_metrics_do_not_fall_back(self, bank) -> None:
        assert bank.evaluate("EBITDA[Q1]") == NO_SIGNAL
        assert bank.get_trace().substitutions[0].used_fallback is False


class TestUsedQuarters:
    def test_referenced_quarters_in_window_order(self, evaluator) -> None:
        evaluator.evaluate("Sales[Q1] + Sales[Q2]")
        assert evaluator.used_quarters() == ["Sep 2024", "Jun 2024"]

    def test_falls_back_to_window(self, evaluator) -> None:
        evaluator.evaluate("1 + 2")
        assert evaluator.used_quarters() == ["Sep 2024", "Jun 2024"]

    def test_falls_back_to_selection(self, records) -> None:
        evaluator = FormulaEvaluator(records, selected_quarters=["Jun 2024"])
        evaluator.evaluate('"x"')
        assert evaluator.used_quarters() == ["Jun 2024"]
