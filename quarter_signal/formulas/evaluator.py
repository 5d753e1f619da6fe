"""Formula evaluator for quarterly metric records.

This module is the public entry point of the formula language. It builds the
metric table once per entity and evaluates any number of formulas against it.

Example:
    >>> from quarter_signal.formulas.evaluator import FormulaEvaluator
    >>>
    >>> evaluator = FormulaEvaluator(records, collect_trace=True)
    >>> evaluator.evaluate('IF(Sales[Q2] > Sales[Q1], "BUY", "SELL")')
    'BUY'
    >>> evaluator.get_trace().formula_with_substitutions
    'IF(50000 > 40000, "BUY", "SELL")'
"""

import logging
import time
from typing import Any, Iterable, List, Mapping, Optional, Union

from quarter_signal.config.schema import EvaluatorSettings
from quarter_signal.data.metric_table import MetricTable, build_metric_table
from quarter_signal.data.schema import QuarterlyRecord
from quarter_signal.formulas.parser import EvaluationContext, FormulaParser
from quarter_signal.formulas.tokenizer import tokenize
from quarter_signal.formulas.trace import FormulaTrace, TraceCollector
from quarter_signal.formulas.values import NO_SIGNAL, FormulaResult

logger = logging.getLogger(__name__)


class FormulaEvaluator:
    """Evaluates formulas against one entity's quarterly window.

    The metric table is built at construction and never changes. Tokens,
    scopes and the trace are created fresh for every ``evaluate`` call, so
    an instance can be reused for many formulas.

    Args:
        records: Quarterly records (QuarterlyRecord models or dicts) of one entity
        selected_quarters: Optional quarter labels restricting the window
        settings: Evaluator settings (window size, depth guard, trace, verbosity)
        **overrides: Individual settings overriding ``settings``,
            e.g. ``collect_trace=True`` or ``window_size=12``
    """

    def __init__(
        self,
        records: Iterable[Union[QuarterlyRecord, Mapping[str, Any]]],
        selected_quarters: Optional[List[str]] = None,
        settings: Optional[EvaluatorSettings] = None,
        **overrides,
    ):
        settings = settings or EvaluatorSettings()
        if overrides:
            settings = EvaluatorSettings(**{**settings.model_dump(), **overrides})
        self.settings = settings
        self.selected_quarters = list(selected_quarters) if selected_quarters else None
        self.table: MetricTable = build_metric_table(
            records, selected_quarters=self.selected_quarters, window_size=settings.window_size
        )
        self._trace: Optional[FormulaTrace] = None
        self._referenced_quarters: List[str] = []

    @property
    def quarters(self) -> List[str]:
        """Quarter labels in the window, newest first."""
        return self.table.quarters

    @property
    def referenced_quarters(self) -> List[str]:
        """Quarters resolved by the last evaluation, newest first."""
        return list(self._referenced_quarters)

    def evaluate(self, formula: str) -> FormulaResult:
        """Evaluate a formula. Never raises.

        Faults (malformed formulas, arity errors, excessive nesting) and a
        null result are both reported as "No Signal".

        Args:
            formula: Formula text, optionally prefixed with '='

        Returns:
            String, number, boolean, array or LAMBDA value
        """
        started = time.perf_counter()
        text = "" if formula is None else str(formula).strip()
        if text.startswith("="):
            text = text[1:]

        collector = TraceCollector(enabled=self.settings.collect_trace)
        context = EvaluationContext(
            formula=text,
            tokens=[],
            table=self.table,
            trace=collector,
            max_depth=self.settings.max_depth,
            verbose=self.settings.verbose,
        )

        try:
            context.tokens = tokenize(text)
            result = FormulaParser(context).parse()
        except Exception as e:
            logger.warning(f"[FormulaEvaluator] Could not evaluate '{text}': {e}")
            result = None

        if result is None:
            result = NO_SIGNAL

        referenced = set(context.referenced_quarters)
        self._referenced_quarters = [q for q in self.table.quarters if q in referenced]

        if self.settings.collect_trace:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self._trace = collector.build(text, result, self.used_quarters(), elapsed_ms)

        return result

    def used_quarters(self) -> List[str]:
        """Quarters behind the last result.

        The referenced quarters if any were resolved, otherwise the caller's
        selection, otherwise the whole window.
        """
        if self._referenced_quarters:
            return list(self._referenced_quarters)
        if self.selected_quarters:
            return [q for q in self.table.quarters if q in set(self.selected_quarters)]
        return list(self.table.quarters)

    def get_trace(self) -> Optional[FormulaTrace]:
        """Trace of the last evaluation, or None when tracing is disabled."""
        if not self.settings.collect_trace:
            return None
        return self._trace

    def get_formula_with_substitutions(self) -> Optional[str]:
        """Last formula with every metric reference replaced by its value."""
        trace = self.get_trace()
        return trace.formula_with_substitutions if trace is not None else None
