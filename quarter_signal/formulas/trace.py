"""Optional evaluation trace: metric substitutions and evaluation steps.

The collector only observes. Whether it is enabled never changes the value
a formula evaluates to.
"""

import re
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from quarter_signal.formulas.values import FormulaResult, to_text

# A quoted literal; an unterminated quote runs to the end of the formula
_QUOTED = re.compile(r"(\"[^\"]*\"?|'[^']*'?)")


class MetricSubstitution(BaseModel):
    """One resolved metric reference."""

    reference: str = Field(description="Reference as written in the formula, e.g. 'Sales[Q12]'")
    metric_name: str = Field(description="Metric name looked up")
    quarter: Optional[str] = Field(None, description="Resolved quarter label (None if out of window)")
    quarter_index: int = Field(description="Requested Q<k> index")
    value: Optional[float] = Field(None, description="Resolved decimal value")
    used_fallback: bool = Field(False, description="Financing Margin substituted for a missing OPM")


class EvaluationStep(BaseModel):
    """One metric lookup, function call, arithmetic, comparison or unary operation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: str = Field(description="metric_lookup | function_call | arithmetic | comparison | unary")
    description: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)
    timestamp_ms: float = Field(description="Wall-clock time of the step in epoch milliseconds")


class FormulaTrace(BaseModel):
    """Everything recorded while evaluating one formula."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    original_formula: str
    formula_with_substitutions: str
    substitutions: List[MetricSubstitution] = Field(default_factory=list)
    steps: List[EvaluationStep] = Field(default_factory=list)
    result: Any = None
    used_quarters: List[str] = Field(default_factory=list)
    evaluation_time_ms: float = 0.0


class TraceCollector:
    """Accumulates substitutions and steps for a single evaluation."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.substitutions: List[MetricSubstitution] = []
        self.steps: List[EvaluationStep] = []

    def add_step(
        self,
        kind: str,
        description: str,
        input: Optional[Dict[str, Any]] = None,
        output: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not self.enabled:
            return
        self.steps.append(
            EvaluationStep(
                kind=kind,
                description=description,
                input=input or {},
                output=output or {},
                timestamp_ms=time.time() * 1000,
            )
        )

    def add_substitution(
        self,
        reference: str,
        metric_name: str,
        quarter: Optional[str],
        quarter_index: int,
        value: Optional[float],
        used_fallback: bool = False,
    ) -> None:
        if not self.enabled:
            return
        self.substitutions.append(
            MetricSubstitution(
                reference=reference,
                metric_name=metric_name,
                quarter=quarter,
                quarter_index=quarter_index,
                value=value,
                used_fallback=used_fallback,
            )
        )

    def formula_with_substitutions(self, formula: str) -> str:
        """Replace every bracketed metric reference in the formula with its value.

        Longer references are substituted first so 'Sales[Q1]' never
        rewrites part of 'Sales[Q12]' or 'NetSales[Q1]'. Text inside
        quoted string literals is kept as written.

        Args:
            formula: Formula text the references were sliced from

        Returns:
            Formula with references replaced by their rendered values
        """
        values: Dict[str, Optional[float]] = {}
        for sub in self.substitutions:
            if "[" in sub.reference:
                values.setdefault(sub.reference, sub.value)

        # Odd positions are quoted string literals, which are left untouched
        segments = _QUOTED.split(formula)
        for reference in sorted(values, key=len, reverse=True):
            pattern = re.compile(r"(?<![A-Za-z0-9_])" + re.escape(reference))
            replacement = to_text(values[reference])
            for i in range(0, len(segments), 2):
                segments[i] = pattern.sub(lambda _m, r=replacement: r, segments[i])
        return "".join(segments)

    def build(
        self,
        formula: str,
        result: FormulaResult,
        used_quarters: List[str],
        evaluation_time_ms: float,
    ) -> FormulaTrace:
        return FormulaTrace(
            original_formula=formula,
            formula_with_substitutions=self.formula_with_substitutions(formula),
            substitutions=list(self.substitutions),
            steps=list(self.steps),
            result=result,
            used_quarters=used_quarters,
            evaluation_time_ms=evaluation_time_ms,
        )
