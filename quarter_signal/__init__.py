"""Quarter Signal - Excel-like formulas over quarterly financial metrics."""

__version__ = "0.1.0"

# Formula evaluation and validation (imported first: functions depend on formulas.values)
from quarter_signal.formulas import (
    FormulaEvaluator,
    FormulaTrace,
    NO_SIGNAL,
    tokenize,
    validate_formula,
)

# Data utilities
from quarter_signal.data import QuarterlyRecord, MetricTable, build_metric_table, load_quarterly_records

# Configuration
from quarter_signal.config import EvaluatorSettings, RunConfig, load_config

# Workflow orchestration
from quarter_signal.workflows import SignalResult, SignalRunner, evaluate_signal, run_from_yaml

__all__ = [
    "__version__",
    # Formulas
    "FormulaEvaluator",
    "FormulaTrace",
    "NO_SIGNAL",
    "tokenize",
    "validate_formula",
    # Data
    "QuarterlyRecord",
    "MetricTable",
    "build_metric_table",
    "load_quarterly_records",
    # Config
    "EvaluatorSettings",
    "RunConfig",
    "load_config",
    # Workflows
    "SignalResult",
    "SignalRunner",
    "evaluate_signal",
    "run_from_yaml",
]
