"""Signal workflows.

This module provides the outer layer around the formula evaluator:
- Single-entity evaluation with result type tagging
- YAML-configured batch runs over a quarterly data file
"""

from quarter_signal.workflows.signal_runner import (
    SignalResult,
    SignalRunner,
    evaluate_signal,
    run_from_yaml,
)

__all__ = [
    "SignalResult",
    "SignalRunner",
    "evaluate_signal",
    "run_from_yaml",
]
