"""Signal runner: evaluate formulas for one entity or a whole dataset.

- ``evaluate_signal`` wraps a single evaluation and tags the result type
- ``SignalRunner`` evaluates every configured signal for every ticker in a
  data file and collects the outcomes in a DataFrame
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel, Field

from quarter_signal.config import RunConfig, load_config, load_config_from_dict
from quarter_signal.config.schema import EvaluatorSettings
from quarter_signal.data.loader import group_records_by_ticker, load_quarterly_records
from quarter_signal.data.schema import QuarterlyRecord
from quarter_signal.formulas.evaluator import FormulaEvaluator
from quarter_signal.formulas.trace import FormulaTrace
from quarter_signal.formulas.values import NO_SIGNAL, FormulaResult, LambdaValue, is_number, to_text

logger = logging.getLogger(__name__)

ResultType = Literal["string", "number", "boolean", "array"]


class SignalResult(BaseModel):
    """Outcome of evaluating one formula for one entity."""

    result: Any = Field(description="Evaluated value ('No Signal' on faults or null)")
    result_type: ResultType = Field(description="string | number | boolean | array")
    used_quarters: List[str] = Field(default_factory=list, description="Quarters behind the result, newest first")
    trace: Optional[FormulaTrace] = Field(None, description="Evaluation trace when requested")


def result_type_of(value: FormulaResult) -> ResultType:
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, list):
        return "array"
    return "string"


def _to_signal_result(evaluator: FormulaEvaluator, value: FormulaResult) -> SignalResult:
    if isinstance(value, LambdaValue):
        value = to_text(value)
    return SignalResult(
        result=value,
        result_type=result_type_of(value),
        used_quarters=evaluator.used_quarters(),
        trace=evaluator.get_trace(),
    )


def evaluate_signal(
    records: List[Union[QuarterlyRecord, Dict[str, Any]]],
    formula: str,
    selected_quarters: Optional[List[str]] = None,
    settings: Optional[EvaluatorSettings] = None,
) -> SignalResult:
    """Evaluate a formula against one entity's records. Never raises.

    Args:
        records: The entity's quarterly records
        formula: Formula text, optionally prefixed with '='
        selected_quarters: Optional quarter labels restricting the window
        settings: Optional evaluator settings

    Returns:
        SignalResult with the value, its type and the quarters it used

    Example:
        >>> evaluate_signal(records, 'IF(Sales[Q2] > Sales[Q1], "BUY", "SELL")')
        SignalResult(result='BUY', result_type='string', used_quarters=['2024-Q3', '2024-Q2'], trace=None)
    """
    if not records:
        return SignalResult(result=NO_SIGNAL, result_type="string", used_quarters=[])

    try:
        evaluator = FormulaEvaluator(records, selected_quarters=selected_quarters, settings=settings)
    except (TypeError, ValueError) as e:
        # Invalid records (pydantic ValidationError is a ValueError)
        logger.warning(f"[evaluate_signal] Could not build metric table: {e}")
        return SignalResult(result=NO_SIGNAL, result_type="string", used_quarters=[])

    return _to_signal_result(evaluator, evaluator.evaluate(formula))


class SignalRunner:
    """Evaluate configured signal formulas for every ticker in a data file.

    Example:
        >>> runner = SignalRunner("signals.yaml")
        >>> df = runner.run()
        >>> print(df[["ticker", "signal", "result"]])
    """

    def __init__(
        self,
        config: Union[str, Path, Dict[str, Any], RunConfig],
        verbose: bool = True,
    ):
        """Initialize signal runner.

        Args:
            config: Configuration (file path, dict, or RunConfig object)
            verbose: Whether to print progress messages
        """
        self.verbose = verbose

        if isinstance(config, (str, Path)):
            self.config = load_config(config)
        elif isinstance(config, dict):
            self.config = load_config_from_dict(config)
        elif isinstance(config, RunConfig):
            self.config = config
        else:
            raise TypeError(f"Invalid config type: {type(config)}")

    def _print(self, message: str) -> None:
        """Print message if verbose."""
        if self.verbose:
            print(message)

    def evaluate_ticker(self, ticker: str, records: List[QuarterlyRecord]) -> List[Dict[str, Any]]:
        """Evaluate every configured signal for one ticker.

        One evaluator is built per distinct quarter selection and reused for
        all signals sharing it.

        Args:
            ticker: Ticker symbol
            records: The ticker's records

        Returns:
            One row dict per signal
        """
        evaluators: Dict[Tuple[str, ...], FormulaEvaluator] = {}
        rows = []

        for signal in self.config.signals:
            key = tuple(signal.selected_quarters or ())
            if key not in evaluators:
                evaluators[key] = FormulaEvaluator(
                    records,
                    selected_quarters=signal.selected_quarters,
                    settings=self.config.evaluator,
                )
            evaluator = evaluators[key]
            outcome = _to_signal_result(evaluator, evaluator.evaluate(signal.formula))
            rows.append(
                {
                    "ticker": ticker,
                    "signal": signal.name,
                    "formula": signal.formula,
                    "result": outcome.result,
                    "result_type": outcome.result_type,
                    "used_quarters": ",".join(outcome.used_quarters),
                }
            )

        return rows

    def run(self, output_path: Optional[Union[str, Path]] = None) -> pd.DataFrame:
        """Run every signal over every ticker.

        Args:
            output_path: Optional path to save results CSV

        Returns:
            DataFrame with columns ticker, signal, formula, result,
            result_type and used_quarters (one row per ticker and signal)
        """
        self._print("=" * 80)
        self._print("Running Signal Evaluation")
        self._print("=" * 80)
        self._print(f"\nData: {self.config.data.path}")
        self._print(f"Signals: {len(self.config.signals)}")
        for s in self.config.get_all_formulas():
            self._print(f"  - {s['name']}: {s['formula']}")

        records = load_quarterly_records(self.config.data.path, tickers=self.config.data.tickers)
        by_ticker = group_records_by_ticker(records)
        self._print(f"[INFO] Loaded {len(records)} records for {len(by_ticker)} tickers")

        results: Dict[str, List[Dict[str, Any]]] = {}
        max_workers = self.config.max_workers

        if max_workers > 1 and len(by_ticker) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                future_to_ticker = {
                    executor.submit(self.evaluate_ticker, ticker, ticker_records): ticker
                    for ticker, ticker_records in by_ticker.items()
                }
                for i, future in enumerate(as_completed(future_to_ticker), 1):
                    ticker = future_to_ticker[future]
                    results[ticker] = future.result()
                    logger.debug(f"[{i}/{len(by_ticker)}] {ticker}: done")
        else:
            for ticker, ticker_records in by_ticker.items():
                results[ticker] = self.evaluate_ticker(ticker, ticker_records)

        # Keep the data file's ticker order regardless of completion order
        rows = [row for ticker in by_ticker for row in results[ticker]]
        columns = ["ticker", "signal", "formula", "result", "result_type", "used_quarters"]
        results_df = pd.DataFrame(rows, columns=columns)

        if output_path:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            results_df.to_csv(output_path, index=False)
            self._print(f"\nResults saved to: {output_path}")

        self._print("\nSignal evaluation complete!")
        return results_df


def run_from_yaml(
    config_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """Run signal evaluation from a YAML configuration file.

    Args:
        config_path: Path to YAML configuration file
        output_path: Optional path to save results CSV
        verbose: Whether to print progress messages

    Returns:
        Results DataFrame

    Example:
        >>> df = run_from_yaml("signals.yaml", output_path="signals.csv")
    """
    runner = SignalRunner(config_path, verbose=verbose)
    return runner.run(output_path=output_path)
