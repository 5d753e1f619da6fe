"""Command-line interface for quarter-signal."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional
import fire

from quarter_signal.workflows import evaluate_signal, run_from_yaml
from quarter_signal.config import RunConfig, EvaluatorSettings, load_config, save_config, get_default_config
from quarter_signal.data import group_records_by_ticker, load_quarterly_records
from quarter_signal.formulas import to_text, validate_formula


def _split_quarters(quarters) -> Optional[list]:
    """Accept 'Mar 2024,Dec 2023' or a list/tuple parsed by fire."""
    if not quarters:
        return None
    if isinstance(quarters, (list, tuple)):
        return [str(q).strip() for q in quarters]
    return [q.strip() for q in str(quarters).split(",") if q.strip()]


class QuarterSignalCLI:
    """Command-line interface for quarterly signal formulas."""

    def evaluate(
        self,
        data: str,
        ticker: str,
        formula: str,
        quarters: Optional[str] = None,
        trace: bool = False,
        window_size: Optional[int] = None,
        verbose: bool = False,
    ) -> None:
        """Evaluate one formula for one ticker.

        Args:
            data: Path to long-format quarterly CSV/JSON file
            ticker: Ticker to evaluate
            formula: Formula text
            quarters: Optional comma-separated quarter labels restricting the window
            trace: Print the evaluation trace
            window_size: Optional base for Q<k> resolution
            verbose: Log every metric lookup

        Example:
            quarter-signal evaluate --data quarters.csv --ticker TCS --formula 'IF(Sales[Q2] > Sales[Q1], "BUY", "SELL")'
        """
        if verbose:
            logging.getLogger("quarter_signal").setLevel(logging.INFO)

        try:
            records = load_quarterly_records(data, tickers=[str(ticker)])
            by_ticker = group_records_by_ticker(records)
            if str(ticker) not in by_ticker:
                print(f"✗ No records for ticker: {ticker}", file=sys.stderr)
                sys.exit(1)

            settings = EvaluatorSettings(window_size=window_size, collect_trace=trace, verbose=verbose)
            outcome = evaluate_signal(
                by_ticker[str(ticker)],
                str(formula),
                selected_quarters=_split_quarters(quarters),
                settings=settings,
            )

            print(f"✓ {ticker}: {to_text(outcome.result)} ({outcome.result_type})")
            print(f"  Quarters: {', '.join(outcome.used_quarters) or '-'}")

            if outcome.trace is not None:
                print(f"  Substituted: {outcome.trace.formula_with_substitutions}")
                for sub in outcome.trace.substitutions:
                    fallback = " [Financing Margin fallback]" if sub.used_fallback else ""
                    print(f"    {sub.reference} -> {sub.quarter or 'out of window'}: {to_text(sub.value)}{fallback}")
                print(f"  Steps: {len(outcome.trace.steps)}, {outcome.trace.evaluation_time_ms:.2f} ms")

        except Exception as e:
            print(f"\n✗ Error: {e}", file=sys.stderr)
            sys.exit(1)

    def validate(self, formula: str, as_json: bool = False) -> None:
        """Validate a formula without evaluating it against data.

        Args:
            formula: Formula text
            as_json: Print the full validation result as JSON

        Example:
            quarter-signal validate --formula 'MAP({1,2,3}, LAMBDA(x, x*2))'
        """
        result = validate_formula(str(formula))

        if as_json:
            print(json.dumps(result, indent=2))
        elif result["valid"]:
            print(f"✓ Formula is valid: {formula}")
            print(f"  Metric references: {', '.join(result['metric_references']) or '-'}")
            print(f"  Functions: {', '.join(result['functions']) or '-'}")

        if not result["valid"]:
            if not as_json:
                print(f"✗ Formula is invalid: {result['error']}", file=sys.stderr)
            sys.exit(1)

    def run(
        self,
        config: str,
        output: Optional[str] = None,
        verbose: bool = True,
    ) -> None:
        """Run all configured signals from YAML configuration.

        Args:
            config: Path to YAML configuration file
            output: Optional path to save results CSV
            verbose: Whether to print progress messages (default: True)

        Example:
            quarter-signal run --config signals.yaml --output signals.csv
        """
        try:
            results = run_from_yaml(config, output_path=output, verbose=verbose)

            if verbose:
                print("\n✓ Signal run completed successfully!")
                if not results.empty:
                    counts = results.assign(value=results["result"].map(to_text)).groupby(["signal", "value"]).size()
                    for (signal, value), count in counts.items():
                        print(f"  {signal}: {value} x{count}")

        except Exception as e:
            print(f"\n✗ Error: {e}", file=sys.stderr)
            sys.exit(1)

    def init(self, output: str = "signals.yaml", force: bool = False) -> None:
        """Initialize a new configuration file with defaults.

        Args:
            output: Output path for configuration file (default: signals.yaml)
            force: Overwrite existing file (default: False)

        Example:
            quarter-signal init --output my_signals.yaml
        """
        output_path = Path(output)

        if output_path.exists() and not force:
            print(f"✗ File already exists: {output}", file=sys.stderr)
            print("  Use --force to overwrite", file=sys.stderr)
            sys.exit(1)

        try:
            config = RunConfig(**get_default_config())
            save_config(config, output_path)

            print(f"✓ Created configuration file: {output}")
            print(f"  Edit the file and run: quarter-signal run --config {output}")

        except Exception as e:
            print(f"✗ Error creating configuration: {e}", file=sys.stderr)
            sys.exit(1)

    def check(self, config: str) -> None:
        """Validate a YAML configuration file and every formula in it.

        Args:
            config: Path to YAML configuration file

        Example:
            quarter-signal check --config signals.yaml
        """
        try:
            cfg = load_config(config)
        except Exception as e:
            print(f"✗ Configuration is invalid: {e}", file=sys.stderr)
            sys.exit(1)

        print(f"✓ Configuration is valid: {config}")
        print(f"  Data: {cfg.data.path}")
        print(f"  Signals: {len(cfg.signals)}")

        failed = False
        for signal in cfg.signals:
            result = validate_formula(signal.formula)
            if result["valid"]:
                print(f"  ✓ {signal.name}")
            else:
                failed = True
                print(f"  ✗ {signal.name}: {result['error']}", file=sys.stderr)

        if failed:
            sys.exit(1)

    def version(self) -> None:
        """Show quarter-signal version.

        Example:
            quarter-signal version
        """
        try:
            import importlib.metadata
            version = importlib.metadata.version("quarter-signal")
            print(f"quarter-signal version {version}")
        except importlib.metadata.PackageNotFoundError:
            print("quarter-signal (version unknown)")


def main():
    """Main entry point for CLI."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    fire.Fire(QuarterSignalCLI)


if __name__ == "__main__":
    main()
