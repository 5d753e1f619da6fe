"""Default configuration values."""

from typing import Dict, Any


def get_default_config() -> Dict[str, Any]:
    """Get default signal-run configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "data": {
            "path": ".data/quarterly_metrics.csv",
            "tickers": None,
        },
        "evaluator": {
            "window_size": None,
            "max_depth": 64,
            "collect_trace": False,
            "verbose": False,
        },
        "signals": [
            {
                "name": "sales_momentum",
                "formula": 'IF(Sales[Q2] > Sales[Q1], "BUY", "SELL")',
            }
        ],
        "max_workers": 1,
    }
