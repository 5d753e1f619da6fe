from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from pydantic import ValidationError

from quarter_signal.data.schema import QuarterlyRecord

logger = logging.getLogger(__name__)


# Column aliases accepted in CSV/JSON exports -> model field names
COLUMN_ALIASES = {
    "companyId": "company_id",
    "metricName": "metric_name",
    "metricValue": "metric_value",
    "scrapeTimestamp": "scrape_timestamp",
}

REQUIRED_COLUMNS = ("ticker", "quarter", "metric_name")


def load_quarterly_frame(path: Path | str) -> pd.DataFrame:
    """Load a long-format quarterly data file (CSV or JSON) into a DataFrame.

    Args:
        path: Path to a .csv or .json file with one row per ticker-quarter-metric

    Returns:
        DataFrame with snake_case column names
    """
    path = Path(path).expanduser().resolve()

    if not path.exists():
        raise FileNotFoundError(f"Data file '{path}' does not exist.")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        # Values are normalized by the metric table builder
        df = pd.read_csv(path, dtype=str)
    elif suffix == ".json":
        df = pd.read_json(path, orient="records", dtype=False)
    else:
        raise ValueError(f"Unsupported data file type: {suffix}. Use .csv or .json.")

    df = df.rename(columns=COLUMN_ALIASES)
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(
            f"Data file must contain columns {list(REQUIRED_COLUMNS)}. "
            f"Missing: {missing}. Found columns: {df.columns.tolist()}"
        )

    return df


def records_from_frame(df: pd.DataFrame, tickers: Optional[List[str]] = None) -> List[QuarterlyRecord]:
    """Convert a long-format DataFrame into QuarterlyRecord models.

    Rows that do not validate (missing ticker, quarter or metric name) are
    skipped and logged with their row index.
    """
    if tickers:
        df = df[df["ticker"].isin(tickers)]

    known = [c for c in ("ticker", "company_id", "quarter", "metric_name", "metric_value", "scrape_timestamp") if c in df.columns]
    # NaN cells become None so they validate as missing values
    clean = df[known].astype(object).where(pd.notna(df[known]), None)
    records = []
    for index, row in zip(clean.index, clean.to_dict(orient="records")):
        try:
            records.append(QuarterlyRecord.model_validate(row))
        except ValidationError as e:
            logger.warning(f"[records_from_frame] Skipping row {index}: {e.error_count()} validation error(s)")
    return records


def load_quarterly_records(path: Path | str, tickers: Optional[List[str]] = None) -> List[QuarterlyRecord]:
    """Load quarterly records from a CSV/JSON file, optionally filtered to tickers."""
    return records_from_frame(load_quarterly_frame(path), tickers=tickers)


def group_records_by_ticker(records: List[QuarterlyRecord]) -> Dict[str, List[QuarterlyRecord]]:
    """Group records per ticker, preserving first-seen ticker order."""
    grouped: Dict[str, List[QuarterlyRecord]] = defaultdict(list)
    for record in records:
        grouped[record.ticker].append(record)
    return dict(grouped)
