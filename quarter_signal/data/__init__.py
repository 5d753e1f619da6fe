"""Quarterly record handling: schema, loaders and the metric table builder."""

from quarter_signal.data.schema import QuarterlyRecord
from quarter_signal.data.metric_table import (
    MetricLookup,
    MetricTable,
    build_metric_table,
    normalize_key,
    normalize_value,
    sort_quarters,
)
from quarter_signal.data.loader import group_records_by_ticker, load_quarterly_records

__all__ = [
    "QuarterlyRecord",
    "MetricLookup",
    "MetricTable",
    "build_metric_table",
    "normalize_key",
    "normalize_value",
    "sort_quarters",
    "group_records_by_ticker",
    "load_quarterly_records",
]
