"""Quarter-indexed metric table built from long-format quarterly records.

The table maps ``quarter -> metric key -> decimal value`` and knows the
ordering of its quarter window (newest first), which is what metric
references such as ``Sales[Q12]`` are resolved against.

Example:
    >>> table = build_metric_table(records)
    >>> table.quarters
    ['Dec 2024', 'Sep 2024', 'Jun 2024']
    >>> table.resolve("Sales", 3).value
    50000.0
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from quarter_signal.data.schema import QuarterlyRecord

logger = logging.getLogger(__name__)

# Substrings in a metric name that mark its values as stored percentages
PERCENTAGE_NAME_MARKERS = ("%", "Growth", "YoY", "QoQ")
PERCENTAGE_NAME_MARKERS_CI = ("opm", "margin")

# Normalized fragments identifying operating-margin metrics
OPM_MARKERS = ("opm", "operatingprofitmargin", "operatingmargin")

FINANCING_MARGIN_VARIATIONS = [
    "Financing Margin %",
    "Financing Margin",
    "financingmargin",
    "financing_margin",
    "FinancingMargin",
    "financing margin %",
    "financing margin",
]

_QUARTER_FORMATS = ("%b %Y", "%B %Y", "%Y-%m-%d")
_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def normalize_key(name: str) -> str:
    """Lowercase a metric name and strip '%', parentheses and whitespace."""
    return re.sub(r"\s+", "", re.sub(r"[()%]", "", name.lower()))


def is_percentage_metric(metric_name: Optional[str]) -> bool:
    """Name-based heuristic deciding whether stored values are percentages."""
    if not metric_name:
        return False
    if any(marker in metric_name for marker in PERCENTAGE_NAME_MARKERS):
        return True
    lowered = metric_name.lower()
    return any(marker in lowered for marker in PERCENTAGE_NAME_MARKERS_CI)


def is_opm_metric(metric_name: str) -> bool:
    """Check whether a metric name refers to an operating profit margin."""
    normalized = normalize_key(metric_name)
    return any(marker in normalized for marker in OPM_MARKERS)


def _parse_number(text: str) -> Optional[float]:
    """Parse the leading numeric part of a string ('12.5 Cr' -> 12.5)."""
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return None
    return float(match.group(0))


def normalize_value(raw: Union[str, float, int, None], metric_name: Optional[str] = None) -> Optional[float]:
    """Convert a raw metric value into a decimal.

    Values whose text carried a '%' or whose metric name looks like a
    percentage metric are divided by 100 (stored 20 for 20% -> 0.2).
    Anything that is not numeric becomes None.

    Args:
        raw: Value as stored (string, number or None)
        metric_name: Metric name used by the percentage heuristic

    Returns:
        Decimal value or None
    """
    if raw is None:
        return None

    was_percentage_text = False
    if isinstance(raw, str):
        was_percentage_text = "%" in raw
        number = _parse_number(raw.replace("%", "", 1).strip())
    else:
        try:
            number = float(raw)
        except (TypeError, ValueError):
            number = None

    if number is None or math.isnan(number):
        return None

    if was_percentage_text or is_percentage_metric(metric_name):
        return number / 100

    return number


def parse_quarter_label(label: str) -> Optional[pd.Timestamp]:
    """Parse a quarter label ('Mar 2024', '2024-03-31', ...) into a timestamp."""
    text = str(label).strip()
    for fmt in _QUARTER_FORMATS:
        parsed = pd.to_datetime(text, format=fmt, errors="coerce")
        if not pd.isna(parsed):
            return parsed
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed


def sort_quarters(labels: Iterable[str]) -> List[str]:
    """Deduplicate quarter labels and sort them newest first.

    Sorts by parsed date when every label parses, otherwise falls back to
    descending lexicographic order.
    """
    unique = list(dict.fromkeys(labels))
    parsed = {label: parse_quarter_label(label) for label in unique}

    if unique and all(ts is not None for ts in parsed.values()):
        return sorted(unique, key=lambda q: (parsed[q], q), reverse=True)

    return sorted(unique, reverse=True)


@dataclass(frozen=True)
class MetricLookup:
    """Outcome of resolving one metric reference against the window."""

    value: Optional[float]
    quarter: Optional[str]
    quarter_index: int
    used_fallback: bool = False


class MetricTable:
    """Quarter -> metric -> value lookup over a newest-first quarter window.

    Args:
        data: Mapping of quarter label to metric values (exact and normalized keys)
        quarters: Quarter labels in the window, newest first
        window_size: Base used to turn ``Q<k>`` into a window position.
            Defaults to the number of quarters actually present.
    """

    def __init__(
        self,
        data: Dict[str, Dict[str, Optional[float]]],
        quarters: List[str],
        window_size: Optional[int] = None,
    ):
        self._data = data
        self.quarters = list(quarters)
        self.window_size = window_size if window_size is not None else len(self.quarters)

    def __len__(self) -> int:
        return len(self.quarters)

    def metrics_for(self, quarter: str) -> Dict[str, Optional[float]]:
        """Return the metric map for a quarter (empty if unknown)."""
        return self._data.get(quarter, {})

    def quarter_for(self, quarter_index: int) -> Optional[str]:
        """Map a ``Q<k>`` index to its quarter label, or None if outside the window."""
        array_index = self.window_size - quarter_index
        if array_index < 0 or array_index >= self.window_size or array_index >= len(self.quarters):
            return None
        return self.quarters[array_index]

    @staticmethod
    def _find(metrics: Mapping[str, Optional[float]], name: str) -> Optional[float]:
        if name in metrics:
            return metrics[name]
        key = normalize_key(name)
        if key in metrics:
            return metrics[key]
        return None

    def resolve(self, metric_name: str, quarter_index: int) -> MetricLookup:
        """Resolve ``metric_name[Q<quarter_index>]``.

        Out-of-window indexes and unknown metrics resolve to a None value.
        Operating-margin metrics that are missing fall back to the
        quarter's Financing Margin.
        """
        quarter = self.quarter_for(quarter_index)
        if quarter is None:
            return MetricLookup(None, None, quarter_index)

        metrics = self.metrics_for(quarter)
        value = self._find(metrics, metric_name)

        if value is None and is_opm_metric(metric_name):
            for fm_name in FINANCING_MARGIN_VARIATIONS:
                fm_value = self._find(metrics, fm_name)
                if fm_value is not None:
                    return MetricLookup(fm_value, quarter, quarter_index, used_fallback=True)

        return MetricLookup(value, quarter, quarter_index)


def _coerce_record(record: Union[QuarterlyRecord, Mapping[str, Any]]) -> QuarterlyRecord:
    if isinstance(record, QuarterlyRecord):
        return record
    return QuarterlyRecord.model_validate(record)


def build_metric_table(
    records: Iterable[Union[QuarterlyRecord, Mapping[str, Any]]],
    selected_quarters: Optional[List[str]] = None,
    window_size: Optional[int] = None,
) -> MetricTable:
    """Build the quarter-indexed metric table for one entity.

    Args:
        records: Quarterly records (models or dicts)
        selected_quarters: Optional quarter labels restricting the window
        window_size: Optional explicit window base for ``Q<k>`` resolution

    Returns:
        MetricTable with newest-first quarters
    """
    rows = [_coerce_record(r) for r in records]
    if not rows:
        return MetricTable({}, [], window_size)

    quarters = sort_quarters(r.quarter for r in rows)
    if selected_quarters:
        selected = set(selected_quarters)
        quarters = [q for q in quarters if q in selected]

    in_window = set(quarters)
    data: Dict[str, Dict[str, Optional[float]]] = {q: {} for q in quarters}
    for row in rows:
        if row.quarter not in in_window:
            continue
        value = normalize_value(row.metric_value, row.metric_name)
        metrics = data[row.quarter]
        metrics[row.metric_name] = value
        metrics[normalize_key(row.metric_name)] = value

    logger.debug(
        f"[MetricTable] Built {len(quarters)} quarters from {len(rows)} records "
        f"(window_size={window_size if window_size is not None else len(quarters)})"
    )
    return MetricTable(data, quarters, window_size)
