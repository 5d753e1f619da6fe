"""Tests for quarterly records, value normalization and the metric table."""

import json

import pytest
from pydantic import ValidationError

from quarter_signal.data import (
    QuarterlyRecord,
    build_metric_table,
    group_records_by_ticker,
    load_quarterly_records,
    normalize_key,
    normalize_value,
    sort_quarters,
)
from quarter_signal.data.metric_table import is_percentage_metric


class TestNormalization:
    def test_normalize_key(self) -> None:
        assert normalize_key("Sales Growth(YoY) %") == "salesgrowthyoy"
        assert normalize_key("OPM %") == "opm"
        assert normalize_key("EPS in Rs") == "epsinrs"

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("OPM %", True),
            ("Net Profit Margin", True),
            ("Sales Growth", True),
            ("Sales YoY", True),
            ("Profit QoQ", True),
            ("Sales", False),
            ("EPS in Rs", False),
            ("sales yoy", False),
        ],
    )
    def test_percentage_heuristic(self, name, expected) -> None:
        assert is_percentage_metric(name) is expected

    def test_percent_text_is_divided(self) -> None:
        assert normalize_value("20%", "Sales") == pytest.approx(0.2)

    def test_percentage_metric_is_divided(self) -> None:
        assert normalize_value("25", "Sales Growth %") == pytest.approx(0.25)
        assert normalize_value(15, "OPM %") == pytest.approx(0.15)

    def test_plain_values_are_kept(self) -> None:
        assert normalize_value(50000, "Sales") == 50000
        assert normalize_value("12.5 Cr", "Sales") == 12.5

    def test_non_numeric_values_become_none(self) -> None:
        assert normalize_value("abc", "Sales") is None
        assert normalize_value(None, "Sales") is None
        assert normalize_value(float("nan"), "Sales") is None


class TestQuarterSorting:
    def test_month_labels_sort_newest_first(self) -> None:
        labels = ["Jun 2024", "Sep 2024", "Mar 2024", "Jun 2024"]
        assert sort_quarters(labels) == ["Sep 2024", "Jun 2024", "Mar 2024"]

    def test_mixed_parsable_formats(self) -> None:
        assert sort_quarters(["2023-12-31", "Mar 2024"]) == ["Mar 2024", "2023-12-31"]

    def test_unparsable_labels_sort_lexicographically_descending(self) -> None:
        assert sort_quarters(["theta", "eta", "zeta"]) == ["zeta", "theta", "eta"]


class TestMetricTable:
    def test_quarters_and_window(self, records) -> None:
        table = build_metric_table(records)
        assert table.quarters == ["Sep 2024", "Jun 2024"]
        assert table.window_size == 2
        assert len(table) == 2

    def test_resolve_counts_from_window_edge(self, records) -> None:
        table = build_metric_table(records)
        newest = table.resolve("Sales", 2)
        oldest = table.resolve("Sales", 1)
        assert (newest.value, newest.quarter) == (50000, "Sep 2024")
        assert (oldest.value, oldest.quarter) == (40000, "Jun 2024")

    def test_out_of_window_resolves_to_none(self, records) -> None:
        table = build_metric_table(records)
        for k in (0, 3, 12, -1):
            lookup = table.resolve("Sales", k)
            assert lookup.value is None
            assert lookup.quarter is None

    def test_exact_then_normalized_name(self, records) -> None:
        table = build_metric_table(records)
        assert table.resolve("OPM %", 1).value == pytest.approx(0.12)
        assert table.resolve("opm", 2).value == pytest.approx(0.15)
        assert table.resolve("SalesGrowthYoY", 2).value == pytest.approx(0.25)

    def test_missing_metric(self, records) -> None:
        table = build_metric_table(records)
        assert table.resolve("EPSinRs", 2).value == 10.5
        assert table.resolve("EPSinRs", 1).value is None
        assert table.resolve("NonExistentMetric", 1).value is None

    def test_opm_falls_back_to_financing_margin(self) -> None:
        rows = [
            {"ticker": "BANK", "quarter": "Mar 2024", "metricName": "Financing Margin %", "metricValue": 8},
            {"ticker": "BANK", "quarter": "Mar 2024", "metricName": "Sales", "metricValue": 100},
        ]
        table = build_metric_table(rows)
        lookup = table.resolve("OPM", 1)
        assert lookup.value == pytest.approx(0.08)
        assert lookup.used_fallback is True
        assert table.resolve("Operating Profit Margin", 1).used_fallback is True
        assert table.resolve("Sales", 1).used_fallback is False

    def test_present_opm_does_not_fall_back(self, records) -> None:
        lookup = build_metric_table(records).resolve("OPM", 1)
        assert lookup.used_fallback is False

    def test_selected_quarters_restrict_window(self, records) -> None:
        table = build_metric_table(records, selected_quarters=["Jun 2024"])
        assert table.quarters == ["Jun 2024"]
        assert table.resolve("Sales", 1).value == 40000
        assert table.resolve("Sales", 2).value is None

    def test_explicit_window_size(self, records) -> None:
        table = build_metric_table(records, window_size=12)
        assert table.quarter_for(12) == "Sep 2024"
        assert table.quarter_for(11) == "Jun 2024"
        assert table.quarter_for(10) is None
        assert table.quarter_for(13) is None

    def test_empty_records(self) -> None:
        table = build_metric_table([])
        assert table.quarters == []
        assert table.resolve("Sales", 1).value is None

    def test_records_are_not_mutated(self, records) -> None:
        snapshot = [dict(r) for r in records]
        build_metric_table(records)
        assert records == snapshot


class TestQuarterlyRecord:
    def test_accepts_camel_and_snake_case(self) -> None:
        camel = QuarterlyRecord.model_validate(
            {"ticker": "T", "companyId": 7, "quarter": "Mar 2024", "metricName": "Sales", "metricValue": "10"}
        )
        snake = QuarterlyRecord(ticker="T", quarter="Mar 2024", metric_name="Sales", metric_value="10")
        assert camel.company_id == "7"
        assert camel.metric_name == snake.metric_name == "Sales"

    def test_is_frozen(self) -> None:
        record = QuarterlyRecord(ticker="T", quarter="Mar 2024", metric_name="Sales", metric_value=1)
        with pytest.raises(ValidationError):
            record.metric_name = "Profit"

    def test_blank_quarter_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QuarterlyRecord(ticker="T", quarter="  ", metric_name="Sales")


class TestLoader:
    def test_load_csv(self, tmp_path) -> None:
        path = tmp_path / "quarters.csv"
        path.write_text(
            "ticker,quarter,metricName,metricValue\n"
            "AAA,Sep 2024,Sales,50000\n"
            "AAA,Jun 2024,Sales,\n"
            "BBB,Sep 2024,OPM %,15\n"
        )
        records = load_quarterly_records(path)
        assert len(records) == 3
        assert records[0].metric_value == "50000"
        assert records[1].metric_value is None

        grouped = group_records_by_ticker(records)
        assert list(grouped) == ["AAA", "BBB"]
        assert len(grouped["AAA"]) == 2

    def test_load_csv_filters_tickers(self, tmp_path) -> None:
        path = tmp_path / "quarters.csv"
        path.write_text("ticker,quarter,metric_name,metric_value\nAAA,Sep 2024,Sales,1\nBBB,Sep 2024,Sales,2\n")
        records = load_quarterly_records(path, tickers=["BBB"])
        assert [r.ticker for r in records] == ["BBB"]

    def test_load_json(self, tmp_path, records) -> None:
        path = tmp_path / "quarters.json"
        path.write_text(json.dumps(records))
        loaded = load_quarterly_records(path)
        assert len(loaded) == len(records)
        assert build_metric_table(loaded).resolve("Sales", 2).value == 50000

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_quarterly_records(tmp_path / "missing.csv")

    def test_unsupported_suffix(self, tmp_path) -> None:
        path = tmp_path / "quarters.txt"
        path.write_text("x")
        with pytest.raises(ValueError, match="Unsupported"):
            load_quarterly_records(path)

    def test_missing_columns(self, tmp_path) -> None:
        path = tmp_path / "quarters.csv"
        path.write_text("ticker,value\nAAA,1\n")
        with pytest.raises(ValueError, match="must contain columns"):
            load_quarterly_records(path)
