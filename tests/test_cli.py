"""Tests for the fire command-line interface."""

import json

import pandas as pd
import pytest

from quarter_signal.cli import QuarterSignalCLI, _split_quarters
from quarter_signal.config import load_config

from conftest import make_records


@pytest.fixture
def cli() -> QuarterSignalCLI:
    return QuarterSignalCLI()


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "quarters.csv"
    pd.DataFrame(make_records("TCS")).to_csv(path, index=False)
    return path


class TestEvaluateCommand:
    def test_prints_result_and_quarters(self, cli, data_file, capsys) -> None:
        cli.evaluate(str(data_file), "TCS", 'IF(Sales[Q2] > Sales[Q1], "BUY", "SELL")')
        out = capsys.readouterr().out
        assert "TCS: BUY (string)" in out
        assert "Quarters: Sep 2024, Jun 2024" in out

    def test_trace_output(self, cli, data_file, capsys) -> None:
        cli.evaluate(str(data_file), "TCS", "Sales[Q2] - Sales[Q1]", trace=True)
        out = capsys.readouterr().out
        assert "Substituted: 50000 - 40000" in out

    def test_unknown_ticker_exits(self, cli, data_file) -> None:
        with pytest.raises(SystemExit):
            cli.evaluate(str(data_file), "NOPE", "1")

    def test_split_quarters(self) -> None:
        assert _split_quarters("Sep 2024, Jun 2024") == ["Sep 2024", "Jun 2024"]
        assert _split_quarters(("Sep 2024",)) == ["Sep 2024"]
        assert _split_quarters(None) is None


class TestValidateCommand:
    def test_valid(self, cli, capsys) -> None:
        cli.validate("ROUND(Sales[Q1], 2)")
        assert "Formula is valid" in capsys.readouterr().out

    def test_invalid_exits(self, cli) -> None:
        with pytest.raises(SystemExit):
            cli.validate("FOO(1)")

    def test_numeric_formula_from_fire(self, cli, capsys) -> None:
        cli.validate(5)
        assert "Formula is valid: 5" in capsys.readouterr().out

    def test_json(self, cli, capsys) -> None:
        cli.validate("Sales[Q1]", as_json=True)
        assert json.loads(capsys.readouterr().out)["metric_references"] == ["Sales[Q1]"]


class TestConfigCommands:
    def test_init_then_check(self, cli, tmp_path, capsys) -> None:
        path = tmp_path / "signals.yaml"
        cli.init(str(path))
        assert load_config(path).signals[0].name == "sales_momentum"
        cli.check(str(path))
        assert "✓ sales_momentum" in capsys.readouterr().out

    def test_init_refuses_to_overwrite(self, cli, tmp_path) -> None:
        path = tmp_path / "signals.yaml"
        path.write_text("data: {path: q.csv}\n")
        with pytest.raises(SystemExit):
            cli.init(str(path))
