"""Tests for spreadsheet-parity formulas."""

import math
from dataclasses import replace

import pytest

from watchtower_mcp.engine.formulas import (
    FORMULA_COVERAGE,
    SpreadsheetDerived,
    SpreadsheetInputs,
    compute_derived,
    formula_parity_proof,
    trade_alert_text,
)
from watchtower_mcp.engine.fx import FxRates
from watchtower_mcp.engine.signals import SignalState
from watchtower_mcp.utils.normalize import canonical_dumps

NUMERIC_FIELDS = (
    "current_cost_gbp",
    "current_value_gbp",
    "weight_pct",
    "return_pct",
    "daily_change",
    "daily_change_pct",
    "range_vs_yclose_pct",
    "price_vs_year_low_pct",
)


class TestComputeDerived:
    """Tests for compute_derived."""

    def test_matches_spreadsheet(self, abc_inputs: SpreadsheetInputs) -> None:
        """Core columns match the spreadsheet for a USD asset."""
        result = compute_derived(abc_inputs)

        assert result.current_cost_gbp == pytest.approx(800, abs=1e-4)
        assert result.current_value_gbp == pytest.approx(960, abs=1e-4)
        assert result.weight_pct == pytest.approx(16, abs=1e-4)
        assert result.return_pct == pytest.approx(20, abs=1e-4)
        assert result.daily_change == pytest.approx(10, abs=1e-4)
        assert result.daily_change_pct == pytest.approx(9.090909, abs=1e-3)
        assert result.range_vs_yclose_pct == pytest.approx(18.181818, abs=1e-3)
        assert result.price_vs_year_low_pct == pytest.approx(50, abs=1e-3)
        assert result.signal_state == SignalState.BOTH
        assert "TRADE ALERT" in result.trade_alert_text

    def test_gbx_path(self, abc_inputs: SpreadsheetInputs) -> None:
        """Pence-quoted assets divide by 100."""
        inputs = replace(
            abc_inputs,
            currency="GBX",
            shares=100,
            entry_price=250,
            current_price=300,
        )
        result = compute_derived(inputs)

        assert result.current_cost_gbp == pytest.approx(250)
        assert result.current_value_gbp == pytest.approx(300)

    def test_rounded_to_six_places(self, abc_inputs: SpreadsheetInputs) -> None:
        result = compute_derived(abc_inputs)
        assert result.daily_change_pct == 9.090909
        assert result.range_vs_yclose_pct == 18.181818

    def test_idempotent(self, abc_inputs: SpreadsheetInputs) -> None:
        """Identical input gives byte-identical output."""
        first = canonical_dumps(compute_derived(abc_inputs).to_dict())
        second = canonical_dumps(compute_derived(abc_inputs).to_dict())
        assert first == second

    def test_all_inputs_missing(self, abc_inputs: SpreadsheetInputs) -> None:
        """Every numeric output is None when its inputs are None."""
        inputs = replace(
            abc_inputs,
            shares=None,
            entry_price=None,
            current_price=None,
            close_yest=None,
            daily_high=None,
            daily_low=None,
            low52=None,
            target_entry=None,
            target_exit=None,
        )
        result = compute_derived(inputs)

        for name in NUMERIC_FIELDS:
            assert getattr(result, name) is None, name
        assert result.signal_state == SignalState.NONE
        assert result.trade_alert_text == ""

    def test_missing_shares_nulls_cost_value_weight_return(
        self, abc_inputs: SpreadsheetInputs
    ) -> None:
        result = compute_derived(replace(abc_inputs, shares=None))

        assert result.current_cost_gbp is None
        assert result.current_value_gbp is None
        assert result.weight_pct is None
        assert result.return_pct is None
        # Price-only columns are unaffected
        assert result.daily_change == pytest.approx(10)

    def test_missing_current_price(self, abc_inputs: SpreadsheetInputs) -> None:
        result = compute_derived(replace(abc_inputs, current_price=None))

        assert result.current_value_gbp is None
        assert result.return_pct is None
        assert result.daily_change is None
        assert result.daily_change_pct is None
        assert result.price_vs_year_low_pct is None
        assert result.current_cost_gbp == pytest.approx(800)
        assert "currently at N/A" in result.trade_alert_text


class TestZeroGuards:
    """Every division returns None, never inf/NaN, on a zero denominator."""

    def test_zero_cost_return_is_none(self, abc_inputs: SpreadsheetInputs) -> None:
        result = compute_derived(replace(abc_inputs, entry_price=0))

        assert result.current_cost_gbp == 0
        assert result.return_pct is None

    def test_zero_close_yest(self, abc_inputs: SpreadsheetInputs) -> None:
        result = compute_derived(replace(abc_inputs, close_yest=0))

        assert result.daily_change_pct is None
        assert result.range_vs_yclose_pct is None
        # The plain difference needs no division
        assert result.daily_change == pytest.approx(120)

    def test_zero_low52(self, abc_inputs: SpreadsheetInputs) -> None:
        result = compute_derived(replace(abc_inputs, low52=0))
        assert result.price_vs_year_low_pct is None

    def test_zero_portfolio_size(self, abc_inputs: SpreadsheetInputs) -> None:
        result = compute_derived(replace(abc_inputs, portfolio_size=0))
        assert result.weight_pct is None

    def test_zero_fx_rate(self, abc_inputs: SpreadsheetInputs) -> None:
        result = compute_derived(replace(abc_inputs, fx=FxRates(usd=0.0, eur=1.15)))

        assert result.current_cost_gbp is None
        assert result.current_value_gbp is None
        assert result.weight_pct is None
        assert result.return_pct is None
        # Price-only columns do not need FX
        assert result.daily_change == pytest.approx(10)

    def test_no_non_finite_outputs(self, abc_inputs: SpreadsheetInputs) -> None:
        inputs = replace(abc_inputs, entry_price=0, close_yest=0, low52=0, portfolio_size=0)
        result = compute_derived(inputs)

        for name in NUMERIC_FIELDS:
            value = getattr(result, name)
            assert value is None or math.isfinite(value), name


class TestTradeAlertText:
    """Tests for trade_alert_text."""

    def test_empty_when_no_signal(self) -> None:
        assert trade_alert_text(SignalState.NONE, "ABC", "Asset ABC", 120) == ""

    def test_template(self) -> None:
        text = trade_alert_text(SignalState.BUY, "ABC", "Asset ABC", 120)
        assert text == "TRADE ALERT - Price level hit for ABC currently at 120 Asset ABC"

    def test_fractional_price(self) -> None:
        text = trade_alert_text(SignalState.SELL, "ABC", "Asset ABC", 120.5)
        assert "currently at 120.5 Asset ABC" in text


class TestFormulaParityProof:
    """Tests for formula_parity_proof."""

    def test_covers_every_formula(self, abc_inputs: SpreadsheetInputs) -> None:
        proof = formula_parity_proof(
            compute_derived(abc_inputs), {"symbol": "ABC", "name": "Asset ABC"}
        )

        assert proof["sample_asset"] == {"symbol": "ABC", "name": "Asset ABC"}
        assert [f["id"] for f in proof["formulas"]] == [f.id for f in FORMULA_COVERAGE]
        assert all(f["implemented"] for f in proof["formulas"])

    def test_sample_values_formatted(self, abc_inputs: SpreadsheetInputs) -> None:
        proof = formula_parity_proof(compute_derived(abc_inputs), {"symbol": "ABC", "name": ""})
        values = {f["id"]: f["sample_value"] for f in proof["formulas"]}

        assert values["current_cost_gbp"] == "800.0000"
        assert values["daily_change_pct"] == "9.0909"
        assert values["trade_alert_logic"].startswith("TRADE ALERT")

    def test_no_sample(self) -> None:
        proof = formula_parity_proof(None)

        assert proof["sample_asset"] is None
        assert {f["sample_value"] for f in proof["formulas"]} == {"No asset sample loaded"}

    def test_outputs_are_derived_fields(self) -> None:
        """Every coverage entry points at a real derived field."""
        names = set(SpreadsheetDerived.__dataclass_fields__)
        assert {f.output for f in FORMULA_COVERAGE} <= names
