"""Tests for GBP currency conversion."""

import logging

import pytest

from watchtower_mcp.engine.fx import FALLBACK_RATES, FxRates, parse_fx_payload, to_gbp


class TestToGbp:
    """Tests for to_gbp."""

    def test_usd(self, fx_rates: FxRates) -> None:
        assert to_gbp(125, "USD", fx_rates) == pytest.approx(100)

    def test_eur(self, fx_rates: FxRates) -> None:
        assert to_gbp(115, "EUR", fx_rates) == pytest.approx(100)

    def test_gbx_divides_by_100(self, fx_rates: FxRates) -> None:
        assert to_gbp(250, "GBX", fx_rates) == pytest.approx(2.5)

    def test_gbp_identity(self, fx_rates: FxRates) -> None:
        assert to_gbp(42.5, "GBP", fx_rates) == 42.5

    def test_case_insensitive(self, fx_rates: FxRates) -> None:
        assert to_gbp(125, "usd", fx_rates) == pytest.approx(100)
        assert to_gbp(250, "gbx", fx_rates) == pytest.approx(2.5)

    def test_none_amount(self, fx_rates: FxRates) -> None:
        assert to_gbp(None, "USD", fx_rates) is None

    def test_zero_amount(self, fx_rates: FxRates) -> None:
        assert to_gbp(0, "USD", fx_rates) == 0

    def test_unknown_currency_passes_through(self, fx_rates: FxRates, caplog) -> None:
        """Unknown codes are treated as GBP and logged."""
        with caplog.at_level(logging.WARNING):
            assert to_gbp(99, "JPY", fx_rates) == 99
        assert "Unknown currency 'JPY'" in caplog.text

    @pytest.mark.parametrize("rate", [0.0, float("inf"), float("nan")])
    def test_unusable_rate_is_none(self, rate: float) -> None:
        """A zero or non-finite rate gives None instead of raising."""
        rates = FxRates(usd=rate, eur=1.15)

        assert to_gbp(125, "USD", rates) is None
        assert to_gbp(115, "EUR", rates) == pytest.approx(100)


class TestParseFxPayload:
    """Tests for parse_fx_payload."""

    def test_valid_payload(self) -> None:
        rates = parse_fx_payload({"base": "GBP", "rates": {"USD": 1.3, "EUR": 1.2}})
        assert rates == FxRates(usd=1.3, eur=1.2)

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {},
            {"rates": None},
            {"rates": {"USD": 1.3}},
            {"rates": {"USD": 0, "EUR": 1.2}},
            {"rates": {"USD": "1.3", "EUR": 1.2}},
            {"rates": {"USD": -1.3, "EUR": 1.2}},
        ],
    )
    def test_incomplete_payload_falls_back(self, payload) -> None:
        assert parse_fx_payload(payload) == FALLBACK_RATES

    def test_fallback_rates(self) -> None:
        assert FALLBACK_RATES.to_dict() == {"USD": 1.27, "EUR": 1.17}
