"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import pytest

from watchtower_mcp.engine.aggregate import TransitionEvent, WatchedAsset
from watchtower_mcp.engine.formulas import SpreadsheetInputs
from watchtower_mcp.engine.fx import FxRates
from watchtower_mcp.engine.signals import SignalState


@pytest.fixture
def fx_rates() -> FxRates:
    """GBP cross rates used throughout the formula tests."""
    return FxRates(usd=1.25, eur=1.15)


@pytest.fixture
def abc_inputs(fx_rates: FxRates) -> SpreadsheetInputs:
    """USD asset hitting both its entry and exit target."""
    return SpreadsheetInputs(
        symbol="ABC",
        name="Asset ABC",
        currency="USD",
        portfolio_size=5000,
        shares=10,
        entry_price=100,
        current_price=120,
        close_yest=110,
        daily_high=125,
        daily_low=105,
        low52=80,
        target_entry=115,
        target_exit=122,
        fx=fx_rates,
    )


@pytest.fixture
def watchlist() -> list[WatchedAsset]:
    """Mixed watchlist: one BUY, one SELL, one BOTH, two quiet assets."""
    return [
        WatchedAsset(
            symbol="NVDA",
            name="NVIDIA",
            asset_type="STOCK",
            daily_low=700,
            daily_high=740,
            current_price=728.42,
            daily_change_pct=1.8,
            target_entry=705,
        ),
        WatchedAsset(
            symbol="SPY",
            name="S&P 500 ETF",
            asset_type="ETF",
            daily_low=505,
            daily_high=515,
            current_price=512.18,
            daily_change_pct=-0.4,
            target_exit=510,
        ),
        WatchedAsset(
            symbol="BTC",
            name="Bitcoin",
            asset_type="CRYPTO",
            daily_low=60000,
            daily_high=64000,
            current_price=63000,
            daily_change_pct=3.2,
            target_entry=61000,
            target_exit=63500,
        ),
        WatchedAsset(
            symbol="AAPL",
            name="Apple",
            asset_type="STOCK",
            daily_low=180,
            daily_high=185,
            current_price=182,
            daily_change_pct=0.04,
            target_entry=150,
            target_exit=220,
        ),
        WatchedAsset(
            symbol="XAU",
            name="Gold Spot",
            asset_type="COMMODITY",
            current_price=2300,
        ),
    ]


@pytest.fixture
def day_events() -> list[TransitionEvent]:
    """Transition events recorded during 2026-02-19."""
    at = datetime(2026, 2, 19, 9, 30, tzinfo=timezone.utc)
    return [
        TransitionEvent("NVDA", SignalState.NONE, SignalState.BUY, at),
        TransitionEvent("TSLA", SignalState.SELL, SignalState.NONE, at),
        TransitionEvent("BTC", SignalState.BUY, SignalState.BOTH, at),
    ]
