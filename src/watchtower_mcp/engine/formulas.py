"""Spreadsheet-parity financial formulas.

Reproduces the tracking spreadsheet's per-asset columns. Every output is
nullable: a missing input yields None, never a default, and every division
is guarded so a zero denominator yields None rather than inf/NaN.
Percentages are returned already multiplied by 100.
"""

from dataclasses import asdict, dataclass
from typing import Any

from watchtower_mcp.engine.fx import FxRates, to_gbp
from watchtower_mcp.engine.signals import SignalInput, SignalState, classify_signal
from watchtower_mcp.utils.normalize import clean_number


@dataclass(frozen=True)
class SpreadsheetInputs:
    """Raw per-asset fields for one refresh or report cycle."""

    symbol: str
    name: str
    currency: str
    portfolio_size: float
    shares: float | None
    entry_price: float | None
    current_price: float | None
    close_yest: float | None
    daily_high: float | None
    daily_low: float | None
    low52: float | None
    target_entry: float | None
    target_exit: float | None
    fx: FxRates


@dataclass(frozen=True)
class SpreadsheetDerived:
    current_cost_gbp: float | None
    current_value_gbp: float | None
    weight_pct: float | None
    return_pct: float | None
    daily_change: float | None
    daily_change_pct: float | None
    range_vs_yclose_pct: float | None
    price_vs_year_low_pct: float | None
    signal_state: SignalState
    trade_alert_text: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["signal_state"] = self.signal_state.value
        return data


@dataclass(frozen=True)
class FormulaSpec:
    id: str
    label: str
    excel_pattern: str
    output: str


FORMULA_COVERAGE: tuple[FormulaSpec, ...] = (
    FormulaSpec(
        id="current_cost_gbp",
        label="Current Cost (GBP)",
        excel_pattern="if(CCY=GBX,F*G/100,if(EUR,F*G/GBPEUR,F*G/GBPUSD))",
        output="current_cost_gbp",
    ),
    FormulaSpec(
        id="current_value_gbp",
        label="Current Value (GBP)",
        excel_pattern="if(CCY=GBX,D*G/100,if(EUR,D*G/GBPEUR,D*G/GBPUSD))",
        output="current_value_gbp",
    ),
    FormulaSpec(
        id="weight_pct",
        label="Weight %",
        excel_pattern="H / PortfolioSize",
        output="weight_pct",
    ),
    FormulaSpec(
        id="return_pct",
        label="Return %",
        excel_pattern="I / H - 1",
        output="return_pct",
    ),
    FormulaSpec(
        id="daily_change_pct",
        label="Daily Change %",
        excel_pattern="round(CurrentPrice / CloseYest - 1,4)",
        output="daily_change_pct",
    ),
    FormulaSpec(
        id="range_vs_close_pct",
        label="Range vs Yesterday Close %",
        excel_pattern="abs(DailyHigh-DailyLow)/CloseYest",
        output="range_vs_yclose_pct",
    ),
    FormulaSpec(
        id="price_vs_year_low_pct",
        label="Price vs Year Low %",
        excel_pattern="CurrentPrice / low52 - 1",
        output="price_vs_year_low_pct",
    ),
    FormulaSpec(
        id="trade_alert_logic",
        label="Trade Alert Logic",
        excel_pattern="AND(low<=target<=high) / targetEntry>high => TRADE ALERT",
        output="trade_alert_text",
    ),
)


def trade_alert_text(
    state: SignalState,
    symbol: str,
    name: str,
    current_price: float | None,
) -> str:
    """Spreadsheet alert sentence, empty when no signal is active."""
    if state is SignalState.NONE:
        return ""
    price = _format_price(current_price)
    return f"TRADE ALERT - Price level hit for {symbol} currently at {price} {name}"


def compute_derived(inputs: SpreadsheetInputs) -> SpreadsheetDerived:
    """
    Compute the spreadsheet-parity columns for one asset.

    Args:
        inputs: Raw asset, snapshot and rule fields plus FX rates

    Returns:
        SpreadsheetDerived with every number rounded to 6 places (None kept)
    """
    shares = inputs.shares
    current_price = inputs.current_price
    close_yest = inputs.close_yest

    current_cost_gbp = (
        to_gbp(inputs.entry_price * shares, inputs.currency, inputs.fx)
        if inputs.entry_price is not None and shares is not None
        else None
    )
    current_value_gbp = (
        to_gbp(current_price * shares, inputs.currency, inputs.fx)
        if current_price is not None and shares is not None
        else None
    )

    weight_pct = (
        _pct(current_cost_gbp / inputs.portfolio_size)
        if current_cost_gbp is not None and inputs.portfolio_size > 0
        else None
    )
    # Zero cost must not divide
    return_pct = (
        _pct(current_value_gbp / current_cost_gbp - 1)
        if current_value_gbp is not None and current_cost_gbp
        else None
    )

    daily_change = (
        current_price - close_yest
        if current_price is not None and close_yest is not None
        else None
    )
    daily_change_pct = (
        _pct(current_price / close_yest - 1)
        if current_price is not None and close_yest
        else None
    )

    range_vs_yclose_pct = (
        _pct(abs(inputs.daily_high - inputs.daily_low) / close_yest)
        if inputs.daily_high is not None and inputs.daily_low is not None and close_yest
        else None
    )
    price_vs_year_low_pct = (
        _pct(current_price / inputs.low52 - 1)
        if current_price is not None and inputs.low52
        else None
    )

    signal_state = classify_signal(
        SignalInput(
            daily_low=inputs.daily_low,
            daily_high=inputs.daily_high,
            target_entry=inputs.target_entry,
            target_exit=inputs.target_exit,
        )
    )

    return SpreadsheetDerived(
        current_cost_gbp=clean_number(current_cost_gbp),
        current_value_gbp=clean_number(current_value_gbp),
        weight_pct=clean_number(weight_pct),
        return_pct=clean_number(return_pct),
        daily_change=clean_number(daily_change),
        daily_change_pct=clean_number(daily_change_pct),
        range_vs_yclose_pct=clean_number(range_vs_yclose_pct),
        price_vs_year_low_pct=clean_number(price_vs_year_low_pct),
        signal_state=signal_state,
        trade_alert_text=trade_alert_text(
            signal_state, inputs.symbol, inputs.name, current_price
        ),
    )


def formula_parity_proof(
    derived: SpreadsheetDerived | None,
    sample: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    List every spreadsheet formula with a sample value from one asset.

    Args:
        derived: Derived values for the sample asset (None if no asset loaded)
        sample: {"symbol", "name"} of the sample asset

    Returns:
        Dict with sample_asset and a formulas list in FORMULA_COVERAGE order
    """
    formulas: list[dict[str, Any]] = []
    values = derived.to_dict() if derived is not None else None

    for spec in FORMULA_COVERAGE:
        if values is None:
            sample_value = "No asset sample loaded"
        else:
            value = values.get(spec.output)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                sample_value = f"{value:.4f}"
            else:
                sample_value = "" if value is None else str(value)
        formulas.append(
            {
                **asdict(spec),
                "implemented": True,
                "sample_value": sample_value,
            }
        )

    return {
        "sample_asset": sample if derived is not None else None,
        "formulas": formulas,
    }


def _pct(ratio: float) -> float:
    return ratio * 100


def _format_price(price: float | None) -> str:
    # Whole prices print without a trailing ".0"
    if price is None:
        return "N/A"
    if float(price).is_integer():
        return str(int(price))
    return str(price)
