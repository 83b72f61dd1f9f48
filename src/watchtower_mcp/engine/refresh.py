"""Per-asset evaluation for a market refresh pass.

The caller fetches quotes and FX rates and persists the results; this
module merges a fresh quote over the previous snapshot, runs the formulas
and classifier, and decides which transition event (if any) to record.
One pass per asset must complete (snapshot, then event) before the next
pass for that asset reads its previous state.
"""

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any

from watchtower_mcp.engine.formulas import SpreadsheetDerived, SpreadsheetInputs, compute_derived
from watchtower_mcp.engine.fx import FxRates
from watchtower_mcp.engine.signals import SignalEventType, SignalState, transition_event

logger = logging.getLogger(__name__)

# Source label recorded when no fresh quote was available
FALLBACK_SOURCE = "fallback-previous"


@dataclass(frozen=True)
class Quote:
    """Raw quote from a market-data adapter."""

    current_price: float | None = None
    daily_high: float | None = None
    daily_low: float | None = None
    close_yest: float | None = None
    daily_change: float | None = None
    daily_change_pct: float | None = None
    beta: float | None = None
    low52: float | None = None
    high52: float | None = None
    volume_avg: float | None = None
    pe: float | None = None
    market_cap: float | None = None
    data_delay: float | None = None
    source: str = "unknown"


@dataclass(frozen=True)
class Snapshot:
    """Most recent persisted observation of an asset."""

    captured_at: datetime | None = None
    current_price: float | None = None
    daily_high: float | None = None
    daily_low: float | None = None
    close_yest: float | None = None
    daily_change: float | None = None
    daily_change_pct: float | None = None
    beta: float | None = None
    low52: float | None = None
    high52: float | None = None
    volume_avg: float | None = None
    pe: float | None = None
    market_cap: float | None = None
    data_delay: float | None = None
    signal_state: SignalState = SignalState.NONE


@dataclass(frozen=True)
class AssetRecord:
    """Persisted asset, its rule levels, and asset-level fallback fields."""

    symbol: str
    name: str
    currency: str = "GBP"
    asset_type: str = "STOCK"
    shares: float | None = None
    entry_price: float | None = None
    target_entry: float | None = None
    target_exit: float | None = None
    close_yest: float | None = None
    beta: float | None = None
    low52: float | None = None
    high52: float | None = None
    volume_avg: float | None = None
    pe: float | None = None
    market_cap: float | None = None
    data_delay: float | None = None
    current_cost_gbp: float | None = None
    weight_pct: float | None = None
    return_pct: float | None = None


@dataclass(frozen=True)
class MergedQuote:
    current_price: float | None
    daily_high: float | None
    daily_low: float | None
    close_yest: float | None
    daily_change: float | None
    daily_change_pct: float | None
    beta: float | None
    low52: float | None
    high52: float | None
    volume_avg: float | None
    pe: float | None
    market_cap: float | None
    data_delay: float | None
    source: str


# Fields that may also fall back to the asset row, not just the previous snapshot
_ASSET_FALLBACK_FIELDS = {
    "close_yest",
    "beta",
    "low52",
    "high52",
    "volume_avg",
    "pe",
    "market_cap",
    "data_delay",
}


@dataclass(frozen=True)
class TransitionRecord:
    event_type: SignalEventType
    from_state: SignalState
    to_state: SignalState
    metadata: dict[str, Any]


@dataclass(frozen=True)
class RefreshOutcome:
    """Everything the caller persists for one asset after a refresh."""

    symbol: str
    snapshot: MergedQuote
    signal_state: SignalState
    derived: SpreadsheetDerived
    event: TransitionRecord | None
    asset_updates: dict[str, float | None]

    def to_dict(self) -> dict[str, Any]:
        event = None
        if self.event is not None:
            event = {
                "event_type": self.event.event_type.value,
                "from_state": self.event.from_state.value,
                "to_state": self.event.to_state.value,
                "metadata": self.event.metadata,
            }
        return {
            "symbol": self.symbol,
            "snapshot": asdict(self.snapshot),
            "signal_state": self.signal_state.value,
            "formula_parity": self.derived.to_dict(),
            "event": event,
            "asset_updates": dict(self.asset_updates),
        }


@dataclass(frozen=True)
class RefreshSummary:
    processed: int
    updated: int
    skipped: int
    events_created: int


def merge_quote(
    quote: Quote | None,
    previous: Snapshot | None,
    asset: AssetRecord,
) -> MergedQuote:
    """
    Field-wise fallback: fresh quote, then previous snapshot, then asset row.

    Only the slow-moving fields in _ASSET_FALLBACK_FIELDS consult the asset
    row; intraday fields stop at the previous snapshot.
    """
    merged: dict[str, Any] = {}
    for field in fields(MergedQuote):
        name = field.name
        if name == "source":
            continue
        value = getattr(quote, name) if quote is not None else None
        if value is None and previous is not None:
            value = getattr(previous, name)
        if value is None and name in _ASSET_FALLBACK_FIELDS:
            value = getattr(asset, name)
        merged[name] = value

    merged["source"] = quote.source if quote is not None else FALLBACK_SOURCE
    return MergedQuote(**merged)


def evaluate_refresh(
    asset: AssetRecord,
    previous: Snapshot | None,
    quote: Quote | None,
    fx: FxRates,
    portfolio_size: float,
) -> RefreshOutcome | None:
    """
    Evaluate one asset for a refresh pass.

    Args:
        asset: Persisted asset with rule levels
        previous: Latest persisted snapshot (None for a new asset)
        quote: Fresh quote (None if the adapter failed)
        fx: GBP cross rates for this pass
        portfolio_size: Portfolio size in GBP used for weights

    Returns:
        RefreshOutcome, or None when there is neither a quote nor a snapshot
    """
    if quote is None and previous is None:
        logger.debug(f"{asset.symbol}: no quote and no previous snapshot, skipping")
        return None

    merged = merge_quote(quote, previous, asset)
    derived = compute_derived(
        SpreadsheetInputs(
            symbol=asset.symbol,
            name=asset.name,
            currency=asset.currency,
            portfolio_size=portfolio_size,
            shares=asset.shares,
            entry_price=asset.entry_price,
            current_price=merged.current_price,
            close_yest=merged.close_yest,
            daily_high=merged.daily_high,
            daily_low=merged.daily_low,
            low52=merged.low52,
            target_entry=asset.target_entry,
            target_exit=asset.target_exit,
            fx=fx,
        )
    )

    # Adapters that omit the change fields get the formula values
    snapshot = MergedQuote(
        **{
            **asdict(merged),
            "daily_change": (
                merged.daily_change if merged.daily_change is not None else derived.daily_change
            ),
            "daily_change_pct": (
                merged.daily_change_pct
                if merged.daily_change_pct is not None
                else derived.daily_change_pct
            ),
        }
    )

    state = derived.signal_state
    from_state = previous.signal_state if previous is not None else SignalState.NONE
    event_type = transition_event(from_state, state)
    event = None
    if event_type is not None:
        event = TransitionRecord(
            event_type=event_type,
            from_state=from_state,
            to_state=state,
            metadata={
                "symbol": asset.symbol,
                "price": snapshot.current_price,
                "target_entry": asset.target_entry,
                "target_exit": asset.target_exit,
            },
        )
        logger.debug(f"{asset.symbol}: {from_state.value} -> {state.value} ({event_type.value})")

    return RefreshOutcome(
        symbol=asset.symbol,
        snapshot=snapshot,
        signal_state=state,
        derived=derived,
        event=event,
        asset_updates=_asset_updates(asset, snapshot, derived),
    )


def summarize_refresh(outcomes: Iterable[RefreshOutcome | None]) -> RefreshSummary:
    """Count a pass's outcomes; None entries are skipped assets."""
    processed = updated = skipped = events_created = 0
    for outcome in outcomes:
        processed += 1
        if outcome is None:
            skipped += 1
            continue
        updated += 1
        if outcome.event is not None:
            events_created += 1
    return RefreshSummary(
        processed=processed,
        updated=updated,
        skipped=skipped,
        events_created=events_created,
    )


def _asset_updates(
    asset: AssetRecord,
    snapshot: MergedQuote,
    derived: SpreadsheetDerived,
) -> dict[str, float | None]:
    """Asset-row fields to write back, keeping stored values where formulas give None."""
    cost = derived.current_cost_gbp
    if cost is None:
        cost = asset.current_cost_gbp
    value = derived.current_value_gbp

    return_pct = derived.return_pct
    if return_pct is None:
        return_pct = (value / cost - 1) * 100 if value is not None and cost else asset.return_pct

    return {
        "close_yest": snapshot.close_yest,
        "beta": snapshot.beta,
        "low52": snapshot.low52,
        "high52": snapshot.high52,
        "volume_avg": snapshot.volume_avg,
        "pe": snapshot.pe,
        "data_delay": snapshot.data_delay,
        "market_cap": snapshot.market_cap,
        "current_cost_gbp": cost,
        "current_value_gbp": value,
        "weight_pct": derived.weight_pct if derived.weight_pct is not None else asset.weight_pct,
        "return_pct": return_pct,
    }
