"""Daily signal summary and market breadth aggregation."""

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

import pandas as pd

from watchtower_mcp.engine.signals import (
    SignalEventType,
    SignalInput,
    SignalState,
    classify_signal,
    is_buy_like,
    is_sell_like,
)
from watchtower_mcp.utils.time import DayWindow

# Daily change (in percentage points) inside +/- this band counts as flat
FLAT_BAND_PCT = 0.05
TOP_MOVERS = 3


@dataclass(frozen=True)
class WatchedAsset:
    """An active asset joined with its latest snapshot and rule levels."""

    symbol: str
    name: str = ""
    asset_type: str = "STOCK"
    daily_low: float | None = None
    daily_high: float | None = None
    current_price: float | None = None
    daily_change_pct: float | None = None
    target_entry: float | None = None
    target_exit: float | None = None
    captured_at: datetime | None = None

    @property
    def state(self) -> SignalState:
        return classify_signal(
            SignalInput(
                daily_low=self.daily_low,
                daily_high=self.daily_high,
                target_entry=self.target_entry,
                target_exit=self.target_exit,
            )
        )


@dataclass(frozen=True)
class TransitionEvent:
    """A persisted state change for one asset."""

    symbol: str
    from_state: SignalState
    to_state: SignalState
    occurred_at: datetime
    event_type: SignalEventType | None = None


@dataclass(frozen=True)
class Mover:
    symbol: str
    asset_type: str
    change_pct: float


@dataclass(frozen=True)
class AssetTypeRollup:
    asset_type: str
    total: int
    active_signals: int
    buy_signals: int
    sell_signals: int


@dataclass(frozen=True)
class MarketBreadth:
    total_assets: int = 0
    active_signals: int = 0
    advancers: int = 0
    decliners: int = 0
    flat: int = 0
    avg_change_pct: float = 0.0
    top_gainers: list[Mover] = field(default_factory=list)
    top_losers: list[Mover] = field(default_factory=list)
    by_asset_type: list[AssetTypeRollup] = field(default_factory=list)


@dataclass(frozen=True)
class DailySignalSummary:
    date: str
    buy: list[str]
    sell: list[str]
    new_today: list[str]
    dropped_off: list[str]
    market: MarketBreadth | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def filter_day_events(
    events: Iterable[TransitionEvent],
    window: DayWindow,
) -> list[TransitionEvent]:
    """Keep events with window.start <= occurred_at < window.end."""
    return [e for e in events if window.contains(e.occurred_at)]


def summarize_daily(
    assets: list[WatchedAsset],
    day_events: list[TransitionEvent],
    day: str,
) -> DailySignalSummary:
    """
    Build the day's signal summary and market breadth.

    Active buy/sell lists come from classifying each asset now.
    new_today/dropped_off come only from the day's recorded transition
    events; they are not recomputed from snapshots, so a missed event
    means a missed entry here.

    Args:
        assets: Active assets with latest snapshot and rule levels
        day_events: Transition events already filtered to the day window
        day: ISO date label for the summary

    Returns:
        DailySignalSummary
    """
    frame = pd.DataFrame(
        [
            {
                "symbol": a.symbol,
                "asset_type": a.asset_type,
                "state": a.state,
                "change_pct": a.daily_change_pct,
            }
            for a in assets
        ],
        columns=["symbol", "asset_type", "state", "change_pct"],
    )
    frame["change_pct"] = pd.to_numeric(frame["change_pct"], errors="coerce")
    frame["is_active"] = frame["state"].map(lambda s: s is not SignalState.NONE).astype(bool)
    frame["is_buy"] = frame["state"].map(is_buy_like).astype(bool)
    frame["is_sell"] = frame["state"].map(is_sell_like).astype(bool)

    buy = sorted(set(frame.loc[frame["is_buy"], "symbol"]))
    sell = sorted(set(frame.loc[frame["is_sell"], "symbol"]))

    new_today: set[str] = set()
    dropped_off: set[str] = set()
    for event in day_events:
        if event.to_state is not SignalState.NONE:
            new_today.add(event.symbol)
        elif event.from_state is not SignalState.NONE:
            dropped_off.add(event.symbol)

    return DailySignalSummary(
        date=day,
        buy=buy,
        sell=sell,
        new_today=sorted(new_today),
        dropped_off=sorted(dropped_off),
        market=_market_breadth(frame),
    )


def list_active_signals(assets: Iterable[WatchedAsset]) -> list[dict[str, Any]]:
    """Assets with a non-NONE state, sorted by symbol."""
    rows = []
    for asset in assets:
        state = asset.state
        if state is SignalState.NONE:
            continue
        rows.append(
            {
                "symbol": asset.symbol,
                "name": asset.name,
                "state": state.value,
                "current_price": asset.current_price,
                "daily_change_pct": asset.daily_change_pct,
                "target_entry": asset.target_entry,
                "target_exit": asset.target_exit,
                "captured_at": (
                    asset.captured_at.isoformat() if asset.captured_at is not None else None
                ),
            }
        )
    return sorted(rows, key=lambda r: r["symbol"])


def _market_breadth(frame: pd.DataFrame) -> MarketBreadth:
    if frame.empty:
        return MarketBreadth()

    change = frame["change_pct"]
    advancers = int((change > FLAT_BAND_PCT).sum())
    decliners = int((change < -FLAT_BAND_PCT).sum())
    # Missing changes count as flat
    flat = len(frame) - advancers - decliners

    moves = frame.loc[change.notna(), ["symbol", "asset_type", "change_pct"]]
    avg_change_pct = float(moves["change_pct"].mean()) if not moves.empty else 0.0

    gainers = moves.sort_values("change_pct", ascending=False, kind="stable").head(TOP_MOVERS)
    losers = moves.sort_values("change_pct", ascending=True, kind="stable").head(TOP_MOVERS)

    rollup = frame.groupby("asset_type", sort=False).agg(
        total=("symbol", "size"),
        active_signals=("is_active", "sum"),
        buy_signals=("is_buy", "sum"),
        sell_signals=("is_sell", "sum"),
    )

    return MarketBreadth(
        total_assets=len(frame),
        active_signals=int(frame["is_active"].sum()),
        advancers=advancers,
        decliners=decliners,
        flat=flat,
        avg_change_pct=avg_change_pct,
        top_gainers=_movers(gainers),
        top_losers=_movers(losers),
        by_asset_type=[
            AssetTypeRollup(
                asset_type=str(asset_type),
                total=int(row["total"]),
                active_signals=int(row["active_signals"]),
                buy_signals=int(row["buy_signals"]),
                sell_signals=int(row["sell_signals"]),
            )
            for asset_type, row in rollup.iterrows()
        ],
    )


def _movers(rows: pd.DataFrame) -> list[Mover]:
    return [
        Mover(symbol=r.symbol, asset_type=r.asset_type, change_pct=float(r.change_pct))
        for r in rows.itertuples(index=False)
    ]
