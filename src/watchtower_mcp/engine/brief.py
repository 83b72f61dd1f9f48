"""Daily brief payloads: deterministic fallback and model-output parsing."""

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any

from watchtower_mcp.engine.aggregate import DailySignalSummary, MarketBreadth
from watchtower_mcp.utils.sanitize import sanitize_symbols, sanitize_text

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "deterministic-fallback"
# Label recorded on briefs produced by the external summarizer
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-5-nano-2025-08-07")

MIN_INSIGHTS = 4
MAX_INSIGHTS = 6

# Appended in order until the brief carries MIN_INSIGHTS lines
CAUTION_LINES = (
    "Check high-volatility assets first and validate targets before action.",
    "Confirm signal levels against the latest close before placing orders.",
    "Review position sizes against portfolio weight limits.",
    "Revisit stale targets on assets without recent snapshots.",
)


@dataclass(frozen=True)
class BriefPayload:
    summary: str
    buy: list[str]
    sell: list[str]
    new_today: list[str]
    dropped_off: list[str]
    insights: list[str]
    model: str
    is_fallback: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_fallback_brief(summary: DailySignalSummary) -> BriefPayload:
    """
    Build the templated brief used when no summarizer is available.

    Output depends only on the input: identical summaries give identical
    payloads. Always carries between MIN_INSIGHTS and MAX_INSIGHTS lines.

    Args:
        summary: Output of summarize_daily (market may be None)

    Returns:
        BriefPayload with model="deterministic-fallback"
    """
    insights = [
        f"Active BUY signals: {len(summary.buy)}. Active SELL signals: {len(summary.sell)}."
    ]
    if summary.new_today:
        insights.append(f"New signal entries today: {', '.join(summary.new_today)}.")
    if summary.dropped_off:
        insights.append(f"Dropped from signal zones today: {', '.join(summary.dropped_off)}.")
    if summary.market is not None:
        insights.extend(_market_insights(summary.market))

    insights = insights[:MAX_INSIGHTS]
    for line in CAUTION_LINES:
        if len(insights) >= MIN_INSIGHTS:
            break
        insights.append(line)

    text = (
        f"Daily brief: {len(summary.buy)} buy-side and {len(summary.sell)} sell-side "
        "active signals across the watchlist."
    )
    if summary.market is not None:
        text += (
            f" {summary.market.active_signals} total active signals out of "
            f"{summary.market.total_assets} assets."
        )

    return BriefPayload(
        summary=text,
        buy=list(summary.buy),
        sell=list(summary.sell),
        new_today=list(summary.new_today),
        dropped_off=list(summary.dropped_off),
        insights=insights,
        model=FALLBACK_MODEL,
        is_fallback=True,
    )


def parse_model_output(
    text: str,
    fallback: BriefPayload,
    model: str = OPENAI_MODEL,
) -> BriefPayload:
    """
    Parse a summarizer's strict-JSON reply, falling back on anything malformed.

    A usable reply has a non-empty "summary" string and an "insights" list.
    Symbol lists missing from the reply are taken from the fallback.

    Args:
        text: Raw model output
        fallback: Deterministic brief for the same day
        model: Model label recorded on the parsed payload

    Returns:
        Parsed BriefPayload, or fallback
    """
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as e:
        logger.warning(f"Brief model output is not valid JSON, using fallback: {e}")
        return fallback

    if not isinstance(parsed, dict):
        logger.warning("Brief model output is not a JSON object, using fallback")
        return fallback

    summary = parsed.get("summary")
    insights = parsed.get("insights")
    if not isinstance(summary, str) or not summary.strip() or not isinstance(insights, list):
        logger.warning("Brief model output missing summary/insights, using fallback")
        return fallback

    def symbols(key: str, default: list[str], alias: str | None = None) -> list[str]:
        value = parsed.get(key)
        if value is None and alias is not None:
            value = parsed.get(alias)
        return sanitize_symbols(value) if isinstance(value, list) else default

    return BriefPayload(
        summary=sanitize_text(summary, max_length=2000) or fallback.summary,
        buy=symbols("buy", fallback.buy),
        sell=symbols("sell", fallback.sell),
        new_today=symbols("newToday", fallback.new_today, alias="new_today"),
        dropped_off=symbols("droppedOff", fallback.dropped_off, alias="dropped_off"),
        insights=[
            line
            for line in (sanitize_text(i) for i in insights if isinstance(i, str))
            if line
        ],
        model=model,
        is_fallback=False,
    )


def resolve_brief(
    summary: DailySignalSummary,
    model_text: str | None = None,
    model: str = OPENAI_MODEL,
) -> BriefPayload:
    """Model brief when a reply is available, deterministic fallback otherwise."""
    fallback = build_fallback_brief(summary)
    if model_text is None or not model_text.strip():
        return fallback
    return parse_model_output(model_text.strip(), fallback, model=model)


def _market_insights(market: MarketBreadth) -> list[str]:
    lines = [
        f"Market breadth: {market.advancers} advancing, {market.decliners} declining, "
        f"{market.flat} flat. Avg change {market.avg_change_pct:.2f}%."
    ]
    if market.top_gainers:
        movers = ", ".join(f"{m.symbol} ({m.change_pct:.2f}%)" for m in market.top_gainers)
        lines.append(f"Top gainers: {movers}.")
    if market.top_losers:
        movers = ", ".join(f"{m.symbol} ({m.change_pct:.2f}%)" for m in market.top_losers)
        lines.append(f"Top losers: {movers}.")
    if market.by_asset_type:
        # Stable: the first asset class wins ties
        strongest = sorted(market.by_asset_type, key=lambda r: -r.active_signals)[0]
        lines.append(
            f"Most active class: {strongest.asset_type} with {strongest.active_signals} "
            f"active signals out of {strongest.total} tracked."
        )
    return lines
