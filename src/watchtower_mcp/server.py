"""Watchtower signal engine MCP server using FastMCP."""

import json
import logging
import math
import os
from dataclasses import fields
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from fastmcp import FastMCP

from watchtower_mcp import SCHEMA_VERSION, SERVER_VERSION
from watchtower_mcp.engine import (
    AssetRecord,
    FxRates,
    Quote,
    Snapshot,
    SignalInput,
    SignalState,
    SpreadsheetInputs,
    Subscription,
    SubscriptionStatus,
    TransitionEvent,
    WatchedAsset,
    classify_signal,
    compute_derived,
    evaluate_refresh,
    filter_day_events,
    formula_parity_proof,
    list_active_signals,
    resolve_brief,
    run_overdue_check,
    summarize_daily,
    to_gbp,
    transition_event,
)
from watchtower_mcp.engine.aggregate import DailySignalSummary
from watchtower_mcp.utils.normalize import payload_hash, sanitize_nan_inf
from watchtower_mcp.utils.provenance import build_error_response, build_meta
from watchtower_mcp.utils.sanitize import sanitize_text
from watchtower_mcp.utils.time import APP_TIMEZONE, day_window
from watchtower_mcp.utils.validators import AssetParams, parse_enum

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Portfolio size (GBP) the spreadsheet weights are measured against
PORTFOLIO_SIZE = float(os.environ.get("PORTFOLIO_SIZE", "5000"))

# Create FastMCP server instance
mcp = FastMCP(
    name="watchtower",
)


def _dumps(result: dict[str, Any]) -> str:
    return json.dumps(sanitize_nan_inf(result), indent=2, default=str)


def _parse_time(value: Any) -> datetime | None:
    """Accept ISO-8601 strings (with or without Z) or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Invalid timestamp '{value}'. Expected ISO-8601") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _fx_from(rates: dict[str, float] | None) -> FxRates:
    rates = rates or {}
    try:
        usd = float(rates["USD"])
        eur = float(rates["EUR"])
    except (KeyError, TypeError, ValueError):
        raise ValueError("fx must provide numeric 'USD' and 'EUR' rates") from None
    if usd <= 0 or eur <= 0:
        raise ValueError("fx rates must be positive")
    return FxRates(usd=usd, eur=eur)


def _number(row: dict[str, Any], field: str) -> float | None:
    """Read a nullable numeric field, rejecting anything that is not a finite number."""
    value = row.get(field)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field} '{value}'. Must be a number or null")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {field} '{value}'. Must be a number or null") from None
    if not math.isfinite(number):
        raise ValueError(f"Invalid {field} '{value}'. Must be finite")
    return number


def _numbers(row: dict[str, Any], names: tuple[str, ...]) -> dict[str, float | None]:
    return {name: _number(row, name) for name in names if name in row}


# Numeric columns accepted from refresh rows
_QUOTE_NUMBERS = tuple(f.name for f in fields(Quote) if f.name != "source")
_SNAPSHOT_NUMBERS = tuple(
    f.name for f in fields(Snapshot) if f.name not in ("captured_at", "signal_state")
)
_ASSET_NUMBERS = tuple(
    f.name
    for f in fields(AssetRecord)
    if f.name not in ("symbol", "name", "currency", "asset_type")
)


def _watched_asset(row: dict[str, Any]) -> WatchedAsset:
    params = AssetParams(symbol=str(row.get("symbol", "")))
    return WatchedAsset(
        symbol=params.symbol,
        name=sanitize_text(str(row.get("name") or "")),
        asset_type=str(row.get("asset_type") or "STOCK").upper(),
        daily_low=_number(row, "daily_low"),
        daily_high=_number(row, "daily_high"),
        current_price=_number(row, "current_price"),
        daily_change_pct=_number(row, "daily_change_pct"),
        target_entry=_number(row, "target_entry"),
        target_exit=_number(row, "target_exit"),
        captured_at=_parse_time(row.get("captured_at")),
    )


def _transition_event(row: dict[str, Any]) -> TransitionEvent:
    occurred_at = _parse_time(row.get("occurred_at"))
    if occurred_at is None:
        raise ValueError("Transition events require 'occurred_at'")
    return TransitionEvent(
        symbol=str(row.get("symbol", "")).upper().strip(),
        from_state=parse_enum(SignalState, row.get("from_state", "NONE")),
        to_state=parse_enum(SignalState, row.get("to_state", "NONE")),
        occurred_at=occurred_at,
    )


def _daily_summary(
    assets: list[dict[str, Any]],
    events: list[dict[str, Any]],
    date: str | None,
) -> DailySignalSummary:
    window = day_window(date, APP_TIMEZONE)
    day_events = filter_day_events([_transition_event(e) for e in events], window)
    return summarize_daily([_watched_asset(a) for a in assets], day_events, window.date)


# ============================================================================
# TOOLS
# ============================================================================


@mcp.tool
async def classify(
    daily_low: float | None = None,
    daily_high: float | None = None,
    target_entry: float | None = None,
    target_exit: float | None = None,
) -> str:
    """
    Classify an asset's signal state from its daily range and target levels.

    Args:
        daily_low: Day's low price
        daily_high: Day's high price
        target_entry: Configured buy-zone level
        target_exit: Configured sell-zone level

    Returns:
        JSON with state (NONE, BUY, SELL or BOTH)
    """
    state = classify_signal(
        SignalInput(
            daily_low=daily_low,
            daily_high=daily_high,
            target_entry=target_entry,
            target_exit=target_exit,
        )
    )
    return _dumps({"meta": build_meta("classify"), "state": state.value})


@mcp.tool
async def signal_transition(from_state: str, to_state: str) -> str:
    """
    Map a previous and current signal state to the event to record.

    Args:
        from_state: Previous state (NONE, BUY, SELL, BOTH)
        to_state: Current state

    Returns:
        JSON with event_type (null when nothing changed)
    """
    try:
        event = transition_event(
            parse_enum(SignalState, from_state),
            parse_enum(SignalState, to_state),
        )
    except ValueError as e:
        return _dumps(build_error_response("invalid_parameters", str(e), tool="signal_transition"))
    return _dumps(
        {
            "meta": build_meta("signal_transition"),
            "event_type": event.value if event is not None else None,
        }
    )


@mcp.tool
async def convert_to_gbp(amount: float | None, currency: str, fx: dict[str, float]) -> str:
    """
    Convert an amount into GBP.

    Args:
        amount: Amount in the quoted currency
        currency: GBP, GBX (pence), USD or EUR; unknown codes pass through
        fx: GBP cross rates, e.g. {"USD": 1.27, "EUR": 1.17}

    Returns:
        JSON with amount_gbp
    """
    try:
        rates = _fx_from(fx)
    except ValueError as e:
        return _dumps(build_error_response("invalid_parameters", str(e), tool="convert_to_gbp"))
    return _dumps(
        {
            "meta": build_meta("convert_to_gbp"),
            "currency": currency.upper().strip(),
            "amount_gbp": to_gbp(amount, currency, rates),
        }
    )


@mcp.tool
async def spreadsheet_formulas(
    symbol: str,
    name: str,
    currency: str,
    fx: dict[str, float],
    shares: float | None = None,
    entry_price: float | None = None,
    current_price: float | None = None,
    close_yest: float | None = None,
    daily_high: float | None = None,
    daily_low: float | None = None,
    low52: float | None = None,
    target_entry: float | None = None,
    target_exit: float | None = None,
    portfolio_size: float | None = None,
) -> str:
    """
    Compute the spreadsheet-parity columns for one asset.

    Returns cost/value in GBP, weight and return %, daily change, range vs
    yesterday's close, distance from the 52-week low, signal state and the
    trade alert text. Missing inputs give null outputs.

    Returns:
        JSON with the derived fields and a payload hash
    """
    start_time = perf_counter()
    try:
        params = AssetParams(
            symbol=symbol,
            currency=currency,
            portfolio_size=PORTFOLIO_SIZE if portfolio_size is None else portfolio_size,
            shares=shares,
        )
        rates = _fx_from(fx)
    except ValueError as e:
        return _dumps(
            build_error_response(
                "invalid_parameters", str(e), symbol=symbol, tool="spreadsheet_formulas"
            )
        )

    derived = compute_derived(
        SpreadsheetInputs(
            symbol=params.symbol,
            name=sanitize_text(name) or "",
            currency=params.currency,
            portfolio_size=params.portfolio_size,
            shares=params.shares,
            entry_price=entry_price,
            current_price=current_price,
            close_yest=close_yest,
            daily_high=daily_high,
            daily_low=daily_low,
            low52=low52,
            target_entry=target_entry,
            target_exit=target_exit,
            fx=rates,
        )
    )
    derived_dict = derived.to_dict()
    duration_ms = (perf_counter() - start_time) * 1000

    return _dumps(
        {
            "meta": build_meta("spreadsheet_formulas", duration_ms),
            "symbol": params.symbol,
            "currency_known": params.is_known_currency,
            "derived": derived_dict,
            "derived_hash": payload_hash(derived_dict),
        }
    )


@mcp.tool
async def formula_parity(
    sample: dict[str, Any] | None = None,
    fx: dict[str, float] | None = None,
) -> str:
    """
    List every spreadsheet formula with a sample value from one asset.

    Args:
        sample: Asset fields as accepted by spreadsheet_formulas (optional)
        fx: GBP cross rates (required when sample is given)

    Returns:
        JSON with sample_asset and formulas
    """
    if not sample:
        return _dumps({"meta": build_meta("formula_parity"), **formula_parity_proof(None)})

    try:
        params = AssetParams(
            symbol=str(sample.get("symbol", "")),
            currency=str(sample.get("currency") or "GBP"),
            portfolio_size=PORTFOLIO_SIZE,
            shares=_number(sample, "shares"),
        )
        rates = _fx_from(fx)
        name = sanitize_text(str(sample.get("name") or ""))
        inputs = SpreadsheetInputs(
            symbol=params.symbol,
            name=name,
            currency=params.currency,
            portfolio_size=params.portfolio_size,
            shares=params.shares,
            entry_price=_number(sample, "entry_price"),
            current_price=_number(sample, "current_price"),
            close_yest=_number(sample, "close_yest"),
            daily_high=_number(sample, "daily_high"),
            daily_low=_number(sample, "daily_low"),
            low52=_number(sample, "low52"),
            target_entry=_number(sample, "target_entry"),
            target_exit=_number(sample, "target_exit"),
            fx=rates,
        )
    except ValueError as e:
        return _dumps(build_error_response("invalid_parameters", str(e), tool="formula_parity"))

    derived = compute_derived(inputs)
    proof = formula_parity_proof(derived, {"symbol": params.symbol, "name": name})
    return _dumps({"meta": build_meta("formula_parity"), **proof})


@mcp.tool
async def refresh_asset(
    asset: dict[str, Any],
    fx: dict[str, float],
    previous: dict[str, Any] | None = None,
    quote: dict[str, Any] | None = None,
) -> str:
    """
    Evaluate one asset for a market refresh pass.

    Merges the fresh quote over the previous snapshot, computes the
    formulas and signal state, and reports the transition event to record.

    Args:
        asset: Asset row with rule levels (symbol, name, currency, shares,
            entry_price, target_entry, target_exit, ...)
        fx: GBP cross rates
        previous: Latest persisted snapshot including signal_state (optional)
        quote: Fresh quote fields (optional)

    Returns:
        JSON with snapshot, signal_state, event and asset_updates, or
        skipped=true when there is neither a quote nor a snapshot
    """
    try:
        params = AssetParams(
            symbol=str(asset.get("symbol", "")),
            currency=str(asset.get("currency") or "GBP"),
            portfolio_size=PORTFOLIO_SIZE,
            shares=_number(asset, "shares"),
        )
        rates = _fx_from(fx)
        record = AssetRecord(
            **{
                **_numbers(asset, _ASSET_NUMBERS),
                "symbol": params.symbol,
                "name": sanitize_text(str(asset.get("name") or "")),
                "currency": params.currency,
            }
        )
        prev = None
        if previous:
            prev = Snapshot(
                **{
                    **_numbers(previous, _SNAPSHOT_NUMBERS),
                    "captured_at": _parse_time(previous.get("captured_at")),
                    "signal_state": parse_enum(
                        SignalState, previous.get("signal_state", "NONE")
                    ),
                }
            )
        fresh = None
        if quote:
            fresh = Quote(
                **_numbers(quote, _QUOTE_NUMBERS),
                source=str(quote.get("source") or "unknown"),
            )
    except ValueError as e:
        return _dumps(build_error_response("invalid_parameters", str(e), tool="refresh_asset"))

    outcome = evaluate_refresh(record, prev, fresh, rates, params.portfolio_size)
    if outcome is None:
        return _dumps(
            {"meta": build_meta("refresh_asset"), "symbol": params.symbol, "skipped": True}
        )
    return _dumps({"meta": build_meta("refresh_asset"), "skipped": False, **outcome.to_dict()})


@mcp.tool
async def daily_signal_summary(
    assets: list[dict[str, Any]],
    events: list[dict[str, Any]] | None = None,
    date: str | None = None,
) -> str:
    """
    Summarize the day's signals and market breadth.

    Args:
        assets: Active assets with latest snapshot and rule levels
        events: Persisted transition events (filtered to the day here)
        date: Day as YYYY-MM-DD (default: today in APP_TIMEZONE)

    Returns:
        JSON with buy, sell, new_today, dropped_off and market breadth
    """
    start_time = perf_counter()
    try:
        summary = _daily_summary(assets, events or [], date)
    except ValueError as e:
        return _dumps(
            build_error_response("invalid_parameters", str(e), tool="daily_signal_summary")
        )
    duration_ms = (perf_counter() - start_time) * 1000
    return _dumps(
        {
            "meta": build_meta("daily_signal_summary", duration_ms, timezone=APP_TIMEZONE),
            **summary.to_dict(),
        }
    )


@mcp.tool
async def active_signals(assets: list[dict[str, Any]]) -> str:
    """
    List assets currently in a BUY, SELL or BOTH state, sorted by symbol.

    Args:
        assets: Active assets with latest snapshot and rule levels

    Returns:
        JSON with signals list
    """
    try:
        rows = list_active_signals([_watched_asset(a) for a in assets])
    except ValueError as e:
        return _dumps(build_error_response("invalid_parameters", str(e), tool="active_signals"))
    return _dumps({"meta": build_meta("active_signals"), "signals": rows})


@mcp.tool
async def daily_brief(
    assets: list[dict[str, Any]],
    events: list[dict[str, Any]] | None = None,
    date: str | None = None,
    model_output: str | None = None,
) -> str:
    """
    Build the daily brief for a day.

    Uses the summarizer's JSON reply when model_output is given and valid,
    otherwise the deterministic fallback brief.

    Args:
        assets: Active assets with latest snapshot and rule levels
        events: Persisted transition events
        date: Day as YYYY-MM-DD (default: today in APP_TIMEZONE)
        model_output: Raw JSON reply from an external summarizer (optional)

    Returns:
        JSON brief payload with summary, symbol lists and insights
    """
    try:
        summary = _daily_summary(assets, events or [], date)
    except ValueError as e:
        return _dumps(build_error_response("invalid_parameters", str(e), tool="daily_brief"))
    brief = resolve_brief(summary, model_output)
    payload = brief.to_dict()
    return _dumps(
        {
            "meta": build_meta("daily_brief", timezone=APP_TIMEZONE),
            "date": summary.date,
            **payload,
            "brief_hash": payload_hash(payload),
        }
    )


@mcp.tool
async def overdue_check(
    subscriptions: list[dict[str, Any]],
    now: str | None = None,
) -> str:
    """
    Run the overdue escalation check over subscriptions.

    Args:
        subscriptions: Rows with user_id, email, status, due_at,
            overdue_stage and last_overdue_notified_at
        now: Check time as ISO-8601 (default: current time)

    Returns:
        JSON with scanned/flagged/notifications counts and per-subscription
        decisions (status, stage, notification)
    """
    try:
        check_time = _parse_time(now) or datetime.now(timezone.utc)
        subs = [
            Subscription(
                user_id=str(row.get("user_id", "")),
                email=str(row.get("email", "")),
                status=parse_enum(SubscriptionStatus, row.get("status", "ACTIVE")),
                due_at=_parse_time(row.get("due_at")),
                overdue_stage=int(row.get("overdue_stage") or 0),
                last_overdue_notified_at=_parse_time(row.get("last_overdue_notified_at")),
            )
            for row in subscriptions
        ]
    except ValueError as e:
        return _dumps(build_error_response("invalid_parameters", str(e), tool="overdue_check"))

    result = run_overdue_check(subs, check_time)
    decisions = [
        {
            "user_id": d.user_id,
            "status": d.status.value,
            "stage": d.stage,
            "days_overdue": d.days_overdue,
            "changed": d.changed,
            "notify": d.notify,
            "notification": (
                {
                    "title": d.notification.title,
                    "body": d.notification.body,
                    "metadata": d.notification.metadata,
                }
                if d.notification is not None
                else None
            ),
            "last_overdue_notified_at": d.last_overdue_notified_at,
        }
        for d in result.decisions
    ]
    return _dumps(
        {
            "meta": build_meta("overdue_check"),
            "checked_at": check_time.isoformat(),
            "scanned": result.scanned,
            "flagged": result.flagged,
            "notifications": result.notifications,
            "decisions": decisions,
        }
    )


# ============================================================================
# ENTRY POINT
# ============================================================================


def main() -> None:
    """Run the MCP server."""
    logger.info(f"Starting Watchtower MCP Server v{SERVER_VERSION} (schema v{SCHEMA_VERSION})")
    mcp.run()


if __name__ == "__main__":
    main()
