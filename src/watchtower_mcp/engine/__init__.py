"""Deterministic signal, formula and escalation engine."""

from watchtower_mcp.engine.aggregate import (
    DailySignalSummary,
    TransitionEvent,
    WatchedAsset,
    filter_day_events,
    list_active_signals,
    summarize_daily,
)
from watchtower_mcp.engine.brief import (
    BriefPayload,
    build_fallback_brief,
    parse_model_output,
    resolve_brief,
)
from watchtower_mcp.engine.formulas import (
    FORMULA_COVERAGE,
    SpreadsheetDerived,
    SpreadsheetInputs,
    compute_derived,
    formula_parity_proof,
)
from watchtower_mcp.engine.fx import FALLBACK_RATES, FxRates, parse_fx_payload, to_gbp
from watchtower_mcp.engine.overdue import (
    Subscription,
    SubscriptionStatus,
    evaluate_overdue,
    mark_paid,
    overdue_stage,
    run_overdue_check,
    should_notify,
)
from watchtower_mcp.engine.refresh import (
    AssetRecord,
    Quote,
    Snapshot,
    evaluate_refresh,
    merge_quote,
    summarize_refresh,
)
from watchtower_mcp.engine.signals import (
    SignalEventType,
    SignalInput,
    SignalState,
    classify_signal,
    is_buy_like,
    is_sell_like,
    transition_event,
)

__all__ = [
    # Signals
    "SignalEventType",
    "SignalInput",
    "SignalState",
    "classify_signal",
    "is_buy_like",
    "is_sell_like",
    "transition_event",
    # FX
    "FALLBACK_RATES",
    "FxRates",
    "parse_fx_payload",
    "to_gbp",
    # Formulas
    "FORMULA_COVERAGE",
    "SpreadsheetDerived",
    "SpreadsheetInputs",
    "compute_derived",
    "formula_parity_proof",
    # Refresh
    "AssetRecord",
    "Quote",
    "Snapshot",
    "evaluate_refresh",
    "merge_quote",
    "summarize_refresh",
    # Aggregation
    "DailySignalSummary",
    "TransitionEvent",
    "WatchedAsset",
    "filter_day_events",
    "list_active_signals",
    "summarize_daily",
    # Brief
    "BriefPayload",
    "build_fallback_brief",
    "parse_model_output",
    "resolve_brief",
    # Overdue
    "Subscription",
    "SubscriptionStatus",
    "evaluate_overdue",
    "mark_paid",
    "overdue_stage",
    "run_overdue_check",
    "should_notify",
]
