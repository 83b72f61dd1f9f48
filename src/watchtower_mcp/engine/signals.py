"""Signal classification and state-transition mapping.

A signal state is always derived from the day's trading range and the
asset's configured target levels; it is never stored as ground truth.
"""

import operator
from dataclasses import dataclass
from enum import Enum

from watchtower_mcp.utils.validators import check_between, check_rule


class SignalState(str, Enum):
    """Alert status of an asset against its target levels."""

    NONE = "NONE"
    BUY = "BUY"
    SELL = "SELL"
    BOTH = "BOTH"


class SignalEventType(str, Enum):
    """Change between two consecutive signal states of one asset."""

    ENTER_BUY = "ENTER_BUY"
    ENTER_SELL = "ENTER_SELL"
    ENTER_BOTH = "ENTER_BOTH"
    EXIT_BUY = "EXIT_BUY"
    EXIT_SELL = "EXIT_SELL"
    EXIT_BOTH = "EXIT_BOTH"


@dataclass(frozen=True)
class SignalInput:
    """One asset's intraday range and trigger levels at a point in time."""

    daily_low: float | None = None
    daily_high: float | None = None
    target_entry: float | None = None
    target_exit: float | None = None


# Keyed on the state being entered / the state being left. Both tables are
# complete over SignalState; NONE maps to None in each.
_ENTER_EVENTS: dict[SignalState, SignalEventType | None] = {
    SignalState.NONE: None,
    SignalState.BUY: SignalEventType.ENTER_BUY,
    SignalState.SELL: SignalEventType.ENTER_SELL,
    SignalState.BOTH: SignalEventType.ENTER_BOTH,
}

_EXIT_EVENTS: dict[SignalState, SignalEventType | None] = {
    SignalState.NONE: None,
    SignalState.BUY: SignalEventType.EXIT_BUY,
    SignalState.SELL: SignalEventType.EXIT_SELL,
    SignalState.BOTH: SignalEventType.EXIT_BOTH,
}

_STATE_BY_HITS: dict[tuple[bool, bool], SignalState] = {
    (False, False): SignalState.NONE,
    (True, False): SignalState.BUY,
    (False, True): SignalState.SELL,
    (True, True): SignalState.BOTH,
}


def classify_signal(signal: SignalInput) -> SignalState:
    """
    Classify an asset's signal state from its daily range and targets.

    Entry fires when the entry target sits inside [low, high] (inclusive),
    or when it sits above the day's high; the latter only needs the high.
    Exit fires only inside a complete [low, high] range.

    Args:
        signal: Daily range and configured target levels

    Returns:
        BOTH when entry and exit fire together, else BUY, SELL or NONE
    """
    low, high = signal.daily_low, signal.daily_high

    entry_hit = check_between(low, signal.target_entry, high) or check_rule(
        signal.target_entry, high, operator.gt
    )
    exit_hit = check_between(low, signal.target_exit, high)

    return _STATE_BY_HITS[(entry_hit, exit_hit)]


def transition_event(
    from_state: SignalState,
    to_state: SignalState,
) -> SignalEventType | None:
    """
    Map a (previous, current) state pair to the event it represents.

    Entering a non-NONE state always yields the matching ENTER_* event,
    whatever the previous state was. Falling back to NONE yields EXIT_*
    keyed on the state left. A direct move between two non-NONE states
    (BUY -> SELL) yields only the ENTER_* event; the exit from the previous
    state is not reported separately.

    Returns:
        Event type, or None when nothing changed
    """
    if from_state == to_state:
        return None
    if to_state is not SignalState.NONE:
        return _ENTER_EVENTS[to_state]
    return _EXIT_EVENTS[from_state]


def is_buy_like(state: SignalState) -> bool:
    return state in (SignalState.BUY, SignalState.BOTH)


def is_sell_like(state: SignalState) -> bool:
    return state in (SignalState.SELL, SignalState.BOTH)
