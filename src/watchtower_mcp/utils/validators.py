"""Validation utilities and parameter classes."""

import operator
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

# Currencies the converter knows about; anything else passes through as GBP
KNOWN_CURRENCIES = {"GBP", "GBX", "USD", "EUR"}

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class AssetParams:
    """Immutable per-asset parameters, normalized and checked at the edge."""

    symbol: str
    currency: str = "GBP"
    portfolio_size: float = 5000.0
    shares: float | None = None

    def __post_init__(self) -> None:
        # Normalize symbol/currency: uppercase, strip whitespace
        symbol = self.symbol.upper().strip()
        currency = self.currency.upper().strip()

        if not symbol:
            raise ValueError("Symbol must not be empty")
        if self.portfolio_size < 0:
            raise ValueError(f"Invalid portfolio_size {self.portfolio_size}. Must be >= 0")
        if self.shares is not None and self.shares < 0:
            raise ValueError(f"Invalid shares {self.shares}. Must be >= 0")

        object.__setattr__(self, "symbol", symbol)
        object.__setattr__(self, "currency", currency)

    @property
    def is_known_currency(self) -> bool:
        return self.currency in KNOWN_CURRENCIES


def parse_enum(enum_cls: type[E], value: Any) -> E:
    """
    Parse an enum member by name, failing loudly on unknown values.

    Args:
        enum_cls: Target enum class (str-valued)
        value: Member or its name (case-insensitive)

    Returns:
        Enum member

    Raises:
        ValueError: If value does not name a member of enum_cls
    """
    if isinstance(value, enum_cls):
        return value
    name = str(value).upper().strip()
    try:
        return enum_cls(name)
    except ValueError:
        valid = sorted(m.value for m in enum_cls)
        raise ValueError(
            f"Invalid {enum_cls.__name__} '{value}'. Must be one of: {valid}"
        ) from None


def check_rule(
    value: float | None,
    threshold: float | None,
    comparator: Callable[[float, float], bool] = operator.gt,
) -> bool:
    """
    Check a rule where a missing operand means the rule did not fire.

    Args:
        value: The value to check (may be None)
        threshold: The threshold to compare against (may be None)
        comparator: Comparison function (default: operator.gt)

    Returns:
        Comparison result, or False if either operand is None
    """
    if value is None or threshold is None:
        return False
    return comparator(value, threshold)


def check_between(
    low: float | None,
    value: float | None,
    high: float | None,
) -> bool:
    """
    Inclusive range check with nullable operands.

    Returns False unless all three values are present and low <= value <= high.
    """
    if low is None or value is None or high is None:
        return False
    return low <= value <= high
