"""Currency conversion into the GBP base currency."""

import logging
import math
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

BASE_CURRENCY = "GBP"
# Pence quoting: 100 GBX == 1 GBP
MINOR_CURRENCY = "GBX"


@dataclass(frozen=True)
class FxRates:
    """GBP cross rates: units of foreign currency per 1 GBP."""

    usd: float
    eur: float

    def rate_for(self, currency: str) -> float | None:
        """Rate for a foreign code, or None if the code is not quoted."""
        return {"USD": self.usd, "EUR": self.eur}.get(currency.upper())

    def to_dict(self) -> dict[str, float]:
        return {"USD": self.usd, "EUR": self.eur}


# Used when the FX provider is unreachable or returns an incomplete body
FALLBACK_RATES = FxRates(usd=1.27, eur=1.17)


def to_gbp(amount: float | None, currency: str, rates: FxRates) -> float | None:
    """
    Convert an amount quoted in `currency` into GBP.

    Unrecognized codes are assumed to be GBP already and pass through
    unchanged (a warning is logged).

    Args:
        amount: Monetary amount (may be None)
        currency: Currency code, case-insensitive (GBP, GBX, USD, EUR)
        rates: GBP cross rates for the current refresh cycle

    Returns:
        Amount in GBP, or None if amount is None or the rate is zero or
        non-finite
    """
    if amount is None:
        return None

    code = currency.upper().strip()
    if code == BASE_CURRENCY:
        return amount
    if code == MINOR_CURRENCY:
        return amount / 100

    rate = rates.rate_for(code)
    if rate is None:
        logger.warning(f"Unknown currency '{currency}', treating amount as {BASE_CURRENCY}")
        return amount
    if not rate or math.isinf(rate) or math.isnan(rate):
        # No usable rate: the converted amount is unknown
        return None
    return amount / rate


def parse_fx_payload(payload: Any) -> FxRates:
    """
    Read GBP cross rates from an FX provider response body.

    Expects {"rates": {"USD": <float>, "EUR": <float>}} with base GBP.
    Any missing or non-positive rate falls back to FALLBACK_RATES as a whole.

    Args:
        payload: Decoded JSON body (any shape)

    Returns:
        FxRates
    """
    rates = payload.get("rates") if isinstance(payload, dict) else None
    if not isinstance(rates, dict):
        logger.warning("FX payload missing 'rates', using fallback rates")
        return FALLBACK_RATES

    usd = rates.get("USD")
    eur = rates.get("EUR")
    if not _is_positive_number(usd) or not _is_positive_number(eur):
        logger.warning(f"FX payload incomplete (USD={usd}, EUR={eur}), using fallback rates")
        return FALLBACK_RATES

    return FxRates(usd=float(usd), eur=float(eur))


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0 and value != float("inf")
