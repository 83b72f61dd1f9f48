"""Normalization utilities for deterministic engine payloads.

Engine outputs are compared across refresh cycles and persisted as JSON, so
they must serialize identically for identical input:
1. Key ordering: sorted at every level
2. Float precision: rounded to a fixed number of places
3. NaN/inf sanitization: replaced with null for JSON safety
4. Negative zero: replaced with 0.0
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any

# Decimal places kept on every numeric engine output
NUMBER_PLACES = 6


def canonical_dumps(obj: Any) -> str:
    """Produce canonical JSON string with sorted keys and minimal separators.

    Uses allow_nan=False to fail fast if NaN/inf values slip through
    sanitization. This ensures JSON validity across all parsers.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def payload_hash(obj: Any) -> str:
    """SHA-256 of the canonical JSON form, truncated to 16 hex chars."""
    return hashlib.sha256(canonical_dumps(obj).encode("utf-8")).hexdigest()[:16]


def clean_number(value: float | None, places: int = NUMBER_PLACES) -> float | None:
    """Round a nullable number, mapping NaN/inf to None and -0.0 to 0.0."""
    if value is None or _is_nan_or_inf(value):
        return None
    rounded = round(float(value), places)
    if _is_negative_zero(rounded):
        return 0.0
    return rounded


def sanitize_nan_inf(obj: Any) -> Any:
    """Recursively replace NaN, inf, -inf with None and -0.0 with 0.0."""
    if isinstance(obj, dict):
        return {k: sanitize_nan_inf(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [sanitize_nan_inf(item) for item in obj]
    elif _is_nan_or_inf(obj):
        return None
    elif _is_negative_zero(obj):
        return 0.0
    return obj


def _is_nan_or_inf(x: Any) -> bool:
    """Check if value is NaN or inf, handling numpy types safely."""
    if isinstance(x, bool):
        return False
    try:
        # Works for float, numpy.float64, etc.
        return math.isnan(x) or math.isinf(x)
    except (TypeError, ValueError):
        # Not a numeric type that supports isnan/isinf
        return False


def _is_negative_zero(x: Any) -> bool:
    """Check if value is -0.0 (which creates diff noise)."""
    if not isinstance(x, float):
        return False
    return x == 0.0 and math.copysign(1.0, x) < 0
