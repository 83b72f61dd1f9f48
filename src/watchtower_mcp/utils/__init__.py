"""Utility modules."""

from watchtower_mcp.utils.normalize import canonical_dumps, clean_number, payload_hash
from watchtower_mcp.utils.provenance import build_error_response, build_meta
from watchtower_mcp.utils.sanitize import sanitize_symbols, sanitize_text
from watchtower_mcp.utils.time import DayWindow, day_window, days_between, start_of_day_in_timezone
from watchtower_mcp.utils.validators import AssetParams, check_between, check_rule, parse_enum

__all__ = [
    "canonical_dumps",
    "clean_number",
    "payload_hash",
    "build_error_response",
    "build_meta",
    "sanitize_symbols",
    "sanitize_text",
    "DayWindow",
    "day_window",
    "days_between",
    "start_of_day_in_timezone",
    "AssetParams",
    "check_between",
    "check_rule",
    "parse_enum",
]
