"""Response envelopes shared by every tool."""

from typing import Any

from watchtower_mcp import SCHEMA_VERSION, SERVER_VERSION


def build_meta(
    tool: str,
    duration_ms: float | None = None,
    timezone: str | None = None,
) -> dict[str, Any]:
    """
    Build the meta block attached to every tool response.

    Args:
        tool: Name of the tool producing this response
        duration_ms: Execution time in milliseconds (optional)
        timezone: Zone that defined "today" for day-scoped tools (optional)

    Returns:
        Metadata dict with server and schema versions
    """
    meta: dict[str, Any] = {
        "server_version": SERVER_VERSION,
        "schema_version": SCHEMA_VERSION,
        "tool": tool,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    if timezone is not None:
        meta["timezone"] = timezone
    return meta


def build_error_response(
    error_type: str,
    message: str,
    symbol: str | None = None,
    tool: str = "error",
) -> dict[str, Any]:
    """
    Build the error envelope returned instead of a tool payload.

    Args:
        error_type: invalid_parameters for rejected input
        message: Human-readable reason, usually the ValueError text
        symbol: Asset the request was about (if any)
        tool: Tool that rejected the request

    Returns:
        Error response dict
    """
    response: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta(tool),
    }
    if symbol is not None:
        response["symbol"] = symbol
    return response
