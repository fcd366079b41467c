"""Structured logging for the Pipedrive MCP server.

Events emitted:
- pipedrive_tool_success / pipedrive_tool_error: one per tool call, with
  sanitized params, result_count, latency_ms and correlation_id
- pipedrive_api_call: one per upstream request
- pagination_*: aggregation progress (see pagination.py)

Everything is written to stderr. With the stdio transport, stdout carries
the JSON-RPC stream and must never receive log lines.
"""

from __future__ import annotations

import logging
import os
import sys
import time
import uuid
from typing import Any

import structlog

MAX_LOGGED_VALUE_LENGTH = 200

# Substrings of parameter names whose values are never logged
SENSITIVE_FIELDS = frozenset(
    {"token", "api_key", "password", "secret", "credential", "authorization"}
)


def _wants_json(json_output: bool | None) -> bool:
    if json_output is not None:
        return json_output
    if os.getenv("LOG_JSON", "").strip().lower() in ("1", "true", "yes"):
        return True
    # Machine consumers (MCP hosts) read stderr through a pipe
    return not sys.stderr.isatty()


def configure_logging(json_output: bool | None = None, log_level: str | None = None) -> None:
    """Configure structlog to render on stderr.

    Args:
        json_output: JSON lines when True, console output when False.
            None reads LOG_JSON and falls back to JSON when stderr is not a TTY.
        log_level: Minimum level name. None reads LOG_LEVEL (default INFO).
    """
    level_name = (log_level or os.getenv("LOG_LEVEL") or "INFO").upper()
    min_level = logging.getLevelName(level_name)
    if not isinstance(min_level, int):
        min_level = logging.INFO

    renderer: structlog.types.Processor
    if _wants_json(json_output):
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


configure_logging()

log = structlog.get_logger()


def _truncate(value: str) -> str:
    if len(value) <= MAX_LOGGED_VALUE_LENGTH:
        return value
    return f"{value[:MAX_LOGGED_VALUE_LENGTH]}... [truncated {len(value)} chars]"


def _sanitize_params(params: dict[str, Any]) -> dict[str, Any]:
    """Copy of params safe to log: secrets redacted, long strings truncated."""
    clean: dict[str, Any] = {}
    for name, value in params.items():
        if any(marker in name.lower() for marker in SENSITIVE_FIELDS):
            clean[name] = "[REDACTED]"
        elif isinstance(value, dict):
            clean[name] = _sanitize_params(value)
        elif isinstance(value, str):
            clean[name] = _truncate(value)
        else:
            clean[name] = value
    return clean


def _count_results(result: Any) -> int:
    """Number of records in a tool result.

    List tools report ``total_count``, search tools return ``items`` and
    get-by-ID tools return a single record.
    """
    if result is None:
        return 0
    if isinstance(result, list):
        return len(result)
    if isinstance(result, dict):
        total = result.get("total_count")
        if isinstance(total, int) and not isinstance(total, bool):
            return total
        items = result.get("items")
        if isinstance(items, list):
            return len(items)
    return 1


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def generate_correlation_id() -> str:
    """Short random ID tying a tool call to its upstream requests."""
    return uuid.uuid4().hex[:8]


def log_tool_result(
    tool_name: str,
    params: dict[str, Any],
    result: Any,
    start_time: float,
    correlation_id: str | None = None,
) -> None:
    """Log a successful tool call.

    start_time is a time.perf_counter() reading taken when the call began.
    """
    log.info(
        "pipedrive_tool_success",
        tool=tool_name,
        params=_sanitize_params(params),
        result_count=_count_results(result),
        latency_ms=_elapsed_ms(start_time),
        correlation_id=correlation_id,
    )


def log_tool_error(
    tool_name: str,
    params: dict[str, Any],
    error: Exception,
    start_time: float,
    correlation_id: str | None = None,
) -> None:
    """Log a failed tool call with the exception type and a truncated message."""
    log.error(
        "pipedrive_tool_error",
        tool=tool_name,
        params=_sanitize_params(params),
        error_type=type(error).__name__,
        error_message=_truncate(str(error)),
        latency_ms=_elapsed_ms(start_time),
        correlation_id=correlation_id,
    )


def log_api_call(
    method: str,
    path: str,
    status_code: int | None = None,
    latency_ms: float | None = None,
    error: str | None = None,
    correlation_id: str | None = None,
) -> None:
    """Log one request to the Pipedrive API.

    Failed requests are logged at warning level, successful ones at debug.
    """
    fields: dict[str, Any] = {"method": method, "path": path, "correlation_id": correlation_id}
    if status_code is not None:
        fields["status_code"] = status_code
    if latency_ms is not None:
        fields["latency_ms"] = round(latency_ms, 2)

    if error:
        log.warning("pipedrive_api_call", error=_truncate(error), **fields)
    else:
        log.debug("pipedrive_api_call", **fields)
