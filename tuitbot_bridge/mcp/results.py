"""
Tool result interpretation and error formatting.

A ``tools/call`` result carries the sidecar's JSON envelope inside
``content[0].text``. This module extracts the envelope, maps error codes to
actionable messages, and returns a ``ToolOutcome``. Nothing here raises:
empty, malformed, and failed results all come back as failure outcomes.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from pydantic import ValidationError

from tuitbot_bridge.mcp.schema import ToolCallResult, ToolOutcome

logger = logging.getLogger(__name__)

TRANSPORT_ERROR = "transport_error"
EMPTY_RESPONSE = "empty_response"

# Sidecar error code -> what the operator should do about it.
# Must be kept in step with the codes ``tuitbot mcp serve`` emits; unknown
# codes fall back to the server's own message.
ERROR_MESSAGES: Dict[str, str] = {
    "x_rate_limited": "X API rate limit hit. Wait before retrying.",
    "x_auth_expired": "X API authentication expired. Re-authenticate with `tuitbot auth`.",
    "x_auth_missing": "X API credentials not configured. Run `tuitbot auth` to set up.",
    "x_forbidden": "X API returned 403 Forbidden. Check account permissions.",
    "x_not_found": "The requested X resource was not found.",
    "x_api_error": "X API returned an unexpected error.",
    "llm_not_configured": "LLM provider not configured. Set up the [llm] section in config.toml.",
    "llm_generation_failed": "LLM generation failed. Check provider connectivity and API key.",
    "llm_parse_error": "Failed to parse LLM response. The model returned an unexpected format.",
    "config_invalid": "Configuration is invalid. Run `tuitbot validate-config` for details.",
    "config_not_found": "Configuration file not found. Run `tuitbot init` to create one.",
    "db_error": "Database error. Check that the SQLite database is accessible.",
    "policy_denied_blocked": "This tool is blocked by MCP policy configuration.",
    "policy_denied_approval": "This action requires approval. Submit via the approval queue.",
    "policy_not_evaluated": "Policy evaluation failed. Check policy configuration.",
    "safety_duplicate": "Duplicate content detected. This reply was already posted.",
    "safety_rate_limit": "Internal rate limit reached. Wait before posting again.",
    "safety_banned_phrase": "Content contains a banned phrase. Edit and retry.",
}


def format_error_message(code: str, server_msg: str) -> str:
    """
    Turn an error code into an actionable message.

    Known codes use the template, with the server's message appended in
    parentheses when it says something the template doesn't. Unknown codes
    return the server's message unchanged.
    """
    template = ERROR_MESSAGES.get(code)
    if template is None:
        return server_msg
    if server_msg and server_msg != template and server_msg != code:
        return f"{template} ({server_msg})"
    return template


def _coerce_result(raw: Any) -> ToolCallResult:
    if isinstance(raw, ToolCallResult):
        return raw
    if not isinstance(raw, dict):
        logger.debug("Tool result is not an object: %r", raw)
        return ToolCallResult()
    try:
        return ToolCallResult.model_validate(raw)
    except ValidationError as exc:
        logger.debug("Tool result has an unexpected shape: %s", exc)
        return ToolCallResult(is_error=bool(raw.get("isError")))


def parse_tool_result(raw: Any) -> ToolOutcome:
    """
    Parse a ``tools/call`` result into a ``ToolOutcome``.

    1. ``isError`` set by the MCP layer -> ``transport_error``.
    2. Empty content or empty first text -> ``empty_response``.
    3. Text that isn't JSON -> success with the raw text as data.
    4. JSON with a ``success`` key -> the sidecar envelope.
    5. Any other JSON -> success with the parsed value as data.
    """
    result = _coerce_result(raw)
    text = result.primary_text

    if result.is_error:
        return ToolOutcome.fail(TRANSPORT_ERROR, text or "Unknown MCP error")

    if not text:
        return ToolOutcome.fail(EMPTY_RESPONSE, "Empty response from tool")

    try:
        parsed = json.loads(text)
    except ValueError:
        return ToolOutcome.ok(data=text)

    if isinstance(parsed, dict) and "success" in parsed:
        return _parse_envelope(parsed)

    return ToolOutcome.ok(data=parsed)


def _parse_envelope(envelope: Dict[str, Any]) -> ToolOutcome:
    if envelope["success"]:
        meta = envelope.get("meta")
        return ToolOutcome.ok(
            data=envelope.get("data"),
            meta=meta if isinstance(meta, dict) else None,
        )

    error = envelope.get("error")
    if not isinstance(error, dict):
        error = {}
    code = str(error.get("code") or "unknown")
    message = str(error.get("message") or "Unknown error")
    retryable = error.get("retryable")

    return ToolOutcome.fail(
        code,
        format_error_message(code, message),
        retryable=retryable if isinstance(retryable, bool) else None,
    )
