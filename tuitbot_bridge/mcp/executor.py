"""Tool executor - runs sidecar tool calls and interprets their results."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from tuitbot_bridge.mcp.results import parse_tool_result
from tuitbot_bridge.mcp.schema import ToolOutcome

if TYPE_CHECKING:
    from tuitbot_bridge.mcp.bridge import ToolClient

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Executes tool calls through an MCP client and returns ``ToolOutcome``s.

    Failures reported by the tool itself (error envelopes, empty or flagged
    results) come back as failure outcomes. Transport and protocol errors
    (``MCPError``) propagate to the caller.
    """

    def __init__(self, client: "ToolClient"):
        self._client = client

    async def execute(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolOutcome:
        """
        Execute a tool call.

        Parameters
        ----------
        tool_name : sidecar tool name, without the host prefix
        arguments : dict of parameter values
        """
        t0 = time.perf_counter()
        raw_result = await self._client.call_tool(tool_name, arguments or {})
        elapsed_ms = int((time.perf_counter() - t0) * 1000)

        outcome = parse_tool_result(raw_result)
        if outcome.success:
            logger.debug("Tool %s succeeded in %dms", tool_name, elapsed_ms)
        else:
            logger.info(
                "Tool %s failed in %dms: [%s] %s",
                tool_name,
                elapsed_ms,
                outcome.error_code,
                outcome.error_message,
            )
        return outcome

    # ── Summarization ─────────────────────────────────────────────────────

    @staticmethod
    def summarize(output: str, max_chars: int = 500) -> str:
        """Create a short summary of tool output for display."""
        if not output:
            return "(empty output)"
        if len(output) <= max_chars:
            return output
        head = output[: max_chars // 2]
        tail = output[-(max_chars // 2) :]
        omitted = len(output) - max_chars
        return f"{head}\n... [{omitted} chars omitted] ...\n{tail}"
