"""Tool registry - an in-memory host that bridged tools register into."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from tuitbot_bridge.mcp.bridge import ToolRegistration
from tuitbot_bridge.mcp.schema import ToolOutcome


class ToolRegistry:
    """
    Holds the tool registrations produced by ``bridge_tools``.

    Stands in for a plugin host: the CLI registers bridged tools here,
    lists them, and dispatches calls by their registered name.
    """

    def __init__(self):
        self._tools: Dict[str, ToolRegistration] = {}

    def register_tool(self, tool: ToolRegistration) -> None:
        """Register a tool. Names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    # ── Tool Lookup ───────────────────────────────────────────────────────

    def get_tool(self, name: str) -> Optional[ToolRegistration]:
        return self._tools.get(name)

    def list_tools(self) -> List[ToolRegistration]:
        """Return all registered tools, in registration order."""
        return list(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    # ── Dispatch ──────────────────────────────────────────────────────────

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolOutcome:
        """Run a registered tool by its registered name."""
        tool = self._tools.get(name)
        if tool is None:
            return ToolOutcome.fail("tool_not_found", f"Tool not found: {name}")
        return await tool.execute(arguments or {})

    # ── Prompt Building ───────────────────────────────────────────────────

    def build_prompt_fragment(self) -> str:
        """
        Build a one-line-per-tool listing, e.g.::

            Available tools:
            - tuitbot_get_stats: [read] Get account stats
        """
        if not self._tools:
            return ""

        lines = ["Available tools:"]
        for tool in self._tools.values():
            lines.append(f"- {tool.name}: {tool.description}")
        return "\n".join(lines)
