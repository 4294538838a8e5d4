"""
Bridge sidecar tools into host tool registrations.

Each discovered tool runs through a layered filter pipeline (name
allowlist, mutation gate, category filters, risk ceiling). Survivors are
registered with the host with a category tag in their description and an
``execute`` wrapper that returns a ``ToolOutcome``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from tuitbot_bridge.mcp.catalog import get_tool_meta, risk_at_most
from tuitbot_bridge.mcp.executor import ToolExecutor
from tuitbot_bridge.mcp.schema import BridgeFilterConfig, RemoteTool, ToolOutcome

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "tuitbot_"


@dataclass
class ToolRegistration:
    """What the host receives for each bridged tool."""

    name: str
    description: str
    parameters: Dict[str, Any]
    optional: bool
    execute: Callable[[Dict[str, Any]], Awaitable[ToolOutcome]]


class ToolHost(Protocol):
    def register_tool(self, tool: ToolRegistration) -> None: ...


class ToolClient(Protocol):
    async def list_tools(self) -> List[RemoteTool]: ...

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Any: ...


# ── Filter pipeline ───────────────────────────────────────────────────────


def rejection_reason(name: str, filters: Optional[BridgeFilterConfig] = None) -> Optional[str]:
    """
    Run the filter pipeline for one tool.

    Returns None if the tool may be registered, otherwise a short reason
    naming the stage that rejected it. Stages, in order:

    1. Name allowlist (if set, only named tools pass; nothing else is checked)
    2. Catalog lookup (unknown tools pass)
    3. Mutation gate (mutations and policy-gated composites need enable_mutations)
    4. Category allowlist
    5. Category denylist
    6. Risk ceiling
    """
    filters = filters or BridgeFilterConfig()

    if filters.allowed_tools and name not in filters.allowed_tools:
        return "not in allowed_tools"

    meta = get_tool_meta(name)
    if meta is None:
        return None

    if meta.is_mutating and not filters.enable_mutations:
        return "mutations disabled"

    if filters.allow_categories and meta.category not in filters.allow_categories:
        return f"category {meta.category.value} not allowed"

    if filters.deny_categories and meta.category in filters.deny_categories:
        return f"category {meta.category.value} denied"

    if filters.max_risk_level and not risk_at_most(meta.risk_level, filters.max_risk_level):
        return f"risk {meta.risk_level.value} above {filters.max_risk_level.value}"

    return None


def should_register_tool(name: str, filters: Optional[BridgeFilterConfig] = None) -> bool:
    """True if the tool passes every stage of the filter pipeline."""
    return rejection_reason(name, filters) is None


def describe_tool(tool: RemoteTool) -> str:
    """Host-facing description: catalog tag followed by the tool's own description."""
    meta = get_tool_meta(tool.name)
    tag = meta.tag if meta else "[unknown]"
    return f"{tag} {tool.description or f'Tuitbot MCP tool: {tool.name}'}"


# ── Bridge ────────────────────────────────────────────────────────────────


def _make_execute(executor: ToolExecutor, tool_name: str) -> Callable[[Dict[str, Any]], Awaitable[ToolOutcome]]:
    async def execute(args: Dict[str, Any]) -> ToolOutcome:
        return await executor.execute(tool_name, args)

    return execute


async def bridge_tools(
    client: ToolClient,
    host: ToolHost,
    filters: Optional[BridgeFilterConfig] = None,
    prefix: str = DEFAULT_PREFIX,
) -> int:
    """
    Register the sidecar's tools with the host.

    A failure to list tools propagates: a bridge that registered nothing
    because the sidecar was unreachable would look the same as a sidecar
    with no tools.

    Returns the number of tools registered.
    """
    remote_tools = await client.list_tools()
    executor = ToolExecutor(client)
    count = 0

    for tool in remote_tools:
        reason = rejection_reason(tool.name, filters)
        if reason is not None:
            logger.debug("Skipping tool %s: %s", tool.name, reason)
            continue

        host.register_tool(ToolRegistration(
            name=f"{prefix}{tool.name}",
            description=describe_tool(tool),
            parameters=tool.input_schema,
            optional=True,
            execute=_make_execute(executor, tool.name),
        ))
        count += 1

    logger.debug("Registered %d of %d sidecar tools", count, len(remote_tools))
    return count
