"""
MCP bridge for the tuitbot sidecar.

The sidecar (``tuitbot mcp serve``) speaks JSON-RPC over stdio. This package
spawns it, lists its tools, filters them against a static safety catalog,
and registers the survivors with a host. Tool results are normalized into
``ToolOutcome`` values with actionable error messages.

    host --register--> bridge --tools/list--> transport <--stdio--> sidecar
    host --execute---> executor --tools/call--> transport
                        `--> results.parse_tool_result --> ToolOutcome
"""

from tuitbot_bridge.mcp.schema import (
    BridgeFilterConfig,
    CapabilityMeta,
    RemoteTool,
    RiskLevel,
    ToolCallResult,
    ToolCategory,
    ToolOutcome,
)
from tuitbot_bridge.mcp.transport import (
    MCPError,
    MCPProcessExitedError,
    MCPProtocolError,
    MCPTransport,
    MCPTransportError,
)
from tuitbot_bridge.mcp.results import format_error_message, parse_tool_result
from tuitbot_bridge.mcp.catalog import get_tool_meta, risk_at_most
from tuitbot_bridge.mcp.executor import ToolExecutor
from tuitbot_bridge.mcp.bridge import (
    ToolRegistration,
    bridge_tools,
    rejection_reason,
    should_register_tool,
)
from tuitbot_bridge.mcp.registry import ToolRegistry

__all__ = [
    "BridgeFilterConfig",
    "CapabilityMeta",
    "RemoteTool",
    "RiskLevel",
    "ToolCallResult",
    "ToolCategory",
    "ToolOutcome",
    "MCPError",
    "MCPProcessExitedError",
    "MCPProtocolError",
    "MCPTransport",
    "MCPTransportError",
    "format_error_message",
    "parse_tool_result",
    "get_tool_meta",
    "risk_at_most",
    "ToolExecutor",
    "ToolRegistration",
    "bridge_tools",
    "rejection_reason",
    "should_register_tool",
    "ToolRegistry",
]
