"""
Host plugin entry point.

Starts the tuitbot sidecar, bridges its tools into host tool registrations,
and registers a service so the host can shut the sidecar down.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from tuitbot_bridge.mcp.bridge import ToolRegistration, bridge_tools
from tuitbot_bridge.mcp.transport import MCPTransport
from tuitbot_bridge.validation.config import BridgeConfig

PLUGIN_ID = "tuitbot"
PLUGIN_NAME = "Tuitbot"
SERVICE_NAME = "tuitbot-mcp"


@dataclass
class Service:
    """A long-lived resource the host stops on shutdown."""

    name: str
    stop: Callable[[], Awaitable[None]]


class PluginApi(Protocol):
    """The slice of the host API this plugin uses."""

    config: BridgeConfig

    def register_tool(self, tool: ToolRegistration) -> None: ...

    def register_service(self, service: Service) -> None: ...

    def log(self, level: str, message: str) -> None: ...


async def register(api: PluginApi) -> int:
    """
    Register the sidecar's tools with the host.

    Returns the number of tools registered. If the sidecar can't be started
    or its tools can't be listed, the error propagates and nothing is left
    running.
    """
    config = api.config

    def on_exit(code):
        api.log("warn", f"Tuitbot MCP process exited with code {code}")

    transport = MCPTransport.from_config(config.sidecar, on_exit=on_exit)
    await transport.start()

    try:
        count = await bridge_tools(transport, api, config.filters, prefix=config.tool_prefix)
    except Exception:
        await transport.stop()
        raise

    mutations = "enabled" if config.filters.enable_mutations else "disabled"
    api.log("info", f"Tuitbot plugin registered {count} tools (mutations: {mutations})")

    api.register_service(Service(name=SERVICE_NAME, stop=transport.stop))
    return count
