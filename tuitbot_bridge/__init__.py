"""
Tuitbot Bridge - expose the tuitbot sidecar's tools to a plugin host.

Spawns ``tuitbot mcp serve`` as a child process, speaks newline-delimited
JSON-RPC 2.0 to it, and registers its tools with the host behind a layered
safety filter.

Layout:
- mcp/          transport, result interpretation, catalog, filter pipeline
- validation/   YAML configuration loading and validation
- plugin.py     host plugin entry point
- cli/          command-line interface for inspecting and calling tools
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

__all__ = ["__version__"]
