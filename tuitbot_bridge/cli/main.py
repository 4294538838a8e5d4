"""
Tuitbot Bridge CLI - inspect and call the sidecar's tools.

Run `tuitbot-bridge tools` to see which tools the bridge would register,
`tuitbot-bridge call <tool>` to run one through the full bridge,
`tuitbot-bridge init` to write flags into the local config file, and
`tuitbot-bridge catalog` to print the static safety catalog.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from tuitbot_bridge import __version__
from tuitbot_bridge.mcp.bridge import bridge_tools, describe_tool, rejection_reason
from tuitbot_bridge.mcp.catalog import catalog_entries
from tuitbot_bridge.mcp.executor import ToolExecutor
from tuitbot_bridge.mcp.registry import ToolRegistry
from tuitbot_bridge.mcp.schema import RiskLevel, ToolCategory, ToolOutcome
from tuitbot_bridge.mcp.transport import MCPError, MCPTransport
from tuitbot_bridge.validation.config import BridgeConfig, Config, ConfigError

console = Console()
err_console = Console(stderr=True)

CATEGORY_CHOICES = [c.value for c in ToolCategory]
RISK_CHOICES = [r.value for r in RiskLevel]


def setup_logging(level: str) -> None:
    """Send log records to stderr through rich. Stdout stays for command output."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _build_overrides(
    allow_tool: Tuple[str, ...],
    enable_mutations: Optional[bool],
    allow_category: Tuple[str, ...],
    deny_category: Tuple[str, ...],
    max_risk: Optional[str],
    binary: Optional[str],
    sidecar_config: Optional[str],
) -> Dict[str, Any]:
    return {
        "sidecar": {
            "binary_path": binary,
            "config_path": sidecar_config,
        },
        "filters": {
            "allowed_tools": list(allow_tool) or None,
            "enable_mutations": enable_mutations,
            "allow_categories": list(allow_category) or None,
            "deny_categories": list(deny_category) or None,
            "max_risk_level": max_risk,
        },
    }


def _filter_options(func):
    """Options shared by commands that start the sidecar."""
    options = [
        click.option("--binary", help="Path to the tuitbot binary."),
        click.option("--sidecar-config", help="Config file passed to tuitbot as --config."),
        click.option("--allow-tool", multiple=True, help="Only register these tools (repeatable)."),
        click.option(
            "--enable-mutations/--no-enable-mutations",
            default=None,
            help="Register mutation and policy-gated tools.",
        ),
        click.option(
            "--allow-category",
            multiple=True,
            type=click.Choice(CATEGORY_CHOICES),
            help="Only register tools in these categories (repeatable).",
        ),
        click.option(
            "--deny-category",
            multiple=True,
            type=click.Choice(CATEGORY_CHOICES),
            help="Never register tools in these categories (repeatable).",
        ),
        click.option("--max-risk", type=click.Choice(RISK_CHOICES), help="Risk ceiling."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(ctx: click.Context, **filter_kwargs: Any) -> BridgeConfig:
    config: Config = ctx.obj["config"]
    config.apply_overrides(_build_overrides(**filter_kwargs))
    try:
        return config.merged
    except ConfigError as exc:
        raise click.ClickException(str(exc))


def _print_outcome(outcome: ToolOutcome) -> None:
    if outcome.success:
        data = outcome.data
        text = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False)
        console.print("[green]✓ success[/green]")
        console.print(ToolExecutor.summarize(text, max_chars=4000), markup=False)
        if outcome.meta:
            console.print(f"[dim]meta: {json.dumps(outcome.meta)}[/dim]")
    else:
        retry = " (retryable)" if outcome.retryable else ""
        console.print(f"[red]✗ {outcome.error_code}{retry}[/red]")
        console.print(outcome.error_message, markup=False)


# ── Commands ──────────────────────────────────────────────────────────────


@click.group()
@click.version_option(__version__, "--version", "-v")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Bridge config file (default: ~/.tuitbot-bridge and .tuitbot-bridge).",
)
@click.option("--log-level", help="Logging level (default from config, INFO).")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], log_level: Optional[str]) -> None:
    """Bridge the tuitbot MCP sidecar's tools into a plugin host."""
    try:
        config = Config.load(config_path)
        level = log_level or config.merged.log_level
    except ConfigError as exc:
        raise click.ClickException(str(exc))

    setup_logging(level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
def catalog() -> None:
    """Print the static tool safety catalog."""
    table = Table(title="Tool catalog")
    table.add_column("Tool", style="cyan")
    table.add_column("Category")
    table.add_column("Risk")
    table.add_column("Policy check")

    risk_style = {RiskLevel.LOW: "green", RiskLevel.MEDIUM: "yellow", RiskLevel.HIGH: "red"}
    for name, meta in catalog_entries():
        style = risk_style[meta.risk_level]
        table.add_row(
            name,
            meta.category.value,
            f"[{style}]{meta.risk_level.value}[/{style}]",
            "yes" if meta.requires_policy_check else "",
        )
    console.print(table)


async def _list_tools(bridge_config: BridgeConfig) -> List[Tuple[str, str, Optional[str]]]:
    transport = MCPTransport.from_config(bridge_config.sidecar)
    await transport.start()
    try:
        remote_tools = await transport.list_tools()
    finally:
        await transport.stop()

    return [
        (tool.name, describe_tool(tool), rejection_reason(tool.name, bridge_config.filters))
        for tool in remote_tools
    ]


async def _prompt_fragment(bridge_config: BridgeConfig) -> str:
    transport = MCPTransport.from_config(bridge_config.sidecar)
    registry = ToolRegistry()
    await transport.start()
    try:
        await bridge_tools(transport, registry, bridge_config.filters, prefix=bridge_config.tool_prefix)
    finally:
        await transport.stop()
    return registry.build_prompt_fragment()


@cli.command()
@click.option("--prompt", "as_prompt", is_flag=True, help="Print registered tools as a prompt fragment.")
@_filter_options
@click.pass_context
def tools(ctx: click.Context, as_prompt: bool, **filter_kwargs: Any) -> None:
    """List the sidecar's tools and whether each would be registered."""
    bridge_config = _load_config(ctx, **filter_kwargs)

    if as_prompt:
        try:
            fragment = asyncio.run(_prompt_fragment(bridge_config))
        except MCPError as exc:
            raise click.ClickException(str(exc))
        if not fragment:
            console.print("[dim]No tools would be registered.[/dim]")
            return
        console.print(fragment, markup=False, highlight=False, soft_wrap=True)
        return

    try:
        rows = asyncio.run(_list_tools(bridge_config))
    except MCPError as exc:
        raise click.ClickException(str(exc))

    if not rows:
        console.print("[dim]The sidecar reported no tools.[/dim]")
        return

    table = Table(title="Sidecar tools")
    table.add_column("Host name", style="cyan")
    table.add_column("Description")
    table.add_column("Registered")

    registered = 0
    for name, description, reason in rows:
        if reason is None:
            registered += 1
            status = "[green]yes[/green]"
        else:
            status = f"[yellow]no[/yellow] [dim]({reason})[/dim]"
        table.add_row(f"{bridge_config.tool_prefix}{name}", escape(description), status)

    console.print(table)
    console.print(f"[bold]{registered}[/bold] of {len(rows)} tools would be registered.")


async def _call_tool(bridge_config: BridgeConfig, name: str, arguments: Dict[str, Any]) -> ToolOutcome:
    transport = MCPTransport.from_config(bridge_config.sidecar)
    registry = ToolRegistry()
    await transport.start()
    try:
        await bridge_tools(transport, registry, bridge_config.filters, prefix=bridge_config.tool_prefix)
        host_name = name if name in registry else f"{bridge_config.tool_prefix}{name}"
        return await registry.execute(host_name, arguments)
    finally:
        await transport.stop()


@cli.command()
@click.argument("tool_name")
@click.option("--args", "args_json", default="{}", help="Tool arguments as a JSON object.")
@_filter_options
@click.pass_context
def call(ctx: click.Context, tool_name: str, args_json: str, **filter_kwargs: Any) -> None:
    """Call TOOL_NAME through the bridge and print its outcome."""
    try:
        arguments = json.loads(args_json)
    except ValueError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--args")
    if not isinstance(arguments, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--args")

    bridge_config = _load_config(ctx, **filter_kwargs)

    try:
        outcome = asyncio.run(_call_tool(bridge_config, tool_name, arguments))
    except MCPError as exc:
        raise click.ClickException(str(exc))

    _print_outcome(outcome)
    if not outcome.success:
        ctx.exit(1)


@cli.command()
@_filter_options
@click.pass_context
def init(ctx: click.Context, **filter_kwargs: Any) -> None:
    """Save the local config with the given flags applied."""
    _load_config(ctx, **filter_kwargs)
    config: Config = ctx.obj["config"]
    try:
        path = config.save()
    except OSError as exc:
        raise click.ClickException(f"Failed to write config: {exc}")
    console.print(f"[green]Wrote {path}[/green]")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
