"""MCP Server for Jenkins view convergence.

Tools exposed:
- list_masters: List all configured Jenkins masters
- get_view: Get the current (normalized) config of a view
- converge_view: Converge one view (create, update, delete, append)
- apply_views: Converge every view declared in the inventory
- get_audit_log: Recent audited view changes

Resources:
- jenkins://<master>/view/<name>: current document of each declared view
"""
import asyncio
import functools
import json
import logging
import os
from typing import Optional
from urllib.parse import quote, unquote

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    TextContent,
    Tool,
    Resource,
)
from pydantic import AnyUrl

from .config.inventory import MasterInventory
from .config_engine import Action, ViewParser
from .errors import ViewcraftError
from .runner import ViewRunner
from .utils.audit_log import get_recent_changes, setup_audit_logging
from .utils.logging_config import setup_logging, timed_section

logger = logging.getLogger(__name__)

# Global inventory (initialized on first use)
inventory: Optional[MasterInventory] = None


def get_inventory() -> MasterInventory:
    """Get or create the master inventory."""
    global inventory
    if inventory is None:
        inventory = MasterInventory(os.environ.get("VIEWCRAFT_CONFIG"))
    return inventory


async def run_blocking(func, *args, **kwargs):
    """Run a blocking CLI round trip without stalling the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def _text(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


server = Server("viewcraft")


# === TOOLS ===

_MASTER_PROPERTY = {
    "type": "string",
    "description": "Master ID (e.g., 'ci-main'); optional when only one master is configured",
}
_DRY_RUN_PROPERTY = {
    "type": "boolean",
    "description": "Preview changes without applying (default: false)",
    "default": False,
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="list_masters",
            description="List all configured Jenkins masters with their transport",
            inputSchema={
                "type": "object",
                "properties": {},
                "required": []
            }
        ),
        Tool(
            name="get_view",
            description="Get the current config document of a Jenkins view, or report it absent",
            inputSchema={
                "type": "object",
                "properties": {
                    "master": _MASTER_PROPERTY,
                    "name": {"type": "string", "description": "View name"},
                    "raw": {
                        "type": "boolean",
                        "description": "Return the document exactly as the CLI printed it",
                        "default": False,
                    },
                },
                "required": ["name"]
            }
        ),
        Tool(
            name="converge_view",
            description=(
                "Idempotently converge a Jenkins view. 'create' makes sure it exists "
                "with the standard list view config, 'update' corrects the config of an "
                "existing view, 'delete' removes it, 'append' adds a job to it."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "master": _MASTER_PROPERTY,
                    "name": {"type": "string", "description": "View name"},
                    "action": {
                        "type": "string",
                        "enum": [a.value for a in Action],
                        "default": Action.CREATE.value,
                    },
                    "job": {"type": "string", "description": "Job to add (append only)"},
                    "dry_run": _DRY_RUN_PROPERTY,
                },
                "required": ["name"]
            }
        ),
        Tool(
            name="apply_views",
            description="Converge every view declared in the inventory, in order",
            inputSchema={
                "type": "object",
                "properties": {
                    "master": {"type": "string", "description": "Only views of this master"},
                    "dry_run": _DRY_RUN_PROPERTY,
                },
                "required": []
            }
        ),
        Tool(
            name="get_audit_log",
            description="Get recent view changes from the audit log",
            inputSchema={
                "type": "object",
                "properties": {
                    "master": {"type": "string", "description": "Filter by master"},
                    "view": {"type": "string", "description": "Filter by view name"},
                    "limit": {"type": "integer", "default": 20},
                },
                "required": []
            }
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    master_id = arguments.get("master")

    async with timed_section(f"tool:{name}", master_id=master_id):
        try:
            if name == "get_audit_log":
                return await handle_get_audit_log(
                    arguments.get("master"),
                    arguments.get("view"),
                    arguments.get("limit", 20),
                )

            inv = get_inventory()

            if name == "list_masters":
                return await handle_list_masters(inv)

            elif name == "get_view":
                return await handle_get_view(
                    inv,
                    master_id,
                    arguments["name"],
                    arguments.get("raw", False),
                )

            elif name == "converge_view":
                return await handle_converge_view(inv, arguments)

            elif name == "apply_views":
                return await handle_apply_views(
                    inv,
                    master_id,
                    arguments.get("dry_run", False),
                )

            else:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

        except (ViewcraftError, KeyError, FileNotFoundError) as e:
            logger.error(f"Tool {name} failed: {e}")
            return _text({"success": False, "error": str(e), "error_type": type(e).__name__})


# === TOOL HANDLERS ===

async def handle_list_masters(inv: MasterInventory) -> list[TextContent]:
    """List all configured masters."""
    masters = []
    for master_id in inv.get_master_ids():
        config = inv.get_master_config(master_id)
        masters.append({
            "id": master_id,
            "name": config.get("name", master_id),
            "type": config.get("type"),
            "url": config.get("url"),
            "host": config.get("host"),
            "port": config.get("port"),
        })

    return _text({"masters": masters})


async def handle_get_view(
    inv: MasterInventory,
    master_id: Optional[str],
    name: str,
    raw: bool = False,
) -> list[TextContent]:
    """Get the current document of a view."""
    observed = await run_blocking(ViewRunner(inv).observe, master_id, name)
    return _text({
        "master": master_id or inv.default_master(),
        "view": name,
        "exists": observed.exists,
        "document": observed.raw if raw else observed.normalized,
    })


async def handle_converge_view(inv: MasterInventory, args: dict) -> list[TextContent]:
    """
    Converge one view.

    Use dry_run=True to preview the CLI calls without making them.
    """
    parser = ViewParser()
    resource = parser.build(
        name=args.get("name"),
        action=parser.parse_action(args.get("action")),
        job=args.get("job"),
        master=args.get("master") or inv.default_master(),
    )
    runner = ViewRunner(inv, dry_run=args.get("dry_run", False), user="mcp")
    result = await run_blocking(runner.converge, resource)

    response = result.to_dict()
    response["success"] = True
    return _text(response)


async def handle_apply_views(
    inv: MasterInventory,
    master_id: Optional[str],
    dry_run: bool,
) -> list[TextContent]:
    """Converge every declared view."""
    runner = ViewRunner(inv, dry_run=dry_run, user="mcp")
    results = await run_blocking(runner.apply_all, master_id)
    return _text({
        "success": True,
        "dry_run": dry_run,
        "total_views": len(results),
        "updated": sum(1 for r in results if r.updated),
        "results": [r.to_dict() for r in results],
    })


async def handle_get_audit_log(
    master_id: Optional[str] = None,
    view: Optional[str] = None,
    limit: int = 20
) -> list[TextContent]:
    """Get recent view changes from the audit log."""
    records = get_recent_changes(master_id=master_id, view=view, limit=limit)

    formatted_records = []
    for r in records:
        formatted_records.append({
            "timestamp": r.timestamp,
            "master": r.master_id,
            "view": r.view,
            "action": r.action,
            "event": r.event,
            "dry_run": r.dry_run,
            "success": r.success,
            "detail": r.detail,
            "command": r.command,
        })

    return _text({
        "total_records": len(formatted_records),
        "filters": {
            "master": master_id,
            "view": view,
            "limit": limit,
        },
        "records": formatted_records,
    })


# === RESOURCES ===

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List declared views as resources."""
    inv = get_inventory()
    resources = []

    for view in inv.get_views():
        resources.append(Resource(
            uri=AnyUrl(f"jenkins://{view.master}/view/{quote(view.name, safe='')}"),
            name=f"{view.name} on {view.master}",
            description=f"Current config of Jenkins view {view.name}",
            mimeType="application/xml",
        ))

    return resources


@server.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource."""
    # Parse URI: jenkins://master/view/name
    uri_str = str(uri)
    if uri_str.startswith("jenkins://"):
        parts = uri_str[len("jenkins://"):].split("/", 2)
        if len(parts) == 3 and parts[1] == "view":
            master_id, _, name = parts
            name = unquote(name)
            observed = await run_blocking(ViewRunner(get_inventory()).observe, master_id, name)
            if observed.exists:
                return observed.normalized
            return json.dumps({"error": f"View {name} does not exist on {master_id}"})

    return json.dumps({"error": f"Unknown resource: {uri}"})


def main():
    """Run the MCP server."""
    setup_audit_logging()
    setup_logging()

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
