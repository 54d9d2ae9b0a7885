"""MCP Server for offline-first notes using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents read and edit a local note set and synchronize it with the remote
notes service.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP

Sync triggers: once on startup (``sync.on_startup``), periodically every
``sync.auto_sync_interval`` seconds when non-zero, and on demand through
the ``notes_sync`` tool.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import ensure_config
from ..logger import setup_logging
from .lifespan import NotesRuntime, server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("notes-mcp-server")

# Global runtime instance (initialized in lifespan)
_runtime: NotesRuntime | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no permission required)
# ---------------------------------------------------------------------------


async def _handle_ping(
    runtime: NotesRuntime, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- probe the notes service and report connectivity."""
    online = await runtime.engine.check_connectivity()
    if online:
        text = f"Notes MCP server running. Notes service reachable at {runtime.config.api_url}."
    else:
        text = (
            f"Notes MCP server running offline. {runtime.config.api_url} is "
            "unreachable; local edits are kept and synced later."
        )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"online": online, "version": __version__},
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check notes MCP server status and notes service connectivity",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_runtime() -> NotesRuntime:
    """Get the global NotesRuntime instance.

    Raises:
        RuntimeError: If runtime is not initialized
    """
    if _runtime is None:
        raise RuntimeError(
            "NotesRuntime not initialized. Server lifespan not started."
        )
    return _runtime


def set_runtime(runtime: NotesRuntime | None) -> None:
    """Set the global NotesRuntime instance, or None to clear."""
    global _runtime
    _runtime = runtime


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available note tools.

    Returns all registered (and permitted) tools from the ToolRegistry.
    """
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    runtime = get_runtime()
    try:
        return await get_registry().call_tool(name, arguments, runtime)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Background sync
# ---------------------------------------------------------------------------


async def _sync_and_log(runtime: NotesRuntime, trigger: str) -> None:
    """Run one sync cycle, logging instead of raising."""
    try:
        outcome = await runtime.sync_once()
    except Exception:
        logger.exception("%s sync failed", trigger.capitalize())
        return
    logger.info("%s sync: %s", trigger.capitalize(), outcome.report.summary())


async def auto_sync_loop(runtime: NotesRuntime, interval: float) -> None:
    """Sync every *interval* seconds until cancelled."""
    logger.info("Periodic sync every %s seconds", interval)
    while True:
        await asyncio.sleep(interval)
        await _sync_and_log(runtime, "periodic")


def start_background_sync(runtime: NotesRuntime) -> list[asyncio.Task]:
    """Schedule the startup sync and the periodic loop per ``sync`` settings."""
    settings = runtime.settings.sync
    tasks = []
    if settings.on_startup:
        tasks.append(asyncio.create_task(_sync_and_log(runtime, "startup")))
    if settings.auto_sync_interval > 0:
        tasks.append(
            asyncio.create_task(
                auto_sync_loop(runtime, settings.auto_sync_interval)
            )
        )
    return tasks


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    This function sets up logging for MCP mode (file only, never stdout),
    loads configuration and the local store via the lifespan manager, and
    starts the server with stdio transport for JSON-RPC communication.

    Args:
        config_overrides: Optional dict with config values to override (url, token, store_path, insecure, debug, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run BEFORE stdio_server so nothing reaches stdout during
    # protocol negotiation
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    # Build ToolRegistry with optional permission filtering
    permissions_file = overrides.get("permissions_file")
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )

    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )

    set_registry(registry)

    # Under `python -m` this module is __main__; set the runtime here
    lifespan_overrides = {
        k: v
        for k, v in overrides.items()
        if k not in ("log_file", "permissions_file")
    }
    async with server_lifespan(
        config_overrides=lifespan_overrides
    ) as ctx:
        runtime: NotesRuntime = ctx["runtime"]
        set_runtime(runtime)

        background = start_background_sync(runtime)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="notes-mcp-server",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            for task in background:
                task.cancel()
            await asyncio.gather(*background, return_exceptions=True)
            set_runtime(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Notes MCP Server - offline-first notes with server sync over the Model Context Protocol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .notes_mcp/config.yml)
  notes-mcp-server

  # Override the notes API URL
  notes-mcp-server --url https://notes.example.com/api

  # Keep the local store somewhere else
  notes-mcp-server --store ~/notes/notes.json

  # Use with insecure SSL (development only)
  notes-mcp-server --url https://localhost:5000/api --insecure

  # Read-only deployment
  notes-mcp-server --permissions-file /etc/notes-mcp/read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--url",
        help="Override notes API URL (takes precedence over NOTES_API_URL env var and config files)",
    )
    parser.add_argument(
        "--token",
        help="Override API token (takes precedence over NOTES_API_TOKEN env var and config files)"
        " (visible in process list -- prefer NOTES_API_TOKEN env var for security)",
    )
    parser.add_argument(
        "--store",
        dest="store_path",
        help="Local note store file (default: .notes_mcp/notes.json)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/notes-mcp-server.log",
        help="Log file path (default: /tmp/notes-mcp-server.log)",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (NOTE_VIEW, NOTE_EDIT, NOTE_SYNC), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented starter config to .notes_mcp/config.yml (unless one exists) and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"notes-mcp-server version {__version__}",
    )

    args = parser.parse_args()

    if args.init_config:
        print(f"Config file: {ensure_config()}", file=sys.stderr)
        return

    # Flags left unset fall through to env / .env / YAML
    config_overrides = {
        key: getattr(args, key)
        for key in (
            "url",
            "token",
            "store_path",
            "insecure",
            "debug",
            "log_file",
            "permissions_file",
        )
        if getattr(args, key)
    }

    # Before stdio transport starts
    shown = sorted(k for k in config_overrides if k != "token")
    if shown:
        print(f"Config overrides from CLI: {', '.join(shown)}", file=sys.stderr)

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Lifespan already printed the cause
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
