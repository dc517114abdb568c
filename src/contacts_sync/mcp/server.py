"""MCP Server for contact synchronisation using stdio transport.

Lets an agent run a reconciliation pass of the CardDAV address book into
the contacts folder and inspect the state of the last pass.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
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
from ..logger import DEFAULT_LOG_FILE, setup_logging
from .lifespan import ServerContext, server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

SERVER_NAME = "contacts-sync"

server = Server(SERVER_NAME)

# Initialized in main()
_context: ServerContext | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> ServerContext:
    """Get the global ServerContext.

    Raises:
        RuntimeError: If the server lifespan has not started
    """
    if _context is None:
        raise RuntimeError("ServerContext not initialized. Server lifespan not started.")
    return _context


def set_context(context: ServerContext | None) -> None:
    global _context
    _context = context


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List the registered tools."""
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
    context = get_context()
    try:
        return await get_registry().call_tool(name, arguments, context)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None) -> None:
    """Run the MCP server with stdio transport.

    Sets up file logging (stdout carries the protocol), loads and checks
    the configuration via the lifespan manager, then serves until the
    client disconnects.

    Args:
        config_overrides: Optional dict with values from CLI (username,
            password, server_url, folder, vault, state_dir, profile,
            log_file, read_only)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout.
    setup_logging(mode="mcp", log_file=overrides.get("log_file"))

    registry = ToolRegistry(ALL_SPECS, read_only=overrides.get("read_only", False))
    logger.info(
        "Registered %d tools (of %d total)", registry.tool_count(), len(ALL_SPECS)
    )
    set_registry(registry)

    # set_context() is called here rather than in the lifespan so that
    # running this file as __main__ installs the context in this module.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_context(ctx["context"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Contacts sync MCP server - mirror a CardDAV address book into Markdown notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the vault in the current directory (credentials from .env)
  contacts-sync-mcp

  # Explicit vault and folder
  contacts-sync-mcp --vault ~/Notes --folder People/Contacts

  # Only expose the status tool
  contacts-sync-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument("--vault", help="Vault root directory (default: current directory)")
    parser.add_argument("--folder", help="Contacts folder inside the vault")
    parser.add_argument(
        "--username",
        help="Override CardDAV username (takes precedence over CONTACTS_SYNC_USERNAME)",
    )
    parser.add_argument(
        "--password",
        help="Override CardDAV password"
        " (visible in process list -- prefer CONTACTS_SYNC_PASSWORD env var)",
    )
    parser.add_argument("--server-url", help="Override CardDAV server URL")
    parser.add_argument("--state-dir", help="Directory for pass memory (default: <vault>/.contacts_sync)")
    parser.add_argument("--profile", help="State profile name (default: default)")
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only register tools that do not change notes",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"contacts-sync-mcp version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()

    config_overrides = {
        key: value
        for key, value in (
            ("vault", args.vault),
            ("folder", args.folder),
            ("username", args.username),
            ("password", args.password),
            ("server_url", args.server_url),
            ("state_dir", args.state_dir),
            ("profile", args.profile),
            ("log_file", args.log_file),
            ("read_only", args.read_only),
        )
        if value
    }

    override_keys = [k for k in config_overrides if k not in ("password", "log_file")]
    if override_keys:
        print(f"Config overrides from CLI: {', '.join(override_keys)}", file=sys.stderr)

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Already printed to stderr by the lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
