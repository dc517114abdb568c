"""MCP tool handlers for contact synchronisation.

Defines two tools:

- ``contacts_sync`` -- run one reconciliation pass.
- ``contacts_sync_status`` -- summarise the memory of the last pass.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...notices import CollectingNoticeSink
from ...sync.reporter import format_sync_report, report_to_json
from ...sync.runner import run_pass
from ...sync.state import SyncState
from .errors import build_error_response
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import ServerContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


_SYNC_TOOL = types.Tool(
    name="contacts_sync",
    description=(
        "Mirror the CardDAV address book into the contacts folder: create "
        "notes for new contacts, update changed ones and move notes of "
        "deleted contacts to the Deleted subfolder."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "rewrite_all": {
                "type": "boolean",
                "default": False,
                "description": "Rewrite every contact note even if unchanged remotely",
            },
        },
        "required": [],
    },
)

_STATUS_TOOL = types.Tool(
    name="contacts_sync_status",
    description=(
        "Show the contacts folder, the time of the last successful pass "
        "and how many contacts it tracked."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={"type": "object", "properties": {}, "required": []},
)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_contacts_sync(
    context: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``contacts_sync`` tool."""
    rewrite_all = args.get("rewrite_all", False)
    if not isinstance(rewrite_all, bool):
        raise ValueError("rewrite_all must be a boolean")

    if context.lock.locked():
        return build_error_response(
            "busy",
            "A contacts sync pass is already running.",
            "Wait for it to finish, then call contacts_sync_status.",
        )

    notices = CollectingNoticeSink()
    async with context.lock:
        report = await run_pass(
            context.settings,
            context.vault_root,
            context.state_dir,
            rewrite_all=rewrite_all,
            fetcher=context.fetcher,
            notices=notices,
            profile=context.profile,
        )

    structured = report_to_json(report)
    structured["notices"] = [n.current for n in notices.notices if n.duration]
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_report(report))],
        structuredContent=structured,
        isError=report.error is not None,
    )


async def handle_contacts_sync_status(
    context: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``contacts_sync_status`` tool."""
    state = SyncState(context.state_dir).load(context.profile)
    records = state.get("previous_records") or []
    last_sync = state.get("last_sync") or "never"

    lines = [
        f"Contacts sync status for '{context.profile}'",
        f"  Vault:     {context.vault_root}",
        f"  Folder:    {context.settings.folder}",
        f"  Server:    {context.settings.server_url}",
        f"  Last sync: {last_sync}",
        f"  Tracked contacts: {len(records)}",
        f"  Pass running:     {'yes' if context.lock.locked() else 'no'}",
    ]

    structured = {
        "profile": context.profile,
        "vault": str(context.vault_root),
        "folder": context.settings.folder,
        "server_url": context.settings.server_url,
        "last_sync": state.get("last_sync"),
        "tracked_contacts": len(records),
        "running": context.lock.locked(),
    }
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=structured,
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=_SYNC_TOOL, handler=handle_contacts_sync),
    ToolSpec(tool=_STATUS_TOOL, handler=handle_contacts_sync_status),
]
