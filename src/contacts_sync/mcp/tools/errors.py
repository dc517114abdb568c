"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...exceptions import FetchError, SettingsValidationError, SyncError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (validation_error, fetch_error, busy,
            server_error, unknown_tool)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("busy", "A pass is running", "Retry later.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_error(error: Exception) -> types.CallToolResult:
    """Translate a sync exception into a structured error response."""
    match error:
        case SettingsValidationError():
            return build_error_response(
                "validation_error",
                str(error),
                "Set CONTACTS_SYNC_USERNAME, CONTACTS_SYNC_PASSWORD and a "
                "normalized contacts folder, then restart the server.",
            )
        case FetchError():
            return build_error_response(
                "fetch_error",
                str(error),
                "Check the CardDAV server URL and credentials, then retry.",
            )
        case SyncError():
            return build_error_response(
                "sync_error",
                str(error),
                "See the Errors note in the contacts folder for details.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Check the server log file and retry later.",
            )
