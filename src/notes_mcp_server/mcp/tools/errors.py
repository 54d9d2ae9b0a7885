"""Error response builders and shared utilities for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention, plus
shared formatting utilities used across tool modules.
"""

from datetime import datetime

import mcp.types as types

from ...core.errors import (
    NoteNotFoundError,
    NoteRejectedError,
    NotesClientError,
    RemoteServerError,
    RemoteUnavailableError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, validation_error, unavailable, rejected, store_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Note abc not found", "Use notes_list to find note ids.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_client_error(error: NotesClientError) -> types.CallToolResult:
    """Translate a notes service failure into a structured error response."""
    match error:
        case RemoteUnavailableError():
            return build_error_response(
                "unavailable",
                str(error),
                "The notes service is unreachable. Local edits are kept; "
                "retry notes_sync when connectivity returns.",
            )
        case NoteNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "The note no longer exists on the server.",
            )
        case NoteRejectedError() if error.status_code in (401, 403):
            return build_error_response(
                "permission_denied",
                str(error),
                "Check NOTES_API_TOKEN; the token was refused.",
            )
        case NoteRejectedError():
            return build_error_response(
                "rejected", str(error), "Check note content and retry."
            )
        case RemoteServerError():
            return build_error_response(
                "server_error", str(error), "Retry later."
            )
        case _:
            return build_error_response(
                "server_error", str(error), "Retry later."
            )


# ---------------------------------------------------------------------------
# Shared formatting utilities
# ---------------------------------------------------------------------------


def format_timestamp(timestamp: datetime | None) -> str:
    """Format timestamp for display (YYYY-MM-DD HH:MM, or "-")."""
    if timestamp is None:
        return "-"
    return timestamp.strftime("%Y-%m-%d %H:%M")
