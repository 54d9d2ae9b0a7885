"""MCP tool handlers for note synchronization.

Defines two tools:

- ``notes_sync`` -- push local changes, pull server changes, merge and
  persist.
- ``notes_sync_status`` -- connectivity, in-progress flag, watermark and
  pending push counts.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...sync.models import isoformat
from ...sync.reporter import (
    format_status,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .registry import NOTE_SYNC, NOTE_VIEW, ToolSpec

if TYPE_CHECKING:
    from ..lifespan import NotesRuntime

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="notes_sync",
        description=(
            "Synchronize local notes with the notes service: push local "
            "changes, pull server changes since the last sync, and merge "
            "them (unpushed local edits always win; otherwise the newer "
            "version of a note wins as a whole). Does nothing while offline. "
            "A sync already running (e.g. the periodic one) is waited for "
            "first. The other notes_* tools, edits included, wait while a "
            "sync is talking to the service, so they can block for a while "
            "on a slow connection."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="notes_sync_status",
        description=(
            "Show sync status -- online/offline, whether a sync is running, "
            "last sync time, and how many notes are waiting to be pushed."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_notes_sync(
    runtime: NotesRuntime,
    args: dict[str, Any],
) -> types.CallToolResult:
    """Handle the ``notes_sync`` tool."""
    outcome = await runtime.sync_once()
    report = outcome.report

    text = format_sync_report(report)
    structured = report_to_json(report)
    structured["last_sync"] = isoformat(outcome.last_sync)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
        isError=report.ran and report.error is not None,
    )


async def _handle_notes_sync_status(
    runtime: NotesRuntime,
    args: dict[str, Any],
) -> types.CallToolResult:
    """Handle the ``notes_sync_status`` tool."""
    async with runtime.lock:
        notes, last_sync = runtime.store.load()
    status = runtime.engine.get_status()
    if status.last_sync is None and last_sync is not None:
        # Watermark persisted by an earlier server process
        status = status.model_copy(update={"last_sync": last_sync})

    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_status(status, notes))
        ],
        structuredContent=status_to_json(status, notes),
    )


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SYNC_TOOLS[0],
        permissions=frozenset({NOTE_SYNC}),
        handler=_handle_notes_sync,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[1],
        permissions=frozenset({NOTE_VIEW}),
        handler=_handle_notes_sync_status,
    ),
]
