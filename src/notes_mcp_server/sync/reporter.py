"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_report`` -- full post-sync summary.
- ``format_status`` -- one-block view of the engine status.
- ``report_to_json`` / ``status_to_json`` -- structured dicts for MCP
  tool output.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .models import NoteSyncState, isoformat

if TYPE_CHECKING:
    from .models import Note, SyncReport, SyncStatus

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


# (heading, report attribute, line format) in display order
_SECTIONS = (
    ("Created on server:", "created_remote", "  {r.local_id} -> {r.remote_id}"),
    ("Updated on server:", "updated_remote", "  {r.local_id} -> {r.remote_id}"),
    ("New from server:", "created_local", "  {r.remote_id} -> {r.local_id}"),
    ("Updated from server:", "updated_local", "  {r.remote_id} -> {r.local_id}"),
    ("Kept local (unpushed changes win):", "kept_local", "  {r.local_id}"),
    ("Errors (retried on next sync):", "errors", "  {r.local_id}: {r.error}"),
)


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    """
    if not report.ran:
        return f"Sync skipped: {report.skipped_reason}"

    lines = ["Sync report", f"Started: {report.started_at}"]
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines += ["", report.summary(), ""]

    if report.error:
        lines += [
            f"Aborted after push: {report.error}",
            "The watermark was not advanced; the next sync pulls again.",
            "",
        ]

    for heading, attr, fmt in _SECTIONS:
        results = getattr(report, attr)
        if results:
            lines.append(heading)
            lines.extend(fmt.format(r=r) for r in results)
            lines.append("")

    return "\n".join(lines).rstrip()


def format_status(status: SyncStatus, notes: Sequence[Note] = ()) -> str:
    """Format the engine status plus local pending counts."""
    counts = pending_counts(notes)
    state = "syncing" if status.in_progress else (
        "online" if status.online else "offline"
    )
    lines = [
        f"Status: {state}",
        f"Last sync: {isoformat(status.last_sync) or 'never'}",
        f"Pending push: {counts['dirty']} dirty, {counts['error']} failed",
    ]
    if status.last_error:
        lines.append(f"Last error: {status.last_error}")
    return "\n".join(lines)


def pending_counts(notes: Sequence[Note]) -> dict[str, int]:
    return {
        "dirty": sum(
            1 for n in notes if n.sync_state == NoteSyncState.DIRTY
        ),
        "error": sum(
            1 for n in notes if n.sync_state == NoteSyncState.ERROR
        ),
    }


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "local_id": r.local_id,
            "remote_id": r.remote_id,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "ran": report.ran,
        "skipped_reason": report.skipped_reason,
        "error": report.error,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "pulled": report.pulled,
            "created_remote": len(report.created_remote),
            "updated_remote": len(report.updated_remote),
            "created_local": len(report.created_local),
            "updated_local": len(report.updated_local),
            "kept_local": len(report.kept_local),
            "errors": len(report.errors),
        },
        "results": results_list,
    }


def status_to_json(status: SyncStatus, notes: Sequence[Note] = ()) -> dict:
    return {
        "online": status.online,
        "in_progress": status.in_progress,
        "last_sync": isoformat(status.last_sync),
        "last_error": status.last_error,
        "pending": pending_counts(notes),
    }
