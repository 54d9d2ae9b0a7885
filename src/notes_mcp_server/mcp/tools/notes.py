"""Local note tool handlers for MCP server.

This module implements the offline editing surface: list, get, create,
update, publish and delete. Every tool works on the local store only; the
changes reach the server on the next ``notes_sync``. Edits mark notes
dirty and advance ``updated_at`` as described in ``sync.mutations``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...sync import mutations
from ...sync.models import ChecklistItem, EditorKind, Note
from ...validators import validate_body, validate_tags, validate_title
from .errors import build_error_response, format_timestamp
from .registry import NOTE_EDIT, NOTE_VIEW, ToolSpec

if TYPE_CHECKING:
    from ..lifespan import NotesRuntime

logger = logging.getLogger(__name__)

LIST_FILTERS = ("all", "drafts", "published")
PREVIEW_LENGTH = 80

_NOTE_ID = {
    "type": "string",
    "description": "Local id of the note (the server id is accepted too)",
}
_CHECKLIST = {
    "type": "array",
    "description": "Checklist items, in display order",
    "items": {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "text": {"type": "string"},
            "checked": {"type": "boolean", "default": False},
        },
        "required": ["text"],
    },
}
_TAGS = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Tags, in display order",
}


# Tool definitions for list_tools()
NOTES_TOOLS = [
    types.Tool(
        name="notes_list",
        description="List local notes (deleted notes hidden, pinned notes first, newest first).",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "filter": {
                    "type": "string",
                    "enum": list(LIST_FILTERS),
                    "default": "all",
                    "description": "Which notes to list",
                },
                "tag": {
                    "type": "string",
                    "description": "Only notes carrying this tag (optional)",
                },
                "query": {
                    "type": "string",
                    "description": "Case-insensitive text to find in title, body, checklist items or tags (optional)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="notes_get",
        description="Get one note with its full content and sync state.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {"note_id": _NOTE_ID},
            "required": ["note_id"],
        },
    ),
    types.Tool(
        name="notes_create",
        description="Create a new draft note locally. It is pushed on the next notes_sync.",
        inputSchema={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Note title"},
                "body": {"type": "string", "description": "Note body"},
                "editor_kind": {
                    "type": "string",
                    "enum": [kind.value for kind in EditorKind],
                    "default": EditorKind.MARKDOWN.value,
                },
                "tags": _TAGS,
                "checklist_items": _CHECKLIST,
                "pinned": {"type": "boolean", "default": False},
            },
            "required": [],
        },
    ),
    types.Tool(
        name="notes_update",
        description="Edit a note locally. Only the given fields change.",
        inputSchema={
            "type": "object",
            "properties": {
                "note_id": _NOTE_ID,
                "title": {"type": "string"},
                "body": {"type": "string"},
                "tags": _TAGS,
                "checklist_items": _CHECKLIST,
                "pinned": {"type": "boolean"},
            },
            "required": ["note_id"],
        },
    ),
    types.Tool(
        name="notes_publish",
        description="Publish a draft note (or move it back to draft with published=false).",
        inputSchema={
            "type": "object",
            "properties": {
                "note_id": _NOTE_ID,
                "published": {"type": "boolean", "default": True},
            },
            "required": ["note_id"],
        },
    ),
    types.Tool(
        name="notes_delete",
        description="Delete a note. The deletion is kept as a tombstone and propagated on the next notes_sync.",
        annotations=types.ToolAnnotations(destructiveHint=True),
        inputSchema={
            "type": "object",
            "properties": {"note_id": _NOTE_ID},
            "required": ["note_id"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def find_note(notes: Sequence[Note], note_id: str) -> Note | None:
    """Find a note by local id, falling back to remote id."""
    for note in notes:
        if note.local_id == note_id:
            return note
    for note in notes:
        if note.remote_id == note_id:
            return note
    return None


def _not_found(note_id: str) -> types.CallToolResult:
    return build_error_response(
        "not_found",
        f"Note '{note_id}' does not exist",
        "Use notes_list to find note ids.",
    )


def _parse_checklist(raw: list[dict] | None) -> list[ChecklistItem] | None:
    if raw is None:
        return None
    return [
        ChecklistItem(
            id=item.get("id") or str(uuid.uuid4()),
            text=item.get("text", ""),
            checked=bool(item.get("checked", False)),
        )
        for item in raw
    ]


def _validate_content(args: dict[str, Any]) -> str | None:
    """Run the validators over whichever content fields are present."""
    checks = []
    if args.get("title") is not None:
        checks.append(validate_title(args["title"]))
    if args.get("body") is not None:
        checks.append(validate_body(args["body"]))
    if args.get("tags") is not None:
        checks.append(validate_tags(args["tags"]))
    for ok, message in checks:
        if not ok:
            return message
    return None


def note_to_json(note: Note) -> dict[str, Any]:
    return note.model_dump(mode="json")


def _format_note(note: Note) -> str:
    lines = [
        f"# {note.title or '(untitled)'}",
        f"id: {note.local_id}",
        f"remote id: {note.remote_id or '-'}",
        f"state: {'draft' if note.is_draft else 'published'}"
        f"{', pinned' if note.is_pinned else ''}"
        f"{', deleted' if note.is_deleted else ''}",
        f"sync: {note.sync_state.value}",
        f"editor: {note.editor_kind.value}",
        f"tags: {', '.join(note.tags) or '-'}",
        f"updated: {format_timestamp(note.updated_at)}",
        "",
        note.body,
    ]
    for item in note.checklist_items:
        lines.append(f"- [{'x' if item.checked else ' '}] {item.text}")
    return "\n".join(lines).rstrip()


def _format_list_line(note: Note) -> str:
    marks = ("*" if note.is_pinned else " ") + (
        "d" if note.is_draft else " "
    )
    preview = note.body.replace("\n", " ")[:PREVIEW_LENGTH]
    return (
        f"{marks} {note.local_id}  {format_timestamp(note.updated_at)}  "
        f"[{note.sync_state.value}] {note.title or '(untitled)'}"
        + (f" -- {preview}" if preview else "")
    )


def _result(text: str, note: Note) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"note": note_to_json(note)},
    )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def matches_query(note: Note, query: str) -> bool:
    """True if lower-cased *query* occurs in the note's text or tags."""
    haystacks = [note.title, note.body, *note.tags]
    haystacks += [item.text for item in note.checklist_items]
    return any(query in text.lower() for text in haystacks)


async def _handle_list(
    runtime: NotesRuntime, args: dict
) -> types.CallToolResult:
    """Handle notes_list."""
    which = args.get("filter", "all")
    if which not in LIST_FILTERS:
        return build_error_response(
            "validation_error",
            f"Unknown filter '{which}'",
            f"Use one of: {', '.join(LIST_FILTERS)}.",
        )
    tag = args.get("tag")
    query = (args.get("query") or "").strip().lower()

    async with runtime.lock:
        notes, _ = runtime.store.load()

    visible = [n for n in notes if not n.is_deleted]
    if which == "drafts":
        visible = [n for n in visible if n.is_draft]
    elif which == "published":
        visible = [n for n in visible if not n.is_draft]
    if tag:
        visible = [n for n in visible if tag in n.tags]
    if query:
        visible = [n for n in visible if matches_query(n, query)]
    visible.sort(key=lambda n: n.updated_at, reverse=True)
    visible.sort(key=lambda n: n.is_pinned, reverse=True)

    if visible:
        text = "\n".join(_format_list_line(n) for n in visible)
    else:
        text = "No notes."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "count": len(visible),
            "notes": [note_to_json(n) for n in visible],
        },
    )


async def _handle_get(
    runtime: NotesRuntime, args: dict
) -> types.CallToolResult:
    """Handle notes_get."""
    note_id = args.get("note_id")
    if not note_id:
        return build_error_response(
            "validation_error",
            "note_id is required",
            "Provide note_id parameter.",
        )

    async with runtime.lock:
        notes, _ = runtime.store.load()
    note = find_note(notes, note_id)
    if note is None or note.is_deleted:
        return _not_found(note_id)
    return _result(_format_note(note), note)


async def _handle_create(
    runtime: NotesRuntime, args: dict
) -> types.CallToolResult:
    """Handle notes_create."""
    error = _validate_content(args)
    if error:
        return build_error_response(
            "validation_error", error, "Fix the field and retry."
        )

    note = mutations.new_note(
        title=args.get("title", ""),
        body=args.get("body", ""),
        editor_kind=EditorKind(
            args.get("editor_kind", EditorKind.MARKDOWN.value)
        ),
        checklist_items=_parse_checklist(args.get("checklist_items")) or (),
        tags=args.get("tags") or (),
    )
    if args.get("pinned"):
        note = mutations.set_pinned(note, True, now=note.updated_at)

    async with runtime.lock:
        notes, last_sync = runtime.store.load()
        runtime.store.save([*notes, note], last_sync)

    logger.info("Created note %s", note.local_id, extra={"note_id": note.local_id})
    return _result(f"Created draft note {note.local_id}", note)


async def _handle_update(
    runtime: NotesRuntime, args: dict
) -> types.CallToolResult:
    """Handle notes_update."""
    note_id = args.get("note_id")
    if not note_id:
        return build_error_response(
            "validation_error",
            "note_id is required",
            "Provide note_id parameter.",
        )
    error = _validate_content(args)
    if error:
        return build_error_response(
            "validation_error", error, "Fix the field and retry."
        )

    async with runtime.lock:
        notes, last_sync = runtime.store.load()
        note = find_note(notes, note_id)
        if note is None or note.is_deleted:
            return _not_found(note_id)

        updated = note
        checklist = _parse_checklist(args.get("checklist_items"))
        if (
            args.get("title") is not None
            or args.get("body") is not None
            or checklist is not None
        ):
            updated = mutations.edit_note(
                updated,
                title=args.get("title"),
                body=args.get("body"),
                checklist_items=checklist,
            )
        if args.get("tags") is not None:
            updated = mutations.set_tags(updated, args["tags"])
        if (
            args.get("pinned") is not None
            and args["pinned"] != updated.is_pinned
        ):
            updated = mutations.set_pinned(updated, args["pinned"])

        if updated is note:
            return _result(f"Note {note.local_id} unchanged", note)
        runtime.store.save(mutations.replace_note(notes, updated), last_sync)

    logger.info(
        "Updated note %s", updated.local_id, extra={"note_id": updated.local_id}
    )
    return _result(f"Updated note {updated.local_id}", updated)


async def _handle_publish(
    runtime: NotesRuntime, args: dict
) -> types.CallToolResult:
    """Handle notes_publish."""
    note_id = args.get("note_id")
    if not note_id:
        return build_error_response(
            "validation_error",
            "note_id is required",
            "Provide note_id parameter.",
        )
    published = args.get("published", True)

    async with runtime.lock:
        notes, last_sync = runtime.store.load()
        note = find_note(notes, note_id)
        if note is None or note.is_deleted:
            return _not_found(note_id)
        if note.is_draft != published:
            verb = "published" if published else "a draft"
            return _result(f"Note {note.local_id} is already {verb}", note)

        updated = mutations.set_draft(note, not published)
        runtime.store.save(mutations.replace_note(notes, updated), last_sync)

    verb = "Published" if published else "Moved to drafts:"
    return _result(f"{verb} note {updated.local_id}", updated)


async def _handle_delete(
    runtime: NotesRuntime, args: dict
) -> types.CallToolResult:
    """Handle notes_delete."""
    note_id = args.get("note_id")
    if not note_id:
        return build_error_response(
            "validation_error",
            "note_id is required",
            "Provide note_id parameter.",
        )

    async with runtime.lock:
        notes, last_sync = runtime.store.load()
        note = find_note(notes, note_id)
        if note is None:
            return _not_found(note_id)
        if note.is_deleted:
            return _result(f"Note {note.local_id} is already deleted", note)

        deleted = mutations.delete_note(note)
        runtime.store.save(mutations.replace_note(notes, deleted), last_sync)

    logger.info(
        "Deleted note %s", deleted.local_id, extra={"note_id": deleted.local_id}
    )
    return _result(f"Deleted note {deleted.local_id}", deleted)


# ToolSpec list for registry-based dispatch
NOTES_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=NOTES_TOOLS[0],
        permissions=frozenset({NOTE_VIEW}),
        handler=_handle_list,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[1],
        permissions=frozenset({NOTE_VIEW}),
        handler=_handle_get,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[2],
        permissions=frozenset({NOTE_EDIT}),
        handler=_handle_create,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[3],
        permissions=frozenset({NOTE_EDIT}),
        handler=_handle_update,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[4],
        permissions=frozenset({NOTE_EDIT}),
        handler=_handle_publish,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[5],
        permissions=frozenset({NOTE_EDIT}),
        handler=_handle_delete,
    ),
]
