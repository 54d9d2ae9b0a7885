"""Local edit operations that keep notes sync-consistent.

Every function returns a new ``Note``; nothing is mutated in place. All
of them mark the note ``dirty`` so the next sync cycle pushes it.

Timestamp rule:

* Pin, tag, publish-state and delete changes advance ``updated_at``
  immediately.
* Content edits (title, body, checklist) advance it for published notes.
  While a note is a draft, content edits may leave it alone; the draft to
  published transition always advances it, because that transition is
  what other clients treat as the note becoming significant.
* ``updated_at`` never moves backwards, even if the local clock does.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime

from .models import (
    ChecklistItem,
    EditorKind,
    Note,
    NoteSyncState,
    as_utc,
    utc_now,
)


def _advance(note: Note, now: datetime | None) -> datetime:
    stamp = as_utc(now) if now is not None else utc_now()
    return max(note.updated_at, stamp)


def _dirty(note: Note, *, bump: bool, now: datetime | None, **changes) -> Note:
    update = dict(changes, sync_state=NoteSyncState.DIRTY)
    if bump:
        update["updated_at"] = _advance(note, now)
    return note.model_copy(update=update)


def new_note(
    *,
    title: str = "",
    body: str = "",
    editor_kind: EditorKind = EditorKind.MARKDOWN,
    checklist_items: Sequence[ChecklistItem] = (),
    tags: Sequence[str] = (),
    now: datetime | None = None,
) -> Note:
    """Create a fresh local draft with a new ``local_id``."""
    stamp = as_utc(now) if now is not None else utc_now()
    return Note(
        local_id=str(uuid.uuid4()),
        title=title,
        body=body,
        editor_kind=editor_kind,
        checklist_items=list(checklist_items),
        tags=list(tags),
        is_draft=True,
        created_at=stamp,
        updated_at=stamp,
        sync_state=NoteSyncState.DIRTY,
    )


def edit_note(
    note: Note,
    *,
    title: str | None = None,
    body: str | None = None,
    checklist_items: Sequence[ChecklistItem] | None = None,
    now: datetime | None = None,
) -> Note:
    """Apply a content edit.

    Drafts keep their ``updated_at``; published notes advance it.
    """
    changes: dict = {}
    if title is not None:
        changes["title"] = title
    if body is not None:
        changes["body"] = body
    if checklist_items is not None:
        changes["checklist_items"] = list(checklist_items)
    return _dirty(note, bump=not note.is_draft, now=now, **changes)


def set_tags(
    note: Note, tags: Sequence[str], *, now: datetime | None = None
) -> Note:
    """Replace the tag list (display order preserved)."""
    return _dirty(note, bump=True, now=now, tags=list(tags))


def set_pinned(
    note: Note, pinned: bool, *, now: datetime | None = None
) -> Note:
    return _dirty(note, bump=True, now=now, is_pinned=pinned)


def set_draft(
    note: Note, is_draft: bool, *, now: datetime | None = None
) -> Note:
    """Move a note between draft and published.

    Publishing (``True -> False``) always advances ``updated_at``.
    """
    return _dirty(note, bump=True, now=now, is_draft=is_draft)


def delete_note(note: Note, *, now: datetime | None = None) -> Note:
    """Tombstone a note. It stays in the store so the deletion syncs.

    Deleting an already deleted note keeps the original ``deleted_at``.
    """
    if note.is_deleted:
        return note
    stamp = _advance(note, now)
    return note.model_copy(
        update={
            "deleted_at": stamp,
            "updated_at": stamp,
            "sync_state": NoteSyncState.DIRTY,
        }
    )


def replace_note(notes: Sequence[Note], updated: Note) -> list[Note]:
    """Return *notes* with the entry sharing ``updated.local_id`` swapped.

    Raises:
        KeyError: If no note has that ``local_id``.
    """
    result = list(notes)
    for index, note in enumerate(result):
        if note.local_id == updated.local_id:
            result[index] = updated
            return result
    raise KeyError(updated.local_id)
