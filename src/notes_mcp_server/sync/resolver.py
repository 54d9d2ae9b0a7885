"""Record-level last-writer-wins merge of pulled notes into the local set.

For each note returned by the pull, the matching local note is found by
``remote_id == server.id``, falling back to ``local_id == server.id`` for
notes that were never linked to a remote id. Then:

============================  =========================================
Case                          Result
============================  =========================================
no local match                adopt the server note (``PULL_CREATE``)
local has unpushed changes    keep local untouched (``KEEP_LOCAL``)
server ``updated_at`` newer   replace with server version (``PULL_UPDATE``)
otherwise                     no-op (``SKIP``)
============================  =========================================

A merge never combines fields from both sides: the resulting note is
either the local instance as it was or a fresh instance built entirely
from the server version. The only thing a merge ever adds to a kept local
note is the ``remote_id`` link, and only when it was missing.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence

from .models import Note, ServerNote, SyncAction, SyncResult

logger = logging.getLogger(__name__)


def resolve(local: Note | None, server: ServerNote) -> SyncAction:
    """Decide what a pulled server note does to its local counterpart.

    Args:
        local: The matched local note, or ``None`` if there is none.
        server: The pulled server version.

    Returns:
        ``PULL_CREATE``, ``KEEP_LOCAL``, ``PULL_UPDATE`` or ``SKIP``.
    """
    if local is None:
        return SyncAction.PULL_CREATE
    # Unpushed local edits win regardless of timestamps
    if local.needs_push:
        return SyncAction.KEEP_LOCAL
    if server.updated_at > local.updated_at:
        return SyncAction.PULL_UPDATE
    return SyncAction.SKIP


def latest_by_id(server_notes: Iterable[ServerNote]) -> dict[str, ServerNote]:
    """Collapse a pull result to one version per server id (newest wins)."""
    latest: dict[str, ServerNote] = {}
    for server in server_notes:
        current = latest.get(server.id)
        if current is None or server.updated_at > current.updated_at:
            latest[server.id] = server
    return latest


class _NoteIndex:
    """Positions of notes in the merged list by remote and local id."""

    def __init__(self, notes: Sequence[Note]) -> None:
        self.by_remote: dict[str, int] = {}
        self.by_local: dict[str, int] = {}
        for index, note in enumerate(notes):
            self.add(note, index)

    def add(self, note: Note, index: int) -> None:
        if note.remote_id:
            self.by_remote[note.remote_id] = index
        self.by_local[note.local_id] = index

    def find(self, notes: Sequence[Note], server_id: str) -> int | None:
        index = self.by_remote.get(server_id)
        if index is not None:
            return index
        index = self.by_local.get(server_id)
        # A note already linked to another remote id is a different note
        if index is not None and notes[index].remote_id is None:
            return index
        return None


def merge_server_notes(
    notes: Sequence[Note], server_notes: Iterable[ServerNote]
) -> tuple[list[Note], list[SyncResult]]:
    """Merge a pull result into the local note set.

    The outcome is independent of the order of *server_notes*.

    Args:
        notes: The local note set after the push phase.
        server_notes: Notes returned by the pull.

    Returns:
        ``(merged_notes, results)`` with one ``SyncResult`` per distinct
        server note. New notes are appended after the existing ones.
    """
    merged = list(notes)
    index = _NoteIndex(merged)
    results: list[SyncResult] = []

    for server in latest_by_id(server_notes).values():
        position = index.find(merged, server.id)

        if position is None:
            local_id = server.id
            if local_id in index.by_local:
                local_id = str(uuid.uuid4())
            adopted = server.to_note(local_id=local_id)
            merged.append(adopted)
            index.add(adopted, len(merged) - 1)
            logger.debug(
                "Adopted server note %s",
                server.id,
                extra={"note_id": local_id, "action": SyncAction.PULL_CREATE.value},
            )
            results.append(
                SyncResult(
                    local_id=local_id,
                    remote_id=server.id,
                    action=SyncAction.PULL_CREATE,
                )
            )
            continue

        local = merged[position]
        action = resolve(local, server)

        if action == SyncAction.PULL_UPDATE:
            replaced = server.to_note(
                local_id=local.local_id, remote_id=local.remote_id
            )
            merged[position] = replaced
            index.add(replaced, position)
            logger.debug(
                "Server version of %s is newer, replacing local copy",
                local.local_id,
                extra={"note_id": local.local_id, "action": action.value},
            )

        elif action == SyncAction.KEEP_LOCAL:
            if local.remote_id is None:
                linked = local.model_copy(update={"remote_id": server.id})
                merged[position] = linked
                index.add(linked, position)
            logger.debug(
                "Keeping unpushed local changes of %s",
                local.local_id,
                extra={"note_id": local.local_id, "action": action.value},
            )

        results.append(
            SyncResult(
                local_id=local.local_id, remote_id=server.id, action=action
            )
        )

    return merged, results
