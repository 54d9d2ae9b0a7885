"""Offline-first note synchronization engine.

Public API for reconciling a locally edited note set with the remote
notes service.

Architecture
------------
The local store is authoritative for the client. A sync call pushes every
note with unpushed changes, pulls what changed on the server since the
last watermark, and merges the pull with **record-level last-writer-wins**:
a note is either kept as it is locally or replaced as a whole by the
server version, never merged field by field. Unpushed local changes
always win.

Modules:

- ``engine``    -- ``SyncEngine``: push, pull, merge, commit.
- ``resolver``  -- Merge policy for pulled notes.
- ``store``     -- ``LocalNoteStore``: atomic JSON snapshot of notes and
  watermark.
- ``mutations`` -- Local edit operations (dirty marking, timestamps).
- ``status``    -- ``SyncStatusTracker``: online / in-progress flags.
- ``models``    -- ``Note``, ``ServerNote``, ``SyncResult``,
  ``SyncReport``, ``SyncStatus``, ``SyncOutcome``: core data contracts.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from notes_mcp_server.core.client import NotesClient
    from notes_mcp_server.sync import (
        LocalNoteStore,
        SyncEngine,
        format_sync_report,
    )

    store = LocalNoteStore(Path(".notes_mcp/notes.json"))
    engine = SyncEngine(client=notes_client, max_parallel_requests=4)

    notes, last_sync = store.load()
    outcome = await engine.synchronize(notes, last_sync)
    if outcome.ran:
        store.save(outcome.notes, outcome.last_sync)
    print(format_sync_report(outcome.report))
"""

from .engine import SyncEngine
from .models import (
    ChecklistItem,
    EditorKind,
    Note,
    NoteSyncState,
    ServerNote,
    SyncAction,
    SyncOutcome,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from .reporter import (
    format_status,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .resolver import merge_server_notes, resolve
from .status import SyncStatusTracker
from .store import LocalNoteStore, StoreError

__all__ = [
    "ChecklistItem",
    "EditorKind",
    "LocalNoteStore",
    "Note",
    "NoteSyncState",
    "ServerNote",
    "StoreError",
    "SyncAction",
    "SyncEngine",
    "SyncOutcome",
    "SyncReport",
    "SyncResult",
    "SyncStatus",
    "SyncStatusTracker",
    "format_status",
    "format_sync_report",
    "merge_server_notes",
    "report_to_json",
    "resolve",
    "status_to_json",
]
