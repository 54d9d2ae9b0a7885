"""Pydantic models for the note sync engine.

Defines the core data contracts used across all sync modules:

- ``Note``: The local unit of synchronization.
- ``ServerNote``: A note as returned by the remote service.
- ``SyncAction``: Enum of per-note outcomes of a sync run.
- ``SyncResult``: Outcome for one note.
- ``SyncReport``: Aggregate results for a full sync run.
- ``SyncStatus``: Read-only snapshot of engine state.
- ``SyncOutcome``: What ``SyncEngine.synchronize`` hands back.

All models are frozen (immutable). A changed note is always a new
instance, which is what keeps merges record-level: a note is replaced as a
whole, never patched field by field.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    BeforeValidator,
    Field,
    field_validator,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    """Serialise a timestamp the way the remote service expects it."""
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")


class EditorKind(str, Enum):
    """How a note's body is interpreted. Does not affect sync."""

    MARKDOWN = "markdown"
    RICH_TEXT = "rich_text"
    CHECKLIST = "checklist"


# Spellings used by older clients and the remote service.
_EDITOR_KIND_ALIASES = {
    "list": EditorKind.CHECKLIST,
    "rich-text": EditorKind.RICH_TEXT,
    "richtext": EditorKind.RICH_TEXT,
}


def _coerce_editor_kind(value: Any) -> Any:
    if value is None:
        return EditorKind.MARKDOWN
    if isinstance(value, str):
        return _EDITOR_KIND_ALIASES.get(value.lower(), value)
    return value


EditorKindField = Annotated[EditorKind, BeforeValidator(_coerce_editor_kind)]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class NoteSyncState(str, Enum):
    """Local-only sync bookkeeping. Never sent to the remote service."""

    SYNCED = "synced"
    DIRTY = "dirty"
    ERROR = "error"


class ChecklistItem(BaseModel):
    """One entry of a checklist note."""

    id: str
    text: str = ""
    checked: bool = Field(
        default=False,
        validation_alias=AliasChoices("checked", "isChecked"),
    )

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class Note(BaseModel):
    """A note in the local store.

    Attributes:
        local_id: Stable local identity, never reassigned.
        remote_id: Identifier assigned by the remote service on first
            successful push. Permanent once set.
        title: Free-form title.
        body: Free-form body, interpreted according to ``editor_kind``.
        editor_kind: Editor used for the body.
        checklist_items: Structured items of a checklist note.
        is_draft: Drafts may defer ``updated_at`` on content edits.
        is_pinned: Display-only flag.
        tags: Tags in display order.
        created_at: Creation time, immutable.
        updated_at: Last content-affecting change; the authority for
            conflict resolution.
        deleted_at: Tombstone marker; set means soft-deleted.
        sync_state: Local sync bookkeeping.
    """

    local_id: str
    remote_id: str | None = None
    title: str = ""
    body: str = ""
    editor_kind: EditorKindField = EditorKind.MARKDOWN
    checklist_items: list[ChecklistItem] = []
    is_draft: bool = True
    is_pinned: bool = False
    tags: list[str] = []
    created_at: UtcDatetime
    updated_at: UtcDatetime
    deleted_at: UtcDatetime | None = None
    sync_state: NoteSyncState = NoteSyncState.DIRTY

    model_config = {"frozen": True}

    @property
    def is_deleted(self) -> bool:
        """True if the note carries a tombstone."""
        return self.deleted_at is not None

    @property
    def needs_push(self) -> bool:
        """True for notes with local changes the remote has not accepted.

        ``error`` counts: a failed push is retried on the next cycle.
        """
        return self.sync_state in (
            NoteSyncState.DIRTY,
            NoteSyncState.ERROR,
        )

    def content_fields(self) -> dict[str, Any]:
        """Fields that travel through sync (no identity, no sync state)."""
        return self.model_dump(
            exclude={"local_id", "remote_id", "sync_state"}
        )

    def to_payload(self) -> dict[str, Any]:
        """Build the remote service request body for this note.

        Timestamps are sent verbatim so the remote copy keeps the
        ``updated_at`` that conflict resolution compares against.
        """
        return {
            "title": self.title,
            "content": self.body,
            "editorType": self.editor_kind.value,
            "checklistItems": [
                item.model_dump() for item in self.checklist_items
            ],
            "isDraft": self.is_draft,
            "isPinned": self.is_pinned,
            "tags": list(self.tags),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "deletedAt": isoformat(self.deleted_at),
        }


class ServerNote(BaseModel):
    """A note as returned by the remote service.

    Accepts the service's camelCase JSON (``content``, ``isDraft``,
    ``updatedAt`` ...) as well as the snake_case field names, and both
    ``id`` and ``_id`` for the identifier.
    """

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str = ""
    body: str = Field(
        default="", validation_alias=AliasChoices("content", "body")
    )
    editor_kind: EditorKindField = Field(
        default=EditorKind.MARKDOWN,
        validation_alias=AliasChoices("editorType", "editor_kind"),
    )
    checklist_items: list[ChecklistItem] = Field(
        default=[],
        validation_alias=AliasChoices("checklistItems", "checklist_items"),
    )
    is_draft: bool = Field(
        default=True, validation_alias=AliasChoices("isDraft", "is_draft")
    )
    is_pinned: bool = Field(
        default=False,
        validation_alias=AliasChoices("isPinned", "is_pinned"),
    )
    tags: list[str] = []
    created_at: UtcDatetime = Field(
        validation_alias=AliasChoices("createdAt", "created_at")
    )
    updated_at: UtcDatetime = Field(
        validation_alias=AliasChoices("updatedAt", "updated_at")
    )
    deleted_at: UtcDatetime | None = Field(
        default=None,
        validation_alias=AliasChoices("deletedAt", "deleted_at"),
    )

    model_config = {"frozen": True}

    @field_validator("title", "body", mode="before")
    @classmethod
    def _none_as_empty_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tags", "checklist_items", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_note(
        self, local_id: str | None = None, remote_id: str | None = None
    ) -> Note:
        """Build a synced local ``Note`` carrying this server version.

        Args:
            local_id: Local identity to keep; defaults to the server id.
            remote_id: Remote identity to keep; defaults to the server id.
        """
        return Note(
            local_id=local_id or self.id,
            remote_id=remote_id or self.id,
            title=self.title,
            body=self.body,
            editor_kind=self.editor_kind,
            checklist_items=self.checklist_items,
            is_draft=self.is_draft,
            is_pinned=self.is_pinned,
            tags=self.tags,
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
            sync_state=NoteSyncState.SYNCED,
        )


# ---------------------------------------------------------------------------
# Sync run results
# ---------------------------------------------------------------------------


class SyncAction(str, Enum):
    """Per-note outcome of a sync run."""

    PUSH_CREATE = "push_create"
    PUSH_UPDATE = "push_update"
    PULL_CREATE = "pull_create"
    PULL_UPDATE = "pull_update"
    KEEP_LOCAL = "keep_local"
    SKIP = "skip"


class SyncResult(BaseModel):
    """Result of one push or merge step for one note.

    Attributes:
        local_id: Local identity of the note.
        remote_id: Remote identity after the step, if known.
        action: What was done.
        success: Whether the step succeeded.
        error: Error message if the step failed.
    """

    local_id: str
    remote_id: str | None = None
    action: SyncAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one ``synchronize`` call.

    Attributes:
        ran: False when the call was declined (offline or already running).
        skipped_reason: Why the call was declined.
        results: Per-note push and merge results.
        pulled: Number of notes returned by the pull.
        error: Pull/merge failure that aborted the call, if any.
        started_at: ISO 8601 timestamp when the call started.
        completed_at: ISO 8601 timestamp when the call finished.
    """

    ran: bool = True
    skipped_reason: str | None = None
    results: list[SyncResult] = []
    pulled: int = 0
    error: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [r for r in self.results if r.action == action]

    @property
    def created_remote(self) -> list[SyncResult]:
        """Successful pushes that created a remote note."""
        return [
            r for r in self._with_action(SyncAction.PUSH_CREATE) if r.success
        ]

    @property
    def updated_remote(self) -> list[SyncResult]:
        """Successful pushes that updated an existing remote note."""
        return [
            r for r in self._with_action(SyncAction.PUSH_UPDATE) if r.success
        ]

    @property
    def created_local(self) -> list[SyncResult]:
        """Server notes adopted as new local notes."""
        return self._with_action(SyncAction.PULL_CREATE)

    @property
    def updated_local(self) -> list[SyncResult]:
        """Local notes replaced by a newer server version."""
        return self._with_action(SyncAction.PULL_UPDATE)

    @property
    def kept_local(self) -> list[SyncResult]:
        """Pulled notes discarded because the local copy is unpushed."""
        return self._with_action(SyncAction.KEEP_LOCAL)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def succeeded(self) -> bool:
        """True if the call ran, pulled and merged without aborting."""
        return self.ran and self.error is None

    def summary(self) -> str:
        """Format a one-line summary of the sync run."""
        if not self.ran:
            return f"Sync skipped: {self.skipped_reason}"
        line = (
            f"pushed {len(self.created_remote) + len(self.updated_remote)}, "
            f"pulled {self.pulled}, "
            f"created locally {len(self.created_local)}, "
            f"updated locally {len(self.updated_local)}, "
            f"kept local {len(self.kept_local)}, "
            f"errors {len(self.errors)}"
        )
        if self.error:
            line += f" (aborted: {self.error})"
        return line


class SyncStatus(BaseModel):
    """Read-only snapshot of the sync engine's state.

    Attributes:
        online: Last known connectivity.
        in_progress: True while a ``synchronize`` call is running.
        last_sync: Watermark of the last successful call.
        last_error: Error of the last call that failed, cleared on success.
    """

    online: bool
    in_progress: bool
    last_sync: datetime | None = None
    last_error: str | None = None

    model_config = {"frozen": True}


class SyncOutcome(BaseModel):
    """Everything ``synchronize`` returns for the caller to persist.

    Attributes:
        notes: The merged note set.
        last_sync: The new (or unchanged) watermark.
        report: What happened during the call.
    """

    notes: list[Note]
    last_sync: datetime | None
    report: SyncReport

    model_config = {"frozen": True}

    @property
    def ran(self) -> bool:
        return self.report.ran
