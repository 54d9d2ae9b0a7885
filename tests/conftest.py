"""Shared pytest fixtures for notes-mcp-server tests."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from notes_mcp_server.config import Config
from notes_mcp_server.core.errors import (
    NoteNotFoundError,
    NoteRejectedError,
    RemoteUnavailableError,
)
from notes_mcp_server.sync.models import (
    Note,
    NoteSyncState,
    ServerNote,
    utc_now,
)

load_dotenv()

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live notes service",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live notes service"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_note(local_id: str = "a", **overrides: Any) -> Note:
    """Build a Note with sensible defaults (synced, published, at T0)."""
    fields: dict[str, Any] = {
        "local_id": local_id,
        "remote_id": None,
        "title": f"Note {local_id}",
        "body": "",
        "is_draft": False,
        "created_at": T0,
        "updated_at": T0,
        "sync_state": NoteSyncState.SYNCED,
    }
    fields.update(overrides)
    return Note(**fields)


def make_server_note(note_id: str = "srv1", **overrides: Any) -> ServerNote:
    """Build a ServerNote from camelCase JSON, as the service sends it."""
    data: dict[str, Any] = {
        "_id": note_id,
        "title": f"Server {note_id}",
        "content": "",
        "editorType": "markdown",
        "isDraft": False,
        "isPinned": False,
        "tags": [],
        "createdAt": T0.isoformat(),
        "updatedAt": T0.isoformat(),
        "deletedAt": None,
    }
    data.update(overrides)
    return ServerNote.model_validate(data)


class FakeNotesService:
    """In-memory stand-in for NotesClient.

    Mirrors the remote service: ids are assigned on create, timestamps in
    the payload are stored verbatim, listing filters by
    ``updated_at > updated_since`` and hides tombstones.
    """

    def __init__(self) -> None:
        self.notes: dict[str, ServerNote] = {}
        self.online = True
        self.reject_titles: set[str] = set()
        self.pull_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.calls: list[tuple[str, Any]] = []
        self._ids = itertools.count(1)

    # -- helpers -------------------------------------------------------

    def seed(self, note: ServerNote) -> ServerNote:
        self.notes[note.id] = note
        return note

    def _check_online(self) -> None:
        if not self.online:
            raise RemoteUnavailableError("connection refused")

    def _store(self, note_id: str, payload: dict[str, Any]) -> ServerNote:
        if payload.get("title") in self.reject_titles:
            raise NoteRejectedError("title rejected", 400)
        now = utc_now().isoformat()
        data = {
            "id": note_id,
            **payload,
            "createdAt": payload.get("createdAt") or now,
            "updatedAt": payload.get("updatedAt") or now,
        }
        note = ServerNote.model_validate(data)
        self.notes[note_id] = note
        return note

    # -- NotesClient interface ------------------------------------------

    def list_notes(self, updated_since: datetime | None = None) -> list[ServerNote]:
        self.calls.append(("list", updated_since))
        self._check_online()
        if self.pull_error is not None:
            raise self.pull_error
        notes = [n for n in self.notes.values() if n.deleted_at is None]
        if updated_since is not None:
            notes = [n for n in notes if n.updated_at > updated_since]
        return sorted(notes, key=lambda n: n.updated_at, reverse=True)

    def create_note(self, payload: dict[str, Any]) -> ServerNote:
        self.calls.append(("create", payload))
        self._check_online()
        return self._store(f"srv{next(self._ids)}", payload)

    def update_note(self, note_id: str, payload: dict[str, Any]) -> ServerNote:
        self.calls.append(("update", note_id))
        self._check_online()
        if note_id not in self.notes:
            raise NoteNotFoundError(f"note {note_id} not found", 404)
        return self._store(note_id, payload)

    def delete_note(self, note_id: str) -> None:
        self.calls.append(("delete", note_id))
        self._check_online()
        if self.delete_error is not None:
            raise self.delete_error
        note = self.notes.get(note_id)
        if note is not None and note.deleted_at is None:
            self.notes[note_id] = note.model_copy(
                update={"deleted_at": utc_now()}
            )

    def ping(self) -> bool:
        return self.online


def later(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config instance for testing."""
    return Config(
        api_url="https://notes.example.com/api",
        token="test-token",
        store_path=str(tmp_path / "notes.json"),
    )


@pytest.fixture
def mock_notes_client(mock_config):
    """Create a mock NotesClient instance for testing."""
    from notes_mcp_server.core.client import NotesClient

    client = MagicMock(spec=NotesClient)
    client.config = mock_config
    return client


@pytest.fixture
def fake_service():
    return FakeNotesService()


@pytest.fixture
def runtime(mock_config, fake_service):
    """NotesRuntime wired to the fake service and a tmp_path store."""
    from notes_mcp_server.config_schema import UnifiedConfig
    from notes_mcp_server.mcp.lifespan import NotesRuntime
    from notes_mcp_server.sync.engine import SyncEngine
    from notes_mcp_server.sync.store import LocalNoteStore
    from pathlib import Path

    return NotesRuntime(
        config=mock_config,
        settings=UnifiedConfig(),
        client=fake_service,
        store=LocalNoteStore(Path(mock_config.store_path)),
        engine=SyncEngine(fake_service),
    )
