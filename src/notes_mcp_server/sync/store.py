"""Local note store.

Keeps the full local note set and the last-sync watermark in one JSON
file (by default ``.notes_mcp/notes.json``). The store only knows how to
load and replace the whole snapshot; the sync engine and the editing
tools always operate on the full set.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file in the same
  directory then calls ``os.replace()``, so a failed write never corrupts
  the previously persisted snapshot.
* **Whole-set replacement** -- there are no partial updates; callers load,
  transform, and save.
* **Versioned format** -- the file carries ``"version": 1`` so the layout
  can change later without guessing.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .models import Note, as_utc, isoformat

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class StoreError(Exception):
    """The local note store could not be read or written."""


class LocalNoteStore:
    """Load and save the local note snapshot.

    Args:
        path: Path of the JSON store file. Parent directories are created
            on first save.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> tuple[list[Note], datetime | None]:
        """Load the note set and watermark.

        Returns:
            ``(notes, last_sync)``. A missing file loads as ``([], None)``.

        Raises:
            StoreError: If the file exists but cannot be parsed.
        """
        if not self._path.exists():
            return [], None

        try:
            with open(self._path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(
                f"Cannot read note store {self._path}: {exc}"
            ) from exc

        version = data.get("version")
        if version != STORE_FORMAT_VERSION:
            raise StoreError(
                f"Unsupported note store version {version!r} in {self._path}"
            )

        try:
            notes = [Note.model_validate(n) for n in data.get("notes", [])]
            raw_last_sync = data.get("last_sync")
            last_sync = (
                as_utc(datetime.fromisoformat(raw_last_sync))
                if raw_last_sync
                else None
            )
        except (ValidationError, ValueError) as exc:
            raise StoreError(
                f"Corrupt note store {self._path}: {exc}"
            ) from exc

        logger.debug("Loaded %d notes from %s", len(notes), self._path)
        return notes, last_sync

    def save(
        self, notes: Sequence[Note], last_sync: datetime | None
    ) -> None:
        """Replace the persisted snapshot atomically.

        Args:
            notes: The full note set.
            last_sync: The watermark to persist.

        Raises:
            StoreError: If ``local_id`` values are not unique or the file
                cannot be written. The previous snapshot is left intact.
        """
        seen: set[str] = set()
        for note in notes:
            if note.local_id in seen:
                raise StoreError(f"Duplicate local_id: {note.local_id}")
            seen.add(note.local_id)

        state = {
            "version": STORE_FORMAT_VERSION,
            "last_sync": isoformat(last_sync),
            "notes": [note.model_dump(mode="json") for note in notes],
        }

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._path.parent), suffix=".tmp"
            )
        except OSError as exc:
            raise StoreError(
                f"Cannot write note store {self._path}: {exc}"
            ) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise StoreError(
                    f"Cannot write note store {self._path}: {exc}"
                ) from exc
            raise

        logger.debug("Saved %d notes to %s", len(notes), self._path)
