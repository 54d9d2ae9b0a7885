"""Core sync engine that reconciles the local note set with the server.

The ``SyncEngine`` runs one synchronize call as four phases:

1. Push every note with unpushed changes (``dirty`` or ``error``):
   update by ``remote_id`` when it has one, create otherwise. A pushed
   tombstone is then deleted on the server. Requests run
   concurrently, bounded by a semaphore; their results are folded back into
   the note list one at a time, in the original order.
2. Pull every server note changed after the watermark (all notes on the
   first sync).
3. Merge the pull into the local set with record-level last-writer-wins
   (see ``resolver``).
4. Commit: hand back the merged notes and the advanced watermark. The
   caller persists both through ``LocalNoteStore``.

Error handling: push failures are per-note (the note is marked ``error``
and retried on the next call). A failure during pull or merge aborts the
call; push results are kept but the watermark is held back so the next
call pulls again.

At most one synchronize call runs per engine. A second caller, or any
caller while the engine is offline, gets its input back unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from ..core.async_utils import (
    gather_limited,
    make_semaphore,
    run_sync,
    run_sync_limited,
)
from ..core.errors import RemoteUnavailableError
from .models import (
    Note,
    NoteSyncState,
    SyncAction,
    SyncOutcome,
    SyncReport,
    SyncResult,
    SyncStatus,
    as_utc,
    isoformat,
    utc_now,
)
from .resolver import merge_server_notes
from .status import SyncStatusTracker

if TYPE_CHECKING:
    from ..core.client import NotesClient

logger = logging.getLogger(__name__)

SKIPPED_OFFLINE = "offline"
SKIPPED_IN_PROGRESS = "sync already in progress"


class SyncEngine:
    """Synchronize a local note set with the remote notes service.

    Args:
        client: Client for the remote notes service.
        max_parallel_requests: Upper bound on concurrent push requests.
        status: Status tracker to report through. A fresh one (online) is
            created when omitted.
    """

    def __init__(
        self,
        client: NotesClient,
        *,
        max_parallel_requests: int = 4,
        status: SyncStatusTracker | None = None,
    ) -> None:
        self.client = client
        self.max_parallel_requests = max_parallel_requests
        self.status = status if status is not None else SyncStatusTracker()

    def get_status(self) -> SyncStatus:
        """Read-only snapshot of connectivity and in-progress state."""
        return self.status.snapshot()

    async def check_connectivity(self) -> bool:
        """Probe the remote service and record the result as online/offline."""
        online = await run_sync(self.client.ping)
        self.status.set_online(online)
        return online

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def synchronize(
        self, notes: Sequence[Note], last_sync: datetime | None
    ) -> SyncOutcome:
        """Run one push/pull/merge cycle.

        Args:
            notes: The full local note set.
            last_sync: Watermark of the previous successful call.

        Returns:
            A ``SyncOutcome`` with the notes and watermark to persist. When
            the call is declined, both are the inputs unchanged and
            ``outcome.ran`` is False.
        """
        started = utc_now()
        # Naive watermarks are UTC, as everywhere else in the models
        if last_sync is not None:
            last_sync = as_utc(last_sync)

        # Check and claim with no await in between
        reason = None
        if not self.status.online:
            reason = SKIPPED_OFFLINE
        elif not self.status.begin():
            reason = SKIPPED_IN_PROGRESS
        if reason is not None:
            logger.info("Sync skipped: %s", reason)
            return SyncOutcome(
                notes=list(notes),
                last_sync=last_sync,
                report=SyncReport(
                    ran=False,
                    skipped_reason=reason,
                    started_at=isoformat(started),
                    completed_at=isoformat(utc_now()),
                ),
            )

        try:
            return await self._run(list(notes), last_sync, started)
        finally:
            self.status.end()

    async def _run(
        self,
        notes: list[Note],
        last_sync: datetime | None,
        started: datetime,
    ) -> SyncOutcome:
        t0 = time.monotonic()
        logger.info(
            "Sync started: %d notes, last_sync=%s",
            len(notes),
            isoformat(last_sync),
        )

        # Phase 1: push
        notes, results = await self._push(notes)

        # Phases 2 and 3: pull and merge
        try:
            server_notes = await run_sync(self.client.list_notes, last_sync)
            merged, merge_results = merge_server_notes(notes, server_notes)
        except Exception as exc:
            logger.error("Sync aborted during pull/merge: %s", exc)
            if isinstance(exc, RemoteUnavailableError):
                self.status.set_online(False)
            self.status.record_failure(str(exc))
            return SyncOutcome(
                notes=notes,
                last_sync=last_sync,
                report=SyncReport(
                    results=results,
                    error=str(exc),
                    started_at=isoformat(started),
                    completed_at=isoformat(utc_now()),
                ),
            )

        # Phase 4: commit
        new_last_sync = (
            started if last_sync is None else max(last_sync, started)
        )
        self.status.record_success(new_last_sync)
        report = SyncReport(
            results=results + merge_results,
            pulled=len(server_notes),
            started_at=isoformat(started),
            completed_at=isoformat(utc_now()),
        )
        logger.info(
            "Sync finished: %s",
            report.summary(),
            extra={"duration_ms": round((time.monotonic() - t0) * 1000)},
        )
        return SyncOutcome(
            notes=merged, last_sync=new_last_sync, report=report
        )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def _push(
        self, notes: list[Note]
    ) -> tuple[list[Note], list[SyncResult]]:
        """Push every note that needs it; never raises."""
        pending = [i for i, note in enumerate(notes) if note.needs_push]
        if not pending:
            return notes, []

        semaphore = make_semaphore(self.max_parallel_requests)
        outcomes = await gather_limited(
            [self._push_one(notes[i], semaphore) for i in pending]
        )

        # Fold results back one at a time, in the original order
        pushed = list(notes)
        results: list[SyncResult] = []
        for index, (note, result) in zip(pending, outcomes):
            pushed[index] = note
            results.append(result)
        return pushed, results

    async def _push_one(
        self, note: Note, semaphore: asyncio.Semaphore
    ) -> tuple[Note, SyncResult]:
        action = (
            SyncAction.PUSH_UPDATE if note.remote_id else SyncAction.PUSH_CREATE
        )
        payload = note.to_payload()
        remote_id = note.remote_id
        try:
            if remote_id:
                server = await run_sync_limited(
                    semaphore, self.client.update_note, remote_id, payload
                )
            else:
                server = await run_sync_limited(
                    semaphore, self.client.create_note, payload
                )
                remote_id = server.id
            if server.id != remote_id:
                logger.warning(
                    "Server answered note %s with id %s, keeping %s",
                    note.local_id,
                    server.id,
                    remote_id,
                )
            if note.is_deleted:
                await run_sync_limited(
                    semaphore, self.client.delete_note, remote_id
                )
        except Exception as exc:
            logger.warning(
                "Push of note %s failed: %s",
                note.local_id,
                exc,
                extra={
                    "note_id": note.local_id,
                    "remote_id": remote_id,
                    "action": action.value,
                },
            )
            # Keep an id the server already assigned so the retry updates it
            failed = note.model_copy(
                update={"sync_state": NoteSyncState.ERROR, "remote_id": remote_id}
            )
            return failed, SyncResult(
                local_id=note.local_id,
                remote_id=remote_id,
                action=action,
                success=False,
                error=str(exc),
            )

        synced = note.model_copy(
            update={"remote_id": remote_id, "sync_state": NoteSyncState.SYNCED}
        )
        logger.debug(
            "Pushed note %s",
            note.local_id,
            extra={
                "note_id": note.local_id,
                "remote_id": remote_id,
                "action": action.value,
            },
        )
        return synced, SyncResult(
            local_id=note.local_id, remote_id=remote_id, action=action
        )
