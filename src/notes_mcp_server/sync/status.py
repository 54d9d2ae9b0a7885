"""Connectivity and in-progress state of one sync engine.

The tracker is owned by a ``SyncEngine`` instance; callers read it through
``snapshot()`` or by subscribing a listener. There is no module-level
state, so separate engines (and separate tests) never share flags.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

from .models import SyncStatus

logger = logging.getLogger(__name__)

StatusListener = Callable[[SyncStatus], None]


class SyncStatusTracker:
    """Mutable holder behind the read-only ``SyncStatus`` snapshots.

    Args:
        online: Initial connectivity.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._in_progress = False
        self._last_sync: datetime | None = None
        self._last_error: str | None = None
        self._listeners: list[StatusListener] = []

    @property
    def online(self) -> bool:
        return self._online

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def snapshot(self) -> SyncStatus:
        return SyncStatus(
            online=self._online,
            in_progress=self._in_progress,
            last_sync=self._last_sync,
            last_error=self._last_error,
        )

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def set_online(self, online: bool) -> None:
        """Record a transport-level online/offline notification."""
        if online == self._online:
            return
        self._online = online
        logger.info("Notes service is %s", "online" if online else "offline")
        self._notify()

    def begin(self) -> bool:
        """Claim the in-progress flag.

        Returns:
            False if a call is already in progress (flag left untouched).
        """
        if self._in_progress:
            return False
        self._in_progress = True
        self._notify()
        return True

    def end(self) -> None:
        self._in_progress = False
        self._notify()

    @contextmanager
    def running(self) -> Iterator[None]:
        """Hold the in-progress flag for the duration of the block.

        The flag is cleared on exit, including on error.

        Raises:
            RuntimeError: If the flag is already held.
        """
        if not self.begin():
            raise RuntimeError("A sync is already in progress")
        try:
            yield
        finally:
            self.end()

    def record_success(self, last_sync: datetime | None) -> None:
        self._last_sync = last_sync
        self._last_error = None

    def record_failure(self, error: str) -> None:
        self._last_error = error

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: StatusListener) -> None:
        """Call *listener* with every new snapshot."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        """Remove *listener*; unknown listeners are ignored."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self) -> None:
        status = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Sync status listener failed")
