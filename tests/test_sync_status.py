"""Tests for the sync status tracker."""

from __future__ import annotations

import pytest

from conftest import T0
from notes_mcp_server.sync.status import SyncStatusTracker


class TestFlags:
    def test_initial_snapshot(self):
        status = SyncStatusTracker().snapshot()
        assert status.online
        assert not status.in_progress
        assert status.last_sync is None
        assert status.last_error is None

    def test_begin_claims_once(self):
        tracker = SyncStatusTracker()
        assert tracker.begin()
        assert not tracker.begin()
        assert tracker.in_progress
        tracker.end()
        assert not tracker.in_progress
        assert tracker.begin()

    def test_running_clears_on_error(self):
        tracker = SyncStatusTracker()
        with pytest.raises(ValueError):
            with tracker.running():
                assert tracker.in_progress
                raise ValueError("boom")
        assert not tracker.in_progress

    def test_running_refuses_reentry(self):
        tracker = SyncStatusTracker()
        with tracker.running():
            with pytest.raises(RuntimeError, match="already in progress"):
                with tracker.running():
                    pass
            # The outer hold survives the refused attempt
            assert tracker.in_progress

    def test_record_success_clears_error(self):
        tracker = SyncStatusTracker()
        tracker.record_failure("boom")
        assert tracker.snapshot().last_error == "boom"
        tracker.record_success(T0)
        status = tracker.snapshot()
        assert status.last_error is None
        assert status.last_sync == T0

    def test_failure_keeps_last_sync(self):
        tracker = SyncStatusTracker()
        tracker.record_success(T0)
        tracker.record_failure("boom")
        assert tracker.snapshot().last_sync == T0


class TestListeners:
    def test_online_change_notifies(self):
        seen = []
        tracker = SyncStatusTracker()
        tracker.subscribe(lambda s: seen.append(s.online))
        tracker.set_online(False)
        tracker.set_online(False)
        tracker.set_online(True)
        assert seen == [False, True]

    def test_unsubscribe(self):
        seen = []
        tracker = SyncStatusTracker()
        listener = seen.append
        tracker.subscribe(listener)
        tracker.unsubscribe(listener)
        tracker.unsubscribe(listener)
        tracker.begin()
        assert seen == []

    def test_failing_listener_does_not_break_others(self):
        seen = []

        def broken(status):
            raise RuntimeError("listener bug")

        tracker = SyncStatusTracker()
        tracker.subscribe(broken)
        tracker.subscribe(lambda s: seen.append(s.in_progress))
        assert tracker.begin()
        assert seen == [True]

    def test_separate_trackers_do_not_share_state(self):
        first = SyncStatusTracker()
        second = SyncStatusTracker()
        first.begin()
        first.set_online(False)
        assert not second.in_progress
        assert second.online
