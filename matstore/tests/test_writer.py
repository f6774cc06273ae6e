"""
Tests for the background write queue.

Validates:
- FIFO ordering
- Coalescing of snapshot writes
- Failures become notices, never exceptions
- Retry of failed writes
- Bounded notice history
"""

import threading

import pytest

from matstore.errors import StorageError
from matstore.writer import MAX_NOTICES, WriteQueue


class TestWriteQueue:
    """Test the threaded queue."""

    def test_runs_in_fifo_order(self):
        writer = WriteQueue()
        seen = []
        for i in range(20):
            writer.submit(f"entry:{i % 3}", "save", lambda i=i: seen.append(i))
        assert writer.flush(timeout=5)
        writer.close()
        assert seen == list(range(20))

    def test_coalesced_writes_replace_pending(self):
        writer = WriteQueue()
        gate = threading.Event()
        seen = []

        writer.submit("entry:a", "save", gate.wait)
        writer.submit("snapshot", "snapshot", lambda: seen.append("first"), coalesce=True)
        writer.submit("snapshot", "snapshot", lambda: seen.append("second"), coalesce=True)
        writer.submit("entry:b", "save", lambda: seen.append("b"))

        gate.set()
        assert writer.flush(timeout=5)
        writer.close()
        # The replacement keeps the first job's queue position
        assert seen == ["second", "b"]

    def test_non_coalesced_writes_all_run(self):
        writer = WriteQueue(synchronous=True)
        seen = []
        writer.submit("snapshot", "snapshot", lambda: seen.append(1))
        writer.submit("snapshot", "snapshot", lambda: seen.append(2))
        assert seen == [1, 2]

    def test_submit_after_close_raises(self):
        writer = WriteQueue()
        writer.close()
        with pytest.raises(RuntimeError):
            writer.submit("entry:a", "save", lambda: None)

    def test_pending_drains_to_zero(self):
        writer = WriteQueue()
        writer.submit("entry:a", "save", lambda: None)
        assert writer.flush(timeout=5)
        assert writer.pending == 0
        writer.close()


class TestFailures:
    """Test failure reporting."""

    def test_persistence_failure_becomes_retryable_notice(self, sync_writer):
        def fail():
            raise StorageError("disk full")

        sync_writer.submit("entry:a", "save", fail)

        notices = sync_writer.notices
        assert len(notices) == 1
        assert notices[0].entity == "entry:a"
        assert notices[0].message == "disk full"
        assert notices[0].retryable

    def test_unexpected_failure_not_retryable(self, sync_writer):
        def broken():
            raise ValueError("bug")

        sync_writer.submit("entry:a", "save", broken)

        notices = sync_writer.notices
        assert len(notices) == 1
        assert "ValueError" in notices[0].message
        assert not notices[0].retryable

    def test_retry_failed(self, sync_writer):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise StorageError("locked")

        sync_writer.submit("entry:a", "save", flaky)
        assert len(sync_writer.notices) == 1

        assert sync_writer.retry_failed() == 1
        assert len(attempts) == 2
        assert sync_writer.notices == []
        assert sync_writer.retry_failed() == 0

    def test_repeated_coalesced_failures_keep_one_notice(self, sync_writer):
        def fail():
            raise StorageError("read-only")

        sync_writer.submit("entry:a", "save", fail)
        for _ in range(5):
            sync_writer.submit("snapshot", "snapshot", fail, coalesce=True)

        entities = [n.entity for n in sync_writer.notices]
        assert entities == ["entry:a", "snapshot"]
        assert sync_writer.notices[1].coalesce

    def test_retry_keeps_coalescing(self):
        writer = WriteQueue()
        gate = threading.Event()
        seen = []
        failing = True

        def snapshot():
            seen.append("snapshot")
            if failing:
                raise StorageError("read-only")

        writer.submit("snapshot", "snapshot", snapshot, coalesce=True)
        assert writer.flush(timeout=5)
        assert len(writer.notices) == 1

        failing = False
        writer.submit("entry:a", "save", gate.wait)
        writer.submit("snapshot", "snapshot", snapshot, coalesce=True)
        # Re-scheduled snapshot replaces the one still pending behind the gate
        assert writer.retry_failed() == 1
        assert writer.pending == 2

        gate.set()
        assert writer.flush(timeout=5)
        writer.close()
        assert seen == ["snapshot", "snapshot"]
        assert writer.notices == []


class TestNotices:
    """Test notice bookkeeping."""

    def test_notices_capped(self, sync_writer):
        def fail():
            raise StorageError("disk full")

        for i in range(MAX_NOTICES + 10):
            sync_writer.submit(f"entry:{i}", "save", fail)

        notices = sync_writer.notices
        assert len(notices) == MAX_NOTICES
        # Oldest dropped first
        assert notices[0].entity == "entry:10"

    def test_drain_notices(self, sync_writer):
        def fail():
            raise StorageError("disk full")

        sync_writer.submit("entry:a", "save", fail)
        drained = sync_writer.drain_notices()

        assert [n.entity for n in drained] == ["entry:a"]
        assert sync_writer.notices == []
        assert sync_writer.retry_failed() == 0
