"""
Background write queue for durability operations.

Mutations update in-memory state synchronously and hand their
persistence work to this queue.

Design rules:
- One worker thread, strict FIFO order
- Writes for the same entity are applied in the order they were issued
- Coalescing writes (whole-state snapshots) replace their pending
  predecessor in place instead of queueing twice; they are never dropped
- A failed write never raises into the caller: it becomes a retryable
  PersistenceNotice
- No cancellation: flush() waits, it does not abort
- At most MAX_NOTICES notices are kept, oldest dropped first; a failed
  coalescing write replaces the earlier retryable notice for its entity
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from .errors import PersistenceUnavailableError
from .models import PersistenceNotice

logger = logging.getLogger(__name__)


MAX_NOTICES = 200


@dataclass
class _WriteJob:
    entity: str
    operation: str
    action: Callable[[], None]
    coalesce: bool = False


class WriteQueue:
    """
    FIFO queue of persistence writes drained by a daemon thread.

    With synchronous=True every write runs inline in the caller's thread
    (same failure handling, no thread).
    """

    def __init__(self, synchronous: bool = False, name: str = "matstore-writer"):
        self.synchronous = synchronous
        self.name = name
        self._queue: deque[_WriteJob] = deque()
        self._cond = threading.Condition()
        self._worker: Optional[threading.Thread] = None
        self._in_flight = 0
        self._closed = False
        self._notices: Deque[PersistenceNotice] = deque(maxlen=MAX_NOTICES)

    @property
    def pending(self) -> int:
        """Number of writes queued or running."""
        with self._cond:
            return len(self._queue) + self._in_flight

    @property
    def notices(self) -> List[PersistenceNotice]:
        with self._cond:
            return list(self._notices)

    def add_notice(self, notice: PersistenceNotice) -> None:
        with self._cond:
            self._notices.append(notice)

    def clear_notices(self) -> None:
        with self._cond:
            self._notices.clear()

    def drain_notices(self) -> List[PersistenceNotice]:
        """Return and forget every recorded notice."""
        with self._cond:
            notices = list(self._notices)
            self._notices.clear()
        return notices

    def submit(
        self,
        entity: str,
        operation: str,
        action: Callable[[], None],
        coalesce: bool = False,
    ) -> None:
        """
        Schedule a write.

        Args:
            entity: Key of the persisted entity (ordering/coalescing scope)
            operation: Short description for notices and logs
            action: Callable performing the write
            coalesce: Replace a still-pending coalescing write for the same entity

        Raises:
            RuntimeError: If the queue has been closed
        """
        job = _WriteJob(entity, operation, action, coalesce)

        if self.synchronous:
            if self._closed:
                raise RuntimeError("Write queue is closed")
            self._run(job)
            return

        with self._cond:
            if self._closed:
                raise RuntimeError("Write queue is closed")

            replaced = False
            if coalesce:
                for index, pending in enumerate(self._queue):
                    if pending.coalesce and pending.entity == entity:
                        self._queue[index] = job
                        replaced = True
                        break
            if not replaced:
                self._queue.append(job)

            self._ensure_worker()
            self._cond.notify_all()

        logger.debug(f"[WriteQueue] Scheduled {operation} for {entity}")

    def _ensure_worker(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(target=self._drain, name=self.name, daemon=True)
            self._worker.start()

    def _drain(self) -> None:
        while True:
            with self._cond:
                while not self._queue and not self._closed:
                    self._cond.wait()
                if not self._queue:
                    return
                job = self._queue.popleft()
                self._in_flight += 1
            try:
                self._run(job)
            finally:
                with self._cond:
                    self._in_flight -= 1
                    self._cond.notify_all()

    def _run(self, job: _WriteJob) -> None:
        try:
            job.action()
        except PersistenceUnavailableError as e:
            logger.warning(f"[WriteQueue] {job.operation} for {job.entity} failed: {e}")
            notice = PersistenceNotice(
                entity=job.entity,
                operation=job.operation,
                message=str(e),
                retry=job.action,
                coalesce=job.coalesce,
            )
            with self._cond:
                if job.coalesce:
                    self._drop_retryable(job.entity)
                self._notices.append(notice)
        except Exception as e:
            logger.exception(f"[WriteQueue] {job.operation} for {job.entity} raised")
            self.add_notice(PersistenceNotice(
                entity=job.entity,
                operation=job.operation,
                message=f"{type(e).__name__}: {e}",
            ))

    def _drop_retryable(self, entity: str) -> None:
        # Caller holds self._cond
        kept = [n for n in self._notices if not (n.retryable and n.entity == entity)]
        self._notices = deque(kept, maxlen=MAX_NOTICES)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every scheduled write has run.

        Returns:
            True if the queue drained, False on timeout
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._queue and self._in_flight == 0, timeout
            )

    def retry_failed(self) -> int:
        """
        Re-schedule every retryable failed write, oldest first.

        Returns:
            Number of writes re-scheduled
        """
        with self._cond:
            retryable = [n for n in self._notices if n.retryable]
            self._notices = deque(
                (n for n in self._notices if not n.retryable), maxlen=MAX_NOTICES
            )

        for notice in retryable:
            self.submit(notice.entity, notice.operation, notice.retry, coalesce=notice.coalesce)

        if retryable:
            logger.info(f"[WriteQueue] Retrying {len(retryable)} failed writes")
        return len(retryable)

    def close(self, timeout: Optional[float] = None) -> None:
        """Drain outstanding writes and stop the worker."""
        self.flush(timeout)
        with self._cond:
            self._closed = True
            self._cond.notify_all()
            worker = self._worker
        if worker is not None:
            worker.join(timeout)
