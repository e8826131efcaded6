"""Thread-safe, deduplicated frontier queue with priority insertion."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .storage import Storage
from .types import CrawlTask


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    task: CrawlTask

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Frontier queue used by producer/consumer crawl workers.

    - Thread-safe `push` and `pop` for multi-worker crawling.
    - Deduplicates on `CrawlTask.unique_key`; keys count as seen at enqueue time.
    - `forefront=True` puts work at the head of the queue.
    - `reclaim` re-queues the task that already owns a key (retries).
    - With a `Storage`, accepted tasks and handled keys are persisted so
      `restore` can resume an interrupted run.
    """

    def __init__(self, storage: Storage | None = None) -> None:
        self.storage = storage

        self._pending: deque[CrawlTask] = deque()
        self._cond = threading.Condition()
        self._all_done = threading.Condition(self._cond)

        self._seen_keys: set[str] = set()
        self._handled_keys: set[str] = set()
        self._unfinished = 0
        self._closed = False

        self._enqueued_count = 0
        self._reclaimed_count = 0
        self._dequeued_count = 0
        self._skipped_seen_count = 0
        self._skipped_closed_count = 0

    def restore(self) -> list[CrawlTask]:
        """Reload unhandled tasks and seen keys from storage.

        Returns the tasks that were put back on the queue.
        """

        if self.storage is None:
            return []

        tasks, handled = self.storage.load_frontier_state()
        restored: list[CrawlTask] = []
        with self._cond:
            self._handled_keys.update(handled)
            for task in tasks:
                self._seen_keys.add(task.unique_key)
                if task.unique_key in handled:
                    continue
                self._pending.append(task)
                self._unfinished += 1
                restored.append(task)
            self._cond.notify_all()
        return restored

    def push(self, task: CrawlTask, *, forefront: bool = False) -> EnqueueResult:
        """Attempt to enqueue one task; known keys are dropped."""

        return self.push_many([task], forefront=forefront)[0]

    def push_many(self, tasks: Iterable[CrawlTask], *, forefront: bool = False) -> list[EnqueueResult]:
        """Attempt to enqueue several tasks, preserving their order.

        With `forefront=True` the accepted batch lands at the head of the queue
        in the given order.
        """

        results: list[EnqueueResult] = []
        accepted: list[CrawlTask] = []

        with self._cond:
            for task in tasks:
                if self._closed:
                    self._skipped_closed_count += 1
                    results.append(EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, task))
                    continue
                if task.unique_key in self._seen_keys:
                    self._skipped_seen_count += 1
                    results.append(EnqueueResult(EnqueueStatus.SKIPPED_SEEN, task))
                    continue

                self._seen_keys.add(task.unique_key)
                accepted.append(task)
                results.append(EnqueueResult(EnqueueStatus.ENQUEUED, task))

            if accepted:
                if forefront:
                    self._pending.extendleft(reversed(accepted))
                else:
                    self._pending.extend(accepted)
                self._unfinished += len(accepted)
                self._enqueued_count += len(accepted)
                self._cond.notify_all()

        if self.storage is not None:
            for task in accepted:
                self.storage.append_frontier_task(task)

        return results

    def reclaim(self, task: CrawlTask, *, forefront: bool = False) -> EnqueueResult:
        """Put a retried task back without the dedup check."""

        with self._cond:
            if self._closed:
                self._skipped_closed_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, task)

            self._seen_keys.add(task.unique_key)
            if forefront:
                self._pending.appendleft(task)
            else:
                self._pending.append(task)
            self._unfinished += 1
            self._reclaimed_count += 1
            self._cond.notify_all()

        if self.storage is not None:
            self.storage.append_frontier_task(task)
        return EnqueueResult(EnqueueStatus.ENQUEUED, task)

    def pop(self, *, block: bool = True, timeout: float | None = None) -> CrawlTask | None:
        """Pop one task for a worker thread.

        Returns `None` when no task is available under the requested blocking mode.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._pending:
                if not block or self._closed:
                    return None
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)

            task = self._pending.popleft()
            self._dequeued_count += 1
            return task

    def task_done(self) -> None:
        """Mark one popped task as finished."""

        with self._cond:
            if self._unfinished <= 0:
                raise ValueError("task_done() called too many times")
            self._unfinished -= 1
            if self._unfinished == 0:
                self._all_done.notify_all()

    def join(self) -> None:
        """Block until every accepted task has been marked done."""

        with self._all_done:
            while self._unfinished:
                self._all_done.wait()

    def mark_handled(self, task: CrawlTask) -> None:
        """Record that a task will never need fetching again."""

        with self._cond:
            if task.unique_key in self._handled_keys:
                return
            self._handled_keys.add(task.unique_key)

        if self.storage is not None:
            self.storage.mark_task_handled(task.unique_key)

    def close(self) -> None:
        """Close frontier to future enqueue attempts and wake idle workers."""

        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        """Whether frontier has been closed for new enqueue attempts."""

        with self._cond:
            return self._closed

    def qsize(self) -> int:
        with self._cond:
            return len(self._pending)

    def empty(self) -> bool:
        with self._cond:
            return not self._pending

    def seen_keys(self) -> set[str]:
        """Return snapshot of known unique keys."""

        with self._cond:
            return set(self._seen_keys)

    def snapshot(self) -> dict[str, int | bool]:
        """Return frontier counters for logs/stats reporting."""

        with self._cond:
            return {
                "closed": self._closed,
                "queue_size": len(self._pending),
                "unfinished": self._unfinished,
                "seen_keys": len(self._seen_keys),
                "handled_keys": len(self._handled_keys),
                "enqueued": self._enqueued_count,
                "reclaimed": self._reclaimed_count,
                "dequeued": self._dequeued_count,
                "skipped_seen": self._skipped_seen_count,
                "skipped_closed": self._skipped_closed_count,
            }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
