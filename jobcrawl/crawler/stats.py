"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Iterable, Mapping

from .frontier import EnqueueResult, EnqueueStatus
from .types import CrawlStats, FetchResult, TaskOutcome


class StatsCollector:
    """Collect and summarize crawler runtime statistics.

    Shared by all worker threads; every update takes the collector lock.
    """

    def __init__(self, base: CrawlStats | None = None) -> None:
        self._lock = threading.Lock()
        self._core = base or CrawlStats()

        self._frontier_snapshot: dict[str, int | bool] = {}
        self._enqueued_by_label: dict[str, int] = defaultdict(int)

        self._fetch_status_code_counts: dict[str, int] = defaultdict(int)
        self._fetch_error_type_counts: dict[str, int] = defaultdict(int)
        self._fetch_attempts_total = 0
        self._fetch_elapsed_ms_total = 0
        self._fetch_elapsed_samples = 0
        self._fetch_bytes_total = 0

        self._error_type_counts: dict[str, int] = defaultdict(int)
        self._custom_counters: dict[str, int] = defaultdict(int)

    def record_enqueue(self, result: EnqueueResult) -> None:
        """Record one frontier enqueue outcome."""

        with self._lock:
            if result.status == EnqueueStatus.ENQUEUED:
                self._core.frontier_enqueued += 1
                self._enqueued_by_label[result.task.label] += 1
            elif result.status == EnqueueStatus.SKIPPED_SEEN:
                self._core.frontier_skipped_seen += 1
            else:
                self._core.frontier_skipped_closed += 1

    def record_enqueue_many(self, results: Iterable[EnqueueResult]) -> None:
        for result in results:
            self.record_enqueue(result)

    def record_skipped_seen(self, count: int) -> None:
        """Count keys dropped as already seen before they reached the frontier."""

        if count <= 0:
            return
        with self._lock:
            self._core.frontier_skipped_seen += count

    def record_frontier_snapshot(self, snapshot: Mapping[str, int | bool]) -> None:
        """Attach latest frontier snapshot for diagnostics."""

        with self._lock:
            self._frontier_snapshot = dict(snapshot)

    def record_fetch(self, result: FetchResult) -> None:
        """Record one fetch result."""

        with self._lock:
            if result.ok:
                self._core.fetched_ok += 1
            else:
                self._core.fetched_error += 1

            if result.status_code is not None:
                self._fetch_status_code_counts[str(result.status_code)] += 1

            if result.error:
                err_type = result.error.split(":", maxsplit=1)[0].strip() or "Unknown"
                self._fetch_error_type_counts[err_type] += 1

            self._fetch_attempts_total += result.attempts

            if result.elapsed_ms is not None:
                self._fetch_elapsed_ms_total += int(result.elapsed_ms)
                self._fetch_elapsed_samples += 1

            if result.content_length is not None:
                self._fetch_bytes_total += int(result.content_length)

    def record_blocked(self) -> None:
        with self._lock:
            self._core.blocked += 1

    def record_session_retired(self) -> None:
        with self._lock:
            self._core.session_retirements += 1

    def record_outcome(self, outcome: TaskOutcome) -> None:
        """Count reclaimed/abandoned/discarded tasks."""

        with self._lock:
            if outcome == TaskOutcome.RECLAIMED:
                self._core.tasks_reclaimed += 1
            elif outcome == TaskOutcome.ABANDONED:
                self._core.tasks_abandoned += 1
            elif outcome == TaskOutcome.DISCARDED:
                self._core.tasks_discarded += 1
            else:
                self._custom_counters[f"tasks_{outcome.value}"] += 1

    def record_emitted(self, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._core.records_emitted += count

    def record_hook_error(self) -> None:
        with self._lock:
            self._core.hook_errors += 1

    def record_error(self, error_type: str | None) -> None:
        """Count one persisted error row by exception class name."""

        with self._lock:
            self._error_type_counts[error_type or "Unknown"] += 1

    def increment(self, name: str, value: int = 1) -> None:
        """Increment a custom counter for ad-hoc instrumentation."""

        if not name or value == 0:
            return
        with self._lock:
            self._custom_counters[name] += value

    def finish(self) -> None:
        """Mark crawl as finished."""

        with self._lock:
            self._core.finish()

    def core(self) -> CrawlStats:
        """Return a copy of the core `CrawlStats` record."""

        with self._lock:
            return CrawlStats(**self._core.to_json())

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            core = self._core.to_json()

            start = _parse_iso_utc(self._core.started_at)
            end = (
                _parse_iso_utc(self._core.finished_at)
                if self._core.finished_at
                else datetime.now(timezone.utc)
            )
            duration_seconds = max(0.0, (end - start).total_seconds())

            fetch_elapsed_avg = (
                self._fetch_elapsed_ms_total / self._fetch_elapsed_samples
                if self._fetch_elapsed_samples > 0
                else 0.0
            )
            fetched_total = self._core.fetched_ok + self._core.fetched_error

            return {
                **core,
                "duration_seconds": duration_seconds,
                "throughput": {
                    "fetched_per_second": (
                        fetched_total / duration_seconds if duration_seconds > 0 else 0.0
                    ),
                    "records_per_second": (
                        self._core.records_emitted / duration_seconds
                        if duration_seconds > 0
                        else 0.0
                    ),
                },
                "frontier": {
                    "enqueued_by_label": dict(self._enqueued_by_label),
                    "snapshot": dict(self._frontier_snapshot),
                },
                "fetch": {
                    "status_code_counts": dict(self._fetch_status_code_counts),
                    "error_type_counts": dict(self._fetch_error_type_counts),
                    "attempts_total": self._fetch_attempts_total,
                    "elapsed_ms_total": self._fetch_elapsed_ms_total,
                    "elapsed_ms_samples": self._fetch_elapsed_samples,
                    "elapsed_ms_avg": fetch_elapsed_avg,
                    "bytes_total": self._fetch_bytes_total,
                },
                "errors": {
                    "by_type": dict(self._error_type_counts),
                },
                "custom_counters": dict(self._custom_counters),
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
