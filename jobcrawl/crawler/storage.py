"""Filesystem-backed storage for records, errors, frontier state and manifests.

Storage owns the on-disk layout. Other modules should use this API instead of
building paths manually.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterator, Mapping

from .config import CrawlConfig
from .errors import ConfigurationError
from .types import CrawlStats, CrawlTask, ErrorRecord, JobRecord, JSONDict


logger = logging.getLogger(__name__)


class Storage:
    """Persist crawl outputs under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path, *, load_existing: bool = True) -> None:
        self.output_dir = Path(output_dir)

        self.frontier_dir = self.output_dir / "frontier"
        self.debug_dir = self.output_dir / "debug"
        self.manifests_dir = self.output_dir / "manifests"
        self.logs_dir = self.output_dir / "logs"

        self.records_path = self.output_dir / "records.jsonl"
        self.errors_path = self.output_dir / "errors.jsonl"
        self.frontier_tasks_path = self.frontier_dir / "tasks.jsonl"
        self.handled_keys_path = self.frontier_dir / "handled_keys.txt"
        self.crawl_config_path = self.manifests_dir / "crawl_config.json"
        self.crawl_stats_path = self.manifests_dir / "crawl_stats.json"

        self._jsonl_lock = threading.Lock()
        self._frontier_lock = threading.Lock()
        self._state_lock = threading.Lock()

        self._records_count = 0

        self._ensure_layout()
        if load_existing:
            self._records_count = sum(1 for _ in self.iter_records())
        else:
            self.reset()

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "records": str(self.records_path),
            "errors": str(self.errors_path),
            "frontier_tasks": str(self.frontier_tasks_path),
            "handled_keys": str(self.handled_keys_path),
            "debug_dir": str(self.debug_dir),
            "crawl_config": str(self.crawl_config_path),
            "crawl_stats": str(self.crawl_stats_path),
            "log_dir": str(self.logs_dir),
        }

    def _ensure_layout(self) -> None:
        for directory in (self.frontier_dir, self.debug_dir, self.manifests_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def reset(self) -> None:
        """Drop records and frontier state from a previous run in this directory."""

        with self._jsonl_lock, self._frontier_lock:
            for path in (
                self.records_path,
                self.errors_path,
                self.frontier_tasks_path,
                self.handled_keys_path,
            ):
                path.unlink(missing_ok=True)
        with self._state_lock:
            self._records_count = 0

    # ---- output sink ----

    def save_record(self, record: JobRecord | Mapping[str, Any]) -> None:
        """Append one finished record to `records.jsonl`."""

        payload = record.to_json() if isinstance(record, JobRecord) else dict(record)
        self._append_jsonl(self.records_path, payload)
        with self._state_lock:
            self._records_count += 1

    def records_count(self) -> int:
        with self._state_lock:
            return self._records_count

    def iter_records(self) -> Iterator[dict[str, Any]]:
        yield from self._iter_jsonl(self.records_path)

    def save_error(self, record: ErrorRecord) -> None:
        """Append error record to `errors.jsonl`."""

        self._append_jsonl(self.errors_path, record.to_json())

    def iter_errors(self) -> Iterator[dict[str, Any]]:
        yield from self._iter_jsonl(self.errors_path)

    def save_debug_snapshot(self, key: str, html: str | bytes) -> Path:
        """Keep a page's raw HTML for later inspection of layout changes."""

        safe_key = re.sub(r"[^A-Za-z0-9._-]+", "_", key)[:80] or "page"
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        path = self.debug_dir / f"{safe_key}-{digest}.html"
        data = html.encode("utf-8") if isinstance(html, str) else bytes(html)
        self._atomic_write_bytes(path, data)
        return path

    # ---- frontier persistence ----

    def append_frontier_task(self, task: CrawlTask) -> None:
        """Record an accepted (or re-queued) task; the last row per key wins."""

        line = json.dumps(task.to_json(), ensure_ascii=False, sort_keys=True)
        with self._frontier_lock:
            with self.frontier_tasks_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def mark_task_handled(self, unique_key: str) -> None:
        with self._frontier_lock:
            with self.handled_keys_path.open("a", encoding="utf-8") as handle:
                handle.write(unique_key + "\n")

    def load_frontier_state(self) -> tuple[list[CrawlTask], set[str]]:
        """Return (latest version of every known task, handled keys)."""

        latest: dict[str, CrawlTask] = {}
        for payload in self._iter_jsonl(self.frontier_tasks_path):
            try:
                task = CrawlTask.from_json(payload)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed frontier row: %r", payload)
                continue
            latest[task.unique_key] = task

        handled: set[str] = set()
        if self.handled_keys_path.exists():
            with self.handled_keys_path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    key = line.rstrip("\n")
                    if key:
                        handled.add(key)

        return list(latest.values()), handled

    # ---- manifests ----

    def save_crawl_config(self, config: CrawlConfig | Mapping[str, Any]) -> None:
        """Write crawl config manifest atomically as JSON."""

        payload: Mapping[str, Any]
        if isinstance(config, CrawlConfig):
            payload = config.to_dict()
        else:
            payload = config
        self._atomic_write_json(self.crawl_config_path, dict(payload))

    def load_crawl_config(self) -> dict[str, Any] | None:
        """Return the config manifest of the previous run, or None if there is none."""

        if not self.crawl_config_path.exists():
            return None
        try:
            payload = json.loads(self.crawl_config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(
                f"Unreadable config manifest at {self.crawl_config_path}: {exc}"
            ) from exc
        if not isinstance(payload, dict):
            raise ConfigurationError(f"Config manifest at {self.crawl_config_path} must be a mapping")
        return payload

    def save_crawl_stats(self, stats: CrawlStats | Mapping[str, Any]) -> None:
        """Write crawl stats manifest atomically as JSON."""

        payload: Mapping[str, Any]
        if isinstance(stats, CrawlStats):
            payload = stats.to_json()
        else:
            payload = stats
        self._atomic_write_json(self.crawl_stats_path, dict(payload))

    def _append_jsonl(self, path: Path, payload: Mapping[str, Any]) -> None:
        line = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        with self._jsonl_lock:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    @staticmethod
    def _iter_jsonl(path: Path) -> Iterator[dict[str, Any]]:
        if not path.exists():
            return
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(payload, dict):
                    yield payload

    @staticmethod
    def _atomic_write_bytes(path: Path, data: bytes) -> None:
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    @classmethod
    def _atomic_write_json(cls, path: Path, payload: Mapping[str, Any]) -> None:
        content = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        cls._atomic_write_bytes(path, content.encode("utf-8"))


__all__ = ["Storage"]
