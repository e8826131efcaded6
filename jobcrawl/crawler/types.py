"""Core type definitions for the crawler.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class PageLabel(str, Enum):
    """Page-type tag driving dispatch."""

    START = "START"
    LIST = "LIST"
    DETAIL = "DETAIL"


LISTING_LABELS = frozenset({PageLabel.START.value, PageLabel.LIST.value})


class CrawlStage(str, Enum):
    """Crawl stage names for error reporting."""

    FRONTIER = "frontier"
    FETCH = "fetch"
    EXTRACT = "extract"
    ENRICH = "enrich"
    STORE = "store"


class FetchBackend(str, Enum):
    """Backend used to fetch page content."""

    REQUESTS = "requests"
    SELENIUM = "selenium"


class TaskOutcome(str, Enum):
    """How a worker finished with one frontier task."""

    COMPLETED = "completed"
    RECLAIMED = "reclaimed"
    ABANDONED = "abandoned"
    DISCARDED = "discarded"
    FAILED = "failed"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for records/JSONL."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True, slots=True)
class CrawlTask:
    """A unit of frontier work."""

    url: str
    unique_key: str
    label: str = PageLabel.START.value
    page_number: int = 1
    retry_count: int = 0
    block_count: int = 0
    user_data: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.label, PageLabel):
            object.__setattr__(self, "label", self.label.value)
        if self.page_number < 1:
            raise ValueError("page_number must be >= 1")
        if self.retry_count < 0 or self.block_count < 0:
            raise ValueError("retry counters must be >= 0")

    @property
    def is_listing(self) -> bool:
        return self.label in LISTING_LABELS

    @property
    def is_detail(self) -> bool:
        return self.label == PageLabel.DETAIL.value

    def with_retry(self) -> "CrawlTask":
        return replace(self, retry_count=self.retry_count + 1)

    def with_block_retry(self) -> "CrawlTask":
        return replace(self, block_count=self.block_count + 1)

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "unique_key": self.unique_key,
            "label": self.label,
            "page_number": self.page_number,
            "retry_count": self.retry_count,
            "block_count": self.block_count,
            "user_data": self.user_data,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "CrawlTask":
        return cls(
            url=str(payload["url"]),
            unique_key=str(payload["unique_key"]),
            label=str(payload.get("label", PageLabel.START.value)),
            page_number=int(payload.get("page_number", 1)),
            retry_count=int(payload.get("retry_count", 0)),
            block_count=int(payload.get("block_count", 0)),
            user_data=dict(payload.get("user_data") or {}),
        )


@dataclass(slots=True)
class JobRecord:
    """One finished job listing, written to records.jsonl."""

    url: str
    scraped_at: str = field(default_factory=utc_now_iso)
    position_name: str | None = None
    salary: str | None = None
    company: str | None = None
    location: str | None = None
    rating: float | None = None
    reviews_count: int | None = None
    id: str | None = None
    posted_at: str | None = None
    description: str | None = None
    external_apply_link: str | None = None
    extra: dict[str, JSONValue] = field(default_factory=dict)

    def merge_extra(self, values: Mapping[str, Any]) -> None:
        self.extra.update(dict(values))

    def to_json(self) -> JSONDict:
        payload: JSONDict = {
            "positionName": self.position_name,
            "salary": self.salary,
            "company": self.company,
            "location": self.location,
            "rating": self.rating,
            "reviewsCount": self.reviews_count,
            "url": self.url,
            "id": self.id,
            "postedAt": self.posted_at,
            "scrapedAt": self.scraped_at,
            "description": self.description,
            "externalApplyLink": self.external_apply_link,
        }
        # Hook output wins over built-in fields of the same name.
        payload.update(self.extra)
        return payload


@dataclass(frozen=True, slots=True)
class BudgetView:
    """Read-only snapshot of the item budget handed to parsers."""

    item_budget: int
    items_emitted: int
    details_pending: int = 0

    @property
    def exhausted(self) -> bool:
        return self.items_emitted >= self.item_budget

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.item_budget - self.items_emitted - self.details_pending)


@dataclass(slots=True)
class FetchResult:
    """Result of attempting to download one URL."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    content_type: str | None
    body: bytes | None
    backend: FetchBackend = FetchBackend.REQUESTS
    session_id: str | None = None
    attempts: int = 1
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when a response arrived, whatever its status."""

        return self.error is None and self.status_code is not None

    @property
    def content_length(self) -> int | None:
        return None if self.body is None else len(self.body)

    @property
    def text(self) -> str:
        return (self.body or b"").decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One error row written to errors.jsonl."""

    stage: CrawlStage
    url: str
    message: str
    error_type: str | None = None
    unique_key: str | None = None
    label: str | None = None
    status_code: int | None = None
    created_at: str = field(default_factory=utc_now_iso)
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls,
        *,
        stage: CrawlStage,
        url: str,
        exc: Exception,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(
            stage=stage,
            url=url,
            message=str(exc),
            error_type=exc.__class__.__name__,
            **kwargs,
        )

    def to_json(self) -> JSONDict:
        return {
            "stage": self.stage.value,
            "url": self.url,
            "message": self.message,
            "error_type": self.error_type,
            "unique_key": self.unique_key,
            "label": self.label,
            "status_code": self.status_code,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }


@dataclass(slots=True)
class CrawlStats:
    """Simple mutable counters used for crawl summary reporting."""

    frontier_enqueued: int = 0
    frontier_skipped_seen: int = 0
    frontier_skipped_closed: int = 0

    fetched_ok: int = 0
    fetched_error: int = 0
    blocked: int = 0
    session_retirements: int = 0

    tasks_reclaimed: int = 0
    tasks_abandoned: int = 0
    tasks_discarded: int = 0

    records_emitted: int = 0
    hook_errors: int = 0

    started_at: str = field(default_factory=utc_now_iso)
    finished_at: str | None = None

    def finish(self) -> None:
        self.finished_at = utc_now_iso()

    def to_json(self) -> JSONDict:
        return {
            "frontier_enqueued": self.frontier_enqueued,
            "frontier_skipped_seen": self.frontier_skipped_seen,
            "frontier_skipped_closed": self.frontier_skipped_closed,
            "fetched_ok": self.fetched_ok,
            "fetched_error": self.fetched_error,
            "blocked": self.blocked,
            "session_retirements": self.session_retirements,
            "tasks_reclaimed": self.tasks_reclaimed,
            "tasks_abandoned": self.tasks_abandoned,
            "tasks_discarded": self.tasks_discarded,
            "records_emitted": self.records_emitted,
            "hook_errors": self.hook_errors,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


__all__ = [
    "BudgetView",
    "CrawlStage",
    "CrawlStats",
    "CrawlTask",
    "ErrorRecord",
    "FetchBackend",
    "FetchResult",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "JobRecord",
    "LISTING_LABELS",
    "PageLabel",
    "TaskOutcome",
    "utc_now_iso",
]
