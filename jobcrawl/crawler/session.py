"""Run-wide crawl state owned by the controller."""

from __future__ import annotations

import threading
from enum import Enum

from .types import BudgetView


class CrawlState(str, Enum):
    """Lifecycle of one crawl run."""

    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


class CrawlSession:
    """Item budget, emitted/pending counters, and run state.

    All mutations happen under one lock so concurrent workers never lose an
    update. The budget check and the increment are separate calls, so several
    in-flight detail pages can pass the check together and the final count may
    overshoot the budget by up to the worker count.
    """

    def __init__(self, item_budget: int, *, items_emitted: int = 0) -> None:
        if item_budget <= 0:
            raise ValueError("item_budget must be > 0")

        self.item_budget = item_budget
        self._lock = threading.Lock()
        self._items_emitted = max(0, items_emitted)
        self._details_pending = 0
        self._state = CrawlState.RUNNING

    @property
    def state(self) -> CrawlState:
        with self._lock:
            return self._state

    @property
    def items_emitted(self) -> int:
        with self._lock:
            return self._items_emitted

    @property
    def details_pending(self) -> int:
        with self._lock:
            return self._details_pending

    def budget_exhausted(self) -> bool:
        with self._lock:
            return self._items_emitted >= self.item_budget

    def budget_view(self) -> BudgetView:
        with self._lock:
            return BudgetView(
                item_budget=self.item_budget,
                items_emitted=self._items_emitted,
                details_pending=self._details_pending,
            )

    def record_emitted(self) -> int:
        """Count one emitted record and return the new total."""

        with self._lock:
            self._items_emitted += 1
            return self._items_emitted

    def details_enqueued(self, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._details_pending += count

    def detail_settled(self) -> None:
        with self._lock:
            self._details_pending = max(0, self._details_pending - 1)

    def begin_draining(self) -> bool:
        """Move RUNNING -> DRAINING. Returns True only for the caller that moved it."""

        with self._lock:
            if self._state is not CrawlState.RUNNING:
                return False
            self._state = CrawlState.DRAINING
            return True

    def finish(self) -> None:
        with self._lock:
            self._state = CrawlState.DONE

    def snapshot(self) -> dict[str, int | str]:
        with self._lock:
            return {
                "state": self._state.value,
                "item_budget": self.item_budget,
                "items_emitted": self._items_emitted,
                "details_pending": self._details_pending,
            }


__all__ = ["CrawlSession", "CrawlState"]
