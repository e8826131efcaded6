"""Search results page parser: detail discovery and pagination."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Container

from bs4 import BeautifulSoup

from ..types import BudgetView, CrawlTask, PageLabel
from ..url import listing_unique_key, resolve
from .document import select_attr


@dataclass(slots=True)
class ListingParserConfig:
    """Selectors for the search results layout."""

    no_results_selector: str = ".no_results"
    detail_anchor_selector: str = ".tapItem a[data-jk]"
    detail_id_attr: str = "data-jk"
    search_count_selector: str = "#searchCountPages"
    next_page_selector_template: str = 'a[aria-label="{page}"]'


@dataclass(slots=True)
class ListingExtraction:
    """Outcome of parsing one START/LIST page."""

    url: str
    page_number: int
    no_results: bool = False
    detail_tasks: list[CrawlTask] = field(default_factory=list)
    next_page_task: CrawlTask | None = None
    total_on_site: int = 0
    details_found: int = 0
    details_known: int = 0
    details_over_budget: int = 0

    @property
    def tasks(self) -> list[CrawlTask]:
        tasks = list(self.detail_tasks)
        if self.next_page_task is not None:
            tasks.append(self.next_page_task)
        return tasks


def parse_total_results(text: str | None) -> int:
    """Read the site's result total from text like "Page 1 of 1,234 jobs".

    Unparsable input yields 0, which disables pagination.
    """

    if not text:
        return 0
    tokens = text.strip().split()
    if len(tokens) < 4:
        return 0
    digits = re.sub(r"[^0-9]", "", tokens[3])
    return int(digits) if digits else 0


class ListingParser:
    """Turn a results page into DETAIL tasks plus at most one next-page task."""

    def __init__(self, config: ListingParserConfig | None = None) -> None:
        self.config = config or ListingParserConfig()

    def parse(
        self,
        document: BeautifulSoup,
        task: CrawlTask,
        budget: BudgetView,
        known_keys: Container[str] = frozenset(),
    ) -> ListingExtraction:
        """Parse one results page.

        Details whose key is in `known_keys` are dropped before the page is cut
        down to the remaining budget, so already-queued jobs never take a slot.
        """

        result = ListingExtraction(url=task.url, page_number=task.page_number)

        if document.select_one(self.config.no_results_selector) is not None:
            result.no_results = True
            return result

        discovered = self._discover_details(document, task)
        result.details_found = len(discovered)

        fresh = [detail for detail in discovered if detail.unique_key not in known_keys]
        result.details_known = len(discovered) - len(fresh)

        capacity = budget.remaining_capacity
        result.detail_tasks = fresh[:capacity]
        result.details_over_budget = len(fresh) - len(result.detail_tasks)

        count_node = document.select_one(self.config.search_count_selector)
        result.total_on_site = parse_total_results(
            count_node.get_text(" ", strip=True) if count_node is not None else None
        )
        result.next_page_task = self._next_page_task(document, task, budget, result.total_on_site)
        return result

    def _discover_details(self, document: BeautifulSoup, task: CrawlTask) -> list[CrawlTask]:
        tasks: list[CrawlTask] = []
        seen: set[str] = set()

        for anchor in document.select(self.config.detail_anchor_selector):
            item_id = str(anchor.get(self.config.detail_id_attr) or "").strip()
            href = str(anchor.get("href") or "").strip()
            if not item_id or not href or "undefined" in href:
                continue
            if item_id in seen:
                continue
            seen.add(item_id)

            tasks.append(
                CrawlTask(
                    url=resolve(href, task.url),
                    unique_key=item_id,
                    label=PageLabel.DETAIL,
                )
            )
        return tasks

    def _next_page_task(
        self,
        document: BeautifulSoup,
        task: CrawlTask,
        budget: BudgetView,
        total_on_site: int,
    ) -> CrawlTask | None:
        if budget.exhausted or total_on_site <= budget.items_emitted:
            return None

        next_page = task.page_number + 1
        selector = self.config.next_page_selector_template.format(page=next_page)
        href = select_attr(document, selector, "href")
        if href is None:
            return None

        url = resolve(href, task.url)
        return CrawlTask(
            url=url,
            unique_key=listing_unique_key(url, next_page),
            label=PageLabel.LIST,
            page_number=next_page,
        )


__all__ = [
    "ListingExtraction",
    "ListingParser",
    "ListingParserConfig",
    "parse_total_results",
]
