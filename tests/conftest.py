# tests/conftest.py
from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit

import pytest
from freezegun import freeze_time

from jobcrawl.crawler import CrawlConfig, FetchBackend, FetchResult

ORIGIN = "https://www.indeed.com"
SEARCH_URL = f"{ORIGIN}/jobs?q=python&l=Remote&sort=date"
PER_PAGE_STEP = 10


# ---------------------------------------------------------------------
# HTML builders
# ---------------------------------------------------------------------
def listing_html(
    job_ids: list[str],
    *,
    page: int = 1,
    total: str | None = "1,000",
    next_href: str | None = None,
    no_results: bool = False,
) -> str:
    if no_results:
        return '<html><body><div class="no_results">No jobs found</div></body></html>'

    cards = "\n".join(
        f'<div class="tapItem"><h2><a data-jk="{job_id}" '
        f'href="/rc/clk?jk={job_id}&amp;from=serp">Job {job_id}</a></h2></div>'
        for job_id in job_ids
    )
    count = f'<div id="searchCountPages">Page {page} of {total} jobs</div>' if total else ""
    nav = f'<nav><a aria-label="{page + 1}" href="{next_href}">{page + 1}</a></nav>' if next_href else ""
    return f"<html><body>{count}<div id='results'>{cards}</div>{nav}</body></html>"


def detail_html(
    job_id: str,
    *,
    title: str | None = None,
    company: str = "Acme Corp",
    salary: str | None = "$120,000 a year",
    location: str = "Remote",
    rating: str = "4.2",
    reviews: str = "1,532",
    posted_at: str = "Posted 3 days ago",
    description: str = "Build crawlers.",
    apply_href: str | None = "https://careers.example.com/apply/1",
    share_id: bool = True,
) -> str:
    parts = [
        "<html><head>",
        f'<meta property="og:description" content="{company}">',
        f'<meta itemprop="ratingValue" content="{rating}">',
        f'<meta itemprop="ratingCount" content="{reviews.replace(",", "")}">',
    ]
    if share_id:
        parts.append(
            f'<meta id="indeed-share-url" content="{ORIGIN}/viewjob?jk={job_id}&amp;from=share">'
        )
    parts.append("</head><body>")
    parts.append(f'<h1 class="jobsearch-JobInfoHeader-title">{title or "Engineer " + job_id}</h1>')
    parts.append(f'<div class="css-1tlxeot"><div>{location}</div></div>')
    if salary:
        parts.append(
            f'<div id="salaryInfoAndJobType"><span class="attribute_snippet">{salary}</span></div>'
        )
    parts.append(f'<div id="jobDescriptionText"><p>{description}</p></div>')
    if apply_href:
        parts.append(f'<div id="applyButtonLinkContainer"><a href="{apply_href}">Apply</a></div>')
    parts.append(
        '<div class="jobsearch-JobMetadataFooter">'
        f'<div class="icl-u-textColor--secondary">Company</div><div>{posted_at}</div></div>'
    )
    parts.append("</body></html>")
    return "".join(parts)


# ---------------------------------------------------------------------
# In-memory site + fetcher
# ---------------------------------------------------------------------
def _page_from_url(url: str) -> int:
    query = parse_qs(urlsplit(url).query)
    start = int(query.get("start", ["0"])[0])
    return start // PER_PAGE_STEP + 1


def _page_url(page: int) -> str:
    if page == 1:
        return SEARCH_URL
    return f"/jobs?q=python&l=Remote&sort=date&start={(page - 1) * PER_PAGE_STEP}"


@dataclass
class FakeSite:
    """Search results served from a page -> job ids table, or generated endlessly."""

    pages: dict[int, list[str]] = field(default_factory=dict)
    total: str | None = "1,000"
    endless: bool = False
    per_page: int = 15
    no_results: bool = False

    def ids_for(self, page: int) -> list[str]:
        if self.endless:
            return [f"p{page}-{idx}" for idx in range(self.per_page)]
        return list(self.pages.get(page, []))

    def has_next(self, page: int) -> bool:
        return self.endless or (page + 1) in self.pages

    def render(self, url: str) -> str:
        split = urlsplit(url)
        if split.path.startswith("/rc/clk") or split.path.startswith("/viewjob"):
            job_id = parse_qs(split.query)["jk"][0]
            return detail_html(job_id)

        page = _page_from_url(url)
        return listing_html(
            self.ids_for(page),
            page=page,
            total=self.total,
            next_href=_page_url(page + 1) if self.has_next(page) else None,
            no_results=self.no_results,
        )


class FakeFetcher:
    """Thread-safe stand-in for `Fetcher` serving a `FakeSite`."""

    def __init__(
        self,
        site: FakeSite,
        *,
        status_for=None,
        transport_failures: dict[str, int] | None = None,
    ) -> None:
        self.site = site
        self.status_for = status_for or (lambda url: 200)
        self._transport_failures = dict(transport_failures or {})

        self._lock = threading.Lock()
        self.calls: list[str] = []
        self.calls_by_url: Counter[str] = Counter()
        self.retired: list[str] = []
        self.closed = False
        self._session_seq = 0

    def fetch(self, url: str) -> FetchResult:
        with self._lock:
            self.calls.append(url)
            self.calls_by_url[url] += 1
            session_id = f"s{self._session_seq}"
            remaining = self._transport_failures.get(url, 0)
            if remaining > 0:
                self._transport_failures[url] = remaining - 1

        if remaining > 0:
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                backend=FetchBackend.REQUESTS,
                session_id=session_id,
                attempts=3,
                error="ConnectionError: connection reset",
            )

        status = self.status_for(url)
        return FetchResult(
            requested_url=url,
            final_url=url,
            status_code=status,
            content_type="text/html; charset=utf-8",
            body=self.site.render(url).encode("utf-8"),
            backend=FetchBackend.REQUESTS,
            session_id=session_id,
            elapsed_ms=1,
        )

    def retire_session(self, session_id: str | None) -> None:
        with self._lock:
            self.retired.append(session_id or "")
            self._session_seq += 1

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------
@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "crawl"


@pytest.fixture
def make_config():
    def _make(**overrides) -> CrawlConfig:
        payload = {
            "position": "python",
            "location": "Remote",
            "max_concurrency": 3,
            "retries": 0,
            "retry_backoff_seconds": 0.0,
        }
        payload.update(overrides)
        return CrawlConfig.from_dict(payload)

    return _make
