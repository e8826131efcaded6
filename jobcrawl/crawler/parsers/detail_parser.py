"""Job detail page parser."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup

from ..types import CrawlTask, JobRecord, utc_now_iso
from ..url import extract_detail_id
from .document import select_attr, select_text


# Shown in place of the posting date when the page layout shifted.
ALTERNATIVE_APPLICATION_NOTICE = "If you require alternative methods of application or screening"


@dataclass(slots=True)
class DetailParserConfig:
    """Selectors for the job detail layout."""

    position_selector: str = ".jobsearch-JobInfoHeader-title"
    salary_selector: str = "#salaryInfoAndJobType .attribute_snippet"
    company_selector: str = 'meta[property="og:description"]'
    location_selector: str = ".css-1tlxeot > div"
    rating_selector: str = 'meta[itemprop="ratingValue"]'
    reviews_count_selector: str = 'meta[itemprop="ratingCount"]'
    share_url_selector: str = 'meta[id="indeed-share-url"]'
    posted_at_selector: str = ".jobsearch-JobMetadataFooter > div:not([class])"
    description_selector: str = "div#jobDescriptionText"
    apply_link_selector: str = "#applyButtonLinkContainer a"


@dataclass(slots=True)
class DetailExtraction:
    """Outcome of parsing one DETAIL page."""

    record: JobRecord
    snapshot_reason: str | None = None


def _positive_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number or None


def _positive_int(value: str | None) -> int | None:
    number = _positive_float(value)
    return None if number is None else int(number)


class DetailParser:
    """Extract the fixed JobRecord field set from a detail page.

    Missing elements resolve to None; extraction itself never fails on an
    incomplete page.
    """

    def __init__(self, config: DetailParserConfig | None = None) -> None:
        self.config = config or DetailParserConfig()

    def parse(
        self,
        document: BeautifulSoup,
        task: CrawlTask,
        *,
        scraped_at: str | None = None,
    ) -> DetailExtraction:
        cfg = self.config

        share_url = select_attr(document, cfg.share_url_selector, "content")
        job_id = extract_detail_id(share_url) or extract_detail_id(task.url) or None
        posted_at = select_text(document, cfg.posted_at_selector)

        record = JobRecord(
            url=task.url,
            scraped_at=scraped_at or utc_now_iso(),
            position_name=select_text(document, cfg.position_selector),
            salary=select_text(document, cfg.salary_selector),
            company=select_attr(document, cfg.company_selector, "content"),
            location=select_text(document, cfg.location_selector),
            rating=_positive_float(select_attr(document, cfg.rating_selector, "content")),
            reviews_count=_positive_int(
                select_attr(document, cfg.reviews_count_selector, "content")
            ),
            id=job_id,
            posted_at=posted_at,
            description=select_text(document, cfg.description_selector, separator="\n"),
            external_apply_link=select_attr(document, cfg.apply_link_selector, "href"),
        )

        snapshot_reason = None
        if posted_at and ALTERNATIVE_APPLICATION_NOTICE in posted_at:
            snapshot_reason = "posted_at_contains_application_notice"

        return DetailExtraction(record=record, snapshot_reason=snapshot_reason)


__all__ = [
    "ALTERNATIVE_APPLICATION_NOTICE",
    "DetailExtraction",
    "DetailParser",
    "DetailParserConfig",
]
