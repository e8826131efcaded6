# tests/test_detail_parser.py
from jobcrawl.crawler import CrawlTask, DetailParser, PageLabel, load_document
from jobcrawl.crawler.parsers.detail_parser import ALTERNATIVE_APPLICATION_NOTICE

from conftest import ORIGIN, detail_html

TASK = CrawlTask(url=f"{ORIGIN}/rc/clk?jk=abc123&from=serp", unique_key="abc123", label=PageLabel.DETAIL)


def _parse(html, task=TASK):
    return DetailParser().parse(load_document(html), task)


# ----------------------------------------------------------------------
# full page
# ----------------------------------------------------------------------
def test_extracts_all_fields(frozen_utc):
    extraction = _parse(detail_html("abc123", title="Backend Engineer"))
    record = extraction.record

    assert record.position_name == "Backend Engineer"
    assert record.salary == "$120,000 a year"
    assert record.company == "Acme Corp"
    assert record.location == "Remote"
    assert record.rating == 4.2
    assert record.reviews_count == 1532
    assert record.id == "abc123"
    assert record.posted_at == "Posted 3 days ago"
    assert record.description == "Build crawlers."
    assert record.external_apply_link == "https://careers.example.com/apply/1"
    assert record.url == TASK.url
    assert record.scraped_at == "2025-01-01T00:00:00+00:00"
    assert extraction.snapshot_reason is None


def test_record_serializes_with_camel_case_keys():
    payload = _parse(detail_html("abc123")).record.to_json()

    assert payload["positionName"] == "Engineer abc123"
    assert payload["reviewsCount"] == 1532
    assert payload["externalApplyLink"] == "https://careers.example.com/apply/1"
    assert "scrapedAt" in payload


# ----------------------------------------------------------------------
# missing elements
# ----------------------------------------------------------------------
def test_missing_elements_become_none():
    record = _parse("<html><body><p>layout changed</p></body></html>").record

    assert record.position_name is None
    assert record.salary is None
    assert record.company is None
    assert record.rating is None
    assert record.reviews_count is None
    assert record.posted_at is None
    assert record.description is None
    assert record.external_apply_link is None
    # Falls back to the id carried by the task URL.
    assert record.id == "abc123"


def test_zero_rating_and_reviews_are_treated_as_missing():
    record = _parse(detail_html("abc123", rating="0", reviews="0")).record

    assert record.rating is None
    assert record.reviews_count is None


def test_unknown_id_is_none():
    task = CrawlTask(url=f"{ORIGIN}/viewjob", unique_key="k", label=PageLabel.DETAIL)
    record = _parse(detail_html("zzz", share_id=False), task=task).record

    assert record.id is None


# ----------------------------------------------------------------------
# debug snapshot signal
# ----------------------------------------------------------------------
def test_application_notice_in_posted_at_requests_snapshot():
    html = detail_html("abc123", posted_at=f"{ALTERNATIVE_APPLICATION_NOTICE}, contact us.")
    extraction = _parse(html)

    assert extraction.snapshot_reason is not None
