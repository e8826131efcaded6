# tests/test_url.py
import pytest

from jobcrawl.crawler import url as url_utils
from jobcrawl.crawler.url import (
    build_search_url,
    ensure_sort_by_date,
    extract_detail_id,
    is_detail_url,
    origin_for_country,
    resolve,
)


# ----------------------------------------------------------------------
# resolve
# ----------------------------------------------------------------------
def test_resolve_root_relative_uses_base_origin():
    assert resolve("/foo", "https://x.com/y") == "https://x.com/foo"


def test_resolve_keeps_absolute_url():
    assert resolve("https://z.com/a", "https://x.com/y") == "https://z.com/a"


def test_resolve_keeps_path_relative_href_unchanged():
    assert resolve("foo/bar", "https://x.com/y") == "foo/bar"


def test_resolve_keeps_base_port():
    assert resolve("/rc/clk?jk=1", "http://localhost:8080/jobs?q=x") == "http://localhost:8080/rc/clk?jk=1"


# ----------------------------------------------------------------------
# extract_detail_id
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    "share_url, expected",
    [
        ("https://x.com/rc/clk?jk=abc123&xyz", "abc123"),
        ("https://x.com/viewjob?jk=abc123", "abc123"),
        ("https://x.com/viewjob?jk=abc123#apply", "abc123"),
        ("https://x.com/nojk", ""),
        ("https://x.com/viewjob?jk=", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_extract_detail_id(share_url, expected):
    assert extract_detail_id(share_url) == expected


# ----------------------------------------------------------------------
# detail markers / sort parameter
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.indeed.com/viewjob?jk=1", True),
        ("https://www.indeed.com/rc/clk?jk=1&from=serp", True),
        ("https://www.indeed.com/pagead/clk?mo=r", True),
        ("https://www.indeed.com/m/basecamp?jk=1", True),
        ("https://www.indeed.com/jobs?q=python", False),
    ],
)
def test_is_detail_url(url, expected):
    assert is_detail_url(url) is expected


def test_ensure_sort_by_date_appends_parameter():
    assert ensure_sort_by_date("https://www.indeed.com/jobs?q=python") == (
        "https://www.indeed.com/jobs?q=python&sort=date"
    )


def test_ensure_sort_by_date_keeps_url_already_sorted_by_date():
    url = "https://www.indeed.com/jobs?q=python&sort=date&start=10"
    assert ensure_sort_by_date(url) == url


def test_ensure_sort_by_date_replaces_other_sort_order():
    assert ensure_sort_by_date("https://www.indeed.com/jobs?sort=relevance&q=python") == (
        "https://www.indeed.com/jobs?q=python&sort=date"
    )


# ----------------------------------------------------------------------
# origins and search URL
# ----------------------------------------------------------------------
def test_origin_for_known_and_unknown_countries():
    assert origin_for_country("US") == "https://www.indeed.com"
    assert origin_for_country("uk") == "https://uk.indeed.com"
    assert origin_for_country("BR") == "https://br.indeed.com"
    assert origin_for_country(None) == "https://www.indeed.com"


def test_build_search_url_encodes_query():
    url = build_search_url("https://www.indeed.com", position="data engineer", location="New York, NY")
    assert url == "https://www.indeed.com/jobs?q=data+engineer&l=New+York%2C+NY&sort=date"


def test_build_search_url_without_terms_still_sorts_by_date():
    assert build_search_url("https://uk.indeed.com/") == "https://uk.indeed.com/jobs?sort=date"


def test_listing_unique_key_distinguishes_pages():
    assert url_utils.listing_unique_key("u", 2) != url_utils.listing_unique_key("u", 3)
