"""Default values and site constants shared by crawler modules."""

from __future__ import annotations

from .types import FetchBackend


DEFAULT_MAX_CONCURRENCY = 5
MAX_ITEMS_CEILING = 990

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_RATE_LIMIT_SECONDS = 0.0
DEFAULT_LISTING_RETRIES = 4
DEFAULT_MAX_BLOCK_RETRIES = 10

DEFAULT_FETCH_BACKEND = FetchBackend.REQUESTS
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# 407 stays here because the target sometimes reports it for healthy pages.
ALLOWED_STATUS_CODES = frozenset({200, 404, 407})

DEFAULT_SUBDOMAIN = "www"
ORIGIN_TEMPLATE = "https://{subdomain}.indeed.com"
COUNTRY_ORIGINS = {
    "US": "https://www.indeed.com",
    "UK": "https://uk.indeed.com",
    "GB": "https://uk.indeed.com",
    "CA": "https://ca.indeed.com",
    "AU": "https://au.indeed.com",
    "IE": "https://ie.indeed.com",
    "IN": "https://in.indeed.com",
    "DE": "https://de.indeed.com",
    "FR": "https://fr.indeed.com",
    "NL": "https://nl.indeed.com",
    "ES": "https://es.indeed.com",
    "IT": "https://it.indeed.com",
    "SG": "https://sg.indeed.com",
    "NZ": "https://nz.indeed.com",
}

DETAIL_URL_MARKERS = ("/viewjob", "/rc/clk", "/pagead/clk")
DETAIL_ID_MARKER = "jk="

SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
JSON_INDENT = 2


__all__ = [
    "ALLOWED_STATUS_CODES",
    "COUNTRY_ORIGINS",
    "DEFAULT_FETCH_BACKEND",
    "DEFAULT_HTTP_HEADERS",
    "DEFAULT_LISTING_RETRIES",
    "DEFAULT_MAX_BLOCK_RETRIES",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_RATE_LIMIT_SECONDS",
    "DEFAULT_RETRIES",
    "DEFAULT_RETRY_BACKOFF_SECONDS",
    "DEFAULT_SUBDOMAIN",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "DETAIL_ID_MARKER",
    "DETAIL_URL_MARKERS",
    "JSON_INDENT",
    "MAX_ITEMS_CEILING",
    "ORIGIN_TEMPLATE",
    "SUPPORTED_CONFIG_SUFFIXES",
]
