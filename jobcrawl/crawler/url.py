"""URL resolution, detail-id extraction, and search URL helpers."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .constants import (
    COUNTRY_ORIGINS,
    DEFAULT_SUBDOMAIN,
    DETAIL_ID_MARKER,
    DETAIL_URL_MARKERS,
    ORIGIN_TEMPLATE,
)


def origin_of(url: str) -> str:
    """Return `scheme://host[:port]` for an absolute URL."""

    parsed = urlsplit(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def resolve(href: str, base: str) -> str:
    """Make a root-relative link absolute against `base`.

    Anything that does not start with `/` is returned unchanged; no scheme or
    host validation happens here.
    """

    if href.startswith("/"):
        return origin_of(base) + href
    return href


def extract_detail_id(share_url: str | None) -> str:
    """Return the item id that follows `jk=` in a detail/share URL.

    The id runs until the next `&` or `#`, or the end of the string. An empty
    string means "id unknown" and is not an error.
    """

    if not share_url:
        return ""

    _, marker, tail = share_url.partition(DETAIL_ID_MARKER)
    if not marker:
        return ""

    for stop in ("&", "#"):
        tail = tail.split(stop, maxsplit=1)[0]
    return tail


def is_detail_url(url: str) -> bool:
    """Return True if URL points at a job detail page."""

    lowered = url.lower()
    if any(marker in lowered for marker in DETAIL_URL_MARKERS):
        return True
    query = urlsplit(url).query
    return any(key == "jk" for key, _ in parse_qsl(query, keep_blank_values=True))


def ensure_sort_by_date(url: str) -> str:
    """Force `sort=date`, replacing any other `sort` value already present."""

    parsed = urlsplit(url)
    pairs = parse_qsl(parsed.query, keep_blank_values=True)
    if [value for key, value in pairs if key == "sort"] == ["date"]:
        return url

    pairs = [(key, value) for key, value in pairs if key != "sort"]
    pairs.append(("sort", "date"))
    return urlunsplit(
        (parsed.scheme, parsed.netloc, parsed.path, urlencode(pairs), parsed.fragment)
    )


def origin_for_country(country: str | None) -> str:
    """Map a country code to the site origin.

    Unknown codes fall back to the `{code}.indeed.com` subdomain template and
    a missing code to the default `www` subdomain.
    """

    code = (country or "").strip().upper()
    if not code:
        return ORIGIN_TEMPLATE.format(subdomain=DEFAULT_SUBDOMAIN)
    if code in COUNTRY_ORIGINS:
        return COUNTRY_ORIGINS[code]
    return ORIGIN_TEMPLATE.format(subdomain=code.lower())


def build_search_url(
    origin: str,
    *,
    position: str | None = None,
    location: str | None = None,
) -> str:
    """Build the first search results URL for a position/location query."""

    pairs: list[tuple[str, str]] = []
    if position and position.strip():
        pairs.append(("q", position.strip()))
    if location and location.strip():
        pairs.append(("l", location.strip()))
    pairs.append(("sort", "date"))
    return f"{origin.rstrip('/')}/jobs?{urlencode(pairs)}"


def listing_unique_key(url: str, page_number: int) -> str:
    """Dedup key for a results page; the page index keeps pages distinct."""

    return f"page-{page_number}:{url}"


__all__ = [
    "build_search_url",
    "ensure_sort_by_date",
    "extract_detail_id",
    "is_detail_url",
    "listing_unique_key",
    "origin_for_country",
    "origin_of",
    "resolve",
]
