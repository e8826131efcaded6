"""Small BeautifulSoup helpers shared by the page parsers."""

from __future__ import annotations

from bs4 import BeautifulSoup


def load_document(html: str | bytes) -> BeautifulSoup:
    """Parse raw HTML into a queryable document."""

    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    return BeautifulSoup(html, "lxml")


def select_text(document: BeautifulSoup, selector: str, *, separator: str = "") -> str | None:
    """Concatenated text of every match, or None when nothing matches."""

    elements = document.select(selector)
    if not elements:
        return None
    text = separator.join(element.get_text(separator, strip=bool(separator)) for element in elements)
    text = text.strip()
    return text or None


def select_attr(document: BeautifulSoup, selector: str, attr: str) -> str | None:
    """Attribute of the first match, or None."""

    element = document.select_one(selector)
    if element is None:
        return None
    value = element.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


__all__ = ["load_document", "select_attr", "select_text"]
