"""Exception taxonomy for crawl orchestration.

Only `ConfigurationError` is meant to abort a run. Every other error is
contained to the task that raised it and recorded in `errors.jsonl`.
"""

from __future__ import annotations


class CrawlError(Exception):
    """Base class for crawler errors."""


class ConfigurationError(CrawlError, ValueError):
    """Invalid run configuration, raised before any frontier work begins."""


class BlockedError(CrawlError):
    """Response status outside the allow-list, treated as a block signal."""

    def __init__(self, url: str, status_code: int | None) -> None:
        super().__init__(f"Blocked by the target on {url} (HTTP {status_code})")
        self.url = url
        self.status_code = status_code


class UnknownPageTypeError(CrawlError):
    """Task carries a label the dispatcher does not recognize."""

    def __init__(self, label: object) -> None:
        super().__init__(f"Unknown label: {label!r}")
        self.label = label


class EnrichmentHookError(CrawlError):
    """User-supplied enrichment hook failed or returned a non-mapping."""


class ExhaustedRetriesError(CrawlError):
    """Task abandoned after its retry ceiling was reached."""

    def __init__(self, url: str, *, attempts: int, reason: str) -> None:
        super().__init__(f"Giving up on {url} after {attempts} attempt(s): {reason}")
        self.url = url
        self.attempts = attempts
        self.reason = reason


__all__ = [
    "BlockedError",
    "ConfigurationError",
    "CrawlError",
    "EnrichmentHookError",
    "ExhaustedRetriesError",
    "UnknownPageTypeError",
]
