"""Crawler package: config, shared types, and crawl components."""

from .config import CrawlConfig, StartUrl, clamp_max_items, load_config, save_config
from .controller import CrawlController
from .errors import (
    BlockedError,
    ConfigurationError,
    CrawlError,
    EnrichmentHookError,
    ExhaustedRetriesError,
    UnknownPageTypeError,
)
from .fetcher import Fetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .hooks import EnrichmentHook, load_enrichment_hook, run_enrichment_hook
from .parsers import (
    DetailExtraction,
    DetailParser,
    DetailParserConfig,
    ListingExtraction,
    ListingParser,
    ListingParserConfig,
    load_document,
)
from .session import CrawlSession, CrawlState
from .stats import StatsCollector
from .storage import Storage
from .types import (
    BudgetView,
    CrawlStage,
    CrawlStats,
    CrawlTask,
    ErrorRecord,
    FetchBackend,
    FetchResult,
    JobRecord,
    PageLabel,
    TaskOutcome,
    utc_now_iso,
)
from .url import build_search_url, ensure_sort_by_date, extract_detail_id, is_detail_url, resolve

__all__ = [
    "BlockedError",
    "BudgetView",
    "ConfigurationError",
    "CrawlConfig",
    "CrawlController",
    "CrawlError",
    "CrawlSession",
    "CrawlStage",
    "CrawlState",
    "CrawlStats",
    "CrawlTask",
    "DetailExtraction",
    "DetailParser",
    "DetailParserConfig",
    "EnqueueResult",
    "EnqueueStatus",
    "EnrichmentHook",
    "EnrichmentHookError",
    "ErrorRecord",
    "ExhaustedRetriesError",
    "FetchBackend",
    "FetchResult",
    "Fetcher",
    "Frontier",
    "JobRecord",
    "ListingExtraction",
    "ListingParser",
    "ListingParserConfig",
    "PageLabel",
    "StartUrl",
    "StatsCollector",
    "Storage",
    "TaskOutcome",
    "UnknownPageTypeError",
    "build_search_url",
    "clamp_max_items",
    "ensure_sort_by_date",
    "extract_detail_id",
    "is_detail_url",
    "load_config",
    "load_document",
    "resolve",
    "run_enrichment_hook",
    "save_config",
    "utc_now_iso",
]
