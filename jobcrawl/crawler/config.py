"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_FETCH_BACKEND,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_LISTING_RETRIES,
    DEFAULT_MAX_BLOCK_RETRIES,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RATE_LIMIT_SECONDS,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    MAX_ITEMS_CEILING,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .errors import ConfigurationError
from .types import CrawlTask, FetchBackend, JSONDict, JSONValue, PageLabel
from .url import (
    build_search_url,
    ensure_sort_by_date,
    extract_detail_id,
    is_detail_url,
    origin_for_country,
)


# Input names used by the hosted actor this crawler grew out of.
CAMEL_CASE_ALIASES = {
    "startUrls": "start_urls",
    "maxItems": "max_items",
    "maxConcurrency": "max_concurrency",
    "extendOutputFunction": "extend_output_function",
    "proxyUrls": "proxy_urls",
    "timeoutSeconds": "timeout_seconds",
    "retryBackoffSeconds": "retry_backoff_seconds",
    "rateLimitSeconds": "rate_limit_seconds",
    "listingRetries": "listing_retries",
    "maxBlockRetries": "max_block_retries",
    "userAgent": "user_agent",
    "defaultHeaders": "default_headers",
    "seleniumWaitSelector": "selenium_wait_selector",
}


def _as_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid int for '{key}': {value!r}") from exc


def _int_or_default(data: Mapping[str, Any], key: str, default: int) -> int:
    value = _as_int(data.get(key), key)
    return default if value is None else value


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid float for '{key}': {value!r}") from exc


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_backend(value: Any) -> FetchBackend:
    if isinstance(value, FetchBackend):
        return value
    try:
        return FetchBackend(str(value).strip().lower())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid backend value: {value!r}") from exc


def clamp_max_items(value: int | None) -> int:
    """Clamp the requested item budget to the hard ceiling."""

    if value is None:
        return MAX_ITEMS_CEILING
    if value <= 0:
        raise ConfigurationError("max_items must be > 0 when set")
    return min(value, MAX_ITEMS_CEILING)


@dataclass(frozen=True, slots=True)
class StartUrl:
    """One user-provided entry point."""

    url: str
    user_data: dict[str, JSONValue] = field(default_factory=dict)

    def to_json(self) -> JSONDict:
        return {"url": self.url, "userData": self.user_data}


def _coerce_start_url(value: Any, index: int) -> StartUrl:
    if isinstance(value, StartUrl):
        return value

    if isinstance(value, str):
        url = value.strip()
        user_data: dict[str, JSONValue] = {}
    elif isinstance(value, Mapping):
        url = str(value.get("url") or "").strip()
        user_data = dict(value.get("userData") or value.get("user_data") or {})
    else:
        raise ConfigurationError(f"Unsupported start URL entry #{index}: {value!r}")

    if not url:
        raise ConfigurationError(f"Start URL entry #{index} is missing required field 'url'")
    return StartUrl(url=url, user_data=user_data)


@dataclass(slots=True)
class CrawlConfig:
    """Run configuration consumed by the controller, fetcher and storage."""

    country: str | None = None
    position: str | None = None
    location: str | None = None
    start_urls: list[StartUrl] = field(default_factory=list)

    max_items: int | None = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    extend_output_function: str | None = None

    backend: FetchBackend = DEFAULT_FETCH_BACKEND
    proxy_urls: list[str] = field(default_factory=list)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    rate_limit_seconds: float = DEFAULT_RATE_LIMIT_SECONDS
    listing_retries: int = DEFAULT_LISTING_RETRIES
    max_block_retries: int = DEFAULT_MAX_BLOCK_RETRIES

    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))
    selenium_wait_selector: str | None = None

    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.start_urls = [
            _coerce_start_url(entry, index) for index, entry in enumerate(self.start_urls)
        ]
        self.max_items = clamp_max_items(self.max_items)
        self.backend = _to_backend(self.backend)
        self.proxy_urls = [url.strip() for url in self.proxy_urls if url and url.strip()]

        if self.max_concurrency <= 0:
            raise ConfigurationError("max_concurrency must be > 0")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be > 0")
        if self.retries < 0:
            raise ConfigurationError("retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ConfigurationError("retry_backoff_seconds must be >= 0")
        if self.rate_limit_seconds < 0:
            raise ConfigurationError("rate_limit_seconds must be >= 0")
        if self.listing_retries < 0:
            raise ConfigurationError("listing_retries must be >= 0")
        if self.max_block_retries < 0:
            raise ConfigurationError("max_block_retries must be >= 0")

    @property
    def item_budget(self) -> int:
        return self.max_items if self.max_items is not None else MAX_ITEMS_CEILING

    @property
    def origin(self) -> str:
        return origin_for_country(self.country)

    def start_tasks(self) -> list[CrawlTask]:
        """Build the initial frontier tasks.

        Explicit start URLs bypass the generated search URL entirely.
        """

        if not self.start_urls:
            url = build_search_url(self.origin, position=self.position, location=self.location)
            return [CrawlTask(url=url, unique_key=url, label=PageLabel.START)]

        tasks: list[CrawlTask] = []
        for entry in self.start_urls:
            url = ensure_sort_by_date(entry.url)
            user_data = dict(entry.user_data)
            if "label" in user_data:
                label = str(user_data.pop("label"))
            elif is_detail_url(url):
                label = PageLabel.DETAIL.value
            else:
                label = PageLabel.START.value

            unique_key = url
            if label == PageLabel.DETAIL.value:
                unique_key = extract_detail_id(url) or url

            tasks.append(
                CrawlTask(url=url, unique_key=unique_key, label=label, user_data=user_data)
            )
        return tasks

    def scope(self) -> JSONDict:
        """The fields that decide which pages a crawl visits."""

        return {
            "origin": self.origin,
            "position": (self.position or "").strip(),
            "location": (self.location or "").strip(),
            "start_urls": [entry.to_json() for entry in self.start_urls],
        }

    def headers(self) -> dict[str, str]:
        merged = dict(self.default_headers)
        merged.setdefault("User-Agent", self.user_agent)
        return merged

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "country": self.country,
            "position": self.position,
            "location": self.location,
            "start_urls": [entry.to_json() for entry in self.start_urls],
            "max_items": self.max_items,
            "max_concurrency": self.max_concurrency,
            "extend_output_function": self.extend_output_function,
            "backend": self.backend.value,
            "proxy_urls": self.proxy_urls,
            "timeout_seconds": self.timeout_seconds,
            "retries": self.retries,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "rate_limit_seconds": self.rate_limit_seconds,
            "listing_retries": self.listing_retries,
            "max_block_retries": self.max_block_retries,
            "user_agent": self.user_agent,
            "default_headers": self.default_headers,
            "selenium_wait_selector": self.selenium_wait_selector,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary (snake_case or camelCase keys)."""

        data = {CAMEL_CASE_ALIASES.get(str(key), str(key)): value for key, value in payload.items()}

        start_urls = data.get("start_urls") or []
        if not isinstance(start_urls, (list, tuple)):
            raise ConfigurationError("'start_urls' must be a list")

        return cls(
            country=_as_optional_str(data.get("country")),
            position=_as_optional_str(data.get("position")),
            location=_as_optional_str(data.get("location")),
            start_urls=list(start_urls),
            max_items=_as_int(data.get("max_items"), "max_items"),
            max_concurrency=_int_or_default(data, "max_concurrency", DEFAULT_MAX_CONCURRENCY),
            extend_output_function=_as_optional_str(data.get("extend_output_function")),
            backend=_to_backend(data.get("backend", DEFAULT_FETCH_BACKEND)),
            proxy_urls=[str(url) for url in list(data.get("proxy_urls") or [])],
            timeout_seconds=_as_float(
                data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS), "timeout_seconds"
            ),
            retries=_int_or_default(data, "retries", DEFAULT_RETRIES),
            retry_backoff_seconds=_as_float(
                data.get("retry_backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS),
                "retry_backoff_seconds",
            ),
            rate_limit_seconds=_as_float(
                data.get("rate_limit_seconds", DEFAULT_RATE_LIMIT_SECONDS),
                "rate_limit_seconds",
            ),
            listing_retries=_int_or_default(data, "listing_retries", DEFAULT_LISTING_RETRIES),
            max_block_retries=_int_or_default(
                data, "max_block_retries", DEFAULT_MAX_BLOCK_RETRIES
            ),
            user_agent=str(data.get("user_agent") or DEFAULT_USER_AGENT),
            default_headers={
                str(k): str(v)
                for k, v in dict(data.get("default_headers") or DEFAULT_HTTP_HEADERS).items()
            },
            selenium_wait_selector=_as_optional_str(data.get("selenium_wait_selector")),
            metadata=dict(data.get("metadata") or {}),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML config at {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Config file not found: {config_path}")
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigurationError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        try:
            payload = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON config at {config_path}: {exc}") from exc
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ConfigurationError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ConfigurationError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CAMEL_CASE_ALIASES",
    "CrawlConfig",
    "StartUrl",
    "clamp_max_items",
    "load_config",
    "save_config",
]
