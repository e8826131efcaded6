"""Page fetching with requests/selenium backends, session rotation and retries."""

from __future__ import annotations

import itertools
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit

import requests
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.by import By
from selenium.webdriver.firefox.options import Options as FirefoxOptions
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from .config import CrawlConfig
from .types import FetchBackend, FetchResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _AttemptConfig:
    attempts: int
    backoff_seconds: float


@dataclass(slots=True)
class _HttpSession:
    session_id: str
    session: requests.Session
    proxy_url: str | None = None


class Fetcher:
    """Fetch URLs using either `requests` or `selenium` backends.

    Every fetch is made under a session identity (cookies plus proxy). A
    blocked response retires that identity; the next fetch on any thread that
    held it opens a fresh one.

    Retries here cover transport failures only. Any response that arrives is
    returned as-is so the controller can classify it.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

        self._thread_local = threading.local()

        self._session_lock = threading.Lock()
        self._retired_sessions: set[str] = set()
        self._proxy_cycle = itertools.cycle(config.proxy_urls) if config.proxy_urls else None

        self._rate_lock = threading.Lock()
        self._next_allowed_time_by_host: dict[str, float] = {}

        self._selenium_lock = threading.Lock()
        self._selenium_driver = None
        self._selenium_session_id: str | None = None

        self._closed = False
        self._closed_lock = threading.Lock()

    def fetch(self, url: str) -> FetchResult:
        """Fetch one URL with the configured backend, retries and rate limit."""

        if self._is_closed():
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                error="Fetcher is closed",
            )

        attempt_cfg = _AttemptConfig(
            attempts=max(1, self.config.retries + 1),
            backoff_seconds=max(0.0, self.config.retry_backoff_seconds),
        )

        if self.config.backend == FetchBackend.SELENIUM:
            return self._fetch_with_retries(
                url=url,
                backend=FetchBackend.SELENIUM,
                fetch_once=self._fetch_once_selenium,
                attempt_cfg=attempt_cfg,
            )

        return self._fetch_with_retries(
            url=url,
            backend=FetchBackend.REQUESTS,
            fetch_once=self._fetch_once_requests,
            attempt_cfg=attempt_cfg,
        )

    def retire_session(self, session_id: str | None) -> None:
        """Stop using the session identity that received a block response."""

        if not session_id:
            return

        with self._session_lock:
            if session_id in self._retired_sessions:
                return
            self._retired_sessions.add(session_id)
        logger.info("Retired session %s", session_id)

        with self._selenium_lock:
            if self._selenium_session_id == session_id:
                self._quit_selenium_driver()

    def close(self) -> None:
        """Close fetcher resources (notably selenium browser)."""

        with self._closed_lock:
            self._closed = True

        with self._selenium_lock:
            self._quit_selenium_driver()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _is_closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    def _fetch_with_retries(
        self,
        *,
        url: str,
        backend: FetchBackend,
        fetch_once: Callable[[str], FetchResult],
        attempt_cfg: _AttemptConfig,
    ) -> FetchResult:
        last_result: FetchResult | None = None

        for attempt in range(1, attempt_cfg.attempts + 1):
            if self._is_closed():
                return FetchResult(
                    requested_url=url,
                    final_url=None,
                    status_code=None,
                    content_type=None,
                    body=None,
                    backend=backend,
                    attempts=attempt - 1,
                    error="Fetcher is closed",
                )

            result = fetch_once(url)
            result.attempts = attempt
            last_result = result

            if result.ok:
                return result

            logger.debug("Attempt %d/%d failed for %s: %s", attempt, attempt_cfg.attempts, url, result.error)
            if attempt < attempt_cfg.attempts and attempt_cfg.backoff_seconds > 0:
                time.sleep(attempt_cfg.backoff_seconds * attempt)

        if last_result is None:
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                backend=backend,
                error="Unknown fetch failure",
            )

        return last_result

    def _fetch_once_requests(self, url: str) -> FetchResult:
        self._wait_for_rate_limit(url)
        started = time.perf_counter()

        http = self._thread_local_session()
        proxies = None
        if http.proxy_url:
            proxies = {"http": http.proxy_url, "https": http.proxy_url}

        try:
            response = http.session.get(
                url,
                headers=self.config.headers(),
                timeout=self.config.timeout_seconds,
                proxies=proxies,
                allow_redirects=True,
            )
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            body = response.content if response.content is not None else b""
            return FetchResult(
                requested_url=url,
                final_url=response.url or url,
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type"),
                body=body,
                backend=FetchBackend.REQUESTS,
                session_id=http.session_id,
                elapsed_ms=elapsed_ms,
                error=None,
            )
        except requests.RequestException as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                backend=FetchBackend.REQUESTS,
                session_id=http.session_id,
                elapsed_ms=elapsed_ms,
                error=f"{exc.__class__.__name__}: {exc}",
            )

    def _fetch_once_selenium(self, url: str) -> FetchResult:
        self._wait_for_rate_limit(url)
        started = time.perf_counter()

        with self._selenium_lock:
            try:
                driver = self._get_or_create_selenium_driver()
            except Exception as exc:
                return FetchResult(
                    requested_url=url,
                    final_url=None,
                    status_code=None,
                    content_type=None,
                    body=None,
                    backend=FetchBackend.SELENIUM,
                    elapsed_ms=int((time.perf_counter() - started) * 1000),
                    error=f"Failed to initialize selenium driver: {exc}",
                )

            try:
                driver.set_page_load_timeout(max(1, int(self.config.timeout_seconds)))
                driver.get(url)

                if self.config.selenium_wait_selector:
                    WebDriverWait(driver, self.config.timeout_seconds).until(
                        EC.presence_of_element_located(
                            (By.CSS_SELECTOR, self.config.selenium_wait_selector)
                        )
                    )

                final_url = driver.current_url or url
                body = (driver.page_source or "").encode("utf-8", errors="replace")
                elapsed_ms = int((time.perf_counter() - started) * 1000)

                # WebDriver exposes no response status; a rendered page counts as 200.
                return FetchResult(
                    requested_url=url,
                    final_url=final_url,
                    status_code=200,
                    content_type="text/html; charset=utf-8",
                    body=body,
                    backend=FetchBackend.SELENIUM,
                    session_id=self._selenium_session_id,
                    elapsed_ms=elapsed_ms,
                    error=None,
                )
            except (TimeoutException, WebDriverException) as exc:
                elapsed_ms = int((time.perf_counter() - started) * 1000)
                return FetchResult(
                    requested_url=url,
                    final_url=None,
                    status_code=None,
                    content_type=None,
                    body=None,
                    backend=FetchBackend.SELENIUM,
                    session_id=self._selenium_session_id,
                    elapsed_ms=elapsed_ms,
                    error=f"{exc.__class__.__name__}: {exc}",
                )

    def _thread_local_session(self) -> _HttpSession:
        http: _HttpSession | None = getattr(self._thread_local, "http", None)
        if http is not None:
            with self._session_lock:
                retired = http.session_id in self._retired_sessions
            if not retired:
                return http
            http.session.close()

        http = _HttpSession(
            session_id=uuid.uuid4().hex[:12],
            session=requests.Session(),
            proxy_url=self._next_proxy(),
        )
        self._thread_local.http = http
        return http

    def _next_proxy(self) -> str | None:
        if self._proxy_cycle is None:
            return None
        with self._session_lock:
            return next(self._proxy_cycle)

    def _wait_for_rate_limit(self, url: str) -> None:
        wait_seconds = max(0.0, self.config.rate_limit_seconds)
        if wait_seconds <= 0:
            return

        host = urlsplit(url).netloc.lower()

        while True:
            with self._rate_lock:
                now = time.monotonic()
                next_allowed = self._next_allowed_time_by_host.get(host, 0.0)
                if now >= next_allowed:
                    self._next_allowed_time_by_host[host] = now + wait_seconds
                    return
                sleep_for = next_allowed - now

            if sleep_for > 0:
                time.sleep(sleep_for)

    def _quit_selenium_driver(self) -> None:
        if self._selenium_driver is None:
            return
        try:
            self._selenium_driver.quit()
        except WebDriverException as exc:
            logger.warning("Failed to quit selenium driver cleanly: %s", exc)
        finally:
            self._selenium_driver = None
            self._selenium_session_id = None

    def _get_or_create_selenium_driver(self):
        if self._selenium_driver is not None:
            return self._selenium_driver

        errors: list[str] = []
        proxy_url = self._next_proxy()

        try:
            chrome_options = ChromeOptions()
            chrome_options.add_argument("--headless=new")
            chrome_options.add_argument("--disable-gpu")
            chrome_options.add_argument("--no-sandbox")
            chrome_options.add_argument("--disable-dev-shm-usage")
            chrome_options.add_argument(f"--user-agent={self.config.user_agent}")
            if proxy_url:
                chrome_options.add_argument(f"--proxy-server={proxy_url}")
            self._selenium_driver = webdriver.Chrome(options=chrome_options)
        except WebDriverException as exc:
            errors.append(f"Chrome: {exc}")

        if self._selenium_driver is None:
            try:
                firefox_options = FirefoxOptions()
                firefox_options.add_argument("-headless")
                firefox_options.set_preference("general.useragent.override", self.config.user_agent)
                self._selenium_driver = webdriver.Firefox(options=firefox_options)
            except WebDriverException as exc:
                errors.append(f"Firefox: {exc}")

        if self._selenium_driver is None:
            raise RuntimeError("; ".join(errors) or "No usable Selenium driver found")

        self._selenium_session_id = uuid.uuid4().hex[:12]
        return self._selenium_driver


__all__ = ["Fetcher"]
