"""Crawl orchestration: worker loop, status gate, dispatch and item budget."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Iterable

from bs4 import BeautifulSoup
from tqdm import tqdm

from .config import CrawlConfig
from .constants import ALLOWED_STATUS_CODES
from .errors import (
    BlockedError,
    ConfigurationError,
    EnrichmentHookError,
    ExhaustedRetriesError,
    UnknownPageTypeError,
)
from .fetcher import Fetcher
from .frontier import EnqueueResult, Frontier
from .hooks import EnrichmentHook, load_enrichment_hook, run_enrichment_hook
from .parsers import DetailParser, ListingParser, load_document
from .session import CrawlSession, CrawlState
from .stats import StatsCollector
from .storage import Storage
from .types import (
    CrawlStage,
    CrawlTask,
    ErrorRecord,
    FetchResult,
    PageLabel,
    TaskOutcome,
)


logger = logging.getLogger(__name__)


class CrawlController:
    """Runs one crawl: frontier, fetcher, parsers, storage and stats.

    Task lifecycle, per worker:
    - DRAINING: popped tasks are discarded unfetched and left unhandled on disk.
    - Transport failure: listing pages are re-queued up to `listing_retries`;
      anything else is abandoned.
    - Status outside the allow-list: the fetch session is retired and the task
      re-queued without consuming `retry_count`, up to `max_block_retries`.
    - Allowed status: dispatch on the task label.

    The enrichment hook is resolved in `__init__`, so a bad import path fails
    with `ConfigurationError` before any page is fetched. The same goes for
    resuming an output directory whose previous run searched something else.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        output_dir: str | Path,
        storage: Storage | None = None,
        fetcher: Fetcher | None = None,
        listing_parser: ListingParser | None = None,
        detail_parser: DetailParser | None = None,
        stats: StatsCollector | None = None,
        enrichment_hook: EnrichmentHook | str | None = None,
        resume: bool = True,
        progress: bool = False,
    ) -> None:
        self.config = config

        self.enrichment_hook = load_enrichment_hook(
            enrichment_hook if enrichment_hook is not None else config.extend_output_function
        )

        self.storage = storage or Storage(output_dir, load_existing=resume)
        if resume:
            self._check_resume_scope()
        self.fetcher = fetcher or Fetcher(config)
        self.listing_parser = listing_parser or ListingParser()
        self.detail_parser = detail_parser or DetailParser()
        self.stats = stats or StatsCollector()

        self.resume = resume
        self.progress = progress
        self._owns_fetcher = fetcher is None

        self.session: CrawlSession | None = None
        self._progress_bar: tqdm | None = None
        self._progress_lock = threading.Lock()

    def _check_resume_scope(self) -> None:
        stored = self.storage.load_crawl_config()
        if stored is None:
            return

        previous = CrawlConfig.from_dict(stored).scope()
        current = self.config.scope()
        changed = sorted(key for key in current if current[key] != previous.get(key))
        if changed:
            raise ConfigurationError(
                f"Output directory {self.storage.output_dir} holds a crawl with different "
                f"{', '.join(changed)}; start it with --fresh or use another output directory"
            )

    def run(self) -> dict[str, Any]:
        """Run the crawl until the frontier drains or the budget is reached."""

        self.storage.save_crawl_config(self.config)

        session = CrawlSession(
            self.config.item_budget,
            items_emitted=self.storage.records_count(),
        )
        self.session = session

        self._progress_bar = tqdm(
            total=session.item_budget,
            initial=min(session.items_emitted, session.item_budget),
            desc="Crawling",
            unit="record",
            disable=not self.progress,
        )

        try:
            frontier = self._build_frontier(session)
            self._run_workers(frontier, session)
        finally:
            self._progress_bar.close()
            if self._owns_fetcher:
                self.fetcher.close()

        session.finish()
        self.stats.finish()
        summary = self.stats.to_json()
        self.storage.save_crawl_stats(summary)

        logger.info(
            "Crawl finished: records=%d budget=%d blocked=%d",
            session.items_emitted,
            session.item_budget,
            summary.get("blocked", 0),
        )

        return {
            "state": session.state.value,
            "paths": self.storage.paths,
            "stats": summary,
            "session": session.snapshot(),
        }

    def _build_frontier(self, session: CrawlSession) -> Frontier:
        frontier = Frontier(self.storage)

        restored = frontier.restore() if self.resume else []
        if restored:
            logger.info("Resuming crawl with %d pending task(s)", len(restored))
            session.details_enqueued(sum(1 for task in restored if task.is_detail))
            self.stats.increment("tasks_restored", len(restored))
        elif not frontier.seen_keys():
            start_tasks = self.config.start_tasks()
            logger.info("Seeding frontier with %d start task(s)", len(start_tasks))
            self._enqueue(frontier, session, start_tasks)

        if session.budget_exhausted():
            logger.info(
                "Item budget already reached (%d/%d); nothing to crawl",
                session.items_emitted,
                session.item_budget,
            )
            self._begin_draining(frontier, session)

        return frontier

    def _run_workers(self, frontier: Frontier, session: CrawlSession) -> None:
        workers = [
            threading.Thread(
                target=self._frontier_worker,
                args=(frontier, session),
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(self.config.max_concurrency)
        ]

        for worker in workers:
            worker.start()

        frontier.join()
        frontier.close()

        for worker in workers:
            worker.join(timeout=5.0)

        self.stats.record_frontier_snapshot(frontier.snapshot())

    def _frontier_worker(self, frontier: Frontier, session: CrawlSession) -> None:
        while True:
            task = frontier.pop(block=True, timeout=0.5)
            if task is None:
                if frontier.closed and frontier.empty():
                    return
                continue

            outcome = TaskOutcome.FAILED
            try:
                if session.state is not CrawlState.RUNNING:
                    outcome = TaskOutcome.DISCARDED
                else:
                    outcome = self.process_task(task, frontier, session)
            except Exception as exc:
                logger.exception("Unexpected error while processing %s", task.url)
                self._record_error(CrawlStage.EXTRACT, task, exc)
            finally:
                self._settle(task, outcome, frontier, session)
                frontier.task_done()

    def _settle(
        self,
        task: CrawlTask,
        outcome: TaskOutcome,
        frontier: Frontier,
        session: CrawlSession,
    ) -> None:
        if task.is_detail and outcome != TaskOutcome.RECLAIMED:
            session.detail_settled()
        if outcome in {TaskOutcome.COMPLETED, TaskOutcome.ABANDONED}:
            frontier.mark_handled(task)
        if outcome != TaskOutcome.COMPLETED:
            self.stats.record_outcome(outcome)

    def process_task(
        self,
        task: CrawlTask,
        frontier: Frontier,
        session: CrawlSession,
    ) -> TaskOutcome:
        """Fetch one task, apply the failure policy, and dispatch by label."""

        result = self.fetcher.fetch(task.url)
        self.stats.record_fetch(result)

        if not result.ok:
            return self._handle_transport_failure(task, result, frontier)

        if result.status_code not in ALLOWED_STATUS_CODES:
            return self._handle_blocked(task, result, frontier)

        try:
            label = PageLabel(task.label)
        except ValueError:
            exc = UnknownPageTypeError(task.label)
            logger.error("%s on %s", exc, task.url)
            self._record_error(CrawlStage.EXTRACT, task, exc, status_code=result.status_code)
            return TaskOutcome.ABANDONED

        document = load_document(result.body or b"")
        if label == PageLabel.DETAIL:
            return self._handle_detail(task, document, result, frontier, session)
        self._handle_listing(task, document, frontier, session)
        return TaskOutcome.COMPLETED

    def _handle_transport_failure(
        self,
        task: CrawlTask,
        result: FetchResult,
        frontier: Frontier,
    ) -> TaskOutcome:
        exc = ExhaustedRetriesError(
            task.url,
            attempts=result.attempts,
            reason=result.error or "no response",
        )

        if task.is_listing and task.retry_count < self.config.listing_retries:
            logger.warning(
                "Listing page failed (retry %d/%d): %s",
                task.retry_count + 1,
                self.config.listing_retries,
                exc,
            )
            return self._reclaim(frontier, task.with_retry())

        logger.error("Abandoning task: %s", exc)
        self._record_error(CrawlStage.FETCH, task, exc, metadata={"backend": result.backend.value})
        return TaskOutcome.ABANDONED

    def _handle_blocked(
        self,
        task: CrawlTask,
        result: FetchResult,
        frontier: Frontier,
    ) -> TaskOutcome:
        blocked = BlockedError(task.url, result.status_code)
        self.stats.record_blocked()

        self.fetcher.retire_session(result.session_id)
        self.stats.record_session_retired()

        if task.block_count < self.config.max_block_retries:
            logger.warning(
                "%s; retrying with a new session (%d/%d)",
                blocked,
                task.block_count + 1,
                self.config.max_block_retries,
            )
            return self._reclaim(frontier, task.with_block_retry())

        exc = ExhaustedRetriesError(task.url, attempts=task.block_count + 1, reason=str(blocked))
        logger.error("Abandoning task: %s", exc)
        self._record_error(CrawlStage.FETCH, task, exc, status_code=result.status_code)
        return TaskOutcome.ABANDONED

    def _handle_listing(
        self,
        task: CrawlTask,
        document: BeautifulSoup,
        frontier: Frontier,
        session: CrawlSession,
    ) -> None:
        extraction = self.listing_parser.parse(
            document,
            task,
            session.budget_view(),
            known_keys=frontier.seen_keys(),
        )

        if extraction.no_results:
            logger.info("No results on %s (page %d)", task.url, task.page_number)
            return

        self.stats.record_skipped_seen(extraction.details_known)
        logger.debug(
            "Listing page %d: %d detail(s), %d already known, %d over budget, total on site %d",
            task.page_number,
            extraction.details_found,
            extraction.details_known,
            extraction.details_over_budget,
            extraction.total_on_site,
        )

        self._enqueue(frontier, session, extraction.detail_tasks, forefront=True)
        if extraction.next_page_task is not None:
            self._enqueue(frontier, session, [extraction.next_page_task])

    def _handle_detail(
        self,
        task: CrawlTask,
        document: BeautifulSoup,
        result: FetchResult,
        frontier: Frontier,
        session: CrawlSession,
    ) -> TaskOutcome:
        # Left unhandled on disk so a resumed run with a larger budget fetches it.
        if session.budget_exhausted():
            return TaskOutcome.DISCARDED

        extraction = self.detail_parser.parse(document, task)
        record = extraction.record

        if self.enrichment_hook is not None:
            try:
                record.merge_extra(run_enrichment_hook(self.enrichment_hook, document))
            except EnrichmentHookError as exc:
                logger.warning("Enrichment hook failed on %s: %s", task.url, exc)
                self.stats.record_hook_error()
                self._record_error(CrawlStage.ENRICH, task, exc, status_code=result.status_code)

        if extraction.snapshot_reason is not None:
            path = self.storage.save_debug_snapshot(record.id or task.unique_key, result.body or b"")
            logger.warning("Saved debug snapshot for %s (%s): %s", task.url, extraction.snapshot_reason, path)

        self.storage.save_record(record)
        emitted = session.record_emitted()
        self.stats.record_emitted()
        self._advance_progress()

        if emitted >= session.item_budget:
            self._begin_draining(frontier, session)
        return TaskOutcome.COMPLETED

    def _begin_draining(self, frontier: Frontier, session: CrawlSession) -> None:
        if session.begin_draining():
            logger.info("Item budget of %d reached; draining frontier", session.item_budget)
        frontier.close()

    def _enqueue(
        self,
        frontier: Frontier,
        session: CrawlSession,
        tasks: Iterable[CrawlTask],
        *,
        forefront: bool = False,
    ) -> list[EnqueueResult]:
        results = frontier.push_many(tasks, forefront=forefront)
        self.stats.record_enqueue_many(results)
        session.details_enqueued(
            sum(1 for result in results if result.accepted and result.task.is_detail)
        )
        return results

    def _reclaim(self, frontier: Frontier, task: CrawlTask) -> TaskOutcome:
        result = frontier.reclaim(task)
        self.stats.record_enqueue(result)
        if result.accepted:
            return TaskOutcome.RECLAIMED
        return TaskOutcome.DISCARDED

    def _advance_progress(self) -> None:
        if self._progress_bar is None:
            return
        with self._progress_lock:
            self._progress_bar.update(1)

    def _record_error(
        self,
        stage: CrawlStage,
        task: CrawlTask,
        exc: Exception,
        *,
        status_code: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        error = ErrorRecord.from_exception(
            stage=stage,
            url=task.url,
            exc=exc,
            unique_key=task.unique_key,
            label=task.label,
            status_code=status_code,
            metadata=dict(metadata or {}),
        )
        self.storage.save_error(error)
        self.stats.record_error(error.error_type)


__all__ = ["CrawlController"]
