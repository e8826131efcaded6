"""CLI entrypoint for job listing crawls."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from jobcrawl.crawler import (
    ConfigurationError,
    CrawlConfig,
    CrawlController,
    FetchBackend,
    load_config,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl job listings from search result and detail pages.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=Path("crawled_jobs"),
        help="Root output directory for records/errors/frontier/manifests/logs.",
    )

    parser.add_argument("--country", type=str, default=None, help="Country code, e.g. US or UK.")
    parser.add_argument("--position", type=str, default=None, help="Search keywords.")
    parser.add_argument("--location", type=str, default=None, help="Search location.")
    parser.add_argument(
        "--start_url",
        action="append",
        default=[],
        help="Start URL (repeatable). Overrides the generated search URL and config start URLs.",
    )

    parser.add_argument("--max_items", type=int, default=None)
    parser.add_argument("--max_concurrency", type=int, default=None)
    parser.add_argument(
        "--extend_output_function",
        type=str,
        default=None,
        help="Enrichment hook import path, e.g. mypackage.hooks:extra_fields.",
    )

    parser.add_argument(
        "--backend",
        type=str,
        choices=[backend.value for backend in FetchBackend],
        default=None,
    )
    parser.add_argument(
        "--proxy_url",
        action="append",
        default=[],
        help="Proxy URL (repeatable). Sessions rotate through them.",
    )
    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--rate_limit_seconds", type=float, default=None)
    parser.add_argument("--listing_retries", type=int, default=None)
    parser.add_argument("--max_block_retries", type=int, default=None)

    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Discard records and frontier state from a previous run in output_dir.",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar over the item budget.",
    )
    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON in stdout after run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    payload: dict[str, Any] = load_config(args.config).to_dict() if args.config is not None else {}

    if args.start_url:
        payload["start_urls"] = list(args.start_url)
    if args.proxy_url:
        payload["proxy_urls"] = list(args.proxy_url)

    for key in (
        "country",
        "position",
        "location",
        "max_items",
        "max_concurrency",
        "extend_output_function",
        "backend",
        "timeout_seconds",
        "retries",
        "rate_limit_seconds",
        "listing_retries",
        "max_block_retries",
    ):
        value = getattr(args, key)
        if value is not None:
            payload[key] = value

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # urllib3 logs every pooled connection at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("selenium").setLevel(logging.WARNING)


def print_summary(result: dict[str, Any], *, print_stats_json: bool) -> None:
    paths = result.get("paths", {})
    stats = result.get("stats", {})
    session = result.get("session", {})

    print("\n=== Crawl Complete ===")
    print(f"state: {result.get('state')}")
    print(f"output_dir: {paths.get('output_dir')}")
    print(f"records: {paths.get('records')}")
    print(f"errors: {paths.get('errors')}")
    print(f"stats: {paths.get('crawl_stats')}")
    print(f"items: {session.get('items_emitted')}/{session.get('item_budget')}")

    print("\n--- Core Stats ---")
    for key in [
        "frontier_enqueued",
        "frontier_skipped_seen",
        "fetched_ok",
        "fetched_error",
        "blocked",
        "session_retirements",
        "tasks_reclaimed",
        "tasks_abandoned",
        "tasks_discarded",
        "records_emitted",
        "hook_errors",
        "duration_seconds",
    ]:
        if key in stats:
            print(f"{key}: {stats[key]}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
        controller = CrawlController(
            config,
            output_dir=args.output_dir,
            resume=not args.fresh,
            progress=args.progress,
        )
    except ConfigurationError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 2

    logging.info(
        "Starting crawl: output_dir=%s, origin=%s, start_urls=%d, max_items=%d, concurrency=%d",
        args.output_dir,
        config.origin,
        len(config.start_urls),
        config.item_budget,
        config.max_concurrency,
    )

    try:
        result = controller.run()
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return 130
    except Exception:
        logging.exception("Crawl failed")
        return 1

    print_summary(result, print_stats_json=args.print_stats_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
