from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import List

from ..config import CrawlConfig
from ..crawl.crawler import CrawlReport, ListingCrawler
from ..export.base import Exporter
from ..utils.logging import setup_logging
from ..utils.loader import load_symbol, split_dotted_list

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CRASH = 1
EXIT_BAD_CONFIG = 2


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Paginated product-listing crawler")
    p.add_argument("urls", nargs="*", help="Start URLs (space-separated)")
    p.add_argument("--config", type=str, help="Path to config JSON", default=None)
    p.add_argument("--input", type=str, default=None,
                   help="Path to actor-style input JSON (startUrls, results_wanted, maxPages, ...)")
    p.add_argument("--max-items", type=int, default=None, help="Stop after saving this many products")
    p.add_argument("--max-pages", type=int, default=None, help="Do not paginate past this page number")
    p.add_argument("--max-concurrency", type=int, default=None, help="Max concurrent page fetches")
    p.add_argument("--delay", type=float, default=None, help="Extra fixed delay before each request (seconds)")
    p.add_argument("--proxy", action="append", default=None,
                   help="Proxy URL; repeat to rotate several across sessions")
    p.add_argument("--engine", type=str, default=None, help="Engine dotted path (module:ClassName)")
    p.add_argument("--exporter", type=str, default=None, help="Exporter dotted path (module:ClassName)")
    p.add_argument("--extra-extractors", type=str, default=None,
                   help="Comma-separated dotted paths for additional extractors")
    p.add_argument("--output", type=str, default=None, help="Output file path")
    p.add_argument("--dataset", type=str, default=None, help="Stream saved batches to this JSON Lines file")
    p.add_argument("--debug-dir", type=str, default=None, help="Save HTML of blocked/empty pages here")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--serve", action="store_true", help="Run REST API server instead of CLI crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


def _load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    elif args.input:
        with open(args.input, "r", encoding="utf-8") as f:
            cfg = CrawlConfig.from_input(json.load(f))
    else:
        cfg = CrawlConfig.from_env()

    if args.urls:
        cfg.start_urls = list(args.urls)
    if args.max_items is not None:
        cfg.max_items = args.max_items
    if args.max_pages is not None:
        cfg.max_pages = args.max_pages
    if args.max_concurrency is not None:
        cfg.max_concurrency = args.max_concurrency
    if args.delay is not None:
        cfg.extra_delay = args.delay
    if args.proxy:
        cfg.proxy_urls = list(args.proxy)
    if args.engine:
        cfg.engine = args.engine
    if args.exporter:
        cfg.exporter = args.exporter
    if args.extra_extractors:
        cfg.extra_extractors = split_dotted_list(args.extra_extractors)
    if args.output:
        cfg.output_path = args.output
    if args.dataset:
        cfg.dataset_path = args.dataset
    if args.debug_dir:
        cfg.debug_dir = args.debug_dir

    cfg.validate()
    return cfg


def run_server(host: str, port: int) -> None:
    try:
        import uvicorn  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dep
        raise SystemExit("To run the API, install dependencies: pip install 'listing-crawler[api]'") from exc
    uvicorn.run("listing_crawler.apis.app:app", host=host, port=port)


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return EXIT_OK

    try:
        cfg = _load_config(args)
    except (ValueError, TypeError, OSError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_BAD_CONFIG

    # Dynamic exporter loading so upgrades don't require code edits.
    exporter_cls = load_symbol(cfg.exporter)

    try:
        report: CrawlReport = asyncio.run(ListingCrawler(cfg).run())
    except Exception:
        logger.exception("Crawl failed")
        return EXIT_CRASH

    exporter: Exporter = exporter_cls()
    exporter.export(report.records, cfg.output_path)

    logger.info("Pages: %s | Products: %s | Failed requests: %s | Output: %s",
                report.pages_processed,
                len(report.records),
                report.requests_failed,
                cfg.output_path)
    return EXIT_OK
