from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Type

from .blocking import BlockedPageError, detect_block
from .pagination import find_next_page
from .state import CrawlState
from .stealth import StealthHeaders
from ..config import CrawlConfig
from ..engines.base import CrawlEngine, CrawlTask, EngineStats, Fetcher, PageContext
from ..export.dataset import Dataset
from ..extractors.base import ProductRecord
from ..extractors.pipeline import ExtractionPipeline
from ..utils.diagnostics import DiagnosticStore
from ..utils.loader import load_symbol

logger = logging.getLogger(__name__)


@dataclass
class CrawlReport:
    records: List[ProductRecord] = field(default_factory=list)
    pages_processed: int = 0
    pages_empty: int = 0
    blocked_responses: int = 0
    stats: EngineStats = field(default_factory=EngineStats)

    @property
    def requests_failed(self) -> int:
        return self.stats.requests_failed


def build_pipeline(config: CrawlConfig, discover: bool = True) -> ExtractionPipeline:
    pipeline = ExtractionPipeline()
    # Allow runtime registration of additional extractors
    for dotted in config.extra_extractors:
        try:
            extractor_cls = load_symbol(dotted)
            pipeline.register(extractor_cls())
        except Exception as exc:
            logger.warning("Failed to load extractor %s: %r", dotted, exc)
    if discover:
        pipeline.discover_entry_points()
    return pipeline


class ListingCrawler:
    """
    Wires extraction, dedup/budget, pagination and stealth around a fetch engine.

    Per fetched page: blocked pages raise ``BlockedPageError`` (the engine retries
    them on another session); otherwise the first productive extractor's records
    are accumulated, the batch is pushed to the dataset, and the next page is
    queued while both budgets allow.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        pipeline: Optional[ExtractionPipeline] = None,
        dataset: Optional[Dataset] = None,
        diagnostics: Optional[DiagnosticStore] = None,
        stealth: Optional[StealthHeaders] = None,
        fetcher: Optional[Fetcher] = None,
        engine_cls: Optional[Type[CrawlEngine]] = None,
    ) -> None:
        self.config = config
        self.pipeline = pipeline or build_pipeline(config)
        self.dataset = dataset if dataset is not None else Dataset(config.dataset_path)
        self.diagnostics = diagnostics or DiagnosticStore(config.debug_dir)
        self.stealth = stealth or StealthHeaders(
            min_delay=config.min_delay,
            max_delay=config.max_delay,
            extra_delay=config.extra_delay,
        )
        self.fetcher = fetcher
        self.engine_cls = engine_cls or load_symbol(config.engine)
        self.state = CrawlState(max_items=config.max_items, max_pages=config.max_pages)
        self.engine: Optional[CrawlEngine] = None
        self._report = CrawlReport()

    def seed_tasks(self) -> List[CrawlTask]:
        return [CrawlTask(url=url, page_no=1) for url in self.config.start_urls]

    async def run(self) -> CrawlReport:
        cfg = self.config
        self.engine = self.engine_cls(
            cfg,
            self.handle_page,
            failed_request_handler=self.handle_failed,
            pre_navigation_hooks=[self.stealth],
            fetcher=self.fetcher,
        )
        logger.info(
            "Starting crawl: %s products requested, up to %s pages, %s start URL(s)",
            cfg.max_items, cfg.max_pages, len(cfg.start_urls),
        )
        stats = await self.engine.run(self.seed_tasks())

        self._report.stats = stats
        self._report.records = self.dataset.records
        logger.info(
            "Finished: %s products collected (%s pages, %s failed requests)",
            len(self._report.records), self._report.pages_processed, stats.requests_failed,
        )
        return self._report

    async def handle_page(self, ctx: PageContext) -> None:
        task = ctx.task
        marker = detect_block(ctx.soup)
        if marker:
            self._report.blocked_responses += 1
            self.diagnostics.save(f"page-{task.page_no}-blocked", ctx.html)
            logger.warning("Page %s: access blocked (%s), retrying on a new session", task.page_no, marker)
            ctx.session.retire()
            raise BlockedPageError(task.url, marker)

        self._report.pages_processed += 1
        result = self.pipeline.run(ctx.soup, task.url)
        if not result.records:
            self._report.pages_empty += 1
            self.diagnostics.save(f"page-{task.page_no}-empty", ctx.html)
            logger.warning("Page %s: %s", task.page_no, result.reason or "no products found")
        else:
            acc = self.state.accumulate(result.records, task.url, task.page_no)
            if acc.batch:
                self.dataset.push_data(acc.batch)
                logger.info(
                    "Page %s: Saved %s products via %s (%s/%s)",
                    task.page_no, len(acc.batch), result.source, acc.saved_total, self.config.max_items,
                )
            elif acc.duplicates:
                logger.info("Page %s: all %s products were duplicates", task.page_no, acc.duplicates)
            if acc.budget_reached:
                if self.engine is not None:
                    self.engine.request_stop(f"collected {acc.saved_total} products")
                return

        if not self.state.should_continue(task.page_no):
            logger.info("Page %s: page limit reached, not paginating further", task.page_no)
            return

        next_url = find_next_page(ctx.soup, task.url, task.page_no + 1, self.config.page_param)
        if next_url and next_url != task.url:
            ctx.enqueue(CrawlTask(url=next_url, page_no=task.page_no + 1))
        else:
            logger.info("Page %s: no distinct next page, stopping this chain", task.page_no)

    async def handle_failed(self, task: CrawlTask, error: BaseException) -> None:
        logger.warning("Request failed: %s (page %s) after retries: %r", task.url, task.page_no, error)
