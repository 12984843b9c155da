from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from bs4 import BeautifulSoup

from .base import (
    CrawlEngine,
    CrawlTask,
    EngineStats,
    FailedRequestHandler,
    Fetcher,
    PageContext,
    PreNavigationHook,
    RequestHandler,
)
from .sessions import Session, SessionPool
from ..config import CrawlConfig
from ..utils.http import fetch_text
from ..utils.parsing import normalize_url

logger = logging.getLogger(__name__)


async def _log_failed_request(task: CrawlTask, error: BaseException) -> None:
    logger.warning("Request failed: %s (page %s): %r", task.url, task.page_no, error)


class SimpleCrawlEngine(CrawlEngine):
    """
    A pragmatic async fetch engine.
    - Engine owns HTTP, sessions, retries and queueing.
    - The request handler owns page semantics.
    - Concurrency capped by the number of workers.
    """
    def __init__(
        self,
        config: CrawlConfig,
        request_handler: RequestHandler,
        *,
        failed_request_handler: Optional[FailedRequestHandler] = None,
        pre_navigation_hooks: Sequence[PreNavigationHook] = (),
        fetcher: Optional[Fetcher] = None,
        session_pool: Optional[SessionPool] = None,
    ) -> None:
        self.config = config
        self.request_handler = request_handler
        self.failed_request_handler = failed_request_handler or _log_failed_request
        self.pre_navigation_hooks = list(pre_navigation_hooks)
        self.fetcher = fetcher or self._http_fetch
        self.sessions = session_pool or SessionPool(
            max_pool_size=config.max_pool_size,
            max_usage_count=config.max_session_usage,
            max_error_score=config.max_session_errors,
            proxy_urls=config.proxy_urls,
        )
        self.stats = EngineStats()
        self._queue: asyncio.Queue[CrawlTask] | None = None
        self._pending: List[CrawlTask] = []
        self._seen_urls: Set[str] = set()
        self._stopping = False

    # ---- Public API ---------------------------------------------------------

    def add_task(self, task: CrawlTask) -> bool:
        """Queue a task unless its URL was already queued during this run."""
        key = normalize_url(task.url)
        if key in self._seen_urls:
            logger.debug("Skipping already queued URL %s", task.url)
            return False
        if self._stopping:
            logger.debug("Engine stopping; not queueing %s", task.url)
            return False
        self._seen_urls.add(key)
        if self._queue is None:
            self._pending.append(task)
        else:
            self._queue.put_nowait(task)
        return True

    def request_stop(self, reason: Optional[str] = None) -> None:
        """Finish in-flight tasks but start no new ones."""
        if not self._stopping:
            logger.info("Stopping crawl: %s", reason or "requested")
        self._stopping = True

    async def run(self, tasks: Iterable[CrawlTask]) -> EngineStats:
        cfg = self.config
        self._queue = asyncio.Queue()
        for task in self._pending:
            self._queue.put_nowait(task)
        self._pending.clear()
        for task in tasks:
            self.add_task(task)

        workers = [asyncio.create_task(self._worker()) for _ in range(cfg.max_concurrency)]
        try:
            await self._queue.join()
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            self.stats.sessions_retired = self.sessions.retired_count
            await self.sessions.close()
        return self.stats

    # ---- Internals ----------------------------------------------------------

    async def _worker(self) -> None:
        assert self._queue is not None
        while True:
            task = await self._queue.get()
            try:
                if self._stopping:
                    self.stats.requests_skipped += 1
                    continue
                await self._process(task)
            finally:
                self._queue.task_done()

    async def _process(self, task: CrawlTask) -> None:
        cfg = self.config
        last_exc: Optional[BaseException] = None

        for attempt in range(cfg.retries + 1):
            if attempt and self._stopping:
                self.stats.requests_skipped += 1
                return
            session = self.sessions.get_session()
            headers: Dict[str, str] = {}
            try:
                for hook in self.pre_navigation_hooks:
                    await hook(task, session, headers)
                html = await self.fetcher(session, task, headers)
                soup = BeautifulSoup(html, "html.parser")
                ctx = PageContext(task=task, html=html, soup=soup, session=session, enqueue=self.add_task)
                await self.request_handler(ctx)
            except Exception as exc:  # broad catch to keep crawler moving; retried below
                last_exc = exc
                session.mark_bad()
                logger.debug(
                    "Attempt %s/%s failed for %s on %s: %r",
                    attempt + 1, cfg.retries + 1, task.url, session.id, exc,
                )
                if attempt < cfg.retries:
                    self.stats.requests_retried += 1
                    await asyncio.sleep(min(cfg.retry_backoff * 2 ** attempt, 5))
                continue

            session.mark_good()
            self.stats.requests_finished += 1
            return

        self.stats.requests_failed += 1
        self.stats.failures[task.url] = repr(last_exc)
        assert last_exc is not None
        try:
            await self.failed_request_handler(task, last_exc)
        except Exception as exc:
            logger.exception("Failed-request handler raised for %s: %r", task.url, exc)

    async def _http_fetch(self, session: Session, task: CrawlTask, headers: Dict[str, str]) -> str:
        return await fetch_text(
            session.client,
            task.url,
            headers=headers,
            timeout=self.config.request_timeout,
            proxy=session.proxy_url,
        )
