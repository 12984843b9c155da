from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

try:
    from fastapi import FastAPI, HTTPException
    from pydantic import BaseModel, Field
except ImportError as exc:  # pragma: no cover - optional dependency
    raise RuntimeError(
        "FastAPI not installed. Install with `pip install 'listing-crawler[api]'` "
        "or avoid using the API server."
    ) from exc

from ..config import CrawlConfig
from ..crawl.crawler import CrawlReport, ListingCrawler
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="listing_crawler API", version=__version__)


class CrawlRequest(BaseModel):
    # Engine and extractor dotted paths are importable code; they come from the
    # server environment (CRAWLER_ENGINE, CRAWLER_EXTRA_EXTRACTORS) only.
    start_urls: List[str]
    max_items: Optional[int] = Field(default=None, gt=0)
    max_pages: Optional[int] = Field(default=None, gt=0)
    max_concurrency: Optional[int] = Field(default=None, gt=0)
    extra_delay: Optional[float] = Field(default=None, ge=0)
    proxy_urls: Optional[List[str]] = None


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/crawl")
async def crawl(req: CrawlRequest) -> Dict[str, Any]:
    cfg = CrawlConfig.from_env()
    cfg.start_urls = req.start_urls or cfg.start_urls
    if req.max_items is not None:
        cfg.max_items = req.max_items
    if req.max_pages is not None:
        cfg.max_pages = req.max_pages
    if req.max_concurrency is not None:
        cfg.max_concurrency = req.max_concurrency
    if req.extra_delay is not None:
        cfg.extra_delay = req.extra_delay
    if req.proxy_urls is not None:
        cfg.proxy_urls = req.proxy_urls

    try:
        cfg.validate()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    report: CrawlReport = await ListingCrawler(cfg).run()
    return {
        "pages": report.pages_processed,
        "failed_requests": report.requests_failed,
        "items": [r.to_dict() for r in report.records],
    }
