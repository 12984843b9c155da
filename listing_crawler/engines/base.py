from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, Optional
from abc import ABC, abstractmethod

from bs4 import BeautifulSoup

if TYPE_CHECKING:  # pragma: no cover
    from .sessions import Session


@dataclass(frozen=True)
class CrawlTask:
    """One listing page to fetch. ``page_no`` is 1-based along a pagination chain."""
    url: str
    page_no: int = 1


@dataclass
class PageContext:
    """Everything a request handler gets for one successfully fetched page."""
    task: CrawlTask
    html: str
    soup: BeautifulSoup
    session: "Session"
    enqueue: Callable[[CrawlTask], bool]


@dataclass
class EngineStats:
    requests_finished: int = 0
    requests_failed: int = 0
    requests_retried: int = 0
    requests_skipped: int = 0
    sessions_retired: int = 0
    failures: Dict[str, str] = field(default_factory=dict)  # url -> last error


RequestHandler = Callable[[PageContext], Awaitable[None]]
FailedRequestHandler = Callable[[CrawlTask, BaseException], Awaitable[None]]
# Runs right before each network request; may mutate the outgoing headers.
PreNavigationHook = Callable[[CrawlTask, "Session", Dict[str, str]], Awaitable[None]]
# (session, task, headers) -> page HTML; raises on failure.
Fetcher = Callable[["Session", CrawlTask, Dict[str, str]], Awaitable[str]]


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own HTTP, retries, sessions and
    concurrency; page semantics live in the request handler.
    """
    @abstractmethod
    async def run(self, tasks: Iterable[CrawlTask]) -> EngineStats:  # pragma: no cover - interface
        ...

    @abstractmethod
    def add_task(self, task: CrawlTask) -> bool:  # pragma: no cover - interface
        ...

    @abstractmethod
    def request_stop(self, reason: Optional[str] = None) -> None:  # pragma: no cover - interface
        ...
