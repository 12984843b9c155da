from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Set

from ..extractors.base import ProductRecord


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AccumulateResult:
    batch: List[ProductRecord] = field(default_factory=list)
    duplicates: int = 0
    discarded: int = 0  # candidates dropped because the item budget filled up
    saved_total: int = 0
    budget_reached: bool = False


class CrawlState:
    """
    Crawl-wide dedup set, saved counter and budget, shared by every in-flight page.

    All read-modify-write sequences run under one lock, so two pages can never
    both admit the same key and the saved count never passes ``max_items``.
    """

    def __init__(
        self,
        max_items: int,
        max_pages: int,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self.max_items = max_items
        self.max_pages = max_pages
        self._clock = clock
        self._lock = threading.Lock()
        self._seen: Set[str] = set()
        self._saved = 0
        self._max_page_no = 0

    @property
    def saved(self) -> int:
        with self._lock:
            return self._saved

    @property
    def max_page_no(self) -> int:
        with self._lock:
            return self._max_page_no

    @property
    def budget_reached(self) -> bool:
        with self._lock:
            return self._saved >= self.max_items

    def accumulate(self, records: Iterable[ProductRecord], source_url: str, page_no: int = 1) -> AccumulateResult:
        """Admit novel records from one page, stamping provenance, until the item budget is hit."""
        result = AccumulateResult()
        pending = list(records)
        with self._lock:
            self._max_page_no = max(self._max_page_no, page_no)
            for index, record in enumerate(pending):
                if self._saved >= self.max_items:
                    result.discarded = len(pending) - index
                    break
                key = record.dedup_key()
                if key:
                    if key in self._seen:
                        result.duplicates += 1
                        continue
                    self._seen.add(key)
                result.batch.append(record.stamped(source_url, self._clock()))
                self._saved += 1
            result.saved_total = self._saved
            result.budget_reached = self._saved >= self.max_items
        return result

    def should_continue(self, page_no: int) -> bool:
        """True while both ceilings leave room for the page after ``page_no``."""
        with self._lock:
            return self._saved < self.max_items and page_no < self.max_pages
