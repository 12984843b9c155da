"""Append-only output sink fed one page batch at a time."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional

from ..extractors.base import ProductRecord

logger = logging.getLogger(__name__)


class Dataset:
    """
    Keeps records in insertion order and optionally streams them to a JSON
    Lines file as each batch arrives, so a crash mid-crawl keeps what was saved.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = Path(path) if path else None
        self._records: List[ProductRecord] = []
        self._lock = threading.Lock()
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("", encoding="utf-8")

    def push_data(self, batch: Iterable[ProductRecord]) -> int:
        items = list(batch)
        if not items:
            return 0
        with self._lock:
            self._records.extend(items)
            if self.path is not None:
                with open(self.path, "a", encoding="utf-8") as f:
                    for record in items:
                        f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
        return len(items)

    @property
    def records(self) -> List[ProductRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
