from __future__ import annotations

from typing import List, Protocol

from ..extractors.base import ProductRecord


class Exporter(Protocol):
    def export(self, records: List[ProductRecord], path: str) -> None:
        ...
