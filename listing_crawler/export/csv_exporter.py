from __future__ import annotations

import csv
from typing import List
from pathlib import Path

from ..extractors.base import ProductRecord


class CSVExporter:
    """
    Writes one row per product; sizes are joined with commas, nulls become empty cells.
    """

    _headers = [
        "productId",
        "name",
        "brand",
        "price",
        "mrp",
        "discountPercent",
        "rating",
        "ratingCount",
        "sizes",
        "imageUrl",
        "productUrl",
        "inStock",
        "isSponsored",
        "sourceUrl",
        "scrapedAt",
    ]

    def export(self, records: List[ProductRecord], path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            w = csv.writer(f)
            w.writerow(self._headers)
            for record in records:
                row = record.to_dict()
                if row["sizes"] is not None:
                    row["sizes"] = ",".join(row["sizes"])
                w.writerow(["" if row[h] is None else row[h] for h in self._headers])
