from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Protocol

from bs4 import BeautifulSoup


@dataclass
class ProductRecord:
    """
    Canonical output unit. Extractors fill the product fields; ``source_url``
    and ``scraped_at`` are stamped by the accumulator.
    """

    product_id: Optional[str] = None
    name: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = None
    mrp: Optional[float] = None
    discount_percent: Optional[float] = None
    rating: Optional[float] = None
    rating_count: Optional[float] = None
    sizes: Optional[List[str]] = None
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    in_stock: bool = True
    is_sponsored: bool = False
    source_url: Optional[str] = None
    scraped_at: Optional[str] = None

    def dedup_key(self) -> str:
        """Product id, else product URL, else ``brand:name``; empty when nothing identifies it."""
        if self.product_id:
            return self.product_id
        if self.product_url:
            return self.product_url
        if not self.brand and not self.name:
            return ""
        return f"{self.brand or ''}:{self.name or ''}"

    def stamped(self, source_url: str, scraped_at: str) -> "ProductRecord":
        return replace(self, source_url=source_url, scraped_at=scraped_at)

    def to_dict(self) -> Dict[str, Any]:
        # Field names are the downstream contract; keep them camelCase and always present.
        return {
            "productId": self.product_id,
            "name": self.name,
            "brand": self.brand,
            "price": self.price,
            "mrp": self.mrp,
            "discountPercent": self.discount_percent,
            "rating": self.rating,
            "ratingCount": self.rating_count,
            "sizes": list(self.sizes) if self.sizes is not None else None,
            "imageUrl": self.image_url,
            "productUrl": self.product_url,
            "inStock": self.in_stock,
            "isSponsored": self.is_sponsored,
            "sourceUrl": self.source_url,
            "scrapedAt": self.scraped_at,
        }


@dataclass
class ExtractionResult:
    """Outcome of one extractor on one page: records, or an empty result with a reason."""

    records: List[ProductRecord] = field(default_factory=list)
    source: Optional[str] = None
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return bool(self.records)

    @classmethod
    def empty(cls, source: Optional[str], reason: str) -> "ExtractionResult":
        return cls(records=[], source=source, reason=reason)


class Extractor(Protocol):
    """
    Interface for one extraction strategy.
    Keep this small and stable so strategies can be swapped as the site changes.
    """

    name: str

    def extract(self, soup: BeautifulSoup, page_url: str) -> ExtractionResult:
        """Map a parsed listing page to zero or more product records."""
        ...
