from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional

from bs4 import BeautifulSoup

from .base import ExtractionResult, ProductRecord
from .embedded import script_text
from ..utils.parsing import parse_number, to_absolute_url

logger = logging.getLogger(__name__)

_OUT_OF_STOCK_RE = re.compile(r"OutOfStock", re.IGNORECASE)


class StructuredDataExtractor:
    """Extract listing entries from JSON-LD ``ItemList`` blocks. Never reports sponsored items."""

    name = "structured"

    def extract(self, soup: BeautifulSoup, page_url: str) -> ExtractionResult:
        records: List[ProductRecord] = []
        blocks = soup.find_all("script", attrs={"type": "application/ld+json"})

        for script in blocks:
            payload = script_text(script).strip()
            if not payload:
                continue
            try:
                data = json.loads(payload)
            except json.JSONDecodeError:
                logger.debug("Skipping unparsable JSON-LD block on %s", page_url)
                continue

            for node in _iter_jsonld_nodes(data):
                if node.get("@type") != "ItemList":
                    continue
                entries = node.get("itemListElement")
                if not isinstance(entries, list):
                    continue
                for entry in entries:
                    record = _record_from_entry(entry, page_url)
                    if record is not None:
                        records.append(record)

        if records:
            return ExtractionResult(records=records, source=self.name)
        if not blocks:
            return ExtractionResult.empty(self.name, "no JSON-LD blocks")
        return ExtractionResult.empty(self.name, "no products in JSON-LD item lists")


def _iter_jsonld_nodes(data: Any) -> Iterable[dict]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_jsonld_nodes(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _iter_jsonld_nodes(data["@graph"])
        else:
            yield data


def _record_from_entry(entry: Any, page_url: str) -> Optional[ProductRecord]:
    if not isinstance(entry, dict):
        return None
    item = entry.get("item") or entry
    if not isinstance(item, dict):
        return None
    item_type = item.get("@type")
    if item_type and item_type != "Product":
        return None

    offers = item.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if not isinstance(offers, dict):
        offers = {}

    rating = item.get("aggregateRating")
    if not isinstance(rating, dict):
        rating = {}

    brand = item.get("brand")
    if isinstance(brand, dict):
        brand = brand.get("name")

    availability = offers.get("availability")
    in_stock = not _OUT_OF_STOCK_RE.search(str(availability)) if availability else True

    product_id = item.get("sku") or item.get("productID")
    url = item.get("url")

    return ProductRecord(
        product_id=str(product_id) if product_id else None,
        name=item.get("name") or None,
        brand=brand if isinstance(brand, str) and brand else None,
        price=parse_number(offers.get("price") if offers.get("price") is not None else offers.get("lowPrice")),
        rating=parse_number(rating.get("ratingValue")),
        rating_count=parse_number(rating.get("reviewCount") or rating.get("ratingCount")),
        image_url=_image_url(item.get("image"), page_url),
        product_url=to_absolute_url(url, page_url) if isinstance(url, str) else None,
        in_stock=in_stock,
        is_sponsored=False,
    )


def _image_url(image: Any, page_url: str) -> Optional[str]:
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")
    return to_absolute_url(image, page_url) if isinstance(image, str) else None
