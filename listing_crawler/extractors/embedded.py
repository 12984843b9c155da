from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Pattern, Sequence

from bs4 import BeautifulSoup

from .base import ExtractionResult, ProductRecord
from ..utils.parsing import parse_number, parse_sizes, to_absolute_url

logger = logging.getLogger(__name__)

#: Global variables known to carry server-rendered search state.
DEFAULT_STATE_VARIABLES = ("__myx",)


def _assignment_pattern(variable: str) -> Pattern[str]:
    # The object ends at the first "}" followed by an optional ";" and either the
    # next window.* assignment or the end of the script.
    return re.compile(
        r"window\." + re.escape(variable) + r"\s*=\s*(\{[\s\S]*?\});?\s*(?:window\.|\Z)"
    )


def script_text(tag: Any) -> str:
    if tag.string is not None:
        return str(tag.string)
    return tag.get_text() or ""


class EmbeddedStateExtractor:
    """
    Reads products out of the JSON page state the server inlines as
    ``window.__myx = {...}``. Organic results come first, sponsored (PLA)
    results are appended, each list in its original order.
    """

    name = "embedded"

    def __init__(self, variables: Sequence[str] = DEFAULT_STATE_VARIABLES) -> None:
        self._patterns = [_assignment_pattern(v) for v in variables]

    def extract(self, soup: BeautifulSoup, page_url: str) -> ExtractionResult:
        records: List[ProductRecord] = []
        blobs_seen = 0

        for script in soup.find_all("script"):
            text = script_text(script)
            if "window." not in text:
                continue
            for state in self._iter_states(text, page_url):
                blobs_seen += 1
                results = _dig(state, "searchData", "results")
                if not isinstance(results, dict):
                    continue
                for raw in _listing(results, "products") + _listing(results, "plaProducts"):
                    record = self._to_record(raw, page_url)
                    if record is not None:
                        records.append(record)

        if records:
            return ExtractionResult(records=records, source=self.name)
        if not blobs_seen:
            return ExtractionResult.empty(self.name, "no embedded state blob")
        return ExtractionResult.empty(self.name, "embedded state has no search results")

    def _iter_states(self, text: str, page_url: str) -> Iterable[dict]:
        for pattern in self._patterns:
            match = pattern.search(text)
            if not match:
                continue
            try:
                state = json.loads(match.group(1))
            except ValueError as exc:
                # Only this script is skipped; sibling scripts and strategies still run.
                logger.debug("Unparsable embedded state on %s: %s", page_url, exc)
                continue
            if isinstance(state, dict):
                yield state

    def _to_record(self, product: Any, page_url: str) -> Optional[ProductRecord]:
        if not isinstance(product, dict):
            return None

        product_id = product.get("productId")
        sizes = product.get("sizes")
        if isinstance(sizes, list):
            sizes = [str(s).strip() for s in sizes if str(s).strip()] or None
        else:
            sizes = parse_sizes(sizes)

        image = product.get("searchImage") or product.get("defaultImage") or product.get("image")
        landing = product.get("landingPageUrl")

        return ProductRecord(
            product_id=str(product_id) if product_id not in (None, "") else None,
            name=product.get("productName") or product.get("product") or None,
            brand=product.get("brand") or None,
            price=parse_number(product.get("price")),
            mrp=parse_number(product.get("mrp")),
            discount_percent=parse_number(product.get("discountDisplayStr") or product.get("discount")),
            rating=parse_number(product.get("rating")),
            rating_count=parse_number(product.get("ratingCount") or product.get("totalRatings")),
            sizes=sizes,
            image_url=to_absolute_url(image, page_url) if isinstance(image, str) else None,
            product_url=to_absolute_url(landing, page_url) if isinstance(landing, str) else None,
            in_stock=_in_stock(product.get("inventoryInfo")),
            is_sponsored=bool(product.get("isPla")) or bool(product.get("isSponsored")),
        )


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _listing(results: dict, key: str) -> List[Any]:
    value = results.get(key)
    return list(value) if isinstance(value, list) else []


def _in_stock(inventory: Any) -> bool:
    if not isinstance(inventory, list) or not inventory or not isinstance(inventory[0], dict):
        return True
    count = parse_number(inventory[0].get("inventoryCount"))
    if count is None:
        return True
    return count > 0
