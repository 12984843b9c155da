from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from .base import ExtractionResult, ProductRecord
from ..utils.parsing import (
    clean_text,
    extract_id_from_url,
    parse_number,
    parse_rating_count_from_text,
    parse_sizes,
    to_absolute_url,
)

# Selector order is priority order; results are never merged across selectors.
# These track the target site's current markup and need re-tuning when it changes.
CARD_SELECTORS: Tuple[str, ...] = (
    "li.product-base",
    '[data-testid="product-card"]',
    ".product-item",
)

# field -> ordered (css selector, attribute) candidates; attribute None means element text.
FIELD_SELECTORS: Dict[str, Tuple[Tuple[str, Optional[str]], ...]] = {
    "brand": ((".product-brand", None),),
    "name": ((".product-product", None), ("img", "title")),
    "price": ((".product-discountedPrice", None), (".product-price", None)),
    "mrp": ((".product-strike", None),),
    "discount": ((".product-discountPercentage", None),),
    "rating": ((".product-ratingsContainer", None),),
    "rating_count": ((".product-ratingsCount", None),),
    "sizes": ((".product-sizeInventoryPresent", None), (".product-sizeInventory", None)),
}

IMAGE_ATTRIBUTES: Tuple[str, ...] = ("src", "data-src", "data-original")
OUT_OF_STOCK_SELECTOR = ".product-outOfStock, .product-soldOut"


class ProductCardExtractor:
    """
    Last-resort extractor over rendered product cards.
    """

    name = "markup"

    def __init__(
        self,
        card_selectors: Sequence[str] = CARD_SELECTORS,
        field_selectors: Optional[Dict[str, Tuple[Tuple[str, Optional[str]], ...]]] = None,
    ) -> None:
        self.card_selectors = tuple(card_selectors)
        self.field_selectors = dict(FIELD_SELECTORS)
        if field_selectors:
            self.field_selectors.update(field_selectors)

    def extract(self, soup: BeautifulSoup, page_url: str) -> ExtractionResult:
        cards: List[Tag] = []
        for selector in self.card_selectors:
            cards = soup.select(selector)
            if cards:
                break
        if not cards:
            return ExtractionResult.empty(self.name, "no product cards matched")

        records = [self._card_to_record(card, page_url) for card in cards]
        return ExtractionResult(records=records, source=self.name)

    # ---- Extraction helpers -------------------------------------------------

    def _card_to_record(self, card: Tag, page_url: str) -> ProductRecord:
        anchor = card.select_one("a[href]")
        product_url = to_absolute_url(anchor.get("href"), page_url) if anchor else None
        product_id = card.get("id") or card.get("data-id") or extract_id_from_url(product_url)

        rating_text = self._field(card, "rating")
        rating_count = parse_number(self._field(card, "rating_count"))
        if rating_count is None:
            rating_count = parse_rating_count_from_text(rating_text)

        return ProductRecord(
            product_id=str(product_id) if product_id else None,
            name=self._field(card, "name") or None,
            brand=self._field(card, "brand") or None,
            price=parse_number(self._field(card, "price")),
            mrp=parse_number(self._field(card, "mrp")),
            discount_percent=parse_number(self._field(card, "discount")),
            rating=parse_number(rating_text),
            rating_count=rating_count,
            sizes=parse_sizes(self._field(card, "sizes")),
            image_url=self._image_url(card, page_url),
            product_url=product_url,
            in_stock=card.select_one(OUT_OF_STOCK_SELECTOR) is None,
            is_sponsored=False,
        )

    def _field(self, card: Tag, field: str) -> str:
        for selector, attribute in self.field_selectors.get(field, ()):
            node = card.select_one(selector)
            if node is None:
                continue
            value = node.get(attribute) if attribute else node.get_text(" ")
            text = clean_text(value)
            if text:
                return text
        return ""

    def _image_url(self, card: Tag, page_url: str) -> Optional[str]:
        img = card.find("img")
        if img is None:
            return None
        srcset = clean_text(img.get("srcset"))
        if srcset:
            first = srcset.split(",")[0].strip().split(" ")[0]
            resolved = to_absolute_url(first, page_url)
            if resolved:
                return resolved
        for attribute in IMAGE_ATTRIBUTES:
            resolved = to_absolute_url(img.get(attribute), page_url)
            if resolved:
                return resolved
        return None
