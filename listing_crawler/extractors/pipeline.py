from __future__ import annotations

import logging
from importlib import metadata
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

from .base import ExtractionResult, Extractor
from .embedded import EmbeddedStateExtractor
from .markup import ProductCardExtractor
from .structured import StructuredDataExtractor

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "listing_crawler.extractors"


def default_extractors() -> List[Extractor]:
    # Priority order: page state blob, then JSON-LD, then rendered cards.
    return [EmbeddedStateExtractor(), StructuredDataExtractor(), ProductCardExtractor()]


class ExtractionPipeline:
    """
    Ordered list of extraction strategies evaluated first-non-empty-wins.
    Built-ins come first; config-defined and entry-point extractors are appended.
    """

    def __init__(self, extractors: Optional[Iterable[Extractor]] = None) -> None:
        self._extractors: List[Extractor] = list(extractors) if extractors is not None else default_extractors()

    # ---- Introspection / Management ----

    def register(self, extractor: Extractor) -> None:
        self._extractors.append(extractor)

    @property
    def extractors(self) -> List[Extractor]:
        return list(self._extractors)

    # ---- Evaluation ----

    def run(self, soup: BeautifulSoup, page_url: str) -> ExtractionResult:
        reasons: List[str] = []
        for extractor in self._extractors:
            name = getattr(extractor, "name", type(extractor).__name__)
            try:
                result = extractor.extract(soup, page_url)
            except Exception as exc:  # one broken strategy must not starve the fallbacks
                logger.warning("Extractor %s failed on %s: %r", name, page_url, exc)
                reasons.append(f"{name}: error {exc!r}")
                continue
            if result.records:
                logger.debug("Extractor %s found %s products on %s", name, len(result.records), page_url)
                return result
            reasons.append(f"{name}: {result.reason or 'empty'}")
        return ExtractionResult.empty(None, "no products found (" + "; ".join(reasons) + ")")

    # ---- Discovery ----

    def discover_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """
        Discover third-party extractors installed as entry points.
        Returns count of newly registered extractors.
        """
        added = 0
        for ep in metadata.entry_points().select(group=group):
            try:
                extractor_cls = ep.load()
                self.register(extractor_cls())
            except Exception as exc:  # plugins are optional
                logger.warning("Failed to load extractor entry point %s: %r", ep.name, exc)
                continue
            added += 1
        return added
