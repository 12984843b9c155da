from .blocking import BlockedPageError, detect_block
from .crawler import CrawlReport, ListingCrawler, build_pipeline
from .pagination import find_next_page
from .state import CrawlState
from .stealth import StealthHeaders

__all__ = [
    "BlockedPageError",
    "CrawlReport",
    "CrawlState",
    "ListingCrawler",
    "StealthHeaders",
    "build_pipeline",
    "detect_block",
    "find_next_page",
]
