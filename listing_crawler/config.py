from __future__ import annotations

from dataclasses import dataclass, field, asdict, fields
from typing import List, Optional, Dict, Any, Iterable
from pathlib import Path
import logging
import os
import json

from .version import CONFIG_SCHEMA_VERSION
from .utils.loader import split_dotted_list
from .utils.parsing import is_absolute_http_url, normalize_url

logger = logging.getLogger(__name__)

DEFAULT_START_URL = "https://www.myntra.com/men-tshirts"


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed throughout the system.
    Keep it dataclass-only (no heavy deps) to stay upgrade-friendly.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    start_urls: List[str] = field(default_factory=lambda: [DEFAULT_START_URL])
    # Budget: stop once max_items are saved or page max_pages has been handled.
    max_items: int = 20
    max_pages: int = 10
    max_concurrency: int = 3
    request_timeout: float = 60.0
    retries: int = 5
    retry_backoff: float = 1.0
    # Jittered pre-request delay range plus an optional fixed extra delay (seconds).
    min_delay: float = 1.0
    max_delay: float = 3.0
    extra_delay: float = 0.0
    # Query parameter carrying the page number when no rel="next" link exists.
    page_param: str = "p"
    # Opaque to the core; handed to the engine's session pool.
    proxy_urls: List[str] = field(default_factory=list)
    max_pool_size: int = 50
    max_session_usage: int = 10
    max_session_errors: float = 3.0
    # Dotted paths for engine/exporter to allow runtime swapping without code changes.
    engine: str = "listing_crawler.engines.simple_engine:SimpleCrawlEngine"
    exporter: str = "listing_crawler.export.json_exporter:JSONExporter"
    # Extra extractors (dotted class paths) appended after the built-in strategies
    extra_extractors: List[str] = field(default_factory=list)
    # Where to write results
    output_path: str = "output/products.json"
    # Optional JSON Lines stream written batch by batch while crawling
    dataset_path: Optional[str] = None
    # Optional directory for raw HTML of blocked/empty pages
    debug_dir: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        urls = [u.strip() for u in _get("CRAWLER_START_URLS", "").split(",") if u.strip()]
        proxies = [p.strip() for p in _get("CRAWLER_PROXY_URLS", "").split(",") if p.strip()]

        return cls(
            start_urls=urls or [DEFAULT_START_URL],
            max_items=to_positive_int(_get("CRAWLER_MAX_ITEMS", ""), 20),
            max_pages=to_positive_int(_get("CRAWLER_MAX_PAGES", ""), 10),
            max_concurrency=to_positive_int(_get("CRAWLER_MAX_CONCURRENCY", ""), 3),
            request_timeout=float(_get("CRAWLER_REQUEST_TIMEOUT", "60.0")),
            retries=int(_get("CRAWLER_RETRIES", "5")),
            extra_delay=float(_get("CRAWLER_EXTRA_DELAY", "0")),
            proxy_urls=proxies,
            engine=_get("CRAWLER_ENGINE", "listing_crawler.engines.simple_engine:SimpleCrawlEngine"),
            exporter=_get("CRAWLER_EXPORTER", "listing_crawler.export.json_exporter:JSONExporter"),
            extra_extractors=split_dotted_list(_get("CRAWLER_EXTRA_EXTRACTORS", "")),
            output_path=_get("CRAWLER_OUTPUT_PATH", "output/products.json"),
            dataset_path=os.getenv("CRAWLER_DATASET_PATH") or None,
            debug_dir=os.getenv("CRAWLER_DEBUG_DIR") or None,
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Supports schema migration for future versions.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data = migrate_config(data)
        return cls(**data)

    @classmethod
    def from_input(cls, raw: Dict[str, Any]) -> "CrawlConfig":
        """
        Build config from actor-style input (``startUrls``/``startUrl``/``url``,
        ``results_wanted``/``maxItems``, ``maxPages``, ``requestDelay``,
        ``proxyConfiguration``). Unknown keys are ignored.
        """
        raw = raw or {}
        proxy_conf = raw.get("proxyConfiguration") or {}
        proxy_urls = proxy_conf.get("proxyUrls") if isinstance(proxy_conf, dict) else None

        supplied = [raw.get("startUrls"), raw.get("startUrl"), raw.get("url")]
        start_urls = normalize_start_urls(*supplied)
        if not start_urls:
            if any(supplied):
                logger.warning("No valid start URLs supplied; falling back to %s", DEFAULT_START_URL)
            start_urls = [DEFAULT_START_URL]

        return cls(
            start_urls=start_urls,
            max_items=to_positive_int(raw.get("results_wanted") or raw.get("maxItems"), 20),
            max_pages=to_positive_int(raw.get("maxPages") or raw.get("max_pages"), 10),
            max_concurrency=to_positive_int(raw.get("maxConcurrency"), 3),
            extra_delay=to_non_negative_float(raw.get("requestDelay"), 0.0),
            proxy_urls=[str(p) for p in proxy_urls or [] if p],
        )

    # ---------- Validation ----------

    def validate(self) -> None:
        self.start_urls = normalize_start_urls(self.start_urls)
        if not self.start_urls:
            raise ValueError("No valid start URLs provided.")
        if self.max_items <= 0:
            raise ValueError("max_items must be > 0")
        if self.max_pages <= 0:
            raise ValueError("max_pages must be > 0")
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.extra_delay < 0:
            raise ValueError("extra_delay must be >= 0")
        if not 0 <= self.min_delay <= self.max_delay:
            raise ValueError("delay range must satisfy 0 <= min_delay <= max_delay")
        # Validate output path parent exists or is creatable
        parent = Path(self.output_path).parent
        parent.mkdir(parents=True, exist_ok=True)


def normalize_start_urls(*groups: Any) -> List[str]:
    """
    Return the de-duplicated valid URLs of the first group that has any.
    A group is a URL string, a ``{"url": ...}`` object, or a list of either.
    """
    for group in groups:
        urls: List[str] = []
        for entry in _iter_entries(group):
            candidate = entry.get("url") if isinstance(entry, dict) else entry
            if isinstance(candidate, str) and is_absolute_http_url(candidate.strip()):
                url = normalize_url(candidate.strip())
                if url not in urls:
                    urls.append(url)
            else:
                logger.warning("Ignoring invalid start URL: %r", candidate)
        if urls:
            return urls
    return []


def _iter_entries(group: Any) -> Iterable[Any]:
    if not group:
        return []
    if isinstance(group, (list, tuple)):
        return group
    return [group]


def to_positive_int(value: Any, fallback: int) -> int:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if parsed != parsed or parsed in (float("inf"), float("-inf")) or parsed <= 0:
        return fallback
    return max(int(parsed), 1)


def to_non_negative_float(value: Any, fallback: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if parsed != parsed or parsed < 0 or parsed == float("inf"):
        return fallback
    return parsed


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    schema = raw.get("schema_version", 1)

    if schema < 2:
        # v1 crawled by link depth across domains; map what still has a meaning.
        if "max_depth" in raw and "max_pages" not in raw:
            raw["max_pages"] = max(int(raw["max_depth"]) + 1, 1)
        if "extra_adapters" in raw and "extra_extractors" not in raw:
            raw["extra_extractors"] = raw["extra_adapters"]
        raw["schema_version"] = 2

    known = {f.name for f in fields(CrawlConfig)}
    dropped = sorted(set(raw) - known)
    if dropped:
        logger.info("Ignoring unknown config keys: %s", ", ".join(dropped))
    return {k: v for k, v in raw.items() if k in known}
