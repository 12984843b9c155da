from __future__ import annotations

import math
import re
from numbers import Real
from typing import Any, List, Optional
from urllib.parse import urljoin, urlparse, urlunparse

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_ID_IN_PATH_RE = re.compile(r"/(\d+)\b")


def clean_text(value: Any) -> str:
    """Collapse runs of whitespace and trim. ``None`` becomes an empty string."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a price/rating/count-like value.

    Numbers pass through unchanged. Strings lose their thousands separators and
    yield the first signed decimal found in them ("1,234.5 units" -> 1234.5).
    Anything unparseable, non-finite or boolean yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return value if math.isfinite(value) else None

    text = clean_text(value)
    if not text:
        return None
    match = _NUMBER_RE.search(text.replace(",", ""))
    if not match:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def parse_rating_count_from_text(text: Optional[str]) -> Optional[float]:
    """Read the count out of combined "4.3 | 1,204" rating text."""
    if not text:
        return None
    parts = text.split("|")
    if len(parts) < 2:
        return None
    return parse_number(parts[1])


def parse_sizes(value: Any) -> Optional[List[str]]:
    """Split "S, M, L" into ["S", "M", "L"]; empty input gives ``None``, never ``[]``."""
    text = clean_text(value)
    if not text:
        return None
    sizes = [part.strip() for part in text.split(",") if part.strip()]
    return sizes or None


def is_absolute_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def to_absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve ``href`` against ``base_url``; ``None`` when the result is not a usable http(s) URL."""
    href = clean_text(href)
    if not href:
        return None
    try:
        resolved = urljoin(base_url, href)
    except ValueError:
        return None
    return resolved if is_absolute_http_url(resolved) else None


def normalize_url(url: str) -> str:
    """
    Normalize URL by removing fragments. Used for request de-duplication.
    """
    parts = list(urlparse(url))
    parts[5] = ""  # strip fragment
    return urlunparse(parts)


def extract_id_from_url(url: Optional[str]) -> Optional[str]:
    """First run of digits following a path separator, e.g. ``/tshirts/roadster/12345/buy``."""
    if not url:
        return None
    match = _ID_IN_PATH_RE.search(url)
    return match.group(1) if match else None
