from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup

from ..utils.parsing import is_absolute_http_url, to_absolute_url


def find_next_page(
    soup: BeautifulSoup,
    page_url: str,
    next_page_no: int,
    page_param: str = "p",
) -> Optional[str]:
    """
    Resolve the URL of the next listing page.

    An explicit ``rel="next"`` link (``<link>`` first, then ``<a>``) wins;
    otherwise ``page_param`` is set on the current URL. Returns ``None`` when
    no URL can be built. Callers must still guard against the result equalling
    ``page_url``.
    """
    for tag in ("link", "a"):
        node = soup.find(tag, attrs={"rel": "next", "href": True})
        if node is not None:
            resolved = to_absolute_url(node.get("href"), page_url)
            if resolved:
                return resolved
    return with_page_param(page_url, next_page_no, page_param)


def with_page_param(url: str, page_no: int, page_param: str = "p") -> Optional[str]:
    if not is_absolute_http_url(url):
        return None
    try:
        parts = urlparse(url)
    except ValueError:
        return None
    query = []
    replaced = False
    # Overwrite in place (first occurrence) so the rest of the query keeps its order.
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == page_param:
            if not replaced:
                query.append((key, str(page_no)))
                replaced = True
            continue
        query.append((key, value))
    if not replaced:
        query.append((page_param, str(page_no)))
    return urlunparse(parts._replace(query=urlencode(query)))
