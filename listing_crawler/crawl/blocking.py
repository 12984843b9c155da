from __future__ import annotations

from typing import Optional, Sequence

from bs4 import BeautifulSoup

# Case-sensitive title fragments of denial, challenge and bot-check pages.
BLOCK_MARKERS: Sequence[str] = (
    "Access Denied",
    "Captcha",
    "Robot Check",
    "Attention Required",
    "Are you a robot",
)


class BlockedPageError(RuntimeError):
    """Raised for a blocked page so the engine retries it on a different session."""

    def __init__(self, url: str, marker: str) -> None:
        super().__init__(f"Blocked page at {url} (title matched {marker!r})")
        self.url = url
        self.marker = marker


def page_title(soup: BeautifulSoup) -> str:
    title = soup.find("title")
    return title.get_text() if title else ""


def detect_block(soup: BeautifulSoup, markers: Sequence[str] = BLOCK_MARKERS) -> Optional[str]:
    """Return the first marker found in the page title, or ``None`` for a normal page."""
    title = page_title(soup)
    if not title:
        return None
    for marker in markers:
        if marker in title:
            return marker
    return None
