"""Raw-page snapshots for offline inspection of blocked or empty pages."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class DiagnosticStore:
    """
    Writes page markup under a page-scoped key (``page-3-blocked.html``).

    Disabled when constructed without a directory; ``save`` then returns ``None``.
    Write failures are logged and never interrupt the crawl.
    """

    def __init__(self, directory: Optional[str] = None) -> None:
        self.directory = Path(directory) if directory else None

    @property
    def enabled(self) -> bool:
        return self.directory is not None

    def save(self, key: str, html: str) -> Optional[Path]:
        if self.directory is None:
            return None
        safe_key = _UNSAFE_KEY_CHARS.sub("_", key).strip("_") or "page"
        path = self.directory / f"{safe_key}.html"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write diagnostic snapshot %s: %r", path, exc)
            return None
        logger.debug("Saved diagnostic snapshot %s", path)
        return path
