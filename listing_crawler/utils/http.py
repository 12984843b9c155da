from __future__ import annotations

from typing import Mapping, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout
import logging

logger = logging.getLogger(__name__)

# Status codes that anti-bot layers typically answer with; surfaced as retryable errors.
BLOCKING_STATUSES = frozenset({403, 429, 503})


async def fetch_text(
    session: ClientSession,
    url: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = 30.0,
    proxy: Optional[str] = None,
) -> str:
    """
    Fetch a URL and return body text. Raises on network errors and non-2xx
    responses; retrying is the engine's job.
    """
    async with session.get(
        url,
        headers=dict(headers or {}),
        timeout=ClientTimeout(total=timeout),
        proxy=proxy,
    ) as resp:
        if resp.status in BLOCKING_STATUSES:
            logger.debug("Got blocking status %s for %s", resp.status, url)
        resp.raise_for_status()
        return await resp.text()


def create_session() -> ClientSession:
    """
    Create an aiohttp ClientSession with its own cookie jar.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency managed by the engine
    return aiohttp.ClientSession(connector=connector, cookie_jar=aiohttp.CookieJar())
