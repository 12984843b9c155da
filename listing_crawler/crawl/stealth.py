"""Browser-consistent request headers and jittered pacing for each request.

Headers come from browserforge's fingerprint-backed generator, restricted to
desktop Chrome/Firefox on Windows/macOS with English locales. Each browser
family gets its own generator so both stay in rotation whatever versions the
bundled fingerprint dataset currently covers. Client hints are then overlaid
to match the browser that was actually chosen.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import Awaitable, Callable, Dict, Optional, Protocol, Sequence

from browserforge.headers import Browser, HeaderGenerator

from ..engines.base import CrawlTask
from ..engines.sessions import Session

logger = logging.getLogger(__name__)

BROWSER_FAMILIES = ("chrome", "firefox")
OPERATING_SYSTEMS = ("windows", "macos")
LOCALES = ("en-US", "en")
# How many major versions back from the newest one in the fingerprint dataset.
RECENT_MAJOR_VERSIONS = 12

NAVIGATION_HEADERS = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "accept-language": "en-US,en;q=0.9",
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
}

_CHROME_RE = re.compile(r"Chrome/(\d+)")
_FIREFOX_RE = re.compile(r"Firefox/(\d+)")


class HeaderSource(Protocol):
    def generate(self) -> Dict[str, str]:
        ...


def _family_generator(name: str, recent_majors: int) -> HeaderGenerator:
    def build(browser) -> HeaderGenerator:
        return HeaderGenerator(browser=browser, os=OPERATING_SYSTEMS, device="desktop", locale=LOCALES)

    unbounded = build(name)
    versions = [b.version[0] for b in unbounded.unique_browsers if b.name == name and b.version]
    if not versions:
        return unbounded
    newest = max(versions)
    return build([Browser(name=name, min_version=newest - recent_majors + 1, max_version=newest)])


class RotatingHeaderGenerator:
    """
    One browserforge generator per browser family, picked at random per request.
    A single multi-browser generator follows the dataset's market share and
    almost never yields the minority family. Each family is limited to its
    newest ``recent_majors`` major versions present in the dataset.
    """

    def __init__(
        self,
        families: Sequence[str] = BROWSER_FAMILIES,
        *,
        recent_majors: int = RECENT_MAJOR_VERSIONS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._generators = {name: _family_generator(name, recent_majors) for name in families}
        self._rng = rng or random.Random()

    @property
    def families(self) -> Sequence[str]:
        return tuple(self._generators)

    def generate(self) -> Dict[str, str]:
        family = self._rng.choice(list(self._generators))
        return dict(self._generators[family].generate())


def default_header_generator(rng: Optional[random.Random] = None) -> RotatingHeaderGenerator:
    return RotatingHeaderGenerator(BROWSER_FAMILIES, rng=rng)


def browser_family(user_agent: str) -> Optional[str]:
    if _FIREFOX_RE.search(user_agent):
        return "firefox"
    if _CHROME_RE.search(user_agent):
        return "chrome"
    return None


def _platform(user_agent: str) -> str:
    if "Macintosh" in user_agent or "Mac OS X" in user_agent:
        return '"macOS"'
    return '"Windows"'


def client_hints(user_agent: str) -> Dict[str, str]:
    """Client hints matching ``user_agent``; empty for browsers that do not send them."""
    match = _CHROME_RE.search(user_agent)
    if browser_family(user_agent) != "chrome" or not match:
        return {}
    major = match.group(1)
    return {
        "sec-ch-ua": f'"Chromium";v="{major}", "Google Chrome";v="{major}", "Not?A_Brand";v="24"',
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": _platform(user_agent),
    }


def _set(headers: Dict[str, str], name: str, value: str) -> None:
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


class StealthHeaders:
    """
    Builds one internally consistent header set per request and paces requests
    with a random ``uniform(min_delay, max_delay) + extra_delay`` pause.
    """

    def __init__(
        self,
        generator: Optional[HeaderSource] = None,
        *,
        min_delay: float = 1.0,
        max_delay: float = 3.0,
        extra_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._generator = generator
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.extra_delay = extra_delay
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def generator(self) -> HeaderSource:
        if self._generator is None:
            self._generator = default_header_generator()
        return self._generator

    def build_headers(self) -> Dict[str, str]:
        headers = dict(self.generator.generate())
        user_agent = next((v for k, v in headers.items() if k.lower() == "user-agent"), "")

        for name in [k for k in headers if k.lower().startswith("sec-ch-ua")]:
            del headers[name]
        for name, value in {**NAVIGATION_HEADERS, **client_hints(user_agent)}.items():
            _set(headers, name, value)
        return headers

    def next_delay(self) -> float:
        return self._rng.uniform(self.min_delay, self.max_delay) + self.extra_delay

    async def __call__(self, task: CrawlTask, session: Session, headers: Dict[str, str]) -> None:
        """Pre-navigation hook: fill ``headers`` in place, then wait before the request goes out."""
        headers.clear()
        headers.update(self.build_headers())
        delay = self.next_delay()
        logger.debug("Waiting %.2fs before %s (%s)", delay, task.url, session.id)
        if delay > 0:
            await self._sleep(delay)
