"""Rotating pool of browsing identities (cookie jar + proxy) with retirement."""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Set

from aiohttp import ClientSession

from ..utils.http import create_session

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


@dataclass
class Session:
    """
    One logical browser identity. Owns its own aiohttp session (and so its own
    cookies), created lazily so tests with a fake fetcher never open sockets.
    """
    max_usage_count: int = 10
    max_error_score: float = 3.0
    proxy_url: Optional[str] = None
    id: str = field(default_factory=lambda: f"session_{next(_session_ids)}")
    usage_count: int = 0
    error_score: float = 0.0
    client_factory: Callable[[], ClientSession] = field(default=create_session, repr=False)
    _client: Optional[ClientSession] = field(default=None, repr=False)

    @property
    def client(self) -> ClientSession:
        if self._client is None or self._client.closed:
            self._client = self.client_factory()
        return self._client

    @property
    def has_open_client(self) -> bool:
        return self._client is not None and not self._client.closed

    @property
    def is_usable(self) -> bool:
        return self.usage_count < self.max_usage_count and self.error_score < self.max_error_score

    def mark_good(self) -> None:
        self.usage_count += 1
        self.error_score = max(self.error_score - 0.5, 0.0)

    def mark_bad(self) -> None:
        self.usage_count += 1
        self.error_score += 1.0

    def retire(self) -> None:
        # Make the session unusable immediately (e.g. after a block page).
        self.error_score = self.max_error_score

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None and not client.closed:
            await client.close()


class SessionPool:
    """
    Hands out sessions. Grows until ``max_pool_size``, then picks randomly among
    usable sessions; exhausted sessions are retired and replaced. A retired
    session's client is closed right away when an event loop is running.
    """

    def __init__(
        self,
        *,
        max_pool_size: int = 50,
        max_usage_count: int = 10,
        max_error_score: float = 3.0,
        proxy_urls: Sequence[str] = (),
        client_factory: Callable[[], ClientSession] = create_session,
    ) -> None:
        self.max_pool_size = max(max_pool_size, 1)
        self.max_usage_count = max_usage_count
        self.max_error_score = max_error_score
        self.client_factory = client_factory
        self._proxies = itertools.cycle(list(proxy_urls)) if proxy_urls else None
        self._sessions: List[Session] = []
        self._retired: List[Session] = []
        self._closing: Set[asyncio.Task] = set()

    @property
    def sessions(self) -> List[Session]:
        return list(self._sessions)

    @property
    def retired_count(self) -> int:
        return len(self._retired)

    def get_session(self) -> Session:
        self._retire_unusable()
        if len(self._sessions) < self.max_pool_size:
            return self._create_session()
        return random.choice(self._sessions)

    def _create_session(self) -> Session:
        session = Session(
            max_usage_count=self.max_usage_count,
            max_error_score=self.max_error_score,
            proxy_url=next(self._proxies) if self._proxies else None,
            client_factory=self.client_factory,
        )
        self._sessions.append(session)
        logger.debug("Created %s (pool size %s)", session.id, len(self._sessions))
        return session

    def _retire_unusable(self) -> None:
        keep: List[Session] = []
        for session in self._sessions:
            if session.is_usable:
                keep.append(session)
            else:
                logger.debug(
                    "Retiring %s (usage=%s, errors=%.1f)", session.id, session.usage_count, session.error_score
                )
                self._retired.append(session)
                self._schedule_close(session)
        self._sessions = keep

    def _schedule_close(self, session: Session) -> None:
        if not session.has_open_client:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: close() picks it up at shutdown.
            return
        task = loop.create_task(session.close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def close(self) -> None:
        if self._closing:
            await asyncio.gather(*list(self._closing))
        for session in [*self._sessions, *self._retired]:
            await session.close()
