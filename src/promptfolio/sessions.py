"""Server-side browser sessions.

A browser session is identified by the opaque id in its signed cookie. It
owns the redirect-surviving key-value store, the OAuth credential and
identity once authenticated, and the deployments started from it. All of
it lives in process memory and is dropped on logout, on expiry, or at
shutdown. Dropping a session closes its deployments, which stops their
tickers.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable

from promptfolio.deployment.orchestrator import DeploymentOrchestrator
from promptfolio.inmemory import InMemoryKeyValueStore
from promptfolio.profile.models import Identity, Profile

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 3600 * 8
SESSION_SWEEP_INTERVAL_SECONDS = 60.0


@dataclass
class BrowserSession:
    session_id: str
    expires_at: float = 0.0
    store: InMemoryKeyValueStore = field(default_factory=InMemoryKeyValueStore)
    identity: Identity | None = None
    credential: str | None = field(default=None, repr=False)
    pending_profile: Profile | None = None
    deployments: dict[str, DeploymentOrchestrator] = field(default_factory=dict)
    tasks: set[asyncio.Task] = field(default_factory=set, repr=False)

    @property
    def authenticated(self) -> bool:
        return self.identity is not None and bool(self.credential)

    def track(self, task: asyncio.Task) -> None:
        """Keep a reference to a background task until it finishes."""
        self.tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self.tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                'Background deployment task failed',
                exc_info=exc,
                extra={'session_id': self.session_id},
            )

    async def close(self) -> None:
        for orchestrator in list(self.deployments.values()):
            await orchestrator.close()
        self.deployments.clear()
        self.credential = None


class SessionRegistry:
    """In-memory map of session id -> ``BrowserSession``.

    A session expires ``ttl_seconds`` after its cookie was last issued
    (see ``extend``). Expired sessions are invisible to ``get`` and are
    closed by ``sweep``, which runs on every ``create`` and periodically
    from the app lifespan.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions: dict[str, BrowserSession] = {}
        self._ttl = ttl_seconds
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(self) -> BrowserSession:
        await self.sweep()
        session = BrowserSession(
            session_id=f'sess_{uuid.uuid4().hex}',
            expires_at=self._clock() + self._ttl,
        )
        self._sessions[session.session_id] = session
        return session

    def extend(self, session: BrowserSession, expires_at: float) -> None:
        """Align the session's expiry with a freshly issued cookie."""
        session.expires_at = max(session.expires_at, expires_at)

    def get(self, session_id: str | None) -> BrowserSession | None:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None or self._expired(session):
            return None
        return session

    def find_deployment(
        self,
        session: BrowserSession,
        deployment_id: str,
    ) -> DeploymentOrchestrator | None:
        return session.deployments.get(deployment_id)

    async def drop(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            await session.close()

    async def sweep(self) -> int:
        """Close and forget every expired session; return how many."""
        expired = [s.session_id for s in self._sessions.values() if self._expired(s)]
        for session_id in expired:
            await self.drop(session_id)
        if expired:
            logger.info('Evicted %d expired sessions', len(expired))
        return len(expired)

    async def sweep_periodically(
        self,
        interval: float = SESSION_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception('Session sweep failed')

    async def drain(self) -> None:
        """Wait for every pending background task across sessions."""
        tasks = [t for s in self._sessions.values() for t in s.tasks]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.drop(session_id)

    def _expired(self, session: BrowserSession) -> bool:
        return session.expires_at <= self._clock()
