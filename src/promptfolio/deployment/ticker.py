"""Cancellable repeating tick.

``Ticker`` calls a synchronous callback every ``interval`` seconds from a
background task. It is acquired on entry to the waiting phase and must be
released on every exit path; use it as an async context manager or call
``start``/``stop`` explicitly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class TickerLike(Protocol):
    @property
    def running(self) -> bool: ...

    def start(self) -> None: ...

    async def stop(self) -> None: ...


TickerFactory = Callable[[TickCallback], TickerLike]


class Ticker:
    def __init__(self, callback: TickCallback, *, interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError('interval must be > 0')
        self._callback = callback
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._callback()
            except Exception:
                logger.exception('Tick callback failed')

    async def __aenter__(self) -> Ticker:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()


def default_ticker_factory(callback: TickCallback) -> Ticker:
    return Ticker(callback)
