"""
Markstyle Core: Autosave

Trailing-edge debounce over an async save callable. Every touch() restarts
the window; when the window elapses without another touch, one save runs.
Saves never overlap: a save that comes due while the previous one is still
in flight waits for it, then writes its own (fresher) snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from engine.core.types import AUTOSAVE_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Autosaver:
    """
    Debounced saver.

    `save` takes no arguments: it reads the freshest state when it actually
    runs. Exceptions from `save` are passed to `on_error` (or logged) and
    never escape the background task.
    """

    def __init__(
        self,
        save: Callable[[], Awaitable[None]],
        delay: float = AUTOSAVE_DELAY,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._save = save
        self.delay = delay
        self._on_error = on_error
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        """A save is scheduled but its window has not elapsed yet."""
        return self._handle is not None

    def touch(self) -> None:
        """Record a mutation: (re)start the debounce window."""
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Forget a scheduled save. In-flight saves still complete."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def flush(self) -> None:
        """Run a scheduled save now instead of waiting for the window."""
        if self._handle is None:
            return
        self.cancel()
        await self._run()

    async def run_exclusive(self, write: Callable[[], Awaitable[T]]) -> T:
        """Run another write to the same target. It never overlaps a save."""
        async with self._lock:
            return await write()

    async def wait_idle(self) -> None:
        """Wait for saves already started to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        async with self._lock:
            try:
                await self._save()
            except Exception as e:
                if self._on_error is not None:
                    self._on_error(e)
                else:
                    logger.exception("autosave: save failed")
