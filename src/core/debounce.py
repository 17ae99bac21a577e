"""Per-key debounced task scheduling (core domain).

Each (guild_id, user_id) key owns at most one pending unit of work. A new
event for the key cancels the previous unit and starts a fresh quiescence
window, so a burst of presence updates collapses into one reconciliation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Hashable, Optional

LOGGER = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag handed to a unit of work."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds; return False as soon as the token is cancelled."""

        if self.cancelled:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def race(self, awaitable: Awaitable[None]) -> bool:
        """Await ``awaitable`` unless cancelled first; return True if it completed."""

        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return False
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if work in done:
            work.result()
            return True
        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        return False


Work = Callable[[CancelToken], Awaitable[None]]


@dataclass(eq=False)
class DebounceTask:
    """Registry entry: the token and task of the live unit for one key."""

    token: CancelToken = field(default_factory=CancelToken)
    task: Optional[asyncio.Task] = None


class DebounceRegistry:
    """Owns at most one live unit of work per key.

    The registry lock is held only while inserting, cancelling, or removing
    entries, never across the sleep or the work itself.
    """

    def __init__(self, delay: float) -> None:
        self._delay = delay
        self._entries: Dict[Hashable, DebounceTask] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    async def schedule(self, key: Hashable, work: Work) -> DebounceTask:
        """Replace any pending unit for ``key`` with a new one running ``work``."""

        async with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                previous.token.cancel()
                LOGGER.debug("Debounce replaced pending work for %s", key)
            entry = DebounceTask()
            entry.task = asyncio.create_task(self._run(key, entry, work))
            self._entries[key] = entry
        return entry

    async def cancel_all(self) -> None:
        async with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            entry.token.cancel()
        tasks = [entry.task for entry in entries if entry.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def join(self) -> None:
        """Wait until every unit scheduled so far has finished."""

        while True:
            async with self._lock:
                tasks = [entry.task for entry in self._entries.values() if entry.task is not None]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, key: Hashable, entry: DebounceTask, work: Work) -> None:
        try:
            if not await entry.token.sleep(self._delay):
                LOGGER.debug("Debounced work for %s cancelled before start", key)
                return
            await work(entry.token)
        except asyncio.CancelledError:
            LOGGER.debug("Debounced work for %s aborted", key)
            raise
        except Exception:
            LOGGER.exception("Debounced work for %s failed", key)
        finally:
            async with self._lock:
                # Only drop our own entry; a newer event may already own the key.
                if self._entries.get(key) is entry:
                    del self._entries[key]
