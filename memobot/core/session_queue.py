"""
Per-session ordering primitive.

Each key maps to the future of the last task enqueued for it. A new task waits
for that tail before starting, so tasks for one key run one at a time in
enqueue order while different keys proceed concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


class SessionSerializer:
    """Single-process, best-effort sequencer. Not durable across restarts."""

    def __init__(self) -> None:
        self._tails: Dict[Hashable, asyncio.Future] = {}

    def enqueue(self, key: Hashable, task: Task) -> asyncio.Future:
        """
        Chain ``task`` after everything already queued for ``key``.

        The returned future resolves when the task finishes. Task errors are
        logged and swallowed so one failure never wedges the chain.
        """
        previous = self._tails.get(key)
        future = asyncio.ensure_future(self._run_after(key, previous, task))
        self._tails[key] = future
        future.add_done_callback(lambda f: self._release(key, f))
        return future

    async def _run_after(
        self, key: Hashable, previous: Optional[asyncio.Future], task: Task
    ) -> None:
        if previous is not None and not previous.done():
            # wait() never raises for the awaited future's exception or cancellation.
            await asyncio.wait([previous])
        try:
            await task()
        except Exception:
            logger.exception("Session task failed for %s", key)

    def _release(self, key: Hashable, future: asyncio.Future) -> None:
        if self._tails.get(key) is future:
            del self._tails[key]

    def pending_keys(self) -> int:
        return len(self._tails)
