from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from memobot.core.errors import TransientDependencyFailure

T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, what: str) -> T:
    """Await an external call, converting a timeout into TransientDependencyFailure."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransientDependencyFailure(f"{what} timed out after {timeout}s") from e
