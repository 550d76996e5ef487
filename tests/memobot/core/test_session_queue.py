"""Tests for SessionSerializer."""

import asyncio

import pytest

from memobot.core.session_queue import SessionSerializer


@pytest.mark.asyncio
async def test_tasks_for_one_key_run_in_enqueue_order():
    serializer = SessionSerializer()
    events = []

    def make(name, delay):
        async def task():
            events.append(f"start {name}")
            await asyncio.sleep(delay)
            events.append(f"end {name}")

        return task

    first = serializer.enqueue("telegram:1", make("a", 0.05))
    second = serializer.enqueue("telegram:1", make("b", 0))
    await asyncio.gather(first, second)

    assert events == ["start a", "end a", "start b", "end b"]


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    serializer = SessionSerializer()
    started = asyncio.Event()
    order = []

    async def slow():
        await started.wait()
        order.append("slow")

    async def fast():
        order.append("fast")
        started.set()

    slow_future = serializer.enqueue("telegram:1", slow)
    fast_future = serializer.enqueue("telegram:2", fast)
    await asyncio.wait_for(asyncio.gather(slow_future, fast_future), timeout=1)

    assert order == ["fast", "slow"]


@pytest.mark.asyncio
async def test_failed_task_does_not_block_the_chain():
    serializer = SessionSerializer()
    ran = []

    async def boom():
        raise RuntimeError("boom")

    async def after():
        ran.append("after")

    failed = serializer.enqueue("whatsapp:1", boom)
    following = serializer.enqueue("whatsapp:1", after)
    await asyncio.gather(failed, following)

    assert ran == ["after"]
    assert failed.exception() is None


@pytest.mark.asyncio
async def test_keys_are_released_once_drained():
    serializer = SessionSerializer()

    async def noop():
        return None

    await serializer.enqueue("chat:1", noop)
    await asyncio.sleep(0)

    assert serializer.pending_keys() == 0
