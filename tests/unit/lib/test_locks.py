import asyncio

import pytest

from brenner.lib.locks import KeyedLock


@pytest.mark.asyncio
async def test_same_key_serialized():
    lock = KeyedLock()
    order = []

    async def worker(name):
        async with lock.hold("s1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"), worker("c"))
    assert order == ["a-in", "a-out", "b-in", "b-out", "c-in", "c-out"]


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    lock = KeyedLock()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with lock.hold("s1"):
            inside.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await inside.wait()
    assert lock.locked("s1")

    async with lock.hold("s2"):
        assert lock.locked("s1")
        assert lock.locked("s2")

    release.set()
    await task


@pytest.mark.asyncio
async def test_idle_locks_dropped():
    lock = KeyedLock()
    async with lock.hold("s1"):
        assert len(lock) == 1
    assert len(lock) == 0
    assert not lock.locked("s1")


@pytest.mark.asyncio
async def test_released_on_error():
    lock = KeyedLock()
    with pytest.raises(RuntimeError):
        async with lock.hold("s1"):
            raise RuntimeError("boom")
    async with asyncio.timeout(1):
        async with lock.hold("s1"):
            pass
