"""Unit tests for the asyncio read/write lock."""

import asyncio

import pytest

from casual_recall.utils.locks import AsyncReadWriteLock


@pytest.mark.asyncio
async def test_readers_share_the_lock():
    lock = AsyncReadWriteLock()

    async with lock.read():
        async with lock.read():
            assert lock.readers == 2

    assert lock.readers == 0


@pytest.mark.asyncio
async def test_writer_waits_for_readers():
    lock = AsyncReadWriteLock()
    events = []

    async def writer():
        async with lock.write():
            events.append("write")

    async with lock.read():
        task = asyncio.create_task(writer())
        await asyncio.sleep(0.01)
        assert events == []
        events.append("read-done")

    await task
    assert events == ["read-done", "write"]


@pytest.mark.asyncio
async def test_waiting_writer_blocks_new_readers():
    lock = AsyncReadWriteLock()
    events = []

    async def writer():
        async with lock.write():
            events.append("write")

    async def reader():
        async with lock.read():
            events.append("late-read")

    async with lock.read():
        write_task = asyncio.create_task(writer())
        await asyncio.sleep(0.01)
        read_task = asyncio.create_task(reader())
        await asyncio.sleep(0.01)
        assert events == []

    await asyncio.gather(write_task, read_task)
    assert events == ["write", "late-read"]


@pytest.mark.asyncio
async def test_writers_are_exclusive():
    lock = AsyncReadWriteLock()
    active = 0
    peak = 0

    async def writer():
        nonlocal active, peak
        async with lock.write():
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.001)
            active -= 1

    await asyncio.gather(*(writer() for _ in range(5)))

    assert peak == 1
    assert not lock.writing


@pytest.mark.asyncio
async def test_cancelled_writer_releases_waiting_readers():
    lock = AsyncReadWriteLock()

    await lock.acquire_read()
    writer = asyncio.create_task(lock.acquire_write())
    await asyncio.sleep(0.01)

    reader = asyncio.create_task(lock.acquire_read())
    await asyncio.sleep(0.01)
    assert not reader.done()

    writer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await writer

    await asyncio.wait_for(reader, timeout=1)
    assert lock.readers == 2
