"""Tests for InMemoryTemporalIndex."""

from datetime import datetime, timedelta, timezone

import pytest

from casual_recall.models import Memory
from casual_recall.retrieval import InMemoryTemporalIndex, TemporalSource

BASE = datetime(2024, 1, 1, 9, 0, 0)


@pytest.fixture
def timeline():
    index = InMemoryTemporalIndex()
    for day in range(5):
        index.index(Memory(id=f"day{day}", content=f"day {day}", timestamp=BASE + timedelta(days=day)))
    return index


def test_satisfies_protocol(timeline):
    assert isinstance(timeline, TemporalSource)


@pytest.mark.asyncio
async def test_window_is_inclusive_and_ordered(timeline):
    memories = await timeline.memories_between(BASE + timedelta(days=1), BASE + timedelta(days=3))

    assert [memory.id for memory in memories] == ["day1", "day2", "day3"]


@pytest.mark.asyncio
async def test_inverted_window_is_empty(timeline):
    assert await timeline.memories_between(BASE + timedelta(days=3), BASE) == []


@pytest.mark.asyncio
async def test_reindex_moves_memory(timeline):
    timeline.index(Memory(id="day0", content="moved", timestamp=BASE + timedelta(days=10)))

    early = await timeline.memories_between(BASE, BASE + timedelta(hours=1))
    late = await timeline.memories_between(BASE + timedelta(days=9), BASE + timedelta(days=11))

    assert early == []
    assert [memory.content for memory in late] == ["moved"]
    assert len(timeline) == 5


@pytest.mark.asyncio
async def test_remove(timeline):
    assert timeline.remove("day2")
    assert not timeline.remove("day2")

    memories = await timeline.memories_between(BASE, BASE + timedelta(days=10))

    assert "day2" not in [memory.id for memory in memories]
    assert "day2" not in timeline
    assert len(timeline) == 4


def test_same_timestamp_entries_coexist():
    index = InMemoryTemporalIndex()
    index.index(Memory(id="b", content="b", timestamp=BASE))
    index.index(Memory(id="a", content="a", timestamp=BASE))

    index.remove("b")

    assert "a" in index
    assert index.get("a").content == "a"


@pytest.mark.asyncio
async def test_aware_window_and_timestamps(timeline):
    utc_moment = (BASE + timedelta(days=6)).astimezone(timezone.utc)
    timeline.index(Memory(id="utc", content="utc", timestamp=utc_moment))

    window = (utc_moment - timedelta(minutes=1), utc_moment + timedelta(minutes=1))
    memories = await timeline.memories_between(*window)

    assert [memory.id for memory in memories] == ["utc"]
    assert timeline.get("utc").timestamp == BASE + timedelta(days=6)
