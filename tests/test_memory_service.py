"""
Unit tests for MemoryService.

Uses a real in-memory vector database with a keyword-based fake embedding so
storage, retrieval and forgetting can be verified end to end.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from casual_recall.config import IndexType, VectorDatabaseConfig
from casual_recall.memory_service import MemoryService
from casual_recall.models import Memory, PersonContext
from casual_recall.vector_database import VectorDatabase

TOPICS = {
    "coffee": [1.0, 0.0, 0.0],
    "run": [0.0, 1.0, 0.0],
    "work": [0.0, 0.0, 1.0],
}


class KeywordEmbedding:
    """Maps text to a fixed vector by the first topic keyword it mentions."""

    dimension = 3
    model_name = "keyword-test"

    def _vector(self, text):
        for topic, vector in TOPICS.items():
            if topic in text.lower():
                return list(vector)
        return [0.5, 0.5, 0.5]

    async def embed_document(self, text):
        return self._vector(text)

    async def embed_query(self, text):
        return self._vector(text)

    async def embed_documents(self, texts):
        return [self._vector(text) for text in texts]


@pytest_asyncio.fixture
async def database():
    db = VectorDatabase(VectorDatabaseConfig(db_path=":memory:", dimension=3, index_type=IndexType.FLAT))
    await db.open()
    yield db
    await db.close()


@pytest.fixture
def memory_service(database):
    return MemoryService(database, KeywordEmbedding())


@pytest.mark.asyncio
async def test_store_embeds_and_indexes(memory_service, database):
    alice = PersonContext(id="alice", name="Alice")
    memory = Memory(id="m1", content="Coffee with Alice", people=[alice], tags=["coffee"])

    stored = await memory_service.store(memory)

    assert stored.embedding == TOPICS["coffee"]
    assert await database.count() == 1
    assert "m1" in memory_service.temporal_index
    assert memory_service.knowledge_graph.get_memory("m1") is not None
    metadata = await database.get_metadata("m1")
    assert metadata["content"] == "Coffee with Alice"
    assert metadata["importance"] == pytest.approx(stored.importance)


@pytest.mark.asyncio
async def test_near_duplicates_lower_importance(memory_service):
    now = datetime.now()
    first = await memory_service.store(Memory(id="a", content="Went for a run", timestamp=now))
    second = await memory_service.store(Memory(id="b", content="Another run today", timestamp=now))

    assert second.importance < first.importance
    assert first.importance - second.importance == pytest.approx(0.1 * 0.2, abs=1e-3)


@pytest.mark.asyncio
async def test_store_failure_propagates(database):
    embedding = Mock()
    embedding.embed_document = AsyncMock(side_effect=RuntimeError("model offline"))
    service = MemoryService(database, embedding)

    with pytest.raises(RuntimeError):
        await service.store(Memory(content="anything"))

    assert await database.count() == 0


@pytest.mark.asyncio
async def test_recall_end_to_end(memory_service):
    await memory_service.store(Memory(id="coffee", content="Coffee at the corner cafe"))
    await memory_service.store(Memory(id="run", content="Morning run in the park"))
    await memory_service.store(Memory(id="work", content="Work meeting about budgets"))

    memories = await memory_service.recall("Where did I get coffee?")

    assert memories[0].id == "coffee"
    assert memory_service._access_counts["coffee"] == 1


@pytest.mark.asyncio
async def test_recall_failure_returns_empty(database):
    orchestrator = Mock()
    orchestrator.retrieve = AsyncMock(side_effect=RuntimeError("retrieval broke"))
    service = MemoryService(database, KeywordEmbedding(), orchestrator=orchestrator)

    assert await service.recall("anything") == []


@pytest.mark.asyncio
async def test_build_prompt_includes_recalled_memories(memory_service):
    await memory_service.store(Memory(content="Coffee with Sam", tags=["coffee"]))

    prompt = await memory_service.build_prompt("coffee plans?")

    assert prompt.startswith("Query: coffee plans?")
    assert "Coffee with Sam" in prompt
    assert "Tags: coffee" in prompt


@pytest.mark.asyncio
async def test_forget_removes_everywhere(memory_service, database):
    await memory_service.store(Memory(id="m1", content="Coffee", tags=["coffee"]))

    await memory_service.forget("m1")

    assert await database.count() == 0
    assert "m1" not in memory_service.temporal_index
    assert memory_service.knowledge_graph.get_memory("m1") is None


@pytest.mark.asyncio
async def test_load_rebuilds_timeline_and_graph(memory_service, database):
    await memory_service.store(Memory(id="m1", content="Coffee", tags=["coffee"]))
    await memory_service.store(Memory(id="m2", content="Run", tags=["run"]))

    fresh = MemoryService(database, KeywordEmbedding())
    loaded = await fresh.load()

    assert loaded == 2
    assert len(fresh.temporal_index) == 2
    assert [memory.id for memory in await fresh.knowledge_graph.find_related("run")] == ["m2"]


@pytest.mark.asyncio
async def test_forget_old_memories_keeps_important_ones(memory_service, database):
    old = datetime.now() - timedelta(days=400)
    await memory_service.store(Memory(id="trivial", content="Work notes", timestamp=old))
    await memory_service.store(
        Memory(
            id="wedding",
            content="Coffee at the wedding",
            timestamp=old,
            people=[PersonContext(name=f"guest {i}") for i in range(10)],
        )
    )

    forgotten = await memory_service.forget_old_memories(
        timedelta(days=1), now=datetime.now() + timedelta(days=2)
    )

    assert forgotten == ["trivial"]
    assert await database.count() == 1
    assert "trivial" not in memory_service.temporal_index


@pytest.mark.asyncio
async def test_forget_old_memories_skips_recent_rows(memory_service, database):
    old = datetime.now() - timedelta(days=400)
    await memory_service.store(Memory(id="trivial", content="Work notes", timestamp=old))

    assert await memory_service.forget_old_memories(timedelta(days=1)) == []
    assert await database.count() == 1


@pytest.mark.asyncio
async def test_export_memories(memory_service):
    await memory_service.store(Memory(id="m1", content="Coffee", tags=["coffee"]))

    export = json.loads(await memory_service.export_memories())

    assert export["metadata"]["version"] == "1.0"
    assert export["metadata"]["total_memories"] == 1
    assert export["memories"][0]["id"] == "m1"
    assert export["memories"][0]["embedding"] == pytest.approx(TOPICS["coffee"])
    assert export["memories"][0]["tags"] == ["coffee"]


@pytest.mark.asyncio
async def test_store_aware_timestamp_next_to_naive(memory_service, database):
    await memory_service.store(Memory(id="naive", content="Coffee at home"))
    aware = await memory_service.store(
        Memory(id="aware", content="Run by the river", timestamp=datetime.now(timezone.utc), tags=["run"])
    )

    assert aware.timestamp.tzinfo is None
    assert await database.count() == 2
    assert "aware" in memory_service.temporal_index
    assert memory_service.knowledge_graph.get_memory("aware") is not None
    assert (await database.get_metadata("aware"))["importance"] == pytest.approx(aware.importance)

    now = datetime.now(timezone.utc)
    recent = await memory_service.temporal_index.memories_between(
        now - timedelta(hours=1), now + timedelta(hours=1)
    )
    assert {memory.id for memory in recent} == {"naive", "aware"}


@pytest.mark.asyncio
async def test_store_failure_leaves_no_row(memory_service, database, monkeypatch):
    monkeypatch.setattr(
        "casual_recall.memory_service.calculate_importance",
        Mock(side_effect=RuntimeError("scoring broke")),
    )

    with pytest.raises(RuntimeError):
        await memory_service.store(Memory(id="m1", content="Coffee"))

    assert await database.count() == 0
    assert "m1" not in memory_service.temporal_index
