"""
Tests for RetrievalOrchestrator.

The vector database, embedding provider and candidate sources are mocked so
each stage of the pipeline can be observed in isolation.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from casual_recall.config import RetrievalConfig
from casual_recall.errors import NotFoundError, RetrievalError, SearchFailedError
from casual_recall.models import LocationContext, Memory, MemoryContext, SearchResult
from casual_recall.retrieval import RetrievalOrchestrator

NOW = datetime(2024, 6, 1, 12, 0, 0)
QUERY_VECTOR = [1.0, 0.0, 0.0]
EMBEDDINGS = {
    "close": [1.0, 0.0, 0.0],
    "medium": [0.6, 0.8, 0.0],
    "far": [0.0, 1.0, 0.0],
}


def hit(memory, similarity):
    return SearchResult(id=memory.id, similarity=similarity, metadata=memory.to_metadata(), updated_at=NOW)


def stored_embedding(memory_id):
    if memory_id not in EMBEDDINGS:
        raise NotFoundError(memory_id)
    return EMBEDDINGS[memory_id]


@pytest.fixture
def embedding():
    provider = MagicMock()
    provider.embed_query = AsyncMock(return_value=QUERY_VECTOR)
    provider.embed_document = AsyncMock(return_value=[0.0, 0.0, 1.0])
    return provider


@pytest.fixture
def database():
    db = MagicMock()
    db.search = AsyncMock(return_value=[])
    db.get_embedding = AsyncMock(side_effect=stored_embedding)
    return db


def make_memory(memory_id, **kwargs):
    kwargs.setdefault("timestamp", NOW - timedelta(days=2))
    return Memory(id=memory_id, content=f"{memory_id} memory", **kwargs)


@pytest.mark.asyncio
async def test_embed_failure_raises_retrieval_error(database, embedding):
    embedding.embed_query.side_effect = RuntimeError("model offline")
    orchestrator = RetrievalOrchestrator(database, embedding)

    with pytest.raises(RetrievalError) as exc_info:
        await orchestrator.retrieve("query")

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    database.search.assert_not_called()


@pytest.mark.asyncio
async def test_semantic_search_parameters(database, embedding):
    orchestrator = RetrievalOrchestrator(database, embedding)

    assert await orchestrator.retrieve("query") == []

    database.search.assert_awaited_once_with(QUERY_VECTOR, k=20, threshold=0.7)


@pytest.mark.asyncio
async def test_rerank_orders_by_embedding_similarity(database, embedding):
    # Database order disagrees with the embeddings fetched for reranking
    database.search.return_value = [
        hit(make_memory("far"), 0.95),
        hit(make_memory("medium"), 0.9),
        hit(make_memory("close"), 0.85),
    ]
    orchestrator = RetrievalOrchestrator(database, embedding)

    scored = await orchestrator.retrieve_scored("query", now=NOW)

    assert [item.memory.id for item in scored] == ["close", "medium", "far"]
    assert [item.rerank_score for item in scored] == pytest.approx([1.0, 0.6, 0.0])
    assert all(item.signals == ["semantic"] for item in scored)
    assert scored[0].memory.embedding == EMBEDDINGS["close"]


@pytest.mark.asyncio
async def test_default_temporal_window_and_relational_limit(database, embedding):
    temporal = MagicMock()
    temporal.memories_between = AsyncMock(return_value=[])
    relational = MagicMock()
    relational.find_related = AsyncMock(return_value=[])
    orchestrator = RetrievalOrchestrator(
        database, embedding, temporal_source=temporal, relational_source=relational
    )

    await orchestrator.retrieve_scored("what happened", now=NOW)

    temporal.memories_between.assert_awaited_once_with(NOW - timedelta(days=30), NOW)
    relational.find_related.assert_awaited_once_with("what happened", limit=10)


@pytest.mark.asyncio
async def test_context_time_range_overrides_window(database, embedding):
    temporal = MagicMock()
    temporal.memories_between = AsyncMock(return_value=[])
    window = (NOW - timedelta(days=3), NOW - timedelta(days=1))
    orchestrator = RetrievalOrchestrator(database, embedding, temporal_source=temporal)

    await orchestrator.retrieve_scored("query", MemoryContext(time_range=window), now=NOW)

    temporal.memories_between.assert_awaited_once_with(*window)


@pytest.mark.asyncio
async def test_signals_are_merged(database, embedding):
    shared = make_memory("close")
    database.search.return_value = [hit(shared, 0.9)]
    temporal = MagicMock()
    temporal.memories_between = AsyncMock(return_value=[shared, make_memory("medium")])
    relational = MagicMock()
    relational.find_related = AsyncMock(return_value=[make_memory("far")])
    orchestrator = RetrievalOrchestrator(
        database, embedding, temporal_source=temporal, relational_source=relational
    )

    scored = await orchestrator.retrieve_scored("query", now=NOW)

    by_id = {item.memory.id: item for item in scored}
    assert by_id["close"].merge_score == pytest.approx(1.3)
    assert by_id["close"].signals == ["semantic", "temporal"]
    assert by_id["medium"].merge_score == pytest.approx(0.7)
    assert by_id["far"].merge_score == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_unscorable_candidate_is_skipped(database, embedding):
    database.search.return_value = [hit(make_memory("close"), 0.9), hit(make_memory("gone"), 0.8)]
    embedding.embed_document.side_effect = RuntimeError("cannot embed")
    orchestrator = RetrievalOrchestrator(database, embedding)

    memories = await orchestrator.retrieve("query")

    assert [memory.id for memory in memories] == ["close"]


@pytest.mark.asyncio
async def test_equal_rerank_scores_keep_merge_order(database, embedding):
    database.search.return_value = [hit(make_memory("b"), 0.9), hit(make_memory("a"), 0.8)]
    temporal = MagicMock()
    temporal.memories_between = AsyncMock(return_value=[make_memory("c")])
    reranker = MagicMock()
    reranker.score = AsyncMock(return_value=[0.5, 0.5, 0.5])
    orchestrator = RetrievalOrchestrator(database, embedding, temporal_source=temporal, reranker=reranker)

    memories = await orchestrator.retrieve("query")

    assert [memory.id for memory in memories] == ["b", "a", "c"]


@pytest.mark.asyncio
async def test_pool_and_context_window_limits(database, embedding):
    database.search.return_value = [hit(make_memory(f"m{i}"), 0.9) for i in range(8)]
    database.get_embedding.side_effect = lambda memory_id: QUERY_VECTOR
    reranker = MagicMock()
    reranker.score = AsyncMock(side_effect=lambda query, vector, memories: [float(i) for i in range(len(memories))])
    config = RetrievalConfig(rerank_pool=5, context_window=3)
    orchestrator = RetrievalOrchestrator(database, embedding, reranker=reranker, config=config)

    memories = await orchestrator.retrieve("query")

    pool = reranker.score.await_args.args[2]
    assert [memory.id for memory in pool] == ["m0", "m1", "m2", "m3", "m4"]
    assert [memory.id for memory in memories] == ["m4", "m3", "m2"]


@pytest.mark.asyncio
async def test_context_rescoring_reorders_semantic_hits(database, embedding):
    home = LocationContext(latitude=51.5, longitude=-0.12)
    database.search.return_value = [
        hit(make_memory("elsewhere"), 0.8),
        hit(make_memory("at-home", location=home), 0.75),
    ]
    reranker = MagicMock()
    reranker.score = AsyncMock(side_effect=lambda query, vector, memories: [1.0] * len(memories))
    database.get_embedding.side_effect = lambda memory_id: QUERY_VECTOR
    orchestrator = RetrievalOrchestrator(database, embedding, reranker=reranker)

    memories = await orchestrator.retrieve("query", MemoryContext(current_location=home))

    assert [memory.id for memory in memories] == ["at-home", "elsewhere"]


@pytest.mark.asyncio
async def test_search_errors_propagate(database, embedding):
    database.search.side_effect = SearchFailedError("index exploded")
    orchestrator = RetrievalOrchestrator(database, embedding)

    with pytest.raises(SearchFailedError):
        await orchestrator.retrieve("query")


@pytest.mark.asyncio
async def test_relational_match_survives_large_temporal_merge(database, embedding):
    temporal = MagicMock()
    temporal.memories_between = AsyncMock(
        return_value=[make_memory(f"t{i}", embedding=[0.0, 1.0, 0.0]) for i in range(60)]
    )
    relational = MagicMock()
    relational.find_related = AsyncMock(return_value=[make_memory("rel", embedding=QUERY_VECTOR)])
    orchestrator = RetrievalOrchestrator(
        database, embedding, temporal_source=temporal, relational_source=relational
    )

    memories = await orchestrator.retrieve("query")

    assert memories[0].id == "rel"
