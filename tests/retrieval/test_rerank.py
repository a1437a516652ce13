"""Tests for the rerankers."""

import sys
import types
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from casual_recall.models import Memory
from casual_recall.retrieval import CrossEncoderReranker, EmbeddingReranker, Reranker


@pytest.fixture
def embedding():
    provider = MagicMock()
    provider.embed_document = AsyncMock(return_value=[0.0, 1.0])
    return provider


def test_rerankers_satisfy_protocol(embedding):
    assert isinstance(EmbeddingReranker(embedding), Reranker)
    assert isinstance(CrossEncoderReranker(), Reranker)


@pytest.mark.asyncio
async def test_embedding_reranker_uses_stored_embeddings(embedding):
    reranker = EmbeddingReranker(embedding)
    memories = [
        Memory(id="same", content="a", embedding=[1.0, 0.0]),
        Memory(id="orthogonal", content="b", embedding=[0.0, 1.0]),
    ]

    scores = await reranker.score("query", [1.0, 0.0], memories)

    assert scores == pytest.approx([1.0, 0.0])
    embedding.embed_document.assert_not_called()


@pytest.mark.asyncio
async def test_embedding_reranker_embeds_missing_content(embedding):
    reranker = EmbeddingReranker(embedding)

    scores = await reranker.score("query", [0.0, 1.0], [Memory(id="m", content="text")])

    assert scores == pytest.approx([1.0])
    embedding.embed_document.assert_awaited_once_with("text")


@pytest.mark.asyncio
async def test_embedding_reranker_skips_failed_candidates(embedding):
    embedding.embed_document.side_effect = RuntimeError("model offline")
    reranker = EmbeddingReranker(embedding)
    memories = [Memory(id="broken", content="x"), Memory(id="ok", content="y", embedding=[1.0, 0.0])]

    scores = await reranker.score("query", [1.0, 0.0], memories)

    assert scores[0] is None
    assert scores[1] == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_cross_encoder_reranker_scores_pairs():
    model = MagicMock()
    model.predict.return_value = [0.25, 0.75]
    fake_module = types.ModuleType("sentence_transformers")
    fake_module.CrossEncoder = MagicMock(return_value=model)

    with patch.dict(sys.modules, {"sentence_transformers": fake_module}):
        reranker = CrossEncoderReranker(model_name="test-model", batch_size=4)
        scores = await reranker.score(
            "where is my key", [], [Memory(id="a", content="key on desk"), Memory(id="b", content="lunch")]
        )

    assert scores == [0.25, 0.75]
    fake_module.CrossEncoder.assert_called_once_with("test-model", device=None)
    model.predict.assert_called_once_with(
        [["where is my key", "key on desk"], ["where is my key", "lunch"]], batch_size=4
    )
    assert reranker.get_metrics() == {"rerank_prediction_count": 2, "rerank_model_loaded": True}


@pytest.mark.asyncio
async def test_cross_encoder_reranker_empty_pool_does_not_load():
    reranker = CrossEncoderReranker()

    assert await reranker.score("query", [], []) == []
    assert reranker.get_metrics()["rerank_model_loaded"] is False
