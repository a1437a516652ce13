"""Tests for the sentence-transformers adapter against a real model."""

import numpy as np
import pytest

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def e5_embedder():
    """Create E5 embedder for testing."""
    pytest.importorskip("sentence_transformers")

    from casual_recall.embeddings import SentenceTransformerEmbedding

    # Use small model for faster tests
    return SentenceTransformerEmbedding(model_name="intfloat/e5-small-v2")


@pytest.mark.asyncio
async def test_model_loading(e5_embedder):
    assert e5_embedder.model_name == "intfloat/e5-small-v2"
    assert e5_embedder.dimension == 384  # e5-small-v2 has 384 dimensions


@pytest.mark.asyncio
async def test_embeddings_are_normalized(e5_embedder):
    vector = await e5_embedder.embed_document("I live in London")

    assert len(vector) == e5_embedder.dimension
    assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-4)


@pytest.mark.asyncio
async def test_document_query_different_vectors(e5_embedder):
    """Document and query embeddings differ for the same text."""
    text = "I like pizza"

    doc_vector = await e5_embedder.embed_document(text)
    query_vector = await e5_embedder.embed_query(text)

    assert doc_vector != query_vector


@pytest.mark.asyncio
async def test_related_text_is_closer(e5_embedder):
    query = await e5_embedder.embed_query("Where did I park the car?")
    related, unrelated = await e5_embedder.embed_documents(
        ["Parked the car on level 3 of the garage", "Baked sourdough bread this morning"]
    )

    assert np.dot(query, related) > np.dot(query, unrelated)
