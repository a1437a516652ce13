"""
Rerankers for the final retrieval pass.

- EmbeddingReranker: cosine similarity between the query embedding and each
  candidate's content embedding
- CrossEncoderReranker: sentence-transformers cross-encoder scoring the
  (query, content) pair jointly, lazy-loaded on first use
"""

import asyncio
import logging
from typing import List, Optional

from casual_recall.embeddings.protocol import TextEmbedding
from casual_recall.models import Memory
from casual_recall.utils.vectors import cosine_similarity

logger = logging.getLogger(__name__)


class EmbeddingReranker:
    """
    Scores candidates by embedding similarity to the query.

    A candidate's own embedding is used when populated; otherwise its content
    is embedded as a document. A candidate whose embedding cannot be produced
    is skipped (scored None) instead of failing the retrieval.
    """

    def __init__(self, embedding: TextEmbedding):
        self.embedding = embedding

    async def score(
        self, query: str, query_embedding: List[float], memories: List[Memory]
    ) -> List[Optional[float]]:
        scores: List[Optional[float]] = []
        for memory in memories:
            vector = memory.embedding
            if not vector:
                try:
                    vector = await self.embedding.embed_document(memory.content)
                except Exception as e:
                    logger.warning(f"Skipping memory {memory.id}: embedding failed: {e}")
                    scores.append(None)
                    continue

            scores.append(cosine_similarity(query_embedding, vector))
        return scores


class CrossEncoderReranker:
    """
    Cross-encoder reranker (e.g. cross-encoder/ms-marco-MiniLM-L-6-v2).

    The model reads query and memory content together, which ranks better
    than comparing independent embeddings but costs one forward pass per
    candidate. Model is lazy-loaded on first use.
    """

    def __init__(
        self,
        model_name: str = "cross-encoder/ms-marco-MiniLM-L-6-v2",
        device: Optional[str] = None,
        batch_size: int = 32,
    ):
        self.model_name = model_name
        self.device = device
        self.batch_size = batch_size
        self._model = None
        self._prediction_count = 0

        logger.info(f"CrossEncoderReranker initialized (lazy-loading): model={model_name}")

    def _load_model(self):
        if self._model is not None:
            return

        try:
            from sentence_transformers import CrossEncoder
        except ImportError as e:
            raise ImportError(
                "sentence-transformers is required for CrossEncoderReranker. "
                "Install with: pip install casual-recall[embeddings]"
            ) from e

        logger.info(f"Loading cross-encoder: {self.model_name}")
        self._model = CrossEncoder(self.model_name, device=self.device)

    def _predict(self, pairs: List[List[str]]) -> List[float]:
        self._load_model()
        self._prediction_count += len(pairs)
        return [float(score) for score in self._model.predict(pairs, batch_size=self.batch_size)]

    async def score(
        self, query: str, query_embedding: List[float], memories: List[Memory]
    ) -> List[Optional[float]]:
        if not memories:
            return []

        pairs = [[query, memory.content] for memory in memories]
        return await asyncio.to_thread(self._predict, pairs)

    def get_metrics(self) -> dict:
        return {
            "rerank_prediction_count": self._prediction_count,
            "rerank_model_loaded": self._model is not None,
        }
