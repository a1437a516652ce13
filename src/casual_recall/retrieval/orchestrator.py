"""
Multi-signal retrieval orchestrator.

Blends semantic hits from the vector database with temporal and relational
candidates, then refines the coarse merged ranking with a reranker:

1. embed the query
2. semantic search (threshold + k)
3. contextual re-scoring of semantic hits
4. temporal and relational candidates from collaborators
5. merge into one coarse score
6. rerank the merged candidates (optionally capped by rerank_pool)
7. return the top context_window memories
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from casual_recall.config import RetrievalConfig
from casual_recall.embeddings.protocol import TextEmbedding
from casual_recall.errors import NotFoundError, RetrievalError
from casual_recall.models import Memory, MemoryContext, RetrievedMemory, local_naive
from casual_recall.retrieval.protocols import RelationalSource, Reranker, TemporalSource
from casual_recall.retrieval.rerank import EmbeddingReranker
from casual_recall.retrieval.scoring import MergedCandidate, contextual_score, merge_candidates
from casual_recall.vector_database import VectorDatabase

logger = logging.getLogger(__name__)


class RetrievalOrchestrator:
    """
    Answers "what do I know that's relevant to this query".

    Temporal and relational sources are optional; without them retrieval is
    semantic only. The default reranker compares embeddings.
    """

    def __init__(
        self,
        database: VectorDatabase,
        embedding: TextEmbedding,
        temporal_source: Optional[TemporalSource] = None,
        relational_source: Optional[RelationalSource] = None,
        reranker: Optional[Reranker] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            database: Opened vector database holding memory embeddings
            embedding: Embedding provider (same dimension as the database)
            temporal_source: Provider of memories inside a time window
            relational_source: Provider of memories sharing entities with a query
            reranker: Fine scoring pass (default: EmbeddingReranker)
            config: Retrieval thresholds and scoring weights
        """
        self.database = database
        self.embedding = embedding
        self.temporal_source = temporal_source
        self.relational_source = relational_source
        self.reranker = reranker or EmbeddingReranker(embedding)
        self.config = config or RetrievalConfig()

    async def retrieve(self, query: str, context: Optional[MemoryContext] = None) -> List[Memory]:
        """
        Retrieve the memories most relevant to a query.

        Raises:
            RetrievalError: If the query itself cannot be embedded
        """
        scored = await self.retrieve_scored(query, context)
        return [item.memory for item in scored]

    async def retrieve_scored(
        self,
        query: str,
        context: Optional[MemoryContext] = None,
        now: Optional[datetime] = None,
    ) -> List[RetrievedMemory]:
        """
        Retrieve memories together with their merge and rerank scores.

        Args:
            query: Free-text query
            context: Current situation used for re-scoring and the time window
            now: Reference time for recency (defaults to the current time)

        Returns:
            At most context_window memories, best first

        Raises:
            RetrievalError: If the query itself cannot be embedded
        """
        now = local_naive(now or datetime.now())

        try:
            query_embedding = await self.embedding.embed_query(query)
        except Exception as e:
            logger.error(f"Failed to embed query: {e}")
            raise RetrievalError(f"Failed to embed query: {e}") from e

        semantic = await self._semantic_candidates(query_embedding, context, now)
        temporal = await self._temporal_candidates(context, now)
        relational = await self._relational_candidates(query)

        merged = merge_candidates(semantic, temporal, relational, self.config)
        pool = merged if self.config.rerank_pool is None else merged[: self.config.rerank_pool]
        await self._attach_embeddings(pool)

        results = await self._rerank(query, query_embedding, pool)

        logger.info(
            f"Retrieved {len(results)} memories "
            f"(semantic={len(semantic)}, temporal={len(temporal)}, "
            f"relational={len(relational)}, merged={len(merged)})"
        )
        return results

    async def _semantic_candidates(
        self, query_embedding: List[float], context: Optional[MemoryContext], now: datetime
    ) -> List[Memory]:
        threshold = self.config.retrieval_threshold
        hits = await self.database.search(query_embedding, k=self.config.semantic_k, threshold=threshold)

        memories = [Memory.from_metadata(hit.id, hit.metadata) for hit in hits]
        if context is None:
            return memories

        rescored = []
        for memory, hit in zip(memories, hits):
            score = contextual_score(memory, hit.similarity, context, self.config, now)
            if score >= threshold:
                rescored.append((memory, score))

        # Stable: equal scores keep the database order
        rescored.sort(key=lambda item: -item[1])
        return [memory for memory, _ in rescored]

    async def _temporal_candidates(
        self, context: Optional[MemoryContext], now: datetime
    ) -> List[Memory]:
        if self.temporal_source is None:
            return []

        if context is not None and context.time_range is not None:
            start, end = context.time_range
        else:
            start, end = now - timedelta(days=self.config.temporal_window_days), now

        return await self.temporal_source.memories_between(start, end)

    async def _relational_candidates(self, query: str) -> List[Memory]:
        if self.relational_source is None:
            return []
        return await self.relational_source.find_related(query, limit=self.config.relational_limit)

    async def _attach_embeddings(self, pool: List[MergedCandidate]) -> None:
        """Fill missing candidate embeddings from the database."""
        for candidate in pool:
            if candidate.memory.embedding:
                continue
            try:
                vector = await self.database.get_embedding(candidate.memory.id)
            except NotFoundError:
                continue
            candidate.memory = candidate.memory.model_copy(update={"embedding": vector})

    async def _rerank(
        self, query: str, query_embedding: List[float], pool: List[MergedCandidate]
    ) -> List[RetrievedMemory]:
        scores = await self.reranker.score(
            query, query_embedding, [candidate.memory for candidate in pool]
        )

        ranked = [
            (candidate, score)
            for candidate, score in zip(pool, scores)
            if score is not None
        ]
        # Stable: equal rerank scores keep the merge order
        ranked.sort(key=lambda item: -item[1])

        return [
            RetrievedMemory(
                memory=candidate.memory,
                merge_score=candidate.score,
                rerank_score=score,
                signals=candidate.signals,
            )
            for candidate, score in ranked[: self.config.context_window]
        ]
