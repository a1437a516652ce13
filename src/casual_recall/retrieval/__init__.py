"""
Multi-signal memory retrieval.

Provides the orchestrator and its collaborators:
- RetrievalOrchestrator: semantic + temporal + relational merge, then rerank
- InMemoryTemporalIndex: timeline of memories (TemporalSource)
- KnowledgeGraph: memories linked through shared entities (RelationalSource)
- EmbeddingReranker / CrossEncoderReranker: final scoring pass
"""

from casual_recall.retrieval.graph import KnowledgeGraph
from casual_recall.retrieval.orchestrator import RetrievalOrchestrator
from casual_recall.retrieval.prompts import build_augmented_prompt, build_context_query
from casual_recall.retrieval.protocols import RelationalSource, Reranker, TemporalSource
from casual_recall.retrieval.rerank import CrossEncoderReranker, EmbeddingReranker
from casual_recall.retrieval.scoring import (
    MergedCandidate,
    contextual_score,
    haversine_distance,
    merge_candidates,
    time_relevance,
)
from casual_recall.retrieval.temporal import InMemoryTemporalIndex

__all__ = [
    "RetrievalOrchestrator",
    "TemporalSource",
    "RelationalSource",
    "Reranker",
    "InMemoryTemporalIndex",
    "KnowledgeGraph",
    "EmbeddingReranker",
    "CrossEncoderReranker",
    "MergedCandidate",
    "contextual_score",
    "haversine_distance",
    "merge_candidates",
    "time_relevance",
    "build_augmented_prompt",
    "build_context_query",
]
