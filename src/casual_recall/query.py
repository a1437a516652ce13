"""
Query engine: approximate candidates from the index, exact rerank from the store.

The index is asked for more candidates than requested (over-fetch) to make up
for its recall loss; every candidate is then scored with the exact cosine
similarity of unit vectors, filtered by threshold and cut to k.
"""

import logging
from datetime import datetime
from typing import Dict, List, Sequence

import numpy as np

from casual_recall.errors import SearchFailedError
from casual_recall.index.protocol import VectorIndex
from casual_recall.models import SearchResult
from casual_recall.storage.cache import LRUCache
from casual_recall.storage.protocols import EmbeddingStore
from casual_recall.utils.vectors import as_vector, normalize

logger = logging.getLogger(__name__)

OVERFETCH_FACTOR = 2


class QueryEngine:
    """
    Exact-rerank search over an approximate index.

    Not thread-safe on its own: the VectorDatabase runs searches under the
    read side of its lock so no write interleaves with a query.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        index: VectorIndex,
        cache: LRUCache,
        dimension: int,
        overfetch_factor: int = OVERFETCH_FACTOR,
    ):
        self._store = store
        self._index = index
        self._cache = cache
        self._dimension = dimension
        self._overfetch_factor = overfetch_factor

    def search(self, query: Sequence[float], k: int, threshold: float) -> List[SearchResult]:
        """
        Search for the k most similar vectors.

        Args:
            query: Query vector of the database dimension (normalized here)
            k: Maximum number of results
            threshold: Minimum cosine similarity for a result

        Returns:
            Results ordered by similarity, most recently updated first on ties

        Raises:
            DimensionMismatchError: If the query has the wrong length
            InvalidVectorError: If the query cannot be normalized
            SearchFailedError: If the index or the store fails
        """
        normalized, _ = normalize(as_vector(query, self._dimension))
        if k <= 0:
            return []

        try:
            candidates = list(dict.fromkeys(self._index.search(normalized, k * self._overfetch_factor)))
            vectors = self._load_vectors(candidates)

            scored = []
            for candidate_id in candidates:
                vector = vectors.get(candidate_id)
                if vector is None:
                    raise SearchFailedError(
                        f"Index returned {candidate_id}, which is missing from the store"
                    )

                similarity = float(np.dot(normalized, vector))
                if similarity >= threshold:
                    scored.append((candidate_id, similarity))

            rows = self._store.get_metadata_batch([candidate_id for candidate_id, _ in scored])
        except SearchFailedError:
            raise
        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise SearchFailedError(f"Search failed: {e}") from e

        ranked = []
        for candidate_id, similarity in scored:
            if candidate_id not in rows:
                raise SearchFailedError(f"Metadata for {candidate_id} is missing from the store")
            metadata, updated_at = rows[candidate_id]
            ranked.append((candidate_id, similarity, metadata, updated_at))

        ranked.sort(key=lambda item: (-item[1], -item[3], item[0]))

        results = [
            SearchResult(
                id=candidate_id,
                similarity=similarity,
                metadata=metadata,
                updated_at=datetime.fromtimestamp(updated_at),
            )
            for candidate_id, similarity, metadata, updated_at in ranked[:k]
        ]

        logger.debug(
            f"{len(results)} results found "
            f"(candidates={len(candidates)}, k={k}, threshold={threshold})"
        )
        return results

    def _load_vectors(self, vector_ids: List[str]) -> Dict[str, np.ndarray]:
        """Cache-first vector lookup; misses are batch-loaded and cached."""
        vectors: Dict[str, np.ndarray] = {}
        misses = []

        for vector_id in vector_ids:
            cached = self._cache.get(vector_id)
            if cached is not None:
                vectors[vector_id] = cached
            else:
                misses.append(vector_id)

        if misses:
            loaded = self._store.get_embeddings(misses)
            for vector_id, vector in loaded.items():
                self._cache.set(vector_id, vector)
            vectors.update(loaded)

        return vectors
