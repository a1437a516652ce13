"""Candidate ranking helpers shared by the index strategies."""

from typing import Iterable, List, Mapping, Sequence

import numpy as np


def select_top_k(ids: Sequence[str], scores: np.ndarray, k: int) -> List[str]:
    """Return the ids of the k highest scores, best first."""
    n = len(ids)
    if n == 0 or k <= 0:
        return []

    if k < n:
        top = np.argpartition(-scores, k - 1)[:k]
        order = top[np.argsort(-scores[top], kind="stable")]
    else:
        order = np.argsort(-scores, kind="stable")

    return [ids[i] for i in order]


def rank_candidates(
    query: np.ndarray, candidate_ids: Iterable[str], vectors: Mapping[str, np.ndarray], k: int
) -> List[str]:
    """Rank a candidate set by dot product against the query."""
    ids = [vector_id for vector_id in candidate_ids if vector_id in vectors]
    if not ids:
        return []

    matrix = np.stack([vectors[vector_id] for vector_id in ids])
    return select_top_k(ids, matrix @ query, k)
