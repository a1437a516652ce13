"""
Flat (exact) index.

Brute-force scan of every stored vector. On unit vectors the dot product is
the cosine similarity, so results are exact. Used as the correctness baseline
and as the fallback of the clustered index before it is trained.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from casual_recall.index.ranking import select_top_k

logger = logging.getLogger(__name__)


class FlatIndex:
    """
    Exact nearest-neighbour index over a dense matrix.

    Vectors live in a growable float32 matrix; removal swaps the last row into
    the freed slot so the matrix stays dense.
    """

    def __init__(self, dimension: int, initial_capacity: int = 1024):
        self._dimension = dimension
        self._matrix = np.zeros((max(1, initial_capacity), dimension), dtype=np.float32)
        self._ids: List[str] = []
        self._positions: Dict[str, int] = {}

    @property
    def dimension(self) -> int:
        return self._dimension

    def add(self, vector_id: str, vector: np.ndarray) -> None:
        position = self._positions.get(vector_id)
        if position is not None:
            self._matrix[position] = vector
            return

        if len(self._ids) == self._matrix.shape[0]:
            grown = np.zeros((self._matrix.shape[0] * 2, self._dimension), dtype=np.float32)
            grown[: len(self._ids)] = self._matrix
            self._matrix = grown

        position = len(self._ids)
        self._matrix[position] = vector
        self._ids.append(vector_id)
        self._positions[vector_id] = position

    def update(self, vector_id: str, vector: np.ndarray) -> None:
        self.add(vector_id, vector)

    def remove(self, vector_id: str) -> None:
        position = self._positions.pop(vector_id, None)
        if position is None:
            return

        last = len(self._ids) - 1
        if position != last:
            moved_id = self._ids[last]
            self._matrix[position] = self._matrix[last]
            self._ids[position] = moved_id
            self._positions[moved_id] = position

        self._ids.pop()

    def search(self, query: np.ndarray, k: int) -> List[str]:
        count = len(self._ids)
        if count == 0 or k <= 0:
            return []

        scores = self._matrix[:count] @ query
        return select_top_k(self._ids, scores, k)

    def get_vector(self, vector_id: str) -> Optional[np.ndarray]:
        position = self._positions.get(vector_id)
        return self._matrix[position].copy() if position is not None else None

    def items(self) -> Iterator[Tuple[str, np.ndarray]]:
        for position, vector_id in enumerate(self._ids):
            yield vector_id, self._matrix[position]

    def snapshot(self) -> dict:
        return {"dimension": self._dimension}

    def restore(self, snapshot: dict) -> None:
        if snapshot.get("dimension") != self._dimension:
            raise ValueError(
                f"Snapshot dimension {snapshot.get('dimension')} does not match {self._dimension}"
            )

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, vector_id: object) -> bool:
        return vector_id in self._positions
