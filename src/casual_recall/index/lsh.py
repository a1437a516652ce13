"""
Locality-sensitive hashing index (random hyperplane / sign projection).

Each table owns a handful of random hyperplanes; a vector's code in a table is
the sign pattern of its projections. Vectors with a small angle between them
share a code with high probability, so a query only inspects the union of the
buckets it hashes to.
"""

import logging
from typing import Dict, List, Optional, Set

import numpy as np

from casual_recall.index.ranking import rank_candidates

logger = logging.getLogger(__name__)


class LSHIndex:
    """
    Multi-table random-hyperplane LSH index.

    Args:
        dimension: Vector dimension
        n_tables: Number of independent hash tables
        n_hyperplanes: Hyperplanes (code bits) per table
        seed: Seed for hyperplane sampling
    """

    def __init__(
        self,
        dimension: int,
        n_tables: int = 10,
        n_hyperplanes: int = 4,
        seed: Optional[int] = None,
    ):
        self._dimension = dimension
        self._n_tables = n_tables
        self._n_hyperplanes = n_hyperplanes

        rng = np.random.default_rng(seed)
        self._hyperplanes = rng.standard_normal(
            (n_tables, n_hyperplanes, dimension)
        ).astype(np.float32)
        self._bit_weights = np.left_shift(1, np.arange(n_hyperplanes, dtype=np.int64))

        self._tables: List[Dict[int, Set[str]]] = [{} for _ in range(n_tables)]
        self._codes: Dict[str, List[int]] = {}
        self._vectors: Dict[str, np.ndarray] = {}

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def n_tables(self) -> int:
        return self._n_tables

    def hash_codes(self, vector: np.ndarray) -> List[int]:
        """Bucket code of a vector in every table."""
        projections = self._hyperplanes @ vector
        return ((projections > 0).astype(np.int64) @ self._bit_weights).tolist()

    def bucket(self, table: int, code: int) -> Set[str]:
        return set(self._tables[table].get(code, ()))

    def add(self, vector_id: str, vector: np.ndarray) -> None:
        if vector_id in self._vectors:
            self.remove(vector_id)

        vector = np.asarray(vector, dtype=np.float32)
        codes = self.hash_codes(vector)

        self._vectors[vector_id] = vector
        self._codes[vector_id] = codes
        for table, code in zip(self._tables, codes):
            table.setdefault(code, set()).add(vector_id)

    def update(self, vector_id: str, vector: np.ndarray) -> None:
        self.add(vector_id, vector)

    def remove(self, vector_id: str) -> None:
        codes = self._codes.pop(vector_id, None)
        if codes is None:
            return

        del self._vectors[vector_id]
        for table, code in zip(self._tables, codes):
            members = table.get(code)
            if members is None:
                continue
            members.discard(vector_id)
            if not members:
                del table[code]

    def search(self, query: np.ndarray, k: int) -> List[str]:
        if k <= 0 or not self._vectors:
            return []

        candidates: Set[str] = set()
        for table, code in zip(self._tables, self.hash_codes(query)):
            candidates.update(table.get(code, ()))

        # Sorted so equal scores rank deterministically
        return rank_candidates(query, sorted(candidates), self._vectors, k)

    def snapshot(self) -> dict:
        return {
            "dimension": self._dimension,
            "n_tables": self._n_tables,
            "n_hyperplanes": self._n_hyperplanes,
            "hyperplanes": self._hyperplanes.tolist(),
        }

    def restore(self, snapshot: dict) -> None:
        """Adopt persisted hyperplanes and rehash every vector."""
        if snapshot.get("dimension") != self._dimension:
            raise ValueError(
                f"Snapshot dimension {snapshot.get('dimension')} does not match {self._dimension}"
            )

        hyperplanes = np.asarray(snapshot["hyperplanes"], dtype=np.float32)
        expected = (self._n_tables, self._n_hyperplanes, self._dimension)
        if hyperplanes.shape != expected:
            raise ValueError(f"Snapshot hyperplanes have shape {hyperplanes.shape}, expected {expected}")

        self._hyperplanes = hyperplanes
        vectors = self._vectors
        self._tables = [{} for _ in range(self._n_tables)]
        self._codes = {}
        self._vectors = {}
        for vector_id, vector in vectors.items():
            self.add(vector_id, vector)

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, vector_id: object) -> bool:
        return vector_id in self._vectors
