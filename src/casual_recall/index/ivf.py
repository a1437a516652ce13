"""
Clustered (inverted-file) index.

Vectors are partitioned by their nearest centroid. Centroids come from a
spherical k-means pass over the vectors present when train() runs; later
inserts are assigned to the nearest existing centroid without retraining.
Until the first training pass the index answers queries with an exact scan.
"""

import logging
from typing import Dict, List, Optional, Set

import numpy as np

from casual_recall.index.flat import FlatIndex
from casual_recall.index.ranking import select_top_k

logger = logging.getLogger(__name__)


class IVFFlatIndex:
    """
    Inverted-file index with flat (uncompressed) vectors.

    Args:
        dimension: Vector dimension
        n_clusters: Number of centroids produced by train()
        n_probe: Nearest clusters scanned per query
        n_iter: Maximum k-means iterations per training pass
        seed: Seed for centroid initialisation
    """

    def __init__(
        self,
        dimension: int,
        n_clusters: int = 100,
        n_probe: int = 3,
        n_iter: int = 20,
        seed: Optional[int] = None,
    ):
        self._dimension = dimension
        self._n_clusters = n_clusters
        self._n_probe = n_probe
        self._n_iter = n_iter
        self._seed = seed

        self._flat = FlatIndex(dimension)
        self._centroids: Optional[np.ndarray] = None
        self._assignments: Dict[str, int] = {}
        self._members: Dict[int, Set[str]] = {}

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def is_trained(self) -> bool:
        return self._centroids is not None

    @property
    def centroids(self) -> Optional[np.ndarray]:
        return None if self._centroids is None else self._centroids.copy()

    def cluster_members(self) -> Dict[int, List[str]]:
        """Member ids per cluster, sorted for stable persistence."""
        return {cluster: sorted(ids) for cluster, ids in self._members.items()}

    def cluster_of(self, vector_id: str) -> Optional[int]:
        return self._assignments.get(vector_id)

    def _nearest_centroid(self, vector: np.ndarray) -> int:
        return int(np.argmax(self._centroids @ vector))

    def _assign(self, vector_id: str, vector: np.ndarray) -> None:
        self._unassign(vector_id)
        cluster = self._nearest_centroid(vector)
        self._assignments[vector_id] = cluster
        self._members.setdefault(cluster, set()).add(vector_id)

    def _unassign(self, vector_id: str) -> None:
        cluster = self._assignments.pop(vector_id, None)
        if cluster is not None:
            self._members[cluster].discard(vector_id)

    def _reassign_all(self) -> None:
        self._assignments.clear()
        self._members = {cluster: set() for cluster in range(len(self._centroids))}
        for vector_id, vector in self._flat.items():
            self._assign(vector_id, vector)

    def set_centroids(self, centroids: np.ndarray) -> None:
        """Install centroids (e.g. loaded from storage) and reassign every vector."""
        centroids = np.asarray(centroids, dtype=np.float32)
        if centroids.ndim != 2 or centroids.shape[1] != self._dimension:
            raise ValueError(f"Centroids must have shape (n, {self._dimension})")

        self._centroids = centroids
        self._reassign_all()

    def train(self) -> int:
        """
        Run spherical k-means over the current vectors.

        Returns:
            Number of centroids produced (0 if the index is empty)
        """
        count = len(self._flat)
        if count == 0:
            logger.warning("Cannot train IVF index: no vectors")
            return 0

        ids = []
        rows = []
        for vector_id, vector in self._flat.items():
            ids.append(vector_id)
            rows.append(vector)
        data = np.stack(rows).astype(np.float32)

        n_clusters = min(self._n_clusters, count)
        rng = np.random.default_rng(self._seed)
        centroids = data[rng.choice(count, n_clusters, replace=False)].copy()

        for iteration in range(self._n_iter):
            labels = np.argmax(data @ centroids.T, axis=1)

            sums = np.zeros_like(centroids)
            np.add.at(sums, labels, data)
            sizes = np.bincount(labels, minlength=n_clusters)

            # Reseed empty clusters from random vectors
            empty = sizes == 0
            if empty.any():
                sums[empty] = data[rng.choice(count, int(empty.sum()), replace=False)]

            norms = np.linalg.norm(sums, axis=1, keepdims=True)
            norms[norms == 0] = 1.0
            updated = (sums / norms).astype(np.float32)

            converged = np.allclose(updated, centroids, atol=1e-6)
            centroids = updated
            if converged:
                logger.debug(f"k-means converged after {iteration + 1} iterations")
                break

        self._centroids = centroids
        self._reassign_all()

        logger.info(f"Trained IVF index: {n_clusters} clusters over {count} vectors")
        return n_clusters

    def add(self, vector_id: str, vector: np.ndarray) -> None:
        self._flat.add(vector_id, vector)
        if self._centroids is not None:
            self._assign(vector_id, vector)

    def update(self, vector_id: str, vector: np.ndarray) -> None:
        self.add(vector_id, vector)

    def remove(self, vector_id: str) -> None:
        self._flat.remove(vector_id)
        self._unassign(vector_id)

    def search(self, query: np.ndarray, k: int) -> List[str]:
        if k <= 0:
            return []

        if self._centroids is None:
            # Cold start: exact scan
            return self._flat.search(query, k)

        centroid_scores = self._centroids @ query
        probes = np.argsort(-centroid_scores, kind="stable")[: self._n_probe]

        candidates: List[str] = []
        for cluster in probes.tolist():
            candidates.extend(sorted(self._members.get(cluster, ())))
        if not candidates:
            return []

        matrix = np.stack([self._flat.get_vector(vector_id) for vector_id in candidates])
        return select_top_k(candidates, matrix @ query, k)

    def snapshot(self) -> dict:
        return {
            "dimension": self._dimension,
            "n_clusters": self._n_clusters,
            "n_probe": self._n_probe,
            "trained": self.is_trained,
        }

    def restore(self, snapshot: dict) -> None:
        if snapshot.get("dimension") != self._dimension:
            raise ValueError(
                f"Snapshot dimension {snapshot.get('dimension')} does not match {self._dimension}"
            )

    def __len__(self) -> int:
        return len(self._flat)

    def __contains__(self, vector_id: object) -> bool:
        return vector_id in self._flat
