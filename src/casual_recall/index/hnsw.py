"""
Hierarchical navigable small-world (HNSW) graph index.

Each node is assigned a maximum layer drawn from an exponentially decaying
distribution and linked to its nearest neighbours on every layer up to it.
Queries enter at the top layer, greedily descend towards the query, and widen
the beam on the bottom layer.

Edges are kept symmetric so removing a node can detach it from every
neighbour without scanning the graph.
"""

import heapq
import logging
import math
import random
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class HNSWIndex:
    """
    Approximate nearest-neighbour index over a multi-layer proximity graph.

    Args:
        dimension: Vector dimension
        m: Neighbours linked per node on upper layers (2*m on layer 0)
        ef_construction: Beam width while linking a new node
        ef_search: Minimum beam width on layer 0 at query time
        seed: Seed for level assignment
    """

    def __init__(
        self,
        dimension: int,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 50,
        seed: Optional[int] = None,
    ):
        if m < 2:
            raise ValueError("m must be at least 2")

        self._dimension = dimension
        self._m = m
        self._m_max0 = 2 * m
        self._ef_construction = max(ef_construction, m)
        self._ef_search = ef_search
        self._level_multiplier = 1.0 / math.log(m)
        self._rng = random.Random(seed)

        self._vectors: Dict[str, np.ndarray] = {}
        self._levels: Dict[str, int] = {}
        self._layers: List[Dict[str, Set[str]]] = []
        self._entry_point: Optional[str] = None

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def entry_point(self) -> Optional[str]:
        return self._entry_point

    @property
    def max_level(self) -> int:
        return len(self._layers) - 1

    def neighbours(self, vector_id: str, layer: int = 0) -> Set[str]:
        """Adjacency of a node on a layer (empty if absent)."""
        if layer >= len(self._layers):
            return set()
        return set(self._layers[layer].get(vector_id, ()))

    def _random_level(self) -> int:
        # 1 - random() lies in (0, 1], so the log is finite
        return int(-math.log(1.0 - self._rng.random()) * self._level_multiplier)

    def _max_degree(self, layer: int) -> int:
        return self._m_max0 if layer == 0 else self._m

    def _similarity(self, query: np.ndarray, vector_id: str) -> float:
        return float(np.dot(self._vectors[vector_id], query))

    def _search_layer(
        self, query: np.ndarray, entry_points: List[str], ef: int, layer: int
    ) -> List[Tuple[float, str]]:
        """Beam search on one layer. Returns up to ef (similarity, id) pairs, best first."""
        graph = self._layers[layer]
        visited = set(entry_points)

        scored = [(self._similarity(query, point), point) for point in entry_points]
        candidates = [(-similarity, point) for similarity, point in scored]
        heapq.heapify(candidates)
        results = list(scored)
        heapq.heapify(results)
        while len(results) > ef:
            heapq.heappop(results)

        while candidates:
            negative_similarity, current = heapq.heappop(candidates)
            if len(results) >= ef and -negative_similarity < results[0][0]:
                break

            fresh = [node for node in graph.get(current, ()) if node not in visited]
            if not fresh:
                continue
            visited.update(fresh)

            similarities = np.stack([self._vectors[node] for node in fresh]) @ query
            for node, similarity in zip(fresh, similarities.tolist()):
                if len(results) < ef or similarity > results[0][0]:
                    heapq.heappush(candidates, (-similarity, node))
                    heapq.heappush(results, (similarity, node))
                    if len(results) > ef:
                        heapq.heappop(results)

        return sorted(results, reverse=True)

    def _link(self, a: str, b: str, layer: int) -> None:
        self._layers[layer][a].add(b)
        self._layers[layer][b].add(a)

    def _unlink(self, a: str, b: str, layer: int) -> None:
        self._layers[layer][a].discard(b)
        self._layers[layer][b].discard(a)

    def _shrink(self, node: str, layer: int) -> None:
        """Drop the weakest edges of a node that exceeds its layer's degree."""
        adjacency = self._layers[layer][node]
        limit = self._max_degree(layer)
        if len(adjacency) <= limit:
            return

        vector = self._vectors[node]
        ranked = sorted(adjacency, key=lambda other: float(np.dot(self._vectors[other], vector)))
        for weakest in ranked[: len(adjacency) - limit]:
            self._unlink(node, weakest, layer)

    def add(self, vector_id: str, vector: np.ndarray) -> None:
        if vector_id in self._vectors:
            self.remove(vector_id)

        vector = np.asarray(vector, dtype=np.float32)
        level = self._random_level()

        self._vectors[vector_id] = vector
        self._levels[vector_id] = level
        while len(self._layers) <= level:
            self._layers.append({})
        for layer in range(level + 1):
            self._layers[layer][vector_id] = set()

        if self._entry_point is None:
            self._entry_point = vector_id
            return

        entry = self._entry_point
        top = self._levels[entry]
        nearest = [entry]

        # Greedy descent through the layers above the new node
        for layer in range(top, level, -1):
            nearest = [self._search_layer(vector, nearest, 1, layer)[0][1]]

        for layer in range(min(level, top), -1, -1):
            candidates = self._search_layer(vector, nearest, self._ef_construction, layer)
            for _, neighbour in candidates[: self._m]:
                self._link(vector_id, neighbour, layer)
                self._shrink(neighbour, layer)
            nearest = [node for _, node in candidates]

        if level > top:
            self._entry_point = vector_id

    def update(self, vector_id: str, vector: np.ndarray) -> None:
        self.add(vector_id, vector)

    def remove(self, vector_id: str) -> None:
        level = self._levels.pop(vector_id, None)
        if level is None:
            return

        del self._vectors[vector_id]

        for layer in range(level + 1):
            former = list(self._layers[layer].pop(vector_id, ()))
            for neighbour in former:
                self._layers[layer][neighbour].discard(vector_id)
            self._repair(former, layer)

        while self._layers and not self._layers[-1]:
            self._layers.pop()

        if self._entry_point == vector_id:
            self._entry_point = (
                max(self._levels, key=self._levels.__getitem__) if self._levels else None
            )

    def _repair(self, former: List[str], layer: int) -> None:
        """Reconnect the former neighbours of a removed node among themselves."""
        for node in former:
            adjacency = self._layers[layer][node]
            room = self._m - len(adjacency)
            if room <= 0:
                continue

            options = [other for other in former if other != node and other not in adjacency]
            if not options:
                continue

            vector = self._vectors[node]
            options.sort(key=lambda other: float(np.dot(self._vectors[other], vector)), reverse=True)
            for other in options[:room]:
                self._link(node, other, layer)
                self._shrink(other, layer)

    def search(self, query: np.ndarray, k: int) -> List[str]:
        if self._entry_point is None or k <= 0:
            return []

        nearest = [self._entry_point]
        for layer in range(self._levels[self._entry_point], 0, -1):
            nearest = [self._search_layer(query, nearest, 1, layer)[0][1]]

        results = self._search_layer(query, nearest, max(self._ef_search, k), 0)
        return [node for _, node in results[:k]]

    def snapshot(self) -> dict:
        return {
            "dimension": self._dimension,
            "m": self._m,
            "ef_construction": self._ef_construction,
            "ef_search": self._ef_search,
        }

    def restore(self, snapshot: dict) -> None:
        if snapshot.get("dimension") != self._dimension:
            raise ValueError(
                f"Snapshot dimension {snapshot.get('dimension')} does not match {self._dimension}"
            )

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, vector_id: object) -> bool:
        return vector_id in self._vectors
