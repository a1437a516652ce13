"""
Index strategy protocol.

An index is a derived, in-memory view over the store's vectors that produces
approximate candidate ids for a query. Exact similarity is restored later by
the query engine, so search() returns ids only.
"""

from typing import List, Protocol

import numpy as np
from typing_extensions import runtime_checkable


@runtime_checkable
class VectorIndex(Protocol):
    """
    Protocol for pluggable index strategies.

    All vectors passed in are float32 and already L2-normalized by the
    vector database. Implementations must:

    1. Apply add/update/remove synchronously (no deferred work)
    2. Never return an id that has been removed
    3. Return candidates best-first, possibly missing true neighbours
    """

    @property
    def dimension(self) -> int:
        """Vector dimension accepted by this index."""
        ...

    def add(self, vector_id: str, vector: np.ndarray) -> None:
        """
        Add a vector. Adding an existing id replaces its vector.

        Args:
            vector_id: Stable identifier of the vector
            vector: Unit-length float32 vector
        """
        ...

    def update(self, vector_id: str, vector: np.ndarray) -> None:
        """Replace the vector stored for an id."""
        ...

    def remove(self, vector_id: str) -> None:
        """Remove an id. Removing a missing id is a no-op."""
        ...

    def search(self, query: np.ndarray, k: int) -> List[str]:
        """
        Find approximate nearest neighbours.

        Args:
            query: Unit-length float32 query vector
            k: Maximum number of candidate ids to return

        Returns:
            Candidate ids ordered best-first
        """
        ...

    def snapshot(self) -> dict:
        """JSON-serializable state needed to rebuild the index deterministically."""
        ...

    def restore(self, snapshot: dict) -> None:
        """Apply a snapshot taken from an index of the same type and dimension."""
        ...

    def __len__(self) -> int: ...

    def __contains__(self, vector_id: object) -> bool: ...
