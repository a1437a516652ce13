"""
Collaborator protocols consumed by the retrieval orchestrator.

Temporal and relational candidates come from sources outside the vector
database; they are merged with semantic hits without being scored by
embedding similarity.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from typing_extensions import runtime_checkable

from casual_recall.models import Memory


@runtime_checkable
class TemporalSource(Protocol):
    """Provides memories that fall inside a time window."""

    async def memories_between(self, start: datetime, end: datetime) -> List[Memory]:
        """
        Memories whose timestamp lies in [start, end].

        Args:
            start: Window start
            end: Window end

        Returns:
            Memories ordered by timestamp, oldest first
        """
        ...


@runtime_checkable
class RelationalSource(Protocol):
    """Provides memories connected to a query through shared entities."""

    async def find_related(self, query: str, limit: int = 10) -> List[Memory]:
        """
        Memories linked to entities mentioned in the query.

        Args:
            query: Free-text query
            limit: Maximum number of memories

        Returns:
            Memories ordered by relevance, most related first
        """
        ...


@runtime_checkable
class Reranker(Protocol):
    """Fine-grained second scoring pass over merged candidates."""

    async def score(
        self, query: str, query_embedding: List[float], memories: List[Memory]
    ) -> List[Optional[float]]:
        """
        Score each memory against the query.

        Returns:
            One score per memory (same order); None marks a memory that could
            not be scored and must be skipped
        """
        ...
