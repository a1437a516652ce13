"""
Persistence protocol for the vector database.

The query engine and the VectorDatabase only rely on this interface, so the
SQLite-backed store can be swapped for another SQLAlchemy dialect or a test
double. Implementations are synchronous; callers run them in worker threads.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

import numpy as np

from casual_recall.models import MetadataDocument, VectorRecord


class EmbeddingStore(Protocol):
    """
    Protocol for durable embedding storage.

    Vectors are stored already normalized; timestamps are epoch seconds.
    """

    def upsert(
        self,
        vector_id: str,
        embedding: np.ndarray,
        norm: float,
        metadata: MetadataDocument,
        timestamp: float,
    ) -> None:
        """
        Insert or replace a vector.

        Args:
            vector_id: Stable identifier
            embedding: Unit-length float32 vector
            norm: Magnitude of the vector before normalization
            metadata: JSON-like document
            timestamp: Used for both created_at and updated_at
        """
        ...

    def update_embedding(
        self, vector_id: str, embedding: np.ndarray, norm: float, timestamp: float
    ) -> bool:
        """
        Replace the embedding of an existing vector.

        Returns:
            False if the id does not exist
        """
        ...

    def update_metadata(self, vector_id: str, metadata: MetadataDocument, timestamp: float) -> bool:
        """
        Replace the metadata of an existing vector.

        Returns:
            False if the id does not exist
        """
        ...

    def delete(self, vector_id: str) -> bool:
        """
        Delete a vector.

        Returns:
            True if a row was removed
        """
        ...

    def get_embedding(self, vector_id: str) -> Optional[np.ndarray]:
        ...

    def get_embeddings(self, vector_ids: Iterable[str]) -> Dict[str, np.ndarray]:
        """Batch lookup; missing ids are absent from the result."""
        ...

    def get_metadata(self, vector_id: str) -> Optional[MetadataDocument]:
        ...

    def get_metadata_batch(
        self, vector_ids: Iterable[str]
    ) -> Dict[str, Tuple[MetadataDocument, float]]:
        """
        Batch lookup of metadata.

        Returns:
            Mapping of id to (metadata, updated_at epoch seconds)
        """
        ...

    def get_record(self, vector_id: str) -> Optional[VectorRecord]:
        ...

    def iter_embeddings(self) -> Iterator[Tuple[str, np.ndarray]]:
        """All (id, vector) pairs in created_at order."""
        ...

    def iter_records(self) -> Iterator[VectorRecord]:
        ...

    def count(self) -> int:
        ...

    def list_ids_created_between(
        self, start: Optional[float] = None, end: Optional[float] = None
    ) -> List[str]:
        """Ids with start <= created_at < end, oldest first."""
        ...
