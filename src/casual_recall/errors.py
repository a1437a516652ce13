"""
Exception hierarchy for casual-recall.

Every failure surfaced by the vector database and the retrieval layer is a
subclass of CasualRecallError, so callers can catch the whole family or a
single condition. Caller mistakes (wrong dimension, bad vectors, bad metadata)
also subclass ValueError, and missing ids subclass LookupError.
"""


class CasualRecallError(Exception):
    """Base class for all casual-recall errors."""


class VectorStoreError(CasualRecallError):
    """Base class for vector database errors."""


class DimensionMismatchError(VectorStoreError, ValueError):
    """A vector did not match the database dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")


class InvalidVectorError(VectorStoreError, ValueError):
    """A vector could not be normalized (zero magnitude or non-finite values)."""


class InvalidMetadataError(VectorStoreError, ValueError):
    """A metadata document contained unsupported values."""


class NotFoundError(VectorStoreError, LookupError):
    """The requested id does not exist in the store."""

    def __init__(self, vector_id: str):
        self.vector_id = vector_id
        super().__init__(f"Vector {vector_id} not found")


class StoreError(VectorStoreError):
    """The durable store failed to complete a write or read."""


class SearchFailedError(VectorStoreError):
    """A search could not be completed because the index or store failed."""


class PersistenceOpenFailedError(VectorStoreError):
    """The database could not be opened."""


class RetrievalError(CasualRecallError):
    """Memory retrieval could not be completed."""
