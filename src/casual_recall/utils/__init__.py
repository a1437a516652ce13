"""
Utility modules for casual-recall.
"""

from casual_recall.utils.locks import AsyncReadWriteLock
from casual_recall.utils.vectors import (
    as_vector,
    cosine_similarity,
    from_blob,
    normalize,
    to_blob,
)

__all__ = [
    "AsyncReadWriteLock",
    "as_vector",
    "cosine_similarity",
    "from_blob",
    "normalize",
    "to_blob",
]
