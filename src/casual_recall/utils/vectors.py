"""
Vector helpers shared by the store, the index strategies and the retrieval layer.

Vectors are stored as float32 little-endian blobs, matching what the index
strategies hold in memory.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from casual_recall.errors import DimensionMismatchError, InvalidVectorError

logger = logging.getLogger(__name__)

VECTOR_DTYPE = np.dtype("<f4")


def as_vector(values: Sequence[float], dimension: int) -> np.ndarray:
    """Convert a sequence to a float32 vector, enforcing the dimension."""
    vector = np.asarray(values, dtype=np.float32)
    if vector.ndim != 1 or vector.shape[0] != dimension:
        actual = vector.shape[0] if vector.ndim == 1 else int(vector.size)
        raise DimensionMismatchError(dimension, actual)
    return vector


def normalize(vector: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    L2-normalize a vector.

    Returns:
        Tuple of (unit vector, magnitude of the original vector)

    Raises:
        InvalidVectorError: If the vector has zero magnitude or non-finite values
    """
    if not np.all(np.isfinite(vector)):
        raise InvalidVectorError("Vector contains non-finite values")

    norm = float(np.linalg.norm(vector.astype(np.float64)))
    if norm == 0.0:
        raise InvalidVectorError("Cannot normalize a zero-magnitude vector")

    return (vector / norm).astype(np.float32), norm


def to_blob(vector: np.ndarray) -> bytes:
    """Serialize a vector to bytes."""
    return np.ascontiguousarray(vector, dtype=VECTOR_DTYPE).tobytes()


def from_blob(blob: bytes) -> np.ndarray:
    """Deserialize bytes produced by to_blob()."""
    return np.frombuffer(blob, dtype=VECTOR_DTYPE).astype(np.float32)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity for vectors that may not be normalized.

    Returns 0.0 for mismatched lengths or zero-magnitude input.
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.shape != vec_b.shape or vec_a.size == 0:
        return 0.0

    magnitude = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if magnitude == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / magnitude)
