"""
Configuration models for casual-recall.

Configuration is explicit: build a VectorDatabaseConfig (and optionally a
RetrievalConfig) and pass it to the component at construction time. Defaults
mirror the values the memory layer was tuned with.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

# Defaults
DEFAULT_DIMENSION = 768
DEFAULT_CACHE_CAPACITY = 1000
DEFAULT_DB_PATH = "vectors.db"

RETRIEVAL_THRESHOLD = 0.7
CONTEXT_WINDOW = 10
PROXIMITY_RADIUS_METERS = 1000.0
TEMPORAL_WINDOW_DAYS = 30


class IndexType(str, Enum):
    """Index strategy used by a vector database instance."""

    FLAT = "flat"
    HNSW = "hnsw"
    IVF_FLAT = "ivf_flat"
    LSH = "lsh"


class HNSWConfig(BaseModel):
    """Parameters for the hierarchical small-world graph index."""

    m: int = Field(default=16, ge=2, description="Neighbours linked per node on upper layers")
    ef_construction: int = Field(
        default=200, ge=1, description="Beam width used while linking new nodes"
    )
    ef_search: int = Field(default=50, ge=1, description="Beam width on the bottom layer at query time")
    seed: Optional[int] = Field(default=None, description="Seed for level assignment")


class IVFConfig(BaseModel):
    """Parameters for the clustered (inverted-file) index."""

    n_clusters: int = Field(default=100, ge=1, description="Number of k-means centroids")
    n_probe: int = Field(default=3, ge=1, description="Nearest clusters scanned per query")
    n_iter: int = Field(default=20, ge=1, description="k-means iterations per training pass")
    seed: Optional[int] = Field(default=None, description="Seed for centroid initialisation")
    auto_train_threshold: Optional[int] = Field(
        default=None,
        ge=1,
        description="Train automatically once this many vectors exist (None = explicit only)",
    )


class LSHConfig(BaseModel):
    """Parameters for the locality-sensitive hashing index."""

    n_tables: int = Field(default=10, ge=1, description="Independent hash tables")
    n_hyperplanes: int = Field(default=4, ge=1, le=62, description="Hyperplanes (bits) per table")
    seed: Optional[int] = Field(default=None, description="Seed for hyperplane sampling")


class VectorDatabaseConfig(BaseModel):
    """
    Configuration for a VectorDatabase instance.

    The dimension and index type are fixed for the lifetime of the instance.
    """

    db_path: str = Field(
        default=DEFAULT_DB_PATH, description="SQLite file path, or ':memory:' for a private database"
    )
    dimension: int = Field(default=DEFAULT_DIMENSION, ge=1, description="Embedding dimension")
    index_type: IndexType = Field(default=IndexType.HNSW, description="Index strategy")
    cache_capacity: int = Field(
        default=DEFAULT_CACHE_CAPACITY, ge=1, description="Vectors kept in the LRU cache"
    )
    hnsw: HNSWConfig = Field(default_factory=HNSWConfig)
    ivf: IVFConfig = Field(default_factory=IVFConfig)
    lsh: LSHConfig = Field(default_factory=LSHConfig)

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the configured file."""
        if self.db_path == ":memory:":
            return "sqlite://"
        return f"sqlite:///{Path(self.db_path).expanduser()}"


class RetrievalConfig(BaseModel):
    """Scoring constants for the retrieval orchestrator."""

    retrieval_threshold: float = Field(
        default=RETRIEVAL_THRESHOLD, description="Minimum semantic and re-scored similarity"
    )
    semantic_k: int = Field(default=20, ge=1, description="Semantic candidates requested")
    context_window: int = Field(
        default=CONTEXT_WINDOW, ge=1, description="Memories returned by retrieve()"
    )
    rerank_pool: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on merged candidates passed to the reranker (None = rerank all)",
    )
    relational_limit: int = Field(default=10, ge=1, description="Relational candidates requested")
    temporal_window_days: int = Field(
        default=TEMPORAL_WINDOW_DAYS, ge=1, description="Default temporal window when none is given"
    )

    # Contextual re-scoring
    proximity_radius_meters: float = Field(default=PROXIMITY_RADIUS_METERS, gt=0)
    location_boost: float = Field(default=0.1, ge=0.0)
    person_boost: float = Field(default=0.05, ge=0.0)
    time_weight: float = Field(default=0.1, ge=0.0)

    # Merge scoring
    semantic_base: float = Field(default=1.0)
    temporal_boost: float = Field(default=0.3, ge=0.0)
    temporal_base: float = Field(default=0.7)
    relational_boost: float = Field(default=0.2, ge=0.0)
    relational_base: float = Field(default=0.5)
