"""
casual-recall: Persistent vector memory with approximate nearest-neighbour search
and multi-signal retrieval.

Core components:
- vector_database: Embedding store (SQLite + pluggable ANN index + LRU cache)
- index: Flat, HNSW, IVF and LSH index strategies
- retrieval: Orchestrator blending semantic, temporal and relational signals
- embeddings: Text embedding protocol and sentence-transformers adapter
- models: Core data models (Memory, MemoryContext, SearchResult, etc.)
"""

__version__ = "0.1.0"

from casual_recall.config import (
    HNSWConfig,
    IndexType,
    IVFConfig,
    LSHConfig,
    RetrievalConfig,
    VectorDatabaseConfig,
)
from casual_recall.errors import (
    CasualRecallError,
    DimensionMismatchError,
    InvalidMetadataError,
    InvalidVectorError,
    NotFoundError,
    PersistenceOpenFailedError,
    RetrievalError,
    SearchFailedError,
    StoreError,
    VectorStoreError,
)
from casual_recall.memory_service import MemoryService
from casual_recall.models import (
    EmotionContext,
    LocationContext,
    Memory,
    MemoryContext,
    PersonContext,
    RetrievedMemory,
    SearchResult,
    VectorRecord,
)
from casual_recall.retrieval import RetrievalOrchestrator
from casual_recall.vector_database import VectorDatabase

__all__ = [
    "__version__",
    # Configuration
    "IndexType",
    "HNSWConfig",
    "IVFConfig",
    "LSHConfig",
    "RetrievalConfig",
    "VectorDatabaseConfig",
    # Errors
    "CasualRecallError",
    "VectorStoreError",
    "DimensionMismatchError",
    "InvalidVectorError",
    "InvalidMetadataError",
    "NotFoundError",
    "PersistenceOpenFailedError",
    "StoreError",
    "SearchFailedError",
    "RetrievalError",
    # Models
    "Memory",
    "MemoryContext",
    "LocationContext",
    "PersonContext",
    "EmotionContext",
    "RetrievedMemory",
    "SearchResult",
    "VectorRecord",
    # Services
    "VectorDatabase",
    "RetrievalOrchestrator",
    "MemoryService",
]
