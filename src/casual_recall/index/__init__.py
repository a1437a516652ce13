"""
Pluggable index strategies.

- FlatIndex: exact brute-force scan (baseline and cold-start fallback)
- HNSWIndex: hierarchical navigable small-world graph
- IVFFlatIndex: clustered inverted file over k-means centroids
- LSHIndex: random-hyperplane locality-sensitive hashing
"""

import logging

from casual_recall.config import IndexType, VectorDatabaseConfig
from casual_recall.index.flat import FlatIndex
from casual_recall.index.hnsw import HNSWIndex
from casual_recall.index.ivf import IVFFlatIndex
from casual_recall.index.lsh import LSHIndex
from casual_recall.index.protocol import VectorIndex

logger = logging.getLogger(__name__)

__all__ = [
    "VectorIndex",
    "FlatIndex",
    "HNSWIndex",
    "IVFFlatIndex",
    "LSHIndex",
    "create_index",
]


def create_index(config: VectorDatabaseConfig) -> VectorIndex:
    """Build an empty index for the configured strategy."""
    if config.index_type == IndexType.FLAT:
        index = FlatIndex(config.dimension)
    elif config.index_type == IndexType.HNSW:
        index = HNSWIndex(
            config.dimension,
            m=config.hnsw.m,
            ef_construction=config.hnsw.ef_construction,
            ef_search=config.hnsw.ef_search,
            seed=config.hnsw.seed,
        )
    elif config.index_type == IndexType.IVF_FLAT:
        index = IVFFlatIndex(
            config.dimension,
            n_clusters=config.ivf.n_clusters,
            n_probe=config.ivf.n_probe,
            n_iter=config.ivf.n_iter,
            seed=config.ivf.seed,
        )
    elif config.index_type == IndexType.LSH:
        index = LSHIndex(
            config.dimension,
            n_tables=config.lsh.n_tables,
            n_hyperplanes=config.lsh.n_hyperplanes,
            seed=config.lsh.seed,
        )
    else:
        raise ValueError(f"Unknown index type: {config.index_type}")

    logger.info(f"Created {config.index_type.value} index (dimension={config.dimension})")
    return index
