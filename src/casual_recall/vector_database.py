"""
Persistent vector database with approximate nearest-neighbour search.

Ties together the durable SQLAlchemy store, the configured index strategy, the
LRU vector cache and the query engine. Writes (store + index + cache) run as
one unit under the write side of a read/write lock; searches and reads share
the read side. Blocking work runs in worker threads so the event loop stays
responsive.

Example:
    config = VectorDatabaseConfig(db_path="vectors.db", dimension=768)
    async with VectorDatabase(config) as db:
        await db.insert("memory-1", embedding, {"content": "Lunch with Sam"})
        hits = await db.search(query_embedding, k=5, threshold=0.7)
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import AsyncIterator, Callable, List, Optional, Sequence, TypeVar

import numpy as np
from pydantic import ValidationError
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from casual_recall.config import VectorDatabaseConfig
from casual_recall.errors import (
    InvalidMetadataError,
    NotFoundError,
    PersistenceOpenFailedError,
    StoreError,
)
from casual_recall.index import IVFFlatIndex, VectorIndex, create_index
from casual_recall.models import MetadataDocument, SearchResult, VectorRecord, metadata_adapter
from casual_recall.query import QueryEngine
from casual_recall.storage.cache import LRUCache
from casual_recall.storage.sqlalchemy import SQLAlchemyEmbeddingStore, create_sqlite_engine
from casual_recall.utils.locks import AsyncReadWriteLock
from casual_recall.utils.vectors import as_vector, normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_in_thread(func: Callable[..., T], *args) -> T:
    """
    Run blocking work in a worker thread and wait for it even if cancelled.

    A thread cannot be interrupted, so on cancellation the caller keeps
    holding its lock until the thread has finished; the cancellation is
    re-raised afterwards.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                continue
            except Exception:
                break
        raise


class VectorDatabase:
    """
    Embedding store with a pluggable ANN index.

    The instance owns its store, index and cache exclusively; open() and
    close() are driven by the caller (or by `async with`).
    """

    def __init__(self, config: Optional[VectorDatabaseConfig] = None, engine: Optional[Engine] = None):
        """
        Initialize the vector database.

        Args:
            config: Database configuration (dimension, index strategy, cache size, file)
            engine: Optional SQLAlchemy engine overriding config.db_path
        """
        self.config = config or VectorDatabaseConfig()
        self._engine = engine
        self._store: Optional[SQLAlchemyEmbeddingStore] = None
        self._query_engine: Optional[QueryEngine] = None
        self._index: VectorIndex = create_index(self.config)
        self._cache: LRUCache[str, np.ndarray] = LRUCache(self.config.cache_capacity)
        self._lock = AsyncReadWriteLock()
        self._last_timestamp = 0.0
        self._is_open = False

        logger.info(
            f"VectorDatabase initialized (dimension={self.config.dimension}, "
            f"index={self.config.index_type.value}, cache={self.config.cache_capacity})"
        )

    @property
    def dimension(self) -> int:
        return self.config.dimension

    @property
    def index(self) -> VectorIndex:
        return self._index

    @property
    def cache(self) -> LRUCache:
        return self._cache

    @property
    def is_open(self) -> bool:
        return self._is_open

    # Lifecycle

    async def open(self) -> None:
        """
        Open the store and rebuild the index from persisted vectors.

        Raises:
            PersistenceOpenFailedError: If the database cannot be opened
        """
        if self._is_open:
            return

        async with self._lock.write():
            try:
                await _run_in_thread(self._open_sync)
            except PersistenceOpenFailedError:
                raise
            except Exception as e:
                logger.error(f"Failed to open vector database: {e}")
                raise PersistenceOpenFailedError(f"Failed to open vector database: {e}") from e

        self._is_open = True

    def _open_sync(self) -> None:
        engine = self._engine or create_sqlite_engine(self.config.database_url)
        store = SQLAlchemyEmbeddingStore(engine)
        store.create_tables()

        self._store = store
        self._load_index()
        self._query_engine = QueryEngine(store, self._index, self._cache, self.dimension)

    def _load_index(self) -> None:
        index_type = self.config.index_type.value

        snapshot = self._store.load_snapshot()
        if snapshot is not None:
            stored_type, data = snapshot
            if stored_type != index_type:
                logger.warning(
                    f"Discarding {stored_type} index snapshot; rebuilding as {index_type}"
                )
            else:
                try:
                    self._index.restore(data)
                except (KeyError, ValueError) as e:
                    logger.warning(f"Discarding incompatible index snapshot: {e}")

        if isinstance(self._index, IVFFlatIndex):
            clusters = self._store.load_clusters()
            if clusters is not None:
                centroids, _ = clusters
                if centroids.shape[1] == self.dimension:
                    self._index.set_centroids(centroids)
                else:
                    logger.warning("Discarding cluster centroids with a different dimension")

        count = 0
        for vector_id, vector in self._store.iter_embeddings():
            if vector.shape[0] != self.dimension:
                raise PersistenceOpenFailedError(
                    f"Stored vector {vector_id} has dimension {vector.shape[0]}, "
                    f"expected {self.dimension}"
                )
            self._index.add(vector_id, vector)
            count += 1

        self._store.save_snapshot(index_type, self._index.snapshot(), self._next_timestamp())
        logger.info(f"Loaded {count} vectors into {index_type} index")

    async def close(self) -> None:
        """Persist the index snapshot and release the database."""
        if not self._is_open:
            return

        async with self._lock.write():
            try:
                await _run_in_thread(self._persist_index)
            finally:
                self._store.dispose()
                self._is_open = False
                self._cache.clear()

        logger.info("VectorDatabase closed")

    async def __aenter__(self) -> "VectorDatabase":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if not self._is_open:
            raise StoreError("Vector database is not open")

    def _next_timestamp(self) -> float:
        # Strictly increasing per instance so "most recently updated" is well defined
        self._last_timestamp = max(time.time(), self._last_timestamp + 1e-6)
        return self._last_timestamp

    def _validate_metadata(self, metadata: Optional[MetadataDocument]) -> MetadataDocument:
        try:
            return metadata_adapter.validate_python(metadata or {})
        except ValidationError as e:
            raise InvalidMetadataError(f"Unsupported metadata document: {e}") from e

    # Writes

    async def insert(
        self, vector_id: str, embedding: Sequence[float], metadata: Optional[MetadataDocument] = None
    ) -> None:
        """
        Insert or replace a vector.

        Args:
            vector_id: Stable identifier
            embedding: Vector of the database dimension (stored normalized)
            metadata: JSON-like document stored alongside the vector

        Raises:
            DimensionMismatchError: If the embedding has the wrong length
            InvalidVectorError: If the embedding cannot be normalized
            InvalidMetadataError: If the metadata has unsupported values
            StoreError: If the durable write fails
        """
        self._ensure_open()
        vector_id = str(vector_id)
        normalized, norm = normalize(as_vector(embedding, self.dimension))
        document = self._validate_metadata(metadata)

        async with self._lock.write():
            await _run_in_thread(self._insert_sync, vector_id, normalized, norm, document)

    def _insert_sync(
        self, vector_id: str, vector: np.ndarray, norm: float, metadata: MetadataDocument
    ) -> None:
        try:
            self._store.upsert(vector_id, vector, norm, metadata, self._next_timestamp())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to insert vector {vector_id}: {e}") from e

        self._index.add(vector_id, vector)
        self._cache.set(vector_id, vector)
        self._maybe_auto_train()

        logger.debug(f"Inserted vector {vector_id} (norm={norm:.4f})")

    async def update(self, vector_id: str, embedding: Sequence[float]) -> None:
        """
        Replace the embedding of an existing vector, keeping its metadata.

        Raises:
            DimensionMismatchError: If the embedding has the wrong length
            NotFoundError: If the id does not exist
            StoreError: If the durable write fails
        """
        self._ensure_open()
        vector_id = str(vector_id)
        normalized, norm = normalize(as_vector(embedding, self.dimension))

        async with self._lock.write():
            await _run_in_thread(self._update_sync, vector_id, normalized, norm)

    def _update_sync(self, vector_id: str, vector: np.ndarray, norm: float) -> None:
        try:
            found = self._store.update_embedding(vector_id, vector, norm, self._next_timestamp())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update vector {vector_id}: {e}") from e

        if not found:
            raise NotFoundError(vector_id)

        self._index.update(vector_id, vector)
        self._cache.set(vector_id, vector)

        logger.debug(f"Updated vector {vector_id}")

    async def update_metadata(self, vector_id: str, metadata: MetadataDocument) -> None:
        """
        Replace the metadata document of a vector. The embedding is untouched.

        Raises:
            NotFoundError: If the id does not exist
            InvalidMetadataError: If the metadata has unsupported values
            StoreError: If the durable write fails
        """
        self._ensure_open()
        vector_id = str(vector_id)
        document = self._validate_metadata(metadata)

        async with self._lock.write():
            await _run_in_thread(self._update_metadata_sync, vector_id, document)

    def _update_metadata_sync(self, vector_id: str, metadata: MetadataDocument) -> None:
        try:
            found = self._store.update_metadata(vector_id, metadata, self._next_timestamp())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update metadata for {vector_id}: {e}") from e

        if not found:
            raise NotFoundError(vector_id)

    async def delete(self, vector_id: str) -> None:
        """Delete a vector from store, index and cache. Missing ids are ignored."""
        self._ensure_open()
        vector_id = str(vector_id)

        async with self._lock.write():
            await _run_in_thread(self._delete_sync, vector_id)

    def _delete_sync(self, vector_id: str) -> None:
        try:
            removed = self._store.delete(vector_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete vector {vector_id}: {e}") from e

        self._index.remove(vector_id)
        self._cache.remove(vector_id)

        if removed:
            logger.debug(f"Deleted vector {vector_id}")

    # Reads

    async def search(
        self, query: Sequence[float], k: int = 10, threshold: float = 0.0
    ) -> List[SearchResult]:
        """
        Find the k most similar vectors with similarity >= threshold.

        Raises:
            DimensionMismatchError: If the query has the wrong length
            SearchFailedError: If the index or the store fails
        """
        self._ensure_open()

        async with self._lock.read():
            return await _run_in_thread(self._query_engine.search, query, k, threshold)

    async def get_metadata(self, vector_id: str) -> MetadataDocument:
        """
        Raises:
            NotFoundError: If the id does not exist
        """
        self._ensure_open()
        vector_id = str(vector_id)

        async with self._lock.read():
            try:
                metadata = await _run_in_thread(self._store.get_metadata, vector_id)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to read metadata for {vector_id}: {e}") from e

        if metadata is None:
            raise NotFoundError(vector_id)
        return metadata

    async def get_embedding(self, vector_id: str) -> List[float]:
        """Return the stored (normalized) embedding, cache first."""
        self._ensure_open()
        vector_id = str(vector_id)

        async with self._lock.read():
            vector = await _run_in_thread(self._get_vector_sync, vector_id)

        return vector.tolist()

    def _get_vector_sync(self, vector_id: str) -> np.ndarray:
        cached = self._cache.get(vector_id)
        if cached is not None:
            return cached

        try:
            vector = self._store.get_embedding(vector_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read vector {vector_id}: {e}") from e

        if vector is None:
            raise NotFoundError(vector_id)

        self._cache.set(vector_id, vector)
        return vector

    async def get_record(self, vector_id: str) -> VectorRecord:
        self._ensure_open()
        vector_id = str(vector_id)

        async with self._lock.read():
            try:
                record = await _run_in_thread(self._store.get_record, vector_id)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to read vector {vector_id}: {e}") from e

        if record is None:
            raise NotFoundError(vector_id)
        return record

    async def iter_records(self) -> AsyncIterator[VectorRecord]:
        """Yield every record in creation order (a consistent snapshot)."""
        self._ensure_open()

        async with self._lock.read():
            try:
                records = await _run_in_thread(lambda: list(self._store.iter_records()))
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to list vectors: {e}") from e

        for record in records:
            yield record

    async def list_ids_created_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[str]:
        """Ids created in [start, end), oldest first. None leaves a side open."""
        self._ensure_open()

        async with self._lock.read():
            try:
                return await _run_in_thread(
                    self._store.list_ids_created_between,
                    start.timestamp() if start else None,
                    end.timestamp() if end else None,
                )
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to scan vectors by creation time: {e}") from e

    async def count(self) -> int:
        self._ensure_open()

        async with self._lock.read():
            try:
                return await _run_in_thread(self._store.count)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to count vectors: {e}") from e

    # Index maintenance

    async def train_index(self) -> int:
        """
        Run the clustering pass of the IVF index and persist its centroids.

        Returns:
            Number of centroids (0 for other strategies or an empty database)
        """
        self._ensure_open()

        if not isinstance(self._index, IVFFlatIndex):
            logger.info(f"{self.config.index_type.value} index does not need training")
            return 0

        async with self._lock.write():
            return await _run_in_thread(self._train_sync)

    def _train_sync(self) -> int:
        n_clusters = self._index.train()
        if n_clusters:
            self._persist_index()
        return n_clusters

    def _maybe_auto_train(self) -> None:
        threshold = self.config.ivf.auto_train_threshold
        if (
            threshold is not None
            and isinstance(self._index, IVFFlatIndex)
            and not self._index.is_trained
            and len(self._index) >= threshold
        ):
            logger.info(f"Auto-training IVF index at {len(self._index)} vectors")
            if not self._index.train():
                return

            # The vector is already committed; centroids are persisted again on close
            try:
                self._persist_index()
            except StoreError as e:
                logger.warning(f"Failed to persist auto-trained IVF index, retrying on close: {e}")

    async def save_index_snapshot(self) -> None:
        """Persist the index snapshot (and IVF centroids) without closing."""
        self._ensure_open()

        async with self._lock.write():
            await _run_in_thread(self._persist_index)

    def _persist_index(self) -> None:
        try:
            if isinstance(self._index, IVFFlatIndex) and self._index.is_trained:
                self._store.save_clusters(self._index.centroids, self._index.cluster_members())
            self._store.save_snapshot(
                self.config.index_type.value, self._index.snapshot(), self._next_timestamp()
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to persist index snapshot: {e}") from e

    def get_metrics(self) -> dict:
        """Index and cache statistics."""
        metrics = {
            "index_type": self.config.index_type.value,
            "index_size": len(self._index),
            "dimension": self.dimension,
        }
        metrics.update(self._cache.get_metrics())
        return metrics
