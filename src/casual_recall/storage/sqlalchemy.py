"""
SQLAlchemy-based embedding storage.

Durable source of truth for the vector database. Uses a single SQLite file
with write-ahead logging; three tables hold the vectors, the active index
snapshot and the centroids used by the clustered index.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np
from sqlalchemy import (
    Column,
    Engine,
    Float,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool

from casual_recall.models import MetadataDocument, VectorRecord
from casual_recall.utils.vectors import from_blob, to_blob

logger = logging.getLogger(__name__)

# SQLite limits bound parameters per statement
_ID_CHUNK_SIZE = 500

# Create SQLAlchemy Base
Base = declarative_base()


class VectorDB(Base):
    """SQLAlchemy model for stored vectors."""

    __tablename__ = "vectors"

    id = Column(String, primary_key=True)
    embedding = Column(LargeBinary, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_blob = Column("metadata", LargeBinary, nullable=True)
    norm = Column(Float, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)

    __table_args__ = (
        Index("idx_norm", "norm"),
        Index("idx_created_at", "created_at"),
    )

    def to_vector_record(self) -> VectorRecord:
        """Convert database model to VectorRecord."""
        return VectorRecord(
            id=self.id,
            embedding=from_blob(self.embedding).tolist(),
            norm=self.norm,
            metadata=_decode_metadata(self.metadata_blob),
            created_at=datetime.fromtimestamp(self.created_at),
            updated_at=datetime.fromtimestamp(self.updated_at),
        )


class IndexSnapshotDB(Base):
    """SQLAlchemy model for the persisted index snapshot."""

    __tablename__ = "vector_index"

    id = Column(Integer, primary_key=True)
    type = Column(String, nullable=False)
    data = Column(LargeBinary, nullable=False)
    updated_at = Column(Float, nullable=False)


class ClusterDB(Base):
    """SQLAlchemy model for IVF centroids and their member ids."""

    __tablename__ = "clusters"

    id = Column(Integer, primary_key=True)
    centroid = Column(LargeBinary, nullable=False)
    vector_ids = Column(Text, nullable=False, default="[]")


def _encode_metadata(metadata: MetadataDocument) -> bytes:
    return json.dumps(metadata).encode("utf-8")


def _decode_metadata(blob: Optional[bytes]) -> MetadataDocument:
    return json.loads(blob.decode("utf-8")) if blob else {}


def _chunks(ids: List[str]) -> Iterator[List[str]]:
    for start in range(0, len(ids), _ID_CHUNK_SIZE):
        yield ids[start : start + _ID_CHUNK_SIZE]


def create_sqlite_engine(url: str) -> Engine:
    """
    Create an engine for a SQLite URL with WAL journaling on every connection.

    "sqlite://" gives a private in-memory database shared by all threads of
    this engine.
    """
    if url == "sqlite://":
        engine = create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


class SQLAlchemyEmbeddingStore:
    """
    SQLAlchemy-based embedding storage.

    Synchronous, thread-safe persistence layer. Callers serialize writes; the
    VectorDatabase does so with its read/write lock.

    Example:
        engine = create_sqlite_engine("sqlite:///vectors.db")
        store = SQLAlchemyEmbeddingStore(engine)
        store.create_tables()
    """

    def __init__(self, engine: Engine):
        """
        Initialize the embedding store.

        Args:
            engine: SQLAlchemy engine for database connection
        """
        self.engine = engine
        logger.info(f"SQLAlchemyEmbeddingStore initialized (engine={engine.url})")

    @contextmanager
    def _session(self):
        """Context manager for database sessions with automatic commit/rollback."""
        session = Session(self.engine)
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            session.close()

    def create_tables(self):
        """Create database tables if they don't exist."""
        Base.metadata.create_all(self.engine)
        logger.info("Database tables created/verified")

    def dispose(self):
        """Release pooled connections."""
        self.engine.dispose()

    # Vectors

    def upsert(
        self,
        vector_id: str,
        embedding: np.ndarray,
        norm: float,
        metadata: MetadataDocument,
        timestamp: float,
    ) -> None:
        """Insert or replace a vector row."""
        with self._session() as session:
            session.merge(
                VectorDB(
                    id=vector_id,
                    embedding=to_blob(embedding),
                    metadata_blob=_encode_metadata(metadata),
                    norm=norm,
                    created_at=timestamp,
                    updated_at=timestamp,
                )
            )

        logger.debug(f"Stored vector {vector_id}")

    def update_embedding(
        self, vector_id: str, embedding: np.ndarray, norm: float, timestamp: float
    ) -> bool:
        """Replace the embedding of an existing row. Returns False if missing."""
        with self._session() as session:
            row = session.get(VectorDB, vector_id)
            if row is None:
                return False

            row.embedding = to_blob(embedding)
            row.norm = norm
            row.updated_at = timestamp

        logger.debug(f"Updated embedding for {vector_id}")
        return True

    def update_metadata(self, vector_id: str, metadata: MetadataDocument, timestamp: float) -> bool:
        """Replace the metadata of an existing row. Returns False if missing."""
        with self._session() as session:
            row = session.get(VectorDB, vector_id)
            if row is None:
                return False

            row.metadata_blob = _encode_metadata(metadata)
            row.updated_at = timestamp

        logger.debug(f"Updated metadata for {vector_id}")
        return True

    def delete(self, vector_id: str) -> bool:
        """Delete a row. Returns True if a row was removed."""
        with self._session() as session:
            count = session.query(VectorDB).filter(VectorDB.id == vector_id).delete()

        logger.debug(f"Deleted vector {vector_id} (rows={count})")
        return count > 0

    def exists(self, vector_id: str) -> bool:
        with self._session() as session:
            return session.get(VectorDB, vector_id) is not None

    def get_embedding(self, vector_id: str) -> Optional[np.ndarray]:
        with self._session() as session:
            blob = session.execute(
                select(VectorDB.embedding).where(VectorDB.id == vector_id)
            ).scalar_one_or_none()
            return from_blob(blob) if blob is not None else None

    def get_embeddings(self, vector_ids: Iterable[str]) -> Dict[str, np.ndarray]:
        """Batch-load embeddings; missing ids are absent from the result."""
        ids = list(vector_ids)
        embeddings: Dict[str, np.ndarray] = {}
        if not ids:
            return embeddings

        with self._session() as session:
            for chunk in _chunks(ids):
                rows = session.execute(
                    select(VectorDB.id, VectorDB.embedding).where(VectorDB.id.in_(chunk))
                )
                for vector_id, blob in rows:
                    embeddings[vector_id] = from_blob(blob)

        return embeddings

    def get_metadata(self, vector_id: str) -> Optional[MetadataDocument]:
        with self._session() as session:
            row = session.execute(
                select(VectorDB.metadata_blob).where(VectorDB.id == vector_id)
            ).one_or_none()
            return _decode_metadata(row[0]) if row is not None else None

    def get_metadata_batch(
        self, vector_ids: Iterable[str]
    ) -> Dict[str, Tuple[MetadataDocument, float]]:
        """Batch-load (metadata, updated_at) pairs keyed by id."""
        ids = list(vector_ids)
        results: Dict[str, Tuple[MetadataDocument, float]] = {}
        if not ids:
            return results

        with self._session() as session:
            for chunk in _chunks(ids):
                rows = session.execute(
                    select(VectorDB.id, VectorDB.metadata_blob, VectorDB.updated_at).where(
                        VectorDB.id.in_(chunk)
                    )
                )
                for vector_id, blob, updated_at in rows:
                    results[vector_id] = (_decode_metadata(blob), updated_at)

        return results

    def get_record(self, vector_id: str) -> Optional[VectorRecord]:
        with self._session() as session:
            row = session.get(VectorDB, vector_id)
            return row.to_vector_record() if row is not None else None

    def iter_embeddings(self, batch_size: int = 500) -> Iterator[Tuple[str, np.ndarray]]:
        """Yield (id, embedding) in creation order."""
        with self._session() as session:
            rows = session.execute(
                select(VectorDB.id, VectorDB.embedding)
                .order_by(VectorDB.created_at, VectorDB.id)
                .execution_options(yield_per=batch_size)
            )
            for vector_id, blob in rows:
                yield vector_id, from_blob(blob)

    def iter_records(self, batch_size: int = 500) -> Iterator[VectorRecord]:
        """Yield every record in creation order."""
        with self._session() as session:
            rows = session.execute(
                select(VectorDB)
                .order_by(VectorDB.created_at, VectorDB.id)
                .execution_options(yield_per=batch_size)
            ).scalars()
            for row in rows:
                yield row.to_vector_record()

    def count(self) -> int:
        with self._session() as session:
            return session.execute(select(func.count()).select_from(VectorDB)).scalar_one()

    def list_ids_created_between(
        self, start: Optional[float] = None, end: Optional[float] = None
    ) -> List[str]:
        """Ids created in [start, end), oldest first. None leaves a side open."""
        with self._session() as session:
            query = select(VectorDB.id)
            if start is not None:
                query = query.where(VectorDB.created_at >= start)
            if end is not None:
                query = query.where(VectorDB.created_at < end)
            query = query.order_by(VectorDB.created_at, VectorDB.id)

            return list(session.execute(query).scalars())

    # Index snapshot

    def save_snapshot(self, index_type: str, data: dict, timestamp: float) -> None:
        with self._session() as session:
            session.merge(
                IndexSnapshotDB(
                    id=1,
                    type=index_type,
                    data=json.dumps(data).encode("utf-8"),
                    updated_at=timestamp,
                )
            )

        logger.debug(f"Saved {index_type} index snapshot")

    def load_snapshot(self) -> Optional[Tuple[str, dict]]:
        with self._session() as session:
            row = session.get(IndexSnapshotDB, 1)
            if row is None:
                return None
            return row.type, json.loads(row.data.decode("utf-8"))

    # Clusters

    def save_clusters(self, centroids: np.ndarray, members: Dict[int, List[str]]) -> None:
        """Replace the cluster table with the given centroids and member ids."""
        with self._session() as session:
            session.query(ClusterDB).delete()
            for cluster_id, centroid in enumerate(centroids):
                session.add(
                    ClusterDB(
                        id=cluster_id,
                        centroid=to_blob(centroid),
                        vector_ids=json.dumps(members.get(cluster_id, [])),
                    )
                )

        logger.info(f"Saved {len(centroids)} cluster centroids")

    def load_clusters(self) -> Optional[Tuple[np.ndarray, Dict[int, List[str]]]]:
        with self._session() as session:
            rows = session.query(ClusterDB).order_by(ClusterDB.id).all()
            if not rows:
                return None

            centroids = np.stack([from_blob(row.centroid) for row in rows])
            members = {index: json.loads(row.vector_ids) for index, row in enumerate(rows)}
            return centroids, members
