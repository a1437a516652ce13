"""
Storage layer for the vector database.

- EmbeddingStore: persistence protocol
- SQLAlchemyEmbeddingStore: SQLite (WAL) implementation
- LRUCache: bounded in-memory vector cache
"""

from casual_recall.storage.cache import LRUCache
from casual_recall.storage.protocols import EmbeddingStore
from casual_recall.storage.sqlalchemy import SQLAlchemyEmbeddingStore, create_sqlite_engine

__all__ = [
    "EmbeddingStore",
    "SQLAlchemyEmbeddingStore",
    "LRUCache",
    "create_sqlite_engine",
]
