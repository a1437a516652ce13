"""
Text embedding collaborators for casual-recall.

- TextEmbedding: protocol every provider satisfies
- SentenceTransformerEmbedding: local sentence-transformers models (optional extra)
"""

from casual_recall.embeddings.protocol import TextEmbedding
from casual_recall.embeddings.sentence_transformer import SentenceTransformerEmbedding

__all__ = [
    "TextEmbedding",
    "SentenceTransformerEmbedding",
]
