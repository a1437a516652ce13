"""
Embedding collaborator contract.

The vector database stores whatever vectors it is given; turning memory text
and queries into those vectors is delegated to a TextEmbedding provider.
"""

from typing import List, Protocol

from typing_extensions import runtime_checkable


@runtime_checkable
class TextEmbedding(Protocol):
    """
    Protocol for text embedding providers.

    Providers must produce vectors whose length equals `dimension`, which in
    turn must equal the dimension the VectorDatabase was opened with.
    Asymmetric models (E5, BGE) may embed documents and queries differently.

    Example:
        >>> embedder = SentenceTransformerEmbedding()
        >>> vector = await embedder.embed_query("Who did I have lunch with?")
        >>> len(vector) == embedder.dimension
        True
    """

    @property
    def dimension(self) -> int:
        """Number of elements in each produced vector."""
        ...

    @property
    def model_name(self) -> str:
        """Identifier of the underlying model."""
        ...

    async def embed_document(self, text: str) -> List[float]:
        """
        Embed memory content for storage.

        Args:
            text: Memory content

        Returns:
            Embedding vector

        Raises:
            ValueError: If text is empty
        """
        ...

    async def embed_query(self, text: str) -> List[float]:
        """
        Embed a retrieval query.

        Args:
            text: Query text

        Returns:
            Embedding vector

        Raises:
            ValueError: If text is empty
        """
        ...

    async def embed_documents(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        """Embed several documents; output order matches input order."""
        ...
