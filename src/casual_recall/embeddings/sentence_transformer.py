"""sentence-transformers embedding adapter for casual-recall."""

import asyncio
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedding:
    """
    Embedding adapter for any sentence-transformers model.

    Instruction-tuned models expect a prefix that tells documents and queries
    apart. The defaults match the E5 family ("passage: " / "query: "); pass
    empty prefixes for symmetric models such as all-MiniLM-L6-v2.

    Encoding is blocking, so it runs in a worker thread.

    Example:
        >>> embedder = SentenceTransformerEmbedding("intfloat/e5-base-v2")
        >>> vector = await embedder.embed_document("Lunch with Sam at the harbour")
        >>> len(vector)
        768
    """

    def __init__(
        self,
        model_name: str = "intfloat/e5-base-v2",
        device: Optional[str] = None,
        document_prefix: str = "passage: ",
        query_prefix: str = "query: ",
        normalize_embeddings: bool = True,
        cache_folder: Optional[str] = None,
    ):
        """
        Load the model.

        Args:
            model_name: HuggingFace model identifier
            device: "cuda", "cpu" or None for auto-detection
            document_prefix: Prepended to stored memory content
            query_prefix: Prepended to retrieval queries
            normalize_embeddings: L2 normalize the produced vectors
            cache_folder: Model cache directory (None = library default)
        """
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ImportError(
                "sentence-transformers is required for SentenceTransformerEmbedding. "
                "Install with: pip install casual-recall[embeddings]"
            ) from e

        self._model_name = model_name
        self._document_prefix = document_prefix
        self._query_prefix = query_prefix
        self._normalize = normalize_embeddings

        logger.info(f"Loading embedding model: {model_name}")
        self._model = SentenceTransformer(model_name, device=device, cache_folder=cache_folder)
        self._dimension = self._model.get_sentence_embedding_dimension()
        logger.info(f"Model loaded: {model_name} ({self._dimension} dimensions)")

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    def _encode(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        embeddings = self._model.encode(
            texts,
            batch_size=batch_size,
            normalize_embeddings=self._normalize,
            show_progress_bar=False,
        )
        return embeddings.tolist()

    async def embed_document(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        vectors = await asyncio.to_thread(self._encode, [f"{self._document_prefix}{text}"])
        return vectors[0]

    async def embed_query(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        vectors = await asyncio.to_thread(self._encode, [f"{self._query_prefix}{text}"])
        return vectors[0]

    async def embed_documents(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        if not texts:
            return []

        if any(not text or not text.strip() for text in texts):
            raise ValueError("Cannot embed empty texts in batch")

        prefixed = [f"{self._document_prefix}{text}" for text in texts]
        return await asyncio.to_thread(self._encode, prefixed, batch_size)
