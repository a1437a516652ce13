import json
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

from casual_recall.config import RetrievalConfig
from casual_recall.embeddings import TextEmbedding
from casual_recall.intelligence.importance import (
    UNIQUENESS_NEIGHBOURS,
    UNIQUENESS_THRESHOLD,
    access_frequency,
    calculate_importance,
    uniqueness_from_neighbours,
)
from casual_recall.models import Memory, MemoryContext, local_naive
from casual_recall.retrieval import (
    InMemoryTemporalIndex,
    KnowledgeGraph,
    RetrievalOrchestrator,
    build_augmented_prompt,
)
from casual_recall.vector_database import VectorDatabase

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
DEFAULT_MIN_IMPORTANCE = 0.3


class MemoryService:
    def __init__(
        self,
        database: VectorDatabase,
        embedding: TextEmbedding,
        orchestrator: Optional[RetrievalOrchestrator] = None,
        temporal_index: Optional[InMemoryTemporalIndex] = None,
        knowledge_graph: Optional[KnowledgeGraph] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        self.database = database
        self.embedding = embedding
        self.temporal_index = temporal_index or InMemoryTemporalIndex()
        self.knowledge_graph = knowledge_graph or KnowledgeGraph()
        self.orchestrator = orchestrator or RetrievalOrchestrator(
            database,
            embedding,
            temporal_source=self.temporal_index,
            relational_source=self.knowledge_graph,
            config=config,
        )
        self._access_counts: Counter = Counter()

    async def load(self) -> int:
        """Rebuild the timeline and knowledge graph from the database."""
        count = 0
        async for record in self.database.iter_records():
            memory = Memory.from_metadata(record.id, record.metadata)
            self.temporal_index.index(memory)
            self.knowledge_graph.add_memory(memory)
            count += 1

        logger.info(f"Loaded {count} memories into timeline and knowledge graph")
        return count

    async def store(self, memory: Memory) -> Memory:
        try:
            if not memory.embedding:
                vector = await self.embedding.embed_document(memory.content)
                memory = memory.model_copy(update={"embedding": vector})

            # Uniqueness is measured against everything stored so far; an
            # earlier version of the same memory does not count
            similar = await self.database.search(
                memory.embedding, k=UNIQUENESS_NEIGHBOURS + 1, threshold=UNIQUENESS_THRESHOLD
            )
            near_duplicates = sum(1 for hit in similar if hit.id != memory.id)
            importance = calculate_importance(
                memory,
                uniqueness=uniqueness_from_neighbours(near_duplicates),
                access=access_frequency(self._access_counts[memory.id]),
            )
            memory = memory.model_copy(update={"importance": importance})

            await self.database.insert(memory.id, memory.embedding, memory.to_metadata())

            self.temporal_index.index(memory)
            self.knowledge_graph.add_memory(memory)

            logger.info(
                f"Stored memory: id={memory.id}, source={memory.source}, "
                f"importance={importance:.2f}, near_duplicates={near_duplicates}"
            )
            return memory

        except Exception as e:
            logger.error(f"Failed to store memory: {e}")
            raise

    async def forget(self, memory_id: str) -> None:
        await self.database.delete(memory_id)
        self.temporal_index.remove(memory_id)
        self.knowledge_graph.remove_memory(memory_id)
        self._access_counts.pop(memory_id, None)

        logger.info(f"Forgot memory: id={memory_id}")

    async def recall(self, query: str, context: Optional[MemoryContext] = None) -> List[Memory]:
        """
        Retrieve relevant memories.

        Retrieval failures are treated as "no relevant memories" so callers
        can carry on without augmentation.
        """
        try:
            memories = await self.orchestrator.retrieve(query, context)
        except Exception as e:
            logger.warning(f"Memory recall failed, continuing without memories: {e}")
            return []

        self._access_counts.update(memory.id for memory in memories)
        return memories

    async def build_prompt(self, query: str, context: Optional[MemoryContext] = None) -> str:
        memories = await self.recall(query, context)
        return build_augmented_prompt(query, memories, context)

    async def forget_old_memories(
        self,
        max_age: timedelta,
        min_importance: float = DEFAULT_MIN_IMPORTANCE,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """
        Forget memories stored before now - max_age whose importance is
        below min_importance.

        Returns:
            Ids of forgotten memories
        """
        cutoff = local_naive(now or datetime.now()) - max_age
        candidates = await self.database.list_ids_created_between(None, cutoff)

        forgotten = []
        for memory_id in candidates:
            metadata = await self.database.get_metadata(memory_id)
            importance = metadata.get("importance", 0.5)
            if isinstance(importance, (int, float)) and importance < min_importance:
                await self.forget(memory_id)
                forgotten.append(memory_id)

        logger.info(
            f"Forgetting pass: {len(forgotten)} of {len(candidates)} memories older than "
            f"{cutoff.isoformat()} forgotten (min_importance={min_importance})"
        )
        return forgotten

    async def export_memories(self) -> bytes:
        """Export every memory as UTF-8 JSON."""
        memories = []
        async for record in self.database.iter_records():
            memory = Memory.from_metadata(record.id, record.metadata)
            memory = memory.model_copy(update={"embedding": record.embedding})
            memories.append(memory.model_dump(mode="json"))

        export = {
            "memories": memories,
            "metadata": {
                "export_date": datetime.now().isoformat(),
                "version": EXPORT_VERSION,
                "total_memories": len(memories),
            },
        }
        return json.dumps(export).encode("utf-8")
