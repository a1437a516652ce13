"""
Example: Storing and recalling memories

Demonstrates:
1. SentenceTransformerEmbedding with E5 prefixes
2. MemoryService storing memories with people, places and tags
3. Context-aware recall (location, people, time window)
4. Building an augmented prompt for a language model
5. Forgetting old, unimportant memories

Install required dependencies:
    pip install casual-recall[embeddings]
"""

import asyncio
import logging
from datetime import datetime, timedelta

from casual_recall import (
    IndexType,
    LocationContext,
    Memory,
    MemoryContext,
    MemoryService,
    PersonContext,
    VectorDatabase,
    VectorDatabaseConfig,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


async def main():
    try:
        from casual_recall.embeddings import SentenceTransformerEmbedding

        embedder = SentenceTransformerEmbedding(model_name="intfloat/e5-small-v2", device="cpu")
    except ImportError:
        print("Skipping example - install with: pip install casual-recall[embeddings]")
        return

    sam = PersonContext(name="Sam", relationship="friend")
    cafe = LocationContext(latitude=51.5033, longitude=-0.1196, place_name="River Cafe")
    now = datetime.now()

    config = VectorDatabaseConfig(db_path=":memory:", dimension=embedder.dimension, index_type=IndexType.HNSW)
    async with VectorDatabase(config) as db:
        service = MemoryService(db, embedder)

        memories = [
            Memory(content="Sam recommended the lemon tart at River Cafe", people=[sam], location=cafe,
                   tags=["food"], timestamp=now - timedelta(days=3)),
            Memory(content="Left the spare keys with the neighbour", tags=["home"],
                   timestamp=now - timedelta(hours=5)),
            Memory(content="Booked train tickets to Edinburgh for March", tags=["travel"],
                   timestamp=now - timedelta(days=12)),
            Memory(content="Bought printer paper", timestamp=now - timedelta(days=400)),
        ]
        for memory in memories:
            stored = await service.store(memory)
            print(f"Stored ({stored.importance:.2f}): {stored.content}")

        context = MemoryContext(current_location=cafe, recent_people=[sam])
        query = "What should I order here?"

        print(f"\nRecall: '{query}'")
        for memory in await service.recall(query, context):
            print(f"  - {memory.content}")

        print("\nAugmented prompt:\n")
        print(await service.build_prompt(query, context))

        forgotten = await service.forget_old_memories(timedelta(days=0), now=datetime.now() + timedelta(seconds=1))
        print(f"\nForgot {len(forgotten)} low-importance memories")


if __name__ == "__main__":
    asyncio.run(main())
