"""
Example: Using the vector database directly

Demonstrates:
1. Opening a file-backed database with the HNSW index
2. Inserting vectors with metadata
3. Thresholded top-k search
4. Updating metadata and deleting vectors
5. Switching index strategies (IVF training, LSH)

No embedding model is needed; vectors are random.
"""

import asyncio
import tempfile
from pathlib import Path

import numpy as np

from casual_recall import IndexType, IVFConfig, VectorDatabase, VectorDatabaseConfig

DIMENSION = 32


async def example_basic_usage(db_path: str):
    """Example: Insert, search, update and delete."""
    print("\n=== Basic usage (HNSW) ===")

    rng = np.random.default_rng(42)
    config = VectorDatabaseConfig(db_path=db_path, dimension=DIMENSION, index_type=IndexType.HNSW)

    async with VectorDatabase(config) as db:
        vectors = rng.standard_normal((200, DIMENSION))
        for i, vector in enumerate(vectors):
            await db.insert(f"doc-{i}", vector.tolist(), {"title": f"Document {i}", "rank": i})
        print(f"Inserted {await db.count()} vectors")

        # A slightly perturbed copy of doc-7 should find doc-7 first
        query = vectors[7] + rng.normal(scale=0.05, size=DIMENSION)
        for result in await db.search(query.tolist(), k=3, threshold=0.2):
            print(f"  [{result.similarity:.3f}] {result.id} {result.metadata['title']}")

        await db.update_metadata("doc-7", {"title": "Document 7 (edited)", "rank": 7})
        print(f"Metadata now: {await db.get_metadata('doc-7')}")

        await db.delete("doc-7")
        print(f"After delete: {await db.count()} vectors")

    # Reopening rebuilds the index from the persisted vectors
    async with VectorDatabase(config) as db:
        print(f"Reopened with {len(db.index)} indexed vectors")


async def example_ivf(db_path: str):
    """Example: IVF index with explicit training."""
    print("\n=== IVF index ===")

    rng = np.random.default_rng(7)
    config = VectorDatabaseConfig(
        db_path=db_path,
        dimension=DIMENSION,
        index_type=IndexType.IVF_FLAT,
        ivf=IVFConfig(n_clusters=16, n_probe=4),
    )

    async with VectorDatabase(config) as db:
        for i, vector in enumerate(rng.standard_normal((500, DIMENSION))):
            await db.insert(f"item-{i}", vector.tolist())

        # Until trained, the IVF index answers with an exact scan
        clusters = await db.train_index()
        print(f"Trained {clusters} clusters")
        print(f"Metrics: {db.get_metrics()}")


async def main():
    """Run all examples."""
    print("casual-recall vector database examples")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as directory:
        await example_basic_usage(str(Path(directory) / "basic.db"))
        await example_ivf(str(Path(directory) / "ivf.db"))

    print("\n" + "=" * 60)
    print("Examples complete!")


if __name__ == "__main__":
    asyncio.run(main())
