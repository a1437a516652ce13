#!/usr/bin/env python3
"""
Index Recall Benchmarking Tool

Loads the same synthetic embeddings into a vector database per index strategy
and compares each strategy's top-k results against the exact Flat strategy.
Reports recall@k and average query latency.

Usage:
    # Use defaults (2000 vectors, 128 dimensions, all strategies)
    python run.py

    # Larger corpus, selected strategies
    python run.py --vectors 10000 --dimension 384 --strategies hnsw ivf_flat

    # Custom output directory
    python run.py --output-dir results

Defaults can also be set in a .env file (BENCHMARK_VECTORS, BENCHMARK_DIMENSION,
BENCHMARK_SEED).
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List

import numpy as np
from dotenv import load_dotenv

load_dotenv()

# Add src to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../../src/')))

from casual_recall.config import HNSWConfig, IndexType, IVFConfig, LSHConfig, VectorDatabaseConfig
from casual_recall.vector_database import VectorDatabase

# Configure logging
logger = logging.getLogger("index-benchmark")
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@dataclass
class BenchmarkResult:
    """Result for a single index strategy."""
    strategy: str
    recall: float
    avg_query_ms: float
    build_seconds: float
    vectors: int


def make_dataset(count: int, dimension: int, clusters: int, seed: int) -> np.ndarray:
    """Clustered gaussian data, closer to real embeddings than uniform noise."""
    rng = np.random.default_rng(seed)
    centers = rng.standard_normal((clusters, dimension))
    labels = rng.integers(0, clusters, size=count)
    return (centers[labels] + 0.3 * rng.standard_normal((count, dimension))).astype(np.float32)


async def run_strategy(
    index_type: IndexType,
    data: np.ndarray,
    queries: np.ndarray,
    k: int,
    seed: int,
) -> Dict[str, object]:
    config = VectorDatabaseConfig(
        db_path=":memory:",
        dimension=data.shape[1],
        index_type=index_type,
        hnsw=HNSWConfig(seed=seed),
        ivf=IVFConfig(n_clusters=max(1, int(np.sqrt(len(data)))), seed=seed),
        lsh=LSHConfig(seed=seed),
    )

    async with VectorDatabase(config) as db:
        started = time.perf_counter()
        for position, vector in enumerate(data):
            await db.insert(f"vec-{position}", vector.tolist(), {"position": position})
        await db.train_index()
        build_seconds = time.perf_counter() - started

        results = []
        started = time.perf_counter()
        for query in queries:
            hits = await db.search(query.tolist(), k=k, threshold=-1.0)
            results.append([hit.id for hit in hits])
        avg_query_ms = (time.perf_counter() - started) * 1000 / len(queries)

    return {"results": results, "build_seconds": build_seconds, "avg_query_ms": avg_query_ms}


async def run_benchmark(
    strategies: List[IndexType],
    vectors: int,
    dimension: int,
    queries: int,
    k: int,
    seed: int,
) -> List[BenchmarkResult]:
    data = make_dataset(vectors, dimension, clusters=20, seed=seed)
    query_data = make_dataset(queries, dimension, clusters=20, seed=seed + 1)

    logger.info(f"Computing exact baseline ({vectors} vectors, {dimension} dimensions)")
    baseline = await run_strategy(IndexType.FLAT, data, query_data, k, seed)

    results = []
    for strategy in strategies:
        logger.info(f"Benchmarking {strategy.value}...")
        run = await run_strategy(strategy, data, query_data, k, seed)

        found = 0
        for expected, actual in zip(baseline["results"], run["results"]):
            found += len(set(expected) & set(actual))
        total = sum(len(expected) for expected in baseline["results"])

        result = BenchmarkResult(
            strategy=strategy.value,
            recall=found / total if total else 0.0,
            avg_query_ms=run["avg_query_ms"],
            build_seconds=run["build_seconds"],
            vectors=vectors,
        )
        logger.info(
            f"{strategy.value}: recall@{k}={result.recall:.3f}, "
            f"query={result.avg_query_ms:.2f}ms, build={result.build_seconds:.1f}s"
        )
        results.append(result)

    return results


def generate_report(results: List[BenchmarkResult], args: argparse.Namespace, output_path: str):
    """Write a markdown report of the benchmark results."""
    with open(output_path, 'w') as f:
        f.write("# Index Recall Benchmark Results\n\n")
        f.write(f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")

        f.write("## Configuration\n\n")
        f.write(f"- **Vectors:** {args.vectors}\n")
        f.write(f"- **Dimension:** {args.dimension}\n")
        f.write(f"- **Queries:** {args.queries}\n")
        f.write(f"- **k:** {args.k}\n")
        f.write(f"- **Seed:** {args.seed}\n\n")

        f.write("## Results\n\n")
        f.write(f"| Strategy | Recall@{args.k} | Avg Query (ms) | Build (s) |\n")
        f.write("|----------|-----------|----------------|-----------|\n")
        for result in results:
            f.write(
                f"| {result.strategy} | {result.recall:.3f} | "
                f"{result.avg_query_ms:.2f} | {result.build_seconds:.1f} |\n"
            )
        f.write("\n")

    logger.info(f"Report written to: {output_path}")


def main():
    """Main entry point for the index recall benchmark tool."""
    parser = argparse.ArgumentParser(
        description="Benchmark ANN index strategies against exact search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--vectors",
        type=int,
        default=int(os.getenv("BENCHMARK_VECTORS", "2000")),
        help="Number of vectors to index (default: 2000)"
    )
    parser.add_argument(
        "--dimension",
        type=int,
        default=int(os.getenv("BENCHMARK_DIMENSION", "128")),
        help="Vector dimension (default: 128)"
    )
    parser.add_argument("--queries", type=int, default=100, help="Number of queries (default: 100)")
    parser.add_argument("--k", type=int, default=10, help="Results per query (default: 10)")
    parser.add_argument(
        "--seed",
        type=int,
        default=int(os.getenv("BENCHMARK_SEED", "42")),
        help="Random seed (default: 42)"
    )
    parser.add_argument(
        "--strategies",
        nargs="+",
        choices=[index_type.value for index_type in IndexType if index_type != IndexType.FLAT],
        default=[IndexType.HNSW.value, IndexType.IVF_FLAT.value, IndexType.LSH.value],
        help="Strategies to compare against flat (default: all)"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="results",
        help="Output directory for results (default: results)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    args = parser.parse_args()
    logger.setLevel(args.log_level)
    logging.getLogger("casual_recall").setLevel(logging.WARNING)

    try:
        results = asyncio.run(
            run_benchmark(
                strategies=[IndexType(value) for value in args.strategies],
                vectors=args.vectors,
                dimension=args.dimension,
                queries=args.queries,
                k=args.k,
                seed=args.seed,
            )
        )
    except Exception as e:
        logger.error(f"Benchmark failed: {e}", exc_info=True)
        return 1

    os.makedirs(args.output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    generate_report(results, args, os.path.join(args.output_dir, f"index_benchmark_{timestamp}.md"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
