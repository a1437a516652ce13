"""Unit tests for the HNSW graph index."""

import numpy as np
import pytest

from casual_recall.index import FlatIndex, HNSWIndex


def random_unit_vectors(count, dimension, seed):
    rng = np.random.default_rng(seed)
    data = rng.standard_normal((count, dimension)).astype(np.float32)
    return data / np.linalg.norm(data, axis=1, keepdims=True)


@pytest.fixture
def populated():
    """HNSW and flat indexes holding the same 500 vectors."""
    vectors = random_unit_vectors(500, 16, seed=1)
    hnsw = HNSWIndex(16, m=8, ef_construction=100, ef_search=64, seed=3)
    flat = FlatIndex(16)
    for i, vector in enumerate(vectors):
        hnsw.add(f"v{i}", vector)
        flat.add(f"v{i}", vector)
    return hnsw, flat, vectors


def assert_no_dangling_edges(index):
    for layer in range(index.max_level + 1):
        for node in list(index._layers[layer]):
            for neighbour in index.neighbours(node, layer):
                assert neighbour in index
                assert node in index.neighbours(neighbour, layer)


def test_m_must_be_at_least_two():
    with pytest.raises(ValueError):
        HNSWIndex(4, m=1)


def test_recall_against_flat(populated):
    hnsw, flat, _ = populated
    queries = random_unit_vectors(50, 16, seed=2)

    found = 0
    for query in queries:
        expected = set(flat.search(query, 10))
        found += len(expected & set(hnsw.search(query, 10)))

    assert found / (10 * len(queries)) >= 0.9


def test_degree_bounded_per_layer(populated):
    hnsw, _, _ = populated

    for layer in range(hnsw.max_level + 1):
        limit = 16 if layer == 0 else 8
        for node in hnsw._layers[layer]:
            assert len(hnsw.neighbours(node, layer)) <= limit


def test_edges_are_symmetric(populated):
    hnsw, _, _ = populated

    assert_no_dangling_edges(hnsw)


def test_remove_leaves_no_dangling_references(populated):
    hnsw, _, vectors = populated

    for i in range(0, 500, 3):
        hnsw.remove(f"v{i}")

    assert len(hnsw) == 500 - len(range(0, 500, 3))
    assert_no_dangling_edges(hnsw)
    for query in vectors[:20]:
        results = hnsw.search(query, 10)
        assert all(result in hnsw for result in results)


def test_removing_entry_point_promotes_another_node(populated):
    hnsw, _, vectors = populated
    entry = hnsw.entry_point

    hnsw.remove(entry)

    assert hnsw.entry_point is not None
    assert hnsw.entry_point != entry
    assert hnsw.search(vectors[1], 1)


def test_remove_everything_empties_graph():
    vectors = random_unit_vectors(20, 4, seed=5)
    index = HNSWIndex(4, m=4, seed=0)
    for i, vector in enumerate(vectors):
        index.add(f"v{i}", vector)

    for i in range(20):
        index.remove(f"v{i}")

    assert len(index) == 0
    assert index.entry_point is None
    assert index.search(vectors[0], 3) == []


def test_search_returns_best_first(populated):
    hnsw, _, vectors = populated
    query = vectors[42]

    results = hnsw.search(query, 5)
    similarities = [float(np.dot(vectors[int(result[1:])], query)) for result in results]

    assert results[0] == "v42"
    assert similarities == sorted(similarities, reverse=True)


def test_seed_makes_levels_deterministic():
    vectors = random_unit_vectors(50, 8, seed=9)
    first = HNSWIndex(8, m=4, seed=11)
    second = HNSWIndex(8, m=4, seed=11)
    for i, vector in enumerate(vectors):
        first.add(f"v{i}", vector)
        second.add(f"v{i}", vector)

    assert first.entry_point == second.entry_point
    assert first.max_level == second.max_level
