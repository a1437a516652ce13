"""Unit tests for the LRU vector cache."""

import threading

import pytest

from casual_recall.storage.cache import LRUCache


@pytest.fixture
def cache():
    """Create a cache with room for three entries."""
    return LRUCache(capacity=3)


def test_get_missing_returns_none(cache):
    assert cache.get("missing") is None


def test_set_and_get(cache):
    cache.set("a", 1)

    assert cache.get("a") == 1
    assert len(cache) == 1


def test_overflow_evicts_first_inserted(cache):
    for key in ["a", "b", "c", "d"]:
        cache.set(key, key.upper())

    assert "a" not in cache
    assert all(key in cache for key in ["b", "c", "d"])
    assert len(cache) == 3


def test_get_promotes_entry(cache):
    for key in ["a", "b", "c"]:
        cache.set(key, key)

    cache.get("a")
    cache.set("d", "d")

    assert "a" in cache
    assert "b" not in cache


def test_set_overwrites_and_promotes(cache):
    for key in ["a", "b", "c"]:
        cache.set(key, key)

    cache.set("a", "new")
    cache.set("d", "d")

    assert cache.get("a") == "new"
    assert "b" not in cache


def test_contains_does_not_promote(cache):
    for key in ["a", "b", "c"]:
        cache.set(key, key)

    assert "a" in cache
    cache.set("d", "d")

    assert "a" not in cache


def test_remove_and_clear(cache):
    cache.set("a", 1)
    cache.set("b", 2)

    cache.remove("a")
    cache.remove("missing")
    assert "a" not in cache
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        LRUCache(capacity=0)


def test_metrics_track_hits_and_misses(cache):
    cache.set("a", 1)
    cache.get("a")
    cache.get("b")

    metrics = cache.get_metrics()

    assert metrics["cache_hits"] == 1
    assert metrics["cache_misses"] == 1
    assert metrics["cache_hit_rate_percent"] == 50.0
    assert metrics["cache_capacity"] == 3


def test_concurrent_writers_respect_capacity():
    cache = LRUCache(capacity=50)

    def fill(offset):
        for i in range(200):
            cache.set(f"{offset}-{i}", i)

    threads = [threading.Thread(target=fill, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) == 50
