import threading

import pytest

from aniq.domain.models.common import CacheKey, CacheNamespace
from aniq.infrastructure.cache.caching_service import CachingService

NS = CacheNamespace("aniq_test_v1")


@pytest.fixture
def disk_cache(tmp_path):
    cache = CachingService(cache_dir=tmp_path / "cache")
    yield cache
    cache.close()


def test_get_missing_returns_none(disk_cache: CachingService):
    assert disk_cache.get(NS, CacheKey("nope")) is None


def test_set_then_get(disk_cache: CachingService):
    disk_cache.set(NS, CacheKey("50"), [1, 2, 3])
    assert disk_cache.get(NS, CacheKey("50")) == [1, 2, 3]


def test_namespaces_do_not_collide(disk_cache: CachingService):
    disk_cache.set(NS, CacheKey("1"), "a")
    disk_cache.set(CacheNamespace("aniq_test_v2"), CacheKey("1"), "b")

    assert disk_cache.get(NS, CacheKey("1")) == "a"
    assert disk_cache.get(CacheNamespace("aniq_test_v2"), CacheKey("1")) == "b"


def test_entries_survive_a_restart(tmp_path):
    first = CachingService(cache_dir=tmp_path / "cache")
    first.set(NS, CacheKey("7"), {"title": {"romaji": "Persisted"}})
    first.close()

    second = CachingService(cache_dir=tmp_path / "cache")
    try:
        assert second.get(NS, CacheKey("7")) == {"title": {"romaji": "Persisted"}}
    finally:
        second.close()


def test_l1_evicts_least_recently_used():
    cache = CachingService(cache_dir=None, l1_max_items=2)
    cache.set(NS, CacheKey("a"), 1)
    cache.set(NS, CacheKey("b"), 2)
    cache.get(NS, CacheKey("a"))
    cache.set(NS, CacheKey("c"), 3)

    assert cache.get(NS, CacheKey("a")) == 1
    assert cache.get(NS, CacheKey("b")) is None
    assert cache.get(NS, CacheKey("c")) == 3


def test_disk_hit_is_promoted_to_memory(tmp_path):
    cache = CachingService(cache_dir=tmp_path / "cache", l1_max_items=1)
    try:
        cache.set(NS, CacheKey("a"), 1)
        cache.set(NS, CacheKey("b"), 2)  # evicts "a" from L1
        assert cache.get(NS, CacheKey("a")) == 1
        assert "aniq_test_v1|a" in cache._l1
    finally:
        cache.close()


def test_clear_removes_everything(disk_cache: CachingService):
    disk_cache.set(NS, CacheKey("1"), 1)
    disk_cache.set(NS, CacheKey("2"), 2)

    removed = disk_cache.clear()

    assert removed == 2
    assert disk_cache.get(NS, CacheKey("1")) is None


def test_concurrent_writers_do_not_lose_entries():
    cache = CachingService(cache_dir=None, l1_max_items=1000)

    def writer(offset: int):
        for i in range(100):
            cache.set(NS, CacheKey(str(offset + i)), i)

    threads = [threading.Thread(target=writer, args=(n * 100,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert all(cache.get(NS, CacheKey(str(k))) is not None for k in range(400))
