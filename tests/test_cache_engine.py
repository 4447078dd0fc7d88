import pytest

from metacache.cache import (
    CacheOptions,
    CacheType,
    FileCacheBackend,
    MemoryCacheBackend,
    NoOpCacheBackend,
    cleanup_cache,
    create_cache,
    create_cache_from_config,
    get_cache,
)
from metacache.config import AppConfig, CacheConfig


@pytest.mark.asyncio
async def test_create_memory_cache():
    cache = create_cache(CacheType.MEMORY, CacheOptions(ttl=10, max_size=5, namespace="meta"))

    assert isinstance(cache, MemoryCacheBackend)
    assert cache.namespace == "meta"
    assert cache._max_size == 5
    assert cache._ttl == 10


@pytest.mark.asyncio
async def test_create_file_cache_from_string_type(tmp_path):
    cache = create_cache(
        "file",
        CacheOptions(file_path=str(tmp_path), encryption_key="secret", hash_algorithm="sha256"),
    )
    try:
        assert isinstance(cache, FileCacheBackend)
        assert cache._compression is True
        assert cache._cipher is not None
        assert cache.directory == tmp_path / "default"

        await cache.set("k", {"v": 1})
        assert await cache.get("k") == {"v": 1}
    finally:
        await cache.close()


def test_create_cache_overrides(tmp_path):
    cache = create_cache("file", file_path=str(tmp_path), compression=False, namespace="x")

    assert cache._compression is False
    assert cache.namespace == "x"


def test_file_cache_requires_path():
    with pytest.raises(ValueError, match="file_path"):
        create_cache(CacheType.FILE, CacheOptions())


def test_unknown_cache_type():
    with pytest.raises(ValueError, match="Unsupported cache type"):
        create_cache("redis")


def test_from_config_disabled_returns_noop():
    cache = create_cache_from_config(AppConfig(cache=CacheConfig(enabled=False)))

    assert isinstance(cache, NoOpCacheBackend)


def test_from_config_memory():
    cache = create_cache_from_config(CacheConfig(ttl=60, max_size=7))

    assert isinstance(cache, MemoryCacheBackend)
    assert cache._max_size == 7
    assert cache._ttl == 60
    assert cache.namespace == "default"


def test_from_config_file_enables_compression(tmp_path):
    cache = create_cache_from_config(
        {"cache": {"storage": "file", "file_path": str(tmp_path), "max_size": 3}}
    )

    assert isinstance(cache, FileCacheBackend)
    assert cache._compression is True
    assert cache._max_size == 3


def test_from_config_accepts_bare_cache_section():
    cache = create_cache_from_config({"enabled": False})

    assert isinstance(cache, NoOpCacheBackend)


@pytest.mark.asyncio
async def test_global_cache_lifecycle():
    try:
        first = await get_cache(AppConfig(cache=CacheConfig(storage="memory", cleanup_interval=60)))
        second = await get_cache()

        assert first is second
        assert first._cleanup_task is not None
    finally:
        await cleanup_cache()

    assert first._cleanup_task is None


class TestNoOpCache:
    @pytest.mark.asyncio
    async def test_reads_miss_and_writes_are_discarded(self):
        cache = NoOpCacheBackend()

        await cache.set("k", "v")
        await cache.set_many([("a", 1), ("b", 2)])

        assert await cache.get("k") is None
        assert await cache.get("k", "default") == "default"
        assert await cache.has("k") is False
        assert await cache.delete("k") is False
        assert await cache.get_many(["a", "b"]) == [None, None]
        assert await cache.delete_many(["a", "b"]) == 0
        assert await cache.get_keys() == []
        await cache.clear()
        await cache.cleanup()

    @pytest.mark.asyncio
    async def test_get_or_set_always_calls_factory(self):
        cache = NoOpCacheBackend()
        calls = 0

        async def factory():
            nonlocal calls
            calls += 1
            return calls

        assert await cache.get_or_set("k", factory) == 1
        assert await cache.get_or_set("k", factory) == 2

    @pytest.mark.asyncio
    async def test_stats_are_zero(self):
        stats = await NoOpCacheBackend().get_stats()

        assert (stats.hits, stats.misses, stats.size) == (0, 0, 0)
        assert stats.keys == []
        assert stats.hit_rate == 0.0
        assert stats.backend_type == "noop"

    @pytest.mark.asyncio
    async def test_namespace_and_lifecycle_are_harmless(self):
        cache = NoOpCacheBackend()

        assert cache.with_namespace("anything") is cache
        async with cache:
            assert cache._cleanup_task is None
