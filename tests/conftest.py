"""Pytest configuration and fixtures for metacache tests."""

import logging
import os

import pytest

from metacache.cache import FileCacheBackend, MemoryCacheBackend


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep developer config out of the tests."""
    for name in list(os.environ):
        if name.startswith("METACACHE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    yield


@pytest.fixture
async def memory_cache():
    """Memory cache with a 1s default TTL and no background sweep."""
    cache = MemoryCacheBackend(namespace="test", ttl=1, cleanup_interval=0)
    yield cache
    await cache.close()


@pytest.fixture
async def file_cache(tmp_path):
    """Compressed file cache with a 1s default TTL and no background sweep."""
    cache = FileCacheBackend(
        base_dir=tmp_path / "cache",
        namespace="test",
        ttl=1,
        cleanup_interval=0,
        compression=True,
    )
    yield cache
    await cache.close()


@pytest.fixture(params=["memory", "file", "file-encrypted"])
async def cache(request, tmp_path):
    """Every backend configuration that must honour the shared contract."""
    if request.param == "memory":
        backend = MemoryCacheBackend(namespace="test", ttl=1, cleanup_interval=0)
    elif request.param == "file":
        backend = FileCacheBackend(
            base_dir=tmp_path / "cache", namespace="test", ttl=1, cleanup_interval=0
        )
    else:
        backend = FileCacheBackend(
            base_dir=tmp_path / "cache",
            namespace="test",
            ttl=1,
            cleanup_interval=0,
            encryption_key="unit-test-secret",
        )
    yield backend
    await backend.close()


# Disable logging to reduce noise during tests
logging.getLogger().setLevel(logging.ERROR)
