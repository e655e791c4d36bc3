"""
Tests for services/caching.py with an in-memory Redis stand-in.
"""
import asyncio

import redis

from salesletter.schemas.facts import Fact, FactExtractionResult, InformationSource
from salesletter.services import caching


class _MemoryRedis:
    def __init__(self, store, fail=False):
        self.store = store
        self.fail = fail
        self.ttls = {}

    def get(self, key):
        if self.fail:
            raise redis.ConnectionError("down")
        return self.store.get(key)

    def set(self, key, value, ex=None):
        if self.fail:
            raise redis.ConnectionError("down")
        self.store[key] = value
        self.ttls[key] = ex

    def close(self):
        pass


RESULT = FactExtractionResult(
    facts=[
        Fact(
            content="従業員1,500名",
            category="numbers",
            source_url="https://example.co.jp/",
        )
    ],
    sources=[InformationSource(url="https://example.co.jp/", title="Top", category="corporate")],
)


class TestCacheKey:
    def test_namespaced_and_bounded(self):
        key = caching.cache_key("facts", "https://example.co.jp/" + "a" * 2000)
        assert key.startswith("salesletter:facts:")
        assert len(key) < 64

    def test_stable(self):
        assert caching.cache_key("facts", "x") == caching.cache_key("facts", "x")
        assert caching.cache_key("facts", "x") != caching.cache_key("facts", "y")


class TestModelCache:
    def test_round_trip(self, monkeypatch):
        store = {}
        monkeypatch.setattr(caching, "_get_sync_redis", lambda: _MemoryRedis(store))

        asyncio.run(caching.store_cached("k", RESULT, ttl=60))
        loaded = asyncio.run(caching.load_cached("k", FactExtractionResult))

        assert loaded == RESULT

    def test_disabled_without_redis_url(self, monkeypatch):
        monkeypatch.setattr(caching, "_get_sync_redis", lambda: None)
        asyncio.run(caching.store_cached("k", RESULT))
        assert asyncio.run(caching.load_cached("k", FactExtractionResult)) is None

    def test_unreachable_redis_is_a_miss(self, monkeypatch):
        monkeypatch.setattr(caching, "_get_sync_redis", lambda: _MemoryRedis({}, fail=True))
        asyncio.run(caching.store_cached("k", RESULT))
        assert asyncio.run(caching.load_cached("k", FactExtractionResult)) is None

    def test_stale_payload_is_a_miss(self, monkeypatch):
        store = {"k": '{"unexpected": true}'}
        monkeypatch.setattr(caching, "_get_sync_redis", lambda: _MemoryRedis(store))
        assert asyncio.run(caching.load_cached("k", FactExtractionResult)) is None
