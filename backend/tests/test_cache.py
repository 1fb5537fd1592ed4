import fnmatch

import pytest

from seo_metrics.utils.cache import RedisCacheStore, SQLCacheStore, merge_page, page_for


@pytest.fixture
def store(session_factory, clock):
    return SQLCacheStore(session_factory, clock=clock)


def test_page_for():
    assert page_for(20, 0) == 1
    assert page_for(20, 19) == 1
    assert page_for(20, 20) == 2
    assert page_for(10, 45) == 5


def test_merge_page_replaces_instead_of_appending():
    merged = merge_page(None, 1, ["a", "b"])
    merged = merge_page(merged, 1, ["a", "b"])
    assert merged == {1: ["a", "b"]}

    merged = merge_page(merged, 3, ["e"])
    merged = merge_page({str(k): v for k, v in merged.items()}, 2, ["c", "d"])
    assert list(merged) == [1, 2, 3]
    assert merged[2] == ["c", "d"]


async def test_round_trip_within_ttl(store, clock):
    await store.set("example.com", "domain_overview", {"domain": "example.com"}, ttl_hours=24)
    clock.advance(hours=23, minutes=59)
    assert await store.get("example.com", "domain_overview") == {"domain": "example.com"}


async def test_expired_entry_is_a_miss(store, clock):
    await store.set("widgets", "keyword", {"keyword": "widgets"}, ttl_hours=36, region="us")
    clock.advance(hours=36)
    assert await store.get("widgets", "keyword", "us") is None


async def test_key_includes_region_and_page(store):
    await store.set("widgets", "keyword", {"db": "us"}, ttl_hours=1, region="us")
    await store.set("widgets", "keyword", {"db": "uk"}, ttl_hours=1, region="uk")
    await store.set("example.com", "backlinks", ["p1"], ttl_hours=1, page=1)

    assert await store.get("widgets", "keyword", "us") == {"db": "us"}
    assert await store.get("widgets", "keyword", "uk") == {"db": "uk"}
    assert await store.get("widgets", "keyword") is None
    assert await store.get("example.com", "backlinks") is None
    assert await store.get("example.com", "backlinks", page=1) == ["p1"]


async def test_set_overwrites_and_refreshes_expiry(store, clock):
    await store.set("example.com", "site_audit", {"v": 1}, ttl_hours=1)
    clock.advance(minutes=50)
    await store.set("example.com", "site_audit", {"v": 2}, ttl_hours=1)
    clock.advance(minutes=50)
    assert await store.get("example.com", "site_audit") == {"v": 2}


async def test_refetching_a_page_never_duplicates(store):
    await store.set("example.com", "backlinks", ["a", "b"], ttl_hours=12, page=1)
    await store.set("example.com", "backlinks", ["a", "b"], ttl_hours=12, page=1)
    await store.set("example.com", "backlinks", ["c", "d"], ttl_hours=12, page=2)

    pages = await store.get_pages("example.com", "backlinks")
    assert pages == {1: ["a", "b"], 2: ["c", "d"]}


async def test_get_pages_skips_expired_and_unpaginated(store, clock):
    await store.set("example.com", "backlinks", ["old"], ttl_hours=1, page=1)
    clock.advance(hours=2)
    await store.set("example.com", "backlinks", ["new"], ttl_hours=1, page=2)
    await store.set("example.com", "backlinks", ["flat"], ttl_hours=1)

    assert await store.get_pages("example.com", "backlinks") == {2: ["new"]}


async def test_delete_and_purge(store, clock):
    await store.set("example.com", "backlinks", ["a"], ttl_hours=1, page=1)
    await store.set("example.com", "backlinks", ["b"], ttl_hours=1, page=2)
    assert await store.delete("example.com", "backlinks", page=1) == 1
    assert await store.get_pages("example.com", "backlinks") == {2: ["b"]}

    await store.set("other.com", "site_audit", {}, ttl_hours=1)
    clock.advance(hours=1)
    assert await store.purge_expired() == 2


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the cache store"""

    def __init__(self):
        self.values = {}
        self.sets = {}
        self.ttls = {}

    async def get(self, key):
        return self.values.get(key)

    async def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl

    async def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(str(m) for m in members)

    async def srem(self, key, *members):
        self.sets.get(key, set()).difference_update(str(m) for m in members)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def expire(self, key, ttl):
        self.ttls[key] = ttl

    async def mget(self, keys):
        return [self.values.get(k) for k in keys]

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.values or key in self.sets:
                removed += 1
            self.values.pop(key, None)
            self.sets.pop(key, None)
        return removed

    def keys_matching(self, pattern):
        return [k for k in self.values if fnmatch.fnmatch(k, pattern)]


async def test_redis_store_round_trip_with_native_ttl():
    client = FakeRedis()
    store = RedisCacheStore(client=client, prefix="test")

    await store.set("widgets", "keyword", {"keyword": "widgets"}, ttl_hours=36, region="us")

    assert await store.get("widgets", "keyword", "us") == {"keyword": "widgets"}
    assert client.ttls["test:keyword:us:widgets:0"] == 36 * 3600
    assert await store.get("widgets", "keyword", "uk") is None


async def test_redis_store_pages():
    client = FakeRedis()
    store = RedisCacheStore(client=client, prefix="test")

    await store.set("example.com", "backlinks", ["a"], ttl_hours=12, page=1)
    await store.set("example.com", "backlinks", ["a"], ttl_hours=12, page=1)
    await store.set("example.com", "backlinks", ["b"], ttl_hours=12, page=2)
    assert await store.get_pages("example.com", "backlinks") == {1: ["a"], 2: ["b"]}

    # page key expired while the index survived
    del client.values["test:backlinks:global:example.com:2"]
    assert await store.get_pages("example.com", "backlinks") == {1: ["a"]}

    await store.delete("example.com", "backlinks")
    assert client.keys_matching("test:backlinks:*") == []
    assert await store.get_pages("example.com", "backlinks") == {}
