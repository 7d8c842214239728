import pytest
from pymongo.errors import AutoReconnect

from services.translation_service.cache import (
    MemoryTranslationCache, MongoTranslationCache, TieredTranslationCache,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeCollection:
    """Just enough of an AsyncIOMotorCollection for the translations tier."""

    def __init__(self, broken: bool = False):
        self.docs = {}
        self.broken = broken

    async def find_one(self, query):
        if self.broken:
            raise AutoReconnect("connection reset")
        return self.docs.get((query["input_hash"], query["target"]))

    async def update_one(self, query, update, upsert=False):
        if self.broken:
            raise AutoReconnect("connection reset")
        key = (query["input_hash"], query["target"])
        doc = self.docs.get(key)
        if doc is None:
            doc = {**query, **update["$setOnInsert"]}
            self.docs[key] = doc
        doc.update(update["$set"])


@pytest.mark.asyncio
async def test_memory_entries_expire_after_ttl():
    clock = FakeClock()
    cache = MemoryTranslationCache(ttl_seconds=60, clock=clock)

    await cache.set("abc", "fr", "bonjour")
    assert await cache.get("abc", "fr") == "bonjour"

    clock.now += 61
    assert await cache.get("abc", "fr") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_memory_without_ttl_never_expires():
    clock = FakeClock()
    cache = MemoryTranslationCache(clock=clock)
    await cache.set("abc", "fr", "bonjour")
    clock.now += 10 ** 9
    assert await cache.get("abc", "fr") == "bonjour"


@pytest.mark.asyncio
async def test_mongo_tier_persists_original_and_source():
    collection = FakeCollection()
    cache = MongoTranslationCache(collection)

    await cache.set("abc", "fr", "bonjour", original_text="hello", source="en")

    doc = collection.docs[("abc", "fr")]
    assert doc["translated_text"] == "bonjour"
    assert doc["original_text"] == "hello"
    assert doc["source"] == "en"
    assert await cache.get("abc", "fr") == "bonjour"
    assert await cache.get("abc", "de") is None


@pytest.mark.asyncio
async def test_mongo_errors_degrade_to_a_miss(caplog):
    cache = MongoTranslationCache(FakeCollection(broken=True))

    await cache.set("abc", "fr", "bonjour")
    assert await cache.get("abc", "fr") is None
    assert "Translation lookup failed" in caplog.text


@pytest.mark.asyncio
async def test_tiered_cache_backfills_memory_from_mongo():
    collection = FakeCollection()
    await MongoTranslationCache(collection).set("abc", "fr", "bonjour")
    memory = MemoryTranslationCache()
    cache = TieredTranslationCache(memory, MongoTranslationCache(collection))

    assert await cache.get("abc", "fr") == "bonjour"
    assert await memory.get("abc", "fr") == "bonjour"


@pytest.mark.asyncio
async def test_tiered_cache_writes_both_tiers():
    collection = FakeCollection()
    memory = MemoryTranslationCache()
    cache = TieredTranslationCache(memory, MongoTranslationCache(collection))

    await cache.set("abc", "es", "hola", original_text="hello", source="en")

    assert await memory.get("abc", "es") == "hola"
    assert collection.docs[("abc", "es")]["translated_text"] == "hola"


@pytest.mark.asyncio
async def test_expired_entries_are_pruned_on_write():
    clock = FakeClock()
    cache = MemoryTranslationCache(ttl_seconds=60, clock=clock)
    await cache.set("old-1", "fr", "un")
    await cache.set("old-2", "de", "eins")

    clock.now += 61
    await cache.set("new", "fr", "nouveau")

    assert len(cache) == 1
    assert await cache.get("new", "fr") == "nouveau"
