import logging
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

logger = logging.getLogger("translation-service")


class MemoryTranslationCache:
    """Per-process cache keyed by (fingerprint, target) with an optional TTL."""

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[str, Optional[float]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, fingerprint: str, target: str) -> Optional[str]:
        entry = self._entries.get((fingerprint, target))
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.clock() > expires_at:
            del self._entries[(fingerprint, target)]
            return None
        return value

    async def set(self, fingerprint: str, target: str, value: str,
                  original_text: Optional[str] = None, source: Optional[str] = None):
        now = self.clock()
        expires_at = now + self.ttl_seconds if self.ttl_seconds else None
        if expires_at is not None:
            self._prune(now)
        self._entries[(fingerprint, target)] = (value, expires_at)

    def _prune(self, now: float):
        expired = [key for key, (_, expires_at) in self._entries.items()
                   if expires_at is not None and now > expires_at]
        for key in expired:
            del self._entries[key]


class MongoTranslationCache:
    """Persistent tier in the ``translations`` collection. Errors degrade to a miss."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def create_indexes(self):
        await self.collection.create_index([("input_hash", 1), ("target", 1)], unique=True)

    async def get(self, fingerprint: str, target: str) -> Optional[str]:
        try:
            doc = await self.collection.find_one({"input_hash": fingerprint, "target": target})
        except PyMongoError as e:
            logger.warning("Translation lookup failed", extra={"target": target, "error": str(e)})
            return None
        return doc["translated_text"] if doc else None

    async def set(self, fingerprint: str, target: str, value: str,
                  original_text: Optional[str] = None, source: Optional[str] = None):
        try:
            await self.collection.update_one(
                {"input_hash": fingerprint, "target": target},
                {
                    "$set": {"translated_text": value},
                    "$setOnInsert": {
                        "source": source,
                        "original_text": original_text,
                        "created_at": datetime.utcnow(),
                    },
                },
                upsert=True,
            )
        except PyMongoError as e:
            logger.warning("Translation persist failed", extra={"target": target, "error": str(e)})


class TieredTranslationCache:
    def __init__(self, memory: MemoryTranslationCache, persistent: MongoTranslationCache):
        self.memory = memory
        self.persistent = persistent

    async def get(self, fingerprint: str, target: str) -> Optional[str]:
        value = await self.memory.get(fingerprint, target)
        if value is not None:
            return value
        value = await self.persistent.get(fingerprint, target)
        if value is not None:
            await self.memory.set(fingerprint, target, value)
        return value

    async def set(self, fingerprint: str, target: str, value: str,
                  original_text: Optional[str] = None, source: Optional[str] = None):
        await self.memory.set(fingerprint, target, value)
        await self.persistent.set(fingerprint, target, value, original_text=original_text, source=source)
