from datetime import datetime
from typing import Optional, List, Dict, Any
from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from shared.utils import str_to_oid
from services.payments_service.models import TransactionDB

# Driver errors, plus the ones raised while BSON-encoding a document client side
STORE_ERRORS = (PyMongoError, BSONError, OverflowError)


def _with_id(doc: Optional[dict]) -> Optional[dict]:
    if doc is not None:
        doc["id"] = str(doc["_id"])
    return doc


class TransactionStore:
    """Thin async wrapper over the ``mpesa_transactions`` collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def create_indexes(self):
        await self.collection.create_index([("created_at", -1)])

    async def recent(self, limit: int) -> List[dict]:
        cursor = self.collection.find({}).sort("created_at", -1).limit(limit)
        return [_with_id(doc) async for doc in cursor]

    async def get(self, tx_id: str) -> Optional[dict]:
        return _with_id(await self.collection.find_one({"_id": str_to_oid(tx_id)}))

    async def insert(self, transaction: TransactionDB) -> str:
        doc = transaction.model_dump(by_alias=True, exclude={"id"})
        result = await self.collection.insert_one(doc)
        return str(result.inserted_id)

    async def update(self, tx_id: str, fields: Dict[str, Any]) -> bool:
        fields = {**fields, "updated_at": datetime.utcnow()}
        result = await self.collection.update_one({"_id": str_to_oid(tx_id)}, {"$set": fields})
        return result.matched_count == 1
