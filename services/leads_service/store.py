from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase

from services.leads_service.models import LeadDB, LEAD_COLLECTIONS


class LeadStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def create_indexes(self):
        for collection in LEAD_COLLECTIONS.values():
            await self.db[collection].create_index([("created_at", -1)])

    async def insert(self, kind: str, lead: LeadDB) -> str:
        doc = lead.model_dump(by_alias=True, exclude={"id"})
        result = await self.db[LEAD_COLLECTIONS[kind]].insert_one(doc)
        return str(result.inserted_id)

    async def recent(self, kind: str, limit: int) -> List[dict]:
        cursor = self.db[LEAD_COLLECTIONS[kind]].find({}).sort("created_at", -1).limit(limit)
        docs = []
        async for doc in cursor:
            doc["id"] = str(doc.pop("_id"))
            docs.append(doc)
        return docs
