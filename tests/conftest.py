"""
Pytest configuration and fixtures.

Mongo-backed stores are replaced with in-memory fakes and upstream HTTP APIs
with ``httpx.MockTransport``, so the suite needs neither a database nor the
network.
"""
import json
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import bson
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError
from pymongo.results import InsertOneResult

from shared.security_config import limiter
from shared.utils import create_access_token
from services.payments_service.models import TransactionDB
from services.translation_service.provider import TranslationProviderError

# Rate limits are exercised by slowapi's own tests, not ours
limiter.enabled = False


class FakeTransactionStore:
    def __init__(self):
        self.docs: List[dict] = []
        self.updates: List[tuple] = []
        self.inserted: List[dict] = []
        self.fail_reads = False
        self.fail_writes = False

    def add(self, **fields) -> str:
        tx_id = str(ObjectId())
        doc = {
            "_id": tx_id,
            "id": tx_id,
            "status": "pending",
            "request_payload": None,
            "response_payload": None,
            "callback_payload": None,
            "created_at": datetime(2024, 1, 1) + timedelta(minutes=len(self.docs)),
        }
        doc.update(fields)
        self.docs.append(doc)
        return tx_id

    def by_id(self, tx_id: str) -> dict:
        return next(doc for doc in self.docs if doc["id"] == tx_id)

    async def recent(self, limit: int) -> List[dict]:
        if self.fail_reads:
            raise ServerSelectionTimeoutError("mongo unreachable")
        ordered = sorted(self.docs, key=lambda d: d["created_at"], reverse=True)
        return [dict(doc) for doc in ordered[:limit]]

    async def get(self, tx_id: str) -> Optional[dict]:
        return next((dict(doc) for doc in self.docs if doc["id"] == tx_id), None)

    async def insert(self, transaction: TransactionDB) -> str:
        if self.fail_writes:
            raise ServerSelectionTimeoutError("mongo unreachable")
        doc = transaction.model_dump(by_alias=True, exclude={"id"})
        tx_id = str(ObjectId())
        doc["_id"] = doc["id"] = tx_id
        self.docs.append(doc)
        self.inserted.append(doc)
        return tx_id

    async def update(self, tx_id: str, fields: Dict[str, Any]) -> bool:
        if self.fail_writes:
            raise ServerSelectionTimeoutError("mongo unreachable")
        self.updates.append((tx_id, fields))
        self.by_id(tx_id).update(fields, updated_at=datetime.utcnow())
        return True


class EncodingCollection:
    """Empty collection that BSON-encodes writes the way the driver does before sending them."""

    def __init__(self):
        self.docs: List[dict] = []

    def find(self, query):
        return self

    def sort(self, *args):
        return self

    def limit(self, n):
        return self

    def __aiter__(self):
        return self

    async def __anext__(self):
        raise StopAsyncIteration

    async def insert_one(self, doc):
        bson.encode(doc)
        self.docs.append(doc)
        return InsertOneResult(ObjectId(), acknowledged=True)


class FakeTranslationProvider:
    """Prefixes the target language; fails for any text listed in ``failing``."""

    def __init__(self, failing: Optional[set] = None, fail_all: bool = False):
        self.calls: List[tuple] = []
        self.failing = failing or set()
        self.fail_all = fail_all

    async def translate(self, text: str, target: str, source: str = "en") -> str:
        self.calls.append((text, target, source))
        if self.fail_all or text in self.failing:
            raise TranslationProviderError("translate-failed: HTTP 503")
        return f"[{target}] {text}"


class FakeLeadStore:
    def __init__(self):
        self.leads: Dict[str, List[dict]] = {}
        self.fail_writes = False

    async def insert(self, kind: str, lead) -> str:
        if self.fail_writes:
            raise ServerSelectionTimeoutError("mongo unreachable")
        lead_id = str(ObjectId())
        doc = lead.model_dump(by_alias=True, exclude={"id"})
        doc["id"] = lead_id
        self.leads.setdefault(kind, []).append(doc)
        return lead_id

    async def recent(self, kind: str, limit: int) -> List[dict]:
        return [dict(doc) for doc in reversed(self.leads.get(kind, []))][:limit]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def json_bodies(self) -> List[Any]:
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture
def transaction_store() -> FakeTransactionStore:
    return FakeTransactionStore()


@pytest.fixture
def provider() -> FakeTranslationProvider:
    return FakeTranslationProvider()


@pytest.fixture
def lead_store() -> FakeLeadStore:
    return FakeLeadStore()


@pytest.fixture
def admin_headers() -> dict:
    token = create_access_token({"sub": "admin@example.com", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers() -> dict:
    token = create_access_token({"sub": "user@example.com", "role": "user"})
    return {"Authorization": f"Bearer {token}"}
