"""
Shared fixtures.

`FakeCollection` implements the slice of the Motor collection API the content store uses,
in memory. Unique single-field indexes declared through `create_index` raise pymongo's
`DuplicateKeyError` exactly like a server would, so store and gateway behaviour can be tested
without MongoDB.
"""

import copy
import re
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from bson import ObjectId
import httpx
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
import pytest
import pytest_asyncio

from agency_cms.config import Settings
from agency_cms.database.content_store import ContentStore
from agency_cms.database.manager import DatabaseManager
from agency_cms.services.blob_storage import LocalBlobStore
from agency_cms.services.content_service import ContentGateways

TEXT_FIELDS = ("title", "content", "excerpt", "name", "bio", "original_name", "alt_text")


def _text_score(doc: Dict[str, Any], search: str) -> int:
    words = [word for word in search.lower().split() if word]
    haystack = " ".join(str(doc.get(field) or "") for field in TEXT_FIELDS).lower()
    tokens = re.findall(r"[a-z0-9]+", haystack)
    return sum(tokens.count(word) for word in words)


def _matches_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and "$regex" in condition:
        flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
        return isinstance(value, str) and re.search(condition["$regex"], value, flags) is not None
    if isinstance(condition, dict) and "$in" in condition:
        if isinstance(value, list):
            return any(item in condition["$in"] for item in value)
        return value in condition["$in"]
    if isinstance(value, list) and not isinstance(condition, list):
        return condition in value
    return value == condition


def matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for field, condition in query.items():
        if field == "$text":
            if _text_score(doc, condition["$search"]) == 0:
                return False
            continue
        if not _matches_condition(doc.get(field), condition):
            return False
    return True


def _sort_value(value: Any):
    return (value is not None, value if value is not None else 0)


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs
        self._limit: Optional[int] = None

    def sort(self, keys):
        for field, direction in reversed(list(keys)):
            if isinstance(direction, dict):
                self._docs.sort(key=lambda doc: doc.get("score", 0), reverse=True)
            else:
                self._docs.sort(key=lambda doc, f=field: _sort_value(doc.get(f)), reverse=direction < 0)
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    async def to_list(self, length=None):
        docs = self._docs if self._limit is None else self._docs[: self._limit]
        return [copy.deepcopy(doc) for doc in docs]


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.unique_fields = set()
        self.indexes: List[Any] = []

    async def create_index(self, keys, **options):
        self.indexes.append((keys, options))
        if isinstance(keys, str) and options.get("unique"):
            self.unique_fields.add(keys)
        return str(keys)

    def _check_unique(self, doc: Dict[str, Any], ignore: Optional[Dict[str, Any]] = None) -> None:
        for field in self.unique_fields:
            if field not in doc:
                continue
            for existing in self.docs:
                if existing is not ignore and existing.get(field) == doc[field]:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {field}_1")

    def _apply(self, target: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        updated = copy.deepcopy(target)
        for field, value in update.get("$set", {}).items():
            updated[field] = copy.deepcopy(value)
        for field, amount in update.get("$inc", {}).items():
            updated[field] = (updated.get(field) or 0) + amount
        return updated

    async def insert_one(self, doc: Dict[str, Any]):
        self._check_unique(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    async def find_one(self, query: Dict[str, Any]):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query: Optional[Dict[str, Any]] = None, projection: Optional[Dict[str, Any]] = None):
        query = query or {}
        results = []
        for doc in self.docs:
            if not matches(doc, query):
                continue
            result = copy.deepcopy(doc)
            if projection:
                if "score" in projection:
                    result["score"] = _text_score(doc, query.get("$text", {}).get("$search", ""))
                else:
                    result = {k: v for k, v in result.items() if k == "_id" or k in projection}
            results.append(result)
        return FakeCursor(results)

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False):
        for index, doc in enumerate(self.docs):
            if matches(doc, query):
                updated = self._apply(doc, update)
                self._check_unique(updated, ignore=doc)
                self.docs[index] = updated
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            created = self._apply({k: v for k, v in query.items() if not k.startswith("$")}, update)
            await self.insert_one(created)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=created["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE):
        for index, doc in enumerate(self.docs):
            if matches(doc, query):
                updated = self._apply(doc, update)
                self._check_unique(updated, ignore=doc)
                self.docs[index] = updated
                return copy.deepcopy(updated if return_document == ReturnDocument.AFTER else doc)
        return None

    async def delete_one(self, query: Dict[str, Any]):
        for index, doc in enumerate(self.docs):
            if matches(doc, query):
                del self.docs[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query: Dict[str, Any]):
        kept = [doc for doc in self.docs if not matches(doc, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return SimpleNamespace(deleted_count=deleted)

    async def count_documents(self, query: Dict[str, Any]) -> int:
        return sum(1 for doc in self.docs if matches(doc, query))


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeDatabaseManager(DatabaseManager):
    """`DatabaseManager` whose database lives in memory; data survives close/open."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.backend = FakeDatabase()
        self.connect_calls = 0

    async def connect(self) -> None:
        self.connect_calls += 1
        self.database = self.backend

    async def disconnect(self) -> None:
        self.database = None

    async def health_check(self) -> bool:
        return self.is_connected


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "_env_file": None,
        "MONGODB_URL": "mongodb://fake-host:27017",
        "MONGODB_DATABASE": "agency_blog_test",
        "ADMIN_PASSWORD": "letmein",
        "ADMIN_SESSION_VALIDATION": "presence",
        "DEBUG": True,
        "NETLIFY_SITE_ID": None,
        "NETLIFY_AUTH_TOKEN": None,
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "SQLITE_DB_PATH": str(tmp_path / "blog.db"),
        "BASE_URL": "https://blog.example.com",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def manager(settings):
    return FakeDatabaseManager(settings)


@pytest_asyncio.fixture
async def store(manager):
    store = ContentStore(manager=manager)
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def gateways(store, settings):
    return ContentGateways(store, settings)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), "/images/blog")


@pytest.fixture
def app(settings, store, blob_store):
    from agency_cms.main import create_app

    return create_app(settings=settings, store=store, blob_store=blob_store)


@pytest_asyncio.fixture
async def client(app):
    """Anonymous client."""
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def admin_client(app):
    """Client carrying an admin session cookie."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        cookies={"admin_session": "test-session-token"},
    ) as client:
        yield client
