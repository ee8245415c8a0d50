"""
# Content Store

Durable storage of the five blog entities (posts, authors, categories, tags, media) plus the
settings document and admin sessions, on top of `DatabaseManager`.

## Responsibilities

- **Keys**: every entity is addressed by a unique lowercase `slug`; media is addressed by its
  `filename`. Uniqueness is enforced by the indexes the manager creates.
- **Timestamps**: `created_at`/`updated_at` are assigned here, never taken from callers (the
  migration utility may pass historic values explicitly).
- **Errors**: `DuplicateKeyError` becomes `DuplicateKey`; any other `PyMongoError` becomes
  `StorageUnavailable`. Writes are never retried.
- **Name references**: posts point at authors, categories and tags by display name.
  `count_references()` is the only place that knows that join.

Documents are returned without the Mongo `_id`; media documents expose it as a string `id`.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from agency_cms.config import Settings
from agency_cms.database.manager import DatabaseManager
from agency_cms.exceptions import DuplicateKey, StorageUnavailable, ValidationError
from agency_cms.managers.logging_manager import get_logger

logger = get_logger(prefix="[ContentStore]")

SortSpec = Sequence[Tuple[str, int]]

SETTINGS_COLLECTION = "settings"
SESSIONS_COLLECTION = "admin_sessions"


class EntityKind(str, Enum):
    """Entity collections managed by the content store."""

    POSTS = "posts"
    AUTHORS = "authors"
    CATEGORIES = "categories"
    TAGS = "tags"
    MEDIA = "media"

    @property
    def key_field(self) -> str:
        return "filename" if self is EntityKind.MEDIA else "slug"

    @property
    def label(self) -> str:
        return {
            EntityKind.POSTS: "Post",
            EntityKind.AUTHORS: "Author",
            EntityKind.CATEGORIES: "Category",
            EntityKind.TAGS: "Tag",
            EntityKind.MEDIA: "Media",
        }[self]


# Post field holding the denormalized name of each referenced entity.
REFERENCE_FIELDS = {
    EntityKind.AUTHORS: "author",
    EntityKind.CATEGORIES: "category",
    EntityKind.TAGS: "tags",
}

POST_FILTER_FIELDS = ("category", "tags", "author", "draft", "featured")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def translate_errors(operation: str, kind: EntityKind, key: Any = None) -> Iterator[None]:
    """Map driver errors raised inside the block onto the CMS error taxonomy."""
    try:
        yield
    except DuplicateKeyError as e:
        logger.warning("Duplicate %s '%s' rejected during %s", kind.key_field, key, operation)
        raise DuplicateKey(
            f"{kind.label} with {kind.key_field} '{key}' already exists", {"key": key}
        ) from e
    except PyMongoError as e:
        logger.error("%s on %s failed: %s", operation, kind.value, e)
        raise StorageUnavailable(f"Content store unavailable during {operation}") from e


class ContentStore:
    """
    Explicitly constructed store handle with an `open()`/`close()` lifecycle.

    Args:
        settings: Configuration used to build a `DatabaseManager` when none is given.
        manager: Pre-built manager (tests inject one backed by in-memory collections).
    """

    def __init__(self, settings: Optional[Settings] = None, manager: Optional[DatabaseManager] = None):
        if manager is None:
            if settings is None:
                raise ValueError("ContentStore needs either settings or a DatabaseManager")
            manager = DatabaseManager(settings)
        self.manager = manager

    # --- lifecycle ---

    async def open(self) -> None:
        """Connect (with startup retry) and ensure indexes."""
        await self.manager.connect()
        await self.manager.create_indexes()
        logger.info("Content store opened")

    async def close(self) -> None:
        await self.manager.disconnect()
        logger.info("Content store closed")

    @property
    def is_open(self) -> bool:
        return self.manager.is_connected

    async def health_check(self) -> bool:
        return await self.manager.health_check()

    # --- helpers ---

    def _collection(self, kind: EntityKind):
        return self.manager.get_collection(EntityKind(kind).value)

    @staticmethod
    def _clean(kind: EntityKind, doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if doc is None:
            return None
        doc = dict(doc)
        object_id = doc.pop("_id", None)
        doc.pop("score", None)
        if kind is EntityKind.MEDIA and object_id is not None:
            doc["id"] = str(object_id)
        return doc

    @staticmethod
    def _build_query(kind: EntityKind, filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for field, value in (filters or {}).items():
            if value is None:
                continue
            if kind is EntityKind.POSTS and field not in POST_FILTER_FIELDS:
                raise ValidationError(f"Unsupported post filter: {field}")
            # Equality on the tags array matches membership.
            query[field] = value
        return query

    # --- entity operations ---

    async def insert(
        self,
        kind: EntityKind,
        doc: Dict[str, Any],
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Insert a new document and return it as stored.

        Raises:
            DuplicateKey: The slug (or media filename) is already taken; the existing
                document is left untouched.
        """
        kind = EntityKind(kind)
        now = utcnow()
        record = {k: v for k, v in doc.items() if k not in ("_id", "id", "created_at", "updated_at")}
        record["created_at"] = created_at or now
        record["updated_at"] = updated_at or created_at or now

        key = record.get(kind.key_field)
        with translate_errors("insert", kind, key):
            await self._collection(kind).insert_one(record)
        logger.debug("Inserted %s '%s'", kind.value, key)
        return self._clean(kind, record)

    async def find_by_key(self, kind: EntityKind, key: str) -> Optional[Dict[str, Any]]:
        kind = EntityKind(kind)
        with translate_errors("find_by_key", kind, key):
            doc = await self._collection(kind).find_one({kind.key_field: key})
        return self._clean(kind, doc)

    async def find(
        self,
        kind: EntityKind,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Find documents by equality filters; `tags` matches array membership."""
        kind = EntityKind(kind)
        query = self._build_query(kind, filters)
        with translate_errors("find", kind):
            cursor = self._collection(kind).find(query)
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(length=None)
        return [self._clean(kind, doc) for doc in docs]

    async def text_search(
        self,
        kind: EntityKind,
        query: str,
        limit: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Full-text search backed by the collection's text index, best match first."""
        kind = EntityKind(kind)
        mongo_query = self._build_query(kind, filters)
        mongo_query["$text"] = {"$search": query}
        with translate_errors("text_search", kind):
            cursor = self._collection(kind).find(mongo_query, {"score": {"$meta": "textScore"}})
            cursor = cursor.sort([("score", {"$meta": "textScore"})])
            if limit:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(length=None)
        return [self._clean(kind, doc) for doc in docs]

    async def update_by_key(self, kind: EntityKind, key: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        `$set` the supplied fields plus `updated_at`; omitted fields keep their values.

        Returns the updated document, or `None` when no document has `key`.
        """
        kind = EntityKind(kind)
        changes = {k: v for k, v in fields.items() if k not in ("_id", "id", "created_at", "updated_at")}
        changes["updated_at"] = utcnow()
        new_key = changes.get(kind.key_field, key)
        with translate_errors("update", kind, new_key):
            doc = await self._collection(kind).find_one_and_update(
                {kind.key_field: key}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        return self._clean(kind, doc)

    async def delete_by_key(self, kind: EntityKind, key: str) -> bool:
        kind = EntityKind(kind)
        with translate_errors("delete", kind, key):
            result = await self._collection(kind).delete_one({kind.key_field: key})
        return result.deleted_count > 0

    async def increment(self, kind: EntityKind, key: str, field: str, amount: int = 1) -> bool:
        """Atomically add `amount` to a counter field (`views`, `post_count`)."""
        kind = EntityKind(kind)
        with translate_errors("increment", kind, key):
            result = await self._collection(kind).update_one({kind.key_field: key}, {"$inc": {field: amount}})
        return result.matched_count > 0

    async def count_references(self, kind: EntityKind, name: str) -> int:
        """
        Number of posts whose denormalized author/category/tag name equals `name`.

        Post tags are stored lower-cased, so tag names are compared lower-cased too.
        """
        kind = EntityKind(kind)
        if kind not in REFERENCE_FIELDS:
            raise ValueError(f"{kind.value} are not referenced by posts")
        if kind is EntityKind.TAGS:
            name = name.strip().lower()
        with translate_errors("count_references", EntityKind.POSTS):
            return await self._collection(EntityKind.POSTS).count_documents({REFERENCE_FIELDS[kind]: name})

    async def count(self, kind: EntityKind, filters: Optional[Dict[str, Any]] = None) -> int:
        kind = EntityKind(kind)
        query = self._build_query(kind, filters)
        with translate_errors("count", kind):
            return await self._collection(kind).count_documents(query)

    async def total_views(self) -> int:
        with translate_errors("total_views", EntityKind.POSTS):
            docs = await self._collection(EntityKind.POSTS).find({}, {"views": 1}).to_list(length=None)
        return sum(int(doc.get("views") or 0) for doc in docs)

    async def clear(self, kind: EntityKind) -> int:
        """Delete every document of `kind`; returns the number removed."""
        kind = EntityKind(kind)
        with translate_errors("clear", kind):
            result = await self._collection(kind).delete_many({})
        logger.info("Cleared %d documents from %s", result.deleted_count, kind.value)
        return result.deleted_count

    # --- settings document ---

    async def load_settings(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self.manager.get_collection(SETTINGS_COLLECTION).find_one({"key": key})
        except PyMongoError as e:
            logger.error("Loading settings '%s' failed: %s", key, e)
            raise StorageUnavailable("Content store unavailable while loading settings") from e
        if doc is None:
            return None
        doc.pop("_id", None)
        return doc

    async def save_settings(self, key: str, values: Dict[str, Any]) -> None:
        try:
            await self.manager.get_collection(SETTINGS_COLLECTION).update_one(
                {"key": key}, {"$set": {**values, "key": key, "updated_at": utcnow()}}, upsert=True
            )
        except PyMongoError as e:
            logger.error("Saving settings '%s' failed: %s", key, e)
            raise StorageUnavailable("Content store unavailable while saving settings") from e

    # --- admin sessions ---

    async def insert_session(self, token: str, expires_at: datetime) -> None:
        try:
            await self.manager.get_collection(SESSIONS_COLLECTION).insert_one(
                {"token": token, "created_at": utcnow(), "expires_at": expires_at}
            )
        except PyMongoError as e:
            logger.error("Persisting admin session failed: %s", e)
            raise StorageUnavailable("Content store unavailable while creating session") from e

    async def find_session(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.manager.get_collection(SESSIONS_COLLECTION).find_one({"token": token})
        except PyMongoError as e:
            logger.error("Session lookup failed: %s", e)
            raise StorageUnavailable("Content store unavailable while checking session") from e

    async def delete_session(self, token: str) -> bool:
        try:
            result = await self.manager.get_collection(SESSIONS_COLLECTION).delete_one({"token": token})
        except PyMongoError as e:
            logger.error("Session removal failed: %s", e)
            raise StorageUnavailable("Content store unavailable while removing session") from e
        return result.deleted_count > 0
