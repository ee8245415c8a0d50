"""
# Database Management Module

This module provides the **MongoDB infrastructure** for the Agency CMS. The `DatabaseManager`
owns the Motor client, the selected database and the index definitions for every collection
the content store uses.

## Lifecycle

The manager is **explicitly constructed** with a `Settings` object and owned by whoever opens
the content store (the FastAPI lifespan or the migration CLI). Nothing connects at import time.

1. `DatabaseManager(settings)`: no network I/O.
2. `await manager.connect()`: build the connection string, create the client, ping. Transient
   failures (`ServerSelectionTimeoutError`, `ConnectionFailure`) are retried with exponential
   backoff (1s, 2s, 4s, ...) for `MONGODB_CONNECT_RETRIES` attempts; the last failure propagates.
3. `await manager.create_indexes()`: idempotent index creation, failures are logged and skipped.
4. `manager.get_collection(name)`: raises `StorageUnavailable` when not connected.
5. `await manager.disconnect()`.

## Indexes

| Collection       | Indexes                                                                        |
|------------------|--------------------------------------------------------------------------------|
| `posts`          | `slug` unique, text(title, content, excerpt), (category, draft), (tags, draft), (featured, draft, date desc), (draft, date desc), author |
| `authors`        | `slug` unique, `name`, text(name, bio)                                         |
| `categories`     | `slug` unique, `name`, (parent, order)                                         |
| `tags`           | `slug` unique, `name`, text(name)                                              |
| `media`          | `filename` unique, (mime_type, created_at desc), size, storage_type, text(original_name, alt_text) |
| `settings`       | `key` unique                                                                   |
| `admin_sessions` | `token` unique, TTL on `expires_at`                                            |

Only connection establishment is retried. Writes are never retried.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, TEXT
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from agency_cms.config import Settings
from agency_cms.exceptions import StorageUnavailable
from agency_cms.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

DEFAULT_MONGODB_URL = "mongodb://localhost:27017"

IndexSpec = Tuple[Any, Dict[str, Any]]

COLLECTION_INDEXES: Dict[str, List[IndexSpec]] = {
    "posts": [
        ("slug", {"unique": True}),
        ([("title", TEXT), ("content", TEXT), ("excerpt", TEXT)], {"name": "posts_text"}),
        ([("category", ASCENDING), ("draft", ASCENDING)], {}),
        ([("tags", ASCENDING), ("draft", ASCENDING)], {}),
        ([("featured", ASCENDING), ("draft", ASCENDING), ("date", DESCENDING)], {}),
        ([("draft", ASCENDING), ("date", DESCENDING)], {}),
        ("author", {}),
    ],
    "authors": [
        ("slug", {"unique": True}),
        ("name", {}),
        ([("name", TEXT), ("bio", TEXT)], {"name": "authors_text"}),
    ],
    "categories": [
        ("slug", {"unique": True}),
        ("name", {}),
        ([("parent", ASCENDING), ("order", ASCENDING)], {}),
    ],
    "tags": [
        ("slug", {"unique": True}),
        ("name", {}),
        ([("name", TEXT)], {"name": "tags_text"}),
    ],
    "media": [
        ("filename", {"unique": True}),
        ([("mime_type", ASCENDING), ("created_at", DESCENDING)], {}),
        ("size", {}),
        ("storage_type", {}),
        ([("original_name", TEXT), ("alt_text", TEXT)], {"name": "media_text"}),
    ],
    "settings": [
        ("key", {"unique": True}),
    ],
    "admin_sessions": [
        ("token", {"unique": True}),
        ("expires_at", {"expireAfterSeconds": 0}),
    ],
}


class DatabaseManager:
    """
    Manages the MongoDB connection and index definitions of the content store.

    Attributes:
        settings (`Settings`): Configuration the connection is built from.
        client (`Optional[AsyncIOMotorClient]`): Motor client, `None` until `connect()` succeeds.
        database (`Optional[AsyncIOMotorDatabase]`): Selected database, `None` until connected.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = settings.MONGODB_CONNECT_RETRIES

    @property
    def is_connected(self) -> bool:
        return self.database is not None

    def _connection_string(self) -> str:
        url = self.settings.MONGODB_URL
        if not url:
            db_logger.warning("MONGODB_URL is not set, falling back to %s", DEFAULT_MONGODB_URL)
            url = DEFAULT_MONGODB_URL

        if self.settings.MONGODB_USERNAME and self.settings.MONGODB_PASSWORD:
            password = self.settings.MONGODB_PASSWORD.get_secret_value()
            scheme, _, rest = url.partition("://")
            db_logger.debug("Using authenticated connection to MongoDB")
            return f"{scheme}://{self.settings.MONGODB_USERNAME}:{password}@{rest}"

        db_logger.debug("Using unauthenticated connection to MongoDB")
        return url

    async def connect(self) -> None:
        """
        Establish the MongoDB connection with exponential backoff.

        Raises:
            ServerSelectionTimeoutError: MongoDB is unreachable after every attempt.
            ConnectionFailure: Connection refused or authentication failed on the last attempt.
        """
        if self.is_connected:
            return

        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)

                connection_string = self._connection_string()
                db_logger.info(
                    "MongoDB connection config - Database: %s, MaxPool: %d, MinPool: %d, ServerTimeout: %dms, ConnTimeout: %dms",
                    self.settings.MONGODB_DATABASE,
                    self.settings.MONGODB_MAX_POOL_SIZE,
                    self.settings.MONGODB_MIN_POOL_SIZE,
                    self.settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    self.settings.MONGODB_CONNECTION_TIMEOUT,
                )

                client = AsyncIOMotorClient(
                    connection_string,
                    serverSelectionTimeoutMS=self.settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=self.settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=self.settings.MONGODB_MAX_POOL_SIZE,
                    minPoolSize=self.settings.MONGODB_MIN_POOL_SIZE,
                    tz_aware=True,
                )

                ping_start = time.time()
                await client.admin.command("ping")
                ping_duration = time.time() - ping_start

                self.client = client
                self.database = client[self.settings.MONGODB_DATABASE]

                total_duration = time.time() - start_time
                perf_logger.info(
                    "MongoDB connection established successfully in %.3fs (ping: %.3fs)", total_duration, ping_duration
                )
                db_logger.info("Successfully connected to MongoDB database: %s", self.settings.MONGODB_DATABASE)
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                attempt_duration = time.time() - attempt_start
                perf_logger.warning("Connection attempt %d failed after %.3fs", attempt + 1, attempt_duration)
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    total_duration = time.time() - start_time
                    db_logger.error("All connection attempts failed after %.3fs", total_duration)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)

    async def disconnect(self) -> None:
        """Close the Motor client. Safe to call when not connected."""
        if self.client is None:
            db_logger.warning("Disconnect called but no active MongoDB connection found")
            return

        start_time = time.time()
        self.client.close()
        self.client = None
        self.database = None
        perf_logger.info("MongoDB disconnection completed in %.3fs", time.time() - start_time)
        db_logger.info("Successfully disconnected from MongoDB")

    async def health_check(self) -> bool:
        """Ping MongoDB; `False` instead of raising when it is unreachable."""
        start_time = time.time()
        if self.client is None:
            health_logger.warning("Health check failed: No database client available")
            return False
        try:
            await self.client.admin.command("ping")
            perf_logger.debug("Database health check completed in %.3fs", time.time() - start_time)
            return True
        except (ServerSelectionTimeoutError, ConnectionFailure) as e:
            perf_logger.warning("Database health check failed after %.3fs", time.time() - start_time)
            health_logger.error("Database health check failed: %s", e)
            return False

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Return the named collection of the connected database.

        Raises:
            StorageUnavailable: `connect()` has not completed.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise StorageUnavailable("Database not connected")
        return self.database[collection_name]

    async def create_indexes(self) -> None:
        """Create every index in `COLLECTION_INDEXES`; individual failures are logged, not raised."""
        start_time = time.time()
        db_logger.info("Starting database index creation process")

        for collection_name, specs in COLLECTION_INDEXES.items():
            collection = self.get_collection(collection_name)
            db_logger.info("Creating indexes for '%s' collection", collection_name)
            for field_spec, options in specs:
                await self._create_index_if_not_exists(collection, field_spec, options)

        perf_logger.info("Database index creation completed in %.3fs", time.time() - start_time)

    async def _create_index_if_not_exists(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any]
    ) -> None:
        """Create an index if it doesn't already exist"""
        start_time = time.time()

        try:
            await collection.create_index(field_spec, **options)
            duration = time.time() - start_time
            perf_logger.debug("Created/ensured index '%s' in %.3fs", field_spec, duration)
        except Exception as e:
            duration = time.time() - start_time
            perf_logger.warning("Failed to create/ensure index '%s' after %.3fs", field_spec, duration)
            db_logger.warning("Could not create/ensure index '%s': %s", field_spec, e)
