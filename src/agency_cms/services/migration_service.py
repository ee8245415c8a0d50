"""
# SQLite → MongoDB Migration

One-shot copy of the legacy SQLite blog database into the content store.

## Phases

Authors → Categories → Tags → Media → Posts. Parents go first because posts name their
author, category and tags.

## Failure Semantics

- **Connection**: opening the destination goes through `ContentStore.open()`, which retries
  with exponential backoff. If it still fails, or the source file cannot be opened, the run
  raises `MigrationAborted`.
- **Rows**: each row is inserted on its own. A failed row (slug collision, missing name,
  unparsable date) is counted and recorded as `"<Kind> <name>: <reason>"`; the run continues.
- **Tables**: a missing source table is logged and leaves that phase at zero.
- **Counters**: after each migrated post, `post_count` is incremented on the category and on
  every tag it names (matched by slugified name). This is not transactional.

The run is not resumable; re-running without `clear_first` fails every already-copied row with
`DuplicateKey`.
"""

import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from agency_cms.database.content_store import ContentStore, EntityKind
from agency_cms.exceptions import CMSError, ValidationError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.utils.text import normalize_tag, slugify

logger = get_logger(prefix="[Migration]")

DEFAULT_CATEGORY_COLOR = "#3B82F6"
REPORT_WIDTH = 60


class MigrationAborted(CMSError):
    """The source or destination database could not be opened."""

    status_code = 503


class EntityStats(BaseModel):
    total: int = 0
    migrated: int = 0
    failed: int = 0


class MigrationReport(BaseModel):
    stats: Dict[str, EntityStats] = Field(
        default_factory=lambda: {kind: EntityStats() for kind in ("authors", "categories", "tags", "media", "posts")}
    )
    errors: List[str] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return any(stat.failed for stat in self.stats.values())

    def render(self) -> str:
        lines = ["=" * REPORT_WIDTH, "MIGRATION REPORT", "=" * REPORT_WIDTH]
        for kind, stat in self.stats.items():
            line = f"{kind.upper()}: {stat.migrated}/{stat.total} migrated"
            if stat.failed:
                line += f", {stat.failed} failed"
            lines.append(line)
        if self.errors:
            lines.append("")
            lines.append("ERRORS:")
            lines.extend(f"  {index}. {error}" for index, error in enumerate(self.errors, start=1))
        lines.append("=" * REPORT_WIDTH)
        return "\n".join(lines)


# --- value parsing ---


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a SQLite date value.

    Accepts ISO 8601 timestamps, bare `YYYY-MM-DD` dates (midnight UTC) and epoch seconds.
    Naive values are taken as UTC.

    Raises:
        ValidationError: The value is not a recognisable date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value).strip()
        try:
            if "T" in text or " " in text:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            else:
                parsed = datetime.strptime(text, "%Y-%m-%d")
        except ValueError as e:
            raise ValidationError(f"Invalid date '{text}'") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_tags(value: Any) -> List[str]:
    """Tags stored either as a JSON array or as comma-separated text."""
    if not value:
        return []
    items: Any = value
    if isinstance(value, str):
        try:
            items = json.loads(value)
        except json.JSONDecodeError:
            items = value.split(",")
        if isinstance(items, str):
            items = items.split(",")
    tags: List[str] = []
    for item in items:
        tag = normalize_tag(str(item))
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _required(row: Dict[str, Any], field: str, label: str) -> str:
    value = row.get(field)
    if not value or not str(value).strip():
        raise ValidationError(f"{label} {field} is required")
    return str(value).strip()


def _slug_for(row: Dict[str, Any], display: str) -> str:
    slug = slugify(row.get("slug") or display)
    if not slug:
        raise ValidationError("slug cannot be empty")
    return slug


# --- row mappers: SQLite row dict -> content store document ---


def map_author(row: Dict[str, Any]) -> Dict[str, Any]:
    name = _required(row, "name", "Author")
    return {
        "slug": _slug_for(row, name),
        "name": name,
        "bio": row.get("bio"),
        "avatar": row.get("avatar"),
        "email": (row.get("email") or "").strip().lower() or None,
        "twitter": row.get("twitter"),
        "linkedin": row.get("linkedin"),
        "github": row.get("github"),
        "website": row.get("website"),
        "post_count": 0,
    }


def map_category(row: Dict[str, Any]) -> Dict[str, Any]:
    name = _required(row, "name", "Category")
    return {
        "slug": _slug_for(row, name),
        "name": name,
        "description": row.get("description"),
        "color": row.get("color") or DEFAULT_CATEGORY_COLOR,
        "icon": row.get("icon"),
        "order": 0,
        "parent": None,
        "post_count": 0,
    }


def map_tag(row: Dict[str, Any]) -> Dict[str, Any]:
    name = _required(row, "name", "Tag")
    return {"slug": _slug_for(row, name), "name": name, "post_count": 0}


def map_media(row: Dict[str, Any]) -> Dict[str, Any]:
    filename = _required(row, "filename", "Media")
    return {
        "filename": filename,
        "original_name": row.get("original_name") or filename,
        "path": row.get("path"),
        "url": row.get("url"),
        "mime_type": row.get("mime_type"),
        "size": row.get("size"),
        "width": row.get("width"),
        "height": row.get("height"),
        "alt_text": row.get("alt_text"),
        "storage_type": "local",
        "metadata": {},
        "used_in": [],
    }


def map_post(row: Dict[str, Any]) -> Dict[str, Any]:
    title = _required(row, "title", "Post")
    return {
        "slug": _slug_for(row, title),
        "title": title,
        "content": row.get("content") or "",
        "excerpt": row.get("excerpt") or "",
        "date": parse_date(row.get("date")) or datetime.now(timezone.utc),
        "author": row.get("author"),
        "author_image": row.get("author_image") or row.get("authorImage"),
        "cover_image": row.get("cover_image") or row.get("coverImage"),
        "category": row.get("category"),
        "tags": parse_tags(row.get("tags")),
        "draft": bool(row.get("draft")),
        "featured": bool(row.get("featured")),
        "reading_time": row.get("reading_time") or row.get("readingTime"),
        "views": int(row.get("views") or 0),
    }


Mapper = Callable[[Dict[str, Any]], Dict[str, Any]]

# (kind, source table, mapper, row field naming the row in error messages)
PHASES: List[Tuple[EntityKind, str, Mapper, str]] = [
    (EntityKind.AUTHORS, "authors", map_author, "name"),
    (EntityKind.CATEGORIES, "categories", map_category, "name"),
    (EntityKind.TAGS, "tags", map_tag, "name"),
    (EntityKind.MEDIA, "media", map_media, "filename"),
    (EntityKind.POSTS, "posts", map_post, "title"),
]


class SqliteToMongoMigration:
    """
    Copies a legacy SQLite blog database into a `ContentStore`.

    Args:
        store: Destination store; opened by `run()` unless already open.
        source_path: Path of the SQLite database file.
    """

    def __init__(self, store: ContentStore, source_path: str):
        self.store = store
        self.source_path = source_path
        self.report = MigrationReport()
        self._source: Optional[sqlite3.Connection] = None

    # --- source ---

    def open_source(self) -> sqlite3.Connection:
        """Open the SQLite file read-only."""
        if not os.path.isfile(self.source_path):
            logger.error("SQLite database not found: %s", self.source_path)
            raise MigrationAborted(f"Cannot open SQLite database: {self.source_path}")
        try:
            connection = sqlite3.connect(f"{Path(self.source_path).resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            logger.error("Failed to open SQLite database %s: %s", self.source_path, e)
            raise MigrationAborted(f"Cannot open SQLite database: {self.source_path}") from e
        connection.row_factory = sqlite3.Row
        self._source = connection
        logger.info("SQLite database opened: %s", self.source_path)
        return connection

    def close_source(self) -> None:
        if self._source is not None:
            self._source.close()
            self._source = None

    def read_table(self, table: str) -> Optional[List[Dict[str, Any]]]:
        """All rows of `table` as dicts, or `None` when the table cannot be read."""
        try:
            cursor = self._source.execute(f"SELECT * FROM {table}")
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error("Error reading %s: %s", table, e)
            return None

    # --- destination ---

    async def clear_destination(self) -> None:
        logger.info("Clearing destination collections")
        for kind, _table, _mapper, _name in PHASES:
            try:
                await self.store.clear(kind)
            except CMSError as e:
                logger.error("Failed to clear %s: %s", kind.value, e.message)

    # --- phases ---

    async def migrate_phase(self, kind: EntityKind, table: str, mapper: Mapper, name_field: str) -> EntityStats:
        stats = self.report.stats[kind.value]
        logger.info("Migrating %s...", kind.value)

        rows = self.read_table(table)
        if rows is None:
            return stats
        stats.total = len(rows)

        for row in rows:
            name = row.get(name_field) or row.get("slug") or "<unnamed>"
            try:
                document = mapper(row)
                created_at = parse_date(row.get("created_at")) or document.get("date")
                updated_at = parse_date(row.get("updated_at")) or created_at
                await self.store.insert(kind, document, created_at=created_at, updated_at=updated_at)
            except CMSError as e:
                self._record_failure(stats, kind, name, e.message)
                continue
            except Exception as e:
                logger.error("Unexpected error migrating %s %s", kind.label, name, exc_info=True)
                self._record_failure(stats, kind, name, str(e))
                continue

            stats.migrated += 1
            logger.info("%s migrated: %s", kind.label, name)
            if kind is EntityKind.POSTS:
                await self._increment_counters(document)
        return stats

    def _record_failure(self, stats: EntityStats, kind: EntityKind, name: str, reason: str) -> None:
        stats.failed += 1
        self.report.errors.append(f"{kind.label} {name}: {reason}")
        logger.error("Failed to migrate %s %s: %s", kind.label.lower(), name, reason)

    async def _increment_counters(self, post: Dict[str, Any]) -> None:
        targets = []
        if post.get("category"):
            targets.append((EntityKind.CATEGORIES, slugify(post["category"])))
        targets.extend((EntityKind.TAGS, slugify(tag)) for tag in post.get("tags") or [])
        for kind, slug in targets:
            if not slug:
                continue
            try:
                await self.store.increment(kind, slug, "post_count")
            except CMSError as e:
                logger.warning("Could not update post_count of %s '%s': %s", kind.value, slug, e.message)

    # --- entry point ---

    async def run(self, clear_first: bool = False) -> MigrationReport:
        """
        Run every phase and return the report.

        Raises:
            MigrationAborted: The source file or the destination store could not be opened.
        """
        logger.info("Starting SQLite to MongoDB migration")
        self.open_source()

        opened_here = False
        try:
            if not self.store.is_open:
                try:
                    await self.store.open()
                except (PyMongoError, CMSError) as e:
                    logger.error("Failed to connect to MongoDB: %s", e)
                    raise MigrationAborted("Cannot connect to MongoDB") from e
                opened_here = True

            if clear_first:
                await self.clear_destination()

            for kind, table, mapper, name_field in PHASES:
                await self.migrate_phase(kind, table, mapper, name_field)
        finally:
            self.close_source()
            if opened_here:
                await self.store.close()

        logger.info("Migration finished with %d errors", len(self.report.errors))
        return self.report
