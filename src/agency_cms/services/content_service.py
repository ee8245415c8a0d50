"""
# CRUD Gateway

Per-entity create/read/update/delete on top of `ContentStore`, shared by the admin API, the
public read API, the admin list views and the upload pipeline.

## Rules applied to every entity

- **Slugs**: derived from `title`/`name` when absent, supplied slugs are normalised the same
  way (`slugify`). An empty display field or an empty slug raises `ValidationError`.
- **System fields**: `_id`, `id`, `created_at`, `updated_at` and `post_count` from the client
  are discarded; so is `views` on create.
- **Partial update**: only supplied fields are written.
- **Errors**: unknown keys raise `NotFound`; slug collisions surface as `DuplicateKey`.

## Name references

Posts reference authors, categories and tags by display name. Deleting one of those is refused
with `ConflictError` while any post still names it, and `post_count` is derived on read from
`ContentStore.count_references()`. The persisted `post_count` field is never trusted.
"""

from datetime import datetime, timezone
import re
from typing import Any, Dict, List, Optional, Tuple

from agency_cms.config import Settings
from agency_cms.database.content_store import ContentStore, EntityKind, SortSpec
from agency_cms.exceptions import ConflictError, DuplicateKey, NotFound, ValidationError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.models.blog_models import MEDIA_UPDATABLE_FIELDS, StatsResponse
from agency_cms.models.settings_models import SETTINGS_DOCUMENT_KEY, BlogSettings
from agency_cms.utils.text import estimate_reading_time, normalize_tag, slugify, strip_markup

logger = get_logger(prefix="[Gateway]")

SYSTEM_FIELDS = ("_id", "id", "created_at", "updated_at", "post_count")
DEFAULT_CATEGORY_COLOR = "#3B82F6"
TAG_SEARCH_LIMIT = 10
RECENT_POSTS_LIMIT = 5


def _normalize_tags(tags: Any) -> List[str]:
    if isinstance(tags, str):
        tags = tags.split(",")
    result: List[str] = []
    for tag in tags or []:
        value = normalize_tag(str(tag))
        if value and value not in result:
            result.append(value)
    return result


class EntityGateway:
    """
    Generic gateway for one entity kind.

    Subclasses set `kind`, `display_field`, `list_sort` and `plain_text_fields`, and may
    override `_prepare_create`/`_prepare_update` to apply their defaults.
    """

    kind: EntityKind
    display_field: Optional[str] = "name"
    list_sort: SortSpec = (("name", 1),)
    plain_text_fields: Tuple[str, ...] = ()

    def __init__(self, store: ContentStore, settings: Settings):
        self.store = store
        self.settings = settings

    @property
    def key_field(self) -> str:
        return self.kind.key_field

    # --- field preparation ---

    def _strip_system_fields(self, fields: Dict[str, Any], creating: bool) -> Dict[str, Any]:
        discarded = SYSTEM_FIELDS + (("views",) if creating else ())
        return {k: v for k, v in fields.items() if k not in discarded}

    def _sanitize(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        for field in self.plain_text_fields:
            if field in fields:
                fields[field] = strip_markup(fields[field])
        return fields

    def _require_display(self, value: Any) -> str:
        text = value.strip() if isinstance(value, str) else ""
        if not text:
            raise ValidationError(f"{self.kind.label} {self.display_field} is required")
        return text

    def _resolve_slug(self, supplied: Any, display: str) -> str:
        slug = slugify(supplied) if supplied else slugify(display)
        if not slug:
            raise ValidationError(f"{self.kind.label} slug cannot be empty")
        return slug

    def _prepare_create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        display = self._require_display(fields.get(self.display_field))
        fields[self.display_field] = display
        fields["slug"] = self._resolve_slug(fields.get("slug"), display)
        return fields

    def _prepare_update(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        if self.display_field in fields:
            fields[self.display_field] = self._require_display(fields[self.display_field])
        if "slug" in fields:
            slug = slugify(fields["slug"])
            if not slug:
                raise ValidationError(f"{self.kind.label} slug cannot be empty")
            fields["slug"] = slug
        return fields

    async def _decorate(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        return doc

    # --- operations ---

    async def list(self) -> List[Dict[str, Any]]:
        docs = await self.store.find(self.kind, sort=self.list_sort)
        return [await self._decorate(doc) for doc in docs]

    async def get(self, key: str) -> Dict[str, Any]:
        doc = await self.store.find_by_key(self.kind, key)
        if doc is None:
            raise NotFound(f"{self.kind.label} not found")
        return await self._decorate(doc)

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate, apply defaults and insert.

        Raises:
            ValidationError: Missing display field or empty slug.
            DuplicateKey: The slug is already taken; the existing document is untouched.
        """
        prepared = self._prepare_create(self._sanitize(self._strip_system_fields(dict(fields), creating=True)))
        doc = await self.store.insert(self.kind, prepared)
        logger.info("Created %s '%s'", self.kind.value, doc.get(self.key_field))
        return await self._decorate(doc)

    async def update(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        prepared = self._prepare_update(self._sanitize(self._strip_system_fields(dict(fields), creating=False)))
        if not prepared:
            return await self.get(key)
        doc = await self.store.update_by_key(self.kind, key, prepared)
        if doc is None:
            raise NotFound(f"{self.kind.label} not found")
        logger.info("Updated %s '%s' (%s)", self.kind.value, key, ", ".join(sorted(prepared)))
        return await self._decorate(doc)

    async def delete(self, key: str) -> Dict[str, Any]:
        """Remove the document and return it as it was."""
        doc = await self.get(key)
        await self._check_deletable(doc)
        if not await self.store.delete_by_key(self.kind, key):
            raise NotFound(f"{self.kind.label} not found")
        logger.info("Deleted %s '%s'", self.kind.value, key)
        return doc

    async def _check_deletable(self, doc: Dict[str, Any]) -> None:
        return None


class ReferencedEntityGateway(EntityGateway):
    """Authors, categories and tags: referenced from posts by display name."""

    async def _decorate(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc["post_count"] = await self.store.count_references(self.kind, doc.get("name") or "")
        return doc

    async def _check_deletable(self, doc: Dict[str, Any]) -> None:
        references = await self.store.count_references(self.kind, doc.get("name") or "")
        if references > 0:
            logger.warning(
                "Refusing to delete %s '%s': referenced by %d posts", self.kind.value, doc.get("slug"), references
            )
            raise ConflictError(f"{self.kind.label} in use", {"post_count": references})


class PostGateway(EntityGateway):
    kind = EntityKind.POSTS
    display_field = "title"
    list_sort = (("date", -1), ("created_at", -1))
    plain_text_fields = ("excerpt", "seo_title", "seo_description")

    def _prepare_create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = super()._prepare_create(fields)
        fields["content"] = fields.get("content") or ""
        if not fields.get("excerpt"):
            fields["excerpt"] = ""
        if not fields.get("date"):
            fields["date"] = datetime.now(timezone.utc)
        if fields.get("draft") is None:
            fields["draft"] = True
        if fields.get("featured") is None:
            fields["featured"] = False
        if not fields.get("author"):
            fields["author"] = self.settings.DEFAULT_AUTHOR_NAME
            fields.setdefault("author_image", self.settings.DEFAULT_AUTHOR_IMAGE)
        if not fields.get("reading_time"):
            fields["reading_time"] = estimate_reading_time(fields["content"])
        fields["tags"] = _normalize_tags(fields.get("tags"))
        fields["views"] = 0
        return fields

    def _prepare_update(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = super()._prepare_update(fields)
        if "tags" in fields:
            fields["tags"] = _normalize_tags(fields["tags"])
        return fields

    async def list_published(
        self, category: Optional[str] = None, tag: Optional[str] = None, featured: Optional[bool] = None
    ) -> List[Dict[str, Any]]:
        filters = {
            "draft": False,
            "category": category,
            "tags": normalize_tag(tag) if tag else None,
            "featured": featured,
        }
        return await self.store.find(self.kind, filters=filters, sort=self.list_sort)

    async def get_published(self, slug: str) -> Dict[str, Any]:
        doc = await self.store.find_by_key(self.kind, slug)
        if doc is None or doc.get("draft", True):
            raise NotFound("Post not found")
        return doc

    async def search(self, query: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Text search over title, content and excerpt of published posts."""
        query = (query or "").strip()
        if not query:
            return []
        return await self.store.text_search(self.kind, query, limit=limit, filters={"draft": False})

    async def record_view(self, slug: str) -> Dict[str, Any]:
        """Return a published post and count one view on it."""
        doc = await self.get_published(slug)
        await self.store.increment(self.kind, slug, "views")
        doc["views"] = int(doc.get("views") or 0) + 1
        return doc


class AuthorGateway(ReferencedEntityGateway):
    kind = EntityKind.AUTHORS
    plain_text_fields = ("bio",)


class CategoryGateway(ReferencedEntityGateway):
    kind = EntityKind.CATEGORIES
    list_sort = (("order", 1), ("name", 1))
    plain_text_fields = ("description",)

    def _prepare_create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = super()._prepare_create(fields)
        if not fields.get("color"):
            fields["color"] = DEFAULT_CATEGORY_COLOR
        if fields.get("order") is None:
            fields["order"] = 0
        fields.setdefault("parent", None)
        return fields


class TagGateway(ReferencedEntityGateway):
    kind = EntityKind.TAGS

    async def search(self, query: str) -> List[Dict[str, Any]]:
        """Case-insensitive name substring match, at most ten tags."""
        query = (query or "").strip()
        if not query:
            return []
        filters = {"name": {"$regex": re.escape(query), "$options": "i"}}
        docs = await self.store.find(self.kind, filters=filters, sort=self.list_sort, limit=TAG_SEARCH_LIMIT)
        return [await self._decorate(doc) for doc in docs]

    async def create_many(self, names: List[str]) -> List[Dict[str, Any]]:
        """Create every tag that does not exist yet; existing tags are returned as they are."""
        results: List[Dict[str, Any]] = []
        seen = set()
        for name in names:
            slug = slugify(name)
            if not slug or slug in seen:
                continue
            seen.add(slug)
            existing = await self.store.find_by_key(self.kind, slug)
            if existing is None:
                try:
                    existing = await self.create({"name": name})
                except DuplicateKey:
                    existing = await self.get(slug)
            else:
                existing = await self._decorate(existing)
            results.append(existing)
        return results


class MediaGateway(EntityGateway):
    """Media metadata keyed by stored filename; created by the upload pipeline."""

    kind = EntityKind.MEDIA
    display_field = None
    list_sort = (("created_at", -1),)
    plain_text_fields = ("alt_text", "caption")

    def _prepare_create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        if not fields.get("filename"):
            raise ValidationError("Media filename is required")
        fields.setdefault("storage_type", "local")
        fields.setdefault("metadata", {})
        fields.setdefault("used_in", [])
        return fields

    def _prepare_update(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in fields.items() if k in MEDIA_UPDATABLE_FIELDS}


class SettingsGateway:
    """Loads and saves the single blog settings document."""

    def __init__(self, store: ContentStore):
        self.store = store

    async def load(self) -> BlogSettings:
        doc = await self.store.load_settings(SETTINGS_DOCUMENT_KEY)
        if doc is None:
            return BlogSettings()
        return BlogSettings().merged(doc)

    async def save(self, changes: Dict[str, Any]) -> BlogSettings:
        updated = (await self.load()).merged(changes)
        await self.store.save_settings(SETTINGS_DOCUMENT_KEY, updated.model_dump())
        logger.info("Saved blog settings sections: %s", ", ".join(k for k in changes if isinstance(changes[k], dict)))
        return updated


class ContentGateways:
    """All gateways around one content store."""

    def __init__(self, store: ContentStore, settings: Settings):
        self.store = store
        self.posts = PostGateway(store, settings)
        self.authors = AuthorGateway(store, settings)
        self.categories = CategoryGateway(store, settings)
        self.tags = TagGateway(store, settings)
        self.media = MediaGateway(store, settings)
        self.settings = SettingsGateway(store)

    def for_kind(self, kind: EntityKind) -> EntityGateway:
        return {
            EntityKind.POSTS: self.posts,
            EntityKind.AUTHORS: self.authors,
            EntityKind.CATEGORIES: self.categories,
            EntityKind.TAGS: self.tags,
            EntityKind.MEDIA: self.media,
        }[EntityKind(kind)]

    async def stats(self) -> StatsResponse:
        return StatsResponse(
            total_posts=await self.store.count(EntityKind.POSTS),
            published_posts=await self.store.count(EntityKind.POSTS, {"draft": False}),
            draft_posts=await self.store.count(EntityKind.POSTS, {"draft": True}),
            featured_posts=await self.store.count(EntityKind.POSTS, {"featured": True}),
            total_views=await self.store.total_views(),
            total_categories=await self.store.count(EntityKind.CATEGORIES),
            total_tags=await self.store.count(EntityKind.TAGS),
            total_authors=await self.store.count(EntityKind.AUTHORS),
            total_media=await self.store.count(EntityKind.MEDIA),
        )

    async def recent_posts(self, limit: int = RECENT_POSTS_LIMIT) -> List[Dict[str, Any]]:
        return await self.store.find(EntityKind.POSTS, sort=PostGateway.list_sort, limit=limit)
