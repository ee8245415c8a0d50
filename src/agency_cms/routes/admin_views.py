"""
# Admin View Routes

JSON backing for the admin screens. Each list screen fetches its whole collection through
the CRUD gateway and hands it to `agency_cms.services.admin_views` for search, filtering,
sorting and pagination, with a fixed page size per screen.

| Path                          | Content                                             |
|-------------------------------|-----------------------------------------------------|
| `/admin`                      | stats, five most recent posts, top tags by usage    |
| `/admin/login`                | `{authenticated, login_url}` (never guarded)        |
| `/admin/posts`                | posts page + filter options (categories, authors)   |
| `/admin/authors`              | authors page with usage counts                      |
| `/admin/categories`           | categories page with usage counts                   |
| `/admin/tags`                 | tags page, most used first unless sorted            |
| `/admin/media`                | media page (24 per page)                            |
| `POST /admin/posts/bulk-delete` | sequential delete of the selected slugs          |
| `POST /admin/media/bulk-delete` | sequential delete of the selected filenames      |
"""

from typing import Any, Awaitable, Callable, Dict, List

from fastapi import APIRouter, Depends, Request

from agency_cms.config import Settings
from agency_cms.managers.logging_manager import get_logger
from agency_cms.models.blog_models import BulkDeleteRequest
from agency_cms.routes.dependencies import get_gateways, get_media_service, get_session_service, get_settings, list_query
from agency_cms.services.admin_views import (
    ENTITY_SORT_FIELDS,
    PAGE_SIZES,
    ListQuery,
    ListViewController,
    build_entity_list,
    build_post_list,
    compute_usage,
    sort_tags_by_usage,
)
from agency_cms.services.content_service import ContentGateways
from agency_cms.services.media_service import MediaService
from agency_cms.services.session_service import SessionService

logger = get_logger(prefix="[AdminViews]")

router = APIRouter(prefix="/admin", tags=["Admin Views"])

DASHBOARD_TOP_TAGS = 10
AUTHOR_SEARCH_FIELDS = ("name", "email", "bio")
CATEGORY_SEARCH_FIELDS = ("name", "description")
TAG_SEARCH_FIELDS = ("name", "slug")
MEDIA_SEARCH_FIELDS = ("filename", "original_name", "alt_text")


def _with_page_size(query: ListQuery, screen: str) -> ListQuery:
    return query.model_copy(update={"page_size": PAGE_SIZES[screen]})


async def bulk_delete_keys(keys: List[str], key_field: str, delete_fn: Callable[[str], Awaitable[Any]]) -> Dict[str, Any]:
    """Select every key in a fresh list controller and run its sequential bulk delete."""
    keys = list(dict.fromkeys(keys))
    controller = ListViewController([{key_field: key} for key in keys], key_field=key_field)
    controller.selected.update(keys)
    results = await controller.bulk_delete(delete_fn)
    return {
        "results": [result.model_dump() for result in results],
        "notifications": [notification.model_dump() for notification in controller.notifications],
    }


@router.get("")
async def dashboard(gateways: ContentGateways = Depends(get_gateways)):
    """Overview counters, recent posts and the most used tags."""
    stats = await gateways.stats()
    recent = await gateways.recent_posts()
    posts = await gateways.posts.list()
    tags = sort_tags_by_usage(await gateways.tags.list(), compute_usage(posts, "tags"))
    return {
        "stats": stats.model_dump(),
        "recent_posts": recent,
        "top_tags": tags[:DASHBOARD_TOP_TAGS],
    }


@router.get("/login")
async def login_page(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: SessionService = Depends(get_session_service),
):
    authenticated = await sessions.is_authenticated(request.cookies.get(sessions.cookie_name))
    return {"authenticated": authenticated, "login_url": f"{settings.ADMIN_AUTH_API_PREFIX}/login"}


@router.get("/posts")
async def posts_view(query: ListQuery = Depends(list_query), gateways: ContentGateways = Depends(get_gateways)):
    posts = await gateways.posts.list()
    page = build_post_list(posts, _with_page_size(query, "posts"))
    return {
        **page.model_dump(),
        "categories": [category["name"] for category in await gateways.categories.list()],
        "authors": sorted({post["author"] for post in posts if post.get("author")}),
    }


@router.get("/authors")
async def authors_view(query: ListQuery = Depends(list_query), gateways: ContentGateways = Depends(get_gateways)):
    authors = await gateways.authors.list()
    return build_entity_list(
        authors, _with_page_size(query, "authors"), AUTHOR_SEARCH_FIELDS, ENTITY_SORT_FIELDS["authors"]
    ).model_dump()


@router.get("/categories")
async def categories_view(query: ListQuery = Depends(list_query), gateways: ContentGateways = Depends(get_gateways)):
    categories = await gateways.categories.list()
    return build_entity_list(
        categories, _with_page_size(query, "categories"), CATEGORY_SEARCH_FIELDS, ENTITY_SORT_FIELDS["categories"]
    ).model_dump()


@router.get("/tags")
async def tags_view(query: ListQuery = Depends(list_query), gateways: ContentGateways = Depends(get_gateways)):
    tags = await gateways.tags.list()
    if query.sort not in ENTITY_SORT_FIELDS["tags"]:
        tags = sorted(tags, key=lambda tag: tag.get("post_count", 0), reverse=True)
    page = build_entity_list(tags, _with_page_size(query, "tags"), TAG_SEARCH_FIELDS, ENTITY_SORT_FIELDS["tags"])
    return page.model_dump()


@router.get("/media")
async def media_view(query: ListQuery = Depends(list_query), gateways: ContentGateways = Depends(get_gateways)):
    media = await gateways.media.list()
    page = build_entity_list(media, _with_page_size(query, "media"), MEDIA_SEARCH_FIELDS, ENTITY_SORT_FIELDS["media"])
    return page.model_dump()


@router.post("/posts/bulk-delete")
async def bulk_delete_posts(body: BulkDeleteRequest, gateways: ContentGateways = Depends(get_gateways)):
    logger.info("Bulk deleting %d posts", len(body.keys))
    return await bulk_delete_keys(body.keys, "slug", gateways.posts.delete)


@router.post("/media/bulk-delete")
async def bulk_delete_media(body: BulkDeleteRequest, media_service: MediaService = Depends(get_media_service)):
    logger.info("Bulk deleting %d media items", len(body.keys))
    return await bulk_delete_keys(body.keys, "filename", media_service.delete)
