"""
# Admin List Views

The admin screens fetch a whole entity collection once and do search, filter, sort and
pagination in memory. This module holds that logic so the JSON view routes and any other
caller share one deterministic implementation.

## Pipeline

`build_post_list()` is `filter_posts()` → `sort_items()` → `paginate()`. Sorting is stable in
both directions, so ties keep the order the store returned. Given the same items and the same
`ListQuery`, the resulting page is always identical.

## Selection and bulk delete

`ListViewController` keeps the fetched items, the current query and the selected keys.
Changing any filter, search or sort resets to page 1. `bulk_delete()` deletes the selected
keys one at a time; it is not atomic. Each key yields a `BulkResult`, succeeded items are
dropped from the local list, and the selection is cleared afterwards.

Attributes:
    POST_SORT_FIELDS (tuple): Sort keys offered by the posts screen.
    PAGE_SIZES (dict): Fixed page size per admin screen.
    ENTITY_SORT_FIELDS (dict): Sort keys offered by each non-post screen.
"""

from datetime import datetime, timezone
import math
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Literal, Optional, Sequence, Set

from pydantic import BaseModel, Field

from agency_cms.exceptions import CMSError
from agency_cms.managers.logging_manager import get_logger

logger = get_logger(prefix="[AdminViews]")

POST_SORT_FIELDS = ("date", "title", "author", "category", "draft")
PAGE_SIZES = {"posts": 10, "authors": 15, "categories": 15, "tags": 15, "media": 24}
ENTITY_SORT_FIELDS = {
    "authors": ("name", "email", "post_count", "created_at", "updated_at"),
    "categories": ("name", "order", "post_count", "created_at", "updated_at"),
    "tags": ("name", "slug", "post_count", "created_at", "updated_at"),
    "media": ("filename", "original_name", "mime_type", "size", "width", "height", "created_at"),
}
POST_SEARCH_FIELDS = ("title", "excerpt", "slug")
DATE_FIELDS = ("date", "created_at", "updated_at")


class ListQuery(BaseModel):
    """Search, filter, sort and page parameters of one admin list screen."""

    q: str = ""
    status: Literal["all", "published", "draft", "featured"] = "all"
    category: Optional[str] = None
    author: Optional[str] = None
    sort: Optional[str] = None
    order: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=200)


class ListPage(BaseModel):
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int
    total_pages: int


class BulkResult(BaseModel):
    key: str
    success: bool
    error: Optional[str] = None


class Notification(BaseModel):
    kind: Literal["success", "error", "info"]
    message: str


def _contains(value: Any, needle: str) -> bool:
    return isinstance(value, str) and needle in value.lower()


def filter_posts(
    posts: Iterable[Dict[str, Any]],
    q: Optional[str] = None,
    status: str = "all",
    category: Optional[str] = None,
    author: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Case-insensitive search over title, excerpt, slug and tags, plus status/category/author filters."""
    needle = (q or "").strip().lower()
    result = []
    for post in posts:
        if needle:
            matched = any(_contains(post.get(field), needle) for field in POST_SEARCH_FIELDS) or any(
                _contains(tag, needle) for tag in post.get("tags") or []
            )
            if not matched:
                continue
        if status == "published" and post.get("draft", True):
            continue
        if status == "draft" and not post.get("draft", True):
            continue
        if status == "featured" and not post.get("featured", False):
            continue
        if category and category != "all" and post.get("category") != category:
            continue
        if author and author != "all" and post.get("author") != author:
            continue
        result.append(post)
    return result


def search_entities(items: Iterable[Dict[str, Any]], q: Optional[str], fields: Sequence[str]) -> List[Dict[str, Any]]:
    """Case-insensitive substring search over the given fields."""
    needle = (q or "").strip().lower()
    if not needle:
        return list(items)
    return [item for item in items if any(_contains(item.get(field), needle) for field in fields)]


def _sortable(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, str):
        return value.lower()
    return value


def _as_datetime(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return value


def sort_items(items: Sequence[Dict[str, Any]], key: Optional[str], descending: bool = False) -> List[Dict[str, Any]]:
    """
    Stable sort by `key`; items missing the key sort as the smallest value.

    Python's sort keeps equal elements in their original order even with `reverse=True`.
    """
    if not key:
        return list(items)

    def sort_key(item: Dict[str, Any]):
        value = item.get(key)
        if key in DATE_FIELDS:
            value = _as_datetime(value)
        return (value is not None, _sortable(value) if value is not None else 0)

    return sorted(items, key=sort_key, reverse=descending)


def paginate(items: Sequence[Dict[str, Any]], page: int, page_size: int) -> ListPage:
    """Slice one page; `page` is clamped into `1..total_pages`."""
    total = len(items)
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return ListPage(
        items=list(items[start : start + page_size]),
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
    )


def build_post_list(posts: Sequence[Dict[str, Any]], query: ListQuery) -> ListPage:
    filtered = filter_posts(posts, query.q, query.status, query.category, query.author)
    sort_key = query.sort if query.sort in POST_SORT_FIELDS else "date"
    ordered = sort_items(filtered, sort_key, descending=query.order == "desc")
    return paginate(ordered, query.page, query.page_size)


def build_entity_list(
    items: Sequence[Dict[str, Any]],
    query: ListQuery,
    search_fields: Sequence[str],
    sort_fields: Optional[Sequence[str]] = None,
) -> ListPage:
    """
    Search, sort and paginate a non-post screen.

    Only keys in `sort_fields` (default: `search_fields`) are sorted on; any other `sort`
    keeps the order the items came in.
    """
    allowed = search_fields if sort_fields is None else sort_fields
    sort_key = query.sort if query.sort in allowed else None
    filtered = search_entities(items, query.q, search_fields)
    ordered = sort_items(filtered, sort_key, descending=query.order == "desc")
    return paginate(ordered, query.page, query.page_size)


def compute_usage(posts: Iterable[Dict[str, Any]], field: str) -> Dict[str, int]:
    """
    Count how many posts name each value of `field` (`author`, `category` or `tags`).

    Display only; deletion checks go through the content store.
    """
    usage: Dict[str, int] = {}
    for post in posts:
        value = post.get(field)
        values = value if isinstance(value, list) else [value]
        for name in values:
            if name:
                usage[name] = usage.get(name, 0) + 1
    return usage


def sort_tags_by_usage(tags: Sequence[Dict[str, Any]], usage: Dict[str, int]) -> List[Dict[str, Any]]:
    return sorted(tags, key=lambda tag: usage.get((tag.get("name") or "").lower(), 0), reverse=True)


class ListViewController:
    """
    State of one admin list screen: fetched items, query, selection and notifications.

    Args:
        items: The full collection as fetched from the gateway.
        key_field: Field identifying an item (`slug`, or `filename` for media).
        page_size: Fixed page size of the screen.
        search_fields: Fields searched by `q`. `None` means post semantics
            (`filter_posts` plus status/category/author filters and post sort keys).
        sort_fields: Keys the screen may sort on; defaults to `search_fields`.
    """

    def __init__(
        self,
        items: Sequence[Dict[str, Any]],
        key_field: str = "slug",
        page_size: int = 10,
        search_fields: Optional[Sequence[str]] = None,
        sort_fields: Optional[Sequence[str]] = None,
    ):
        self.items: List[Dict[str, Any]] = list(items)
        self.key_field = key_field
        self.search_fields = search_fields
        self.sort_fields = sort_fields
        self.query = ListQuery(page_size=page_size, sort="date" if search_fields is None else None)
        self.selected: Set[str] = set()
        self.notifications: List[Notification] = []

    def set_query(self, **changes: Any) -> ListQuery:
        """Apply query changes; anything other than a page change resets to page 1."""
        data = self.query.model_dump()
        data.update(changes)
        if set(changes) - {"page"}:
            data["page"] = 1
        self.query = ListQuery(**data)
        return self.query

    def go_to_page(self, page: int) -> ListPage:
        self.set_query(page=max(1, page))
        return self.current_page()

    def current_page(self) -> ListPage:
        if self.search_fields is None:
            return build_post_list(self.items, self.query)
        return build_entity_list(self.items, self.query, self.search_fields, self.sort_fields)

    def toggle_select(self, key: str) -> None:
        if key in self.selected:
            self.selected.discard(key)
        else:
            self.selected.add(key)

    def select_page(self) -> None:
        self.selected.update(item[self.key_field] for item in self.current_page().items)

    def clear_selection(self) -> None:
        self.selected.clear()

    def notify(self, kind: str, message: str) -> Notification:
        notification = Notification(kind=kind, message=message)
        self.notifications.append(notification)
        return notification

    async def bulk_delete(self, delete_fn: Callable[[str], Awaitable[Any]]) -> List[BulkResult]:
        """
        Delete every selected item sequentially, collecting one result per key.

        Partial failure is reported, not rolled back; failed items stay in the list.
        """
        keys = [item[self.key_field] for item in self.items if item.get(self.key_field) in self.selected]
        keys.extend(sorted(self.selected - set(keys)))

        results: List[BulkResult] = []
        for key in keys:
            try:
                await delete_fn(key)
                results.append(BulkResult(key=key, success=True))
            except CMSError as e:
                logger.warning("Bulk delete of '%s' failed: %s", key, e.message)
                results.append(BulkResult(key=key, success=False, error=e.message))
            except Exception as e:
                logger.error("Bulk delete of '%s' failed unexpectedly: %s", key, e, exc_info=True)
                results.append(BulkResult(key=key, success=False, error=str(e)))

        deleted = {result.key for result in results if result.success}
        self.items = [item for item in self.items if item.get(self.key_field) not in deleted]
        self.clear_selection()

        failed = [result for result in results if not result.success]
        if deleted:
            self.notify("success", f"{len(deleted)} item(s) deleted")
        if failed:
            self.notify("error", f"{len(failed)} item(s) could not be deleted: " + ", ".join(r.key for r in failed))
        return results
