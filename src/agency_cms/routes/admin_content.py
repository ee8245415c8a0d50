"""
# Admin Content API

CRUD endpoints for posts, authors, categories and tags, all addressed by slug:

| Method   | Path                          | Result                                   |
|----------|-------------------------------|------------------------------------------|
| `GET`    | `/api/admin/{kind}`           | full list in the gateway's sort order    |
| `POST`   | `/api/admin/{kind}`           | `201` + created document                 |
| `GET`    | `/api/admin/{kind}/{slug}`    | one document or `404`                    |
| `PUT`    | `/api/admin/{kind}/{slug}`    | partial update, merged document          |
| `DELETE` | `/api/admin/{kind}/{slug}`    | `{"success": true}`; `409` while in use  |

Tags additionally expose `GET /api/admin/tags/search?q=` and `POST /api/admin/tags/bulk`;
`GET /api/admin/stats` returns the dashboard counters.

Every failure body is `{"error": "..."}` through the `CMSError` handler registered in
`agency_cms.main`.
"""

from typing import Type

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from agency_cms.database.content_store import EntityKind
from agency_cms.exceptions import CMSError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.models.blog_models import (
    BulkCreateTagsRequest,
    CreateAuthorRequest,
    CreateCategoryRequest,
    CreatePostRequest,
    CreateTagRequest,
    StatsResponse,
    UpdateAuthorRequest,
    UpdateCategoryRequest,
    UpdatePostRequest,
    UpdateTagRequest,
)
from agency_cms.routes.dependencies import get_gateways
from agency_cms.services.content_service import ContentGateways

logger = get_logger(prefix="[AdminContent]")


def build_crud_router(kind: EntityKind, create_model: Type[BaseModel], update_model: Type[BaseModel]) -> APIRouter:
    """Build the five CRUD routes of one entity kind."""
    router = APIRouter(prefix=f"/api/admin/{kind.value}", tags=["Admin Content"])
    noun = kind.label.lower()

    @router.get("")
    async def list_entities(gateways: ContentGateways = Depends(get_gateways)):
        return await gateways.for_kind(kind).list()

    @router.post("", status_code=201)
    async def create_entity(body: create_model, gateways: ContentGateways = Depends(get_gateways)):
        try:
            return await gateways.for_kind(kind).create(body.model_dump(exclude_unset=True))
        except CMSError:
            raise
        except Exception as e:
            logger.error("Failed to create %s: %s", noun, e, exc_info=True)
            raise CMSError(f"Failed to create {noun}") from e

    @router.get("/{slug}")
    async def get_entity(slug: str, gateways: ContentGateways = Depends(get_gateways)):
        return await gateways.for_kind(kind).get(slug)

    @router.put("/{slug}")
    async def update_entity(slug: str, body: update_model, gateways: ContentGateways = Depends(get_gateways)):
        try:
            return await gateways.for_kind(kind).update(slug, body.model_dump(exclude_unset=True))
        except CMSError:
            raise
        except Exception as e:
            logger.error("Failed to update %s %s: %s", noun, slug, e, exc_info=True)
            raise CMSError(f"Failed to update {noun}") from e

    @router.delete("/{slug}")
    async def delete_entity(slug: str, gateways: ContentGateways = Depends(get_gateways)):
        try:
            await gateways.for_kind(kind).delete(slug)
        except CMSError:
            raise
        except Exception as e:
            logger.error("Failed to delete %s %s: %s", noun, slug, e, exc_info=True)
            raise CMSError(f"Failed to delete {noun}") from e
        return {"success": True}

    return router


# Static tag routes must be registered ahead of `/api/admin/tags/{slug}`.
tags_router = APIRouter(prefix="/api/admin/tags", tags=["Admin Content"])


@tags_router.get("/search")
async def search_tags(q: str = Query("", description="Name substring"), gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.tags.search(q)


@tags_router.post("/bulk", status_code=201)
async def create_tags(body: BulkCreateTagsRequest, gateways: ContentGateways = Depends(get_gateways)):
    """Create every named tag that does not exist yet and return all of them."""
    return await gateways.tags.create_many(body.tags)


stats_router = APIRouter(prefix="/api/admin", tags=["Admin Content"])


@stats_router.get("/stats", response_model=StatsResponse)
async def get_stats(gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.stats()


posts_router = build_crud_router(EntityKind.POSTS, CreatePostRequest, UpdatePostRequest)
authors_router = build_crud_router(EntityKind.AUTHORS, CreateAuthorRequest, UpdateAuthorRequest)
categories_router = build_crud_router(EntityKind.CATEGORIES, CreateCategoryRequest, UpdateCategoryRequest)
tags_crud_router = build_crud_router(EntityKind.TAGS, CreateTagRequest, UpdateTagRequest)
