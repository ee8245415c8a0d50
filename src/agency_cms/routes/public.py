"""
Public read API for the blog front end.

Only published posts (`draft == False`) are visible here; reading a single post counts a view.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from agency_cms.database.content_store import ContentStore
from agency_cms.managers.logging_manager import get_logger
from agency_cms.routes.dependencies import get_gateways, get_store
from agency_cms.services.content_service import ContentGateways

logger = get_logger(prefix="[PublicRoutes]")

router = APIRouter(prefix="/api", tags=["Public"])
health_router = APIRouter(tags=["Health"])


@router.get("/posts")
async def list_posts(
    category: Optional[str] = Query(None, description="Category display name"),
    tag: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    gateways: ContentGateways = Depends(get_gateways),
):
    return await gateways.posts.list_published(category=category, tag=tag, featured=featured)


@router.get("/posts/{slug}")
async def get_post(slug: str, gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.posts.record_view(slug)


@router.get("/search")
async def search_posts(
    q: str = Query("", description="Words to look for in title, content and excerpt"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    gateways: ContentGateways = Depends(get_gateways),
):
    return await gateways.posts.search(q, limit=limit)


@router.get("/categories")
async def list_categories(gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.categories.list()


@router.get("/tags")
async def list_tags(gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.tags.list()


@health_router.get("/health")
async def health(store: ContentStore = Depends(get_store)):
    if await store.health_check():
        return {"status": "healthy", "database": "connected"}
    logger.warning("Health check failed: content store unreachable")
    return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "disconnected"})
