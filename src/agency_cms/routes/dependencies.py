"""
FastAPI dependencies resolving the services owned by the application.

`create_app()` builds the content store, gateways, session service and media service once
and attaches them to `app.state`; handlers receive them through these functions instead of
importing process-wide globals.
"""

from typing import Literal, Optional

from fastapi import Query, Request

from agency_cms.config import Settings
from agency_cms.database.content_store import ContentStore
from agency_cms.services.admin_views import ListQuery
from agency_cms.services.blob_storage import BlobStore
from agency_cms.services.content_service import ContentGateways
from agency_cms.services.media_service import MediaService
from agency_cms.services.session_service import SessionService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_gateways(request: Request) -> ContentGateways:
    return request.app.state.gateways


def get_session_service(request: Request) -> SessionService:
    return request.app.state.sessions


def get_blobs(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_media_service(request: Request) -> MediaService:
    return request.app.state.media_service


def list_query(
    q: str = Query("", description="Case-insensitive search"),
    status: Literal["all", "published", "draft", "featured"] = Query("all"),
    category: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
) -> ListQuery:
    """Query parameters shared by the admin list views; page size is fixed per view."""
    return ListQuery(q=q, status=status, category=category, author=author, sort=sort, order=order, page=page)
