"""
# Agency CMS - Application Entry Point

`create_app()` assembles the FastAPI application around one explicitly constructed
`ContentStore`. Everything the handlers need lives on `app.state` and is resolved through
`agency_cms.routes.dependencies`; nothing reaches for a process-wide database handle.

## Lifecycle

- **Startup**: open the content store (connect with bounded retry, ensure indexes) unless an
  already open store was injected.
- **Shutdown**: close the blob store client, then the content store if this app opened it.

## Request path

```
CORS → request logging → session guard → router
```

The session guard rejects unauthenticated admin traffic before it reaches a handler. Every
`CMSError` is rendered as `{"error": message}` with its status code; request validation
failures become `400`.

## Routers

| Router            | Prefix               |
|-------------------|----------------------|
| admin auth        | `/api/admin/auth`    |
| admin content     | `/api/admin/{kind}`  |
| admin media       | `/api/admin`         |
| admin settings    | `/api/admin/settings`|
| admin views       | `/admin`             |
| public            | `/api`, `/health`    |
| blobs             | `/api/blob`          |

Prometheus metrics are exposed at `/metrics`.
"""

from contextlib import asynccontextmanager
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from agency_cms import __version__
from agency_cms.config import Settings, settings as default_settings
from agency_cms.database.content_store import ContentStore
from agency_cms.exceptions import CMSError
from agency_cms.managers.logging_manager import get_logger, set_level
from agency_cms.middleware.session_guard import SessionGuardMiddleware
from agency_cms.routes.admin_auth import router as admin_auth_router
from agency_cms.routes.admin_content import (
    authors_router,
    categories_router,
    posts_router,
    stats_router,
    tags_crud_router,
    tags_router,
)
from agency_cms.routes.admin_media import blob_router, router as admin_media_router
from agency_cms.routes.admin_settings import router as admin_settings_router
from agency_cms.routes.admin_views import router as admin_views_router
from agency_cms.routes.public import health_router, router as public_router
from agency_cms.services.blob_storage import BlobStore, get_blob_store
from agency_cms.services.content_service import ContentGateways
from agency_cms.services.media_service import MediaService
from agency_cms.services.session_service import SessionService
from agency_cms.utils.logging_utils import RequestLoggingMiddleware, log_application_lifecycle, log_error_with_context

logger = get_logger(prefix="[APP]")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as `{"error": ...}`."""

    @app.exception_handler(CMSError)
    async def cms_error_handler(request: Request, exc: CMSError):
        if exc.status_code >= 500:
            log_error_with_context(exc, {"operation": "request", "method": request.method, "path": request.url.path})
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ContentStore] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; the module-level `settings` when omitted.
        store: Content store to serve from. A store that is already open is left open at
            shutdown; otherwise the lifespan opens and closes it.
        blob_store: Object store for uploads; chosen by `get_blob_store()` when omitted.
    """
    settings = settings or default_settings
    set_level(settings.LOG_LEVEL)
    store = store or ContentStore(settings)
    blob_store = blob_store or get_blob_store(settings)
    gateways = ContentGateways(store, settings)
    sessions = SessionService(settings, store)
    media_service = MediaService(gateways.media, blob_store, settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        startup_start_time = time.time()
        log_application_lifecycle(
            "startup_initiated",
            {
                "app_name": "Agency CMS",
                "version": __version__,
                "environment": "production" if settings.is_production else "development",
                "storage": blob_store.storage_type,
                "session_validation": settings.ADMIN_SESSION_VALIDATION,
            },
        )

        opened_here = False
        if not store.is_open:
            try:
                await store.open()
            except Exception as e:
                log_error_with_context(e, {"operation": "store_open", "database": settings.MONGODB_DATABASE})
                raise
            opened_here = True
        log_application_lifecycle("startup_complete", {"duration": f"{time.time() - startup_start_time:.3f}s"})

        yield

        log_application_lifecycle("shutdown_initiated")
        try:
            await blob_store.aclose()
        except Exception as e:
            log_error_with_context(e, {"operation": "blob_store_close"})
        if opened_here:
            await store.close()
        log_application_lifecycle("shutdown_complete")

    app = FastAPI(
        title="Agency CMS",
        description="Blog content store, admin API and media pipeline",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.gateways = gateways
    app.state.sessions = sessions
    app.state.blob_store = blob_store
    app.state.media_service = media_service

    register_exception_handlers(app)

    # Added innermost first: CORS runs before logging, logging before the guard.
    app.add_middleware(SessionGuardMiddleware, session_service=sessions)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )
    log_application_lifecycle(
        "middleware_configured",
        {
            "middleware": ["CORSMiddleware", "RequestLoggingMiddleware", "SessionGuardMiddleware"],
            "cors_origins": settings.cors_origin_list,
        },
    )

    routers_config = [
        ("admin_auth", admin_auth_router, "Admin login, session check and logout"),
        ("admin_tags", tags_router, "Tag search and bulk creation"),
        ("admin_posts", posts_router, "Post CRUD"),
        ("admin_authors", authors_router, "Author CRUD"),
        ("admin_categories", categories_router, "Category CRUD"),
        ("admin_tags_crud", tags_crud_router, "Tag CRUD"),
        ("admin_stats", stats_router, "Dashboard counters"),
        ("admin_media", admin_media_router, "Uploads and media metadata"),
        ("admin_settings", admin_settings_router, "Blog settings"),
        ("admin_views", admin_views_router, "Admin list screens and bulk actions"),
        ("blobs", blob_router, "Uploaded file serving"),
        ("public", public_router, "Published posts, search, categories and tags"),
        ("health", health_router, "Store health probe"),
    ]
    included_routers = []
    for router_name, router, description in routers_config:
        try:
            app.include_router(router)
            included_routers.append(router_name)
            logger.debug("Included %s router: %s", router_name, description)
        except Exception as e:
            log_error_with_context(e, {"operation": "router_inclusion", "router_name": router_name})
            logger.error("Failed to include %s router: %s", router_name, e)
    log_application_lifecycle(
        "routers_configured", {"total_routers": len(routers_config), "included_routers": len(included_routers)}
    )

    try:
        instrumentator = Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=True,
            should_respect_env_var=False,
            excluded_handlers=["/metrics", "/health"],
            registry=CollectorRegistry(),
        )
        instrumentator.instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")
        log_application_lifecycle("prometheus_configured", {"metrics_endpoint": "/metrics"})
    except Exception as e:
        log_error_with_context(e, {"operation": "prometheus_setup"})
        logger.error("Failed to configure Prometheus metrics: %s", e)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("agency_cms.main:app", host=default_settings.HOST, port=default_settings.PORT, log_level="info")
