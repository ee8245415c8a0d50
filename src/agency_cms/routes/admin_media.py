"""
Media endpoints: uploads, media metadata and blob serving.

Admin (behind the session guard):

- `POST /api/admin/upload` multipart `file` (+ optional `alt_text`, `uploaded_by`) → `{url, filename, media}`
- `GET /api/admin/media`, `POST /api/admin/media` (same upload, returns the media document)
- `GET/PUT/DELETE /api/admin/media/{filename}`
- `DELETE /api/admin/media/bulk` `{"filenames": [...]}`

Public:

- `GET /api/blob/{filename}` streams the stored bytes with a long-lived cache header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response

from agency_cms.exceptions import CMSError, NotFound, ValidationError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.models.blog_models import BulkDeleteMediaRequest, UpdateMediaRequest, UploadResponse
from agency_cms.routes.admin_views import bulk_delete_keys
from agency_cms.routes.dependencies import get_blobs, get_gateways, get_media_service
from agency_cms.services.blob_storage import BlobStore, content_type_for
from agency_cms.services.content_service import ContentGateways
from agency_cms.services.media_service import MediaService

logger = get_logger(prefix="[MediaRoutes]")

BLOB_CACHE_CONTROL = "public, max-age=31536000, immutable"

# Uploads with no named uploader are attributed to the shared admin login.
DEFAULT_UPLOADER = "admin"

router = APIRouter(prefix="/api/admin", tags=["Admin Media"])
blob_router = APIRouter(prefix="/api/blob", tags=["Media"])


async def _upload(
    file: Optional[UploadFile],
    alt_text: Optional[str],
    uploaded_by: Optional[str],
    media_service: MediaService,
):
    if file is None or not file.filename:
        raise ValidationError("No file provided")
    data = await file.read()
    try:
        return await media_service.upload(
            file.filename,
            file.content_type,
            data,
            alt_text=alt_text,
            uploaded_by=(uploaded_by or "").strip() or DEFAULT_UPLOADER,
        )
    except CMSError:
        raise
    except Exception as e:
        logger.error("Failed to upload %s: %s", file.filename, e, exc_info=True)
        raise CMSError("Failed to upload file") from e
    finally:
        await file.close()


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    alt_text: Optional[str] = Form(None),
    uploaded_by: Optional[str] = Form(None),
    media_service: MediaService = Depends(get_media_service),
):
    """Upload one image and return its public URL."""
    media = await _upload(file, alt_text, uploaded_by, media_service)
    return UploadResponse(url=media["url"], filename=media["filename"], media=media)


@router.get("/media")
async def list_media(gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.media.list()


@router.post("/media", status_code=201)
async def create_media(
    file: Optional[UploadFile] = File(None),
    alt_text: Optional[str] = Form(None),
    uploaded_by: Optional[str] = Form(None),
    media_service: MediaService = Depends(get_media_service),
):
    return await _upload(file, alt_text, uploaded_by, media_service)


@router.delete("/media/bulk")
async def bulk_delete_media(body: BulkDeleteMediaRequest, media_service: MediaService = Depends(get_media_service)):
    """Delete several media items; each filename gets its own result."""
    return await bulk_delete_keys(body.filenames, "filename", media_service.delete)


@router.get("/media/{filename}")
async def get_media(filename: str, gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.media.get(filename)


@router.put("/media/{filename}")
async def update_media(filename: str, body: UpdateMediaRequest, gateways: ContentGateways = Depends(get_gateways)):
    return await gateways.media.update(filename, body.model_dump(exclude_unset=True))


@router.delete("/media/{filename}")
async def delete_media(filename: str, media_service: MediaService = Depends(get_media_service)):
    await media_service.delete(filename)
    return {"success": True}


@blob_router.get("/{filename}")
async def serve_blob(filename: str, blobs: BlobStore = Depends(get_blobs)):
    data = await blobs.get(filename)
    if data is None:
        raise NotFound("Blob not found")
    return Response(
        content=data,
        media_type=content_type_for(filename),
        headers={"Cache-Control": BLOB_CACHE_CONTROL},
    )
