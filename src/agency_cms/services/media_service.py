"""
# Media Upload Pipeline

`MediaService.upload()` turns an uploaded file into a stored blob plus a media document:

1. Reject types outside the image allow-list and files above `MAX_UPLOAD_MB`.
2. Build a unique filename `<ms timestamp>-<safe name><ext>`.
3. For raster images, read dimensions with Pillow, downsize anything wider than
   `IMAGE_MAX_WIDTH`, and render `thumbnail`/`medium`/`large` variants named
   `<stem>-<variant><ext>`. SVG and GIF files are stored as uploaded.
4. Create the media document first; its unique `filename` index claims the name. Then
   store the bytes in the configured `BlobStore`. If a blob write fails, the document and
   every blob already written are removed again.

Deleting media removes the document first; blob removal afterwards is best effort.
"""

import asyncio
import io
import os
import re
import time
from typing import Any, Dict, List, NamedTuple, Optional

from PIL import Image, UnidentifiedImageError

from agency_cms.config import Settings
from agency_cms.exceptions import CMSError, ValidationError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.services.blob_storage import BlobStore
from agency_cms.services.content_service import MediaGateway

logger = get_logger(prefix="[Media]")

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml")
PASSTHROUGH_TYPES = ("image/svg+xml", "image/gif")
VARIANT_WIDTHS = {"thumbnail": 300, "medium": 768, "large": 1280}
JPEG_QUALITY = 85


class ProcessedImage(NamedTuple):
    data: bytes
    width: Optional[int]
    height: Optional[int]
    variants: Dict[str, bytes]


def safe_filename(original_name: str, timestamp_ms: Optional[int] = None) -> str:
    """`<ms timestamp>-<name with non-alphanumerics replaced by '-'><ext>`."""
    stem, ext = os.path.splitext(os.path.basename(original_name or "upload"))
    safe_stem = re.sub(r"[^a-zA-Z0-9]", "-", stem) or "upload"
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{timestamp_ms}-{safe_stem}{ext.lower()}"


def variant_filename(filename: str, variant: str) -> str:
    stem, ext = os.path.splitext(filename)
    return f"{stem}-{variant}{ext}"


def _encode(image: Image.Image, image_format: str) -> bytes:
    buffer = io.BytesIO()
    if image_format == "JPEG":
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(buffer, format="JPEG", quality=JPEG_QUALITY, progressive=True, optimize=True)
    elif image_format == "WEBP":
        image.save(buffer, format="WEBP", quality=JPEG_QUALITY)
    elif image_format == "PNG":
        image.save(buffer, format="PNG", optimize=True)
    else:
        image.save(buffer, format=image_format)
    return buffer.getvalue()


def _resized(image: Image.Image, width: int) -> Image.Image:
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def process_image(data: bytes, content_type: str, max_width: int) -> ProcessedImage:
    """
    Read dimensions, downsize and render size variants.

    Raises:
        ValidationError: The bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            width, height = image.size
            if content_type in PASSTHROUGH_TYPES:
                return ProcessedImage(data, width, height, {})

            image_format = image.format or "PNG"
            main = image
            if width > max_width:
                main = _resized(image, max_width)
            processed = _encode(main, image_format)

            variants = {
                name: _encode(_resized(image, target), image_format)
                for name, target in VARIANT_WIDTHS.items()
                if width > target
            }
            return ProcessedImage(processed, main.width, main.height, variants)
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError("Invalid image file") from e


class MediaService:
    def __init__(self, gateway: MediaGateway, blob_store: BlobStore, settings: Settings):
        self.gateway = gateway
        self.blobs = blob_store
        self.settings = settings

    async def upload(
        self,
        filename: str,
        content_type: Optional[str],
        data: bytes,
        alt_text: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Validate, process and store one uploaded image.

        Returns:
            The created media document including its public `url`.

        Raises:
            ValidationError: Empty upload, disallowed content type, file too large or
                unreadable image.
            StorageUnavailable: The blob store or content store failed.
        """
        if not data:
            raise ValidationError("No file provided")
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError("Invalid file type")
        if len(data) > self.settings.max_upload_bytes:
            raise ValidationError(f"File exceeds the {self.settings.MAX_UPLOAD_MB} MB upload limit")

        stored_name = safe_filename(filename)
        if content_type == "image/svg+xml":
            processed = ProcessedImage(data, None, None, {})
        else:
            processed = await asyncio.to_thread(process_image, data, content_type, self.settings.IMAGE_MAX_WIDTH)

        variations = {name: self.blobs.public_url(variant_filename(stored_name, name)) for name in processed.variants}

        url = self.blobs.public_url(stored_name)
        document = {
            "filename": stored_name,
            "original_name": filename,
            "path": stored_name,
            "url": url,
            "mime_type": content_type,
            "size": len(processed.data),
            "width": processed.width,
            "height": processed.height,
            "alt_text": alt_text,
            "caption": None,
            "storage_type": self.blobs.storage_type,
            "metadata": {},
            "used_in": [],
            "uploaded_by": uploaded_by,
            "variations": variations,
        }
        # A taken filename raises DuplicateKey here, before any blob is touched.
        media = await self.gateway.create(document)

        blobs = [(stored_name, processed.data)] + [
            (variant_filename(stored_name, name), variant_data) for name, variant_data in processed.variants.items()
        ]
        written: List[str] = []
        try:
            for key, blob in blobs:
                await self.blobs.put(key, blob, content_type)
                written.append(key)
        except Exception as e:
            logger.error("Storing blobs for %s failed, rolling back: %s", stored_name, e)
            await self._rollback_upload(stored_name, written)
            raise

        logger.info(
            "Uploaded %s as %s (%d bytes, %s)", filename, stored_name, len(processed.data), self.blobs.storage_type
        )
        return media

    async def delete(self, filename: str) -> Dict[str, Any]:
        """Delete the media document, then its blobs best effort."""
        media = await self.gateway.delete(filename)
        await self._remove_blobs(filename, list((media.get("variations") or {}).keys()))
        return media

    async def _rollback_upload(self, filename: str, written: List[str]) -> None:
        try:
            await self.gateway.delete(filename)
        except CMSError as e:
            logger.warning("Could not remove media document %s: %s", filename, e.message)
        await self._delete_keys(written)

    async def _remove_blobs(self, filename: str, variants: List[str]) -> None:
        keys = [filename] + [variant_filename(filename, name) for name in variants]
        await self._delete_keys(keys)

    async def _delete_keys(self, keys: List[str]) -> None:
        for key in keys:
            try:
                await self.blobs.delete(key)
            except CMSError as e:
                logger.warning("Could not delete blob %s: %s", key, e.message)
