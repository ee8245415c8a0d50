"""
Filename-keyed byte storage for uploaded media.

Two backends share the `BlobStore` interface:

- `LocalBlobStore` writes into `UPLOAD_DIR`, served under `PUBLIC_UPLOAD_PREFIX`.
- `NetlifyBlobStore` talks to the Netlify Blobs HTTP API. Reads and writes first ask
  `{api}/api/v1/blobs/{site}/{store}/{key}` for a signed URL and then transfer the bytes
  against that URL; deletes go to the API URL directly.

`get_blob_store()` picks Netlify when both a site id and a token are configured.
"""

import asyncio
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx

from agency_cms.config import Settings
from agency_cms.exceptions import StorageUnavailable, ValidationError
from agency_cms.managers.logging_manager import get_logger

logger = get_logger(prefix="[BlobStore]")

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(filename: str) -> str:
    """Resolve a content type from the file extension."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)


def _check_key(key: str) -> str:
    if not key or "/" in key or "\\" in key or key in (".", ".."):
        raise ValidationError("Invalid filename")
    return key


class BlobStore:
    """Interface of a filename-keyed object store."""

    storage_type = "local"

    async def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> bool:
        raise NotImplementedError

    def public_url(self, key: str) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class LocalBlobStore(BlobStore):
    storage_type = "local"

    def __init__(self, directory: str, public_prefix: str = "/images/blog"):
        self.directory = Path(directory)
        self.public_prefix = public_prefix.rstrip("/")

    def _path(self, key: str) -> Path:
        return self.directory / _check_key(key)

    async def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.is_file():
            return None
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error("Reading %s from %s failed: %s", key, self.directory, e)
            raise StorageUnavailable("Could not read stored file") from e

    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            logger.error("Writing %s to %s failed: %s", key, self.directory, e)
            raise StorageUnavailable("Could not store uploaded file") from e
        logger.debug("Stored %s (%d bytes) locally", key, len(data))

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Deleting %s from %s failed: %s", key, self.directory, e)
            raise StorageUnavailable("Could not delete stored file") from e
        return True

    def public_url(self, key: str) -> str:
        return f"{self.public_prefix}/{quote(key)}"


class NetlifyBlobStore(BlobStore):
    """
    Netlify Blobs client over httpx.

    Args:
        site_id: Netlify site id.
        token: Personal access token.
        store_name: Blob store name (`media-uploads`).
        api_url: Netlify API base URL.
        base_url: Public site URL used to build `/api/blob/<filename>` links.
        client: Pre-built `httpx.AsyncClient` (tests pass one with a `MockTransport`).
    """

    storage_type = "netlify-blobs"

    def __init__(
        self,
        site_id: str,
        token: str,
        store_name: str = "media-uploads",
        api_url: str = "https://api.netlify.com",
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.site_id = site_id
        self.store_name = store_name
        self.api_url = api_url.rstrip("/")
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=10, keepalive_expiry=30.0),
            )
            self._owns_client = True
        return self._client

    def _blob_api_url(self, key: str) -> str:
        return f"{self.api_url}/api/v1/blobs/{self.site_id}/{self.store_name}/{quote(_check_key(key), safe='')}"

    @property
    def _auth_headers(self):
        return {"Authorization": f"Bearer {self._token}"}

    async def _signed_url(self, method: str, key: str) -> Optional[str]:
        response = await self._get_client().request(method, self._blob_api_url(key), headers=self._auth_headers)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()["url"]

    async def get(self, key: str) -> Optional[bytes]:
        try:
            url = await self._signed_url("GET", key)
            if url is None:
                return None
            response = await self._get_client().get(url)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            logger.error("Fetching blob %s failed: %s", key, e)
            raise StorageUnavailable("Object store unavailable") from e

    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        try:
            url = await self._signed_url("PUT", key)
            if url is None:
                raise StorageUnavailable(f"Blob store '{self.store_name}' not found")
            response = await self._get_client().put(
                url, content=data, headers={"Content-Type": content_type or content_type_for(key)}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Uploading blob %s failed: %s", key, e)
            raise StorageUnavailable("Object store unavailable") from e
        logger.info("Stored %s (%d bytes) in Netlify Blobs store %s", key, len(data), self.store_name)

    async def delete(self, key: str) -> bool:
        try:
            response = await self._get_client().delete(self._blob_api_url(key), headers=self._auth_headers)
            if response.status_code == 404:
                return False
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error("Deleting blob %s failed: %s", key, e)
            raise StorageUnavailable("Object store unavailable") from e

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/api/blob/{quote(key)}"

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()


def get_blob_store(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> BlobStore:
    if settings.blobs_available:
        logger.info("Using Netlify Blobs store '%s'", settings.BLOB_STORE_NAME)
        return NetlifyBlobStore(
            site_id=settings.NETLIFY_SITE_ID,
            token=settings.NETLIFY_AUTH_TOKEN.get_secret_value(),
            store_name=settings.BLOB_STORE_NAME,
            api_url=settings.NETLIFY_API_URL,
            base_url=settings.BASE_URL,
            client=client,
        )
    logger.info("Netlify Blobs not configured, storing uploads in %s", settings.UPLOAD_DIR)
    return LocalBlobStore(settings.UPLOAD_DIR, settings.PUBLIC_UPLOAD_PREFIX)
