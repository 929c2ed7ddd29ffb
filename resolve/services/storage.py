"""
Client for the Supabase Storage REST API.

Objects live in a single private bucket (``STORAGE_BUCKET``).  Every call is
authenticated with the service-role key; end users never talk to storage
directly, they go through the document routes.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from resolve.config import settings
from resolve.errors import NotFound, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class StoredObject:
    path: str
    url: Optional[str] = None


class SupabaseStorageClient:
    """Upload, fetch, sign and delete objects in the documents bucket."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        bucket: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.service_key = service_key if service_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.timeout = httpx.Timeout(float(settings.SUPABASE_TIMEOUT), connect=10.0)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
        }

    def _object_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"

    async def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        """Store *data* at *path* and return it with a signed locator."""
        headers = self._headers()
        headers["Content-Type"] = content_type
        headers["x-upsert"] = "false"
        try:
            async with self._client() as client:
                resp = await client.post(self._object_url(path), headers=headers, content=data)
        except httpx.HTTPError as exc:
            logger.error("upload: storage unreachable for %s: %s", path, exc)
            raise UpstreamFailure("Upload failed: storage unavailable") from exc

        if resp.status_code not in (200, 201):
            logger.error("upload: HTTP %d for %s: %s", resp.status_code, path, resp.text[:200])
            raise UpstreamFailure(f"Upload failed: storage returned {resp.status_code}")

        logger.info("Stored object %s (%d bytes)", path, len(data))
        url = await self.create_signed_url(path)
        return StoredObject(path=path, url=url)

    async def create_signed_url(self, path: str, expires_in: Optional[int] = None) -> Optional[str]:
        """Return a time-limited URL for *path*, or None if signing fails."""
        expires_in = expires_in or settings.SIGNED_URL_EXPIRY
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/storage/v1/object/sign/{self.bucket}/{quote(path)}",
                    headers=self._headers(),
                    json={"expiresIn": expires_in},
                )
        except httpx.HTTPError as exc:
            logger.warning("create_signed_url: storage unreachable for %s: %s", path, exc)
            return None

        if resp.status_code != 200:
            logger.warning("create_signed_url: HTTP %d for %s", resp.status_code, path)
            return None

        signed = resp.json().get("signedURL") or resp.json().get("signedUrl")
        if not signed:
            return None
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"

    async def download(self, path: str) -> bytes:
        try:
            async with self._client() as client:
                resp = await client.get(self._object_url(path), headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("download: storage unreachable for %s: %s", path, exc)
            raise UpstreamFailure("Download failed: storage unavailable") from exc

        if resp.status_code in (400, 404):
            raise NotFound("File not found in storage")
        if resp.status_code != 200:
            logger.error("download: HTTP %d for %s", resp.status_code, path)
            raise UpstreamFailure(f"Download failed: storage returned {resp.status_code}")
        return resp.content

    async def delete(self, path: str) -> None:
        try:
            async with self._client() as client:
                resp = await client.request(
                    "DELETE",
                    f"{self.base_url}/storage/v1/object/{self.bucket}",
                    headers=self._headers(),
                    json={"prefixes": [path]},
                )
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"Delete failed: {exc}") from exc

        if resp.status_code != 200:
            raise UpstreamFailure(f"Delete failed: storage returned {resp.status_code}")


def get_object_store() -> SupabaseStorageClient:
    """FastAPI dependency; overridden in tests."""
    return SupabaseStorageClient()
