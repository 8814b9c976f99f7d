"""Blob storage client for task attachments (Supabase Storage REST API)."""

import logging
from urllib.parse import unquote, urlsplit

import httpx

from app.core.config import settings
from app.exceptions.base import UpstreamServiceError

logger = logging.getLogger(__name__)


class StorageService:
    """Deletes uploaded files given their public URL.

    Public URLs look like
    ``{supabase_url}/storage/v1/object/public/{bucket}/{path}``; the object
    path is everything after the bucket segment, percent-decoded.
    """

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        bucket: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.supabase_url or "").rstrip("/")
        self.service_key = service_key or settings.supabase_service_key
        self.bucket = bucket or settings.supabase_bucket
        self.timeout = timeout or settings.storage_request_timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    def extract_object_path(self, file_url: str | None) -> str | None:
        """Return the decoded object path inside the bucket, or None if the URL is foreign."""
        if not file_url:
            return None

        path = urlsplit(file_url).path
        marker = f"/{self.bucket}/"
        if marker not in path:
            return None

        object_path = unquote(path.split(marker, 1)[1])
        return object_path or None

    async def delete_file(self, file_url: str) -> bool:
        """Delete one object. Returns False when the URL does not point into the bucket.

        Raises:
            UpstreamServiceError: If storage is not configured or the call fails.
        """
        object_path = self.extract_object_path(file_url)
        if not object_path:
            logger.debug(f"Skipping delete of foreign URL {file_url}")
            return False

        if not self.is_configured:
            raise UpstreamServiceError("Blob storage is not configured")

        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    "DELETE",
                    f"{self.base_url}/storage/v1/object/{self.bucket}",
                    json={"prefixes": [object_path]},
                    headers=headers,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise UpstreamServiceError(
                "Blob storage delete failed",
                details={"path": object_path, "error": str(e)},
            ) from e

        logger.info(f"🗑️ Deleted file from storage: {object_path}")
        return True
