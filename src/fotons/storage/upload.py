"""Image uploads to the object storage bucket that backs page images."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Optional

import httpx

from fotons.api.errors import ImageValidationError, UploadError

logger = logging.getLogger(__name__)


MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_BUCKET = "photonslib"
DEFAULT_FOLDER = "images"

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


def validate_image(size: int, content_type: Optional[str]) -> None:
    if not (content_type or "").startswith("image/"):
        raise ImageValidationError("Please select an image file")
    if size > MAX_IMAGE_BYTES:
        raise ImageValidationError("Image size must be less than 5MB")


def sanitize_filename(name: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", name)


class ImageUploader:
    """Upload images through a Supabase-style storage REST endpoint.

    ``endpoint`` is the storage API root (``https://<project>/storage/v1``);
    objects are written to ``object/<bucket>/<key>`` and served from
    ``object/public/<bucket>/<key>``.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: Optional[str] = None,
        bucket: str = DEFAULT_BUCKET,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.bucket = bucket
        headers = {}
        if api_key:
            headers = {"Authorization": f"Bearer {api_key}", "apikey": api_key}
        self._client = httpx.AsyncClient(
            base_url=self.endpoint + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ImageUploader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def object_key(self, filename: str, folder: str = DEFAULT_FOLDER, *, timestamp_ms: Optional[int] = None) -> str:
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return f"{folder}/{timestamp_ms}-{sanitize_filename(filename)}"

    def public_url(self, key: str) -> str:
        return f"{self.endpoint}/object/public/{self.bucket}/{key}"

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        *,
        folder: str = DEFAULT_FOLDER,
    ) -> str:
        validate_image(len(data), content_type)
        key = self.object_key(filename, folder)
        try:
            response = await self._client.post(
                f"object/{self.bucket}/{key}",
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Error uploading {filename!r} to storage: {exc}")
            raise UploadError() from exc

        url = self.public_url(key)
        logger.info(f"Uploaded image to {url}")
        return url

    async def upload_many(
        self,
        files: list[tuple[bytes, str, str]],
        *,
        folder: str = DEFAULT_FOLDER,
    ) -> list[str]:
        """Upload ``(data, filename, content_type)`` triples; fails if any upload fails."""

        return list(
            await asyncio.gather(
                *(self.upload(data, name, content_type, folder=folder) for data, name, content_type in files)
            )
        )
