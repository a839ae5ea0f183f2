import asyncio
import logging
import mimetypes
import os
from dataclasses import dataclass

import httpx

from config import settings
from core import ids
from core.errors import UploadError

logger = logging.getLogger(__name__)

MESSAGES_PREFIX = "messages"
PROFILES_PREFIX = "profiles"


@dataclass
class ImageFile:
    filename: str
    content_type: str
    data: bytes


class BlobStore:
    """Public-URL object storage backed by the Supabase Storage REST API.

    Objects are uploaded once and stay publicly readable; there are no
    signed URLs or expiry.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.client = client or httpx.AsyncClient(
            timeout=30.0,
            headers={"Authorization": f"Bearer {api_key}", "apikey": api_key},
        )

    @classmethod
    def from_settings(cls) -> "BlobStore":
        return cls(settings.SUPABASE_URL, settings.SUPABASE_KEY, settings.STORAGE_BUCKET)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def path_from_url(self, url: str) -> str | None:
        marker = f"/object/public/{self.bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[1]

    async def upload(self, image: ImageFile, prefix: str = MESSAGES_PREFIX) -> str:
        path = f"{prefix}/{ids.new_id('img')}{_extension(image)}"
        try:
            response = await self.client.post(
                f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                content=image.data,
                headers={"Content-Type": image.content_type, "x-upsert": "false"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Upload of %s failed: %s", image.filename, e)
            raise UploadError(f"Image upload failed: {e}") from e
        return self.public_url(path)

    async def upload_many(
        self, images: list[ImageFile], prefix: str = MESSAGES_PREFIX
    ) -> list[str]:
        """Upload concurrently; all-or-nothing.

        If any upload fails, the ones that succeeded are deleted again and
        the first failure is raised.
        """
        results = await asyncio.gather(
            *(self.upload(image, prefix) for image in images),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            await self.delete_many([r for r in results if isinstance(r, str)])
            raise failures[0]
        return list(results)

    async def delete(self, url: str) -> bool:
        path = self.path_from_url(url)
        if path is None:
            logger.warning("Not a %s object URL: %s", self.bucket, url)
            return False
        try:
            response = await self.client.request(
                "DELETE",
                f"{self.base_url}/storage/v1/object/{self.bucket}",
                json={"prefixes": [path]},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Delete of %s failed: %s", url, e)
            return False
        return True

    async def delete_many(self, urls: list[str]) -> None:
        if urls:
            await asyncio.gather(*(self.delete(url) for url in urls))

    async def aclose(self) -> None:
        await self.client.aclose()


def _extension(image: ImageFile) -> str:
    ext = os.path.splitext(image.filename or "")[1]
    if ext:
        return ext.lower()
    return mimetypes.guess_extension(image.content_type) or ""
