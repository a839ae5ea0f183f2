import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import UploadFile

from config import settings
from core.errors import ValidationError
from storage.blob import BlobStore, ImageFile

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = re.compile(r"jpeg|jpg|png|gif|webp")


async def read_image(upload: UploadFile) -> ImageFile:
    content_type = upload.content_type or ""
    if not ALLOWED_IMAGE_TYPES.search(content_type):
        raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif, webp)")
    data = await upload.read()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File too large (max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB)"
        )
    return ImageFile(filename=upload.filename or "", content_type=content_type, data=data)


async def read_images(uploads: list[UploadFile]) -> list[ImageFile]:
    if not uploads:
        raise ValidationError("Please upload at least one image")
    if len(uploads) > settings.MAX_UPLOAD_FILES:
        raise ValidationError(f"Too many files (max {settings.MAX_UPLOAD_FILES})")
    return [await read_image(upload) for upload in uploads]


@asynccontextmanager
async def discard_on_failure(blob_store: BlobStore, urls: list[str]) -> AsyncIterator[list[str]]:
    """Delete already-uploaded objects if the database work that follows fails."""
    try:
        yield urls
    except Exception:
        logger.warning("Send failed after upload, deleting %d object(s)", len(urls))
        await blob_store.delete_many(urls)
        raise
