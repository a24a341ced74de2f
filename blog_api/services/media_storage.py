"""Azure Blob Storage service for uploaded post images."""

import logging
import mimetypes
import random
import time
from pathlib import PurePosixPath

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import ContainerClient, ContentSettings

from blog_api.config import get_settings
from blog_api.services.errors import InvalidUploadError, StorageUnavailableError
from blog_api.services.post_storage import (
    create_container_client,
    validate_blob_path_segment,
)

logger = logging.getLogger(__name__)

UPLOADS_PREFIX = "uploads/"
UPLOADS_URL_PREFIX = "/uploads/"

# Lazy singleton — lives for the process lifetime
_media_client: ContainerClient | None = None


def _get_media_client() -> ContainerClient:
    """Return a shared blob container client for media (lazy singleton)."""
    global _media_client
    if _media_client is None:
        _media_client = create_container_client(get_settings().azure_media_container)
    return _media_client


def _stored_name(filename: str, content_type: str) -> str:
    """image-<epoch ms>-<9 random digits><ext>, keeping the upload's extension."""
    ext = PurePosixPath(filename).suffix.lower()
    if not ext[1:].isalnum() or len(ext) > 6:
        ext = mimetypes.guess_extension(content_type) or ""
    suffix = random.randint(0, 999_999_999)
    return f"image-{int(time.time() * 1000)}-{suffix}{ext}"


async def upload_image(filename: str, data: bytes, content_type: str) -> str:
    """Store an uploaded image and return the URL path it is served from.

    Raises InvalidUploadError for non-image content types, empty files and
    files over the configured size limit.
    """
    settings = get_settings()
    if not content_type.startswith("image/"):
        raise InvalidUploadError("Only image files are allowed")
    if not data:
        raise InvalidUploadError("Uploaded file is empty")
    if len(data) > settings.max_upload_bytes:
        raise InvalidUploadError(
            f"Image exceeds the {settings.max_upload_bytes // (1024 * 1024)}MB limit"
        )

    name = _stored_name(filename, content_type)
    client = _get_media_client()
    try:
        client.get_blob_client(f"{UPLOADS_PREFIX}{name}").upload_blob(
            data,
            overwrite=False,
            content_settings=ContentSettings(content_type=content_type),
        )
    except AzureError as e:
        logger.warning("Azure API error uploading image %s: %s", name, e)
        raise StorageUnavailableError("Could not store image") from e

    logger.info("Stored image %s (%d bytes)", name, len(data))
    return f"{UPLOADS_URL_PREFIX}{name}"


async def read_image(name: str) -> tuple[bytes, str] | None:
    """Read a stored image. Returns (data, content_type) or None if not found."""
    try:
        validate_blob_path_segment(name)
    except ValueError:
        return None
    client = _get_media_client()
    try:
        downloader = client.get_blob_client(f"{UPLOADS_PREFIX}{name}").download_blob()
        data = downloader.readall()
    except ResourceNotFoundError:
        return None
    except AzureError as e:
        logger.warning("Azure API error reading image %s: %s", name, e)
        raise StorageUnavailableError(f"Could not read image {name}") from e

    content_type = downloader.properties.content_settings.content_type
    if not content_type:
        guessed, _ = mimetypes.guess_type(name)
        content_type = guessed or "application/octet-stream"
    return data, content_type
