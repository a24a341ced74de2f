"""Image upload and serving endpoints."""

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response

from blog_api.config import get_settings
from blog_api.models.post import UploadResponse
from blog_api.services.errors import InvalidUploadError, StorageUnavailableError
from blog_api.services.media_storage import read_image, upload_image

router = APIRouter(tags=["uploads"])

# Serves /uploads/* outside the /api prefix so stored URLs stay short
media_router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("/upload", response_model=UploadResponse)
async def upload(image: UploadFile | None = File(None)):
    """Store an image from the editor and return its URL."""
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")

    # Anything past the limit is rejected, so never buffer more than limit + 1
    data = await image.read(get_settings().max_upload_bytes + 1)
    try:
        url = await upload_image(
            image.filename or "image",
            data,
            image.content_type or "application/octet-stream",
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageUnavailableError:
        raise HTTPException(status_code=500, detail="Failed to upload image")
    return UploadResponse(url=url)


@media_router.get("/{name}")
async def serve_upload(name: str):
    """Serve a stored image to the reader site and editor."""
    try:
        found = await read_image(name)
    except StorageUnavailableError:
        raise HTTPException(status_code=500, detail="Failed to fetch image")
    if found is None:
        raise HTTPException(status_code=404, detail="Image not found")

    data, content_type = found
    return Response(
        content=data,
        media_type=content_type,
        headers={"Cross-Origin-Resource-Policy": "cross-origin"},
    )
