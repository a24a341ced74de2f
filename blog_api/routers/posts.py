"""Post endpoints for the public reader API and the admin authoring API."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query
from fastapi.responses import JSONResponse

from blog_api.models.post import Post
from blog_api.services import posts as pipeline
from blog_api.services.errors import StorageUnavailableError
from blog_api.services.post_storage import (
    get_all_posts,
    get_post_by_id,
    get_post_by_slug,
    get_published_posts,
)

router = APIRouter(tags=["posts"])

_STATUS_CODES = {
    pipeline.NOT_FOUND: 404,
    pipeline.CONFLICT: 409,
    pipeline.ERROR: 500,
}


def _error_response(result: pipeline.PostResult) -> JSONResponse:
    """Translate a failed pipeline result into an HTTP error response."""
    if result.status == pipeline.INVALID:
        return JSONResponse(
            status_code=400,
            content={"message": result.message, "errors": result.errors},
        )
    raise HTTPException(
        status_code=_STATUS_CODES.get(result.status, 500), detail=result.message
    )


@router.get("/posts", response_model=list[Post])
async def list_published_posts():
    """Published posts for the public site, newest first."""
    try:
        return await get_published_posts()
    except StorageUnavailableError:
        raise HTTPException(status_code=500, detail="Failed to fetch posts")


@router.get("/posts/{slug}", response_model=Post)
async def get_post(slug: str, admin: bool = Query(default=False)):
    """Get a single post by slug. Drafts are only visible with ``?admin=true``."""
    try:
        post = await get_post_by_slug(slug)
    except StorageUnavailableError:
        raise HTTPException(status_code=500, detail="Failed to fetch post")
    if post is None or (not post.published and not admin):
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.post("/posts", response_model=Post, status_code=201)
async def create_post(payload: dict[str, Any] = Body(...)):
    """Create a post. The slug and excerpt are derived when omitted."""
    result = await pipeline.create_post(payload)
    if not result.ok:
        return _error_response(result)
    return result.post


@router.put("/posts/{post_id}", response_model=Post)
async def update_post(post_id: str, payload: dict[str, Any] = Body(...)):
    """Update the supplied fields of a post."""
    result = await pipeline.update_post(post_id, payload)
    if not result.ok:
        return _error_response(result)
    return result.post


@router.delete("/posts/{post_id}")
async def delete_post(post_id: str):
    """Delete a post by id."""
    result = await pipeline.delete_post(post_id)
    if not result.ok:
        return _error_response(result)
    return {"message": result.message}


@router.get("/admin/posts", response_model=list[Post])
async def list_all_posts():
    """Every post, drafts included, newest first."""
    try:
        return await get_all_posts()
    except StorageUnavailableError:
        raise HTTPException(status_code=500, detail="Failed to fetch posts")


@router.get("/admin/posts/{post_id}", response_model=Post)
async def get_post_for_editing(post_id: str):
    """Get a single post by id for the editor."""
    try:
        post = await get_post_by_id(post_id)
    except StorageUnavailableError:
        raise HTTPException(status_code=500, detail="Failed to fetch post")
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post
