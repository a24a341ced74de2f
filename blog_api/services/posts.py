"""Post ingestion pipeline: validate, sanitize, derive, persist.

Create and update requests run the same stages and stop at the first
failure. Every outcome, including storage failures, comes back as a
PostResult so a single bad request never escapes as an exception.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from blog_api.models.post import Post, PostCreate, PostUpdate
from blog_api.services import post_storage
from blog_api.services.derive import derive_excerpt, derive_slug
from blog_api.services.errors import DuplicateSlugError
from blog_api.services.sanitizer import sanitize_html

logger = logging.getLogger(__name__)

OK = "ok"
NOT_FOUND = "not_found"
CONFLICT = "conflict"
INVALID = "invalid"
ERROR = "error"


@dataclass
class PostResult:
    """Outcome of a create, update, or delete request."""

    status: str
    post: Post | None = None
    message: str = ""
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == OK


def _invalid(errors: list[dict[str, str]]) -> PostResult:
    return PostResult(status=INVALID, message="Validation error", errors=errors)


def _field_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "body",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def _sanitized_content(raw: str) -> str | None:
    """Sanitized content, or None when nothing survives sanitization."""
    content = sanitize_html(raw)
    return content if content.strip() else None


async def create_post(payload: Any) -> PostResult:
    """Run a create request through the pipeline."""
    try:
        data = PostCreate.model_validate(payload)
    except ValidationError as e:
        return _invalid(_field_errors(e))

    content = _sanitized_content(data.content)
    if content is None:
        return _invalid([{"field": "content", "message": "Content is empty after sanitization"}])

    slug = data.slug or derive_slug(data.title)
    if not slug:
        return _invalid([{"field": "slug", "message": "Could not derive a slug from the title"}])

    fields = {
        "title": data.title,
        "slug": slug,
        "content": content,
        "excerpt": data.excerpt or derive_excerpt(content),
        "published": data.published,
    }

    try:
        post = await post_storage.create_post(fields)
    except DuplicateSlugError as e:
        logger.info("Rejected create: slug %s already taken", e.slug)
        return PostResult(status=CONFLICT, message="A post with this slug already exists")
    except Exception:
        logger.exception("Failed to create post %s", slug)
        return PostResult(status=ERROR, message="Failed to create post")

    return PostResult(status=OK, post=post)


async def update_post(post_id: str, payload: Any) -> PostResult:
    """Run a partial update through the pipeline.

    Fields missing from *payload* are left as stored. The slug is
    re-derived only when the title changes without an explicit slug, and
    the excerpt only when the content changes without an explicit excerpt.
    """
    try:
        data = PostUpdate.model_validate(payload)
    except ValidationError as e:
        return _invalid(_field_errors(e))

    supplied = data.model_dump(exclude_unset=True)
    # Explicit nulls mean "unchanged" except for excerpt, where they clear it
    changes = {k: v for k, v in supplied.items() if v is not None or k == "excerpt"}
    if "excerpt" in changes:
        changes["excerpt"] = changes["excerpt"] or None

    if "content" in changes:
        content = _sanitized_content(changes["content"])
        if content is None:
            return _invalid([{"field": "content", "message": "Content is empty after sanitization"}])
        changes["content"] = content
        if not changes.get("excerpt"):
            changes["excerpt"] = derive_excerpt(content)

    if "title" in changes and "slug" not in changes:
        slug = derive_slug(changes["title"])
        if not slug:
            return _invalid([{"field": "slug", "message": "Could not derive a slug from the title"}])
        changes["slug"] = slug

    try:
        post = await post_storage.update_post(post_id, changes)
    except DuplicateSlugError as e:
        logger.info("Rejected update of %s: slug %s already taken", post_id, e.slug)
        return PostResult(status=CONFLICT, message="A post with this slug already exists")
    except Exception:
        logger.exception("Failed to update post %s", post_id)
        return PostResult(status=ERROR, message="Failed to update post")

    if post is None:
        return PostResult(status=NOT_FOUND, message="Post not found")
    return PostResult(status=OK, post=post)


async def delete_post(post_id: str) -> PostResult:
    """Delete a post by id."""
    try:
        deleted = await post_storage.delete_post(post_id)
    except Exception:
        logger.exception("Failed to delete post %s", post_id)
        return PostResult(status=ERROR, message="Failed to delete post")

    if not deleted:
        return PostResult(status=NOT_FOUND, message="Post not found")
    return PostResult(status=OK, message="Post deleted successfully")
