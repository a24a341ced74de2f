"""Azure Blob Storage repository for blog posts.

Each post is a JSON document at ``posts/{id}.json``. Slug uniqueness is
enforced by the store itself: a post owns its slug through a claim blob at
``slugs/{slug}`` (body = post id) that is only ever created with
``overwrite=False``, so of two writers racing for one slug exactly one wins.
"""

import json
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.identity import ManagedIdentityCredential
from azure.storage.blob import ContainerClient, ContentSettings
from pydantic import ValidationError

from blog_api.config import get_settings
from blog_api.models.post import Post
from blog_api.services.derive import derive_excerpt
from blog_api.services.errors import DuplicateSlugError, StorageUnavailableError

logger = logging.getLogger(__name__)

_SAFE_PATH_SEGMENT_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")

POSTS_PREFIX = "posts/"
SLUGS_PREFIX = "slugs/"

# Fields a partial update may touch; id and created_at never change
UPDATABLE_FIELDS = frozenset({"title", "slug", "content", "excerpt", "published"})

JSON_CONTENT = ContentSettings(content_type="application/json")

# Lazy singleton — lives for the process lifetime
_posts_client: ContainerClient | None = None


def validate_blob_path_segment(segment: str) -> str:
    """Validate a user-supplied blob path segment.

    Rejects inputs containing path traversal sequences (..), slashes,
    backslashes, or other unsafe characters. Returns the segment unchanged
    if valid; raises ValueError otherwise.
    """
    if not segment or not _SAFE_PATH_SEGMENT_RE.match(segment) or ".." in segment:
        raise ValueError(f"Invalid blob path segment: {segment!r}")
    return segment


def _is_safe_segment(segment: str) -> bool:
    try:
        validate_blob_path_segment(segment)
    except ValueError:
        return False
    return True


def create_container_client(container_name: str) -> ContainerClient:
    """Create a ContainerClient for the given container.

    Uses the configured connection string when present (local Azurite),
    otherwise the storage account with a managed identity credential.
    """
    settings = get_settings()
    if settings.azure_storage_connection_string:
        return ContainerClient.from_connection_string(
            settings.azure_storage_connection_string,
            container_name=container_name,
        )
    account_url = f"https://{settings.azure_storage_account}.blob.core.windows.net"
    return ContainerClient(
        account_url=account_url,
        container_name=container_name,
        credential=ManagedIdentityCredential(
            client_id=settings.managed_identity_client_id or None
        ),
    )


def _get_posts_client() -> ContainerClient:
    """Return a shared blob container client for posts (lazy singleton)."""
    global _posts_client
    if _posts_client is None:
        _posts_client = create_container_client(get_settings().azure_posts_container)
    return _posts_client


def check_storage_connectivity() -> bool:
    """Lightweight storage connectivity check — lists 1 blob."""
    try:
        client = _get_posts_client()
        next(client.list_blobs(results_per_page=1).__iter__())
        return True
    except StopIteration:
        # Container exists but is empty — still connected
        return True
    except Exception:
        return False


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _post_blob(post_id: str) -> str:
    return f"{POSTS_PREFIX}{post_id}.json"


def _slug_blob(slug: str) -> str:
    return f"{SLUGS_PREFIX}{slug}"


def _read_post(client: ContainerClient, post_id: str) -> Post | None:
    """Download and parse one post document. None if it does not exist."""
    try:
        data = client.get_blob_client(_post_blob(post_id)).download_blob().readall()
    except ResourceNotFoundError:
        return None
    try:
        return Post.model_validate(json.loads(data))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error("Corrupt post document %s: %s", post_id, e)
        return None


def _write_post(client: ContainerClient, post: Post, overwrite: bool) -> None:
    client.get_blob_client(_post_blob(post.id)).upload_blob(
        post.model_dump_json(indent=2),
        overwrite=overwrite,
        content_settings=JSON_CONTENT,
    )


def _claim_slug(client: ContainerClient, slug: str, post_id: str) -> None:
    """Reserve *slug* for *post_id*; DuplicateSlugError if someone else holds it."""
    blob = client.get_blob_client(_slug_blob(slug))
    for _ in range(2):
        try:
            blob.upload_blob(post_id, overwrite=False)
            return
        except ResourceExistsError:
            pass
        try:
            owner = blob.download_blob().readall().decode("utf-8")
        except ResourceNotFoundError:
            # Released between the two calls; try the claim once more
            logger.info("Slug claim %s vanished while checking owner", slug)
            continue
        if owner != post_id:
            raise DuplicateSlugError(slug)
        return
    raise DuplicateSlugError(slug)


def _release_slug(client: ContainerClient, slug: str) -> None:
    try:
        client.get_blob_client(_slug_blob(slug)).delete_blob()
    except ResourceNotFoundError:
        logger.warning("Slug claim %s was already gone", slug)


def _list_posts(client: ContainerClient) -> list[Post]:
    posts = []
    for props in client.list_blobs(name_starts_with=POSTS_PREFIX):
        post_id = props.name[len(POSTS_PREFIX):].removesuffix(".json")
        post = _read_post(client, post_id)
        if post is not None:
            posts.append(post)
    posts.sort(key=lambda p: p.created_at, reverse=True)
    return posts


async def get_all_posts() -> list[Post]:
    """Every post, newest first."""
    client = _get_posts_client()
    try:
        return _list_posts(client)
    except AzureError as e:
        logger.warning("Azure API error listing posts: %s", e)
        raise StorageUnavailableError("Could not list posts") from e


async def get_published_posts() -> list[Post]:
    """Published posts, newest first, each with an excerpt.

    A missing excerpt is derived from the content for the response only;
    the stored document is left as is.
    """
    posts = [p for p in await get_all_posts() if p.published]
    return [
        p if p.excerpt else p.model_copy(update={"excerpt": derive_excerpt(p.content)})
        for p in posts
    ]


async def get_post_by_id(post_id: str) -> Post | None:
    """Read a single post by id. Returns None if not found."""
    if not _is_safe_segment(post_id):
        return None
    client = _get_posts_client()
    try:
        return _read_post(client, post_id)
    except AzureError as e:
        logger.warning("Azure API error reading post %s: %s", post_id, e)
        raise StorageUnavailableError(f"Could not read post {post_id}") from e


async def get_post_by_slug(slug: str) -> Post | None:
    """Read a single post by slug. Returns None if not found."""
    if not _is_safe_segment(slug):
        return None
    client = _get_posts_client()
    try:
        try:
            owner = client.get_blob_client(_slug_blob(slug)).download_blob().readall()
        except ResourceNotFoundError:
            return None
        post = _read_post(client, owner.decode("utf-8"))
    except AzureError as e:
        logger.warning("Azure API error reading post by slug %s: %s", slug, e)
        raise StorageUnavailableError(f"Could not read post {slug}") from e

    # A claim left behind by an interrupted write points at nothing useful
    if post is None or post.slug != slug:
        return None
    return post


async def create_post(fields: dict[str, Any]) -> Post:
    """Store a new post, assigning its id and timestamps.

    Raises DuplicateSlugError if the slug is taken.
    """
    now = _now()
    post = Post(
        id=uuid.uuid4().hex,
        title=fields["title"],
        slug=fields["slug"],
        content=fields["content"],
        excerpt=fields.get("excerpt"),
        published=fields.get("published", False),
        created_at=now,
        updated_at=now,
    )
    client = _get_posts_client()
    try:
        _claim_slug(client, post.slug, post.id)
        try:
            _write_post(client, post, overwrite=False)
        except Exception:
            _release_slug(client, post.slug)
            raise
    except AzureError as e:
        logger.warning("Azure API error creating post %s: %s", post.slug, e)
        raise StorageUnavailableError(f"Could not create post {post.slug}") from e

    logger.info("Created post %s (%s)", post.id, post.slug)
    return post


async def update_post(post_id: str, changes: dict[str, Any]) -> Post | None:
    """Apply *changes* to an existing post and refresh updated_at.

    Only the keys present in *changes* are written. Returns None if the
    post does not exist; raises DuplicateSlugError if a new slug is taken,
    in which case the stored post is left untouched.
    """
    if not _is_safe_segment(post_id):
        return None
    changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
    client = _get_posts_client()
    try:
        existing = _read_post(client, post_id)
        if existing is None:
            return None

        new_slug = changes.get("slug", existing.slug)
        slug_changed = new_slug != existing.slug
        if slug_changed:
            _claim_slug(client, new_slug, post_id)

        # Strictly later than the previous stamp even on a coarse clock
        updated_at = max(_now(), existing.updated_at + timedelta(microseconds=1))
        updated = existing.model_copy(update={**changes, "updated_at": updated_at})
        try:
            _write_post(client, updated, overwrite=True)
        except Exception:
            if slug_changed:
                _release_slug(client, new_slug)
            raise

        if slug_changed:
            _release_slug(client, existing.slug)
    except AzureError as e:
        logger.warning("Azure API error updating post %s: %s", post_id, e)
        raise StorageUnavailableError(f"Could not update post {post_id}") from e

    logger.info("Updated post %s (%s)", post_id, ", ".join(sorted(changes)) or "no fields")
    return updated


async def delete_post(post_id: str) -> bool:
    """Remove a post and its slug claim. False if the post did not exist."""
    if not _is_safe_segment(post_id):
        return False
    client = _get_posts_client()
    try:
        existing = _read_post(client, post_id)
        if existing is None:
            return False
        try:
            client.get_blob_client(_post_blob(post_id)).delete_blob()
        except ResourceNotFoundError:
            # Deleted concurrently
            return False
        _release_slug(client, existing.slug)
    except AzureError as e:
        logger.warning("Azure API error deleting post %s: %s", post_id, e)
        raise StorageUnavailableError(f"Could not delete post {post_id}") from e

    logger.info("Deleted post %s (%s)", post_id, existing.slug)
    return True
