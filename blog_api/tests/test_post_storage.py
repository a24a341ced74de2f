"""Tests for the post repository: slug claims, partial updates, error translation."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from azure.core.exceptions import ServiceRequestError

from blog_api.models.post import Post
from blog_api.services import post_storage
from blog_api.services.errors import DuplicateSlugError, StorageUnavailableError


def _fields(title="Test Post", slug="test-post", **kwargs):
    data = {
        "title": title,
        "slug": slug,
        "content": "<p>Body</p>",
        "excerpt": "Body",
        "published": False,
    }
    data.update(kwargs)
    return data


@pytest.fixture
def clock(monkeypatch):
    """Deterministic, strictly increasing timestamps."""
    state = {"now": datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)}

    def _tick():
        state["now"] += timedelta(minutes=1)
        return state["now"]

    monkeypatch.setattr("blog_api.services.post_storage._now", _tick)
    return state


class TestCreatePost:
    async def test_assigns_id_and_timestamps(self, posts_container):
        post = await post_storage.create_post(_fields())

        assert isinstance(post, Post)
        assert post.id
        assert post.created_at == post.updated_at
        assert post.created_at.tzinfo is not None
        assert f"posts/{post.id}.json" in posts_container.blobs
        assert posts_container.blobs["slugs/test-post"][0] == post.id.encode()

    async def test_stored_document_uses_field_names(self, posts_container):
        post = await post_storage.create_post(_fields())

        raw = json.loads(posts_container.blobs[f"posts/{post.id}.json"][0])
        assert raw["slug"] == "test-post"
        assert "created_at" in raw
        assert "updated_at" in raw

    async def test_duplicate_slug_rejected_first_untouched(self, posts_container):
        first = await post_storage.create_post(_fields(title="Original"))

        with pytest.raises(DuplicateSlugError) as exc_info:
            await post_storage.create_post(_fields(title="Impostor"))

        assert exc_info.value.slug == "test-post"
        stored = await post_storage.get_post_by_slug("test-post")
        assert stored == first
        assert len([n for n in posts_container.blobs if n.startswith("posts/")]) == 1

    async def test_failed_document_write_releases_claim(self, posts_container, mocker):
        mocker.patch(
            "blog_api.services.post_storage._write_post",
            side_effect=ServiceRequestError("connection reset"),
        )

        with pytest.raises(StorageUnavailableError):
            await post_storage.create_post(_fields())

        assert "slugs/test-post" not in posts_container.blobs

    async def test_claim_released_while_checking_owner_is_retried(
        self, posts_container, mocker
    ):
        posts_container.blobs["slugs/test-post"] = (b"departing-id", None)
        blob_cls = type(posts_container.get_blob_client("slugs/test-post"))
        original = blob_cls.download_blob
        state = {"released": False}

        def _released_first(blob, **kwargs):
            if blob.blob_name == "slugs/test-post" and not state["released"]:
                state["released"] = True
                del posts_container.blobs["slugs/test-post"]
            return original(blob, **kwargs)

        mocker.patch.object(blob_cls, "download_blob", _released_first)

        post = await post_storage.create_post(_fields())

        assert state["released"]
        assert posts_container.blobs["slugs/test-post"][0] == post.id.encode()

    async def test_unreachable_storage_raises_storage_unavailable(self, posts_container):
        posts_container.fail_with = ServiceRequestError("no route to host")

        with pytest.raises(StorageUnavailableError):
            await post_storage.create_post(_fields())


class TestReads:
    async def test_get_all_newest_first(self, posts_container, clock):
        await post_storage.create_post(_fields(title="Old", slug="old"))
        await post_storage.create_post(_fields(title="New", slug="new"))

        posts = await post_storage.get_all_posts()
        assert [p.slug for p in posts] == ["new", "old"]

    async def test_get_all_empty(self, posts_container):
        assert await post_storage.get_all_posts() == []

    async def test_get_published_filters_drafts(self, posts_container, clock):
        await post_storage.create_post(_fields(slug="draft"))
        await post_storage.create_post(_fields(slug="live-1", published=True))
        await post_storage.create_post(_fields(slug="live-2", published=True))

        posts = await post_storage.get_published_posts()
        assert [p.slug for p in posts] == ["live-2", "live-1"]

    async def test_get_published_derives_missing_excerpt_without_writing(
        self, posts_container
    ):
        long_text = "word " * 60
        post = await post_storage.create_post(
            _fields(content=f"<p>{long_text}</p>", excerpt=None, published=True)
        )
        before = dict(posts_container.blobs)

        [published] = await post_storage.get_published_posts()

        assert published.excerpt
        assert len(published.excerpt) <= 153
        assert published.excerpt.endswith("...")
        assert posts_container.blobs == before
        stored = await post_storage.get_post_by_id(post.id)
        assert stored.excerpt is None

    async def test_get_by_id_and_slug(self, posts_container):
        post = await post_storage.create_post(_fields())

        assert await post_storage.get_post_by_id(post.id) == post
        assert await post_storage.get_post_by_slug("test-post") == post

    async def test_missing_lookups_return_none(self, posts_container):
        assert await post_storage.get_post_by_id("does-not-exist") is None
        assert await post_storage.get_post_by_slug("does-not-exist") is None

    async def test_unsafe_identifiers_return_none(self, posts_container):
        assert await post_storage.get_post_by_id("../secrets") is None
        assert await post_storage.get_post_by_slug("a/b") is None

    async def test_orphaned_slug_claim_is_not_found(self, posts_container):
        posts_container.blobs["slugs/ghost"] = (b"missing-id", None)
        assert await post_storage.get_post_by_slug("ghost") is None

    async def test_corrupt_document_is_skipped_in_listing(self, posts_container):
        await post_storage.create_post(_fields())
        posts_container.blobs["posts/broken.json"] = (b"{not json", "application/json")

        posts = await post_storage.get_all_posts()
        assert [p.slug for p in posts] == ["test-post"]

    async def test_read_failure_raises_storage_unavailable(self, posts_container):
        posts_container.fail_with = ServiceRequestError("timeout")

        with pytest.raises(StorageUnavailableError):
            await post_storage.get_all_posts()
        with pytest.raises(StorageUnavailableError):
            await post_storage.get_post_by_id("abc")


class TestUpdatePost:
    async def test_applies_only_supplied_fields(self, posts_container):
        post = await post_storage.create_post(_fields())

        updated = await post_storage.update_post(post.id, {"published": True})

        assert updated.published is True
        assert updated.title == post.title
        assert updated.content == post.content
        assert updated.slug == post.slug
        assert updated.created_at == post.created_at
        assert updated.updated_at > post.updated_at
        assert await post_storage.get_post_by_id(post.id) == updated

    async def test_ignores_immutable_fields(self, posts_container):
        post = await post_storage.create_post(_fields())

        updated = await post_storage.update_post(
            post.id, {"id": "other", "created_at": "2000-01-01T00:00:00Z"}
        )

        assert updated.id == post.id
        assert updated.created_at == post.created_at

    async def test_slug_change_moves_claim(self, posts_container):
        post = await post_storage.create_post(_fields())

        updated = await post_storage.update_post(post.id, {"slug": "renamed"})

        assert updated.slug == "renamed"
        assert "slugs/test-post" not in posts_container.blobs
        assert posts_container.blobs["slugs/renamed"][0] == post.id.encode()
        assert await post_storage.get_post_by_slug("test-post") is None
        assert await post_storage.get_post_by_slug("renamed") == updated

    async def test_slug_collision_leaves_record_untouched(self, posts_container):
        await post_storage.create_post(_fields(slug="taken"))
        post = await post_storage.create_post(_fields(slug="mine"))

        with pytest.raises(DuplicateSlugError):
            await post_storage.update_post(post.id, {"slug": "taken", "title": "New"})

        assert await post_storage.get_post_by_id(post.id) == post
        assert posts_container.blobs["slugs/mine"][0] == post.id.encode()

    async def test_missing_post_returns_none(self, posts_container):
        assert await post_storage.update_post("nope", {"title": "x"}) is None


class TestDeletePost:
    async def test_deletes_document_and_claim(self, posts_container):
        post = await post_storage.create_post(_fields())

        assert await post_storage.delete_post(post.id) is True

        assert posts_container.blobs == {}
        assert await post_storage.get_post_by_id(post.id) is None

    async def test_slug_reusable_after_delete(self, posts_container):
        post = await post_storage.create_post(_fields())
        await post_storage.delete_post(post.id)

        again = await post_storage.create_post(_fields())
        assert again.slug == "test-post"

    async def test_missing_post_returns_false(self, posts_container):
        assert await post_storage.delete_post("nope") is False
        assert await post_storage.delete_post("../nope") is False


def test_validate_blob_path_segment_rejects_traversal():
    with pytest.raises(ValueError):
        post_storage.validate_blob_path_segment("..")
    with pytest.raises(ValueError):
        post_storage.validate_blob_path_segment("a/b")
    assert post_storage.validate_blob_path_segment("hello-world") == "hello-world"
