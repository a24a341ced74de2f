"""Shared fixtures for blog API tests."""

import sys
from types import SimpleNamespace

import pytest
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError


class FakeBlobClient:
    """Dict-backed stand-in for azure.storage.blob.BlobClient."""

    def __init__(self, container: "FakeContainerClient", name: str) -> None:
        self._container = container
        self.blob_name = name

    def upload_blob(self, data, overwrite=False, content_settings=None, **kwargs):
        if self._container.fail_with is not None:
            raise self._container.fail_with
        if not overwrite and self.blob_name in self._container.blobs:
            raise ResourceExistsError(f"The specified blob already exists: {self.blob_name}")
        if isinstance(data, str):
            data = data.encode("utf-8")
        content_type = content_settings.content_type if content_settings else None
        self._container.blobs[self.blob_name] = (data, content_type)

    def download_blob(self, **kwargs):
        if self._container.fail_with is not None:
            raise self._container.fail_with
        try:
            data, content_type = self._container.blobs[self.blob_name]
        except KeyError:
            raise ResourceNotFoundError(f"The specified blob does not exist: {self.blob_name}")
        return SimpleNamespace(
            readall=lambda: data,
            properties=SimpleNamespace(
                content_settings=SimpleNamespace(content_type=content_type)
            ),
        )

    def delete_blob(self, **kwargs):
        if self._container.fail_with is not None:
            raise self._container.fail_with
        if self.blob_name not in self._container.blobs:
            raise ResourceNotFoundError(f"The specified blob does not exist: {self.blob_name}")
        del self._container.blobs[self.blob_name]


class FakeContainerClient:
    """Dict-backed stand-in for azure.storage.blob.ContainerClient.

    Raises the real azure.core exception types. Set ``fail_with`` to an
    exception instance to simulate an unreachable service.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, tuple[bytes, str | None]] = {}
        self.fail_with: Exception | None = None

    def get_blob_client(self, name: str) -> FakeBlobClient:
        return FakeBlobClient(self, name)

    def list_blobs(self, name_starts_with=None, results_per_page=None, **kwargs):
        if self.fail_with is not None:
            raise self.fail_with
        names = sorted(
            n for n in self.blobs if not name_starts_with or n.startswith(name_starts_with)
        )
        return iter([SimpleNamespace(name=n) for n in names])


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset all module-level singletons and caches between tests."""
    yield

    # 1. Settings LRU cache
    from blog_api.config import get_settings

    get_settings.cache_clear()

    # 2. Blob storage singletons
    import blog_api.services.media_storage as media_mod
    import blog_api.services.post_storage as post_mod

    post_mod._posts_client = None
    media_mod._media_client = None

    # 3. Health check cache
    main_mod = sys.modules.get("blog_api.main")
    if main_mod is not None:
        main_mod._health_cache = None


@pytest.fixture
def mock_settings(monkeypatch):
    """Provide a Settings object with safe test defaults."""
    from blog_api.config import Settings, get_settings

    test_settings = Settings(
        azure_storage_account="teststorage",
        azure_posts_container="test-posts",
        azure_media_container="test-uploads",
        azure_storage_connection_string="",
        managed_identity_client_id="test-client-id",
        max_upload_bytes=1024,
    )

    get_settings.cache_clear()
    monkeypatch.setattr("blog_api.config.get_settings", lambda: test_settings)

    # Patch get_settings in all modules that import it directly
    # (from blog_api.config import get_settings creates a local binding that
    # the blog_api.config monkeypatch above does not affect)
    for mod_path in [
        "blog_api.services.post_storage",
        "blog_api.services.media_storage",
        "blog_api.routers.uploads",
    ]:
        monkeypatch.setattr(f"{mod_path}.get_settings", lambda: test_settings)

    return test_settings


@pytest.fixture
def posts_container(mock_settings, monkeypatch):
    """In-memory posts container wired into the post repository."""
    container = FakeContainerClient()
    monkeypatch.setattr(
        "blog_api.services.post_storage._get_posts_client", lambda: container
    )
    return container


@pytest.fixture
def media_container(mock_settings, monkeypatch):
    """In-memory media container wired into the upload service."""
    container = FakeContainerClient()
    monkeypatch.setattr(
        "blog_api.services.media_storage._get_media_client", lambda: container
    )
    return container
