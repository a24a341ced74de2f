"""Domain errors raised by the storage and ingestion services."""


class PostError(Exception):
    """Base class for post service failures."""


class DuplicateSlugError(PostError):
    """Another post already holds the requested slug."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"A post with slug {slug!r} already exists")
        self.slug = slug


class StorageUnavailableError(PostError):
    """The backing blob store could not be reached or refused the operation."""


class InvalidUploadError(ValueError):
    """Uploaded file was rejected (wrong type, empty, or too large)."""
